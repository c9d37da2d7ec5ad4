"""
Index Sync Configuration
========================

Settings are an explicit value handed to the reconciler and document
models. Nothing reads process-wide mutable flags.

Environment variables (a .env file is honored):
- MONGO_URI                         connection string
- DATABASE_NAME                     used when the URI has no database path
- INDEXSYNC_AUTO_CHECK              reconcile indexes when a model is opened
- INDEXSYNC_AUTO_UPDATE             allow the reconciler to create/drop indexes
- INDEXSYNC_OPERATION_TIMEOUT_MS    deadline for every store call (unset = none)
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MONGO_URI = "mongodb://localhost:27017"
DEFAULT_DATABASE_NAME = "indexsync"

TRUTHY = ("1", "true", "yes", "on")


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in TRUTHY


class IndexSyncSettings(BaseModel):
    """Read-only configuration for one process"""
    model_config = ConfigDict(frozen=True)

    mongo_uri: str = DEFAULT_MONGO_URI
    database_name: str = DEFAULT_DATABASE_NAME
    auto_check: bool = False
    auto_update: bool = False
    operation_timeout_ms: Optional[int] = Field(default=None, gt=0)

    @property
    def operation_timeout(self) -> Optional[float]:
        """Deadline in seconds, as pymongo.timeout expects"""
        if self.operation_timeout_ms is None:
            return None
        return self.operation_timeout_ms / 1000.0

    @classmethod
    def from_env(cls) -> "IndexSyncSettings":
        load_dotenv()

        timeout = os.getenv("INDEXSYNC_OPERATION_TIMEOUT_MS")
        return cls(
            mongo_uri=os.getenv("MONGO_URI", DEFAULT_MONGO_URI),
            database_name=os.getenv("DATABASE_NAME", DEFAULT_DATABASE_NAME),
            auto_check=_env_flag("INDEXSYNC_AUTO_CHECK"),
            auto_update=_env_flag("INDEXSYNC_AUTO_UPDATE"),
            operation_timeout_ms=int(timeout) if timeout else None,
        )
