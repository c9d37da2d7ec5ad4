"""
Collection Admin
================

The only place the reconciler talks to the store:
- exists_collection(name)
- list_collections()
- list_indexes(name)
- create_indexes(name, models)
- drop_index(name, index_name)

Each call runs under pymongo.timeout() when a deadline is configured, and
driver failures surface as StoreIOError with the driver exception chained.
"""

import logging
from typing import Any, Dict, List, Optional

import pymongo
from pymongo import IndexModel
from pymongo.database import Database
from pymongo.errors import PyMongoError

from indexsync.core.index_errors import StoreIOError

logger = logging.getLogger(__name__)


class MongoCollectionAdmin:
    """Collection/index administration on one database"""

    def __init__(self, database: Database, operation_timeout_ms: Optional[int] = None):
        self.database = database
        self.operation_timeout_ms = operation_timeout_ms

    @property
    def _timeout(self) -> Optional[float]:
        if self.operation_timeout_ms is None:
            return None
        return self.operation_timeout_ms / 1000.0

    def exists_collection(self, name: str) -> bool:
        try:
            with pymongo.timeout(self._timeout):
                return name in self.database.list_collection_names(filter={"name": name})
        except PyMongoError as e:
            raise StoreIOError(name, "collection existence check", str(e)) from e

    def list_collections(self) -> List[str]:
        try:
            with pymongo.timeout(self._timeout):
                return sorted(self.database.list_collection_names())
        except PyMongoError as e:
            raise StoreIOError(self.database.name, "list collections", str(e)) from e

    def list_indexes(self, name: str) -> List[Dict[str, Any]]:
        try:
            with pymongo.timeout(self._timeout):
                return list(self.database[name].list_indexes())
        except PyMongoError as e:
            raise StoreIOError(name, "list indexes", str(e)) from e

    def create_indexes(self, name: str, models: List[IndexModel]) -> List[str]:
        if not models:
            return []
        try:
            with pymongo.timeout(self._timeout):
                created = self.database[name].create_indexes(models)
        except PyMongoError as e:
            raise StoreIOError(name, "create indexes", str(e)) from e
        logger.info(f"✅ {name} collection, created indexes: {created}")
        return created

    def drop_index(self, name: str, index_name: str) -> None:
        try:
            with pymongo.timeout(self._timeout):
                self.database[name].drop_index(index_name)
        except PyMongoError as e:
            raise StoreIOError(name, f"drop index {index_name}", str(e)) from e
        logger.info(f"{name} collection, dropped index {index_name}")
