"""
Index Reconciler
================

Compares the indexes a record schema declares (local) with the indexes the
live collection has (remote) and converges them.

Local and remote indexes are matched by canonical key (sorted field names).

SAFETY RULES:
1. Collection missing
   - auto_update off -> PendingCreationError, nothing touched
   - auto_update on  -> create every local index, created=True
2. Uniqueness mismatch on a matching key -> UniqueMismatchError, ALWAYS,
   before any mutation (a uniqueness change needs a rebuild)
3. Remote index with no local counterpart (drop) or local index with no
   remote counterpart (create)
   - auto_update off -> every candidate logged CRITICAL, PendingCreationError
   - auto_update on  -> applied; a failed drop/create is logged and the
     pass continues with the next candidate
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional

from pymongo.errors import PyMongoError

from indexsync.config.settings import IndexSyncSettings
from indexsync.core.index_builder import LocalIndex, build_local_indexes_from_raw
from indexsync.core.index_errors import (
    ApplyError,
    IndexSyncError,
    PendingCreationError,
    UniqueMismatchError,
)
from indexsync.core.remote_indexes import RemoteIndex, list_remote_indexes

logger = logging.getLogger(__name__)


class IndexStatus(str, Enum):
    """Where one local/remote pair stands"""
    CONSISTENT = "CONSISTENT"
    TO_CREATE = "TO_CREATE"
    TO_DROP = "TO_DROP"
    UNIQUE_MISMATCH = "UNIQUE_MISMATCH"


@dataclass
class IndexPlanEntry:
    key: str
    status: IndexStatus
    local: Optional[LocalIndex] = None
    remote: Optional[RemoteIndex] = None

    def describe(self) -> str:
        if self.status == IndexStatus.TO_DROP:
            return f"index to be dropped: {self.key} ({self.remote.name})"
        if self.status == IndexStatus.TO_CREATE:
            return f"index to be created: {self.key} {self.local.describe()}"
        if self.status == IndexStatus.UNIQUE_MISMATCH:
            return (
                f"index.unique inconsistent: {self.key} "
                f"(local unique={self.local.unique}, remote {self.remote.name} unique={self.remote.unique})"
            )
        return f"index consistent: {self.key}"


@dataclass
class ReconciliationOutcome:
    """Result of one reconciliation pass over a collection"""
    collection: str
    created: bool = False
    collection_exists: bool = True
    entries: List[IndexPlanEntry] = field(default_factory=list)
    failures: List[ApplyError] = field(default_factory=list)

    def _with_status(self, status: IndexStatus) -> List[IndexPlanEntry]:
        return [entry for entry in self.entries if entry.status == status]

    @property
    def to_create(self) -> List[IndexPlanEntry]:
        return self._with_status(IndexStatus.TO_CREATE)

    @property
    def to_drop(self) -> List[IndexPlanEntry]:
        return self._with_status(IndexStatus.TO_DROP)

    @property
    def mismatches(self) -> List[IndexPlanEntry]:
        return self._with_status(IndexStatus.UNIQUE_MISMATCH)

    @property
    def is_consistent(self) -> bool:
        return self.collection_exists and all(
            entry.status == IndexStatus.CONSISTENT for entry in self.entries
        )


def _local_by_key(collection_name: str, local: List[LocalIndex]) -> Dict[str, LocalIndex]:
    by_key: Dict[str, LocalIndex] = {}
    for index in local:
        key = index.canonical_key
        if key in by_key:
            logger.warning(
                f"{collection_name} collection, duplicate local index {key} "
                f"({index.describe()}) ignored"
            )
            continue
        by_key[key] = index
    return by_key


def diff_indexes(
    collection_name: str,
    local: List[LocalIndex],
    remote: List[RemoteIndex],
) -> List[IndexPlanEntry]:
    """Classify every local and remote index by canonical key"""
    local_by_key = _local_by_key(collection_name, local)
    entries = []
    remote_keys = set()

    for remote_index in remote:
        key = remote_index.canonical_key
        remote_keys.add(key)
        local_index = local_by_key.get(key)

        if local_index is None:
            status = IndexStatus.TO_DROP
        elif local_index.unique != remote_index.unique:
            status = IndexStatus.UNIQUE_MISMATCH
        else:
            status = IndexStatus.CONSISTENT
        entries.append(IndexPlanEntry(key, status, local=local_index, remote=remote_index))

    for key, local_index in local_by_key.items():
        if key not in remote_keys:
            entries.append(IndexPlanEntry(key, IndexStatus.TO_CREATE, local=local_index))

    return entries


class IndexReconciler:
    """
    Reconciles one collection's indexes against its record schema.

    Usage:
        reconciler = IndexReconciler(MongoCollectionAdmin(db), settings)
        outcome = reconciler.reconcile("user", {"email": "unique"})
    """

    def __init__(self, admin, settings: Optional[IndexSyncSettings] = None):
        self.admin = admin
        self.settings = settings or IndexSyncSettings()

    @property
    def auto_update(self) -> bool:
        return self.settings.auto_update

    def plan(self, collection_name: str, raw_directives: Mapping[str, str]) -> ReconciliationOutcome:
        """Read-only: what reconcile() would do, without touching the store"""
        exists = self.admin.exists_collection(collection_name)
        local = build_local_indexes_from_raw(raw_directives)

        if not exists:
            return ReconciliationOutcome(
                collection=collection_name,
                collection_exists=False,
                entries=[
                    IndexPlanEntry(index.canonical_key, IndexStatus.TO_CREATE, local=index)
                    for index in _local_by_key(collection_name, local).values()
                ],
            )

        remote = list_remote_indexes(self.admin, collection_name)
        return ReconciliationOutcome(
            collection=collection_name,
            entries=diff_indexes(collection_name, local, remote),
        )

    def reconcile(self, collection_name: str, raw_directives: Mapping[str, str]) -> ReconciliationOutcome:
        """
        Converge the collection's indexes with the declared ones.

        Args:
            collection_name: Target collection
            raw_directives: storage field name -> raw directive string

        Returns:
            ReconciliationOutcome (created=True only when the collection was missing)

        Raises:
            DirectiveParseError, PendingCreationError, UniqueMismatchError, StoreIOError
        """
        outcome = self.plan(collection_name, raw_directives)

        if not outcome.collection_exists:
            return self._create_collection(outcome)

        mismatches = outcome.mismatches
        if mismatches:
            for entry in mismatches:
                logger.critical(f"❌ {collection_name} collection, {entry.describe()}")
            raise UniqueMismatchError(collection_name, [entry.key for entry in mismatches])

        pending = outcome.to_drop + outcome.to_create
        if pending and not self.auto_update:
            for entry in pending:
                logger.critical(f"❌ {collection_name} collection, {entry.describe()}")
            raise PendingCreationError(collection_name, [entry.describe() for entry in pending])

        for entry in outcome.to_drop:
            logger.warning(f"⚠️  {collection_name} collection, {entry.describe()}")
            self._apply(outcome, entry, "drop")

        for entry in outcome.to_create:
            logger.info(f"{collection_name} collection, {entry.describe()}")
            self._apply(outcome, entry, "create")

        if not pending:
            logger.debug(f"✅ {collection_name} collection indexes consistent")
        return outcome

    def _create_collection(self, outcome: ReconciliationOutcome) -> ReconciliationOutcome:
        collection_name = outcome.collection
        if not self.auto_update:
            logger.critical(f"❌ remote collection `{collection_name}`, to be created")
            raise PendingCreationError(collection_name)

        models = [entry.local.to_index_model() for entry in outcome.entries]
        logger.info(f"📦 {collection_name} collection missing, creating {len(models)} indexes")
        self.admin.create_indexes(collection_name, models)
        outcome.created = True
        return outcome

    def _apply(self, outcome: ReconciliationOutcome, entry: IndexPlanEntry, action: str) -> None:
        collection_name = outcome.collection
        try:
            if action == "drop":
                self.admin.drop_index(collection_name, entry.remote.name)
            else:
                self.admin.create_indexes(collection_name, [entry.local.to_index_model()])
        except (IndexSyncError, PyMongoError) as e:
            failure = ApplyError(collection_name, entry.key, action, e)
            logger.error(str(failure))
            outcome.failures.append(failure)


def create_index_if_not_exists(
    admin,
    collection_name: str,
    raw_directives: Mapping[str, str],
    auto_update: bool = False,
) -> bool:
    """Reconcile one collection; True when the collection had to be created"""
    settings = IndexSyncSettings(auto_update=auto_update)
    return IndexReconciler(admin, settings).reconcile(collection_name, raw_directives).created
