"""
Index Sync Errors
=================

Exception taxonomy for index reconciliation.

Fatal (stop model initialization):
- DirectiveParseError   - malformed or unsupported directive syntax
- SchemaConventionError - identifier field convention violated
- PendingCreationError  - collection/indexes out of date, auto-update disabled
- UniqueMismatchError   - local vs remote uniqueness disagree (always fatal)
- StoreIOError          - existence check / catalog listing failed

Non-fatal (logged, reconciliation continues):
- ApplyError            - create/drop rejected by the store
"""

from typing import List, Optional


class IndexSyncError(Exception):
    """Base class for every error raised by indexsync"""
    pass


class DirectiveParseError(IndexSyncError):
    """Raised when a field's index directive cannot be parsed"""

    def __init__(self, field: str, raw: str, message: str):
        self.field = field
        self.raw = raw
        super().__init__(message)


class SchemaConventionError(IndexSyncError):
    """Raised when a record schema breaks the identifier field convention"""
    pass


class PendingCreationError(IndexSyncError):
    """Raised when the store needs changes but auto-update is disabled"""

    def __init__(self, collection: str, pending: Optional[List[str]] = None):
        self.collection = collection
        self.pending = list(pending or [])
        if self.pending:
            message = (
                f"remote collection `{collection}` has pending index changes: "
                + "; ".join(self.pending)
            )
        else:
            message = f"remote collection `{collection}`, to be created"
        super().__init__(message)


class UniqueMismatchError(IndexSyncError):
    """Raised when a local and remote index disagree on uniqueness"""

    def __init__(self, collection: str, mismatches: List[str]):
        self.collection = collection
        self.mismatches = list(mismatches)
        super().__init__(
            f"{collection} collection, index.unique inconsistent: "
            + ", ".join(self.mismatches)
        )


class ApplyError(IndexSyncError):
    """A create or drop the store rejected while auto-update was enabled"""

    def __init__(self, collection: str, index: str, action: str, cause: Exception):
        self.collection = collection
        self.index = index
        self.action = action
        self.cause = cause
        super().__init__(f"{collection} collection, failed to {action} index {index}: {cause}")


class StoreIOError(IndexSyncError):
    """Raised when the store cannot answer an existence check or catalog query"""

    def __init__(self, collection: str, operation: str, detail: str = ""):
        self.collection = collection
        self.operation = operation
        message = f"{operation} failed for collection `{collection}`"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvalidIdentifierError(IndexSyncError):
    """Raised when the store hands back an _id that is neither ObjectId nor str"""
    pass


class RecordTypeError(IndexSyncError):
    """Raised when a value of the wrong record type is written to a model"""
    pass
