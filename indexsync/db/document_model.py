"""
Document Model
==============

Binds a record schema to its collection and forwards typed CRUD calls to
pymongo. When settings.auto_check is on, opening a model reconciles the
collection's indexes first (see indexsync.core.reconciler).

Id arguments are strings: a valid 24-char ObjectId hex is converted to
ObjectId, anything else is used as-is.
"""

import logging
from typing import Any, Dict, List, Optional, Union

import pymongo
from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field
from pymongo.database import Database

from indexsync.config.settings import IndexSyncSettings
from indexsync.core.index_errors import InvalidIdentifierError, RecordTypeError
from indexsync.core.reconciler import IndexReconciler, ReconciliationOutcome
from indexsync.db.collection_admin import MongoCollectionAdmin
from indexsync.db.mongo import dial_collection, take_database
from indexsync.db.schema import SchemaDescriptor

logger = logging.getLogger(__name__)

Record = Union[BaseModel, Dict[str, Any]]


class SumResult(BaseModel):
    sum: float = 0


class GroupCount(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[Any] = Field(default=None, alias="_id")
    count: int = 0


def nullable_string(value: str) -> Any:
    """Match the value, or a missing field when the value is empty"""
    if value != "":
        return value
    return {"$exists": False}


def to_document_id(id: str) -> Union[ObjectId, str]:
    if ObjectId.is_valid(id):
        return ObjectId(id)
    return id


def inserted_id_to_str(inserted_id: Any) -> str:
    if isinstance(inserted_id, ObjectId):
        return str(inserted_id)
    if isinstance(inserted_id, str):
        return inserted_id
    raise InvalidIdentifierError(f"invalid inserted _id type: {type(inserted_id).__name__}")


class DocumentModel:
    """CRUD access to one collection, typed by its schema"""

    def __init__(
        self,
        database: Database,
        schema: SchemaDescriptor,
        settings: Optional[IndexSyncSettings] = None,
        admin: Optional[MongoCollectionAdmin] = None,
    ):
        self.database = database
        self.schema = schema.validate()
        self.settings = settings or IndexSyncSettings()
        self.collection_name = schema.collection_name
        self.collection = dial_collection(database, self.collection_name)
        self.admin = admin or MongoCollectionAdmin(database, self.settings.operation_timeout_ms)
        self.created = False
        self.outcome: Optional[ReconciliationOutcome] = None

        if self.settings.auto_check:
            self.outcome = IndexReconciler(self.admin, self.settings).reconcile(
                self.collection_name, schema.index_directives()
            )
            self.created = self.outcome.created

    @classmethod
    def open(cls, settings: IndexSyncSettings, schema: SchemaDescriptor) -> "DocumentModel":
        """Dial (or reuse) the client for settings.mongo_uri and bind the schema"""
        database, _ = take_database(settings.mongo_uri, settings.database_name)
        return cls(database, schema, settings)

    def _deadline(self):
        return pymongo.timeout(self.settings.operation_timeout)

    # ------------------------------------------------------------------
    # encoding
    # ------------------------------------------------------------------

    def _encode(self, value: Record) -> Dict[str, Any]:
        record_type = self.schema.record_type
        if isinstance(value, BaseModel):
            if record_type is not None and not isinstance(value, record_type):
                raise RecordTypeError(
                    f"inserted value is {type(value).__name__}, not {self.schema.record_name}"
                )
            return value.model_dump(by_alias=True, exclude_none=True)
        if isinstance(value, dict):
            return value
        raise RecordTypeError(
            f"inserted value is {type(value).__name__}, not {self.schema.record_name}"
        )

    def _decode(self, doc: Optional[Dict[str, Any]]) -> Optional[Record]:
        if doc is None or self.schema.record_type is None:
            return doc
        return self.schema.record_type.model_validate(doc)

    # ------------------------------------------------------------------
    # insert
    # ------------------------------------------------------------------

    def insert(self, value: Record) -> str:
        document = self._encode(value)
        with self._deadline():
            result = self.collection.insert_one(document)
        return inserted_id_to_str(result.inserted_id)

    def insert_many(self, values: List[Record]) -> List[str]:
        if not values:
            return []
        documents = [self._encode(value) for value in values]
        with self._deadline():
            result = self.collection.insert_many(documents)
        return [inserted_id_to_str(inserted_id) for inserted_id in result.inserted_ids]

    # ------------------------------------------------------------------
    # read
    # ------------------------------------------------------------------

    def find(self, id: str) -> Optional[Record]:
        return self.find_where({"_id": to_document_id(id)})

    def find_where(self, where: Dict[str, Any]) -> Optional[Record]:
        with self._deadline():
            return self._decode(self.collection.find_one(where))

    def query_where(self, where: Dict[str, Any]) -> List[Record]:
        with self._deadline():
            return [self._decode(doc) for doc in self.collection.find(where)]

    def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Record]:
        with self._deadline():
            return [self._decode(doc) for doc in self.collection.aggregate(pipeline)]

    def count(self, id: str) -> int:
        return self.count_where({"_id": to_document_id(id)})

    def count_where(self, where: Dict[str, Any]) -> int:
        with self._deadline():
            return self.collection.count_documents(where)

    def sum_where(self, match: Dict[str, Any], field: str) -> float:
        pipeline = [
            {"$match": match},
            {"$group": {"_id": None, "sum": {"$sum": f"${field}"}}},
        ]
        with self._deadline():
            results = [SumResult.model_validate(doc) for doc in self.collection.aggregate(pipeline)]
        if not results:
            return 0
        return results[0].sum

    def group_count(self, match: Dict[str, Any], field: str) -> List[GroupCount]:
        pipeline = [
            {"$match": match},
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
        ]
        with self._deadline():
            return [GroupCount.model_validate(doc) for doc in self.collection.aggregate(pipeline)]

    def exists(self, id: str) -> bool:
        return self.count(id) > 0

    def exists_where(self, where: Dict[str, Any]) -> bool:
        return self.count_where(where) > 0

    # ------------------------------------------------------------------
    # update / delete
    # ------------------------------------------------------------------

    def update_set(self, id: str, updater: Dict[str, Any]) -> int:
        return self.update(id, {"$set": updater})

    def update(self, id: str, updater: Dict[str, Any]) -> int:
        with self._deadline():
            result = self.collection.update_one({"_id": to_document_id(id)}, updater)
        return result.matched_count

    def update_where(self, where: Dict[str, Any], updater: Dict[str, Any]) -> int:
        with self._deadline():
            result = self.collection.update_many(where, updater)
        return result.matched_count

    def delete(self, id: str) -> int:
        return self.delete_where({"_id": to_document_id(id)}, many=False)

    def delete_where(self, where: Dict[str, Any], many: bool = True) -> int:
        with self._deadline():
            if many:
                result = self.collection.delete_many(where)
            else:
                result = self.collection.delete_one(where)
        return result.deleted_count

    def clear(self) -> int:
        """Delete every document, keeping the collection and its indexes"""
        return self.delete_where({})
