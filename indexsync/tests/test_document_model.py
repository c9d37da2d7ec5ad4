"""
Tests - Document Model (CRUD facade)
====================================

pymongo collection calls are mocked; the tests pin what each operation
forwards and how ids and records are converted.
"""

from typing import Optional
from unittest.mock import MagicMock, patch

import pytest
from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

from indexsync.config.settings import IndexSyncSettings
from indexsync.core.index_errors import (
    InvalidIdentifierError,
    PendingCreationError,
    RecordTypeError,
    SchemaConventionError,
)
from indexsync.db.document_model import (
    DocumentModel,
    inserted_id_to_str,
    nullable_string,
    to_document_id,
)
from indexsync.db.schema import SchemaDescriptor

OID = "507f1f77bcf86cd799439011"


class Account(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    id: Optional[ObjectId] = Field(default=None, alias="_id")
    email: str = Field(json_schema_extra={"index": "unique"})
    balance: float = 0


class Other(BaseModel):
    name: str = ""


@pytest.fixture
def database():
    return MagicMock()


@pytest.fixture
def collection(database):
    return database["account"]


@pytest.fixture
def model(database):
    return DocumentModel(database, SchemaDescriptor.from_model(Account))


# ============================================================================
# Helpers
# ============================================================================

class TestIdHelpers:

    def test_hex_becomes_object_id(self):
        assert to_document_id(OID) == ObjectId(OID)

    def test_plain_string_kept(self):
        assert to_document_id("user-42") == "user-42"

    def test_inserted_id(self):
        assert inserted_id_to_str(ObjectId(OID)) == OID
        assert inserted_id_to_str("user-42") == "user-42"

    def test_unexpected_inserted_id_is_typed_error(self):
        with pytest.raises(InvalidIdentifierError, match="int"):
            inserted_id_to_str(42)

    def test_nullable_string(self):
        assert nullable_string("x") == "x"
        assert nullable_string("") == {"$exists": False}


# ============================================================================
# Opening a model
# ============================================================================

class TestOpen:

    def test_no_reconciliation_without_auto_check(self, database):
        admin = MagicMock()
        model = DocumentModel(database, SchemaDescriptor.from_model(Account), admin=admin)
        assert model.collection_name == "account"
        assert model.created is False
        admin.exists_collection.assert_not_called()

    def test_auto_check_reconciles(self, database):
        admin = MagicMock()
        admin.exists_collection.return_value = False
        settings = IndexSyncSettings(auto_check=True, auto_update=True)
        model = DocumentModel(database, SchemaDescriptor.from_model(Account), settings, admin=admin)
        assert model.created is True
        admin.create_indexes.assert_called_once()

    def test_auto_check_without_auto_update_fails_initialization(self, database):
        admin = MagicMock()
        admin.exists_collection.return_value = False
        settings = IndexSyncSettings(auto_check=True)
        with pytest.raises(PendingCreationError):
            DocumentModel(database, SchemaDescriptor.from_model(Account), settings, admin=admin)

    def test_schema_convention_checked(self, database):
        schema = SchemaDescriptor("Broken").field("name")
        with pytest.raises(SchemaConventionError):
            DocumentModel(database, schema)

    def test_open_uses_cached_database(self):
        settings = IndexSyncSettings(mongo_uri="mongodb://db:27017/app")
        with patch("indexsync.db.document_model.take_database") as take_database:
            take_database.return_value = (MagicMock(), MagicMock())
            DocumentModel.open(settings, SchemaDescriptor.from_model(Account))
        take_database.assert_called_once_with("mongodb://db:27017/app", "indexsync")


# ============================================================================
# CRUD
# ============================================================================

class TestInsert:

    def test_insert_record(self, model, collection):
        collection.insert_one.return_value.inserted_id = ObjectId(OID)
        assert model.insert(Account(email="a@example.com")) == OID
        collection.insert_one.assert_called_once_with({"email": "a@example.com", "balance": 0})

    def test_insert_dict(self, model, collection):
        collection.insert_one.return_value.inserted_id = "custom"
        assert model.insert({"_id": "custom", "email": "b@example.com"}) == "custom"

    def test_insert_wrong_record_type(self, model, collection):
        with pytest.raises(RecordTypeError, match="Other"):
            model.insert(Other())
        collection.insert_one.assert_not_called()

    def test_insert_many(self, model, collection):
        collection.insert_many.return_value.inserted_ids = [ObjectId(OID), "x"]
        assert model.insert_many([{"email": "a"}, {"email": "b"}]) == [OID, "x"]

    def test_insert_many_empty(self, model, collection):
        assert model.insert_many([]) == []
        collection.insert_many.assert_not_called()


class TestRead:

    def test_find_decodes_record(self, model, collection):
        collection.find_one.return_value = {"_id": ObjectId(OID), "email": "a@example.com", "balance": 3.5}
        account = model.find(OID)
        collection.find_one.assert_called_once_with({"_id": ObjectId(OID)})
        assert isinstance(account, Account)
        assert account.id == ObjectId(OID)
        assert account.balance == 3.5

    def test_find_missing(self, model, collection):
        collection.find_one.return_value = None
        assert model.find("nope") is None

    def test_query_where(self, model, collection):
        collection.find.return_value = iter([{"email": "a"}, {"email": "b"}])
        accounts = model.query_where({"balance": {"$gt": 0}})
        assert [account.email for account in accounts] == ["a", "b"]

    def test_raw_documents_without_record_type(self, database):
        schema = SchemaDescriptor("Event").field("_id", id_type=str)
        database["event"].find_one.return_value = {"_id": "e1"}
        assert DocumentModel(database, schema).find("e1") == {"_id": "e1"}

    def test_count_and_exists(self, model, collection):
        collection.count_documents.return_value = 1
        assert model.count("user-1") == 1
        assert model.exists("user-1") is True
        collection.count_documents.assert_called_with({"_id": "user-1"})

    def test_exists_where_false(self, model, collection):
        collection.count_documents.return_value = 0
        assert model.exists_where({"email": "x"}) is False

    def test_sum_where(self, model, collection):
        collection.aggregate.return_value = iter([{"_id": None, "sum": 12.5}])
        assert model.sum_where({"email": "a"}, "balance") == 12.5
        pipeline = collection.aggregate.call_args.args[0]
        assert pipeline[1]["$group"]["sum"] == {"$sum": "$balance"}

    def test_sum_where_no_documents(self, model, collection):
        collection.aggregate.return_value = iter([])
        assert model.sum_where({}, "balance") == 0

    def test_group_count(self, model, collection):
        collection.aggregate.return_value = iter([{"_id": "gold", "count": 2}])
        groups = model.group_count({}, "tier")
        assert groups[0].id == "gold"
        assert groups[0].count == 2


class TestWrite:

    def test_update_set(self, model, collection):
        collection.update_one.return_value.matched_count = 1
        assert model.update_set(OID, {"balance": 1}) == 1
        collection.update_one.assert_called_once_with({"_id": ObjectId(OID)}, {"$set": {"balance": 1}})

    def test_update_where(self, model, collection):
        collection.update_many.return_value.matched_count = 4
        assert model.update_where({}, {"$inc": {"balance": 1}}) == 4

    def test_delete(self, model, collection):
        collection.delete_one.return_value.deleted_count = 1
        assert model.delete("user-1") == 1
        collection.delete_one.assert_called_once_with({"_id": "user-1"})

    def test_clear(self, model, collection):
        collection.delete_many.return_value.deleted_count = 7
        assert model.clear() == 7
        collection.delete_many.assert_called_once_with({})
