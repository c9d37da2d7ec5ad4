"""
Tests - Record Schema Descriptor
"""

from typing import Optional

import pytest
from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

from indexsync.core.index_errors import SchemaConventionError
from indexsync.db.schema import SchemaDescriptor, lower_camel


class UserProfile(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    id: Optional[ObjectId] = Field(default=None, alias="_id")
    email: str = Field(json_schema_extra={"index": "group=uniqueEmail,groupseq=1"})
    tenant: str = Field(json_schema_extra={"index": "group=uniqueEmail,groupseq=2"})
    created_at: int = Field(default=0, json_schema_extra={"index": "single=-1"})
    nickname: str = ""


class BadId(BaseModel):
    id: int = Field(alias="_id")


class NoId(BaseModel):
    name: str = Field(json_schema_extra={"index": "unique"})


class TestLowerCamel:

    @pytest.mark.parametrize("name, expected", [
        ("UserProfile", "userProfile"),
        ("User", "user"),
        ("HTTPServer", "httpServer"),
        ("ID", "id"),
        ("user_profile", "userProfile"),
        ("order", "order"),
    ])
    def test_lower_camel(self, name, expected):
        assert lower_camel(name) == expected


class TestBuiltDescriptor:

    def test_builder_collects_directives(self):
        schema = (
            SchemaDescriptor("Order")
            .field("_id,omitempty", id_type=str)
            .field("number", index="unique")
            .field("note")
        )
        assert schema.collection_name == "order"
        assert schema.index_directives() == {"number": "unique"}

    def test_explicit_collection_name(self):
        schema = SchemaDescriptor("Order", collection_name="orders_v2").field("_id")
        assert schema.collection_name == "orders_v2"

    def test_first_field_must_be_id(self):
        schema = SchemaDescriptor("Order").field("number", index="unique").field("_id")
        with pytest.raises(SchemaConventionError, match="must be stored as '_id'"):
            schema.index_directives()

    def test_no_fields(self):
        with pytest.raises(SchemaConventionError, match="has no fields"):
            SchemaDescriptor("Empty").validate()

    def test_id_type_checked(self):
        schema = SchemaDescriptor("Order").field("_id", id_type=int)
        with pytest.raises(SchemaConventionError, match="must be ObjectId or str"):
            schema.validate()


class TestModelDescriptor:

    def test_from_pydantic_model(self):
        schema = SchemaDescriptor.from_model(UserProfile)
        assert schema.collection_name == "userProfile"
        assert schema.record_type is UserProfile
        assert [f.storage_name for f in schema.fields] == ["_id", "email", "tenant", "created_at", "nickname"]
        assert schema.fields[0].id_type is ObjectId
        assert schema.index_directives() == {
            "email": "group=uniqueEmail,groupseq=1",
            "tenant": "group=uniqueEmail,groupseq=2",
            "created_at": "single=-1",
        }

    def test_bad_id_type(self):
        with pytest.raises(SchemaConventionError):
            SchemaDescriptor.from_model(BadId).validate()

    def test_missing_id(self):
        with pytest.raises(SchemaConventionError):
            SchemaDescriptor.from_model(NoId).index_directives()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
