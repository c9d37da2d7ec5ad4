"""
Record Schema Descriptor
========================

Explicit description of a record type: ordered storage fields and their
index directives. The first field must be the identifier, stored as "_id"
and typed str or ObjectId.

Built by hand:
    schema = (
        SchemaDescriptor("UserProfile")
        .field("_id,omitempty", id_type=ObjectId)
        .field("email", index="unique")
        .field("created_at", index="single=-1")
    )

or from a pydantic model:
    class UserProfile(BaseModel):
        model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)
        id: Optional[ObjectId] = Field(default=None, alias="_id")
        email: str = Field(json_schema_extra={"index": "unique"})

    schema = SchemaDescriptor.from_model(UserProfile)
"""

import re
import types
import typing
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

from bson import ObjectId
from pydantic import BaseModel

from indexsync.core.index_builder import storage_field_name
from indexsync.core.index_errors import SchemaConventionError

ID_FIELD = "_id"
ID_TYPES = (str, ObjectId)
INDEX_EXTRA_KEY = "index"


def lower_camel(name: str) -> str:
    """UserProfile -> userProfile, HTTPServer -> httpServer, user_profile -> userProfile"""
    parts = [part for part in re.split(r"[_\-\s]+", name) if part]
    if not parts:
        return name

    head = parts[0]
    upper_run = len(head) - len(head.lstrip("ABCDEFGHIJKLMNOPQRSTUVWXYZ"))
    if upper_run == len(head):
        head = head.lower()
    elif upper_run > 1:
        head = head[:upper_run - 1].lower() + head[upper_run - 1:]
    else:
        head = head[:1].lower() + head[1:]

    return head + "".join(part[:1].upper() + part[1:] for part in parts[1:])


def _unwrap_optional(annotation: Any) -> Any:
    if typing.get_origin(annotation) in (typing.Union, getattr(types, "UnionType", None)):
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


@dataclass
class SchemaField:
    storage_name: str
    index: Optional[str] = None
    id_type: Optional[Any] = None

    @property
    def name(self) -> str:
        return storage_field_name(self.storage_name)


class SchemaDescriptor:
    """Ordered field list and index directives for one record type"""

    def __init__(
        self,
        record_name: str,
        collection_name: Optional[str] = None,
        record_type: Optional[Type[BaseModel]] = None,
    ):
        self.record_name = record_name
        self.collection_name = collection_name or lower_camel(record_name)
        self.record_type = record_type
        self.fields: List[SchemaField] = []

    def field(self, storage_name: str, index: Optional[str] = None, id_type: Optional[Any] = None) -> "SchemaDescriptor":
        self.fields.append(SchemaField(storage_name, index=index, id_type=id_type))
        return self

    @classmethod
    def from_model(cls, model: Type[BaseModel], collection_name: Optional[str] = None) -> "SchemaDescriptor":
        """Read aliases and json_schema_extra={"index": ...} from a pydantic model"""
        schema = cls(model.__name__, collection_name=collection_name, record_type=model)
        for name, info in model.model_fields.items():
            extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
            schema.field(
                info.alias or name,
                index=extra.get(INDEX_EXTRA_KEY),
                id_type=None if schema.fields else _unwrap_optional(info.annotation),
            )
        return schema

    def validate(self) -> "SchemaDescriptor":
        """
        Check the identifier convention.

        Raises:
            SchemaConventionError: no fields, first field not "_id", or bad id type
        """
        if not self.fields:
            raise SchemaConventionError(f"{self.record_name} has no fields")

        id_field = self.fields[0]
        if id_field.name != ID_FIELD:
            raise SchemaConventionError(
                f"{self.record_name}.{id_field.storage_name} must be stored as '{ID_FIELD}'"
            )
        if id_field.id_type is not None and id_field.id_type not in ID_TYPES:
            raise SchemaConventionError(
                f"{self.record_name}.{id_field.storage_name} must be ObjectId or str, "
                f"got {id_field.id_type!r}"
            )
        return self

    def index_directives(self) -> Dict[str, str]:
        """storage field name -> raw directive, for fields that declare one"""
        self.validate()
        return {f.storage_name: f.index for f in self.fields if f.index is not None}

    def __repr__(self) -> str:
        return f"SchemaDescriptor({self.record_name!r}, collection={self.collection_name!r})"
