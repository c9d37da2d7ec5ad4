"""
Remote index catalog.

Reads the live collection's index catalog through the collection admin and
decodes each entry into a RemoteIndex. The implicit primary key index is
never part of the comparison.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Union

from indexsync.core.canonical_key import canonical_key
from indexsync.core.index_errors import StoreIOError

logger = logging.getLogger(__name__)

PRIMARY_KEY_INDEX_NAME = "_id_"

Direction = Union[int, float, str]


@dataclass
class RemoteIndex:
    """An index as reported by the store"""
    name: str
    key: Dict[str, Direction] = field(default_factory=dict)
    unique: bool = False

    @property
    def fields(self) -> List[str]:
        return list(self.key.keys())

    @property
    def canonical_key(self) -> str:
        return canonical_key(self.fields)

    def describe(self) -> str:
        keys = ", ".join(f"{name}:{direction}" for name, direction in self.key.items())
        suffix = " (UNIQUE)" if self.unique else ""
        return f"{self.name} [{keys}]{suffix}"

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "RemoteIndex":
        """Decode one listIndexes entry; raises KeyError/TypeError on a malformed entry"""
        return cls(
            name=doc["name"],
            key=dict(doc["key"].items()),
            unique=bool(doc.get("unique", False)),
        )


def list_remote_indexes(admin, collection_name: str) -> List[RemoteIndex]:
    """
    List the secondary indexes of a collection.

    Args:
        admin: Collection admin (see indexsync.db.collection_admin)
        collection_name: Collection to inspect

    Returns:
        Decoded indexes, "_id_" excluded

    Raises:
        StoreIOError: listing failed or an entry could not be decoded
    """
    remote = []
    for doc in admin.list_indexes(collection_name):
        try:
            index = RemoteIndex.from_document(doc)
        except (KeyError, TypeError, AttributeError) as e:
            raise StoreIOError(collection_name, "decode index catalog", f"{doc!r}") from e

        if index.name == PRIMARY_KEY_INDEX_NAME:
            continue
        remote.append(index)

    logger.debug(f"{collection_name}: {len(remote)} remote indexes")
    return remote
