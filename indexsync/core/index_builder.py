"""
Local Index Builder
===================

Turns the parsed directives of a record schema into the list of index
models the collection should have.

- every field with single != 0 gets its own single-field index
- fields sharing a group name form one compound index, ordered by groupseq
- a compound index is unique when its group name starts with "unique"
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Tuple

from pymongo import IndexModel

from indexsync.core.canonical_key import canonical_key
from indexsync.core.directive_parser import IndexDirective, parse_directives

logger = logging.getLogger(__name__)

UNIQUE_GROUP_PREFIX = "unique"


def storage_field_name(storage_name: str) -> str:
    """Strip storage options: "email,omitempty" -> "email" """
    return storage_name.split(",", 1)[0]


@dataclass
class LocalIndex:
    """An index the record schema asks for"""
    keys: List[Tuple[str, int]]
    unique: bool = False
    group: str = ""

    @property
    def fields(self) -> List[str]:
        return [name for name, _ in self.keys]

    @property
    def canonical_key(self) -> str:
        return canonical_key(self.fields)

    @property
    def is_compound(self) -> bool:
        return bool(self.group)

    def to_index_model(self) -> IndexModel:
        if self.unique:
            return IndexModel(list(self.keys), unique=True)
        return IndexModel(list(self.keys))

    def describe(self) -> str:
        keys = ", ".join(f"{name}:{direction}" for name, direction in self.keys)
        label = f"group {self.group} " if self.group else ""
        suffix = " (UNIQUE)" if self.unique else ""
        return f"{label}[{keys}]{suffix}"


@dataclass
class _GroupBucket:
    unique: bool
    members: List[Tuple[int, int, str, int]] = field(default_factory=list)


def build_local_indexes(directives: Mapping[str, IndexDirective]) -> List[LocalIndex]:
    """
    Build the desired index set for one collection.

    Args:
        directives: storage field name -> parsed directive

    Returns:
        Single-field indexes followed by compound indexes
    """
    singles: List[LocalIndex] = []
    groups: Dict[str, _GroupBucket] = {}

    for position, (storage_name, directive) in enumerate(directives.items()):
        name = storage_field_name(storage_name)

        if directive.single != 0:
            singles.append(LocalIndex(keys=[(name, directive.single)], unique=directive.unique))

        if directive.group:
            bucket = groups.get(directive.group)
            if bucket is None:
                bucket = _GroupBucket(unique=directive.group.startswith(UNIQUE_GROUP_PREFIX))
                groups[directive.group] = bucket
            bucket.members.append((directive.group_seq, position, name, directive.group_direction))

    compounds = []
    for group, bucket in groups.items():
        members = sorted(bucket.members)
        compounds.append(LocalIndex(
            keys=[(name, direction) for _, _, name, direction in members],
            unique=bucket.unique,
            group=group,
        ))

    logger.debug(f"Built {len(singles)} single and {len(compounds)} compound local indexes")
    return singles + compounds


def build_local_indexes_from_raw(raw_directives: Mapping[str, str]) -> List[LocalIndex]:
    """Parse raw directive strings and build; only parse errors propagate"""
    return build_local_indexes(parse_directives(raw_directives))
