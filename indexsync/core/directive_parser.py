"""
Index Directive Parser
======================

Parses the compact per-field index directive into an IndexDirective.

Grammar (comma separated, parsed as a URL query string):
    groupseq=<int>      position/direction of the field inside its group
    unique | unique=true
    group=<name>        compound index bucket (prefix "unique" => unique group)
    single=<int>        standalone index direction (-1 => descending)

Examples:
    "unique"                           -> unique ascending single index
    "group=uniqueEmail,groupseq=2"     -> second field of a unique compound
    "single=-1"                        -> descending single index
"""

import re
from dataclasses import dataclass
from typing import Dict, Mapping
from urllib.parse import parse_qsl, quote

from indexsync.core.index_errors import DirectiveParseError

SUPPORTED_KEYS = ("groupseq", "unique", "group", "single")

_INTEGER = re.compile(r"[+-]?[0-9]+")
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


@dataclass(frozen=True)
class IndexDirective:
    """Structured form of one field's directive"""
    group_seq: int = 1
    unique: bool = False
    group: str = ""
    single: int = 1

    @property
    def group_direction(self) -> int:
        """Direction of the field inside its compound index"""
        return -1 if self.group_seq == -1 else 1

    def to_directive(self) -> str:
        """Canonical directive string; parses back to an equal IndexDirective"""
        tokens = []
        if self.unique:
            tokens.append("unique")
        if self.group_seq != 1:
            tokens.append(f"groupseq={self.group_seq}")
        if self.group:
            tokens.append(f"group={quote(self.group, safe='')}")
            if self.single != 0:
                tokens.append(f"single={self.single}")
        elif self.single == -1:
            tokens.append("single=-1")
        return ",".join(tokens)


def _parse_int(field: str, key: str, value: str, raw: str) -> int:
    if not _INTEGER.fullmatch(value):
        raise DirectiveParseError(field, raw, f"field '{field}', invalid {key} format:{raw}")
    return int(value)


def parse_directive(field: str, raw: str) -> IndexDirective:
    """
    Parse one raw directive string.

    Args:
        field: Storage name of the field (used in error messages)
        raw: Directive string, e.g. "group=uniqueEmail,groupseq=1"

    Returns:
        IndexDirective with defaults resolved

    Raises:
        DirectiveParseError: malformed token, unsupported key, bad integer
    """
    query = raw.replace(",", "&")
    if ";" in query or _BAD_ESCAPE.search(query):
        raise DirectiveParseError(field, raw, f"field '{field}', invalid value format:{raw}")

    try:
        pairs = parse_qsl(query, keep_blank_values=True, errors="strict")
    except UnicodeDecodeError as e:
        raise DirectiveParseError(field, raw, f"field '{field}', invalid value format:{raw}") from e

    values: Dict[str, str] = {}
    for key, value in pairs:
        if key not in SUPPORTED_KEYS:
            raise DirectiveParseError(field, raw, f"field '{field}', unsupported key:{key}")
        values.setdefault(key, value)

    group_seq = 1
    unique = False
    group = ""
    single = 0

    if values.get("groupseq"):
        group_seq = _parse_int(field, "groupseq", values["groupseq"], raw)
    if "unique" in values:
        unique = values["unique"] in ("", "true")
    if "group" in values:
        group = values["group"]
    if values.get("single"):
        single = -1 if _parse_int(field, "single", values["single"], raw) == -1 else 1

    # an ungrouped field is always a standalone index
    if not group:
        single = 1 if single == 0 else single

    return IndexDirective(group_seq=group_seq, unique=unique, group=group, single=single)


def parse_directives(raw_directives: Mapping[str, str]) -> Dict[str, IndexDirective]:
    """Parse a whole field -> raw directive mapping, failing on the first bad field"""
    return {field: parse_directive(field, raw) for field, raw in raw_directives.items()}
