"""
Canonical index key.

Local and remote indexes are matched on the sorted set of their field
names. Field order and direction are NOT part of the key, so two compound
indexes over the same fields in different orders compare equal.

Names are joined with a bare "_", so a field set containing "a_b" and the
set {"a", "b"} share the key "a_b_".
"""

from typing import Iterable

KEY_SEPARATOR = "_"


def canonical_key(field_names: Iterable[str]) -> str:
    """
    Deterministic key for an index's field set.

    >>> canonical_key(["b", "a"])
    'a_b_'
    """
    return "".join(f"{name}{KEY_SEPARATOR}" for name in sorted(field_names))
