"""
RecordIdentifierSet: the ordered, unique record ids a query produced.
"""

from bisect import bisect_left
from typing import Iterable, Iterator


class RecordIdentifierSet:
    """
    Immutable ascending sequence of unique, positive bibliographic record ids.

    Identifiers <= 0 denote deleted or placeholder bibliographic rows and are
    dropped on construction.
    """

    __slots__ = ("_ids",)

    def __init__(self, ids: Iterable[int] = ()):
        self._ids: tuple[int, ...] = tuple(sorted({int(i) for i in ids if int(i) > 0}))

    @classmethod
    def from_rows(cls, rows: Iterable[dict], column: str = "id") -> "RecordIdentifierSet":
        """Build a set from dict rows returned by a query."""
        return cls(row[column] for row in rows if row[column] is not None)

    def __iter__(self) -> Iterator[int]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, record_id: object) -> bool:
        if not isinstance(record_id, int):
            return False
        pos = bisect_left(self._ids, record_id)
        return pos < len(self._ids) and self._ids[pos] == record_id

    def __bool__(self) -> bool:
        return bool(self._ids)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RecordIdentifierSet):
            return self._ids == other._ids
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._ids)

    def __repr__(self) -> str:
        return f"RecordIdentifierSet({list(self._ids)!r})"

    def isdisjoint(self, other: Iterable[int]) -> bool:
        return set(self._ids).isdisjoint(other)

    def as_list(self) -> list[int]:
        return list(self._ids)
