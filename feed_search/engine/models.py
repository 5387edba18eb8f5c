"""Immutable record and snapshot types produced by the feed loader."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Iterable, Mapping, Union

Primitive = Union[str, int, float, bool]


@dataclass(frozen=True, slots=True)
class Record:
    """One flattened catalogue entry."""

    id: str
    fields: Mapping[str, Primitive]

    def __post_init__(self) -> None:
        for name, value in self.fields.items():
            if not isinstance(value, (str, int, float, bool)):
                raise TypeError(f"Field {name!r} of record {self.id!r} is not a primitive value")
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def values_text(self) -> Iterable[str]:
        for value in self.fields.values():
            yield str(value)

    def first_value(self, names: Iterable[str]) -> str | None:
        """Return the first non-empty value among ``names``."""

        for name in names:
            value = self.fields.get(name)
            if value is not None and str(value).strip():
                return str(value)
        return None

    def as_lines(self) -> list[str]:
        return [f"{name}: {value}" for name, value in self.fields.items()]


@dataclass(frozen=True, slots=True)
class Snapshot:
    """A fully loaded, read-only generation of records."""

    records: tuple[Record, ...]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = ""
    total_entries: int = 0
    truncated: bool = False
    _index: Mapping[str, Record] = field(init=False, repr=False, compare=False)
    _haystacks: tuple[tuple[str, ...], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        records = tuple(self.records)
        index: dict[str, Record] = {}
        for record in records:
            if record.id in index:
                raise ValueError(f"Duplicate record id in snapshot: {record.id}")
            index[record.id] = record
        object.__setattr__(self, "records", records)
        object.__setattr__(self, "_index", MappingProxyType(index))
        # casefolded field values per record, in snapshot order
        object.__setattr__(
            self,
            "_haystacks",
            tuple(
                tuple(text.casefold() for text in record.values_text())
                for record in records
            ),
        )
        if not self.total_entries:
            object.__setattr__(self, "total_entries", len(records))

    def __len__(self) -> int:
        return len(self.records)

    def get(self, record_id: str) -> Record | None:
        return self._index.get(record_id)

    def matching(self, needle: str) -> Iterable[Record]:
        """Yield records having ``needle`` (already casefolded) in any field value."""

        for record, haystack in zip(self.records, self._haystacks):
            if any(needle in text for text in haystack):
                yield record


__all__ = ["Primitive", "Record", "Snapshot"]
