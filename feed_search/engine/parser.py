"""XML parsing and the flattening contract that turns entries into records.

Field names are composed as follows (``path`` is the dotted position below the
entry element, empty for the entry itself):

* child element ``tag``      -> ``path.tag`` (``tag`` at entry level)
* repeated children          -> ``path.tag[0]``, ``path.tag[1]``, ...
* attribute ``name``         -> ``path.@name`` (``@name`` at entry level)
* element text               -> ``path`` (``#text`` for the entry element);
  text after a child element is joined to its parent's text

Record ids come from the first configured identifying field, falling back to
the entry's structural path from the document root (``catalog/product[3]``).
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections import Counter
from dataclasses import dataclass
from typing import Iterator

import structlog

from ..config import FlattenConfig
from .errors import ParseError, ShapeError
from .models import Primitive, Record

ENTRY_TEXT_FIELD = "#text"


def local_name(tag: object) -> str:
    """Return ``tag`` without its ``{namespace}`` prefix."""

    text = str(tag)
    if text.startswith("{"):
        return text.rsplit("}", 1)[-1]
    return text


@dataclass(slots=True)
class FeedEntry:
    """An entry element located in the raw document together with its position."""

    element: ET.Element
    path: str
    ordinal: int


class FeedParser:
    """Parse feed payloads and flatten catalogue entries according to ``FlattenConfig``."""

    def __init__(self, config: FlattenConfig, logger: structlog.BoundLogger | None = None) -> None:
        self.config = config
        self.logger = logger or structlog.get_logger("feed_search.parser")

    def parse(self, payload: bytes | str) -> ET.Element:
        if not payload or not payload.strip():
            raise ParseError("Feed body is empty")
        try:
            root = ET.fromstring(payload)
        except ET.ParseError as exc:
            raise ParseError(f"Malformed feed document: {exc}") from exc
        for element in root.iter():
            if isinstance(element.tag, str):
                element.tag = local_name(element.tag)
            if element.attrib:
                element.attrib = self._local_attributes(element)
        return root

    @staticmethod
    def _local_attributes(element: ET.Element) -> dict[str, str]:
        attributes: dict[str, str] = {}
        for key, value in element.attrib.items():
            name = local_name(key)
            if name in attributes:
                raise ShapeError(f"Attributes {name!r} of <{element.tag}> differ only by namespace")
            attributes[name] = value
        return attributes

    def locate_entries(self, root: ET.Element) -> list[FeedEntry]:
        entry_tag = self.config.entry_tag
        entries: list[FeedEntry] = []
        for entry in self._walk(root, "", 0, repeated=False, inside_entry=False):
            entry.ordinal = len(entries)
            entries.append(entry)
        if not entries:
            raise ShapeError(f"No <{entry_tag}> elements found in feed (root <{root.tag}>)")
        return entries

    def _walk(
        self,
        element: ET.Element,
        parent_path: str,
        index: int,
        *,
        repeated: bool,
        inside_entry: bool,
    ) -> Iterator[FeedEntry]:
        is_entry = element.tag == self.config.entry_tag
        # entry steps are always indexed, other steps only when repeated
        step = f"{element.tag}[{index}]" if repeated or is_entry else element.tag
        path = f"{parent_path}/{step}" if parent_path else step
        if is_entry:
            if inside_entry:
                raise ShapeError(f"Nested <{element.tag}> entry at {path}")
            yield FeedEntry(element=element, path=path, ordinal=0)
        children = self._element_children(element)
        counts = Counter(child.tag for child in children)
        positions: Counter[str] = Counter()
        for child in children:
            child_index = positions[child.tag]
            positions[child.tag] += 1
            yield from self._walk(
                child,
                path,
                child_index,
                repeated=counts[child.tag] > 1,
                inside_entry=inside_entry or is_entry,
            )

    @staticmethod
    def _element_children(element: ET.Element) -> list[ET.Element]:
        # comments and processing instructions carry non-string tags
        return [child for child in element if isinstance(child.tag, str)]

    @staticmethod
    def _own_text(element: ET.Element) -> str:
        """Text directly inside ``element``, including text that follows its children."""

        parts = [element.text, *(child.tail for child in element)]
        return " ".join(part.strip() for part in parts if part and part.strip())

    def flatten_entry(self, entry: ET.Element) -> dict[str, Primitive]:
        fields: dict[str, Primitive] = {}
        self._flatten_node(entry, "", fields)
        return fields

    def _flatten_node(self, element: ET.Element, path: str, fields: dict[str, Primitive]) -> None:
        children = self._element_children(element)
        text = self._own_text(element)
        if path:
            if text or not (children or element.attrib):
                self._put(fields, path, text)
        elif text:
            self._put(fields, ENTRY_TEXT_FIELD, text)

        for name, value in element.attrib.items():
            self._put(fields, self._join(path, f"@{name}"), value.strip())

        counts = Counter(child.tag for child in children)
        positions: Counter[str] = Counter()
        for child in children:
            segment = child.tag
            if counts[child.tag] > 1:
                segment = f"{child.tag}[{positions[child.tag]}]"
                positions[child.tag] += 1
            self._flatten_node(child, self._join(path, segment), fields)

    @staticmethod
    def _join(path: str, segment: str) -> str:
        return f"{path}.{segment}" if path else segment

    @staticmethod
    def _put(fields: dict[str, Primitive], name: str, value: Primitive) -> None:
        if name in fields:
            raise ShapeError(f"Ambiguous field name {name!r} produced twice within one entry")
        fields[name] = value

    def build_records(self, entries: list[FeedEntry]) -> list[Record]:
        records: list[Record] = []
        seen: set[str] = set()
        for entry in entries:
            fields = self.flatten_entry(entry.element)
            record_id = self._natural_id(fields)
            if record_id is None or record_id in seen:
                if record_id is not None:
                    self.logger.warning("duplicate_natural_id", record_id=record_id, path=entry.path)
                record_id = entry.path
                if record_id in seen:
                    raise ShapeError(f"Synthesized id {record_id!r} collides with an existing id")
            seen.add(record_id)
            records.append(Record(id=record_id, fields=fields))
        return records

    def _natural_id(self, fields: dict[str, Primitive]) -> str | None:
        for name in self.config.id_fields:
            value = fields.get(name)
            if value is not None and str(value).strip():
                return str(value).strip()
        return None


__all__ = ["ENTRY_TEXT_FIELD", "FeedEntry", "FeedParser", "local_name"]
