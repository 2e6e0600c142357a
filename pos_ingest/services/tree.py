"""Generic parsed-tree model shared by every normalizer.

A parsed document is a tree of ``Node`` values: a string, a list of nodes, or
a mapping from lower-cased element/attribute name to node. XML attributes are
merged into their element's mapping, so ``<cashier sysid="7">Ann</cashier>``
becomes ``{'sysid': '7', '_': 'Ann'}`` while ``<trlplu/>`` becomes ``''``.
Repeated child elements collapse into a list. Namespace prefixes are kept as
written (``pd:prpricelvlpd``), which lets normalizers try namespaced and
legacy names side by side.
"""

from __future__ import annotations

import csv
import xml.etree.ElementTree as ET
from io import BytesIO, StringIO
from typing import Union

from pos_ingest.exceptions import FileStructureError

Node = Union[str, list['Node'], dict[str, 'Node']]

TEXT_KEY = '_'

# Deepest element nesting accepted; bounds the recursive tree walks.
MAX_XML_DEPTH = 200


def _qualified(tag: str, prefixes: dict[str, str]) -> str:
    if tag.startswith('{'):
        uri, local = tag[1:].split('}', 1)
        prefix = prefixes.get(uri, '')
        tag = f'{prefix}:{local}' if prefix else local
    return tag.lower()


def _add_child(mapping: dict[str, Node], key: str, value: Node) -> None:
    if key not in mapping:
        mapping[key] = value
        return
    existing = mapping[key]
    if isinstance(existing, list):
        existing.append(value)
    else:
        mapping[key] = [existing, value]


def _convert(element: ET.Element, prefixes: dict[str, str]) -> Node:
    mapping: dict[str, Node] = {}
    for name, value in element.attrib.items():
        _add_child(mapping, _qualified(name, prefixes), value)
    for child in element:
        _add_child(mapping, _qualified(child.tag, prefixes), _convert(child, prefixes))

    content = (element.text or '').strip()
    if not mapping:
        return content
    if content:
        mapping[TEXT_KEY] = content
    return mapping


def parse_xml(data: bytes) -> dict[str, Node]:
    """Parse XML bytes into ``{root_name: node}``."""
    prefixes: dict[str, str] = {}
    root: ET.Element | None = None
    depth = 0
    try:
        for event, item in ET.iterparse(BytesIO(data), events=('start-ns', 'start', 'end')):
            if event == 'start-ns':
                prefix, uri = item
                prefixes.setdefault(uri, prefix)
            elif event == 'end':
                depth -= 1
            else:
                depth += 1
                if depth > MAX_XML_DEPTH:
                    raise FileStructureError(f'XML nesting too deep (more than {MAX_XML_DEPTH} levels)')
                if root is None:
                    root = item
    except ET.ParseError as exc:
        raise FileStructureError(f'Malformed XML: {exc}') from exc

    if root is None:
        raise FileStructureError('XML document has no root element')
    return {_qualified(root.tag, prefixes): _convert(root, prefixes)}


def parse_csv(data: bytes) -> list[dict[str, str]]:
    """Parse CSV bytes with a header row into one mapping per data row."""
    try:
        content = data.decode('utf-8-sig')
    except UnicodeDecodeError as exc:
        raise FileStructureError(f'CSV is not valid UTF-8: {exc}') from exc

    try:
        reader = csv.DictReader(StringIO(content))
        if reader.fieldnames is None:
            raise FileStructureError('CSV file has no header row')
        rows: list[dict[str, str]] = []
        for raw in reader:
            row = {}
            for key, value in raw.items():
                if key is None:
                    continue
                row[key.strip()] = (value or '').strip()
            rows.append(row)
    except csv.Error as exc:
        raise FileStructureError(f'Malformed CSV: {exc}') from exc
    return rows


def as_list(node: Node | None) -> list[Node]:
    if node is None:
        return []
    if isinstance(node, list):
        return node
    return [node]


def text(node: Node | None) -> str | None:
    """Return the stripped text of a scalar or of a mapping's ``_`` entry."""
    if node is None:
        return None
    if isinstance(node, str):
        return node.strip()
    if isinstance(node, list):
        return text(node[0]) if node else None
    return text(node.get(TEXT_KEY))


def get_path(node: Node | None, *keys: str) -> Node | None:
    current = node
    for key in keys:
        if isinstance(current, list):
            current = current[0] if current else None
        if not isinstance(current, dict):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def has_field(node: Node | None, *keys: str) -> bool:
    """Presence predicate: true when the path exists, whatever its content."""
    return get_path(node, *keys) is not None
