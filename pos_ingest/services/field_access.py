"""Ordered field accessors and defensive value coercion.

Every logical field is read through a ``FieldChain``: an explicit list of
paths tried in order, the first non-empty one wins. Coercion helpers never
raise; a value that cannot be parsed is logged and stored as null.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from pos_ingest.services.tree import Node, get_path, text

logger = logging.getLogger(__name__)

FALSE_LITERALS = frozenset({'false', '0', 'no', 'n'})

DATETIME_FORMATS = (
    '%m/%d/%Y %H:%M:%S',
    '%m/%d/%Y %H:%M',
    '%m/%d/%Y',
    '%Y-%m-%d %H:%M:%S',
    '%Y%m%d%H%M%S',
)

NON_DIGIT_RE = re.compile(r'\D')


@dataclass(frozen=True)
class FieldChain:
    name: str
    paths: tuple[tuple[str, ...], ...]

    def resolve(self, node: Node | None) -> str | None:
        for path in self.paths:
            value = text(get_path(node, *path))
            if value:
                return value
        return None

    def resolve_node(self, node: Node | None) -> Node | None:
        for path in self.paths:
            value = get_path(node, *path)
            if value is not None:
                return value
        return None


def chain(name: str, *paths: str) -> FieldChain:
    """Build a chain from dotted paths, e.g. ``chain('posnum', 'posnum', 'trticknum.posnum')``."""
    return FieldChain(name=name, paths=tuple(tuple(path.split('.')) for path in paths))


def _warn(field: str, value: str, kind: str) -> None:
    logger.warning('Could not parse %s=%r as %s; storing null', field, value, kind)


def to_int(value: str | None, *, field: str = 'value') -> int | None:
    if value is None or value.strip() == '':
        return None
    try:
        number = Decimal(value.strip())
        if not number.is_finite() or number != number.to_integral_value():
            raise InvalidOperation(value)
        return int(number)
    except (InvalidOperation, ValueError):
        _warn(field, value, 'integer')
        return None


def to_decimal(value: str | None, *, places: int = 2, field: str = 'value') -> Decimal | None:
    if value is None or value.strip() == '':
        return None
    try:
        number = Decimal(value.strip())
    except InvalidOperation:
        _warn(field, value, 'decimal')
        return None
    if not number.is_finite():
        _warn(field, value, 'decimal')
        return None
    return number.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def to_price(value: str | None, *, field: str = 'price') -> Decimal | None:
    if value is None:
        return None
    return to_decimal(value.replace('$', '').replace(',', ''), places=2, field=field)


def to_upc(value: str | None, *, field: str = 'upc') -> int | None:
    """Strip everything but digits and drop leading zeros; non-positive codes are null."""
    if value is None or value.strip() == '':
        return None
    digits = NON_DIGIT_RE.sub('', value)
    if not digits:
        _warn(field, value, 'UPC')
        return None
    number = int(digits)
    return number if number > 0 else None


def to_datetime(value: str | None, *, field: str = 'datetime') -> datetime | None:
    if value is None or value.strip() == '':
        return None
    raw = value.strip()
    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(raw.replace('Z', '+00:00').replace('z', '+00:00'))
    except ValueError:
        for fmt in DATETIME_FORMATS:
            try:
                parsed = datetime.strptime(raw, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        _warn(field, value, 'datetime')
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def flag_present(node: Node | None, *keys: str) -> bool:
    """Presence-as-boolean; an explicit false literal counts as absent."""
    value = get_path(node, *keys)
    if value is None:
        return False
    if isinstance(value, str) and value.strip().lower() in FALSE_LITERALS:
        return False
    return True
