"""Low-precision fallback for record kinds without a dedicated normalizer.

The whole tree is visited and every key is matched, case-insensitively and
by substring, against the keyword groups in ``MATCHERS``. A matching node
seeds one coarse write for that entity. Keys such as
``department_description`` match the department group too: for unknown
files recall is preferred over precision, so none of the strict rules of
the journal, fuel or summary normalizers apply here.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from functools import partial

from sqlalchemy.orm import Session

from pos_ingest.services.field_access import chain
from pos_ingest.services.plans import PlanContext, WritePlan
from pos_ingest.services.reference_service import (
    resolve_department,
    resolve_product,
    resolve_promotion_program,
    resolve_rebate_program,
    resolve_store,
)
from pos_ingest.services.tree import Node, text

logger = logging.getLogger(__name__)

STORE_ID = chain('store_id', 'id', 'storeid', 'store_id')
DEPARTMENT_ID = chain('department_id', 'id', 'departmentid', 'department_id')
DEPARTMENT_NAME = chain('department_name', 'name', 'department_name')
DEPARTMENT_TYPE = chain('department_type', 'type', 'department_type')
PRODUCT_ID = chain('product_id', 'id', 'upc', 'upc_id')
PROMOTION_ID = chain('promotion_id', 'id', 'promotionid', 'promotion_id')
REBATE_ID = chain('rebate_id', 'id', 'rebateid', 'rebate_id')
NAME = chain('name', 'name')

DEFAULT_DEPARTMENT_TYPE = 'norm'


@dataclass(frozen=True)
class GenericMatch:
    entity: str
    key_path: str
    value: Node


def _seed_id(value: Node, id_chain) -> str | None:
    """A scalar seeds its own id; a mapping offers its ``id``-style keys."""
    if isinstance(value, dict):
        return id_chain.resolve(value)
    if isinstance(value, str):
        return value.strip() or None
    return None


def _numeric_id(value: Node, id_chain) -> int | None:
    seed = _seed_id(value, id_chain)
    if seed is None or not seed.isdigit():
        return None
    number = int(seed)
    return number if number > 0 else None


def _mapping_text(value: Node, field_chain) -> str | None:
    return field_chain.resolve(value) if isinstance(value, dict) else None


def apply_store(db: Session, match: GenericMatch, context: PlanContext) -> bool:
    store_id = _seed_id(match.value, STORE_ID)
    if not store_id:
        return False
    resolve_store(db, store_id)
    return True


def apply_department(db: Session, match: GenericMatch, context: PlanContext) -> bool:
    department_id = _numeric_id(match.value, DEPARTMENT_ID)
    if department_id is None:
        return False
    resolve_department(
        db,
        department_id,
        _mapping_text(match.value, DEPARTMENT_NAME),
        _mapping_text(match.value, DEPARTMENT_TYPE) or DEFAULT_DEPARTMENT_TYPE,
    )
    return True


def apply_product(db: Session, match: GenericMatch, context: PlanContext) -> bool:
    upc_id = _numeric_id(match.value, PRODUCT_ID)
    if upc_id is None:
        return False
    resolve_product(db, upc_id, upc_source=context.source_file, created_by=context.created_by)
    return True


def apply_promotion(db: Session, match: GenericMatch, context: PlanContext) -> bool:
    promotion_id = _numeric_id(match.value, PROMOTION_ID)
    if promotion_id is None:
        return False
    resolve_promotion_program(db, promotion_id, promotion_name=_mapping_text(match.value, NAME))
    return True


def apply_rebate(db: Session, match: GenericMatch, context: PlanContext) -> bool:
    rebate_id = _numeric_id(match.value, REBATE_ID)
    if rebate_id is None:
        return False
    resolve_rebate_program(db, rebate_id, rebate_name=_mapping_text(match.value, NAME), rebate_type='cashback')
    return True


def apply_loyalty(db: Session, match: GenericMatch, context: PlanContext) -> bool:
    logger.info('Loyalty data found at %s in %s file %s', match.key_path, context.record_kind, context.source_file)
    return True


@dataclass(frozen=True)
class EntityMatcher:
    entity: str
    keywords: tuple[str, ...]
    apply: Callable[[Session, GenericMatch, PlanContext], bool]

    def matches(self, key: str) -> bool:
        lowered = key.lower()
        return any(keyword in lowered for keyword in self.keywords)


MATCHERS: tuple[EntityMatcher, ...] = (
    EntityMatcher('store', ('store', 'storeid', 'store_id', 'location', 'site'), apply_store),
    EntityMatcher('department', ('department', 'dept', 'category', 'section'), apply_department),
    EntityMatcher('product', ('product', 'item', 'upc', 'sku', 'plu'), apply_product),
    EntityMatcher('promotion', ('promotion', 'promo', 'discount', 'offer'), apply_promotion),
    EntityMatcher('rebate', ('rebate', 'cashback', 'refund'), apply_rebate),
    EntityMatcher('loyalty', ('loyalty', 'reward', 'member'), apply_loyalty),
)


def visit(
    node: Node,
    matchers: tuple[EntityMatcher, ...] = MATCHERS,
    parent_path: str = '',
) -> Iterator[GenericMatch]:
    """Depth-first, in document order; a list under a key counts as one value per item."""
    if isinstance(node, list):
        for item in node:
            yield from visit(item, matchers, parent_path)
        return
    if not isinstance(node, dict):
        return

    for key, value in node.items():
        key_path = f'{parent_path}.{key}' if parent_path else key
        for item in value if isinstance(value, list) else [value]:
            for matcher in matchers:
                if matcher.matches(key):
                    yield GenericMatch(entity=matcher.entity, key_path=key_path, value=item)
            yield from visit(item, matchers, key_path)


def _execute(matcher: EntityMatcher, match: GenericMatch, context: PlanContext, db: Session) -> bool:
    applied = matcher.apply(db, match, context)
    if not applied:
        logger.debug('No usable %s id at %s (%r)', match.entity, match.key_path, text(match.value))
    return applied


def generic_plans(
    document: dict[str, Node],
    context: PlanContext,
    matchers: tuple[EntityMatcher, ...] = MATCHERS,
) -> Iterator[WritePlan]:
    by_entity = {matcher.entity: matcher for matcher in matchers}
    logger.info('Scanning %s file %s with the generic normalizer', context.record_kind, context.source_file)
    for match in visit(document, matchers):
        yield WritePlan(
            label=f'{match.entity} at {match.key_path}',
            execute=partial(_execute, by_entity[match.entity], match, context),
        )
