"""Resolve-or-create for reference entities.

Every resolver is an ``INSERT ... ON CONFLICT DO NOTHING`` on the entity's
natural key followed by a keyed read, so two writers racing on the same key
both end up with the single stored row. All work happens inside the caller's
session and transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from pos_ingest.models import (
    Department,
    Product,
    PromotionProgram,
    PromotionUPCLinkage,
    RebateProgram,
    RebateUPCLinkage,
    Store,
    Terminal,
)
from pos_ingest.services.department_classifier import (
    DEFAULT_KEYWORDS,
    ClassifierKeywords,
    apply_classification,
    classify_department,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def dialect_insert(db: Session, model):
    dialect = db.get_bind().dialect.name
    if dialect == 'postgresql':
        return postgresql_insert(model)
    if dialect == 'sqlite':
        return sqlite_insert(model)
    raise RuntimeError(f'Unsupported database dialect for upserts: {dialect}')


def insert_if_absent(db: Session, model, index_elements: list[str], values: dict) -> bool:
    stmt = dialect_insert(db, model).values(**values).on_conflict_do_nothing(index_elements=index_elements)
    return db.execute(stmt).rowcount == 1


def _fill_nulls(entity, values: dict) -> list[str]:
    filled = []
    for attr, value in values.items():
        if value is None or getattr(entity, attr) is not None:
            continue
        setattr(entity, attr, value)
        filled.append(attr)
    return filled


def resolve_store(
    db: Session,
    store_id: str,
    *,
    store_name: str | None = None,
    address: str | None = None,
    city: str | None = None,
    state: str | None = None,
    zip_code: str | None = None,
) -> Store:
    details = {
        'store_name': store_name,
        'address': address,
        'city': city,
        'state': state,
        'zip_code': zip_code,
    }
    if insert_if_absent(db, Store, ['store_id'], {'store_id': store_id, **details}):
        logger.info('Created store %s', store_id)
    store = db.execute(select(Store).where(Store.store_id == store_id)).scalar_one()
    filled = _fill_nulls(store, details)
    if filled:
        logger.debug('Filled %s on store %s', ', '.join(filled), store_id)
    return store


def resolve_department(
    db: Session,
    department_id: int,
    department_name: str | None = None,
    department_type: str | None = None,
    *,
    force_fuel: bool = False,
    keywords: ClassifierKeywords = DEFAULT_KEYWORDS,
) -> Department:
    """Return the department, creating and classifying it on first sight.

    A stored department keeps its flags. The one exception is a department
    first seen without a name: the first name supplied later is written and
    the department is classified from it.
    """
    classification = classify_department(department_name, department_type, keywords)
    created = insert_if_absent(
        db,
        Department,
        ['department_id'],
        {
            'department_id': department_id,
            'department_name': department_name,
            'department_type': department_type,
            'is_fuel_department': classification.is_fuel or force_fuel,
            'is_car_wash_department': classification.is_car_wash,
            'is_lottery_department': classification.is_lottery,
        },
    )
    department = db.execute(select(Department).where(Department.department_id == department_id)).scalar_one()
    if created:
        logger.info(
            'Created department %s (%s) fuel=%s car_wash=%s lottery=%s',
            department_id,
            department_name,
            department.is_fuel_department,
            department.is_car_wash_department,
            department.is_lottery_department,
        )
        return department

    if department.department_name is None and department_name:
        department.department_name = department_name
        if department.department_type is None:
            department.department_type = department_type
        apply_classification(
            department,
            classify_department(department.department_name, department.department_type, keywords),
        )
        if force_fuel:
            department.is_fuel_department = True
        logger.debug('Named department %s as %s', department_id, department_name)
    return department


def resolve_product(
    db: Session,
    upc_id: int,
    *,
    upc_description: str | None = None,
    department_id: int | None = None,
    cost: Decimal | None = None,
    retail_price: Decimal | None = None,
    upc_source: str | None = None,
    created_by: str | None = None,
) -> Product:
    created = insert_if_absent(
        db,
        Product,
        ['upc_id'],
        {
            'upc_id': upc_id,
            'upc_description': upc_description,
            'department_id': department_id,
            'cost': cost,
            'retail_price': retail_price,
            'cost_available': cost is not None,
            'retail_price_available': retail_price is not None,
            'upc_source': upc_source,
            'created_by': created_by,
            'created_at': _now(),
        },
    )
    product = db.execute(select(Product).where(Product.upc_id == upc_id)).scalar_one()
    if created:
        logger.info('Created product %s (%s) from %s', upc_id, upc_description, upc_source)
        return product

    filled = _fill_nulls(
        product,
        {
            'upc_description': upc_description,
            'department_id': department_id,
            'cost': cost,
            'retail_price': retail_price,
        },
    )
    if 'cost' in filled:
        product.cost_available = True
    if 'retail_price' in filled:
        product.retail_price_available = True
    if filled:
        logger.debug('Filled %s on product %s', ', '.join(filled), upc_id)
    return product


def update_product(
    db: Session,
    product: Product,
    *,
    upc_description: str | None = None,
    department_id: int | None = None,
    cost: Decimal | None = None,
    retail_price: Decimal | None = None,
    modified_by: str | None = None,
) -> bool:
    """Explicit update path used by catalog imports: provided values overwrite stored ones."""
    changed = False
    for attr, value in (
        ('upc_description', upc_description),
        ('department_id', department_id),
        ('cost', cost),
        ('retail_price', retail_price),
    ):
        if value is None or getattr(product, attr) == value:
            continue
        setattr(product, attr, value)
        changed = True
    if cost is not None:
        product.cost_available = True
    if retail_price is not None:
        product.retail_price_available = True
    if changed:
        product.modified_by = modified_by
        product.modified_at = _now()
        db.flush()
    return changed


def resolve_terminal(
    db: Session,
    store_id: str,
    register_id: int,
    device_type: str | None = None,
) -> Terminal:
    if insert_if_absent(
        db,
        Terminal,
        ['store_id', 'register_id'],
        {'store_id': store_id, 'register_id': register_id, 'device_type': device_type},
    ):
        logger.info('Created terminal %s/%s', store_id, register_id)
    terminal = db.execute(
        select(Terminal).where(Terminal.store_id == store_id, Terminal.register_id == register_id)
    ).scalar_one()
    _fill_nulls(terminal, {'device_type': device_type})
    return terminal


def resolve_promotion_program(
    db: Session,
    promotion_id: int,
    *,
    promotion_name: str | None = None,
    promo_desc: str | None = None,
    promo_amount: Decimal | None = None,
    promo_percent: Decimal | None = None,
    promotion_discount_method: str | None = None,
) -> PromotionProgram:
    details = {
        'promotion_name': promotion_name,
        'promo_desc': promo_desc,
        'promo_amount': promo_amount,
        'promo_percent': promo_percent,
        'promotion_discount_method': promotion_discount_method,
    }
    if insert_if_absent(db, PromotionProgram, ['promotion_id'], {'promotion_id': promotion_id, **details}):
        logger.info('Created promotion program %s (%s)', promotion_id, promotion_name)
    program = db.execute(
        select(PromotionProgram).where(PromotionProgram.promotion_id == promotion_id)
    ).scalar_one()
    _fill_nulls(program, details)
    return program


def resolve_rebate_program(
    db: Session,
    rebate_id: int,
    *,
    rebate_name: str | None = None,
    rebate_description: str | None = None,
    rebate_type: str | None = None,
    rebate_amount: Decimal | None = None,
    rebate_percentage: Decimal | None = None,
    rebate_code: str | None = None,
    vendor_id: str | None = None,
    product_category: str | None = None,
) -> RebateProgram:
    details = {
        'rebate_name': rebate_name,
        'rebate_description': rebate_description,
        'rebate_type': rebate_type,
        'rebate_amount': rebate_amount,
        'rebate_percentage': rebate_percentage,
        'rebate_code': rebate_code,
        'vendor_id': vendor_id,
        'product_category': product_category,
    }
    if insert_if_absent(db, RebateProgram, ['rebate_id'], {'rebate_id': rebate_id, **details}):
        logger.info('Created rebate program %s (%s)', rebate_id, rebate_name)
    program = db.execute(select(RebateProgram).where(RebateProgram.rebate_id == rebate_id)).scalar_one()
    _fill_nulls(program, details)
    return program


def ensure_promotion_upc_linkage(db: Session, promotion_id: int, upc_id: int) -> bool:
    created = insert_if_absent(
        db,
        PromotionUPCLinkage,
        ['promotion_id', 'upc_id'],
        {'promotion_id': promotion_id, 'upc_id': upc_id, 'is_active': True},
    )
    if created:
        logger.debug('Linked promotion %s to UPC %s', promotion_id, upc_id)
    return created


def ensure_rebate_upc_linkage(db: Session, rebate_id: int, upc_id: int) -> bool:
    created = insert_if_absent(
        db,
        RebateUPCLinkage,
        ['rebate_id', 'upc_id'],
        {'rebate_id': rebate_id, 'upc_id': upc_id, 'is_active': True},
    )
    if created:
        logger.debug('Linked rebate %s to UPC %s', rebate_id, upc_id)
    return created
