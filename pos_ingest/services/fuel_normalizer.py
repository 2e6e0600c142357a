"""Fuel control (FCF) files.

Three layouts are accepted, each under a namespaced or a legacy root name:
price-level periods, fuel entries and fuel grades. Every layout that is
present is ingested; a document matching none of them is rejected.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from decimal import Decimal
from functools import partial

from sqlalchemy.orm import Session

from pos_ingest.exceptions import FileStructureError
from pos_ingest.services.field_access import chain, to_decimal, to_int, to_price, to_upc
from pos_ingest.services.plans import PlanContext, WritePlan
from pos_ingest.services.reference_service import resolve_department, resolve_product, resolve_store
from pos_ingest.services.tree import Node, as_list, get_path

logger = logging.getLogger(__name__)

FUEL_DEPARTMENT_ID = 999
FUEL_DEPARTMENT_NAME = 'Fuel'
FUEL_DEPARTMENT_TYPE = 'fuel'

PRICE_LEVEL_ROOTS = ('pd:prpricelvlpd', 'prpricelvlpd')
FUEL_ENTRY_ROOTS = ('fuelcontrol', 'fuel')
FUEL_GRADE_ROOTS = ('fuelgrades', 'grades')

SITE = chain('site', 'vs:site', 'site')
PRICE_LEVEL_INFOS = chain('price_level_infos', 'totals.prpricelvlinfo')
FUEL_PRODUCT = chain('fuel_product', 'fuel:fuelprodbase', 'fuelprodbase')
FUEL_PRODUCT_ID = chain('fuel_product_id', 'sysid', 'number')
FUEL_PRODUCT_NAME = chain('fuel_product_name', 'name')
PRICE_LEVEL = chain('price_level', 'fuel:fuelpricelevel', 'fuelpricelevel')
FUEL_INFO_COUNT = chain('fuel_count', 'fuelinfo.count')
FUEL_INFO_AMOUNT = chain('fuel_amount', 'fuelinfo.amount')
FUEL_INFO_VOLUME = chain('fuel_volume', 'fuelinfo.volume')

ENTRY_STORE = chain('store_id', 'storeid', 'store_id')
ENTRY_DEPARTMENT = chain('department_id', 'departmentid', 'department_id')
ENTRY_DEPARTMENT_NAME = chain('department_name', 'departmentname')
ENTRY_PRODUCT = chain('product_id', 'productid', 'upc')
GRADE_ID = chain('grade_id', 'gradeid', 'id')
DESCRIPTION = chain('description', 'description', 'gradename', 'productname')
COST = chain('cost', 'cost')
RETAIL_PRICE = chain('retail_price', 'price', 'retailprice')
STORE_NAME = chain('store_name', 'storename')
ADDRESS = chain('address', 'address')
CITY = chain('city', 'city')
STATE = chain('state', 'state')
ZIP_CODE = chain('zip_code', 'zipcode', 'zip')


def _first_root(document: dict[str, Node], names: tuple[str, ...]) -> Node | None:
    for name in names:
        if name in document:
            return document[name]
    return None


def _fuel_department(db: Session, department_id: int = FUEL_DEPARTMENT_ID, name: str | None = None) -> int:
    return resolve_department(
        db,
        department_id,
        name or FUEL_DEPARTMENT_NAME,
        FUEL_DEPARTMENT_TYPE,
        force_fuel=True,
    ).department_id


def _price_per_volume(amount: Decimal | None, volume: Decimal | None) -> Decimal | None:
    if amount is None or not volume:
        return None
    return (amount / volume).quantize(Decimal('0.01'))


def apply_price_level_period(db: Session, period: Node, context: PlanContext) -> int:
    """Store, fuel department and one product per fuel grade; returns the grade count."""
    store_id = SITE.resolve(period)
    if store_id:
        resolve_store(db, store_id)

    department_id = _fuel_department(db)
    grades = 0
    for info in as_list(PRICE_LEVEL_INFOS.resolve_node(period)):
        fuel_product = FUEL_PRODUCT.resolve_node(info)
        if fuel_product is None:
            continue
        fuel_id = to_int(FUEL_PRODUCT_ID.resolve(fuel_product), field=FUEL_PRODUCT_ID.name)
        if not fuel_id or fuel_id <= 0:
            logger.warning('Fuel product without a usable id in %s; skipped', context.source_file)
            continue
        fuel_name = FUEL_PRODUCT_NAME.resolve(fuel_product) or f'Fuel Product {fuel_id}'

        retail_price = None
        for level in as_list(get_path(info, 'pricelvlinfo')):
            level_name = FUEL_PRODUCT_NAME.resolve(PRICE_LEVEL.resolve_node(level))
            count = to_int(FUEL_INFO_COUNT.resolve(level), field=FUEL_INFO_COUNT.name)
            amount = to_decimal(FUEL_INFO_AMOUNT.resolve(level), field=FUEL_INFO_AMOUNT.name)
            volume = to_decimal(FUEL_INFO_VOLUME.resolve(level), places=3, field=FUEL_INFO_VOLUME.name)
            logger.debug(
                'Fuel %s level %s: count=%s amount=%s volume=%s', fuel_name, level_name, count, amount, volume
            )
            retail_price = retail_price or _price_per_volume(amount, volume)

        resolve_product(
            db,
            fuel_id,
            upc_description=fuel_name,
            department_id=department_id,
            retail_price=retail_price,
            upc_source=context.source_file,
            created_by=context.created_by,
        )
        grades += 1
    return grades


def apply_fuel_entry(db: Session, entry: Node, context: PlanContext) -> None:
    store_id = ENTRY_STORE.resolve(entry)
    if store_id:
        resolve_store(
            db,
            store_id,
            store_name=STORE_NAME.resolve(entry),
            address=ADDRESS.resolve(entry),
            city=CITY.resolve(entry),
            state=STATE.resolve(entry),
            zip_code=ZIP_CODE.resolve(entry),
        )

    department_id = _fuel_department(
        db,
        to_int(ENTRY_DEPARTMENT.resolve(entry), field=ENTRY_DEPARTMENT.name) or FUEL_DEPARTMENT_ID,
        ENTRY_DEPARTMENT_NAME.resolve(entry),
    )
    product_id = to_upc(ENTRY_PRODUCT.resolve(entry), field=ENTRY_PRODUCT.name)
    if product_id is not None:
        _apply_fuel_product(db, product_id, entry, department_id, context)


def apply_fuel_grade(db: Session, grade: Node, context: PlanContext) -> None:
    department_id = _fuel_department(db)
    grade_id = to_upc(GRADE_ID.resolve(grade), field=GRADE_ID.name)
    if grade_id is not None:
        _apply_fuel_product(db, grade_id, grade, department_id, context)


def _apply_fuel_product(db: Session, product_id: int, node: Node, department_id: int, context: PlanContext) -> None:
    resolve_product(
        db,
        product_id,
        upc_description=DESCRIPTION.resolve(node) or f'Fuel Product {product_id}',
        department_id=department_id,
        cost=to_price(COST.resolve(node), field=COST.name),
        retail_price=to_price(RETAIL_PRICE.resolve(node), field=RETAIL_PRICE.name),
        upc_source=context.source_file,
        created_by=context.created_by,
    )


def _entries(root: Node, child_names: tuple[str, ...]) -> list[Node]:
    for name in child_names:
        children = as_list(get_path(root, name))
        if children:
            return children
    return as_list(root)


def fuel_plans(document: dict[str, Node], context: PlanContext) -> Iterator[WritePlan]:
    period = _first_root(document, PRICE_LEVEL_ROOTS)
    entries = _first_root(document, FUEL_ENTRY_ROOTS)
    grades = _first_root(document, FUEL_GRADE_ROOTS)
    if period is None and entries is None and grades is None:
        raise FileStructureError(
            f'Invalid fuel control file structure: expected one of '
            f'{", ".join(PRICE_LEVEL_ROOTS + FUEL_ENTRY_ROOTS + FUEL_GRADE_ROOTS)}'
        )

    if period is not None:
        for index, node in enumerate(as_list(period), start=1):
            yield WritePlan(
                label=f'price level period #{index}',
                execute=partial(apply_price_level_period, period=node, context=context),
            )
    if entries is not None:
        for index, node in enumerate(_entries(entries, ('entry', 'fuelentry')), start=1):
            yield WritePlan(label=f'fuel entry #{index}', execute=partial(apply_fuel_entry, entry=node, context=context))
    if grades is not None:
        for index, node in enumerate(_entries(grades, ('grade', 'fuelgrade')), start=1):
            yield WritePlan(label=f'fuel grade #{index}', execute=partial(apply_fuel_grade, grade=node, context=context))
