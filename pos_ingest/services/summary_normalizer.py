"""Summary / master-data (SUM) files."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from functools import partial

from sqlalchemy.orm import Session

from pos_ingest.exceptions import FileStructureError
from pos_ingest.services.field_access import chain, to_decimal, to_int, to_price, to_upc
from pos_ingest.services.plans import PlanContext, WritePlan
from pos_ingest.services.reference_service import (
    ensure_promotion_upc_linkage,
    ensure_rebate_upc_linkage,
    resolve_department,
    resolve_product,
    resolve_promotion_program,
    resolve_rebate_program,
    resolve_store,
)
from pos_ingest.services.tree import Node, as_list, get_path, text

logger = logging.getLogger(__name__)

STORE_ID = chain('store_id', 'storeid', 'store_id', 'id')
STORE_NAME = chain('store_name', 'storename', 'name')
ADDRESS = chain('address', 'address')
CITY = chain('city', 'city')
STATE = chain('state', 'state')
ZIP_CODE = chain('zip_code', 'zipcode', 'zip')

DEPARTMENT_ID = chain('department_id', 'departmentid', 'department_id', 'id')
DEPARTMENT_NAME = chain('department_name', 'departmentname', 'name')
DEPARTMENT_TYPE = chain('department_type', 'type')

UPC = chain('upc', 'upc', 'upc_id', 'productid')
PRODUCT_DEPARTMENT = chain('product_department', 'department', 'departmentid')
PRODUCT_DESCRIPTION = chain('description', 'description', 'productname')
COST = chain('cost', 'cost')
RETAIL_PRICE = chain('retail_price', 'price', 'retailprice')

PROMOTION_ID = chain('promotion_id', 'promotionid', 'promotion_id', 'id')
PROMOTION_NAME = chain('promotion_name', 'promotionname', 'name')
PROMOTION_AMOUNT = chain('promo_amount', 'amount', 'promoamount')
PROMOTION_PERCENT = chain('promo_percent', 'percent', 'percentage')
PROMOTION_METHOD = chain('discount_method', 'method', 'discountmethod')

REBATE_ID = chain('rebate_id', 'rebateid', 'rebate_id', 'id')
REBATE_NAME = chain('rebate_name', 'rebatename', 'name')
REBATE_TYPE = chain('rebate_type', 'type')
REBATE_AMOUNT = chain('rebate_amount', 'amount')
REBATE_PERCENTAGE = chain('rebate_percentage', 'percentage', 'percent')
REBATE_CODE = chain('rebate_code', 'code')
REBATE_VENDOR = chain('vendor_id', 'vendor', 'vendorid')
REBATE_CATEGORY = chain('product_category', 'category')

DESCRIPTION = chain('description', 'description')


def _linked_upcs(summary: Node) -> list[int]:
    upcs = []
    for node in as_list(get_path(summary, 'upcs', 'upc')) or as_list(get_path(summary, 'upc')):
        upc_id = to_upc(text(node), field='upc')
        if upc_id is not None:
            upcs.append(upc_id)
    return upcs


def apply_store_summary(db: Session, summary: Node, context: PlanContext) -> None:
    store_id = STORE_ID.resolve(summary)
    if not store_id:
        logger.warning('Store summary without a store id in %s; nothing written', context.source_file)
        return
    resolve_store(
        db,
        store_id,
        store_name=STORE_NAME.resolve(summary),
        address=ADDRESS.resolve(summary),
        city=CITY.resolve(summary),
        state=STATE.resolve(summary),
        zip_code=ZIP_CODE.resolve(summary),
    )


def apply_department_summary(db: Session, summary: Node, context: PlanContext) -> None:
    department_id = to_int(DEPARTMENT_ID.resolve(summary), field=DEPARTMENT_ID.name)
    if not department_id:
        logger.warning('Department summary without a department id in %s; nothing written', context.source_file)
        return
    resolve_department(db, department_id, DEPARTMENT_NAME.resolve(summary), DEPARTMENT_TYPE.resolve(summary))


def apply_product_summary(db: Session, summary: Node, context: PlanContext) -> None:
    upc_id = to_upc(UPC.resolve(summary), field=UPC.name)
    if upc_id is None:
        logger.warning('Product summary without a UPC in %s; nothing written', context.source_file)
        return

    department_id = to_int(PRODUCT_DEPARTMENT.resolve(summary), field=PRODUCT_DEPARTMENT.name)
    if department_id:
        resolve_department(db, department_id)
    resolve_product(
        db,
        upc_id,
        upc_description=PRODUCT_DESCRIPTION.resolve(summary),
        department_id=department_id or None,
        cost=to_price(COST.resolve(summary), field=COST.name),
        retail_price=to_price(RETAIL_PRICE.resolve(summary), field=RETAIL_PRICE.name),
        upc_source=context.source_file,
        created_by=context.created_by,
    )


def apply_promotion_summary(db: Session, summary: Node, context: PlanContext) -> None:
    promotion_id = to_int(PROMOTION_ID.resolve(summary), field=PROMOTION_ID.name)
    if not promotion_id:
        logger.warning('Promotion summary without a promotion id in %s; nothing written', context.source_file)
        return
    resolve_promotion_program(
        db,
        promotion_id,
        promotion_name=PROMOTION_NAME.resolve(summary),
        promo_desc=DESCRIPTION.resolve(summary),
        promo_amount=to_price(PROMOTION_AMOUNT.resolve(summary), field=PROMOTION_AMOUNT.name),
        promo_percent=to_decimal(PROMOTION_PERCENT.resolve(summary), field=PROMOTION_PERCENT.name),
        promotion_discount_method=PROMOTION_METHOD.resolve(summary),
    )
    for upc_id in _linked_upcs(summary):
        resolve_product(db, upc_id, upc_source=context.source_file, created_by=context.created_by)
        ensure_promotion_upc_linkage(db, promotion_id, upc_id)


def apply_rebate_summary(db: Session, summary: Node, context: PlanContext) -> None:
    rebate_id = to_int(REBATE_ID.resolve(summary), field=REBATE_ID.name)
    if not rebate_id:
        logger.warning('Rebate summary without a rebate id in %s; nothing written', context.source_file)
        return
    resolve_rebate_program(
        db,
        rebate_id,
        rebate_name=REBATE_NAME.resolve(summary),
        rebate_description=DESCRIPTION.resolve(summary),
        rebate_type=REBATE_TYPE.resolve(summary) or 'cashback',
        rebate_amount=to_price(REBATE_AMOUNT.resolve(summary), field=REBATE_AMOUNT.name),
        rebate_percentage=to_decimal(REBATE_PERCENTAGE.resolve(summary), places=4, field=REBATE_PERCENTAGE.name),
        rebate_code=REBATE_CODE.resolve(summary),
        vendor_id=REBATE_VENDOR.resolve(summary),
        product_category=REBATE_CATEGORY.resolve(summary),
    )
    for upc_id in _linked_upcs(summary):
        resolve_product(db, upc_id, upc_source=context.source_file, created_by=context.created_by)
        ensure_rebate_upc_linkage(db, rebate_id, upc_id)


SUMMARY_KINDS: tuple[tuple[str, Callable[[Session, Node, PlanContext], None]], ...] = (
    ('store', apply_store_summary),
    ('department', apply_department_summary),
    ('product', apply_product_summary),
    ('promotion', apply_promotion_summary),
    ('rebate', apply_rebate_summary),
)


def _summary_nodes(document: dict[str, Node], kind: str) -> list[Node]:
    """``<kind>summary`` wins over ``summaries.<kind>``; both are looked up at and below the root."""
    scopes: list[Node] = [document, *document.values()]
    for path in ((f'{kind}summary',), ('summaries', kind)):
        for scope in scopes:
            found = get_path(scope, *path)
            if found is not None:
                return as_list(found)
    return []


def summary_plans(document: dict[str, Node], context: PlanContext) -> Iterator[WritePlan]:
    sections = [(kind, apply, _summary_nodes(document, kind)) for kind, apply in SUMMARY_KINDS]
    if not any(nodes for _, _, nodes in sections):
        raise FileStructureError(
            'Invalid summary file structure: no store, department, product, promotion or rebate summaries'
        )

    for kind, apply, nodes in sections:
        if nodes:
            logger.info('Found %d %s summaries in %s', len(nodes), kind, context.source_file)
        for index, node in enumerate(nodes, start=1):
            yield WritePlan(label=f'{kind} summary #{index}', execute=partial(apply, summary=node, context=context))
