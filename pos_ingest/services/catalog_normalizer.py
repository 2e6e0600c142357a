from __future__ import annotations

import logging
from collections.abc import Iterator
from functools import partial

from sqlalchemy.orm import Session

from pos_ingest.exceptions import FileStructureError
from pos_ingest.models import Product
from pos_ingest.services.field_access import to_int, to_price, to_upc
from pos_ingest.services.plans import PlanContext, WritePlan
from pos_ingest.services.reference_service import resolve_department, resolve_product, update_product

logger = logging.getLogger(__name__)

# Accepted header spellings per field, compared case-insensitively.
COLUMN_VARIANTS: dict[str, tuple[str, ...]] = {
    'upc': ('upc',),
    'description': ('item description', 'description'),
    'department_id': ('department id', 'department_id'),
    'department_name': ('department name', 'department_name'),
    'department_type': ('department type', 'department_type'),
    'cost': ('cost',),
    'retail_price': ('retail price', 'retail_price'),
}


def _column(row: dict[str, str], field: str) -> str | None:
    lowered = {key.lower(): value for key, value in row.items()}
    for variant in COLUMN_VARIANTS[field]:
        value = lowered.get(variant)
        if value:
            return value
    return None


def has_upc_column(rows: list[dict[str, str]]) -> bool:
    return any(key.lower() in COLUMN_VARIANTS['upc'] for key in rows[0])


def apply_catalog_row(db: Session, row: dict[str, str], upc_id: int, context: PlanContext) -> str:
    department_id = to_int(_column(row, 'department_id'), field='department_id')
    if department_id:
        resolve_department(
            db,
            department_id,
            _column(row, 'department_name'),
            _column(row, 'department_type'),
        )
    else:
        department_id = None

    description = _column(row, 'description')
    cost = to_price(_column(row, 'cost'), field='cost')
    retail_price = to_price(_column(row, 'retail_price'), field='retail_price')

    values = {
        'upc_description': description,
        'department_id': department_id,
        'cost': cost,
        'retail_price': retail_price,
    }
    product = db.get(Product, upc_id)
    if product is None:
        resolve_product(db, upc_id, upc_source=context.source_file, created_by=context.created_by, **values)
        return 'created'
    if update_product(db, product, modified_by=context.created_by, **values):
        logger.debug('Updated product %s from %s', upc_id, context.source_file)
        return 'updated'
    return 'unchanged'


def catalog_plans(rows: list[dict[str, str]], context: PlanContext) -> Iterator[WritePlan]:
    if not rows:
        logger.info('Catalog %s has no data rows', context.source_file)
        return
    if not has_upc_column(rows):
        raise FileStructureError(f'Catalog {context.source_file} has no UPC column')

    logger.info('Found %d catalog rows in %s', len(rows), context.source_file)
    for line_number, row in enumerate(rows, start=2):
        label = f'catalog row {line_number}'
        upc_id = to_upc(_column(row, 'upc'), field='upc')
        if upc_id is None:
            logger.warning('Catalog %s row %d has no usable UPC; skipped', context.source_file, line_number)
            yield WritePlan.skip(label, 'no usable UPC')
            continue
        yield WritePlan(label=label, execute=partial(apply_catalog_row, row=row, upc_id=upc_id, context=context))
