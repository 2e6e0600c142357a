from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime, timezone
from functools import partial

from sqlalchemy import update
from sqlalchemy.orm import Session

from pos_ingest.models import (
    LoyaltyLineItem,
    Payment,
    PromotionLineItem,
    SalesTransaction,
    TransactionEventLog,
    TransactionLineItem,
    TransactionLineItemTax,
    TransactionLoyalty,
)
from pos_ingest.services.journal_normalizer import (
    EventLogEntry,
    JournalHeader,
    JournalLine,
    JournalRecord,
    extract_journal_record,
    is_allowed_type,
    journal_records,
    record_label,
    record_type,
)
from pos_ingest.services.plans import PlanContext, WritePlan
from pos_ingest.services.reference_service import (
    ensure_promotion_upc_linkage,
    insert_if_absent,
    resolve_department,
    resolve_product,
    resolve_promotion_program,
    resolve_store,
    resolve_terminal,
)
from pos_ingest.services.tree import Node

logger = logging.getLogger(__name__)

CREATED = 'created'
UPDATED = 'updated'


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _write_event_log(db: Session, entry: EventLogEntry) -> str:
    insert_if_absent(
        db,
        TransactionEventLog,
        ['transaction_event_log_id'],
        {
            'transaction_event_log_id': entry.transaction_event_log_id,
            'event_type': entry.event_type,
            'duration': entry.duration,
            'terminal_serial_number': entry.terminal_serial_number,
            'message_sequence': entry.message_sequence,
            'transaction_serial_number': entry.transaction_serial_number,
            'global_unique_identifier': entry.global_unique_identifier,
            'customer_dob': entry.customer_dob,
            'customer_age': entry.customer_age,
            'customer_dob_entry_method': entry.customer_dob_entry_method,
        },
    )
    return entry.transaction_event_log_id


def _transaction_values(
    header: JournalHeader,
    terminal_id: int | None,
    event_log_id: str | None,
    source_file: str | None,
) -> dict:
    return {
        'transaction_id': header.transaction_id,
        'store_id': header.store_id,
        'terminal_id': terminal_id,
        'register_id': header.register_id,
        'transaction_event_log_id': event_log_id,
        'cashier_session': header.cashier_session,
        'employee_id': header.employee_id,
        'employee_name': header.employee_name,
        'food_stamp_eligible_total': header.food_stamp_eligible_total,
        'grand_totalizer': header.grand_totalizer,
        'total_amount': header.total_amount,
        'total_no_tax': header.total_no_tax,
        'total_tax_amount': header.total_tax_amount,
        'transaction_datetime': header.transaction_datetime,
        'transaction_type': header.transaction_type,
        'is_void': header.flags.get('is_void', False),
        'is_suspended': header.flags.get('is_suspended', False),
        'is_rollback': header.flags.get('is_rollback', False),
        'was_recalled': header.flags.get('was_recalled', False),
        'is_fuel_prepay': header.flags.get('is_fuel_prepay', False),
        'is_fuel_prepay_completion': header.flags.get('is_fuel_prepay_completion', False),
        'source_file': source_file,
    }


def upsert_transaction(db: Session, unique_id: str, values: dict) -> bool:
    """Insert the transaction or refresh the stored row; return True when it was created."""
    now = _now()
    if insert_if_absent(
        db,
        SalesTransaction,
        ['sales_transaction_unique_id'],
        {'sales_transaction_unique_id': unique_id, 'created_at': now, 'updated_at': now, **values},
    ):
        return True
    db.execute(
        update(SalesTransaction)
        .where(SalesTransaction.sales_transaction_unique_id == unique_id)
        .values(updated_at=now, **values)
    )
    return False


def _write_line(db: Session, unique_id: str, line: JournalLine, created_by: str) -> TransactionLineItem:
    department_id = None
    if line.department_id is not None:
        department_id = resolve_department(
            db, line.department_id, line.department_name, line.department_type
        ).department_id

    upc_id = None
    if line.upc_id is not None:
        upc_id = resolve_product(
            db,
            line.upc_id,
            upc_description=line.upc_description,
            department_id=department_id,
            retail_price=line.unit_price,
            upc_source=unique_id,
            created_by=created_by,
        ).upc_id

    line_item = TransactionLineItem(
        sales_transaction_unique_id=unique_id,
        line_number=line.line_number,
        upc_id=upc_id,
        department_id=department_id,
        department_name=line.department_name,
        department_type=line.department_type,
        category_number=line.category_number,
        category_name=line.category_name,
        upc_description=line.upc_description,
        upc_entry_type=line.upc_entry_type,
        upc_modifier=line.upc_modifier,
        network_code=line.network_code,
        transaction_line_type=line.line_type,
        quantity=line.quantity,
        unit_price=line.unit_price,
        line_total=line.line_total,
        **line.flags,
    )
    db.add(line_item)
    db.flush()

    for tax in line.taxes:
        db.add(
            TransactionLineItemTax(
                line_item_id=line_item.id,
                sales_transaction_unique_id=unique_id,
                tax_line_category=tax.category,
                tax_line_sys_id=tax.sys_id,
                tax_line_rate=tax.rate,
                tax_line_amount=tax.amount,
            )
        )

    for promotion in line.promotions:
        if promotion.promotion_id is not None:
            resolve_promotion_program(
                db,
                promotion.promotion_id,
                promotion_name=promotion.promotion_name,
                promo_amount=promotion.promo_amount,
            )
            if upc_id is not None:
                ensure_promotion_upc_linkage(db, promotion.promotion_id, upc_id)
        db.add(
            PromotionLineItem(
                line_item_id=line_item.id,
                promotion_id=promotion.promotion_id,
                promotion_name=promotion.promotion_name,
                promotion_type=promotion.promotion_type,
                mix_group_id=promotion.mix_group_id,
                match_price=promotion.match_price,
                match_quantity=promotion.match_quantity,
                promo_amount=promotion.promo_amount,
                promo_amount_per_unit=promotion.promo_amount_per_unit,
            )
        )

    for discount in line.loyalty_discounts:
        db.add(
            LoyaltyLineItem(
                line_item_id=line_item.id,
                sales_transaction_unique_id=unique_id,
                discount_amount=discount.discount_amount,
                quantity_applied=discount.quantity_applied,
                tax_credit=discount.tax_credit,
            )
        )
    return line_item


def write_journal_record(
    db: Session,
    record: JournalRecord,
    *,
    created_by: str,
    source_file: str | None = None,
) -> str:
    """Apply one journal record inside the caller's transaction.

    Returns ``'created'`` for a new transaction. A transaction already stored
    under the same unique id has its header refreshed and its children left
    untouched, which keeps re-ingestion from appending duplicate lines.
    """
    header = record.header
    unique_id = header.transaction_unique_id

    if header.store_id:
        resolve_store(db, header.store_id)
    else:
        logger.warning('Transaction %s has no store number; store and terminal not linked', unique_id)

    terminal_id = None
    if header.store_id and header.register_id is not None:
        terminal_id = resolve_terminal(db, header.store_id, header.register_id).id

    event_log_id = _write_event_log(db, record.event_log) if record.event_log else None

    created = upsert_transaction(
        db,
        unique_id,
        _transaction_values(header, terminal_id, event_log_id, source_file),
    )
    if not created:
        logger.debug('Transaction %s already stored; header refreshed, children skipped', unique_id)
        return UPDATED

    for line in record.lines:
        _write_line(db, unique_id, line, created_by)

    for payment in record.payments:
        db.add(
            Payment(
                sales_transaction_unique_id=unique_id,
                mop_code=payment.mop_code,
                mop_amount=payment.mop_amount,
                payment_type=payment.payment_type,
                authorization_code=payment.authorization_code,
                cc_name=payment.cc_name,
                payment_entry_method=payment.payment_entry_method,
                payment_timestamp=payment.payment_timestamp,
            )
        )

    if record.loyalty is not None:
        loyalty = record.loyalty
        db.add(
            TransactionLoyalty(
                sales_transaction_unique_id=unique_id,
                loyalty_account_number=loyalty.account_number,
                loyalty_auto_discount=loyalty.auto_discount,
                loyalty_customer_discount=loyalty.customer_discount,
                loyalty_entry_method=loyalty.entry_method,
                loyalty_sub_total=loyalty.sub_total,
                loyalty_program_name=loyalty.program_name,
            )
        )

    db.flush()
    logger.debug(
        'Stored transaction %s with %d lines and %d payments',
        unique_id,
        len(record.lines),
        len(record.payments),
    )
    return CREATED


def _apply_trans(trans: Node, context: PlanContext, db: Session) -> str:
    return write_journal_record(
        db,
        extract_journal_record(trans),
        created_by=context.created_by,
        source_file=context.source_file,
    )


def journal_plans(document: dict[str, Node], context: PlanContext) -> Iterator[WritePlan]:
    records = journal_records(document)
    logger.info('Found %d journal records in %s', len(records), context.source_file)
    for index, trans in enumerate(records, start=1):
        label = record_label(index, trans)
        transaction_type = record_type(trans)
        if not is_allowed_type(transaction_type):
            yield WritePlan.skip(label, f'transaction type {transaction_type!r} is not ingested')
            continue
        yield WritePlan(label=label, execute=partial(_apply_trans, trans, context))
