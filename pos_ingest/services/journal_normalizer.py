"""Extraction of journal (CPJ) records from a parsed tree.

Nothing here touches the database: each ``trans`` node becomes a
``JournalRecord`` that ``transaction_writer`` applies inside one transaction.
Field precedence lives in the ``FieldChain`` tables below.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from pos_ingest.exceptions import FileStructureError
from pos_ingest.services.field_access import (
    chain,
    flag_present,
    to_datetime,
    to_decimal,
    to_int,
    to_upc,
)
from pos_ingest.services.tree import Node, as_list, get_path, has_field, text

logger = logging.getLogger(__name__)

ALLOWED_TRANSACTION_TYPES = frozenset({'sale', 'network sale', 'nosale', 'refund sale', 'void'})

DEFAULT_LOYALTY_PROGRAM = 'Default Loyalty Program'
CASH_MOP_CODE = 1

DEPARTMENT_TYPE_ALIASES = {'norm': 'Inside Sales'}

# Header, relative to ``trheader``.
SEQUENCE = chain('sequence', 'trticknum.trseq', 'trseq')
REGISTER = chain('register', 'trticknum.posnum', 'posnum')
STORE = chain('store', 'storenumber', 'store')
HEADER_TYPE = chain('type', 'type')
DATE = chain('date', 'date')
UNIQUE_ID = chain('unique_id', 'uniqueid')
CASHIER_SESSION = chain('cashier_session', 'cashier.period')
EMPLOYEE_ID = chain('employee_id', 'cashier.sysid')
EMPLOYEE_NAME = chain('employee_name', 'cashier')
MESSAGE_SEQUENCE = chain('message_sequence', 'termmsgsn')
EVENT_TYPE = chain('event_type', 'termmsgsn.type')
TERMINAL_SERIAL = chain('terminal_serial', 'termmsgsn.term')
TRANSACTION_SERIAL = chain('transaction_serial', 'truniquesn')
DURATION = chain('duration', 'duration')

# Totals, relative to ``trvalue``.
TOTAL_AMOUNT = chain('total_amount', 'trtotwtax')
TOTAL_TAX = chain('total_tax_amount', 'trtottax')
TOTAL_NO_TAX = chain('total_no_tax', 'trtotnotax')
GRAND_TOTALIZER = chain('grand_totalizer', 'trgtotalizer')
FOOD_STAMP_TOTAL = chain('food_stamp_eligible_total', 'trfstmp.trfstmptot')
CUSTOMER_DOB = chain('customer_dob', 'custdob.dob', 'custdob')
CUSTOMER_AGE = chain('customer_age', 'custdob.age')
CUSTOMER_DOB_ENTRY = chain('customer_dob_entry_method', 'custdob.entrymethod', 'custdob.entrymeth')

# Line items, relative to ``trline``.
LINE_UPC = chain('upc', 'trlupc')
LINE_DESCRIPTION = chain('description', 'trldesc')
LINE_QUANTITY = chain('quantity', 'trlqty')
LINE_UNIT_PRICE = chain('unit_price', 'trlunitprice')
LINE_TOTAL = chain('line_total', 'trllinetot')
DEPARTMENT_NUMBER = chain('department_number', 'trldept.number')
DEPARTMENT_NAME = chain('department_name', 'trldept')
DEPARTMENT_TYPE = chain('department_type', 'trldept.type')
CATEGORY_NUMBER = chain('category_number', 'trlcat.number')
CATEGORY_NAME = chain('category_name', 'trlcat')
NETWORK_CODE = chain('network_code', 'trlnetwcode')
UPC_ENTRY_TYPE = chain('upc_entry_type', 'trlupcentry.type')
UPC_MODIFIER = chain('upc_modifier', 'trlmodifier')
LINE_TYPE = chain('line_type', 'type')

# Mix-match lines, relative to ``trlmatchline``.
PROMOTION_ID = chain('promotion_id', 'trlpromotionid')
PROMOTION_TYPE = chain('promotion_type', 'trlpromotionid.promotype')
PROMOTION_NAME = chain('promotion_name', 'trlmatchname')
MATCH_PRICE = chain('match_price', 'trlmatchprice')
MATCH_QUANTITY = chain('match_quantity', 'trlmatchquantity')
MIX_GROUP = chain('mix_group_id', 'trlmatchmixes')
PROMO_AMOUNT = chain('promo_amount', 'trlpromoamount')

# Payment lines, relative to ``trpayline``.
MOP_CODE = chain('mop_code', 'trppaycode.mop', 'mopcode')
MOP_AMOUNT = chain('mop_amount', 'trpamt', 'mopamount')
PAYMENT_TYPE = chain('payment_type', 'type')
PAYCODE_NAME = chain('paycode', 'trppaycode')
AUTH_CODE = chain('authorization_code', 'trpcardinfo.trpcauthcode')
CARD_NAME = chain('cc_name', 'trpcardinfo.trpcccname')
CARD_ENTRY_METHOD = chain('card_entry_method', 'trpcardinfo.trpcentrymeth')
CARD_AUTH_TIME = chain('card_auth_datetime', 'trpcardinfo.trpcauthdatetime')

# Loyalty program, relative to ``trloyaltyprogram``.
LOYALTY_PROGRAM_NAME = chain('program_name', 'programid', 'programname')
LOYALTY_ACCOUNT = chain('account_number', 'trloaccount')
LOYALTY_AUTO_DISCOUNT = chain('auto_discount', 'trloautodisc')
LOYALTY_CUSTOMER_DISCOUNT = chain('customer_discount', 'trlocustdisc')
LOYALTY_ENTRY_METHOD = chain('entry_method', 'trloentrymeth')
LOYALTY_SUB_TOTAL = chain('sub_total', 'trlosubtotal')

# Line flags: the marker's presence under ``trlflags`` sets the column.
LINE_FLAG_MARKERS: tuple[tuple[str, str], ...] = (
    ('is_ebt_eligible', 'trlfstmp'),
    ('is_plu_item', 'trlplu'),
    ('has_plu_override', 'trlupdplucust'),
    ('has_department_override', 'trlupddepcust'),
    ('has_category_override', 'trlcatcust'),
    ('has_birthday_verification', 'trlbdayverif'),
    ('has_loyalty_line_discount', 'trlloylndisc'),
    ('has_mix_match_promotion', 'trlmatch'),
    ('has_special_discount', 'trlspecdisc'),
    ('is_fuel_only', 'trlfuelonly'),
    ('is_fuel_sale', 'trlfuelsale'),
    ('is_lottery_payout', 'trllotpayout'),
    ('is_line_void', 'trlvoid'),
)

# Transaction flags carried as attributes of the ``trans`` element.
TRANSACTION_FLAG_ATTRIBUTES: tuple[tuple[str, str], ...] = (
    ('is_suspended', 'suspended'),
    ('is_rollback', 'rollback'),
    ('was_recalled', 'recalled'),
    ('is_fuel_prepay', 'fuelprepay'),
    ('is_fuel_prepay_completion', 'fuelprepaycompletion'),
)


@dataclass
class JournalHeader:
    transaction_unique_id: str
    transaction_id: int | None
    store_id: str | None
    register_id: int | None
    transaction_type: str
    transaction_datetime: datetime | None
    cashier_session: int | None = None
    employee_id: int | None = None
    employee_name: str | None = None
    total_amount: Decimal | None = None
    total_tax_amount: Decimal | None = None
    total_no_tax: Decimal | None = None
    grand_totalizer: Decimal | None = None
    food_stamp_eligible_total: Decimal | None = None
    flags: dict[str, bool] = field(default_factory=dict)


@dataclass
class EventLogEntry:
    transaction_event_log_id: str
    event_type: str | None = None
    duration: int | None = None
    terminal_serial_number: str | None = None
    message_sequence: int | None = None
    transaction_serial_number: int | None = None
    global_unique_identifier: str | None = None
    customer_dob: str | None = None
    customer_age: int | None = None
    customer_dob_entry_method: str | None = None


@dataclass
class LineTax:
    category: str | None
    sys_id: int | None
    rate: Decimal | None
    amount: Decimal | None


@dataclass
class LinePromotion:
    promotion_id: int | None
    promotion_name: str | None
    promotion_type: str | None
    mix_group_id: int | None
    match_price: Decimal | None
    match_quantity: Decimal | None
    promo_amount: Decimal | None

    @property
    def promo_amount_per_unit(self) -> Decimal | None:
        if self.promo_amount is None:
            return None
        quantity = max(self.match_quantity or Decimal(0), Decimal(1))
        return (self.promo_amount / quantity).quantize(Decimal('0.01'))


@dataclass
class LineLoyaltyDiscount:
    discount_amount: Decimal | None
    quantity_applied: Decimal | None
    tax_credit: Decimal | None


@dataclass
class JournalLine:
    line_number: int
    upc_id: int | None
    upc_description: str | None
    department_id: int | None
    department_name: str | None
    department_type: str | None
    quantity: Decimal | None
    unit_price: Decimal | None
    line_total: Decimal | None
    line_type: str | None = None
    category_number: int | None = None
    category_name: str | None = None
    upc_entry_type: str | None = None
    upc_modifier: int | None = None
    network_code: int | None = None
    flags: dict[str, bool] = field(default_factory=dict)
    taxes: list[LineTax] = field(default_factory=list)
    promotions: list[LinePromotion] = field(default_factory=list)
    loyalty_discounts: list[LineLoyaltyDiscount] = field(default_factory=list)


@dataclass
class JournalPayment:
    mop_code: int | None
    mop_amount: Decimal | None
    payment_type: str | None
    authorization_code: str | None
    cc_name: str | None
    payment_entry_method: str | None
    payment_timestamp: datetime | None


@dataclass
class JournalLoyalty:
    program_name: str
    account_number: str | None
    auto_discount: Decimal | None
    customer_discount: Decimal | None
    entry_method: str | None
    sub_total: Decimal | None


@dataclass
class JournalRecord:
    header: JournalHeader
    lines: list[JournalLine] = field(default_factory=list)
    payments: list[JournalPayment] = field(default_factory=list)
    loyalty: JournalLoyalty | None = None
    event_log: EventLogEntry | None = None


def journal_records(document: dict[str, Node]) -> list[Node]:
    """Return the ``trans`` nodes under ``transset``; a missing container aborts the file."""
    transset = document.get('transset')
    if transset is None:
        raise FileStructureError('Invalid journal file structure: missing transset')
    return [node for node in as_list(get_path(transset, 'trans')) if node is not None]


def record_type(trans: Node) -> str:
    value = text(get_path(trans, 'type')) or HEADER_TYPE.resolve(get_path(trans, 'trheader')) or ''
    return value.strip().lower()


def is_allowed_type(transaction_type: str) -> bool:
    return transaction_type.strip().lower() in ALLOWED_TRANSACTION_TYPES


def _transaction_unique_id(header: Node, store_id: str | None, register_id: int | None, sequence: int | None) -> str:
    unique_id = UNIQUE_ID.resolve(header)
    if unique_id:
        return unique_id
    if store_id and sequence is not None:
        parts = [store_id, str(register_id or 0), str(sequence)]
        date = DATE.resolve(header)
        if date:
            parts.append(date)
        return '-'.join(parts)
    generated = uuid.uuid4().hex
    logger.warning('Journal record has no unique id, store or sequence; generated %s', generated)
    return generated


def extract_header(trans: Node) -> JournalHeader:
    header = get_path(trans, 'trheader')
    values = get_path(trans, 'trvalue')

    store_id = STORE.resolve(header)
    register_id = to_int(REGISTER.resolve(header), field=REGISTER.name)
    sequence = to_int(SEQUENCE.resolve(header), field=SEQUENCE.name)
    transaction_type = record_type(trans)

    flags = {column: flag_present(trans, attribute) for column, attribute in TRANSACTION_FLAG_ATTRIBUTES}
    flags['is_void'] = transaction_type == 'void' or flag_present(trans, 'void')

    return JournalHeader(
        transaction_unique_id=_transaction_unique_id(header, store_id, register_id, sequence),
        transaction_id=sequence,
        store_id=store_id,
        register_id=register_id,
        transaction_type=transaction_type,
        transaction_datetime=to_datetime(DATE.resolve(header), field=DATE.name),
        cashier_session=to_int(CASHIER_SESSION.resolve(header), field=CASHIER_SESSION.name),
        employee_id=to_int(EMPLOYEE_ID.resolve(header), field=EMPLOYEE_ID.name),
        employee_name=EMPLOYEE_NAME.resolve(header),
        total_amount=to_decimal(TOTAL_AMOUNT.resolve(values), field=TOTAL_AMOUNT.name),
        total_tax_amount=to_decimal(TOTAL_TAX.resolve(values), field=TOTAL_TAX.name),
        total_no_tax=to_decimal(TOTAL_NO_TAX.resolve(values), field=TOTAL_NO_TAX.name),
        grand_totalizer=to_decimal(GRAND_TOTALIZER.resolve(values), field=GRAND_TOTALIZER.name),
        food_stamp_eligible_total=to_decimal(FOOD_STAMP_TOTAL.resolve(values), field=FOOD_STAMP_TOTAL.name),
        flags=flags,
    )


def extract_event_log(trans: Node) -> EventLogEntry | None:
    """Key by terminal and message sequence, else by ticket sequence scoped to store and register."""
    header = get_path(trans, 'trheader')
    values = get_path(trans, 'trvalue')

    message_sequence = MESSAGE_SEQUENCE.resolve(header)
    sequence = SEQUENCE.resolve(header)
    terminal = TERMINAL_SERIAL.resolve(header) or REGISTER.resolve(header)

    if message_sequence:
        event_log_id = f'{terminal}-{message_sequence}' if terminal else message_sequence
    elif sequence:
        scope = [part for part in (STORE.resolve(header), REGISTER.resolve(header)) if part]
        event_log_id = '-'.join(['seq', *scope, sequence])
    else:
        return None

    return EventLogEntry(
        transaction_event_log_id=event_log_id,
        event_type=EVENT_TYPE.resolve(header),
        duration=to_int(DURATION.resolve(header), field=DURATION.name),
        terminal_serial_number=terminal,
        message_sequence=to_int(message_sequence, field=MESSAGE_SEQUENCE.name),
        transaction_serial_number=to_int(TRANSACTION_SERIAL.resolve(header), field=TRANSACTION_SERIAL.name),
        global_unique_identifier=UNIQUE_ID.resolve(header),
        customer_dob=CUSTOMER_DOB.resolve(values),
        customer_age=to_int(CUSTOMER_AGE.resolve(values), field=CUSTOMER_AGE.name),
        customer_dob_entry_method=CUSTOMER_DOB_ENTRY.resolve(values),
    )


def _extract_taxes(line: Node) -> list[LineTax]:
    taxes = []
    for group in as_list(get_path(line, 'trltaxes')):
        rates = as_list(get_path(group, 'trlrate'))
        for index, tax in enumerate(as_list(get_path(group, 'trltax'))):
            rate = rates[index] if index < len(rates) else None
            taxes.append(
                LineTax(
                    category=text(get_path(tax, 'cat')),
                    sys_id=to_int(text(get_path(tax, 'sysid')), field='tax_sys_id'),
                    rate=to_decimal(text(rate), places=4, field='tax_rate'),
                    amount=to_decimal(text(tax), field='tax_amount'),
                )
            )
    return taxes


def _extract_promotions(line: Node) -> list[LinePromotion]:
    promotions = []
    for match in as_list(get_path(line, 'trlmixmatches', 'trlmatchline')):
        promotions.append(
            LinePromotion(
                promotion_id=to_int(PROMOTION_ID.resolve(match), field=PROMOTION_ID.name),
                promotion_name=PROMOTION_NAME.resolve(match),
                promotion_type=PROMOTION_TYPE.resolve(match),
                mix_group_id=to_int(MIX_GROUP.resolve(match), field=MIX_GROUP.name),
                match_price=to_decimal(MATCH_PRICE.resolve(match), field=MATCH_PRICE.name),
                match_quantity=to_decimal(MATCH_QUANTITY.resolve(match), places=3, field=MATCH_QUANTITY.name),
                promo_amount=to_decimal(PROMO_AMOUNT.resolve(match), field=PROMO_AMOUNT.name),
            )
        )
    return promotions


def _extract_loyalty_discounts(line: Node) -> list[LineLoyaltyDiscount]:
    return [
        LineLoyaltyDiscount(
            discount_amount=to_decimal(text(get_path(item, 'discamt')), field='loyalty_discount_amount'),
            quantity_applied=to_decimal(text(get_path(item, 'qty')), places=3, field='loyalty_quantity'),
            tax_credit=to_decimal(text(get_path(item, 'taxcred')), field='loyalty_tax_credit'),
        )
        for item in as_list(get_path(line, 'trlolnitemdisc'))
    ]


def extract_line(line: Node, line_number: int) -> JournalLine:
    department_type = DEPARTMENT_TYPE.resolve(line)
    department_type = DEPARTMENT_TYPE_ALIASES.get((department_type or '').lower(), department_type)
    flags_node = get_path(line, 'trlflags')

    return JournalLine(
        line_number=line_number,
        upc_id=to_upc(LINE_UPC.resolve(line), field=LINE_UPC.name),
        upc_description=LINE_DESCRIPTION.resolve(line),
        department_id=to_int(DEPARTMENT_NUMBER.resolve(line), field=DEPARTMENT_NUMBER.name),
        department_name=DEPARTMENT_NAME.resolve(line),
        department_type=department_type,
        quantity=to_decimal(LINE_QUANTITY.resolve(line), places=3, field=LINE_QUANTITY.name),
        unit_price=to_decimal(LINE_UNIT_PRICE.resolve(line), field=LINE_UNIT_PRICE.name),
        line_total=to_decimal(LINE_TOTAL.resolve(line), field=LINE_TOTAL.name),
        line_type=LINE_TYPE.resolve(line),
        category_number=to_int(CATEGORY_NUMBER.resolve(line), field=CATEGORY_NUMBER.name),
        category_name=CATEGORY_NAME.resolve(line),
        upc_entry_type=UPC_ENTRY_TYPE.resolve(line),
        upc_modifier=to_int(UPC_MODIFIER.resolve(line), field=UPC_MODIFIER.name),
        network_code=to_int(NETWORK_CODE.resolve(line), field=NETWORK_CODE.name),
        flags={column: has_field(flags_node, marker) for column, marker in LINE_FLAG_MARKERS},
        taxes=_extract_taxes(line),
        promotions=_extract_promotions(line),
        loyalty_discounts=_extract_loyalty_discounts(line),
    )


def _is_cash(mop_code: int | None, payment_type: str | None) -> bool:
    return mop_code == CASH_MOP_CODE or (payment_type or '').lower() == 'cash'


def extract_payment(payline: Node, header_datetime: datetime | None) -> JournalPayment:
    mop_code = to_int(MOP_CODE.resolve(payline), field=MOP_CODE.name)
    payment_type = PAYMENT_TYPE.resolve(payline)

    if _is_cash(mop_code, payment_type):
        entry_method = PAYCODE_NAME.resolve(payline)
        timestamp = header_datetime
    else:
        entry_method = CARD_ENTRY_METHOD.resolve(payline)
        timestamp = to_datetime(CARD_AUTH_TIME.resolve(payline), field=CARD_AUTH_TIME.name)

    return JournalPayment(
        mop_code=mop_code,
        mop_amount=to_decimal(MOP_AMOUNT.resolve(payline), field=MOP_AMOUNT.name),
        payment_type=payment_type,
        authorization_code=AUTH_CODE.resolve(payline),
        cc_name=CARD_NAME.resolve(payline),
        payment_entry_method=entry_method,
        payment_timestamp=timestamp,
    )


def extract_loyalty(trans: Node) -> JournalLoyalty | None:
    programs = as_list(get_path(trans, 'trloyalty', 'trloyaltyprogram'))
    if not programs:
        return None
    if len(programs) > 1:
        logger.debug('Journal record has %d loyalty programs; keeping the first', len(programs))
    program = programs[0]
    return JournalLoyalty(
        program_name=LOYALTY_PROGRAM_NAME.resolve(program) or DEFAULT_LOYALTY_PROGRAM,
        account_number=LOYALTY_ACCOUNT.resolve(program),
        auto_discount=to_decimal(LOYALTY_AUTO_DISCOUNT.resolve(program), field=LOYALTY_AUTO_DISCOUNT.name),
        customer_discount=to_decimal(
            LOYALTY_CUSTOMER_DISCOUNT.resolve(program), field=LOYALTY_CUSTOMER_DISCOUNT.name
        ),
        entry_method=LOYALTY_ENTRY_METHOD.resolve(program),
        sub_total=to_decimal(LOYALTY_SUB_TOTAL.resolve(program), field=LOYALTY_SUB_TOTAL.name),
    )


def extract_journal_record(trans: Node) -> JournalRecord:
    header = extract_header(trans)
    lines = [
        extract_line(line, number)
        for number, line in enumerate(as_list(get_path(trans, 'trlines', 'trline')), start=1)
    ]
    payments = [
        extract_payment(payline, header.transaction_datetime)
        for payline in as_list(get_path(trans, 'trpaylines', 'trpayline'))
    ]
    return JournalRecord(
        header=header,
        lines=lines,
        payments=payments,
        loyalty=extract_loyalty(trans),
        event_log=extract_event_log(trans),
    )


def normalize_journal(document: dict[str, Node]) -> Iterator[JournalRecord]:
    """Yield every record of an allowed type, in source order."""
    for trans in journal_records(document):
        transaction_type = record_type(trans)
        if not is_allowed_type(transaction_type):
            logger.debug('Skipping journal record of type %r', transaction_type)
            continue
        yield extract_journal_record(trans)


def record_label(index: int, trans: Node) -> str:
    header = get_path(trans, 'trheader')
    sequence = SEQUENCE.resolve(header)
    return f'trans #{index} (seq {sequence})' if sequence else f'trans #{index}'

