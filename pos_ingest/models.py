from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    false,
    func,
    true,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
SurrogateKey = BigInteger().with_variant(Integer(), 'sqlite')


class Base(DeclarativeBase):
    pass


class Store(Base):
    __tablename__ = 'stores'

    store_id: Mapped[str] = mapped_column(Text, primary_key=True)
    store_name: Mapped[str | None] = mapped_column(Text)
    address: Mapped[str | None] = mapped_column(Text)
    city: Mapped[str | None] = mapped_column(Text)
    state: Mapped[str | None] = mapped_column(Text)
    zip_code: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Department(Base):
    __tablename__ = 'departments'

    department_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    department_name: Mapped[str | None] = mapped_column(Text)
    department_type: Mapped[str | None] = mapped_column(Text)
    is_fuel_department: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    is_car_wash_department: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    is_lottery_department: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Product(Base):
    __tablename__ = 'pricebook'

    upc_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    department_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('departments.department_id'))
    upc_description: Mapped[str | None] = mapped_column(Text)
    cost: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    retail_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    cost_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    retail_price_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    upc_source: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    modified_by: Mapped[str | None] = mapped_column(Text)
    modified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class Terminal(Base):
    __tablename__ = 'pos_device_terminals'
    __table_args__ = (
        UniqueConstraint('store_id', 'register_id', name='pos_device_terminals_store_register_uniq'),
    )

    id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True)
    store_id: Mapped[str] = mapped_column(Text, ForeignKey('stores.store_id'), nullable=False)
    register_id: Mapped[int] = mapped_column(Integer, nullable=False)
    device_type: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class TransactionEventLog(Base):
    __tablename__ = 'transaction_event_logs'

    transaction_event_log_id: Mapped[str] = mapped_column(Text, primary_key=True)
    event_type: Mapped[str | None] = mapped_column(Text)
    duration: Mapped[int | None] = mapped_column(Integer)
    terminal_serial_number: Mapped[str | None] = mapped_column(Text)
    message_sequence: Mapped[int | None] = mapped_column(BigInteger)
    transaction_serial_number: Mapped[int | None] = mapped_column(BigInteger)
    global_unique_identifier: Mapped[str | None] = mapped_column(Text)
    customer_dob: Mapped[str | None] = mapped_column(Text)
    customer_age: Mapped[int | None] = mapped_column(Integer)
    customer_dob_entry_method: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class SalesTransaction(Base):
    __tablename__ = 'sales_transactions'
    __table_args__ = (
        Index('sales_transactions_store_idx', 'store_id'),
        Index('sales_transactions_datetime_idx', 'transaction_datetime'),
        Index('sales_transactions_transaction_id_idx', 'transaction_id'),
    )

    sales_transaction_unique_id: Mapped[str] = mapped_column(Text, primary_key=True)
    transaction_id: Mapped[int | None] = mapped_column(BigInteger)
    store_id: Mapped[str | None] = mapped_column(Text, ForeignKey('stores.store_id'))
    terminal_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('pos_device_terminals.id'))
    register_id: Mapped[int | None] = mapped_column(Integer)
    transaction_event_log_id: Mapped[str | None] = mapped_column(
        Text, ForeignKey('transaction_event_logs.transaction_event_log_id')
    )
    cashier_session: Mapped[int | None] = mapped_column(Integer)
    employee_id: Mapped[int | None] = mapped_column(BigInteger)
    employee_name: Mapped[str | None] = mapped_column(Text)
    food_stamp_eligible_total: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    grand_totalizer: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    total_no_tax: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    total_tax_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    transaction_datetime: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    transaction_type: Mapped[str | None] = mapped_column(Text)
    is_void: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    is_suspended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    is_rollback: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    was_recalled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    is_fuel_prepay: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    is_fuel_prepay_completion: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    source_file: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class TransactionLineItem(Base):
    __tablename__ = 'transaction_line_items'
    __table_args__ = (
        Index('transaction_line_items_transaction_idx', 'sales_transaction_unique_id'),
        Index('transaction_line_items_upc_idx', 'upc_id'),
    )

    id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True)
    sales_transaction_unique_id: Mapped[str] = mapped_column(
        Text, ForeignKey('sales_transactions.sales_transaction_unique_id', ondelete='CASCADE'), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    upc_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('pricebook.upc_id'))
    department_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('departments.department_id'))
    department_name: Mapped[str | None] = mapped_column(Text)
    department_type: Mapped[str | None] = mapped_column(Text)
    category_number: Mapped[int | None] = mapped_column(Integer)
    category_name: Mapped[str | None] = mapped_column(Text)
    upc_description: Mapped[str | None] = mapped_column(Text)
    upc_entry_type: Mapped[str | None] = mapped_column(Text)
    upc_modifier: Mapped[int | None] = mapped_column(Integer)
    network_code: Mapped[int | None] = mapped_column(Integer)
    transaction_line_type: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(12, 3))
    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    line_total: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    is_ebt_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    is_plu_item: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    has_plu_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    has_department_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    has_category_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    has_birthday_verification: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    has_loyalty_line_discount: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    has_mix_match_promotion: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    has_special_discount: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    is_fuel_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    is_fuel_sale: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    is_lottery_payout: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    is_line_void: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class TransactionLineItemTax(Base):
    __tablename__ = 'transaction_line_item_taxes'

    id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True)
    line_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('transaction_line_items.id', ondelete='CASCADE'), nullable=False
    )
    sales_transaction_unique_id: Mapped[str] = mapped_column(
        Text, ForeignKey('sales_transactions.sales_transaction_unique_id', ondelete='CASCADE'), nullable=False
    )
    tax_line_category: Mapped[str | None] = mapped_column(Text)
    tax_line_sys_id: Mapped[int | None] = mapped_column(Integer)
    tax_line_rate: Mapped[Decimal | None] = mapped_column(Numeric(9, 4))
    tax_line_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))


class Payment(Base):
    __tablename__ = 'payments'
    __table_args__ = (Index('payments_transaction_idx', 'sales_transaction_unique_id'),)

    id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True)
    sales_transaction_unique_id: Mapped[str] = mapped_column(
        Text, ForeignKey('sales_transactions.sales_transaction_unique_id', ondelete='CASCADE'), nullable=False
    )
    mop_code: Mapped[int | None] = mapped_column(Integer)
    mop_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    payment_type: Mapped[str | None] = mapped_column(Text)
    authorization_code: Mapped[str | None] = mapped_column(Text)
    cc_name: Mapped[str | None] = mapped_column(Text)
    payment_entry_method: Mapped[str | None] = mapped_column(Text)
    payment_timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class PromotionProgram(Base):
    __tablename__ = 'promotions_program_details'

    promotion_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    promotion_name: Mapped[str | None] = mapped_column(Text)
    promo_desc: Mapped[str | None] = mapped_column(Text)
    promo_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    promo_percent: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))
    promotion_discount_method: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PromotionLineItem(Base):
    __tablename__ = 'promotions_line_items'

    id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True)
    line_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('transaction_line_items.id', ondelete='CASCADE'), nullable=False
    )
    promotion_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('promotions_program_details.promotion_id'))
    promotion_name: Mapped[str | None] = mapped_column(Text)
    promotion_type: Mapped[str | None] = mapped_column(Text)
    mix_group_id: Mapped[int | None] = mapped_column(BigInteger)
    match_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    match_quantity: Mapped[Decimal | None] = mapped_column(Numeric(12, 3))
    promo_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    promo_amount_per_unit: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))


class PromotionUPCLinkage(Base):
    __tablename__ = 'promotion_upc_linkages'
    __table_args__ = (
        UniqueConstraint('promotion_id', 'upc_id', name='promotion_upc_linkages_promotion_upc_uniq'),
    )

    id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True)
    promotion_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('promotions_program_details.promotion_id'), nullable=False
    )
    upc_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('pricebook.upc_id'), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class RebateProgram(Base):
    __tablename__ = 'rebate_program_details'

    rebate_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    rebate_name: Mapped[str | None] = mapped_column(Text)
    rebate_description: Mapped[str | None] = mapped_column(Text)
    rebate_type: Mapped[str | None] = mapped_column(Text)
    rebate_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    rebate_percentage: Mapped[Decimal | None] = mapped_column(Numeric(7, 4))
    rebate_code: Mapped[str | None] = mapped_column(Text)
    vendor_id: Mapped[str | None] = mapped_column(Text)
    product_category: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class RebateUPCLinkage(Base):
    __tablename__ = 'rebate_upc_linkages'
    __table_args__ = (
        UniqueConstraint('rebate_id', 'upc_id', name='rebate_upc_linkages_rebate_upc_uniq'),
    )

    id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True)
    rebate_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('rebate_program_details.rebate_id'), nullable=False)
    upc_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('pricebook.upc_id'), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class TransactionLoyalty(Base):
    __tablename__ = 'transaction_loyalty'

    id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True)
    sales_transaction_unique_id: Mapped[str] = mapped_column(
        Text, ForeignKey('sales_transactions.sales_transaction_unique_id', ondelete='CASCADE'), nullable=False
    )
    loyalty_account_number: Mapped[str | None] = mapped_column(Text)
    loyalty_auto_discount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    loyalty_customer_discount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    loyalty_entry_method: Mapped[str | None] = mapped_column(Text)
    loyalty_sub_total: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    loyalty_program_name: Mapped[str | None] = mapped_column(Text)


class LoyaltyLineItem(Base):
    __tablename__ = 'loyalty_line_items'

    id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True)
    line_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('transaction_line_items.id', ondelete='CASCADE'), nullable=False
    )
    sales_transaction_unique_id: Mapped[str] = mapped_column(
        Text, ForeignKey('sales_transactions.sales_transaction_unique_id', ondelete='CASCADE'), nullable=False
    )
    discount_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    quantity_applied: Mapped[Decimal | None] = mapped_column(Numeric(12, 3))
    tax_credit: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
