from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base
from records import (
    AccountType,
    BudgetStatus,
    ReconciliationStatus,
    RecurrenceRule,
    TransactionStatus,
    TransactionType,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


Money = Numeric(12, 2)

RECURRENCE_RULE_ENUM = SAEnum(
    RecurrenceRule,
    name="recurrencerule",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class Organization(Base, TimestampMixin):
    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    fiscal_start_month: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    categories: Mapped[list["Category"]] = relationship(
        "Category", back_populates="organization"
    )
    accounts: Mapped[list["Account"]] = relationship(
        "Account", back_populates="organization"
    )
    budgets: Mapped[list["Budget"]] = relationship(
        "Budget", back_populates="organization"
    )

    __table_args__ = (
        CheckConstraint(
            "fiscal_start_month BETWEEN 1 AND 12", name="ck_org_fiscal_start_month"
        ),
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category_type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    parent_id: Mapped[Optional[int]] = mapped_column(ForeignKey("categories.id"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="categories"
    )
    parent: Mapped[Optional["Category"]] = relationship(
        "Category", remote_side=[id], back_populates="children"
    )
    children: Mapped[list["Category"]] = relationship(
        "Category", back_populates="parent"
    )

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "parent_id", "name", name="uq_category_org_parent_name"
        ),
        Index("ix_categories_org", "organization_id"),
    )


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType), nullable=False, default=AccountType.checking
    )
    opening_balance: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=Decimal("0")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="accounts"
    )
    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="account"
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus), nullable=False, default=TransactionStatus.uncleared
    )
    cleared_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    vendor: Mapped[Optional[str]] = mapped_column(String(255))
    check_number: Mapped[Optional[str]] = mapped_column(String(50))
    template_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("recurring_templates.id")
    )

    account: Mapped["Account"] = relationship("Account", back_populates="transactions")
    line_items: Mapped[list["TransactionLineItem"]] = relationship(
        "TransactionLineItem",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionLineItem.id",
    )
    template: Mapped[Optional["RecurringTemplate"]] = relationship(
        "RecurringTemplate", back_populates="transactions"
    )

    __table_args__ = (
        Index(
            "ix_transactions_account_date_created",
            "account_id",
            "transaction_date",
            "created_at",
        ),
        Index("ix_transactions_account_status", "account_id", "status"),
        Index("ix_transactions_template_date", "template_id", "transaction_date"),
        CheckConstraint("amount >= 0", name="ck_transactions_amount_positive"),
    )


class TransactionLineItem(Base, TimestampMixin):
    __tablename__ = "transaction_line_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"), nullable=False
    )
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    memo: Mapped[Optional[str]] = mapped_column(Text)

    transaction: Mapped["Transaction"] = relationship(
        "Transaction", back_populates="line_items"
    )
    category: Mapped["Category"] = relationship("Category")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_line_items_amount_positive"),
        Index("ix_line_items_category", "category_id"),
    )


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[BudgetStatus] = mapped_column(
        SAEnum(BudgetStatus), nullable=False, default=BudgetStatus.draft
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="budgets"
    )
    line_items: Mapped[list["BudgetLineItem"]] = relationship(
        "BudgetLineItem",
        back_populates="budget",
        cascade="all, delete-orphan",
        order_by="BudgetLineItem.id",
    )

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_budget_date_order"),
    )


class BudgetLineItem(Base, TimestampMixin):
    __tablename__ = "budget_line_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    budget_id: Mapped[int] = mapped_column(ForeignKey("budgets.id"), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    budget: Mapped["Budget"] = relationship("Budget", back_populates="line_items")
    category: Mapped["Category"] = relationship("Category")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_budget_line_amount_positive"),
        UniqueConstraint("budget_id", "category_id", name="uq_budget_line_category"),
    )


class RecurringTemplate(Base, TimestampMixin):
    __tablename__ = "recurring_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    vendor: Mapped[Optional[str]] = mapped_column(String(255))
    check_number: Mapped[Optional[str]] = mapped_column(String(50))
    recurrence_rule: Mapped[RecurrenceRule] = mapped_column(
        RECURRENCE_RULE_ENUM, nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    next_occurrence_date: Mapped[Optional[date]] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    account: Mapped["Account"] = relationship("Account")
    line_items: Mapped[list["RecurringTemplateLineItem"]] = relationship(
        "RecurringTemplateLineItem",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="RecurringTemplateLineItem.id",
    )
    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="template"
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_template_amount_positive"),
        Index("ix_templates_active_next", "is_active", "next_occurrence_date"),
    )


class RecurringTemplateLineItem(Base, TimestampMixin):
    __tablename__ = "recurring_template_line_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    template_id: Mapped[int] = mapped_column(
        ForeignKey("recurring_templates.id"), nullable=False
    )
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    memo: Mapped[Optional[str]] = mapped_column(Text)

    template: Mapped["RecurringTemplate"] = relationship(
        "RecurringTemplate", back_populates="line_items"
    )


class ReconciliationSession(Base, TimestampMixin):
    __tablename__ = "reconciliation_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    statement_date: Mapped[date] = mapped_column(Date, nullable=False)
    statement_ending_balance: Mapped[Decimal] = mapped_column(Money, nullable=False)
    starting_balance: Mapped[Decimal] = mapped_column(Money, nullable=False)
    status: Mapped[ReconciliationStatus] = mapped_column(
        SAEnum(ReconciliationStatus),
        nullable=False,
        default=ReconciliationStatus.in_progress,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    account: Mapped["Account"] = relationship("Account")

    __table_args__ = (
        Index("ix_reconciliation_account_status", "account_id", "status"),
    )
