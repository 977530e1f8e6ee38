from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Hashable, Optional


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class TransactionStatus(str, Enum):
    uncleared = "uncleared"
    cleared = "cleared"
    reconciled = "reconciled"


SETTLED_STATUSES = frozenset({TransactionStatus.cleared, TransactionStatus.reconciled})


class BudgetStatus(str, Enum):
    draft = "draft"
    active = "active"
    closed = "closed"


class AccountType(str, Enum):
    checking = "checking"
    savings = "savings"
    credit_card = "credit_card"
    cash = "cash"
    other = "other"


class RecurrenceRule(str, Enum):
    weekly = "weekly"
    biweekly = "bi-weekly"
    monthly = "monthly"
    quarterly = "quarterly"
    annually = "annually"


class ReconciliationStatus(str, Enum):
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


ZERO = Decimal("0")


@dataclass(frozen=True)
class LineItemRecord:
    category_id: Hashable
    amount: Decimal
    memo: Optional[str] = None


@dataclass(frozen=True)
class TransactionRecord:
    id: Hashable
    account_id: Hashable
    transaction_date: date
    amount: Decimal
    transaction_type: TransactionType
    status: TransactionStatus = TransactionStatus.uncleared
    created_at: Optional[datetime] = None
    cleared_at: Optional[datetime] = None
    line_items: tuple[LineItemRecord, ...] = ()


@dataclass(frozen=True)
class AccountRecord:
    id: Hashable
    name: str
    opening_balance: Optional[Decimal] = None
    account_type: AccountType = AccountType.checking


@dataclass(frozen=True)
class BudgetLineRecord:
    category_id: Hashable
    amount: Decimal
    notes: Optional[str] = None


@dataclass(frozen=True)
class BudgetRecord:
    id: Hashable
    name: str
    start_date: date
    end_date: date
    status: BudgetStatus = BudgetStatus.draft
    line_items: tuple[BudgetLineRecord, ...] = field(default_factory=tuple)
