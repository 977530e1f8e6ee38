from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Hashable, Iterable, Optional

from balances import StatusNet
from categories import CategoryIndex
from records import ZERO, TransactionStatus, TransactionType


ROOT_CHILD_NAME = "(root)"
OTHER_PARENT_NAME = "Other"


@dataclass(frozen=True)
class ReportLineItem:
    category_label: str
    amount: Decimal
    memo: Optional[str] = None


@dataclass(frozen=True)
class ReportTransaction:
    id: Hashable
    transaction_date: date
    transaction_type: TransactionType
    amount: Decimal
    status: TransactionStatus
    account_name: str = "Unknown"
    description: str = ""
    vendor: Optional[str] = None
    check_number: Optional[str] = None
    created_at: Optional[datetime] = None
    cleared_at: Optional[datetime] = None
    line_items: tuple[ReportLineItem, ...] = ()
    running_balance: Optional[Decimal] = None


@dataclass(frozen=True)
class CategoryTotal:
    name: str
    total: Decimal


@dataclass(frozen=True)
class CategorySummary:
    parent_name: str
    children: list[CategoryTotal]
    subtotal: Decimal


@dataclass(frozen=True)
class ReportSummary:
    total_income: Decimal
    total_expenses: Decimal
    net_change: Decimal
    balance_by_status: StatusNet
    income_by_category: list[CategorySummary]
    expenses_by_category: list[CategorySummary]


@dataclass(frozen=True)
class AccountBalanceSummary:
    account_name: str
    starting_balance: Decimal
    ending_balance: Decimal


@dataclass(frozen=True)
class ReportData:
    organization_name: str
    start_date: date
    end_date: date
    generated_at: datetime
    transactions: list[ReportTransaction]
    summary: ReportSummary
    fiscal_year_label: Optional[str] = None
    account_balances: Optional[list[AccountBalanceSummary]] = field(default=None)


def _alphabetical(name: str) -> tuple[str, str]:
    return (name.casefold(), name)


def build_category_summaries(
    amounts_by_category_id: dict[Hashable, Decimal], index: CategoryIndex
) -> list[CategorySummary]:
    """Group per-category totals under their parent.

    Roots appear as their own group with a single ``(root)`` child.
    """
    groups: dict[str, dict[str, Decimal]] = {}
    for category_id, amount in amounts_by_category_id.items():
        category = index.get(category_id)
        parent = index.parent_of(category_id)
        if parent is not None:
            parent_name = parent.name
            child_name = category.name
        else:
            parent_name = category.name if category else OTHER_PARENT_NAME
            child_name = ROOT_CHILD_NAME
        children = groups.setdefault(parent_name, {})
        children[child_name] = children.get(child_name, ZERO) + amount

    summaries = []
    for parent_name in sorted(groups, key=_alphabetical):
        children = [
            CategoryTotal(name, total)
            for name, total in sorted(
                groups[parent_name].items(), key=lambda item: _alphabetical(item[0])
            )
        ]
        subtotal = sum((child.total for child in children), ZERO)
        summaries.append(CategorySummary(parent_name, children, subtotal))
    return summaries


def compute_summary(
    transactions: Iterable[ReportTransaction], index: CategoryIndex
) -> ReportSummary:
    total_income = ZERO
    total_expenses = ZERO
    balance_by_status = StatusNet()
    income_by_category: dict[Hashable, Decimal] = {}
    expense_by_category: dict[Hashable, Decimal] = {}

    for txn in transactions:
        if txn.transaction_type == TransactionType.income:
            total_income += txn.amount
            balance_by_status.add(txn.status, txn.amount)
            bucket = income_by_category
        else:
            total_expenses += txn.amount
            balance_by_status.add(txn.status, -txn.amount)
            bucket = expense_by_category

        for item in txn.line_items:
            category_id = index.find_id_by_label(item.category_label)
            bucket[category_id] = bucket.get(category_id, ZERO) + item.amount

    return ReportSummary(
        total_income=total_income,
        total_expenses=total_expenses,
        net_change=total_income - total_expenses,
        balance_by_status=balance_by_status,
        income_by_category=build_category_summaries(income_by_category, index),
        expenses_by_category=build_category_summaries(expense_by_category, index),
    )
