"""Budget-versus-actual computation.

Positive variance is always favorable: more income than planned, or less
expense than planned. Actuals posted to an active child category roll up into
a budget line on its parent.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Hashable, Iterable, Optional, Sequence

from categories import CategoryIndex
from records import ZERO, BudgetRecord, BudgetStatus, TransactionRecord, TransactionType


class LineSource(str, Enum):
    budgeted = "budgeted"
    unbudgeted_actual = "unbudgeted_actual"


@dataclass(frozen=True)
class BudgetReportLine:
    category_name: str
    category_type: TransactionType
    budgeted: Decimal
    actual: Decimal
    variance: Decimal
    variance_percent: Optional[Decimal]
    category_id: Optional[Hashable] = None
    source: LineSource = LineSource.budgeted


@dataclass(frozen=True)
class SectionTotals:
    budgeted: Decimal
    actual: Decimal
    variance: Decimal
    variance_percent: Optional[Decimal]


@dataclass(frozen=True)
class BudgetTotals:
    budgeted_income: Decimal
    actual_income: Decimal
    budgeted_expenses: Decimal
    actual_expenses: Decimal
    net_budget: Decimal
    net_actual: Decimal


@dataclass(frozen=True)
class UnbudgetedActual:
    category_id: Hashable
    category_name: str
    category_type: TransactionType
    actual: Decimal


@dataclass(frozen=True)
class CombinedBudgetLine:
    category_name: str
    income_budgeted: Decimal
    income_actual: Decimal
    expense_budgeted: Decimal
    expense_actual: Decimal
    net_budgeted: Decimal
    net_actual: Decimal


@dataclass(frozen=True)
class CombinedBudgetResult:
    combined_lines: list[CombinedBudgetLine]
    unmatched_income_lines: list[BudgetReportLine]
    unmatched_expense_lines: list[BudgetReportLine]


@dataclass(frozen=True)
class BudgetReport:
    budget_name: str
    start_date: date
    end_date: date
    status: BudgetStatus
    income_lines: list[BudgetReportLine]
    expense_lines: list[BudgetReportLine]
    income_totals: SectionTotals
    expense_totals: SectionTotals
    totals: BudgetTotals
    combined_lines: list[CombinedBudgetLine] = field(default_factory=list)
    unbudgeted_actuals: list[UnbudgetedActual] = field(default_factory=list)


def compute_variance(
    category_type: TransactionType, budgeted: Decimal, actual: Decimal
) -> Decimal:
    if category_type == TransactionType.income:
        return actual - budgeted
    return budgeted - actual


def compute_variance_percent(
    budgeted: Optional[Decimal], actual: Decimal
) -> Optional[Decimal]:
    if not budgeted or budgeted <= 0:
        return None
    return actual / budgeted * 100


def actuals_by_category(
    transactions: Iterable[TransactionRecord], start: date, end: date
) -> dict[Hashable, Decimal]:
    actuals: dict[Hashable, Decimal] = {}
    for txn in transactions:
        if not start <= txn.transaction_date <= end:
            continue
        for item in txn.line_items:
            actuals[item.category_id] = actuals.get(item.category_id, ZERO) + item.amount
    return actuals


def rollup_actual(
    category_id: Hashable, actuals: dict[Hashable, Decimal], index: CategoryIndex
) -> Decimal:
    total = actuals.get(category_id, ZERO)
    for child_id in index.children_of(category_id):
        total += actuals.get(child_id, ZERO)
    return total


def budget_line(
    category_id: Hashable,
    budgeted: Decimal,
    actuals: dict[Hashable, Decimal],
    index: CategoryIndex,
) -> BudgetReportLine:
    category_type = index.category_type(category_id)
    actual = rollup_actual(category_id, actuals, index)
    return BudgetReportLine(
        category_name=index.resolve_label(category_id),
        category_type=category_type,
        budgeted=budgeted,
        actual=actual,
        variance=compute_variance(category_type, budgeted, actual),
        variance_percent=compute_variance_percent(budgeted, actual),
        category_id=category_id,
    )


def section_totals(
    lines: Iterable[BudgetReportLine], category_type: TransactionType
) -> SectionTotals:
    budgeted = ZERO
    actual = ZERO
    for line in lines:
        budgeted += line.budgeted
        actual += line.actual
    return SectionTotals(
        budgeted=budgeted,
        actual=actual,
        variance=compute_variance(category_type, budgeted, actual),
        variance_percent=compute_variance_percent(budgeted, actual),
    )


def find_unbudgeted_actuals(
    actuals: dict[Hashable, Decimal],
    budgeted_ids: set[Hashable],
    index: CategoryIndex,
) -> list[UnbudgetedActual]:
    return [
        UnbudgetedActual(
            category_id=category_id,
            category_name=index.resolve_label(category_id),
            category_type=index.category_type(category_id),
            actual=actual,
        )
        for category_id, actual in actuals.items()
        if category_id not in budgeted_ids and actual > 0
    ]


def synthetic_line(unbudgeted: UnbudgetedActual) -> BudgetReportLine:
    return BudgetReportLine(
        category_name=unbudgeted.category_name,
        category_type=unbudgeted.category_type,
        budgeted=ZERO,
        actual=unbudgeted.actual,
        variance=compute_variance(unbudgeted.category_type, ZERO, unbudgeted.actual),
        variance_percent=None,
        category_id=unbudgeted.category_id,
        source=LineSource.unbudgeted_actual,
    )


def _group_by_name(
    lines: Iterable[BudgetReportLine],
) -> dict[str, tuple[Decimal, Decimal]]:
    grouped: dict[str, tuple[Decimal, Decimal]] = {}
    for line in lines:
        budgeted, actual = grouped.get(line.category_name, (ZERO, ZERO))
        grouped[line.category_name] = (budgeted + line.budgeted, actual + line.actual)
    return grouped


def build_combined_budget_lines(
    income_lines: Sequence[BudgetReportLine],
    expense_lines: Sequence[BudgetReportLine],
) -> CombinedBudgetResult:
    """Net income and expense rows that share a display name.

    Duplicate names are summed within each side before matching. Unmatched rows
    are passed through as given, without grouping.
    """
    income_by_name = _group_by_name(income_lines)
    expense_by_name = _group_by_name(expense_lines)

    combined: list[CombinedBudgetLine] = []
    matched: set[str] = set()
    for name, (income_budgeted, income_actual) in income_by_name.items():
        if name not in expense_by_name:
            continue
        expense_budgeted, expense_actual = expense_by_name[name]
        matched.add(name)
        combined.append(
            CombinedBudgetLine(
                category_name=name,
                income_budgeted=income_budgeted,
                income_actual=income_actual,
                expense_budgeted=expense_budgeted,
                expense_actual=expense_actual,
                net_budgeted=income_budgeted - expense_budgeted,
                net_actual=income_actual - expense_actual,
            )
        )

    return CombinedBudgetResult(
        combined_lines=combined,
        unmatched_income_lines=[
            line for line in income_lines if line.category_name not in matched
        ],
        unmatched_expense_lines=[
            line for line in expense_lines if line.category_name not in matched
        ],
    )


def _of_type(
    lines: Iterable[BudgetReportLine], category_type: TransactionType
) -> list[BudgetReportLine]:
    return [line for line in lines if line.category_type == category_type]


def _from_source(
    lines: Iterable[BudgetReportLine], source: LineSource
) -> list[BudgetReportLine]:
    return [line for line in lines if line.source == source]


def build_budget_report(
    budget: BudgetRecord,
    index: CategoryIndex,
    transactions: Iterable[TransactionRecord],
) -> BudgetReport:
    actuals = actuals_by_category(transactions, budget.start_date, budget.end_date)

    lines = [
        budget_line(item.category_id, item.amount, actuals, index)
        for item in budget.line_items
    ]
    all_income = _of_type(lines, TransactionType.income)
    all_expense = _of_type(lines, TransactionType.expense)

    budgeted_ids = index.budgeted_category_ids(
        item.category_id for item in budget.line_items
    )
    unbudgeted = find_unbudgeted_actuals(actuals, budgeted_ids, index)
    synthetic = [synthetic_line(u) for u in unbudgeted]

    result = build_combined_budget_lines(
        all_income + _of_type(synthetic, TransactionType.income),
        all_expense + _of_type(synthetic, TransactionType.expense),
    )

    # Synthetic rows that found no partner are reported as unbudgeted actuals.
    unmatched_ids = {
        line.category_id
        for line in _from_source(
            result.unmatched_income_lines + result.unmatched_expense_lines,
            LineSource.unbudgeted_actual,
        )
    }
    remaining_unbudgeted = sorted(
        (u for u in unbudgeted if u.category_id in unmatched_ids),
        key=lambda u: u.actual,
        reverse=True,
    )

    income_totals = section_totals(all_income, TransactionType.income)
    expense_totals = section_totals(all_expense, TransactionType.expense)
    return BudgetReport(
        budget_name=budget.name,
        start_date=budget.start_date,
        end_date=budget.end_date,
        status=budget.status,
        income_lines=_from_source(result.unmatched_income_lines, LineSource.budgeted),
        expense_lines=_from_source(
            result.unmatched_expense_lines, LineSource.budgeted
        ),
        income_totals=income_totals,
        expense_totals=expense_totals,
        totals=BudgetTotals(
            budgeted_income=income_totals.budgeted,
            actual_income=income_totals.actual,
            budgeted_expenses=expense_totals.budgeted,
            actual_expenses=expense_totals.actual,
            net_budget=income_totals.budgeted - expense_totals.budgeted,
            net_actual=income_totals.actual - expense_totals.actual,
        ),
        combined_lines=result.combined_lines,
        unbudgeted_actuals=remaining_unbudgeted,
    )
