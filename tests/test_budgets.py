from datetime import date
from decimal import Decimal

from budgets import (
    BudgetReportLine,
    LineSource,
    build_budget_report,
    build_combined_budget_lines,
    compute_variance,
    compute_variance_percent,
    section_totals,
)
from categories import CategoryIndex, ChildCategory, RootCategory
from records import (
    BudgetLineRecord,
    BudgetRecord,
    LineItemRecord,
    TransactionRecord,
    TransactionType,
)


def _line(name: str, category_type: TransactionType, budgeted: str, actual: str):
    budgeted_value = Decimal(budgeted)
    actual_value = Decimal(actual)
    return BudgetReportLine(
        category_name=name,
        category_type=category_type,
        budgeted=budgeted_value,
        actual=actual_value,
        variance=compute_variance(category_type, budgeted_value, actual_value),
        variance_percent=compute_variance_percent(budgeted_value, actual_value),
    )


def _posting(txn_id: int, day: date, category_id: int, amount: str, kind=TransactionType.expense):
    return TransactionRecord(
        id=txn_id,
        account_id=1,
        transaction_date=day,
        amount=Decimal(amount),
        transaction_type=kind,
        line_items=(LineItemRecord(category_id, Decimal(amount)),),
    )


def test_variance_sign_is_favorable_positive():
    assert compute_variance(TransactionType.income, Decimal("1000"), Decimal("1200")) == Decimal("200")
    assert compute_variance(TransactionType.expense, Decimal("1000"), Decimal("1200")) == Decimal("-200")


def test_variance_percent_is_undefined_for_zero_budget():
    assert compute_variance_percent(Decimal("0"), Decimal("50")) is None
    assert compute_variance_percent(None, Decimal("50")) is None
    assert compute_variance_percent(Decimal("200"), Decimal("50")) == Decimal("25")


def test_section_totals_recompute_from_sums():
    lines = [
        _line("A", TransactionType.expense, "100", "50"),
        _line("B", TransactionType.expense, "300", "450"),
    ]
    totals = section_totals(lines, TransactionType.expense)
    assert totals.budgeted == Decimal("400")
    assert totals.actual == Decimal("500")
    assert totals.variance == Decimal("-100")
    assert totals.variance_percent == Decimal("125")


def test_combiner_nets_matching_names():
    income = [
        _line("Grants", TransactionType.income, "1000", "1200"),
        _line("Dues", TransactionType.income, "50", "40"),
    ]
    expense = [
        _line("Grants", TransactionType.expense, "300", "250"),
        _line("Rent", TransactionType.expense, "900", "900"),
    ]
    result = build_combined_budget_lines(income, expense)
    assert len(result.combined_lines) == 1
    combined = result.combined_lines[0]
    assert combined.category_name == "Grants"
    assert combined.net_budgeted == Decimal("700")
    assert combined.net_actual == Decimal("950")
    assert [line.category_name for line in result.unmatched_income_lines] == ["Dues"]
    assert [line.category_name for line in result.unmatched_expense_lines] == ["Rent"]


def test_combiner_groups_duplicates_only_when_matched():
    income = [
        _line("Events", TransactionType.income, "100", "80"),
        _line("Events", TransactionType.income, "50", "70"),
        _line("Misc", TransactionType.income, "10", "0"),
        _line("Misc", TransactionType.income, "20", "5"),
    ]
    expense = [_line("Events", TransactionType.expense, "60", "90")]
    result = build_combined_budget_lines(income, expense)
    assert result.combined_lines[0].income_budgeted == Decimal("150")
    assert result.combined_lines[0].income_actual == Decimal("150")
    assert len(result.unmatched_income_lines) == 2


def test_combiner_matches_display_names_not_hierarchy():
    # A root literally named "Programs → Grants" shares the display name of the
    # child "Grants" under "Programs", so the two rows combine.
    index = CategoryIndex(
        [
            RootCategory(1, "Programs", TransactionType.expense),
            ChildCategory(2, "Grants", TransactionType.expense, 1),
            RootCategory(3, "Programs → Grants", TransactionType.income),
            RootCategory(4, "Grants", TransactionType.income),
        ]
    )
    income = [
        _line(index.resolve_label(3), TransactionType.income, "500", "500"),
        _line(index.resolve_label(4), TransactionType.income, "10", "10"),
    ]
    expense = [_line(index.resolve_label(2), TransactionType.expense, "200", "100")]
    result = build_combined_budget_lines(income, expense)
    assert [line.category_name for line in result.combined_lines] == ["Programs → Grants"]
    # The bare root "Grants" does not combine with the child "Programs → Grants".
    assert [line.category_name for line in result.unmatched_income_lines] == ["Grants"]


def _budget_index() -> CategoryIndex:
    return CategoryIndex(
        [
            RootCategory(1, "Grants", TransactionType.income),
            RootCategory(2, "Grants", TransactionType.expense),
            RootCategory(3, "Programs", TransactionType.expense),
            ChildCategory(4, "Youth", TransactionType.expense, 3),
            ChildCategory(5, "Seniors", TransactionType.expense, 3, is_active=False),
            RootCategory(6, "Office", TransactionType.expense),
            RootCategory(7, "Donations", TransactionType.income),
            RootCategory(8, "Travel", TransactionType.expense),
        ]
    )


def test_budget_report_rollup_unbudgeted_and_totals():
    budget = BudgetRecord(
        id=1,
        name="FY25",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 12, 31),
        line_items=(
            BudgetLineRecord(1, Decimal("1000")),
            BudgetLineRecord(3, Decimal("500")),
            BudgetLineRecord(6, Decimal("0")),
        ),
    )
    txns = [
        _posting(1, date(2025, 2, 1), 1, "1200", TransactionType.income),
        _posting(2, date(2025, 3, 1), 4, "300"),
        _posting(3, date(2025, 3, 2), 3, "100"),
        _posting(4, date(2025, 3, 3), 5, "999"),
        _posting(5, date(2025, 4, 1), 2, "250"),
        _posting(6, date(2025, 4, 2), 7, "75", TransactionType.income),
        _posting(7, date(2025, 4, 3), 8, "40"),
        _posting(8, date(2026, 1, 5), 3, "10000"),
    ]
    report = build_budget_report(budget, _budget_index(), txns)

    programs = next(line for line in report.expense_lines if line.category_name == "Programs")
    assert programs.actual == Decimal("400")
    assert programs.variance == Decimal("100")
    assert programs.variance_percent == Decimal("80")

    office = next(line for line in report.expense_lines if line.category_name == "Office")
    assert office.variance_percent is None
    assert office.source == LineSource.budgeted

    # Unbudgeted "Grants" expense nets against the budgeted "Grants" income.
    assert [line.category_name for line in report.combined_lines] == ["Grants"]
    grants = report.combined_lines[0]
    assert grants.net_budgeted == Decimal("1000")
    assert grants.net_actual == Decimal("950")
    assert report.income_lines == []

    names = [(u.category_name, u.actual) for u in report.unbudgeted_actuals]
    assert names == [
        ("Programs → Seniors", Decimal("999")),
        ("Donations", Decimal("75")),
        ("Travel", Decimal("40")),
    ]

    assert report.totals.budgeted_income == Decimal("1000")
    assert report.totals.actual_income == Decimal("1200")
    assert report.totals.budgeted_expenses == Decimal("500")
    assert report.totals.actual_expenses == Decimal("400")
    assert report.totals.net_budget == Decimal("500")
    assert report.totals.net_actual == Decimal("800")


def test_zero_budget_line_kept_beside_unbudgeted_namesake():
    index = CategoryIndex(
        [
            RootCategory(1, "Events", TransactionType.expense),
            RootCategory(2, "Events", TransactionType.expense),
        ]
    )
    budget = BudgetRecord(
        id=1,
        name="B",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 12, 31),
        line_items=(BudgetLineRecord(1, Decimal("0")),),
    )
    report = build_budget_report(budget, index, [_posting(1, date(2025, 5, 1), 2, "50")])
    assert [(line.category_id, line.actual) for line in report.expense_lines] == [
        (1, Decimal("0"))
    ]
    assert [(u.category_id, u.actual) for u in report.unbudgeted_actuals] == [
        (2, Decimal("50"))
    ]

def test_empty_budget_report_is_zero_valued():
    budget = BudgetRecord(1, "Empty", date(2025, 1, 1), date(2025, 12, 31))
    report = build_budget_report(budget, CategoryIndex([]), [])
    assert report.income_lines == [] and report.expense_lines == []
    assert report.totals.net_actual == Decimal("0")
    assert report.income_totals.variance_percent is None
