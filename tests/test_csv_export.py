import csv
from datetime import date, datetime
from decimal import Decimal
from io import StringIO

from balances import StatusNet
from budgets import build_budget_report
from categories import CategoryIndex, RootCategory
from csv_utils import export_budget_report, export_report_transactions, sanitize_csv_value
from records import (
    BudgetLineRecord,
    BudgetRecord,
    LineItemRecord,
    TransactionRecord,
    TransactionStatus,
    TransactionType,
)
from reports import ReportData, ReportLineItem, ReportSummary, ReportTransaction


def test_sanitize_csv_value_neutralises_formulas():
    assert sanitize_csv_value("=SUM(A1:A3)") == "\t=SUM(A1:A3)"
    assert sanitize_csv_value("+1") == "\t+1"
    assert sanitize_csv_value("https://example.org") == "\thttps://example.org"
    assert sanitize_csv_value("  Pantry supplies ") == "Pantry supplies"
    assert sanitize_csv_value(None) == ""


def test_export_report_transactions():
    report = ReportData(
        organization_name="Food Bank",
        start_date=date(2025, 7, 1),
        end_date=date(2025, 7, 31),
        generated_at=datetime(2025, 8, 1, 12, 0),
        transactions=[
            ReportTransaction(
                id=1,
                transaction_date=date(2025, 7, 2),
                transaction_type=TransactionType.expense,
                amount=Decimal("12.5"),
                status=TransactionStatus.cleared,
                account_name="Operating",
                description="=cmd|' /C calc'!A0",
                line_items=(
                    ReportLineItem("Programs → Pantry", Decimal("10")),
                    ReportLineItem("Admin", Decimal("2.5")),
                ),
                running_balance=Decimal("987.5"),
            )
        ],
        summary=ReportSummary(
            total_income=Decimal("0"),
            total_expenses=Decimal("12.5"),
            net_change=Decimal("-12.5"),
            balance_by_status=StatusNet(),
            income_by_category=[],
            expenses_by_category=[],
        ),
    )
    rows = list(csv.reader(StringIO(export_report_transactions(report))))
    assert rows[0][0] == "Date"
    assert rows[1][0] == "2025-07-02"
    assert rows[1][2].startswith("\t=")
    assert rows[1][6] == "cleared"
    assert rows[1][7] == "12.50"
    assert rows[1][8] == "Programs → Pantry; Admin"
    assert rows[1][9] == "987.50"


def test_export_budget_report():
    index = CategoryIndex(
        [
            RootCategory(1, "Donations", TransactionType.income),
            RootCategory(2, "Rent", TransactionType.expense),
            RootCategory(3, "Travel", TransactionType.expense),
        ]
    )
    budget = BudgetRecord(
        id=1,
        name="FY",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 12, 31),
        line_items=(
            BudgetLineRecord(1, Decimal("1000")),
            BudgetLineRecord(2, Decimal("600")),
        ),
    )
    txns = [
        TransactionRecord(
            id=1,
            account_id=1,
            transaction_date=date(2025, 3, 1),
            amount=Decimal("45"),
            transaction_type=TransactionType.expense,
            line_items=(LineItemRecord(3, Decimal("45")),),
        )
    ]
    rows = list(csv.reader(StringIO(export_budget_report(build_budget_report(budget, index, txns)))))
    sections = [row[0] for row in rows[1:]]
    assert sections == ["Income", "Expense", "Unbudgeted", "Net"]
    assert rows[1][1:] == ["Donations", "1000.00", "0.00", "-1000.00", "0.00"]
    assert rows[3][1] == "Travel"
    assert rows[4][2:4] == ["400.00", "0.00"]
