import csv
import re
from decimal import Decimal
from io import StringIO
from typing import Optional

from budgets import BudgetReport
from reports import ReportData


FORMULA_TRIGGERS = ("=", "+", "-", "@", "\t", "\r")

DANGEROUS_PATTERNS = (
    r"^cmd\s*",
    r"^powershell\s*",
    r"^bash\s*",
    r"^sh\s*",
    r"^\.",
    r"^http[s]?://",
)


def sanitize_csv_value(value: Optional[str]) -> str:
    """Prefix values a spreadsheet would evaluate as a formula with a tab."""
    if not value or value.strip() == "":
        return ""

    value = value.strip()
    if value.startswith(FORMULA_TRIGGERS):
        return "\t" + value
    for pattern in DANGEROUS_PATTERNS:
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value
    return value


def format_amount(value: Optional[Decimal]) -> str:
    if value is None:
        return ""
    return f"{value:.2f}"


def export_report_transactions(report: ReportData) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(
        [
            "Date",
            "Account",
            "Description",
            "Vendor",
            "Check Number",
            "Type",
            "Status",
            "Amount",
            "Categories",
            "Running Balance",
        ]
    )
    for txn in report.transactions:
        categories = "; ".join(item.category_label for item in txn.line_items)
        writer.writerow(
            [
                txn.transaction_date.isoformat(),
                sanitize_csv_value(txn.account_name),
                sanitize_csv_value(txn.description),
                sanitize_csv_value(txn.vendor),
                sanitize_csv_value(txn.check_number),
                txn.transaction_type.value,
                txn.status.value,
                format_amount(txn.amount),
                sanitize_csv_value(categories),
                format_amount(txn.running_balance),
            ]
        )
    return output.getvalue()


def export_budget_report(report: BudgetReport) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(
        ["Section", "Category", "Budgeted", "Actual", "Variance", "Variance %"]
    )
    for section, lines in (
        ("Income", report.income_lines),
        ("Expense", report.expense_lines),
    ):
        for line in lines:
            writer.writerow(
                [
                    section,
                    sanitize_csv_value(line.category_name),
                    format_amount(line.budgeted),
                    format_amount(line.actual),
                    format_amount(line.variance),
                    format_amount(line.variance_percent),
                ]
            )
    for line in report.combined_lines:
        writer.writerow(
            [
                "Combined",
                sanitize_csv_value(line.category_name),
                format_amount(line.net_budgeted),
                format_amount(line.net_actual),
                format_amount(line.net_actual - line.net_budgeted),
                "",
            ]
        )
    for unbudgeted in report.unbudgeted_actuals:
        writer.writerow(
            [
                "Unbudgeted",
                sanitize_csv_value(unbudgeted.category_name),
                format_amount(Decimal("0")),
                format_amount(unbudgeted.actual),
                "",
                "",
            ]
        )
    writer.writerow(
        [
            "Net",
            "",
            format_amount(report.totals.net_budget),
            format_amount(report.totals.net_actual),
            format_amount(report.totals.net_actual - report.totals.net_budget),
            "",
        ]
    )
    return output.getvalue()
