from datetime import date
from decimal import Decimal

from categories import CategoryIndex, ChildCategory, RootCategory
from records import TransactionStatus, TransactionType
from reports import (
    ReportLineItem,
    ReportTransaction,
    build_category_summaries,
    compute_summary,
)


def _index() -> CategoryIndex:
    return CategoryIndex(
        [
            RootCategory(1, "Donations", TransactionType.income),
            ChildCategory(2, "Individual", TransactionType.income, 1),
            ChildCategory(3, "Corporate", TransactionType.income, 1),
            RootCategory(4, "Rent", TransactionType.expense),
            RootCategory(5, "Admin", TransactionType.expense),
            ChildCategory(6, "Postage", TransactionType.expense, 5),
        ]
    )


def _txn(txn_id, transaction_type, amount, status, items):
    return ReportTransaction(
        id=txn_id,
        transaction_date=date(2025, 3, txn_id),
        transaction_type=transaction_type,
        amount=Decimal(amount),
        status=status,
        line_items=tuple(ReportLineItem(label, Decimal(value)) for label, value in items),
    )


def test_category_summaries_group_children_under_parent():
    summaries = build_category_summaries({3: Decimal("100"), 2: Decimal("200")}, _index())
    assert len(summaries) == 1
    group = summaries[0]
    assert group.parent_name == "Donations"
    assert [child.name for child in group.children] == ["Corporate", "Individual"]
    assert group.subtotal == Decimal("300")


def test_category_summaries_root_and_unknown_groups():
    summaries = build_category_summaries(
        {4: Decimal("50"), 6: Decimal("5"), "unknown": Decimal("7"), 5: Decimal("1")},
        _index(),
    )
    assert [s.parent_name for s in summaries] == ["Admin", "Other", "Rent"]
    admin = summaries[0]
    assert [(c.name, c.total) for c in admin.children] == [
        ("(root)", Decimal("1")),
        ("Postage", Decimal("5")),
    ]
    assert summaries[2].children[0].name == "(root)"


def test_compute_summary_totals_and_status_buckets():
    transactions = [
        _txn(
            1,
            TransactionType.income,
            "500",
            TransactionStatus.cleared,
            [("Donations → Individual", "300"), ("Donations → Corporate", "200")],
        ),
        _txn(2, TransactionType.expense, "200", TransactionStatus.uncleared, [("Rent", "200")]),
    ]
    summary = compute_summary(transactions, _index())
    assert summary.total_income == Decimal("500")
    assert summary.total_expenses == Decimal("200")
    assert summary.net_change == Decimal("300")
    assert summary.balance_by_status.cleared == Decimal("500")
    assert summary.balance_by_status.uncleared == Decimal("-200")
    assert summary.balance_by_status.reconciled == Decimal("0")
    assert summary.income_by_category[0].subtotal == Decimal("500")
    assert summary.expenses_by_category[0].parent_name == "Rent"


def test_compute_summary_unresolvable_label_goes_to_other():
    transactions = [
        _txn(1, TransactionType.expense, "9", TransactionStatus.uncleared, [("Gone", "9")]),
    ]
    summary = compute_summary(transactions, _index())
    assert summary.expenses_by_category[0].parent_name == "Other"


def test_compute_summary_empty():
    summary = compute_summary([], _index())
    assert summary.total_income == Decimal("0")
    assert summary.net_change == Decimal("0")
    assert summary.income_by_category == []
    assert summary.expenses_by_category == []
