from datetime import date, datetime
from decimal import Decimal

from balances import (
    StatusNet,
    account_balances,
    balance_as_of,
    paginate_ledger,
    reconciled_balance,
    reconciliation_progress,
    running_balances,
    status_bucketed_net,
)
from records import AccountRecord, TransactionRecord, TransactionStatus, TransactionType


def _txn(
    txn_id: int,
    amount: str,
    transaction_type: TransactionType = TransactionType.income,
    status: TransactionStatus = TransactionStatus.uncleared,
    day: int = 1,
    account_id: int = 1,
    cleared_at: datetime = None,
) -> TransactionRecord:
    return TransactionRecord(
        id=txn_id,
        account_id=account_id,
        transaction_date=date(2025, 1, day),
        amount=Decimal(amount),
        transaction_type=transaction_type,
        status=status,
        created_at=datetime(2025, 1, day, 9, txn_id % 60),
        cleared_at=cleared_at,
    )


def _ledger() -> list[TransactionRecord]:
    return [
        _txn(1, "100.00", day=1),
        _txn(2, "40.25", TransactionType.expense, day=2),
        _txn(3, "12.50", TransactionType.expense, TransactionStatus.cleared, day=3),
        _txn(4, "300.00", TransactionType.income, TransactionStatus.reconciled, day=4),
        _txn(5, "7.75", TransactionType.expense, day=5),
        _txn(6, "60.00", TransactionType.income, TransactionStatus.cleared, day=6),
        _txn(7, "19.99", TransactionType.expense, day=7),
    ]


def test_running_balances_empty():
    assert running_balances(Decimal("0"), []) == {}


def test_running_balances_signs_amounts():
    balances = running_balances(Decimal("10"), _ledger()[:3])
    assert balances == {
        1: Decimal("110.00"),
        2: Decimal("69.75"),
        3: Decimal("57.25"),
    }


def test_running_balance_fold_is_associative():
    txns = _ledger()
    whole = running_balances(Decimal("5"), txns)
    balance = Decimal("5")
    for txn in txns:
        balance = running_balances(balance, [txn])[txn.id]
    assert balance == whole[txns[-1].id]

    head = running_balances(Decimal("5"), txns[:4])
    tail = running_balances(head[txns[3].id], txns[4:])
    assert tail[txns[-1].id] == whole[txns[-1].id]


def test_pagination_starting_balances_chain():
    txns = _ledger()
    opening = Decimal("250.00")
    for limit in (1, 2, 3, 5):
        offset = 0
        pages = []
        while offset < len(txns):
            pages.append(paginate_ledger(opening, txns, offset=offset, limit=limit))
            offset += limit
        for current, following in zip(pages, pages[1:]):
            assert current.ending_balance == following.starting_balance
        assert pages[0].starting_balance == opening
        assert pages[-1].ending_balance == running_balances(opening, txns)[7]


def test_page_beyond_end_keeps_balance():
    page = paginate_ledger(Decimal("1"), _ledger(), offset=50, limit=10)
    assert page.transactions == []
    assert page.starting_balance == page.ending_balance


def test_status_bucketed_net():
    net = status_bucketed_net(_ledger())
    assert net.uncleared == Decimal("100.00") - Decimal("40.25") - Decimal("7.75") - Decimal("19.99")
    assert net.cleared == Decimal("47.50")
    assert net.reconciled == Decimal("300.00")


def test_status_net_ignores_unknown_status():
    net = StatusNet()
    net.add("voided", Decimal("5"))
    net.add("cleared", Decimal("5"))
    assert net.total == Decimal("5")


def test_account_balances_skip_unknown_accounts():
    accounts = [
        AccountRecord(1, "Operating", Decimal("1000.00")),
        AccountRecord(2, "Savings", None),
    ]
    txns = _ledger() + [_txn(8, "50.00", account_id=2), _txn(9, "99.00", account_id=3)]
    balances = account_balances(accounts, txns)
    assert set(balances) == {1, 2}
    assert balances[1].current_balance == Decimal("1379.51")
    assert balances[1].total_expense == Decimal("80.49")
    assert balances[2].current_balance == Decimal("50.00")


def test_reconciled_balance_counts_only_reconciled():
    assert reconciled_balance(Decimal("10"), _ledger()) == Decimal("310.00")
    assert reconciled_balance(None, []) == Decimal("0")


def test_balance_as_of_uses_settlement_time():
    txns = [
        _txn(1, "100", status=TransactionStatus.cleared, cleared_at=datetime(2025, 1, 10)),
        _txn(
            2,
            "30",
            TransactionType.expense,
            TransactionStatus.reconciled,
            cleared_at=datetime(2025, 2, 3),
        ),
        _txn(3, "500"),
    ]
    assert balance_as_of(Decimal("20"), txns, datetime(2025, 1, 10)) == Decimal("20")
    assert balance_as_of(Decimal("20"), txns, datetime(2025, 2, 1)) == Decimal("120")
    assert balance_as_of(Decimal("20"), txns, datetime(2025, 3, 1)) == Decimal("90")


def test_reconciliation_progress_balanced_within_a_cent():
    txns = _ledger()
    progress = reconciliation_progress(
        Decimal("200.00"), Decimal("259.75"), txns, [1, 2]
    )
    assert progress.cleared_balance == Decimal("259.75")
    assert progress.difference == Decimal("0.00")
    assert progress.is_balanced

    off = reconciliation_progress(Decimal("200.00"), Decimal("259.74"), txns, [1, 2])
    assert off.difference == Decimal("0.01")
    assert not off.is_balanced
