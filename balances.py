from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Hashable, Iterable, Optional, Sequence

from records import (
    SETTLED_STATUSES,
    ZERO,
    AccountRecord,
    TransactionRecord,
    TransactionStatus,
    TransactionType,
)


BALANCE_TOLERANCE = Decimal("0.01")


@dataclass
class StatusNet:
    uncleared: Decimal = ZERO
    cleared: Decimal = ZERO
    reconciled: Decimal = ZERO

    def add(self, status: object, amount: Decimal) -> None:
        try:
            bucket = TransactionStatus(status)
        except ValueError:
            return
        setattr(self, bucket.value, getattr(self, bucket.value) + amount)

    @property
    def total(self) -> Decimal:
        return self.uncleared + self.cleared + self.reconciled


@dataclass
class AccountBalance:
    current_balance: Decimal
    total_income: Decimal = ZERO
    total_expense: Decimal = ZERO
    status_net: StatusNet = field(default_factory=StatusNet)


@dataclass(frozen=True)
class LedgerPage:
    starting_balance: Decimal
    ending_balance: Decimal
    transactions: list[TransactionRecord]
    running_balances: dict[Hashable, Decimal]


@dataclass(frozen=True)
class ReconciliationProgress:
    starting_balance: Decimal
    statement_ending_balance: Decimal
    cleared_balance: Decimal
    difference: Decimal
    is_balanced: bool


def signed_amount(amount: Decimal, transaction_type: TransactionType) -> Decimal:
    if transaction_type == TransactionType.income:
        return amount
    return -amount


def net_amount(transactions: Iterable[TransactionRecord]) -> Decimal:
    return sum(
        (signed_amount(txn.amount, txn.transaction_type) for txn in transactions), ZERO
    )


def running_balances(
    starting_balance: Decimal, transactions: Iterable[TransactionRecord]
) -> dict[Hashable, Decimal]:
    """Balance after each transaction; input must already be in ledger order."""
    result: dict[Hashable, Decimal] = {}
    balance = starting_balance
    for txn in transactions:
        balance += signed_amount(txn.amount, txn.transaction_type)
        result[txn.id] = balance
    return result


def status_bucketed_net(transactions: Iterable[TransactionRecord]) -> StatusNet:
    net = StatusNet()
    for txn in transactions:
        net.add(txn.status, signed_amount(txn.amount, txn.transaction_type))
    return net


def account_balances(
    accounts: Iterable[AccountRecord], transactions: Iterable[TransactionRecord]
) -> dict[Hashable, AccountBalance]:
    result: dict[Hashable, AccountBalance] = {
        account.id: AccountBalance(current_balance=account.opening_balance or ZERO)
        for account in accounts
    }
    for txn in transactions:
        entry = result.get(txn.account_id)
        if entry is None:
            continue
        net = signed_amount(txn.amount, txn.transaction_type)
        if txn.transaction_type == TransactionType.income:
            entry.total_income += txn.amount
        else:
            entry.total_expense += txn.amount
        entry.current_balance += net
        entry.status_net.add(txn.status, net)
    return result


def reconciled_balance(
    opening_balance: Optional[Decimal], transactions: Iterable[TransactionRecord]
) -> Decimal:
    return (opening_balance or ZERO) + net_amount(
        txn for txn in transactions if txn.status == TransactionStatus.reconciled
    )


def balance_as_of(
    opening_balance: Optional[Decimal],
    transactions: Iterable[TransactionRecord],
    moment: datetime,
) -> Decimal:
    """Settled balance strictly before ``moment``.

    Uncleared transactions have no settlement timestamp and never count.
    """
    return (opening_balance or ZERO) + net_amount(
        txn
        for txn in transactions
        if txn.status in SETTLED_STATUSES
        and txn.cleared_at is not None
        and txn.cleared_at < moment
    )


def page_starting_balance(
    opening_balance: Optional[Decimal], preceding: Iterable[TransactionRecord]
) -> Decimal:
    """``preceding`` must be filtered exactly like the page being shown."""
    return (opening_balance or ZERO) + net_amount(preceding)


def paginate_ledger(
    opening_balance: Optional[Decimal],
    ordered: Sequence[TransactionRecord],
    *,
    offset: int,
    limit: int,
) -> LedgerPage:
    offset = max(offset, 0)
    page = list(ordered[offset : offset + limit])
    starting = page_starting_balance(opening_balance, ordered[:offset])
    balances = running_balances(starting, page)
    ending = balances[page[-1].id] if page else starting
    return LedgerPage(starting, ending, page, balances)


def reconciliation_progress(
    starting_balance: Decimal,
    statement_ending_balance: Decimal,
    transactions: Iterable[TransactionRecord],
    checked_ids: Iterable[Hashable],
) -> ReconciliationProgress:
    checked = set(checked_ids)
    cleared = starting_balance + net_amount(
        txn for txn in transactions if txn.id in checked
    )
    difference = cleared - statement_ending_balance
    return ReconciliationProgress(
        starting_balance=starting_balance,
        statement_ending_balance=statement_ending_balance,
        cleared_balance=cleared,
        difference=difference,
        is_balanced=abs(difference) < BALANCE_TOLERANCE,
    )
