import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session, joinedload, selectinload

from balances import (
    AccountBalance,
    LedgerPage,
    ReconciliationProgress,
    StatusNet,
    account_balances,
    balance_as_of,
    page_starting_balance,
    reconciled_balance,
    reconciliation_progress,
    running_balances,
)
from budgets import BudgetReport, build_budget_report
from categories import CategoryIndex, category_from_row
from models import (
    Account,
    Budget,
    Category,
    Organization,
    ReconciliationSession,
    RecurringTemplate,
    Transaction,
    utcnow,
)
from periods import DateRange, fiscal_year_label, fiscal_year_start, next_day, resolve_period
from records import (
    SETTLED_STATUSES,
    ZERO,
    AccountRecord,
    BudgetLineRecord,
    BudgetRecord,
    LineItemRecord,
    ReconciliationStatus,
    TransactionRecord,
    TransactionStatus,
)
from recurrence import RecurringEngine, compute_resume_occurrence, local_today
from reports import (
    AccountBalanceSummary,
    ReportData,
    ReportLineItem,
    ReportTransaction,
    compute_summary,
)
from schemas import LedgerFilters, ReconciliationStartIn, ReportParams


logger = logging.getLogger(__name__)

LEDGER_ORDER = (Transaction.transaction_date, Transaction.created_at, Transaction.id)


def start_of_day(value: date) -> datetime:
    return datetime.combine(value, time.min)


def to_transaction_record(txn: Transaction) -> TransactionRecord:
    return TransactionRecord(
        id=txn.id,
        account_id=txn.account_id,
        transaction_date=txn.transaction_date,
        amount=txn.amount,
        transaction_type=txn.transaction_type,
        status=txn.status,
        created_at=txn.created_at,
        cleared_at=txn.cleared_at,
        line_items=tuple(
            LineItemRecord(item.category_id, item.amount, item.memo)
            for item in txn.line_items
        ),
    )


def to_account_record(account: Account) -> AccountRecord:
    return AccountRecord(
        id=account.id,
        name=account.name,
        opening_balance=account.opening_balance,
        account_type=account.account_type,
    )


def to_budget_record(budget: Budget) -> BudgetRecord:
    return BudgetRecord(
        id=budget.id,
        name=budget.name,
        start_date=budget.start_date,
        end_date=budget.end_date,
        status=budget.status,
        line_items=tuple(
            BudgetLineRecord(item.category_id, item.amount, item.notes)
            for item in budget.line_items
        ),
    )


def load_category_index(session: Session, organization_id: int) -> CategoryIndex:
    stmt = (
        select(Category)
        .where(Category.organization_id == organization_id)
        .order_by(Category.id)
    )
    return CategoryIndex(
        category_from_row(
            category.id,
            category.name,
            category.category_type,
            category.parent_id,
            category.is_active,
        )
        for category in session.scalars(stmt)
    )


def set_transaction_status(
    txn: Transaction, status: TransactionStatus, now: Optional[datetime] = None
) -> None:
    """Move a transaction between statuses, keeping ``cleared_at`` in step.

    ``reconciled`` is terminal.
    """
    status = TransactionStatus(status)
    if txn.status == status:
        return
    if txn.status == TransactionStatus.reconciled:
        raise ValueError("Reconciled transactions cannot change status")
    if status == TransactionStatus.uncleared:
        txn.cleared_at = None
    elif txn.cleared_at is None:
        txn.cleared_at = now or utcnow()
    txn.status = status


class OrganizationService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, organization_id: int) -> Organization:
        organization = self.session.get(Organization, organization_id)
        if not organization:
            raise ValueError("Organization not found")
        return organization

    def period(
        self,
        organization_id: int,
        preset: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        today: Optional[date] = None,
    ) -> DateRange:
        organization = self.get(organization_id)
        return resolve_period(
            preset,
            start,
            end,
            fiscal_start_month=organization.fiscal_start_month,
            today=today or local_today(),
        )


class AccountService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, account_id: int) -> Account:
        account = self.session.get(Account, account_id)
        if not account:
            raise ValueError("Account not found")
        return account

    def list_accounts(self, organization_id: int, *, active_only: bool = True) -> list[Account]:
        stmt = select(Account).where(Account.organization_id == organization_id)
        if active_only:
            stmt = stmt.where(Account.is_active.is_(True))
        return list(self.session.scalars(stmt.order_by(Account.name, Account.id)))

    def _transactions(self, account_ids: Sequence[int]) -> list[TransactionRecord]:
        if not account_ids:
            return []
        stmt = (
            select(Transaction)
            .options(selectinload(Transaction.line_items))
            .where(Transaction.account_id.in_(account_ids))
            .order_by(*LEDGER_ORDER)
        )
        return [to_transaction_record(txn) for txn in self.session.scalars(stmt)]

    def balances(self, organization_id: int) -> dict[int, AccountBalance]:
        accounts = self.list_accounts(organization_id)
        records = self._transactions([account.id for account in accounts])
        return account_balances((to_account_record(a) for a in accounts), records)

    def dashboard(self, organization_id: int) -> dict[str, object]:
        organization = OrganizationService(self.session).get(organization_id)
        accounts = self.list_accounts(organization.id)
        balances = self.balances(organization.id)

        status_net = StatusNet()
        total_balance = ZERO
        rows = []
        for account in accounts:
            balance = balances[account.id]
            total_balance += balance.current_balance
            status_net.uncleared += balance.status_net.uncleared
            status_net.cleared += balance.status_net.cleared
            status_net.reconciled += balance.status_net.reconciled
            rows.append(
                {
                    "id": account.id,
                    "name": account.name,
                    "account_type": account.account_type,
                    "current_balance": balance.current_balance,
                    "total_income": balance.total_income,
                    "total_expense": balance.total_expense,
                    "status_net": balance.status_net,
                }
            )
        return {
            "organization": organization.name,
            "total_balance": total_balance,
            "status_net": status_net,
            "accounts": rows,
        }


class LedgerService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _filtered(self, stmt, account_id: int, filters: LedgerFilters):
        stmt = stmt.where(Transaction.account_id == account_id)
        if filters.statuses:
            stmt = stmt.where(Transaction.status.in_(filters.statuses))
        if filters.start_date:
            stmt = stmt.where(Transaction.transaction_date >= filters.start_date)
        if filters.end_date:
            stmt = stmt.where(Transaction.transaction_date <= filters.end_date)
        return stmt

    def count(self, account_id: int, filters: LedgerFilters) -> int:
        stmt = self._filtered(
            select(func.count(Transaction.id)), account_id, filters
        )
        return int(self.session.execute(stmt).scalar_one())

    def page(
        self,
        account_id: int,
        filters: Optional[LedgerFilters] = None,
        page: int = 1,
        limit: int = 50,
    ) -> LedgerPage:
        """One page of the account ledger with running balances.

        The starting balance covers every row before the page under the same
        filters, so balances line up across page boundaries.
        """
        account = AccountService(self.session).get(account_id)
        filters = filters or LedgerFilters()
        page = max(page, 1)
        offset = (page - 1) * limit

        preceding: list[TransactionRecord] = []
        if offset:
            preceding_stmt = self._filtered(
                select(
                    Transaction.id,
                    Transaction.transaction_date,
                    Transaction.amount,
                    Transaction.transaction_type,
                ),
                account.id,
                filters,
            )
            for row in self.session.execute(
                preceding_stmt.order_by(*LEDGER_ORDER).limit(offset)
            ):
                preceding.append(
                    TransactionRecord(
                        id=row.id,
                        account_id=account.id,
                        transaction_date=row.transaction_date,
                        amount=row.amount,
                        transaction_type=row.transaction_type,
                    )
                )
        starting = page_starting_balance(account.opening_balance, preceding)

        page_stmt = self._filtered(
            select(Transaction).options(selectinload(Transaction.line_items)),
            account.id,
            filters,
        )
        rows = [
            to_transaction_record(txn)
            for txn in self.session.scalars(
                page_stmt.order_by(*LEDGER_ORDER).offset(offset).limit(limit)
            )
        ]
        balances = running_balances(starting, rows)
        ending = balances[rows[-1].id] if rows else starting
        return LedgerPage(starting, ending, rows, balances)


class ReportService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _in_report_window(self, start: date, end: date):
        return or_(
            Transaction.status == TransactionStatus.uncleared,
            and_(
                Transaction.status.in_(SETTLED_STATUSES),
                Transaction.cleared_at >= start_of_day(start),
                Transaction.cleared_at < start_of_day(next_day(end)),
            ),
        )

    def _accounts(self, organization_id: int, account_id: Optional[int]) -> list[Account]:
        accounts = AccountService(self.session).list_accounts(
            organization_id, active_only=False
        )
        if account_id is None:
            return accounts
        selected = [account for account in accounts if account.id == account_id]
        if not selected:
            raise ValueError("Account not found")
        return selected

    def _settled_history(self, account_ids: Iterable[int]) -> dict[int, list[TransactionRecord]]:
        history: dict[int, list[TransactionRecord]] = {}
        ids = list(account_ids)
        if not ids:
            return history
        stmt = select(Transaction).where(
            Transaction.account_id.in_(ids),
            Transaction.status.in_(SETTLED_STATUSES),
        )
        for txn in self.session.scalars(stmt):
            record = TransactionRecord(
                id=txn.id,
                account_id=txn.account_id,
                transaction_date=txn.transaction_date,
                amount=txn.amount,
                transaction_type=txn.transaction_type,
                status=txn.status,
                cleared_at=txn.cleared_at,
            )
            history.setdefault(txn.account_id, []).append(record)
        return history

    def gather(
        self,
        organization_id: int,
        params: ReportParams,
        generated_at: Optional[datetime] = None,
    ) -> ReportData:
        organization = OrganizationService(self.session).get(organization_id)
        accounts = self._accounts(organization.id, params.account_id)
        accounts_by_id = {account.id: account for account in accounts}
        index = load_category_index(self.session, organization.id)

        stmt = (
            select(Transaction)
            .options(selectinload(Transaction.line_items))
            .where(
                Transaction.account_id.in_(list(accounts_by_id)),
                self._in_report_window(params.start_date, params.end_date),
            )
            .order_by(*LEDGER_ORDER)
        )
        if params.statuses:
            stmt = stmt.where(Transaction.status.in_(params.statuses))
        transactions = list(self.session.scalars(stmt))
        if params.category_id is not None:
            transactions = [
                txn
                for txn in transactions
                if any(item.category_id == params.category_id for item in txn.line_items)
            ]

        period_start = start_of_day(params.start_date)
        period_end = start_of_day(next_day(params.end_date))
        history = self._settled_history(accounts_by_id)

        running: dict[int, Decimal] = {}
        if params.account_id is not None and params.category_id is None:
            account = accounts_by_id[params.account_id]
            opening = balance_as_of(
                account.opening_balance, history.get(account.id, []), period_start
            )
            running = running_balances(
                opening, [to_transaction_record(txn) for txn in transactions]
            )

        report_transactions = [
            ReportTransaction(
                id=txn.id,
                transaction_date=txn.transaction_date,
                transaction_type=txn.transaction_type,
                amount=txn.amount,
                status=txn.status,
                account_name=accounts_by_id[txn.account_id].name,
                description=txn.description,
                vendor=txn.vendor,
                check_number=txn.check_number,
                created_at=txn.created_at,
                cleared_at=txn.cleared_at,
                line_items=tuple(
                    ReportLineItem(
                        index.resolve_label(item.category_id), item.amount, item.memo
                    )
                    for item in txn.line_items
                ),
                running_balance=running.get(txn.id),
            )
            for txn in transactions
        ]

        summaries = [
            AccountBalanceSummary(
                account_name=account.name,
                starting_balance=balance_as_of(
                    account.opening_balance, history.get(account.id, []), period_start
                ),
                ending_balance=balance_as_of(
                    account.opening_balance, history.get(account.id, []), period_end
                ),
            )
            for account in accounts
        ]

        label = fiscal_year_label(
            organization.fiscal_start_month,
            fiscal_year_start(organization.fiscal_start_month, params.start_date),
        )
        return ReportData(
            organization_name=organization.name,
            start_date=params.start_date,
            end_date=params.end_date,
            generated_at=generated_at or utcnow(),
            transactions=report_transactions,
            summary=compute_summary(report_transactions, index),
            fiscal_year_label=label,
            account_balances=summaries,
        )


class BudgetReportService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, budget_id: int) -> Budget:
        stmt = (
            select(Budget)
            .options(selectinload(Budget.line_items))
            .where(Budget.id == budget_id)
        )
        budget = self.session.scalars(stmt).first()
        if not budget:
            raise ValueError("Budget not found")
        return budget

    def build(self, budget_id: int) -> BudgetReport:
        budget = self.get(budget_id)
        index = load_category_index(self.session, budget.organization_id)
        stmt = (
            select(Transaction)
            .join(Account, Transaction.account_id == Account.id)
            .options(selectinload(Transaction.line_items))
            .where(
                Account.organization_id == budget.organization_id,
                Transaction.transaction_date.between(budget.start_date, budget.end_date),
            )
        )
        records = [to_transaction_record(txn) for txn in self.session.scalars(stmt)]
        return build_budget_report(to_budget_record(budget), index, records)


class ReconciliationService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, session_id: int) -> ReconciliationSession:
        reconciliation = self.session.get(ReconciliationSession, session_id)
        if not reconciliation:
            raise ValueError("Reconciliation session not found")
        return reconciliation

    def _in_progress(self, session_id: int) -> ReconciliationSession:
        reconciliation = self.get(session_id)
        if reconciliation.status != ReconciliationStatus.in_progress:
            raise ValueError("Reconciliation session is no longer in progress")
        return reconciliation

    def start(self, account_id: int, data: ReconciliationStartIn) -> ReconciliationSession:
        account = AccountService(self.session).get(account_id)
        open_stmt = select(ReconciliationSession.id).where(
            ReconciliationSession.account_id == account.id,
            ReconciliationSession.status == ReconciliationStatus.in_progress,
        )
        if self.session.execute(open_stmt).first():
            raise ValueError("Account already has a reconciliation in progress")

        reconciled_stmt = select(Transaction).where(
            Transaction.account_id == account.id,
            Transaction.status == TransactionStatus.reconciled,
        )
        starting = reconciled_balance(
            account.opening_balance,
            (to_transaction_record(txn) for txn in self.session.scalars(reconciled_stmt)),
        )
        reconciliation = ReconciliationSession(
            account_id=account.id,
            statement_date=data.statement_date,
            statement_ending_balance=data.statement_ending_balance,
            starting_balance=starting,
            status=ReconciliationStatus.in_progress,
        )
        self.session.add(reconciliation)
        self.session.commit()
        self.session.refresh(reconciliation)
        logger.info(
            f"reconciliation_started: session_id={reconciliation.id} "
            f"account_id={account.id} starting_balance={starting}"
        )
        return reconciliation

    def candidates(self, session_id: int) -> list[Transaction]:
        reconciliation = self.get(session_id)
        stmt = (
            select(Transaction)
            .options(selectinload(Transaction.line_items))
            .where(
                Transaction.account_id == reconciliation.account_id,
                Transaction.status != TransactionStatus.reconciled,
                Transaction.transaction_date <= reconciliation.statement_date,
            )
            .order_by(*LEDGER_ORDER)
        )
        return list(self.session.scalars(stmt))

    def progress(
        self, session_id: int, checked_ids: Iterable[int]
    ) -> ReconciliationProgress:
        reconciliation = self.get(session_id)
        return reconciliation_progress(
            reconciliation.starting_balance,
            reconciliation.statement_ending_balance,
            [to_transaction_record(txn) for txn in self.candidates(session_id)],
            checked_ids,
        )

    def finish(
        self,
        session_id: int,
        transaction_ids: Sequence[int],
        now: Optional[datetime] = None,
    ) -> ReconciliationSession:
        reconciliation = self._in_progress(session_id)
        ids = set(transaction_ids)
        stmt = select(Transaction).where(
            Transaction.id.in_(ids),
            Transaction.account_id == reconciliation.account_id,
        )
        transactions = list(self.session.scalars(stmt))
        if len(transactions) != len(ids):
            raise ValueError("Transaction not found")
        for txn in transactions:
            if txn.status == TransactionStatus.reconciled:
                raise ValueError(f"Transaction {txn.id} is already reconciled")

        now = now or utcnow()
        for txn in transactions:
            set_transaction_status(txn, TransactionStatus.reconciled, now)
        reconciliation.status = ReconciliationStatus.completed
        reconciliation.completed_at = now
        reconciliation.transaction_count = len(transactions)
        self.session.commit()
        logger.info(
            f"reconciliation_finished: session_id={reconciliation.id} "
            f"transaction_count={reconciliation.transaction_count}"
        )
        return reconciliation

    def cancel(self, session_id: int) -> ReconciliationSession:
        reconciliation = self._in_progress(session_id)
        reconciliation.status = ReconciliationStatus.cancelled
        self.session.commit()
        logger.info(f"reconciliation_cancelled: session_id={reconciliation.id}")
        return reconciliation


class RecurringTemplateService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, template_id: int) -> RecurringTemplate:
        stmt = (
            select(RecurringTemplate)
            .options(
                selectinload(RecurringTemplate.line_items),
                joinedload(RecurringTemplate.account),
            )
            .where(RecurringTemplate.id == template_id)
        )
        template = self.session.scalars(stmt).first()
        if not template:
            raise ValueError("Template not found")
        return template

    def generate(
        self, template_id: int, today: Optional[date] = None
    ) -> Optional[Transaction]:
        template = self.get(template_id)
        if template.is_active and template.next_occurrence_date is None:
            template.next_occurrence_date = compute_resume_occurrence(
                template.start_date,
                template.recurrence_rule,
                today or local_today(),
                template.end_date,
            )
        txn = RecurringEngine(self.session).generate(template)
        self.session.commit()
        return txn

    def post_due(self, today: Optional[date] = None) -> int:
        count = RecurringEngine(self.session).post_due(today)
        self.session.commit()
        return count
