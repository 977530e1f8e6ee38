import logging
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from models import (
    RecurringTemplate,
    Transaction,
    TransactionLineItem,
)
from periods import add_months
from records import RecurrenceRule, TransactionStatus


logger = logging.getLogger(__name__)

MAX_CATCH_UP = 366


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def add_interval(value: date, rule: RecurrenceRule) -> date:
    rule = RecurrenceRule(rule)
    if rule == RecurrenceRule.weekly:
        return value + timedelta(weeks=1)
    if rule == RecurrenceRule.biweekly:
        return value + timedelta(weeks=2)
    if rule == RecurrenceRule.monthly:
        return add_months(value, 1)
    if rule == RecurrenceRule.quarterly:
        return add_months(value, 3)
    return add_months(value, 12)


def compute_initial_occurrence(
    start_date: date, end_date: Optional[date] = None
) -> Optional[date]:
    if end_date is not None and end_date < start_date:
        return None
    return start_date


def compute_next_occurrence(
    start_date: date,
    rule: RecurrenceRule,
    after: date,
    end_date: Optional[date] = None,
) -> Optional[date]:
    """First occurrence strictly after ``after``, stepping from ``start_date``."""
    candidate = start_date
    while candidate <= after:
        candidate = add_interval(candidate, rule)
    if end_date is not None and candidate > end_date:
        return None
    return candidate


def compute_resume_occurrence(
    start_date: date,
    rule: RecurrenceRule,
    today: date,
    end_date: Optional[date] = None,
) -> Optional[date]:
    if start_date >= today:
        return compute_initial_occurrence(start_date, end_date)
    return compute_next_occurrence(
        start_date, rule, today - timedelta(days=1), end_date
    )


class RecurringEngine:
    def __init__(self, session: Session) -> None:
        self.session = session

    def catch_up_template(
        self, template: RecurringTemplate, today: Optional[date] = None
    ) -> int:
        today = today or local_today()
        posted = 0
        iterations = 0
        while (
            template.is_active
            and template.next_occurrence_date is not None
            and template.next_occurrence_date <= today
            and iterations < MAX_CATCH_UP
        ):
            if self.generate(template) is not None:
                posted += 1
            iterations += 1
        return posted

    def post_due(self, today: Optional[date] = None) -> int:
        today = today or local_today()
        stmt = (
            select(RecurringTemplate)
            .where(
                RecurringTemplate.is_active.is_(True),
                RecurringTemplate.next_occurrence_date.is_not(None),
                RecurringTemplate.next_occurrence_date <= today,
            )
            .order_by(RecurringTemplate.next_occurrence_date, RecurringTemplate.id)
        )
        templates = self.session.scalars(stmt).all()
        count = 0
        for template in templates:
            count += self.catch_up_template(template, today)
        return count

    def generate(self, template: RecurringTemplate) -> Optional[Transaction]:
        """Post the template's next occurrence and advance it.

        Returns ``None`` when that date was already posted; the template still
        advances so a catch-up loop cannot stall.
        """
        if not template.is_active:
            raise ValueError("Template is paused")
        occurrence_date = template.next_occurrence_date
        if occurrence_date is None:
            raise ValueError("Template has no upcoming occurrence")

        txn = self._post_occurrence(template, occurrence_date)
        template.next_occurrence_date = compute_next_occurrence(
            template.start_date,
            template.recurrence_rule,
            occurrence_date,
            template.end_date,
        )
        if template.next_occurrence_date is None:
            template.is_active = False
            logger.info(f"recurring_template_finished: template_id={template.id}")
        self.session.flush()
        return txn

    def _post_occurrence(
        self, template: RecurringTemplate, occurrence_date: date
    ) -> Optional[Transaction]:
        exists_stmt = (
            select(Transaction.id)
            .where(
                Transaction.template_id == template.id,
                Transaction.transaction_date == occurrence_date,
            )
            .limit(1)
        )
        existing = self.session.execute(exists_stmt).scalar_one_or_none()
        if existing:
            logger.info(
                f"recurring_occurrence_skipped: template_id={template.id} "
                f"date={occurrence_date} transaction_id={existing}"
            )
            return None

        txn = Transaction(
            account_id=template.account_id,
            transaction_date=occurrence_date,
            amount=template.amount,
            transaction_type=template.transaction_type,
            status=TransactionStatus.uncleared,
            description=template.description,
            vendor=template.vendor,
            check_number=template.check_number,
            template_id=template.id,
            line_items=[
                TransactionLineItem(
                    category_id=item.category_id,
                    amount=item.amount,
                    memo=item.memo,
                )
                for item in template.line_items
            ],
        )
        self.session.add(txn)
        self.session.flush()
        logger.info(
            f"recurring_occurrence_posted: template_id={template.id} "
            f"date={occurrence_date} transaction_id={txn.id}"
        )
        return txn
