import logging
from contextlib import AbstractContextManager
from datetime import date
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from config import get_settings
from database import session_scope
from services import RecurringTemplateService


logger = logging.getLogger(__name__)

DAILY_JOB_ID = "post_due_templates_daily"
HOURLY_JOB_ID = "post_due_templates_hourly"


class SchedulerManager:
    """Posts due recurring-template occurrences in the background."""

    def __init__(
        self, scope: Optional[Callable[[], AbstractContextManager[Session]]] = None
    ) -> None:
        self.timezone = get_settings().timezone
        self.scheduler = BackgroundScheduler(timezone=self.timezone)
        self._scope = scope or session_scope

    def post_due_templates(
        self, source: str = "manual", today: Optional[date] = None
    ) -> int:
        logger.info(f"scheduler_run: source={source}")
        with self._scope() as session:
            posted = RecurringTemplateService(session).post_due(today)
        logger.info(f"scheduler_run: source={source} occurrences_posted={posted}")
        return posted

    def _schedule(self) -> None:
        # Daily pass shortly after midnight local time, hourly as a safety net.
        jobs = (
            (DAILY_JOB_ID, CronTrigger(hour=0, minute=30, timezone=self.timezone), 3600),
            (HOURLY_JOB_ID, IntervalTrigger(hours=1), 300),
        )
        for job_id, trigger, grace in jobs:
            self.scheduler.add_job(
                self.post_due_templates,
                trigger,
                args=[job_id],
                id=job_id,
                replace_existing=True,
                coalesce=True,
                misfire_grace_time=grace,
            )

    def start(self) -> None:
        self.post_due_templates("startup")
        self._schedule()
        self.scheduler.start()
        logger.info(f"scheduler_started: jobs={DAILY_JOB_ID},{HOURLY_JOB_ID}")

    def stop(self) -> None:
        if not self.scheduler.running:
            return
        self.scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")
