from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.base import BaseTrigger
from loguru import logger

from src.config import get_settings
from src.notifications.dispatcher import PushDispatcher
from src.notifications.tokens import is_valid_token
from src.scheduler.errors import (
    DuplicateJobError,
    InvalidJobNameError,
    InvalidTokenError,
    JobLimitError,
)
from src.scheduler.triggers import daily_trigger, parse_cron_expression

JOB_ID_PREFIX = "notification:"


@dataclass(frozen=True)
class MessageTemplate:
    title: str
    body: str
    data: Mapping[str, Any] = field(default_factory=dict)

    def render_data(self) -> Dict[str, Any]:
        return copy.deepcopy(dict(self.data))


@dataclass(eq=False)
class ScheduledNotification:
    """A named trigger bound to a fixed set of tokens and a message template."""

    name: str
    kind: str  # "daily" or "cron"
    schedule: str
    trigger: BaseTrigger
    tokens: Tuple[str, ...]
    template: MessageTemplate
    dispatcher: PushDispatcher
    timezone: tzinfo
    created_at: datetime
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def job_id(self) -> str:
        return f"{JOB_ID_PREFIX}{self.name}"

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def next_invocation(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """Next fire time after ``now``; None when the trigger is exhausted."""
        if self.cancelled:
            return None
        now = now or datetime.now(self.timezone)
        # APScheduler returns a fire time equal to now; report the following one
        return self.trigger.get_next_fire_time(None, now + timedelta(microseconds=1))

    def fire(self) -> None:
        """Deliver the template to every token. Never raises."""
        if self.cancelled:
            logger.debug(f"Skipping cancelled job: {self.name}")
            return

        try:
            messages = [
                self.dispatcher.create_message(
                    token,
                    self.template.title,
                    self.template.body,
                    self.template.render_data(),
                )
                for token in self.tokens
            ]
            tickets = self.dispatcher.send(messages)
            logger.info(
                f"Scheduled notification sent: {self.name} "
                f"({len(tickets)} tickets for {len(self.tokens)} tokens)"
            )
        except Exception as e:
            logger.error(f"Failed to send scheduled notification {self.name}: {e}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "next_invocation": self.next_invocation(),
        }


class JobRegistry:
    """Process-wide registry of named push notification jobs.

    Jobs live in memory only. Create, cancel and list are serialized by a lock,
    so two concurrent creates of the same name produce exactly one job.
    """

    def __init__(
        self,
        scheduler: BaseScheduler,
        dispatcher: PushDispatcher,
        timezone: Optional[tzinfo] = None,
        max_jobs: Optional[int] = None,
    ):
        settings = get_settings()
        self.scheduler = scheduler
        self.dispatcher = dispatcher
        self.timezone = timezone or ZoneInfo(settings.scheduler_timezone)
        self.max_jobs = settings.scheduler_max_jobs if max_jobs is None else max_jobs
        self.misfire_grace_time = settings.scheduler_misfire_grace_time
        self._jobs: Dict[str, ScheduledNotification] = {}
        self._lock = threading.Lock()
        logger.info("Scheduled notifications service initialized")

    def schedule_fixed_time(
        self,
        name: str,
        hour: int,
        minute: int,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> ScheduledNotification:
        """Send ``title``/``body`` to ``tokens`` every day at hour:minute."""
        self._validate_name_format(name)
        frozen_tokens = self._validate_tokens(tokens)
        trigger = daily_trigger(hour, minute, self.timezone)

        job = self._register(
            name, "daily", f"{hour:02d}:{minute:02d}", trigger, frozen_tokens, title, body, data
        )
        logger.info(
            f"Daily notification scheduled: {name} at {hour:02d}:{minute:02d} "
            f"for {len(frozen_tokens)} tokens"
        )
        return job

    def schedule_recurring(
        self,
        name: str,
        cron_expression: str,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> ScheduledNotification:
        """Send ``title``/``body`` to ``tokens`` on every cron match."""
        self._validate_name_format(name)
        frozen_tokens = self._validate_tokens(tokens)
        trigger = parse_cron_expression(cron_expression, self.timezone)

        job = self._register(
            name, "cron", cron_expression, trigger, frozen_tokens, title, body, data
        )
        logger.info(
            f"Custom notification scheduled: {name} ({cron_expression}) "
            f"for {len(frozen_tokens)} tokens"
        )
        return job

    def cancel(self, name: str) -> bool:
        with self._lock:
            job = self._jobs.pop(name, None)
            if job is None:
                return False
            job.cancel()
            try:
                self.scheduler.remove_job(job.job_id)
            except JobLookupError:
                logger.warning(f"Scheduler had no entry for job {name}")

        logger.info(f"Job cancelled: {name}")
        return True

    def get(self, name: str) -> Optional[ScheduledNotification]:
        with self._lock:
            return self._jobs.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return list(self._jobs)

    def list_active(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot of active jobs with their next fire time."""
        with self._lock:
            jobs = list(self._jobs.values())
        return {job.name: job.to_dict() for job in jobs}

    def _register(
        self,
        name: str,
        kind: str,
        schedule: str,
        trigger: BaseTrigger,
        tokens: Tuple[str, ...],
        title: str,
        body: str,
        data: Optional[Dict[str, Any]],
    ) -> ScheduledNotification:
        template = MessageTemplate(
            title=title,
            body=body,
            data=MappingProxyType(copy.deepcopy(dict(data or {}))),
        )
        job = ScheduledNotification(
            name=name,
            kind=kind,
            schedule=schedule,
            trigger=trigger,
            tokens=tokens,
            template=template,
            dispatcher=self.dispatcher,
            timezone=self.timezone,
            created_at=datetime.now(self.timezone),
        )

        with self._lock:
            if name in self._jobs:
                raise DuplicateJobError(name)
            if len(self._jobs) >= self.max_jobs:
                raise JobLimitError("Maximum number of jobs reached")

            self.scheduler.add_job(
                job.fire,
                trigger,
                id=job.job_id,
                name=name,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=self.misfire_grace_time,
                replace_existing=True,
            )
            self._jobs[name] = job

        return job

    @staticmethod
    def _validate_name_format(name: Any) -> None:
        if not name or not isinstance(name, str) or not name.strip():
            raise InvalidJobNameError("Job name is required and must be a string")

    @staticmethod
    def _validate_tokens(tokens: Any) -> Tuple[str, ...]:
        if isinstance(tokens, (str, bytes)) or not isinstance(tokens, (list, tuple)) or not tokens:
            raise InvalidTokenError("Push tokens must be a non-empty list")
        for token in tokens:
            if not is_valid_token(token):
                raise InvalidTokenError(f"Invalid push token: {token}", token=token)
        return tuple(tokens)
