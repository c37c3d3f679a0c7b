"""
Scheduling agent for deferred follow-up messages.

Each scheduled message becomes one asyncio task (its ticket) that sleeps
until the message is due, optionally has the text rewritten by the
humanizer, and dispatches it. Delays are cumulative: the k-th message of
a request fires at now + the sum of the first k delays.

Usage:
    agent = SchedulingAgent(dispatcher=MessagingGateway(), humanizer=TextGenerator())
    result = agent.schedule_messages(conversation_id, customer_id, messages, goal="claim_initiated")
    ...
    agent.cancel_scheduled_messages(conversation_id, goal="claim_initiated")
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Sequence, Union

from concierge.config import settings
from concierge.logging_context import get_conversation_logger, set_conversation_id
from concierge.prompts.followup_templates import get_followup_messages
from concierge.schemas.claim_schema import DispatchResult
from concierge.schemas.conversation_schema import HistoryMessage
from concierge.schemas.scheduling_schema import (
    FollowUpMessage,
    JobStatus,
    JobView,
    ScheduledMessageJob,
    ScheduleResult,
)
from concierge.tools.policy import POLICY_PROFILE
from concierge.utils import find_unresolved_placeholders, first_name, unescape_newlines

logger = get_conversation_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]
HistoryProvider = Callable[[str], Sequence[HistoryMessage]]

EXECUTED_STATUSES = frozenset({JobStatus.SENT, JobStatus.FAILED, JobStatus.ERROR})


class MessageDispatcher(Protocol):
    async def send(self, text: str, customer_id: Optional[str] = None) -> DispatchResult:
        ...


class Humanizer(Protocol):
    async def humanize(
        self, scripted: str, history: Sequence[HistoryMessage], customer_first_name: str
    ) -> str:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SchedulingAgent:
    """
    Arms, fires, tracks and cancels follow-up message jobs.

    A conversation accepts one scheduling request per goal; a repeat
    request for the same goal is rejected so messages are never sent twice.
    """

    def __init__(
        self,
        dispatcher: MessageDispatcher,
        humanizer: Optional[Humanizer] = None,
        history_provider: Optional[HistoryProvider] = None,
        customer_name: str = first_name(POLICY_PROFILE["policyholder"]),
        default_delay: float = settings.scheduling.default_delay_sec,
        humanize_enabled: bool = settings.scheduling.humanize_enabled,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._dispatcher = dispatcher
        self._humanizer = humanizer
        self._history_provider = history_provider
        self._customer_name = customer_name
        self._default_delay = default_delay
        self._humanize_enabled = humanize_enabled
        self._sleep = sleep
        self._jobs: dict[str, list[ScheduledMessageJob]] = {}

    # ------------------------------------------------------------------ #
    # Scheduling
    # ------------------------------------------------------------------ #

    def schedule_messages(
        self,
        conversation_id: str,
        customer_id: str,
        messages: Sequence[Union[FollowUpMessage, Mapping[str, Any]]],
        goal: str = "default",
    ) -> ScheduleResult:
        """Arm one timer per message with cumulative delays.

        Must be called from a running event loop. Rejects the request
        without arming anything when the conversation already has jobs for
        ``goal`` or when any text still contains ``{{placeholders}}``.
        """
        parsed = [m if isinstance(m, FollowUpMessage) else FollowUpMessage(**m)
                  for m in messages]
        if not parsed:
            return ScheduleResult(success=False, error="No messages to schedule")

        existing = self._jobs.get(conversation_id, [])
        if any(job.goal == goal for job in existing):
            logger.warning("Follow-ups for goal '%s' already scheduled on %s, rejecting",
                           goal, conversation_id)
            return ScheduleResult(success=False,
                                  error=f"Messages for goal '{goal}' already scheduled")

        for message in parsed:
            unresolved = find_unresolved_placeholders(message.text)
            if unresolved:
                logger.error("Refusing to schedule text with unresolved placeholders: %s",
                             unresolved)
                return ScheduleResult(success=False,
                                      error=f"Unresolved placeholders: {unresolved}")

        now = _utcnow()
        stamp = int(time.time() * 1000)
        cumulative = 0.0
        jobs: list[ScheduledMessageJob] = []
        for index, message in enumerate(parsed):
            delay = message.delay_seconds if message.delay_seconds is not None else self._default_delay
            cumulative += delay
            job = ScheduledMessageJob(
                id=f"{conversation_id}_{index}_{stamp}",
                conversation_id=conversation_id,
                customer_id=customer_id,
                goal=goal,
                index=index,
                text=message.text,
                delay_seconds=cumulative,
                scheduled_at=now + timedelta(seconds=cumulative),
            )
            job.ticket = asyncio.create_task(self._run_job(job), name=f"followup:{job.id}")
            jobs.append(job)

        self._jobs[conversation_id] = existing + jobs
        logger.info("Scheduled %d message(s) for %s (goal %s)",
                    len(jobs), conversation_id, goal)
        return ScheduleResult(success=True, jobs=[JobView.from_job(job) for job in jobs])

    def schedule_followups_for_action(
        self,
        conversation_id: str,
        customer_id: str,
        action: str,
        context: Mapping[str, Any],
    ) -> ScheduleResult:
        """Render the follow-up templates for ``action`` and schedule them."""
        messages = get_followup_messages(action, context)
        if not messages:
            return ScheduleResult(success=False,
                                  error=f"No follow-up messages for action '{action}'")
        return self.schedule_messages(conversation_id, customer_id, messages, goal=action)

    # ------------------------------------------------------------------ #
    # Firing
    # ------------------------------------------------------------------ #

    async def _run_job(self, job: ScheduledMessageJob) -> None:
        set_conversation_id(job.conversation_id)
        try:
            await self._sleep(job.delay_seconds)
        except asyncio.CancelledError:
            job.status = JobStatus.CANCELLED
            raise

        if job.status != JobStatus.SCHEDULED:
            return
        job.firing = True
        try:
            text = await self._render(job)
            result = await self._dispatcher.send(text, job.customer_id)
        except Exception as e:
            logger.exception("Follow-up %s could not be dispatched", job.id)
            job.status = JobStatus.ERROR
            job.error = str(e) or type(e).__name__
            return

        job.final_text = text
        job.sent_at = _utcnow()
        job.status = JobStatus.SENT if result.success else JobStatus.FAILED
        job.error = result.error
        logger.info("Follow-up %s %s", job.id, job.status.value)

    async def _render(self, job: ScheduledMessageJob) -> str:
        text = job.text
        if self._humanizer is not None and self._humanize_enabled:
            history = self._history_provider(job.conversation_id) if self._history_provider else []
            try:
                rewritten = await self._humanizer.humanize(text, history, self._customer_name)
            except Exception:
                logger.warning("Humanize failed for %s, sending scripted text",
                               job.id, exc_info=True)
            else:
                rewritten = (rewritten or "").strip()
                if rewritten and not find_unresolved_placeholders(rewritten):
                    text = rewritten
                else:
                    logger.warning("Humanized text for %s unusable, sending scripted text",
                                   job.id)
        return unescape_newlines(text)

    # ------------------------------------------------------------------ #
    # Cancellation and inspection
    # ------------------------------------------------------------------ #

    def cancel_scheduled_messages(self, conversation_id: str, goal: Optional[str] = None) -> int:
        """Cancel pending jobs of a conversation, optionally of one goal only.

        Jobs already firing are left to finish. Calling this again, or on
        a conversation with nothing pending, returns 0.
        """
        cancelled = 0
        for job in self._jobs.get(conversation_id, []):
            if job.status != JobStatus.SCHEDULED or job.firing:
                continue
            if goal is not None and job.goal != goal:
                continue
            job.status = JobStatus.CANCELLED
            if job.ticket is not None:
                job.ticket.cancel()
            cancelled += 1
        if cancelled:
            logger.info("Cancelled %d follow-up(s) for %s", cancelled, conversation_id)
        return cancelled

    def forget(self, conversation_id: str) -> int:
        """Cancel pending jobs and drop every record of the conversation."""
        cancelled = self.cancel_scheduled_messages(conversation_id)
        self._jobs.pop(conversation_id, None)
        return cancelled

    def release(self, conversation_id: str) -> None:
        """Stop tracking a conversation once its jobs are done.

        Finished jobs are dropped now. Pending ones still fire and are
        dropped as their tickets complete.
        """
        self._prune(conversation_id)
        for job in self._jobs.get(conversation_id, []):
            if job.ticket is not None:
                job.ticket.add_done_callback(lambda _: self._prune(conversation_id))

    def _prune(self, conversation_id: str) -> None:
        jobs = self._jobs.get(conversation_id)
        if jobs is None:
            return
        live = [job for job in jobs if job.status == JobStatus.SCHEDULED]
        if live:
            self._jobs[conversation_id] = live
        else:
            del self._jobs[conversation_id]

    def get_scheduled_messages(self, conversation_id: str) -> list[JobView]:
        return [JobView.from_job(job) for job in self._jobs.get(conversation_id, [])
                if job.status == JobStatus.SCHEDULED]

    def get_executed_messages(self, conversation_id: str) -> list[JobView]:
        return [JobView.from_job(job) for job in self._jobs.get(conversation_id, [])
                if job.status in EXECUTED_STATUSES]

    def get_all_messages(self, conversation_id: str) -> list[JobView]:
        return [JobView.from_job(job) for job in self._jobs.get(conversation_id, [])]

    async def wait_idle(self, conversation_id: str) -> None:
        """Wait until every job of the conversation has finished or been cancelled."""
        tickets = [job.ticket for job in self._jobs.get(conversation_id, [])
                   if job.ticket is not None]
        if tickets:
            await asyncio.gather(*tickets, return_exceptions=True)
