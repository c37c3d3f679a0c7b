"""Scheduled follow-up message models."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    SCHEDULED = "scheduled"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"
    ERROR = "error"


TERMINAL_STATUSES = frozenset({JobStatus.SENT, JobStatus.FAILED,
                               JobStatus.CANCELLED, JobStatus.ERROR})


class FollowUpMessage(BaseModel):
    """One message to schedule, with its delay after the previous one."""
    text: str
    delay_seconds: Optional[float] = None


@dataclass
class ScheduledMessageJob:
    """
    A single deferred message send tied to a conversation.

    Owned by the scheduling agent: ``ticket`` is the asyncio task that
    sleeps until ``scheduled_at`` and dispatches the message.
    """
    id: str
    conversation_id: str
    customer_id: str
    goal: str
    index: int
    text: str
    delay_seconds: float
    scheduled_at: datetime
    status: JobStatus = JobStatus.SCHEDULED
    firing: bool = False
    final_text: Optional[str] = None
    sent_at: Optional[datetime] = None
    error: Optional[str] = None
    ticket: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def delay_ms(self) -> int:
        return int(self.delay_seconds * 1000)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class JobView(BaseModel):
    """Read-only snapshot of a job for callers outside the agent."""
    id: str
    conversation_id: str
    customer_id: str
    goal: str
    text: str
    delay_ms: int
    scheduled_at: datetime
    status: JobStatus
    final_text: Optional[str] = None
    sent_at: Optional[datetime] = None
    error: Optional[str] = None

    @classmethod
    def from_job(cls, job: ScheduledMessageJob) -> "JobView":
        return cls(
            id=job.id,
            conversation_id=job.conversation_id,
            customer_id=job.customer_id,
            goal=job.goal,
            text=job.text,
            delay_ms=job.delay_ms,
            scheduled_at=job.scheduled_at,
            status=job.status,
            final_text=job.final_text,
            sent_at=job.sent_at,
            error=job.error,
        )


class ScheduleResult(BaseModel):
    """Outcome of a scheduling request."""
    success: bool
    jobs: list[JobView] = Field(default_factory=list)
    error: Optional[str] = None
