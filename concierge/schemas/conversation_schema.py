"""Conversation, journey and turn data models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JourneyStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class MessageDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class Journey(BaseModel):
    """Binding of one customer to one active conversation for one intent."""
    customer_id: str
    conversation_id: str
    intent_id: str
    status: JourneyStatus = JourneyStatus.ACTIVE
    started_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class StageVisit(BaseModel):
    """Recorded history entry for a stage visit."""
    stage_id: str
    entered_at: datetime = Field(default_factory=_utcnow)
    edge: Optional[str] = None


class HistoryMessage(BaseModel):
    """A single message exchanged in a conversation."""
    direction: MessageDirection
    text: str
    stage_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class ConversationState(BaseModel):
    """
    Per-conversation progress record.

    ``collected_data`` only ever accumulates: :meth:`merge` overwrites or
    adds keys but never removes them, so later stages cannot make the
    dialogue forget earlier answers.
    """
    conversation_id: str
    customer_id: str
    intent_id: str
    current_stage_id: Optional[str] = None
    collected_data: dict[str, Any] = Field(default_factory=dict)
    stage_history: list[StageVisit] = Field(default_factory=list)
    messages: list[HistoryMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def merge(self, updates: dict[str, Any]) -> list[str]:
        """Merge non-null updates into collected data; return changed keys."""
        changed = []
        for key, value in updates.items():
            if value is None:
                continue
            if self.collected_data.get(key) != value:
                changed.append(key)
            self.collected_data[key] = value
        if changed:
            self.updated_at = _utcnow()
        return changed

    def enter_stage(self, stage_id: str, edge: Optional[str] = None) -> None:
        self.current_stage_id = stage_id
        self.stage_history.append(StageVisit(stage_id=stage_id, edge=edge))
        self.updated_at = _utcnow()

    def add_message(self, direction: MessageDirection, text: str) -> HistoryMessage:
        message = HistoryMessage(direction=direction, text=text,
                                 stage_id=self.current_stage_id)
        self.messages.append(message)
        self.updated_at = _utcnow()
        return message

    def recent_messages(self, limit: int) -> list[HistoryMessage]:
        if limit <= 0:
            return []
        return self.messages[-limit:]

    def stage_trace(self) -> list[str]:
        return [visit.stage_id for visit in self.stage_history]


class TurnResult(BaseModel):
    """Outcome of handling one inbound message."""
    answer: str
    conversation_id: str
    intent_id: str
    stage_id: str
    previous_stage_id: str
    edge: str
    collected_data: dict[str, Any] = Field(default_factory=dict)
    background_pending: bool = False
