"""
Conversation state and journey repositories.

Orchestration code only talks to the abstract interfaces. The in-memory
implementations hand out copies and funnel every write through
``update``, so a turn and a background claim pipeline interleaving on the
event loop each apply their own changes to the latest stored state
rather than overwriting each other with stale snapshots.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Optional

from concierge.schemas.conversation_schema import ConversationState, Journey, JourneyStatus

logger = logging.getLogger(__name__)

StateMutator = Callable[[ConversationState], None]


class ConversationNotFoundError(KeyError):
    """Raised when updating a conversation that does not exist."""


class ConversationStore(ABC):
    """Keyed store of per-conversation state."""

    @abstractmethod
    def get(self, conversation_id: str) -> Optional[ConversationState]:
        """Return a copy of the stored state, or None."""

    @abstractmethod
    def get_or_create(
        self, conversation_id: str, customer_id: str, intent_id: str
    ) -> ConversationState:
        """Return a copy of the stored state, creating it if missing."""

    @abstractmethod
    def update(self, conversation_id: str, mutate: StateMutator) -> ConversationState:
        """Apply ``mutate`` to the stored state and return a copy of the result.

        Raises:
            ConversationNotFoundError: If the conversation does not exist.
        """

    @abstractmethod
    def delete(self, conversation_id: str) -> bool:
        """Remove a conversation; return whether it existed."""


class JourneyStore(ABC):
    """Keyed store of the active journey per customer."""

    @abstractmethod
    def get_active(self, customer_id: str) -> Optional[Journey]:
        ...

    @abstractmethod
    def start(self, customer_id: str, intent_id: str) -> Journey:
        """Start a journey with a fresh conversation id, replacing any active one."""

    @abstractmethod
    def touch(self, customer_id: str) -> None:
        ...

    @abstractmethod
    def close(self, customer_id: str) -> Optional[Journey]:
        ...

    @abstractmethod
    def remove(self, customer_id: str) -> Optional[Journey]:
        ...


class InMemoryConversationStore(ConversationStore):
    """Process-local conversation store."""

    def __init__(self) -> None:
        self._states: dict[str, ConversationState] = {}

    def get(self, conversation_id: str) -> Optional[ConversationState]:
        state = self._states.get(conversation_id)
        return state.model_copy(deep=True) if state is not None else None

    def get_or_create(
        self, conversation_id: str, customer_id: str, intent_id: str
    ) -> ConversationState:
        if conversation_id not in self._states:
            self._states[conversation_id] = ConversationState(
                conversation_id=conversation_id,
                customer_id=customer_id,
                intent_id=intent_id,
            )
            logger.info("Conversation created: %s (%s)", conversation_id, intent_id)
        return self._states[conversation_id].model_copy(deep=True)

    def update(self, conversation_id: str, mutate: StateMutator) -> ConversationState:
        state = self._states.get(conversation_id)
        if state is None:
            raise ConversationNotFoundError(f"Conversation '{conversation_id}' not found")
        working = state.model_copy(deep=True)
        mutate(working)
        self._states[conversation_id] = working
        return working.model_copy(deep=True)

    def delete(self, conversation_id: str) -> bool:
        existed = self._states.pop(conversation_id, None) is not None
        if existed:
            logger.info("Conversation deleted: %s", conversation_id)
        return existed

    def __len__(self) -> int:
        return len(self._states)


class InMemoryJourneyStore(JourneyStore):
    """Process-local journey store keyed by customer id."""

    def __init__(self) -> None:
        self._journeys: dict[str, Journey] = {}

    def get_active(self, customer_id: str) -> Optional[Journey]:
        journey = self._journeys.get(customer_id)
        if journey is None or journey.status != JourneyStatus.ACTIVE:
            return None
        return journey.model_copy()

    def start(self, customer_id: str, intent_id: str) -> Journey:
        previous = self._journeys.get(customer_id)
        if previous is not None and previous.status == JourneyStatus.ACTIVE:
            logger.info("Replacing active journey %s for %s",
                        previous.conversation_id, customer_id)
        journey = Journey(
            customer_id=customer_id,
            conversation_id=str(uuid.uuid4()),
            intent_id=intent_id,
        )
        self._journeys[customer_id] = journey
        logger.info("Journey started: %s for %s (%s)",
                    journey.conversation_id, customer_id, intent_id)
        return journey.model_copy()

    def touch(self, customer_id: str) -> None:
        journey = self._journeys.get(customer_id)
        if journey is not None:
            journey.updated_at = datetime.now(timezone.utc)

    def close(self, customer_id: str) -> Optional[Journey]:
        journey = self._journeys.get(customer_id)
        if journey is None:
            return None
        journey.status = JourneyStatus.CLOSED
        journey.updated_at = datetime.now(timezone.utc)
        logger.info("Journey closed: %s", journey.conversation_id)
        return journey.model_copy()

    def remove(self, customer_id: str) -> Optional[Journey]:
        journey = self._journeys.pop(customer_id, None)
        return journey.model_copy() if journey is not None else None
