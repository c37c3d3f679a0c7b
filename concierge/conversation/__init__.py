from concierge.conversation.extraction import extract
from concierge.conversation.intents import (
    HEALTH_CHECKUP_BOOKING,
    HOSPITAL_ADMISSION_CLAIM,
    IntentDefinition,
    detect_intent,
    get_intent,
    get_registered_intents,
    register_intent,
)
from concierge.conversation.stages import (
    ADMISSION_CLAIM_STAGES,
    HEALTH_CHECKUP_STAGES,
    Edge,
    SideEffect,
    Stage,
    StageId,
)
from concierge.conversation.state_machine import Decision, StageGraph
from concierge.conversation.store import (
    ConversationStore,
    InMemoryConversationStore,
    InMemoryJourneyStore,
    JourneyStore,
)

__all__ = [
    "StageGraph",
    "Decision",
    "Stage",
    "StageId",
    "Edge",
    "SideEffect",
    "ADMISSION_CLAIM_STAGES",
    "HEALTH_CHECKUP_STAGES",
    "extract",
    "IntentDefinition",
    "HOSPITAL_ADMISSION_CLAIM",
    "HEALTH_CHECKUP_BOOKING",
    "detect_intent",
    "get_intent",
    "get_registered_intents",
    "register_intent",
    "ConversationStore",
    "JourneyStore",
    "InMemoryConversationStore",
    "InMemoryJourneyStore",
]
