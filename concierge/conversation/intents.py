"""
Intent registry: named goals and the stage graph each one runs on.

Orchestration code resolves intents by id through the registry, so new
goals can be added by registering a definition without touching the
orchestrator.
"""

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional

from concierge.conversation.stages import (
    ADMISSION_CLAIM_STAGES,
    HEALTH_CHECKUP_STAGES,
    Stage,
    StageId,
)
from concierge.conversation.state_machine import (
    DECISION_RULES,
    HEALTH_CHECKUP_RULES,
    DecisionRule,
    StageGraph,
)

logger = logging.getLogger(__name__)

HOSPITAL_ADMISSION_CLAIM = "hospital_admission_claim"
HEALTH_CHECKUP_BOOKING = "health_checkup_booking"

DEFAULT_INTENT = HOSPITAL_ADMISSION_CLAIM


@dataclass(frozen=True)
class IntentDefinition:
    """A named goal with its stages, decision rules and follow-up action."""

    id: str
    name: str
    start_stage: StageId
    stages: Mapping[StageId, Stage]
    goal_keywords: tuple[str, ...] = ("admission", "admit")
    followup_action: str = ""
    rules: Optional[Mapping[StageId, DecisionRule]] = None
    graph: StageGraph = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "graph",
            StageGraph(self.stages, self.start_stage, self.goal_keywords, self.rules),
        )


_INTENT_REGISTRY: dict[str, IntentDefinition] = {}


def register_intent(intent: IntentDefinition) -> None:
    """Register an intent definition by id."""
    _INTENT_REGISTRY[intent.id] = intent
    logger.debug("Intent registered: %s", intent.id)


def get_intent(intent_id: str) -> IntentDefinition:
    """Look up an intent by id.

    Raises:
        KeyError: If the intent id is not registered.
    """
    if intent_id not in _INTENT_REGISTRY:
        registered = list(_INTENT_REGISTRY.keys())
        raise KeyError(f"Intent '{intent_id}' not registered. Available: {registered}")
    return _INTENT_REGISTRY[intent_id]


def get_registered_intents() -> list[str]:
    """Return ids of all registered intents."""
    return list(_INTENT_REGISTRY.keys())


def detect_intent(text: str) -> Optional[str]:
    """Id of the first registered intent whose goal keywords appear in ``text``."""
    for intent in _INTENT_REGISTRY.values():
        if intent.graph.matches_goal(text):
            return intent.id
    return None


def _auto_register() -> None:
    """Register the built-in intents. Called once at import time."""
    register_intent(IntentDefinition(
        id=HOSPITAL_ADMISSION_CLAIM,
        name="Hospital admission and cashless claim",
        start_stage=StageId.GREETING,
        stages=ADMISSION_CLAIM_STAGES,
        followup_action="claim_initiated",
        rules=DECISION_RULES,
    ))
    register_intent(IntentDefinition(
        id=HEALTH_CHECKUP_BOOKING,
        name="Free annual health check-up booking",
        start_stage=StageId.GREETING,
        stages=HEALTH_CHECKUP_STAGES,
        goal_keywords=("checkup", "check-up", "check up", "health check"),
        followup_action="health_checkup_booked",
        rules=HEALTH_CHECKUP_RULES,
    ))


_auto_register()
