"""
Stage graph for deterministic conversation flow control.

Each intent has a table of hand-specified decision rules, one per stage,
mapping the collected data and the latest user text to an outcome edge.
The stage's own transition table then turns the edge into a target
stage. Rules are pure: the same (stage, data, text) always yields the
same target, so a conversation can be replayed from its message log.

Usage:
    graph = StageGraph(ADMISSION_CLAIM_STAGES, StageId.GREETING)
    stage = graph.get_stage(None)                      # start stage
    target = graph.next_stage(stage, {}, "yes")
    assert target == StageId.IDENTIFY_PATIENT
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union

from concierge.conversation.sentiment import is_negative, yes_no
from concierge.conversation.stages import Edge, Stage, StageId

logger = logging.getLogger(__name__)

DEFAULT_GOAL_KEYWORDS: tuple[str, ...] = ("admission", "admit")


@dataclass(frozen=True)
class DecisionContext:
    """Everything a decision rule may look at."""
    stage: Stage
    data: Mapping[str, Any]
    text: str
    goal_pattern: re.Pattern


@dataclass(frozen=True)
class Decision:
    """Outcome of a decision: the edge a rule chose and where it leads."""
    edge: Edge
    target: StageId


DecisionRule = Callable[[DecisionContext], Edge]


def _has(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key)
    return value is not None and value != ""


def _collect_one(field_name: str) -> DecisionRule:
    def rule(ctx: DecisionContext) -> Edge:
        return Edge.COLLECTED if _has(ctx.data, field_name) else Edge.DEFAULT
    rule.__name__ = f"collect_{field_name}"
    return rule


def _greeting(ctx: DecisionContext) -> Edge:
    return Edge.NO if is_negative(ctx.text) else Edge.YES


def _show_hospitals(ctx: DecisionContext) -> Edge:
    return Edge.SELECTED if _has(ctx.data, "selected_hospital") else Edge.SHOWN


def _confirm_flag(field_name: str) -> DecisionRule:
    def rule(ctx: DecisionContext) -> Edge:
        value = ctx.data.get(field_name)
        if value is True:
            return Edge.YES
        if value is False:
            return Edge.NO
        return Edge.DEFAULT
    rule.__name__ = f"confirm_{field_name}"
    return rule


def _both_or_one(first: str, second: str) -> DecisionRule:
    def rule(ctx: DecisionContext) -> Edge:
        present = [name for name in (first, second) if _has(ctx.data, name)]
        if len(present) == 2:
            return Edge.COMPLETE
        if len(present) == 1:
            return Edge.PARTIAL
        return Edge.DEFAULT
    rule.__name__ = f"details_{first}_{second}"
    return rule


_admission_details = _both_or_one("estimated_cost", "admission_date")


def _identify_member(ctx: DecisionContext) -> Edge:
    if _has(ctx.data, "selected_members"):
        return Edge.COLLECTED
    return Edge.NO if is_negative(ctx.text) else Edge.DEFAULT


def _initiate_claim(ctx: DecisionContext) -> Edge:
    if _has(ctx.data, "intimation_id"):
        return Edge.SUCCESS
    if _has(ctx.data, "claim_error"):
        return Edge.FAILURE
    return Edge.DEFAULT


def _complete(ctx: DecisionContext) -> Edge:
    return Edge.COMPLETE


def _terminal_branch(ctx: DecisionContext) -> Edge:
    return Edge.RESTART if ctx.goal_pattern.search(ctx.text) else Edge.END


def _consultation_preferences(ctx: DecisionContext) -> Edge:
    if _has(ctx.data, "consultation_date") and _has(ctx.data, "consultation_time"):
        return Edge.COLLECTED
    return Edge.DEFAULT


def _end(ctx: DecisionContext) -> Edge:
    if ctx.goal_pattern.search(ctx.text):
        return Edge.RESTART
    if ctx.data.get("followups_scheduled") and yes_no(ctx.text) is True:
        return Edge.TELECONSULT
    return Edge.DEFAULT


DECISION_RULES: dict[StageId, DecisionRule] = {
    StageId.GREETING: _greeting,
    StageId.IDENTIFY_PATIENT: _collect_one("patient_relation"),
    StageId.MEDICAL_REASON: _collect_one("medical_reason"),
    StageId.SHOW_HOSPITALS: _show_hospitals,
    StageId.AWAIT_HOSPITAL_SELECTION: _collect_one("selected_hospital"),
    StageId.CONFIRM_ADMISSION: _confirm_flag("admission_confirmed"),
    StageId.COLLECT_ADMISSION_DETAILS: _admission_details,
    StageId.INITIATE_CLAIM: _initiate_claim,
    StageId.SCHEDULE_FOLLOWUPS: _complete,
    StageId.ADMISSION_CONFIRMED: _terminal_branch,
    StageId.CLAIM_FAILED: _terminal_branch,
    StageId.CLOSE_POLITELY: _terminal_branch,
    StageId.TELECONSULTATION_RESPONSE: _confirm_flag("teleconsultation_interest"),
    StageId.COLLECT_CONSULTATION_PREFERENCES: _consultation_preferences,
    StageId.CONFIRM_CONSULTATION: _complete,
    StageId.END: _end,
}

HEALTH_CHECKUP_RULES: dict[StageId, DecisionRule] = {
    StageId.GREETING: _greeting,
    StageId.IDENTIFY_MEMBER: _identify_member,
    StageId.SHOW_PACKAGE_OPTIONS: _confirm_flag("package_accepted"),
    StageId.COLLECT_SCHEDULING_DETAILS: _both_or_one("preferred_date", "preferred_time"),
    StageId.CONFIRM_APPOINTMENT: _complete,
    StageId.SCHEDULE_REMINDERS: _confirm_flag("teleconsultation_interest"),
    StageId.TELECONSULTATION_CALL: _complete,
    StageId.CLOSE_POLITELY: _terminal_branch,
    StageId.END: _terminal_branch,
}


class StageGraph:
    """
    Static, named graph of stages for one intent.

    Lookups never raise: an unset stage id means "not yet started" and an
    unknown id is logged and replaced by the start stage, so a
    conversation always has a valid next stage.
    """

    def __init__(
        self,
        stages: Mapping[StageId, Stage],
        start_stage: StageId,
        goal_keywords: tuple[str, ...] = DEFAULT_GOAL_KEYWORDS,
        rules: Optional[Mapping[StageId, DecisionRule]] = None,
    ) -> None:
        rules = DECISION_RULES if rules is None else rules
        if start_stage not in stages:
            raise ValueError(f"Start stage '{start_stage.value}' is not defined")
        unruled = [stage_id.value for stage_id in stages if stage_id not in rules]
        if unruled:
            raise ValueError(f"Stages without a decision rule: {unruled}")
        for stage in stages.values():
            for edge, target in stage.transitions.items():
                if target not in stages:
                    raise ValueError(
                        f"Stage '{stage.id.value}' edge '{edge.value}' "
                        f"points to undefined stage '{target.value}'"
                    )
        self._stages = stages
        self._rules = rules
        self._start_stage = start_stage
        self._goal_pattern = re.compile(
            r"\b(" + "|".join(re.escape(k) for k in goal_keywords) + r")",
            re.IGNORECASE,
        )

    @property
    def start_stage(self) -> Stage:
        return self._stages[self._start_stage]

    def stage_ids(self) -> list[StageId]:
        return list(self._stages)

    def matches_goal(self, text: str) -> bool:
        """Whether the text names this graph's goal."""
        return bool(text) and bool(self._goal_pattern.search(text))

    def get_stage(self, stage_id: Optional[Union[StageId, str]]) -> Stage:
        """Resolve a stage id, falling back to the start stage."""
        if stage_id is None:
            return self.start_stage
        try:
            key = StageId(stage_id)
        except ValueError:
            key = None
        if key is None or key not in self._stages:
            logger.warning("Unknown stage '%s', falling back to '%s'",
                           stage_id, self._start_stage.value)
            return self.start_stage
        return self._stages[key]

    def decide(self, stage: Stage, data: Mapping[str, Any], text: str) -> Decision:
        """Run the stage's rule and resolve its edge against the transition table.

        An edge the stage does not declare falls back to its ``default``
        edge, and failing that to the stage itself.
        """
        rule = self._rules[stage.id]
        edge = rule(DecisionContext(stage=stage, data=data, text=text or "",
                                    goal_pattern=self._goal_pattern))
        target = stage.transitions.get(edge)
        if target is None:
            target = stage.transitions.get(Edge.DEFAULT, stage.id)
        logger.debug("Decision at %s: edge=%s -> %s",
                     stage.id.value, edge.value, target.value)
        return Decision(edge=edge, target=target)

    def next_stage(self, stage: Stage, data: Mapping[str, Any], text: str) -> StageId:
        return self.decide(stage, data, text).target
