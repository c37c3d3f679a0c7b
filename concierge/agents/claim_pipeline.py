"""
Background claim pipeline: submit, then notify, then schedule follow-ups.

Each conversation gets at most one run at a time. A run is a plain record
of three steps with their status and error, so the outcome of work that
happened after the user-facing reply was returned can be inspected
afterwards (``get_run``) or awaited in tests and demos (``wait``).

Follow-up messages quote the intimation id, so the ``schedule`` step only
runs after ``submit`` succeeded and the id has been stored.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from concierge.agents.scheduling_agent import MessageDispatcher, SchedulingAgent
from concierge.agents.side_effects import SideEffectExecutor
from concierge.conversation.intents import IntentDefinition
from concierge.conversation.stages import Edge, SideEffect
from concierge.conversation.store import ConversationNotFoundError, ConversationStore
from concierge.logging_context import get_conversation_logger, set_conversation_id
from concierge.prompts.prompt_templates import (
    build_claim_confirmation_message,
    build_claim_failure_message,
)
from concierge.schemas.conversation_schema import ConversationState, MessageDirection
from concierge.tools.policy import POLICY_PROFILE, PolicyProfile
from concierge.utils import first_name

logger = get_conversation_logger(__name__)


class PipelineStep(str, Enum):
    SUBMIT = "submit"
    NOTIFY = "notify"
    SCHEDULE = "schedule"


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StepRecord:
    step: PipelineStep
    status: StepStatus = StepStatus.PENDING
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def begin(self) -> None:
        self.status = StepStatus.RUNNING
        self.started_at = _utcnow()

    def finish(self, status: StepStatus, error: Optional[str] = None) -> None:
        self.status = status
        self.error = error
        self.finished_at = _utcnow()


@dataclass
class PipelineRun:
    """Inspectable record of one background claim run."""
    conversation_id: str
    customer_id: str
    intent_id: str
    steps: dict[PipelineStep, StepRecord] = field(
        default_factory=lambda: {step: StepRecord(step) for step in PipelineStep}
    )
    intimation_id: Optional[str] = None
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()

    @property
    def succeeded(self) -> bool:
        return self.steps[PipelineStep.SUBMIT].status == StepStatus.SUCCEEDED

    def step(self, step: PipelineStep) -> StepRecord:
        return self.steps[step]


def _followup_context(collected: dict[str, Any], profile: PolicyProfile) -> dict[str, Any]:
    intimation_id = collected.get("intimation_id")
    return {
        "customerName": first_name(profile["policyholder"]),
        "hospitalName": collected.get("selected_hospital") or "the hospital",
        "date": collected.get("admission_date") or "",
        "time": collected.get("admission_time") or "",
        "intimationId": intimation_id,
        "claim Number": intimation_id,
        "requestId": collected.get("request_id") or "-",
    }


class ClaimPipeline:
    """Launches and tracks background claim runs per conversation."""

    def __init__(
        self,
        conversations: ConversationStore,
        executor: SideEffectExecutor,
        messenger: MessageDispatcher,
        scheduling_agent: SchedulingAgent,
        profile: PolicyProfile = POLICY_PROFILE,
        today_provider: Callable[[], date] = date.today,
    ) -> None:
        self._conversations = conversations
        self._executor = executor
        self._messenger = messenger
        self._scheduling = scheduling_agent
        self._profile = profile
        self._today = today_provider
        self._runs: dict[str, PipelineRun] = {}

    def start(self, state: ConversationState, intent: IntentDefinition) -> PipelineRun:
        """Launch a run for the conversation unless one is already in flight."""
        current = self._runs.get(state.conversation_id)
        if current is not None and not current.done:
            logger.info("Claim pipeline already running for %s", state.conversation_id)
            return current

        if state.collected_data.get("claim_error"):
            # Each run starts without the previous run's failure marker
            self._conversations.update(
                state.conversation_id, lambda target: target.merge({"claim_error": ""})
            )

        run = PipelineRun(
            conversation_id=state.conversation_id,
            customer_id=state.customer_id,
            intent_id=intent.id,
        )
        run.task = asyncio.create_task(self._run(run, intent),
                                       name=f"claim:{state.conversation_id}")
        self._runs[state.conversation_id] = run
        return run

    def is_running(self, conversation_id: str) -> bool:
        run = self._runs.get(conversation_id)
        return run is not None and not run.done

    def get_run(self, conversation_id: str) -> Optional[PipelineRun]:
        return self._runs.get(conversation_id)

    async def wait(self, conversation_id: str) -> Optional[PipelineRun]:
        """Wait for the conversation's current run to finish and return it."""
        run = self._runs.get(conversation_id)
        if run is not None and run.task is not None:
            await asyncio.gather(run.task, return_exceptions=True)
        return run

    def discard(self, conversation_id: str) -> None:
        """Cancel an in-flight run and forget it."""
        run = self._runs.pop(conversation_id, None)
        if run is not None and run.task is not None and not run.task.done():
            run.task.cancel()

    def release(self, conversation_id: str) -> None:
        """Forget the conversation's run once it has finished.

        An in-flight run is left to complete and dropped afterwards.
        """
        run = self._runs.get(conversation_id)
        if run is None:
            return
        if run.task is None or run.done:
            del self._runs[conversation_id]
            return
        run.task.add_done_callback(lambda _: self._drop(conversation_id, run))

    def _drop(self, conversation_id: str, run: PipelineRun) -> None:
        if self._runs.get(conversation_id) is run:
            del self._runs[conversation_id]

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #

    async def _run(self, run: PipelineRun, intent: IntentDefinition) -> None:
        set_conversation_id(run.conversation_id)
        current: Optional[StepRecord] = None
        try:
            current = run.step(PipelineStep.SUBMIT)
            state = await self._submit(run, intent, current)
            if state is None:
                return

            current = run.step(PipelineStep.NOTIFY)
            await self._notify(run, state, current)

            current = run.step(PipelineStep.SCHEDULE)
            if run.succeeded:
                self._schedule(run, intent, state, current)
            else:
                current.finish(StepStatus.SKIPPED, "claim submission failed")
                cancelled = self._scheduling.cancel_scheduled_messages(
                    run.conversation_id, goal=intent.followup_action or None
                )
                logger.info("Follow-ups suppressed after failed claim (%d cancelled)", cancelled)
        except Exception as e:
            logger.exception("Claim pipeline crashed")
            if current is not None:
                current.finish(StepStatus.FAILED, str(e) or type(e).__name__)

    async def _submit(
        self, run: PipelineRun, intent: IntentDefinition, record: StepRecord
    ) -> Optional[ConversationState]:
        record.begin()
        state = self._conversations.get(run.conversation_id)
        if state is None:
            record.finish(StepStatus.FAILED, "conversation no longer exists")
            return None

        result, updates = await self._executor.submit_claim(state.collected_data, self._today())

        def apply(target: ConversationState) -> None:
            target.merge(updates)
            stage = intent.graph.get_stage(target.current_stage_id)
            if stage.side_effect != SideEffect.CLAIM_SUBMISSION:
                return
            edge = Edge.SUCCESS if result.success else Edge.FAILURE
            decision = intent.graph.decide(stage, target.collected_data, "")
            if decision.edge == edge and decision.target != stage.id:
                target.enter_stage(decision.target.value, decision.edge.value)

        try:
            state = self._conversations.update(run.conversation_id, apply)
        except ConversationNotFoundError:
            record.finish(StepStatus.FAILED, "conversation cleared during submission")
            return None

        if result.success:
            run.intimation_id = result.intimation_id
            record.finish(StepStatus.SUCCEEDED)
        else:
            error = (result.error or {}).get("message", "claim submission failed")
            record.finish(StepStatus.FAILED, error)
        return state

    async def _notify(self, run: PipelineRun, state: ConversationState, record: StepRecord) -> None:
        record.begin()
        if run.succeeded:
            text = build_claim_confirmation_message(
                state.collected_data, run.intimation_id or "", state.collected_data.get("request_id"),
                self._profile,
            )
        else:
            text = build_claim_failure_message(self._profile)

        dispatch = await self._messenger.send(text, run.customer_id)
        try:
            self._conversations.update(
                run.conversation_id,
                lambda target: target.add_message(MessageDirection.OUTBOUND, text),
            )
        except ConversationNotFoundError:
            logger.info("Conversation cleared before the claim notice was recorded")

        if dispatch.success:
            record.finish(StepStatus.SUCCEEDED)
        else:
            record.finish(StepStatus.FAILED, dispatch.error)

    def _schedule(
        self,
        run: PipelineRun,
        intent: IntentDefinition,
        state: ConversationState,
        record: StepRecord,
    ) -> None:
        record.begin()
        if not intent.followup_action:
            record.finish(StepStatus.SKIPPED, "intent has no follow-up action")
            return

        result = self._scheduling.schedule_followups_for_action(
            run.conversation_id,
            run.customer_id,
            intent.followup_action,
            _followup_context(state.collected_data, self._profile),
        )
        if not result.success:
            record.finish(StepStatus.FAILED, result.error)
            return

        try:
            self._conversations.update(
                run.conversation_id,
                lambda target: target.merge({"followups_scheduled": True}),
            )
        except ConversationNotFoundError:
            self._scheduling.forget(run.conversation_id)
            record.finish(StepStatus.FAILED, "conversation cleared before scheduling")
            return
        record.finish(StepStatus.SUCCEEDED)
