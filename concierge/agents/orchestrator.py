"""
Journey orchestrator: the per-message conversation loop.

One call to :meth:`JourneyOrchestrator.handle_message` is one turn:

1. resolve (or start) the customer's journey and conversation state
2. resolve the current stage
3. extract the stage's fields from the message and merge them
4. record the inbound message
5. ask the stage graph for the next stage
6. run the target stage's side effect, once, on transition into it
7. build the reply
8. commit the stage change and the outbound message

Entering the claim stage returns an interim reply right away and hands
submission, notification and follow-up scheduling to the background
claim pipeline, so later messages are answered while it runs.
The check-up package lookup and reminder scheduling are quick and run
inline within the turn.
"""

from datetime import date
from typing import Any, Callable, Optional

from concierge.agents.claim_pipeline import ClaimPipeline
from concierge.agents.scheduling_agent import MessageDispatcher, SchedulingAgent
from concierge.agents.side_effects import SideEffectExecutor
from concierge.config import settings
from concierge.conversation.extraction import extract
from concierge.conversation.intents import (
    DEFAULT_INTENT,
    IntentDefinition,
    detect_intent,
    get_intent,
)
from concierge.conversation.stages import SideEffect, Stage
from concierge.conversation.state_machine import Decision
from concierge.conversation.store import (
    ConversationStore,
    InMemoryConversationStore,
    InMemoryJourneyStore,
    JourneyStore,
)
from concierge.logging_context import get_conversation_logger, set_conversation_id
from concierge.prompts.prompt_templates import (
    build_no_results_message,
    build_processing_message,
    build_stage_prompt,
    render_stage_fallback,
)
from concierge.schemas.conversation_schema import (
    ConversationState,
    HistoryMessage,
    Journey,
    MessageDirection,
    TurnResult,
)
from concierge.tools.checkups import reminder_context
from concierge.tools.claims import ClaimSubmissionClient
from concierge.tools.policy import POLICY_PROFILE, PolicyProfile
from concierge.tools.text_generation import TextGenerationError, TextGenerator
from concierge.utils import detect_language

logger = get_conversation_logger(__name__)


class JourneyOrchestrator:
    """
    Drives conversations through their intent's stage graph.

    All collaborators are injected; the stores default to the in-memory
    implementations and the scheduling agent to one that humanizes with
    the same text generator and dispatches through ``messenger``.
    """

    def __init__(
        self,
        text_generator: TextGenerator,
        messenger: MessageDispatcher,
        claim_client: ClaimSubmissionClient,
        scheduling_agent: Optional[SchedulingAgent] = None,
        conversations: Optional[ConversationStore] = None,
        journeys: Optional[JourneyStore] = None,
        profile: PolicyProfile = POLICY_PROFILE,
        today_provider: Callable[[], date] = date.today,
        history_window: int = settings.scheduling.history_window,
    ) -> None:
        self.text_generator = text_generator
        self.conversations = conversations or InMemoryConversationStore()
        self.journeys = journeys or InMemoryJourneyStore()
        self.profile = profile
        self._today = today_provider
        self._history_window = history_window
        self.scheduling_agent = scheduling_agent or SchedulingAgent(
            dispatcher=messenger,
            humanizer=text_generator,
            history_provider=self.recent_history,
        )
        self.executor = SideEffectExecutor(text_generator, claim_client, profile)
        self.pipeline = ClaimPipeline(
            conversations=self.conversations,
            executor=self.executor,
            messenger=messenger,
            scheduling_agent=self.scheduling_agent,
            profile=profile,
            today_provider=today_provider,
        )

    # ------------------------------------------------------------------ #
    # Turn handling
    # ------------------------------------------------------------------ #

    async def handle_message(
        self,
        customer_id: str,
        text: str,
        intent_id: Optional[str] = None,
    ) -> TurnResult:
        """Process one inbound message and return the reply.

        Without an explicit ``intent_id`` the customer's active journey
        continues; a customer with no active journey starts the intent
        whose goal the message names, or the default intent.
        """
        journey, intent = self._resolve_journey(customer_id, text, intent_id)
        conversation_id = journey.conversation_id
        set_conversation_id(conversation_id)

        state = self.conversations.get_or_create(conversation_id, customer_id, intent.id)
        is_first_message = not state.messages
        graph = intent.graph
        stage = graph.get_stage(state.current_stage_id)
        turn_stage_id = state.current_stage_id

        updates = extract(stage, text, state.collected_data, self._today())

        def record_inbound(target: ConversationState) -> None:
            if target.current_stage_id is None:
                target.enter_stage(stage.id.value)
            target.merge(updates)
            target.add_message(MessageDirection.INBOUND, text)

        state = self.conversations.update(conversation_id, record_inbound)
        if turn_stage_id is None:
            turn_stage_id = stage.id.value

        decision = graph.decide(stage, state.collected_data, text)
        target = graph.get_stage(decision.target)
        transitioned = target.id != stage.id
        logger.info("Turn at %s: edge=%s -> %s",
                    stage.id.value, decision.edge.value, target.id.value)

        background_pending = False
        search_failed = False
        if transitioned and self._needs_side_effect(target, state):
            if target.side_effect == SideEffect.HOSPITAL_SEARCH:
                results = await self.executor.run_search(state.collected_data)
                if results:
                    state = self.conversations.update(
                        conversation_id, lambda s: s.merge(results)
                    )
                else:
                    search_failed = True
            elif target.side_effect == SideEffect.CLAIM_SUBMISSION:
                background_pending = True
            elif target.side_effect == SideEffect.PACKAGE_LOOKUP:
                offer = self.executor.offer_package(state.collected_data, self._today())
                state = self.conversations.update(conversation_id, lambda s: s.merge(offer))
            elif target.side_effect == SideEffect.FOLLOWUP_SCHEDULING:
                booked = self._schedule_followups(state, intent)
                state = self.conversations.update(conversation_id, lambda s: s.merge(booked))

        reply_stage = stage if search_failed else target
        if background_pending:
            answer = build_processing_message(self.profile)
        elif search_failed:
            answer = await self._reply(stage, state, is_first_message, text, intent.name,
                                       search_failed=True)
        else:
            answer = await self._reply(target, state, is_first_message, text, intent.name)

        committed = self._commit(conversation_id, turn_stage_id, reply_stage, decision, answer)
        self.journeys.touch(customer_id)

        if background_pending:
            self.pipeline.start(committed, intent)
        else:
            background_pending = self.pipeline.is_running(conversation_id)

        return TurnResult(
            answer=answer,
            conversation_id=conversation_id,
            intent_id=intent.id,
            stage_id=committed.current_stage_id or reply_stage.id.value,
            previous_stage_id=stage.id.value,
            edge=decision.edge.value,
            collected_data=committed.collected_data,
            background_pending=background_pending,
        )

    def _resolve_journey(
        self, customer_id: str, text: str, intent_id: Optional[str]
    ) -> tuple[Journey, IntentDefinition]:
        active = self.journeys.get_active(customer_id)
        if intent_id is None:
            if active is not None:
                intent_id = active.intent_id
            else:
                intent_id = detect_intent(text) or DEFAULT_INTENT
        intent = get_intent(intent_id)
        if active is not None and active.intent_id == intent.id:
            return active, intent
        if active is not None:
            logger.info("Switching %s from %s to %s", customer_id, active.intent_id, intent.id)
            self._release(active.conversation_id)
        return self.journeys.start(customer_id, intent.id), intent

    def _needs_side_effect(self, stage: Stage, state: ConversationState) -> bool:
        collected = state.collected_data
        if stage.side_effect == SideEffect.HOSPITAL_SEARCH:
            return not collected.get("hospital_search_results")
        if stage.side_effect == SideEffect.CLAIM_SUBMISSION:
            return not collected.get("intimation_id") and \
                not self.pipeline.is_running(state.conversation_id)
        if stage.side_effect == SideEffect.PACKAGE_LOOKUP:
            return not collected.get("package_options")
        if stage.side_effect == SideEffect.FOLLOWUP_SCHEDULING:
            return not collected.get("followups_scheduled")
        return False

    def _schedule_followups(
        self, state: ConversationState, intent: IntentDefinition
    ) -> dict[str, Any]:
        if not intent.followup_action:
            return {}
        result = self.scheduling_agent.schedule_followups_for_action(
            state.conversation_id,
            state.customer_id,
            intent.followup_action,
            reminder_context(state.collected_data, self.profile),
        )
        if not result.success:
            logger.warning("Reminders not scheduled: %s", result.error)
            return {}
        return {"followups_scheduled": True}

    async def _reply(
        self,
        stage: Stage,
        state: ConversationState,
        is_first_message: bool,
        text: str,
        journey: str,
        search_failed: bool = False,
    ) -> str:
        prompt = build_stage_prompt(
            stage, state.collected_data, self.profile,
            is_first_message=is_first_message,
            language=detect_language(text),
            search_failed=search_failed,
            journey=journey,
        )
        try:
            return await self.text_generator.generate(
                prompt, state.recent_messages(self._history_window)
            )
        except TextGenerationError as e:
            logger.warning("Reply generation failed at %s, using scripted reply: %s",
                           stage.id.value, e)
        if search_failed:
            return build_no_results_message(state.collected_data)
        return render_stage_fallback(stage, state.collected_data, self.profile)

    def _commit(
        self,
        conversation_id: str,
        turn_stage_id: str,
        target: Stage,
        decision: Decision,
        answer: str,
    ) -> ConversationState:
        def apply(state: ConversationState) -> None:
            # Background work may have advanced the stage while this turn awaited
            if state.current_stage_id == turn_stage_id:
                if target.id.value != turn_stage_id:
                    state.enter_stage(target.id.value, decision.edge.value)
            else:
                logger.info("Stage moved to %s during the turn, keeping it",
                            state.current_stage_id)
            state.add_message(MessageDirection.OUTBOUND, answer)

        return self.conversations.update(conversation_id, apply)

    # ------------------------------------------------------------------ #
    # Journey management
    # ------------------------------------------------------------------ #

    def recent_history(self, conversation_id: str) -> list[HistoryMessage]:
        state = self.conversations.get(conversation_id)
        return state.recent_messages(self._history_window) if state else []

    def get_state(self, conversation_id: str) -> Optional[ConversationState]:
        return self.conversations.get(conversation_id)

    def get_active_journey(self, customer_id: str) -> Optional[Journey]:
        return self.journeys.get_active(customer_id)

    def close_journey(self, customer_id: str) -> Optional[Journey]:
        """Close the active journey; its conversation state stays readable.

        Follow-ups already scheduled still go out. The pipeline run and the
        follow-up records are dropped once they have finished.
        """
        journey = self.journeys.close(customer_id)
        if journey is not None:
            self._release(journey.conversation_id)
        return journey

    def _release(self, conversation_id: str) -> None:
        run = self.pipeline.get_run(conversation_id)
        if run is not None and run.task is not None and not run.done:
            # The run may still schedule follow-ups
            run.task.add_done_callback(
                lambda _: self.scheduling_agent.release(conversation_id)
            )
        else:
            self.scheduling_agent.release(conversation_id)
        self.pipeline.release(conversation_id)

    def clear_journey(self, customer_id: str) -> Optional[Journey]:
        """Drop the customer's journey, its state, pipeline run and pending follow-ups."""
        journey = self.journeys.remove(customer_id)
        if journey is None:
            return None
        self.pipeline.discard(journey.conversation_id)
        cancelled = self.scheduling_agent.forget(journey.conversation_id)
        self.conversations.delete(journey.conversation_id)
        logger.info("Journey cleared for %s (%d follow-ups cancelled)", customer_id, cancelled)
        return journey

    def describe(self, conversation_id: str) -> dict[str, Any]:
        """Summary of a conversation for logs and the console demo."""
        state = self.conversations.get(conversation_id)
        if state is None:
            return {}
        run = self.pipeline.get_run(conversation_id)
        return {
            "stage": state.current_stage_id,
            "trace": state.stage_trace(),
            "collected": sorted(state.collected_data),
            "pipeline": {step.value: record.status.value
                         for step, record in run.steps.items()} if run else None,
            "scheduled": len(self.scheduling_agent.get_scheduled_messages(conversation_id)),
        }
