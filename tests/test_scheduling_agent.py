"""Tests for follow-up scheduling, firing and cancellation."""

import asyncio
from typing import Optional

import pytest

from concierge.agents.scheduling_agent import SchedulingAgent
from concierge.prompts.followup_templates import CLAIM_INITIATED
from concierge.schemas.claim_schema import DispatchResult
from concierge.schemas.scheduling_schema import FollowUpMessage, JobStatus

from tests.conftest import FakeMessenger, FakeTextGenerator, RecordingSleep

MESSAGES = [
    FollowUpMessage(text="first\\nline two", delay_seconds=10),
    FollowUpMessage(text="second", delay_seconds=10),
    FollowUpMessage(text="third", delay_seconds=10),
]

CONTEXT = {
    "customerName": "Vineet",
    "hospitalName": "Seven Star Multispeciality Hospital",
    "date": "20 Oct 2026",
    "time": "10am",
    "intimationId": "INT-1",
    "claim Number": "INT-1",
    "requestId": "REQ-1",
}


async def _never(delay: float) -> None:
    await asyncio.Event().wait()


class BlockingMessenger:
    """Messenger whose send blocks until released."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.sent: list[str] = []

    async def send(self, text: str, customer_id: Optional[str] = None) -> DispatchResult:
        self.started.set()
        await self.release.wait()
        self.sent.append(text)
        return DispatchResult(success=True)


class ExplodingMessenger:
    async def send(self, text: str, customer_id: Optional[str] = None) -> DispatchResult:
        raise RuntimeError("gateway client bug")


class TestScheduling:
    @pytest.mark.asyncio
    async def test_cumulative_delays_fire_in_order(self):
        messenger, sleep = FakeMessenger(), RecordingSleep()
        agent = SchedulingAgent(dispatcher=messenger, sleep=sleep)

        result = agent.schedule_messages("c-1", "cust-1", MESSAGES)
        assert result.success
        assert [job.delay_ms for job in result.jobs] == [10000, 20000, 30000]
        assert [job.id.split("_")[1] for job in result.jobs] == ["0", "1", "2"]
        assert all(job.id.startswith("c-1_") for job in result.jobs)

        await agent.wait_idle("c-1")
        assert sleep.delays == [10, 20, 30]
        assert messenger.texts == ["first\nline two", "second", "third"]
        assert all(job.status == JobStatus.SENT for job in agent.get_all_messages("c-1"))

    @pytest.mark.asyncio
    async def test_default_delay_applies(self):
        sleep = RecordingSleep()
        agent = SchedulingAgent(dispatcher=FakeMessenger(), sleep=sleep, default_delay=5)
        agent.schedule_messages("c-1", "cust-1", [{"text": "a"}, {"text": "b"}])
        await agent.wait_idle("c-1")
        assert sleep.delays == [5, 10]

    @pytest.mark.asyncio
    async def test_unresolved_placeholders_rejected(self):
        messenger = FakeMessenger()
        agent = SchedulingAgent(dispatcher=messenger, sleep=RecordingSleep())
        result = agent.schedule_messages(
            "c-1", "cust-1", [FollowUpMessage(text="Your id is {{intimationId}}")]
        )
        assert not result.success
        assert "intimationId" in result.error
        assert agent.get_all_messages("c-1") == []

    @pytest.mark.asyncio
    async def test_empty_request_rejected(self):
        agent = SchedulingAgent(dispatcher=FakeMessenger(), sleep=RecordingSleep())
        assert not agent.schedule_messages("c-1", "cust-1", []).success

    @pytest.mark.asyncio
    async def test_same_goal_rejected(self):
        messenger = FakeMessenger()
        agent = SchedulingAgent(dispatcher=messenger, sleep=RecordingSleep())
        assert agent.schedule_messages("c-1", "cust-1", MESSAGES, goal="claim").success
        second = agent.schedule_messages("c-1", "cust-1", MESSAGES, goal="claim")
        assert not second.success
        await agent.wait_idle("c-1")
        assert len(messenger.sent) == 3

    @pytest.mark.asyncio
    async def test_other_goal_accepted(self):
        agent = SchedulingAgent(dispatcher=FakeMessenger(), sleep=RecordingSleep())
        agent.schedule_messages("c-1", "cust-1", MESSAGES, goal="claim")
        assert agent.schedule_messages("c-1", "cust-1", MESSAGES[:1], goal="reminder").success
        await agent.wait_idle("c-1")
        assert len(agent.get_executed_messages("c-1")) == 4

    @pytest.mark.asyncio
    async def test_followups_for_action(self):
        messenger = FakeMessenger()
        agent = SchedulingAgent(dispatcher=messenger, sleep=RecordingSleep())
        result = agent.schedule_followups_for_action("c-1", "cust-1", CLAIM_INITIATED, CONTEXT)
        assert result.success
        assert len(result.jobs) == 3
        await agent.wait_idle("c-1")
        assert "INT-1" in messenger.texts[0]
        assert "INT-1" in messenger.texts[1]
        assert all("{{" not in text and "\\n" not in text for text in messenger.texts)

    @pytest.mark.asyncio
    async def test_followups_missing_context_rejected(self):
        agent = SchedulingAgent(dispatcher=FakeMessenger(), sleep=RecordingSleep())
        context = dict(CONTEXT, intimationId=None)
        assert not agent.schedule_followups_for_action(
            "c-1", "cust-1", CLAIM_INITIATED, context
        ).success

    @pytest.mark.asyncio
    async def test_unknown_action(self):
        agent = SchedulingAgent(dispatcher=FakeMessenger(), sleep=RecordingSleep())
        result = agent.schedule_followups_for_action("c-1", "cust-1", "no_such_action", {})
        assert not result.success
        assert "no_such_action" in result.error


class TestHumanize:
    @pytest.mark.asyncio
    async def test_humanized_text_sent(self):
        messenger = FakeMessenger()
        humanizer = FakeTextGenerator(humanized="A warmer hello")
        agent = SchedulingAgent(dispatcher=messenger, humanizer=humanizer,
                                sleep=RecordingSleep(), humanize_enabled=True)
        agent.schedule_messages("c-1", "cust-1", MESSAGES[:1])
        await agent.wait_idle("c-1")
        assert messenger.texts == ["A warmer hello"]
        assert agent.get_executed_messages("c-1")[0].final_text == "A warmer hello"

    @pytest.mark.asyncio
    async def test_humanize_failure_falls_back(self):
        messenger = FakeMessenger()
        humanizer = FakeTextGenerator(humanize_error=True)
        agent = SchedulingAgent(dispatcher=messenger, humanizer=humanizer,
                                sleep=RecordingSleep(), humanize_enabled=True)
        agent.schedule_messages("c-1", "cust-1", MESSAGES[:1])
        await agent.wait_idle("c-1")
        assert messenger.texts == ["first\nline two"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("humanized", ["", "   ", "Hi {{customerName}}"])
    async def test_unusable_rewrite_falls_back(self, humanized):
        messenger = FakeMessenger()
        humanizer = FakeTextGenerator(humanized=humanized)
        agent = SchedulingAgent(dispatcher=messenger, humanizer=humanizer,
                                sleep=RecordingSleep(), humanize_enabled=True)
        agent.schedule_messages("c-1", "cust-1", MESSAGES[1:2])
        await agent.wait_idle("c-1")
        assert messenger.texts == ["second"]

    @pytest.mark.asyncio
    async def test_humanize_disabled(self):
        humanizer = FakeTextGenerator(humanized="rewritten")
        messenger = FakeMessenger()
        agent = SchedulingAgent(dispatcher=messenger, humanizer=humanizer,
                                sleep=RecordingSleep(), humanize_enabled=False)
        agent.schedule_messages("c-1", "cust-1", MESSAGES[1:2])
        await agent.wait_idle("c-1")
        assert messenger.texts == ["second"]
        assert humanizer.humanize_calls == []


class TestDispatchOutcomes:
    @pytest.mark.asyncio
    async def test_failed_dispatch_recorded(self):
        agent = SchedulingAgent(dispatcher=FakeMessenger(fail=True), sleep=RecordingSleep())
        agent.schedule_messages("c-1", "cust-1", MESSAGES[:1])
        await agent.wait_idle("c-1")
        [job] = agent.get_executed_messages("c-1")
        assert job.status == JobStatus.FAILED
        assert job.error == "HTTP 502"

    @pytest.mark.asyncio
    async def test_dispatch_exception_recorded(self):
        agent = SchedulingAgent(dispatcher=ExplodingMessenger(), sleep=RecordingSleep())
        agent.schedule_messages("c-1", "cust-1", MESSAGES[:1])
        await agent.wait_idle("c-1")
        [job] = agent.get_executed_messages("c-1")
        assert job.status == JobStatus.ERROR
        assert "gateway client bug" in job.error


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_pending_jobs(self):
        messenger = FakeMessenger()
        agent = SchedulingAgent(dispatcher=messenger, sleep=_never)
        agent.schedule_messages("c-1", "cust-1", MESSAGES)
        await asyncio.sleep(0)

        assert len(agent.get_scheduled_messages("c-1")) == 3
        assert agent.cancel_scheduled_messages("c-1") == 3
        assert agent.cancel_scheduled_messages("c-1") == 0
        await agent.wait_idle("c-1")

        assert messenger.sent == []
        assert agent.get_scheduled_messages("c-1") == []
        assert agent.get_executed_messages("c-1") == []
        assert {job.status for job in agent.get_all_messages("c-1")} == {JobStatus.CANCELLED}

    @pytest.mark.asyncio
    async def test_cancel_unknown_conversation(self):
        agent = SchedulingAgent(dispatcher=FakeMessenger(), sleep=_never)
        assert agent.cancel_scheduled_messages("nobody") == 0

    @pytest.mark.asyncio
    async def test_job_mid_fire_completes(self):
        messenger = BlockingMessenger()
        agent = SchedulingAgent(dispatcher=messenger, sleep=RecordingSleep())
        agent.schedule_messages("c-1", "cust-1", MESSAGES[1:2])
        await messenger.started.wait()

        assert agent.cancel_scheduled_messages("c-1") == 0
        messenger.release.set()
        await agent.wait_idle("c-1")

        assert messenger.sent == ["second"]
        assert agent.get_executed_messages("c-1")[0].status == JobStatus.SENT

    @pytest.mark.asyncio
    async def test_forget_drops_records(self):
        agent = SchedulingAgent(dispatcher=FakeMessenger(), sleep=_never)
        agent.schedule_messages("c-1", "cust-1", MESSAGES)
        assert agent.forget("c-1") == 3
        assert agent.get_all_messages("c-1") == []
        assert agent.schedule_messages("c-1", "cust-1", MESSAGES[:1]).success
        agent.cancel_scheduled_messages("c-1")
        await agent.wait_idle("c-1")

    @pytest.mark.asyncio
    async def test_cancel_one_goal_keeps_others(self):
        agent = SchedulingAgent(dispatcher=FakeMessenger(), sleep=_never)
        agent.schedule_messages("c-1", "cust-1", MESSAGES, goal="claim")
        agent.schedule_messages("c-1", "cust-1", MESSAGES[:1], goal="reminder")

        assert agent.cancel_scheduled_messages("c-1", goal="claim") == 3
        assert [job.goal for job in agent.get_scheduled_messages("c-1")] == ["reminder"]
        assert agent.cancel_scheduled_messages("c-1", goal="claim") == 0

        assert agent.cancel_scheduled_messages("c-1") == 1
        await agent.wait_idle("c-1")


class TestRelease:
    @pytest.mark.asyncio
    async def test_finished_jobs_dropped(self):
        agent = SchedulingAgent(dispatcher=FakeMessenger(), sleep=RecordingSleep())
        agent.schedule_messages("c-1", "cust-1", MESSAGES)
        await agent.wait_idle("c-1")

        agent.release("c-1")
        assert agent.get_all_messages("c-1") == []

    @pytest.mark.asyncio
    async def test_pending_jobs_fire_then_dropped(self):
        messenger = FakeMessenger()
        agent = SchedulingAgent(dispatcher=messenger, sleep=RecordingSleep())
        agent.schedule_messages("c-1", "cust-1", MESSAGES)

        agent.release("c-1")
        assert len(agent.get_scheduled_messages("c-1")) == 3
        await agent.wait_idle("c-1")

        assert messenger.texts == ["first\nline two", "second", "third"]
        assert agent.get_all_messages("c-1") == []

    @pytest.mark.asyncio
    async def test_release_unknown_conversation(self):
        agent = SchedulingAgent(dispatcher=FakeMessenger(), sleep=_never)
        agent.release("nobody")
        assert agent.get_all_messages("nobody") == []
