"""Shared test fixtures and helpers."""

import asyncio
from datetime import date
from typing import Optional, Sequence, Union

import httpx
import pytest

from concierge.agents.orchestrator import JourneyOrchestrator
from concierge.agents.scheduling_agent import SchedulingAgent
from concierge.conversation.intents import HOSPITAL_ADMISSION_CLAIM, get_intent
from concierge.conversation.store import InMemoryConversationStore, InMemoryJourneyStore
from concierge.schemas.claim_schema import DispatchResult
from concierge.tools.claims import ClaimSubmissionClient
from concierge.tools.text_generation import TextGenerationError

TODAY = date(2026, 10, 19)  # a Monday

CLAIM_ENDPOINT = "https://claims.test/api/health/claims/initiate-claim"
INTIMATION_ID = "INT-2026-0001"
REQUEST_ID = "REQ-77"

ADMISSION_JOURNEY = [
    "yes",
    "my wife",
    "hand fracture",
    "ok, show me the options",
    "Seven Star Hospital",
    "yes",
    "20000 tomorrow 10am",
]

CHECKUP_JOURNEY = [
    "I'd like to book my health checkup",
    "for me and my wife",
    "yes",
    "tomorrow 9am",
]


class FakeTextGenerator:
    """Deterministic stand-in for the OpenAI-backed text generator."""

    def __init__(
        self,
        department: str = "Orthopedics",
        fail: bool = False,
        humanized: Optional[str] = None,
        humanize_error: bool = False,
    ):
        self.department = department
        self.fail = fail
        self.humanized = humanized
        self.humanize_error = humanize_error
        self.prompts: list[str] = []
        self.humanize_calls: list[str] = []
        self.classify_calls = 0

    async def generate(self, prompt: str, history: Sequence = ()) -> str:
        self.prompts.append(prompt)
        if self.fail:
            raise TextGenerationError("model offline")
        return "generated reply"

    async def humanize(self, scripted: str, history: Sequence, customer_first_name: str) -> str:
        self.humanize_calls.append(scripted)
        if self.humanize_error:
            raise TextGenerationError("model offline")
        return scripted if self.humanized is None else self.humanized

    async def classify_department(self, medical_reason: str) -> str:
        self.classify_calls += 1
        return self.department


class FakeMessenger:
    """Records every dispatched message."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, Optional[str]]] = []

    async def send(self, text: str, customer_id: Optional[str] = None) -> DispatchResult:
        self.sent.append((text, customer_id))
        if self.fail:
            return DispatchResult(success=False, error="HTTP 502")
        return DispatchResult(success=True)

    @property
    def texts(self) -> list[str]:
        return [text for text, _ in self.sent]


class RecordingSleep:
    """Sleep replacement that records delays and only yields to the loop."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


def claim_response(
    intimation_id: str = INTIMATION_ID,
    request_id: str = REQUEST_ID,
) -> httpx.Response:
    return httpx.Response(
        200, json={"success": True, "data": {"intimationId": intimation_id, "requestId": request_id}}
    )


def claim_transport(
    *outcomes: Union[httpx.Response, Exception],
) -> tuple[httpx.MockTransport, list[httpx.Request]]:
    """MockTransport answering successive requests with ``outcomes``.

    The last outcome repeats once the list is exhausted. Exceptions are
    raised from the transport as the network error they represent.
    """
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        outcome = outcomes[min(len(calls), len(outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome.status_code, headers=outcome.headers,
                              content=outcome.content)

    return httpx.MockTransport(handler), calls


def make_claim_client(transport: httpx.MockTransport, sleep=None) -> ClaimSubmissionClient:
    return ClaimSubmissionClient(
        endpoint=CLAIM_ENDPOINT,
        auth_token="test-token",
        max_attempts=3,
        retry_delay=10.0,
        transport=transport,
        sleep=sleep or RecordingSleep(),
    )


def make_orchestrator(
    text_generator: FakeTextGenerator,
    messenger: FakeMessenger,
    transport: httpx.MockTransport,
    sleep: Optional[RecordingSleep] = None,
) -> JourneyOrchestrator:
    sleep = sleep or RecordingSleep()
    return JourneyOrchestrator(
        text_generator=text_generator,
        messenger=messenger,
        claim_client=make_claim_client(transport, sleep),
        scheduling_agent=SchedulingAgent(
            dispatcher=messenger, humanizer=text_generator, sleep=sleep
        ),
        conversations=InMemoryConversationStore(),
        journeys=InMemoryJourneyStore(),
        today_provider=lambda: TODAY,
    )


@pytest.fixture
def graph():
    return get_intent(HOSPITAL_ADMISSION_CLAIM).graph


@pytest.fixture
def text_generator():
    return FakeTextGenerator()


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def orchestrator(text_generator, messenger, recording_sleep):
    transport, _ = claim_transport(claim_response())
    return make_orchestrator(text_generator, messenger, transport, recording_sleep)
