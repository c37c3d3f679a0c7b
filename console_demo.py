"""
Offline console demo: runs full concierge conversations without any API keys.

This drives the real journey orchestrator, stage graph, extraction, claim
pipeline and scheduling agent. Only the outside world is replaced: replies
come from the scripted stage texts, the claim endpoint is an
``httpx.MockTransport`` and follow-ups are printed instead of delivered.

Usage:
    python console_demo.py
    python console_demo.py --scenario admission
    python console_demo.py --scenario claim-failure
    python console_demo.py --scenario decline
    python console_demo.py --scenario checkup
"""

import argparse
import asyncio
import logging
import uuid
from typing import Optional, Sequence

import httpx

from concierge.agents.orchestrator import JourneyOrchestrator
from concierge.agents.scheduling_agent import SchedulingAgent
from concierge.config import settings
from concierge.schemas.claim_schema import DispatchResult
from concierge.schemas.conversation_schema import HistoryMessage
from concierge.tools.claims import ClaimSubmissionClient
from concierge.tools.text_generation import TextGenerationError

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEPARTMENT_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Orthopedics": ("fracture", "bone", "knee", "hip", "joint", "spine", "back pain"),
    "Cardiology": ("heart", "chest pain", "cardiac", "angioplasty", "bypass"),
    "Urology": ("kidney stone", "urinary", "prostate"),
    "Obstetrics and Gynaecology": ("pregnan", "delivery", "maternity"),
    "Neurology": ("stroke", "seizure", "migraine", "brain"),
    "Oncology": ("cancer", "tumour", "tumor", "chemo"),
}


class OfflineTextGenerator:
    """Stand-in for the OpenAI text generator.

    Reply generation always fails over to the scripted stage texts,
    department classification is keyword based and follow-ups are sent
    as scripted.
    """

    async def generate(self, prompt: str, history: Sequence[HistoryMessage] = ()) -> str:
        raise TextGenerationError("offline mode")

    async def humanize(
        self, scripted: str, history: Sequence[HistoryMessage], customer_first_name: str
    ) -> str:
        return scripted

    async def classify_department(self, medical_reason: str) -> str:
        lower = medical_reason.lower()
        for department, keywords in DEPARTMENT_KEYWORDS.items():
            if any(keyword in lower for keyword in keywords):
                return department
        return settings.search.fallback_department


class ConsoleMessenger:
    """Prints proactive messages in the terminal."""

    async def send(self, text: str, customer_id: Optional[str] = None) -> DispatchResult:
        print(f"\n{YELLOW}{BOLD}[Proactive]{RESET} {YELLOW}{text}{RESET}")
        return DispatchResult(success=True)


def _mock_claim_endpoint(fail: bool) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if fail:
            return httpx.Response(503, text="Service Unavailable")
        suffix = uuid.uuid4().hex[:6].upper()
        return httpx.Response(200, json={
            "success": True,
            "data": {"intimationId": f"INT-{suffix}", "requestId": f"REQ-{suffix}"},
        })

    return httpx.MockTransport(handler)


class ConsoleSession:
    """Simulates a full concierge conversation in the terminal."""

    # Pre-scripted scenarios for --scenario flag
    SCENARIOS: dict[str, list[str]] = {
        "admission": [
            "yes",
            "my wife",
            "hand fracture, somewhere in Andheri",
            "Seven Star Hospital",
            "yes",
            "20000 tomorrow 10am",
            "thanks",
        ],
        "claim-failure": [
            "yes",
            "for myself",
            "knee replacement",
            "City Care General Hospital",
            "yes",
            "1,50,000 on 25/11/2026",
        ],
        "decline": [
            "no, not interested",
            "bye",
        ],
        "checkup": [
            "I'd like to book my free health checkup",
            "for me and my wife",
            "yes",
            "tomorrow 9am",
            "thanks",
            "yes please",
        ],
    }

    MAX_INPUT_LENGTH = 500
    CUSTOMER_ID = "console-customer"

    def __init__(self, claim_fails: bool = False, time_scale: float = 0.1) -> None:
        messenger = ConsoleMessenger()
        generator = OfflineTextGenerator()

        async def scaled_sleep(delay: float) -> None:
            await asyncio.sleep(delay * time_scale)

        self.orchestrator = JourneyOrchestrator(
            text_generator=generator,
            messenger=messenger,
            claim_client=ClaimSubmissionClient(
                endpoint="https://claims.offline/api/health/claims/initiate-claim",
                transport=_mock_claim_endpoint(claim_fails),
                sleep=scaled_sleep,
            ),
            scheduling_agent=SchedulingAgent(
                dispatcher=messenger, humanizer=generator, sleep=scaled_sleep
            ),
        )
        self.conversation_id: Optional[str] = None

    def agent_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[Concierge]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _banner(self, title: str, *lines: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  CLAIM CONCIERGE - {title}{RESET}")
        print(f"{BOLD}  Insurer: {settings.concierge.brand_name}{RESET}")
        for line in lines:
            print(f"{BOLD}  {line}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        for step in steps:
            print(f"\n{BLUE}[Customer] {RESET}{step}")
            await self._process_input(step)

        await self._drain()
        self._summary(f"Scenario '{scenario}' complete.")

    async def run(self) -> None:
        self._banner("Console Demo", "Type 'quit' to exit")

        while True:
            user_input = (await asyncio.to_thread(input, f"\n{BLUE}[Customer] {RESET}")).strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                break
            if len(user_input) > self.MAX_INPUT_LENGTH:
                self.agent_say("That was quite long. Could you keep it brief for me?")
                continue
            await self._process_input(user_input)

        await self._drain()
        self._summary("Session ended.")

    async def _process_input(self, text: str) -> None:
        result = await self.orchestrator.handle_message(self.CUSTOMER_ID, text)
        self.conversation_id = result.conversation_id
        self.agent_say(result.answer)
        self.system_log(f"Stage: {result.previous_stage_id} --{result.edge}--> {result.stage_id}")
        if result.background_pending:
            self.system_log("Claim submission running in the background")
            await self.orchestrator.pipeline.wait(result.conversation_id)
            stage = self.orchestrator.describe(result.conversation_id)["stage"]
            self.system_log(f"Stage after claim: {stage}")

    async def _drain(self) -> None:
        """Wait for the claim pipeline and any follow-ups still pending."""
        if self.conversation_id is None:
            return
        await self.orchestrator.pipeline.wait(self.conversation_id)
        pending = self.orchestrator.scheduling_agent.get_scheduled_messages(self.conversation_id)
        if pending:
            self.system_log(f"Waiting for {len(pending)} scheduled follow-up(s)...")
        await self.orchestrator.scheduling_agent.wait_idle(self.conversation_id)

    def _summary(self, title: str) -> None:
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {title}{RESET}")
        if self.conversation_id is not None:
            summary = self.orchestrator.describe(self.conversation_id)
            print(f"{DIM}  Stage trace: {' -> '.join(summary['trace'])}{RESET}")
            print(f"{DIM}  Collected: {', '.join(summary['collected'])}{RESET}")
            if summary["pipeline"]:
                print(f"{DIM}  Claim pipeline: {summary['pipeline']}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Claim Concierge - Console Demo")
    parser.add_argument(
        "--scenario",
        choices=list(ConsoleSession.SCENARIOS.keys()),
        help="Run a pre-scripted scenario instead of interactive mode",
    )
    parser.add_argument(
        "--time-scale",
        type=float,
        default=0.1,
        help="Multiplier applied to follow-up and retry delays (default: 0.1)",
    )
    parser.add_argument("--verbose", action="store_true", help="Show concierge log output")
    args = parser.parse_args()

    if not args.verbose:
        logging.getLogger("concierge").setLevel(logging.ERROR)

    session = ConsoleSession(
        claim_fails=args.scenario == "claim-failure",
        time_scale=args.time_scale,
    )
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
