"""
Claim concierge entry point.

Chats with the concierge in the terminal using the real collaborators:
OpenAI for replies, the claim intimation endpoint and the messaging
gateway for proactive follow-ups. Configure them through the environment
(see ``concierge/config.py``).

Usage:
    Live chat:    python main.py chat [customer_id] [intent_id]
    Console mode: python main.py console
"""

import asyncio
import logging
import sys
from typing import Optional

from concierge.config import settings
from concierge.logging_context import ConversationIdFilter

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] [%(conversation_id)s] %(levelname)s: %(message)s"


def _configure_logging() -> None:
    """Tag every log line with the conversation it belongs to."""
    handler = logging.StreamHandler()
    handler.addFilter(ConversationIdFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)


def _build_orchestrator():
    """Build a JourneyOrchestrator wired to the configured services."""
    from concierge.agents.orchestrator import JourneyOrchestrator
    from concierge.tools.claims import ClaimSubmissionClient
    from concierge.tools.messaging import MessagingGateway
    from concierge.tools.text_generation import TextGenerator

    return JourneyOrchestrator(
        text_generator=TextGenerator(),
        messenger=MessagingGateway(),
        claim_client=ClaimSubmissionClient(),
    )


async def _chat(customer_id: str, intent_id: Optional[str] = None) -> None:
    orchestrator = _build_orchestrator()
    logger.info("%s chat started for %s", settings.app_name, customer_id)

    while True:
        text = (await asyncio.to_thread(input, "> ")).strip()
        if not text:
            continue
        if text.lower() in ("quit", "exit", "q"):
            break
        result = await orchestrator.handle_message(customer_id, text, intent_id)
        print(result.answer)

    journey = orchestrator.get_active_journey(customer_id)
    if journey is not None:
        await orchestrator.pipeline.wait(journey.conversation_id)
        await orchestrator.scheduling_agent.wait_idle(journey.conversation_id)


def _run_chat_mode(customer_id: str, intent_id: Optional[str] = None) -> None:
    """Start the live chat loop (requires API keys)."""
    _configure_logging()
    asyncio.run(_chat(customer_id, intent_id))


def _run_console_mode() -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import main as console_main

    sys.argv = sys.argv[:1] + sys.argv[2:]
    console_main()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode()
    else:
        _run_chat_mode(
            sys.argv[2] if len(sys.argv) > 2 else "local-customer",
            sys.argv[3] if len(sys.argv) > 3 else None,
        )
