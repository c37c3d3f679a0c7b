"""Tag log records with the conversation they belong to.

A customer turn, the background claim run it starts and every follow-up
timer armed for it are separate asyncio tasks. Tasks inherit a copy of
the context they were created in, so the id stored here by the turn is
what the claim run and the timers log under as well.

Format strings pick it up as ``%(conversation_id)s``; see ``main.py``.
"""

import logging
from contextvars import ContextVar

NO_CONVERSATION = "-"

_current: ContextVar[str] = ContextVar("concierge_conversation", default=NO_CONVERSATION)


def set_conversation_id(conversation_id: str) -> None:
    _current.set(conversation_id or NO_CONVERSATION)


def get_conversation_id() -> str:
    return _current.get()


class ConversationIdFilter(logging.Filter):
    """Stamps ``record.conversation_id``; never drops a record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "conversation_id"):
            record.conversation_id = _current.get()  # type: ignore[attr-defined]
        return True


_shared_filter = ConversationIdFilter()


def get_conversation_logger(name: str) -> logging.Logger:
    """``logging.getLogger(name)`` with the conversation filter installed once."""
    logger = logging.getLogger(name)
    if _shared_filter not in logger.filters:
        logger.addFilter(_shared_filter)
    return logger
