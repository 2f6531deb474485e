"""Attempt-scoped log correlation.

Every booking attempt gets a short ``BKA-xxxxxx`` id. The orchestrator binds
it around each public call, and availability tasks inherit it through the
copied context, so a quote, its background checks and the payment handshake
all log under the same id.

Usage:
    with attempt_scope(orchestrator.attempt_id):
        logger.info("Creating payment order")  # record.attempt_id == "BKA-3f9c2a"
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

NO_ATTEMPT = "-"
ATTEMPT_LOG_FORMAT = "%(asctime)s [%(name)s] [%(attempt_id)s] %(levelname)s: %(message)s"

_attempt_id: ContextVar[str] = ContextVar("attempt_id", default=NO_ATTEMPT)


def new_attempt_id() -> str:
    return f"BKA-{uuid.uuid4().hex[:6]}"


def set_attempt_id(attempt_id: str) -> None:
    """Bind ``attempt_id`` for the rest of the current context (e.g. a task body)."""
    _attempt_id.set(attempt_id)


def get_attempt_id() -> str:
    return _attempt_id.get()


@contextmanager
def attempt_scope(attempt_id: str) -> Iterator[str]:
    """Bind ``attempt_id`` for the duration of the block, then restore the previous id.

    Tasks created inside the block copy the context and keep the id after
    the block exits.
    """
    token = _attempt_id.set(attempt_id)
    try:
        yield attempt_id
    finally:
        _attempt_id.reset(token)


class AttemptIdFilter(logging.Filter):
    """Stamps ``record.attempt_id`` so formatters can use ``%(attempt_id)s``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "attempt_id"):
            record.attempt_id = _attempt_id.get()  # type: ignore[attr-defined]
        return True


def attach_attempt_filter(handler: logging.Handler) -> None:
    """Stamp records from every logger (httpx included) that reach ``handler``."""
    if not any(isinstance(f, AttemptIdFilter) for f in handler.filters):
        handler.addFilter(AttemptIdFilter())


def get_attempt_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not any(isinstance(f, AttemptIdFilter) for f in logger.filters):
        logger.addFilter(AttemptIdFilter())
    return logger
