"""
Structured logging for Linkcal using structlog wrapping stdlib.

Console output in development, JSON lines when LINKCAL_LOG_FORMAT=json.
Every line emitted inside ``sync_context`` carries the account being
synced, including lines from the provider, token, and store layers that
never see the account id themselves. Token values are redacted before
rendering.

Usage:
    from linkcal.logging_config import get_logger, setup_logging, sync_context

    setup_logging()
    logger = get_logger(__name__)

    with sync_context("acct-1"):
        logger.info("sync_started")   # account_id=acct-1
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

REDACTED = "[redacted]"
SECRET_KEYS = frozenset({"access_token", "refresh_token", "client_secret", "code"})


def redact_secrets(
    logger: Any,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Replace OAuth secrets with a placeholder."""
    for key in SECRET_KEYS & event_dict.keys():
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


@contextmanager
def sync_context(account_id: str, **extra: Any) -> Iterator[None]:
    """
    Bind account_id (and any extra keys) to all log lines in the block.

    Bindings live in contextvars, so concurrent account syncs running as
    separate asyncio tasks do not see each other's context.
    """
    with structlog.contextvars.bound_contextvars(account_id=account_id, **extra):
        yield


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    if level is None:
        level = os.environ.get("LINKCAL_LOG_LEVEL", "INFO")

    if json_output is None:
        json_output = os.environ.get("LINKCAL_LOG_FORMAT", "").lower() == "json"

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        redact_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        # aiohttp and sqlite warnings come through stdlib without our processors
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    # aiohttp client chatter drowns out sync summaries at DEBUG
    logging.getLogger("aiohttp").setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = ["get_logger", "redact_secrets", "setup_logging", "sync_context"]
