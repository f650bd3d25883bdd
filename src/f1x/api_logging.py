"""Logging setup and call logging for the upstream and scheduler layers."""

from __future__ import annotations

import functools
import logging
import os
import sys
import time
from typing import Any, Awaitable, Callable, TypeVar

from f1x.config import Settings

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

UPSTREAM_LOGGER = "f1x.upstream.calls"
JOB_LOGGER = "f1x.jobs.runs"

_JSON_FORMAT = (
    '{"time":"%(asctime)s","level":"%(levelname)s",'
    '"logger":"%(name)s","message":"%(message)s"}'
)
_HUMAN_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(settings: Settings) -> None:
    """Configure root logging: JSON lines in production, human-readable locally.

    When ``settings.log_file`` is set, upstream call records are additionally
    written to that file.
    """
    fmt = _JSON_FORMAT if settings.is_production else _HUMAN_FORMAT
    logging.basicConfig(level=settings.log_level.upper(), format=fmt, stream=sys.stdout, force=True)

    if settings.log_file:
        directory = os.path.dirname(settings.log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
        logging.getLogger(UPSTREAM_LOGGER).addHandler(handler)


def _arg_summary(args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
    # Skip 'self'
    parts = [repr(a) for a in args[1:]]
    parts += [f"{k}={v!r}" for k, v in kwargs.items()]
    return ", ".join(parts)


def log_upstream_call(fn: F) -> F:
    """Decorator that logs async upstream client calls."""

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        logger = logging.getLogger(UPSTREAM_LOGGER)
        arg_str = _arg_summary(args, kwargs)
        logger.debug("CALL: %s(%s)", fn.__qualname__, arg_str)

        start = time.monotonic()
        try:
            result = await fn(*args, **kwargs)
        except Exception as exc:
            elapsed = time.monotonic() - start
            logger.error(
                "FAIL: %s(%s) -> %s: %s (%.3fs)",
                fn.__qualname__, arg_str, type(exc).__name__, exc, elapsed,
            )
            raise
        elapsed = time.monotonic() - start
        count = len(result) if isinstance(result, list) else 1
        logger.info(
            "OK: %s(%s) -> %d items (%.3fs)",
            fn.__qualname__, arg_str, count, elapsed,
        )
        return result

    return wrapper  # type: ignore[return-value]


def log_job(fn: F) -> F:
    """Decorator that logs scheduler job runs."""

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        logger = logging.getLogger(JOB_LOGGER)
        logger.info("JOB START: %s", fn.__qualname__)

        start = time.monotonic()
        try:
            result = await fn(*args, **kwargs)
        except Exception as exc:
            elapsed = time.monotonic() - start
            logger.error(
                "JOB FAIL: %s -> %s: %s (%.3fs)",
                fn.__qualname__, type(exc).__name__, exc, elapsed,
            )
            raise
        elapsed = time.monotonic() - start
        logger.info("JOB OK: %s -> %r (%.3fs)", fn.__qualname__, result, elapsed)
        return result

    return wrapper  # type: ignore[return-value]
