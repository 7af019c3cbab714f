"""Utility helpers for the Marquee service."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Iterable, TypeVar

T = TypeVar("T")


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


def pretty_minutes(seconds: int | None) -> str:
    """Return ``"<N> min"`` for a duration in seconds."""

    return f"{(seconds or 0) // 60} min"


def pretty_show_length(episode_count: int, seconds: int) -> str:
    """Return ``"<count> episodes | <hours> hr"`` for a show rollup."""

    return f"{episode_count} episodes | {seconds // 3600} hr"


async def gather_successes(
    awaitables: Iterable[Awaitable[T]],
    *,
    logger: logging.Logger,
    description: str,
) -> list[T]:
    """Run awaitables concurrently and keep only the ones that succeeded.

    Failures are logged and dropped while the order of the successful results
    follows the input. Cancellation is re-raised rather than folded away.
    """

    results: list[Any] = await asyncio.gather(*awaitables, return_exceptions=True)
    collected: list[T] = []
    for result in results:
        if isinstance(result, Exception):
            logger.warning("Skipping %s: %s", description, result)
            continue
        if isinstance(result, BaseException):
            raise result
        collected.append(result)
    return collected
