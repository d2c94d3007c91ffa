"""Fire-and-forget work scheduled after the response is sent."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from fastapi import BackgroundTasks

logger = structlog.get_logger()


async def _run_logged(fn: Callable[..., Awaitable[Any]], *args: Any) -> None:  # noqa: ANN401
    try:
        await fn(*args)
    except Exception:
        logger.exception("background_task_failed", task=fn.__name__)


def spawn(background_tasks: BackgroundTasks, fn: Callable[..., Awaitable[Any]], *args: Any) -> None:  # noqa: ANN401
    """
    Schedule ``fn(*args)`` to run after the response.

    Failures are logged and dropped; there are no retries. Jobs must open
    their own database session with ``session_scope()``.
    """
    background_tasks.add_task(_run_logged, fn, *args)
