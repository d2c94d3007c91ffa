"""Background task wrapper tests."""

from unittest.mock import AsyncMock

from fastapi import BackgroundTasks

from safaconnect.tasks import spawn


async def test_spawned_job_runs_with_args():
    job = AsyncMock()
    job.__name__ = "job"
    tasks = BackgroundTasks()
    spawn(tasks, job, "user-1", "alice@example.com")
    await tasks()
    job.assert_awaited_once_with("user-1", "alice@example.com")


async def test_failures_do_not_propagate():
    failing = AsyncMock(side_effect=RuntimeError("smtp down"))
    failing.__name__ = "failing"
    after = AsyncMock()
    after.__name__ = "after"
    tasks = BackgroundTasks()
    spawn(tasks, failing)
    spawn(tasks, after)
    await tasks()
    failing.assert_awaited_once()
    after.assert_awaited_once()
