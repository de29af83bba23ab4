"""Tests for the in-process tick loop."""

import asyncio

import pytest

from darkroom.workers.scheduler import run_scheduler, run_tick


@pytest.mark.asyncio
async def test_run_tick_uses_app_resources(app, add_job, fake_rpc):
    await add_job(1, "SELECT cleanup_old_chat_data(90)", "Every hour")

    report = await run_tick(app)

    assert report["ran"] == 1
    assert fake_rpc.called("cleanup_old_chat_data") == [{"retention_days": 90}]
    await app.state.supervisor.drain(timeout=5)


@pytest.mark.asyncio
async def test_run_tick_without_database(app):
    app.state.db_session_factory = None
    assert await run_tick(app) is None


@pytest.mark.asyncio
async def test_scheduler_loop_ticks_until_cancelled(app, add_job, fake_rpc):
    await add_job(1, "SELECT cleanup_old_chat_data(90)", "Every hour")

    task = asyncio.create_task(run_scheduler(app, poll_seconds=0))
    for _ in range(100):
        if fake_rpc.calls:
            break
        await asyncio.sleep(0.01)
    task.cancel()
    await task

    # The job's last_run advanced, so later ticks found nothing due
    assert len(fake_rpc.called("cleanup_old_chat_data")) == 1
