"""Tests for the heartbeat guard and progress seeding."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from darkroom.db.models.job_progress import JobProgressRow
from darkroom.repositories.job_progress_repo import JobProgressRepository
from darkroom.services.job_catalog import JobDescriptor
from darkroom.services.progress import (
    check_not_running,
    finish_progress,
    heartbeat_is_active,
    seed_progress,
)


async def _heartbeat(session, job_id, progress, updated_at, message="Working"):
    await JobProgressRepository(session).upsert(
        job_id,
        current_step=1,
        total_steps=4,
        progress=progress,
        message=message,
        updated_at=updated_at,
    )
    await session.commit()


@pytest.mark.asyncio
async def test_guard_rejects_fresh_unfinished_heartbeat(db_session, catalog, now):
    await _heartbeat(db_session, 26, 40, now - timedelta(minutes=2), message="Batch 0 running")
    decision = await check_not_running(db_session, catalog.get(26), now=now)
    assert not decision.allowed
    assert decision.progress == 40
    assert decision.message == "Batch 0 running"


@pytest.mark.asyncio
async def test_guard_allows_stale_heartbeat(db_session, catalog, now):
    await _heartbeat(db_session, 26, 40, now - timedelta(minutes=6))
    decision = await check_not_running(db_session, catalog.get(26), now=now)
    assert decision.allowed


@pytest.mark.asyncio
async def test_guard_allows_finished_heartbeat(db_session, catalog, now):
    await _heartbeat(db_session, 21, 100, now - timedelta(seconds=10))
    decision = await check_not_running(db_session, catalog.get(21), now=now)
    assert decision.allowed
    assert decision.progress == 100


@pytest.mark.asyncio
async def test_guard_allows_when_no_heartbeat(db_session, catalog, now):
    decision = await check_not_running(db_session, catalog.get(31), now=now)
    assert decision.allowed
    assert decision.progress is None


@pytest.mark.asyncio
async def test_untracked_jobs_are_never_guarded(db_session, catalog, now):
    await _heartbeat(db_session, 5, 10, now)
    decision = await check_not_running(db_session, catalog.get(5), now=now)
    assert decision.allowed


def test_custom_stale_window(now):
    class Row:
        progress = 50
        updated_at = now - timedelta(minutes=8)

    assert not heartbeat_is_active(Row(), now=now)
    assert heartbeat_is_active(Row(), now=now, stale_minutes=10)


@pytest.mark.asyncio
async def test_master_seeding_covers_chained_jobs(db_session, catalog):
    await seed_progress(db_session, catalog.get(26), catalog)
    await db_session.commit()

    repo = JobProgressRepository(db_session)
    for job_id in (26, 27, 28):
        row = await repo.get(job_id)
        assert row is not None
        assert row.progress == 0
        assert row.current_step == 0
        assert row.total_steps == catalog.get(job_id).total_steps
    assert (await repo.get(26)).message == catalog.get(26).initial_message


@pytest.mark.asyncio
async def test_reseeding_resets_without_duplicates(db_session, catalog):
    await seed_progress(db_session, catalog.get(26), catalog)
    await db_session.commit()
    await finish_progress(db_session, 27, succeeded=True)
    await db_session.commit()

    await seed_progress(db_session, catalog.get(26), catalog)
    await db_session.commit()

    repo = JobProgressRepository(db_session)
    result = await db_session.execute(select(JobProgressRow))
    rows = result.scalars().all()
    assert sorted(r.job_id for r in rows) == [26, 27, 28]
    assert (await repo.get(27)).progress == 0


@pytest.mark.asyncio
async def test_seeding_single_job(db_session, catalog):
    seeded = await seed_progress(db_session, JobDescriptor(job_id=40, progress_tracked=True), catalog)
    assert [row.job_id for row in seeded] == [40]


@pytest.mark.asyncio
async def test_finish_progress_marks_outcome(db_session, catalog):
    await seed_progress(db_session, catalog.get(32), catalog)
    await db_session.commit()

    row = await finish_progress(db_session, 32, succeeded=False, message="lock timeout")
    await db_session.commit()
    assert row.progress == 100
    assert row.current_step == row.total_steps == 3
    assert row.message == "Failed: lock timeout"

    row = await finish_progress(db_session, 32, succeeded=True)
    assert row.message == "Completed"
