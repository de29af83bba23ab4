"""Tests for run statistics and the merged audit log."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from darkroom.repositories.job_run_repo import JobRunRepository, LegacyJobRunRepository
from darkroom.services.run_aggregator import aggregate_runs, fold_status_counts, merged_run_log

BASE = datetime(2026, 10, 18, 6, 0, tzinfo=timezone.utc)


async def _primary(session, job_id, status, minutes, message=None):
    start = BASE + timedelta(minutes=minutes)
    await JobRunRepository(session).record(
        job_id, f"SELECT job_{job_id}()", status, message, start, start + timedelta(seconds=2),
    )


async def _legacy(session, job_id, status, minutes, message=None):
    start = BASE + timedelta(minutes=minutes)
    await LegacyJobRunRepository(session).record(
        job_id, f"SELECT job_{job_id}()", status, message, start, start + timedelta(seconds=2),
    )


def test_fold_status_counts_is_case_insensitive():
    stats = fold_status_counts([
        (1, "succeeded", 3),
        (1, "SUCCESS", 2),
        (1, "Failed", 1),
        (1, "error", 1),
        (1, "running", 4),
    ])
    assert stats[1].success_count == 5
    assert stats[1].failed_count == 2
    assert stats[1].total_runs == 11


@pytest.mark.asyncio
async def test_counts_come_from_primary_store_only(db_session):
    await _primary(db_session, 1, "succeeded", 0)
    await _primary(db_session, 1, "failed", 10)
    await _legacy(db_session, 1, "succeeded", 0)
    await _legacy(db_session, 1, "succeeded", -60)
    await db_session.commit()

    stats = await aggregate_runs(db_session, [1, 2])
    assert stats[1].success_count == 1
    assert stats[1].failed_count == 1
    assert stats[1].total_runs == 2
    assert stats[2].total_runs == 0
    assert stats[2].last_run is None


@pytest.mark.asyncio
async def test_last_run_is_newest_across_stores(db_session):
    await _primary(db_session, 1, "succeeded", 0)
    await _legacy(db_session, 1, "succeeded", 30)
    await _primary(db_session, 2, "succeeded", 45)
    await _legacy(db_session, 2, "succeeded", 5)
    await db_session.commit()

    stats = await aggregate_runs(db_session, [1, 2])
    assert stats[1].last_run == BASE + timedelta(minutes=30)
    assert stats[2].last_run == BASE + timedelta(minutes=45)


@pytest.mark.asyncio
async def test_last_summary_only_for_maintenance_jobs(db_session):
    summary = {"tables": [], "total": {"totalTables": 3, "diskFreedBytes": 4096}, "topBloatedAfter": []}
    await _primary(db_session, 32, "succeeded", 0, message=json.dumps(summary))
    await _primary(db_session, 4, "succeeded", 0, message=json.dumps(summary))
    await db_session.commit()

    stats = await aggregate_runs(db_session, [4, 32], maintenance_job_ids={32})
    assert stats[32].last_summary["total"]["diskFreedBytes"] == 4096
    assert stats[4].last_summary is None


@pytest.mark.asyncio
async def test_aggregate_with_no_jobs(db_session):
    assert await aggregate_runs(db_session, []) == {}


@pytest.mark.asyncio
async def test_merged_log_drops_mirrored_rows(db_session):
    await _primary(db_session, 7, "succeeded", 0, message="primary copy")
    await _legacy(db_session, 7, "succeeded", 0, message="legacy copy")
    await _legacy(db_session, 7, "failed", -30, message="only in legacy")
    await _primary(db_session, 7, "failed", 20, message="newest")
    await db_session.commit()

    rows = await merged_run_log(db_session, 7)
    assert [row.return_message for row in rows] == ["newest", "primary copy", "only in legacy"]
    assert [row.source for row in rows] == ["primary", "primary", "legacy"]
    assert rows[0].start_time == BASE + timedelta(minutes=20)


@pytest.mark.asyncio
async def test_merged_log_respects_limit(db_session):
    for minutes in range(6):
        await _primary(db_session, 8, "succeeded", minutes)
        await _legacy(db_session, 8, "succeeded", minutes + 100)
    await db_session.commit()

    rows = await merged_run_log(db_session, 8, limit=4)
    assert len(rows) == 4
    assert all(row.source == "legacy" for row in rows)
