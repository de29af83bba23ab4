"""Tests for schedule interpretation and due checks."""

from datetime import datetime, timedelta, timezone

import pytest

from darkroom.services.schedule import (
    DEFAULT_INTERVAL_MINUTES,
    describe_cron,
    describe_schedule,
    interval_minutes,
    is_due,
    looks_like_cron,
)


@pytest.mark.parametrize(
    "phrase, expected",
    [
        ("Every hour", 60),
        ("Every hour at :15", 60),
        ("Hourly", 60),
        ("Every 4 hours at :01", 240),
        ("Every 2 hours", 120),
        ("Every 30 minutes", 30),
        ("Every day at 03:00", 1440),
        ("Daily", 1440),
        ("Every Mon at 2:00 AM", 10080),
        ("Every Sunday at 11:30 PM", 10080),
        ("Every week", 10080),
    ],
)
def test_recognized_phrases(phrase, expected):
    assert interval_minutes(phrase) == expected


@pytest.mark.parametrize("schedule", ["", "   ", None, 42, "whenever convenient", "Every blue moon"])
def test_unrecognized_schedules_fall_back_to_hourly(schedule):
    assert interval_minutes(schedule) == DEFAULT_INTERVAL_MINUTES == 60


@pytest.mark.parametrize(
    "expression, phrase",
    [
        ("0 * * * *", "Every hour"),
        ("15 * * * *", "Every hour at :15"),
        ("1 */4 * * *", "Every 4 hours at :01"),
        ("0 */6 * * *", "Every 6 hours"),
        ("30 3 * * *", "Every day at 03:30"),
        ("0 2 * * 1", "Every Mon at 2:00 AM"),
        ("45 14 * * fri", "Every Fri at 2:45 PM"),
        ("0 2 * * 1-5", "Every Mon, Tue, Wed, Thu, Fri at 2:00 AM"),
        ("0 2 * * MON-FRI", "Every Mon, Tue, Wed, Thu, Fri at 2:00 AM"),
        ("0 9 * * 1,3", "Every Mon, Wed at 9:00 AM"),
        ("0 6 * * sat-sun", "Every Sat, Sun at 6:00 AM"),
        ("0 0 * * 0-7", "Every Sun, Mon, Tue, Wed, Thu, Fri, Sat at 12:00 AM"),
        ("0 2 * * 1-2,5", "Every Mon, Tue, Fri at 2:00 AM"),
        ("*/15 * * * *", "Every 15 minutes"),
    ],
)
def test_cron_descriptions(expression, phrase):
    assert describe_cron(expression) == phrase


def test_cron_hourly_scenario():
    assert describe_cron("0 * * * *") == "Every hour"
    assert interval_minutes("0 * * * *") == 60


def test_cron_intervals_follow_their_description():
    assert interval_minutes("1 */4 * * *") == 240
    assert interval_minutes("30 3 * * *") == 1440
    assert interval_minutes("0 2 * * 1") == 10080
    # Several weekdays are checked at daily spacing so no listed day is missed
    assert interval_minutes("0 2 * * 1-5") == 1440
    assert interval_minutes("0 2 * * MON-FRI") == 1440
    assert interval_minutes("0 9 * * 1,3") == 1440


def test_weekday_fields_that_are_not_days_degrade_to_default():
    assert describe_cron("0 2 * * */2") is None
    assert describe_cron("0 2 * * mon-xyz") is None
    assert interval_minutes("0 2 * * */2") == 60


def test_unsupported_cron_shapes_degrade_to_default():
    # Specific day of month is not one of the recognised shapes
    assert describe_cron("0 0 1 * *") is None
    assert interval_minutes("0 0 1 * *") == 60


def test_looks_like_cron():
    assert looks_like_cron("0 * * * *")
    assert not looks_like_cron("Every hour")
    assert not looks_like_cron("0 * * *")
    assert not looks_like_cron(None)


def test_describe_schedule_passes_phrases_through():
    assert describe_schedule("Every 4 hours at :01") == "Every 4 hours at :01"
    assert describe_schedule("0 * * * *") == "Every hour"
    assert describe_schedule("") is None


def test_never_run_job_is_due():
    assert is_due(None, 60)
    assert is_due(None, 10080)


def test_job_run_three_hours_ago_with_four_hour_interval_is_not_due():
    now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    assert not is_due(now - timedelta(hours=3), 240, now)


def test_job_is_due_once_interval_elapsed():
    now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    assert is_due(now - timedelta(hours=4), 240, now)
    assert is_due(now - timedelta(hours=5), 240, now)


def test_naive_last_run_is_treated_as_utc():
    now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    assert is_due(datetime(2026, 10, 18, 10, 59), 60, now)
    assert not is_due(datetime(2026, 10, 18, 11, 30), 60, now)


def test_zero_interval_is_never_due():
    assert not is_due(None, 0)
