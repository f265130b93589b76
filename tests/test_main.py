from datetime import datetime
from zoneinfo import ZoneInfo

from apscheduler.triggers.combining import OrTrigger

from price_monitor.config import parse_config
from price_monitor.main import PRICE_CHECK_JOB_ID, build_scheduler

LONDON = ZoneInfo("Europe/London")


def make_snapshot(**extra):
    raw = {
        "items": [{"url": "https://cars.example.com/1", "name": "MG ZS"}],
        "schedule": {"times": ["09:00", "13:00", "18:00"], "timezone": "Europe/London"},
    }
    raw.update(extra)
    return parse_config(raw)


def test_all_check_times_share_one_job():
    scheduler = build_scheduler(make_snapshot(), config=None, store=None, monitor=None)

    check_jobs = [job for job in scheduler.get_jobs() if job.id.startswith("price_check")]

    assert [job.id for job in check_jobs] == [PRICE_CHECK_JOB_ID]
    job = check_jobs[0]
    assert job.max_instances == 1
    assert isinstance(job.trigger, OrTrigger)
    assert len(job.trigger.triggers) == 3


def test_shared_trigger_fires_at_each_configured_time():
    scheduler = build_scheduler(make_snapshot(), config=None, store=None, monitor=None)
    trigger = scheduler.get_job(PRICE_CHECK_JOB_ID).trigger

    after_morning = datetime(2026, 6, 1, 10, 0, tzinfo=LONDON)
    after_lunch = datetime(2026, 6, 1, 14, 0, tzinfo=LONDON)

    assert trigger.get_next_fire_time(None, after_morning).hour == 13
    assert trigger.get_next_fire_time(None, after_lunch).hour == 18


def test_summary_jobs_are_registered_when_enabled():
    snapshot = make_snapshot(
        weeklyEmail={"enabled": True, "dayOfWeek": "sunday", "time": "10:00"},
        failureAlerts={"dailySummary": True},
    )

    scheduler = build_scheduler(snapshot, config=None, store=None, monitor=None)

    assert {job.id for job in scheduler.get_jobs()} == {
        PRICE_CHECK_JOB_ID,
        "weekly_summary",
        "daily_failure_summary",
    }
