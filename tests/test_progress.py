"""Tests for review scheduling over stored progress records."""

from datetime import datetime, timedelta

from satprep.services.mastery import new_topic_progress
from satprep.services.progress import get_review_schedule

NOW = datetime(2024, 3, 1, 12, 0, 0)


def _progress(db, user, topic, next_review, mastery, attempts):
    progress = new_topic_progress(user.id, "math", topic)
    progress.next_review_at = next_review
    progress.mastery_level = mastery
    progress.total_attempts = attempts
    db.add(progress)
    return progress


def test_schedule_groups_and_orders_reviews(db, user):
    _progress(db, user, "long-overdue-mastered", NOW - timedelta(days=5), 100, 0)
    _progress(db, user, "overdue-weak", NOW - timedelta(days=3), 0, 10)
    _progress(db, user, "due-yesterday-mastered", NOW - timedelta(days=1, hours=12), 100, 0)
    _progress(db, user, "due-weak", NOW - timedelta(hours=1), 0, 0)
    _progress(db, user, "next-week", NOW + timedelta(days=7), 50, 5)
    _progress(db, user, "tomorrow", NOW + timedelta(hours=20), 50, 5)
    db.commit()

    schedule = get_review_schedule(db, user, now=NOW)

    overdue = schedule["overdue"]
    assert [i["topic"] for i in overdue] == ["overdue-weak", "long-overdue-mastered"]
    assert overdue[0]["priority"] == 14, "6 overdue + 5 mastery + 3 practice"
    assert overdue[1]["priority"] == 10

    due_now = schedule["due_now"]
    assert [i["topic"] for i in due_now] == ["due-weak", "due-yesterday-mastered"]
    assert due_now[0]["priority"] > due_now[1]["priority"]

    assert [i["topic"] for i in schedule["upcoming"]] == ["tomorrow", "next-week"]
    assert schedule["upcoming"][0]["days_until"] == 1


def test_one_day_late_is_due_not_overdue(db, user):
    _progress(db, user, "late", NOW - timedelta(hours=30), 40, 3)
    db.commit()

    schedule = get_review_schedule(db, user, now=NOW)
    assert [i["topic"] for i in schedule["due_now"]] == ["late"]
    assert schedule["overdue"] == []


def test_empty_schedule(db, user):
    assert get_review_schedule(db, user, now=NOW) == {"due_now": [], "upcoming": [], "overdue": []}
