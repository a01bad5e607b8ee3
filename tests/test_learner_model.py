"""Tests for learner profile helpers."""

from datetime import datetime, timedelta

from satprep.services.learner_model import calculate_streak

TODAY = datetime(2024, 3, 10, 18, 0, 0)


def test_streak_counts_consecutive_days_ending_today():
    starts = [
        TODAY - timedelta(hours=2),
        TODAY - timedelta(hours=8),  # same day twice counts once
        TODAY - timedelta(days=1),
        TODAY - timedelta(days=2),
        TODAY - timedelta(days=4),
    ]

    streak, last_active = calculate_streak(starts, today=TODAY)
    assert streak == 3
    assert last_active == TODAY - timedelta(hours=2)


def test_streak_is_broken_without_study_today():
    starts = [TODAY - timedelta(days=1), TODAY - timedelta(days=2)]

    streak, last_active = calculate_streak(starts, today=TODAY)
    assert streak == 0
    assert last_active == TODAY - timedelta(days=1)


def test_no_sessions():
    assert calculate_streak([], today=TODAY) == (0, None)
