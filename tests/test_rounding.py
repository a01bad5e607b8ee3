"""Tests for half-up rounding in the scoring formulas."""

from datetime import datetime, timedelta

from satprep.services.bloom import calculate_bloom_mastery
from satprep.services.flow_engine import estimate_skill_level
from satprep.services.performance import calculate_optimal_interval
from satprep.services.rounding import round_half_up


def test_halves_round_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(12.5) == 13
    assert round_half_up(44.5) == 45


def test_non_halves_round_to_nearest():
    assert round_half_up(3.49) == 3
    assert round_half_up(3.51) == 4
    assert round_half_up(7) == 7
    assert round_half_up(0) == 0


def test_optimal_interval_rounds_half_up():
    assert calculate_optimal_interval(30, 0) == 3, "2.5 days rounds to 3"


def test_bloom_mastery_rounds_half_up():
    assert calculate_bloom_mastery(45, 5, 0) == 23, "22.5 rounds to 23"


def test_skill_estimate_rounds_half_up():
    assert estimate_skill_level(25, 0.5, 0) == 3, "2.5 rounds to 3"


def test_session_duration_rounds_half_up():
    from satprep.database.models import LearningSession
    from satprep.services.sessions import _close

    start = datetime(2024, 3, 1, 12, 0, 0)
    session = LearningSession(start_time=start, flow_states=[])
    _close(session, start + timedelta(minutes=2, seconds=30))

    assert session.duration == 3
