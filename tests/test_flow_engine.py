"""Tests for flow state detection and difficulty adjustment."""

from datetime import datetime, timedelta

from satprep.services.flow_engine import (
    BREAK_ACTIVITIES,
    PerformanceMetrics,
    adjust_for_flow,
    calculate_flow_state,
    calculate_session_flow_score,
    detect_flow_from_behavior,
    estimate_skill_level,
    should_suggest_break,
)

BORED = PerformanceMetrics(is_correct=True, time_spent=20, average_time=90, recent_accuracy=0.95)
ANXIOUS = PerformanceMetrics(
    is_correct=False, time_spent=300, average_time=90, hints_used=4, recent_accuracy=0.3
)
FLOWING = PerformanceMetrics(is_correct=True, time_spent=90, average_time=90, recent_accuracy=0.5)


def test_flow_state_zones():
    flow = calculate_flow_state(5, 5)
    assert flow.flow_zone == "flow"
    assert flow.flow_score == 100

    bored = calculate_flow_state(2, 6)
    assert bored.flow_zone == "boredom"
    assert bored.flow_score == 10

    anxious = calculate_flow_state(8, 5)
    assert anxious.flow_zone == "anxiety"
    assert anxious.flow_score == 20


def test_low_skill_and_challenge_is_not_flow():
    """Matching challenge and skill below 3 is not engaging enough for flow."""
    assert calculate_flow_state(2, 2).flow_zone != "flow"


def test_detect_flow_from_behavior():
    assert detect_flow_from_behavior(BORED) == ("boredom", 0.6)
    assert detect_flow_from_behavior(ANXIOUS) == ("anxiety", 1.0)
    assert detect_flow_from_behavior(FLOWING) == ("flow", 1.0)


def test_adjust_for_flow():
    harder = adjust_for_flow(5, 5, BORED)
    assert harder.new_difficulty == 6
    assert harder.flow_target == "slight_challenge"

    easier = adjust_for_flow(5, 5, ANXIOUS)
    assert easier.new_difficulty == 4
    assert easier.should_provide_hint

    progressing = adjust_for_flow(5, 5, FLOWING)
    assert progressing.new_difficulty == 6, "Half a step up rounds to the next level"


def test_adjust_for_flow_stays_in_learning_zone():
    adjustment = adjust_for_flow(3, 8, ANXIOUS)
    assert adjustment.new_difficulty == 7
    assert adjustment.adjustment_reason == "Adjusted to stay within learning zone"


def test_break_after_repeated_failures():
    suggestion = should_suggest_break(0, 3, [])
    assert suggestion.should_break
    assert suggestion.break_duration == 5
    assert suggestion.suggested_activity in BREAK_ACTIVITIES


def test_longer_break_after_sustained_anxiety():
    suggestion = should_suggest_break(16, 0, [])
    assert suggestion.should_break
    assert suggestion.break_duration == 10


def test_no_break_while_in_flow():
    assert not should_suggest_break(0, 0, [80, 90]).should_break
    assert should_suggest_break(0, 0, [20, 25]).should_break


def test_session_flow_score_is_time_weighted():
    start = datetime(2024, 3, 1, 9, 0)
    states = [
        {"flow_zone": "flow", "timestamp": start},
        {"flow_zone": "anxiety", "timestamp": start + timedelta(minutes=10)},
    ]
    assert calculate_session_flow_score(states, end_time=start + timedelta(minutes=20)) == 60
    assert calculate_session_flow_score([]) == 50


def test_estimate_skill_level():
    assert estimate_skill_level(100, 1.0, 6) == 10
    assert estimate_skill_level(0, 0, 0) == 1
    assert estimate_skill_level(50, 0.5, 3) == 5
