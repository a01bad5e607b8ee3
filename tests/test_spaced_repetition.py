"""Tests for SM-2 scheduling and its flow/Bloom enhancements."""

from datetime import datetime, timedelta

NOW = datetime(2024, 3, 1, 12, 0, 0)


def test_sm2_first_two_successes():
    """First success reviews tomorrow, second in six days."""
    from satprep.services.spaced_repetition import calculate_sm2

    first = calculate_sm2(5, now=NOW)
    assert first.interval == 1
    assert first.repetitions == 1
    assert first.ease_factor == 2.6, "Perfect recall raises ease by 0.1"
    assert first.next_review == NOW + timedelta(days=1)

    second = calculate_sm2(5, first.ease_factor, first.interval, first.repetitions, now=NOW)
    assert second.interval == 6
    assert second.repetitions == 2


def test_sm2_interval_grows_by_ease_factor():
    """Later intervals multiply the previous one by the new ease factor."""
    from satprep.services.spaced_repetition import calculate_sm2

    result = calculate_sm2(4, ease_factor=2.5, interval=6, repetitions=2, now=NOW)
    assert result.ease_factor == 2.5, "Quality 4 leaves ease unchanged"
    assert result.interval == 15
    assert result.repetitions == 3


def test_sm2_interval_rounds_half_up():
    from satprep.services.spaced_repetition import calculate_sm2

    result = calculate_sm2(4, ease_factor=2.5, interval=5, repetitions=2, now=NOW)
    assert result.interval == 13, "5 * 2.5 = 12.5 rounds up"


def test_sm2_failure_resets_and_lowers_ease():
    """A failed review resets progress and still updates the ease factor."""
    from satprep.services.spaced_repetition import calculate_sm2

    result = calculate_sm2(1, ease_factor=2.5, interval=15, repetitions=3, now=NOW)
    assert result.interval == 1
    assert result.repetitions == 0
    assert result.ease_factor == 1.96


def test_sm2_ease_factor_floor():
    from satprep.services.spaced_repetition import calculate_sm2

    result = calculate_sm2(0, ease_factor=1.3, now=NOW)
    assert result.ease_factor == 1.3, "Ease factor never drops below 1.3"


def test_sm2_clamps_quality():
    from satprep.services.spaced_repetition import calculate_sm2

    assert calculate_sm2(9, now=NOW) == calculate_sm2(5, now=NOW)


def test_flow_adjusted_interval():
    """Low flow shortens intervals, high flow stretches them."""
    from satprep.services.spaced_repetition import adjust_interval_for_flow

    assert adjust_interval_for_flow(10, 100) == 12
    assert adjust_interval_for_flow(10, 0) == 8
    assert adjust_interval_for_flow(10, 50) == 10
    assert adjust_interval_for_flow(1, 0) == 1, "Interval never drops below a day"


def test_review_bloom_level():
    from satprep.services.spaced_repetition import determine_review_bloom_level

    early = determine_review_bloom_level(3, repetitions=1, quality=5)
    assert early.review_level == 3
    assert not early.should_progress_challenge

    strong = determine_review_bloom_level(3, repetitions=2, quality=5)
    assert strong.review_level == 4
    assert strong.should_progress_challenge

    weak = determine_review_bloom_level(3, repetitions=4, quality=3)
    assert weak.review_level == 3, "Quality below 4 reinforces the current level"

    top = determine_review_bloom_level(6, repetitions=6, quality=5)
    assert top.review_level == 6
    assert not top.should_progress_challenge


def test_enhanced_sm2():
    """Enhanced SM-2 stretches the interval in flow and raises the review level."""
    from satprep.services.spaced_repetition import calculate_enhanced_sm2

    result = calculate_enhanced_sm2(
        5, ease_factor=2.5, interval=6, repetitions=2, flow_score=100, bloom_level=2, now=NOW
    )
    assert result.ease_factor == 2.6
    assert result.repetitions == 3
    assert result.interval == 19, "round(6 * 2.6) = 16 days, stretched 1.2x by flow"
    assert result.next_review == NOW + timedelta(days=19)
    assert result.review_bloom_level == 3
    assert result.progressive_challenge
    assert result.quality_score == 5


def test_quality_score_from_attempt():
    from satprep.services.spaced_repetition import calculate_quality_score

    assert calculate_quality_score(True, 30, 60, confidence=5) == 5
    assert calculate_quality_score(True, 30, 60, confidence=2) == 3
    assert calculate_quality_score(True, 130, 60, confidence=5) == 4, "Slow answers lose a point"
    assert calculate_quality_score(True, 30, 60, confidence=4, hints_used=6) == 3
    assert calculate_quality_score(False, 30, 60, confidence=3, hints_used=2) == 2
    assert calculate_quality_score(False, 30, 60, confidence=3) == 1


def test_review_dates():
    from satprep.services.spaced_repetition import (
        get_days_until_review,
        is_due_for_review,
        is_overdue,
    )

    assert get_days_until_review(NOW + timedelta(days=1, hours=12), NOW) == 2
    assert is_due_for_review(NOW - timedelta(minutes=1), NOW)
    assert not is_due_for_review(NOW + timedelta(minutes=1), NOW)
    assert is_overdue(NOW - timedelta(days=3), NOW)
    assert not is_overdue(NOW - timedelta(days=1), NOW), "One day late is not overdue yet"


def test_review_priority():
    """Overdue days, low mastery and practice volume all raise priority."""
    from satprep.services.spaced_repetition import calculate_review_priority

    priority = calculate_review_priority(NOW - timedelta(days=3), 50, 10, now=NOW)
    assert priority == 11.5

    with_flow = calculate_review_priority(NOW - timedelta(days=3), 50, 10, flow_score=50, now=NOW)
    assert with_flow == 12.5

    upcoming = calculate_review_priority(NOW + timedelta(days=3), 50, 10, now=NOW)
    assert upcoming < priority


def test_review_strategy():
    from satprep.services.spaced_repetition import get_review_strategy

    assert get_review_strategy(40, 3, 0, 80)["strategy"] == "review"
    assert get_review_strategy(40, 3, 0, 80)["bloom_level"] == 2
    assert get_review_strategy(60, 3, 1, 40)["strategy"] == "feynman"

    practice = get_review_strategy(80, 3, 2, 80)
    assert practice["strategy"] == "practice"
    assert practice["bloom_level"] == 4

    assert get_review_strategy(80, 3, 0, 80)["strategy"] == "active_recall"
