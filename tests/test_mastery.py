"""Tests for in-memory progress record updates."""

import pytest

from satprep.database.models import Question
from satprep.services.mastery import (
    add_attempt,
    calculate_mastery_level,
    new_topic_progress,
    push_quality_history,
    recent_attempts,
    update_bloom_progress,
    update_flow_metrics,
    update_question_statistics,
)


@pytest.fixture
def progress():
    return new_topic_progress("user-1", "math", "Linear Equations")


def test_add_attempt_updates_counters(progress):
    add_attempt(progress, "q1", is_correct=True, time_spent=60)
    add_attempt(progress, "q2", is_correct=False, time_spent=30)

    assert progress.total_attempts == 2
    assert progress.correct_attempts == 1
    assert progress.accuracy_rate == 0.5
    assert progress.average_time_spent == 45
    assert [a.question_id for a in recent_attempts(progress, 1)] == ["q2"]


def test_mastery_level(progress):
    add_attempt(progress, "q1", is_correct=True, time_spent=60)
    add_attempt(progress, "q2", is_correct=False, time_spent=30)

    assert calculate_mastery_level(progress) == 23
    assert progress.mastery_level == 23


def test_mastery_after_three_correct_answers(progress):
    for i in range(3):
        add_attempt(progress, f"q{i}", is_correct=True, time_spent=60)

    assert calculate_mastery_level(progress) == 45, "40 accuracy + 4.5 practice points"


def test_mastery_level_rounds_half_up(progress):
    progress.total_attempts = 5
    progress.bloom_progress = {**progress.bloom_progress, "current_level": 3}

    assert calculate_mastery_level(progress) == 23, "7.5 practice + 15 Bloom points is 22.5"


def test_bloom_progress_advances_at_mastery(progress):
    advanced = [update_bloom_progress(progress, 3, 5) for _ in range(5)]

    assert advanced == [False, False, False, False, True]
    assert progress.bloom_progress["current_level"] == 3
    assert progress.bloom_progress["next_target_level"] == 4
    assert progress.bloom_progress["apply"]["attempts"] == 5


def test_bloom_progress_ignores_unknown_level(progress):
    assert update_bloom_progress(progress, 9, 5) is False


def test_flow_metrics(progress):
    update_flow_metrics(progress, 7, 5, "anxiety")

    assert progress.average_challenge == pytest.approx(5.6)
    assert progress.flow_score == 60
    assert progress.time_in_anxiety == 2
    assert progress.difficulty_adjustments == 0

    update_flow_metrics(progress, 5, 5, "flow")
    assert progress.difficulty_adjustments == 1, "Zone change counts as an adjustment"
    assert progress.flow_score == 100


def test_quality_history_keeps_last_ten(progress):
    for quality in range(12):
        push_quality_history(progress, quality % 6)

    assert len(progress.quality_history) == 10
    assert progress.quality_history[-1] == 11 % 6


def test_question_statistics():
    question = Question(subject="math", question_text="Solve", correct_answer="A")

    update_question_statistics(question, True, 60)
    update_question_statistics(question, False, 30)

    assert question.times_used == 2
    assert question.average_accuracy == 0.5
    assert question.average_time_spent == 45
