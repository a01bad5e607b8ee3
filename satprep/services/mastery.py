"""Per-topic progress record operations.

A TopicProgress row tracks everything the engine knows about one student
on one topic: attempt counts, SM-2 state, Bloom taxonomy progress, Feynman
explanation quality and flow metrics. The functions here mutate a record
in memory; callers own the session and commit.
"""

import copy
from datetime import datetime
from typing import Optional

from ..database.models import Question, QuestionAttempt, TopicProgress
from .bloom import BLOOM_LEVEL_NAMES, MASTERY_THRESHOLD, MAX_LEVEL, default_bloom_progress
from .bloom import calculate_bloom_mastery
from .rounding import round_half_up

FLOW_MOVING_AVERAGE_WEIGHT = 0.3
MINUTES_PER_FLOW_UPDATE = 2
QUALITY_HISTORY_SIZE = 10


def new_topic_progress(user_id: str, subject: str, topic: str) -> TopicProgress:
    """Create a progress record with all counters at their starting values."""
    return TopicProgress(
        user_id=user_id,
        subject=subject,
        topic=topic,
        total_attempts=0,
        correct_attempts=0,
        accuracy_rate=0.0,
        average_time_spent=0.0,
        mastery_level=0,
        ease_factor=2.5,
        interval=0,
        repetitions=0,
        quality_history=[],
        review_bloom_level=1,
        progressive_challenge=False,
        bloom_progress=default_bloom_progress(),
        explanation_clarity=0,
        explanation_completeness=0,
        average_challenge=5.0,
        average_skill=5.0,
        time_in_flow=0.0,
        time_in_boredom=0.0,
        time_in_anxiety=0.0,
        flow_score=50.0,
        difficulty_adjustments=0,
    )


def add_attempt(
    progress: TopicProgress,
    question_id: str,
    is_correct: bool,
    time_spent: float,
    hints_used: int = 0,
    confidence: int = 3,
    chat_interactions: int = 0,
    bloom_level: Optional[int] = None,
    now: Optional[datetime] = None,
) -> QuestionAttempt:
    """Append an attempt and update the running performance counters."""
    now = now or datetime.utcnow()
    attempt = QuestionAttempt(
        question_id=question_id,
        attempted_at=now,
        is_correct=is_correct,
        time_spent=time_spent,
        hints_used=hints_used,
        confidence=confidence,
        chat_interactions=chat_interactions,
        bloom_level=bloom_level,
    )
    progress.attempts.append(attempt)

    progress.total_attempts += 1
    if is_correct:
        progress.correct_attempts += 1
    progress.accuracy_rate = progress.correct_attempts / progress.total_attempts

    total_time = progress.average_time_spent * (progress.total_attempts - 1)
    progress.average_time_spent = (total_time + time_spent) / progress.total_attempts
    progress.last_attempt_at = now

    return attempt


def current_bloom_level(progress: TopicProgress) -> int:
    return (progress.bloom_progress or {}).get("current_level", 0) or 0


def calculate_mastery_level(progress: TopicProgress) -> int:
    """Recompute and store mastery (0-100).

    Accuracy contributes up to 40 points, practice volume 15, retention
    (SM-2 repetitions) 15 and Bloom level 30.
    """
    mastery = progress.accuracy_rate * 40
    mastery += min(progress.total_attempts / 10, 1) * 15
    mastery += min(progress.repetitions / 5, 1) * 15
    mastery += (current_bloom_level(progress) / MAX_LEVEL) * 30

    progress.mastery_level = round_half_up(mastery)
    return progress.mastery_level


def update_bloom_progress(
    progress: TopicProgress,
    bloom_level: int,
    quality: int,
    now: Optional[datetime] = None,
) -> bool:
    """Record a quality score against a Bloom level.

    Returns:
        True if the student advanced to a new current level
    """
    level_name = BLOOM_LEVEL_NAMES.get(bloom_level)
    if not level_name:
        return False

    # JSON columns only persist on reassignment
    bloom = copy.deepcopy(progress.bloom_progress or default_bloom_progress())
    level = bloom[level_name]
    level["attempts"] += 1
    level["last_attempt"] = (now or datetime.utcnow()).isoformat()
    level["mastery"] = calculate_bloom_mastery(level["mastery"], level["attempts"], quality)

    advanced = False
    if level["mastery"] >= MASTERY_THRESHOLD and bloom_level > bloom["current_level"]:
        bloom["current_level"] = bloom_level
        bloom["next_target_level"] = min(MAX_LEVEL, bloom_level + 1)
        advanced = True

    progress.bloom_progress = bloom
    return advanced


def update_flow_metrics(
    progress: TopicProgress,
    challenge: float,
    skill: float,
    flow_zone: str,
) -> None:
    """Fold a challenge/skill observation into the topic's flow metrics."""
    weight = FLOW_MOVING_AVERAGE_WEIGHT
    progress.average_challenge = progress.average_challenge * (1 - weight) + challenge * weight
    progress.average_skill = progress.average_skill * (1 - weight) + skill * weight

    distance = abs(challenge - skill)
    progress.flow_score = max(0, 100 - distance * 20)

    if flow_zone == "flow":
        progress.time_in_flow += MINUTES_PER_FLOW_UPDATE
    elif flow_zone == "boredom":
        progress.time_in_boredom += MINUTES_PER_FLOW_UPDATE
    elif flow_zone == "anxiety":
        progress.time_in_anxiety += MINUTES_PER_FLOW_UPDATE

    if progress.last_flow_zone and progress.last_flow_zone != flow_zone:
        progress.difficulty_adjustments += 1
    progress.last_flow_zone = flow_zone


def push_quality_history(progress: TopicProgress, quality: int) -> None:
    """Keep the last 10 quality scores."""
    history = list(progress.quality_history or [])
    history.append(quality)
    progress.quality_history = history[-QUALITY_HISTORY_SIZE:]


def update_question_statistics(question: Question, is_correct: bool, time_spent: float) -> None:
    """Update a question's running accuracy and time averages."""
    times_used = question.times_used or 0
    accuracy = question.average_accuracy or 0.0
    average_time = question.average_time_spent or 0.0

    question.average_accuracy = (accuracy * times_used + (1 if is_correct else 0)) / (times_used + 1)
    question.average_time_spent = (average_time * times_used + time_spent) / (times_used + 1)
    question.times_used = times_used + 1


def recent_attempts(progress: TopicProgress, limit: int = 10) -> list[QuestionAttempt]:
    return list(progress.attempts)[-limit:]
