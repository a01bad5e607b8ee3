"""SM-2 Spaced Repetition scheduling for SAT topics.

The SM-2 algorithm (SuperMemo 2) schedules topic reviews based on how well
the student recalled the material on their last attempt.

Key concepts:
- Quality (0-5): Recall quality derived from correctness, confidence,
  time spent and hints used
- Ease Factor: How easy the topic is for this student (min 1.3, default 2.5)
- Interval: Days until next review
- Repetitions: Consecutive successful reviews

The enhanced variant layers two signals on top of plain SM-2:
- Flow score stretches or shrinks the interval (students in flow retain
  more, anxious students need sooner reinforcement)
- Bloom taxonomy level for the review is raised once a topic is reliably
  recalled, so reviews become progressively more challenging
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from .rounding import round_half_up

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
MAX_BLOOM_LEVEL = 6


@dataclass
class SM2Result:
    """Result of SM-2 calculation."""

    next_review: datetime  # Absolute next review datetime
    ease_factor: float  # Updated ease factor
    interval: int  # Days until next review
    repetitions: int  # Updated repetition count


@dataclass
class EnhancedSM2Result(SM2Result):
    """SM-2 result with flow-adjusted interval and Bloom review target."""

    review_bloom_level: int
    progressive_challenge: bool
    quality_score: int


@dataclass
class ReviewBloomLevel:
    review_level: int
    should_progress_challenge: bool
    reason: str


def _update_ease_factor(ease_factor: float, quality: int) -> float:
    # EF' = EF + (0.1 - (5-q) * (0.08 + (5-q) * 0.02))
    new_ease = ease_factor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
    return max(MIN_EASE_FACTOR, new_ease)


def calculate_sm2(
    quality: int,
    ease_factor: float = DEFAULT_EASE_FACTOR,
    interval: int = 0,
    repetitions: int = 0,
    now: Optional[datetime] = None,
) -> SM2Result:
    """Calculate next review using SM-2 algorithm.

    The ease factor is updated for every review, including failed ones,
    so repeatedly failed topics drift towards the 1.3 floor.

    Args:
        quality: Recall quality (0-5)
        ease_factor: Current ease factor (default 2.5)
        interval: Current interval in days
        repetitions: Number of consecutive successful reviews
        now: Reference time (defaults to utcnow)

    Returns:
        SM2Result with updated values for next review
    """
    quality = max(0, min(5, quality))
    new_ease = _update_ease_factor(ease_factor, quality)

    if quality < 3:
        # Failed review - reset to beginning
        new_repetitions = 0
        new_interval = 1
    else:
        new_repetitions = repetitions + 1
        if new_repetitions == 1:
            new_interval = 1  # First success: review tomorrow
        elif new_repetitions == 2:
            new_interval = 6  # Second success: review in 6 days
        else:
            new_interval = round_half_up(interval * new_ease)

    now = now or datetime.utcnow()

    return SM2Result(
        next_review=now + timedelta(days=new_interval),
        ease_factor=round(new_ease, 2),
        interval=new_interval,
        repetitions=new_repetitions,
    )


def adjust_interval_for_flow(interval: int, flow_score: float) -> int:
    """Scale an interval by flow score.

    Flow 0 shortens the interval to 80%, flow 100 stretches it to 120%.
    """
    multiplier = 0.8 + (flow_score / 100) * 0.4
    return max(1, round_half_up(interval * multiplier))


def determine_review_bloom_level(
    original_level: int, repetitions: int, quality: int
) -> ReviewBloomLevel:
    """Choose the Bloom level a review should target."""
    if quality < 4 or repetitions < 2:
        return ReviewBloomLevel(
            review_level=original_level,
            should_progress_challenge=False,
            reason="Reinforcing current level mastery",
        )

    if repetitions >= 2 and original_level < MAX_BLOOM_LEVEL:
        return ReviewBloomLevel(
            review_level=min(MAX_BLOOM_LEVEL, original_level + 1),
            should_progress_challenge=True,
            reason="Strong recall - increasing cognitive challenge",
        )

    if repetitions >= 5 and original_level >= 3:
        # Mix levels for well-established topics
        if repetitions % 2 == 0:
            alternate = min(MAX_BLOOM_LEVEL, original_level + 1)
        else:
            alternate = original_level
        return ReviewBloomLevel(
            review_level=alternate,
            should_progress_challenge=alternate > original_level,
            reason="Varied review for long-term retention",
        )

    return ReviewBloomLevel(
        review_level=original_level,
        should_progress_challenge=False,
        reason="Maintaining current level",
    )


def calculate_enhanced_sm2(
    quality: int,
    ease_factor: float = DEFAULT_EASE_FACTOR,
    interval: int = 0,
    repetitions: int = 0,
    flow_score: float = 50,
    bloom_level: int = 1,
    now: Optional[datetime] = None,
) -> EnhancedSM2Result:
    """SM-2 with flow-adjusted intervals and progressive Bloom reviews.

    Args:
        quality: Recall quality (0-5)
        ease_factor: Current ease factor
        interval: Current interval in days
        repetitions: Consecutive successful reviews
        flow_score: Recent flow score (0-100)
        bloom_level: Bloom level the topic was last studied at
        now: Reference time (defaults to utcnow)

    Returns:
        EnhancedSM2Result with schedule and Bloom review target
    """
    quality = max(0, min(5, quality))
    base = calculate_sm2(quality, ease_factor, interval, repetitions, now=now)

    new_interval = adjust_interval_for_flow(base.interval, flow_score)
    review = determine_review_bloom_level(bloom_level, base.repetitions, quality)

    now = now or datetime.utcnow()

    return EnhancedSM2Result(
        next_review=now + timedelta(days=new_interval),
        ease_factor=base.ease_factor,
        interval=new_interval,
        repetitions=base.repetitions,
        review_bloom_level=review.review_level,
        progressive_challenge=review.should_progress_challenge,
        quality_score=quality,
    )


def calculate_quality_score(
    is_correct: bool,
    time_spent: float,
    average_time: float,
    confidence: int,
    hints_used: int = 0,
) -> int:
    """Convert an attempt into an SM-2 quality rating.

    Correct answers map confidence onto 3-5, losing a point for being
    very slow and another for heavy hint use, never dropping below 3.
    Incorrect answers score 2 when the student engaged with some hints
    and 1 otherwise.
    """
    if not is_correct:
        return 2 if 0 < hints_used < 10 else 1

    if confidence >= 5:
        quality = 5
    elif confidence >= 4:
        quality = 4
    else:
        quality = 3

    if average_time > 0 and time_spent > average_time * 2:
        quality = max(3, quality - 1)

    if hints_used > 5:
        quality = max(3, quality - 1)

    return quality


def get_days_until_review(
    next_review: datetime, now: Optional[datetime] = None
) -> int:
    """Days until the next review, rounded up. Negative when overdue."""
    now = now or datetime.utcnow()
    return math.ceil((next_review - now).total_seconds() / 86400)


def is_due_for_review(next_review: datetime, now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()
    return next_review <= now


def is_overdue(next_review: datetime, now: Optional[datetime] = None) -> bool:
    return get_days_until_review(next_review, now) < -1


def calculate_review_priority(
    next_review: datetime,
    mastery_level: float,
    total_attempts: int,
    flow_score: Optional[float] = None,
    now: Optional[datetime] = None,
) -> float:
    """Calculate priority score for review ordering.

    Higher scores should be reviewed first.

    Args:
        next_review: Scheduled review datetime
        mastery_level: Topic mastery (0-100)
        total_attempts: Attempts recorded for the topic
        flow_score: Recent flow score; when given, low flow raises priority
        now: Reference time (defaults to utcnow)

    Returns:
        Priority score (higher = more urgent)
    """
    now = now or datetime.utcnow()
    days_until = math.floor((next_review - now).total_seconds() / 86400)

    # Overdue topics get a boost per day overdue
    overdue_factor = abs(days_until) * 2 if days_until < 0 else 0

    # Lower mastery means higher priority
    mastery_factor = (100 - mastery_level) / 100 * 5

    recency_factor = min(1, total_attempts / 10) * 3

    priority = overdue_factor + mastery_factor + recency_factor

    if flow_score is not None:
        priority += (100 - flow_score) / 100 * 2

    return priority


def get_review_strategy(
    mastery_level: float,
    bloom_level: int,
    repetitions: int,
    flow_score: float,
) -> dict:
    """Pick a review approach for a topic.

    Returns:
        Dict with strategy, bloom_level and description
    """
    if mastery_level < 50:
        return {
            "strategy": "review",
            "bloom_level": min(2, bloom_level) or 1,
            "description": "Review fundamentals with remember/understand questions",
        }

    if mastery_level < 70 and flow_score < 50:
        return {
            "strategy": "feynman",
            "bloom_level": bloom_level,
            "description": "Explain the concept in your own words to deepen understanding",
        }

    if mastery_level >= 70 and repetitions >= 2:
        return {
            "strategy": "practice",
            "bloom_level": min(MAX_BLOOM_LEVEL, bloom_level + 1),
            "description": "Apply knowledge at a higher cognitive level",
        }

    return {
        "strategy": "active_recall",
        "bloom_level": bloom_level,
        "description": "Test recall with mixed questions",
    }
