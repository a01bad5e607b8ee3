"""Progress tracking: records attempts, schedules reviews with SM-2 and
reports per-topic progress and analytics.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..database.models import Question, TopicProgress, User
from .adaptive_difficulty import adjust_student_level, analyze_performance
from .bloom import get_next_bloom_level
from .mastery import (
    add_attempt,
    calculate_mastery_level,
    new_topic_progress,
    recent_attempts,
    update_question_statistics,
)
from .monitoring import metrics
from .questions import topic_for_question
from .spaced_repetition import (
    calculate_quality_score,
    calculate_review_priority,
    calculate_sm2,
    get_days_until_review,
    is_due_for_review,
    is_overdue,
)

logger = logging.getLogger(__name__)


def get_or_create_progress(
    db: Session, user_id: str, subject: str, topic: str
) -> TopicProgress:
    """Get a student's progress record for a topic, creating it if needed.

    New records are added to the session but not committed.
    """
    progress = (
        db.query(TopicProgress)
        .filter_by(user_id=user_id, subject=subject, topic=topic)
        .first()
    )
    if not progress:
        progress = new_topic_progress(user_id, subject, topic)
        db.add(progress)
        logger.info(f"Created progress record for user {user_id}: {subject}/{topic}")
    return progress


def record_attempt(
    db: Session,
    user: User,
    question: Question,
    is_correct: bool,
    time_spent: float,
    hints_used: int = 0,
    confidence: int = 3,
    chat_interactions: int = 0,
    now: Optional[datetime] = None,
) -> dict:
    """Record a question attempt and reschedule the topic's review.

    Args:
        db: Database session
        user: Student answering
        question: Question that was answered
        is_correct: Whether the answer was correct
        time_spent: Seconds spent on the question
        hints_used: Hints requested
        confidence: Self-reported confidence (1-5)
        chat_interactions: Tutor chat messages during the question
        now: Reference time (defaults to utcnow)

    Returns:
        Dict with progress, next_review, mastery_level and new_student_level
    """
    now = now or datetime.utcnow()
    subject = question.subject
    topic = topic_for_question(question)

    progress = get_or_create_progress(db, user.id, subject, topic)

    add_attempt(
        progress,
        question_id=question.id,
        is_correct=is_correct,
        time_spent=time_spent,
        hints_used=hints_used,
        confidence=confidence,
        chat_interactions=chat_interactions,
        bloom_level=question.bloom_level,
        now=now,
    )

    quality = calculate_quality_score(
        is_correct,
        time_spent,
        progress.average_time_spent,
        confidence,
        hints_used,
    )

    result = calculate_sm2(
        quality,
        ease_factor=progress.ease_factor,
        interval=progress.interval,
        repetitions=progress.repetitions,
        now=now,
    )
    progress.next_review_at = result.next_review
    progress.ease_factor = result.ease_factor
    progress.interval = result.interval
    progress.repetitions = result.repetitions

    calculate_mastery_level(progress)
    update_question_statistics(question, is_correct, time_spent)

    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to record attempt for user {user.id}: {e}")
        raise

    db.refresh(progress)
    new_level = adjust_student_level(db, user)
    metrics.record_event("attempt")

    logger.info(
        f"Recorded attempt for user {user.id} on {subject}/{topic}: "
        f"correct={is_correct}, quality={quality}, interval={result.interval}d, "
        f"mastery={progress.mastery_level}"
    )

    return {
        "progress": progress,
        "quality": quality,
        "next_review": result.next_review,
        "mastery_level": progress.mastery_level,
        "new_student_level": new_level,
    }


def get_review_schedule(db: Session, user: User, now: Optional[datetime] = None) -> dict:
    """Group a student's topics into overdue, due-now and upcoming reviews.

    Overdue and due-now items are ordered by priority (highest first);
    upcoming items by how soon they are due.
    """
    now = now or datetime.utcnow()
    records = (
        db.query(TopicProgress)
        .filter(TopicProgress.user_id == user.id)
        .order_by(TopicProgress.next_review_at.asc())
        .all()
    )

    schedule = {"due_now": [], "upcoming": [], "overdue": []}

    for progress in records:
        next_review = progress.next_review_at or progress.created_at or now
        item = {
            "subject": progress.subject,
            "topic": progress.topic,
            "next_review": next_review,
            "mastery_level": progress.mastery_level,
            "total_attempts": progress.total_attempts,
            "accuracy_rate": progress.accuracy_rate,
            "priority": calculate_review_priority(
                next_review, progress.mastery_level, progress.total_attempts, now=now
            ),
            "days_until": get_days_until_review(next_review, now),
        }

        if is_overdue(next_review, now):
            schedule["overdue"].append(item)
        elif is_due_for_review(next_review, now):
            schedule["due_now"].append(item)
        else:
            schedule["upcoming"].append(item)

    schedule["due_now"].sort(key=lambda i: i["priority"], reverse=True)
    schedule["overdue"].sort(key=lambda i: i["priority"], reverse=True)
    schedule["upcoming"].sort(key=lambda i: i["days_until"])

    return schedule


def serialize_progress(progress: TopicProgress) -> dict:
    bloom = progress.bloom_progress or {}
    return {
        "id": progress.id,
        "subject": progress.subject,
        "topic": progress.topic,
        "performance": {
            "total_attempts": progress.total_attempts,
            "correct_attempts": progress.correct_attempts,
            "accuracy_rate": progress.accuracy_rate,
            "average_time_spent": progress.average_time_spent,
            "last_attempt_at": progress.last_attempt_at,
            "next_review_at": progress.next_review_at,
            "mastery_level": progress.mastery_level,
            "ease_factor": progress.ease_factor,
            "interval": progress.interval,
            "repetitions": progress.repetitions,
        },
        "bloom_progress": bloom,
        "next_bloom_level": get_next_bloom_level(bloom).next_level,
        "feynman": {
            "clarity": progress.explanation_clarity,
            "completeness": progress.explanation_completeness,
            "last_explanation_at": progress.last_explanation_at,
        },
        "flow_metrics": {
            "average_challenge": progress.average_challenge,
            "average_skill": progress.average_skill,
            "time_in_flow": progress.time_in_flow,
            "time_in_boredom": progress.time_in_boredom,
            "time_in_anxiety": progress.time_in_anxiety,
            "flow_score": progress.flow_score,
            "difficulty_adjustments": progress.difficulty_adjustments,
        },
        "spaced_repetition": {
            "quality_history": progress.quality_history or [],
            "review_bloom_level": progress.review_bloom_level,
            "progressive_challenge": progress.progressive_challenge,
            "last_review_bloom_level": progress.last_review_bloom_level,
        },
    }


def serialize_attempt(attempt) -> dict:
    return {
        "question_id": attempt.question_id,
        "attempted_at": attempt.attempted_at,
        "is_correct": attempt.is_correct,
        "time_spent": attempt.time_spent,
        "hints_used": attempt.hints_used,
        "confidence": attempt.confidence,
        "chat_interactions": attempt.chat_interactions,
        "bloom_level": attempt.bloom_level,
    }


def get_topic_progress(db: Session, user: User, subject: str, topic: str) -> Optional[dict]:
    """Progress on one topic with its 10 most recent attempts."""
    progress = (
        db.query(TopicProgress)
        .filter_by(user_id=user.id, subject=subject, topic=topic)
        .first()
    )
    if not progress:
        return None

    data = serialize_progress(progress)
    data["recent_attempts"] = [serialize_attempt(a) for a in recent_attempts(progress, 10)]
    return data


def get_all_progress(db: Session, user: User) -> list[TopicProgress]:
    """All of a student's progress records, highest mastery first."""
    return (
        db.query(TopicProgress)
        .filter(TopicProgress.user_id == user.id)
        .order_by(TopicProgress.mastery_level.desc())
        .all()
    )


def get_analytics(db: Session, user: User) -> dict:
    analysis = analyze_performance(db, user)
    schedule = get_review_schedule(db, user)

    analysis["review_schedule"] = {
        "due_now": len(schedule["due_now"]),
        "overdue": len(schedule["overdue"]),
        "upcoming": len(schedule["upcoming"]),
    }
    return analysis
