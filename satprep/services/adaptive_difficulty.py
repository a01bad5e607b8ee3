"""Adaptive difficulty: keeps each student's level (1-10) in step with
their recent performance, and maps levels onto question difficulty.
"""

import logging

from sqlalchemy.orm import Session

from ..database.models import TopicProgress, User
from .monitoring import metrics

logger = logging.getLogger(__name__)

MIN_LEVEL = 1
MAX_LEVEL = 10
RECENT_PROGRESS_RECORDS = 20
RECENT_ATTEMPTS_PER_TOPIC = 5
SIGNIFICANT_CHANGE = 0.5


def _recent_attempts(db: Session, user_id: str) -> list:
    records = (
        db.query(TopicProgress)
        .filter(TopicProgress.user_id == user_id)
        .order_by(TopicProgress.last_attempt_at.desc())
        .limit(RECENT_PROGRESS_RECORDS)
        .all()
    )
    attempts = []
    for record in records:
        attempts.extend(list(record.attempts)[-RECENT_ATTEMPTS_PER_TOPIC:])
    return attempts


def calculate_level_change(
    current_level: float,
    recent_accuracy: float,
    average_confidence: float,
    adjustment_speed: int = 3,
) -> float:
    """Compute a new level from recent accuracy and confidence.

    adjustment_speed (1-5) scales the step from 0.2 to 1.0 levels.
    """
    factor = adjustment_speed / 5

    if recent_accuracy >= 0.85 and average_confidence >= 4:
        new_level = current_level + 1 * factor
    elif recent_accuracy >= 0.75 and average_confidence >= 3.5:
        new_level = current_level + 0.5 * factor
    elif recent_accuracy >= 0.60:
        new_level = current_level
    elif recent_accuracy >= 0.45:
        new_level = current_level - 0.5 * factor
    else:
        new_level = current_level - 1 * factor

    return max(MIN_LEVEL, min(MAX_LEVEL, new_level))


def adjust_student_level(db: Session, user: User) -> float:
    """Adjust a student's level from their last few attempts per topic.

    The level is only persisted when it moves by at least half a level
    and the student has auto-adjust enabled.

    Returns:
        The (possibly unchanged) student level
    """
    current_level = user.current_level if user.current_level is not None else 5.0

    attempts = _recent_attempts(db, user.id)
    if not attempts:
        return current_level

    accuracy = sum(1 for a in attempts if a.is_correct) / len(attempts)
    average_confidence = sum(a.confidence or 0 for a in attempts) / len(attempts)

    new_level = calculate_level_change(
        current_level, accuracy, average_confidence, user.adjustment_speed or 3
    )

    if abs(new_level - current_level) < SIGNIFICANT_CHANGE:
        return current_level

    if not user.auto_adjust:
        logger.info(f"Auto-adjust disabled for user {user.id}, keeping level {current_level}")
        return current_level

    user.current_level = new_level
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to save level for user {user.id}: {e}")
        raise
    metrics.record_event("level_change")
    logger.info(
        f"Adjusted level for user {user.id}: {current_level:.1f} -> {new_level:.1f} "
        f"(accuracy={accuracy:.2f}, confidence={average_confidence:.1f})"
    )
    return new_level


def map_level_to_difficulty(level: float) -> str:
    if level <= 3:
        return "easy"
    if level <= 7:
        return "medium"
    return "hard"


def get_recommended_difficulty_range(level: float) -> dict:
    """Difficulty band a student at this level should practise in."""
    if level <= 2:
        return {"min": "easy", "max": "easy"}
    if level <= 4:
        return {"min": "easy", "max": "medium"}
    if level <= 7:
        return {"min": "medium", "max": "medium"}
    if level <= 8:
        return {"min": "medium", "max": "hard"}
    return {"min": "hard", "max": "hard"}


def analyze_performance(db: Session, user: User) -> dict:
    """Summarise a student's performance overall and per subject.

    Strengths are topics at 70+ mastery; weaknesses are topics under 40
    mastery with at least 3 attempts.
    """
    records = db.query(TopicProgress).filter(TopicProgress.user_id == user.id).all()

    total_attempts = 0
    total_correct = 0
    total_mastery = 0
    subject_stats: dict[str, dict] = {}

    for record in records:
        total_attempts += record.total_attempts
        total_correct += record.correct_attempts
        total_mastery += record.mastery_level

        stats = subject_stats.setdefault(
            record.subject, {"attempts": 0, "correct": 0, "mastery": 0, "count": 0}
        )
        stats["attempts"] += record.total_attempts
        stats["correct"] += record.correct_attempts
        stats["mastery"] += record.mastery_level
        stats["count"] += 1

    by_subject = {
        subject: {
            "accuracy": stats["correct"] / stats["attempts"] if stats["attempts"] else 0,
            "average_mastery": stats["mastery"] / stats["count"] if stats["count"] else 0,
            "attempts": stats["attempts"],
        }
        for subject, stats in subject_stats.items()
    }

    strengths = []
    weaknesses = []
    for record in records:
        label = f"{record.subject} - {record.topic}"
        if record.mastery_level >= 70:
            strengths.append(label)
        elif record.mastery_level < 40 and record.total_attempts >= 3:
            weaknesses.append(label)

    recommendations = []
    if weaknesses:
        recommendations.append(f"Focus review on: {', '.join(weaknesses[:3])}")
    for subject, stats in by_subject.items():
        if stats["attempts"] >= 5 and stats["accuracy"] < 0.5:
            recommendations.append(f"Slow down on {subject} questions and use hints early")
    if strengths and not weaknesses:
        recommendations.append("Try harder questions to keep progressing")

    return {
        "overall": {
            "total_attempts": total_attempts,
            "average_accuracy": total_correct / total_attempts if total_attempts else 0,
            "average_mastery": total_mastery / len(records) if records else 0,
        },
        "by_subject": by_subject,
        "strengths": strengths,
        "weaknesses": weaknesses,
        "recommendations": recommendations,
        "current_level": user.current_level,
        "recommended_difficulty": get_recommended_difficulty_range(user.current_level or 5.0),
    }
