"""Learner model: profiles a student across every topic and session and
turns that profile into predictions and recommendations.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..database.models import TopicProgress, User
from .bloom import get_bloom_level_info
from .confidence import ADVANCED, STRUGGLER, determine_student_type
from .flow_engine import calculate_flow_state
from .mastery import current_bloom_level
from .rounding import round_half_up
from .sessions import get_recent_sessions

logger = logging.getLogger(__name__)

PROFILE_WINDOW_DAYS = 30


@dataclass
class LearnerProfile:
    user_id: str
    student_type: str
    current_level: float
    overall_mastery: int
    average_accuracy: float
    average_flow_score: int
    total_study_time: float  # minutes
    subject_profiles: list = field(default_factory=list)
    learning_preferences: dict = field(default_factory=dict)
    streak_days: int = 0
    last_active_date: Optional[datetime] = None
    recent_session_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def _average_flow_score(records: list[TopicProgress], sessions: list) -> int:
    scores = [r.flow_score for r in records if r.flow_score]
    scores += [s.average_flow_score for s in sessions if s.average_flow_score]
    if not scores:
        return 50
    return round_half_up(sum(scores) / len(scores))


def _subject_profiles(records: list[TopicProgress]) -> list[dict]:
    by_subject: dict[str, list[TopicProgress]] = {}
    for record in records:
        by_subject.setdefault(record.subject, []).append(record)

    profiles = []
    for subject, subject_records in by_subject.items():
        flow_scores = [r.flow_score for r in subject_records if r.flow_score]
        profiles.append(
            {
                "subject": subject,
                "mastery": round_half_up(
                    sum(r.mastery_level for r in subject_records) / len(subject_records)
                ),
                "bloom_level": max(current_bloom_level(r) or 1 for r in subject_records),
                "flow_score": round_half_up(sum(flow_scores) / max(1, len(flow_scores))),
                "strengths": [r.topic for r in subject_records if r.accuracy_rate >= 0.8],
                "weaknesses": [r.topic for r in subject_records if r.accuracy_rate < 0.5],
            }
        )
    return profiles


def _learning_preferences(
    records: list[TopicProgress], sessions: list, student_type: str
) -> dict:
    durations = [s.duration or 0 for s in sessions]
    average_duration = sum(durations) / len(durations) if durations else 30

    bloom_levels = [current_bloom_level(r) or 1 for r in records]
    preferred_bloom = round_half_up(sum(bloom_levels) / len(bloom_levels)) if bloom_levels else 2

    challenge = "moderate"
    if student_type == STRUGGLER:
        challenge = "conservative"
    elif student_type == ADVANCED:
        challenge = "aggressive"

    return {
        "preferred_bloom_level": preferred_bloom,
        "challenge_preference": challenge,
        "optimal_session_duration": round_half_up(average_duration),
        "learning_style": None,
    }


def calculate_streak(
    session_starts: list[datetime], today: Optional[datetime] = None
) -> tuple[int, Optional[datetime]]:
    """Count consecutive study days ending today.

    Returns:
        (streak_days, last_active_date)
    """
    if not session_starts:
        return 0, None

    last_active = max(session_starts)
    days = {start.date() for start in session_starts}

    streak = 0
    day = (today or datetime.utcnow()).date()
    while day in days:
        streak += 1
        day -= timedelta(days=1)

    return streak, last_active


def build_learner_profile(
    db: Session, user: User, now: Optional[datetime] = None
) -> LearnerProfile:
    """Aggregate a student's progress records and recent sessions."""
    records = db.query(TopicProgress).filter(TopicProgress.user_id == user.id).all()
    sessions = get_recent_sessions(db, user.id, days=PROFILE_WINDOW_DAYS, now=now)

    overall_mastery = round_half_up(sum(r.mastery_level for r in records) / len(records)) if records else 0
    average_accuracy = (
        round(sum(r.accuracy_rate for r in records) / len(records), 2) if records else 0
    )
    average_flow = _average_flow_score(records, sessions)
    student_type = determine_student_type(overall_mastery, average_accuracy, average_flow)
    streak_days, last_active = calculate_streak([s.start_time for s in sessions], now)

    preferences = _learning_preferences(records, sessions, student_type)
    preferences["learning_style"] = user.learning_style

    return LearnerProfile(
        user_id=user.id,
        student_type=student_type,
        current_level=user.current_level if user.current_level is not None else 5.0,
        overall_mastery=overall_mastery,
        average_accuracy=average_accuracy,
        average_flow_score=average_flow,
        total_study_time=sum(s.duration or 0 for s in sessions),
        subject_profiles=_subject_profiles(records),
        learning_preferences=preferences,
        streak_days=streak_days,
        last_active_date=last_active,
        recent_session_count=len(sessions),
    )


def predict_flow_state(student_type: str, current_skill: float, proposed_challenge: float) -> dict:
    """Predict the flow zone for a challenge adjusted to the student type.

    Strugglers are kept at or below their skill, intermediates get one
    level of stretch and advanced students two.
    """
    if student_type == STRUGGLER:
        recommended = max(1, min(current_skill, proposed_challenge))
        explanation = "Keeping challenge at or below skill level to build confidence"
    elif student_type == ADVANCED:
        recommended = min(10, current_skill + 2)
        explanation = "Higher challenge for continued engagement"
    else:
        recommended = min(10, current_skill + 1)
        explanation = "Moderate challenge for steady growth"

    state = calculate_flow_state(recommended, current_skill)
    return {
        "predicted_zone": state.flow_zone,
        "confidence": round(state.flow_score / 100, 2),
        "recommended_challenge": recommended,
        "explanation": explanation,
    }


def _flow_optimizations(profile: LearnerProfile) -> list[str]:
    tips = []
    if profile.average_flow_score < 50:
        tips.append("Try breaking study sessions into shorter segments")
        tips.append("Take breaks when you feel stuck")
    if profile.student_type == STRUGGLER:
        tips.append("Focus on mastering basics before advancing")
        tips.append("Use hints freely - they help build understanding")
    if profile.streak_days == 0:
        tips.append("Try studying a little each day - consistency helps retention")
    low_flow = next((sp for sp in profile.subject_profiles if sp["flow_score"] < 40), None)
    if low_flow:
        tips.append(
            f"Consider reviewing {low_flow['subject']} fundamentals - they may need reinforcement"
        )
    return tips


def _session_recommendation(profile: LearnerProfile, due_count: int) -> dict:
    if due_count >= 3:
        return {"type": "review", "duration": 20, "focus": "Spaced repetition review of due topics"}
    if profile.student_type == STRUGGLER:
        return {"type": "study", "duration": 15, "focus": "Build understanding with easier concepts"}
    if profile.average_flow_score < 40:
        return {"type": "break", "duration": 10, "focus": "Take a break before continuing"}
    return {"type": "practice", "duration": 25, "focus": "Apply knowledge with practice questions"}


def get_learning_recommendations(
    db: Session, user: User, now: Optional[datetime] = None
) -> dict:
    """Personalised next steps: reviews, topics to learn, Bloom targets,
    flow tips and the kind of session to run next.
    """
    now = now or datetime.utcnow()
    profile = build_learner_profile(db, user, now)

    due = (
        db.query(TopicProgress)
        .filter(TopicProgress.user_id == user.id, TopicProgress.next_review_at <= now)
        .order_by(TopicProgress.next_review_at.asc())
        .limit(5)
        .all()
    )
    to_review = [
        {"topic": p.topic, "subject": p.subject, "priority": 100 - p.mastery_level} for p in due
    ]

    low_mastery = (
        db.query(TopicProgress)
        .filter(TopicProgress.user_id == user.id, TopicProgress.mastery_level < 50)
        .order_by(TopicProgress.mastery_level.asc())
        .limit(5)
        .all()
    )
    to_learn = [
        {
            "topic": p.topic,
            "subject": p.subject,
            "bloom_level": (p.bloom_progress or {}).get("next_target_level", 1),
        }
        for p in low_mastery
    ]

    bloom_targets = []
    for subject_profile in profile.subject_profiles:
        level = min(6, subject_profile["bloom_level"] + 1)
        bloom_targets.append(
            {
                "subject": subject_profile["subject"],
                "level": level,
                "description": get_bloom_level_info(level)["description"],
            }
        )

    return {
        "topics_to_review": to_review,
        "topics_to_learn": to_learn,
        "bloom_levels_to_target": bloom_targets,
        "flow_optimizations": _flow_optimizations(profile),
        "session_recommendation": _session_recommendation(profile, len(to_review)),
    }


def update_learner_profile(
    db: Session,
    user: User,
    questions_attempted: int,
    questions_correct: int,
    flow_score: float,
) -> float:
    """Nudge the student's level after a session.

    Sessions at 90%+ accuracy in good flow raise the level by half a
    point; sessions under 40% accuracy lower it.
    """
    accuracy = questions_correct / questions_attempted if questions_attempted else 0

    adjustment = 0.0
    if accuracy >= 0.9 and flow_score >= 70:
        adjustment = 0.5
    elif questions_attempted and accuracy < 0.4:
        adjustment = -0.5

    if adjustment and user.auto_adjust:
        current = user.current_level if user.current_level is not None else 5.0
        user.current_level = max(1, min(10, current + adjustment))
        try:
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to save session level for user {user.id}: {e}")
            raise
        logger.info(f"Session adjusted level for user {user.id}: {current} -> {user.current_level}")

    return user.current_level
