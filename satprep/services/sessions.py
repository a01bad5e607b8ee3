"""Learning session lifecycle and flow timeline."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..database.models import LearningSession
from .rounding import round_half_up

logger = logging.getLogger(__name__)


def get_active_session(db: Session, user_id: str) -> Optional[LearningSession]:
    return (
        db.query(LearningSession)
        .filter(LearningSession.user_id == user_id, LearningSession.end_time.is_(None))
        .order_by(LearningSession.start_time.desc())
        .first()
    )


def _parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def calculate_session_flow_metrics(session: LearningSession) -> None:
    """Aggregate a session's flow timeline into scores and zone minutes.

    Each state's score is 100 minus 20 per point of challenge/skill gap.
    A state lasts until the next state, the last one until the session end.
    """
    states = session.flow_states or []
    if not states:
        return

    end_time = session.end_time or datetime.utcnow()
    minutes = {"flow": 0.0, "boredom": 0.0, "anxiety": 0.0}
    total_score = 0.0

    for i, state in enumerate(states):
        distance = abs(state["challenge"] - state["skill"])
        total_score += max(0, 100 - distance * 20)

        started = _parse_timestamp(state["timestamp"])
        if i + 1 < len(states):
            ended = _parse_timestamp(states[i + 1]["timestamp"])
        else:
            ended = end_time
        if state["flow_zone"] in minutes:
            minutes[state["flow_zone"]] += (ended - started).total_seconds() / 60

    session.average_flow_score = round_half_up(total_score / len(states))
    session.time_in_flow = round_half_up(minutes["flow"])
    session.time_in_boredom = round_half_up(minutes["boredom"])
    session.time_in_anxiety = round_half_up(minutes["anxiety"])

    total = sum(minutes.values())
    session.flow_percentage = round_half_up(minutes["flow"] / total * 100) if total > 0 else 0


def _close(session: LearningSession, now: datetime) -> None:
    session.end_time = now
    session.duration = round_half_up((now - session.start_time).total_seconds() / 60)
    calculate_session_flow_metrics(session)


def start_session(
    db: Session,
    user_id: str,
    session_type: str = "study",
    now: Optional[datetime] = None,
) -> LearningSession:
    """Start a session, ending any the student left open."""
    now = now or datetime.utcnow()

    open_sessions = (
        db.query(LearningSession)
        .filter(LearningSession.user_id == user_id, LearningSession.end_time.is_(None))
        .all()
    )
    for stale in open_sessions:
        _close(stale, now)
        logger.info(f"Closed stale session {stale.id} for user {user_id}")

    session = LearningSession(
        user_id=user_id,
        session_type=session_type,
        start_time=now,
        subjects=[],
        topics_covered=[],
        topics_needing_work=[],
        question_ids=[],
        flow_states=[],
        current_flow_zone="flow",
        questions_attempted=0,
        questions_correct=0,
        explanations_given=0,
        bloom_levels_progressed=[],
        time_in_flow=0.0,
        time_in_boredom=0.0,
        time_in_anxiety=0.0,
        flow_percentage=0.0,
    )
    db.add(session)
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to start session for user {user_id}: {e}")
        raise
    db.refresh(session)

    logger.info(f"Started {session_type} session {session.id} for user {user_id}")
    return session


def add_flow_state(
    session: LearningSession,
    challenge: float,
    skill: float,
    flow_zone: str,
    activity: str,
    now: Optional[datetime] = None,
) -> None:
    now = now or datetime.utcnow()
    session.flow_states = list(session.flow_states or []) + [
        {
            "timestamp": now.isoformat(),
            "challenge": challenge,
            "skill": skill,
            "flow_zone": flow_zone,
            "activity": activity,
        }
    ]
    session.current_flow_zone = flow_zone


def _append_unique(values: Optional[list], value) -> list:
    values = list(values or [])
    if value not in values:
        values.append(value)
    return values


def record_session_attempt(
    session: LearningSession,
    question_id: str,
    subject: str,
    topic: str,
    is_correct: bool,
    challenge: float,
    skill: float,
    flow_zone: str,
    bloom_level_reached: Optional[int] = None,
    now: Optional[datetime] = None,
) -> None:
    """Fold an answered question into the active session. Caller commits."""
    session.question_ids = list(session.question_ids or []) + [question_id]
    session.questions_attempted = (session.questions_attempted or 0) + 1
    if is_correct:
        session.questions_correct = (session.questions_correct or 0) + 1
    session.subjects = _append_unique(session.subjects, subject)
    session.topics_covered = _append_unique(session.topics_covered, topic)
    if not is_correct:
        session.topics_needing_work = _append_unique(session.topics_needing_work, topic)
    if bloom_level_reached:
        session.bloom_levels_progressed = list(session.bloom_levels_progressed or []) + [
            {"topic": topic, "level": bloom_level_reached}
        ]

    add_flow_state(session, challenge, skill, flow_zone, "answering_question", now=now)


def record_session_explanation(session: LearningSession, topic: str) -> None:
    session.explanations_given = (session.explanations_given or 0) + 1
    session.topics_covered = _append_unique(session.topics_covered, topic)


def end_session(
    db: Session, user_id: str, now: Optional[datetime] = None
) -> Optional[LearningSession]:
    """End the student's active session and compute its flow metrics.

    Returns:
        The ended session, or None if no session was active
    """
    session = get_active_session(db, user_id)
    if not session:
        return None

    _close(session, now or datetime.utcnow())
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to end session {session.id}: {e}")
        raise
    db.refresh(session)

    logger.info(
        f"Ended session {session.id} for user {user_id}: {session.duration} min, "
        f"{session.questions_correct}/{session.questions_attempted} correct, "
        f"flow score {session.average_flow_score}"
    )
    return session


def get_recent_sessions(
    db: Session, user_id: str, days: int = 30, now: Optional[datetime] = None
) -> list[LearningSession]:
    """Sessions started within the last `days` days, newest first."""
    since = (now or datetime.utcnow()) - timedelta(days=days)
    return (
        db.query(LearningSession)
        .filter(LearningSession.user_id == user_id, LearningSession.start_time >= since)
        .order_by(LearningSession.start_time.desc())
        .all()
    )
