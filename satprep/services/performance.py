"""Performance aggregation across progress records and recent sessions.

Builds the per-topic mastery picture the topic selector scores against:
which topics are weak, which are due for review and how urgently.
"""

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..database.models import SUBJECTS, LearningSession, TopicProgress, User
from .mastery import current_bloom_level, recent_attempts
from .rounding import round_half_up

RECENT_WINDOW_DAYS = 30
NEVER_PRACTICED_DAYS = 999
WEAK_MASTERY = 50
WEAK_ACCURACY = 0.5


@dataclass
class TopicMastery:
    topic: str
    subject: str
    mastery_level: int
    accuracy_rate: float
    attempt_count: int
    last_practiced: Optional[datetime]
    days_since_last_practice: int
    error_patterns: list = field(default_factory=list)
    bloom_level: int = 1
    is_weak_area: bool = False
    spaced_repetition_due: bool = False


@dataclass
class SubjectPerformance:
    subject: str
    overall_mastery: int
    topic_count: int
    weak_area_count: int
    due_for_review_count: int
    recent_accuracy: float
    total_attempts: int
    study_time_minutes: int


@dataclass
class AggregatedPerformance:
    user_id: str
    subjects: list
    topic_masteries: list
    overall_mastery: int
    total_study_time: int
    recent_engagement: int
    last_active_date: Optional[datetime]
    recent_sessions: list = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("recent_sessions")
        return data


@dataclass
class WeakArea:
    topic: str
    subject: str
    mastery_level: int
    error_patterns: list
    recommended_action: str
    priority: int  # 1-10


@dataclass
class SpacedRepetitionItem:
    topic: str
    subject: str
    last_practiced: datetime
    days_since: int
    optimal_interval: int
    urgency: float  # 0-1


def calculate_optimal_interval(mastery_level: float, attempt_count: int) -> int:
    """Days a topic can rest before it needs review.

    Mastery stretches the interval up to 6x, practice volume up to 3x.
    """
    mastery_multiplier = 1 + mastery_level / 20
    repetition_multiplier = min(3, 1 + attempt_count * 0.2)
    return round_half_up(mastery_multiplier * repetition_multiplier)


def is_spaced_repetition_due(mastery_level: float, days_since: int) -> bool:
    return days_since >= calculate_optimal_interval(mastery_level, 1)


def _error_patterns(progress: TopicProgress, flagged_sessions: int) -> list[str]:
    patterns = []
    misses = [a for a in recent_attempts(progress, 5) if not a.is_correct]
    if len(misses) >= 3:
        patterns.append("repeated mistakes")
    if any((a.hints_used or 0) >= 2 for a in misses):
        patterns.append("relies on hints")
    average_time = progress.average_time_spent or 0
    if average_time and any(a.time_spent > average_time * 1.5 for a in misses):
        patterns.append("slow on missed questions")
    if flagged_sessions:
        patterns.append("missed questions in recent sessions")
    return patterns


def build_topic_masteries(
    records: list[TopicProgress],
    sessions: list[LearningSession],
    now: Optional[datetime] = None,
) -> list[TopicMastery]:
    """One TopicMastery per progress record.

    Sessions that flagged the topic as needing work add an error pattern.
    """
    now = now or datetime.utcnow()

    flagged: dict[str, int] = {}
    for session in sessions:
        for topic in session.topics_needing_work or []:
            flagged[topic] = flagged.get(topic, 0) + 1

    masteries = []
    for progress in records:
        last = progress.last_attempt_at
        days_since = math.floor((now - last).total_seconds() / 86400) if last else NEVER_PRACTICED_DAYS
        mastery = progress.mastery_level or 0
        accuracy = progress.accuracy_rate or 0.0

        masteries.append(
            TopicMastery(
                topic=progress.topic,
                subject=progress.subject,
                mastery_level=mastery,
                accuracy_rate=accuracy,
                attempt_count=progress.total_attempts or 0,
                last_practiced=last,
                days_since_last_practice=days_since,
                error_patterns=_error_patterns(progress, flagged.get(progress.topic, 0)),
                bloom_level=current_bloom_level(progress) or 1,
                is_weak_area=mastery < WEAK_MASTERY or accuracy < WEAK_ACCURACY,
                spaced_repetition_due=is_spaced_repetition_due(mastery, days_since),
            )
        )
    return masteries


def build_subject_performances(
    records: list[TopicProgress],
    sessions: list[LearningSession],
    masteries: list[TopicMastery],
) -> list[SubjectPerformance]:
    performances = []
    for subject in SUBJECTS:
        topics = [m for m in masteries if m.subject == subject]
        subject_records = [r for r in records if r.subject == subject]

        total_attempts = sum(r.total_attempts or 0 for r in subject_records)
        total_correct = sum(r.correct_attempts or 0 for r in subject_records)
        if not topics and not total_attempts:
            continue

        study_time = sum(
            s.duration or 0 for s in sessions if subject in (s.subjects or [])
        )
        performances.append(
            SubjectPerformance(
                subject=subject,
                overall_mastery=(
                    round_half_up(sum(t.mastery_level for t in topics) / len(topics)) if topics else 0
                ),
                topic_count=len(topics),
                weak_area_count=sum(1 for t in topics if t.is_weak_area),
                due_for_review_count=sum(1 for t in topics if t.spaced_repetition_due),
                recent_accuracy=round(total_correct / total_attempts, 2) if total_attempts else 0,
                total_attempts=total_attempts,
                study_time_minutes=round_half_up(study_time),
            )
        )
    return performances


def aggregate_student_performance(
    db: Session,
    user: User,
    subject: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AggregatedPerformance:
    """Aggregate a student's progress and last 30 days of sessions.

    Args:
        db: Database session
        user: Student to aggregate
        subject: Restrict to one subject (all subjects when omitted)
        now: Reference time (defaults to utcnow)
    """
    now = now or datetime.utcnow()
    since = now - timedelta(days=RECENT_WINDOW_DAYS)

    query = db.query(TopicProgress).filter(TopicProgress.user_id == user.id)
    if subject:
        query = query.filter(TopicProgress.subject == subject)
    records = query.all()

    sessions = (
        db.query(LearningSession)
        .filter(LearningSession.user_id == user.id, LearningSession.start_time >= since)
        .order_by(LearningSession.start_time.desc())
        .all()
    )
    if subject:
        sessions = [s for s in sessions if subject in (s.subjects or [])]

    masteries = build_topic_masteries(records, sessions, now)
    subjects = build_subject_performances(records, sessions, masteries)

    flow_scores = [s.average_flow_score for s in sessions if s.average_flow_score is not None]

    return AggregatedPerformance(
        user_id=user.id,
        subjects=subjects,
        topic_masteries=masteries,
        overall_mastery=(
            round_half_up(sum(s.overall_mastery for s in subjects) / len(subjects)) if subjects else 0
        ),
        total_study_time=round_half_up(sum(s.duration or 0 for s in sessions)),
        recent_engagement=round_half_up(sum(flow_scores) / len(flow_scores)) if flow_scores else 50,
        last_active_date=sessions[0].start_time if sessions else None,
        recent_sessions=sessions,
    )


def get_recommended_action(mastery: TopicMastery) -> str:
    if mastery.mastery_level < 30:
        return "Start with foundational concepts and basic examples"
    if mastery.mastery_level < 50:
        return "Practice more problems to build understanding"
    if mastery.accuracy_rate < 0.5:
        return "Focus on accuracy - slow down and check your work"
    if mastery.error_patterns:
        return f"Address specific gaps: {', '.join(mastery.error_patterns[:2])}"
    return "Continue practice to maintain mastery"


def calculate_weak_area_priority(mastery: TopicMastery) -> int:
    priority = 5.0

    if mastery.mastery_level < 30:
        priority += 3
    elif mastery.mastery_level < 50:
        priority += 2
    elif mastery.mastery_level < 70:
        priority += 1

    if mastery.accuracy_rate < 0.4:
        priority += 2
    elif mastery.accuracy_rate < 0.6:
        priority += 1

    priority += min(2, len(mastery.error_patterns) * 0.5)

    if mastery.spaced_repetition_due:
        priority += 1

    return min(10, round_half_up(priority))


def get_weak_areas(performance: AggregatedPerformance, limit: int = 5) -> list[WeakArea]:
    """Weak topics, highest priority first."""
    areas = [
        WeakArea(
            topic=m.topic,
            subject=m.subject,
            mastery_level=m.mastery_level,
            error_patterns=m.error_patterns,
            recommended_action=get_recommended_action(m),
            priority=calculate_weak_area_priority(m),
        )
        for m in performance.topic_masteries
        if m.is_weak_area
    ]
    areas.sort(key=lambda a: a.priority, reverse=True)
    return areas[:limit]


def get_spaced_repetition_due(
    performance: AggregatedPerformance, limit: int = 5
) -> list[SpacedRepetitionItem]:
    """Practised topics due for review, most urgent first."""
    items = []
    for m in performance.topic_masteries:
        if not (m.spaced_repetition_due and m.last_practiced):
            continue
        interval = max(1, calculate_optimal_interval(m.mastery_level, m.attempt_count))
        items.append(
            SpacedRepetitionItem(
                topic=m.topic,
                subject=m.subject,
                last_practiced=m.last_practiced,
                days_since=m.days_since_last_practice,
                optimal_interval=interval,
                urgency=min(1, m.days_since_last_practice / interval),
            )
        )
    items.sort(key=lambda i: i.urgency, reverse=True)
    return items[:limit]
