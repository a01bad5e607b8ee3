"""Intelligent topic selection.

Scores every catalog topic for a subject on four factors and picks the
best one:

- Spaced repetition (30%): is the topic due or going stale?
- Bloom progression (25%): are prerequisites met, is the student ready
  for a higher cognitive level?
- Flow (25%): does the topic sit in the zone of proximal development?
- Continuity (20%): does it continue recent sessions or follow the
  teaching order?
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..database.models import User
from .performance import (
    AggregatedPerformance,
    SpacedRepetitionItem,
    TopicMastery,
    WeakArea,
    aggregate_student_performance,
    get_spaced_repetition_due,
    get_weak_areas,
)
from .topics import TopicDefinition, get_subject_topics

logger = logging.getLogger(__name__)

WEIGHTS = {
    "spaced_repetition": 0.30,
    "bloom": 0.25,
    "flow": 0.25,
    "continuity": 0.20,
}

SPACED_REPETITION = "spaced_repetition"
NEW_TOPIC = "new_topic"
CONTINUATION = "continuation"
STRUGGLING_SUPPORT = "struggling_support"
BLOOM_PROGRESSION = "bloom_progression"

PREREQUISITE_MASTERY = 40
CONTINUITY_SESSIONS = 3


@dataclass
class TopicScore:
    topic: str
    description: str
    priority: int
    spaced_repetition_score: float
    bloom_score: float
    flow_score: float
    continuity_score: float
    total_score: float
    mastery_level: int
    bloom_level: int
    focus_areas: list
    selection_type: str


@dataclass
class SmartTopicResult:
    topic: str
    subject: str
    reason: str
    selection_type: str
    focus_areas: list
    bloom_level: int
    estimated_duration: int  # minutes
    mastery_level: int
    scoring: dict = field(default_factory=dict)
    context: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_spaced_repetition_score(
    due_item: Optional[SpacedRepetitionItem], mastery: Optional[TopicMastery]
) -> float:
    if not mastery or not mastery.last_practiced:
        return 40
    if due_item:
        return min(100, due_item.urgency * 100 + 20)

    days = mastery.days_since_last_practice
    if days > 30:
        return 80
    if days > 14:
        return 60
    if days > 7:
        return 40
    return 20


def calculate_bloom_score(
    mastery: Optional[TopicMastery],
    definition: TopicDefinition,
    masteries: dict[str, TopicMastery],
) -> float:
    prerequisites_met = all(
        p in masteries and masteries[p].mastery_level >= PREREQUISITE_MASTERY
        for p in definition.prerequisites
    )
    if not prerequisites_met:
        return 20

    if not mastery:
        return 80 if definition.priority <= 10 else 60

    # Ready for higher-order thinking
    if mastery.mastery_level >= 70 and mastery.bloom_level < 3:
        return 90
    if 40 <= mastery.mastery_level < 70:
        return 70
    return 50


def calculate_flow_score(mastery: Optional[TopicMastery], weak_area: Optional[WeakArea]) -> float:
    if not mastery:
        return 60
    if 50 <= mastery.mastery_level <= 80:
        return 90
    if weak_area and mastery.accuracy_rate < 0.4:
        return 70
    if mastery.mastery_level > 85:
        return 40
    if mastery.mastery_level < 30:
        return 60
    return 70


def calculate_continuity_score(
    definition: TopicDefinition,
    recent_topics: set,
    needing_work: set,
    mastery: Optional[TopicMastery],
) -> float:
    score = 50
    if definition.topic in recent_topics:
        score += 25
    if definition.topic in needing_work:
        score += 30
    if not mastery and definition.priority <= 6:
        score += 15
    if definition.priority <= 10:
        score += 10
    return min(100, score)


def determine_selection_type(
    spaced_repetition_score: float,
    bloom_score: float,
    continuity_score: float,
    mastery: Optional[TopicMastery],
    weak_area: Optional[WeakArea],
) -> str:
    if weak_area and weak_area.priority >= 7:
        return STRUGGLING_SUPPORT
    if spaced_repetition_score >= 80:
        return SPACED_REPETITION
    if continuity_score >= 80:
        return CONTINUATION
    if bloom_score >= 85 and mastery and mastery.mastery_level >= 70:
        return BLOOM_PROGRESSION
    return NEW_TOPIC


def determine_focus_areas(
    mastery: Optional[TopicMastery],
    weak_area: Optional[WeakArea],
    needing_work: set,
    topic: str,
) -> list[str]:
    if not mastery:
        focus = ["introduction", "basic concepts", "examples"]
    elif weak_area:
        focus = list(weak_area.error_patterns[:3]) or ["reinforcement", "practice problems"]
    elif mastery.mastery_level >= 70:
        focus = ["advanced applications", "problem-solving strategies", "connections to other topics"]
    else:
        focus = ["understanding", "guided practice", "common mistakes"]

    if topic in needing_work and "missed questions in recent sessions" not in focus:
        focus.append("missed questions in recent sessions")
    return focus[:5]


def score_topics(
    catalog: list[TopicDefinition],
    masteries: list[TopicMastery],
    due_items: list[SpacedRepetitionItem],
    weak_areas: list[WeakArea],
    recent_sessions: list,
) -> list[TopicScore]:
    """Score every catalog topic against the student's history."""
    mastery_map = {m.topic: m for m in masteries}
    due_map = {d.topic: d for d in due_items}
    weak_map = {w.topic: w for w in weak_areas}

    recent_topics: set = set()
    needing_work: set = set()
    for session in recent_sessions[:CONTINUITY_SESSIONS]:
        recent_topics.update(session.topics_covered or [])
        needing_work.update(session.topics_needing_work or [])

    scores = []
    for definition in catalog:
        mastery = mastery_map.get(definition.topic)
        weak_area = weak_map.get(definition.topic)

        sr = calculate_spaced_repetition_score(due_map.get(definition.topic), mastery)
        bloom = calculate_bloom_score(mastery, definition, mastery_map)
        flow = calculate_flow_score(mastery, weak_area)
        continuity = calculate_continuity_score(definition, recent_topics, needing_work, mastery)

        total = (
            sr * WEIGHTS["spaced_repetition"]
            + bloom * WEIGHTS["bloom"]
            + flow * WEIGHTS["flow"]
            + continuity * WEIGHTS["continuity"]
        )

        scores.append(
            TopicScore(
                topic=definition.topic,
                description=definition.description,
                priority=definition.priority,
                spaced_repetition_score=sr,
                bloom_score=bloom,
                flow_score=flow,
                continuity_score=continuity,
                total_score=total,
                mastery_level=mastery.mastery_level if mastery else 0,
                bloom_level=mastery.bloom_level if mastery else 1,
                focus_areas=determine_focus_areas(mastery, weak_area, needing_work, definition.topic),
                selection_type=determine_selection_type(sr, bloom, continuity, mastery, weak_area),
            )
        )
    return scores


def determine_approach(
    score: TopicScore, days_away: int, sessions_on_topic: int, needs_work: bool, learning_style: Optional[str]
) -> str:
    approaches = []
    if score.selection_type == SPACED_REPETITION:
        approaches.append(f"Start with a quick review to refresh {score.topic} concepts.")
        if days_away > 7:
            approaches.append("Use retrieval practice before re-teaching.")
    elif score.selection_type == STRUGGLING_SUPPORT:
        approaches.append("Use the Feynman technique: explain simply with analogies.")
        approaches.append("Break down into smaller steps, celebrate small wins.")
    elif score.selection_type == CONTINUATION:
        approaches.append(f"Continue from previous sessions, building on {sessions_on_topic} covering this topic.")
        if needs_work:
            approaches.append("Revisit the questions missed last time.")
    elif score.selection_type == BLOOM_PROGRESSION:
        approaches.append("Student is ready for higher-order thinking.")
        approaches.append("Focus on application, analysis, and problem-solving.")
    else:
        approaches.append("Introduce the topic with clear explanations and examples.")
        approaches.append("Build understanding before moving to practice.")

    if learning_style == "visual":
        approaches.append("Include graphs and visual representations.")
    elif learning_style == "procedural":
        approaches.append("Provide step-by-step procedures and worked examples.")

    return " ".join(approaches)


def determine_difficulty_adjustment(mastery_level: int, selection_type: str, engagement: float) -> str:
    if selection_type == STRUGGLING_SUPPORT or mastery_level < 30:
        return "easier"
    if mastery_level >= 70 and engagement >= 60:
        return "challenging"
    return "standard"


def build_reason(score: TopicScore, days_away: int, has_history: bool) -> str:
    if score.selection_type == SPACED_REPETITION:
        return (
            f"It's time to review {score.topic}. "
            "Spaced repetition helps lock in your learning for the long term."
        )
    if score.selection_type == STRUGGLING_SUPPORT:
        return f"Let's work on {score.topic} together. We'll take it step by step to build your confidence."
    if score.selection_type == CONTINUATION:
        if days_away > 0:
            return f"Welcome back! Let's continue where we left off with {score.topic}."
        return f"Great progress! Let's keep building on {score.topic}."
    if score.selection_type == BLOOM_PROGRESSION:
        return (
            f"You've shown great understanding of {score.topic}. "
            "Let's take it to the next level with more challenging applications."
        )
    if has_history:
        return f"Based on your progress, {score.topic} is the perfect next step in your learning journey."
    return f"Let's begin with {score.topic} - {score.description}."


def estimate_duration(score: TopicScore) -> int:
    """Session length in minutes."""
    duration = 15
    if score.mastery_level == 0:
        duration = 20
    elif score.mastery_level >= 70:
        duration = 12
    if score.selection_type == STRUGGLING_SUPPORT:
        duration += 5
    return duration


def select_for_new_student(subject: str, catalog: list[TopicDefinition]) -> SmartTopicResult:
    first = next((t for t in catalog if t.priority == 1), catalog[0])
    return SmartTopicResult(
        topic=first.topic,
        subject=subject,
        reason=(
            f"Welcome! Let's start with {first.topic} - {first.description}. "
            "This foundational topic will set you up for success."
        ),
        selection_type=NEW_TOPIC,
        focus_areas=["introduction", "basic concepts", "examples"],
        bloom_level=1,
        estimated_duration=15,
        mastery_level=0,
        scoring={
            "spaced_repetition_score": 0,
            "bloom_score": 100,
            "flow_score": 100,
            "continuity_score": 100,
            "total_score": 100,
        },
        context={
            "is_returning_student": False,
            "days_away": 0,
            "sessions_on_topic": 0,
            "needs_work": False,
            "recommended_approach": (
                "Start with fundamental concepts using simple examples. "
                "Use the Feynman technique to explain clearly. "
                "Build confidence before introducing complexity."
            ),
            "difficulty_adjustment": "easier",
        },
    )


def choose_topic(
    subject: str,
    performance: AggregatedPerformance,
    learning_style: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SmartTopicResult:
    """Pick the best topic for a subject from aggregated performance."""
    now = now or datetime.utcnow()
    catalog = get_subject_topics(subject)
    finished = [s for s in performance.recent_sessions if s.end_time is not None]

    if not performance.topic_masteries and not finished:
        return select_for_new_student(subject, catalog)

    scores = score_topics(
        catalog,
        performance.topic_masteries,
        get_spaced_repetition_due(performance, limit=20),
        get_weak_areas(performance, limit=10),
        finished,
    )
    # Stable sort keeps catalog order among ties
    scores.sort(key=lambda s: s.total_score, reverse=True)
    best = scores[0]

    last = finished[0] if finished else None
    days_away = math.floor((now - last.end_time).total_seconds() / 86400) if last else 0
    on_topic = [s for s in finished if best.topic in (s.topics_covered or [])]
    needs_work = any(best.topic in (s.topics_needing_work or []) for s in on_topic)

    return SmartTopicResult(
        topic=best.topic,
        subject=subject,
        reason=build_reason(best, days_away, bool(on_topic)),
        selection_type=best.selection_type,
        focus_areas=best.focus_areas,
        bloom_level=best.bloom_level,
        estimated_duration=estimate_duration(best),
        mastery_level=best.mastery_level,
        scoring={
            "spaced_repetition_score": best.spaced_repetition_score,
            "bloom_score": best.bloom_score,
            "flow_score": best.flow_score,
            "continuity_score": best.continuity_score,
            "total_score": round(best.total_score, 2),
        },
        context={
            "is_returning_student": bool(on_topic) or best.mastery_level > 0,
            "days_away": days_away,
            "sessions_on_topic": len(on_topic),
            "needs_work": needs_work,
            "recommended_approach": determine_approach(
                best, days_away, len(on_topic), needs_work, learning_style
            ),
            "difficulty_adjustment": determine_difficulty_adjustment(
                best.mastery_level, best.selection_type, performance.recent_engagement
            ),
        },
    )


def select_topic(
    db: Session, user: User, subject: str, now: Optional[datetime] = None
) -> SmartTopicResult:
    """Select the optimal topic for a student in a subject."""
    subject = (subject or "math").lower()
    performance = aggregate_student_performance(db, user, subject, now=now)
    result = choose_topic(subject, performance, user.learning_style, now=now)

    logger.info(
        f"Selected topic for user {user.id} in {subject}: {result.topic} "
        f"({result.selection_type}), score {result.scoring['total_score']}"
    )
    return result


def get_all_topics(subject: str) -> list[dict]:
    return [
        {"topic": t.topic, "description": t.description, "priority": t.priority}
        for t in get_subject_topics(subject)
    ]
