"""Flow state modelling (Csikszentmihalyi's challenge/skill balance).

A student is in:
- flow when the challenge matches their skill closely
- boredom when the challenge is well below their skill
- anxiety when the challenge exceeds their skill

The zone is computed either directly from challenge vs skill (both 1-10)
or inferred from answer behaviour (timing, hints, retries, pauses and
recent accuracy), and drives difficulty adjustment and break suggestions.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .rounding import round_half_up

logger = logging.getLogger(__name__)

BOREDOM = "boredom"
FLOW = "flow"
ANXIETY = "anxiety"

BREAK_ACTIVITIES = [
    "Take a short walk",
    "Do some stretches",
    "Get a drink of water",
    "Take 5 deep breaths",
    "Look at something far away to rest your eyes",
]


@dataclass
class FlowState:
    flow_zone: str
    flow_score: float  # 0-100
    challenge: float  # 1-10
    skill: float  # 1-10
    recommended_action: str


@dataclass
class PerformanceMetrics:
    """Behavioural signals from the most recent attempt."""

    is_correct: bool
    time_spent: float
    average_time: float
    hints_used: int = 0
    retries: int = 0
    pauses: int = 0
    recent_accuracy: float = 0.5  # 0-1


@dataclass
class DifficultyAdjustment:
    new_difficulty: int  # 1-10
    adjustment_reason: str
    flow_target: str  # "flow" or "slight_challenge"
    should_provide_hint: bool


@dataclass
class BreakRecommendation:
    should_break: bool
    break_duration: int = 0  # minutes
    suggested_activity: str = ""
    reason: str = ""


def calculate_flow_state(challenge: float, skill: float) -> FlowState:
    """Classify challenge vs skill into a flow zone with a 0-100 score."""
    distance = abs(challenge - skill)

    if distance <= 1 and challenge >= 3 and skill >= 3:
        zone = FLOW
        score = 100 - distance * 10
        action = "Maintain current level - optimal engagement"
    elif challenge < skill - 1:
        zone = BOREDOM
        score = max(0, 50 - (skill - challenge) * 10)
        action = "Increase challenge to maintain engagement"
    else:
        zone = ANXIETY
        score = max(0, 50 - (challenge - skill) * 10)
        action = "Reduce challenge or provide support"

    return FlowState(
        flow_zone=zone,
        flow_score=score,
        challenge=challenge,
        skill=skill,
        recommended_action=action,
    )


def detect_flow_from_behavior(metrics: PerformanceMetrics) -> tuple[str, float]:
    """Infer the flow zone from behavioural signals.

    Each signal votes for a zone. The zone with strictly the most votes
    wins; ties resolve to flow.

    Returns:
        (flow_zone, confidence) where confidence is the winning share
        of all votes
    """
    votes = {BOREDOM: 0, FLOW: 0, ANXIETY: 0}

    time_ratio = metrics.time_spent / metrics.average_time if metrics.average_time > 0 else 1
    if time_ratio < 0.5:
        votes[BOREDOM] += 2  # Rushing through
    elif time_ratio > 2:
        votes[ANXIETY] += 2  # Struggling
    else:
        votes[FLOW] += 1

    if metrics.is_correct:
        votes[FLOW] += 1
    else:
        votes[ANXIETY] += 1

    if metrics.hints_used == 0 and metrics.retries == 0:
        votes[FLOW] += 1
    elif metrics.hints_used > 3 or metrics.retries > 2:
        votes[ANXIETY] += 2

    if metrics.pauses > 3:
        votes[ANXIETY] += 1

    if metrics.recent_accuracy > 0.9:
        votes[BOREDOM] += 1
    elif metrics.recent_accuracy < 0.4:
        votes[ANXIETY] += 1

    total = sum(votes.values())

    zone = FLOW
    if votes[BOREDOM] > votes[FLOW] and votes[BOREDOM] > votes[ANXIETY]:
        zone = BOREDOM
    elif votes[ANXIETY] > votes[FLOW] and votes[ANXIETY] > votes[BOREDOM]:
        zone = ANXIETY

    return zone, votes[zone] / total


def adjust_for_flow(
    current_difficulty: float,
    current_skill: float,
    metrics: PerformanceMetrics,
) -> DifficultyAdjustment:
    """Adjust question difficulty to steer the student back into flow."""
    zone, _ = detect_flow_from_behavior(metrics)

    new_difficulty = current_difficulty
    flow_target = "flow"
    should_provide_hint = False

    if zone == BOREDOM:
        new_difficulty = min(10, current_difficulty + 1)
        reason = "Performance indicates material is too easy - increasing challenge"
        flow_target = "slight_challenge"
    elif zone == ANXIETY:
        new_difficulty = max(1, current_difficulty - 1)
        reason = "Performance indicates material is too difficult - reducing challenge"
        should_provide_hint = True
    elif metrics.is_correct and metrics.hints_used == 0:
        new_difficulty = min(10, current_difficulty + 0.5)
        reason = "Maintaining flow with slight progression"
        flow_target = "slight_challenge"
    else:
        reason = "Optimal challenge-skill balance - maintaining level"

    # Stay within the learning zone
    if new_difficulty < current_skill - 2:
        new_difficulty = current_skill - 1
        reason = "Adjusted to stay within learning zone"

    logger.info(
        f"Flow adjustment: zone={zone}, difficulty {current_difficulty} -> {new_difficulty}"
    )

    return DifficultyAdjustment(
        new_difficulty=round_half_up(new_difficulty),
        adjustment_reason=reason,
        flow_target=flow_target,
        should_provide_hint=should_provide_hint,
    )


def should_suggest_break(
    time_in_anxiety: float,
    consecutive_failures: int,
    recent_flow_scores: list[float],
) -> BreakRecommendation:
    """Suggest a micro-break after sustained anxiety or repeated failure.

    Args:
        time_in_anxiety: Minutes spent in the anxiety zone
        consecutive_failures: Incorrect answers in a row
        recent_flow_scores: Last few flow scores (0-100)
    """
    if recent_flow_scores:
        average_flow = sum(recent_flow_scores) / len(recent_flow_scores)
    else:
        average_flow = 50

    should_break = time_in_anxiety > 10 or consecutive_failures >= 3 or average_flow < 30
    if not should_break:
        return BreakRecommendation(should_break=False)

    duration = 10 if time_in_anxiety > 15 or consecutive_failures >= 5 else 5

    if consecutive_failures >= 3:
        reason = "Multiple incorrect answers - a break might help you reset"
    else:
        reason = "You've been working hard - a short break can boost your focus"

    return BreakRecommendation(
        should_break=True,
        break_duration=duration,
        suggested_activity=random.choice(BREAK_ACTIVITIES),
        reason=reason,
    )


def calculate_session_flow_score(
    flow_states: list[dict], end_time: Optional[datetime] = None
) -> int:
    """Time-weighted flow score for a session.

    Each state lasts until the next state's timestamp; the last one runs
    until end_time. Flow counts 100, boredom 50, anxiety 20.

    Args:
        flow_states: Dicts with "flow_zone" and "timestamp" (datetime)
        end_time: When the last state ended (defaults to utcnow)
    """
    if not flow_states:
        return 50

    end_time = end_time or datetime.utcnow()
    minutes = {FLOW: 0.0, BOREDOM: 0.0, ANXIETY: 0.0}

    for i, state in enumerate(flow_states):
        if i + 1 < len(flow_states):
            next_timestamp = flow_states[i + 1]["timestamp"]
        else:
            next_timestamp = end_time
        duration = (next_timestamp - state["timestamp"]).total_seconds() / 60
        if state["flow_zone"] in minutes:
            minutes[state["flow_zone"]] += duration

    total = sum(minutes.values())
    if total <= 0:
        return 50

    score = (minutes[FLOW] * 100 + minutes[BOREDOM] * 50 + minutes[ANXIETY] * 20) / total
    return round_half_up(score)


def estimate_skill_level(
    mastery_level: float, accuracy_rate: float, bloom_level: int
) -> int:
    """Estimate skill on a 1-10 scale.

    Mastery contributes up to 4, accuracy up to 3 and Bloom level up to 3.
    """
    skill = (mastery_level / 100) * 4 + accuracy_rate * 3 + (bloom_level / 6) * 3
    return max(1, min(10, round_half_up(skill)))
