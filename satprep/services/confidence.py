"""Automatic confidence estimation from answer behaviour.

Students are not asked how confident they felt. Instead confidence (1-5)
is inferred from correctness, speed relative to the question's expected
time, hints, tutor chat interactions, topic history and how hard the
question is relative to the student's level.
"""

from dataclasses import dataclass, field

from .rounding import round_half_up

STRUGGLER = "struggler"
INTERMEDIATE = "intermediate"
ADVANCED = "advanced"

WEIGHTS = {
    "correctness": 0.35,
    "time": 0.20,
    "hints": 0.15,
    "chat": 0.10,
    "history": 0.10,
    "difficulty": 0.10,
}


@dataclass
class ConfidenceInput:
    """Behavioural signals for one answered question."""

    is_correct: bool
    time_spent: float  # seconds
    expected_time: float  # seconds
    hints_used: int = 0
    chat_interactions: int = 0
    previous_accuracy: float = 0.0  # 0-1 on this topic
    question_difficulty: float = 5  # 1-10
    student_level: float = 5  # 1-10
    student_type: str = INTERMEDIATE


@dataclass
class ConfidenceResult:
    confidence: int  # 1-5
    factors: dict = field(default_factory=dict)
    explanation: str = ""


def _time_factor(time_spent: float, expected_time: float) -> float:
    if expected_time <= 0:
        return 0.5
    ratio = time_spent / expected_time
    if ratio <= 0.5:
        return 1.0
    if ratio <= 1.0:
        return 0.8
    if ratio <= 1.5:
        return 0.5
    if ratio <= 2.0:
        return 0.3
    return 0.1


def _hints_factor(hints_used: int) -> float:
    if hints_used == 0:
        return 1.0
    if hints_used == 1:
        return 0.7
    if hints_used == 2:
        return 0.5
    if hints_used <= 4:
        return 0.3
    return 0.1


def _chat_factor(chat_interactions: int) -> float:
    if chat_interactions == 0:
        return 1.0
    if chat_interactions <= 2:
        return 0.7
    if chat_interactions <= 5:
        return 0.5
    return 0.3


def _difficulty_factor(student_level: float, question_difficulty: float) -> float:
    gap = student_level - question_difficulty
    if gap >= 3:
        return 1.0  # Much easier than level
    if gap >= 1:
        return 0.8
    if gap >= -1:
        return 0.6  # At level
    if gap >= -3:
        return 0.4
    return 0.2  # Much harder


def calculate_automatic_confidence(signals: ConfidenceInput) -> ConfidenceResult:
    """Estimate confidence (1-5) from behavioural signals.

    Strugglers get a 1.2x boost (capped) to build confidence; advanced
    students are held to a slightly stricter 0.95x.
    """
    factors = {
        "correctness": 1.0 if signals.is_correct else 0.2,
        "time": _time_factor(signals.time_spent, signals.expected_time),
        "hints": _hints_factor(signals.hints_used),
        "chat": _chat_factor(signals.chat_interactions),
        "history": signals.previous_accuracy,
        "difficulty": _difficulty_factor(
            signals.student_level, signals.question_difficulty
        ),
    }

    score = sum(factors[name] * weight for name, weight in WEIGHTS.items())

    if signals.student_type == STRUGGLER:
        score = min(1.0, score * 1.2)
    elif signals.student_type == ADVANCED:
        score = score * 0.95

    confidence = max(1, min(5, round_half_up(score * 4 + 1)))

    if confidence >= 4:
        explanation = (
            "Strong performance with good speed and minimal assistance."
            if signals.is_correct
            else "Good effort despite the incorrect answer."
        )
    elif confidence >= 3:
        explanation = "Solid attempt with room for improvement."
    else:
        explanation = "This topic may need more practice."

    return ConfidenceResult(confidence=confidence, factors=factors, explanation=explanation)


def determine_student_type(
    mastery_level: float, accuracy_rate: float, average_flow_score: float = 50
) -> str:
    """Classify a student as struggler, intermediate or advanced.

    Args:
        mastery_level: Overall mastery (0-100)
        accuracy_rate: Overall accuracy (0-1)
        average_flow_score: Average flow score (0-100)
    """
    score = mastery_level * 0.4 + accuracy_rate * 100 * 0.4 + average_flow_score * 0.2

    if score < 40:
        return STRUGGLER
    if score < 70:
        return INTERMEDIATE
    return ADVANCED


def calculate_quality_score(signals: ConfidenceInput, confidence: int) -> int:
    """Map an attempt and its estimated confidence onto SM-2 quality (0-5)."""
    if not signals.is_correct:
        if signals.hints_used > 5 or signals.chat_interactions > 5:
            return 0  # Complete blackout
        if signals.hints_used > 2:
            return 1
        return 2

    if confidence >= 5:
        return 5
    if confidence >= 4:
        return 4
    return 3
