"""Bloom's Taxonomy progression.

Levels:
1 = Remember - Recall facts, definitions
2 = Understand - Explain concepts, interpret
3 = Apply - Use in new situations, solve problems
4 = Analyze - Break down, compare, contrast
5 = Evaluate - Judge, critique, justify
6 = Create - Design, construct, produce

A student advances to the next level once they reach 80% mastery on
their current level.
"""

from dataclasses import dataclass
from typing import Optional

from .rounding import round_half_up

MASTERY_THRESHOLD = 80
MAX_LEVEL = 6

BLOOM_LEVEL_NAMES = {
    1: "remember",
    2: "understand",
    3: "apply",
    4: "analyze",
    5: "evaluate",
    6: "create",
}

BLOOM_LEVEL_DESCRIPTIONS = {
    1: "Recall facts and basic concepts",
    2: "Explain ideas and concepts",
    3: "Use information in new situations",
    4: "Draw connections and analyze relationships",
    5: "Justify decisions and evaluate approaches",
    6: "Create new solutions and produce original work",
}

# Keyword heuristics used to auto-tag questions
LEVEL_KEYWORDS = {
    1: ["define", "list", "identify", "recall", "name", "state", "which of the following"],
    2: ["explain", "describe", "summarize", "interpret", "classify", "compare"],
    3: ["solve", "calculate", "apply", "use", "demonstrate", "find the value"],
    4: ["analyze", "distinguish", "examine", "break down", "compare and contrast"],
    5: ["evaluate", "judge", "justify", "critique", "assess", "which method is best"],
    6: ["create", "design", "develop", "formulate", "construct", "propose"],
}

SCAFFOLDING = {
    1: (
        ["Review key definitions", "Identify correct formulas", "Match terms to definitions"],
        ["Multiple choice identification", "True/false", "Matching"],
    ),
    2: (
        ["Explain concept in own words", "Interpret examples", "Classify problem types"],
        ["Explain this concept", "What does this mean?", "Classify"],
    ),
    3: (
        ["Solve practice problems", "Apply formulas to new situations", "Use strategies to find answers"],
        ["Solve for x", "Calculate", "Find the value"],
    ),
    4: (
        ["Compare different approaches", "Identify patterns and relationships", "Break down complex problems"],
        ["Compare methods", "Identify the pattern", "What is the relationship?"],
    ),
    5: (
        ["Critique solution methods", "Judge which approach is best", "Justify your reasoning"],
        ["Which is most efficient?", "Evaluate this approach", "Justify"],
    ),
    6: (
        ["Create your own problems", "Design new solutions", "Develop original approaches"],
        ["Create a problem", "Design a solution", "Develop"],
    ),
}


@dataclass
class BloomTarget:
    next_level: int
    required_mastery: int
    current_mastery: float
    is_ready: bool


def default_bloom_progress() -> dict:
    """Empty Bloom progress document for a new topic."""
    progress = {
        name: {"attempts": 0, "mastery": 0, "last_attempt": None}
        for name in BLOOM_LEVEL_NAMES.values()
    }
    progress["current_level"] = 0
    progress["next_target_level"] = 1
    return progress


def level_mastery(bloom_progress: dict, level: int) -> float:
    """Mastery recorded for a level, 0 for unknown levels."""
    name = BLOOM_LEVEL_NAMES.get(level)
    if not name or name not in bloom_progress:
        return 0
    return bloom_progress[name].get("mastery", 0)


def get_next_bloom_level(bloom_progress: dict) -> BloomTarget:
    """Get the Bloom level the student should work on next."""
    current = bloom_progress.get("current_level") or 0

    if current == 0:
        return BloomTarget(
            next_level=1,
            required_mastery=MASTERY_THRESHOLD,
            current_mastery=0,
            is_ready=True,
        )

    mastery = level_mastery(bloom_progress, current)
    if mastery >= MASTERY_THRESHOLD:
        return BloomTarget(
            next_level=min(MAX_LEVEL, current + 1),
            required_mastery=MASTERY_THRESHOLD,
            current_mastery=0,
            is_ready=True,
        )

    return BloomTarget(
        next_level=current,
        required_mastery=MASTERY_THRESHOLD,
        current_mastery=mastery,
        is_ready=False,
    )


def has_mastered_bloom_level(
    bloom_progress: dict, level: int, threshold: int = MASTERY_THRESHOLD
) -> bool:
    if level not in BLOOM_LEVEL_NAMES:
        return False
    return level_mastery(bloom_progress, level) >= threshold


def determine_bloom_level(
    question_text: str, explanation: str = "", difficulty: Optional[str] = None
) -> int:
    """Auto-tag a question with a Bloom level from its wording.

    The level with the most keyword hits wins (lowest level on ties).
    Without any hits, the difficulty decides: easy -> Remember,
    medium -> Apply, hard -> Analyze.
    """
    text = f"{question_text} {explanation}".lower()

    best_level = 3
    best_score = 0
    for level, keywords in LEVEL_KEYWORDS.items():
        score = sum(1 for keyword in keywords if keyword in text)
        if score > best_score:
            best_score = score
            best_level = level

    if best_score == 0:
        return {"easy": 1, "medium": 3, "hard": 4}.get(difficulty, 3)

    return best_level


def scaffold_bloom_progression(current_level: int, target_level: int) -> list[dict]:
    """Learning activities for each level from current to target, inclusive."""
    steps = []
    for level in range(current_level, target_level + 1):
        activities, question_types = SCAFFOLDING.get(level, ([], []))
        steps.append(
            {
                "level": level,
                "level_name": BLOOM_LEVEL_NAMES.get(level, "unknown"),
                "description": BLOOM_LEVEL_DESCRIPTIONS.get(level, ""),
                "activities": list(activities),
                "question_types": list(question_types),
            }
        )
    return steps


def calculate_bloom_mastery(current_mastery: float, attempts: int, quality: int) -> int:
    """Blend a new quality score (0-5) into a level's mastery.

    The new score's weight grows with practice, up to full weight after
    10 attempts.
    """
    quality_percent = (quality / 5) * 100
    weight = min(attempts, 10) / 10
    return round_half_up(current_mastery * (1 - weight) + quality_percent * weight)


def get_bloom_level_info(level: int) -> dict:
    return {
        "level": level,
        "name": BLOOM_LEVEL_NAMES.get(level, "unknown"),
        "description": BLOOM_LEVEL_DESCRIPTIONS.get(level, ""),
    }
