"""Feynman technique explanation evaluation.

Students explain a concept in their own words; the explanation is scored
locally for clarity, completeness and accuracy against the topic's key
points, and the student is prompted to refine it until every score
reaches 70.

Feynman technique:
1. Choose a concept to learn
2. Explain it as if teaching someone else
3. Identify gaps in your explanation
4. Review and simplify
"""

import re
from dataclasses import asdict, dataclass, field
from typing import Optional

from .rounding import round_half_up

REFINE_THRESHOLD = 70

MATH_JARGON = [
    "coefficient", "variable", "exponent", "polynomial", "quadratic",
    "derivative", "integral", "logarithm", "asymptote", "domain",
    "range", "function", "slope", "intercept", "parabola",
]

READING_JARGON = [
    "inference", "rhetoric", "thesis", "antithesis", "synthesis",
    "connotation", "denotation", "ethos", "pathos", "logos",
]

SIMPLIFIED_ALTERNATIVES = {
    "coefficient": "the number in front of a letter",
    "variable": "the unknown number (like x)",
    "exponent": "the small number that tells you how many times to multiply",
    "polynomial": "an expression with multiple terms",
    "quadratic": "an equation with x squared",
    "derivative": "how fast something is changing",
    "slope": "how steep a line is",
    "intercept": "where the line crosses the axis",
    "parabola": "a U-shaped curve",
    "domain": "all the possible input values",
    "range": "all the possible output values",
    "function": "a rule that turns one number into another",
}

EXAMPLE_PATTERNS = ["for example", "like", "such as", "imagine", "think of"]
ANALOGY_PATTERNS = ["is like", "similar to", "just as", "compare"]

# Checked from the highest level down; the first hit wins
BLOOM_INDICATORS = [
    (6, ["create", "design", "develop"]),
    (5, ["best", "evaluate", "judge"]),
    (4, ["compare", "contrast", "analyze"]),
    (3, ["solve", "apply", "use"]),
    (2, ["explain", "describe", "mean"]),
]

DEFAULT_KEY_POINTS = {
    "linear-equations": [
        "equation with variable",
        "solve by isolating variable",
        "same operation both sides",
        "check solution",
    ],
    "quadratic-equations": [
        "squared term",
        "parabola shape",
        "factoring or formula",
        "two solutions possible",
    ],
}

GENERIC_KEY_POINTS = ["definition", "example", "how to solve", "when to use"]


@dataclass
class EvaluationResult:
    clarity: int
    completeness: int
    accuracy: int
    jargon_count: int
    jargon_terms: list = field(default_factory=list)
    simplified_alternatives: list = field(default_factory=list)
    misconceptions: list = field(default_factory=list)
    strengths: list = field(default_factory=list)
    gaps: list = field(default_factory=list)
    feedback: str = ""
    suggested_refinements: list = field(default_factory=list)
    focus_area: str = ""
    bloom_level: int = 1
    should_refine: bool = False
    overall_score: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def get_default_key_points(topic: str) -> list[str]:
    return list(DEFAULT_KEY_POINTS.get(topic, GENERIC_KEY_POINTS))


def detect_jargon(explanation: str) -> tuple[list[str], list[str]]:
    """Find jargon terms and their plain-language alternatives."""
    text = explanation.lower()
    terms = [term for term in MATH_JARGON + READING_JARGON if term in text]
    alternatives = [SIMPLIFIED_ALTERNATIVES.get(term, term) for term in terms]
    return terms, alternatives


def check_completeness(explanation: str, key_points: list[str]) -> tuple[int, list[str]]:
    """Score key-point coverage.

    A key point counts as covered when any of its words appears in the
    explanation. Without key points, length stands in for coverage.

    Returns:
        (completeness 0-100, missing key points)
    """
    if not key_points:
        return min(100, len(explanation.split()) * 2), []

    text = explanation.lower()
    missing = [
        point for point in key_points
        if not any(word in text for word in point.lower().split())
    ]
    covered = len(key_points) - len(missing)
    return round_half_up(covered / len(key_points) * 100), missing


def estimate_clarity(explanation: str, jargon_count: int) -> int:
    text = explanation.lower()
    clarity = 70 - jargon_count * 5

    sentences = [s for s in re.split(r"[.!?]+", explanation) if s.strip()]
    if len(sentences) >= 3:
        clarity += 10
    if any(pattern in text for pattern in EXAMPLE_PATTERNS):
        clarity += 15
    if any(pattern in text for pattern in ANALOGY_PATTERNS):
        clarity += 10

    return max(0, min(100, clarity))


def estimate_accuracy(explanation: str, key_points: list[str]) -> int:
    """Share of key points whose significant words (4+ letters) appear."""
    if not key_points:
        return 70

    text = explanation.lower()
    correct = 0
    for point in key_points:
        words = [w for w in point.lower().split() if len(w) > 3]
        if any(word in text for word in words):
            correct += 1
    return round_half_up(correct / len(key_points) * 100)


def explanation_bloom_level(explanation: str) -> int:
    text = explanation.lower()
    for level, indicators in BLOOM_INDICATORS:
        if any(word in text for word in indicators):
            return level
    return 1


def _strengths(clarity: int, completeness: int, accuracy: int) -> list[str]:
    strengths = []
    if clarity >= 80:
        strengths.append("Clear and easy to understand")
    if completeness >= 80:
        strengths.append("Covers key concepts well")
    if accuracy >= 80:
        strengths.append("Accurate understanding")
    return strengths or ["Good effort - keep practicing!"]


def evaluate_explanation(
    explanation: str,
    topic: str,
    key_points: Optional[list[str]] = None,
) -> EvaluationResult:
    """Score an explanation and suggest how to refine it.

    Args:
        explanation: The student's explanation text
        topic: Topic being explained
        key_points: Points a complete explanation covers; defaults to the
            topic's built-in key points

    Returns:
        EvaluationResult with scores, feedback and refinement suggestions
    """
    if key_points is None:
        key_points = get_default_key_points(topic)

    jargon, alternatives = detect_jargon(explanation)
    completeness, missing = check_completeness(explanation, key_points)
    clarity = estimate_clarity(explanation, len(jargon))
    accuracy = estimate_accuracy(explanation, key_points)

    if clarity < REFINE_THRESHOLD:
        focus_area = "clarity"
    elif completeness < REFINE_THRESHOLD:
        focus_area = "completeness"
    elif accuracy < REFINE_THRESHOLD:
        focus_area = "accuracy"
    else:
        focus_area = ""

    if clarity >= 80 and completeness >= 80 and accuracy >= 80:
        feedback = "Excellent explanation! You demonstrated clear understanding of the concept."
    elif clarity >= 70 and completeness >= 70:
        feedback = "Good explanation! Here are some suggestions to make it even better."
    else:
        feedback = "Nice start! Let's work on improving your explanation."

    refinements = []
    if len(jargon) > 2:
        refinements.append(f'Try explaining "{jargon[0]}" in simpler terms.')
    if missing:
        refinements.append(f"Consider adding more about: {missing[0]}")
    if clarity < REFINE_THRESHOLD:
        refinements.append("Try using a real-world example or analogy.")
    if completeness < REFINE_THRESHOLD:
        refinements.append("Can you expand on why this works?")

    return EvaluationResult(
        clarity=clarity,
        completeness=completeness,
        accuracy=accuracy,
        jargon_count=len(jargon),
        jargon_terms=jargon,
        simplified_alternatives=alternatives,
        strengths=_strengths(clarity, completeness, accuracy),
        gaps=missing,
        feedback=feedback,
        suggested_refinements=refinements,
        focus_area=focus_area,
        bloom_level=explanation_bloom_level(explanation),
        should_refine=min(clarity, completeness, accuracy) < REFINE_THRESHOLD,
        overall_score=round_half_up((clarity + completeness + accuracy) / 3),
    )


def generate_refinement_prompts(evaluation: EvaluationResult, iteration: int) -> dict:
    """Prompts for the next pass at an explanation.

    The first refinement targets the weakest area, the second polishes,
    later ones consolidate.
    """
    prompts = []
    focus_area = ""

    if iteration == 1:
        if evaluation.clarity < REFINE_THRESHOLD:
            focus_area = "clarity"
            prompts.append("Can you explain this as if teaching a younger student?")
            prompts.append("Try using a simpler example from everyday life.")
        elif evaluation.completeness < REFINE_THRESHOLD:
            focus_area = "completeness"
            prompts.append("What other important aspects should we include?")
    elif iteration == 2:
        prompts.append("Great progress! Can you make it even simpler?")
        prompts.append("Is there anything you can remove to make it clearer?")
    else:
        prompts.append("Almost there! Try summarizing the key points.")

    return {"prompts": prompts, "focus_area": focus_area}
