"""Tests for Feynman explanation evaluation."""

from satprep.services.feynman import (
    detect_jargon,
    evaluate_explanation,
    generate_refinement_prompts,
)

GOOD_EXPLANATION = (
    "A linear equation is like a balance. For example, 2x + 3 = 7. "
    "You solve it by doing the same operation to both sides to isolate the variable. "
    "Then check your solution."
)
JARGON_EXPLANATION = "The coefficient and exponent of the polynomial"


def test_clear_complete_explanation():
    result = evaluate_explanation(GOOD_EXPLANATION, "linear-equations")

    assert result.clarity == 100
    assert result.completeness == 100
    assert result.accuracy == 100
    assert result.jargon_terms == ["variable"]
    assert not result.should_refine
    assert result.bloom_level == 3
    assert result.feedback.startswith("Excellent explanation")


def test_jargon_heavy_explanation():
    result = evaluate_explanation(JARGON_EXPLANATION, "unknown-topic")

    assert result.jargon_terms == ["coefficient", "exponent", "polynomial"]
    assert result.simplified_alternatives[0] == "the number in front of a letter"
    assert result.clarity == 55
    assert result.completeness == 0
    assert result.focus_area == "clarity"
    assert result.should_refine
    assert 'Try explaining "coefficient" in simpler terms.' in result.suggested_refinements


def test_custom_key_points_report_gaps():
    result = evaluate_explanation(
        "Slope is rise over run.", "slope", key_points=["rise over run", "intercept form"]
    )
    assert result.completeness == 50
    assert result.gaps == ["intercept form"]


def test_detect_jargon_is_case_insensitive():
    terms, _ = detect_jargon("The SLOPE tells you the rate")
    assert terms == ["slope"]


def test_refinement_prompts_by_iteration():
    evaluation = evaluate_explanation(JARGON_EXPLANATION, "unknown-topic")

    first = generate_refinement_prompts(evaluation, 1)
    assert len(first["prompts"]) == 2
    assert first["focus_area"] == "clarity"

    assert len(generate_refinement_prompts(evaluation, 2)["prompts"]) == 2
    assert len(generate_refinement_prompts(evaluation, 3)["prompts"]) == 1
