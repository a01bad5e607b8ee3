"""Tests for Bloom's taxonomy tagging and progression."""

from satprep.services.bloom import (
    calculate_bloom_mastery,
    default_bloom_progress,
    determine_bloom_level,
    get_bloom_level_info,
    get_next_bloom_level,
    has_mastered_bloom_level,
    scaffold_bloom_progression,
)


def test_keyword_tagging():
    assert determine_bloom_level("Solve for x: 2x + 3 = 7") == 3
    assert determine_bloom_level("Evaluate which method is best") == 5


def test_untagged_questions_fall_back_to_difficulty():
    assert determine_bloom_level("What is 2 + 2?", difficulty="easy") == 1
    assert determine_bloom_level("What is 2 + 2?", difficulty="medium") == 3
    assert determine_bloom_level("What is 2 + 2?", difficulty="hard") == 4


def test_bloom_mastery_weights_grow_with_attempts():
    assert calculate_bloom_mastery(0, 1, 5) == 10
    assert calculate_bloom_mastery(50, 10, 5) == 100
    assert calculate_bloom_mastery(50, 20, 0) == 0, "Weight caps at ten attempts"


def test_next_level_for_new_topic():
    target = get_next_bloom_level(default_bloom_progress())
    assert target.next_level == 1
    assert target.is_ready


def test_next_level_after_mastery():
    progress = default_bloom_progress()
    progress["current_level"] = 2
    progress["understand"]["mastery"] = 85
    assert get_next_bloom_level(progress).next_level == 3
    assert has_mastered_bloom_level(progress, 2)

    progress["understand"]["mastery"] = 60
    target = get_next_bloom_level(progress)
    assert target.next_level == 2
    assert not target.is_ready
    assert target.current_mastery == 60


def test_scaffold_progression():
    steps = scaffold_bloom_progression(2, 4)
    assert [s["level"] for s in steps] == [2, 3, 4]
    assert steps[1]["level_name"] == "apply"
    assert steps[1]["activities"]


def test_level_info():
    info = get_bloom_level_info(6)
    assert info["name"] == "create"
    assert get_bloom_level_info(9)["name"] == "unknown"
