"""Learning orchestrator.

Coordinates the learning components behind a single session-oriented
interface: flow engine, Bloom progression, Feynman evaluation, enhanced
spaced repetition, automatic confidence, question selection and the
learner model.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..database.models import LearnerExplanation, Question, TopicProgress, User
from .adaptive_difficulty import map_level_to_difficulty
from .bloom import level_mastery
from .confidence import ConfidenceInput, calculate_automatic_confidence, calculate_quality_score
from .feynman import evaluate_explanation, generate_refinement_prompts
from .flow_engine import (
    PerformanceMetrics,
    adjust_for_flow,
    calculate_flow_state,
    estimate_skill_level,
    should_suggest_break,
)
from .learner_model import (
    build_learner_profile,
    get_learning_recommendations,
    predict_flow_state,
    update_learner_profile,
)
from .mastery import (
    add_attempt,
    calculate_mastery_level,
    current_bloom_level,
    push_quality_history,
    recent_attempts,
    update_bloom_progress,
    update_flow_metrics,
    update_question_statistics,
)
from .monitoring import metrics
from .progress import get_or_create_progress
from .question_selector import (
    get_next_question_for_user,
    get_optimal_difficulty,
    record_question_answered,
    record_question_shown,
)
from .questions import serialize_question, topic_for_question
from .rounding import round_half_up
from . import sessions as session_service
from .spaced_repetition import calculate_enhanced_sm2

logger = logging.getLogger(__name__)

DEFAULT_BLOOM_LEVEL = 3
DEFAULT_EXPECTED_TIME = 90
RECENT_FLOW_STATES = 5


def get_learner_state(db: Session, user: User, now: Optional[datetime] = None) -> dict:
    """Snapshot of where the student stands before choosing what to do next."""
    now = now or datetime.utcnow()
    profile = build_learner_profile(db, user, now)

    due_count = (
        db.query(TopicProgress)
        .filter(TopicProgress.user_id == user.id, TopicProgress.next_review_at <= now)
        .count()
    )

    # Default challenge is the student's own level
    prediction = predict_flow_state(
        profile.student_type, profile.current_level, profile.current_level
    )

    difficulty = map_level_to_difficulty(profile.current_level)

    bloom_level = profile.learning_preferences.get("preferred_bloom_level") or DEFAULT_BLOOM_LEVEL
    if profile.student_type == "struggler":
        bloom_level = min(2, bloom_level)
    elif profile.student_type == "advanced":
        bloom_level = min(6, bloom_level + 1)

    return {
        "user_id": user.id,
        "student_type": profile.student_type,
        "current_level": profile.current_level,
        "flow_zone": prediction["predicted_zone"],
        "flow_score": round_half_up(prediction["confidence"] * 100),
        "recommended_difficulty": difficulty,
        "recommended_bloom_level": bloom_level,
        "topics_due_for_review": due_count,
        "session_active": session_service.get_active_session(db, user.id) is not None,
    }


def start_session(
    db: Session, user: User, session_type: str = "study", now: Optional[datetime] = None
) -> dict:
    session = session_service.start_session(db, user.id, session_type, now=now)
    metrics.record_event("session_started")
    return {"session_id": session.id, "initial_state": get_learner_state(db, user, now)}


def get_next_question(
    db: Session,
    user: User,
    subject: Optional[str] = None,
    topic: Optional[str] = None,
    for_review: bool = False,
) -> Optional[dict]:
    """Select the next question at the learner's recommended level and
    record it as shown.

    Returns:
        Dict with the question, selection reason, Bloom level and expected
        time, or None when no question is available
    """
    state = get_learner_state(db, user)

    # Topic practice follows the student's skill on that topic
    if topic:
        difficulty = get_optimal_difficulty(db, user.id, subject, topic)
    else:
        difficulty = state["recommended_difficulty"]

    selection = get_next_question_for_user(
        db,
        user.id,
        subject=subject,
        topic=topic,
        bloom_level=state["recommended_bloom_level"],
        difficulty=difficulty,
        for_review=for_review,
    )
    if not selection:
        return None

    record_question_shown(
        db,
        user.id,
        selection.question.id,
        bloom_level=selection.recommended_bloom_level,
        for_review=selection.is_review,
    )

    logger.info(
        f"Selected question {selection.question.id} for user {user.id}: {selection.selection_reason}"
    )

    return {
        "question": serialize_question(selection.question),
        "selection_reason": selection.selection_reason,
        "is_repeat": selection.is_repeat,
        "is_review": selection.is_review,
        "recommended_bloom_level": selection.recommended_bloom_level,
        "expected_time": selection.question.expected_time or DEFAULT_EXPECTED_TIME,
    }


def _consecutive_failures(progress: TopicProgress) -> int:
    count = 0
    for attempt in reversed(recent_attempts(progress, 10)):
        if attempt.is_correct:
            break
        count += 1
    return count


def _recent_flow_scores(session) -> list[float]:
    if not session:
        return []
    states = (session.flow_states or [])[-RECENT_FLOW_STATES:]
    return [max(0, 100 - abs(s["challenge"] - s["skill"]) * 20) for s in states]


def _attempt_feedback(is_correct: bool, confidence: int) -> str:
    if is_correct and confidence >= 4:
        return "Excellent work! You demonstrated strong understanding."
    if is_correct:
        return "Good job! Keep practicing to build more confidence."
    return "Not quite right, but keep going! Review the explanation and try similar problems."


def process_attempt(
    db: Session,
    user: User,
    question: Question,
    is_correct: bool,
    time_spent: float,
    user_answer: Optional[str] = None,
    hints_used: int = 0,
    chat_interactions: int = 0,
    now: Optional[datetime] = None,
) -> dict:
    """Run an answered question through the full learning pipeline.

    Confidence and quality are inferred from behaviour, the topic's Bloom,
    flow and spaced repetition state are updated, the answer is recorded
    against the question and the active session, and feedback (with a
    break suggestion when the student is struggling) is returned.
    """
    now = now or datetime.utcnow()
    subject = question.subject
    topic = topic_for_question(question)
    bloom_level = question.bloom_level or DEFAULT_BLOOM_LEVEL
    expected_time = question.expected_time or DEFAULT_EXPECTED_TIME
    difficulty = question.difficulty_score or 5

    progress = get_or_create_progress(db, user.id, subject, topic)
    profile = build_learner_profile(db, user, now)

    signals = ConfidenceInput(
        is_correct=is_correct,
        time_spent=time_spent,
        expected_time=expected_time,
        hints_used=hints_used,
        chat_interactions=chat_interactions,
        previous_accuracy=progress.accuracy_rate or 0.0,
        question_difficulty=difficulty,
        student_level=profile.current_level,
        student_type=profile.student_type,
    )
    confidence = calculate_automatic_confidence(signals)
    quality = calculate_quality_score(signals, confidence.confidence)

    skill = estimate_skill_level(
        progress.mastery_level or 0,
        progress.accuracy_rate or 0.0,
        current_bloom_level(progress) or 1,
    )
    flow_state = calculate_flow_state(difficulty, skill)

    add_attempt(
        progress,
        question_id=question.id,
        is_correct=is_correct,
        time_spent=time_spent,
        hints_used=hints_used,
        confidence=confidence.confidence,
        chat_interactions=chat_interactions,
        bloom_level=bloom_level,
        now=now,
    )

    advanced = update_bloom_progress(progress, bloom_level, quality, now=now)
    update_flow_metrics(progress, difficulty, skill, flow_state.flow_zone)

    schedule = calculate_enhanced_sm2(
        quality,
        ease_factor=progress.ease_factor,
        interval=progress.interval,
        repetitions=progress.repetitions,
        flow_score=flow_state.flow_score,
        bloom_level=bloom_level,
        now=now,
    )
    progress.next_review_at = schedule.next_review
    progress.ease_factor = schedule.ease_factor
    progress.interval = schedule.interval
    progress.repetitions = schedule.repetitions
    progress.review_bloom_level = schedule.review_bloom_level
    progress.progressive_challenge = schedule.progressive_challenge
    progress.last_review_bloom_level = bloom_level
    push_quality_history(progress, quality)

    calculate_mastery_level(progress)

    record_question_answered(
        db,
        user.id,
        question.id,
        is_correct=is_correct,
        time_spent=time_spent,
        user_answer=user_answer,
        hints_used=hints_used,
        chat_interactions=chat_interactions,
        calculated_confidence=confidence.confidence,
        bloom_level=bloom_level,
    )
    update_question_statistics(question, is_correct, time_spent)

    adjustment = adjust_for_flow(
        difficulty,
        skill,
        PerformanceMetrics(
            is_correct=is_correct,
            time_spent=time_spent,
            average_time=expected_time,
            hints_used=hints_used,
            recent_accuracy=progress.accuracy_rate,
        ),
    )

    active = session_service.get_active_session(db, user.id)
    if active:
        session_service.record_session_attempt(
            active,
            question_id=question.id,
            subject=subject,
            topic=topic,
            is_correct=is_correct,
            challenge=difficulty,
            skill=skill,
            flow_zone=flow_state.flow_zone,
            bloom_level_reached=bloom_level if advanced else None,
            now=now,
        )

    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to process attempt for user {user.id}: {e}")
        raise

    db.refresh(progress)
    metrics.record_event("attempt")

    break_suggestion = should_suggest_break(
        progress.time_in_anxiety,
        _consecutive_failures(progress),
        _recent_flow_scores(active),
    )
    bloom = progress.bloom_progress or {}

    logger.info(
        f"Processed attempt for user {user.id} on {subject}/{topic}: correct={is_correct}, "
        f"confidence={confidence.confidence}, quality={quality}, zone={flow_state.flow_zone}, "
        f"mastery={progress.mastery_level}"
    )

    return {
        "is_correct": is_correct,
        "calculated_confidence": confidence.confidence,
        "confidence_explanation": confidence.explanation,
        "quality_score": quality,
        "flow_state": {
            "flow_zone": flow_state.flow_zone,
            "flow_score": flow_state.flow_score,
        },
        "next_review_date": schedule.next_review,
        "review_bloom_level": schedule.review_bloom_level,
        "mastery_level": progress.mastery_level,
        "bloom_progress": {
            "current_level": bloom.get("current_level", 0),
            "next_target_level": bloom.get("next_target_level", 1),
            "level_mastery": level_mastery(bloom, bloom_level) if bloom else 0,
            "advanced": advanced,
        },
        "feedback": _attempt_feedback(is_correct, confidence.confidence),
        "should_adjust_difficulty": adjustment.new_difficulty != difficulty,
        "recommended_difficulty": adjustment.new_difficulty,
        "adjustment_reason": adjustment.adjustment_reason,
        "break_suggestion": {
            "should_break": break_suggestion.should_break,
            "break_duration": break_suggestion.break_duration,
            "suggested_activity": break_suggestion.suggested_activity,
            "reason": break_suggestion.reason,
        },
    }


def end_session(db: Session, user: User, now: Optional[datetime] = None) -> dict:
    """End the active session and summarise it.

    With no active session the summary is empty.
    """
    session = session_service.end_session(db, user.id, now=now)
    if not session:
        return {
            "duration": 0,
            "questions_attempted": 0,
            "questions_correct": 0,
            "average_flow_score": 0,
            "bloom_levels_progressed": 0,
            "topics_reviewed": [],
            "recommendations": [],
        }

    metrics.record_event("session_ended")
    new_level = update_learner_profile(
        db,
        user,
        session.questions_attempted or 0,
        session.questions_correct or 0,
        session.average_flow_score or 50,
    )
    recommendations = get_learning_recommendations(db, user, now)

    return {
        "session_id": session.id,
        "duration": session.duration or 0,
        "questions_attempted": session.questions_attempted or 0,
        "questions_correct": session.questions_correct or 0,
        "average_flow_score": session.average_flow_score or 0,
        "flow_percentage": session.flow_percentage or 0,
        "bloom_levels_progressed": len(session.bloom_levels_progressed or []),
        "topics_reviewed": session.topics_covered or [],
        "topics_needing_work": session.topics_needing_work or [],
        "new_student_level": new_level,
        "recommendations": recommendations["flow_optimizations"],
    }


def process_explanation(
    db: Session,
    user: User,
    topic: str,
    explanation: str,
    subject: Optional[str] = None,
    question_id: Optional[str] = None,
    key_points: Optional[list[str]] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Evaluate a Feynman explanation and store it.

    Each new explanation of a topic is a refinement of the previous one;
    the iteration number drives which refinement prompts are returned.
    """
    now = now or datetime.utcnow()
    evaluation = evaluate_explanation(explanation, topic, key_points)

    previous = (
        db.query(LearnerExplanation)
        .filter_by(user_id=user.id, topic=topic)
        .order_by(LearnerExplanation.created_at.desc())
        .first()
    )
    iteration = previous.iteration + 1 if previous else 1
    prompts = generate_refinement_prompts(evaluation, iteration)

    query = db.query(TopicProgress).filter_by(user_id=user.id, topic=topic)
    if subject:
        query = query.filter_by(subject=subject)
    progress = query.first()

    record = LearnerExplanation(
        user_id=user.id,
        topic=topic,
        progress_id=progress.id if progress else None,
        question_id=question_id,
        previous_explanation_id=previous.id if previous else None,
        explanation=explanation,
        clarity=evaluation.clarity,
        completeness=evaluation.completeness,
        accuracy=evaluation.accuracy,
        bloom_level=evaluation.bloom_level,
        evaluation=evaluation.to_dict(),
        iteration=iteration,
        created_at=now,
    )
    db.add(record)

    if progress:
        progress.explanation_clarity = evaluation.clarity
        progress.explanation_completeness = evaluation.completeness
        progress.last_explanation_at = now

    active = session_service.get_active_session(db, user.id)
    if active:
        session_service.record_session_explanation(active, topic)

    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to save explanation for user {user.id}: {e}")
        raise

    metrics.record_event("explanation")
    logger.info(
        f"Evaluated explanation {iteration} of {topic} for user {user.id}: "
        f"clarity={evaluation.clarity}, completeness={evaluation.completeness}, "
        f"accuracy={evaluation.accuracy}"
    )

    return {
        "explanation_id": record.id,
        "iteration": iteration,
        "evaluation": evaluation.to_dict(),
        "should_refine": evaluation.should_refine,
        "refinement_prompts": prompts["prompts"],
        "focus_area": prompts["focus_area"],
        "bloom_level_demonstrated": evaluation.bloom_level,
    }
