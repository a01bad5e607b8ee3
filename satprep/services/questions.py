"""Question bank management."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..database.models import DIFFICULTIES, DIFFICULTY_SCORES, SUBJECTS, Question
from .bloom import determine_bloom_level

logger = logging.getLogger(__name__)

VALID_ANSWERS = ("A", "B", "C", "D")


def create_question(
    db: Session,
    subject: str,
    difficulty: str,
    question_text: str,
    options: list[str],
    correct_answer: str,
    explanation: str,
    topic: Optional[str] = None,
    tags: Optional[list[str]] = None,
    bloom_level: Optional[int] = None,
    difficulty_score: Optional[int] = None,
    expected_time: int = 90,
) -> Question:
    """Add a question to the bank.

    Questions without an explicit Bloom level are auto-tagged from their
    wording. topic defaults to the first tag.

    Raises:
        ValueError: If any field is invalid or out of range
    """
    if subject not in SUBJECTS:
        raise ValueError(f"Unknown subject: {subject}")
    if difficulty not in DIFFICULTIES:
        raise ValueError(f"Unknown difficulty: {difficulty}")
    if len(options) != 4:
        raise ValueError("Questions need exactly 4 options")
    correct_answer = correct_answer.upper()
    if correct_answer not in VALID_ANSWERS:
        raise ValueError("correct_answer must be one of A, B, C, D")
    if bloom_level is not None and not 1 <= bloom_level <= 6:
        raise ValueError("bloom_level must be between 1 and 6")
    if difficulty_score is not None and not 1 <= difficulty_score <= 10:
        raise ValueError("difficulty_score must be between 1 and 10")

    tags = list(tags or [])
    if topic is None and tags:
        topic = tags[0]
    if topic and topic not in tags:
        tags.insert(0, topic)

    if bloom_level is None:
        bloom_level = determine_bloom_level(question_text, explanation, difficulty)

    question = Question(
        subject=subject,
        difficulty=difficulty,
        difficulty_score=difficulty_score if difficulty_score is not None else DIFFICULTY_SCORES[difficulty],
        question_text=question_text,
        options=list(options),
        correct_answer=correct_answer,
        explanation=explanation,
        topic=topic,
        tags=tags,
        bloom_level=bloom_level,
        expected_time=expected_time,
        times_used=0,
        average_accuracy=0.0,
        average_time_spent=0.0,
    )
    db.add(question)
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create {subject} question: {e}")
        raise
    db.refresh(question)

    logger.info(f"Created {difficulty} {subject} question {question.id} (bloom={bloom_level})")
    return question


def list_questions(
    db: Session,
    subject: Optional[str] = None,
    difficulty: Optional[str] = None,
    topic: Optional[str] = None,
    limit: int = 20,
) -> list[Question]:
    query = db.query(Question)
    if subject:
        query = query.filter(Question.subject == subject)
    if difficulty:
        query = query.filter(Question.difficulty == difficulty)
    if topic:
        query = query.filter(Question.topic == topic)
    return query.order_by(Question.times_used.asc()).limit(limit).all()


def topic_for_question(question: Question) -> str:
    """Topic a question's attempts are tracked under."""
    return question.topic or (question.tags[0] if question.tags else question.subject)


def serialize_question(question: Question, include_answer: bool = False) -> dict:
    data = {
        "id": question.id,
        "subject": question.subject,
        "difficulty": question.difficulty,
        "difficulty_score": question.difficulty_score,
        "question_text": question.question_text,
        "options": question.options,
        "topic": question.topic,
        "tags": question.tags or [],
        "bloom_level": question.bloom_level,
        "expected_time": question.expected_time,
        "times_used": question.times_used,
        "average_accuracy": question.average_accuracy,
        "average_time_spent": question.average_time_spent,
    }
    if include_answer:
        data["correct_answer"] = question.correct_answer
        data["explanation"] = question.explanation
    return data
