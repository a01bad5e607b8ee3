"""Question selection with repeat logic.

Selection order:
1. Spaced repetition review questions (when a review is requested)
2. Questions the student has never seen, least-used first
3. Seen questions whose 30-day repeat window has passed
4. Last resort: the weakest question from the student's history
   (incorrect first, then lowest confidence, oldest, least seen)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..database.models import Question, TopicProgress, UserQuestion
from .flow_engine import estimate_skill_level
from .mastery import current_bloom_level

logger = logging.getLogger(__name__)

MIN_DAYS_BEFORE_REPEAT = 30
DEFAULT_BLOOM_LEVEL = 3
FALLBACK_HISTORY_LIMIT = 20


@dataclass
class SelectedQuestion:
    question: Question
    selection_reason: str
    is_repeat: bool
    is_review: bool
    recommended_bloom_level: int


def _filter_question_query(query, subject, topic, difficulty=None):
    if subject:
        query = query.filter(Question.subject == subject)
    if topic:
        query = query.filter(Question.topic == topic)
    if difficulty:
        query = query.filter(Question.difficulty == difficulty)
    return query


def get_review_questions(
    db: Session, user_id: str, subject: Optional[str] = None, now: Optional[datetime] = None
) -> list[Question]:
    """Answered, repeatable questions from topics whose review is due.

    Questions already used for a review are skipped. Questions answered
    incorrectly come first.
    """
    now = now or datetime.utcnow()

    query = db.query(TopicProgress).filter(
        TopicProgress.user_id == user_id,
        TopicProgress.next_review_at <= now,
    )
    if subject:
        query = query.filter(TopicProgress.subject == subject)
    due = query.order_by(TopicProgress.next_review_at.asc()).limit(5).all()
    if not due:
        return []

    topics = {p.topic for p in due}
    subjects = {p.subject for p in due}

    return (
        db.query(Question)
        .join(UserQuestion, UserQuestion.question_id == Question.id)
        .filter(
            UserQuestion.user_id == user_id,
            UserQuestion.answered.is_(True),
            UserQuestion.can_repeat_after <= now,
            UserQuestion.used_for_review.is_(False),
            Question.topic.in_(topics),
            Question.subject.in_(subjects),
        )
        .order_by(UserQuestion.is_correct.asc())
        .limit(5)
        .all()
    )


def find_unseen_questions(
    db: Session,
    user_id: str,
    subject: Optional[str] = None,
    topic: Optional[str] = None,
    difficulty: Optional[str] = None,
    exclude_ids: Optional[list[str]] = None,
    limit: int = 5,
) -> list[Question]:
    seen = select(UserQuestion.question_id).where(UserQuestion.user_id == user_id)
    query = db.query(Question).filter(~Question.id.in_(seen))
    if exclude_ids:
        query = query.filter(~Question.id.in_(exclude_ids))
    query = _filter_question_query(query, subject, topic, difficulty)
    return query.order_by(Question.times_used.asc()).limit(limit).all()


def get_repeatable_questions(
    db: Session,
    user_id: str,
    subject: Optional[str] = None,
    topic: Optional[str] = None,
    difficulty: Optional[str] = None,
    exclude_ids: Optional[list[str]] = None,
    limit: int = 5,
    now: Optional[datetime] = None,
) -> list[Question]:
    """Answered questions whose repeat window has passed."""
    now = now or datetime.utcnow()
    repeatable = select(UserQuestion.question_id).where(
        UserQuestion.user_id == user_id,
        UserQuestion.answered.is_(True),
        UserQuestion.can_repeat_after <= now,
    )
    query = db.query(Question).filter(Question.id.in_(repeatable))
    if exclude_ids:
        query = query.filter(~Question.id.in_(exclude_ids))
    query = _filter_question_query(query, subject, topic, difficulty)
    return query.order_by(Question.times_used.asc()).limit(limit).all()


def get_fallback_question(
    db: Session,
    user_id: str,
    subject: Optional[str] = None,
    topic: Optional[str] = None,
    bloom_level: int = DEFAULT_BLOOM_LEVEL,
    exclude_ids: Optional[list[str]] = None,
) -> Optional[SelectedQuestion]:
    """Pick the weakest question from the student's history."""
    query = db.query(UserQuestion).filter(UserQuestion.user_id == user_id)
    if exclude_ids:
        query = query.filter(~UserQuestion.question_id.in_(exclude_ids))

    history = sorted(
        query.all(),
        key=lambda uq: (
            bool(uq.is_correct),
            uq.calculated_confidence or 0,
            uq.shown_at or datetime.min,
            uq.times_seen or 0,
        ),
    )[:FALLBACK_HISTORY_LIMIT]

    for user_question in history:
        question = user_question.question
        if subject and question.subject != subject:
            continue
        if topic and question.topic != topic:
            continue

        if not user_question.is_correct:
            reason = "Practicing a challenging concept"
        elif not user_question.calculated_confidence:
            reason = "Building confidence on this topic"
        else:
            reason = "Reinforcing previous learning"

        current = question.bloom_level or bloom_level
        recommended = min(6, current + 1) if user_question.is_correct else current

        return SelectedQuestion(
            question=question,
            selection_reason=reason,
            is_repeat=True,
            is_review=True,
            recommended_bloom_level=recommended,
        )

    return None


def get_next_question_for_user(
    db: Session,
    user_id: str,
    subject: Optional[str] = None,
    topic: Optional[str] = None,
    bloom_level: int = DEFAULT_BLOOM_LEVEL,
    difficulty: Optional[str] = None,
    exclude_ids: Optional[list[str]] = None,
    for_review: bool = False,
) -> Optional[SelectedQuestion]:
    """Select the next question for a student.

    Returns:
        SelectedQuestion, or None when the bank has nothing for the
        requested subject/topic
    """
    exclude_ids = list(exclude_ids or [])

    if for_review:
        review = get_review_questions(db, user_id, subject)
        if review:
            return SelectedQuestion(
                question=review[0],
                selection_reason="Spaced repetition review due",
                is_repeat=True,
                is_review=True,
                recommended_bloom_level=bloom_level,
            )

    unseen = find_unseen_questions(db, user_id, subject, topic, difficulty, exclude_ids)
    if unseen:
        question = unseen[0]
        return SelectedQuestion(
            question=question,
            selection_reason="New question for this topic",
            is_repeat=False,
            is_review=False,
            recommended_bloom_level=question.bloom_level or bloom_level,
        )

    repeatable = get_repeatable_questions(db, user_id, subject, topic, difficulty, exclude_ids)
    if repeatable:
        question = repeatable[0]
        return SelectedQuestion(
            question=question,
            selection_reason="Reviewing question from earlier study",
            is_repeat=True,
            is_review=False,
            recommended_bloom_level=min(6, (question.bloom_level or bloom_level) + 1),
        )

    fallback = get_fallback_question(db, user_id, subject, topic, bloom_level, exclude_ids)
    if fallback:
        logger.info(f"All questions seen recently for user {user_id}, using history fallback")
        return fallback

    logger.info(f"No questions available for user {user_id} (subject={subject}, topic={topic})")
    return None


def record_question_shown(
    db: Session,
    user_id: str,
    question_id: str,
    bloom_level: Optional[int] = None,
    for_review: bool = False,
    now: Optional[datetime] = None,
) -> UserQuestion:
    """Record that a question was shown, restarting its repeat window."""
    now = now or datetime.utcnow()
    repeat_after = now + timedelta(days=MIN_DAYS_BEFORE_REPEAT)

    record = (
        db.query(UserQuestion)
        .filter_by(user_id=user_id, question_id=question_id)
        .first()
    )
    if record:
        record.times_seen = (record.times_seen or 0) + 1
        record.shown_at = now
        record.can_repeat_after = repeat_after
        record.last_review_date = now
    else:
        record = UserQuestion(
            user_id=user_id,
            question_id=question_id,
            shown_at=now,
            answered=False,
            times_seen=1,
            can_repeat_after=repeat_after,
            used_for_review=False,
            bloom_level=bloom_level,
        )
        db.add(record)

    if for_review:
        record.used_for_review = True

    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to record question {question_id} shown to user {user_id}: {e}")
        raise
    return record


def record_question_answered(
    db: Session,
    user_id: str,
    question_id: str,
    is_correct: bool,
    time_spent: float,
    user_answer: Optional[str] = None,
    hints_used: int = 0,
    chat_interactions: int = 0,
    calculated_confidence: Optional[int] = None,
    bloom_level: Optional[int] = None,
) -> UserQuestion:
    """Store the answer on the user/question record.

    Answers to questions that were never recorded as shown create the
    record on the fly. The caller commits.
    """
    record = (
        db.query(UserQuestion)
        .filter_by(user_id=user_id, question_id=question_id)
        .first()
    )
    if not record:
        now = datetime.utcnow()
        record = UserQuestion(
            user_id=user_id,
            question_id=question_id,
            shown_at=now,
            times_seen=1,
            can_repeat_after=now + timedelta(days=MIN_DAYS_BEFORE_REPEAT),
            used_for_review=False,
        )
        db.add(record)

    record.answered = True
    record.is_correct = is_correct
    record.user_answer = user_answer
    record.time_spent = time_spent
    record.hints_used = hints_used
    record.chat_interactions = chat_interactions
    record.calculated_confidence = calculated_confidence
    if bloom_level is not None:
        record.bloom_level = bloom_level
    return record


def get_optimal_difficulty(
    db: Session, user_id: str, subject: Optional[str] = None, topic: Optional[str] = None
) -> str:
    """Difficulty label matching the student's estimated skill."""
    query = db.query(TopicProgress).filter(TopicProgress.user_id == user_id)
    if subject:
        query = query.filter(TopicProgress.subject == subject)
    if topic:
        query = query.filter(TopicProgress.topic == topic)
    progress = query.order_by(TopicProgress.last_attempt_at.desc()).first()

    if not progress:
        return "medium"

    skill = estimate_skill_level(
        progress.mastery_level,
        progress.accuracy_rate,
        current_bloom_level(progress) or 1,
    )
    if skill <= 3:
        return "easy"
    if skill <= 7:
        return "medium"
    return "hard"
