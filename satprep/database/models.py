"""SQLAlchemy models for the SAT prep adaptive learning engine.

Each learner owns:
- A learning profile (current level 1-10, auto-adjust settings)
- Per-topic progress records with spaced repetition state, Bloom
  taxonomy progress, Feynman explanation quality and flow metrics
- A history of questions shown and answered
- Learning sessions with flow-state timelines
"""

from datetime import datetime
import uuid
from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    DateTime,
    JSON,
    ForeignKey,
    Text,
    Boolean,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

SUBJECTS = ("math", "reading", "writing")
DIFFICULTIES = ("easy", "medium", "hard")
SESSION_TYPES = ("study", "review", "practice", "mixed")
FLOW_ZONES = ("boredom", "flow", "anxiety")

# Default difficulty score (1-10) for each difficulty label
DIFFICULTY_SCORES = {"easy": 3, "medium": 6, "hard": 9}


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid.uuid4())


class User(Base):
    """Learner account with an adaptive learning profile.

    current_level is the student's skill estimate on a 1-10 scale. It is
    nudged by adaptive_difficulty after each recorded attempt when
    auto_adjust is on; adjustment_speed (1-5) scales the step size.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(200), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Learning profile
    current_level = Column(Float, default=5.0)
    preferred_difficulty = Column(String(10), nullable=True)
    auto_adjust = Column(Boolean, default=True)
    adjustment_speed = Column(Integer, default=3)
    learning_style = Column(String(30), nullable=True)

    # Relationships
    progress_records = relationship(
        "TopicProgress", back_populates="user", cascade="all, delete-orphan"
    )
    sessions = relationship(
        "LearningSession", back_populates="user", cascade="all, delete-orphan"
    )


class Question(Base):
    """A multiple-choice SAT question.

    topic is the primary tag used to group attempts into progress
    records; questions without one roll up under their subject.
    """

    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    subject = Column(String(20), nullable=False)
    difficulty = Column(String(10), nullable=False, default="medium")
    difficulty_score = Column(Integer, nullable=False, default=6)
    question_text = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # ["A) ...", "B) ...", "C) ...", "D) ..."]
    correct_answer = Column(String(1), nullable=False)
    explanation = Column(Text, nullable=False)
    topic = Column(String(200), nullable=True)
    tags = Column(JSON, default=list)
    bloom_level = Column(Integer, nullable=True)
    expected_time = Column(Integer, default=90)  # seconds
    generated_by = Column(String(20), default="manual")
    created_at = Column(DateTime, default=datetime.utcnow)

    # Usage statistics
    times_used = Column(Integer, default=0)
    average_accuracy = Column(Float, default=0.0)
    average_time_spent = Column(Float, default=0.0)

    __table_args__ = (
        Index("ix_questions_subject_difficulty", "subject", "difficulty"),
        Index("ix_questions_subject_topic", "subject", "topic"),
    )


class UserQuestion(Base):
    """Tracks a question shown to a learner and how they answered it."""

    __tablename__ = "user_questions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    question_id = Column(String(36), ForeignKey("questions.id"), nullable=False)
    shown_at = Column(DateTime, default=datetime.utcnow)
    answered = Column(Boolean, default=False)
    is_correct = Column(Boolean, nullable=True)
    user_answer = Column(String(1), nullable=True)
    time_spent = Column(Float, nullable=True)

    # Repeat tracking
    times_seen = Column(Integer, default=1)
    last_review_date = Column(DateTime, nullable=True)
    can_repeat_after = Column(DateTime, nullable=True)
    used_for_review = Column(Boolean, default=False)

    # Answer signals
    hints_used = Column(Integer, default=0)
    chat_interactions = Column(Integer, default=0)
    calculated_confidence = Column(Integer, nullable=True)
    bloom_level = Column(Integer, nullable=True)

    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint("user_id", "question_id", name="uq_user_question"),
        Index("ix_user_questions_user_answered", "user_id", "answered"),
    )


class TopicProgress(Base):
    """Per-user, per-topic learning state.

    Performance counters and SM-2 state are plain columns. Bloom taxonomy
    progress is a JSON document keyed by level name:

        {"remember": {"attempts": 0, "mastery": 0, "last_attempt": None},
         ...,
         "current_level": 0, "next_target_level": 1}
    """

    __tablename__ = "topic_progress"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    subject = Column(String(20), nullable=False)
    topic = Column(String(200), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Performance
    total_attempts = Column(Integer, default=0)
    correct_attempts = Column(Integer, default=0)
    accuracy_rate = Column(Float, default=0.0)
    average_time_spent = Column(Float, default=0.0)
    last_attempt_at = Column(DateTime, nullable=True)
    next_review_at = Column(DateTime, nullable=True)
    mastery_level = Column(Integer, default=0)  # 0-100

    # SM-2 state
    ease_factor = Column(Float, default=2.5)
    interval = Column(Integer, default=0)  # days
    repetitions = Column(Integer, default=0)
    quality_history = Column(JSON, default=list)  # last 10 quality scores
    review_bloom_level = Column(Integer, default=1)
    progressive_challenge = Column(Boolean, default=False)
    last_review_bloom_level = Column(Integer, nullable=True)

    # Bloom taxonomy progress
    bloom_progress = Column(JSON, nullable=False)

    # Feynman explanation quality
    explanation_clarity = Column(Integer, default=0)
    explanation_completeness = Column(Integer, default=0)
    last_explanation_at = Column(DateTime, nullable=True)

    # Flow metrics
    average_challenge = Column(Float, default=5.0)
    average_skill = Column(Float, default=5.0)
    time_in_flow = Column(Float, default=0.0)  # minutes
    time_in_boredom = Column(Float, default=0.0)
    time_in_anxiety = Column(Float, default=0.0)
    flow_score = Column(Float, default=50.0)
    last_flow_zone = Column(String(10), nullable=True)
    difficulty_adjustments = Column(Integer, default=0)

    user = relationship("User", back_populates="progress_records")
    attempts = relationship(
        "QuestionAttempt",
        back_populates="progress",
        cascade="all, delete-orphan",
        order_by="QuestionAttempt.attempted_at",
    )
    explanations = relationship(
        "LearnerExplanation",
        back_populates="progress",
        cascade="all, delete-orphan",
        order_by="LearnerExplanation.created_at",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "subject", "topic", name="uq_topic_progress"),
        Index("ix_topic_progress_user_next_review", "user_id", "next_review_at"),
    )


class QuestionAttempt(Base):
    """A single answered question inside a progress record."""

    __tablename__ = "question_attempts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    progress_id = Column(String(36), ForeignKey("topic_progress.id"), nullable=False)
    question_id = Column(String(36), ForeignKey("questions.id"), nullable=False)
    attempted_at = Column(DateTime, default=datetime.utcnow)
    is_correct = Column(Boolean, nullable=False)
    time_spent = Column(Float, nullable=False)  # seconds
    hints_used = Column(Integer, default=0)
    confidence = Column(Integer, default=3)  # 1-5
    chat_interactions = Column(Integer, default=0)
    bloom_level = Column(Integer, nullable=True)

    progress = relationship("TopicProgress", back_populates="attempts")

    __table_args__ = (Index("ix_question_attempts_progress", "progress_id"),)


class LearnerExplanation(Base):
    """A Feynman-technique explanation and its evaluation."""

    __tablename__ = "learner_explanations"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    topic = Column(String(200), nullable=False)
    progress_id = Column(String(36), ForeignKey("topic_progress.id"), nullable=True)
    question_id = Column(String(36), ForeignKey("questions.id"), nullable=True)
    previous_explanation_id = Column(
        String(36), ForeignKey("learner_explanations.id"), nullable=True
    )
    explanation = Column(Text, nullable=False)
    clarity = Column(Integer, default=0)
    completeness = Column(Integer, default=0)
    accuracy = Column(Integer, default=0)
    bloom_level = Column(Integer, default=1)
    evaluation = Column(JSON, default=dict)
    iteration = Column(Integer, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)

    progress = relationship("TopicProgress", back_populates="explanations")

    __table_args__ = (Index("ix_learner_explanations_user_topic", "user_id", "topic"),)


class LearningSession(Base):
    """A study session with its flow-state timeline and outcomes.

    flow_states is a JSON list of
    {"timestamp", "challenge", "skill", "flow_zone", "activity"} dicts.
    """

    __tablename__ = "learning_sessions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    session_type = Column(String(20), default="mixed")
    start_time = Column(DateTime, default=datetime.utcnow)
    end_time = Column(DateTime, nullable=True)
    duration = Column(Float, nullable=True)  # minutes

    subjects = Column(JSON, default=list)
    topics_covered = Column(JSON, default=list)
    topics_needing_work = Column(JSON, default=list)
    question_ids = Column(JSON, default=list)

    flow_states = Column(JSON, default=list)
    current_flow_zone = Column(String(10), nullable=True)

    # Outcomes
    questions_attempted = Column(Integer, default=0)
    questions_correct = Column(Integer, default=0)
    explanations_given = Column(Integer, default=0)
    bloom_levels_progressed = Column(JSON, default=list)
    time_in_flow = Column(Float, default=0.0)
    time_in_boredom = Column(Float, default=0.0)
    time_in_anxiety = Column(Float, default=0.0)
    flow_percentage = Column(Float, default=0.0)
    average_flow_score = Column(Float, nullable=True)

    user = relationship("User", back_populates="sessions")

    __table_args__ = (Index("ix_learning_sessions_user_start", "user_id", "start_time"),)
