"""Database package for the SAT prep learning engine."""

from .models import (
    Base,
    User,
    Question,
    UserQuestion,
    TopicProgress,
    QuestionAttempt,
    LearnerExplanation,
    LearningSession,
)
from .connection import (
    init_database,
    get_db,
    get_db_dependency,
    SessionLocal,
    engine,
)

__all__ = [
    "Base",
    "User",
    "Question",
    "UserQuestion",
    "TopicProgress",
    "QuestionAttempt",
    "LearnerExplanation",
    "LearningSession",
    "init_database",
    "get_db",
    "get_db_dependency",
    "SessionLocal",
    "engine",
]
