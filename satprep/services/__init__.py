"""Services module for the SAT prep learning engine."""

from .spaced_repetition import (
    calculate_sm2,
    calculate_enhanced_sm2,
    get_review_strategy,
    SM2Result,
    EnhancedSM2Result,
)
from .monitoring import metrics, normalize_path
from .questions import create_question, list_questions, serialize_question
from .progress import (
    record_attempt,
    get_review_schedule,
    get_topic_progress,
    get_all_progress,
    get_analytics,
    serialize_progress,
)
from .learner_model import build_learner_profile, get_learning_recommendations
from .topic_selector import select_topic, get_all_topics
from .orchestrator import (
    get_learner_state,
    start_session,
    get_next_question,
    process_attempt,
    end_session,
    process_explanation,
)

__all__ = [
    "calculate_sm2",
    "calculate_enhanced_sm2",
    "get_review_strategy",
    "SM2Result",
    "EnhancedSM2Result",
    "metrics",
    "normalize_path",
    "create_question",
    "list_questions",
    "serialize_question",
    "record_attempt",
    "get_review_schedule",
    "get_topic_progress",
    "get_all_progress",
    "get_analytics",
    "serialize_progress",
    "build_learner_profile",
    "get_learning_recommendations",
    "select_topic",
    "get_all_topics",
    # Learning pipeline
    "get_learner_state",
    "start_session",
    "get_next_question",
    "process_attempt",
    "end_session",
    "process_explanation",
]
