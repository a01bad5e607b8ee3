"""SAT Prep adaptive learning API

FastAPI application with:
- JWT authentication (register, login, current user)
- Question bank management
- Attempt recording with SM-2 review scheduling
- Adaptive learning sessions: flow tracking, Bloom progression,
  automatic confidence, Feynman explanations
- Intelligent topic selection
- Rate limiting, monitoring and health checks
"""

import logging
import os
import time
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends, Request, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from dotenv import load_dotenv

load_dotenv()

from .database import (
    init_database,
    get_db_dependency,
    Question,
    TopicProgress,
    User,
)
from .database.models import SESSION_TYPES, SUBJECTS
from .auth import (
    get_current_user,
    create_access_token,
    register_user,
    authenticate_user,
)
from .rate_limit import limiter
from .services.monitoring import metrics, normalize_path
from .services.questions import create_question, list_questions, serialize_question
from .services.progress import (
    record_attempt,
    get_review_schedule,
    get_topic_progress,
    get_all_progress,
    get_analytics,
    serialize_progress,
)
from .services.learner_model import build_learner_profile, get_learning_recommendations
from .services.mastery import current_bloom_level
from .services.spaced_repetition import get_review_strategy
from .services.topic_selector import select_topic, get_all_topics
from .services import orchestrator

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# Initialize database on startup
init_database()

app = FastAPI(
    title="SAT Prep Learning Engine",
    description="Adaptive learning engine with spaced repetition, flow tracking and Bloom progression",
    version=VERSION,
)

CORS_ORIGINS = os.environ.get(
    "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
).split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in CORS_ORIGINS if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Collect request metrics for every HTTP request."""
    metrics.increment_active()
    start_time = time.time()
    try:
        response = await call_next(request)
        duration = time.time() - start_time
        path = normalize_path(request.url.path)
        metrics.record_request(request.method, path, response.status_code, duration)
        return response
    finally:
        metrics.decrement_active()


# ============== Pydantic Models ==============


class RegisterRequest(BaseModel):
    email: str
    password: str
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class QuestionCreate(BaseModel):
    subject: str
    difficulty: str = "medium"
    question_text: str
    options: list[str]
    correct_answer: str
    explanation: str
    topic: Optional[str] = None
    tags: list[str] = []
    bloom_level: Optional[int] = None
    difficulty_score: Optional[int] = None
    expected_time: int = 90


class AttemptRequest(BaseModel):
    question_id: str
    user_answer: str
    time_spent: float  # seconds
    hints_used: int = 0
    confidence: int = 3  # 1-5
    chat_interactions: int = 0


class SessionStartRequest(BaseModel):
    session_type: str = "study"


class LearningAttemptRequest(BaseModel):
    question_id: str
    user_answer: str
    time_spent: float  # seconds
    hints_used: int = 0
    chat_interactions: int = 0


class ExplanationRequest(BaseModel):
    topic: str
    explanation: str
    subject: Optional[str] = None
    question_id: Optional[str] = None
    key_points: Optional[list[str]] = None


# ============== Helper Functions ==============


def get_question_or_404(question_id: str, db: Session) -> Question:
    question = db.query(Question).filter(Question.id == question_id).first()
    if not question:
        raise HTTPException(status_code=404, detail="Question not found")
    return question


def get_progress_or_404(user_id: str, subject: str, topic: str, db: Session) -> TopicProgress:
    progress = (
        db.query(TopicProgress)
        .filter_by(user_id=user_id, subject=subject, topic=topic)
        .first()
    )
    if not progress:
        raise HTTPException(status_code=404, detail="No progress recorded for this topic")
    return progress


def validate_subject(subject: str) -> str:
    subject = subject.lower()
    if subject not in SUBJECTS:
        raise HTTPException(status_code=400, detail=f"Unknown subject: {subject}")
    return subject


def validate_attempt_signals(time_spent: float, hints_used: int, chat_interactions: int):
    if time_spent < 0:
        raise HTTPException(status_code=400, detail="time_spent must not be negative")
    if hints_used < 0 or chat_interactions < 0:
        raise HTTPException(status_code=400, detail="Counts must not be negative")


def is_correct_answer(question: Question, user_answer: str) -> bool:
    return user_answer.strip().upper() == question.correct_answer


# ============== Authentication Endpoints ==============


@app.post("/api/auth/register")
@limiter.limit("5/minute")
def register(
    request_obj: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db_dependency),
):
    """Register a learner account and return a token."""
    try:
        user = register_user(db, request_obj.email, request_obj.password, request_obj.name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {
        "access_token": create_access_token(user.id, user.email),
        "token_type": "bearer",
        "user_id": user.id,
        "email": user.email,
    }


@app.post("/api/auth/login")
@limiter.limit("10/minute")
def login(
    request_obj: LoginRequest,
    request: Request,
    db: Session = Depends(get_db_dependency),
):
    """Authenticate and return a token."""
    user = authenticate_user(db, request_obj.email, request_obj.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return {
        "access_token": create_access_token(user.id, user.email),
        "token_type": "bearer",
        "user_id": user.id,
        "email": user.email,
    }


@app.get("/api/auth/me")
def get_me(
    current_user: User = Depends(get_current_user),
):
    """Get the current user's profile."""
    return {
        "user_id": current_user.id,
        "email": current_user.email,
        "name": current_user.name,
        "current_level": current_user.current_level,
        "auto_adjust": current_user.auto_adjust,
        "adjustment_speed": current_user.adjustment_speed,
        "created_at": current_user.created_at.isoformat() if current_user.created_at else None,
    }


# ============== Question Endpoints ==============


@app.post("/api/questions")
def add_question(
    request_obj: QuestionCreate,
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    """Add a question to the bank."""
    try:
        question = create_question(
            db,
            subject=request_obj.subject.lower(),
            difficulty=request_obj.difficulty.lower(),
            question_text=request_obj.question_text,
            options=request_obj.options,
            correct_answer=request_obj.correct_answer,
            explanation=request_obj.explanation,
            topic=request_obj.topic,
            tags=request_obj.tags,
            bloom_level=request_obj.bloom_level,
            difficulty_score=request_obj.difficulty_score,
            expected_time=request_obj.expected_time,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return serialize_question(question, include_answer=True)


@app.get("/api/questions")
def get_questions(
    subject: Optional[str] = None,
    difficulty: Optional[str] = None,
    topic: Optional[str] = None,
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    """List questions, least used first. Answers are not included."""
    questions = list_questions(db, subject, difficulty, topic, limit)
    return {"questions": [serialize_question(q) for q in questions]}


@app.get("/api/questions/{question_id}")
def get_question(
    question_id: str,
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    return serialize_question(get_question_or_404(question_id, db))


# ============== Progress Endpoints ==============


@app.post("/api/progress/attempt")
@limiter.limit("60/minute")
def submit_attempt(
    request_obj: AttemptRequest,
    request: Request,
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    """Record an answer with self-reported confidence and reschedule the topic."""
    question = get_question_or_404(request_obj.question_id, db)
    validate_attempt_signals(
        request_obj.time_spent, request_obj.hints_used, request_obj.chat_interactions
    )
    if not 1 <= request_obj.confidence <= 5:
        raise HTTPException(status_code=400, detail="Confidence must be 1-5")

    is_correct = is_correct_answer(question, request_obj.user_answer)
    result = record_attempt(
        db,
        current_user,
        question,
        is_correct=is_correct,
        time_spent=request_obj.time_spent,
        hints_used=request_obj.hints_used,
        confidence=request_obj.confidence,
        chat_interactions=request_obj.chat_interactions,
    )

    return {
        "is_correct": is_correct,
        "correct_answer": question.correct_answer,
        "explanation": question.explanation,
        "quality": result["quality"],
        "next_review": result["next_review"],
        "mastery_level": result["mastery_level"],
        "new_student_level": result["new_student_level"],
        "progress": serialize_progress(result["progress"]),
    }


@app.get("/api/progress/schedule")
def review_schedule(
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    """Topics grouped into overdue, due now and upcoming reviews."""
    return get_review_schedule(db, current_user)


@app.get("/api/progress/topic/{subject}/{topic}")
def topic_progress(
    subject: str,
    topic: str,
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    data = get_topic_progress(db, current_user, validate_subject(subject), topic)
    if data is None:
        raise HTTPException(status_code=404, detail="No progress recorded for this topic")
    return data


@app.get("/api/progress/all")
def all_progress(
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    records = get_all_progress(db, current_user)
    return {"progress": [serialize_progress(p) for p in records]}


@app.get("/api/progress/analytics")
def progress_analytics(
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    return get_analytics(db, current_user)


# ============== Learning Endpoints ==============


@app.get("/api/learning/state")
def learner_state(
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    return orchestrator.get_learner_state(db, current_user)


@app.get("/api/learning/profile")
def learner_profile(
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    return build_learner_profile(db, current_user).to_dict()


@app.get("/api/learning/recommendations")
def learning_recommendations(
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    return get_learning_recommendations(db, current_user)


@app.post("/api/learning/session/start")
def start_learning_session(
    request_obj: SessionStartRequest,
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    """Start a learning session, ending any session left open."""
    if request_obj.session_type not in SESSION_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"session_type must be one of: {', '.join(SESSION_TYPES)}",
        )
    return orchestrator.start_session(db, current_user, request_obj.session_type)


@app.post("/api/learning/session/end")
def end_learning_session(
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    """End the active session and return its summary."""
    return orchestrator.end_session(db, current_user)


@app.get("/api/learning/question")
def next_question(
    subject: Optional[str] = None,
    topic: Optional[str] = None,
    for_review: bool = False,
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    """Next question at the learner's recommended difficulty and Bloom level."""
    if subject:
        subject = validate_subject(subject)

    selection = orchestrator.get_next_question(db, current_user, subject, topic, for_review)
    if not selection:
        raise HTTPException(status_code=404, detail="No questions available")
    return selection


@app.post("/api/learning/attempt")
@limiter.limit("60/minute")
def learning_attempt(
    request_obj: LearningAttemptRequest,
    request: Request,
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    """Run an answer through the adaptive pipeline.

    Confidence is inferred from time, hints and chat use rather than
    self-reported.
    """
    question = get_question_or_404(request_obj.question_id, db)
    validate_attempt_signals(
        request_obj.time_spent, request_obj.hints_used, request_obj.chat_interactions
    )

    result = orchestrator.process_attempt(
        db,
        current_user,
        question,
        is_correct=is_correct_answer(question, request_obj.user_answer),
        time_spent=request_obj.time_spent,
        user_answer=request_obj.user_answer.strip().upper(),
        hints_used=request_obj.hints_used,
        chat_interactions=request_obj.chat_interactions,
    )
    result["correct_answer"] = question.correct_answer
    result["explanation"] = question.explanation
    return result


@app.post("/api/learning/explain")
def submit_explanation(
    request_obj: ExplanationRequest,
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    """Evaluate a Feynman-technique explanation."""
    if not request_obj.explanation.strip():
        raise HTTPException(status_code=400, detail="Explanation must not be empty")
    subject = validate_subject(request_obj.subject) if request_obj.subject else None

    return orchestrator.process_explanation(
        db,
        current_user,
        topic=request_obj.topic,
        explanation=request_obj.explanation,
        subject=subject,
        question_id=request_obj.question_id,
        key_points=request_obj.key_points,
    )


@app.get("/api/learning/topic/{subject}")
def recommended_topic(
    subject: str,
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    """Pick the best topic to study next in a subject."""
    subject = validate_subject(subject)
    result = select_topic(db, current_user, subject)
    return {"selection": result.to_dict(), "all_topics": get_all_topics(subject)}


@app.get("/api/learning/review-strategy/{subject}/{topic}")
def review_strategy(
    subject: str,
    topic: str,
    db: Session = Depends(get_db_dependency),
    current_user: User = Depends(get_current_user),
):
    progress = get_progress_or_404(current_user.id, validate_subject(subject), topic, db)
    strategy = get_review_strategy(
        progress.mastery_level,
        current_bloom_level(progress) or 1,
        progress.repetitions,
        progress.flow_score,
    )
    strategy["topic"] = topic
    strategy["subject"] = progress.subject
    return strategy


# ============== Health Check & Monitoring ==============


@app.get("/api/health")
def health_check():
    """Health check with database status."""
    from sqlalchemy import text as sa_text

    checks = {"api": "healthy"}

    try:
        from .database.connection import engine
        with engine.connect() as conn:
            conn.execute(sa_text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {str(e)}"

    overall = "healthy" if all(v == "healthy" for v in checks.values()) else "degraded"

    return {
        "status": overall,
        "version": VERSION,
        "timestamp": datetime.utcnow().isoformat(),
        "checks": checks,
    }


@app.get("/api/metrics")
def get_metrics():
    """Prometheus-compatible metrics endpoint."""
    return PlainTextResponse(
        content=metrics.to_prometheus(),
        media_type="text/plain; version=0.0.4",
    )
