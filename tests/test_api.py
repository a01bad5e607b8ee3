"""End-to-end tests for the HTTP API."""

import uuid


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["checks"]["database"] == "healthy"


def test_metrics(client):
    client.get("/api/health")
    response = client.get("/api/metrics")
    assert response.status_code == 200
    assert "satprep_requests_total" in response.text
    assert 'path="/api/health"' in response.text


# ============== Authentication ==============


def test_register_login_and_me(client):
    email = f"learner-{uuid.uuid4().hex[:8]}@example.com"
    registered = client.post(
        "/api/auth/register", json={"email": email, "password": "password123", "name": "Sam"}
    )
    assert registered.status_code == 200
    assert registered.json()["token_type"] == "bearer"

    login = client.post("/api/auth/login", json={"email": email.upper(), "password": "password123"})
    assert login.status_code == 200, "Emails are case-insensitive"

    token = login.json()["access_token"]
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == email
    assert me.json()["current_level"] == 5.0


def test_register_rejects_duplicates_and_weak_passwords(client):
    email = f"learner-{uuid.uuid4().hex[:8]}@example.com"
    assert client.post("/api/auth/register", json={"email": email, "password": "password123"}).status_code == 200
    assert client.post("/api/auth/register", json={"email": email, "password": "password123"}).status_code == 409

    short = client.post(
        "/api/auth/register",
        json={"email": f"other-{uuid.uuid4().hex[:8]}@example.com", "password": "short"},
    )
    assert short.status_code == 400

    bad_email = client.post("/api/auth/register", json={"email": "not-an-email", "password": "password123"})
    assert bad_email.status_code == 400


def test_passwords_are_hashed(client, db):
    from satprep.database import User

    email = f"learner-{uuid.uuid4().hex[:8]}@example.com"
    client.post("/api/auth/register", json={"email": email, "password": "password123"})

    user = db.query(User).filter_by(email=email).first()
    assert user is not None
    assert user.password_hash != "password123"
    assert user.password_hash.startswith("$2")


def test_bad_login(client):
    response = client.post(
        "/api/auth/login", json={"email": "nobody@example.com", "password": "password123"}
    )
    assert response.status_code == 401


def test_endpoints_require_auth(client):
    assert client.get("/api/learning/state").status_code == 401
    assert client.get(
        "/api/progress/all", headers={"Authorization": "Bearer not-a-token"}
    ).status_code == 401


# ============== Questions ==============


def test_create_question_auto_tags_bloom_level(make_question, topic):
    question = make_question(topic)
    assert question["bloom_level"] == 3
    assert question["difficulty_score"] == 6
    assert question["tags"] == [topic]
    assert question["correct_answer"] == "B"


def test_create_question_validation(client, auth_headers, topic):
    payload = {
        "subject": "math",
        "question_text": "What is 2 + 2?",
        "options": ["A) 3", "B) 4", "C) 5", "D) 6"],
        "correct_answer": "E",
        "explanation": "Two plus two is four.",
        "topic": topic,
    }
    assert client.post("/api/questions", json=payload, headers=auth_headers).status_code == 400

    payload["correct_answer"] = "B"
    payload["subject"] = "history"
    assert client.post("/api/questions", json=payload, headers=auth_headers).status_code == 400


def test_create_question_rejects_out_of_range_levels(client, auth_headers, topic):
    payload = {
        "subject": "math",
        "question_text": "What is 2 + 2?",
        "options": ["A) 3", "B) 4", "C) 5", "D) 6"],
        "correct_answer": "B",
        "explanation": "Two plus two is four.",
        "topic": topic,
    }
    for bad in ({"bloom_level": 9}, {"bloom_level": 0}, {"difficulty_score": 11}, {"difficulty_score": 0}):
        response = client.post("/api/questions", json={**payload, **bad}, headers=auth_headers)
        assert response.status_code == 400, bad

    accepted = client.post(
        "/api/questions", json={**payload, "bloom_level": 6, "difficulty_score": 10}, headers=auth_headers
    )
    assert accepted.status_code == 200
    assert accepted.json()["bloom_level"] == 6
    assert accepted.json()["difficulty_score"] == 10


def test_list_questions_hides_answers(client, auth_headers, make_question, topic):
    make_question(topic)
    response = client.get(f"/api/questions?topic={topic}", headers=auth_headers)
    assert response.status_code == 200
    questions = response.json()["questions"]
    assert len(questions) == 1
    assert "correct_answer" not in questions[0]


# ============== Progress ==============


def test_progress_attempt_schedules_review(client, auth_headers, make_question, topic):
    question = make_question(topic)

    response = client.post(
        "/api/progress/attempt",
        json={"question_id": question["id"], "user_answer": "b", "time_spent": 30, "confidence": 5},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["is_correct"] is True
    assert data["quality"] == 5
    assert data["new_student_level"] > 5
    assert data["progress"]["performance"]["interval"] == 1

    schedule = client.get("/api/progress/schedule", headers=auth_headers).json()
    assert [item["topic"] for item in schedule["upcoming"]] == [topic]
    assert schedule["due_now"] == []

    detail = client.get(f"/api/progress/topic/math/{topic}", headers=auth_headers)
    assert detail.status_code == 200
    assert len(detail.json()["recent_attempts"]) == 1

    all_progress = client.get("/api/progress/all", headers=auth_headers).json()
    assert len(all_progress["progress"]) == 1

    analytics = client.get("/api/progress/analytics", headers=auth_headers).json()
    assert analytics["review_schedule"]["upcoming"] == 1

    strategy = client.get(f"/api/learning/review-strategy/math/{topic}", headers=auth_headers)
    assert strategy.status_code == 200
    assert strategy.json()["topic"] == topic
    assert strategy.json()["strategy"] in ("review", "feynman", "practice", "active_recall")


def test_progress_attempt_validation(client, auth_headers, make_question, topic):
    question = make_question(topic)
    base = {"question_id": question["id"], "user_answer": "B", "time_spent": 30}

    assert client.post(
        "/api/progress/attempt", json={**base, "confidence": 7}, headers=auth_headers
    ).status_code == 400
    assert client.post(
        "/api/progress/attempt", json={**base, "time_spent": -1}, headers=auth_headers
    ).status_code == 400
    assert client.post(
        "/api/progress/attempt", json={**base, "question_id": "missing"}, headers=auth_headers
    ).status_code == 404


def test_missing_topic_progress(client, auth_headers, topic):
    assert client.get(f"/api/progress/topic/math/{topic}", headers=auth_headers).status_code == 404
    assert client.get(
        f"/api/learning/review-strategy/math/{topic}", headers=auth_headers
    ).status_code == 404
    assert client.get(f"/api/progress/topic/history/{topic}", headers=auth_headers).status_code == 400


# ============== Learning ==============


def test_learning_session_flow(client, auth_headers, make_question, topic):
    question = make_question(topic)

    started = client.post(
        "/api/learning/session/start", json={"session_type": "study"}, headers=auth_headers
    )
    assert started.status_code == 200
    assert started.json()["session_id"]
    assert started.json()["initial_state"]["recommended_difficulty"] == "medium"

    selection = client.get(
        f"/api/learning/question?subject=math&topic={topic}", headers=auth_headers
    )
    assert selection.status_code == 200
    assert selection.json()["question"]["id"] == question["id"]
    assert selection.json()["is_repeat"] is False
    assert "correct_answer" not in selection.json()["question"]

    attempt = client.post(
        "/api/learning/attempt",
        json={"question_id": question["id"], "user_answer": "B", "time_spent": 45},
        headers=auth_headers,
    )
    assert attempt.status_code == 200
    result = attempt.json()
    assert result["is_correct"] is True
    assert 1 <= result["calculated_confidence"] <= 5
    assert result["quality_score"] >= 3
    assert result["flow_state"]["flow_zone"] in ("flow", "boredom", "anxiety")
    assert result["bloom_progress"]["current_level"] == 0
    assert result["correct_answer"] == "B"

    state = client.get("/api/learning/state", headers=auth_headers).json()
    assert state["session_active"] is True

    first = client.post(
        "/api/learning/explain",
        json={"topic": topic, "explanation": "The coefficient and exponent of the polynomial"},
        headers=auth_headers,
    )
    assert first.status_code == 200
    assert first.json()["iteration"] == 1
    assert first.json()["should_refine"] is True

    second = client.post(
        "/api/learning/explain",
        json={
            "topic": topic,
            "subject": "math",
            "explanation": "It is like a balance. For example, take 3 from both sides. Then check.",
        },
        headers=auth_headers,
    )
    assert second.json()["iteration"] == 2

    summary = client.post("/api/learning/session/end", headers=auth_headers)
    assert summary.status_code == 200
    assert summary.json()["questions_attempted"] == 1
    assert summary.json()["questions_correct"] == 1

    state = client.get("/api/learning/state", headers=auth_headers).json()
    assert state["session_active"] is False


def test_end_without_active_session(client, auth_headers):
    summary = client.post("/api/learning/session/end", headers=auth_headers)
    assert summary.status_code == 200
    assert summary.json()["questions_attempted"] == 0


def test_invalid_session_type(client, auth_headers):
    response = client.post(
        "/api/learning/session/start", json={"session_type": "cram"}, headers=auth_headers
    )
    assert response.status_code == 400


def test_no_question_available(client, auth_headers, topic):
    response = client.get(f"/api/learning/question?topic={topic}", headers=auth_headers)
    assert response.status_code == 404


def test_empty_explanation(client, auth_headers, topic):
    response = client.post(
        "/api/learning/explain", json={"topic": topic, "explanation": "   "}, headers=auth_headers
    )
    assert response.status_code == 400


def test_recommended_topic_for_new_student(client, auth_headers):
    response = client.get("/api/learning/topic/math", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["selection"]["topic"] == "Linear Equations"
    assert data["selection"]["selection_type"] == "new_topic"
    assert data["all_topics"][0]["priority"] == 1


def test_profile_and_recommendations(client, auth_headers):
    assert client.get("/api/learning/profile", headers=auth_headers).status_code == 200
    assert client.get("/api/learning/recommendations", headers=auth_headers).status_code == 200
