"""Tests for learning sessions and their flow timelines."""

from datetime import datetime, timedelta

from satprep.database import LearningSession
from satprep.services.sessions import (
    add_flow_state,
    calculate_session_flow_metrics,
    end_session,
    get_active_session,
    start_session,
)

START = datetime(2024, 3, 1, 9, 0, 0)


def _state(minutes, challenge, skill, zone):
    return {
        "timestamp": (START + timedelta(minutes=minutes)).isoformat(),
        "challenge": challenge,
        "skill": skill,
        "flow_zone": zone,
        "activity": "answering_question",
    }


def test_zone_minutes_split_by_state_intervals():
    """Each state lasts until the next one; the last runs to the session end."""
    session = LearningSession(
        start_time=START,
        end_time=START + timedelta(minutes=30),
        flow_states=[
            _state(0, 5, 5, "flow"),
            _state(10, 8, 5, "anxiety"),
            _state(15, 2, 5, "boredom"),
        ],
    )
    calculate_session_flow_metrics(session)

    assert session.time_in_flow == 10
    assert session.time_in_anxiety == 5
    assert session.time_in_boredom == 15
    assert session.flow_percentage == 33
    assert session.average_flow_score == 60


def test_flow_percentage_with_no_elapsed_time():
    session = LearningSession(
        start_time=START, end_time=START, flow_states=[_state(0, 5, 5, "flow")]
    )
    calculate_session_flow_metrics(session)

    assert session.flow_percentage == 0
    assert session.average_flow_score == 100


def test_empty_timeline_leaves_metrics_alone():
    session = LearningSession(start_time=START, end_time=START, flow_states=[])
    calculate_session_flow_metrics(session)
    assert session.average_flow_score is None


def test_start_and_end_session(db, user):
    session = start_session(db, user.id, "practice", now=START)
    add_flow_state(session, 5, 5, "flow", "answering_question", now=START)
    add_flow_state(session, 9, 5, "anxiety", "answering_question", now=START + timedelta(minutes=20))
    db.commit()

    ended = end_session(db, user.id, now=START + timedelta(minutes=40))

    assert ended.id == session.id
    assert ended.duration == 40
    assert ended.time_in_flow == 20
    assert ended.time_in_anxiety == 20
    assert ended.flow_percentage == 50
    assert get_active_session(db, user.id) is None


def test_starting_a_session_closes_the_open_one(db, user):
    first = start_session(db, user.id, now=START)
    second = start_session(db, user.id, now=START + timedelta(minutes=15))

    db.refresh(first)
    assert first.end_time is not None
    assert get_active_session(db, user.id).id == second.id


def test_end_without_active_session(db, user):
    assert end_session(db, user.id, now=START) is None
