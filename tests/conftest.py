"""
Shared fixtures for the grading tests.
All persistence goes through the in-memory FakeDatabase.
"""
import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from course_fixtures import STUDENT_ID, FixedClock, seed_course
from fake_mongo import FakeDatabase
from app.courses.app import setup_grading_routes
from app.courses.database import create_grading_indexes
from app.courses.dependencies import build_aggregator, get_db
from app.courses.permissions import get_current_user, UserContext
from app.courses.recorder import SubmissionRecorder


@pytest.fixture
def db():
    database = FakeDatabase()
    asyncio.run(create_grading_indexes(database))
    return database


@pytest.fixture
def course_db(db):
    seed_course(db)
    return db


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def aggregator(course_db, clock):
    agg = build_aggregator(course_db)
    agg.clock = clock
    return agg


@pytest.fixture
def recorder(course_db, aggregator, clock):
    return SubmissionRecorder(course_db, aggregator, clock=clock)


@pytest.fixture
def current_user():
    """Mutable holder for the principal the API client acts as"""
    return {"user": UserContext(STUDENT_ID, {"username": "student", "role": "student"})}


@pytest.fixture
def act_as(current_user, course_db):
    def _act_as(user_id):
        profile = course_db.users_profile._first({"user_id": user_id}) or {}
        current_user["user"] = UserContext(user_id, profile)
    return _act_as


@pytest.fixture
def client(course_db, current_user):
    app = FastAPI()
    setup_grading_routes(app)
    app.dependency_overrides[get_db] = lambda: course_db
    app.dependency_overrides[get_current_user] = lambda: current_user["user"]
    with TestClient(app) as test_client:
        yield test_client
