from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from typing import Optional
import logging
import uuid

from app.courses.config import MONGO_URL, DATABASE_NAME

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None


def get_client() -> AsyncIOMotorClient:
    """Lazily create the shared Motor client"""
    global _client
    if _client is None:
        _client = AsyncIOMotorClient(MONGO_URL)
    return _client


def get_database() -> AsyncIOMotorDatabase:
    return get_client()[DATABASE_NAME]


def generate_id(prefix: str) -> str:
    """Generate unique ID with prefix, e.g. QSUB_3F9A0C1B2D4E"""
    return f"{prefix}_{uuid.uuid4().hex[:12].upper()}"


def serialize_mongo(doc: Optional[dict]) -> Optional[dict]:
    if doc is not None:
        doc.pop("_id", None)
    return doc


# ==================== INDEXES ====================

async def create_grading_indexes(db: AsyncIOMotorDatabase):
    """
    Create MongoDB indexes for the grading collections.
    The unique pairs back the single-attempt and one-aggregate-per-key rules.
    """
    # Enrollments
    await db.course_enrollments.create_index(
        [("student_id", ASCENDING), ("course_id", ASCENDING)], unique=True
    )
    await db.course_enrollments.create_index([("course_id", ASCENDING), ("is_active", ASCENDING)])

    # Content lookups
    await db.quizzes.create_index("quiz_id", unique=True)
    await db.quizzes.create_index([("course_id", ASCENDING), ("is_published", ASCENDING)])
    await db.tests.create_index("test_id", unique=True)
    await db.tests.create_index([("course_id", ASCENDING), ("is_published", ASCENDING)])
    await db.assignments.create_index("assignment_id", unique=True)
    await db.assignments.create_index([("course_id", ASCENDING), ("is_published", ASCENDING)])

    # Quiz / test submissions: one attempt per student
    await db.quiz_submissions.create_index("submission_id", unique=True)
    await db.quiz_submissions.create_index(
        [("student_id", ASCENDING), ("quiz_id", ASCENDING)], unique=True
    )
    await db.quiz_submissions.create_index([("student_id", ASCENDING), ("course_id", ASCENDING)])

    await db.test_submissions.create_index("submission_id", unique=True)
    await db.test_submissions.create_index(
        [("student_id", ASCENDING), ("test_id", ASCENDING)], unique=True
    )
    await db.test_submissions.create_index([("student_id", ASCENDING), ("course_id", ASCENDING)])

    # Assignment submissions: upserted per student
    await db.assignment_submissions.create_index("submission_id", unique=True)
    await db.assignment_submissions.create_index(
        [("student_id", ASCENDING), ("assignment_id", ASCENDING)], unique=True
    )
    await db.assignment_submissions.create_index([("student_id", ASCENDING), ("course_id", ASCENDING)])
    await db.assignment_submissions.create_index([("assignment_id", ASCENDING), ("submitted_at", DESCENDING)])

    # Performance aggregates
    await db.performances.create_index(
        [("student_id", ASCENDING), ("course_id", ASCENDING)], unique=True
    )
    await db.performances.create_index([("course_id", ASCENDING), ("overall_grade", DESCENDING)])
    await db.performances.create_index([("student_id", ASCENDING), ("last_updated", DESCENDING)])

    # Audits
    await db.grading_audits.create_index([("target_type", ASCENDING), ("target_id", ASCENDING)])
    await db.grading_audits.create_index("timestamp")

    logger.info("[STARTUP] Grading indexes created")
