"""
Data-access collaborators for performance aggregation.

The aggregator never touches collections directly; it is handed these
readers and the store so every dependency is explicit.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

logger = logging.getLogger(__name__)

# Stable order so identical inputs fold into identical documents
SUBMISSION_ORDER = [("submitted_at", ASCENDING), ("submission_id", ASCENDING)]
NO_ID = {"_id": 0}


class SubmissionReader:
    """Reads every submission of one kind for a (student, course) pair"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def _read(self, collection, student_id: str, course_id: str) -> List[dict]:
        cursor = collection.find(
            {"student_id": student_id, "course_id": course_id}, NO_ID
        ).sort(SUBMISSION_ORDER)
        return await cursor.to_list(length=None)

    async def quiz_submissions(self, student_id: str, course_id: str) -> List[dict]:
        return await self._read(self.db.quiz_submissions, student_id, course_id)

    async def test_submissions(self, student_id: str, course_id: str) -> List[dict]:
        return await self._read(self.db.test_submissions, student_id, course_id)

    async def assignment_submissions(self, student_id: str, course_id: str) -> List[dict]:
        return await self._read(self.db.assignment_submissions, student_id, course_id)


class CourseContentReader:
    """Read-only view of content owned by the course service"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def published_counts(self, course_id: str) -> Dict[str, int]:
        query = {"course_id": course_id, "is_published": True}
        quizzes, tests, assignments = await asyncio.gather(
            self.db.quizzes.count_documents(query),
            self.db.tests.count_documents(query),
            self.db.assignments.count_documents(query),
        )
        return {"quizzes": quizzes, "tests": tests, "assignments": assignments}

    async def get_assignment(self, assignment_id: str) -> Optional[dict]:
        return await self.db.assignments.find_one({"assignment_id": assignment_id}, NO_ID)

    async def active_student_ids(self, course_id: str) -> List[str]:
        cursor = self.db.course_enrollments.find(
            {"course_id": course_id, "is_active": True}, NO_ID
        ).sort("student_id", ASCENDING)
        enrollments = await cursor.to_list(length=None)
        return [e["student_id"] for e in enrollments]


class PerformanceStore:
    """
    Owner of the performances collection.
    The only write is a wholesale replace keyed by (student_id, course_id).
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.performances

    async def upsert_by_key(self, student_id: str, course_id: str, document: dict) -> dict:
        key = {"student_id": student_id, "course_id": course_id}
        replacement = {**document, **key}

        try:
            saved = await self.collection.find_one_and_replace(
                key, replacement,
                projection=NO_ID,
                upsert=True,
                return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            # Two first-time upserts raced on the unique key; the loser replaces
            logger.warning(f"[PERFORMANCE] Upsert race on {student_id}/{course_id}, retrying")
            saved = await self.collection.find_one_and_replace(
                key, replacement,
                projection=NO_ID,
                upsert=True,
                return_document=ReturnDocument.AFTER
            )
        return saved

    async def find_by_key(self, student_id: str, course_id: str) -> Optional[dict]:
        return await self.collection.find_one(
            {"student_id": student_id, "course_id": course_id}, NO_ID
        )

    async def list_for_student(self, student_id: str) -> List[dict]:
        cursor = self.collection.find({"student_id": student_id}, NO_ID).sort("last_updated", DESCENDING)
        return await cursor.to_list(length=None)

    async def list_for_course(self, course_id: str) -> List[dict]:
        cursor = self.collection.find({"course_id": course_id}, NO_ID).sort("overall_grade", DESCENDING)
        return await cursor.to_list(length=None)
