"""
Submission recording for quizzes, tests and assignments

Quiz and test submissions are scored and written exactly once.
Assignment submissions are upserted by the student and later graded by an
instructor. Every grading event runs performance aggregation inline after
its own write has been acknowledged.
"""

import logging
from collections import namedtuple
from datetime import datetime
from typing import Any, Callable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.courses.aggregator import PerformanceAggregator
from app.courses.audit import log_grading_audit
from app.courses.config import (
    DEFAULT_ASSIGNMENT_MAX_POINTS, DEFAULT_QUIZ_PASSING_SCORE, DEFAULT_TEST_PASSING_SCORE
)
from app.courses.database import generate_id, serialize_mongo
from app.courses.errors import (
    ValidationError, NotFoundError, NotEnrolledError, NotPublishedError,
    OutOfWindowError, AlreadySubmittedError
)
from app.courses.models import (
    AssessmentKind, AssignmentSubmissionStatus, QuestionType,
    QuizSubmission, TestSubmission, AssignmentSubmission
)
from app.courses.scoring import score_answers, total_points_of, percentage_of, is_passing

logger = logging.getLogger(__name__)

NO_ID = {"_id": 0}

AssessmentCollections = namedtuple(
    "AssessmentCollections",
    "label content submissions id_field value_key default_type id_prefix model default_passing"
)

ASSESSMENTS = {
    AssessmentKind.QUIZ: AssessmentCollections(
        label="Quiz",
        content="quizzes",
        submissions="quiz_submissions",
        id_field="quiz_id",
        value_key="selected_answer",
        default_type=QuestionType.OPTION_INDEX,
        id_prefix="QSUB",
        model=QuizSubmission,
        default_passing=DEFAULT_QUIZ_PASSING_SCORE,
    ),
    AssessmentKind.TEST: AssessmentCollections(
        label="Test",
        content="tests",
        submissions="test_submissions",
        id_field="test_id",
        value_key="answer",
        default_type=QuestionType.MULTIPLE_CHOICE,
        id_prefix="TSUB",
        model=TestSubmission,
        default_passing=DEFAULT_TEST_PASSING_SCORE,
    ),
}


def clamp_score(score: float, max_points: float) -> float:
    """Instructor scores are capped, never rejected"""
    return max(0, min(score, max_points))


def _validate_answer_sheet(answers: Any, time_spent: Any):
    if not isinstance(answers, list):
        raise ValidationError("Answers must be a list")
    for answer in answers:
        if not isinstance(answer, dict):
            raise ValidationError("Each answer must be an object")
    if time_spent is not None and (not isinstance(time_spent, (int, float)) or time_spent < 0):
        raise ValidationError("time_spent must be a non-negative number")


class SubmissionRecorder:

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        aggregator: PerformanceAggregator,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.db = db
        self.aggregator = aggregator
        self.clock = clock

    # ==================== SHARED CHECKS ====================

    async def _require_enrollment(self, student_id: str, course_id: str) -> dict:
        enrollment = await self.db.course_enrollments.find_one({
            "student_id": student_id,
            "course_id": course_id,
            "is_active": True
        }, NO_ID)
        if not enrollment:
            raise NotEnrolledError()
        return enrollment

    def _check_window(self, test: dict):
        now = self.clock()
        start_date = test.get("start_date")
        end_date = test.get("end_date")
        if (start_date and now < start_date) or (end_date and now > end_date):
            raise OutOfWindowError()

    async def _record_audit(self, actor_id: str, action: str, target_type: str, target_id: str, metadata: dict):
        # Runs after the graded write is committed; a failed audit insert must not fail the request
        try:
            await log_grading_audit(self.db, actor_id, action, target_type, target_id, metadata)
        except Exception:
            logger.exception(f"[RECORDER] Failed to write audit {action} for {target_id}")

    # ==================== QUIZ / TEST ====================

    async def submit_quiz(self, student_id: str, quiz_id: str, answers: List[dict], time_spent: float = 0) -> dict:
        return await self._submit_assessment(AssessmentKind.QUIZ, student_id, quiz_id, answers, time_spent)

    async def submit_test(self, student_id: str, test_id: str, answers: List[dict], time_spent: float = 0) -> dict:
        return await self._submit_assessment(AssessmentKind.TEST, student_id, test_id, answers, time_spent)

    async def _submit_assessment(
        self,
        kind: AssessmentKind,
        student_id: str,
        assessment_id: str,
        answers: List[dict],
        time_spent: float
    ) -> dict:
        """
        Score and store a single-attempt quiz/test submission.

        Checks, in order:
        - answer sheet is well formed (400)
        - assessment exists (404) and is published (400)
        - tests only: now is within [start_date, end_date] (400)
        - student holds an active enrollment in the course (403)
        - no earlier submission for this student (409)
        """
        collections = ASSESSMENTS[kind]
        _validate_answer_sheet(answers, time_spent)

        assessment = await self.db[collections.content].find_one(
            {collections.id_field: assessment_id}, NO_ID
        )
        if not assessment:
            raise NotFoundError(f"{collections.label} not found")

        if not assessment.get("is_published"):
            raise NotPublishedError(f"{collections.label} is not published")

        if kind == AssessmentKind.TEST:
            self._check_window(assessment)

        course_id = assessment["course_id"]
        await self._require_enrollment(student_id, course_id)

        submissions = self.db[collections.submissions]
        existing = await submissions.find_one({
            "student_id": student_id,
            collections.id_field: assessment_id
        }, {"_id": 0, "submission_id": 1})
        if existing:
            raise AlreadySubmittedError(f"{collections.label} already submitted")

        results, score = score_answers(
            assessment.get("questions", []), answers,
            collections.value_key, collections.default_type
        )
        total_points = total_points_of(assessment)
        percentage = percentage_of(score, total_points)
        passing_score = assessment.get("passing_score", collections.default_passing)

        submission = collections.model(**{
            "submission_id": generate_id(collections.id_prefix),
            "student_id": student_id,
            "course_id": course_id,
            collections.id_field: assessment_id,
            "answers": results,
            "score": score,
            "total_points": total_points,
            "percentage": percentage,
            "passed": is_passing(percentage, passing_score),
            "time_spent": time_spent or 0,
            "submitted_at": self.clock(),
        })
        document = submission.dict()

        try:
            await submissions.insert_one(document)
        except DuplicateKeyError:
            # A concurrent attempt won the unique (student, assessment) index
            raise AlreadySubmittedError(f"{collections.label} already submitted")

        logger.info(
            f"[RECORDER] {collections.label} {assessment_id} submitted by {student_id}: "
            f"{score}/{total_points} ({percentage}%)"
        )

        await self.aggregator.safe_recompute(student_id, course_id)
        await self._record_audit(
            student_id, f"submit_{kind.value}", kind.value, assessment_id,
            {"submission_id": document["submission_id"], "percentage": percentage}
        )

        return serialize_mongo(document)

    async def get_submission(self, kind: AssessmentKind, student_id: str, assessment_id: str) -> dict:
        collections = ASSESSMENTS[kind]
        submission = await self.db[collections.submissions].find_one({
            "student_id": student_id,
            collections.id_field: assessment_id
        }, NO_ID)
        if not submission:
            raise NotFoundError("Submission not found")
        return submission

    # ==================== ASSIGNMENTS ====================

    async def get_assignment(self, assignment_id: str) -> dict:
        assignment = await self.db.assignments.find_one({"assignment_id": assignment_id}, NO_ID)
        if not assignment:
            raise NotFoundError("Assignment not found")
        return assignment

    async def submit_assignment(
        self,
        student_id: str,
        assignment_id: str,
        submission_text: str = "",
        attachments: Optional[List[dict]] = None
    ) -> dict:
        """
        Create or replace the student's work for an assignment.
        A resubmission keeps any score already given.
        """
        assignment = await self.get_assignment(assignment_id)

        if not assignment.get("is_published"):
            raise NotPublishedError("Assignment is not published")

        course_id = assignment["course_id"]
        await self._require_enrollment(student_id, course_id)

        now = self.clock()
        due_date = assignment.get("due_date")
        status = AssignmentSubmissionStatus.LATE if due_date and now > due_date else AssignmentSubmissionStatus.SUBMITTED

        defaults = AssignmentSubmission(
            submission_id=generate_id("ASUB"),
            student_id=student_id,
            assignment_id=assignment_id,
            course_id=course_id,
        ).dict()

        submission = await self.db.assignment_submissions.find_one_and_update(
            {"student_id": student_id, "assignment_id": assignment_id},
            {
                "$set": {
                    "course_id": course_id,
                    "submission_text": submission_text or "",
                    "attachments": attachments or [],
                    "status": status.value,
                    "submitted_at": now,
                },
                "$setOnInsert": {
                    "submission_id": defaults["submission_id"],
                    "score": None,
                    "feedback": "",
                    "graded_by": None,
                    "graded_at": None,
                },
            },
            projection=NO_ID,
            upsert=True,
            return_document=ReturnDocument.AFTER
        )

        logger.info(f"[RECORDER] Assignment {assignment_id} submitted by {student_id} ({status.value})")
        await self._record_audit(
            student_id, "submit_assignment", "assignment_submission",
            submission["submission_id"], {"status": status.value}
        )
        return submission

    async def list_assignment_submissions(self, assignment_id: str) -> List[dict]:
        cursor = self.db.assignment_submissions.find(
            {"assignment_id": assignment_id}, NO_ID
        ).sort("submitted_at", DESCENDING)
        return await cursor.to_list(length=None)

    async def grade_assignment(
        self,
        grader_id: str,
        submission_id: str,
        score: float,
        feedback: str = "",
        assignment_id: Optional[str] = None
    ) -> dict:
        """
        Instructor grades (or re-grades) an assignment submission.

        The score is clamped to [0, max_points]; a deleted assignment falls
        back to the default max of 100.
        """
        submission = await self.db.assignment_submissions.find_one({"submission_id": submission_id}, NO_ID)
        if not submission or (assignment_id and submission["assignment_id"] != assignment_id):
            raise NotFoundError("Submission not found")

        assignment = await self.db.assignments.find_one(
            {"assignment_id": submission["assignment_id"]}, NO_ID
        ) or {}
        max_points = assignment.get("max_points") or DEFAULT_ASSIGNMENT_MAX_POINTS
        clamped = clamp_score(score, max_points)

        graded = await self.db.assignment_submissions.find_one_and_update(
            {"submission_id": submission_id},
            {"$set": {
                "score": clamped,
                "feedback": feedback or "",
                "graded_by": grader_id,
                "graded_at": self.clock(),
                "status": AssignmentSubmissionStatus.GRADED.value,
            }},
            projection=NO_ID,
            return_document=ReturnDocument.AFTER
        )
        if not graded:
            raise NotFoundError("Submission not found")

        logger.info(
            f"[RECORDER] Submission {submission_id} graded by {grader_id}: {clamped}/{max_points}"
            + (f" (requested {score})" if clamped != score else "")
        )

        await self.aggregator.safe_recompute(graded["student_id"], graded["course_id"])
        await self._record_audit(
            grader_id, "grade_assignment", "assignment_submission", submission_id,
            {"score": clamped, "requested_score": score, "max_points": max_points}
        )

        return graded
