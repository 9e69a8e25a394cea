"""
Performance aggregation

Rebuilds the per-(student, course) Performance document from the raw
submission collections. Every call re-reads ground truth and replaces the
stored document wholesale, so calls are idempotent and may run
concurrently for the same key.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from app.courses.config import (
    AGGREGATION_TIMEOUT_SECONDS,
    AGGREGATION_MAX_PASSES,
    DEFAULT_ASSIGNMENT_MAX_POINTS,
)
from app.courses.errors import AggregationFailure
from app.courses.models import (
    Performance, AssessmentScoreEntry, AssignmentScoreEntry
)
from app.courses.repositories import SubmissionReader, CourseContentReader, PerformanceStore
from app.courses.scoring import percentage_of, round_half_up

logger = logging.getLogger(__name__)


# ==================== PURE FOLD ====================

def _assessment_entries(submissions: List[dict], reference_key: str) -> List[dict]:
    return [
        AssessmentScoreEntry(
            reference_id=sub[reference_key],
            score=sub.get("score", 0),
            percentage=sub.get("percentage", 0),
            passed=sub.get("passed", False),
            submitted_at=sub.get("submitted_at"),
        ).dict()
        for sub in submissions
    ]


def _assignment_entries(submissions: List[dict], assignments_by_id: Dict[str, dict]) -> List[dict]:
    entries = []
    for sub in submissions:
        assignment = assignments_by_id.get(sub["assignment_id"]) or {}
        max_points = assignment.get("max_points") or DEFAULT_ASSIGNMENT_MAX_POINTS
        score = sub.get("score")

        # Derived from the assignment's current max_points, not a stored value
        percentage = percentage_of(score, max_points) if score else 0

        entries.append(AssignmentScoreEntry(
            reference_id=sub["assignment_id"],
            score=score or 0,
            max_points=max_points,
            percentage=percentage,
            submitted_at=sub.get("submitted_at"),
            graded_at=sub.get("graded_at"),
        ).dict())
    return entries


def overall_grade(percentages: List[int]) -> int:
    """
    Mean of the non-zero percentages, rounded half up.
    Zero entries (ungraded, not attempted, or scored 0) do not count.
    """
    contributing = [p for p in percentages if p > 0]
    if not contributing:
        return 0
    return round_half_up(sum(contributing) / len(contributing))


def build_performance(
    student_id: str,
    course_id: str,
    quiz_submissions: List[dict],
    test_submissions: List[dict],
    assignment_submissions: List[dict],
    assignments_by_id: Dict[str, dict],
    published_counts: Dict[str, int],
    now: datetime
) -> dict:
    """Fold one consistent read of the submission stores into a Performance document"""
    quiz_scores = _assessment_entries(quiz_submissions, "quiz_id")
    test_scores = _assessment_entries(test_submissions, "test_id")
    assignment_scores = _assignment_entries(assignment_submissions, assignments_by_id)

    percentages = [
        entry["percentage"]
        for entry in quiz_scores + test_scores + assignment_scores
    ]

    return Performance(
        student_id=student_id,
        course_id=course_id,
        overall_grade=overall_grade(percentages),
        total_quizzes=published_counts.get("quizzes", 0),
        total_tests=published_counts.get("tests", 0),
        total_assignments=published_counts.get("assignments", 0),
        completed_quizzes=len(quiz_scores),
        completed_tests=len(test_scores),
        completed_assignments=len(assignment_scores),
        quiz_scores=quiz_scores,
        test_scores=test_scores,
        assignment_scores=assignment_scores,
        last_updated=now,
    ).dict()


def empty_performance(student_id: str, course_id: str) -> dict:
    """Shape reported for a student with no graded work yet"""
    document = Performance(student_id=student_id, course_id=course_id).dict()
    document["last_updated"] = None
    return document


def same_snapshot(left: dict, right: dict) -> bool:
    """Compare two Performance documents ignoring last_updated"""
    strip = lambda doc: {k: v for k, v in doc.items() if k != "last_updated"}
    return strip(left) == strip(right)


# ==================== AGGREGATOR ====================

class PerformanceAggregator:
    """
    Recomputes Performance documents.

    Collaborators are injected so the same instance serves the quiz, test
    and assignment grading paths.
    """

    def __init__(
        self,
        submissions: SubmissionReader,
        content: CourseContentReader,
        store: PerformanceStore,
        timeout: float = AGGREGATION_TIMEOUT_SECONDS,
        max_passes: int = AGGREGATION_MAX_PASSES,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.submissions = submissions
        self.content = content
        self.store = store
        self.timeout = timeout
        self.max_passes = max(1, max_passes)
        self.clock = clock

    async def _read_inputs(self, student_id: str, course_id: str) -> dict:
        quiz_subs, test_subs, assignment_subs, counts = await asyncio.gather(
            self.submissions.quiz_submissions(student_id, course_id),
            self.submissions.test_submissions(student_id, course_id),
            self.submissions.assignment_submissions(student_id, course_id),
            self.content.published_counts(course_id),
        )

        assignment_ids = sorted({sub["assignment_id"] for sub in assignment_subs})
        assignments = await asyncio.gather(
            *(self.content.get_assignment(aid) for aid in assignment_ids)
        )

        return {
            "quiz_submissions": quiz_subs,
            "test_submissions": test_subs,
            "assignment_submissions": assignment_subs,
            "assignments_by_id": {
                aid: doc for aid, doc in zip(assignment_ids, assignments) if doc
            },
            "published_counts": counts,
        }

    async def snapshot(self, student_id: str, course_id: str) -> dict:
        """Read ground truth (bounded by the timeout) and build the document"""
        try:
            inputs = await asyncio.wait_for(
                self._read_inputs(student_id, course_id), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            raise AggregationFailure(
                student_id, course_id, f"reads exceeded {self.timeout}s"
            )

        return build_performance(student_id, course_id, now=self.clock(), **inputs)

    async def recompute(self, student_id: str, course_id: str) -> dict:
        """
        Rebuild and store the Performance document for (student, course).

        After each write the inputs are read again; if another grading event
        landed in between, the newer snapshot is written. This keeps a
        concurrent recompute that started earlier from leaving stale data
        behind as the final write.
        """
        document = await self.snapshot(student_id, course_id)
        saved = None

        for pass_number in range(1, self.max_passes + 1):
            saved = await self.store.upsert_by_key(student_id, course_id, document)
            if pass_number == self.max_passes:
                break

            fresh = await self.snapshot(student_id, course_id)
            if same_snapshot(fresh, document):
                break

            logger.info(
                f"[AGGREGATOR] Inputs changed during write for {student_id}/{course_id}, "
                f"rewriting (pass {pass_number + 1})"
            )
            document = fresh

        return saved

    async def safe_recompute(self, student_id: str, course_id: str) -> Optional[dict]:
        """
        Recompute without letting failures escape.
        The triggering submission is already stored; the aggregate can be
        rebuilt by any later grading event or an explicit rebuild.
        """
        try:
            return await self.recompute(student_id, course_id)
        except AggregationFailure as e:
            logger.error(f"[AGGREGATOR] {e}")
        except Exception:
            logger.exception(f"[AGGREGATOR] Failed to update performance for {student_id}/{course_id}")
        return None

    async def _has_graded_work(self, student_id: str, course_id: str) -> bool:
        """True when a record already exists or any submission would be folded into one"""
        if await self.store.find_by_key(student_id, course_id):
            return True
        document = await self.snapshot(student_id, course_id)
        return any(document[k] for k in ("completed_quizzes", "completed_tests", "completed_assignments"))

    async def rebuild_course(self, course_id: str) -> Dict[str, int]:
        """
        Recompute every actively enrolled student in a course.
        Students with no record and no submissions are skipped so no
        record is created before their first grading event.
        """
        student_ids = await self.content.active_student_ids(course_id)
        rebuilt = 0
        skipped = 0
        for student_id in student_ids:
            try:
                if not await self._has_graded_work(student_id, course_id):
                    skipped += 1
                    continue
            except AggregationFailure as e:
                logger.error(f"[AGGREGATOR] {e}")
                continue

            if await self.safe_recompute(student_id, course_id) is not None:
                rebuilt += 1

        logger.info(
            f"[AGGREGATOR] Rebuilt {rebuilt}/{len(student_ids)} performances for {course_id} "
            f"({skipped} without graded work)"
        )
        return {"students": len(student_ids), "rebuilt": rebuilt, "skipped": skipped}
