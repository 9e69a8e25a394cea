"""
Tests for performance aggregation: the pure fold, idempotent recompute,
lost-update protection under concurrent recomputes and failure isolation.
"""
import asyncio
import logging
from datetime import timedelta

import pytest

from course_fixtures import COURSE_ID, STUDENT_ID, OTHER_STUDENT_ID, NOW
from app.courses.aggregator import (
    PerformanceAggregator, build_performance, empty_performance, overall_grade, same_snapshot
)
from app.courses.errors import AggregationFailure
from app.courses.repositories import SubmissionReader, CourseContentReader, PerformanceStore

COUNTS = {"quizzes": 2, "tests": 1, "assignments": 2}


def quiz_sub(quiz_id, percentage, score=1, minutes=0):
    return {
        "submission_id": f"QSUB_{quiz_id}",
        "student_id": STUDENT_ID,
        "course_id": COURSE_ID,
        "quiz_id": quiz_id,
        "score": score,
        "percentage": percentage,
        "passed": percentage >= 60,
        "submitted_at": NOW + timedelta(minutes=minutes),
    }


def exam_sub(test_id, percentage, score=1, minutes=0):
    return {
        "submission_id": f"TSUB_{test_id}",
        "student_id": STUDENT_ID,
        "course_id": COURSE_ID,
        "test_id": test_id,
        "score": score,
        "percentage": percentage,
        "passed": percentage >= 70,
        "submitted_at": NOW + timedelta(minutes=minutes),
    }


def assignment_sub(assignment_id, score, minutes=0):
    return {
        "submission_id": f"ASUB_{assignment_id}",
        "student_id": STUDENT_ID,
        "course_id": COURSE_ID,
        "assignment_id": assignment_id,
        "score": score,
        "submitted_at": NOW + timedelta(minutes=minutes),
        "graded_at": NOW if score is not None else None,
    }


# ==================== PURE FOLD ====================

def test_overall_grade_excludes_zero_percentages():
    # quiz [80], test [], assignments [0, 60]
    performance = build_performance(
        STUDENT_ID, COURSE_ID,
        quiz_submissions=[quiz_sub("QZ_1", 80)],
        test_submissions=[],
        assignment_submissions=[assignment_sub("ASG_1", None), assignment_sub("ASG_2", 12)],
        assignments_by_id={"ASG_1": {"max_points": 50}, "ASG_2": {"max_points": 20}},
        published_counts=COUNTS,
        now=NOW,
    )
    assert [e["percentage"] for e in performance["assignment_scores"]] == [0, 60]
    assert performance["overall_grade"] == 70


def test_overall_grade_of_nothing_is_zero():
    assert overall_grade([]) == 0
    assert overall_grade([0, 0]) == 0


def test_overall_grade_rounds_half_up():
    assert overall_grade([70, 75]) == 73


def test_assignment_percentage_uses_current_max_points():
    performance = build_performance(
        STUDENT_ID, COURSE_ID, [], [],
        [assignment_sub("ASG_1", 40)],
        {"ASG_1": {"max_points": 80}},
        COUNTS, NOW,
    )
    entry = performance["assignment_scores"][0]
    assert entry["max_points"] == 80
    assert entry["percentage"] == 50


def test_missing_assignment_defaults_to_100_points():
    performance = build_performance(
        STUDENT_ID, COURSE_ID, [], [],
        [assignment_sub("ASG_GONE", 45)],
        {},
        COUNTS, NOW,
    )
    entry = performance["assignment_scores"][0]
    assert entry["max_points"] == 100
    assert entry["percentage"] == 45
    assert performance["overall_grade"] == 45


def test_counts_and_entries():
    performance = build_performance(
        STUDENT_ID, COURSE_ID,
        [quiz_sub("QZ_1", 75, score=3)],
        [exam_sub("TST_1", 30, score=3)],
        [assignment_sub("ASG_1", None)],
        {"ASG_1": {"max_points": 50}},
        COUNTS, NOW,
    )
    assert performance["total_quizzes"] == 2
    assert performance["total_tests"] == 1
    assert performance["total_assignments"] == 2
    assert performance["completed_quizzes"] == 1
    assert performance["completed_tests"] == 1
    assert performance["completed_assignments"] == 1
    assert performance["quiz_scores"][0]["reference_id"] == "QZ_1"
    assert performance["quiz_scores"][0]["passed"] is True
    assert performance["test_scores"][0]["passed"] is False
    assert performance["assignment_scores"][0]["score"] == 0
    assert performance["overall_grade"] == 53


def test_empty_performance_shape():
    empty = empty_performance(STUDENT_ID, COURSE_ID)
    assert empty["overall_grade"] == 0
    assert empty["completed_quizzes"] == empty["completed_tests"] == empty["completed_assignments"] == 0
    assert empty["quiz_scores"] == empty["test_scores"] == empty["assignment_scores"] == []
    assert empty["last_updated"] is None


# ==================== RECOMPUTE ====================

def test_recompute_creates_document(course_db, aggregator):
    course_db.quiz_submissions.seed(quiz_sub("QZ_1", 75, score=3))
    course_db.assignment_submissions.seed(assignment_sub("ASG_1", 25))

    saved = asyncio.run(aggregator.recompute(STUDENT_ID, COURSE_ID))

    assert saved["overall_grade"] == 63  # mean(75, 50)
    assert saved["total_quizzes"] == 2  # QZ_1, QZ_2 published; draft excluded
    assert saved["total_tests"] == 1
    assert saved["total_assignments"] == 2
    assert len(course_db.performances.docs) == 1


def test_recompute_is_idempotent(course_db, aggregator, clock):
    course_db.quiz_submissions.seed(quiz_sub("QZ_1", 75, minutes=2), quiz_sub("QZ_2", 100, minutes=1))
    course_db.test_submissions.seed(exam_sub("TST_1", 30))

    first = asyncio.run(aggregator.recompute(STUDENT_ID, COURSE_ID))
    clock.advance(minutes=5)
    second = asyncio.run(aggregator.recompute(STUDENT_ID, COURSE_ID))

    assert first["last_updated"] != second["last_updated"]
    assert same_snapshot(first, second)
    assert [e["reference_id"] for e in second["quiz_scores"]] == ["QZ_2", "QZ_1"]
    assert len(course_db.performances.docs) == 1


def test_recompute_is_per_student(course_db, aggregator):
    course_db.quiz_submissions.seed(quiz_sub("QZ_1", 75))

    asyncio.run(aggregator.recompute(OTHER_STUDENT_ID, COURSE_ID))

    other = course_db.performances.all()[0]
    assert other["student_id"] == OTHER_STUDENT_ID
    assert other["completed_quizzes"] == 0


def test_deleting_all_submissions_resets_grade(course_db, aggregator):
    course_db.quiz_submissions.seed(quiz_sub("QZ_1", 75))
    course_db.assignment_submissions.seed(assignment_sub("ASG_1", 25))
    asyncio.run(aggregator.recompute(STUDENT_ID, COURSE_ID))

    async def wipe_and_recompute():
        for name in ("quiz_submissions", "test_submissions", "assignment_submissions"):
            await course_db[name].delete_many({"student_id": STUDENT_ID, "course_id": COURSE_ID})
        return await aggregator.recompute(STUDENT_ID, COURSE_ID)

    saved = asyncio.run(wipe_and_recompute())
    empty = empty_performance(STUDENT_ID, COURSE_ID)

    for key in ("overall_grade", "completed_quizzes", "completed_tests", "completed_assignments",
                "quiz_scores", "test_scores", "assignment_scores"):
        assert saved[key] == empty[key]


class GatedStore(PerformanceStore):
    """Holds the first upsert until released, so a later recompute can finish first"""

    def __init__(self, db):
        super().__init__(db)
        self.reached = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def upsert_by_key(self, student_id, course_id, document):
        self.calls += 1
        if self.calls == 1:
            self.reached.set()
            await self.release.wait()
        return await super().upsert_by_key(student_id, course_id, document)


def _race(db, max_passes):
    """
    Recompute A reads {quiz}, then stalls before writing.
    A test submission lands and recompute B writes {quiz, test}.
    A's stale write then lands last.
    """
    async def scenario():
        gated = GatedStore(db)
        slow = PerformanceAggregator(
            SubmissionReader(db), CourseContentReader(db), gated, max_passes=max_passes
        )
        fast = PerformanceAggregator(
            SubmissionReader(db), CourseContentReader(db), PerformanceStore(db)
        )

        await db.quiz_submissions.insert_one(quiz_sub("QZ_1", 75))
        slow_task = asyncio.ensure_future(slow.recompute(STUDENT_ID, COURSE_ID))
        await gated.reached.wait()

        await db.test_submissions.insert_one(exam_sub("TST_1", 90))
        await fast.recompute(STUDENT_ID, COURSE_ID)

        gated.release.set()
        await slow_task
        return await PerformanceStore(db).find_by_key(STUDENT_ID, COURSE_ID)

    return asyncio.run(scenario())


def test_concurrent_recomputes_do_not_lose_updates(course_db):
    final = _race(course_db, max_passes=3)

    assert final["completed_quizzes"] == 1
    assert final["completed_tests"] == 1
    assert final["overall_grade"] == 83  # mean(75, 90)


def test_single_pass_leaves_stale_write(course_db):
    final = _race(course_db, max_passes=1)

    assert final["completed_quizzes"] == 1
    assert final["completed_tests"] == 0


def test_parallel_recomputes_agree(course_db, aggregator):
    course_db.quiz_submissions.seed(quiz_sub("QZ_1", 75))
    course_db.test_submissions.seed(exam_sub("TST_1", 90))

    async def both():
        return await asyncio.gather(
            aggregator.recompute(STUDENT_ID, COURSE_ID),
            aggregator.recompute(STUDENT_ID, COURSE_ID),
        )

    first, second = asyncio.run(both())
    assert same_snapshot(first, second)
    assert len(course_db.performances.docs) == 1


# ==================== FAILURES ====================

class BrokenStore(PerformanceStore):
    async def upsert_by_key(self, student_id, course_id, document):
        raise RuntimeError("store unavailable")


class SlowReader(SubmissionReader):
    async def quiz_submissions(self, student_id, course_id):
        await asyncio.sleep(1)
        return []


def test_safe_recompute_swallows_store_errors(course_db, caplog):
    aggregator = PerformanceAggregator(
        SubmissionReader(course_db), CourseContentReader(course_db), BrokenStore(course_db)
    )

    with caplog.at_level(logging.ERROR, logger="app.courses.aggregator"):
        result = asyncio.run(aggregator.safe_recompute(STUDENT_ID, COURSE_ID))

    assert result is None
    assert "Failed to update performance" in caplog.text


def test_read_timeout_is_an_aggregation_failure(course_db):
    aggregator = PerformanceAggregator(
        SlowReader(course_db), CourseContentReader(course_db), PerformanceStore(course_db),
        timeout=0.01
    )

    with pytest.raises(AggregationFailure):
        asyncio.run(aggregator.recompute(STUDENT_ID, COURSE_ID))

    assert asyncio.run(aggregator.safe_recompute(STUDENT_ID, COURSE_ID)) is None
    assert course_db.performances.docs == []


def test_rebuild_course_skips_students_without_graded_work(course_db, aggregator):
    course_db.quiz_submissions.seed(quiz_sub("QZ_1", 75))

    result = asyncio.run(aggregator.rebuild_course(COURSE_ID))

    assert result == {"students": 2, "rebuilt": 1, "skipped": 1}
    students = [p["student_id"] for p in course_db.performances.all()]
    assert students == [STUDENT_ID]


def test_rebuild_course_refreshes_existing_records(course_db, aggregator):
    course_db.performances.seed(empty_performance(OTHER_STUDENT_ID, COURSE_ID))

    result = asyncio.run(aggregator.rebuild_course(COURSE_ID))

    assert result == {"students": 2, "rebuilt": 1, "skipped": 1}
    other = course_db.performances.all()[0]
    assert other["student_id"] == OTHER_STUDENT_ID
    assert other["last_updated"] is not None


def test_assessment_scores_stay_integers():
    performance = build_performance(
        STUDENT_ID, COURSE_ID, [quiz_sub("QZ_1", 50, score=2)], [exam_sub("TST_1", 30, score=3)],
        [], {}, COUNTS, NOW,
    )
    assert type(performance["quiz_scores"][0]["score"]) is int
    assert type(performance["test_scores"][0]["score"]) is int
