from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.courses.dependencies import get_db, get_recorder
from app.courses.permissions import get_current_user, verify_course_instructor, UserContext
from app.courses.recorder import SubmissionRecorder
from app.courses.schemas import AssignmentSubmitRequest, GradeRequest

router = APIRouter(prefix="/assignments", tags=["Assignments"])


@router.post("/{assignment_id}/submit", status_code=201)
async def submit_assignment(
    assignment_id: str,
    body: AssignmentSubmitRequest,
    user: UserContext = Depends(get_current_user),
    recorder: SubmissionRecorder = Depends(get_recorder)
):
    """
    Submit (or resubmit) assignment work
    Marked late when submitted after the due date
    """
    submission = await recorder.submit_assignment(
        user.user_id, assignment_id,
        body.submission_text,
        [a.dict() for a in body.attachments]
    )
    return {"success": True, "data": submission}


@router.get("/{assignment_id}/submissions")
async def list_submissions(
    assignment_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
    recorder: SubmissionRecorder = Depends(get_recorder)
):
    """All submissions for an assignment, newest first (instructor only)"""
    assignment = await recorder.get_assignment(assignment_id)
    await verify_course_instructor(db, assignment["course_id"], user)

    submissions = await recorder.list_assignment_submissions(assignment_id)
    return {"success": True, "data": submissions}


@router.put("/{assignment_id}/grade")
async def grade_assignment(
    assignment_id: str,
    body: GradeRequest,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
    recorder: SubmissionRecorder = Depends(get_recorder)
):
    """
    Grade a submission (instructor only)

    - Score above max_points is capped, never rejected
    - Re-grading is allowed; the performance summary is rebuilt each time
    """
    assignment = await recorder.get_assignment(assignment_id)
    await verify_course_instructor(db, assignment["course_id"], user)

    submission = await recorder.grade_assignment(
        user.user_id, body.submission_id, body.score, body.feedback,
        assignment_id=assignment_id
    )
    return {"success": True, "data": submission}
