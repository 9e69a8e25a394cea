from fastapi import APIRouter, Depends

from app.courses.dependencies import get_recorder
from app.courses.models import AssessmentKind
from app.courses.permissions import get_current_user, UserContext
from app.courses.recorder import SubmissionRecorder
from app.courses.schemas import QuizSubmitRequest, TestSubmitRequest

router = APIRouter(tags=["Submissions"])

# ==================== QUIZZES ====================

@router.post("/quizzes/{quiz_id}/submit", status_code=201)
async def submit_quiz(
    quiz_id: str,
    body: QuizSubmitRequest,
    user: UserContext = Depends(get_current_user),
    recorder: SubmissionRecorder = Depends(get_recorder)
):
    """
    Submit quiz answers (single attempt)

    Answer i is scored against question i. The course performance summary
    is refreshed before this returns.

    percentage is score over the quiz's full total_points (or the sum of
    every question's points), so unanswered questions count against it.
    """
    submission = await recorder.submit_quiz(
        user.user_id, quiz_id,
        [a.dict() for a in body.answers],
        body.time_spent
    )
    return {"success": True, "data": submission}


@router.get("/quizzes/{quiz_id}/submission")
async def get_quiz_submission(
    quiz_id: str,
    user: UserContext = Depends(get_current_user),
    recorder: SubmissionRecorder = Depends(get_recorder)
):
    submission = await recorder.get_submission(AssessmentKind.QUIZ, user.user_id, quiz_id)
    return {"success": True, "data": submission}

# ==================== TESTS ====================

@router.post("/tests/{test_id}/submit", status_code=201)
async def submit_test(
    test_id: str,
    body: TestSubmitRequest,
    user: UserContext = Depends(get_current_user),
    recorder: SubmissionRecorder = Depends(get_recorder)
):
    """
    Submit test answers (single attempt, only inside the test window)

    Short-answer and essay questions score 0 until graded manually.
    percentage is taken over the whole test's total_points, answered or not.
    """
    submission = await recorder.submit_test(
        user.user_id, test_id,
        [a.dict() for a in body.answers],
        body.time_spent
    )
    return {"success": True, "data": submission}


@router.get("/tests/{test_id}/submission")
async def get_test_submission(
    test_id: str,
    user: UserContext = Depends(get_current_user),
    recorder: SubmissionRecorder = Depends(get_recorder)
):
    submission = await recorder.get_submission(AssessmentKind.TEST, user.user_id, test_id)
    return {"success": True, "data": submission}
