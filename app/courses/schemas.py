from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

# ==================== REQUEST SCHEMAS ====================

class QuizAnswer(BaseModel):
    # Kept untyped so "1" and 1 reach the scorer as sent
    selected_answer: Any = None

class TestAnswer(BaseModel):
    answer: Any = None  # scalar or list, depending on question type

class QuizSubmitRequest(BaseModel):
    answers: List[QuizAnswer]
    time_spent: float = Field(0, ge=0)  # minutes

class TestSubmitRequest(BaseModel):
    answers: List[TestAnswer]
    time_spent: float = Field(0, ge=0)

class Attachment(BaseModel):
    filename: str
    url: str

class AssignmentSubmitRequest(BaseModel):
    submission_text: str = ""
    attachments: List[Attachment] = []

class GradeRequest(BaseModel):
    submission_id: str = Field(..., min_length=1)
    score: float
    feedback: str = ""

# ==================== PERFORMANCE WIRE FORMAT ====================

def _assessment_entry_to_wire(entry: dict) -> dict:
    return {
        "referenceId": entry["reference_id"],
        "score": entry["score"],
        "percentage": entry["percentage"],
        "passed": entry["passed"],
        "submittedAt": entry.get("submitted_at"),
    }


def _assignment_entry_to_wire(entry: dict) -> dict:
    return {
        "referenceId": entry["reference_id"],
        "score": entry["score"],
        "maxPoints": entry["max_points"],
        "percentage": entry["percentage"],
        "submittedAt": entry.get("submitted_at"),
        "gradedAt": entry.get("graded_at"),
    }


def performance_to_wire(doc: dict) -> Dict[str, Any]:
    """Performance document in the shape consumed by reporting clients"""
    return {
        "student": doc["student_id"],
        "course": doc["course_id"],
        "overallGrade": doc.get("overall_grade", 0),
        "totalQuizzes": doc.get("total_quizzes", 0),
        "totalTests": doc.get("total_tests", 0),
        "totalAssignments": doc.get("total_assignments", 0),
        "completedQuizzes": doc.get("completed_quizzes", 0),
        "completedTests": doc.get("completed_tests", 0),
        "completedAssignments": doc.get("completed_assignments", 0),
        "quizScores": [_assessment_entry_to_wire(e) for e in doc.get("quiz_scores", [])],
        "testScores": [_assessment_entry_to_wire(e) for e in doc.get("test_scores", [])],
        "assignmentScores": [_assignment_entry_to_wire(e) for e in doc.get("assignment_scores", [])],
        "lastUpdated": doc.get("last_updated"),
    }


class RebuildResponse(BaseModel):
    course_id: str
    students: int
    rebuilt: int
    skipped: int = 0
    message: Optional[str] = None
