from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum

# ==================== ENUMS ====================

class QuestionType(str, Enum):
    OPTION_INDEX = "option-index"  # quiz questions: pick one option by index
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    SHORT_ANSWER = "short-answer"
    ESSAY = "essay"

class AssessmentKind(str, Enum):
    QUIZ = "quiz"
    TEST = "test"
    ASSIGNMENT = "assignment"

class AssignmentSubmissionStatus(str, Enum):
    SUBMITTED = "submitted"
    LATE = "late"
    GRADED = "graded"

# ==================== SUBMISSION MODELS ====================

class QuestionResult(BaseModel):
    question_index: int
    submitted_value: Any = None
    is_correct: bool
    points_earned: int

class AssessmentSubmission(BaseModel):
    """
    Graded quiz or test attempt
    Written once at submission time, never updated
    """
    submission_id: str  # QSUB_XXXXXX / TSUB_XXXXXX
    student_id: str
    course_id: str
    answers: List[QuestionResult] = []
    score: int = 0
    total_points: int = 0
    percentage: int = 0
    passed: bool = False
    time_spent: float = 0  # minutes
    submitted_at: datetime = Field(default_factory=datetime.utcnow)

class QuizSubmission(AssessmentSubmission):
    quiz_id: str

class TestSubmission(AssessmentSubmission):
    test_id: str

class AssignmentSubmission(BaseModel):
    """
    Student work for an assignment
    Score is set later by the instructor (may be re-graded)
    """
    submission_id: str  # ASUB_XXXXXX
    student_id: str
    assignment_id: str
    course_id: str
    submission_text: str = ""
    attachments: List[Dict[str, str]] = []  # [{"filename": "...", "url": "..."}]
    score: Optional[float] = None
    feedback: str = ""
    graded_by: Optional[str] = None
    graded_at: Optional[datetime] = None
    submitted_at: datetime = Field(default_factory=datetime.utcnow)
    status: AssignmentSubmissionStatus = AssignmentSubmissionStatus.SUBMITTED

# ==================== PERFORMANCE MODELS ====================

class AssessmentScoreEntry(BaseModel):
    reference_id: str  # quiz_id or test_id
    score: int
    percentage: int
    passed: bool
    submitted_at: Optional[datetime] = None

class AssignmentScoreEntry(BaseModel):
    reference_id: str  # assignment_id
    score: float
    max_points: float
    percentage: int
    submitted_at: Optional[datetime] = None
    graded_at: Optional[datetime] = None

class Performance(BaseModel):
    """
    Derived per-(student, course) grade summary
    Rebuilt wholesale from the submission collections on every grading event
    """
    student_id: str
    course_id: str
    overall_grade: int = 0
    total_quizzes: int = 0
    total_tests: int = 0
    total_assignments: int = 0
    completed_quizzes: int = 0
    completed_tests: int = 0
    completed_assignments: int = 0
    quiz_scores: List[AssessmentScoreEntry] = []
    test_scores: List[AssessmentScoreEntry] = []
    assignment_scores: List[AssignmentScoreEntry] = []
    last_updated: datetime = Field(default_factory=datetime.utcnow)

# ==================== AUDIT ====================

class GradingAudit(BaseModel):
    audit_id: str
    actor_id: str
    action: str  # submit_quiz, submit_test, submit_assignment, grade_assignment
    target_type: str  # quiz, test, assignment_submission
    target_id: str
    metadata: dict = {}
    timestamp: datetime = Field(default_factory=datetime.utcnow)
