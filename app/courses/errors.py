from fastapi import HTTPException


class GradingError(HTTPException):
    """
    Base for business-rule rejections raised by the grading services.
    Subclasses fix the status code so routers can let them propagate.
    """
    status_code = 400
    default_detail = "Request rejected"

    def __init__(self, detail: str = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class ValidationError(GradingError):
    status_code = 400
    default_detail = "Invalid submission payload"


class NotFoundError(GradingError):
    status_code = 404
    default_detail = "Resource not found"


class AuthorizationError(GradingError):
    status_code = 403
    default_detail = "Not authorized"


class NotEnrolledError(AuthorizationError):
    default_detail = "Not enrolled in this course"


class NotPublishedError(GradingError):
    status_code = 400
    default_detail = "Not published"


class OutOfWindowError(GradingError):
    status_code = 400
    default_detail = "Test is not available at this time"


class AlreadySubmittedError(GradingError):
    status_code = 409
    default_detail = "Already submitted"


class AggregationFailure(Exception):
    """
    Internal: performance recompute failed.
    Logged and swallowed, never returned to the caller that triggered it.
    """

    def __init__(self, student_id: str, course_id: str, reason: str):
        self.student_id = student_id
        self.course_id = course_id
        self.reason = reason
        super().__init__(f"Aggregation failed for {student_id}/{course_id}: {reason}")
