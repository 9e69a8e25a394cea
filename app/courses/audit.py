from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.courses.database import generate_id
from app.courses.models import GradingAudit


async def log_grading_audit(
    db: AsyncIOMotorDatabase,
    actor_id: str,
    action: str,
    target_type: str,
    target_id: str,
    metadata: dict = None
):
    """
    Record a submission or grading action

    Args:
        actor_id: Student or instructor performing the action
        action: submit_quiz, submit_test, submit_assignment, grade_assignment
        target_type: quiz, test, assignment_submission
        target_id: ID of the resource
        metadata: Additional context (optional)
    """
    audit = GradingAudit(
        audit_id=generate_id("AUD"),
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata=metadata or {},
        timestamp=datetime.utcnow()
    )

    await db.grading_audits.insert_one(audit.dict())


