from fastapi import Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.client_bound_guard import verify_client_bound_request
from app.courses.dependencies import get_db
from app.courses.errors import AuthorizationError, NotEnrolledError, NotFoundError


class UserContext:
    """
    Validated principal for a request
    """
    def __init__(self, user_id: str, profile: dict):
        self.user_id = user_id
        self.username = profile.get("username")
        self.email = profile.get("email_id")
        self.role = profile.get("role", "student")
        self.is_admin = profile.get("is_admin", False)
        self.profile = profile


async def get_current_user(
    user: dict = Depends(verify_client_bound_request),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> UserContext:
    """
    Dependency: resolves the token subject to a profile

    Raises:
        401: Invalid token
        404: Profile not found
    """
    user_id = user.get("sub")

    profile = await db.users_profile.find_one({"user_id": user_id}, {"_id": 0})
    if not profile:
        raise HTTPException(
            status_code=404,
            detail="Profile not found. Please complete registration first."
        )

    return UserContext(user_id, profile)


async def verify_course_instructor(
    db: AsyncIOMotorDatabase,
    course_id: str,
    user: UserContext
) -> dict:
    """
    Validates the user owns the course or is an admin

    Raises:
        404: Course not found
        403: Not the owner
    """
    course = await db.courses.find_one({"course_id": course_id}, {"_id": 0})

    if not course:
        raise NotFoundError("Course not found")

    if course.get("instructor_id") != user.user_id and not user.is_admin:
        raise AuthorizationError("Not authorized")

    return course


async def verify_enrollment(
    db: AsyncIOMotorDatabase,
    course_id: str,
    user: UserContext
) -> dict:
    """Validates the user holds an active enrollment in the course"""
    enrollment = await db.course_enrollments.find_one({
        "course_id": course_id,
        "student_id": user.user_id,
        "is_active": True
    }, {"_id": 0})

    if not enrollment:
        raise NotEnrolledError()

    return enrollment
