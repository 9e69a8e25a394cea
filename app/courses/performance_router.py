from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.courses.aggregator import PerformanceAggregator, empty_performance
from app.courses.dependencies import get_db, get_aggregator, get_performance_store
from app.courses.permissions import (
    get_current_user, verify_course_instructor, verify_enrollment, UserContext
)
from app.courses.repositories import PerformanceStore
from app.courses.schemas import performance_to_wire, RebuildResponse

router = APIRouter(prefix="/performance", tags=["Performance"])


@router.get("/my-performance")
async def my_performance(
    user: UserContext = Depends(get_current_user),
    store: PerformanceStore = Depends(get_performance_store)
):
    """All of the caller's course summaries, most recently updated first"""
    performances = await store.list_for_student(user.user_id)
    return [performance_to_wire(p) for p in performances]


@router.get("/course/{course_id}")
async def course_performance(
    course_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
    store: PerformanceStore = Depends(get_performance_store)
):
    """
    Caller's summary for one course
    Returns the empty shape when nothing has been graded yet
    """
    await verify_enrollment(db, course_id, user)

    performance = await store.find_by_key(user.user_id, course_id)
    if not performance:
        performance = empty_performance(user.user_id, course_id)

    return performance_to_wire(performance)


@router.get("/course/{course_id}/students")
async def course_students_performance(
    course_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
    store: PerformanceStore = Depends(get_performance_store)
):
    """Every student's summary in a course, best grade first (instructor only)"""
    await verify_course_instructor(db, course_id, user)

    performances = await store.list_for_course(course_id)
    return [performance_to_wire(p) for p in performances]


@router.post("/course/{course_id}/rebuild", response_model=RebuildResponse)
async def rebuild_course_performance(
    course_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
    aggregator: PerformanceAggregator = Depends(get_aggregator)
):
    """
    Recompute summaries for every active enrollment (instructor only)
    Used to heal aggregates after failed or skipped recomputes
    """
    await verify_course_instructor(db, course_id, user)

    result = await aggregator.rebuild_course(course_id)
    return RebuildResponse(
        course_id=course_id,
        students=result["students"],
        rebuilt=result["rebuilt"],
        skipped=result["skipped"],
        message=f"Rebuilt {result['rebuilt']} of {result['students']} performance records"
    )
