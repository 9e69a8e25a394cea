from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.courses.aggregator import PerformanceAggregator
from app.courses.database import get_database
from app.courses.recorder import SubmissionRecorder
from app.courses.repositories import SubmissionReader, CourseContentReader, PerformanceStore

# ==================== DEPENDENCY FUNCTIONS ====================

async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return get_database()


def build_aggregator(db: AsyncIOMotorDatabase) -> PerformanceAggregator:
    """Wire the aggregator to Mongo-backed collaborators"""
    return PerformanceAggregator(
        submissions=SubmissionReader(db),
        content=CourseContentReader(db),
        store=PerformanceStore(db),
    )


async def get_aggregator(db: AsyncIOMotorDatabase = Depends(get_db)) -> PerformanceAggregator:
    return build_aggregator(db)


async def get_performance_store(db: AsyncIOMotorDatabase = Depends(get_db)) -> PerformanceStore:
    return PerformanceStore(db)


async def get_recorder(
    db: AsyncIOMotorDatabase = Depends(get_db),
    aggregator: PerformanceAggregator = Depends(get_aggregator)
) -> SubmissionRecorder:
    return SubmissionRecorder(db, aggregator)
