"""
Course grading system - route and startup wiring
Quiz/test submission, assignment grading and performance summaries
"""

import logging
from fastapi import FastAPI

from app.courses.assignment_router import router as assignment_router
from app.courses.database import get_database, create_grading_indexes
from app.courses.performance_router import router as performance_router
from app.courses.submission_router import router as submission_router

logger = logging.getLogger(__name__)

# ==================== ROUTER SETUP ====================

def setup_grading_routes(app: FastAPI):
    """Register all grading-related routers"""

    app.include_router(submission_router)
    app.include_router(assignment_router)
    app.include_router(performance_router)

    logger.info("[STARTUP] Grading routes registered")

# ==================== STARTUP ====================

async def startup_grading_system():
    """Initialize grading system on app startup"""
    await create_grading_indexes(get_database())
    logger.info("[STARTUP] Grading system initialized")
