"""
Grading System Configuration
Database, auth and aggregation settings
"""

import os

# MongoDB
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "learnhub_db")

# Auth (shared secret with the identity service)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM = "HS256"
REQUIRE_CLIENT_BINDING = os.getenv("REQUIRE_CLIENT_BINDING", "false").lower() == "true"
CLIENT_TIMESTAMP_TOLERANCE_SECONDS = 60

# Performance aggregation
AGGREGATION_TIMEOUT_SECONDS = float(os.getenv("AGGREGATION_TIMEOUT_SECONDS", "10"))
AGGREGATION_MAX_PASSES = int(os.getenv("AGGREGATION_MAX_PASSES", "3"))

# Content defaults
DEFAULT_ASSIGNMENT_MAX_POINTS = 100
DEFAULT_QUIZ_PASSING_SCORE = 60
DEFAULT_TEST_PASSING_SCORE = 70
DEFAULT_QUESTION_POINTS = 1

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
