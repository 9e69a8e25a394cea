import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.courses.app import setup_grading_routes, startup_grading_system
from app.courses.config import LOG_LEVEL

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s"
)

VERSION = os.getenv("VERSION", "dev")

app = FastAPI(title="LearnHub Grading Service", version=VERSION)


@app.on_event("startup")
async def startup_event():
    await startup_grading_system()


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== ROUTER REGISTRATION ====================
setup_grading_routes(app)


@app.get("/health")
async def health():
    return {"status": "UP", "version": VERSION}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
