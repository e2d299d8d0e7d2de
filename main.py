"""
Exam Question Generator API — Main Application
FastAPI application exposing the batch question generation engine.
"""

from dotenv import load_dotenv
load_dotenv()

from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routers import generation


app = FastAPI(
    title="Exam Question Generator API",
    description="Batch generation of exam questions with exact MCQ/Numerical quotas",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(generation.router)


@app.get("/health")
async def health_check():
    """Basic health check - API is running"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "question-generator",
    }
