"""
Question Generation API — Main Application
FastAPI application for turning pasted text or uploaded documents into
validated multiple-choice question sets.
"""

from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from database.database import engine, Base
from database import models  # noqa: F401  (registers ai_generation_logs)
from generation.client import close_default_client
from routers import generation, question_service

logging.basicConfig(level=logging.INFO, format="%(asctime)s  %(levelname)s  %(name)s  %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create tables. Shutdown: flush pending audit writes."""
    Base.metadata.create_all(bind=engine)
    yield
    await close_default_client()


app = FastAPI(
    title="Question Generation API",
    description="Content extraction, AI question generation and structural validation",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ─── Routers ───────────────────────────────────────────────────────────────────

app.include_router(generation.router)          # /generation/*  (caller-facing)
app.include_router(question_service.router)    # /functions/v1/* (remote generation service)


@app.get("/")
def root():
    return {
        "name": "Question Generation API",
        "version": "1.0.0",
        "endpoints": {
            "docs": "/docs",
            "generation": "/generation",
            "service": "/functions/v1/generate-questions",
        },
    }


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "question-generation-api"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
