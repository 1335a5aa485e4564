"""
Question Generation Service — /functions/v1

Remote side of the generation pipeline. Called by generation.client with a
service bearer token.

Endpoints:
  POST /functions/v1/generate-questions  — content → N multiple-choice questions

Error responses are JSON ``{"error": ..., "details": ...}`` rather than
FastAPI's ``detail`` so the client can read them as a failure envelope.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from auth.security import require_service_key
from generation.client import MAX_QUESTIONS, MIN_QUESTIONS
from generation.gpt_client import MissingApiKeyError
from generation.question_generator import QuestionGenerationError, generate_questions
from generation.schemas import RemoteGenerateRequest

router = APIRouter(prefix="/functions/v1", tags=["question-service"])

log = logging.getLogger("generation.service")


def _error(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    body = {"success": False, "error": error}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


@router.post("/generate-questions", dependencies=[Depends(require_service_key)])
async def generate_questions_endpoint(request: RemoteGenerateRequest):
    """
    Generate multiple-choice questions from ``content``.

    Body: ``{content, numberOfQuestions, userId}``
    """
    if not request.content or not request.content.strip():
        return _error(status.HTTP_400_BAD_REQUEST, "Content must not be empty")

    count = request.number_of_questions
    if count < MIN_QUESTIONS or count > MAX_QUESTIONS:
        return _error(
            status.HTTP_400_BAD_REQUEST,
            f"The number of questions must be between {MIN_QUESTIONS} and {MAX_QUESTIONS}",
        )

    if not request.user_id:
        return _error(status.HTTP_401_UNAUTHORIZED, "User is not authenticated")

    log.info(f"[SERVICE] user={request.user_id} requested={count} chars={len(request.content)}")

    try:
        batch = await generate_questions(request.content, count)
    except MissingApiKeyError:
        log.error("[SERVICE] OPENAI_API_KEY is not configured")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "OpenAI API key is not configured")
    except QuestionGenerationError as e:
        log.error(f"[SERVICE] Generation failed: {e} {e.details or ''}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e), e.details)
    except Exception as e:
        log.exception("[SERVICE] Unexpected error")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Error generating questions", str(e))

    return batch.to_response()
