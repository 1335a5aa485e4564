"""
Generation Router — /generation

Caller-facing entry points of the content → questions pipeline.
Endpoints:
  POST /generation/questions         — generate from pasted text
  POST /generation/extract           — extract text from an upload (preview + estimates)
  POST /generation/questions/upload  — extract from an upload, then generate
  POST /generation/estimate          — token / cost estimate for a block of text
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from generation.client import QuestionGenerationClient, get_default_client
from generation.estimation import estimate_cost, estimate_tokens, resolve_pricing_model
from generation.schemas import (
    ContentSource,
    EstimateRequest,
    EstimateResponse,
    ExtractResponse,
    GenerateFromTextRequest,
    GenerationConfig,
    GenerationOutcome,
    RawContent,
)
from ingestion.extractor import (
    ExtractionError,
    FileTooLargeError,
    UnsupportedFileTypeError,
    extract_text_from_bytes,
    format_file_size,
    get_file_type_label,
    read_stream,
    validate_file_size,
    validate_file_type,
)

router = APIRouter(prefix="/generation", tags=["generation"])

log = logging.getLogger("generation.api")


# ─── Dependencies ──────────────────────────────────────────────────────────────

def get_generation_client() -> QuestionGenerationClient:
    return get_default_client()


# ─── Upload helpers ────────────────────────────────────────────────────────────

def _extraction_status(error: ExtractionError) -> int:
    if isinstance(error, FileTooLargeError):
        return 413
    if isinstance(error, UnsupportedFileTypeError):
        return 415
    return 422


def _extract_upload_sync(upload: UploadFile) -> tuple[RawContent, int]:
    """
    Gate, read and parse an upload. Runs in a worker thread.

    Size (when declared) and type are checked before the first read; the
    read itself is capped by read_stream.
    """
    if upload.size is not None:
        validate_file_size(upload.size)
    validate_file_type(upload.content_type)
    data = read_stream(upload.file)
    return extract_text_from_bytes(data, upload.content_type), len(data)


async def _extract_upload(upload: UploadFile) -> tuple[RawContent, int]:
    try:
        return await asyncio.to_thread(_extract_upload_sync, upload)
    except ExtractionError as e:
        log.info(f"[EXTRACT] rejected {upload.filename!r} ({upload.content_type}): {e}")
        raise HTTPException(status_code=_extraction_status(e), detail=str(e))


# ─── Endpoints ─────────────────────────────────────────────────────────────────

@router.post("/questions", response_model=GenerationOutcome)
async def generate_from_text(
    request: GenerateFromTextRequest,
    client: QuestionGenerationClient = Depends(get_generation_client),
):
    """
    **Generate multiple-choice questions from pasted text.**

    Always answers 200; check ``success`` and ``error_message`` in the body.
    ``was_truncated`` means only the first 32,000 characters were used.
    """
    config = GenerationConfig(
        question_count=request.question_count,
        user_id=request.user_id,
        evaluation_id=request.evaluation_id,
    )
    return await client.generate(request.content, config, ContentSource.MANUAL_TEXT)


@router.post("/extract", response_model=ExtractResponse)
async def extract_upload(file: UploadFile = File(...)):
    """Extract text from a PDF or TXT upload (max 10MB) and estimate its cost."""
    content, size = await _extract_upload(file)
    tokens = estimate_tokens(content.text)
    return ExtractResponse(
        text=content.text,
        file_type_label=get_file_type_label(content.media_type),
        file_size=size,
        formatted_size=format_file_size(size),
        character_count=len(content.text),
        estimated_tokens=tokens,
        estimated_cost=estimate_cost(tokens),
    )


@router.post("/questions/upload", response_model=GenerationOutcome)
async def generate_from_upload(
    file: UploadFile = File(...),
    question_count: int = Form(...),
    user_id: str = Form(...),
    evaluation_id: str | None = Form(None),
    client: QuestionGenerationClient = Depends(get_generation_client),
):
    """Extract text from an upload, then generate questions from it."""
    content, _ = await _extract_upload(file)
    config = GenerationConfig(
        question_count=question_count,
        user_id=user_id,
        evaluation_id=evaluation_id,
    )
    return await client.generate(
        content.text,
        config,
        ContentSource.FILE_UPLOAD,
        file_type=content.media_type,
    )


@router.post("/estimate", response_model=EstimateResponse)
def estimate(request: EstimateRequest):
    """Advisory token and cost estimate. Never blocks generation."""
    model = resolve_pricing_model(request.model)
    tokens = estimate_tokens(request.content)
    return EstimateResponse(
        estimated_tokens=tokens,
        estimated_cost=estimate_cost(tokens, model),
        model=model,
    )
