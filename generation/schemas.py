"""
Pydantic schemas for the question generation pipeline.

Layer 1 (caller):   RawContent + GenerationConfig → GenerationOutcome
Layer 2 (wire):     RemoteGenerateRequest → RemoteSuccess | RemoteFailure
Layer 3 (audit):    AuditLogEntry, one per generate() call

Python attributes are snake_case; the remote service speaks camelCase for the
envelope and snake_case for questions, so wire names are declared as aliases.
"""

import enum
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class ContentSource(str, enum.Enum):
    """Where the content came from. Recorded for audit only."""
    MANUAL_TEXT = "manual_text"
    FILE_UPLOAD = "file_upload"


# ─── Input ─────────────────────────────────────────────────────────────────────

class RawContent(BaseModel):
    """Normalized UTF-8 text plus provenance."""
    model_config = ConfigDict(frozen=True)

    text: str
    source: ContentSource = ContentSource.MANUAL_TEXT
    media_type: Optional[str] = None

    @field_validator("text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be empty")
        return value


class GenerationConfig(BaseModel):
    """
    Generation parameters for one call.

    question_count is range-checked by QuestionGenerationClient.generate,
    which reports a bad count as a failed GenerationOutcome.
    """
    question_count: int
    user_id: str
    evaluation_id: Optional[str] = None


# ─── Questions ─────────────────────────────────────────────────────────────────

class QuestionOption(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    text: str = Field(..., alias="option_text")
    is_correct: bool


class GeneratedQuestion(BaseModel):
    """One multiple-choice question: 4 options, exactly one correct."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    text: str = Field(..., alias="question_text")
    options: List[QuestionOption]

    @property
    def correct_option(self) -> QuestionOption:
        return next(opt for opt in self.options if opt.is_correct)


# ─── Outcome ───────────────────────────────────────────────────────────────────

class GenerationOutcome(BaseModel):
    """Terminal result of generate(). Built once, never mutated."""
    model_config = ConfigDict(frozen=True)

    success: bool
    questions: List[GeneratedQuestion] = Field(default_factory=list)
    questions_requested: int = 0
    tokens_used: int = 0
    elapsed_ms: int = 0
    was_truncated: bool = False
    error_message: Optional[str] = None

    @property
    def questions_generated(self) -> int:
        return len(self.questions)


# ─── Wire format (remote generation service) ──────────────────────────────────

class RemoteGenerateRequest(BaseModel):
    """POST body of the remote generation endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    content: str = ""
    number_of_questions: int = Field(0, alias="numberOfQuestions")
    user_id: str = Field("", alias="userId")


class GenerationMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    questions_generated: int = Field(0, alias="questionsGenerated")
    questions_requested: int = Field(0, alias="questionsRequested")
    tokens_used: Optional[int] = Field(None, alias="tokensUsed")
    generation_time_ms: Optional[int] = Field(None, alias="generationTimeMs")
    content_was_truncated: bool = Field(False, alias="contentWasTruncated")


class RemoteSuccess(BaseModel):
    """
    Success envelope. ``questions`` stays untyped on purpose: it is checked by
    generation.validator before any field is trusted.
    """
    model_config = ConfigDict(populate_by_name=True)

    success: Literal[True]
    questions: List[Any]
    metadata: GenerationMetadata = Field(default_factory=GenerationMetadata)


class RemoteFailure(BaseModel):
    """Failure envelope. Error responses may omit ``success`` entirely."""
    success: Literal[False] = False
    error: Optional[str] = None
    details: Optional[str] = None

    @property
    def message(self) -> str:
        if self.error and self.details:
            return f"{self.error}: {self.details}"
        return self.error or self.details or "Unknown error while generating questions"


RemoteResponse = Union[RemoteSuccess, RemoteFailure]

remote_response_adapter: TypeAdapter[RemoteResponse] = TypeAdapter(RemoteResponse)


# ─── Audit ─────────────────────────────────────────────────────────────────────

class AuditLogEntry(BaseModel):
    """One insert-only audit record per generate() call."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    evaluation_id: Optional[str] = None
    content_source: ContentSource
    file_type: Optional[str] = None
    content_length: int
    questions_requested: int
    questions_generated: int
    tokens_used: Optional[int] = None
    generation_time_ms: int
    success: bool
    error_message: Optional[str] = None


# ─── Caller-facing API bodies ─────────────────────────────────────────────────

class GenerateFromTextRequest(BaseModel):
    content: str
    question_count: int = Field(..., description="Number of questions, 5 to 50")
    user_id: str
    evaluation_id: Optional[str] = None


class EstimateRequest(BaseModel):
    content: str
    model: Optional[str] = None


class EstimateResponse(BaseModel):
    estimated_tokens: int
    estimated_cost: float
    model: str


class ExtractResponse(BaseModel):
    text: str
    file_type_label: str
    file_size: int
    formatted_size: str
    character_count: int
    estimated_tokens: int
    estimated_cost: float
