"""
Question Generation Engine (server side)

Backs POST /functions/v1/generate-questions: turns a block of content into N
multiple-choice questions with OpenAI GPT.

  content ─▶ truncate (32k chars) ─▶ prompt ─▶ GPT (JSON mode) ─▶ parse
          ─▶ keep structurally valid questions ─▶ GeneratedBatch

Unlike the client, this side filters: questions that fail the structural
check are dropped, and only an empty result is an error.
"""

import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import List

from generation.validator import is_valid_question

log = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 32000
TOKENS_PER_QUESTION = 200


class QuestionGenerationError(RuntimeError):
    """Generation failed after the model was called. ``details`` is diagnostic."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.details = details


@dataclass
class GeneratedBatch:
    questions: List[dict] = field(default_factory=list)
    questions_requested: int = 0
    tokens_used: int = 0
    generation_time_ms: int = 0
    content_was_truncated: bool = False

    def to_response(self) -> dict:
        return {
            "success": True,
            "questions": self.questions,
            "metadata": {
                "questionsGenerated": len(self.questions),
                "questionsRequested": self.questions_requested,
                "tokensUsed": self.tokens_used,
                "generationTimeMs": self.generation_time_ms,
                "contentWasTruncated": self.content_was_truncated,
            },
        }


# ─── Prompts ───────────────────────────────────────────────────────────────────

SYSTEM_PROMPT = """You are an expert at writing multiple-choice assessments for training courses.
Your task is to write questions based on the content provided.

Important rules:
1. Generate EXACTLY {count} questions
2. Every question must have EXACTLY 4 options
3. Only ONE option may be correct
4. Wrong options must be plausible but clearly incorrect
5. Vary the position of the correct answer (not always option A)
6. Questions should test understanding, not just memorization
7. Use clear, professional language

Response format (JSON):
{{
  "questions": [
    {{
      "question_text": "Question text",
      "options": [
        {{ "option_text": "Option A", "is_correct": false }},
        {{ "option_text": "Option B", "is_correct": true }},
        {{ "option_text": "Option C", "is_correct": false }},
        {{ "option_text": "Option D", "is_correct": false }}
      ]
    }}
  ]
}}"""

USER_PROMPT = """Generate {count} multiple-choice questions based on the following content:

{content}

Respond ONLY with the JSON, no additional text."""


# ─── Helpers ───────────────────────────────────────────────────────────────────

def truncate_content(content: str, limit: int = MAX_CONTENT_LENGTH) -> tuple[str, bool]:
    """Cut content to ``limit`` characters. Returns (content, was_truncated)."""
    if len(content) > limit:
        return content[:limit], True
    return content, False


def _extract_json_obj(raw: str) -> dict:
    raw = raw.strip()
    raw = re.sub(r"^```(?:json)?\s*", "", raw, flags=re.MULTILINE)
    raw = re.sub(r"\s*```$", "", raw, flags=re.MULTILINE)
    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start == -1 or end == 0:
        raise ValueError(f"No JSON object found: {raw[:200]}")
    return json.loads(raw[start:end])


# ─── Main generator ────────────────────────────────────────────────────────────

async def generate_questions(content: str, count: int) -> GeneratedBatch:
    """
    Generate ``count`` MCQs from ``content``.

    Input validation (empty content, count range, user id) is the router's
    job; this function assumes it has already passed.

    Raises:
        QuestionGenerationError: empty model output, bad JSON, or no valid questions
        MissingApiKeyError: OPENAI_API_KEY is not configured
    """
    from generation.gpt_client import call_gpt

    content, truncated = truncate_content(content)
    if truncated:
        log.info("generate: content truncated to %s chars", MAX_CONTENT_LENGTH)

    start = time.monotonic()
    completion = await call_gpt(
        USER_PROMPT.format(count=count, content=content),
        system=SYSTEM_PROMPT.format(count=count),
        temperature=0.7,
        max_tokens=count * TOKENS_PER_QUESTION,
        json_mode=True,
    )
    elapsed_ms = int((time.monotonic() - start) * 1000)

    if not completion.content.strip():
        raise QuestionGenerationError("No response received from the model")

    try:
        data = _extract_json_obj(completion.content)
    except ValueError as e:
        raise QuestionGenerationError("Could not parse the model response", details=str(e)) from e

    questions = data.get("questions") or []
    if not isinstance(questions, list) or not questions:
        raise QuestionGenerationError("No valid questions were generated")

    valid = [q for q in questions if is_valid_question(q)]
    if not valid:
        raise QuestionGenerationError("The generated questions do not match the required format")

    if len(valid) < len(questions):
        log.warning("generate: dropped %s malformed question(s)", len(questions) - len(valid))

    log.info(
        "generate: done requested=%s generated=%s tokens=%s time_ms=%s",
        count, len(valid), completion.total_tokens, elapsed_ms,
    )
    return GeneratedBatch(
        questions=valid,
        questions_requested=count,
        tokens_used=completion.total_tokens,
        generation_time_ms=elapsed_ms,
        content_was_truncated=truncated,
    )
