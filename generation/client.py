"""
Generation Client

Sends content to the remote generation service and turns whatever comes
back into a GenerationOutcome. generate() never raises.

Flow per call:
  1. Input checks (empty content, 5 ≤ count ≤ 50): fail fast, no request, no audit
  2. Trim + truncate to 32,000 chars (once; every attempt resends the same body)
  3. Up to 3 attempts. Transport errors, non-2xx, a failure envelope, a
     malformed envelope or a validator rejection all count as a failed attempt.
     Attempt n failing waits n × 1000 ms before the next one.
  4. Exactly one audit entry for the whole sequence, written in the background

Config (env):
  GENERATION_SERVICE_URL      base URL of the service (default http://localhost:8001)
  GENERATION_SERVICE_KEY      bearer token
  GENERATION_TIMEOUT_SECONDS  per-request timeout (default 120)
"""

import asyncio
import logging
import os
import time
from typing import Awaitable, Callable, List, Optional, Set, Tuple

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from generation.audit_log import AuditSink
from generation.question_generator import truncate_content
from generation.schemas import (
    AuditLogEntry,
    ContentSource,
    GeneratedQuestion,
    GenerationConfig,
    GenerationMetadata,
    GenerationOutcome,
    RemoteFailure,
    RemoteGenerateRequest,
    remote_response_adapter,
)
from generation.validator import to_questions, validate_generated_questions

log = logging.getLogger(__name__)

# ── Service config ─────────────────────────────────────────────────────────────
GENERATION_SERVICE_URL = os.getenv("GENERATION_SERVICE_URL", "http://localhost:8001")
GENERATION_SERVICE_KEY = os.getenv("GENERATION_SERVICE_KEY", "")
GENERATION_TIMEOUT_SECONDS = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "120"))
ENDPOINT_PATH = "/functions/v1/generate-questions"

# ── Contract ───────────────────────────────────────────────────────────────────
MIN_QUESTIONS = 5
MAX_QUESTIONS = 50
MAX_RETRIES = 2
RETRY_DELAY_MS = 1000

INVALID_FORMAT_MESSAGE = "The generated questions do not match the required format"

Sleep = Callable[[float], Awaitable[None]]


class RemoteGenerationError(RuntimeError):
    """One failed attempt against the generation service."""


class QuestionGenerationClient:
    """
    Client for the remote question generation service.

    Holds no per-call state, so one instance can serve concurrent callers.

    Args:
        base_url:       Service base URL (default GENERATION_SERVICE_URL)
        api_key:        Bearer token (default GENERATION_SERVICE_KEY)
        audit_sink:     Callable receiving one AuditLogEntry per call; None disables auditing
        http_client:    Pre-built httpx.AsyncClient; one is created lazily otherwise
        sleep:          Coroutine used for backoff waits (default asyncio.sleep)
        max_retries:    Retries after the first attempt
        retry_delay_ms: Base delay, multiplied by the attempt number
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        audit_sink: Optional[AuditSink] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Sleep] = None,
        max_retries: int = MAX_RETRIES,
        retry_delay_ms: int = RETRY_DELAY_MS,
        timeout: float = GENERATION_TIMEOUT_SECONDS,
    ):
        self.endpoint = (base_url or GENERATION_SERVICE_URL).rstrip("/") + ENDPOINT_PATH
        self.api_key = GENERATION_SERVICE_KEY if api_key is None else api_key
        self.max_retries = max_retries
        self.retry_delay_ms = retry_delay_ms
        self.timeout = timeout
        self._audit_sink = audit_sink
        self._http = http_client
        self._owns_http = http_client is None
        self._sleep = sleep or asyncio.sleep
        self._audit_tasks: Set[asyncio.Task] = set()

    # ─── Public API ────────────────────────────────────────────────────────────

    async def generate(
        self,
        content: str,
        config: GenerationConfig,
        source: ContentSource = ContentSource.MANUAL_TEXT,
        file_type: Optional[str] = None,
    ) -> GenerationOutcome:
        """
        Generate ``config.question_count`` questions from ``content``.

        Always returns; every failure is a ``success=False`` outcome.
        """
        requested = config.question_count

        if not content or not content.strip():
            return self._rejected("Content must not be empty", requested)

        if requested < MIN_QUESTIONS or requested > MAX_QUESTIONS:
            return self._rejected(
                f"The number of questions must be between {MIN_QUESTIONS} and {MAX_QUESTIONS}",
                requested,
            )

        payload_content, truncated = truncate_content(content.strip())
        payload = RemoteGenerateRequest(
            content=payload_content,
            number_of_questions=requested,
            user_id=config.user_id,
        ).model_dump(by_alias=True)

        log.info(
            "generate: start user=%s requested=%s chars=%s truncated=%s",
            config.user_id, requested, len(content), truncated,
        )

        try:
            async for attempt in self._retrying():
                with attempt:
                    questions, metadata, wall_ms = await self._attempt(payload)
        except Exception as e:
            return self._exhausted(e, content, config, source, file_type, truncated)

        elapsed_ms = metadata.generation_time_ms or wall_ms
        tokens_used = metadata.tokens_used or 0
        self._emit_audit(AuditLogEntry(
            user_id=config.user_id,
            evaluation_id=config.evaluation_id,
            content_source=source,
            file_type=file_type,
            content_length=len(content),
            questions_requested=requested,
            questions_generated=len(questions),
            tokens_used=tokens_used,
            generation_time_ms=elapsed_ms,
            success=True,
        ))
        log.info(
            "generate: done attempt=%s generated=%s tokens=%s time_ms=%s",
            attempt.retry_state.attempt_number, len(questions), tokens_used, elapsed_ms,
        )
        return GenerationOutcome(
            success=True,
            questions=questions,
            questions_requested=requested,
            tokens_used=tokens_used,
            elapsed_ms=elapsed_ms,
            was_truncated=truncated,
        )

    async def drain_audit(self) -> None:
        """Wait for audit writes still in flight."""
        while any(not task.done() for task in self._audit_tasks):
            await asyncio.gather(*list(self._audit_tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain_audit()
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    # ─── Retry ─────────────────────────────────────────────────────────────────

    def _retrying(self) -> AsyncRetrying:
        """Attempt n failing waits n × retry_delay_ms; the last failure is re-raised."""
        step = self.retry_delay_ms / 1000
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_incrementing(start=step, increment=step),
            retry=retry_if_exception_type(Exception),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        log.warning(
            "generate: attempt %s/%s failed, retrying in %.1fs: %s",
            retry_state.attempt_number,
            self.max_retries + 1,
            retry_state.next_action.sleep,
            retry_state.outcome.exception(),
        )

    def _exhausted(
        self,
        error: Exception,
        content: str,
        config: GenerationConfig,
        source: ContentSource,
        file_type: Optional[str],
        truncated: bool,
    ) -> GenerationOutcome:
        message = str(error) or type(error).__name__
        log.error("generate: giving up after %s attempts: %s", self.max_retries + 1, message)
        self._emit_audit(AuditLogEntry(
            user_id=config.user_id,
            evaluation_id=config.evaluation_id,
            content_source=source,
            file_type=file_type,
            content_length=len(content),
            questions_requested=config.question_count,
            questions_generated=0,
            tokens_used=None,
            generation_time_ms=0,
            success=False,
            error_message=message,
        ))
        return GenerationOutcome(
            success=False,
            questions_requested=config.question_count,
            was_truncated=truncated,
            error_message=message,
        )

    # ─── One attempt ───────────────────────────────────────────────────────────

    async def _attempt(self, payload: dict) -> Tuple[List[GeneratedQuestion], GenerationMetadata, int]:
        http = self._get_http()
        start = time.monotonic()
        response = await http.post(self.endpoint, json=payload, headers=self._headers())
        wall_ms = int((time.monotonic() - start) * 1000)

        if not response.is_success:
            raise RemoteGenerationError(self._http_error_message(response))

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteGenerationError("Generation service returned invalid JSON") from e

        try:
            envelope = remote_response_adapter.validate_python(data)
        except ValidationError as e:
            raise RemoteGenerationError(
                f"Malformed response from generation service ({e.error_count()} error(s))"
            ) from e

        if isinstance(envelope, RemoteFailure):
            raise RemoteGenerationError(envelope.message)

        if not validate_generated_questions(envelope.questions):
            raise RemoteGenerationError(INVALID_FORMAT_MESSAGE)

        return to_questions(envelope.questions), envelope.metadata, wall_ms

    def _http_error_message(self, response: httpx.Response) -> str:
        fallback = f"HTTP error! status: {response.status_code}"
        try:
            data = response.json()
        except ValueError:
            return fallback
        if isinstance(data, dict) and (data.get("error") or data.get("detail")):
            return str(data.get("error") or data.get("detail"))
        return fallback

    # ─── Plumbing ──────────────────────────────────────────────────────────────

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout)
        return self._http

    def _rejected(self, message: str, requested: int) -> GenerationOutcome:
        log.info("generate: rejected before request: %s", message)
        return GenerationOutcome(
            success=False,
            questions_requested=requested,
            error_message=message,
        )

    def _emit_audit(self, entry: AuditLogEntry) -> None:
        if self._audit_sink is None:
            return
        task = asyncio.get_running_loop().create_task(self._write_audit(entry))
        self._audit_tasks.add(task)
        task.add_done_callback(self._audit_tasks.discard)

    async def _write_audit(self, entry: AuditLogEntry) -> None:
        try:
            await asyncio.to_thread(self._audit_sink, entry)
        except Exception as e:
            log.error("audit: sink failed, entry dropped: %s", e)


# ─── Default client ────────────────────────────────────────────────────────────

_default_client: Optional[QuestionGenerationClient] = None


def get_default_client() -> QuestionGenerationClient:
    """Lazy singleton wired to the SQL audit log."""
    global _default_client
    if _default_client is None:
        from database.database import SessionLocal
        from generation.audit_log import SqlAuditSink

        _default_client = QuestionGenerationClient(audit_sink=SqlAuditSink(SessionLocal))
    return _default_client


async def close_default_client() -> None:
    """Drain pending audit writes and release the default client, if one was built."""
    global _default_client
    if _default_client is not None:
        await _default_client.aclose()
        _default_client = None
