import asyncio
import json

import httpx
import pytest

from generation.client import (
    MAX_RETRIES,
    QuestionGenerationClient,
    close_default_client,
    get_default_client,
)
from generation.schemas import ContentSource, GenerationConfig
from tests.conftest import (
    SERVICE_URL,
    RecordingSleep,
    ScriptedService,
    make_client,
    make_question,
    make_success,
)

MITOCHONDRIA = "The mitochondria is the powerhouse of the cell."


def run_generate(service, content=MITOCHONDRIA, count=5, audit=None, sleep=None,
                 source=ContentSource.MANUAL_TEXT, file_type=None, **client_kwargs):
    """Run one generate() call and wait for its audit write."""
    async def _run():
        client = make_client(service, audit=audit, sleep=sleep, **client_kwargs)
        try:
            config = GenerationConfig(question_count=count, user_id="user-1")
            return await client.generate(content, config, source, file_type)
        finally:
            await client.aclose()
            await client._http.aclose()

    return asyncio.run(_run())


# ─── Input gating ──────────────────────────────────────────────────────────────

@pytest.mark.parametrize("count", [-1, 0, 4, 51, 100])
def test_out_of_range_count_fails_fast_without_network(count, audit_entries):
    service = ScriptedService(make_success())
    outcome = run_generate(service, count=count, audit=audit_entries)

    assert outcome.success is False
    assert outcome.elapsed_ms == 0
    assert outcome.tokens_used == 0
    assert outcome.questions == []
    assert "between 5 and 50" in outcome.error_message
    assert service.call_count == 0
    assert audit_entries == []


@pytest.mark.parametrize("count", [5, 50])
def test_range_bounds_are_inclusive(count):
    service = ScriptedService(make_success(count))
    outcome = run_generate(service, count=count)
    assert outcome.success is True
    assert service.call_count == 1


@pytest.mark.parametrize("content", ["", "   ", "\n\t"])
def test_empty_content_fails_fast(content):
    service = ScriptedService(make_success())
    outcome = run_generate(service, content=content)
    assert outcome.success is False
    assert outcome.error_message == "Content must not be empty"
    assert outcome.elapsed_ms == 0
    assert service.call_count == 0


# ─── Happy path ────────────────────────────────────────────────────────────────

def test_end_to_end_mitochondria(audit_entries):
    service = ScriptedService(make_success(5))
    outcome = run_generate(service, audit=audit_entries)

    assert outcome.success is True
    assert len(outcome.questions) == 5
    assert outcome.was_truncated is False
    assert outcome.tokens_used == 1234
    assert outcome.elapsed_ms == 850
    assert outcome.error_message is None

    sent = json.loads(service.requests[0].content)
    assert sent == {"content": MITOCHONDRIA, "numberOfQuestions": 5, "userId": "user-1"}

    assert len(audit_entries) == 1
    entry = audit_entries[0]
    assert entry.success is True
    assert entry.questions_generated == 5
    assert entry.questions_requested == 5
    assert entry.tokens_used == 1234
    assert entry.generation_time_ms == 850
    assert entry.content_source == ContentSource.MANUAL_TEXT
    assert entry.content_length == len(MITOCHONDRIA)


def test_request_is_bearer_authenticated_post_to_service_endpoint():
    service = ScriptedService(make_success())
    run_generate(service)
    request = service.requests[0]
    assert request.method == "POST"
    assert str(request.url) == f"{SERVICE_URL}/functions/v1/generate-questions"
    assert request.headers["Authorization"] == "Bearer test-service-key"


@pytest.mark.parametrize("time_ms", [None, 0])
def test_elapsed_falls_back_to_client_timing_when_server_omits_it(time_ms, audit_entries):
    async def slow_service(request):
        await asyncio.sleep(0.15)
        return httpx.Response(200, json=make_success(time_ms=time_ms))

    outcome = run_generate(slow_service, audit=audit_entries)

    assert outcome.success is True
    assert 140 <= outcome.elapsed_ms < 5000
    assert audit_entries[0].generation_time_ms == outcome.elapsed_ms


def test_server_reported_timing_wins_over_client_timing():
    async def slow_service(request):
        await asyncio.sleep(0.15)
        return httpx.Response(200, json=make_success(time_ms=7))

    outcome = run_generate(slow_service)
    assert outcome.elapsed_ms == 7


def test_questions_are_typed_models():
    service = ScriptedService(make_success(5))
    outcome = run_generate(service)
    first = outcome.questions[0]
    assert first.text == "Question 1?"
    assert [o.text for o in first.options] == ["Option A", "Option B", "Option C", "Option D"]
    assert first.correct_option.text == "Option A"


def test_file_upload_provenance_is_audited(audit_entries):
    service = ScriptedService(make_success())
    run_generate(service, audit=audit_entries, source=ContentSource.FILE_UPLOAD, file_type="application/pdf")
    assert audit_entries[0].content_source == ContentSource.FILE_UPLOAD
    assert audit_entries[0].file_type == "application/pdf"


# ─── Truncation ────────────────────────────────────────────────────────────────

def test_long_content_truncated_to_32000_chars(audit_entries):
    service = ScriptedService(make_success())
    content = "a" * 40000
    outcome = run_generate(service, content=content, audit=audit_entries)

    assert outcome.success is True
    assert outcome.was_truncated is True
    sent = json.loads(service.requests[0].content)
    assert len(sent["content"]) == 32000
    # audit records what the caller supplied
    assert audit_entries[0].content_length == 40000


def test_content_at_limit_not_truncated():
    service = ScriptedService(make_success())
    outcome = run_generate(service, content="b" * 32000)
    assert outcome.was_truncated is False
    assert len(json.loads(service.requests[0].content)["content"]) == 32000


# ─── Retry / backoff ───────────────────────────────────────────────────────────

def test_two_failures_then_success_uses_linear_backoff(recording_sleep, audit_entries):
    service = ScriptedService(
        httpx.Response(500, json={"error": "upstream exploded"}),
        httpx.ConnectError("connection refused"),
        make_success(5),
    )
    outcome = run_generate(service, audit=audit_entries, sleep=recording_sleep)

    assert outcome.success is True
    assert len(outcome.questions) == 5
    assert service.call_count == 3
    assert recording_sleep.delays == [1.0, 2.0]
    assert len(audit_entries) == 1
    assert audit_entries[0].success is True


def test_every_attempt_resends_identical_body(recording_sleep):
    service = ScriptedService(httpx.Response(503), httpx.Response(503), make_success())
    run_generate(service, content="c" * 35000, sleep=recording_sleep)
    bodies = [r.content for r in service.requests]
    assert len(bodies) == 3
    assert bodies[0] == bodies[1] == bodies[2]


def test_three_option_questions_exhaust_retries(recording_sleep, audit_entries):
    malformed = make_success(questions=[make_question(i, n_options=3) for i in range(5)])
    service = ScriptedService(malformed)
    outcome = run_generate(service, audit=audit_entries, sleep=recording_sleep)

    assert service.call_count == MAX_RETRIES + 1 == 3
    assert recording_sleep.delays == [1.0, 2.0]
    assert outcome.success is False
    assert outcome.questions == []
    assert outcome.tokens_used == 0
    assert outcome.elapsed_ms == 0
    assert outcome.error_message == "The generated questions do not match the required format"

    assert len(audit_entries) == 1
    entry = audit_entries[0]
    assert entry.success is False
    assert entry.questions_generated == 0
    assert entry.tokens_used is None
    assert entry.generation_time_ms == 0
    assert entry.error_message == outcome.error_message


def test_failure_envelope_is_retried_and_last_message_kept(recording_sleep):
    service = ScriptedService(
        {"success": False, "error": "first problem"},
        {"success": False, "error": "second problem"},
        {"success": False, "error": "Rate limited", "details": "try later"},
    )
    outcome = run_generate(service, sleep=recording_sleep)
    assert service.call_count == 3
    assert outcome.success is False
    assert outcome.error_message == "Rate limited: try later"


def test_non_2xx_error_body_message_is_preserved(recording_sleep):
    service = ScriptedService(httpx.Response(400, json={"success": False, "error": "User is not authenticated"}))
    outcome = run_generate(service, sleep=recording_sleep)
    assert outcome.error_message == "User is not authenticated"


def test_non_2xx_without_json_reports_status(recording_sleep):
    service = ScriptedService(httpx.Response(502, text="<html>Bad gateway</html>"))
    outcome = run_generate(service, sleep=recording_sleep)
    assert outcome.success is False
    assert outcome.error_message == "HTTP error! status: 502"


@pytest.mark.parametrize("reply", [
    httpx.Response(200, text="not json"),
    httpx.Response(200, json=["a", "list"]),
    httpx.Response(200, json={"success": True}),
    httpx.Response(200, json={"success": True, "questions": "nope"}),
    httpx.Response(200, json={"success": True, "questions": []}),
])
def test_malformed_envelopes_are_retried(reply, recording_sleep):
    service = ScriptedService(reply, make_success())
    outcome = run_generate(service, sleep=recording_sleep)
    assert outcome.success is True
    assert service.call_count == 2
    assert recording_sleep.delays == [1.0]


def test_transport_errors_exhaust_into_failed_outcome(recording_sleep, audit_entries):
    service = ScriptedService(httpx.ReadTimeout("timed out"))
    outcome = run_generate(service, audit=audit_entries, sleep=recording_sleep)
    assert outcome.success is False
    assert "timed out" in outcome.error_message
    assert service.call_count == 3
    assert len(audit_entries) == 1


def test_zero_retries_makes_a_single_attempt(recording_sleep):
    service = ScriptedService(httpx.Response(500))
    run_generate(service, sleep=recording_sleep, max_retries=0)
    assert service.call_count == 1
    assert recording_sleep.delays == []


def test_real_backoff_suspends_only_the_failing_call():
    """A retrying call must not block another call on the same loop."""
    slow = ScriptedService(httpx.Response(500), make_success())
    fast = ScriptedService(make_success())

    async def _run():
        retrying = make_client(slow, sleep=asyncio.sleep, retry_delay_ms=200)
        quick = make_client(fast)
        config = GenerationConfig(question_count=5, user_id="u")
        order = []

        async def tagged(name, client):
            outcome = await client.generate("some content", config)
            order.append(name)
            return outcome

        results = await asyncio.gather(tagged("retrying", retrying), tagged("quick", quick))
        for c in (retrying, quick):
            await c._http.aclose()
        return results, order

    (first, second), order = asyncio.run(_run())
    assert first.success and second.success
    assert order == ["quick", "retrying"]


# ─── Audit isolation & independence ────────────────────────────────────────────

def test_audit_sink_failure_never_reaches_caller():
    def broken_sink(entry):
        raise RuntimeError("database is down")

    async def _run():
        http = httpx.AsyncClient(transport=httpx.MockTransport(ScriptedService(make_success())))
        client = QuestionGenerationClient(
            base_url=SERVICE_URL, api_key="k", audit_sink=broken_sink,
            http_client=http, sleep=RecordingSleep(),
        )
        outcome = await client.generate(MITOCHONDRIA, GenerationConfig(question_count=5, user_id="u"))
        await client.aclose()
        await http.aclose()
        return outcome

    outcome = asyncio.run(_run())
    assert outcome.success is True


def test_repeated_calls_are_independent(audit_entries):
    service = ScriptedService(make_success(5))

    async def _run():
        client = make_client(service, audit=audit_entries)
        config = GenerationConfig(question_count=5, user_id="user-1")
        first = await client.generate(MITOCHONDRIA, config)
        second = await client.generate(MITOCHONDRIA, config)
        await client.aclose()
        await client._http.aclose()
        return first, second

    first, second = asyncio.run(_run())
    assert first.success and second.success
    assert first is not second
    assert service.call_count == 2
    assert len(audit_entries) == 2


def test_outcome_is_frozen():
    outcome = run_generate(ScriptedService(make_success()))
    with pytest.raises(Exception):
        outcome.success = False


def test_default_client_is_shared_until_closed():
    first = get_default_client()
    assert get_default_client() is first

    asyncio.run(close_default_client())
    second = get_default_client()
    assert second is not first

    asyncio.run(close_default_client())
