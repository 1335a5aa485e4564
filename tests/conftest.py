import io
import os

# Must be set before database.database is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GENERATION_SERVICE_KEY"] = "test-service-key"

import httpx
import pytest

from database.database import Base, engine
from database import models  # noqa: F401
from generation.client import QuestionGenerationClient

SERVICE_URL = "http://generation.test"


# ─── Payload builders ──────────────────────────────────────────────────────────

def make_question(i: int = 1, correct: int = 0, n_options: int = 4) -> dict:
    return {
        "question_text": f"Question {i}?",
        "options": [
            {"option_text": f"Option {chr(65 + j)}", "is_correct": j == correct}
            for j in range(n_options)
        ],
    }


def make_success(n: int = 5, tokens: int = 1234, time_ms=850, questions=None) -> dict:
    questions = questions if questions is not None else [make_question(i + 1, correct=i % 4) for i in range(n)]
    metadata = {
        "questionsGenerated": len(questions),
        "questionsRequested": n,
        "tokensUsed": tokens,
        "contentWasTruncated": False,
    }
    if time_ms is not None:
        metadata["generationTimeMs"] = time_ms
    return {"success": True, "questions": questions, "metadata": metadata}


def build_pdf(pages) -> bytes:
    """Minimal PDF with one Helvetica text line per page."""
    n = len(pages)
    kids = " ".join(f"{4 + 2 * i} 0 R" for i in range(n))
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {n} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for i, text in enumerate(pages):
        objects.append(
            f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            f"/Resources << /Font << /F1 3 0 R >> >> /Contents {5 + 2 * i} 0 R >>".encode()
        )
        stream = f"BT /F1 12 Tf 72 720 Td ({text}) Tj ET".encode()
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for num, obj in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{num} 0 obj\n".encode() + obj + b"\nendobj\n"
    xref = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for off in offsets:
        out += f"{off:010d} 00000 n \n".encode()
    out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref}\n%%EOF\n".encode()
    return bytes(out)


def build_blank_pdf(pages: int = 2) -> bytes:
    """Image-only stand-in: pages with no text layer."""
    from pypdf import PdfWriter

    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


# ─── Fakes ─────────────────────────────────────────────────────────────────────

class RecordingSleep:
    """Stands in for asyncio.sleep; records requested delays in seconds."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class ScriptedService:
    """
    MockTransport handler that replays one scripted reply per request.

    A reply is either an httpx.Response, a dict (sent as 200 JSON), or an
    exception instance (raised as a transport error). The last reply repeats.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies[min(len(self.requests), len(self.replies)) - 1]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            # fresh copy: a Response object is consumed once it is sent
            return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)
        return httpx.Response(200, json=reply)

    @property
    def call_count(self) -> int:
        return len(self.requests)


def make_client(handler, audit=None, sleep=None, **kwargs) -> QuestionGenerationClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return QuestionGenerationClient(
        base_url=SERVICE_URL,
        api_key="test-service-key",
        audit_sink=audit.append if audit is not None else None,
        http_client=http,
        sleep=sleep or RecordingSleep(),
        **kwargs,
    )


# ─── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def audit_entries():
    return []


@pytest.fixture
def db_session():
    from database.database import SessionLocal

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
