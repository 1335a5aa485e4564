"""
Content extractor for uploaded documents.

Turns a PDF or plain-text upload into one UTF-8 text blob (RawContent).

CONSTRAINTS:
- Size and type are checked before anything is parsed
- No network I/O, no LLM calls
- Never truncates: the generation client owns truncation
"""

import io
import logging
from typing import BinaryIO, Optional

from generation.schemas import ContentSource, RawContent
from ingestion.normalizer import normalize_text

# pypdf warns on every malformed xref/font it recovers from
logging.getLogger("pypdf").setLevel(logging.ERROR)

log = logging.getLogger(__name__)


# Configuration
MAX_FILE_SIZE_MB = 10
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024
READ_CHUNK_SIZE = 1024 * 1024  # 1MB chunks

ALLOWED_FILE_TYPES = {
    "PDF": "application/pdf",
    "TXT": "text/plain",
}

PAGE_SEPARATOR = "\n\n"


# ─── Errors ────────────────────────────────────────────────────────────────────

class ExtractionError(ValueError):
    """Base class for every extraction failure. Message is user-facing."""


class FileTooLargeError(ExtractionError):
    def __init__(self, size: int):
        self.size = size
        super().__init__(f"File is too large. Maximum size: {MAX_FILE_SIZE_MB}MB")


class UnsupportedFileTypeError(ExtractionError):
    def __init__(self, media_type: Optional[str]):
        self.media_type = media_type
        super().__init__("Unsupported file type. Only PDF and TXT files are allowed")


class EmptyContentError(ExtractionError):
    pass


class PdfExtractionError(ExtractionError):
    pass


class NoExtractableTextError(PdfExtractionError):
    def __init__(self):
        super().__init__("PDF contains no extractable text (it may be a scanned image)")


# ─── Validation ────────────────────────────────────────────────────────────────

def _base_media_type(media_type: Optional[str]) -> str:
    """'text/plain; charset=utf-8' → 'text/plain'."""
    return (media_type or "").split(";")[0].strip().lower()


def validate_file_size(size: int) -> None:
    if size > MAX_FILE_SIZE_BYTES:
        raise FileTooLargeError(size)


def validate_file_type(media_type: Optional[str]) -> str:
    """Return the bare media type if it is on the allow-list."""
    base = _base_media_type(media_type)
    if base not in ALLOWED_FILE_TYPES.values():
        raise UnsupportedFileTypeError(media_type)
    return base


def read_stream(stream: BinaryIO, max_bytes: int = MAX_FILE_SIZE_BYTES) -> bytes:
    """
    Read a binary stream in chunks, failing as soon as it exceeds max_bytes.

    Raises:
        FileTooLargeError: the stream is longer than max_bytes
    """
    buffer = bytearray()
    while True:
        chunk = stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            raise FileTooLargeError(len(buffer))
    return bytes(buffer)


# ─── Parsers ───────────────────────────────────────────────────────────────────

def extract_text_from_pdf(data: bytes) -> str:
    """
    Extract text page by page, in page order, each page followed by a
    paragraph break.

    Raises:
        NoExtractableTextError: every page came back empty (scanned PDF)
        PdfExtractionError: pypdf could not read the document
    """
    from pypdf import PdfReader

    try:
        reader = PdfReader(io.BytesIO(data))
        full_text = ""
        for page in reader.pages:
            page_text = normalize_text(page.extract_text() or "")
            full_text += page_text + PAGE_SEPARATOR
        page_count = len(reader.pages)
    except Exception as e:
        log.warning("extract: pdf parse failed: %s", e)
        raise PdfExtractionError(
            "Could not extract text from the PDF. Make sure the file is not "
            "corrupted and contains text."
        ) from e

    text = full_text.strip()
    if not text:
        raise NoExtractableTextError()

    log.info("extract: pdf pages=%s chars=%s", page_count, len(text))
    return text


def extract_text_from_txt(data: bytes) -> str:
    """Decode a plain-text upload as UTF-8 (BOM stripped, bad bytes replaced)."""
    text = data.decode("utf-8-sig", errors="replace").strip()
    if not text:
        raise EmptyContentError("The text file is empty")
    log.info("extract: txt chars=%s", len(text))
    return text


# ─── Main entry points ─────────────────────────────────────────────────────────

def extract_text_from_bytes(data: bytes, media_type: Optional[str]) -> RawContent:
    """
    Extract RawContent from an in-memory upload.

    Args:
        data: Raw file bytes
        media_type: Declared media type of the upload

    Raises:
        ExtractionError: size, type or content check failed
    """
    validate_file_size(len(data))
    base = validate_file_type(media_type)

    if base == ALLOWED_FILE_TYPES["PDF"]:
        text = extract_text_from_pdf(data)
    else:
        text = extract_text_from_txt(data)

    return RawContent(text=text, source=ContentSource.FILE_UPLOAD, media_type=base)


def extract_text_from_file(
    stream: BinaryIO,
    media_type: Optional[str],
    size: Optional[int] = None,
) -> RawContent:
    """
    Extract RawContent from a file handle.

    When ``size`` is declared it is checked before the stream is touched;
    otherwise the read itself is capped.
    """
    if size is not None:
        validate_file_size(size)
    validate_file_type(media_type)
    data = read_stream(stream)
    return extract_text_from_bytes(data, media_type)


# ─── Display helpers ───────────────────────────────────────────────────────────

def get_file_type_label(media_type: Optional[str]) -> str:
    base = _base_media_type(media_type)
    for label, allowed in ALLOWED_FILE_TYPES.items():
        if base == allowed:
            return label
    return "Unknown"


def format_file_size(size: int) -> str:
    """Human-readable size, base 1024: 1536 → '1.5 KB'."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"
