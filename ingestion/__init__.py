"""
Ingestion package
Turns PDF / TXT uploads into a single normalized text blob
"""

from .extractor import (
    ALLOWED_FILE_TYPES,
    MAX_FILE_SIZE_BYTES,
    ExtractionError,
    FileTooLargeError,
    UnsupportedFileTypeError,
    EmptyContentError,
    PdfExtractionError,
    NoExtractableTextError,
    extract_text_from_bytes,
    extract_text_from_file,
    format_file_size,
    get_file_type_label,
)

__all__ = [
    "ALLOWED_FILE_TYPES",
    "MAX_FILE_SIZE_BYTES",
    "ExtractionError",
    "FileTooLargeError",
    "UnsupportedFileTypeError",
    "EmptyContentError",
    "PdfExtractionError",
    "NoExtractableTextError",
    "extract_text_from_bytes",
    "extract_text_from_file",
    "format_file_size",
    "get_file_type_label",
]
