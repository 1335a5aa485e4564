"""
Unicode and text normalization for extracted PDF page text.

pypdf output carries layout artifacts (CID placeholders, private-use glyphs,
control characters, hard line wraps). Each page is flattened to a single
clean line before pages are joined.
"""

import re


def normalize_text(text: str) -> str:
    """
    Normalize text to remove PDF artifacts and clean up formatting.

    Removes:
    - CID artifacts from PDF: (cid:123)
    - Private Use Area characters (custom PDF symbols/bullets)
    - Unicode control characters and zero-width spaces

    Normalizes:
    - Exotic spaces to a regular space
    - Runs of whitespace (including newlines) to a single space

    Punctuation spacing is left as extracted.
    """
    if not text or not text.strip():
        return ""

    # Remove CID artifacts (PDF encoding errors like "(cid:123)")
    text = re.sub(r'\(cid:\d+\)', '', text)

    # Remove Private Use Area (PUA) characters: U+E000..U+F8FF
    text = re.sub(r'[\uE000-\uF8FF]', '', text)

    # Line breaks and tabs become spaces before control characters are dropped
    text = re.sub(r'[\t\n\r\f\v]', ' ', text)

    # Remove unicode control characters and zero-width spaces
    text = re.sub(r'[\u0000-\u001F\u007F-\u009F\u200B-\u200D\uFEFF]', '', text)

    # Normalize different types of spaces to regular space
    text = re.sub(r'[\u00A0\u2000-\u200A\u202F\u205F]', ' ', text)

    text = re.sub(r'\s+', ' ', text)

    return text.strip()
