import io
from typing import List, Tuple

import pdfplumber


def extract_text_from_pdf_bytes(content: bytes) -> List[Tuple[int, str]]:
    """
    Extract text page by page from an in-memory PDF.

    Returns (page_number, text) pairs with 1-based page numbers taken from
    the document; pages without text (scans, blank pages) are omitted, so
    numbering can have gaps.
    """
    pages: List[Tuple[int, str]] = []
    with pdfplumber.open(io.BytesIO(content)) as pdf:
        for page in pdf.pages:
            text = page.extract_text() or ""
            lines = [line.rstrip() for line in text.splitlines()]
            text = "\n".join(lines).strip()
            if text:
                pages.append((page.page_number, text))
    return pages
