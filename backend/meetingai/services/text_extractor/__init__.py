"""Text extraction for knowledge-base uploads (PDF only)."""

from .pdf import extract_text_from_pdf_bytes

__all__ = ["extract_text_from_pdf_bytes"]
