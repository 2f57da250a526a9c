"""
Text Chunker Service - fixed-size sliding window splitting with overlap.

Pages arrive either as (page_number, text) pairs (``chunk_pages``) or as one
string in which every page starts with a ``Page <n>:`` header line (see
``format_pages``). Each page is split on its own so that every chunk carries
the page it came from and an ordinal that restarts at 1 on every page.
"""
import re
from dataclasses import dataclass
from typing import Iterable, List, Tuple

PAGE_HEADER_PATTERN = re.compile(r"^Page (\d+):\n", re.MULTILINE)
PAGE_SEPARATOR = "\n\n"


@dataclass
class ChunkResult:
    """A span of page text produced by the chunker."""
    content: str
    page_number: int
    chunk_number: int


def format_pages(pages: Iterable[Tuple[int, str]]) -> str:
    """
    Join extracted pages into the marker-delimited text the chunker consumes.

    Args:
        pages: (page_number, text) pairs

    Returns:
        Text of the form "Page 1:\\n...\\n\\nPage 2:\\n...\\n\\n"
    """
    return "".join(
        f"Page {page_number}:\n{text.strip()}{PAGE_SEPARATOR}"
        for page_number, text in pages
    )


def split_pages(text: str) -> List[Tuple[int, str]]:
    """
    Split marker-delimited text back into (page_number, page_text) pairs.

    Anything before the first recognisable header is dropped.
    """
    matches = list(PAGE_HEADER_PATTERN.finditer(text))
    pages: List[Tuple[int, str]] = []

    for i, match in enumerate(matches):
        body_end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        body = text[match.end():body_end]
        if body.endswith(PAGE_SEPARATOR):
            body = body[: -len(PAGE_SEPARATOR)]
        pages.append((int(match.group(1)), body))

    return pages


def chunk_page(text: str, chunk_size: int, overlap: int) -> List[str]:
    """
    Slide a window of ``chunk_size`` characters over ``text``.

    The window advances by ``chunk_size - overlap``; the final window may be
    shorter. Windows are raw slices so that dropping the overlapping prefix
    of every chunk after the first reproduces ``text`` exactly.
    """
    if not text:
        return []

    step = chunk_size - overlap
    windows: List[str] = []
    start = 0

    while start < len(text):
        end = min(start + chunk_size, len(text))
        windows.append(text[start:end])
        if end >= len(text):
            break
        start += step

    return windows


def _check_window(chunk_size: int, overlap: int) -> None:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be in [0, chunk_size)")


def chunk_pages(
    pages: Iterable[Tuple[int, str]],
    chunk_size: int = 1000,
    overlap: int = 200,
) -> List[ChunkResult]:
    """
    Split (page_number, text) pairs into overlapping per-page chunks.

    Page text is taken as-is, so lines that look like page headers stay part
    of their page. Whitespace-only windows are never emitted.
    """
    _check_window(chunk_size, overlap)

    results: List[ChunkResult] = []

    for page_number, page_text in pages:
        chunk_number = 1
        for window in chunk_page(page_text, chunk_size, overlap):
            if not window.strip():
                continue
            results.append(ChunkResult(
                content=window,
                page_number=page_number,
                chunk_number=chunk_number,
            ))
            chunk_number += 1

    return results


def split_text_into_chunks(
    text: str,
    chunk_size: int = 1000,
    overlap: int = 200,
) -> List[ChunkResult]:
    """
    Split extracted document text into overlapping per-page chunks.

    Args:
        text: Marker-delimited document text
        chunk_size: Window size in characters (default: 1000)
        overlap: Characters shared by consecutive chunks (default: 200)

    Returns:
        ChunkResult list in page order.

    Example:
        A 2500 character page with (1000, 200) yields the spans
        [0, 1000), [800, 1800) and [1600, 2500).
    """
    _check_window(chunk_size, overlap)
    return chunk_pages(split_pages(text), chunk_size, overlap)
