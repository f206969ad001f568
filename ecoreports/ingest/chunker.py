"""
Section-aware text chunking for embedding.

Fixed-size character windows with overlap, snapped back to the last sentence
or paragraph break when one falls late enough in the window.  Every chunk is
labelled with the first section whose keywords appear in it.
"""

import re

from ecoreports.config import CHUNK_SIZE, CHUNK_OVERLAP, CHUNK_MIN_BREAK_RATIO
from ecoreports.models import SectionType

# Checked in order; the first match wins.
SECTION_PATTERNS: list[tuple[SectionType, re.Pattern]] = [
    (SectionType.SUMMARY, re.compile(r"resumen|summary|executive summary", re.IGNORECASE)),
    (SectionType.STRENGTHS, re.compile(r"fortalezas|strengths|ventajas|advantages", re.IGNORECASE)),
    (SectionType.CHALLENGES, re.compile(r"retos|challenges|desafíos|obstacles", re.IGNORECASE)),
    (
        SectionType.RECOMMENDATIONS,
        re.compile(r"recomendaciones|recommendations|sugerencias|suggestions", re.IGNORECASE),
    ),
    (SectionType.METRICS, re.compile(r"métricas|metrics|indicadores|kpis|performance", re.IGNORECASE)),
]


def classify_section(text: str) -> SectionType:
    """Return the section label for a piece of text."""
    for section, pattern in SECTION_PATTERNS:
        if pattern.search(text):
            return section
    return SectionType.OTHER


def _find_break(window: str, min_offset: float) -> int | None:
    """Offset just past the last '.' or paragraph break, if beyond *min_offset*."""
    breakpoint_ = max(window.rfind("."), window.rfind("\n\n"))
    if breakpoint_ > min_offset:
        return breakpoint_ + 1
    return None


def chunk_text(
    text: str,
    chunk_size: int | None = None,
    overlap: int | None = None,
    min_break_ratio: float | None = None,
) -> list[dict]:
    """
    Split *text* into overlapping, section-labelled chunks.

    Returns a list of dicts:
        {"content": str, "section_type": SectionType,
         "start_char": int, "end_char": int}

    ``start_char``/``end_char`` delimit the window in *text*; ``content`` is
    that window stripped of surrounding whitespace.
    """
    chunk_size = chunk_size if chunk_size is not None else CHUNK_SIZE
    overlap = overlap if overlap is not None else CHUNK_OVERLAP
    min_break_ratio = min_break_ratio if min_break_ratio is not None else CHUNK_MIN_BREAK_RATIO

    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if not 0 <= overlap < chunk_size:
        raise ValueError("overlap must be >= 0 and smaller than chunk_size")
    if not 0 <= min_break_ratio <= 1:
        raise ValueError("min_break_ratio must be between 0 and 1")

    if not text or not text.strip():
        return []

    total = len(text)
    chunks: list[dict] = []
    start = 0
    while start < total:
        end = min(start + chunk_size, total)
        if end < total:
            cut = _find_break(text[start:end], chunk_size * min_break_ratio)
            if cut is not None:
                end = start + cut

        content = text[start:end].strip()
        chunks.append({
            "content": content,
            "section_type": classify_section(content),
            "start_char": start,
            "end_char": end,
        })

        if end >= total:
            break
        # Step back for overlap, but always make forward progress
        start = max(end - overlap, start + 1)

    return chunks
