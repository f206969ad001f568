"""
Report metadata derived from the extracted text and the ecosystem name.

Ecosystem names follow the ``<Country> - <City>`` convention, e.g.
``Chile - Santiago`` or ``Chile - La Serena - Coquimbo``.
"""

import re

from ecoreports.config import DEFAULT_LANGUAGE
from ecoreports.models import ReportMetadata

COMPARATIVE_ECOSYSTEM = "Comparado"
UNKNOWN_REGION = "N/A"

_WORD_RE = re.compile(r"[^\W\d_]+", re.UNICODE)

_STOPWORDS = {
    "es": frozenset({
        "el", "la", "los", "las", "de", "del", "que", "y", "en", "un", "una",
        "por", "para", "con", "se", "su", "sus", "es", "al", "como", "más",
    }),
    "en": frozenset({
        "the", "of", "and", "to", "in", "is", "that", "for", "on",
        "with", "as", "by", "are", "this", "be", "from", "it", "its", "an",
    }),
}


def count_words(text: str) -> int:
    """Whitespace-delimited word count."""
    return len(text.split())


def detect_language(text: str, default: str | None = None) -> str:
    """
    Guess ``es`` or ``en`` by counting common stop words.

    Falls back to *default* (``DEFAULT_LANGUAGE``) on a tie.
    """
    default = default or DEFAULT_LANGUAGE
    scores = dict.fromkeys(_STOPWORDS, 0)
    for word in _WORD_RE.findall(text.lower()):
        for lang, words in _STOPWORDS.items():
            if word in words:
                scores[lang] += 1
    best = max(scores, key=scores.get)
    if scores[best] == 0 or list(scores.values()).count(scores[best]) > 1:
        return default
    return best


def region_for_ecosystem(ecosystem: str) -> str:
    """
    Return the country prefix of an ecosystem name.

    ``"Chile - Santiago"`` → ``"Chile"``; names without a prefix map to
    ``"N/A"``.
    """
    head, sep, _ = ecosystem.partition(" - ")
    if not sep or not head.strip():
        return UNKNOWN_REGION
    return head.strip()


def build_report_metadata(text: str, page_count: int, chunk_count: int) -> ReportMetadata:
    return ReportMetadata(
        page_count=page_count,
        word_count=count_words(text),
        language=detect_language(text),
        chunk_count=chunk_count,
    )
