"""
Embedding-based similarity search over completed reports.
"""

import logging

import numpy as np

from ecoreports import config
from ecoreports.errors import EmbeddingError, SearchError
from ecoreports.ingest.embedder import Embedder
from ecoreports.models import SearchResult
from ecoreports.repository import ReportRepository

logger = logging.getLogger(__name__)


def cosine_similarities(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of each row of *matrix* against *query*, clipped to
    [0, 1].  Zero-length vectors score 0.
    """
    if matrix.size == 0:
        return np.zeros(0, dtype=np.float64)
    row_norms = np.linalg.norm(matrix, axis=1)
    query_norm = np.linalg.norm(query)
    denom = row_norms * query_norm
    dots = matrix @ query
    scores = np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)
    return np.clip(scores, 0.0, 1.0)


class SimilaritySearch:
    """
    Read-only search path: embed query → score candidates → threshold → top-k.

    Stateless apart from its injected collaborators; safe to share across
    concurrent requests.
    """

    def __init__(
        self,
        repository: ReportRepository,
        embedder: Embedder,
        threshold: float | None = None,
    ):
        self.repository = repository
        self.embedder = embedder
        self.threshold = threshold if threshold is not None else config.SEARCH_THRESHOLD

    async def search(
        self,
        query: str,
        ecosystem: str | None = None,
        region: str | None = None,
        limit: int | None = None,
        threshold: float | None = None,
    ) -> list[SearchResult]:
        """
        Return at most *limit* chunks scoring at least *threshold*, best first.

        Raises ``SearchError`` when the query cannot be embedded; an empty
        list means nothing cleared the threshold.
        """
        limit = limit if limit is not None else config.SEARCH_LIMIT
        threshold = threshold if threshold is not None else self.threshold
        if not query or not query.strip():
            raise ValueError("Search query is required")
        if limit < 1:
            raise ValueError("limit must be at least 1")

        try:
            query_vec = np.asarray(await self.embedder.embed(query))
        except EmbeddingError as e:
            raise SearchError(f"Could not embed search query: {e}", e) from e

        candidates = self.repository.search_candidates(ecosystem=ecosystem, region=region)
        usable = [c for c in candidates if c[2].shape == query_vec.shape]
        if len(usable) < len(candidates):
            logger.warning(
                "Skipped %d chunks with embedding dimension other than %d",
                len(candidates) - len(usable), query_vec.shape[0],
            )
        if not usable:
            return []

        matrix = np.vstack([c[2] for c in usable]).astype(np.float64)
        scores = cosine_similarities(matrix, query_vec.astype(np.float64))

        ranked = sorted(
            (i for i in range(len(usable)) if scores[i] >= threshold),
            key=lambda i: scores[i],
            reverse=True,
        )[:limit]

        logger.info(
            "Search %r: %d candidates, %d above %.2f",
            query[:80], len(usable), len(ranked), threshold,
        )
        return [
            SearchResult(
                chunk=usable[i][0],
                report=usable[i][1],
                similarity=float(scores[i]),
            )
            for i in ranked
        ]
