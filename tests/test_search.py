"""
Tests for ecoreports.search.similarity — cosine search over stored chunks.
"""

import numpy as np
import pytest

from ecoreports.errors import EmbeddingError, SearchError
from ecoreports.ingest.status import ProcessingStage, ProcessingStatus
from ecoreports.models import Report, ReportMetadata, ReportStatus, SectionType
from ecoreports.repository import ReportRepository
from ecoreports.search.similarity import SimilaritySearch, cosine_similarities


class FakeEmbedder:
    """Embeds every query to the same fixed vector."""

    model = "fake-embed"
    dimensions = 3

    def __init__(self, vector=(1.0, 0.0, 0.0), error=None):
        self.vector = np.array(vector, dtype=np.float32)
        self.error = error
        self.calls = []

    async def embed(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.vector

    async def aclose(self):
        pass

    async def health(self):
        return True


@pytest.fixture
def repo(tmp_path):
    return ReportRepository(str(tmp_path / "test.db"))


def _seed(repo, report_id, ecosystem, vectors, complete=True):
    """Create a report whose chunk i carries vectors[i] (None for no embedding)."""
    region = ecosystem.split(" - ")[0]
    repo.create_report(Report(
        id=report_id,
        title=f"Informe {report_id}",
        ecosystem=ecosystem,
        region=region,
        file_path=f"reports/{report_id}/informe.pdf",
    ))
    repo.insert_chunks(report_id, [
        {
            "content": f"{report_id} chunk {i}",
            "section_type": SectionType.OTHER,
            "chunk_index": i,
            "start_char": i * 100,
            "end_char": i * 100 + 100,
            "embedding": None if v is None else np.array(v, dtype=np.float32),
        }
        for i, v in enumerate(vectors)
    ])
    if complete:
        done = (
            ProcessingStatus.begin(report_id)
            .advance(ProcessingStage.CHUNKING)
            .advance(ProcessingStage.EMBEDDING)
            .advance(ProcessingStage.COMPLETED)
        )
        repo.complete_report(report_id, ReportMetadata(chunk_count=len(vectors)), done)


class TestCosineSimilarities:
    def test_known_values(self):
        matrix = np.array([[1, 0, 0], [0.8, 0.6, 0], [0, 1, 0], [-1, 0, 0]], dtype=np.float64)
        scores = cosine_similarities(matrix, np.array([1.0, 0.0, 0.0]))
        assert scores == pytest.approx([1.0, 0.8, 0.0, 0.0])

    def test_zero_vectors_score_zero(self):
        matrix = np.array([[0, 0, 0], [1, 1, 0]], dtype=np.float64)
        assert cosine_similarities(matrix, np.array([1.0, 1.0, 0.0])).tolist()[0] == 0.0
        assert cosine_similarities(matrix, np.zeros(3)).tolist() == [0.0, 0.0]

    def test_empty_matrix(self):
        assert cosine_similarities(np.zeros((0, 3)), np.ones(3)).size == 0


class TestSimilaritySearch:
    @pytest.mark.asyncio
    async def test_threshold_and_ordering(self, repo):
        _seed(repo, "r1", "Chile - Santiago", [
            [0.6, 0.8, 0],
            [1, 0, 0],
            [0.8, 0.6, 0],
            [0, 1, 0],
        ])
        search = SimilaritySearch(repo, FakeEmbedder())

        results = await search.search("innovación", threshold=0.7)

        assert [r.chunk.chunk_index for r in results] == [1, 2]
        assert [r.similarity for r in results] == pytest.approx([1.0, 0.8])
        assert results[0].report.id == "r1"
        assert results[0].report.ecosystem == "Chile - Santiago"

    @pytest.mark.asyncio
    async def test_default_threshold(self, repo):
        _seed(repo, "r1", "Chile - Santiago", [[0.8, 0.6, 0], [0.6, 0.8, 0]])
        results = await SimilaritySearch(repo, FakeEmbedder(), threshold=0.7).search("fintech")
        assert [r.chunk.chunk_index for r in results] == [0]

    @pytest.mark.asyncio
    async def test_limit(self, repo):
        _seed(repo, "r1", "Chile - Santiago", [[1, 0.01 * i, 0] for i in range(8)])
        results = await SimilaritySearch(repo, FakeEmbedder()).search("talento", limit=3)
        assert [r.chunk.chunk_index for r in results] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_ecosystem_filter(self, repo):
        # query "innovación", ecosystem "Chile - Santiago", threshold 0.7, limit 5
        _seed(repo, "santiago", "Chile - Santiago", [[1, 0.05 * i, 0] for i in range(8)])
        _seed(repo, "bogota", "Colombia - Bogotá", [[1, 0, 0]] * 3)
        _seed(repo, "pending", "Chile - Santiago", [[1, 0, 0]] * 3, complete=False)
        search = SimilaritySearch(repo, FakeEmbedder())

        results = await search.search(
            "innovación", ecosystem="chile - santiago", threshold=0.7, limit=5
        )

        assert len(results) == 5
        for result in results:
            assert result.similarity >= 0.7
            assert "chile - santiago" in result.report.ecosystem.casefold()
            assert result.report.status == ReportStatus.COMPLETED
        sims = [r.similarity for r in results]
        assert sims == sorted(sims, reverse=True)

    @pytest.mark.asyncio
    async def test_region_filter(self, repo):
        _seed(repo, "santiago", "Chile - Santiago", [[1, 0, 0]])
        _seed(repo, "bogota", "Colombia - Bogotá", [[1, 0, 0]])
        results = await SimilaritySearch(repo, FakeEmbedder()).search("talento", region="Colombia")
        assert [r.report.id for r in results] == ["bogota"]

    @pytest.mark.asyncio
    async def test_skips_unembedded_and_unfinished(self, repo):
        _seed(repo, "done", "Chile - Santiago", [None, [1, 0, 0]])
        _seed(repo, "pending", "Chile - Santiago", [[1, 0, 0]], complete=False)

        results = await SimilaritySearch(repo, FakeEmbedder()).search("talento")

        assert [(r.report.id, r.chunk.chunk_index) for r in results] == [("done", 1)]

    @pytest.mark.asyncio
    async def test_nothing_above_threshold_is_empty(self, repo):
        _seed(repo, "r1", "Chile - Santiago", [[0, 1, 0]])
        assert await SimilaritySearch(repo, FakeEmbedder()).search("talento") == []

    @pytest.mark.asyncio
    async def test_empty_corpus(self, repo):
        assert await SimilaritySearch(repo, FakeEmbedder()).search("talento") == []

    @pytest.mark.asyncio
    async def test_other_dimensions_are_skipped(self, repo):
        _seed(repo, "old", "Chile - Santiago", [[1, 0, 0, 0]])
        _seed(repo, "new", "Chile - Santiago", [[1, 0, 0]])
        results = await SimilaritySearch(repo, FakeEmbedder()).search("talento")
        assert [r.report.id for r in results] == ["new"]

    @pytest.mark.asyncio
    async def test_embedding_failure_is_search_error(self, repo):
        _seed(repo, "r1", "Chile - Santiago", [[1, 0, 0]])
        search = SimilaritySearch(repo, FakeEmbedder(error=EmbeddingError("endpoint down")))
        with pytest.raises(SearchError) as exc_info:
            await search.search("talento")
        assert isinstance(exc_info.value.original_error, EmbeddingError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query, limit", [("", 5), ("   ", 5), ("talento", 0)])
    async def test_invalid_arguments(self, repo, query, limit):
        embedder = FakeEmbedder()
        with pytest.raises(ValueError):
            await SimilaritySearch(repo, embedder).search(query, limit=limit)
        assert embedder.calls == []
