"""
Tests for ecoreports.ingest.embedder — embedding clients.

HTTP calls are faked by monkeypatching httpx, and the OpenAI client is
replaced with a stub; nothing talks to a real endpoint.
"""

from types import SimpleNamespace

import httpx
import numpy as np
import pytest

from ecoreports.errors import EmbeddingError
from ecoreports.ingest.embedder import OllamaEmbedder, OpenAIEmbedder, _BaseEmbedder, build_embedder


def _ollama(**kwargs) -> OllamaEmbedder:
    kwargs.setdefault("dimensions", 8)
    kwargs.setdefault("max_retries", 1)
    return OllamaEmbedder(base_url="http://ollama.test", model="test-model", retry_delay=0, **kwargs)


class TestOllamaEmbedder:
    @pytest.mark.asyncio
    async def test_returns_float32_vector(self, monkeypatch):
        async def mock_post(self, url, **kwargs):
            texts = kwargs.get("json", {}).get("input", [])
            request = httpx.Request("POST", url)
            return httpx.Response(200, json={"embeddings": [[0.1] * 8 for _ in texts]}, request=request)

        monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)

        async with _ollama() as embedder:
            vec = await embedder.embed("hola")

        assert isinstance(vec, np.ndarray)
        assert vec.dtype == np.float32
        assert vec.shape == (8,)

    @pytest.mark.asyncio
    async def test_input_is_truncated(self, monkeypatch):
        seen = []

        async def mock_post(self, url, **kwargs):
            seen.append(kwargs["json"]["input"][0])
            request = httpx.Request("POST", url)
            return httpx.Response(200, json={"embeddings": [[0.5] * 8]}, request=request)

        monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)

        async with _ollama(max_chars=10) as embedder:
            await embedder.embed("x" * 50)

        assert seen == ["x" * 10]

    @pytest.mark.asyncio
    async def test_http_error_retries_then_raises(self, monkeypatch):
        calls = 0

        async def mock_post(self, url, **kwargs):
            nonlocal calls
            calls += 1
            request = httpx.Request("POST", url)
            return httpx.Response(429, json={"error": "rate limited"}, request=request)

        monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)

        async with _ollama(max_retries=3) as embedder:
            with pytest.raises(EmbeddingError):
                await embedder.embed("hola")

        assert calls == 3

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, monkeypatch):
        calls = 0

        async def mock_post(self, url, **kwargs):
            nonlocal calls
            calls += 1
            request = httpx.Request("POST", url)
            if calls == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"embeddings": [[1.0] * 8]}, request=request)

        monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)

        async with _ollama(max_retries=2) as embedder:
            vec = await embedder.embed("hola")

        assert calls == 2
        assert vec.shape == (8,)

    @pytest.mark.asyncio
    async def test_malformed_response_is_not_retried(self, monkeypatch):
        calls = 0

        async def mock_post(self, url, **kwargs):
            nonlocal calls
            calls += 1
            request = httpx.Request("POST", url)
            return httpx.Response(200, json={"unexpected": True}, request=request)

        monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)

        async with _ollama(max_retries=3) as embedder:
            with pytest.raises(EmbeddingError, match="Malformed"):
                await embedder.embed("hola")

        assert calls == 1

    @pytest.mark.asyncio
    async def test_wrong_dimension_raises(self, monkeypatch):
        async def mock_post(self, url, **kwargs):
            request = httpx.Request("POST", url)
            return httpx.Response(200, json={"embeddings": [[0.1] * 5]}, request=request)

        monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)

        async with _ollama() as embedder:
            with pytest.raises(EmbeddingError, match="8-d"):
                await embedder.embed("hola")

    @pytest.mark.asyncio
    async def test_health(self, monkeypatch):
        async def mock_get(self, url, **kwargs):
            request = httpx.Request("GET", url)
            return httpx.Response(
                200, json={"models": [{"name": "test-model:latest"}]}, request=request
            )

        monkeypatch.setattr(httpx.AsyncClient, "get", mock_get)

        async with _ollama() as embedder:
            assert await embedder.health() is True


class _StubEmbeddings:
    def __init__(self, vector=None, error=None):
        self.vector = vector
        self.error = error
        self.calls = []

    async def create(self, model, input):
        self.calls.append((model, input))
        if self.error is not None:
            raise self.error
        return SimpleNamespace(data=[SimpleNamespace(embedding=self.vector)])


class TestOpenAIEmbedder:
    @pytest.mark.asyncio
    async def test_returns_vector(self):
        stub = _StubEmbeddings(vector=[0.25] * 4)
        embedder = OpenAIEmbedder(
            client=SimpleNamespace(embeddings=stub),
            model="text-embedding-3-small",
            dimensions=4,
            max_retries=1,
            retry_delay=0,
        )

        vec = await embedder.embed("innovación")

        assert vec.tolist() == [0.25] * 4
        assert stub.calls == [("text-embedding-3-small", "innovación")]

    @pytest.mark.asyncio
    async def test_upstream_error_becomes_embedding_error(self):
        stub = _StubEmbeddings(error=RuntimeError("boom"))
        embedder = OpenAIEmbedder(
            client=SimpleNamespace(embeddings=stub),
            dimensions=4,
            max_retries=2,
            retry_delay=0,
        )

        with pytest.raises(EmbeddingError) as exc_info:
            await embedder.embed("innovación")

        assert len(stub.calls) == 2
        assert isinstance(exc_info.value.original_error, RuntimeError)

    @pytest.mark.asyncio
    async def test_empty_data_is_malformed(self):
        class _EmptyEmbeddings:
            async def create(self, model, input):
                return SimpleNamespace(data=[])

        embedder = OpenAIEmbedder(
            client=SimpleNamespace(embeddings=_EmptyEmbeddings()),
            dimensions=4,
            max_retries=3,
            retry_delay=0,
        )
        with pytest.raises(EmbeddingError, match="Malformed"):
            await embedder.embed("hola")


class TestBuildEmbedder:
    @pytest.mark.asyncio
    async def test_ollama(self):
        embedder = build_embedder("ollama")
        assert isinstance(embedder, OllamaEmbedder)
        await embedder.aclose()

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            build_embedder("word2vec")

    def test_base_needs_a_request_hook(self):
        with pytest.raises(TypeError):
            _BaseEmbedder(model="m", dimensions=4)
