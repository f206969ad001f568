"""
Embedding clients — one fixed model and dimensionality per deployment.

Two backends share the same contract (``await embed(text) -> np.ndarray``):

* ``OpenAIEmbedder``  — hosted OpenAI-compatible ``/embeddings`` endpoint
* ``OllamaEmbedder``  — local Ollama container via ``/api/embed``

Clients are built once per process with ``build_embedder()`` and closed with
``aclose()``.  Every upstream failure surfaces as ``EmbeddingError``.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Protocol

import httpx
import numpy as np
import openai

from ecoreports import config
from ecoreports.errors import EmbeddingError

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    model: str
    dimensions: int

    async def embed(self, text: str) -> np.ndarray: ...

    async def aclose(self) -> None: ...


class _BaseEmbedder(ABC):
    """
    Truncation, retries and dimension checks shared by both backends.

    Subclasses implement ``_request``, one raw call to the endpoint.
    """

    def __init__(
        self,
        model: str | None = None,
        dimensions: int | None = None,
        max_chars: int | None = None,
        max_retries: int | None = None,
        retry_delay: float = 1.0,
    ):
        self.model = model or config.EMBEDDING_MODEL
        self.dimensions = dimensions or config.EMBEDDING_DIM
        self.max_chars = max_chars or config.EMBED_MAX_CHARS
        self.max_retries = max(1, max_retries or config.EMBED_MAX_RETRIES)
        self.retry_delay = retry_delay

    @abstractmethod
    async def _request(self, text: str) -> list[float]:
        """Return the raw embedding for *text*; raise on transport errors."""

    async def embed(self, text: str) -> np.ndarray:
        """Embed *text* (truncated to ``max_chars``) as a float32 vector."""
        text = text[: self.max_chars]
        for attempt in range(self.max_retries):
            try:
                raw = await self._request(text)
                break
            except EmbeddingError:
                raise
            except Exception as e:
                logger.warning("Embedding attempt %d failed: %s", attempt + 1, e)
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(self.retry_delay * 2 ** attempt)
                else:
                    raise EmbeddingError(f"Embedding request failed: {e}", e) from e
        return self._to_vector(raw)

    def _to_vector(self, raw) -> np.ndarray:
        try:
            vector = np.asarray(raw, dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise EmbeddingError(f"Malformed embedding in response: {e}", e) from e
        if vector.shape != (self.dimensions,):
            raise EmbeddingError(
                f"Expected a {self.dimensions}-d embedding from {self.model}, got shape {vector.shape}"
            )
        return vector

    async def aclose(self) -> None:
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()


class OpenAIEmbedder(_BaseEmbedder):
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        client: openai.AsyncOpenAI | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._owns_client = client is None
        self._client = client or openai.AsyncOpenAI(
            api_key=api_key or config.OPENAI_API_KEY,
            base_url=base_url or config.OPENAI_BASE_URL,
            timeout=config.EMBED_TIMEOUT,
            max_retries=0,
        )

    async def _request(self, text: str) -> list[float]:
        response = await self._client.embeddings.create(model=self.model, input=text)
        try:
            return response.data[0].embedding
        except (AttributeError, IndexError, TypeError) as e:
            raise EmbeddingError(f"Malformed embedding response: {e}", e) from e

    async def health(self) -> bool:
        """Return True if the embedding model is reachable."""
        try:
            await self._client.models.retrieve(self.model)
            return True
        except Exception:
            return False

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.close()


class OllamaEmbedder(_BaseEmbedder):
    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.base_url = (base_url or config.OLLAMA_URL).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.EMBED_TIMEOUT)

    async def _request(self, text: str) -> list[float]:
        resp = await self._client.post(
            f"{self.base_url}/api/embed",
            json={"model": self.model, "input": [text]},
        )
        resp.raise_for_status()
        try:
            return resp.json()["embeddings"][0]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise EmbeddingError(f"Malformed embedding response: {e}", e) from e

    async def health(self) -> bool:
        """Return True if Ollama is reachable and the embedding model is available."""
        try:
            resp = await self._client.get(f"{self.base_url}/api/tags")
            resp.raise_for_status()
            models = [m["name"] for m in resp.json().get("models", [])]
            # Model names may include a tag, e.g. "nomic-embed-text:latest"
            return any(self.model in m for m in models)
        except Exception:
            return False

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def build_embedder(provider: str | None = None) -> OpenAIEmbedder | OllamaEmbedder:
    """Construct the configured embedding client."""
    provider = (provider or config.EMBEDDING_PROVIDER).lower()
    if provider == "openai":
        return OpenAIEmbedder()
    if provider == "ollama":
        return OllamaEmbedder()
    raise ValueError(f"Unknown embedding provider: {provider!r}")
