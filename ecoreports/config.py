"""
Central configuration — reads environment variables and provides defaults.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# ── Embeddings ────────────────────────────────────────────────────────────────
# "openai" (hosted) or "ollama" (local container)
EMBEDDING_PROVIDER: str = os.getenv("EMBEDDING_PROVIDER", "openai").lower()
EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
EMBEDDING_DIM: int = int(os.getenv("EMBEDDING_DIM", "1536"))
EMBED_MAX_CHARS: int = int(os.getenv("EMBED_MAX_CHARS", "8000"))
EMBED_MAX_RETRIES: int = int(os.getenv("EMBED_MAX_RETRIES", "3"))
EMBED_TIMEOUT: float = float(os.getenv("EMBED_TIMEOUT", "60"))

# ── OpenAI ────────────────────────────────────────────────────────────────────
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")

# ── Ollama ────────────────────────────────────────────────────────────────────
OLLAMA_URL: str = os.getenv("OLLAMA_URL", "http://localhost:11434")

# ── Database ──────────────────────────────────────────────────────────────────
DATABASE_PATH: str = os.getenv("DATABASE_PATH", "data/ecoreports.db")

# ── Object storage ────────────────────────────────────────────────────────────
STORAGE_DIR: str = os.getenv("STORAGE_DIR", "data/storage")

# ── Chunking ──────────────────────────────────────────────────────────────────
CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "1000"))
CHUNK_OVERLAP: int = int(os.getenv("CHUNK_OVERLAP", "200"))
CHUNK_MIN_BREAK_RATIO: float = float(os.getenv("CHUNK_MIN_BREAK_RATIO", "0.7"))

# ── Search ────────────────────────────────────────────────────────────────────
SEARCH_THRESHOLD: float = float(os.getenv("SEARCH_THRESHOLD", "0.7"))
SEARCH_LIMIT: int = int(os.getenv("SEARCH_LIMIT", "10"))

# ── Reports ───────────────────────────────────────────────────────────────────
DEFAULT_LANGUAGE: str = os.getenv("DEFAULT_LANGUAGE", "es")
STALE_PROCESSING_MINUTES: int = int(os.getenv("STALE_PROCESSING_MINUTES", "30"))

# ── Logging ───────────────────────────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
