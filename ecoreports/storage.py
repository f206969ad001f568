"""
Object storage for uploaded report PDFs.

The pipeline only needs ``get``; the catalog also writes and removes
payloads.  ``LocalObjectStore`` keeps objects as files below a root
directory.
"""

import logging
import os
from typing import Protocol

from ecoreports import config
from ecoreports.errors import StorageError

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    def get(self, path: str) -> bytes: ...

    def put(self, path: str, data: bytes) -> None: ...

    def delete(self, path: str) -> bool: ...


class LocalObjectStore:
    """Filesystem-backed object store rooted at ``STORAGE_DIR``."""

    def __init__(self, root: str | None = None):
        self.root = os.path.abspath(root or config.STORAGE_DIR)
        os.makedirs(self.root, exist_ok=True)

    def _resolve(self, path: str) -> str:
        full = os.path.abspath(os.path.join(self.root, path))
        if os.path.commonpath([self.root, full]) != self.root or full == self.root:
            raise StorageError(f"Invalid object path: {path!r}")
        return full

    def get(self, path: str) -> bytes:
        full = self._resolve(path)
        try:
            with open(full, "rb") as f:
                return f.read()
        except OSError as e:
            raise StorageError(f"Failed to read object {path!r}: {e}", e) from e

    def put(self, path: str, data: bytes) -> None:
        full = self._resolve(path)
        try:
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, "wb") as f:
                f.write(data)
        except OSError as e:
            raise StorageError(f"Failed to write object {path!r}: {e}", e) from e
        logger.debug("Stored %d bytes at %s", len(data), path)

    def delete(self, path: str) -> bool:
        full = self._resolve(path)
        try:
            os.remove(full)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete object {path!r}: {e}", e) from e
        return True
