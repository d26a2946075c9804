"""
Blob storage abstraction for arrival photos.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional
import logging

from app.db.database import settings

logger = logging.getLogger(__name__)


class PhotoStorage:
    def upload(self, path: str, data: bytes) -> None:
        raise NotImplementedError

    def get_public_url(self, path: str) -> str:
        raise NotImplementedError

    def remove(self, path: str) -> None:
        raise NotImplementedError


class LocalPhotoStorage(PhotoStorage):
    """Stores photos under a local directory and serves them from a base URL."""

    def __init__(self, root: Optional[str | Path] = None, base_url: Optional[str] = None) -> None:
        self.root = Path(root or settings.photo_storage_dir).expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.base_url = (base_url if base_url is not None else settings.photo_base_url).rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root != target and self.root not in target.parents:
            raise ValueError(f"Photo path escapes storage root: {path}")
        return target

    def upload(self, path: str, data: bytes) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info("Stored photo %s (%.1f KB)", path, len(data) / 1024)

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def remove(self, path: str) -> None:
        target = self._resolve(path)
        if target.exists():
            target.unlink()
