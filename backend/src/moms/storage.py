"""
Local blob store for payment screenshots and chat images.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional
from uuid import uuid4

from moms.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

ALLOWED_FOLDERS = frozenset({"payments", "chat", "menu", "avatars"})
ALLOWED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp", ".gif"})
MAX_UPLOAD_BYTES = 5 * 1024 * 1024

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


class StorageError(ValueError):
    pass


class BlobStore:
    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        self.root = Path(settings.upload_dir)
        self.url_prefix = settings.files_url_prefix.rstrip("/")

    def upload(self, content: bytes, filename: str, folder: str) -> str:
        """Store ``content`` and return its retrievable URL."""
        if folder not in ALLOWED_FOLDERS:
            raise StorageError(f"Unknown folder {folder!r}")
        if not content:
            raise StorageError("Empty file")
        if len(content) > MAX_UPLOAD_BYTES:
            raise StorageError("File too large (max 5 MB)")
        suffix = Path(filename or "").suffix.lower()
        if suffix not in ALLOWED_EXTENSIONS:
            raise StorageError("Only image uploads are allowed")

        stem = _UNSAFE.sub("-", Path(filename).stem).strip("-")[:40] or "upload"
        name = f"{uuid4().hex[:12]}-{stem}{suffix}"
        target = self.root / folder / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        logger.info("stored upload folder=%s name=%s bytes=%d", folder, name, len(content))
        return f"{self.url_prefix}/{folder}/{name}"

    def resolve(self, relative: str) -> Optional[Path]:
        """Path on disk for ``<folder>/<name>``, or ``None`` if missing or outside the root."""
        root = self.root.resolve()
        path = (root / relative).resolve()
        if root not in path.parents or not path.is_file():
            return None
        return path
