"""
File storage collaborator for chat attachments.

Files live under STORAGE_ROOT/<disk>/<path>. Only the local filesystem backend
exists; anything that provides put/get/delete/exists can be swapped in.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol

from app.core.config import settings

logger = logging.getLogger(__name__)

DISKS = {"local", "public", "private"}


@dataclass
class IncomingFile:
    """An uploaded file already read into memory."""

    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


class FileStorage(Protocol):
    def put(self, disk: str, directory: str, filename: str, content: bytes) -> str: ...

    def get(self, disk: str, path: str) -> bytes: ...

    def delete(self, disk: str, path: str) -> bool: ...

    def exists(self, disk: str, path: str) -> bool: ...


class LocalFileStorage:
    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root or settings.storage_root).resolve()

    def _resolve(self, disk: str, path: str) -> Path:
        if disk not in DISKS:
            raise ValueError(f"Unknown storage disk: {disk}")
        base = (self.root / disk).resolve()
        target = (base / path).resolve()
        if base not in target.parents and target != base:
            raise ValueError("Path escapes storage disk")
        return target

    def put(self, disk: str, directory: str, filename: str, content: bytes) -> str:
        suffix = Path(filename or "").suffix.lower()
        saved_name = f"{datetime.utcnow().strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex}{suffix}"
        relative = f"{directory.strip('/')}/{saved_name}" if directory else saved_name
        target = self._resolve(disk, relative)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as f:
            f.write(content)
        return relative

    def get(self, disk: str, path: str) -> bytes:
        with open(self._resolve(disk, path), "rb") as f:
            return f.read()

    def delete(self, disk: str, path: str) -> bool:
        target = self._resolve(disk, path)
        if not target.exists():
            return False
        try:
            target.unlink()
        except OSError:
            logger.warning("failed to delete stored file %s/%s", disk, path)
            return False
        return True

    def exists(self, disk: str, path: str) -> bool:
        return self._resolve(disk, path).exists()


_default_storage = LocalFileStorage()


def get_storage() -> FileStorage:
    """FastAPI dependency; tests override it with a storage rooted in tmp_path."""
    return _default_storage
