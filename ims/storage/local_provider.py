"""
Local filesystem storage provider.
Uploaded attachments live under UPLOAD_DIR, grouped by area (contracts, notices).
"""
import os
import secrets
import time
from pathlib import Path
from typing import BinaryIO, Optional

from ..config import settings
from ..logging import structlog
from .provider import StorageProvider


log = structlog.get_logger(__name__)

CHUNK_SIZE = 1024 * 1024


class FileTooLarge(Exception):
    def __init__(self, limit: int):
        super().__init__(f"File exceeds {limit} bytes")
        self.limit = limit


def make_stored_name(original_name: str) -> str:
    """`<timestamp>-<random><ext>`; the extension is taken from the client name."""
    ext = os.path.splitext(original_name or "")[1].lower()
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"


def public_path(area: str, stored_name: str) -> str:
    return f"/uploads/{area}/{stored_name}"


class LocalStorageProvider(StorageProvider):
    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.upload_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_path(self, key: str) -> Path:
        # Accept both "contracts/x.pdf" and "/uploads/contracts/x.pdf"
        clean_key = key.replace("\\", "/").lstrip("/")
        if clean_key.startswith("uploads/"):
            clean_key = clean_key[len("uploads/"):]
        clean_key = clean_key.replace("..", "")
        return self.base_dir / clean_key

    def save(self, stream: BinaryIO, key: str, max_bytes: Optional[int] = None) -> int:
        path = self._get_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        written = 0
        try:
            with open(path, "wb") as f:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if max_bytes is not None and written > max_bytes:
                        raise FileTooLarge(max_bytes)
                    f.write(chunk)
        except Exception:
            self.delete(key)
            raise
        return written

    def exists(self, key: str) -> bool:
        return self._get_path(key).exists()

    def local_path(self, key: str) -> Path:
        return self._get_path(key)

    def delete(self, key: str) -> None:
        path = self._get_path(key)
        try:
            if path.exists():
                path.unlink()
        except OSError as e:
            log.warning("storage_delete_failed", key=key, error=str(e))


def get_storage() -> StorageProvider:
    return LocalStorageProvider()
