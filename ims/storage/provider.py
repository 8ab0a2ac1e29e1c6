from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Optional


class StorageProvider(ABC):
    """
    Attachment store. Keys are the public paths kept on file rows
    ("/uploads/<area>/<stored_name>") or the same path without the prefix.
    """

    @abstractmethod
    def save(self, stream: BinaryIO, key: str, max_bytes: Optional[int] = None) -> int:
        """Write the stream under key and return the byte count."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def local_path(self, key: str) -> Path:
        """Filesystem path handed to FileResponse for downloads."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the object; a missing key is not an error."""
