from typing import List, Optional, Dict, Any

from fastapi import HTTPException, UploadFile

from ..config import settings
from ..logging import structlog
from .local_provider import FileTooLarge, make_stored_name, public_path
from .provider import StorageProvider


log = structlog.get_logger(__name__)


def save_uploads(files: Optional[List[UploadFile]], area: str, storage: StorageProvider) -> List[Dict[str, Any]]:
    """
    Persist multipart files under `<area>/`. All-or-nothing: on any failure
    the files already written are removed and a 400 is raised.
    """
    files = [f for f in (files or []) if f is not None and f.filename]
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if len(files) > settings.max_upload_files:
        raise HTTPException(status_code=400, detail=f"Too many files (max {settings.max_upload_files})")

    saved: List[Dict[str, Any]] = []
    try:
        for f in files:
            stored_name = make_stored_name(f.filename)
            key = f"{area}/{stored_name}"
            size = storage.save(f.file, key, max_bytes=settings.max_upload_bytes)
            saved.append(
                {
                    "original_name": f.filename,
                    "stored_name": stored_name,
                    "file_path": public_path(area, stored_name),
                    "file_size": size,
                }
            )
    except FileTooLarge as e:
        discard_uploads(saved, storage)
        log.warning("upload_rejected", area=area, reason="too_large", limit=e.limit)
        raise HTTPException(status_code=400, detail=f"File too large (max {e.limit // (1024 * 1024)}MB)")
    except Exception:
        discard_uploads(saved, storage)
        log.error("upload_failed", area=area, exc_info=True)
        raise
    return saved


def discard_uploads(saved: List[Dict[str, Any]], storage: StorageProvider) -> None:
    for s in saved:
        storage.delete(s["file_path"])
