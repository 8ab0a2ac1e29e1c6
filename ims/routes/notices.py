from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from ..auth.security import AuthUser, get_current_user, require_admin
from ..db import get_db
from ..logging import structlog
from ..models.models import Notice, NoticeFile
from ..schemas.notices import NoticeIn
from ..storage.local_provider import get_storage
from ..storage.provider import StorageProvider
from ..storage.uploads import discard_uploads, save_uploads


router = APIRouter(prefix="/api/notices", tags=["notices"])
log = structlog.get_logger(__name__)


def _serialize_file(f: NoticeFile) -> dict:
    return {
        "id": f.id,
        "notice_id": f.notice_id,
        "original_name": f.original_name,
        "stored_name": f.stored_name,
        "file_path": f.file_path,
        "file_size": int(f.file_size or 0),
        "uploaded_by": f.uploaded_by,
        "created_at": f.created_at.isoformat() if f.created_at else None,
    }


def _serialize(n: Notice) -> dict:
    return {
        "id": n.id,
        "title": n.title,
        "content": n.content,
        "is_pinned": bool(n.is_pinned),
        "created_by": n.created_by,
        "updated_by": n.updated_by,
        "created_at": n.created_at.isoformat() if n.created_at else None,
        "updated_at": n.updated_at.isoformat() if n.updated_at else None,
        "files": [_serialize_file(f) for f in sorted(n.files, key=lambda f: f.id, reverse=True)],
    }


def _get_notice_or_404(db: Session, notice_id: int) -> Notice:
    n = db.query(Notice).filter(Notice.id == notice_id).first()
    if not n:
        raise HTTPException(status_code=404, detail="Notice not found")
    return n


def _get_file_or_404(db: Session, notice_id: int, file_id: int) -> NoticeFile:
    f = db.query(NoticeFile).filter(NoticeFile.id == file_id, NoticeFile.notice_id == notice_id).first()
    if not f:
        raise HTTPException(status_code=404, detail="File not found")
    return f


@router.get("")
def list_notices(db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    rows = db.query(Notice).order_by(Notice.is_pinned.desc(), Notice.created_at.desc(), Notice.id.desc()).all()
    return [_serialize(n) for n in rows]


@router.post("", status_code=201)
def create_notice(payload: NoticeIn, db: Session = Depends(get_db), admin: AuthUser = Depends(require_admin)):
    n = Notice(
        title=payload.title,
        content=payload.content,
        is_pinned=payload.is_pinned,
        created_by=admin.username,
        updated_by=admin.username,
    )
    db.add(n)
    db.commit()
    return {"id": n.id, "message": "Notice created successfully"}


@router.put("/{notice_id}")
def update_notice(
    notice_id: int,
    payload: NoticeIn,
    db: Session = Depends(get_db),
    admin: AuthUser = Depends(require_admin),
):
    n = _get_notice_or_404(db, notice_id)
    n.title = payload.title
    n.content = payload.content
    n.is_pinned = payload.is_pinned
    n.updated_by = admin.username
    db.commit()
    return {"message": "Notice updated successfully"}


@router.delete("/{notice_id}")
def delete_notice(
    notice_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
    storage: StorageProvider = Depends(get_storage),
):
    n = _get_notice_or_404(db, notice_id)
    paths = [f.file_path for f in n.files]
    db.delete(n)
    db.commit()
    for p in paths:
        storage.delete(p)
    return {"message": "Notice deleted successfully"}


# =====================
# Attachments
# =====================

@router.get("/{notice_id}/files")
def list_notice_files(notice_id: int, db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    rows = (
        db.query(NoticeFile)
        .filter(NoticeFile.notice_id == notice_id)
        .order_by(NoticeFile.created_at.desc(), NoticeFile.id.desc())
        .all()
    )
    return [_serialize_file(f) for f in rows]


@router.post("/{notice_id}/files", status_code=201)
def upload_notice_files(
    notice_id: int,
    files: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    admin: AuthUser = Depends(require_admin),
    storage: StorageProvider = Depends(get_storage),
):
    _get_notice_or_404(db, notice_id)
    saved = save_uploads(files, "notices", storage)
    try:
        rows = [NoticeFile(notice_id=notice_id, uploaded_by=admin.username, **s) for s in saved]
        db.add_all(rows)
        db.commit()
    except Exception:
        db.rollback()
        discard_uploads(saved, storage)
        raise
    for r in rows:
        db.refresh(r)
    return {"files": [_serialize_file(r) for r in rows], "message": "Files uploaded successfully"}


@router.get("/{notice_id}/files/{file_id}/download")
def download_notice_file(
    notice_id: int,
    file_id: int,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    f = _get_file_or_404(db, notice_id, file_id)
    if not storage.exists(f.file_path):
        raise HTTPException(status_code=404, detail="File not found on disk")
    return FileResponse(str(storage.local_path(f.file_path)), filename=f.original_name)


@router.delete("/{notice_id}/files/{file_id}")
def delete_notice_file(
    notice_id: int,
    file_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
    storage: StorageProvider = Depends(get_storage),
):
    f = _get_file_or_404(db, notice_id, file_id)
    path = f.file_path
    db.delete(f)
    db.commit()
    storage.delete(path)
    return {"message": "File deleted successfully"}
