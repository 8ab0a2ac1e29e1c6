from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse, Response
from pydantic import ValidationError
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..auth.security import AuthUser, get_current_user, require_roles
from ..config import settings
from ..db import get_db
from ..logging import structlog
from ..models.models import Contract, ContractFile, VersionHistory
from ..schemas.contracts import ContractIn
from ..services.audit import serialize_version
from ..services.contracts import (
    create_contract,
    create_contracts,
    delete_contract,
    serialize_contract,
    serialize_file,
    update_contract,
)
from ..services.excel import WorkbookFormatError, build_template, build_workbook, export_filename, parse_workbook
from ..services.scheduling import today_local
from ..storage.local_provider import get_storage
from ..storage.provider import StorageProvider
from ..storage.uploads import discard_uploads, save_uploads


router = APIRouter(prefix="/api/contracts", tags=["contracts"])
log = structlog.get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _get_contract_or_404(db: Session, contract_id: int) -> Contract:
    c = db.query(Contract).filter(Contract.id == contract_id).first()
    if not c:
        raise HTTPException(status_code=404, detail="Contract not found")
    return c


def _xlsx_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("")
def list_contracts(
    search: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
):
    q = db.query(Contract)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Contract.customer_name.like(like), Contract.project_title.like(like)))
    if status:
        today = today_local()
        if status == "active":
            q = q.filter(Contract.end_date >= today)
        elif status == "expiring":
            q = q.filter(Contract.end_date >= today, Contract.end_date <= today + timedelta(days=settings.contract_expiring_days))
        elif status == "expired":
            q = q.filter(Contract.end_date < today)
    page = max(1, page)
    limit = max(1, min(limit, 500))
    total = q.count()
    rows = (
        q.order_by(Contract.created_at.desc(), Contract.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "contracts": [serialize_contract(c) for c in rows],
        "total": total,
        "page": page,
        "limit": limit,
    }


@router.get("/export")
def export_contracts(db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    contracts = db.query(Contract).order_by(Contract.id.asc()).all()
    return _xlsx_response(build_workbook(contracts), export_filename(today_local()))


@router.get("/export/template")
def export_template(_: AuthUser = Depends(get_current_user)):
    return _xlsx_response(build_template(), "IMS_contracts_assets_template.xlsx")


@router.post("/import", status_code=201)
def import_contracts(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
):
    try:
        parsed = parse_workbook(file.file.read())
    except WorkbookFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))

    payloads = []
    for row_no, raw in enumerate(parsed, start=1):
        try:
            payloads.append(ContractIn.model_validate(raw))
        except ValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            loc = ".".join(str(p) for p in first.get("loc", ()))
            raise HTTPException(status_code=400, detail=f"Row {row_no}: {loc} {first.get('msg', 'invalid')}".strip())

    ids = create_contracts(db, payloads, created_by=user.username)
    log.info("contracts_imported", count=len(ids), user=user.username)
    return {"imported": len(ids), "ids": ids}


@router.get("/{contract_id}")
def get_contract(contract_id: int, db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    return serialize_contract(_get_contract_or_404(db, contract_id))


@router.post("", status_code=201)
def create_one(payload: ContractIn, db: Session = Depends(get_db), user: AuthUser = Depends(get_current_user)):
    c = create_contract(db, payload, created_by=user.username)
    return {"id": c.id, "message": "Contract created successfully"}


@router.put("/{contract_id}")
def update_one(
    contract_id: int,
    payload: ContractIn,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
):
    c = _get_contract_or_404(db, contract_id)
    update_contract(db, c, payload, updated_by=user.username)
    return {"message": "Contract updated successfully"}


@router.delete("/{contract_id}")
def delete_one(
    contract_id: int,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    c = _get_contract_or_404(db, contract_id)
    for path in delete_contract(db, c, deleted_by=user.username):
        storage.delete(path)
    return {"message": "Contract deleted successfully"}


@router.get("/{contract_id}/history")
def contract_history(contract_id: int, db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    rows = (
        db.query(VersionHistory)
        .filter(VersionHistory.entity_type == "contract", VersionHistory.entity_id == contract_id)
        .order_by(VersionHistory.version.desc())
        .all()
    )
    return [serialize_version(r) for r in rows]


# =====================
# Attachments
# =====================

@router.get("/{contract_id}/files")
def list_files(contract_id: int, db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    rows = (
        db.query(ContractFile)
        .filter(ContractFile.contract_id == contract_id)
        .order_by(ContractFile.created_at.desc(), ContractFile.id.desc())
        .all()
    )
    return [serialize_file(f) for f in rows]


@router.post("/{contract_id}/files", status_code=201)
def upload_files(
    contract_id: int,
    files: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    _get_contract_or_404(db, contract_id)
    saved = save_uploads(files, "contracts", storage)
    try:
        rows = [ContractFile(contract_id=contract_id, uploaded_by=user.username, **s) for s in saved]
        db.add_all(rows)
        db.commit()
    except Exception:
        db.rollback()
        discard_uploads(saved, storage)
        raise
    for r in rows:
        db.refresh(r)
    return {"files": [serialize_file(r) for r in rows], "message": "Files uploaded successfully"}


@router.get("/{contract_id}/files/{file_id}/download")
def download_file(
    contract_id: int,
    file_id: int,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_roles("admin", "manager")),
    storage: StorageProvider = Depends(get_storage),
):
    f = (
        db.query(ContractFile)
        .filter(ContractFile.id == file_id, ContractFile.contract_id == contract_id)
        .first()
    )
    if not f:
        raise HTTPException(status_code=404, detail="File not found")
    if not storage.exists(f.file_path):
        raise HTTPException(status_code=404, detail="File not found on disk")
    return FileResponse(str(storage.local_path(f.file_path)), filename=f.original_name)


@router.delete("/{contract_id}/files/{file_id}")
def delete_file(
    contract_id: int,
    file_id: int,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    f = (
        db.query(ContractFile)
        .filter(ContractFile.id == file_id, ContractFile.contract_id == contract_id)
        .first()
    )
    if not f:
        raise HTTPException(status_code=404, detail="File not found")
    path = f.file_path
    db.delete(f)
    db.commit()
    storage.delete(path)
    return {"message": "File deleted successfully"}
