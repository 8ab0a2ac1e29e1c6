from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..auth.security import AuthUser, get_current_user
from ..db import get_db
from ..models.models import Asset, Contract
from ..schemas.contracts import AssetCreate, AssetIn
from ..services.audit import record_version
from ..services.contracts import apply_asset_fields, asset_snapshot, build_asset, serialize_asset
from ..services.scheduling import normalize_cycle


router = APIRouter(prefix="/api/assets", tags=["assets"])


def _with_contract(asset: Asset) -> dict:
    data = serialize_asset(asset)
    data["customer_name"] = asset.contract.customer_name if asset.contract else None
    data["project_title"] = asset.contract.project_title if asset.contract else None
    return data


def _get_asset_or_404(db: Session, asset_id: int) -> Asset:
    a = db.query(Asset).filter(Asset.id == asset_id).first()
    if not a:
        raise HTTPException(status_code=404, detail="Asset not found")
    return a


@router.get("")
def list_assets(
    category: Optional[str] = None,
    search: Optional[str] = None,
    cycle: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
):
    q = db.query(Asset).join(Contract, Asset.contract_id == Contract.id)
    if category:
        q = q.filter(Asset.category == category.upper())
    if cycle:
        q = q.filter(Asset.cycle == normalize_cycle(cycle))
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Asset.item.like(like), Asset.product.like(like), Contract.customer_name.like(like)))
    page = max(1, page)
    limit = max(1, min(limit, 500))
    total = q.count()
    rows = q.order_by(Asset.created_at.desc(), Asset.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return {"assets": [_with_contract(a) for a in rows], "total": total, "page": page, "limit": limit}


@router.get("/contract/{contract_id}")
def list_contract_assets(contract_id: int, db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    rows = db.query(Asset).filter(Asset.contract_id == contract_id).order_by(Asset.id.asc()).all()
    return [serialize_asset(a) for a in rows]


@router.get("/{asset_id}")
def get_asset(asset_id: int, db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    return _with_contract(_get_asset_or_404(db, asset_id))


@router.post("", status_code=201)
def create_asset(payload: AssetCreate, db: Session = Depends(get_db), user: AuthUser = Depends(get_current_user)):
    if not db.query(Contract.id).filter(Contract.id == payload.contract_id).first():
        raise HTTPException(status_code=400, detail="Contract not found")
    asset = build_asset(payload)
    asset.contract_id = payload.contract_id
    try:
        db.add(asset)
        db.flush()
        record_version(db, "asset", asset.id, "create", asset_snapshot(asset), user.username)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"id": asset.id, "message": "Asset created successfully"}


@router.put("/{asset_id}")
def update_asset(
    asset_id: int,
    payload: AssetIn,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
):
    asset = _get_asset_or_404(db, asset_id)
    previous = asset_snapshot(asset)
    try:
        apply_asset_fields(asset, payload)
        db.flush()
        record_version(db, "asset", asset.id, "update", asset_snapshot(asset), user.username, previous=previous)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Asset updated successfully"}


@router.delete("/{asset_id}")
def delete_asset(asset_id: int, db: Session = Depends(get_db), user: AuthUser = Depends(get_current_user)):
    asset = _get_asset_or_404(db, asset_id)
    try:
        record_version(db, "asset", asset.id, "delete", asset_snapshot(asset), user.username)
        db.delete(asset)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Asset deleted successfully"}
