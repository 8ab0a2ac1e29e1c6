"""
Contract/asset composite writes and response shaping.

A contract write replaces all of its assets (and their detail rows) inside a
single transaction; any failure rolls the whole write back.
"""
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..logging import structlog
from ..models.models import Asset, AssetDetail, Contract, ContractFile
from ..schemas.contracts import AssetIn, ContractIn
from .audit import record_version
from .scheduling import contract_progress, contract_status, days_until_expiry


log = structlog.get_logger(__name__)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def normalize_details(details: Optional[Iterable[Any]]) -> List[Dict[str, str]]:
    """Trim content/qty, default unit to "ea", drop rows with neither content nor qty."""
    if not details:
        return []
    out = []
    for d in details:
        if d is None:
            continue
        if hasattr(d, "model_dump"):
            d = d.model_dump()
        content = str(d.get("content") or "").strip()
        qty = str(d.get("qty") or "").strip()
        unit = str(d.get("unit") or "").strip() or "ea"
        if not content and not qty:
            continue
        out.append({"content": content, "qty": qty, "unit": unit})
    return out


def apply_asset_fields(asset: Asset, data: AssetIn) -> Asset:
    asset.category = data.category
    asset.item = data.item
    asset.product = data.product
    asset.qty = data.qty or 1
    asset.cycle = data.cycle
    asset.scope = data.scope
    asset.remark = data.remark
    asset.company = data.company
    asset.engineer_main_name = data.engineer.main.name
    asset.engineer_main_rank = data.engineer.main.rank
    asset.engineer_main_phone = data.engineer.main.phone
    asset.engineer_main_email = data.engineer.main.email
    asset.engineer_sub_name = data.engineer.sub.name
    asset.engineer_sub_rank = data.engineer.sub.rank
    asset.engineer_sub_phone = data.engineer.sub.phone
    asset.engineer_sub_email = data.engineer.sub.email
    asset.sales_name = data.sales.name
    asset.sales_rank = data.sales.rank
    asset.sales_phone = data.sales.phone
    asset.sales_email = data.sales.email
    asset.details = [AssetDetail(**d) for d in normalize_details(data.details)]
    return asset


def build_asset(data: AssetIn) -> Asset:
    return apply_asset_fields(Asset(), data)


def serialize_asset(asset: Asset) -> Dict[str, Any]:
    return {
        "id": asset.id,
        "contract_id": asset.contract_id,
        "category": asset.category,
        "item": asset.item,
        "product": asset.product,
        "qty": asset.qty,
        "cycle": asset.cycle,
        "scope": asset.scope,
        "remark": asset.remark,
        "company": asset.company,
        "engineer": {
            "main": {
                "name": asset.engineer_main_name,
                "rank": asset.engineer_main_rank,
                "phone": asset.engineer_main_phone,
                "email": asset.engineer_main_email,
            },
            "sub": {
                "name": asset.engineer_sub_name,
                "rank": asset.engineer_sub_rank,
                "phone": asset.engineer_sub_phone,
                "email": asset.engineer_sub_email,
            },
        },
        "sales": {
            "name": asset.sales_name,
            "rank": asset.sales_rank,
            "phone": asset.sales_phone,
            "email": asset.sales_email,
        },
        "details": [
            {"content": d.content or "", "qty": d.qty or "", "unit": d.unit or "ea"}
            for d in asset.details
        ],
        "created_at": _iso(asset.created_at),
        "updated_at": _iso(asset.updated_at),
    }


def serialize_file(f: ContractFile) -> Dict[str, Any]:
    return {
        "id": f.id,
        "contract_id": f.contract_id,
        "original_name": f.original_name,
        "stored_name": f.stored_name,
        "file_path": f.file_path,
        "file_size": int(f.file_size or 0),
        "uploaded_by": f.uploaded_by,
        "created_at": _iso(f.created_at),
    }


def serialize_contract(contract: Contract, include_files: bool = True) -> Dict[str, Any]:
    data = {
        "id": contract.id,
        "customer_name": contract.customer_name,
        "project_title": contract.project_title,
        "project_type": contract.project_type,
        "start_date": _iso(contract.start_date),
        "end_date": _iso(contract.end_date),
        "notes": contract.notes,
        "status": contract_status(contract.end_date),
        "days_until_expiry": days_until_expiry(contract.end_date),
        "progress": contract_progress(contract.start_date, contract.end_date),
        "created_at": _iso(contract.created_at),
        "updated_at": _iso(contract.updated_at),
        "items": [serialize_asset(a) for a in contract.assets],
    }
    if include_files:
        data["files"] = [serialize_file(f) for f in contract.files]
    return data


def contract_snapshot(contract: Contract) -> Dict[str, Any]:
    """JSON-safe state used for version history (no derived or file fields)."""
    return {
        "customer_name": contract.customer_name,
        "project_title": contract.project_title,
        "project_type": contract.project_type,
        "start_date": _iso(contract.start_date),
        "end_date": _iso(contract.end_date),
        "notes": contract.notes,
        "items": [asset_snapshot(a) for a in contract.assets],
    }


def asset_snapshot(asset: Asset) -> Dict[str, Any]:
    data = serialize_asset(asset)
    for key in ("id", "created_at", "updated_at"):
        data.pop(key, None)
    return data


def _apply_contract_fields(contract: Contract, payload: ContractIn) -> None:
    contract.customer_name = payload.customer_name
    contract.project_title = payload.project_title
    contract.project_type = payload.project_type
    contract.start_date = payload.start_date
    contract.end_date = payload.end_date
    contract.notes = payload.notes


def _add_contract(db: Session, payload: ContractIn, created_by: Optional[str]) -> Contract:
    contract = Contract()
    _apply_contract_fields(contract, payload)
    contract.assets = [build_asset(item) for item in payload.items]
    db.add(contract)
    db.flush()
    record_version(db, "contract", contract.id, "create", contract_snapshot(contract), created_by)
    return contract


def create_contract(db: Session, payload: ContractIn, created_by: Optional[str] = None) -> Contract:
    try:
        contract = _add_contract(db, payload, created_by)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(contract)
    log.info("contract_created", contract_id=contract.id, assets=len(payload.items), user=created_by)
    return contract


def create_contracts(db: Session, payloads: Iterable[ContractIn], created_by: Optional[str] = None) -> List[int]:
    """
    Create several contracts in one transaction. Either every contract is
    stored or, when any of them fails, none is.
    """
    try:
        ids = [_add_contract(db, p, created_by).id for p in payloads]
        db.commit()
    except Exception:
        db.rollback()
        raise
    log.info("contracts_created", count=len(ids), user=created_by)
    return ids


def update_contract(db: Session, contract: Contract, payload: ContractIn, updated_by: Optional[str] = None) -> Contract:
    """Update the header and replace every asset (and detail) with the submitted items."""
    previous = contract_snapshot(contract)
    try:
        _apply_contract_fields(contract, payload)
        contract.assets.clear()
        db.flush()
        for item in payload.items:
            contract.assets.append(build_asset(item))
        db.flush()
        record_version(db, "contract", contract.id, "update", contract_snapshot(contract), updated_by, previous=previous)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(contract)
    log.info("contract_updated", contract_id=contract.id, assets=len(payload.items), user=updated_by)
    return contract


def delete_contract(db: Session, contract: Contract, deleted_by: Optional[str] = None) -> List[str]:
    """Delete a contract (assets, details and file rows cascade). Returns stored file paths to unlink."""
    file_paths = [f.file_path for f in contract.files]
    snapshot = contract_snapshot(contract)
    contract_id = contract.id
    try:
        record_version(db, "contract", contract_id, "delete", snapshot, deleted_by)
        db.delete(contract)
        db.commit()
    except Exception:
        db.rollback()
        raise
    log.info("contract_deleted", contract_id=contract_id, user=deleted_by)
    return file_paths
