"""
Version history service.
Every contract/asset write appends a numbered snapshot with a field diff.
"""
from typing import Optional, Dict, Any
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.models import VersionHistory


def compute_diff(previous: Optional[Dict[str, Any]], current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Top-level fields whose value changed, as {field: {"old": .., "new": ..}}."""
    previous = previous or {}
    current = current or {}
    diff = {}
    for key in sorted(set(previous) | set(current)):
        if key in ("created_at", "updated_at"):
            continue
        old = previous.get(key)
        new = current.get(key)
        if old != new:
            diff[key] = {"old": old, "new": new}
    return diff


def record_version(
    db: Session,
    entity_type: str,
    entity_id: int,
    change_type: str,
    data: Optional[Dict[str, Any]],
    created_by: Optional[str] = None,
    previous: Optional[Dict[str, Any]] = None,
) -> VersionHistory:
    """
    Append a version row for an entity.

    Args:
        entity_type: contract|asset
        change_type: create|update|delete
        data: JSON-safe snapshot after the change (before it, for deletes)
        previous: snapshot before the change, used to build the diff

    The row is added to the session; the caller commits with the write it describes.
    """
    current_max = (
        db.query(func.max(VersionHistory.version))
        .filter(VersionHistory.entity_type == entity_type, VersionHistory.entity_id == entity_id)
        .scalar()
    )
    if change_type == "delete":
        diff = None
    else:
        diff = compute_diff(previous, data)
    row = VersionHistory(
        entity_type=entity_type,
        entity_id=entity_id,
        version=(current_max or 0) + 1,
        change_type=change_type,
        data=data,
        diff=diff,
        created_by=created_by,
    )
    db.add(row)
    return row


def serialize_version(row: VersionHistory) -> Dict[str, Any]:
    return {
        "id": row.id,
        "entity_id": row.entity_id,
        "entity_type": row.entity_type,
        "version": row.version,
        "change_type": row.change_type,
        "data": row.data,
        "diff": row.diff,
        "created_by": row.created_by,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }
