from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..auth.security import AuthUser, get_current_user
from ..db import get_db
from ..models.models import Notification
from ..services.notifications import mark_read, notify_expiring_contracts, serialize_notification

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


class GenerateExpiringRequest(BaseModel):
    days: Optional[int] = Field(default=None, ge=0, le=365)


@router.get("")
def list_notifications(
    limit: Optional[int] = 50,
    unread_only: Optional[bool] = False,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
):
    """
    List notifications, newest first.
    """
    q = db.query(Notification)
    if unread_only:
        q = q.filter(Notification.is_read == False)  # noqa: E712
    rows = q.order_by(Notification.created_at.desc()).limit(limit or 50).all()
    return [serialize_notification(n) for n in rows]


@router.put("/read-all")
def mark_all_read(db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    now = datetime.utcnow()
    updated = (
        db.query(Notification)
        .filter(Notification.is_read == False)  # noqa: E712
        .update({Notification.is_read: True, Notification.read_at: now}, synchronize_session=False)
    )
    db.commit()
    return {"updated": updated}


@router.put("/{notification_id}/read")
def mark_one_read(notification_id: str, db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    n = db.query(Notification).filter(Notification.id == notification_id).first()
    if not n:
        raise HTTPException(status_code=404, detail="Notification not found")
    mark_read(n)
    db.commit()
    return serialize_notification(n)


@router.post("/generate/expiring")
def generate_expiring(
    req: Optional[GenerateExpiringRequest] = None,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
):
    created = notify_expiring_contracts(db, days=req.days if req else None)
    return {"message": f"Created {created} notifications", "created": created}
