"""
In-app notifications for contracts that are about to expire (or already have).
"""
from datetime import date, datetime, timedelta
from typing import Optional, Dict, Any
from sqlalchemy.orm import Session

from ..config import settings
from ..logging import structlog
from ..models.models import Contract, Notification
from .scheduling import today_local


log = structlog.get_logger(__name__)


def notify_expiring_contracts(db: Session, days: Optional[int] = None, today: Optional[date] = None) -> int:
    """
    Create one contract_expiring notification per contract ending within `days`.
    A contract that already has an unread one is skipped.

    Returns the number of notifications created.
    """
    today = today or today_local()
    window = settings.contract_expiring_days if days is None else days
    horizon = today + timedelta(days=window)

    contracts = (
        db.query(Contract)
        .filter(Contract.end_date <= horizon)
        .order_by(Contract.end_date.asc())
        .all()
    )
    unread = {
        cid
        for (cid,) in db.query(Notification.contract_id)
        .filter(Notification.type == "contract_expiring", Notification.is_read == False)  # noqa: E712
        .all()
    }

    created = 0
    for c in contracts:
        if c.id in unread:
            continue
        remaining = (c.end_date - today).days
        if remaining < 0:
            severity = "error"
            message = f"{c.project_title} expired {-remaining} day(s) ago on {c.end_date.isoformat()}."
        else:
            severity = "warning"
            message = f"{c.project_title} expires in {remaining} day(s) on {c.end_date.isoformat()}."
        db.add(
            Notification(
                type="contract_expiring",
                title=f"[{c.customer_name}] contract expiring",
                message=message,
                severity=severity,
                contract_id=c.id,
            )
        )
        created += 1
    db.commit()
    log.info("expiring_notifications_generated", created=created, days=window)
    return created


def mark_read(n: Notification) -> None:
    if not n.is_read:
        n.is_read = True
        n.read_at = datetime.utcnow()


def serialize_notification(n: Notification) -> Dict[str, Any]:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "severity": n.severity,
        "contract_id": n.contract_id,
        "is_read": bool(n.is_read),
        "read_at": n.read_at.isoformat() if n.read_at else None,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }
