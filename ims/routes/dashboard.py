from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth.security import AuthUser, get_current_user
from ..config import settings
from ..db import get_db
from ..models.models import Asset, Contract
from ..services.contracts import serialize_contract
from ..services.scheduling import today_local


router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats")
def dashboard_stats(db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    today = today_local()
    horizon = today + timedelta(days=settings.contract_expiring_days)

    total = db.query(func.count(Contract.id)).scalar() or 0
    expired = db.query(func.count(Contract.id)).filter(Contract.end_date < today).scalar() or 0
    expiring = (
        db.query(func.count(Contract.id))
        .filter(Contract.end_date >= today, Contract.end_date <= horizon)
        .scalar()
        or 0
    )
    by_category = dict(db.query(Asset.category, func.count(Asset.id)).group_by(Asset.category).all())
    recent = db.query(Contract).order_by(Contract.created_at.desc(), Contract.id.desc()).limit(5).all()

    return {
        "totalContracts": total,
        "activeContracts": total - expired - expiring,
        "expiringContracts": expiring,
        "expiredContracts": expired,
        "totalAssets": sum(by_category.values()),
        "hwAssets": by_category.get("HW", 0),
        "swAssets": by_category.get("SW", 0),
        "recentContracts": [serialize_contract(c, include_files=False) for c in recent],
    }
