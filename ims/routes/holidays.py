from datetime import date
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth.security import AuthUser, get_current_user, require_admin
from ..db import get_db
from ..logging import structlog
from ..models.models import AdditionalHoliday
from ..schemas.holidays import HolidayIn, HolidaySyncRequest
from ..services.holidays import HolidayClient, serialize_holiday, sync_national_holidays


router = APIRouter(prefix="/api/holidays", tags=["holidays"])
log = structlog.get_logger(__name__)


def get_holiday_client() -> HolidayClient:
    return HolidayClient()


@router.get("")
def list_holidays(
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
):
    q = db.query(AdditionalHoliday)
    if year:
        q = q.filter(AdditionalHoliday.date >= date(year, 1, 1), AdditionalHoliday.date <= date(year, 12, 31))
    rows = q.order_by(AdditionalHoliday.date.asc(), AdditionalHoliday.name.asc()).all()
    return [serialize_holiday(h) for h in rows]


@router.post("", status_code=201)
def create_holiday(payload: HolidayIn, db: Session = Depends(get_db), admin: AuthUser = Depends(require_admin)):
    h = AdditionalHoliday(date=payload.date, name=payload.name, type=payload.type, created_by=admin.username)
    db.add(h)
    db.commit()
    return {"id": h.id, "message": "Holiday created successfully"}


@router.post("/sync")
def sync_holidays(
    payload: Optional[HolidaySyncRequest] = None,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
    client: HolidayClient = Depends(get_holiday_client),
):
    years = payload.years if payload and payload.years else None
    try:
        inserted = sync_national_holidays(db, years=years, client=client)
    except httpx.HTTPError as e:
        db.rollback()
        log.warning("holiday_sync_failed", error=str(e))
        raise HTTPException(status_code=502, detail="Holiday provider unavailable")
    return {"message": f"Synced {inserted} national holidays", "inserted": inserted}


@router.put("/{holiday_id}")
def update_holiday(
    holiday_id: int,
    payload: HolidayIn,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    h = db.query(AdditionalHoliday).filter(AdditionalHoliday.id == holiday_id).first()
    if not h:
        raise HTTPException(status_code=404, detail="Holiday not found")
    h.date = payload.date
    h.name = payload.name
    h.type = payload.type
    db.commit()
    return {"message": "Holiday updated successfully"}


@router.delete("/{holiday_id}")
def delete_holiday(holiday_id: int, db: Session = Depends(get_db), _=Depends(require_admin)):
    h = db.query(AdditionalHoliday).filter(AdditionalHoliday.id == holiday_id).first()
    if not h:
        raise HTTPException(status_code=404, detail="Holiday not found")
    db.delete(h)
    db.commit()
    return {"message": "Holiday deleted successfully"}
