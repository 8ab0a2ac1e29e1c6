from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ..auth.security import AuthUser, get_current_user
from ..db import get_db
from ..logging import structlog
from ..models.models import Asset, CalendarEvent, Contract, User
from ..schemas.events import EventIn, GenerateInspectionsRequest, SupportHoursRequest
from ..services.scheduling import (
    generate_contract_end_events,
    generate_inspection_events,
    support_hours,
    support_minutes,
    to_local_naive,
)


router = APIRouter(prefix="/api/events", tags=["events"])
log = structlog.get_logger(__name__)


def _event_query(db: Session):
    return (
        db.query(
            CalendarEvent,
            User.display_name.label("created_by_name"),
            Contract.customer_name.label("contract_customer_name"),
            Asset.item.label("asset_item"),
        )
        .outerjoin(User, CalendarEvent.created_by == User.username)
        .outerjoin(Contract, CalendarEvent.contract_id == Contract.id)
        .outerjoin(Asset, CalendarEvent.asset_id == Asset.id)
    )


def _serialize(row) -> dict:
    e, created_by_name, contract_customer_name, asset_item = row
    return {
        "id": e.id,
        "title": e.title,
        "type": e.type,
        "schedule_division": e.schedule_division,
        "created_by": e.created_by,
        "created_by_name": created_by_name,
        "customer_name": e.customer_name,
        "location": e.location,
        "start": e.start.isoformat() if e.start else None,
        "end": e.end.isoformat() if e.end else None,
        "contract_id": e.contract_id,
        "asset_id": e.asset_id,
        "status": e.status,
        "support_hours": e.support_hours,
        "description": e.description,
        "created_at": e.created_at.isoformat() if e.created_at else None,
        "contract_customer_name": contract_customer_name,
        "asset_item": asset_item,
    }


def _apply(e: CalendarEvent, payload: EventIn) -> None:
    start = to_local_naive(payload.start)
    end = to_local_naive(payload.end) if payload.end is not None else None
    if end is not None and end < start:
        raise HTTPException(status_code=400, detail="end must be after start")
    e.title = payload.title
    e.type = payload.type
    e.schedule_division = payload.schedule_division
    e.customer_name = payload.customer_name
    e.location = payload.location
    e.start = start
    e.end = end
    e.contract_id = payload.contract_id
    e.asset_id = payload.asset_id
    e.status = payload.status
    if e.end is not None:
        e.support_hours = support_hours(e.start, e.end)
    else:
        e.support_hours = payload.support_hours
    e.description = payload.description


def _get_event_or_404(db: Session, event_id: str) -> CalendarEvent:
    e = db.query(CalendarEvent).filter(CalendarEvent.id == event_id).first()
    if not e:
        raise HTTPException(status_code=404, detail="Event not found")
    return e


def _ensure_can_modify(e: CalendarEvent, user: AuthUser, action: str) -> None:
    is_owner = bool(e.created_by) and e.created_by == user.username
    if not user.is_admin and not is_owner:
        raise HTTPException(status_code=403, detail=f"Only admin can {action} this event")


@router.get("")
def list_events(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    type: Optional[str] = None,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
):
    q = _event_query(db)
    if start and end:
        s, en = to_local_naive(start), to_local_naive(end)
        q = q.filter(
            or_(
                and_(CalendarEvent.start >= s, CalendarEvent.start <= en),
                and_(CalendarEvent.end >= s, CalendarEvent.end <= en),
            )
        )
    if type:
        q = q.filter(CalendarEvent.type == type)
    return [_serialize(r) for r in q.order_by(CalendarEvent.start.desc()).all()]


@router.post("/support-hours")
def calculate_support_hours(req: SupportHoursRequest, _: AuthUser = Depends(get_current_user)):
    minutes = support_minutes(req.start, req.end)
    return {"minutes": minutes, "hours": round(minutes / 60, 2)}


@router.post("/generate/contract-end")
def generate_contract_end(db: Session = Depends(get_db), user: AuthUser = Depends(get_current_user)):
    created = generate_contract_end_events(db, created_by=user.username)
    return {"message": f"Created {created} contract end events", "created": created}


@router.post("/generate/inspections")
def generate_inspections(
    req: Optional[GenerateInspectionsRequest] = None,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
):
    months = req.months if req else 3
    created = generate_inspection_events(db, months=months, created_by=user.username)
    return {"message": f"Created {created} inspection events", "created": created}


@router.get("/{event_id}")
def get_event(event_id: str, db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    row = _event_query(db).filter(CalendarEvent.id == event_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Event not found")
    return _serialize(row)


@router.post("", status_code=201)
def create_event(payload: EventIn, db: Session = Depends(get_db), user: AuthUser = Depends(get_current_user)):
    e = CalendarEvent(created_by=user.username)
    if payload.id:
        if db.query(CalendarEvent.id).filter(CalendarEvent.id == payload.id).first():
            raise HTTPException(status_code=400, detail="Event id already exists")
        e.id = payload.id
    _apply(e, payload)
    db.add(e)
    db.commit()
    return {"id": e.id, "message": "Event created successfully"}


@router.put("/{event_id}")
def update_event(
    event_id: str,
    payload: EventIn,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
):
    e = _get_event_or_404(db, event_id)
    _ensure_can_modify(e, user, "edit")
    _apply(e, payload)
    db.commit()
    return {"message": "Event updated successfully"}


@router.delete("/{event_id}")
def delete_event(event_id: str, db: Session = Depends(get_db), user: AuthUser = Depends(get_current_user)):
    e = _get_event_or_404(db, event_id)
    _ensure_can_modify(e, user, "delete")
    db.delete(e)
    db.commit()
    log.info("event_deleted", event_id=event_id, user=user.username)
    return {"message": "Event deleted successfully"}
