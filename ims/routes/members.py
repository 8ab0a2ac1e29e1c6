from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth.security import AuthUser, get_current_user, require_admin
from ..db import get_db
from ..models.models import ProjectMember
from ..schemas.members import MemberIn
from ..services.scheduling import monthly_effort


router = APIRouter(prefix="/api/members", tags=["members"])


def _serialize(m: ProjectMember) -> dict:
    return {
        "id": m.id,
        "contract_id": m.contract_id,
        "project_name": m.project_name,
        "customer_name": m.customer_name,
        "manager_name": m.manager_name,
        "allocation_type": m.allocation_type,
        "start_date": m.start_date.isoformat() if m.start_date else None,
        "end_date": m.end_date.isoformat() if m.end_date else None,
        "monthly_effort": m.monthly_effort,
        "status": m.status,
        "notes": m.notes,
        "created_at": m.created_at.isoformat() if m.created_at else None,
        "updated_at": m.updated_at.isoformat() if m.updated_at else None,
    }


def _apply(m: ProjectMember, payload: MemberIn) -> None:
    m.contract_id = payload.contract_id
    m.project_name = payload.project_name
    m.customer_name = payload.customer_name
    m.manager_name = payload.manager_name
    m.allocation_type = payload.allocation_type
    m.start_date = payload.start_date
    m.end_date = payload.end_date
    # Explicit effort wins; otherwise derive it from the assignment period
    if payload.monthly_effort is not None:
        m.monthly_effort = payload.monthly_effort
    else:
        m.monthly_effort = monthly_effort(payload.start_date, payload.end_date)
    m.status = payload.status
    m.notes = payload.notes


def _get_member_or_404(db: Session, member_id: int) -> ProjectMember:
    m = db.query(ProjectMember).filter(ProjectMember.id == member_id).first()
    if not m:
        raise HTTPException(status_code=404, detail="Project staffing not found")
    return m


@router.get("")
def list_members(
    contract_id: Optional[int] = None,
    status: Optional[str] = None,
    allocation_type: Optional[str] = None,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
):
    q = db.query(ProjectMember)
    if contract_id:
        q = q.filter(ProjectMember.contract_id == contract_id)
    if status:
        q = q.filter(ProjectMember.status == status)
    if allocation_type:
        q = q.filter(ProjectMember.allocation_type == allocation_type)
    rows = q.order_by(ProjectMember.start_date.desc(), ProjectMember.created_at.desc()).all()
    return [_serialize(m) for m in rows]


@router.get("/{member_id}")
def get_member(member_id: int, db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    return _serialize(_get_member_or_404(db, member_id))


@router.post("", status_code=201)
def create_member(payload: MemberIn, db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    m = ProjectMember()
    _apply(m, payload)
    db.add(m)
    db.commit()
    return {"id": m.id, "message": "Project staffing created successfully"}


@router.put("/{member_id}")
def update_member(member_id: int, payload: MemberIn, db: Session = Depends(get_db), _=Depends(require_admin)):
    m = _get_member_or_404(db, member_id)
    _apply(m, payload)
    db.commit()
    return {"message": "Project staffing updated successfully"}


@router.delete("/{member_id}")
def delete_member(member_id: int, db: Session = Depends(get_db), _=Depends(require_admin)):
    m = _get_member_or_404(db, member_id)
    db.delete(m)
    db.commit()
    return {"message": "Project staffing deleted successfully"}
