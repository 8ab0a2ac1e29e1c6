from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth.security import AuthUser, get_current_user
from ..db import get_db
from ..models.models import ClientSupportReport, Contract, User
from ..schemas.support_reports import SupportReportIn


router = APIRouter(prefix="/api/client-support-reports", tags=["client-support-reports"])


def _report_query(db: Session):
    return (
        db.query(
            ClientSupportReport,
            User.display_name.label("created_by_name"),
            Contract.project_title.label("contract_project_title"),
        )
        .outerjoin(User, ClientSupportReport.created_by == User.username)
        .outerjoin(Contract, ClientSupportReport.contract_id == Contract.id)
    )


def _serialize(row) -> dict:
    r, created_by_name, contract_project_title = row
    return {
        "id": r.id,
        "contract_id": r.contract_id,
        "customer_name": r.customer_name or "",
        "support_summary": r.support_summary or "",
        "system_name": r.system_name or "",
        "support_types": list(r.support_types or []),
        "requester": r.requester or "",
        "request_at": r.request_at.isoformat(sep=" ") if r.request_at else None,
        "assignee": r.assignee or "",
        "completed_at": r.completed_at.isoformat(sep=" ") if r.completed_at else None,
        "request_detail": r.request_detail or "",
        "cause": r.cause or "",
        "support_detail": r.support_detail or "",
        "overall_opinion": r.overall_opinion or "",
        "note": r.note or "",
        "created_by": r.created_by,
        "created_by_name": created_by_name,
        "contract_project_title": contract_project_title,
        "created_at": r.created_at.isoformat() if r.created_at else None,
        "updated_at": r.updated_at.isoformat() if r.updated_at else None,
    }


@router.get("")
def list_reports(db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    rows = _report_query(db).order_by(ClientSupportReport.created_at.desc(), ClientSupportReport.id.desc()).all()
    return [_serialize(r) for r in rows]


@router.get("/{report_id}")
def get_report(report_id: int, db: Session = Depends(get_db), _: AuthUser = Depends(get_current_user)):
    row = _report_query(db).filter(ClientSupportReport.id == report_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Report not found")
    return _serialize(row)


@router.post("", status_code=201)
def create_report(payload: SupportReportIn, db: Session = Depends(get_db), user: AuthUser = Depends(get_current_user)):
    if payload.contract_id is not None and not db.query(Contract.id).filter(Contract.id == payload.contract_id).first():
        raise HTTPException(status_code=400, detail="Contract not found")
    r = ClientSupportReport(created_by=user.username, **payload.model_dump())
    db.add(r)
    db.commit()
    return {"id": r.id, "message": "Client support report created successfully"}
