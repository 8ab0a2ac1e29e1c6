from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import User
from ..auth.security import AuthUser, get_current_user, get_password_hash, verify_password, require_admin
from ..schemas.auth import (
    UserCreateRequest,
    UserUpdateRequest,
    ApproveRequest,
    PasswordChangeRequest,
    UserResponse,
)
from ..logging import structlog


router = APIRouter(prefix="/api/users", tags=["users"])
log = structlog.get_logger(__name__)


def _get_user_or_404(db: Session, username: str) -> User:
    u = db.query(User).filter(User.username == username).first()
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    return u


@router.get("", response_model=List[UserResponse])
def list_users(db: Session = Depends(get_db), _=Depends(require_admin)):
    return db.query(User).order_by(User.created_at.desc()).all()


@router.get("/pending", response_model=List[UserResponse])
def list_pending(db: Session = Depends(get_db), _=Depends(require_admin)):
    return (
        db.query(User)
        .filter(User.approval_status == "pending")
        .order_by(User.created_at.asc())
        .all()
    )


@router.post("", status_code=201)
def create_user(req: UserCreateRequest, db: Session = Depends(get_db), admin: AuthUser = Depends(require_admin)):
    if db.query(User).filter(User.username == req.username).first():
        raise HTTPException(status_code=400, detail="Username already exists")
    db.add(
        User(
            username=req.username,
            display_name=req.display_name,
            password_hash=get_password_hash(req.password),
            role=req.role,
            approval_status="approved",
            approved_at=datetime.utcnow(),
            approved_by=admin.username,
        )
    )
    db.commit()
    log.info("user_created", username=req.username, role=req.role, by=admin.username)
    return {"message": "User created successfully"}


@router.put("/{username}/approve")
def approve_user(
    username: str,
    req: Optional[ApproveRequest] = None,
    db: Session = Depends(get_db),
    admin: AuthUser = Depends(require_admin),
):
    role = req.role if req else "user"
    u = _get_user_or_404(db, username)
    u.approval_status = "approved"
    u.role = role
    u.approved_at = datetime.utcnow()
    u.approved_by = admin.username
    db.commit()
    log.info("user_approved", username=username, role=role, by=admin.username)
    return {"message": "User approved successfully"}


@router.put("/{username}/reject")
def reject_user(username: str, db: Session = Depends(get_db), admin: AuthUser = Depends(require_admin)):
    u = _get_user_or_404(db, username)
    u.approval_status = "rejected"
    u.approved_at = datetime.utcnow()
    u.approved_by = admin.username
    db.commit()
    log.info("user_rejected", username=username, by=admin.username)
    return {"message": "User rejected successfully"}


@router.put("/{username}/password")
def change_password(
    username: str,
    req: PasswordChangeRequest,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
):
    # Self-service or admin reset; only a non-admin must prove the current password
    if not user.is_admin and user.username != username:
        raise HTTPException(status_code=403, detail="Forbidden")
    u = _get_user_or_404(db, username)
    if not user.is_admin:
        if not req.currentPassword:
            raise HTTPException(status_code=400, detail="currentPassword is required")
        if not verify_password(req.currentPassword, u.password_hash):
            raise HTTPException(status_code=401, detail="Current password is incorrect")
    u.password_hash = get_password_hash(req.newPassword)
    db.commit()
    return {"message": "Password updated successfully"}


@router.put("/{username}")
def update_user(
    username: str,
    req: UserUpdateRequest,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    u = _get_user_or_404(db, username)
    u.display_name = req.display_name
    u.role = req.role
    db.commit()
    return {"message": "User updated successfully"}


@router.delete("/{username}")
def delete_user(username: str, db: Session = Depends(get_db), admin: AuthUser = Depends(require_admin)):
    if username == admin.username:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    u = _get_user_or_404(db, username)
    db.delete(u)
    db.commit()
    log.info("user_deleted", username=username, by=admin.username)
    return {"message": "User deleted successfully"}
