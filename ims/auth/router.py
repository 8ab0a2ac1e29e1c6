from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import User
from ..schemas.auth import RegisterRequest, LoginRequest, TokenResponse, UserResponse
from .security import (
    AuthUser,
    get_password_hash,
    verify_password,
    create_access_token,
    get_current_user,
)
from ..logging import structlog


router = APIRouter(prefix="/api/users", tags=["auth"])
log = structlog.get_logger(__name__)

APPROVAL_ERRORS = {
    "pending": "Account pending admin approval",
    "rejected": "Account approval was rejected",
}


@router.post("/register", status_code=201)
def register(req: RegisterRequest, db: Session = Depends(get_db)):
    if db.query(User).filter(User.username == req.username).first():
        raise HTTPException(status_code=400, detail="Username already exists")
    db.add(
        User(
            username=req.username,
            display_name=req.display_name,
            password_hash=get_password_hash(req.password),
            role="user",
            approval_status="pending",
        )
    )
    db.commit()
    log.info("user_registered", username=req.username)
    return {"message": "Registration request submitted. Awaiting admin approval."}


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.username == req.username).first()
    if not user or not verify_password(req.password, user.password_hash):
        log.info("login_failed", username=req.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if user.approval_status != "approved":
        detail = APPROVAL_ERRORS.get(user.approval_status, "Account not approved")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
    token = create_access_token(user)
    log.info("login_ok", username=user.username, role=user.role)
    return TokenResponse(user=UserResponse.model_validate(user), token=token)


@router.get("/me", response_model=UserResponse)
def me(user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    row = db.query(User).filter(User.username == user.username).first()
    if not row:
        raise HTTPException(status_code=404, detail="User not found")
    return UserResponse.model_validate(row)
