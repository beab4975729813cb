from datetime import timedelta
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.db import GetDb
from app.modules.auth.deps import EnsureUtc, NowUtc, RequireAuthenticated, UserContext, _require_env
from app.modules.auth.models import User
from app.modules.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, UserOut
from app.modules.auth.service import CreateAccessToken, HashPassword, VerifyPassword
from app.modules.shopping.services.stores_service import ConvertPendingShares
from app.modules.shopping.validation import NormalizeEmail

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("app.auth")


def _BuildTokenResponse(user: User) -> TokenResponse:
    access_token, expires_in = CreateAccessToken(user.Id, user.Email)
    return TokenResponse(
        AccessToken=access_token,
        ExpiresIn=expires_in,
        Email=user.Email,
        DisplayName=user.DisplayName,
    )


def _NormalizeEmailOr400(value: str) -> str:
    try:
        return NormalizeEmail(value)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.Message) from exc


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def Register(payload: RegisterRequest, db: Session = Depends(GetDb)) -> TokenResponse:
    email = _NormalizeEmailOr400(payload.Email)
    existing = db.query(User).filter(func.lower(User.Email) == email).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    record = User(
        Email=email,
        DisplayName=payload.DisplayName.strip() if payload.DisplayName else None,
        PasswordHash=HashPassword(payload.Password),
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    db.refresh(record)

    try:
        ConvertPendingShares(db, record.Email, record.Id)
    except Exception:
        # Registration stands; the next sign-in retries the conversion.
        db.rollback()
        logger.exception("failed to convert pending shares", extra={"user_id": record.Id})

    return _BuildTokenResponse(record)


@router.post("/login", response_model=TokenResponse)
def Login(payload: LoginRequest, db: Session = Depends(GetDb)) -> TokenResponse:
    email = (payload.Email or "").strip().lower()
    user = db.query(User).filter(func.lower(User.Email) == email).first()
    now = NowUtc()
    locked_until = EnsureUtc(user.LockedUntil) if user else None
    if locked_until and locked_until > now:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account locked. Try again later.")

    if not user or not VerifyPassword(payload.Password, user.PasswordHash):
        if user:
            max_attempts = int(_require_env("AUTH_LOGIN_MAX_ATTEMPTS"))
            lockout_minutes = int(_require_env("AUTH_LOGIN_LOCKOUT_MINUTES"))
            user.FailedLoginCount += 1
            if user.FailedLoginCount >= max_attempts:
                user.LockedUntil = now + timedelta(minutes=lockout_minutes)
                user.FailedLoginCount = 0
            db.commit()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    user.FailedLoginCount = 0
    user.LockedUntil = None
    db.commit()
    db.refresh(user)

    ConvertPendingShares(db, user.Email, user.Id)
    return _BuildTokenResponse(user)


@router.get("/me", response_model=UserOut)
def Me(user: UserContext = Depends(RequireAuthenticated), db: Session = Depends(GetDb)) -> UserOut:
    record = db.query(User).filter(User.Id == user.Id).first()
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserOut(
        Id=record.Id,
        Email=record.Email,
        DisplayName=record.DisplayName,
        HasApiKey=bool(record.ApiKeyHash),
        CreatedAt=record.CreatedAt,
    )
