from datetime import timedelta

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from ...config import get_settings
from ...core import security
from ...core.auth import authenticate_user
from ...core.clock import utc_now
from ...core.exceptions import AuthenticationError, ConflictError
from ...db import models, schemas
from ...db.session import get_db
from .. import deps

router = APIRouter(prefix="/auth", tags=["auth"])


def _issue_token(user: models.User) -> str:
    settings = get_settings()
    return security.create_access_token(
        {"sub": str(user.id), "role": user.role.value},
        timedelta(minutes=settings.jwt_expire_min),
    )


@router.post("/login", response_model=schemas.Token)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    user = authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")
    token = _issue_token(user)
    user.last_login_at = utc_now()
    db.commit()
    return schemas.Token(access_token=token, user=schemas.User.model_validate(user))


@router.post("/register", response_model=schemas.Token, status_code=status.HTTP_201_CREATED)
def register(payload: schemas.UserCreate, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    if db.query(models.User).filter_by(email=email).first():
        raise ConflictError("An account with this email already exists", code="EMAIL_TAKEN")
    user = models.User(
        email=email,
        full_name=payload.full_name,
        phone=payload.phone,
        role=models.UserRole.student,
        password_hash=security.get_password_hash(payload.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return schemas.Token(access_token=_issue_token(user), user=schemas.User.model_validate(user))


@router.get("/me", response_model=schemas.User)
def me(current: models.User = Depends(deps.get_current_user)):
    return current
