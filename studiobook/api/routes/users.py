from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[schemas.User])
def list_users(
    search: str | None = None,
    role: models.UserRole | None = None,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin", "instructor")),
):
    query = db.query(models.User)
    if role:
        query = query.filter(models.User.role == role)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(models.User.email.ilike(pattern), models.User.full_name.ilike(pattern))
        )
    return query.order_by(models.User.created_at.desc(), models.User.id.desc()).all()


@router.patch("/{user_id}", response_model=schemas.User)
def update_user(
    user_id: int,
    payload: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current: models.User = Depends(deps.get_current_user),
):
    is_admin = current.role == models.UserRole.admin
    if not is_admin and current.id != user_id:
        raise HTTPException(status_code=404, detail="User not found")
    user = db.get(models.User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    data = payload.model_dump(exclude_unset=True)
    if "role" in data:
        if not is_admin:
            raise HTTPException(status_code=403, detail="Forbidden")
        try:
            data["role"] = models.UserRole(data["role"])
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid role") from exc
    for key, value in data.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user
