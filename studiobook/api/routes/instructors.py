from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas

router = APIRouter(prefix="/instructors", tags=["instructors"])


@router.get("", response_model=list[schemas.Instructor])
def list_instructors(include_inactive: bool = False, db: Session = Depends(get_db)):
    query = db.query(models.Instructor)
    if not include_inactive:
        query = query.filter(models.Instructor.is_active.is_(True))
    return query.order_by(models.Instructor.name).all()


@router.post("", response_model=schemas.Instructor)
def create_instructor(
    payload: schemas.InstructorCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    if payload.user_id is not None:
        user = db.get(models.User, payload.user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        if user.role == models.UserRole.student:
            user.role = models.UserRole.instructor
    instructor = models.Instructor(**payload.model_dump())
    db.add(instructor)
    db.commit()
    db.refresh(instructor)
    return instructor


@router.patch("/{instructor_id}", response_model=schemas.Instructor)
def update_instructor(
    instructor_id: int,
    payload: schemas.InstructorUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    instructor = db.get(models.Instructor, instructor_id)
    if not instructor:
        raise HTTPException(status_code=404, detail="Instructor not found")
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(instructor, key, value)
    db.commit()
    db.refresh(instructor)
    return instructor


@router.delete("/{instructor_id}")
def delete_instructor(
    instructor_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    instructor = db.get(models.Instructor, instructor_id)
    if not instructor:
        raise HTTPException(status_code=404, detail="Instructor not found")
    if instructor.classes:
        instructor.is_active = False
        db.commit()
        return {"status": "deactivated"}
    db.delete(instructor)
    db.commit()
    return {"status": "deleted"}
