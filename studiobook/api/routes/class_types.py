from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas

router = APIRouter(prefix="/class-types", tags=["class-types"])


@router.get("", response_model=list[schemas.ClassType])
def list_class_types(include_inactive: bool = False, db: Session = Depends(get_db)):
    query = db.query(models.ClassType)
    if not include_inactive:
        query = query.filter(models.ClassType.is_active.is_(True))
    return query.order_by(models.ClassType.name).all()


@router.post("", response_model=schemas.ClassType)
def create_class_type(
    payload: schemas.ClassTypeCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    class_type = models.ClassType(**payload.model_dump())
    db.add(class_type)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=409, detail="Class type already exists") from exc
    db.refresh(class_type)
    return class_type


@router.patch("/{class_type_id}", response_model=schemas.ClassType)
def update_class_type(
    class_type_id: int,
    payload: schemas.ClassTypeUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    class_type = db.get(models.ClassType, class_type_id)
    if not class_type:
        raise HTTPException(status_code=404, detail="Class type not found")
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(class_type, key, value)
    db.commit()
    db.refresh(class_type)
    return class_type


@router.delete("/{class_type_id}")
def delete_class_type(
    class_type_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    class_type = db.get(models.ClassType, class_type_id)
    if not class_type:
        raise HTTPException(status_code=404, detail="Class type not found")
    if class_type.classes:
        class_type.is_active = False
        db.commit()
        return {"status": "deactivated"}
    db.delete(class_type)
    db.commit()
    return {"status": "deleted"}
