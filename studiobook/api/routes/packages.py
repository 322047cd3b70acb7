from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas

router = APIRouter(prefix="/packages", tags=["packages"])


@router.get("", response_model=list[schemas.Package])
def list_packages(include_inactive: bool = False, db: Session = Depends(get_db)):
    query = db.query(models.Package)
    if not include_inactive:
        query = query.filter(models.Package.is_active.is_(True))
    return query.order_by(models.Package.price).all()


@router.post("", response_model=schemas.Package)
def create_package(
    payload: schemas.PackageCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    package = models.Package(**payload.model_dump())
    db.add(package)
    db.commit()
    db.refresh(package)
    return package


@router.patch("/{package_id}", response_model=schemas.Package)
def update_package(
    package_id: int,
    payload: schemas.PackageUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    package = db.get(models.Package, package_id)
    if not package:
        raise HTTPException(status_code=404, detail="Package not found")
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(package, key, value)
    db.commit()
    db.refresh(package)
    return package


@router.delete("/{package_id}")
def delete_package(
    package_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    package = db.get(models.Package, package_id)
    if not package:
        raise HTTPException(status_code=404, detail="Package not found")
    package.is_active = False
    db.commit()
    return {"status": "deactivated"}
