from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...api import deps
from ...db import models
from ...db.session import get_db
from ...services import reports

router = APIRouter(
    prefix="/admin/reports",
    tags=["reports"],
    dependencies=[Depends(deps.require_roles("admin"))],
)


@router.get("/revenue")
def revenue(
    start_date: date | None = None,
    end_date: date | None = None,
    payment_method: models.PaymentMethod | None = None,
    db: Session = Depends(get_db),
):
    start, end = reports.resolve_range(start_date, end_date)
    return reports.revenue_report(db, start, end, payment_method)


@router.get("/attendance")
def attendance(
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
):
    start, end = reports.resolve_range(start_date, end_date)
    return reports.attendance_report(db, start, end)


@router.get("/popular-classes")
def popular_classes(
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    start, end = reports.resolve_range(start_date, end_date)
    return reports.popular_classes_report(db, start, end, limit)


@router.get("/instructors")
def instructors(
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
):
    start, end = reports.resolve_range(start_date, end_date)
    return reports.instructor_report(db, start, end)
