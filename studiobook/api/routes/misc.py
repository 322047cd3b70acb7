from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...api import deps
from ...db.session import get_db
from ...db.unit_of_work import UnitOfWork
from ...services import credit_ledger

router = APIRouter(tags=["misc"])


@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.post("/cron/expire-credits", dependencies=[Depends(deps.verify_cron_secret)])
def expire_credits(db: Session = Depends(get_db)):
    with UnitOfWork(db) as uow:
        expired = credit_ledger.expire_lots(uow)
    return {
        "status": "ok",
        "expired_lots": len(expired),
        "credits_expired": sum(lot.credits_remaining for lot in expired),
    }
