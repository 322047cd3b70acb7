from datetime import timedelta

import pytest

from studiobook.core.exceptions import InsufficientCredits
from studiobook.db import models
from studiobook.db.unit_of_work import UnitOfWork
from studiobook.services import credit_ledger

from .helpers import NOW, create_user, give_credits


def test_deduct_consumes_soonest_expiring_lots_first(db_session):
    student = create_user(db_session)
    never = give_credits(db_session, student, 5)
    late = give_credits(db_session, student, 3, expiration_days=30)
    soon = give_credits(db_session, student, 2, expiration_days=10)

    with UnitOfWork(db_session) as uow:
        touched = credit_ledger.deduct(uow, student.id, 3, now=NOW)

    assert [lot.id for lot in touched] == [soon.id, late.id]
    assert soon.credits_remaining == 0
    assert soon.is_active is False
    assert late.credits_remaining == 2
    assert never.credits_remaining == 5
    assert credit_ledger.available_credits(db_session, student.id, now=NOW) == 7


def test_deduct_without_credits_reports_no_credits(db_session):
    student = create_user(db_session)

    with pytest.raises(InsufficientCredits) as exc_info:
        with UnitOfWork(db_session) as uow:
            credit_ledger.deduct(uow, student.id, 1, now=NOW)

    assert exc_info.value.code == "INSUFFICIENT_CREDITS"
    assert "no credits" in exc_info.value.message
    assert exc_info.value.extra == {"available": 0, "required": 1}


def test_deduct_with_too_few_credits_changes_nothing(db_session):
    student = create_user(db_session)
    lot = give_credits(db_session, student, 1, expiration_days=30)

    with pytest.raises(InsufficientCredits) as exc_info:
        with UnitOfWork(db_session) as uow:
            credit_ledger.deduct(uow, student.id, 2, now=NOW)

    assert "Not enough credits" in exc_info.value.message
    db_session.refresh(lot)
    assert lot.credits_remaining == 1
    assert lot.is_active is True


def test_expired_lots_are_not_spendable(db_session):
    student = create_user(db_session)
    give_credits(db_session, student, 4, expiration_days=5, now=NOW - timedelta(days=10))

    assert credit_ledger.available_credits(db_session, student.id, now=NOW) == 0
    with pytest.raises(InsufficientCredits):
        with UnitOfWork(db_session) as uow:
            credit_ledger.deduct(uow, student.id, 1, now=NOW)


def test_refund_reactivates_depleted_lot(db_session):
    student = create_user(db_session)
    lot = give_credits(db_session, student, 1, expiration_days=30)
    with UnitOfWork(db_session) as uow:
        credit_ledger.deduct(uow, student.id, 1, now=NOW)
    assert lot.is_active is False

    with UnitOfWork(db_session) as uow:
        refunded = credit_ledger.refund(uow, student.id, 1, now=NOW)

    assert refunded == 1
    assert lot.credits_remaining == 1
    assert lot.is_active is True


def test_refund_prefers_active_lot(db_session):
    student = create_user(db_session)
    depleted = give_credits(db_session, student, 1, expiration_days=5)
    with UnitOfWork(db_session) as uow:
        credit_ledger.deduct(uow, student.id, 1, now=NOW)
    active = give_credits(db_session, student, 2, expiration_days=40)

    with UnitOfWork(db_session) as uow:
        credit_ledger.refund(uow, student.id, 1, now=NOW)

    assert active.credits_remaining == 3
    assert depleted.credits_remaining == 0
    assert depleted.is_active is False


def test_refund_without_candidate_lot_is_dropped(db_session):
    student = create_user(db_session)
    give_credits(db_session, student, 1, expiration_days=1, now=NOW - timedelta(days=3))

    with UnitOfWork(db_session) as uow:
        refunded = credit_ledger.refund(uow, student.id, 1, now=NOW)

    assert refunded == 0
    assert credit_ledger.available_credits(db_session, student.id, now=NOW) == 0


def test_expire_lots_deactivates_and_audits(db_session):
    student = create_user(db_session)
    expired = give_credits(db_session, student, 3, expiration_days=1, now=NOW - timedelta(days=2))
    current = give_credits(db_session, student, 2, expiration_days=30)

    with UnitOfWork(db_session) as uow:
        result = credit_ledger.expire_lots(uow, now=NOW)

    assert [lot.id for lot in result] == [expired.id]
    assert expired.is_active is False
    assert current.is_active is True
    audit = db_session.query(models.AuditLog).filter_by(action="credits_expired").one()
    assert audit.payload["lot_id"] == expired.id
    assert audit.payload["credits_expired"] == 3


def test_credit_summary_lists_active_lots(db_session):
    student = create_user(db_session)
    give_credits(db_session, student, 2, expiration_days=30)
    give_credits(db_session, student, 4)

    summary = credit_ledger.credit_summary(db_session, student.id, now=NOW)

    assert summary.total_credits == 6
    assert [lot.credits_remaining for lot in summary.lots] == [2, 4]
