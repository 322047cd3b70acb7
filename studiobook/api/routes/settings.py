from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...api import deps
from ...db import models, schemas
from ...db.session import get_db
from ...services import cancellation_policy

router = APIRouter(prefix="/settings", tags=["settings"])


def _policy_response(policy: cancellation_policy.CancellationPolicy) -> schemas.CancellationPolicy:
    return schemas.CancellationPolicy(
        cancellation_window_hours=policy.cancellation_window_hours,
        late_cancel_penalty=policy.late_cancel_penalty,
        no_show_penalty=policy.no_show_penalty,
        cancellation_policy_text=policy.cancellation_policy_text,
        description=policy.describe(),
    )


@router.get("/cancellation-policy", response_model=schemas.CancellationPolicy)
def get_cancellation_policy(db: Session = Depends(get_db)) -> schemas.CancellationPolicy:
    return _policy_response(cancellation_policy.get_policy(db))


@router.put("/cancellation-policy", response_model=schemas.CancellationPolicy)
def update_cancellation_policy(
    payload: schemas.CancellationPolicyUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.require_roles("admin")),
) -> schemas.CancellationPolicy:
    policy = cancellation_policy.update_policy(
        db, actor_id=admin.id, **payload.model_dump(exclude_unset=True)
    )
    return _policy_response(policy)
