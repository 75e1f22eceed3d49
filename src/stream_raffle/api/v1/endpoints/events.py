"""Event ingress for support signals.

Deliveries are at-least-once and may arrive duplicated or out of order;
the dedupe key makes redelivery a no-op.
"""

from fastapi import APIRouter, Depends

from stream_raffle.api.v1.dependencies import (
    SessionDep,
    SettingsStoreDep,
    raise_for_failure,
    require_ingress,
)
from stream_raffle.schemas.support import SupportEventIn, SupportEventResponse
from stream_raffle.services.support import SupportEvent, apply_support_event

router = APIRouter(prefix="/events", tags=["events"], dependencies=[Depends(require_ingress)])


@router.post("/support")
def ingest_support_event(
    payload: SupportEventIn,
    db: SessionDep,
    store: SettingsStoreDep,
) -> SupportEventResponse:
    """Apply one cheer or gifted-sub event."""
    event = SupportEvent(
        type=payload.type,
        external_user_id=payload.user_id,
        amount=payload.amount,
        dedupe_key=payload.dedupe_key,
        is_anonymous=payload.is_anonymous,
    )
    result = apply_support_event(db, event, store=store)
    if not result.ok:
        raise_for_failure(result)
    outcome = result.unwrap()
    return SupportEventResponse(
        status=outcome.status.value,
        reason=outcome.reason,
        total_weight=outcome.total_weight,
    )
