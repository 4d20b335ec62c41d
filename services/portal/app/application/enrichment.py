from typing import Dict, List, Sequence
from shared.core import get_logger
from app.application.schemas import Notification, PurchaseRequest
from app.domain.models import REJECTION_NOTIFICATION_TYPE

logger = get_logger(__name__)

REJECTION_MARKER = "was rejected: "
GENERIC_MARKER = ": "

def extract_rejection_reason(message: str) -> str:
    """'Request X was rejected: Insufficient stock' -> 'Insufficient stock'"""
    message = message or ""
    if REJECTION_MARKER in message:
        return message.split(REJECTION_MARKER, 1)[1].strip()
    if GENERIC_MARKER in message:
        return message.split(GENERIC_MARKER, 1)[1].strip()
    return message.strip()

def _needs_reason(request: PurchaseRequest) -> bool:
    return not (request.rejection_reason or "").strip()

def enrich_rejection_reasons(
    requests: Sequence[PurchaseRequest],
    notifications: Sequence[Notification],
) -> List[PurchaseRequest]:
    """Backfill missing rejection reasons from rejection notifications.

    Only empty reasons are filled, so running this twice changes nothing.
    Inputs are not mutated.
    """
    rejections: Dict[str, Notification] = {}
    for notification in notifications:
        if notification.type != REJECTION_NOTIFICATION_TYPE or not notification.related_id:
            continue
        # First matching notification wins
        rejections.setdefault(notification.related_id, notification)

    enriched = []
    for request in requests:
        match = rejections.get(request.id) if request.id else None
        if match is None or not _needs_reason(request):
            enriched.append(request)
            continue
        reason = extract_rejection_reason(match.message)
        if not reason:
            enriched.append(request)
            continue
        logger.debug(
            "Rejection reason recovered from notification",
            extra={'extra_fields': {'request_id': request.id, 'notification_id': match.id}}
        )
        enriched.append(request.model_copy(update={"rejection_reason": reason}))
    return enriched
