"""WhatsApp delivery status ingestion.

The provider posts Cloud-API style envelopes:

    {"entry": [{"changes": [{"value": {"statuses": [{"id": "wamid...", "status": "delivered"}]}}]}]}

Each status is applied to the ledger rows carrying that external message id.
Unknown ids and unknown statuses are ignored. Callbacks may arrive out of
order and are applied as they come.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.config import get_settings
from app.infrastructure.repositories.notification_repository import SQLAlchemyNotificationRepository

settings = get_settings()
logger = logging.getLogger(__name__)

# Provider status → ledger status
STATUS_MAP = {
    "sent": "sent",
    "delivered": "delivered",
    "read": "read",
    "failed": "failed",
}


@dataclass
class StatusUpdate:
    external_message_id: str
    status: str
    error: Optional[str] = None


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _error_text(raw: dict) -> Optional[str]:
    errors = _as_list(raw.get("errors"))
    if not errors or not isinstance(errors[0], dict):
        return None
    first = errors[0]
    return first.get("title") or first.get("message") or str(first.get("code", "")) or None


def extract_statuses(envelope: Any) -> List[StatusUpdate]:
    """Walk entry[].changes[].value.statuses[] and keep well-formed, known statuses."""
    if not isinstance(envelope, dict):
        return []

    updates = []
    for entry in _as_list(envelope.get("entry")):
        if not isinstance(entry, dict):
            continue
        for change in _as_list(entry.get("changes")):
            value = change.get("value") if isinstance(change, dict) else None
            if not isinstance(value, dict):
                continue
            for raw in _as_list(value.get("statuses")):
                if not isinstance(raw, dict):
                    continue
                message_id = raw.get("id")
                status = STATUS_MAP.get(raw.get("status"))
                if not message_id or status is None:
                    continue
                updates.append(StatusUpdate(
                    external_message_id=str(message_id),
                    status=status,
                    error=_error_text(raw) if status == "failed" else None,
                ))
    return updates


def apply_status_updates(db: Session, updates: Iterable[StatusUpdate]) -> int:
    """Apply each update to matching ledger rows. Returns the number of rows touched."""
    ledger = SQLAlchemyNotificationRepository(db)
    touched = 0
    for update in updates:
        count = ledger.update_status_by_external_id(update.external_message_id, update.status, update.error)
        if count == 0:
            logger.debug(f"No ledger entry for message {update.external_message_id}")
        touched += count
    return touched


def verify_subscription(mode: Optional[str], token: Optional[str], challenge: Optional[str]) -> Optional[str]:
    """Subscription handshake: the challenge when mode and token match, otherwise None."""
    secret = settings.WHATSAPP_WEBHOOK_SECRET
    if mode != "subscribe" or not secret or token is None:
        return None
    if not hmac.compare_digest(token.encode(), secret.encode()):
        return None
    return challenge or ""


def verify_signature(raw_body: bytes, signature_header: Optional[str]) -> bool:
    """Check X-Hub-Signature-256 against WHATSAPP_APP_SECRET. Always true when no secret is set."""
    secret = settings.WHATSAPP_APP_SECRET
    if not secret:
        return True
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature_header[len("sha256="):], expected)
