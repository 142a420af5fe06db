"""WhatsApp webhook — delivery status callbacks and the subscription handshake."""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from app.core.exceptions import AuthenticationError, AuthorizationError, ValidationError
from app.infrastructure.database import get_db
from app.application.services.delivery_status_service import (
    apply_status_updates,
    extract_statuses,
    verify_signature,
    verify_subscription,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/whatsapp")
async def whatsapp_status_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Receive delivery status updates (sent / delivered / read / failed).
    Always acknowledges a well-formed body so the provider does not retry.
    """
    raw_body = await request.body()
    if not verify_signature(raw_body, request.headers.get("x-hub-signature-256")):
        raise AuthenticationError("Invalid webhook signature")

    try:
        body = json.loads(raw_body or b"null")
    except ValueError:
        raise ValidationError("Invalid JSON body")

    updates = extract_statuses(body)
    if not updates:
        return {"received": True}

    touched = apply_status_updates(db, updates)
    logger.info(f"WhatsApp webhook: {len(updates)} status(es), {touched} ledger row(s) updated")
    return {"received": True}


@router.get("/whatsapp")
def whatsapp_verify(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
):
    """Subscription handshake: echo the challenge when the verify token matches."""
    echoed = verify_subscription(mode, token, challenge)
    if echoed is None:
        raise AuthorizationError("Webhook verification failed")
    return PlainTextResponse(echoed)
