import hashlib
import hmac
import json

import pytest

from app.application.services import delivery_status_service
from app.application.services.delivery_status_service import (
    StatusUpdate,
    apply_status_updates,
    extract_statuses,
    verify_signature,
    verify_subscription,
)
from app.domain.models.notification_log import NotificationLog


def envelope(*statuses):
    return {"entry": [{"changes": [{"value": {"statuses": list(statuses)}}]}]}


@pytest.fixture
def whatsapp_entry(db, factory):
    church = factory.church()
    entry = NotificationLog(
        church_id=church.id,
        channel="whatsapp",
        type="general",
        status="sent",
        external_message_id="wamid.ABC",
        recipient_phone="962795550001",
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


class TestExtractStatuses:
    def test_walks_every_entry_and_change(self):
        body = {
            "entry": [
                {"changes": [{"value": {"statuses": [{"id": "a", "status": "delivered"}]}}]},
                {"changes": [
                    {"value": {"messages": []}},
                    {"value": {"statuses": [{"id": "b", "status": "read"}]}},
                ]},
            ]
        }
        updates = extract_statuses(body)
        assert [(u.external_message_id, u.status) for u in updates] == [("a", "delivered"), ("b", "read")]

    def test_skips_unknown_statuses_and_missing_ids(self):
        updates = extract_statuses(envelope(
            {"id": "a", "status": "deleted"},
            {"status": "delivered"},
            {"id": "b", "status": "sent"},
        ))
        assert [u.external_message_id for u in updates] == ["b"]

    def test_failed_status_carries_error(self):
        (update,) = extract_statuses(envelope(
            {"id": "a", "status": "failed", "errors": [{"code": 131026, "title": "Message undeliverable"}]}
        ))
        assert update.status == "failed"
        assert update.error == "Message undeliverable"

    def test_malformed_bodies_yield_nothing(self):
        assert extract_statuses(None) == []
        assert extract_statuses([]) == []
        assert extract_statuses({"entry": "nope"}) == []
        assert extract_statuses({"entry": [{"changes": [{"value": None}]}]}) == []


class TestApplyStatusUpdates:
    def test_updates_matching_entry(self, db, whatsapp_entry):
        touched = apply_status_updates(db, [StatusUpdate("wamid.ABC", "delivered")])

        assert touched == 1
        db.refresh(whatsapp_entry)
        assert whatsapp_entry.status == "delivered"

    def test_unknown_id_changes_nothing(self, db, whatsapp_entry):
        touched = apply_status_updates(db, [StatusUpdate("wamid.OTHER", "read")])

        assert touched == 0
        db.refresh(whatsapp_entry)
        assert whatsapp_entry.status == "sent"

    def test_failure_records_error(self, db, whatsapp_entry):
        apply_status_updates(db, [StatusUpdate("wamid.ABC", "failed", "Message undeliverable")])

        db.refresh(whatsapp_entry)
        assert whatsapp_entry.status == "failed"
        assert whatsapp_entry.error == "Message undeliverable"


class TestVerification:
    def test_subscription_echoes_challenge(self):
        assert verify_subscription("subscribe", "test-verify-token", "12345") == "12345"

    def test_subscription_rejects_wrong_token_or_mode(self):
        assert verify_subscription("subscribe", "wrong", "12345") is None
        assert verify_subscription("unsubscribe", "test-verify-token", "12345") is None
        assert verify_subscription("subscribe", None, "12345") is None

    def test_signature_not_required_without_app_secret(self):
        assert verify_signature(b"{}", None) is True

    def test_signature_checked_with_app_secret(self, monkeypatch):
        monkeypatch.setattr(delivery_status_service.settings, "WHATSAPP_APP_SECRET", "app-secret")
        body = b'{"entry": []}'
        good = "sha256=" + hmac.new(b"app-secret", body, hashlib.sha256).hexdigest()

        assert verify_signature(body, good) is True
        assert verify_signature(body, "sha256=deadbeef") is False
        assert verify_signature(body, None) is False


class TestWebhookEndpoint:
    def test_status_callback_updates_ledger(self, client, db, whatsapp_entry):
        response = client.post("/webhooks/whatsapp", json=envelope({"id": "wamid.ABC", "status": "read"}))

        assert response.status_code == 200
        assert response.json() == {"received": True}
        db.refresh(whatsapp_entry)
        assert whatsapp_entry.status == "read"

    def test_unknown_message_id_is_acknowledged(self, client, db, whatsapp_entry):
        response = client.post("/webhooks/whatsapp", json=envelope({"id": "wamid.NOPE", "status": "read"}))

        assert response.status_code == 200
        assert response.json() == {"received": True}
        db.refresh(whatsapp_entry)
        assert whatsapp_entry.status == "sent"

    def test_body_without_statuses(self, client):
        response = client.post("/webhooks/whatsapp", json={"object": "whatsapp_business_account"})
        assert response.status_code == 200

    def test_invalid_json(self, client):
        response = client.post(
            "/webhooks/whatsapp", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "ValidationError"

    def test_bad_signature_is_rejected(self, client, monkeypatch):
        monkeypatch.setattr(delivery_status_service.settings, "WHATSAPP_APP_SECRET", "app-secret")
        response = client.post(
            "/webhooks/whatsapp",
            content=json.dumps(envelope()).encode(),
            headers={"Content-Type": "application/json", "X-Hub-Signature-256": "sha256=bad"},
        )
        assert response.status_code == 401

    def test_handshake(self, client):
        response = client.get(
            "/webhooks/whatsapp",
            params={"hub.mode": "subscribe", "hub.verify_token": "test-verify-token", "hub.challenge": "987"},
        )
        assert response.status_code == 200
        assert response.text == "987"

    def test_handshake_wrong_token(self, client):
        response = client.get(
            "/webhooks/whatsapp",
            params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "987"},
        )
        assert response.status_code == 403
