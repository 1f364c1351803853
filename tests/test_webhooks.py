# =============================================================================
# tests/test_webhooks.py - Payment Webhook Tests
# =============================================================================
# Hotmart and Doppus intake: authentication, payload formats, event handling,
# logging and retries.
#
# Run with: pytest tests/test_webhooks.py -v
# =============================================================================

import json

import pytest

from app.exceptions import WebhookPayloadError, WebhookSignatureError
from core.models.subscription import SubscriptionSource, WebhookStatus
from core.services.doppus_service import (
    DoppusService,
    normalize_event,
    normalize_payload,
    sign,
    verify_signature,
)
from core.services.user_service import UserService
from core.services.webhook_service import WebhookService

HOTTOK = "test-hottok"
DOPPUS_SECRET = "test-doppus-secret"


def hotmart_payload(event: str = "PURCHASE_APPROVED", email: str = "cliente@example.com", transaction: str = "HP1"):
    return {
        "event": event,
        "data": {
            "buyer": {"email": email, "name": "Cliente Teste"},
            "product": {"id": 123, "name": "DesignAuto Premium"},
            "purchase": {"transaction": transaction, "offer": {"code": "ofr1"}},
            "subscription": {"plan": {"name": "Plano Anual"}},
        },
    }


def receive_hotmart(payload: dict, hottok: str = HOTTOK):
    return WebhookService.receive(
        "hotmart",
        json.dumps(payload).encode(),
        {"X-Hotmart-Hottok": hottok},
        source_ip="203.0.113.7",
    )


def receive_doppus(payload: dict, signature: str | None = None, headers: dict | None = None):
    raw = json.dumps(payload).encode()
    all_headers = dict(headers or {})
    all_headers["X-Doppus-Signature"] = signature if signature is not None else sign(raw, DOPPUS_SECRET)
    return WebhookService.receive("doppus", raw, all_headers)


# =============================================================================
# Hotmart
# =============================================================================

class TestHotmartWebhook:
    """Tests for Hotmart intake and processing."""

    def test_purchase_activates_plan(self, fake_db):
        result = receive_hotmart(hotmart_payload())

        assert result.success is True
        assert result.status == WebhookStatus.PROCESSED
        user = UserService.get_by_email("cliente@example.com")
        assert user["role"] == "premium"
        assert user["plan_type"] == "anual"

        log = fake_db.rows("webhook_logs")[0]
        assert log["status"] == "processed"
        assert log["event_type"] == "PURCHASE_APPROVED"
        assert log["transaction_id"] == "HP1"
        assert log["user_id"] == user["id"]
        assert log["source_ip"] == "203.0.113.7"

    def test_wrong_hottok_rejected(self, fake_db):
        with pytest.raises(WebhookSignatureError):
            receive_hotmart(hotmart_payload(), hottok="forged")

        # Logged for the audit trail, but nothing was applied
        assert fake_db.rows("webhook_logs")[0]["status"] == "error"
        assert UserService.get_by_email("cliente@example.com") is None

    def test_hottok_in_body_accepted(self, fake_db):
        payload = {**hotmart_payload(), "hottok": HOTTOK}

        result = WebhookService.receive("hotmart", json.dumps(payload).encode(), {})

        assert result.status == WebhookStatus.PROCESSED

    def test_unhandled_event_ignored(self, fake_db):
        result = receive_hotmart(hotmart_payload(event="PURCHASE_DELAYED"))

        assert result.status == WebhookStatus.IGNORED
        assert fake_db.rows("webhook_logs")[0]["status"] == "ignored"

    def test_cancel_with_other_transaction_ignored(self, fake_db):
        receive_hotmart(hotmart_payload(transaction="HP1"))

        result = receive_hotmart(hotmart_payload(event="SUBSCRIPTION_CANCELLATION", transaction="HP2"))

        assert result.status == WebhookStatus.IGNORED
        assert fake_db.rows("subscriptions")[0]["status"] == "active"

    def test_refund_removes_access(self, fake_db):
        receive_hotmart(hotmart_payload())

        receive_hotmart(hotmart_payload(event="PURCHASE_REFUNDED"))

        assert UserService.get_by_email("cliente@example.com")["role"] == "free"

    def test_missing_email_is_logged_error(self, fake_db):
        payload = hotmart_payload()
        del payload["data"]["buyer"]["email"]

        result = receive_hotmart(payload)

        assert result.success is False
        assert result.status == WebhookStatus.ERROR
        assert fake_db.rows("webhook_logs")[0]["status"] == "error"

    def test_invalid_json(self, fake_db):
        with pytest.raises(WebhookPayloadError):
            WebhookService.receive("hotmart", b"{not json", {"x-hotmart-hottok": HOTTOK})

        log = fake_db.rows("webhook_logs")[0]
        assert log["payload"] == {"_raw": "{not json"}


# =============================================================================
# Doppus
# =============================================================================

class TestDoppusHelpers:

    def test_normalize_event(self):
        assert normalize_event("payment.approved") == "PAYMENT_APPROVED"
        assert normalize_event("Subscription-Cancelled") == "SUBSCRIPTION_CANCELLED"
        assert normalize_event(None) == ""

    def test_2025_format_wrapped(self):
        body = {"customer": {"email": "a@b.com"}, "items": [{"offer": "PREMIUM_ANUAL"}]}

        normalized = normalize_payload(body)

        assert normalized["event"] == "PAYMENT_APPROVED"
        assert normalized["data"] == body

    def test_header_event_used_when_body_has_none(self):
        normalized = normalize_payload({"data": {}}, header_event="subscription.expired")
        assert normalized["event"] == "SUBSCRIPTION_EXPIRED"

    def test_signature(self):
        raw = b'{"event": "payment.approved"}'
        assert verify_signature(raw, sign(raw, "k"), "k")
        assert not verify_signature(raw, sign(raw, "other"), "k")
        assert not verify_signature(raw, None, "k")

    def test_transaction_fallbacks(self):
        info = DoppusService.extract({"id": "evt_1", "data": {"customer": {"email": "A@B.com"}}})
        assert info["transaction_id"] == "evt_1"
        assert info["email"] == "a@b.com"


class TestDoppusWebhook:
    """Tests for Doppus intake and processing."""

    def test_payment_approved_with_product_code(self, fake_db):
        payload = {
            "event": "payment.approved",
            "data": {
                "customer": {"email": "doppus@example.com", "name": "Cliente"},
                "product": {"code": "PREMIUM_SEMESTRAL"},
                "transaction": {"code": "DP1"},
            },
        }

        result = receive_doppus(payload)

        assert result.status == WebhookStatus.PROCESSED
        user = UserService.get_by_email("doppus@example.com")
        assert user["plan_type"] == "semestral"
        assert user["plan_source"] == "doppus"

    def test_2025_format_processed(self, fake_db):
        payload = {
            "customer": {"email": "novo@example.com", "name": "Novo"},
            "items": [{"offer": "PREMIUM_VITALICIO", "offer_name": "Vitalício"}],
            "transaction": {"code": "DP9"},
        }

        result = receive_doppus(payload)

        assert result.status == WebhookStatus.PROCESSED
        assert UserService.get_by_email("novo@example.com")["is_lifetime"] is True
        assert fake_db.rows("webhook_logs")[0]["transaction_id"] == "DP9"

    def test_missing_signature_rejected(self, fake_db):
        with pytest.raises(WebhookSignatureError):
            receive_doppus({"event": "payment.approved", "data": {}}, signature="")

    def test_cancel_removes_access(self, fake_db):
        receive_doppus({
            "event": "payment.approved",
            "data": {"customer": {"email": "c@example.com"}, "product": {"code": "PREMIUM_MENSAL"}},
        })

        receive_doppus({"event": "subscription.cancelled", "data": {"customer": {"email": "c@example.com"}}})

        assert UserService.get_by_email("c@example.com")["role"] == "free"

    def test_expired_event(self, fake_db):
        receive_doppus({
            "event": "payment.approved",
            "data": {"customer": {"email": "c@example.com"}, "product": {"code": "PREMIUM_MENSAL"}},
        })

        result = receive_doppus({"data": {"customer": {"email": "c@example.com"}}},
                                headers={"X-Doppus-Event": "subscription.expired"})

        assert result.status == WebhookStatus.PROCESSED
        assert fake_db.rows("subscriptions")[0]["status"] == "expired"


# =============================================================================
# Logs and Retries
# =============================================================================

class TestRetries:

    def test_failed_log_recovered(self, fake_db):
        # Arrange: An error log whose payload is valid now
        log = WebhookService.create_log(SubscriptionSource.HOTMART, hotmart_payload(), event_type="PURCHASE_APPROVED")
        WebhookService.update_log(log["id"], WebhookStatus.ERROR, error_message="database timeout")

        # Act
        summary = WebhookService.retry_failed_webhooks(max_retries=3)

        # Assert
        assert summary == {"retried": 1, "recovered": 1, "failed": 0}
        stored = WebhookService.get_log(log["id"])
        assert stored["status"] == "processed"
        assert stored["retry_count"] == 1

    def test_forged_webhooks_not_retried(self, fake_db):
        with pytest.raises(WebhookSignatureError):
            receive_hotmart(hotmart_payload(), hottok="forged")

        summary = WebhookService.retry_failed_webhooks(max_retries=3)

        assert summary["retried"] == 0

    def test_retry_budget(self, fake_db):
        log = WebhookService.create_log(SubscriptionSource.HOTMART, hotmart_payload(), event_type="PURCHASE_APPROVED")
        WebhookService.update_log(log["id"], WebhookStatus.ERROR, error_message="x", retry_count=3)

        assert WebhookService.retry_failed_webhooks(max_retries=3)["retried"] == 0

    def test_search_logs(self, fake_db):
        receive_hotmart(hotmart_payload(email="busca@example.com"))
        receive_hotmart(hotmart_payload(email="outro@example.com", transaction="HP2"))

        logs, total = WebhookService.list_logs(search="busca")

        assert total == 1
        assert logs[0]["email"] == "busca@example.com"


# =============================================================================
# Unexpected Payload Shapes
# =============================================================================

class TestPayloadShapes:
    """Bodies whose fields have the wrong types are logged, never lost."""

    def test_doppus_string_transaction(self, fake_db):
        payload = {
            "event": "payment.approved",
            "data": {
                "customer": {"email": "x@example.com"},
                "transaction": "TX123",
                "product": {"code": "PREMIUM_MENSAL"},
            },
        }

        result = receive_doppus(payload)

        assert result.status == WebhookStatus.PROCESSED
        assert len(fake_db.rows("webhook_logs")) == 1
        assert fake_db.rows("webhook_logs")[0]["transaction_id"] is None
        assert UserService.get_by_email("x@example.com")["plan_type"] == "mensal"

    def test_doppus_list_data_is_logged(self, fake_db):
        result = receive_doppus({"event": "payment.approved", "data": ["not", "an", "object"]})

        # No e-mail to act on: an error log kept for the admin
        assert result.success is False
        log = fake_db.rows("webhook_logs")[0]
        assert log["status"] == "error"
        assert log["event_type"] == "PAYMENT_APPROVED"

    def test_doppus_string_customer(self):
        info = DoppusService.extract({"event": "payment.approved", "data": {"customer": "x@example.com"}})

        assert info["email"] is None
        assert info["event"] == "PAYMENT_APPROVED"

    def test_non_string_event(self):
        assert normalize_event(42) == ""
        assert normalize_event({"name": "payment.approved"}) == ""

    def test_hotmart_nested_values_of_wrong_type(self, fake_db):
        payload = {"event": "PURCHASE_APPROVED", "data": {"buyer": "cliente", "purchase": ["HP1"]}}

        result = receive_hotmart(payload)

        assert result.status == WebhookStatus.ERROR
        assert fake_db.rows("webhook_logs")[0]["transaction_id"] is None

    def test_array_body_logged(self, fake_db):
        with pytest.raises(WebhookPayloadError):
            WebhookService.receive("hotmart", b"[1, 2]", {"X-Hotmart-Hottok": HOTTOK})

        log = fake_db.rows("webhook_logs")[0]
        assert log["status"] == "error"
        assert log["payload"] == {"_raw": "[1, 2]"}
        assert WebhookService.retry_failed_webhooks(max_retries=3)["retried"] == 0
