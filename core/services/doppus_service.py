# =============================================================================
# core/services/doppus_service.py - Doppus Webhook Processing
# =============================================================================
# Doppus signs the raw request body with HMAC-SHA256 (hex, header
# X-Doppus-Signature). Two payload shapes exist:
#
#   classic:   {"event": "PAYMENT_APPROVED", "data": {"customer": {...}, ...}}
#   2025:      {"customer": {...}, "items": [...], "transaction": {...}}
#
# The 2025 shape carries no event name; it is only sent for approved
# payments and gets wrapped into the classic one.
# =============================================================================

import hashlib
import hmac
import logging
import re
from typing import Any, Mapping

from core.models.subscription import (
    PLAN_DURATION_DAYS,
    PlanResolution,
    PlanType,
    SubscriptionSource,
    WebhookResult,
    WebhookStatus,
)
from core.services.subscription_service import SubscriptionService
from app.config import settings
from app.exceptions import WebhookPayloadError, WebhookSignatureError
from lib.utils import dig, text_value

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-doppus-signature"
EVENT_HEADER = "x-doppus-event"

PRODUCT_CODES: dict[str, PlanType] = {
    "PREMIUM_MENSAL": PlanType.MENSAL,
    "PREMIUM_SEMESTRAL": PlanType.SEMESTRAL,
    "PREMIUM_ANUAL": PlanType.ANUAL,
    "PREMIUM_VITALICIO": PlanType.VITALICIO,
}


# =============================================================================
# Payload Helpers
# =============================================================================

def sign(raw_body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of a body, as Doppus computes it."""
    return hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: str | None, secret: str) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign(raw_body, secret), signature.strip().lower())


def normalize_event(name: Any) -> str:
    """
    Upper snake case event name; anything that isn't text becomes "".

    Example:
        normalize_event("payment.approved")  # "PAYMENT_APPROVED"
    """
    if not isinstance(name, str):
        return ""
    return re.sub(r"[^A-Za-z0-9]+", "_", name.strip()).strip("_").upper()


def normalize_payload(payload: dict[str, Any], header_event: str | None = None) -> dict[str, Any]:
    """
    Bring any Doppus payload to {"event": ..., "data": ...}.

    Example:
        normalize_payload({"customer": {...}, "items": [...]})
        # {"event": "PAYMENT_APPROVED", "data": {"customer": {...}, "items": [...]}}
    """
    is_2025_format = (
        "customer" in payload
        and isinstance(payload.get("items"), list)
        and "event" not in payload
        and "data" not in payload
    )
    if is_2025_format:
        payload = {"event": "payment.approved", "data": payload}

    event = payload.get("event") or header_event
    return {**payload, "event": normalize_event(event)}


def extract(payload: dict[str, Any]) -> dict[str, Any]:
    """
    Fields of a normalized payload used for processing and logging.

    Every lookup tolerates missing levels and unexpected types; a field
    that can't be read is None.
    """
    data = payload.get("data")

    transaction = (
        text_value(dig(data, "transaction", "code"))
        or text_value(dig(payload, "transaction", "code"))
        or text_value(dig(data, "code"))
        or text_value(payload.get("id"))
    )
    email = text_value(dig(data, "customer", "email"))

    return {
        "event": text_value(payload.get("event")),
        "email": email.lower() if email else None,
        "name": text_value(dig(data, "customer", "name")),
        "transaction_id": transaction,
        "product_code": (
            text_value(dig(data, "product", "code"))
            or text_value(dig(data, "items", 0, "offer"))
            or text_value(dig(data, "items", 0, "code"))
        ),
        "plan_name": (
            text_value(dig(data, "items", 0, "offer_name"))
            or text_value(dig(data, "product", "name"))
        ),
    }


def resolve_product(product_code: str | None, plan_name: str | None) -> PlanResolution:
    """
    Plan for a Doppus product code.

    Known PREMIUM_* codes map directly; anything else goes through the
    product mapping table and the name heuristics.
    """
    plan = PRODUCT_CODES.get((product_code or "").upper())
    if plan is not None:
        return PlanResolution(
            plan_type=plan,
            duration_days=PLAN_DURATION_DAYS[plan],
            is_lifetime=plan == PlanType.VITALICIO,
        )
    return SubscriptionService.resolve_plan(
        SubscriptionSource.DOPPUS,
        product_id=product_code,
        product_name=plan_name,
    )


# =============================================================================
# Service
# =============================================================================

class DoppusService:
    """Authenticates and applies Doppus webhook events."""

    source = SubscriptionSource.DOPPUS

    @staticmethod
    def verify(headers: Mapping[str, str], raw_body: bytes, payload: dict[str, Any]) -> None:
        """
        Check X-Doppus-Signature against DOPPUS_SECRET_KEY.

        Raises:
            WebhookSignatureError: If a secret is configured and the signature is missing or wrong
        """
        secret = settings.DOPPUS_SECRET_KEY
        if not secret:
            logger.warning("DOPPUS_SECRET_KEY not configured, skipping signature validation")
            return

        if not verify_signature(raw_body, headers.get(SIGNATURE_HEADER), secret):
            raise WebhookSignatureError("doppus")

    @staticmethod
    def normalize(payload: dict[str, Any], headers: Mapping[str, str] | None = None) -> dict[str, Any]:
        return normalize_payload(payload, (headers or {}).get(EVENT_HEADER))

    @staticmethod
    def extract(payload: dict[str, Any]) -> dict[str, Any]:
        return extract(normalize_payload(payload))

    @staticmethod
    def process(payload: dict[str, Any]) -> WebhookResult:
        """
        Apply a Doppus event.

        PAYMENT_APPROVED activates, SUBSCRIPTION_CANCELLED and
        PAYMENT_REFUNDED cancel immediately, SUBSCRIPTION_EXPIRED expires.

        Raises:
            WebhookPayloadError: If a handled event has no customer e-mail
        """
        payload = normalize_payload(payload)
        info = extract(payload)
        event = info["event"]

        if event not in ("PAYMENT_APPROVED", "SUBSCRIPTION_CANCELLED", "PAYMENT_REFUNDED", "SUBSCRIPTION_EXPIRED"):
            logger.info(f"Ignoring Doppus event {event}")
            return WebhookResult(status=WebhookStatus.IGNORED, message=f"Event {event} not handled")

        if not info["email"]:
            raise WebhookPayloadError("doppus", "customer e-mail missing")

        if event == "PAYMENT_APPROVED":
            plan = resolve_product(info["product_code"], info["plan_name"])
            outcome = SubscriptionService.create_or_update_subscription(
                email=info["email"],
                name=info["name"],
                plan_type=plan.plan_type,
                source=SubscriptionSource.DOPPUS,
                transaction_id=info["transaction_id"],
                duration_days=plan.duration_days,
                is_lifetime=plan.is_lifetime,
                webhook_data=payload,
            )
            return WebhookResult(
                status=WebhookStatus.PROCESSED,
                message=f"{plan.plan_type.value} plan activated for {info['email']}",
                user_id=outcome["user"]["id"],
            )

        if event == "SUBSCRIPTION_EXPIRED":
            subscription = SubscriptionService.expire_by_email(info["email"])
        else:
            subscription = SubscriptionService.cancel_subscription(
                info["email"],
                immediate=True,
                reason=event,
            )

        if subscription is None:
            return WebhookResult(
                status=WebhookStatus.IGNORED,
                message=f"No subscription found for {info['email']}",
            )
        return WebhookResult(
            status=WebhookStatus.PROCESSED,
            message=f"{event} applied for {info['email']}",
            user_id=subscription["user_id"],
        )
