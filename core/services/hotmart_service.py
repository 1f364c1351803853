# =============================================================================
# core/services/hotmart_service.py - Hotmart Webhook Processing
# =============================================================================
# Hotmart posts one JSON document per event:
#
#   {
#     "event": "PURCHASE_APPROVED",
#     "hottok": "...",
#     "data": {
#       "buyer": {"email": "...", "name": "..."},
#       "product": {"id": 123, "name": "..."},
#       "purchase": {"transaction": "HP...", "offer": {"code": "..."}},
#       "subscription": {"plan": {"name": "Plano Anual"}}
#     }
#   }
#
# The hottok (header X-Hotmart-Hottok or body field) authenticates the call.
# =============================================================================

import hmac
import logging
from typing import Any, Mapping

from core.models.subscription import SubscriptionSource, WebhookResult, WebhookStatus
from core.services.subscription_service import SubscriptionService
from app.config import settings
from app.exceptions import WebhookPayloadError, WebhookSignatureError
from lib.utils import dig, text_value

logger = logging.getLogger(__name__)

HOTTOK_HEADER = "x-hotmart-hottok"

ACTIVATION_EVENTS = frozenset({
    "PURCHASE_APPROVED",
    "PURCHASE_COMPLETE",
    "SUBSCRIPTION_REACTIVATION",
})

# Buyer keeps access until the paid period ends
CANCELLATION_EVENTS = frozenset({
    "PURCHASE_CANCELED",
    "SUBSCRIPTION_CANCELLATION",
})

# Access removed right away
REVOCATION_EVENTS = frozenset({
    "PURCHASE_REFUNDED",
    "PURCHASE_CHARGEBACK",
})


class HotmartService:
    """Authenticates and applies Hotmart webhook events."""

    source = SubscriptionSource.HOTMART

    @staticmethod
    def verify(headers: Mapping[str, str], raw_body: bytes, payload: dict[str, Any]) -> None:
        """
        Check the hottok against HOTMART_SECRET.

        Raises:
            WebhookSignatureError: If a secret is configured and the token doesn't match
        """
        secret = settings.HOTMART_SECRET
        if not secret:
            logger.warning("HOTMART_SECRET not configured, skipping hottok validation")
            return

        token = headers.get(HOTTOK_HEADER) or payload.get("hottok") or ""
        if not hmac.compare_digest(str(token).encode(), secret.encode()):
            raise WebhookSignatureError("hotmart")

    @staticmethod
    def normalize(payload: dict[str, Any], headers: Mapping[str, str] | None = None) -> dict[str, Any]:
        return payload

    @staticmethod
    def extract(payload: dict[str, Any]) -> dict[str, Any]:
        """
        Pull the fields the processor and the log need.

        Example:
            HotmartService.extract(payload)
            # {"event": "PURCHASE_APPROVED", "email": "a@b.com", "transaction_id": "HP1", ...}
        """
        data = payload.get("data")
        email = text_value(dig(data, "buyer", "email"))
        return {
            "event": text_value(payload.get("event")),
            "email": email.lower() if email else None,
            "name": text_value(dig(data, "buyer", "name")),
            "transaction_id": text_value(dig(data, "purchase", "transaction")),
            "product_id": text_value(dig(data, "product", "id")),
            "product_name": text_value(dig(data, "product", "name")),
            "offer_id": text_value(dig(data, "purchase", "offer", "code")),
            "plan_name": text_value(dig(data, "subscription", "plan", "name")),
        }

    @staticmethod
    def process(payload: dict[str, Any]) -> WebhookResult:
        """
        Apply an event to the buyer's subscription.

        Raises:
            WebhookPayloadError: If a handled event has no buyer e-mail
        """
        info = HotmartService.extract(payload)
        event = info["event"]

        handled = ACTIVATION_EVENTS | CANCELLATION_EVENTS | REVOCATION_EVENTS
        if event not in handled:
            logger.info(f"Ignoring Hotmart event {event}")
            return WebhookResult(status=WebhookStatus.IGNORED, message=f"Event {event} not handled")

        if not info["email"]:
            raise WebhookPayloadError("hotmart", "buyer e-mail missing")

        if event in ACTIVATION_EVENTS:
            name_hint = " ".join(n for n in (info["plan_name"], info["product_name"]) if n)
            plan = SubscriptionService.resolve_plan(
                SubscriptionSource.HOTMART,
                product_id=info["product_id"],
                offer_id=info["offer_id"],
                product_name=name_hint,
            )
            outcome = SubscriptionService.create_or_update_subscription(
                email=info["email"],
                name=info["name"],
                plan_type=plan.plan_type,
                source=SubscriptionSource.HOTMART,
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

        subscription = SubscriptionService.cancel_subscription(
            info["email"],
            transaction_id=info["transaction_id"],
            immediate=event in REVOCATION_EVENTS,
            reason=event,
        )
        if subscription is None:
            return WebhookResult(
                status=WebhookStatus.IGNORED,
                message=f"No matching subscription to cancel for {info['email']}",
            )
        return WebhookResult(
            status=WebhookStatus.PROCESSED,
            message=f"Subscription cancelled for {info['email']} ({event})",
            user_id=subscription["user_id"],
        )
