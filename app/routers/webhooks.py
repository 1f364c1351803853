# =============================================================================
# app/routers/webhooks.py - Payment Provider Webhooks
# =============================================================================
# The raw body is read untouched because Doppus signs the exact bytes.
# Processing errors still answer 200 (the log keeps the error and the retry
# task picks it up); only authentication and unreadable bodies get 4xx.
# =============================================================================

from fastapi import APIRouter, Request

from core.models.subscription import SubscriptionSource, WebhookResult
from core.services.webhook_service import WebhookService

router = APIRouter()


def _source_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.post("/hotmart", response_model=WebhookResult)
async def hotmart_webhook(request: Request):
    """
    Hotmart purchase and subscription events.

    Raises:
        401: hottok mismatch
        400: Body is not a JSON object
    """
    raw_body = await request.body()
    return WebhookService.receive(
        SubscriptionSource.HOTMART,
        raw_body,
        request.headers,
        source_ip=_source_ip(request),
    )


@router.post("/doppus", response_model=WebhookResult)
async def doppus_webhook(request: Request):
    """
    Doppus payment events (classic and 2025 payload formats).

    Raises:
        401: Missing or invalid X-Doppus-Signature
        400: Body is not a JSON object
    """
    raw_body = await request.body()
    return WebhookService.receive(
        SubscriptionSource.DOPPUS,
        raw_body,
        request.headers,
        source_ip=_source_ip(request),
    )
