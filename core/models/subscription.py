# =============================================================================
# core/models/subscription.py - Subscription and Webhook Schemas
# =============================================================================
# These models define the contract for paid plans:
# - PlanType / SubscriptionStatus / SubscriptionSource: Enums for stored strings
# - PlanResolution: Result of mapping a payment product to a plan
# - SubscriptionResponse / ProductMapping*: API views
# - WebhookLog*: Audit trail of every payment notification received
#
# A user has at most one subscription row (user_id is unique); renewals and
# plan changes update it in place.
# =============================================================================

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class PlanType(str, Enum):
    """
    Paid plans and their default durations.

    - mensal: 30 days
    - semestral: 180 days
    - anual: 365 days
    - vitalicio: lifetime (no end date)
    """
    MENSAL = "mensal"
    SEMESTRAL = "semestral"
    ANUAL = "anual"
    VITALICIO = "vitalicio"


PLAN_DURATION_DAYS: dict[PlanType, int | None] = {
    PlanType.MENSAL: 30,
    PlanType.SEMESTRAL: 180,
    PlanType.ANUAL: 365,
    PlanType.VITALICIO: None,
}


class SubscriptionStatus(str, Enum):
    """
    Subscription lifecycle.

    Flow: pending -> active -> cancelled -> expired
    A cancelled subscription keeps access until its end date unless the
    cancellation was immediate (refund/chargeback).
    """
    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# Allowed status changes; re-activation covers renewals after cancel/expiry
STATUS_TRANSITIONS: dict[SubscriptionStatus, frozenset[SubscriptionStatus]] = {
    SubscriptionStatus.PENDING: frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED}),
    SubscriptionStatus.ACTIVE: frozenset({
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.CANCELLED,
        SubscriptionStatus.EXPIRED,
    }),
    SubscriptionStatus.CANCELLED: frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRED}),
    SubscriptionStatus.EXPIRED: frozenset({SubscriptionStatus.ACTIVE}),
}


def can_transition(current: SubscriptionStatus, target: SubscriptionStatus) -> bool:
    return target in STATUS_TRANSITIONS[current]


class SubscriptionSource(str, Enum):
    HOTMART = "hotmart"
    DOPPUS = "doppus"
    MANUAL = "manual"


class PlanResolution(BaseModel):
    """A payment product translated into a plan."""
    plan_type: PlanType
    duration_days: int | None = Field(default=None, description="None for lifetime plans")
    is_lifetime: bool = False


# =============================================================================
# Subscriptions
# =============================================================================

class SubscriptionResponse(BaseModel):
    id: int
    user_id: int
    plan_type: str
    status: SubscriptionStatus
    source: str
    transaction_id: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_lifetime: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SubscriptionList(BaseModel):
    subscriptions: list[SubscriptionResponse]
    total_count: int
    page: int
    limit: int


class ManualGrantRequest(BaseModel):
    """
    Admin grant of a plan without a payment.

    Example:
        {"email": "cliente@exemplo.com", "plan_type": "anual"}
    """
    email: str = Field(..., min_length=3)
    name: str | None = None
    plan_type: PlanType = PlanType.MENSAL
    duration_days: int | None = Field(default=None, ge=1, le=3650)


class ManualCancelRequest(BaseModel):
    email: str = Field(..., min_length=3)
    immediate: bool = False
    reason: str | None = None


class SubscriptionStats(BaseModel):
    active_total: int
    active_by_plan: dict[str, int]
    active_by_source: dict[str, int]
    expiring_in_7_days: int
    lifetime: int


# =============================================================================
# Product Mappings
# =============================================================================

class ProductMappingCreate(BaseModel):
    """Maps a Hotmart/Doppus product or offer to a plan."""
    source: SubscriptionSource
    product_id: str = Field(..., min_length=1)
    offer_id: str | None = None
    product_name: str | None = None
    plan_type: PlanType
    duration_days: int | None = Field(default=None, ge=1, le=3650)
    is_lifetime: bool = False
    is_active: bool = True


class ProductMappingResponse(ProductMappingCreate):
    id: int
    created_at: datetime | None = None


# =============================================================================
# Webhook Logs
# =============================================================================

class WebhookStatus(str, Enum):
    RECEIVED = "received"
    PROCESSED = "processed"
    IGNORED = "ignored"
    ERROR = "error"


class WebhookLogResponse(BaseModel):
    id: int
    source: str
    event_type: str | None = None
    status: WebhookStatus
    error_message: str | None = None
    user_id: int | None = None
    email: str | None = None
    transaction_id: str | None = None
    source_ip: str | None = None
    retry_count: int = 0
    payload: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WebhookLogList(BaseModel):
    logs: list[WebhookLogResponse]
    total_count: int
    page: int
    limit: int


class WebhookResult(BaseModel):
    """Outcome returned to the payment provider and stored on the log."""
    success: bool = True
    status: WebhookStatus
    message: str
    log_id: int | None = None
    user_id: int | None = None
