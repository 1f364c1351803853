# =============================================================================
# core/services/subscription_service.py - Subscription Lifecycle
# =============================================================================
# Activates, cancels and expires paid plans and keeps users.role in sync:
#
#   activate  -> subscription active, user premium until end_date
#   cancel    -> subscription cancelled; access kept until end_date unless
#                the cancellation is immediate (refund/chargeback)
#   expire    -> subscription expired, user back to free
#
# Staff accounts (admin, designer_adm, support) and designers are never
# downgraded by subscription changes.
# =============================================================================

import logging
from datetime import datetime, timedelta
from typing import Any

from lib.supabase_client import SupabaseClient
from lib.utils import page_range, parse_timestamp, to_iso, utcnow
from core.models.subscription import (
    PLAN_DURATION_DAYS,
    PlanResolution,
    PlanType,
    ProductMappingCreate,
    SubscriptionSource,
    SubscriptionStatus,
    can_transition,
)
from core.models.user import AccessLevel, normalize_role
from core.services.user_service import UserService
from app.exceptions import BusinessRuleError, NotFoundError

logger = logging.getLogger(__name__)

SUBSCRIPTIONS_TABLE = "subscriptions"
USERS_TABLE = "users"
MAPPINGS_TABLE = "product_mappings"

# Roles that subscription changes never touch
PROTECTED_ROLES = frozenset({
    AccessLevel.ADMIN,
    AccessLevel.DESIGNER_ADM,
    AccessLevel.SUPPORT,
    AccessLevel.DESIGNER,
})


# =============================================================================
# Plan Helpers
# =============================================================================

def plan_from_name(name: str | None) -> PlanResolution:
    """
    Guess a plan from a product/plan/offer name.

    Example:
        plan_from_name("Plano Anual Platinum")  # anual, 365 days
    """
    text = (name or "").lower()
    if "vitalic" in text or "lifetime" in text:
        plan = PlanType.VITALICIO
    elif "anual" in text or "annual" in text or "yearly" in text:
        plan = PlanType.ANUAL
    elif "semestral" in text:
        plan = PlanType.SEMESTRAL
    else:
        plan = PlanType.MENSAL
    return PlanResolution(
        plan_type=plan,
        duration_days=PLAN_DURATION_DAYS[plan],
        is_lifetime=plan == PlanType.VITALICIO,
    )


def calculate_end_date(
    plan_type: PlanType | str,
    start: datetime,
    duration_days: int | None = None,
    is_lifetime: bool = False,
) -> datetime | None:
    """
    End of a plan started at `start`.

    Args:
        plan_type: Plan (sets the default duration)
        start: Start of the period
        duration_days: Explicit duration overriding the plan default
        is_lifetime: Lifetime plans never end

    Returns:
        End datetime, or None for lifetime plans
    """
    plan = PlanType(plan_type)
    if is_lifetime or plan == PlanType.VITALICIO:
        return None
    days = duration_days or PLAN_DURATION_DAYS[plan] or 30
    return start + timedelta(days=days)


def _is_protected(role: str | None) -> bool:
    try:
        return normalize_role(role) in PROTECTED_ROLES
    except ValueError:
        return False


class SubscriptionService:
    """
    Service for subscriptions and product mappings.

    Used by the webhook processors, the admin dashboard and the periodic
    expiration sweep.
    """

    # -------------------------------------------------------------------------
    # Plan Resolution
    # -------------------------------------------------------------------------

    @staticmethod
    def resolve_plan(
        source: SubscriptionSource,
        product_id: str | None = None,
        offer_id: str | None = None,
        product_name: str | None = None,
    ) -> PlanResolution:
        """
        Map a payment product to a plan.

        Active mappings are checked first (offer-specific before product-wide),
        then the name heuristics.
        """
        if product_id:
            client = SupabaseClient.get_client()
            mappings = (
                client.table(MAPPINGS_TABLE)
                .select("*")
                .eq("source", source.value)
                .eq("product_id", str(product_id))
                .eq("is_active", True)
                .execute()
            ).data or []

            exact = [m for m in mappings if offer_id and m.get("offer_id") == str(offer_id)]
            generic = [m for m in mappings if not m.get("offer_id")]
            match = (exact or generic or [None])[0]

            if match:
                plan = PlanType(match["plan_type"])
                lifetime = bool(match.get("is_lifetime")) or plan == PlanType.VITALICIO
                return PlanResolution(
                    plan_type=plan,
                    duration_days=None if lifetime else (match.get("duration_days") or PLAN_DURATION_DAYS[plan]),
                    is_lifetime=lifetime,
                )

        return plan_from_name(product_name)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @staticmethod
    def get_for_user(user_id: int) -> dict[str, Any] | None:
        return SupabaseClient.fetch_one(SUBSCRIPTIONS_TABLE, user_id=user_id)

    @staticmethod
    def _set_status(subscription: dict[str, Any], target: SubscriptionStatus, extra: dict[str, Any] | None = None) -> dict[str, Any]:
        current = SubscriptionStatus(subscription.get("status", SubscriptionStatus.PENDING.value))
        if not can_transition(current, target):
            raise BusinessRuleError(
                f"Subscription can't move from {current.value} to {target.value}",
                code="INVALID_SUBSCRIPTION_TRANSITION",
                details={"subscription_id": subscription["id"]},
            )

        changes = {"status": target.value, "updated_at": to_iso(utcnow())}
        changes.update(extra or {})
        return SupabaseClient.update_row(SUBSCRIPTIONS_TABLE, subscription["id"], changes) or subscription

    @staticmethod
    def _set_user_plan(user: dict[str, Any], role: AccessLevel, plan: dict[str, Any]) -> dict[str, Any]:
        changes = dict(plan)
        if not _is_protected(user.get("role")):
            changes["role"] = role.value
        changes["updated_at"] = to_iso(utcnow())
        return SupabaseClient.update_row(USERS_TABLE, user["id"], changes) or user

    @staticmethod
    def create_or_update_subscription(
        email: str,
        plan_type: PlanType,
        source: SubscriptionSource,
        name: str | None = None,
        transaction_id: str | None = None,
        duration_days: int | None = None,
        is_lifetime: bool = False,
        webhook_data: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Activate (or renew) a plan for a buyer.

        Creates the account when the e-mail is new. The subscription row is
        upserted, so a user never has more than one.

        Returns:
            Dict with user, subscription and whether the account was created
        """
        now = now or utcnow()
        user, created = UserService.get_or_create_by_email(email, name)

        lifetime = is_lifetime or plan_type == PlanType.VITALICIO
        end_date = calculate_end_date(plan_type, now, duration_days, lifetime)

        values = {
            "plan_type": plan_type.value,
            "source": source.value,
            "transaction_id": transaction_id,
            "start_date": to_iso(now),
            "end_date": to_iso(end_date),
            "is_lifetime": lifetime,
            "webhook_data": webhook_data,
            "updated_at": to_iso(now),
        }

        existing = SubscriptionService.get_for_user(user["id"])
        if existing:
            subscription = SubscriptionService._set_status(existing, SubscriptionStatus.ACTIVE, values)
        else:
            subscription = SupabaseClient.insert_row(SUBSCRIPTIONS_TABLE, {
                "user_id": user["id"],
                "status": SubscriptionStatus.ACTIVE.value,
                "created_at": to_iso(now),
                **values,
            })

        user = SubscriptionService._set_user_plan(user, AccessLevel.PREMIUM, {
            "plan_type": plan_type.value,
            "plan_source": source.value,
            "plan_expires_at": to_iso(end_date),
            "is_lifetime": lifetime,
        })

        logger.info(
            f"Activated {plan_type.value} plan for user {user['id']} via {source.value} "
            f"(until {to_iso(end_date) or 'lifetime'})"
        )
        return {"user": user, "subscription": subscription, "user_created": created}

    @staticmethod
    def cancel_subscription(
        email: str,
        transaction_id: str | None = None,
        immediate: bool = False,
        reason: str | None = None,
    ) -> dict[str, Any] | None:
        """
        Cancel a buyer's subscription.

        Args:
            email: Buyer e-mail
            transaction_id: When given, must match the stored transaction
            immediate: Downgrade now (refunds, chargebacks) instead of at end_date
            reason: Stored in the log line

        Returns:
            The updated subscription, or None when there was nothing to cancel
        """
        user = UserService.get_by_email(email)
        if not user:
            logger.warning(f"Cancellation for unknown e-mail {email}")
            return None

        subscription = SubscriptionService.get_for_user(user["id"])
        if not subscription:
            logger.warning(f"Cancellation for user {user['id']} without subscription")
            return None

        stored_tx = subscription.get("transaction_id")
        if transaction_id and stored_tx and stored_tx != transaction_id:
            logger.warning(
                f"Cancellation for user {user['id']} ignored: transaction {transaction_id} "
                f"doesn't match {stored_tx}"
            )
            return None

        status = SubscriptionStatus(subscription.get("status", SubscriptionStatus.PENDING.value))
        if status == SubscriptionStatus.EXPIRED or (status == SubscriptionStatus.CANCELLED and not immediate):
            return subscription

        now = utcnow()
        extra: dict[str, Any] = {}
        if immediate:
            extra["end_date"] = to_iso(now)

        if status != SubscriptionStatus.CANCELLED:
            subscription = SubscriptionService._set_status(subscription, SubscriptionStatus.CANCELLED, extra)
        elif extra:
            subscription = SupabaseClient.update_row(SUBSCRIPTIONS_TABLE, subscription["id"], extra) or subscription

        if immediate:
            SubscriptionService._set_user_plan(user, AccessLevel.FREE, {
                "plan_expires_at": to_iso(now),
                "is_lifetime": False,
            })

        logger.info(
            f"Cancelled subscription {subscription['id']} for user {user['id']} "
            f"({'immediate' if immediate else 'at period end'}; reason: {reason or 'n/a'})"
        )
        return subscription

    @staticmethod
    def _expire(subscription: dict[str, Any]) -> dict[str, Any]:
        updated = SubscriptionService._set_status(subscription, SubscriptionStatus.EXPIRED)

        user = SupabaseClient.fetch_by_id(USERS_TABLE, subscription["user_id"])
        if user:
            SubscriptionService._set_user_plan(user, AccessLevel.FREE, {"is_lifetime": False})

        logger.info(f"Expired subscription {subscription['id']} (user {subscription['user_id']})")
        return updated

    @staticmethod
    def expire_subscription(user_id: int) -> dict[str, Any] | None:
        """
        Mark a user's subscription expired and drop the user to free.

        Returns:
            The subscription, or None if the user has none
        """
        subscription = SubscriptionService.get_for_user(user_id)
        if not subscription or subscription.get("status") == SubscriptionStatus.EXPIRED.value:
            return subscription
        return SubscriptionService._expire(subscription)

    @staticmethod
    def expire_by_email(email: str) -> dict[str, Any] | None:
        user = UserService.get_by_email(email)
        if not user:
            logger.warning(f"Expiration for unknown e-mail {email}")
            return None
        return SubscriptionService.expire_subscription(user["id"])

    @staticmethod
    def check_expired_subscriptions(now: datetime | None = None) -> int:
        """
        Expire every non-lifetime subscription whose end_date has passed.

        Active and cancelled subscriptions are both considered, since a
        cancelled plan keeps access until its end date.

        Returns:
            Number of subscriptions expired
        """
        now = now or utcnow()
        client = SupabaseClient.get_client()
        # Collected up front: expiring a row removes it from this filter
        candidates = SupabaseClient.fetch_all(
            lambda: client.table(SUBSCRIPTIONS_TABLE)
            .select("*")
            .in_("status", [SubscriptionStatus.ACTIVE.value, SubscriptionStatus.CANCELLED.value])
            .lt("end_date", to_iso(now))
            .order("id")
        )

        expired = 0
        for subscription in candidates:
            end_date = parse_timestamp(subscription.get("end_date"))
            if subscription.get("is_lifetime") or end_date is None or end_date >= now:
                continue
            SubscriptionService._expire(subscription)
            expired += 1

        if expired:
            logger.info(f"Expiration sweep downgraded {expired} subscriptions")
        return expired

    # -------------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------------

    @staticmethod
    def list_subscriptions(
        page: int = 1,
        limit: int = 20,
        status: SubscriptionStatus | None = None,
        source: SubscriptionSource | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        client = SupabaseClient.get_client()
        start, end = page_range(page, limit)
        query = client.table(SUBSCRIPTIONS_TABLE).select("*", count="exact")
        if status is not None:
            query = query.eq("status", status.value)
        if source is not None:
            query = query.eq("source", source.value)
        response = query.order("updated_at", desc=True).range(start, end).execute()
        return response.data or [], response.count or 0

    @staticmethod
    def get_stats(now: datetime | None = None) -> dict[str, Any]:
        now = now or utcnow()
        soon = now + timedelta(days=7)
        client = SupabaseClient.get_client()
        active = SupabaseClient.fetch_all(
            lambda: client.table(SUBSCRIPTIONS_TABLE)
            .select("id, plan_type, source, end_date, is_lifetime")
            .eq("status", SubscriptionStatus.ACTIVE.value)
            .order("id")
        )

        by_plan: dict[str, int] = {}
        by_source: dict[str, int] = {}
        expiring = 0
        lifetime = 0
        for row in active:
            by_plan[row.get("plan_type", "unknown")] = by_plan.get(row.get("plan_type", "unknown"), 0) + 1
            by_source[row.get("source", "unknown")] = by_source.get(row.get("source", "unknown"), 0) + 1
            end_date = parse_timestamp(row.get("end_date"))
            if row.get("is_lifetime"):
                lifetime += 1
            elif end_date is not None and now <= end_date <= soon:
                expiring += 1

        return {
            "active_total": len(active),
            "active_by_plan": by_plan,
            "active_by_source": by_source,
            "expiring_in_7_days": expiring,
            "lifetime": lifetime,
        }

    # -------------------------------------------------------------------------
    # Product Mappings
    # -------------------------------------------------------------------------

    @staticmethod
    def list_mappings(source: SubscriptionSource | None = None) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        query = client.table(MAPPINGS_TABLE).select("*")
        if source is not None:
            query = query.eq("source", source.value)
        return query.order("id").execute().data or []

    @staticmethod
    def create_mapping(data: ProductMappingCreate) -> dict[str, Any]:
        row = data.model_dump(mode="json")
        row["created_at"] = to_iso(utcnow())
        mapping = SupabaseClient.insert_row(MAPPINGS_TABLE, row)
        logger.info(f"Created product mapping {mapping['id']}: {data.source.value} {data.product_id} -> {data.plan_type.value}")
        return mapping

    @staticmethod
    def update_mapping(mapping_id: int, data: ProductMappingCreate) -> dict[str, Any]:
        mapping = SupabaseClient.update_row(MAPPINGS_TABLE, mapping_id, data.model_dump(mode="json"))
        if not mapping:
            raise NotFoundError("Product mapping", mapping_id)
        return mapping

    @staticmethod
    def delete_mapping(mapping_id: int) -> None:
        if not SupabaseClient.delete_row(MAPPINGS_TABLE, mapping_id):
            raise NotFoundError("Product mapping", mapping_id)
