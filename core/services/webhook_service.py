# =============================================================================
# core/services/webhook_service.py - Webhook Intake and Audit Log
# =============================================================================
# Every payment notification goes through the same steps:
#
#   1. Parse the raw body (unreadable bodies are still logged as errors)
#   2. Insert a webhook_logs row with status "received"
#   3. Verify the provider's token or signature
#   4. Run the provider processor
#   5. Mark the log processed, ignored or error
#
# Logged payloads can be re-run later (admin reprocess, Celery retries).
# =============================================================================

import json
import logging
from typing import Any, Mapping

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import page_range, to_iso, utcnow
from core.models.subscription import SubscriptionSource, WebhookResult, WebhookStatus
from core.services.doppus_service import DoppusService
from core.services.hotmart_service import HotmartService
from app.config import settings
from app.exceptions import DesignAutoException, NotFoundError, WebhookPayloadError, WebhookSignatureError

logger = logging.getLogger(__name__)

WEBHOOK_LOGS_TABLE = "webhook_logs"

PROCESSORS = {
    SubscriptionSource.HOTMART: HotmartService,
    SubscriptionSource.DOPPUS: DoppusService,
}


def _processor(source: SubscriptionSource | str):
    try:
        return PROCESSORS[SubscriptionSource(source)]
    except (KeyError, ValueError):
        raise WebhookPayloadError(str(source), "unknown webhook source")


def _is_retryable(log: dict[str, Any]) -> bool:
    """Unparsable bodies and forged calls are never retried automatically."""
    if "_raw" in (log.get("payload") or {}):
        return False
    return "signature" not in (log.get("error_message") or "")


class WebhookService:
    """
    Service for webhook intake, logging and reprocessing.

    Example:
        result = WebhookService.receive("doppus", raw_body, headers, "203.0.113.7")
        result.status  # WebhookStatus.PROCESSED
    """

    # -------------------------------------------------------------------------
    # Log Rows
    # -------------------------------------------------------------------------

    @staticmethod
    def create_log(
        source: SubscriptionSource,
        payload: dict[str, Any],
        event_type: str | None = None,
        email: str | None = None,
        transaction_id: str | None = None,
        source_ip: str | None = None,
    ) -> dict[str, Any]:
        now = to_iso(utcnow())
        log = SupabaseClient.insert_row(WEBHOOK_LOGS_TABLE, {
            "source": source.value,
            "event_type": event_type,
            "payload": payload,
            "status": WebhookStatus.RECEIVED.value,
            "email": email,
            "transaction_id": transaction_id,
            "source_ip": source_ip,
            "retry_count": 0,
            "created_at": now,
            "updated_at": now,
        })
        logger.info(f"Logged {source.value} webhook {log['id']}: {event_type} for {email or 'unknown'}")
        return log

    @staticmethod
    def update_log(
        log_id: int,
        status: WebhookStatus,
        error_message: str | None = None,
        user_id: int | None = None,
        **extra: Any,
    ) -> dict[str, Any] | None:
        changes: dict[str, Any] = {
            "status": status.value,
            "error_message": error_message,
            "updated_at": to_iso(utcnow()),
            **extra,
        }
        if user_id is not None:
            changes["user_id"] = user_id
        return SupabaseClient.update_row(WEBHOOK_LOGS_TABLE, log_id, changes)

    @staticmethod
    def get_log(log_id: int) -> dict[str, Any]:
        log = SupabaseClient.fetch_by_id(WEBHOOK_LOGS_TABLE, log_id)
        if not log:
            raise NotFoundError("Webhook log", log_id)
        return log

    @staticmethod
    def list_logs(
        page: int = 1,
        limit: int = 20,
        source: SubscriptionSource | None = None,
        status: WebhookStatus | None = None,
        search: str | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """
        Newest logs first.

        Args:
            search: Substring of the e-mail or transaction id
        """
        client = SupabaseClient.get_client()
        start, end = page_range(page, limit)

        query = client.table(WEBHOOK_LOGS_TABLE).select("*", count="exact")
        if source is not None:
            query = query.eq("source", source.value)
        if status is not None:
            query = query.eq("status", status.value)
        if search:
            term = search.strip().replace(",", " ")
            query = query.or_(f"email.ilike.%{term}%,transaction_id.ilike.%{term}%")

        response = query.order("created_at", desc=True).range(start, end).execute()
        return response.data or [], response.count or 0

    # -------------------------------------------------------------------------
    # Intake
    # -------------------------------------------------------------------------

    @staticmethod
    def receive(
        source: SubscriptionSource | str,
        raw_body: bytes,
        headers: Mapping[str, str],
        source_ip: str | None = None,
    ) -> WebhookResult:
        """
        Log, authenticate and process an incoming webhook.

        Args:
            source: hotmart or doppus
            raw_body: Request body exactly as received (signatures cover it)
            headers: Request headers
            source_ip: Caller address for the audit log

        Returns:
            WebhookResult with the log id

        Raises:
            WebhookPayloadError: If the body isn't a readable JSON object
            WebhookSignatureError: If the token or signature doesn't match
        """
        processor = _processor(source)
        source = processor.source
        headers = {key.lower(): value for key, value in headers.items()}

        try:
            payload = json.loads(raw_body or b"{}")
        except ValueError as e:
            WebhookService._log_rejected_body(source, raw_body, "Invalid JSON body", source_ip)
            raise WebhookPayloadError(source.value, f"invalid JSON: {e}")

        if not isinstance(payload, dict):
            WebhookService._log_rejected_body(source, raw_body, "Body is not a JSON object", source_ip)
            raise WebhookPayloadError(source.value, "body must be a JSON object")

        try:
            payload = processor.normalize(payload, headers)
            info = processor.extract(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.exception(f"Could not read {source.value} webhook fields")
            WebhookService._log_rejected_body(source, raw_body, f"Unreadable payload: {e}", source_ip)
            raise WebhookPayloadError(source.value, "unreadable payload")

        log = WebhookService.create_log(
            source,
            payload,
            event_type=info.get("event"),
            email=info.get("email"),
            transaction_id=info.get("transaction_id"),
            source_ip=source_ip,
        )

        try:
            processor.verify(headers, raw_body, payload)
        except WebhookSignatureError as e:
            logger.warning(f"Rejected {source.value} webhook {log['id']} from {source_ip}: {e.message}")
            WebhookService.update_log(log["id"], WebhookStatus.ERROR, error_message=e.message)
            raise

        return WebhookService._run(log, processor)

    @staticmethod
    def _log_rejected_body(
        source: SubscriptionSource,
        raw_body: bytes,
        error_message: str,
        source_ip: str | None,
    ) -> dict[str, Any]:
        """Keep an error log of a body that can't be processed, as received."""
        log = WebhookService.create_log(
            source,
            {"_raw": (raw_body or b"").decode("utf-8", errors="replace")},
            source_ip=source_ip,
        )
        WebhookService.update_log(log["id"], WebhookStatus.ERROR, error_message=error_message)
        return log

    @staticmethod
    def _run(log: dict[str, Any], processor) -> WebhookResult:
        """Run a processor on a logged payload and record the outcome."""
        try:
            result = processor.process(log.get("payload") or {})
        except (DesignAutoException, SupabaseClientError) as e:
            logger.error(f"Webhook {log['id']} failed: {e.message}")
            WebhookService.update_log(log["id"], WebhookStatus.ERROR, error_message=e.message)
            return WebhookResult(success=False, status=WebhookStatus.ERROR, message=e.message, log_id=log["id"])
        except Exception as e:
            logger.exception(f"Unexpected error processing webhook {log['id']}")
            WebhookService.update_log(log["id"], WebhookStatus.ERROR, error_message=str(e))
            return WebhookResult(success=False, status=WebhookStatus.ERROR, message=str(e), log_id=log["id"])

        WebhookService.update_log(log["id"], result.status, user_id=result.user_id)
        logger.info(f"Webhook {log['id']} {result.status.value}: {result.message}")
        return result.model_copy(update={"log_id": log["id"]})

    # -------------------------------------------------------------------------
    # Reprocessing
    # -------------------------------------------------------------------------

    @staticmethod
    def reprocess_webhook(log_id: int) -> WebhookResult:
        """
        Re-run a logged webhook and bump its retry_count.

        The token/signature check is not repeated; it was done at intake.
        """
        log = WebhookService.get_log(log_id)
        processor = _processor(log["source"])

        retries = (log.get("retry_count") or 0) + 1
        SupabaseClient.update_row(WEBHOOK_LOGS_TABLE, log_id, {"retry_count": retries})
        logger.info(f"Reprocessing webhook {log_id} (attempt {retries})")

        return WebhookService._run({**log, "retry_count": retries}, processor)

    @staticmethod
    def retry_failed_webhooks(max_retries: int | None = None) -> dict[str, int]:
        """
        Reprocess error logs that haven't used up their retries.

        Returns:
            Counts of retried, recovered and still failing logs
        """
        max_retries = settings.WEBHOOK_MAX_RETRIES if max_retries is None else max_retries
        client = SupabaseClient.get_client()
        # Collected up front: reprocessing changes which rows match
        failed = SupabaseClient.fetch_all(
            lambda: client.table(WEBHOOK_LOGS_TABLE)
            .select("*")
            .eq("status", WebhookStatus.ERROR.value)
            .lt("retry_count", max_retries)
            .order("created_at")
            .order("id")
        )

        summary = {"retried": 0, "recovered": 0, "failed": 0}
        for log in failed:
            if not _is_retryable(log):
                continue
            result = WebhookService.reprocess_webhook(log["id"])
            summary["retried"] += 1
            summary["recovered" if result.success else "failed"] += 1

        if summary["retried"]:
            logger.info(f"Webhook retry run: {summary}")
        return summary
