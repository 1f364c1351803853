# =============================================================================
# core/services/report_service.py - Art Reports
# =============================================================================
# Anyone can file a report against an art (or a URL). Staff list, answer,
# resolve and delete them.
#
# Updates keep status and is_resolved in step:
#   status=resolved          -> is_resolved true, resolved_at set
#   is_resolved=true alone   -> status becomes resolved
#   is_resolved=false alone  -> a resolved report goes back to in_review
#   any other status         -> is_resolved false, resolved_at cleared
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient
from lib.utils import page_range, to_iso, utcnow
from core.models.report import ReportCreate, ReportStatus, ReportTypeCreate, ReportUpdate
from core.services.user_service import UserService
from app.exceptions import BusinessRuleError, ConflictError, NotFoundError

logger = logging.getLogger(__name__)

REPORTS_TABLE = "reports"
REPORT_TYPES_TABLE = "report_types"
ARTS_TABLE = "arts"


class ReportService:
    """
    Service for the art report queue.

    Example:
        report = ReportService.create_report(ReportCreate(...), reporter_id=None)
        ReportService.update_report(report["id"], ReportUpdate(status="in_review"), responder_id=1)
    """

    # -------------------------------------------------------------------------
    # Report Types
    # -------------------------------------------------------------------------

    @staticmethod
    def list_types(include_inactive: bool = False) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        query = client.table(REPORT_TYPES_TABLE).select("*")
        if not include_inactive:
            query = query.eq("is_active", True)
        return query.order("name").execute().data or []

    @staticmethod
    def create_type(data: ReportTypeCreate) -> dict[str, Any]:
        """
        Raises:
            ConflictError: If a type with that name exists
        """
        name = data.name.strip()
        if SupabaseClient.fetch_one(REPORT_TYPES_TABLE, name=name):
            raise ConflictError(f"Report type '{name}' already exists", field="name")

        return SupabaseClient.insert_row(REPORT_TYPES_TABLE, {
            "name": name,
            "description": data.description,
            "is_active": True,
            "created_at": to_iso(utcnow()),
        })

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    @staticmethod
    def create_report(data: ReportCreate, reporter_id: int | None = None) -> dict[str, Any]:
        """
        File a report.

        Args:
            data: Validated report body
            reporter_id: Caller's id, None for anonymous reports

        Raises:
            BusinessRuleError: If the report type is unknown or inactive
            NotFoundError: If art_id doesn't exist
        """
        report_type = SupabaseClient.fetch_by_id(REPORT_TYPES_TABLE, data.report_type_id)
        if not report_type or not report_type.get("is_active", True):
            raise BusinessRuleError("Unknown report type", code="INVALID_REPORT_TYPE")

        if data.art_id is not None and not SupabaseClient.fetch_by_id(ARTS_TABLE, data.art_id):
            raise NotFoundError("Art", data.art_id)

        now = to_iso(utcnow())
        report = SupabaseClient.insert_row(REPORTS_TABLE, {
            "report_type_id": data.report_type_id,
            "title": data.title.strip(),
            "description": data.description.strip(),
            "art_id": data.art_id,
            "user_id": reporter_id,
            "url": str(data.url) if data.url else None,
            "evidence": data.evidence,
            "status": ReportStatus.PENDING.value,
            "is_resolved": False,
            "created_at": now,
            "updated_at": now,
        })
        logger.info(
            f"Report {report['id']} filed ({report_type['name']}) "
            f"by {reporter_id or 'anonymous'} for art {data.art_id}"
        )
        return report

    @staticmethod
    def _fetch(report_id: int) -> dict[str, Any]:
        report = SupabaseClient.fetch_by_id(REPORTS_TABLE, report_id)
        if not report:
            raise NotFoundError("Report", report_id)
        return report

    @staticmethod
    def _enrich(reports: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Attach report_type, reporter and responder."""
        if not reports:
            return reports

        types = {row["id"]: row for row in ReportService.list_types(include_inactive=True)}
        users = UserService.get_users_by_ids(
            [r.get("user_id") for r in reports] + [r.get("responded_by") for r in reports]
        )
        for report in reports:
            report["report_type"] = types.get(report.get("report_type_id"))
            report["reporter"] = users.get(report.get("user_id"))
            report["responder"] = users.get(report.get("responded_by"))
        return reports

    @staticmethod
    def get_report(report_id: int) -> dict[str, Any]:
        return ReportService._enrich([ReportService._fetch(report_id)])[0]

    @staticmethod
    def list_reports(
        page: int = 1,
        limit: int = 10,
        status: ReportStatus | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """Newest first, optionally filtered by status."""
        client = SupabaseClient.get_client()
        start, end = page_range(page, limit)

        query = client.table(REPORTS_TABLE).select("*", count="exact")
        if status is not None:
            query = query.eq("status", status.value)
        response = query.order("created_at", desc=True).order("id", desc=True).range(start, end).execute()
        return ReportService._enrich(response.data or []), response.count or 0

    @staticmethod
    def update_report(report_id: int, data: ReportUpdate, responder_id: int) -> dict[str, Any]:
        """
        Answer or move a report through the queue.

        Raises:
            NotFoundError: If the report doesn't exist
            BusinessRuleError: If status and is_resolved contradict each other
        """
        report = ReportService._fetch(report_id)
        now = to_iso(utcnow())

        status = data.status
        if status is None and data.is_resolved is not None:
            if data.is_resolved:
                status = ReportStatus.RESOLVED
            elif report.get("status") == ReportStatus.RESOLVED.value:
                status = ReportStatus.IN_REVIEW
        if (
            status is not None
            and data.is_resolved is not None
            and data.is_resolved != (status == ReportStatus.RESOLVED)
        ):
            raise BusinessRuleError(
                "is_resolved must match status 'resolved'",
                code="INCONSISTENT_REPORT_STATUS",
            )

        changes: dict[str, Any] = {
            "updated_at": now,
            "responded_by": responder_id,
            "responded_at": now,
        }
        if data.admin_response is not None:
            changes["admin_response"] = data.admin_response.strip()
        if status is not None:
            resolved = status == ReportStatus.RESOLVED
            changes["status"] = status.value
            changes["is_resolved"] = resolved
            if resolved and not report.get("is_resolved"):
                changes["resolved_at"] = now
            elif not resolved:
                changes["resolved_at"] = None

        SupabaseClient.update_row(REPORTS_TABLE, report_id, changes)
        logger.info(f"Report {report_id} updated by {responder_id}: {changes.get('status', report.get('status'))}")
        return ReportService.get_report(report_id)

    @staticmethod
    def delete_report(report_id: int) -> None:
        ReportService._fetch(report_id)
        SupabaseClient.delete_row(REPORTS_TABLE, report_id)
        logger.info(f"Deleted report {report_id}")
