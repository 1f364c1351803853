# =============================================================================
# app/routers/reports.py - Filing Art Reports
# =============================================================================
# Open to anonymous visitors; the reporter is recorded when a token is sent.
# The staff queue lives in the admin router.
# =============================================================================

from fastapi import APIRouter, Depends, status

from app.auth import AuthUser, get_current_user_optional
from core.models.report import ReportCreate, ReportResponse, ReportTypeResponse
from core.services.report_service import ReportService

router = APIRouter()


@router.get("/types", response_model=list[ReportTypeResponse])
async def list_report_types():
    """Active report types, by name."""
    return [ReportTypeResponse(**t) for t in ReportService.list_types()]


@router.post("", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def create_report(
    request: ReportCreate,
    reporter: AuthUser | None = Depends(get_current_user_optional),
):
    """
    Report a problem with an art.

    Raises:
        400: Unknown or inactive report type
        404: art_id doesn't exist
    """
    report = ReportService.create_report(request, reporter_id=reporter.id if reporter else None)
    return ReportResponse(**report)
