# =============================================================================
# core/models/report.py - Art Report Schemas
# =============================================================================
# Members (or anonymous visitors) report problems with arts: plagiarism,
# broken edit links, inappropriate content. Staff work through the queue.
#
# Flow:
#   pending -> in_review -> resolved | rejected
# A report counts as resolved exactly when its status is "resolved".
# =============================================================================

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, HttpUrl, field_validator

from .user import UserPublic


class ReportStatus(str, Enum):
    """Where a report is in the staff queue."""
    PENDING = "pending"
    IN_REVIEW = "in_review"
    RESOLVED = "resolved"
    REJECTED = "rejected"


# =============================================================================
# Report Types
# =============================================================================

class ReportTypeCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: str | None = Field(default=None, max_length=500)


class ReportTypeResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    is_active: bool = True


# =============================================================================
# Reports
# =============================================================================

class ReportCreate(BaseModel):
    """
    A new report.

    The reporter is taken from the bearer token when there is one.
    """
    report_type_id: int = Field(..., ge=1)
    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=10, max_length=5000)
    art_id: int | None = Field(default=None, ge=1)
    url: HttpUrl | None = None
    evidence: str | None = Field(default=None, max_length=2000)

    @field_validator("url", mode="before")
    @classmethod
    def blank_url_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ReportUpdate(BaseModel):
    """Staff response. Omitted fields are left as they are."""
    status: ReportStatus | None = None
    admin_response: str | None = Field(default=None, max_length=5000)
    is_resolved: bool | None = None


class ReportResponse(BaseModel):
    id: int
    report_type_id: int
    title: str
    description: str
    art_id: int | None = None
    user_id: int | None = None
    url: str | None = None
    evidence: str | None = None
    status: ReportStatus
    is_resolved: bool = False
    admin_response: str | None = None
    responded_by: int | None = None
    responded_at: datetime | None = None
    resolved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # Enrichment for the staff queue
    report_type: ReportTypeResponse | None = None
    reporter: UserPublic | None = None
    responder: UserPublic | None = None


class ReportList(BaseModel):
    reports: list[ReportResponse]
    total_count: int
    page: int
    limit: int
