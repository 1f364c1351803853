# =============================================================================
# tests/test_reports.py - Art Report Tests
# =============================================================================
# Filing reports, the staff queue and keeping status/is_resolved in step.
#
# Run with: pytest tests/test_reports.py -v
# =============================================================================

import pytest
from pydantic import ValidationError

from app.exceptions import BusinessRuleError, ConflictError, NotFoundError
from core.models.report import ReportCreate, ReportStatus, ReportTypeCreate, ReportUpdate
from core.models.user import AccessLevel
from core.services.report_service import ReportService

API = "/api/v1"


@pytest.fixture
def plagiarism(fake_db):
    return ReportService.create_type(ReportTypeCreate(name="Plágio", description="Arte copiada"))


@pytest.fixture
def art(fake_db):
    return fake_db.seed("arts", {"title": "Convite", "is_visible": True, "is_premium": False})[0]


def _report(type_id: int, **overrides) -> ReportCreate:
    data = {
        "report_type_id": type_id,
        "title": "Arte copiada",
        "description": "Esta arte é cópia de outro designer",
    }
    data.update(overrides)
    return ReportCreate(**data)


# =============================================================================
# Filing
# =============================================================================

class TestCreateReport:
    """Tests for ReportService.create_report."""

    def test_anonymous_report_is_pending(self, plagiarism, art):
        report = ReportService.create_report(_report(plagiarism["id"], art_id=art["id"]))

        assert report["status"] == "pending"
        assert report["is_resolved"] is False
        assert report["user_id"] is None
        assert report["art_id"] == art["id"]

    def test_reporter_recorded(self, plagiarism, make_user):
        member = make_user("membro")

        report = ReportService.create_report(_report(plagiarism["id"]), reporter_id=member["id"])

        assert report["user_id"] == member["id"]

    def test_unknown_type(self, fake_db):
        with pytest.raises(BusinessRuleError) as exc_info:
            ReportService.create_report(_report(99))
        assert exc_info.value.code == "INVALID_REPORT_TYPE"

    def test_inactive_type(self, fake_db):
        retired = fake_db.seed("report_types", {"name": "Antigo", "is_active": False})[0]

        with pytest.raises(BusinessRuleError):
            ReportService.create_report(_report(retired["id"]))

    def test_missing_art(self, plagiarism):
        with pytest.raises(NotFoundError):
            ReportService.create_report(_report(plagiarism["id"], art_id=404))

    def test_short_title_rejected(self):
        with pytest.raises(ValidationError):
            _report(1, title="Oi")

    def test_blank_url_allowed(self, plagiarism):
        report = ReportService.create_report(_report(plagiarism["id"], url=""))

        assert report["url"] is None

    def test_duplicate_type_name(self, plagiarism):
        with pytest.raises(ConflictError):
            ReportService.create_type(ReportTypeCreate(name="Plágio"))

    def test_only_active_types_listed(self, fake_db, plagiarism):
        fake_db.seed("report_types", {"name": "Antigo", "is_active": False})

        assert [t["name"] for t in ReportService.list_types()] == ["Plágio"]
        assert len(ReportService.list_types(include_inactive=True)) == 2


# =============================================================================
# Staff Queue
# =============================================================================

class TestReportQueue:
    """Tests for listing, answering and deleting reports."""

    def test_list_filters_by_status(self, plagiarism, make_user):
        admin = make_user("admin", role=AccessLevel.ADMIN)
        first = ReportService.create_report(_report(plagiarism["id"]))
        ReportService.create_report(_report(plagiarism["id"]))
        ReportService.update_report(first["id"], ReportUpdate(status=ReportStatus.IN_REVIEW), admin["id"])

        pending, total = ReportService.list_reports(status=ReportStatus.PENDING)
        everything, all_total = ReportService.list_reports()

        assert total == 1
        assert all_total == 2
        assert everything[0]["report_type"]["name"] == "Plágio"

    def test_resolving_sets_flags(self, plagiarism, make_user):
        # Arrange
        admin = make_user("admin", role=AccessLevel.ADMIN)
        report = ReportService.create_report(_report(plagiarism["id"]))

        # Act
        updated = ReportService.update_report(
            report["id"],
            ReportUpdate(status=ReportStatus.RESOLVED, admin_response="Arte removida"),
            admin["id"],
        )

        # Assert
        assert updated["is_resolved"] is True
        assert updated["resolved_at"] is not None
        assert updated["admin_response"] == "Arte removida"
        assert updated["responder"]["username"] == "admin"

    def test_is_resolved_alone_resolves(self, plagiarism, make_user):
        admin = make_user("admin", role=AccessLevel.ADMIN)
        report = ReportService.create_report(_report(plagiarism["id"]))

        updated = ReportService.update_report(report["id"], ReportUpdate(is_resolved=True), admin["id"])

        assert updated["status"] == "resolved"

    def test_reopening_clears_resolution(self, plagiarism, make_user):
        admin = make_user("admin", role=AccessLevel.ADMIN)
        report = ReportService.create_report(_report(plagiarism["id"]))
        ReportService.update_report(report["id"], ReportUpdate(status=ReportStatus.RESOLVED), admin["id"])

        reopened = ReportService.update_report(report["id"], ReportUpdate(is_resolved=False), admin["id"])

        assert reopened["status"] == "in_review"
        assert reopened["is_resolved"] is False
        assert reopened["resolved_at"] is None

    def test_contradictory_update(self, plagiarism, make_user):
        admin = make_user("admin", role=AccessLevel.ADMIN)
        report = ReportService.create_report(_report(plagiarism["id"]))

        with pytest.raises(BusinessRuleError):
            ReportService.update_report(
                report["id"],
                ReportUpdate(status=ReportStatus.REJECTED, is_resolved=True),
                admin["id"],
            )

    def test_delete(self, fake_db, plagiarism):
        report = ReportService.create_report(_report(plagiarism["id"]))

        ReportService.delete_report(report["id"])

        assert fake_db.rows("reports") == []
        with pytest.raises(NotFoundError):
            ReportService.get_report(report["id"])


# =============================================================================
# Routes
# =============================================================================

class TestReportRoutes:

    def test_anonymous_filing(self, client, plagiarism):
        types = client.get(f"{API}/reports/types")
        assert [t["name"] for t in types.json()] == ["Plágio"]

        response = client.post(f"{API}/reports", json={
            "report_type_id": plagiarism["id"],
            "title": "Link quebrado",
            "description": "O link de edição não abre",
            "url": "https://www.canva.com/design/abc",
        })

        assert response.status_code == 201
        assert response.json()["status"] == "pending"

    def test_queue_is_staff_only(self, client, plagiarism, make_user, auth_headers):
        member = make_user("membro")
        support = make_user("suporte", role=AccessLevel.SUPPORT)
        report = ReportService.create_report(_report(plagiarism["id"]), reporter_id=member["id"])

        assert client.get(f"{API}/admin/reports", headers=auth_headers(member)).status_code == 403

        listing = client.get(f"{API}/admin/reports", headers=auth_headers(support))
        assert listing.status_code == 200
        assert listing.json()["reports"][0]["reporter"]["username"] == "membro"

        # Support can read the queue but not answer it
        denied = client.put(
            f"{API}/admin/reports/{report['id']}",
            headers=auth_headers(support),
            json={"status": "resolved"},
        )
        assert denied.status_code == 403

    def test_moderator_answers_and_deletes(self, client, plagiarism, make_user, auth_headers):
        moderator = make_user("moderadora", role=AccessLevel.DESIGNER_ADM)
        report = ReportService.create_report(_report(plagiarism["id"]))

        answered = client.put(
            f"{API}/admin/reports/{report['id']}",
            headers=auth_headers(moderator),
            json={"status": "rejected", "admin_response": "Não é plágio"},
        )
        deleted = client.delete(f"{API}/admin/reports/{report['id']}", headers=auth_headers(moderator))
        missing = client.get(f"{API}/admin/reports/{report['id']}", headers=auth_headers(moderator))

        assert answered.status_code == 200
        assert answered.json()["status"] == "rejected"
        assert deleted.status_code == 204
        assert missing.status_code == 404
