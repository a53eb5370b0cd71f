# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the document, benefit, consent, audit, integration, report and
health services.
"""

import io
import os
import pytest
import requests
from datetime import datetime, timezone
from unittest.mock import MagicMock
from werkzeug.datastructures import FileStorage

from relief_api.middleware.error_handler import (
    NotFoundException,
    PreconditionFailedException,
    ValidationException,
)
from relief_api.models.requests import (
    BenefitQuery,
    ConsentQuery,
    CreateApplicationRequest,
    CreateBenefitRequest,
    CreateConsentRequest,
    DocumentQuery,
    IntegrationLogQuery,
    UpdateBenefitRequest,
    UploadDocumentRequest,
)
from relief_api.services.applications import ApplicationService
from relief_api.services.audit import AuditService
from relief_api.services.benefits import BenefitService
from relief_api.services.consent import ConsentService
from relief_api.services.documents import DocumentService, is_allowed_file
from relief_api.services.health import HealthCheckService
from relief_api.services.integrations import IntegrationEndpoint, IntegrationService
from relief_api.services.reports import ReportService, growth_percentage, month_start

MISSING_ID = "507f1f77bcf86cd799439011"


@pytest.fixture
def applications(mongo, audit_service):
    return ApplicationService(mongo, audit_service)


@pytest.fixture
def application(applications, clerk, sample_application_data):
    return applications.create_application(
        CreateApplicationRequest.model_validate(sample_application_data), clerk
    )


@pytest.fixture
def approved_application(mongo, application):
    mongo.collections["applications"][application["id"]]["status"] = "APPROVED"
    return application


def upload(name, content=b"%PDF-1.4 test", content_type="application/pdf"):
    return FileStorage(stream=io.BytesIO(content), filename=name, content_type=content_type)


class TestDocumentService:
    """Uploads, downloads and verification."""

    @pytest.fixture
    def service(self, mongo, audit_service, tmp_path):
        return DocumentService(mongo, audit_service, str(tmp_path / "uploads"), max_file_size=1024)

    def test_allowed_extensions(self):
        assert is_allowed_file("scan.PDF")
        assert is_allowed_file("photo.jpeg")
        assert not is_allowed_file("script.exe")
        assert not is_allowed_file("noextension")

    def test_upload_stores_file_and_record(self, service, application, clerk):
        request = UploadDocumentRequest(application_id=application["id"], document_type="ID_DOCUMENT")

        document = service.upload_document(upload("my id.pdf"), request, clerk)

        assert document["originalName"] == "my_id.pdf"
        assert document["fileName"].startswith("file-")
        assert document["fileName"].endswith(".pdf")
        assert document["verified"] is False
        assert document["uploadedBy"] == clerk.user_id
        assert os.path.isfile(os.path.join(service.upload_dir, document["fileName"]))

    def test_upload_without_file(self, service, application, clerk):
        request = UploadDocumentRequest(application_id=application["id"], document_type="ID_DOCUMENT")
        with pytest.raises(ValidationException, match="No file uploaded"):
            service.upload_document(None, request, clerk)

    def test_upload_rejects_type(self, service, application, clerk):
        request = UploadDocumentRequest(application_id=application["id"], document_type="ID_DOCUMENT")
        with pytest.raises(ValidationException, match="Invalid file type"):
            service.upload_document(upload("virus.exe"), request, clerk)

    def test_upload_rejects_large_file(self, service, application, clerk):
        request = UploadDocumentRequest(application_id=application["id"], document_type="ID_DOCUMENT")
        with pytest.raises(ValidationException):
            service.upload_document(upload("big.pdf", b"x" * 2048), request, clerk)
        assert not os.path.exists(service.upload_dir) or os.listdir(service.upload_dir) == []

    def test_upload_for_missing_application(self, service, clerk):
        request = UploadDocumentRequest(application_id=MISSING_ID, document_type="ID_DOCUMENT")
        with pytest.raises(NotFoundException):
            service.upload_document(upload("id.pdf"), request, clerk)

    def test_verify_stamps_reviewer(self, service, application, clerk, reviewer):
        request = UploadDocumentRequest(application_id=application["id"], document_type="PROOF_OF_INCOME")
        document = service.upload_document(upload("payslip.pdf"), request, clerk)

        verified = service.verify_document(document["id"], True, reviewer)
        assert verified["verified"] is True
        assert verified["verifiedBy"] == reviewer.user_id
        assert verified["verifiedAt"] is not None

        cleared = service.verify_document(document["id"], False, reviewer)
        assert cleared["verified"] is False
        assert cleared["verifiedBy"] is None

    def test_download_and_delete(self, service, application, clerk, admin):
        request = UploadDocumentRequest(application_id=application["id"], document_type="ID_DOCUMENT")
        document = service.upload_document(upload("id.pdf"), request, clerk)

        record, path = service.resolve_download(document["id"])
        assert record.original_name == "id.pdf"
        with open(path, "rb") as handle:
            assert handle.read() == b"%PDF-1.4 test"

        service.delete_document(document["id"], admin)
        assert not os.path.exists(path)
        with pytest.raises(NotFoundException):
            service.get_document(document["id"])

    def test_download_missing_file(self, service, application, clerk):
        request = UploadDocumentRequest(application_id=application["id"], document_type="ID_DOCUMENT")
        document = service.upload_document(upload("id.pdf"), request, clerk)
        os.remove(os.path.join(service.upload_dir, document["fileName"]))

        with pytest.raises(NotFoundException, match="File not found on disk"):
            service.resolve_download(document["id"])

    def test_list_filters_by_type(self, service, application, clerk):
        for document_type in ("ID_DOCUMENT", "PROOF_OF_INCOME"):
            service.upload_document(
                upload("doc.pdf"),
                UploadDocumentRequest(application_id=application["id"], document_type=document_type),
                clerk
            )

        listed = service.list_documents(DocumentQuery(application_id=application["id"], document_type="ID_DOCUMENT"))
        assert [d["documentType"] for d in listed] == ["ID_DOCUMENT"]


class TestBenefitService:
    """Benefits can only be granted to approved applications."""

    @pytest.fixture
    def service(self, mongo, audit_service):
        return BenefitService(mongo, audit_service)

    def benefit_request(self, application_id, **overrides):
        data = {
            "applicationId": application_id,
            "benefitType": "WATER_REBATE",
            "amount": 250.0,
            "startDate": "2024-07-01T00:00:00Z",
        }
        data.update(overrides)
        return CreateBenefitRequest.model_validate(data)

    def test_grant_to_approved_application(self, service, approved_application, admin):
        benefit = service.create_benefit(self.benefit_request(approved_application["id"]), admin)

        assert benefit["status"] == "ACTIVE"
        assert benefit["amount"] == 250.0

    def test_pending_application_cannot_receive_benefit(self, service, application, admin):
        with pytest.raises(PreconditionFailedException, match="must be approved"):
            service.create_benefit(self.benefit_request(application["id"]), admin)

    def test_missing_application(self, service, admin):
        with pytest.raises(NotFoundException):
            service.create_benefit(self.benefit_request(MISSING_ID), admin)

    def test_amount_must_be_positive(self, approved_application):
        with pytest.raises(ValueError):
            self.benefit_request(approved_application["id"], amount=0)

    def test_end_before_start_rejected(self, approved_application):
        with pytest.raises(ValueError):
            self.benefit_request(approved_application["id"], endDate="2024-06-01T00:00:00Z")

    def test_update_checks_dates_against_stored_start(self, service, approved_application, admin):
        benefit = service.create_benefit(self.benefit_request(approved_application["id"]), admin)

        with pytest.raises(ValidationException) as exc_info:
            service.update_benefit(
                benefit["id"],
                UpdateBenefitRequest.model_validate({"endDate": "2024-01-01T00:00:00Z"}),
                admin
            )
        assert exc_info.value.status_code == 422

    def test_update_and_list_with_summary(self, service, approved_application, admin):
        benefit = service.create_benefit(self.benefit_request(approved_application["id"]), admin)
        service.update_benefit(benefit["id"], UpdateBenefitRequest(status="SUSPENDED"), admin)

        listed = service.list_benefits(BenefitQuery(status="SUSPENDED"))
        assert len(listed) == 1
        assert listed[0]["application"]["applicationNumber"] == approved_application["applicationNumber"]

    def test_delete(self, service, approved_application, admin):
        benefit = service.create_benefit(self.benefit_request(approved_application["id"]), admin)
        service.delete_benefit(benefit["id"], admin)

        with pytest.raises(NotFoundException):
            service.get_benefit(benefit["id"])


class TestConsentService:
    """Consent capture and revocation."""

    @pytest.fixture
    def service(self, mongo, audit_service):
        return ConsentService(mongo, audit_service)

    def consent_request(self, application_id, granted=True):
        return CreateConsentRequest(
            application_id=application_id,
            consent_type="DATA_PROCESSING",
            granted=granted,
            purpose="Means test assessment",
            legal_basis="POPIA section 11(1)(a)"
        )

    def test_granted_consent_is_stamped(self, service, application, clerk):
        record = service.create_consent(self.consent_request(application["id"]), clerk)

        assert record["userId"] == clerk.user_id
        assert record["grantedAt"] is not None
        assert record["revokedAt"] is None

    def test_refused_consent_has_no_grant_time(self, service, application, clerk):
        record = service.create_consent(self.consent_request(application["id"], granted=False), clerk)
        assert record["grantedAt"] is None

    def test_revoke(self, service, application, clerk):
        record = service.create_consent(self.consent_request(application["id"]), clerk)

        revoked = service.revoke_consent(record["id"], clerk)

        assert revoked["granted"] is False
        assert revoked["revokedAt"] is not None
        assert service.list_consents(ConsentQuery(application_id=application["id"]))[0]["granted"] is False

    def test_revoke_missing(self, service, clerk):
        with pytest.raises(NotFoundException):
            service.revoke_consent(MISSING_ID, clerk)


class TestAuditService:
    """Audit entries never fail the audited operation."""

    def test_entry_records_caller(self, mongo, clerk):
        audit = AuditService(mongo)
        audit_id = audit.log_action("APPLICATION_CREATED", "Application", "a1", clerk, application_id="a1")

        entry = mongo.find_by_id("audit_logs", audit_id)
        assert entry["userId"] == clerk.user_id
        assert entry["ipAddress"] == "127.0.0.1"
        assert entry["applicationId"] == "a1"

    def test_storage_failure_is_swallowed(self, clerk):
        failing = MagicMock()
        failing.create.side_effect = RuntimeError("disk full")

        assert AuditService(failing).log_action("X", "Application", "a1", clerk) is None

    def test_disabled_audit_writes_nothing(self, mongo, clerk):
        assert AuditService(mongo, enabled=False).log_action("X", "Application", "a1", clerk) is None
        assert mongo.count("audit_logs") == 0


class TestIntegrationService:
    """External calls are logged with their outcome."""

    def build(self, mongo, audit_service, session=None, url="https://id.example.org"):
        return IntegrationService(
            mongo,
            audit_service,
            id_verification=IntegrationEndpoint(url, "secret-key"),
            municipal=IntegrationEndpoint(),
            session=session or MagicMock()
        )

    def test_unconfigured_endpoint_returns_local_result(self, mongo, audit_service, admin):
        service = IntegrationService(mongo, audit_service)

        result = service.verify_id("8001015009087", admin)

        assert result["valid"] is True
        logs = service.list_logs(IntegrationLogQuery())
        assert logs[0]["integrationType"] == "ID_VERIFICATION"
        assert logs[0]["success"] is True

    def test_remote_call_sends_bearer_key(self, mongo, audit_service, admin):
        session = MagicMock()
        session.post.return_value.status_code = 200
        session.post.return_value.json.return_value = {"valid": True, "details": {"name": "T Mokoena"}}
        service = self.build(mongo, audit_service, session)

        result = service.verify_id("8001015009087", admin)

        assert result == {"valid": True, "details": {"name": "T Mokoena"}}
        _, kwargs = session.post.call_args
        assert session.post.call_args[0][0] == "https://id.example.org/verify-id"
        assert kwargs["headers"]["Authorization"] == "Bearer secret-key"
        assert kwargs["json"] == {"idNumber": "8001015009087"}

    def test_http_error_is_logged_as_failure(self, mongo, audit_service, admin):
        session = MagicMock()
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError(
            "503 Server Error", response=MagicMock(status_code=503)
        )
        service = self.build(mongo, audit_service, session)

        result = service.verify_id("8001015009087", admin)

        assert result["valid"] is False
        log = service.list_logs(IntegrationLogQuery(integration_type="ID_VERIFICATION"))[0]
        assert log["success"] is False
        assert log["statusCode"] == 503

    def test_connection_error(self, mongo, audit_service, admin):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("connection refused")
        service = self.build(mongo, audit_service, session)

        result = service.verify_id("8001015009087", admin)

        assert result["valid"] is False
        assert service.list_logs(IntegrationLogQuery())[0]["statusCode"] == 502

    def test_municipal_sync_requires_application(self, mongo, audit_service, admin, application):
        service = IntegrationService(mongo, audit_service)

        with pytest.raises(NotFoundException):
            service.sync_municipal(MISSING_ID, admin)
        assert service.sync_municipal(application["id"], admin)["synced"] is True


class TestReportService:
    """Counters, distributions and exports."""

    def test_month_start(self):
        moment = datetime(2024, 1, 20, tzinfo=timezone.utc)
        assert month_start(moment) == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert month_start(moment, 1) == datetime(2023, 12, 1, tzinfo=timezone.utc)
        assert month_start(moment, -1) == datetime(2024, 2, 1, tzinfo=timezone.utc)

    def test_growth(self):
        assert growth_percentage(15, 10) == 50.0
        assert growth_percentage(5, 0) == 0.0

    def test_dashboard_counts(self, mongo, application, approved_application):
        mongo.aggregate.return_value = [{"_id": None, "total": 750.0}]
        report = ReportService(mongo).dashboard()

        assert report["applications"]["total"] == 1
        assert report["applications"]["approved"] == 1
        assert report["applications"]["currentMonth"] == 1
        assert report["benefits"]["totalAmount"] == 750.0

    def test_statistics_fill_missing_months(self, mongo):
        now = datetime(2024, 6, 15, tzinfo=timezone.utc)
        mongo.aggregate.side_effect = [
            [{"_id": "APPROVED", "count": 3}, {"_id": "PENDING", "count": 2}],
            [{"_id": "WATER_REBATE", "count": 2, "amount": 500.0}],
            [{"_id": {"year": 2024, "month": 5}, "count": 4}],
        ]

        stats = ReportService(mongo).statistics(now)

        assert stats["statusDistribution"][0] == {"status": "APPROVED", "count": 3}
        assert stats["benefitTypeDistribution"][0]["totalAmount"] == 500.0
        trend = stats["monthlyTrends"]
        assert len(trend) == 12
        assert trend[0] == {"month": "2023-07", "count": 0}
        assert trend[-2] == {"month": "2024-05", "count": 4}
        assert trend[-1] == {"month": "2024-06", "count": 0}

    def test_export_csv(self, mongo, application):
        report = ReportService(mongo)
        exported = report.export_applications()

        assert exported[0]["documents"] == []
        csv_text = report.to_csv(exported)
        header, row = csv_text.strip().splitlines()
        assert header.startswith("applicationNumber,status")
        assert row.startswith(f"{application['applicationNumber']},PENDING")


class TestHealthCheckService:
    """Overall status from dependency health."""

    def test_healthy(self, mongo, redis_service):
        health = HealthCheckService(mongo, redis_service, "1.0.0").get_comprehensive_health()

        assert health["status"] == "healthy"
        assert health["dependencies"]["mongodb"]["status"] == "healthy"
        assert "cpu_percent" in health["system_metrics"]

    def test_redis_missing_degrades(self, mongo):
        health = HealthCheckService(mongo, None, "1.0.0").get_comprehensive_health()
        assert health["status"] == "degraded"

    def test_mongodb_down_is_unhealthy(self, mongo, redis_service):
        mongo.healthy = False
        health = HealthCheckService(mongo, redis_service, "1.0.0").get_comprehensive_health()
        assert health["status"] == "unhealthy"
