import os
import unittest
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.auth import create_admin_session, read_admin_session
from app.core.config import get_settings
from app.core.dependencies import get_db
from app.main import app
from app.models.water_service_request import Base, WaterServiceRequest

ADMIN_ENV = {
    "ADMIN_USERNAME": "clerk",
    "ADMIN_PASSWORD": "correct-horse-battery",
    "SESSION_SECRET": "test-session-secret-that-is-long-enough-0123",
}


class AdminApiTests(unittest.TestCase):
    def setUp(self):
        self.env = patch.dict(os.environ, ADMIN_ENV)
        self.env.start()
        get_settings.cache_clear()

        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()
        app.dependency_overrides.clear()
        Base.metadata.drop_all(self.engine)
        self.engine.dispose()
        self.env.stop()
        get_settings.cache_clear()

    def _login(self):
        resp = self.client.post(
            "/api/v1/admin/login",
            json={"username": "clerk", "password": "correct-horse-battery"},
        )
        self.assertEqual(resp.status_code, 200)
        return resp.json()["token"]

    def _bearer(self):
        _, token = create_admin_session("clerk")
        return {"Authorization": f"Bearer {token}"}

    def _create_request(self, *, status="new", created_at=None, updated_at=None, name="Jane Doe", **columns):
        now = datetime.now(timezone.utc)
        db = self.SessionLocal()
        row = WaterServiceRequest(
            status=status,
            created_at=created_at or now,
            updated_at=updated_at or now,
            applicant_name=name,
            applicant_email="jane@example.com",
            applicant_phone="5551234567",
            applicant_ssn_last4="6789",
            service_address="123 Main St",
            property_use_type="owner_occupied",
            service_territory="inside_city_limits",
            deposit_amount_required=Decimal("175.00"),
            metadata_json={"submission_source": "web_form"},
            **columns,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        request_id = str(row.id)
        db.close()
        return request_id

    # ─── Session ──────────────────────────────────────

    def test_login_sets_http_only_cookie(self):
        resp = self.client.post(
            "/api/v1/admin/login",
            json={"username": "clerk", "password": "correct-horse-battery", "redirect_to": "/admin/requests"},
        )

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["username"], "clerk")
        self.assertEqual(body["redirect_to"], "/admin/requests")
        cookie_header = resp.headers.get("set-cookie", "")
        self.assertIn("admin_session=", cookie_header)
        self.assertIn("HttpOnly", cookie_header)
        self.assertIsNotNone(read_admin_session(body["token"]))

    def test_login_rejects_wrong_password(self):
        resp = self.client.post("/api/v1/admin/login", json={"username": "clerk", "password": "nope"})
        self.assertEqual(resp.status_code, 401)

    def test_login_requires_both_fields(self):
        resp = self.client.post("/api/v1/admin/login", json={"username": "clerk", "password": ""})
        self.assertEqual(resp.status_code, 400)

    def test_external_redirect_is_replaced(self):
        resp = self.client.post(
            "/api/v1/admin/login",
            json={"username": "clerk", "password": "correct-horse-battery", "redirect_to": "https://evil.example"},
        )
        self.assertEqual(resp.json()["redirect_to"], "/admin")

    def test_cookie_session_reaches_admin_routes(self):
        self._login()
        resp = self.client.get("/api/v1/admin/session")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["username"], "clerk")

    def test_admin_routes_require_session(self):
        request_id = str(uuid.uuid4())
        for method, url in [
            ("get", "/api/v1/admin/session"),
            ("get", "/api/v1/admin/requests"),
            ("get", f"/api/v1/admin/requests/{request_id}"),
            ("patch", f"/api/v1/admin/requests/{request_id}/status"),
            ("delete", f"/api/v1/admin/requests/{request_id}"),
            ("get", "/api/v1/admin/stats"),
            ("post", "/api/v1/admin/logout"),
        ]:
            resp = getattr(self.client, method)(url)
            self.assertEqual(resp.status_code, 401, url)

    def test_forged_token_is_rejected(self):
        resp = self.client.get("/api/v1/admin/session", headers={"Authorization": "Bearer not-a-token"})
        self.assertEqual(resp.status_code, 401)

    def test_expired_token_is_rejected(self):
        _, token = create_admin_session("clerk", now=datetime.now(timezone.utc) - timedelta(days=3))
        resp = self.client.get("/api/v1/admin/session", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(resp.status_code, 401)

    def test_logout_revokes_session(self):
        token = self._login()
        headers = {"Authorization": f"Bearer {token}"}

        resp = self.client.post("/api/v1/admin/logout", headers=headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True})

        resp = self.client.get("/api/v1/admin/session", headers=headers)
        self.assertEqual(resp.status_code, 401)

    def test_admin_responses_are_not_cached(self):
        resp = self.client.get("/api/v1/admin/session", headers=self._bearer())
        self.assertEqual(resp.headers.get("cache-control"), "no-store")

    # ─── Requests ─────────────────────────────────────

    def test_list_is_newest_first_and_limited(self):
        base = datetime(2026, 5, 1, tzinfo=timezone.utc)
        for i in range(3):
            self._create_request(created_at=base + timedelta(days=i), name=f"Applicant {i}")

        resp = self.client.get("/api/v1/admin/requests", params={"limit": 2}, headers=self._bearer())

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["limit"], 2)
        self.assertEqual([item["applicant_name"] for item in body["items"]], ["Applicant 2", "Applicant 1"])

    def test_list_limit_is_capped(self):
        resp = self.client.get("/api/v1/admin/requests", params={"limit": 500}, headers=self._bearer())
        self.assertEqual(resp.json()["limit"], 50)

    def test_list_filters_by_status(self):
        self._create_request(status="new")
        self._create_request(status="active", name="Active Applicant")

        resp = self.client.get("/api/v1/admin/requests", params={"status": "active"}, headers=self._bearer())

        names = [item["applicant_name"] for item in resp.json()["items"]]
        self.assertEqual(names, ["Active Applicant"])

    def test_detail_masks_ssn(self):
        signed_at = datetime(2026, 5, 4, 15, 30, tzinfo=timezone.utc)
        request_id = self._create_request(
            applicant_ip_address="203.0.113.9",
            applicant_user_agent="Mozilla/5.0",
            has_co_applicant=True,
            co_applicant_name="John Doe",
            co_applicant_alternate_phone="5552223333",
            co_applicant_work_phone="5554445555",
            co_applicant_drivers_license_number="12345678",
            co_applicant_drivers_license_state="TX",
            co_applicant_date_of_birth=date(1985, 2, 3),
            co_applicant_ssn_last4="4321",
            co_applicant_signature_text="John Doe",
            co_applicant_signature_timestamp=signed_at,
            deed_document_path="deeds/1700000000000-deed.pdf",
            deed_document_uploaded_at=signed_at,
            acknowledged_service_terms=True,
            acknowledged_service_terms_timestamp=signed_at,
        )
        resp = self.client.get(f"/api/v1/admin/requests/{request_id}", headers=self._bearer())

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["applicant_ssn_masked"], "***-**-6789")
        self.assertEqual(body["co_applicant_ssn_masked"], "***-**-4321")
        self.assertNotIn("applicant_ssn_last4", body)
        self.assertNotIn("co_applicant_ssn_last4", body)
        self.assertEqual(body["metadata"], {"submission_source": "web_form"})

        self.assertEqual(body["applicant_ip_address"], "203.0.113.9")
        self.assertEqual(body["applicant_user_agent"], "Mozilla/5.0")
        self.assertEqual(body["co_applicant_alternate_phone"], "5552223333")
        self.assertEqual(body["co_applicant_work_phone"], "5554445555")
        self.assertEqual(body["co_applicant_drivers_license_number"], "12345678")
        self.assertEqual(body["co_applicant_drivers_license_state"], "TX")
        self.assertEqual(body["co_applicant_date_of_birth"], "1985-02-03")
        self.assertEqual(body["co_applicant_signature_text"], "John Doe")
        self.assertTrue(body["co_applicant_signature_timestamp"].startswith("2026-05-04T15:30"))
        self.assertTrue(body["deed_document_uploaded_at"].startswith("2026-05-04T15:30"))
        self.assertIsNone(body["lease_document_uploaded_at"])
        self.assertTrue(body["acknowledged_service_terms_timestamp"].startswith("2026-05-04T15:30"))
        self.assertFalse(body["landlord_verified"])
        self.assertFalse(body["deposit_paid"])
        self.assertIsNone(body["staff_notes"])

    def test_detail_not_found(self):
        for request_id in (str(uuid.uuid4()), "not-a-uuid"):
            resp = self.client.get(f"/api/v1/admin/requests/{request_id}", headers=self._bearer())
            self.assertEqual(resp.status_code, 404)

    def test_status_update_any_to_any(self):
        request_id = self._create_request(status="cancelled")

        for status in ("active", "new", "pending_documents"):
            resp = self.client.patch(
                f"/api/v1/admin/requests/{request_id}/status",
                json={"status": status},
                headers=self._bearer(),
            )
            self.assertEqual(resp.status_code, 200)
            self.assertEqual(resp.json()["status"], status)

        db = self.SessionLocal()
        row = db.get(WaterServiceRequest, uuid.UUID(request_id))
        self.assertEqual(row.status, "pending_documents")
        db.close()

    def test_status_update_rejects_unknown_status(self):
        request_id = self._create_request()
        resp = self.client.patch(
            f"/api/v1/admin/requests/{request_id}/status",
            json={"status": "archived"},
            headers=self._bearer(),
        )
        self.assertEqual(resp.status_code, 422)

    def test_status_update_not_found(self):
        resp = self.client.patch(
            f"/api/v1/admin/requests/{uuid.uuid4()}/status",
            json={"status": "active"},
            headers=self._bearer(),
        )
        self.assertEqual(resp.status_code, 404)

    def test_delete_request(self):
        request_id = self._create_request()

        resp = self.client.delete(f"/api/v1/admin/requests/{request_id}", headers=self._bearer())
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True, "id": request_id})

        resp = self.client.delete(f"/api/v1/admin/requests/{request_id}", headers=self._bearer())
        self.assertEqual(resp.status_code, 404)

    def test_dashboard_stats(self):
        now = datetime.now(timezone.utc)
        self._create_request(status="new")
        self._create_request(status="new")
        self._create_request(status="pending_documents")
        self._create_request(status="pending_credit_check")
        self._create_request(status="pending_deposit")
        self._create_request(status="active")
        self._create_request(status="completed", updated_at=now)
        self._create_request(status="completed", updated_at=now - timedelta(days=62))
        self._create_request(status="cancelled")

        resp = self.client.get("/api/v1/admin/stats", headers=self._bearer())

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(
            resp.json(),
            {
                "total_requests": 9,
                "new_requests": 2,
                "pending_verification": 2,
                "pending_deposits": 1,
                "scheduled_activations": 0,
                "active_accounts": 1,
                "completed_this_month": 1,
                "cancelled": 1,
            },
        )
