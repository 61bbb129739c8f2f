"""HTTP surface through FastAPI's TestClient with the database and blob store overridden."""
import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from container_check.database import get_db
from container_check.main import app
from container_check.models import InspectorName
from container_check.routers.auth_router import create_jwt_token
from container_check.services.blob_store import get_blob_store

from conftest import png_bytes


@pytest.fixture
def client(engine, store, users):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(session):
    token = create_jwt_token({"user_id": session.user_id, "name": session.name, "role": session.role.value})
    return {"Authorization": f"Bearer {token}"}


def photo_files(n):
    return [("photos", (f"p{i}.png", png_bytes(), "image/png")) for i in range(n)]


def inspection_payload(checklist_ids, container_no="TCLU1234567", seal_no="SL-0001"):
    return {
        "container": {
            "container_no": container_no,
            "company_name": "PT Samudera",
            "seal_no": seal_no,
            "plate_no": "B 1234 XYZ",
            "inspection_date": "2026-10-17T08:00:00",
        },
        "inspector_name": "Budi",
        "checklist": {str(i): {"checked": True} for i in checklist_ids},
    }


def create_via_api(client, users, checklist_ids, **kwargs):
    return client.post(
        "/api/security/inspections",
        data={"payload": json.dumps(inspection_payload(checklist_ids, **kwargs))},
        files=photo_files(2),
        headers=auth(users["security"]),
    )


class TestAuth:
    def test_login_success(self, client):
        resp = client.post("/api/auth/login", json={"email": "sekar@example.com", "password": "secret123"})
        body = resp.json()
        assert resp.status_code == 200
        assert body["success"] is True
        assert body["data"]["user"]["role"] == "SECURITY"
        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['data']['token']}"})
        assert me.json()["data"]["name"] == "Sekar"

    def test_wrong_password(self, client):
        resp = client.post("/api/auth/login", json={"email": "sekar@example.com", "password": "nope"})
        assert resp.status_code == 401
        assert resp.json()["success"] is False

    def test_missing_token(self, client):
        resp = client.get("/api/checklist")
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "message": "Not authenticated", "data": {}}


class TestSecurityRoutes:
    def test_checklist_template(self, client, users):
        body = client.get("/api/checklist", headers=auth(users["security"])).json()
        assert len(body["data"]["checklist"]) == 8
        assert body["data"]["vehicle"] == []

    def test_inspector_names_by_role(self, client, engine, users):
        db = sessionmaker(bind=engine)()
        db.add_all([
            InspectorName(name="Joko", role="SECURITY"),
            InspectorName(name="Agus", role="SECURITY"),
            InspectorName(name="Old", role="SECURITY", is_active=False),
            InspectorName(name="Citra", role="CHECKER"),
        ])
        db.commit()
        db.close()
        resp = client.get("/api/checklist/inspector-names?role=SECURITY", headers=auth(users["security"]))
        assert [n["name"] for n in resp.json()["data"]] == ["Agus", "Joko"]

    def test_create_and_fetch(self, client, users, checklist_ids):
        resp = create_via_api(client, users, checklist_ids)
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["state"] == "PendingChecker"
        assert len(data["photos"]) == 2

        detail = client.get(f"/api/security/inspections/{data['security_check_id']}", headers=auth(users["security"]))
        assert detail.json()["data"]["container_no"] == "TCLU1234567"

        mine = client.get("/api/security/inspections", headers=auth(users["security"])).json()["data"]
        assert [m["container_no"] for m in mine] == ["TCLU1234567"]

    def test_domain_errors_use_envelope(self, client, users, checklist_ids):
        create_via_api(client, users, checklist_ids)
        resp = create_via_api(client, users, checklist_ids, seal_no="SL-0002")
        assert resp.status_code == 409
        body = resp.json()
        assert body["success"] is False
        assert body["data"] == {"kind": "DuplicateContainer", "container_no": "TCLU1234567"}

    def test_bad_payload_is_422(self, client, users):
        resp = client.post(
            "/api/security/inspections",
            data={"payload": "{not json"},
            files=photo_files(1),
            headers=auth(users["security"]),
        )
        assert resp.status_code == 422
        assert resp.json()["success"] is False

    def test_update_records_history(self, client, users, checklist_ids):
        sc_id = create_via_api(client, users, checklist_ids).json()["data"]["security_check_id"]
        payload = {"checklist": {str(checklist_ids[0]): {"checked": False, "notes": "rust"}}, "remarks": "recheck"}
        resp = client.put(
            f"/api/security/inspections/{sc_id}",
            data={"payload": json.dumps(payload)},
            headers=auth(users["security"]),
        )
        assert resp.status_code == 200

        detail = client.get(f"/api/security/inspections/{sc_id}", headers=auth(users["security"])).json()["data"]
        item = next(
            i for c in detail["security_check"]["checklist"] for i in c["items"] if i["item_id"] == checklist_ids[0]
        )
        assert item["checked"] is False
        assert len(item["history"]) == 1
        assert detail["security_check"]["remarks"] == "recheck"

    def test_checker_cannot_create(self, client, users, checklist_ids):
        resp = client.post(
            "/api/security/inspections",
            data={"payload": json.dumps(inspection_payload(checklist_ids))},
            files=photo_files(1),
            headers=auth(users["checker"]),
        )
        assert resp.status_code == 403
        assert resp.json()["data"]["kind"] == "Unauthorized"


class TestCheckerRoutes:
    def test_pending_then_check(self, client, users, checklist_ids):
        container_id = create_via_api(client, users, checklist_ids).json()["data"]["container_id"]

        pending = client.get("/api/checker/containers", headers=auth(users["checker"])).json()["data"]
        assert [p["id"] for p in pending] == [container_id]

        resp = client.post(
            f"/api/checker/containers/{container_id}/check",
            data={"payload": json.dumps({"utc_no": "UTC-001", "inspector_name": "Citra"})},
            files=photo_files(1),
            headers=auth(users["checker"]),
        )
        assert resp.status_code == 201
        checker_data_id = resp.json()["data"]["checker_data_id"]

        again = client.post(
            f"/api/checker/containers/{container_id}/check",
            data={"payload": json.dumps({"utc_no": "UTC-002", "inspector_name": "Citra"})},
            files=photo_files(1),
            headers=auth(users["checker"]),
        )
        assert again.status_code == 409
        assert again.json()["data"]["kind"] == "AlreadyChecked"

        deleted = client.delete(f"/api/checker/checks/{checker_data_id}", headers=auth(users["checker"]))
        assert deleted.json()["data"] == {"container_id": container_id}


class TestAdminRoutes:
    def test_dashboard_and_export(self, client, users, checklist_ids):
        create_via_api(client, users, checklist_ids)
        stats = client.get("/api/admin/dashboard", headers=auth(users["admin"])).json()["data"]
        assert stats["total_containers"] == 1

        resp = client.get("/api/admin/reports/export?format=csv", headers=auth(users["admin"]))
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert "attachment" in resp.headers["content-disposition"]
        assert resp.content.decode().splitlines()[1].startswith("TCLU1234567,")

    def test_reports_filter_by_state(self, client, users, checklist_ids):
        create_via_api(client, users, checklist_ids)
        done = client.get("/api/admin/reports?state=Complete", headers=auth(users["admin"])).json()["data"]
        waiting = client.get("/api/admin/reports?state=PendingChecker", headers=auth(users["admin"])).json()["data"]
        assert done == []
        assert len(waiting) == 1

    def test_admin_delete_container(self, client, users, checklist_ids):
        container_id = create_via_api(client, users, checklist_ids).json()["data"]["container_id"]
        resp = client.delete(f"/api/admin/containers/{container_id}", headers=auth(users["admin"]))
        assert resp.json()["data"] == {"container_id": container_id, "photo_count": 2, "blobs_removed": True}
        missing = client.get(f"/api/admin/containers/{container_id}", headers=auth(users["admin"]))
        assert missing.status_code == 404

    def test_non_admin_rejected(self, client, users):
        assert client.get("/api/admin/dashboard", headers=auth(users["checker"])).status_code == 403


class TestUserRoutes:
    def test_create_validation(self, client, users):
        headers = auth(users["admin"])
        short = client.post("/api/users", json={
            "name": "Eko", "email": "eko@example.com", "role": "CHECKER", "password": "123", "confirm_password": "123",
        }, headers=headers)
        assert short.status_code == 422
        mismatch = client.post("/api/users", json={
            "name": "Eko", "email": "eko@example.com", "role": "CHECKER",
            "password": "123456", "confirm_password": "1234567",
        }, headers=headers)
        assert mismatch.json()["data"]["field"] == "confirm_password"
        dup = client.post("/api/users", json={
            "name": "Eko", "email": "sekar@example.com", "role": "CHECKER",
            "password": "123456", "confirm_password": "123456",
        }, headers=headers)
        assert dup.status_code == 409
        ok = client.post("/api/users", json={
            "name": "Eko", "email": "eko@example.com", "role": "CHECKER",
            "password": "123456", "confirm_password": "123456",
        }, headers=headers)
        assert ok.status_code == 201
        assert ok.json()["data"]["role"] == "CHECKER"

    def test_user_changes_refresh_dashboard(self, client, users):
        headers = auth(users["admin"])
        assert client.get("/api/admin/dashboard", headers=headers).json()["data"]["total_users"] == 5
        created = client.post("/api/users", json={
            "name": "Eko", "email": "eko@example.com", "role": "CHECKER",
            "password": "123456", "confirm_password": "123456",
        }, headers=headers).json()["data"]
        assert client.get("/api/admin/dashboard", headers=headers).json()["data"]["total_users"] == 6
        client.delete(f"/api/users/{created['id']}", headers=headers)
        assert client.get("/api/admin/dashboard", headers=headers).json()["data"]["total_users"] == 5

    def test_cannot_delete_self(self, client, users):
        resp = client.delete(f"/api/users/{users['admin'].user_id}", headers=auth(users["admin"]))
        assert resp.status_code == 422

    def test_referenced_user_cannot_be_deleted(self, client, users, checklist_ids):
        create_via_api(client, users, checklist_ids)
        resp = client.delete(f"/api/users/{users['security'].user_id}", headers=auth(users["admin"]))
        assert resp.status_code == 409
        assert resp.json()["data"]["kind"] == "ForeignKeyConstraint"

        free = client.delete(f"/api/users/{users['checker2'].user_id}", headers=auth(users["admin"]))
        assert free.status_code == 200


class TestMeta:
    def test_health_and_openapi(self, client):
        assert client.get("/health").json() == {"status": "healthy"}
        schema = client.get("/openapi.json").json()
        assert schema["components"]["securitySchemes"]["BearerAuth"]["scheme"] == "bearer"
