"""
Integration tests for staff sign-in and the public waiting-room endpoints.
"""

from services.wait_time_service import PublicStatusService
from tests.helpers import add_visit, auth_headers


class TestStaffLogin:
    """Email/password sign-in."""

    def test_login_success(self, client, staff_user):
        response = client.post("/api/auth/login", json={"email": " Reception@Example.com ", "password": "correct-horse"})

        assert response.status_code == 200
        data = response.json()
        assert data["displayName"] == "受付スタッフ"
        assert data["tokenType"] == "Bearer"

        response = client.get("/api/auth/verify", headers=auth_headers(data["accessToken"]))
        assert response.status_code == 200
        assert response.json() == {"email": "reception@example.com", "displayName": "受付スタッフ"}

    def test_wrong_password(self, client, staff_user):
        response = client.post("/api/auth/login", json={"email": "reception@example.com", "password": "nope"})

        assert response.status_code == 401
        assert response.json()["detail"] == "メールアドレスまたはパスワードが正しくありません"

    def test_unknown_email(self, client, staff_user):
        response = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "correct-horse"})
        assert response.status_code == 401

    def test_inactive_account(self, client, db_session, staff_user):
        staff_user.is_active = False
        db_session.commit()

        response = client.post("/api/auth/login", json={"email": "reception@example.com", "password": "correct-horse"})
        assert response.status_code == 401

    def test_verify_without_token(self, client):
        assert client.get("/api/auth/verify").status_code == 401


class TestPublicEndpoints:
    """Unauthenticated waiting-room display."""

    def test_status_before_first_recompute(self, client):
        response = client.get("/api/public/status")

        assert response.status_code == 200
        data = response.json()
        assert data["activeCount"] == 0
        assert data["estimatedWaitMinutes"] == 0
        assert data["waitLabel"] == "待ち時間なし"
        assert data["updatedAt"] is None

    def test_status_after_recompute(self, client, db_session):
        add_visit(db_session, "1")
        add_visit(db_session, "2")
        PublicStatusService.recompute(db_session)

        data = client.get("/api/public/status").json()

        assert data["activeCount"] == 2
        assert data["estimatedWaitMinutes"] == 30
        assert data["waitLabel"] == "約30分待ち"
        assert data["updatedAt"] is not None

    def test_congestion(self, client, db_session):
        assert client.get("/api/public/congestion").json() == {"count": 0}

        add_visit(db_session, "1")
        PublicStatusService.recompute(db_session)

        assert client.get("/api/public/congestion").json() == {"count": 1}

    def test_no_individual_visits_exposed(self, client, db_session):
        add_visit(db_session, "1001", name="山田 太郎")
        PublicStatusService.recompute(db_session)

        body = client.get("/api/public/status").text
        assert "1001" not in body
        assert "山田" not in body
