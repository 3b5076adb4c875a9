"""
认证 API 单元测试
覆盖 /auth 与 /hotels 端点
"""
from datetime import timedelta

from fastapi.testclient import TestClient
from jose import jwt

from hotelops.config import settings
from hotelops.models.ontology import utcnow


class TestAuthLogin:
    """登录接口测试"""

    def test_login_success(self, client: TestClient, manager):
        response = client.post("/auth/login", json={
            "email": "manager@seaside.test",
            "password": "123456"
        })

        assert response.status_code == 200
        data = response.json()
        assert "access_token" in data
        assert data["user"]["role"] == "manager"
        assert data["user"]["hotel_name"] == "Seaside Inn"

    def test_login_wrong_password(self, client: TestClient, manager):
        response = client.post("/auth/login", json={
            "email": "manager@seaside.test",
            "password": "wrong_password"
        })
        assert response.status_code == 401

    def test_signup_then_me(self, client: TestClient):
        response = client.post("/auth/signup", json={
            "hotel_name": "Harbor Hotel",
            "name": "Hana",
            "email": "hana@harbor.test",
            "password": "secret1"
        })
        assert response.status_code == 201
        token = response.json()["access_token"]

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["hotel_name"] == "Harbor Hotel"

    def test_signup_short_password(self, client: TestClient):
        response = client.post("/auth/signup", json={
            "hotel_name": "H", "name": "N", "email": "n@h.test", "password": "123"
        })
        assert response.status_code == 422

    def test_update_profile(self, client: TestClient, receptionist_auth_headers):
        response = client.put("/auth/me", json={"name": "Rita R."}, headers=receptionist_auth_headers)
        assert response.status_code == 200
        assert response.json()["name"] == "Rita R."

    def test_missing_token(self, client: TestClient):
        assert client.get("/auth/me").status_code in (401, 403)

    def test_guest_token_rejected_for_staff_routes(self, client: TestClient, guest_headers):
        assert client.get("/rooms", headers=guest_headers).status_code == 401


class TestGuestLogin:
    """客人访问码登录"""

    def test_short_code_is_padded(self, client: TestClient, guest):
        response = client.post("/auth/guest-login", json={"code": "42"})

        assert response.status_code == 200
        data = response.json()
        assert data["guest_id"] == guest.id
        assert data["guest_code"] == "000042"

        payload = jwt.decode(data["access_token"], settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        assert payload["typ"] == "guest"

    def test_unknown_code(self, client: TestClient, guest):
        assert client.post("/auth/guest-login", json={"code": "000777"}).status_code == 404

    def test_malformed_code(self, client: TestClient, guest):
        assert client.post("/auth/guest-login", json={"code": "12ab"}).status_code == 400
        assert client.post("/auth/guest-login", json={"code": "1234567"}).status_code == 400

    def test_expired_guest_token(self, client: TestClient, guest):
        token = jwt.encode(
            {"sub": str(guest.id), "typ": "guest", "exp": utcnow() - timedelta(minutes=1)},
            settings.SECRET_KEY, algorithm=settings.ALGORITHM
        )
        response = client.get("/portal/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestHotelSettings:

    def test_get_hotel(self, client: TestClient, receptionist_auth_headers):
        response = client.get("/hotels/me", headers=receptionist_auth_headers)
        assert response.status_code == 200
        assert response.json()["name"] == "Seaside Inn"

    def test_update_requires_manager(self, client: TestClient, receptionist_auth_headers):
        response = client.put("/hotels/me", json={"phone": "1"}, headers=receptionist_auth_headers)
        assert response.status_code == 403

    def test_manager_updates_hotel(self, client: TestClient, manager_auth_headers):
        response = client.put("/hotels/me", json={"address": "2 Beach Road"}, headers=manager_auth_headers)
        assert response.status_code == 200
        assert response.json()["address"] == "2 Beach Road"

    def test_manager_adds_cleaner(self, client: TestClient, manager_auth_headers):
        response = client.post("/hotels/me/staff", json={
            "name": "Nina", "email": "nina@seaside.test", "password": "secret1", "role": "cleaner"
        }, headers=manager_auth_headers)
        assert response.status_code == 201
        assert response.json()["role"] == "cleaner"

        staff = client.get("/hotels/me/staff", headers=manager_auth_headers).json()
        assert [u["email"] for u in staff] == ["manager@seaside.test", "nina@seaside.test"]
