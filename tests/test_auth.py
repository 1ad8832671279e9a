"""
Tests for staff authentication and account management
"""

import asyncio

import pytest

from app.auth.auth_handler import auth_handler
from app.services.user_service import UserService

PASSWORD = "TestPass123!"


def signup(client, username="staffuser", email="staff@example.com", **extra):
    user_data = {
        "username": username,
        "email": email,
        "password": PASSWORD,
        "confirm_password": PASSWORD,
        "first_name": "Staff",
        "last_name": "Member",
    }
    user_data.update(extra)
    return client.post("/api/v1/auth/signup", json=user_data)


def login(client, username_or_email="staffuser", password=PASSWORD):
    return client.post("/api/v1/auth/login", json={"username_or_email": username_or_email, "password": password})


@pytest.fixture
def headers(client):
    assert signup(client).status_code == 201
    token = login(client).json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


class TestSignup:

    def test_signup_success(self, client):
        response = signup(client, username="NewStaff")
        assert response.status_code == 201

        data = response.json()
        assert data["username"] == "newstaff"
        assert data["email"] == "staff@example.com"
        assert data["role"] == "user"
        assert data["is_active"] is True
        assert data["is_verified"] is False
        assert "hashed_password" not in data

    def test_duplicate_username(self, client):
        assert signup(client).status_code == 201
        response = signup(client, email="other@example.com")
        assert response.status_code == 409
        assert "Username already registered" in response.json()["error"]

    def test_duplicate_email(self, client):
        assert signup(client).status_code == 201
        response = signup(client, username="otheruser")
        assert response.status_code == 409
        assert "Email already registered" in response.json()["error"]

    def test_weak_password(self, client):
        response = signup(client, password="weak", confirm_password="weak")
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_password_mismatch(self, client):
        response = signup(client, confirm_password="Different123!")
        assert response.status_code == 400
        assert "Passwords do not match" in response.json()["error"]

    def test_requested_role_is_ignored(self, client):
        response = signup(client, role="admin")
        assert response.status_code == 201
        assert response.json()["role"] == "user"

        token = login(client).json()["access_token"]
        response = client.get("/api/v1/admin/enrollments", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 403

    def test_verification_email_is_queued(self, client, mailer):
        assert signup(client).status_code == 201
        assert len(mailer.delivered) == 1
        message = mailer.delivered[0]
        assert message["To"] == "staff@example.com"
        assert "https://enroll.example.com/verify-email/" in message.get_content()


class TestLogin:

    def test_login_with_username(self, client, headers):
        response = login(client)
        assert response.status_code == 200

        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["refresh_token"]
        assert data["expires_in"] == 30 * 60
        assert data["user"]["username"] == "staffuser"

    def test_login_with_email(self, client, headers):
        response = login(client, "staff@example.com")
        assert response.status_code == 200
        assert response.json()["user"]["email"] == "staff@example.com"

    def test_wrong_password(self, client, headers):
        response = login(client, password="WrongPass123!")
        assert response.status_code == 401
        assert "Invalid username/email or password" in response.json()["detail"]

    def test_nonexistent_user(self, client):
        response = login(client, "nobody")
        assert response.status_code == 401


class TestAuthenticatedEndpoints:

    def test_get_current_user(self, client, headers):
        response = client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 200
        assert response.json()["username"] == "staffuser"

    def test_update_current_user(self, client, headers):
        response = client.put("/api/v1/auth/me", headers=headers, json={
            "first_name": "updated",
            "phone_number": "+1234567890",
        })
        assert response.status_code == 200
        assert response.json()["first_name"] == "Updated"
        assert response.json()["phone_number"] == "+1234567890"

    def test_change_password(self, client, headers):
        response = client.post("/api/v1/auth/change-password", headers=headers, json={
            "current_password": PASSWORD,
            "new_password": "NewPass123!",
            "confirm_new_password": "NewPass123!",
        })
        assert response.status_code == 200
        assert login(client, password="NewPass123!").status_code == 200

    def test_change_password_wrong_current(self, client, headers):
        response = client.post("/api/v1/auth/change-password", headers=headers, json={
            "current_password": "WrongPass123!",
            "new_password": "NewPass123!",
            "confirm_new_password": "NewPass123!",
        })
        assert response.status_code == 400
        assert "Current password is incorrect" in response.json()["error"]

    def test_logout(self, client, headers):
        response = client.post("/api/v1/auth/logout", headers=headers)
        assert response.status_code == 200

    def test_missing_token(self, client):
        response = client.get("/api/v1/auth/me")
        assert response.status_code in (401, 403)

    def test_invalid_token(self, client):
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer invalid_token"})
        assert response.status_code == 401


class TestAdminUserManagement:

    def test_list_requires_admin(self, client, headers):
        response = client.get("/api/v1/auth/users", headers=headers)
        assert response.status_code == 403

    def test_list_and_search(self, client, admin_headers):
        signup(client)
        moderator_id = signup(client, username="moduser", email="mod@example.com").json()["id"]
        response = client.put(f"/api/v1/auth/users/{moderator_id}/role", json={"role": "moderator"},
                              headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["role"] == "moderator"

        response = client.get("/api/v1/auth/users", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["total"] == 2

        response = client.get("/api/v1/auth/users", params={"role": "moderator"}, headers=admin_headers)
        assert [u["username"] for u in response.json()["users"]] == ["moduser"]

        response = client.get("/api/v1/auth/users/search", params={"q": "mod"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["total"] == 1

        response = client.get("/api/v1/auth/users/search", params={"q": "m"}, headers=admin_headers)
        assert response.status_code == 400

    def test_deactivated_user_cannot_login(self, client):
        user_id = signup(client).json()["id"]
        admin_token = auth_handler.create_access_token({"sub": "999", "username": "root", "role": "admin"})
        admin = {"Authorization": f"Bearer {admin_token}"}

        assert client.post(f"/api/v1/auth/users/{user_id}/deactivate", headers=admin).status_code == 200
        response = login(client)
        assert response.status_code == 401
        assert response.json()["detail"] == "Account is deactivated"

        assert client.post(f"/api/v1/auth/users/{user_id}/activate", headers=admin).status_code == 200
        assert login(client).status_code == 200

    def test_admin_cannot_deactivate_self(self, client):
        user_id = signup(client).json()["id"]
        token = auth_handler.create_access_token({"sub": str(user_id), "username": "staffuser", "role": "admin"})

        response = client.post(f"/api/v1/auth/users/{user_id}/deactivate",
                               headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 400

    def test_unknown_user(self, client, admin_headers):
        response = client.post("/api/v1/auth/users/12345/activate", headers=admin_headers)
        assert response.status_code == 404

    def test_role_change(self, client, admin_headers, headers):
        other_id = signup(client, username="another", email="another@example.com").json()["id"]

        response = client.put(f"/api/v1/auth/users/{other_id}/role", json={"role": "superuser"},
                              headers=admin_headers)
        assert response.status_code == 400

        response = client.put(f"/api/v1/auth/users/{other_id}/role", json={"role": "admin"}, headers=headers)
        assert response.status_code == 403

        response = client.put(f"/api/v1/auth/users/{other_id}/role", json={"role": "admin"},
                              headers=admin_headers)
        assert response.status_code == 200
        token = login(client, "another").json()["access_token"]
        response = client.get("/api/v1/admin/enrollments", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200

    def test_admin_cannot_change_own_role(self, client, admin_headers):
        user_id = signup(client).json()["id"]
        assert user_id == 1
        response = client.put(f"/api/v1/auth/users/{user_id}/role", json={"role": "user"}, headers=admin_headers)
        assert response.status_code == 400


def link_token(message, action):
    """Token at the end of the emailed account link"""
    prefix = f"https://enroll.example.com/{action}/"
    line = next(line for line in message.get_content().splitlines() if line.startswith(prefix))
    return line[len(prefix):]


class TestRefreshToken:

    def test_refresh_issues_new_pair(self, client, headers):
        refresh = login(client).json()["refresh_token"]
        response = client.post("/api/v1/auth/refresh-token", json={"refresh_token": refresh})
        assert response.status_code == 200

        access = response.json()["access_token"]
        response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {access}"})
        assert response.status_code == 200

    def test_tokens_are_not_interchangeable(self, client, headers):
        tokens = login(client).json()

        response = client.post("/api/v1/auth/refresh-token", json={"refresh_token": tokens["access_token"]})
        assert response.status_code == 401

        response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
        assert response.status_code == 401

    def test_deactivated_user_cannot_refresh(self, client, admin_headers):
        signup(client)
        user_id = signup(client, username="second", email="second@example.com").json()["id"]
        refresh = login(client, "second").json()["refresh_token"]
        client.post(f"/api/v1/auth/users/{user_id}/deactivate", headers=admin_headers)

        response = client.post("/api/v1/auth/refresh-token", json={"refresh_token": refresh})
        assert response.status_code == 401


class TestPasswordReset:

    def request_reset(self, client, mailer, email="staff@example.com"):
        mailer.delivered.clear()
        response = client.post("/api/v1/auth/forgot-password", json={"email": email})
        assert response.status_code == 200
        return response

    def test_reset_flow(self, client, mailer, headers):
        self.request_reset(client, mailer)
        assert len(mailer.delivered) == 1
        token = link_token(mailer.delivered[0], "reset-password")

        response = client.post("/api/v1/auth/reset-password", json={
            "token": token, "new_password": "Reset123!", "confirm_new_password": "Reset123!",
        })
        assert response.status_code == 200
        assert login(client, password="Reset123!").status_code == 200
        assert login(client).status_code == 401

    def test_reset_token_works_once(self, client, mailer, headers):
        self.request_reset(client, mailer)
        token = link_token(mailer.delivered[0], "reset-password")
        body = {"token": token, "new_password": "Reset123!", "confirm_new_password": "Reset123!"}

        assert client.post("/api/v1/auth/reset-password", json=body).status_code == 200
        response = client.post("/api/v1/auth/reset-password", json=body)
        assert response.status_code == 400
        assert "Invalid or expired reset token" in response.json()["error"]

    def test_unknown_email_gets_same_answer(self, client, mailer, headers):
        known = self.request_reset(client, mailer).json()
        unknown = self.request_reset(client, mailer, "nobody@example.com").json()
        assert known == unknown
        assert mailer.delivered == []

    def test_garbage_token(self, client):
        response = client.post("/api/v1/auth/reset-password", json={
            "token": "not-a-token", "new_password": "Reset123!", "confirm_new_password": "Reset123!",
        })
        assert response.status_code == 400

    def test_verification_token_cannot_reset_password(self, client, mailer):
        signup(client)
        token = link_token(mailer.delivered[0], "verify-email")
        response = client.post("/api/v1/auth/reset-password", json={
            "token": token, "new_password": "Reset123!", "confirm_new_password": "Reset123!",
        })
        assert response.status_code == 400


class TestEmailVerification:

    def test_verify_email(self, client, mailer):
        signup(client)
        token = link_token(mailer.delivered[0], "verify-email")

        response = client.get(f"/api/v1/auth/verify-email/{token}")
        assert response.status_code == 200
        assert response.json()["is_verified"] is True
        assert login(client).json()["user"]["is_verified"] is True

    def test_invalid_token(self, client):
        response = client.get("/api/v1/auth/verify-email/not-a-token")
        assert response.status_code == 400

    def test_resend_only_for_unverified(self, client, mailer):
        signup(client)
        token = link_token(mailer.delivered[0], "verify-email")

        mailer.delivered.clear()
        assert client.post("/api/v1/auth/resend-verification", json={"email": "staff@example.com"}).status_code == 200
        assert len(mailer.delivered) == 1

        client.get(f"/api/v1/auth/verify-email/{token}")
        mailer.delivered.clear()
        assert client.post("/api/v1/auth/resend-verification", json={"email": "staff@example.com"}).status_code == 200
        assert mailer.delivered == []


class TestBootstrapAdmin:

    def test_creates_admin_once(self, db_session):
        service = UserService(db_session)

        user, created = asyncio.run(service.ensure_admin("Root", "root@example.com", "RootPass123!"))
        assert created
        assert (user.username, user.role, user.is_verified) == ("root", "admin", True)

        again, created = asyncio.run(service.ensure_admin("root", "root@example.com", "Other123!"))
        assert not created
        assert again.id == user.id
