"""
认证API集成测试
测试注册、登录、验证码登录与重置密码
"""

from dipei_server.core.database import db_manager


def _latest_code(phone, usage="login"):
    return db_manager.fetch_value(
        "SELECT code FROM verification_codes WHERE phone = ? AND usage = ? AND used = FALSE ORDER BY id DESC",
        [phone, usage],
    )


class TestRegisterAndLogin:
    """手机号+密码注册登录"""

    def test_register_success(self, client):
        response = client.post("/api/v1/auth/register", json={"phone": "13912345678", "password": "abc12345"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["data"]["phone"] == "13912345678"
        assert data["data"]["nickname"] == "用户5678"
        assert data["data"]["role"] == "user"
        assert data["data"]["token"]

    def test_register_duplicate_phone(self, client, factory):
        factory.user(phone="13912345678")
        response = client.post("/api/v1/auth/register", json={"phone": "13912345678", "password": "abc12345"})

        assert response.status_code == 409
        assert response.json()["error_code"] == "PHONE_EXISTS"

    def test_register_weak_password(self, client):
        """密码必须同时包含字母和数字"""
        response = client.post("/api/v1/auth/register", json={"phone": "13912345678", "password": "12345678"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_PARAMS"

    def test_register_invalid_phone(self, client):
        response = client.post("/api/v1/auth/register", json={"phone": "12345678901", "password": "abc12345"})

        assert response.status_code in (400, 422)
        assert response.json()["success"] is False

    def test_register_phone_with_trailing_newline(self, client, factory):
        factory.user(phone="13812345678")

        response = client.post("/api/v1/auth/register", json={"phone": "13812345678\n", "password": "abc12345"})

        assert response.status_code in (400, 409, 422)
        assert response.json()["success"] is False
        assert db_manager.fetch_value("SELECT COUNT(*) FROM users WHERE phone LIKE '13812345678%'") == 1

    def test_login_success(self, client, factory):
        user = factory.user(phone="13911112222", password="secret123")
        response = client.post("/api/v1/auth/login", json={"phone": "13911112222", "password": "secret123"})

        assert response.status_code == 200
        assert response.json()["data"]["user_id"] == user["id"]

    def test_login_wrong_password(self, client, factory):
        factory.user(phone="13911112222", password="secret123")
        response = client.post("/api/v1/auth/login", json={"phone": "13911112222", "password": "wrong1234"})

        assert response.status_code == 401
        assert response.json()["error_code"] == "INVALID_CREDENTIALS"

    def test_login_unknown_phone_same_error(self, client):
        response = client.post("/api/v1/auth/login", json={"phone": "13900000000", "password": "secret123"})

        assert response.status_code == 401
        assert response.json()["error_code"] == "INVALID_CREDENTIALS"

    def test_login_banned_user(self, client, factory):
        factory.user(phone="13911112222", password="secret123", status="banned")
        response = client.post("/api/v1/auth/login", json={"phone": "13911112222", "password": "secret123"})

        assert response.status_code == 403
        assert response.json()["error_code"] == "USER_BANNED"

    def test_login_missing_fields(self, client):
        response = client.post("/api/v1/auth/login", json={})

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"


class TestSmsCode:
    """短信验证码"""

    def test_login_by_code_auto_registers(self, client):
        assert client.post("/api/v1/auth/sms-code", json={"phone": "13755556666", "usage": "login"}).status_code == 200
        code = _latest_code("13755556666")

        response = client.post("/api/v1/auth/login-by-code", json={"phone": "13755556666", "code": code})

        assert response.status_code == 200
        assert response.json()["data"]["phone"] == "13755556666"
        assert db_manager.fetch_value("SELECT COUNT(*) FROM users WHERE phone = '13755556666'") == 1

    def test_code_can_only_be_used_once(self, client):
        client.post("/api/v1/auth/sms-code", json={"phone": "13755556666", "usage": "login"})
        code = _latest_code("13755556666")

        first = client.post("/api/v1/auth/login-by-code", json={"phone": "13755556666", "code": code})
        second = client.post("/api/v1/auth/login-by-code", json={"phone": "13755556666", "code": code})

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["error_code"] == "INVALID_SMS_CODE"

    def test_wrong_code_rejected(self, client):
        client.post("/api/v1/auth/sms-code", json={"phone": "13755556666", "usage": "login"})
        code = _latest_code("13755556666")
        wrong = "000000" if code != "000000" else "111111"

        response = client.post("/api/v1/auth/login-by-code", json={"phone": "13755556666", "code": wrong})

        assert response.json()["error_code"] == "INVALID_SMS_CODE"

    def test_reset_password(self, client, factory):
        factory.user(phone="13911112222", password="secret123")
        client.post("/api/v1/auth/sms-code", json={"phone": "13911112222", "usage": "reset_password"})
        code = _latest_code("13911112222", "reset_password")

        response = client.post(
            "/api/v1/auth/reset-password",
            json={"phone": "13911112222", "code": code, "new_password": "newpass99"},
        )
        assert response.status_code == 200

        old_login = client.post("/api/v1/auth/login", json={"phone": "13911112222", "password": "secret123"})
        new_login = client.post("/api/v1/auth/login", json={"phone": "13911112222", "password": "newpass99"})
        assert old_login.status_code == 401
        assert new_login.status_code == 200


class TestCurrentUser:
    """token 解析与当前用户"""

    def test_me(self, client, sample_user, auth_headers):
        response = client.get("/api/v1/auth/me", headers=auth_headers(sample_user))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == sample_user["id"]
        assert "password_hash" not in data

    def test_missing_token(self, client):
        response = client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert response.json()["error_code"] == "TOKEN_INVALID"

    def test_invalid_token(self, client):
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    def test_banned_user_token_rejected(self, client, factory, auth_headers):
        user = factory.user(status="banned")
        response = client.get("/api/v1/auth/me", headers=auth_headers(user))

        assert response.status_code == 403
        assert response.json()["error_code"] == "USER_BANNED"

    def test_user_cannot_access_admin_api(self, client, sample_user, auth_headers):
        response = client.get("/api/v1/admin/users", headers=auth_headers(sample_user))

        assert response.status_code == 403
        assert response.json()["error_code"] == "PERMISSION_DENIED"
