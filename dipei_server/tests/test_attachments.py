"""
附件上传测试
"""

from pathlib import Path

from PIL import Image

from dipei_server.config.settings import settings
from dipei_server.core.database import db_manager


def _stored_image(key):
    return Image.open(Path(settings.upload_dir) / key)


class TestAttachmentUpload:
    """按用途处理与槽位覆盖"""

    def test_avatar_cropped_to_square(self, client, sample_user, auth_headers, image_bytes):
        response = client.post(
            "/api/v1/attachments/avatar",
            files={"file": ("me.png", image_bytes((800, 400)), "image/png")},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["key"] == f"avatars/u_{sample_user['id']}.webp"
        assert data["url"].startswith(f"/uploads/avatars/u_{sample_user['id']}.webp?t=")
        image = _stored_image(data["key"])
        assert image.size == (200, 200)
        assert image.format == "WEBP"

    def test_same_slot_overwrites(self, client, sample_user, auth_headers, image_bytes):
        headers = auth_headers(sample_user)
        first = client.post("/api/v1/attachments/guide_photo", data={"slot": "1"},
                            files={"file": ("a.png", image_bytes(), "image/png")}, headers=headers)
        second = client.post("/api/v1/attachments/guide_photo", data={"slot": "1"},
                             files={"file": ("b.jpg", image_bytes(fmt="JPEG"), "image/jpeg")}, headers=headers)
        other = client.post("/api/v1/attachments/guide_photo", data={"slot": "2"},
                            files={"file": ("c.png", image_bytes(), "image/png")}, headers=headers)

        assert first.json()["data"]["id"] == second.json()["data"]["id"]
        assert other.json()["data"]["id"] != first.json()["data"]["id"]
        assert db_manager.fetch_value("SELECT COUNT(*) FROM attachments") == 2

    def test_wide_photo_limited_to_1080(self, client, sample_user, auth_headers, image_bytes):
        response = client.post("/api/v1/attachments/guide_photo",
                               files={"file": ("wide.png", image_bytes((2160, 1000)), "image/png")},
                               headers=auth_headers(sample_user))

        image = _stored_image(response.json()["data"]["key"])
        assert image.size == (1080, 500)

    def test_non_image_rejected(self, client, sample_user, auth_headers):
        response = client.post("/api/v1/attachments/avatar",
                               files={"file": ("a.txt", b"hello world", "text/plain")},
                               headers=auth_headers(sample_user))

        assert response.status_code == 400
        assert response.json()["error_code"] == "UNSUPPORTED_FILE"

    def test_file_too_large(self, client, sample_user, auth_headers, image_bytes, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_bytes", 100)
        response = client.post("/api/v1/attachments/avatar",
                               files={"file": ("big.png", image_bytes(), "image/png")},
                               headers=auth_headers(sample_user))

        assert response.status_code == 413
        assert response.json()["error_code"] == "FILE_TOO_LARGE"

    def test_cannot_upload_for_other_user(self, client, factory, sample_user, auth_headers, image_bytes):
        other = factory.user()
        response = client.post("/api/v1/attachments/avatar", data={"context_id": str(other["id"])},
                               files={"file": ("a.png", image_bytes(), "image/png")},
                               headers=auth_headers(sample_user))

        assert response.status_code == 403

    def test_system_image_admin_only(self, client, sample_user, admin_user, auth_headers, image_bytes):
        denied = client.post("/api/v1/attachments/system", data={"slot": "cs_qrcode"},
                             files={"file": ("qr.png", image_bytes(), "image/png")},
                             headers=auth_headers(sample_user))
        allowed = client.post("/api/v1/attachments/system", data={"slot": "cs_qrcode"},
                              files={"file": ("qr.png", image_bytes(), "image/png")},
                              headers=auth_headers(admin_user))

        assert denied.status_code == 403
        assert allowed.status_code == 200
        assert allowed.json()["data"]["key"] == "system/cs_qrcode.png"

    def test_check_in_photo_only_by_order_guide(self, client, factory, sample_user, sample_guide,
                                                auth_headers, image_bytes):
        order = factory.order(sample_user["id"], sample_guide["id"], status="waiting_service")
        payload = {"context_id": str(order["id"]), "slot": "start"}

        by_user = client.post("/api/v1/attachments/check_in", data=payload,
                              files={"file": ("s.png", image_bytes(), "image/png")},
                              headers=auth_headers(sample_user))
        by_guide = client.post("/api/v1/attachments/check_in", data=payload,
                               files={"file": ("s.png", image_bytes(), "image/png")},
                               headers=auth_headers(sample_guide))

        assert by_user.status_code == 403
        assert by_guide.json()["data"]["key"] == f"orders/o_{order['id']}_start.webp"

    def test_invalid_slot(self, client, sample_user, auth_headers, image_bytes):
        response = client.post("/api/v1/attachments/guide_photo", data={"slot": "../../etc"},
                               files={"file": ("a.png", image_bytes(), "image/png")},
                               headers=auth_headers(sample_user))

        assert response.status_code == 400

    def test_unknown_usage(self, client, sample_user, auth_headers, image_bytes):
        response = client.post("/api/v1/attachments/banner",
                               files={"file": ("a.png", image_bytes(), "image/png")},
                               headers=auth_headers(sample_user))

        assert response.status_code == 400

    def test_uploaded_avatar_usable_in_profile(self, client, sample_user, auth_headers, image_bytes):
        headers = auth_headers(sample_user)
        uploaded = client.post("/api/v1/attachments/avatar",
                               files={"file": ("me.png", image_bytes(), "image/png")}, headers=headers)

        response = client.put("/api/v1/users/me", json={"avatar_id": uploaded.json()["data"]["id"]},
                              headers=headers)

        assert response.status_code == 200
        assert response.json()["data"]["avatar_id"] == uploaded.json()["data"]["id"]

    def test_cannot_use_other_users_avatar(self, client, factory, sample_user, auth_headers, image_bytes):
        other = factory.user()
        uploaded = client.post("/api/v1/attachments/avatar",
                               files={"file": ("me.png", image_bytes(), "image/png")},
                               headers=auth_headers(other))

        response = client.put("/api/v1/users/me", json={"avatar_id": uploaded.json()["data"]["id"]},
                              headers=auth_headers(sample_user))

        assert response.status_code == 403
        assert response.json()["error_code"] == "PERMISSION_DENIED"
        assert client.get("/api/v1/users/me", headers=auth_headers(sample_user)).json()["data"]["avatar_id"] is None
