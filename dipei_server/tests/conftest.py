"""
测试配置文件
提供测试所需的fixtures和数据工厂

每个测试使用独立的内存数据库，附件写入临时目录，定时任务不启动。
"""

import io
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from dipei_server.app import create_app
from dipei_server.config.settings import settings
from dipei_server.core.database import db_manager
from dipei_server.core.security import hash_password, security_manager

DEFAULT_PASSWORD = "pass1234"


@pytest.fixture(autouse=True)
def test_settings(monkeypatch, tmp_path):
    """测试配置：降低bcrypt强度、关闭定时任务、上传目录指向临时目录"""
    monkeypatch.setattr(settings, "bcrypt_rounds", 4)
    monkeypatch.setattr(settings, "scheduler_enabled", False)
    monkeypatch.setattr(settings, "jwt_secret_key", "test-secret-key")
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))
    return settings


@pytest.fixture(autouse=True)
def test_db(test_settings):
    """内存数据库"""
    db_manager.reset(":memory:")
    yield db_manager
    db_manager.close()


@pytest.fixture
def client(test_db):
    """测试客户端"""
    return TestClient(create_app())


class Factory:
    """直接写库构造测试数据"""

    def __init__(self, db):
        self.db = db
        self._phone_seq = 0
        self._order_seq = 0

    def next_phone(self) -> str:
        self._phone_seq += 1
        return f"1380000{self._phone_seq:04d}"

    def user(self, phone=None, password=DEFAULT_PASSWORD, role="user", balance=0,
             is_guide=False, nickname=None, status="active"):
        phone = phone or self.next_phone()
        user_id = self.db.execute_one(
            """
            INSERT INTO users (phone, password_hash, nickname, role, is_guide, balance, status)
            VALUES (?, ?, ?, ?, ?, ?, ?) RETURNING id
            """,
            [phone, hash_password(password), nickname or f"用户{phone[-4:]}", role, is_guide, balance, status],
        )[0]
        return self.db.fetch_one("SELECT * FROM users WHERE id = ?", [user_id])

    def guide(self, real_price=20000, status="online", city="杭州", stage_name="小导",
              latitude=None, longitude=None, balance=0):
        """已认证的地陪（用户 + 资料）"""
        user = self.user(is_guide=True, balance=balance)
        now = datetime.now()
        self.db.execute_query(
            """
            INSERT INTO guides (user_id, stage_name, real_name, id_number, city, intro, expected_price,
                                real_price, latitude, longitude, status, id_verified_at, created_at, updated_at)
            VALUES (?, ?, '张三', '110101199001011234', ?, '熟悉本地景点', 18000, ?, ?, ?, ?, ?, ?, ?)
            """,
            [user["id"], stage_name, city, real_price, latitude, longitude, status, now, now, now],
        )
        return user

    def order(self, user_id, guide_id=None, status="pending", amount=40000, order_type="normal",
              price_per_hour=20000, total_duration=2, created_at=None, paid_at=None,
              actual_end_time=None, creator_id=None):
        created_at = created_at or datetime.now()
        self._order_seq += 1
        start = datetime.now() + timedelta(days=1)
        order_id = self.db.execute_one(
            """
            INSERT INTO orders (order_number, order_type, user_id, guide_id, creator_id, status, amount,
                                price_per_hour, total_duration, service_start_time, service_end_time,
                                paid_at, actual_end_time, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) RETURNING id
            """,
            [f"ORDTEST{self._order_seq:06d}", order_type, user_id, guide_id, creator_id,
             status, amount, price_per_hour, total_duration, start,
             start + timedelta(hours=total_duration or 0), paid_at, actual_end_time, created_at, created_at],
        )[0]
        return self.db.fetch_one("SELECT * FROM orders WHERE id = ?", [order_id])

    def check_in_attachment(self, order_id, slot="start"):
        key = f"orders/o_{order_id}_{slot}.webp"
        return self.db.execute_one(
            "INSERT INTO attachments (storage_key, url, usage_type, context_id) VALUES (?, ?, 'check_in', ?) "
            "RETURNING id",
            [key, f"/uploads/{key}", str(order_id)],
        )[0]


@pytest.fixture
def factory(test_db):
    return Factory(test_db)


@pytest.fixture
def auth_headers():
    """生成真实JWT的认证请求头"""
    def _headers(user):
        return {"Authorization": f"Bearer {security_manager.create_jwt_token(user)}"}
    return _headers


@pytest.fixture
def image_bytes():
    """生成测试图片内容"""
    def _image(size=(400, 300), fmt="PNG", color=(200, 80, 40)):
        buffer = io.BytesIO()
        Image.new("RGB", size, color).save(buffer, format=fmt)
        return buffer.getvalue()
    return _image


@pytest.fixture
def sample_user(factory):
    return factory.user(nickname="测试用户")


@pytest.fixture
def admin_user(factory):
    return factory.user(role="admin", nickname="管理员")


@pytest.fixture
def cs_user(factory):
    return factory.user(role="cs", nickname="客服小李")


@pytest.fixture
def sample_guide(factory):
    return factory.guide()
