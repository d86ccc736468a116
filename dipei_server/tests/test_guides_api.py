"""
地陪资料API测试
"""

from dipei_server.core.database import db_manager

VALID_ID_NUMBER = "11010119900307803X"


class TestGuideProfile:
    """用户端地陪资料"""

    def test_create_profile_defaults_offline(self, client, sample_user, auth_headers):
        response = client.post(
            "/api/v1/guides/profile",
            json={"stage_name": "阿杰", "city": "杭州", "expected_price": 30000, "tags": ["摄影", "美食"]},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "offline"
        assert data["real_price"] is None
        assert data["tags"] == ["摄影", "美食"]

    def test_create_profile_requires_stage_name(self, client, sample_user, auth_headers):
        response = client.post("/api/v1/guides/profile", json={"city": "杭州"}, headers=auth_headers(sample_user))

        assert response.status_code == 400

    def test_invalid_id_number(self, client, sample_user, auth_headers):
        response = client.post(
            "/api/v1/guides/profile",
            json={"stage_name": "阿杰", "id_number": "110101180001011234"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_ID_NUMBER"

    def test_user_cannot_set_real_price(self, client, sample_user, auth_headers):
        """real_price 不在用户可编辑字段中，提交后被忽略"""
        client.post("/api/v1/guides/profile", json={"stage_name": "阿杰"}, headers=auth_headers(sample_user))
        response = client.put(
            "/api/v1/guides/profile",
            json={"intro": "你好", "real_price": 1},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 200
        assert response.json()["data"]["real_price"] is None
        assert response.json()["data"]["intro"] == "你好"

    def test_get_profile_not_found(self, client, sample_user, auth_headers):
        response = client.get("/api/v1/guides/profile", headers=auth_headers(sample_user))

        assert response.status_code == 404
        assert response.json()["error_code"] == "GUIDE_NOT_FOUND"


class TestPublicGuides:
    """公开列表与详情"""

    def test_only_online_priced_guides_listed(self, client, factory):
        online = factory.guide(stage_name="在线")
        factory.guide(stage_name="下架", status="offline")
        factory.guide(stage_name="未定价", real_price=0)

        response = client.get("/api/v1/guides")

        assert response.status_code == 200
        items = response.json()["data"]["items"]
        assert [item["id"] for item in items] == [online["id"]]
        assert response.json()["data"]["pagination"]["total"] == 1

    def test_public_output_hides_sensitive_fields(self, client, sample_guide):
        response = client.get(f"/api/v1/guides/{sample_guide['id']}")

        data = response.json()["data"]
        assert data["stage_name"] == "小导"
        assert "id_number" not in data
        assert "real_name" not in data
        assert "expected_price" not in data

    def test_offline_guide_detail_hidden(self, client, factory):
        guide = factory.guide(status="offline")
        response = client.get(f"/api/v1/guides/{guide['id']}")

        assert response.status_code == 404

    def test_filter_by_city(self, client, factory):
        factory.guide(city="杭州")
        beijing = factory.guide(city="北京")

        response = client.get("/api/v1/guides", params={"city": "北京"})

        assert [item["id"] for item in response.json()["data"]["items"]] == [beijing["id"]]

    def test_sort_by_distance(self, client, factory):
        far = factory.guide(stage_name="远", latitude=31.23, longitude=121.47)      # 上海
        near = factory.guide(stage_name="近", latitude=30.27, longitude=120.16)     # 杭州
        unknown = factory.guide(stage_name="无坐标")

        response = client.get("/api/v1/guides", params={"lat": 30.25, "lng": 120.15})

        items = response.json()["data"]["items"]
        assert [item["id"] for item in items] == [near["id"], far["id"], unknown["id"]]
        assert items[0]["distance_km"] < items[1]["distance_km"]
        assert items[2]["distance_km"] is None


class TestAdminGuides:
    """后台审核与定价"""

    def test_online_requires_verification_and_price(self, client, factory, admin_user, auth_headers):
        user = factory.user()
        client.post("/api/v1/guides/profile", json={"stage_name": "新人"}, headers=auth_headers(user))

        no_price = client.put(
            f"/api/v1/admin/guides/{user['id']}",
            json={"status": "online", "is_guide": True},
            headers=auth_headers(admin_user),
        )
        assert no_price.status_code == 400

        ok = client.put(
            f"/api/v1/admin/guides/{user['id']}",
            json={"status": "online", "is_guide": True, "real_price": 25000},
            headers=auth_headers(admin_user),
        )
        assert ok.status_code == 200
        data = ok.json()["data"]
        assert data["status"] == "online"
        assert data["is_guide"] is True
        assert data["id_verified_at"] is not None

    def test_revoking_verification_takes_guide_offline(self, client, sample_guide, admin_user, auth_headers):
        response = client.put(
            f"/api/v1/admin/guides/{sample_guide['id']}",
            json={"is_guide": False},
            headers=auth_headers(admin_user),
        )

        data = response.json()["data"]
        assert data["is_guide"] is False
        assert data["status"] == "offline"
        assert data["id_verified_at"] is None

    def test_admin_create_guide_writes_audit_log(self, client, factory, cs_user, auth_headers):
        factory.user(phone="13622223333")
        response = client.post(
            "/api/v1/admin/guides",
            json={"user_phone": "13622223333", "stage_name": "小王", "id_number": VALID_ID_NUMBER,
                  "real_price": 20000, "status": "online"},
            headers=auth_headers(cs_user),
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "online"
        assert db_manager.fetch_value(
            "SELECT COUNT(*) FROM audit_logs WHERE action = 'audit_guide' AND operator_id = ?", [cs_user["id"]]
        ) == 1

    def test_admin_create_guide_unknown_phone(self, client, admin_user, auth_headers):
        response = client.post(
            "/api/v1/admin/guides",
            json={"user_phone": "13622223333", "stage_name": "小王"},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "USER_NOT_FOUND"

    def test_admin_list_includes_offline(self, client, factory, admin_user, auth_headers):
        factory.guide(status="offline")
        factory.guide()

        response = client.get("/api/v1/admin/guides", headers=auth_headers(admin_user))

        assert response.json()["data"]["pagination"]["total"] == 2
        assert "id_number" in response.json()["data"]["items"][0]
