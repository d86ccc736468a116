"""
地陪资料服务
提供地陪资料维护、公开列表/详情查询以及后台审核定价

业务规则：
- 资料以用户ID为主键，一个用户最多一份地陪资料
- 用户只能填写期望价格，实际价格由后台设置
- 上架（online）要求已完成认证且实际价格大于0
- 公开接口只展示已上架且已定价的地陪
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..core.database import db_manager
from ..core.exceptions import BusinessRuleError, GuideNotFoundError, UserNotFoundError, ValidationError
from ..models.audit import AuditAction, AuditTargetType
from ..models.guide import GuideStatus
from ..utils.geo import haversine_km
from ..utils.validators import is_valid_id_number, is_valid_phone
from .audit_service import audit_service

logger = logging.getLogger(__name__)

# 用户可自行编辑的字段
PROFILE_FIELDS = (
    "stage_name", "real_name", "id_number", "city", "intro", "expected_price",
    "tags", "photo_ids", "avatar_id", "address", "latitude", "longitude",
)

# 后台额外可编辑的字段
ADMIN_FIELDS = PROFILE_FIELDS + ("real_price", "status")

JSON_FIELDS = ("tags", "photo_ids")


class GuideService:
    """地陪资料服务"""

    def __init__(self):
        self.db = db_manager

    # ---------------- 用户端 ----------------

    def get_my_profile(self, user_id: int) -> Dict[str, Any]:
        guide = self._get_guide_row(user_id)
        if not guide:
            raise GuideNotFoundError("尚未提交地陪资料")
        return self._enrich([guide])[0]

    def upsert_my_profile(self, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        创建或更新自己的地陪资料

        新建资料默认下架且未认证，价格与上架状态只能由后台调整。
        """
        fields = {k: v for k, v in data.items() if k in PROFILE_FIELDS and v is not None}
        self._validate_fields(fields)

        existing = self._get_guide_row(user_id)
        with self.db.transaction() as conn:
            if existing:
                self._update_guide(conn, user_id, fields)
            else:
                if not fields.get("stage_name"):
                    raise ValidationError("请填写艺名")
                self._insert_guide(conn, user_id, fields)

        logger.info("Guide profile saved for user %s", user_id)
        return self.get_my_profile(user_id)

    def list_public_guides(
        self,
        city: Optional[str] = None,
        keyword: Optional[str] = None,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        公开地陪列表

        传入经纬度时按距离由近到远排序，并返回 distance_km。
        """
        conditions = ["g.status = 'online'", "g.real_price > 0"]
        params: List[Any] = []
        if city:
            conditions.append("g.city = ?")
            params.append(city)
        if keyword:
            conditions.append("(g.stage_name LIKE ? OR g.intro LIKE ? OR g.city LIKE ?)")
            params.extend([f"%{keyword}%"] * 3)
        where_clause = " AND ".join(conditions)

        base_query = f"""
            SELECT g.*, u.nickname
            FROM guides g
            JOIN users u ON g.user_id = u.id
            WHERE {where_clause}
        """
        total = self.db.fetch_value(
            f"SELECT COUNT(*) FROM guides g JOIN users u ON g.user_id = u.id WHERE {where_clause}", params, 0
        )

        if lat is not None and lng is not None:
            rows = self.db.fetch_all(base_query, params)
            for row in rows:
                if row["latitude"] is not None and row["longitude"] is not None:
                    row["distance_km"] = round(haversine_km(lat, lng, row["latitude"], row["longitude"]), 2)
                else:
                    row["distance_km"] = None
            rows.sort(key=lambda r: (r["distance_km"] is None, r["distance_km"] or 0))
            offset = (page - 1) * page_size
            rows = rows[offset:offset + page_size]
        else:
            rows = self.db.fetch_all(
                base_query + " ORDER BY g.updated_at DESC, g.user_id DESC LIMIT ? OFFSET ?",
                params + [page_size, (page - 1) * page_size],
            )

        return self._enrich(rows, public=True), total

    def get_public_guide(self, guide_id: int) -> Dict[str, Any]:
        row = self.db.fetch_one(
            """
            SELECT g.*, u.nickname
            FROM guides g JOIN users u ON g.user_id = u.id
            WHERE g.user_id = ? AND g.status = 'online'
            """,
            [guide_id],
        )
        if not row:
            raise GuideNotFoundError("地陪不存在或已下架")
        return self._enrich([row], public=True)[0]

    def get_bookable_guide(self, guide_id: int) -> Dict[str, Any]:
        """下单时使用：地陪必须已上架且已定价"""
        row = self._get_guide_row(guide_id)
        if not row or row["status"] != GuideStatus.ONLINE.value:
            raise GuideNotFoundError("地陪不存在或已下架")
        if not row["real_price"]:
            raise BusinessRuleError("该地陪尚未定价，暂不可预约")
        return row

    # ---------------- 后台 ----------------

    def admin_list_guides(
        self,
        status: Optional[str] = None,
        keyword: Optional[str] = None,
        is_guide: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Dict[str, Any]], int]:
        conditions = []
        params: List[Any] = []
        if status:
            conditions.append("g.status = ?")
            params.append(status)
        if keyword:
            conditions.append("(g.stage_name LIKE ? OR g.real_name LIKE ? OR u.phone LIKE ?)")
            params.extend([f"%{keyword}%"] * 3)
        if is_guide is not None:
            conditions.append("u.is_guide = ?")
            params.append(is_guide)
        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        total = self.db.fetch_value(
            f"SELECT COUNT(*) FROM guides g JOIN users u ON g.user_id = u.id {where_clause}", params, 0
        )
        rows = self.db.fetch_all(
            f"""
            SELECT g.*, u.phone, u.nickname, u.is_guide
            FROM guides g JOIN users u ON g.user_id = u.id
            {where_clause}
            ORDER BY g.created_at DESC, g.user_id DESC
            LIMIT ? OFFSET ?
            """,
            params + [page_size, (page - 1) * page_size],
        )
        return self._enrich(rows), total

    def admin_get_guide(self, guide_id: int) -> Dict[str, Any]:
        row = self.db.fetch_one(
            """
            SELECT g.*, u.phone, u.nickname, u.is_guide
            FROM guides g JOIN users u ON g.user_id = u.id
            WHERE g.user_id = ?
            """,
            [guide_id],
        )
        if not row:
            raise GuideNotFoundError("地陪不存在")
        return self._enrich([row])[0]

    def admin_create_guide(self, user_phone: str, data: Dict[str, Any], operator_id: int,
                           is_guide: bool = True, ip_address: Optional[str] = None) -> Dict[str, Any]:
        """后台为已注册用户创建地陪资料"""
        if not is_valid_phone(user_phone):
            raise ValidationError("手机号格式不正确")
        user = self.db.fetch_one("SELECT id FROM users WHERE phone = ?", [user_phone])
        if not user:
            raise UserNotFoundError("该手机号未注册")
        if self._get_guide_row(user["id"]):
            raise BusinessRuleError("该用户已有地陪资料")

        fields = {k: v for k, v in data.items() if k in ADMIN_FIELDS and v is not None}
        if not fields.get("stage_name"):
            raise ValidationError("请填写艺名")
        self._validate_fields(fields)
        self._check_online_rule(fields.get("status"), is_guide, fields.get("real_price"))

        with self.db.transaction() as conn:
            self._insert_guide(conn, user["id"], fields)
            self._set_verified(conn, user["id"], is_guide)
            audit_service.log(operator_id, AuditAction.AUDIT_GUIDE, AuditTargetType.GUIDE, user["id"],
                              {"op": "create", "fields": fields, "is_guide": is_guide}, ip_address)

        return self.admin_get_guide(user["id"])

    def admin_update_guide(self, guide_id: int, data: Dict[str, Any], operator_id: int,
                           is_guide: Optional[bool] = None, ip_address: Optional[str] = None) -> Dict[str, Any]:
        """
        后台审核/定价

        Args:
            guide_id: 地陪用户ID
            data: 资料字段，可包含 real_price / status
            is_guide: 认证开关，开启时记录认证时间
        """
        current = self.admin_get_guide(guide_id)
        fields = {k: v for k, v in data.items() if k in ADMIN_FIELDS and v is not None}
        self._validate_fields(fields)

        target_verified = current["is_guide"] if is_guide is None else is_guide
        target_status = fields.get("status", current["status"])
        if not target_verified and "status" not in fields:
            # 取消认证时自动下架
            target_status = GuideStatus.OFFLINE.value
        target_price = fields.get("real_price", current["real_price"])
        self._check_online_rule(target_status, target_verified, target_price)

        with self.db.transaction() as conn:
            if fields:
                self._update_guide(conn, guide_id, fields)
            if is_guide is not None and is_guide != current["is_guide"]:
                self._set_verified(conn, guide_id, is_guide)
            audit_service.log(operator_id, AuditAction.AUDIT_GUIDE, AuditTargetType.GUIDE, guide_id,
                              {"op": "update", "fields": fields, "is_guide": is_guide}, ip_address)

        logger.info("Guide %s updated by %s", guide_id, operator_id)
        return self.admin_get_guide(guide_id)

    # ---------------- 内部方法 ----------------

    def _get_guide_row(self, user_id: int) -> Optional[Dict[str, Any]]:
        return self.db.fetch_one("SELECT * FROM guides WHERE user_id = ?", [user_id])

    def _validate_fields(self, fields: Dict[str, Any]):
        if "id_number" in fields and not is_valid_id_number(fields["id_number"]):
            raise ValidationError("身份证号格式不正确", "INVALID_ID_NUMBER")
        for price_field in ("expected_price", "real_price"):
            if price_field in fields and int(fields[price_field]) < 0:
                raise ValidationError("价格不能为负数")
        if "status" in fields and fields["status"] not in (GuideStatus.ONLINE.value, GuideStatus.OFFLINE.value):
            raise ValidationError("无效的上架状态")

    def _check_online_rule(self, status: Optional[str], verified: bool, real_price: Optional[int]):
        if status == GuideStatus.ONLINE.value:
            if not verified:
                raise BusinessRuleError("地陪未认证，无法上架")
            if not real_price or real_price <= 0:
                raise BusinessRuleError("请先设置实际价格再上架")

    def _to_db_values(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        values = dict(fields)
        for key in JSON_FIELDS:
            if key in values:
                values[key] = json.dumps(values[key], ensure_ascii=False)
        if "id_number" in values:
            values["id_number"] = values["id_number"].upper()
        return values

    def _insert_guide(self, conn, user_id: int, fields: Dict[str, Any]):
        values = self._to_db_values(fields)
        values.setdefault("status", GuideStatus.OFFLINE.value)
        now = datetime.now()
        columns = ["user_id"] + list(values.keys()) + ["created_at", "updated_at"]
        placeholders = ", ".join(["?"] * len(columns))
        conn.execute(
            f"INSERT INTO guides ({', '.join(columns)}) VALUES ({placeholders})",
            [user_id] + list(values.values()) + [now, now],
        )

    def _update_guide(self, conn, user_id: int, fields: Dict[str, Any]):
        values = self._to_db_values(fields)
        if not values:
            return
        assignments = ", ".join(f"{key} = ?" for key in values)
        conn.execute(
            f"UPDATE guides SET {assignments}, updated_at = ? WHERE user_id = ?",
            list(values.values()) + [datetime.now(), user_id],
        )

    def _set_verified(self, conn, user_id: int, verified: bool):
        conn.execute("UPDATE users SET is_guide = ?, updated_at = ? WHERE id = ?",
                     [verified, datetime.now(), user_id])
        if verified:
            conn.execute("UPDATE guides SET id_verified_at = ? WHERE user_id = ?", [datetime.now(), user_id])
        else:
            conn.execute(
                "UPDATE guides SET id_verified_at = NULL, status = 'offline' WHERE user_id = ?", [user_id]
            )

    def _enrich(self, rows: List[Dict[str, Any]], public: bool = False) -> List[Dict[str, Any]]:
        """解析JSON字段并补充图片URL；公开接口隐藏敏感字段"""
        attachment_ids = set()
        for row in rows:
            for key in JSON_FIELDS:
                row[key] = json.loads(row[key]) if row.get(key) else []
            attachment_ids.update(row["photo_ids"])
            if row.get("avatar_id"):
                attachment_ids.add(row["avatar_id"])

        urls: Dict[int, str] = {}
        if attachment_ids:
            ids = sorted(attachment_ids)
            placeholders = ", ".join(["?"] * len(ids))
            for att in self.db.fetch_all(f"SELECT id, url FROM attachments WHERE id IN ({placeholders})", ids):
                urls[att["id"]] = att["url"]

        for row in rows:
            row["id"] = row["user_id"]
            row["avatar_url"] = urls.get(row.get("avatar_id"))
            row["photo_urls"] = [urls[pid] for pid in row["photo_ids"] if pid in urls]
            if "is_guide" in row:
                row["is_guide"] = bool(row["is_guide"])
            if public:
                row.pop("real_name", None)
                row.pop("id_number", None)
                row.pop("expected_price", None)
        return rows


guide_service = GuideService()
