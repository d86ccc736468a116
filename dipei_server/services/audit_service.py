"""
审计日志服务
记录后台人员的敏感操作，并提供分页查询
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..core.database import db_manager
from ..models.audit import AuditAction, AuditTargetType

logger = logging.getLogger(__name__)


class AuditService:
    """审计日志服务"""

    def __init__(self):
        self.db = db_manager

    def log(
        self,
        operator_id: Optional[int],
        action: AuditAction,
        target_type: AuditTargetType,
        target_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        """
        写入一条审计日志

        在外层事务中调用时随外层事务一起提交。
        """
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO audit_logs (operator_id, action, target_type, target_id, details, ip_address, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    operator_id,
                    AuditAction(action).value,
                    AuditTargetType(target_type).value,
                    target_id,
                    json.dumps(details or {}, ensure_ascii=False, default=str),
                    ip_address[:45] if ip_address else None,
                    datetime.now(),
                ],
            )
        logger.info("Audit %s on %s#%s by operator %s", action, target_type, target_id, operator_id)

    def list_logs(
        self,
        page: int = 1,
        page_size: int = 20,
        operator_id: Optional[int] = None,
        action: Optional[str] = None,
        target_type: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """分页查询审计日志，返回 (items, total)"""
        conditions = []
        params: List[Any] = []
        if operator_id:
            conditions.append("a.operator_id = ?")
            params.append(operator_id)
        if action:
            conditions.append("a.action = ?")
            params.append(action)
        if target_type:
            conditions.append("a.target_type = ?")
            params.append(target_type)
        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        total = self.db.fetch_value(f"SELECT COUNT(*) FROM audit_logs a {where_clause}", params, 0)
        rows = self.db.fetch_all(
            f"""
            SELECT a.id, a.operator_id, u.phone AS operator_phone, u.nickname AS operator_name,
                   a.action, a.target_type, a.target_id, a.details, a.ip_address, a.created_at
            FROM audit_logs a
            LEFT JOIN users u ON a.operator_id = u.id
            {where_clause}
            ORDER BY a.created_at DESC, a.id DESC
            LIMIT ? OFFSET ?
            """,
            params + [page_size, (page - 1) * page_size],
        )
        for row in rows:
            row["details"] = json.loads(row["details"]) if row["details"] else {}
        return rows, total


audit_service = AuditService()
