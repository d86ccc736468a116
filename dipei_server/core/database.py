"""
数据库连接和管理模块
封装DuckDB连接、表结构初始化、事务与常用查询
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import duckdb

from .exceptions import BaseApplicationError, ConcurrencyError, DatabaseError
from ..config.settings import settings

logger = logging.getLogger(__name__)

# 完整的表结构定义（金额单位均为分）
SCHEMA_SQL = r"""
CREATE SEQUENCE IF NOT EXISTS users_id_seq;
CREATE TABLE IF NOT EXISTS users (
  id INTEGER DEFAULT nextval('users_id_seq') PRIMARY KEY,
  phone VARCHAR(11) UNIQUE NOT NULL,
  password_hash TEXT NOT NULL,
  nickname TEXT,
  avatar_id INTEGER,
  role TEXT CHECK(role IN ('user','cs','admin')) NOT NULL DEFAULT 'user',
  is_guide BOOLEAN DEFAULT FALSE,
  balance INTEGER NOT NULL DEFAULT 0,
  status TEXT CHECK(status IN ('active','banned')) NOT NULL DEFAULT 'active',
  ban_reason TEXT,
  banned_at TIMESTAMP,
  created_at TIMESTAMP DEFAULT current_timestamp,
  updated_at TIMESTAMP DEFAULT current_timestamp
);

CREATE TABLE IF NOT EXISTS guides (
  user_id INTEGER PRIMARY KEY,
  stage_name TEXT NOT NULL,
  real_name TEXT,
  id_number VARCHAR(18),
  city TEXT,
  intro TEXT,
  expected_price INTEGER,
  real_price INTEGER,
  tags TEXT,
  photo_ids TEXT,
  avatar_id INTEGER,
  address TEXT,
  latitude DOUBLE,
  longitude DOUBLE,
  status TEXT CHECK(status IN ('online','offline')) NOT NULL DEFAULT 'offline',
  id_verified_at TIMESTAMP,
  created_at TIMESTAMP DEFAULT current_timestamp,
  updated_at TIMESTAMP DEFAULT current_timestamp
);

CREATE SEQUENCE IF NOT EXISTS orders_id_seq;
CREATE TABLE IF NOT EXISTS orders (
  id INTEGER DEFAULT nextval('orders_id_seq') PRIMARY KEY,
  order_number TEXT UNIQUE NOT NULL,
  order_type TEXT CHECK(order_type IN ('normal','custom')) NOT NULL,
  user_id INTEGER NOT NULL,
  guide_id INTEGER,
  creator_id INTEGER,
  status TEXT CHECK(status IN ('pending','paid','waiting_service','in_service',
                               'service_ended','completed','cancelled','refunded')) NOT NULL,
  amount INTEGER NOT NULL,
  price_per_hour INTEGER,
  total_duration INTEGER,
  service_start_time TIMESTAMP,
  service_end_time TIMESTAMP,
  service_address TEXT,
  city TEXT,
  content TEXT,
  remark TEXT,
  refund_amount INTEGER,
  paid_at TIMESTAMP,
  actual_start_time TIMESTAMP,
  actual_end_time TIMESTAMP,
  cancelled_at TIMESTAMP,
  completed_at TIMESTAMP,
  created_at TIMESTAMP NOT NULL,
  updated_at TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_orders_user ON orders(user_id);

CREATE SEQUENCE IF NOT EXISTS custom_requirements_id_seq;
CREATE TABLE IF NOT EXISTS custom_requirements (
  id INTEGER DEFAULT nextval('custom_requirements_id_seq') PRIMARY KEY,
  order_id INTEGER NOT NULL,
  service_date DATE,
  city TEXT,
  content TEXT,
  budget INTEGER,
  requirements TEXT,
  created_at TIMESTAMP DEFAULT current_timestamp
);

CREATE SEQUENCE IF NOT EXISTS candidates_id_seq;
CREATE TABLE IF NOT EXISTS custom_order_candidates (
  id INTEGER DEFAULT nextval('candidates_id_seq') PRIMARY KEY,
  order_id INTEGER NOT NULL,
  guide_id INTEGER NOT NULL,
  is_selected BOOLEAN DEFAULT FALSE,
  created_at TIMESTAMP DEFAULT current_timestamp
);

CREATE SEQUENCE IF NOT EXISTS payments_id_seq;
CREATE TABLE IF NOT EXISTS payments (
  id INTEGER DEFAULT nextval('payments_id_seq') PRIMARY KEY,
  order_id INTEGER NOT NULL,
  overtime_id INTEGER,
  payment_method TEXT CHECK(payment_method IN ('wechat')) NOT NULL DEFAULT 'wechat',
  transaction_id TEXT,
  amount INTEGER NOT NULL,
  status TEXT CHECK(status IN ('pending','success','failed')) NOT NULL,
  paid_at TIMESTAMP,
  created_at TIMESTAMP DEFAULT current_timestamp
);

CREATE SEQUENCE IF NOT EXISTS check_in_id_seq;
CREATE TABLE IF NOT EXISTS check_in_records (
  id INTEGER DEFAULT nextval('check_in_id_seq') PRIMARY KEY,
  order_id INTEGER NOT NULL,
  guide_id INTEGER NOT NULL,
  type TEXT CHECK(type IN ('start','end')) NOT NULL,
  attachment_id INTEGER NOT NULL,
  latitude DOUBLE,
  longitude DOUBLE,
  checked_at TIMESTAMP NOT NULL
);

CREATE SEQUENCE IF NOT EXISTS overtime_id_seq;
CREATE TABLE IF NOT EXISTS overtime_records (
  id INTEGER DEFAULT nextval('overtime_id_seq') PRIMARY KEY,
  order_id INTEGER NOT NULL,
  user_id INTEGER NOT NULL,
  hours INTEGER NOT NULL,
  fee INTEGER NOT NULL,
  status TEXT CHECK(status IN ('pending','paid','cancelled')) NOT NULL,
  paid_at TIMESTAMP,
  created_at TIMESTAMP NOT NULL
);

CREATE SEQUENCE IF NOT EXISTS refund_id_seq;
CREATE TABLE IF NOT EXISTS refund_records (
  id INTEGER DEFAULT nextval('refund_id_seq') PRIMARY KEY,
  order_id INTEGER NOT NULL,
  operator_id INTEGER,
  amount INTEGER NOT NULL,
  penalty INTEGER NOT NULL DEFAULT 0,
  reason TEXT,
  created_at TIMESTAMP NOT NULL
);

CREATE SEQUENCE IF NOT EXISTS withdrawals_id_seq;
CREATE TABLE IF NOT EXISTS withdrawals (
  id INTEGER DEFAULT nextval('withdrawals_id_seq') PRIMARY KEY,
  user_id INTEGER NOT NULL,
  amount INTEGER NOT NULL CHECK(amount > 0),
  status TEXT CHECK(status IN ('pending','completed','rejected')) NOT NULL,
  user_note TEXT,
  admin_note TEXT,
  operator_id INTEGER,
  processed_at TIMESTAMP,
  created_at TIMESTAMP NOT NULL
);

CREATE SEQUENCE IF NOT EXISTS wallet_logs_id_seq;
CREATE TABLE IF NOT EXISTS wallet_logs (
  id INTEGER DEFAULT nextval('wallet_logs_id_seq') PRIMARY KEY,
  user_id INTEGER NOT NULL,
  type TEXT CHECK(type IN ('income','withdraw_freeze','withdraw_unfreeze','withdraw_success')) NOT NULL,
  amount INTEGER NOT NULL,
  balance_after INTEGER,
  order_id INTEGER,
  withdrawal_id INTEGER,
  remark TEXT,
  created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_wallet_logs_user ON wallet_logs(user_id);

CREATE SEQUENCE IF NOT EXISTS audit_logs_id_seq;
CREATE TABLE IF NOT EXISTS audit_logs (
  id INTEGER DEFAULT nextval('audit_logs_id_seq') PRIMARY KEY,
  operator_id INTEGER,
  action TEXT NOT NULL,
  target_type TEXT CHECK(target_type IN ('guide','withdrawal','user','order','system_config')),
  target_id INTEGER,
  details TEXT,
  ip_address VARCHAR(45),
  created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_audit_logs_operator ON audit_logs(operator_id);

CREATE SEQUENCE IF NOT EXISTS attachments_id_seq;
CREATE TABLE IF NOT EXISTS attachments (
  id INTEGER DEFAULT nextval('attachments_id_seq') PRIMARY KEY,
  storage_key TEXT UNIQUE NOT NULL,
  url TEXT NOT NULL,
  usage_type TEXT CHECK(usage_type IN ('avatar','guide_photo','check_in','system')) NOT NULL,
  uploader_id INTEGER,
  context_id TEXT,
  mime_type TEXT,
  size INTEGER,
  created_at TIMESTAMP DEFAULT current_timestamp,
  updated_at TIMESTAMP DEFAULT current_timestamp
);

CREATE TABLE IF NOT EXISTS system_configs (
  config_key TEXT PRIMARY KEY,
  value TEXT,
  description TEXT,
  updated_at TIMESTAMP DEFAULT current_timestamp
);

CREATE SEQUENCE IF NOT EXISTS verification_codes_id_seq;
CREATE TABLE IF NOT EXISTS verification_codes (
  id INTEGER DEFAULT nextval('verification_codes_id_seq') PRIMARY KEY,
  phone VARCHAR(11) NOT NULL,
  code VARCHAR(6) NOT NULL,
  usage TEXT CHECK(usage IN ('login','reset_password')) NOT NULL,
  used BOOLEAN DEFAULT FALSE,
  expires_at TIMESTAMP NOT NULL,
  created_at TIMESTAMP NOT NULL
);
"""


class DatabaseManager:
    """数据库管理器，封装所有数据库操作"""

    def __init__(self, db_path: Optional[str] = None):
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self._tx_depth = 0
        self.db_path = db_path or self._get_db_path_from_settings()

    def _get_db_path_from_settings(self) -> str:
        """从设置中获取数据库路径"""
        db_url = settings.database_url
        if db_url.startswith("duckdb://"):
            return db_url.replace("duckdb://", "", 1)
        return db_url

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """获取数据库连接"""
        with self._lock:
            if self._connection is None:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                self._connection = duckdb.connect(self.db_path)
                self._init_schema()
            return self._connection

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self.connection

    def _init_schema(self):
        """初始化数据库表结构"""
        try:
            self._connection.execute(SCHEMA_SQL)
        except duckdb.Error as e:
            raise DatabaseError(f"Failed to initialize schema: {e}")

    def init_database(self):
        """初始化数据库（连接即建表）"""
        self.get_connection()
        logger.info("Database ready at %s", self.db_path)

    def reset(self, db_path: Optional[str] = None):
        """关闭当前连接并切换数据库路径，下次访问时重新建表"""
        with self._lock:
            self.close()
            self._tx_depth = 0
            self.db_path = db_path or self._get_db_path_from_settings()

    def close(self):
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        数据库事务上下文管理器

        同一线程内嵌套调用时复用外层事务，只有最外层负责提交或回滚。
        业务异常原样抛出，其余数据库错误转换为 DatabaseError / ConcurrencyError。
        """
        with self._lock:
            conn = self.connection
            if self._tx_depth > 0:
                self._tx_depth += 1
                try:
                    yield conn
                finally:
                    self._tx_depth -= 1
                return

            conn.execute("BEGIN TRANSACTION")
            self._tx_depth = 1
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception as e:
                try:
                    conn.execute("ROLLBACK")
                except duckdb.Error:
                    logger.warning("Rollback failed", exc_info=True)

                if isinstance(e, BaseApplicationError):
                    raise
                if "conflict" in str(e).lower() or "serialization" in str(e).lower():
                    raise ConcurrencyError("系统繁忙，请稍后重试")
                raise DatabaseError(f"数据库操作失败: {str(e)}") from e
            finally:
                self._tx_depth = 0

    def execute_query(self, query: str, params: list = None) -> list:
        """执行查询并返回结果"""
        with self._lock:
            try:
                return self.connection.execute(query, params or []).fetchall()
            except duckdb.Error as e:
                raise DatabaseError(f"Query execution failed: {e}") from e

    def execute_one(self, query: str, params: list = None) -> Optional[tuple]:
        """执行查询并返回单条结果"""
        with self._lock:
            try:
                return self.connection.execute(query, params or []).fetchone()
            except duckdb.Error as e:
                raise DatabaseError(f"Query execution failed: {e}") from e

    def fetch_all(self, query: str, params: list = None) -> List[Dict[str, Any]]:
        """执行查询并以字典列表返回"""
        with self._lock:
            try:
                cursor = self.connection.execute(query, params or [])
                columns = [col[0] for col in cursor.description]
                return [dict(zip(columns, row)) for row in cursor.fetchall()]
            except duckdb.Error as e:
                raise DatabaseError(f"Query execution failed: {e}") from e

    def fetch_one(self, query: str, params: list = None) -> Optional[Dict[str, Any]]:
        """执行查询并以字典返回首行"""
        rows = self.fetch_all(query, params)
        return rows[0] if rows else None

    def fetch_value(self, query: str, params: list = None, default: Any = None) -> Any:
        """返回首行首列"""
        row = self.execute_one(query, params)
        if row is None or row[0] is None:
            return default
        return row[0]


# 全局数据库管理器实例
db_manager = DatabaseManager()
