import os
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # 数据库配置
    database_url: str = "duckdb://./data/dipei.duckdb"

    # JWT配置
    jwt_secret_key: str = "your-secret-key"
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 24 * 7  # 7天

    # 密码哈希
    bcrypt_rounds: int = 12

    # 短信验证码
    sms_code_ttl_minutes: int = 5

    # API配置
    api_title: str = "地陪 API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api/v1"

    # 日志
    log_level: str = "INFO"

    # 附件存储
    upload_dir: str = "./uploads"
    upload_base_url: str = "/uploads"
    max_upload_bytes: int = 10 * 1024 * 1024

    # 订单与结算规则（金额单位：分）
    custom_order_deposit_cents: int = 15000
    refund_free_window_minutes: int = 60
    refund_penalty_cents: int = 15000
    unpaid_order_timeout_minutes: int = 75
    settle_delay_hours: int = 24
    settle_batch_size: int = 100
    platform_commission_rate: float = 0.25

    # 定时任务
    scheduler_enabled: bool = True
    auto_cancel_interval_minutes: int = 5
    auto_settle_interval_minutes: int = 60

    # 开发模式
    debug: bool = False

    # 外部短信服务（未配置时使用Mock发送）
    sms_sign_name: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = False


class DevelopmentSettings(Settings):
    debug: bool = True
    log_level: str = "DEBUG"
    database_url: str = "duckdb://./data/dipei_dev.duckdb"


def get_settings() -> Settings:
    """按 APP_ENV 选择配置，development 时开启调试"""
    if os.getenv("APP_ENV", "").lower() == "development":
        return DevelopmentSettings()
    return Settings()


# 全局设置实例
settings = get_settings()
