"""
系统配置相关的请求模式
"""

from pydantic import BaseModel, Field
from typing import List, Optional


class SystemConfigItem(BaseModel):
    """单个配置项"""
    key: str = Field(..., min_length=1, max_length=64, description="配置键")
    value: Optional[str] = Field(None, description="配置值")
    description: Optional[str] = Field(None, max_length=255, description="说明")


class SystemConfigUpdateRequest(BaseModel):
    """批量更新配置"""
    configs: List[SystemConfigItem] = Field(..., min_length=1, description="配置列表")
