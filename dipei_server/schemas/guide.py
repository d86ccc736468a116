"""
地陪资料相关的请求模式
"""

from pydantic import BaseModel, Field
from typing import List, Literal, Optional


class GuideProfileRequest(BaseModel):
    """地陪资料（用户自己填写）"""
    stage_name: Optional[str] = Field(None, max_length=50, description="艺名")
    real_name: Optional[str] = Field(None, max_length=50, description="真实姓名")
    id_number: Optional[str] = Field(None, description="18位身份证号")
    city: Optional[str] = Field(None, max_length=50, description="城市")
    intro: Optional[str] = Field(None, max_length=2000, description="个人介绍")
    expected_price: Optional[int] = Field(None, ge=0, description="期望价格（分/小时）")
    tags: Optional[List[str]] = Field(None, description="标签")
    photo_ids: Optional[List[int]] = Field(None, max_length=9, description="相册附件ID")
    avatar_id: Optional[int] = Field(None, description="头像附件ID")
    address: Optional[str] = Field(None, max_length=255, description="常驻地址")
    latitude: Optional[float] = Field(None, ge=-90, le=90, description="纬度")
    longitude: Optional[float] = Field(None, ge=-180, le=180, description="经度")


class AdminGuideUpdateRequest(GuideProfileRequest):
    """后台审核/定价请求"""
    real_price: Optional[int] = Field(None, ge=0, description="实际价格（分/小时）")
    status: Optional[Literal["online", "offline"]] = Field(None, description="上架状态")
    is_guide: Optional[bool] = Field(None, description="是否通过认证")


class AdminGuideCreateRequest(AdminGuideUpdateRequest):
    """后台创建地陪请求"""
    user_phone: str = Field(..., description="已注册用户手机号")
    stage_name: str = Field(..., max_length=50, description="艺名")
