"""
订单相关的请求模式
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Literal, Optional


class NormalOrderCreateRequest(BaseModel):
    """普通预约单创建请求"""
    guide_id: int = Field(..., description="地陪ID")
    service_start_time: datetime = Field(..., description="服务开始时间")
    service_hours: int = Field(..., ge=1, le=24, description="服务时长（小时）")
    service_address: Optional[str] = Field(None, max_length=255, description="服务地点")
    remark: Optional[str] = Field(None, max_length=500, description="备注")


class CustomOrderCreateRequest(BaseModel):
    """定制单创建请求"""
    service_date: date = Field(..., description="服务日期")
    city: str = Field(..., min_length=1, max_length=50, description="城市")
    content: str = Field(..., min_length=10, max_length=2000, description="需求描述")
    budget: Optional[int] = Field(None, ge=0, description="预算（分）")
    requirements: Optional[str] = Field(None, max_length=1000, description="其他要求")


class StaffCustomOrderRequest(BaseModel):
    """客服代下定制单请求"""
    user_phone: str = Field(..., min_length=11, max_length=11, description="下单用户手机号")
    guide_phone: str = Field(..., min_length=11, max_length=11, description="地陪手机号")
    price_per_hour: int = Field(..., gt=0, description="小时单价（分）")
    duration: int = Field(..., gt=0, le=24, description="服务时长（小时）")
    service_start_time: datetime = Field(..., description="服务开始时间")
    service_address: str = Field(..., min_length=1, max_length=255, description="服务地点")
    content: str = Field(..., min_length=1, max_length=2000, description="服务内容")
    requirements: Optional[str] = Field(None, max_length=1000, description="其他要求")


class PayOrderRequest(BaseModel):
    """支付请求"""
    payment_method: Literal["wechat"] = Field("wechat", description="支付方式")


class AssignGuidesRequest(BaseModel):
    """指派候选地陪请求"""
    guide_ids: List[int] = Field(..., min_length=1, description="候选地陪ID列表（最多5个）")


class SelectGuideRequest(BaseModel):
    """选择地陪请求"""
    guide_id: int = Field(..., description="选定的地陪ID")


class CheckInRequest(BaseModel):
    """打卡请求"""
    type: Literal["start", "end"] = Field(..., description="打卡类型")
    attachment_id: int = Field(..., description="打卡照片附件ID")
    lat: float = Field(..., ge=-90, le=90, description="纬度")
    lng: float = Field(..., ge=-180, le=180, description="经度")


class OvertimeCreateRequest(BaseModel):
    """加时申请"""
    hours: int = Field(..., ge=1, le=8, description="加时小时数")


class AdminRefundRequest(BaseModel):
    """后台退款请求"""
    amount: int = Field(..., ge=0, description="退款金额（分）")
    reason: str = Field(..., min_length=1, max_length=255, description="退款原因")


class OrderStatusUpdateRequest(BaseModel):
    """后台订单状态更新请求"""
    status: Literal["waiting_service", "in_service", "service_ended", "completed", "cancelled"] = Field(
        ..., description="目标状态"
    )
