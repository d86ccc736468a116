"""
钱包与提现相关的请求模式
"""

from pydantic import BaseModel, Field
from typing import Literal, Optional


class WithdrawApplyRequest(BaseModel):
    """提现申请"""
    amount: int = Field(..., gt=0, description="提现金额（分）")
    user_note: str = Field(..., min_length=1, max_length=255, description="收款账户信息")


class WithdrawAuditRequest(BaseModel):
    """提现审核"""
    status: Literal["completed", "rejected"] = Field(..., description="审核结果")
    admin_note: Optional[str] = Field(None, max_length=255, description="审核备注，驳回时必填")
