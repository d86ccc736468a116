"""
API routes and endpoints.
"""

from fastapi import APIRouter
from .v1 import attachments, auth, guides, orders, overtime, system_configs, users, wallet
from .v1.admin import audit_logs as admin_audit_logs
from .v1.admin import guides as admin_guides
from .v1.admin import orders as admin_orders
from .v1.admin import stats as admin_stats
from .v1.admin import system_configs as admin_system_configs
from .v1.admin import users as admin_users
from .v1.admin import withdrawals as admin_withdrawals

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["认证"])
api_router.include_router(users.router, prefix="/users", tags=["用户"])
api_router.include_router(guides.router, prefix="/guides", tags=["地陪"])
api_router.include_router(orders.router, prefix="/orders", tags=["订单"])
api_router.include_router(overtime.router, prefix="/overtime", tags=["加时"])
api_router.include_router(wallet.router, prefix="/wallet", tags=["钱包"])
api_router.include_router(attachments.router, prefix="/attachments", tags=["附件"])
api_router.include_router(system_configs.router, prefix="/system-configs", tags=["系统配置"])

# 后台管理
api_router.include_router(admin_users.router, prefix="/admin/users", tags=["后台-用户"])
api_router.include_router(admin_guides.router, prefix="/admin/guides", tags=["后台-地陪"])
api_router.include_router(admin_orders.router, prefix="/admin/orders", tags=["后台-订单"])
api_router.include_router(admin_withdrawals.router, prefix="/admin/withdrawals", tags=["后台-提现"])
api_router.include_router(admin_stats.router, prefix="/admin/stats", tags=["后台-统计"])
api_router.include_router(admin_audit_logs.router, prefix="/admin/audit-logs", tags=["后台-审计"])
api_router.include_router(admin_system_configs.router, prefix="/admin/system-configs", tags=["后台-配置"])
