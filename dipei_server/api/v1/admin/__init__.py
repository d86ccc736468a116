"""
后台管理接口（客服 cs / 管理员 admin）
"""
