"""
核心基础设施：数据库、异常、安全与错误处理
"""
