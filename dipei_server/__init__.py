"""
地陪预约平台后端服务
"""
