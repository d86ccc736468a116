"""
v1 接口
"""
