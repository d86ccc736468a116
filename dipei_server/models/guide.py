"""
地陪资料相关数据模型
"""

from enum import Enum


class GuideStatus(str, Enum):
    """地陪上架状态"""
    ONLINE = "online"
    OFFLINE = "offline"
