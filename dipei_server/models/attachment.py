"""
附件用途枚举
"""

from enum import Enum


class AttachmentUsage(str, Enum):
    """附件用途，每种用途对应一套存储策略"""
    AVATAR = "avatar"
    GUIDE_PHOTO = "guide_photo"
    CHECK_IN = "check_in"
    SYSTEM = "system"
