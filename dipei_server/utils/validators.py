"""
通用校验工具
手机号、密码强度、身份证号格式
"""

import re
from datetime import date

PHONE_PATTERN = re.compile(r"^1[3-9]\d{9}$")
ID_NUMBER_PATTERN = re.compile(r"^\d{17}[\dXx]$")
_LETTER = re.compile(r"[A-Za-z]")
_DIGIT = re.compile(r"\d")


def is_valid_phone(phone: str) -> bool:
    return bool(phone) and bool(PHONE_PATTERN.fullmatch(phone))


def is_valid_password(password: str) -> bool:
    """8-20位，必须同时包含字母和数字"""
    if not password or not 8 <= len(password) <= 20:
        return False
    return bool(_LETTER.search(password)) and bool(_DIGIT.search(password))


def is_valid_id_number(id_number: str) -> bool:
    """
    校验18位身份证号格式

    只校验格式与出生日期段的取值范围：
    年份 1900~当前年份，月份 1~12，日期 1~31。
    """
    if not id_number or not ID_NUMBER_PATTERN.fullmatch(id_number):
        return False

    year = int(id_number[6:10])
    month = int(id_number[10:12])
    day = int(id_number[12:14])

    if year < 1900 or year > date.today().year:
        return False
    if month < 1 or month > 12:
        return False
    if day < 1 or day > 31:
        return False
    return True
