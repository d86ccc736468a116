"""
校验工具测试
"""

from datetime import date

import pytest

from dipei_server.utils.geo import haversine_km
from dipei_server.utils.validators import is_valid_id_number, is_valid_password, is_valid_phone


@pytest.mark.parametrize("phone,expected", [
    ("13800138000", True),
    ("19912345678", True),
    ("12345678901", False),
    ("1380013800", False),
    ("138001380000", False),
    ("", False),
    ("13800138000\n", False),
])
def test_phone(phone, expected):
    assert is_valid_phone(phone) is expected


@pytest.mark.parametrize("password,expected", [
    ("abc12345", True),
    ("abcdefgh", False),
    ("12345678", False),
    ("ab1", False),
    ("a1" * 11, False),
])
def test_password(password, expected):
    assert is_valid_password(password) is expected


@pytest.mark.parametrize("id_number,expected", [
    ("11010119900307803X", True),
    ("11010119900307803x", True),
    ("110101199003078031", True),
    ("110101189003078031", False),   # 年份早于1900
    ("110101199013078031", False),   # 月份13
    ("110101199001328031", False),   # 日期32
    ("11010119900307803", False),
    ("1101011990030780AX", False),
    ("11010119900307803X\n", False),
])
def test_id_number(id_number, expected):
    assert is_valid_id_number(id_number) is expected


def test_id_number_future_year():
    future = f"110101{date.today().year + 1}0101803X"
    assert is_valid_id_number(future) is False


def test_haversine():
    assert haversine_km(30.0, 120.0, 30.0, 120.0) == 0
    # 杭州 -> 上海 约165公里
    assert 150 < haversine_km(30.27, 120.16, 31.23, 121.47) < 180


def test_development_settings_selected_by_env(monkeypatch):
    from dipei_server.config.settings import DevelopmentSettings, get_settings

    monkeypatch.setenv("APP_ENV", "development")
    assert isinstance(get_settings(), DevelopmentSettings)
    assert get_settings().debug is True

    monkeypatch.setenv("APP_ENV", "production")
    assert not isinstance(get_settings(), DevelopmentSettings)
