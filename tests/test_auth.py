"""
测试 httpconduit.auth 模块
"""

import pytest
import requests

from httpconduit import BearerTokenAuth


class TestBearerTokenAuth:
    """测试 BearerTokenAuth"""

    @pytest.mark.unit
    def test_sets_authorization_header(self):
        """UT-AUTH-001: 设置 Bearer 认证头"""
        prepared = requests.Request("GET", "https://api.example.com/items").prepare()

        BearerTokenAuth("abc123")(prepared)

        assert prepared.headers["Authorization"] == "Bearer abc123"

    @pytest.mark.unit
    def test_equality(self):
        assert BearerTokenAuth("a") == BearerTokenAuth("a")
        assert BearerTokenAuth("a") != BearerTokenAuth("b")
        assert hash(BearerTokenAuth("a")) == hash(BearerTokenAuth("a"))
