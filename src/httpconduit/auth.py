"""Bearer 令牌认证"""

from __future__ import annotations

from requests import PreparedRequest
from requests.auth import AuthBase


class BearerTokenAuth(AuthBase):
    """为每个请求添加 Authorization: Bearer <token> 请求头"""

    def __init__(self, token: str):
        self.token = token

    def __call__(self, request: PreparedRequest) -> PreparedRequest:
        request.headers["Authorization"] = f"Bearer {self.token}"
        return request

    def __eq__(self, other):
        return isinstance(other, BearerTokenAuth) and other.token == self.token

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self.token)
