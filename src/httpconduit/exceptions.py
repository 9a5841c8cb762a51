"""
HTTP 客户端异常模块

定义所有 API 客户端相关的异常类，提供统一的错误处理机制

异常层次:
    APIClientError
    ├── APIClientValidationError
    │   └── APIClientInvalidAddressError
    ├── APIClientNetworkError
    ├── APIClientTimeoutError
    ├── APIClientRedirectError
    └── APIClientCancelledError
"""

from __future__ import annotations


class APIClientError(Exception):
    """
    API 客户端异常基类

    所有自定义异常的基类，用于统一捕获和处理客户端相关错误
    """


class APIClientValidationError(APIClientError):
    """
    输入验证异常

    当传输配置无效，或在配置冻结后尝试修改时抛出此异常
    """


class APIClientInvalidAddressError(APIClientValidationError):
    """
    地址解析异常

    当基础地址或单次请求的 URI 无法解析为合法的绝对地址时抛出此异常

    参数:
        message: 错误描述信息
        address: 无法解析的原始地址（可选）

    属性:
        address: 保存原始地址，便于排查
    """

    def __init__(self, message: str, address: str | None = None):
        super().__init__(message)
        self.address = address


class APIClientNetworkError(APIClientError):
    """
    网络连接异常

    当网络连接失败、DNS 解析失败、TLS 握手失败等网络层面问题时抛出此异常
    """


class APIClientTimeoutError(APIClientError):
    """
    请求超时异常

    当请求执行时间超过设定的超时时间时抛出此异常

    参数:
        message: 错误描述信息
        timeout: 生效的超时时间（秒，可选）
    """

    def __init__(self, message: str, timeout: float | None = None):
        super().__init__(message)
        self.timeout = timeout


class APIClientRedirectError(APIClientError):
    """
    重定向次数超限异常

    当重定向链长度超过 max_automatic_redirections 仍未得到非重定向响应时抛出此异常

    参数:
        message: 错误描述信息
        max_redirects: 允许的最大重定向次数（可选）
    """

    def __init__(self, message: str, max_redirects: int | None = None):
        super().__init__(message)
        self.max_redirects = max_redirects


class APIClientCancelledError(APIClientError):
    """
    请求取消异常

    调用方通过取消令牌中止请求后，阻塞形式的调用抛出此异常。
    与超时和网络异常互不相同，便于调用方区分处理
    """
