"""
httpconduit HTTP 客户端模块

基于统一传输配置的 HTTP 客户端，每个请求同时提供阻塞和可取消的非阻塞两种调用形式

主要组件:
    - TransportConfig: 传输配置（代理、Cookie、TLS 策略、超时、连接与重定向上限等）
    - TransportFactory: 根据配置构建长期存活的 Transport
    - BaseClient: 请求分发入口，提供 get/post/put/delete/send 及其 *_async 形式
    - CancellationToken: 取消令牌
    - 异常类: APIClientError 及其子类

使用示例:
    >>> from httpconduit import CancellationToken, TransportConfig, rest_client
    >>>
    >>> config = TransportConfig("https://api.example.com", "application/json", timeout=5.0)
    >>> config.bearer_token = "secret"
    >>> with rest_client(config) as client:
    ...     response = client.post("/items", '{"x": 1}')
    ...     token = CancellationToken()
    ...     future = client.get_async("/items", cancel_token=token)
"""

# 核心客户端
from httpconduit.client import BaseClient, rest_client

# 传输配置与构建
from httpconduit.config import CookieDescriptor, ProxySettings, TransportConfig, rest_config
from httpconduit.transport import Transport, TransportAdapter, TransportFactory

# TLS 信任策略
from httpconduit.tls import (
    CertificateValidator,
    PermissiveCertificateValidator,
    StrictCertificateValidator,
)

# 认证
from httpconduit.auth import BearerTokenAuth

# 取消与执行器
from httpconduit.cancellation import CancellationToken
from httpconduit.async_executor import BaseAsyncExecutor, ThreadPoolAsyncExecutor

# 异常类
from httpconduit.exceptions import (
    APIClientCancelledError,
    APIClientError,
    APIClientInvalidAddressError,
    APIClientNetworkError,
    APIClientRedirectError,
    APIClientTimeoutError,
    APIClientValidationError,
)

# 工具函数
from httpconduit.utils import sanitize_headers, sanitize_url

# 常量
from httpconduit.constants import (
    DEFAULT_MAX_AUTOMATIC_REDIRECTIONS,
    DEFAULT_MAX_CONNECTIONS_PER_SERVER,
    DEFAULT_TIMEOUT,
    HTTP_METHOD_DELETE,
    HTTP_METHOD_GET,
    HTTP_METHOD_PATCH,
    HTTP_METHOD_POST,
    HTTP_METHOD_PUT,
    MEDIA_TYPE_JSON,
    MEDIA_TYPE_TEXT,
)

__version__ = "1.0.0"

__all__ = [
    # 核心客户端
    "BaseClient",
    "rest_client",
    # 传输配置与构建
    "TransportConfig",
    "ProxySettings",
    "CookieDescriptor",
    "rest_config",
    "Transport",
    "TransportAdapter",
    "TransportFactory",
    # TLS 信任策略
    "CertificateValidator",
    "StrictCertificateValidator",
    "PermissiveCertificateValidator",
    # 认证
    "BearerTokenAuth",
    # 取消与执行器
    "CancellationToken",
    "BaseAsyncExecutor",
    "ThreadPoolAsyncExecutor",
    # 异常类
    "APIClientError",
    "APIClientValidationError",
    "APIClientInvalidAddressError",
    "APIClientNetworkError",
    "APIClientTimeoutError",
    "APIClientRedirectError",
    "APIClientCancelledError",
    # 工具函数
    "sanitize_headers",
    "sanitize_url",
    # 常量
    "DEFAULT_TIMEOUT",
    "DEFAULT_MAX_CONNECTIONS_PER_SERVER",
    "DEFAULT_MAX_AUTOMATIC_REDIRECTIONS",
    "MEDIA_TYPE_TEXT",
    "MEDIA_TYPE_JSON",
    "HTTP_METHOD_GET",
    "HTTP_METHOD_POST",
    "HTTP_METHOD_PUT",
    "HTTP_METHOD_DELETE",
    "HTTP_METHOD_PATCH",
]
