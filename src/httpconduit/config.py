"""
传输配置模块

TransportConfig 是构建传输对象所需参数的集合：基础地址、媒体类型、代理、
Cookie、Bearer 令牌、超时、连接与重定向上限、User-Agent 以及 TLS 策略。

配置对象在填充阶段可修改，交给 TransportFactory 后即被冻结为只读。
"""

from __future__ import annotations

import ssl
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlsplit, urlunsplit

from httpconduit.constants import (
    DEFAULT_MAX_AUTOMATIC_REDIRECTIONS,
    DEFAULT_MAX_CONNECTIONS_PER_SERVER,
    DEFAULT_MAX_WORKERS,
    DEFAULT_TIMEOUT,
    DEFAULT_TLS_VERSIONS,
    MEDIA_TYPE_JSON,
    MEDIA_TYPE_TEXT,
    SECURE_SCHEME,
    SUPPORTED_SCHEMES,
)
from httpconduit.exceptions import APIClientInvalidAddressError, APIClientValidationError
from httpconduit.tls import CertificateValidator

# 可通过构造参数直接设置的字段，代理和 Cookie 需通过 add_proxy/add_cookie 设置
_SETTABLE_OPTIONS = (
    "bearer_token",
    "timeout",
    "max_connections_per_server",
    "max_automatic_redirections",
    "user_agent",
    "allow_untrusted_certificates",
    "certificate_validator",
    "tls_versions",
    "max_workers",
)


def parse_absolute_address(address: str, scheme_required: bool = True) -> str:
    """
    校验并返回绝对地址

    参数:
        address: 待校验的地址字符串
        scheme_required: 是否要求 http/https 协议

    返回:
        去除首尾空白后的地址

    异常:
        APIClientInvalidAddressError: 地址不是包含协议和主机的绝对 URI
    """
    if not isinstance(address, str) or not address.strip():
        raise APIClientInvalidAddressError(f"Invalid address: {address!r}", address=address)

    address = address.strip()
    try:
        parsed = urlsplit(address)
        # 访问 port 会校验端口号是否合法
        parsed.port
    except ValueError as e:
        raise APIClientInvalidAddressError(f"Invalid address {address!r}: {e}", address=address) from e

    if not parsed.scheme or not parsed.hostname:
        raise APIClientInvalidAddressError(f"Address must be absolute: {address!r}", address=address)
    if scheme_required and parsed.scheme.lower() not in SUPPORTED_SCHEMES:
        raise APIClientInvalidAddressError(
            f"Unsupported scheme {parsed.scheme!r} in address {address!r}", address=address
        )
    return address


@dataclass(frozen=True)
class ProxySettings:
    """
    代理配置

    属性:
        address: 代理服务器地址
        username: 代理认证用户名，None 表示匿名代理
        password: 代理认证密码
    """

    address: str
    username: str | None = None
    password: str | None = None

    @property
    def anonymous(self) -> bool:
        return not self.username

    def to_url(self) -> str:
        """
        生成 requests 可用的代理 URL

        有凭据时以 user:password@ 形式嵌入地址，requests 会据此预先发送
        Proxy-Authorization 请求头
        """
        if self.anonymous:
            return self.address
        parsed = urlsplit(self.address)
        credentials = f"{quote(self.username, safe='')}:{quote(self.password or '', safe='')}"
        host = parsed.netloc.rsplit("@", 1)[-1]
        return urlunsplit(parsed._replace(netloc=f"{credentials}@{host}"))


@dataclass(frozen=True)
class CookieDescriptor:
    """单个 Cookie 描述，path/domain 为 None 时由 Cookie 容器使用默认作用域"""

    name: str
    value: str
    path: str | None = None
    domain: str | None = None


class TransportConfig:
    """
    传输配置

    属性:
        base_address: 基础地址，构造时校验，之后不可修改
        content_type: 请求体的媒体类型
        accept_type: Accept 请求头的媒体类型
        proxy: 代理配置，None 表示直连
        cookies: Cookie 描述列表，None 表示不启用 Cookie 容器
        bearer_token: Bearer 令牌，设置后每个请求都携带 Authorization 请求头
        timeout: 单个请求的总耗时上限（秒），None 表示不限制
        max_connections_per_server: 单个主机的最大并发连接数
        max_automatic_redirections: 自动跟随的最大重定向次数，0 表示不跟随
        user_agent: 覆盖默认的 User-Agent 请求头
        allow_untrusted_certificates: 显式开启后接受任意服务器证书（仅用于测试或抓包）
        certificate_validator: 自定义证书校验策略，优先级高于 allow_untrusted_certificates
        tls_versions: 安全连接允许的 TLS 协议版本
        max_workers: 非阻塞请求线程池大小，None 时与单主机连接池大小一致

    使用示例:
        >>> config = TransportConfig("https://api.example.com", MEDIA_TYPE_JSON)
        >>> config.bearer_token = "secret"
        >>> config.add_cookie("session", "abc")
        >>> config.add_proxy("http://proxy.local:3128", "user", "pass")
    """

    def __init__(
        self,
        base_address: str,
        content_type: str | None = None,
        accept_type: str | None = None,
        **kwargs: Any,
    ):
        """
        初始化传输配置

        参数:
            base_address: 基础地址，必须是绝对 http/https URI
            content_type: 请求体媒体类型，默认 text/html
            accept_type: Accept 媒体类型，未指定时与 content_type 一致
            **kwargs: 其他可设置字段的初始值（timeout、bearer_token 等）

        异常:
            APIClientInvalidAddressError: 基础地址无法解析为绝对 URI
        """
        object.__setattr__(self, "_frozen", False)
        object.__setattr__(self, "_base_address", parse_absolute_address(base_address))

        self.content_type = content_type or MEDIA_TYPE_TEXT
        self.accept_type = accept_type or self.content_type
        self.proxy: ProxySettings | None = None
        self.cookies: list[CookieDescriptor] | None = None
        self.bearer_token: str | None = None
        self.timeout: float | None = DEFAULT_TIMEOUT
        self.max_connections_per_server: int = DEFAULT_MAX_CONNECTIONS_PER_SERVER
        self.max_automatic_redirections: int = DEFAULT_MAX_AUTOMATIC_REDIRECTIONS
        self.user_agent: str | None = None
        self.allow_untrusted_certificates: bool = False
        self.certificate_validator: CertificateValidator | None = None
        self.tls_versions: tuple[ssl.TLSVersion, ...] = DEFAULT_TLS_VERSIONS
        self.max_workers: int | None = DEFAULT_MAX_WORKERS

        for name, value in kwargs.items():
            if name not in _SETTABLE_OPTIONS:
                raise APIClientValidationError(f"Unknown transport option: {name}")
            setattr(self, name, value)

    @property
    def base_address(self) -> str:
        return self._base_address

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def is_secure(self) -> bool:
        """基础地址是否使用 https 协议"""
        return urlsplit(self._base_address).scheme.lower() == SECURE_SCHEME

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "base_address":
            raise APIClientValidationError("base_address is set once at construction and cannot be changed")
        if self._frozen:
            raise APIClientValidationError(f"TransportConfig is frozen, cannot set {name!r}")
        object.__setattr__(self, name, value)

    def add_proxy(self, address: str, username: str | None = None, password: str | None = None) -> None:
        """
        设置代理，重复调用时以最后一次为准

        参数:
            address: 代理地址
            username: 用户名，为空时配置为匿名代理
            password: 密码
        """
        address = parse_absolute_address(address, scheme_required=False)
        if username:
            self.proxy = ProxySettings(address=address, username=username, password=password or "")
        else:
            self.proxy = ProxySettings(address=address)

    def add_cookie(self, name: str, value: str, path: str | None = None, domain: str | None = None) -> None:
        """追加一个 Cookie 描述，不去重；首次调用时创建 Cookie 列表"""
        if self._frozen:
            raise APIClientValidationError("TransportConfig is frozen, cannot add cookies")
        if self.cookies is None:
            self.cookies = []
        self.cookies.append(CookieDescriptor(name=name, value=value, path=path, domain=domain))

    def freeze(self) -> "TransportConfig":
        """
        校验可调参数并冻结配置

        返回:
            self，便于链式调用

        异常:
            APIClientValidationError: 参数超出允许范围

        执行步骤:
            1. 已冻结时直接返回
            2. 校验超时、连接上限、重定向上限、线程数、TLS 版本
            3. 将 Cookie 列表转为元组，标记为只读
        """
        if self._frozen:
            return self

        if self.timeout is not None and self.timeout <= 0:
            raise APIClientValidationError(f"timeout must be > 0 or None, got {self.timeout}")
        if self.max_connections_per_server <= 0:
            raise APIClientValidationError(
                f"max_connections_per_server must be > 0, got {self.max_connections_per_server}"
            )
        if self.max_automatic_redirections < 0:
            raise APIClientValidationError(
                f"max_automatic_redirections must be >= 0, got {self.max_automatic_redirections}"
            )
        if self.max_workers is not None and self.max_workers <= 0:
            raise APIClientValidationError(f"max_workers must be > 0 or None, got {self.max_workers}")
        if not self.tls_versions:
            raise APIClientValidationError("tls_versions must not be empty")

        if self.cookies is not None:
            object.__setattr__(self, "cookies", tuple(self.cookies))
        object.__setattr__(self, "tls_versions", tuple(self.tls_versions))
        object.__setattr__(self, "_frozen", True)
        return self

    def __repr__(self) -> str:
        return (
            f"<TransportConfig base_address={self._base_address!r} "
            f"content_type={self.content_type!r} accept_type={self.accept_type!r} frozen={self._frozen}>"
        )


def rest_config(base_address: str, **kwargs: Any) -> TransportConfig:
    """
    REST 预设：请求体和 Accept 媒体类型默认均为 application/json

    参数:
        base_address: 基础地址
        **kwargs: 覆盖预设或设置其他字段，例如 content_type、timeout
    """
    kwargs.setdefault("content_type", MEDIA_TYPE_JSON)
    kwargs.setdefault("accept_type", MEDIA_TYPE_JSON)
    return TransportConfig(base_address, **kwargs)
