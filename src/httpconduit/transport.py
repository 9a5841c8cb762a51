"""
传输构建模块

TransportFactory 根据冻结后的 TransportConfig 构建一个长期存活的 Transport：
    - requests.Session 负责连接池、Cookie 容器、代理、默认请求头和认证
    - TransportAdapter 负责 TLS 协议版本、证书校验策略和单主机连接上限
    - Transport 负责相对地址解析、请求构造和发送

每个客户端实例只调用一次 build()，得到的 Transport 在客户端生命周期内被所有请求共享，
请求本身不会修改它。
"""

from __future__ import annotations

import logging
import ssl
from http.cookiejar import DefaultCookiePolicy
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter
from requests.cookies import RequestsCookieJar

from httpconduit.auth import BearerTokenAuth
from httpconduit.config import TransportConfig, parse_absolute_address
from httpconduit.constants import (
    ACCEPT_ENCODING,
    GLOBAL_CONNECTION_LIMIT,
    POOL_CONNECTIONS,
)
from httpconduit.exceptions import APIClientInvalidAddressError
from httpconduit.tls import build_ssl_context, resolve_certificate_validator
from httpconduit.utils import sanitize_headers, sanitize_url

logger = logging.getLogger(__name__)

class TransportAdapter(HTTPAdapter):
    """
    支持自定义 SSLContext 的 HTTP 适配器

    直连和代理两条路径都会使用同一个 SSLContext，保证 TLS 策略一致

    参数:
        ssl_context: 安全连接使用的 SSLContext，None 时使用 urllib3 默认配置
        **kwargs: 传给 HTTPAdapter 的连接池参数
    """

    def __init__(self, ssl_context: ssl.SSLContext | None = None, **kwargs):
        # HTTPAdapter.__init__ 内部会调用 init_poolmanager，需先保存 ssl_context
        self.ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        if self.ssl_context is not None:
            pool_kwargs["ssl_context"] = self.ssl_context
        super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)

    def proxy_manager_for(self, proxy, **proxy_kwargs):
        if self.ssl_context is not None:
            proxy_kwargs.setdefault("ssl_context", self.ssl_context)
        return super().proxy_manager_for(proxy, **proxy_kwargs)


class Transport:
    """
    已配置的网络传输对象

    属性:
        session: 持有连接池、Cookie 容器、代理和默认请求头的 Session
        base_address: 相对地址解析所基于的基础地址
        timeout: 单个请求的超时时间（秒），None 表示不限制
        allow_redirects: 是否自动跟随重定向
        content_type: 请求体的媒体类型
        max_connections: 单主机连接池大小，也是可同时进行的请求数
    """

    def __init__(
        self,
        session: requests.Session,
        base_address: str,
        timeout: float | None,
        allow_redirects: bool,
        content_type: str,
        max_connections: int,
    ):
        self.session = session
        self.base_address = base_address
        self.timeout = timeout
        self.allow_redirects = allow_redirects
        self.content_type = content_type
        self.max_connections = max_connections
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def max_redirects(self) -> int:
        return self.session.max_redirects

    def resolve(self, uri: str | None) -> str:
        """
        将请求 URI 解析为绝对地址

        参数:
            uri: 绝对地址，或相对于 base_address 的地址；None 等价于空字符串

        返回:
            绝对地址

        异常:
            APIClientInvalidAddressError: 解析结果不是合法的绝对 http/https 地址
        """
        try:
            url = urljoin(self.base_address, uri or "")
        except (TypeError, ValueError) as e:
            raise APIClientInvalidAddressError(f"Invalid request uri {uri!r}: {e}", address=uri) from e
        return parse_absolute_address(url)

    def prepare(
        self,
        method: str,
        url: str,
        body: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> requests.PreparedRequest:
        """合并 Session 级默认请求头、Cookie 和认证，生成待发送的请求"""
        request = requests.Request(method=method.upper(), url=url, data=body, headers=headers)
        return self.session.prepare_request(request)

    def send(self, prepared: requests.PreparedRequest) -> requests.Response:
        """
        发送请求，返回未读取响应体的流式响应

        流式响应允许在取消时通过关闭响应中止传输
        """
        return self.session.send(
            prepared,
            stream=True,
            timeout=self.timeout,
            allow_redirects=self.allow_redirects,
        )

    def close(self) -> None:
        """关闭 Session，释放连接池中的连接"""
        if not self._closed:
            self.session.close()
            self._closed = True


class TransportFactory:
    """
    传输对象工厂

    build() 是纯构建逻辑，不产生副作用，每次调用都会得到拥有独立连接池的新 Transport。
    单主机连接上限被限制在 GLOBAL_CONNECTION_LIMIT 以内
    """

    def build(self, config: TransportConfig) -> Transport:
        """
        根据配置构建 Transport

        参数:
            config: 传输配置，调用后被冻结

        返回:
            新构建的 Transport

        执行步骤:
            1. 冻结并校验配置
            2. 创建 Session：默认请求头、代理、Cookie 容器、重定向上限、认证
            3. 基础地址为 https 时构建 TLS 策略
            4. 挂载设置了单主机连接上限的适配器
        """
        config.freeze()

        session = requests.Session()
        # 只使用显式配置：不读取环境变量中的代理和 CA 证书，也不读取 netrc 凭据
        session.trust_env = False
        session.max_redirects = config.max_automatic_redirections
        session.headers.update(self._build_default_headers(config))

        if config.proxy is not None:
            proxy_url = config.proxy.to_url()
            session.proxies = {"http": proxy_url, "https": proxy_url}

        session.cookies = self._build_cookie_jar(config)

        if config.bearer_token:
            session.auth = BearerTokenAuth(config.bearer_token)

        ssl_context = None
        if config.is_secure:
            validator = resolve_certificate_validator(
                config.certificate_validator, config.allow_untrusted_certificates
            )
            ssl_context = build_ssl_context(config.tls_versions, validator)
            session.verify = validator.verify

        pool_maxsize = min(config.max_connections_per_server, GLOBAL_CONNECTION_LIMIT)
        adapter = TransportAdapter(
            ssl_context=ssl_context,
            pool_connections=POOL_CONNECTIONS,
            pool_maxsize=pool_maxsize,
            pool_block=True,
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        transport = Transport(
            session=session,
            base_address=config.base_address,
            timeout=config.timeout,
            allow_redirects=config.max_automatic_redirections > 0,
            content_type=config.content_type,
            max_connections=pool_maxsize,
        )

        logger.info(
            f"Transport built for {sanitize_url(config.base_address)}: "
            f"timeout={config.timeout}s, pool_maxsize={pool_maxsize}, "
            f"max_redirects={config.max_automatic_redirections}, "
            f"proxy={sanitize_url(config.proxy.address) if config.proxy else None}, "
            f"cookies={len(config.cookies or ())}"
        )
        logger.debug(f"Transport default headers: {sanitize_headers(session.headers)}")
        return transport

    @staticmethod
    def _build_default_headers(config: TransportConfig) -> dict[str, str]:
        headers = {
            "Accept": config.accept_type,
            "Content-Type": config.content_type,
            "Accept-Encoding": ACCEPT_ENCODING,
        }
        if config.user_agent:
            headers["User-Agent"] = config.user_agent
        return headers

    @staticmethod
    def _build_cookie_jar(config: TransportConfig) -> RequestsCookieJar:
        """
        构建 Cookie 容器

        未配置 Cookie 时返回拒绝所有 Cookie 的容器，服务器下发的 Cookie 也不会被保存和回传
        """
        if config.cookies is None:
            return RequestsCookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))

        jar = RequestsCookieJar()
        for cookie in config.cookies:
            scope = {}
            if cookie.path is not None:
                scope["path"] = cookie.path
            if cookie.domain is not None:
                scope["domain"] = cookie.domain
            jar.set(cookie.name, cookie.value, **scope)
        return jar
