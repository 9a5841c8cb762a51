"""HTTP 客户端核心模块

提供基于统一传输配置的 HTTP 客户端，支持：
- GET/POST/PUT/DELETE 以及自定义方法的通用发送
- 每个操作同时提供阻塞形式和可取消的非阻塞形式
- 超时、取消、重定向超限等错误的统一区分

阻塞形式只是等待非阻塞形式返回的 Future，两者共享同一条请求构造和发送路径。
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import CancelledError, Future
from typing import Any, TypeAlias

import requests
from urllib3.exceptions import TimeoutError as Urllib3TimeoutError

from httpconduit.async_executor import BaseAsyncExecutor, ThreadPoolAsyncExecutor
from httpconduit.cancellation import CancellationToken
from httpconduit.config import TransportConfig, rest_config
from httpconduit.constants import (
    DEFAULT_BODY_ENCODING,
    HTTP_METHOD_DELETE,
    HTTP_METHOD_GET,
    HTTP_METHOD_POST,
    HTTP_METHOD_PUT,
)
from httpconduit.exceptions import (
    APIClientCancelledError,
    APIClientError,
    APIClientInvalidAddressError,
    APIClientNetworkError,
    APIClientRedirectError,
    APIClientTimeoutError,
    APIClientValidationError,
)
from httpconduit.transport import Transport, TransportFactory
from httpconduit.utils import generate_request_id, sanitize_headers, sanitize_url

# 类型别名定义
Body: TypeAlias = str | bytes | None

logger = logging.getLogger(__name__)


class _PendingRequest:
    """
    单个非阻塞请求的完成状态

    Future 在结果确定前始终保持 PENDING 状态，因此取消可以在任意时刻生效。
    取消、超时、成功、失败四种结局通过 _claim() 竞争，只有第一个生效。

    参数:
        request_id: 请求唯一标识符，用于日志追踪
        timeout: 从工作线程开始执行起计算的总耗时上限（秒），None 表示不限制
        cancel_token: 取消令牌（可选）
    """

    def __init__(self, request_id: str, timeout: float | None, cancel_token: CancellationToken | None):
        self.request_id = request_id
        self.timeout = timeout
        self.future: Future = Future()
        self._cancel_token = cancel_token
        self._lock = threading.Lock()
        self._settled = False
        self._response: requests.Response | None = None
        self._timer: threading.Timer | None = None

    @property
    def settled(self) -> bool:
        return self._settled

    def start(self) -> None:
        """
        关联取消信号

        执行步骤:
            1. 监听 Future 被直接 cancel() 的情况
            2. 向取消令牌注册回调，令牌已触发时立即取消
        """
        self.future.add_done_callback(self._on_future_done)
        if self._cancel_token is not None:
            self._cancel_token.register(self.cancel)

    def start_deadline(self) -> bool:
        """
        工作线程开始执行时启动超时计时，在执行器队列中等待的时间不计入超时

        返回:
            请求尚未结束时返回 True
        """
        with self._lock:
            if self._settled:
                return False
            if self.timeout is not None:
                self._timer = threading.Timer(self.timeout, self.expire)
                self._timer.daemon = True
                self._timer.start()
        return True

    def attach(self, response: requests.Response) -> bool:
        """
        记录已收到响应头的流式响应，供取消或超时时关闭

        返回:
            请求尚未结束时返回 True；已结束时关闭响应并返回 False
        """
        with self._lock:
            if not self._settled:
                self._response = response
                return True
        response.close()
        return False

    def set_result(self, response: requests.Response) -> bool:
        if not self._claim():
            return False
        if not self.future.set_running_or_notify_cancel():
            response.close()
            return False
        # 日志须先于 Future 完成写出
        logger.info(f"[{self.request_id}] Received {response.status_code} response")
        logger.debug(f"[{self.request_id}] Response headers: {response.headers}")
        self.future.set_result(response)
        return True

    def set_exception(self, error: BaseException) -> bool:
        if not self._claim():
            return False
        if not self.future.set_running_or_notify_cancel():
            return False
        if isinstance(error, APIClientError):
            logger.error(f"[{self.request_id}] Request failed: {error}")
        else:
            logger.error(f"[{self.request_id}] Request failed with unexpected error: {error}", exc_info=error)
        self.future.set_exception(error)
        return True

    def cancel(self) -> None:
        """以取消状态结束请求，并关闭进行中的响应"""
        if not self._claim():
            return
        logger.info(f"[{self.request_id}] Request cancelled")
        self.future.cancel()
        self._abort()

    def expire(self) -> None:
        """超过总耗时上限，以超时错误结束请求"""
        error = APIClientTimeoutError(
            f"Request {self.request_id} timed out after {self.timeout}s", timeout=self.timeout
        )
        if self.set_exception(error):
            self._abort()

    def _claim(self) -> bool:
        with self._lock:
            if self._settled:
                return False
            self._settled = True
        if self._timer is not None:
            self._timer.cancel()
        if self._cancel_token is not None:
            self._cancel_token.unregister(self.cancel)
        return True

    def _abort(self) -> None:
        response = self._response
        if response is not None:
            response.close()

    def _on_future_done(self, future: Future) -> None:
        if future.cancelled():
            self.cancel()


class BaseClient:
    """
    HTTP 客户端

    一个客户端实例绑定一个基础地址和一个 Transport，Transport 在构造时创建一次，
    在 close() 时释放。所有请求共享 Transport 的连接池、Cookie 容器和默认请求头。

    构造方式:
        BaseClient("https://api.example.com")                      # 媒体类型均为 text/html
        BaseClient("https://api.example.com", "application/xml")   # Content-Type 与 Accept 相同
        BaseClient(TransportConfig(...))                           # 完整配置

    类属性:
        transport_factory_class: 传输工厂类或实例
        async_executor_class: 异步执行器类或实例

    使用示例:
        >>> with BaseClient("https://api.example.com") as client:
        ...     response = client.get("/users")
        ...     future = client.post_async("/users", '{"name": "alice"}')
        ...     created = future.result()
    """

    # 传输工厂类或实例，负责根据配置构建 Transport
    transport_factory_class: type[TransportFactory] | TransportFactory = TransportFactory

    # 异步执行器类或实例，负责在后台执行非阻塞请求
    async_executor_class: type[BaseAsyncExecutor] | BaseAsyncExecutor = ThreadPoolAsyncExecutor

    def __init__(
        self,
        base_address: str | TransportConfig,
        accept_type: str | None = None,
        executor: BaseAsyncExecutor | type[BaseAsyncExecutor] | None = None,
        transport_factory: TransportFactory | type[TransportFactory] | None = None,
    ):
        """
        初始化客户端实例

        参数:
            base_address: 基础地址字符串，或完整的 TransportConfig
            accept_type: Accept 媒体类型，Content-Type 与之相同；仅在传入地址字符串时可用
            executor: 异步执行器类或实例，传入实例时由调用方负责关闭
            transport_factory: 传输工厂类或实例

        异常:
            APIClientInvalidAddressError: 基础地址不是合法的绝对地址
            APIClientValidationError: 配置无效

        执行步骤:
            1. 规范化为 TransportConfig
            2. 通过传输工厂构建 Transport（配置随之冻结）
            3. 解析异步执行器
        """
        if isinstance(base_address, TransportConfig):
            if accept_type is not None:
                raise APIClientValidationError("accept_type cannot be combined with a TransportConfig")
            config = base_address
        else:
            config = TransportConfig(base_address, content_type=accept_type, accept_type=accept_type)

        self.config = config
        factory = self._resolve_component(transport_factory, "transport_factory_class", TransportFactory)
        self.transport: Transport = factory.build(config)

        # 每个进行中的请求占用一个工作线程，默认线程数与连接池大小一致，排队只发生在连接池中
        max_workers = config.max_workers or self.transport.max_connections
        self._owns_executor = not isinstance(executor or self.async_executor_class, BaseAsyncExecutor)
        self.async_executor_instance = self._resolve_component(
            executor, "async_executor_class", BaseAsyncExecutor, max_workers=max_workers
        )
        self._closed = False
        # 进行中的请求，关闭客户端时统一取消
        self._pending: set[_PendingRequest] = set()
        self._pending_lock = threading.Lock()

    def _resolve_component(self, component, class_attr_name, base_class, **init_kwargs):
        """
        统一的组件解析方法：优先使用传入配置，否则使用类级别配置

        参数:
            component: 传入的组件配置（类或实例）
            class_attr_name: 类属性名称
            base_class: 基类类型
            **init_kwargs: 实例化时的额外参数

        返回:
            组件实例
        """
        source = component if component is not None else getattr(self, class_attr_name)

        if isinstance(source, type) and issubclass(source, base_class):
            return source(**init_kwargs)
        if isinstance(source, base_class):
            return source

        raise APIClientValidationError(f"{class_attr_name} must be a {base_class.__name__} subclass or instance")

    @property
    def base_address(self) -> str:
        return self.config.base_address

    @property
    def closed(self) -> bool:
        return self._closed

    # ========== 阻塞形式 ==========

    def get(self, uri: str, cancel_token: CancellationToken | None = None) -> requests.Response:
        """发送 GET 请求并等待响应"""
        return self._wait(self.get_async(uri, cancel_token))

    def post(self, uri: str, body: Body, cancel_token: CancellationToken | None = None) -> requests.Response:
        """发送 POST 请求并等待响应，body 可以为空字符串"""
        return self._wait(self.post_async(uri, body, cancel_token))

    def put(self, uri: str, body: Body, cancel_token: CancellationToken | None = None) -> requests.Response:
        """发送 PUT 请求并等待响应，body 可以为空字符串"""
        return self._wait(self.put_async(uri, body, cancel_token))

    def delete(self, uri: str, cancel_token: CancellationToken | None = None) -> requests.Response:
        """发送 DELETE 请求并等待响应"""
        return self._wait(self.delete_async(uri, cancel_token))

    def send(
        self,
        uri: str,
        body: Body = None,
        method: str = HTTP_METHOD_GET,
        cancel_token: CancellationToken | None = None,
    ) -> requests.Response:
        """
        以指定方法发送请求并等待响应

        参数:
            uri: 绝对地址或相对于基础地址的地址
            body: 请求体，None 表示无请求体
            method: HTTP 方法
            cancel_token: 取消令牌（可选）

        返回:
            未经解析的 requests.Response

        异常:
            APIClientInvalidAddressError: 地址无法解析
            APIClientTimeoutError: 超过配置的超时时间
            APIClientRedirectError: 重定向次数超限
            APIClientNetworkError: 连接、DNS、TLS 等网络错误
            APIClientCancelledError: 请求被取消
        """
        return self._wait(self.send_async(uri, body, method, cancel_token))

    # ========== 非阻塞形式 ==========

    def get_async(self, uri: str, cancel_token: CancellationToken | None = None) -> Future:
        return self.send_async(uri, None, HTTP_METHOD_GET, cancel_token)

    def post_async(self, uri: str, body: Body, cancel_token: CancellationToken | None = None) -> Future:
        return self.send_async(uri, body, HTTP_METHOD_POST, cancel_token)

    def put_async(self, uri: str, body: Body, cancel_token: CancellationToken | None = None) -> Future:
        return self.send_async(uri, body, HTTP_METHOD_PUT, cancel_token)

    def delete_async(self, uri: str, cancel_token: CancellationToken | None = None) -> Future:
        return self.send_async(uri, None, HTTP_METHOD_DELETE, cancel_token)

    def send_async(
        self,
        uri: str,
        body: Body = None,
        method: str = HTTP_METHOD_GET,
        cancel_token: CancellationToken | None = None,
    ) -> Future:
        """
        以指定方法发起请求，立即返回 Future

        Future 的三种结局：
            - 成功: result() 返回 requests.Response（响应体已读取完毕）
            - 失败: result() 抛出 APIClientError 子类
            - 取消: cancelled() 为 True，取消令牌触发或调用 future.cancel() 均可

        参数:
            uri: 绝对地址或相对于基础地址的地址
            body: 请求体，None 表示无请求体
            method: HTTP 方法
            cancel_token: 取消令牌（可选）

        返回:
            concurrent.futures.Future

        异常:
            APIClientInvalidAddressError: 地址无法解析（同步抛出，不会发起网络请求）
            APIClientValidationError: 客户端已关闭或请求体类型无效

        执行步骤:
            1. 解析地址、编码请求体并构造请求
            2. 创建完成状态对象并关联取消令牌
            3. 提交到异步执行器，工作线程开始执行时才启动超时计时
        """
        if self._closed:
            raise APIClientValidationError("Client is closed")

        request_id = generate_request_id()
        prepared = self._build_request(method, uri, body)

        pending = _PendingRequest(request_id, self.transport.timeout, cancel_token)
        logger.info(f"[{request_id}] Starting {prepared.method} request to {sanitize_url(prepared.url)}")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"[{request_id}] Request headers: {sanitize_headers(prepared.headers)}")

        with self._pending_lock:
            self._pending.add(pending)
        pending.future.add_done_callback(lambda _: self._forget(pending))

        pending.start()
        if not pending.settled:
            try:
                self.async_executor_instance.submit(self._execute, pending, prepared)
            except RuntimeError as e:
                # 外部传入的执行器已关闭
                pending.set_exception(e)
                raise
        return pending.future

    # ========== 内部实现 ==========

    def _build_request(self, method: str, uri: str, body: Body) -> requests.PreparedRequest:
        """
        构造待发送的请求

        文本请求体使用 UTF-8 编码，并标记为配置的 Content-Type；
        字节请求体原样发送；None 表示无请求体
        """
        if not method or not isinstance(method, str):
            raise APIClientValidationError(f"Invalid HTTP method: {method!r}")

        url = self.transport.resolve(uri)
        content_type = self.transport.content_type

        if body is None:
            data, headers = None, None
        elif isinstance(body, str):
            data = body.encode(DEFAULT_BODY_ENCODING)
            if "charset=" not in content_type.lower():
                content_type = f"{content_type}; charset={DEFAULT_BODY_ENCODING}"
            headers = {"Content-Type": content_type}
        elif isinstance(body, (bytes, bytearray, memoryview)):
            data = bytes(body)
            headers = {"Content-Type": content_type}
        else:
            raise APIClientValidationError(f"body must be str or bytes, got {type(body).__name__}")

        return self.transport.prepare(method, url, body=data, headers=headers)

    def _execute(self, pending: _PendingRequest, prepared: requests.PreparedRequest) -> None:
        """
        在工作线程中执行请求，并把结局写入 pending

        执行步骤:
            1. 请求在排队期间已被取消则直接返回，否则开始超时计时
            2. 发送请求，收到响应头后登记响应，便于取消时关闭
            3. 读取完整响应体
            4. 将 requests 异常转换为客户端异常
        """
        if not pending.start_deadline():
            return

        try:
            response = self.transport.send(prepared)
            if not pending.attach(response):
                return
            # 读取完整响应体，读超时同样生效
            response.content
        except requests.exceptions.RequestException as e:
            pending.set_exception(self._translate_error(e, prepared.url))
            return
        except Exception as e:
            pending.set_exception(e)
            return

        pending.set_result(response)

    def _translate_error(self, error: requests.exceptions.RequestException, url: str) -> APIClientError:
        """将 requests 异常转换为客户端异常，超时和重定向超限与一般网络错误区分开"""
        safe_url = sanitize_url(url)
        if isinstance(error, requests.exceptions.TooManyRedirects):
            return APIClientRedirectError(
                f"Request to {safe_url} exceeded {self.transport.max_redirects} redirects",
                max_redirects=self.transport.max_redirects,
            )
        if isinstance(error, requests.exceptions.Timeout) or any(
            isinstance(arg, Urllib3TimeoutError) for arg in error.args
        ):
            return APIClientTimeoutError(
                f"Request to {safe_url} timed out after {self.transport.timeout}s", timeout=self.transport.timeout
            )
        if isinstance(error, (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema)):
            return APIClientInvalidAddressError(f"Invalid request url {safe_url}: {error}", address=url)
        return APIClientNetworkError(f"Request to {safe_url} failed: {error}")

    def _forget(self, pending: _PendingRequest) -> None:
        with self._pending_lock:
            self._pending.discard(pending)

    @staticmethod
    def _wait(future: Future) -> requests.Response:
        """阻塞等待 Future 完成，取消状态转换为 APIClientCancelledError"""
        try:
            return future.result()
        except CancelledError:
            raise APIClientCancelledError("Request was cancelled") from None

    def close(self) -> None:
        """
        关闭客户端，释放连接池资源

        执行步骤:
            1. 以取消状态结束所有进行中的请求
            2. 关闭 Transport 的 Session
            3. 关闭客户端自己创建的执行器，不等待进行中的请求
        """
        if self._closed:
            return
        self._closed = True

        with self._pending_lock:
            pending_requests = list(self._pending)
        for pending in pending_requests:
            pending.cancel()

        self.transport.close()
        if self._owns_executor:
            self.async_executor_instance.shutdown(wait=False)
        logger.info("Session closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} base_address={self.base_address!r} closed={self._closed}>"


def rest_client(base_address: str | TransportConfig, **kwargs: Any) -> BaseClient:
    """
    创建 REST 预设客户端：Content-Type 和 Accept 默认均为 application/json

    参数:
        base_address: 基础地址字符串，或完整的 TransportConfig（原样使用其媒体类型）
        **kwargs: 传给 BaseClient 的其他参数（executor、transport_factory）
    """
    config = base_address if isinstance(base_address, TransportConfig) else rest_config(base_address)
    return BaseClient(config, **kwargs)
