"""
通用测试 Fixture 定义

提供测试所需的客户端、配置、阻塞型模拟端点和本机 HTTP 服务
"""

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlsplit

import pytest

BASE_ADDRESS = "https://api.example.com"


@pytest.fixture
def base_config():
    """默认配置的 TransportConfig"""
    from httpconduit import TransportConfig

    return TransportConfig(BASE_ADDRESS)


@pytest.fixture
def client():
    """默认配置的 BaseClient 实例，测试结束后自动关闭"""
    from httpconduit import BaseClient

    instance = BaseClient(BASE_ADDRESS)
    yield instance
    instance.close()


@pytest.fixture
def rest(requests_mock):
    """REST 预设客户端，/items 端点由 requests_mock 模拟"""
    from httpconduit import rest_client

    requests_mock.get(f"{BASE_ADDRESS}/items", json={"items": []})
    requests_mock.post(f"{BASE_ADDRESS}/items", status_code=201, json={"id": 1})

    instance = rest_client(BASE_ADDRESS)
    yield instance
    instance.close()


class BlockingEndpoint:
    """
    阻塞型模拟端点

    作为 responses 的 callback 使用：收到请求时设置 started，然后等待 release
    （最长 hold 秒）后返回响应，用于测试取消和超时
    """

    def __init__(self, status=200, body="done", hold=2.0):
        self.status = status
        self.body = body
        self.hold = hold
        self.started = threading.Event()
        self.release = threading.Event()

    def __call__(self, request):
        self.started.set()
        self.release.wait(self.hold)
        return self.status, {}, self.body


@pytest.fixture
def blocking_endpoint():
    """阻塞型模拟端点，测试结束时释放所有等待中的请求"""
    endpoint = BlockingEndpoint()
    yield endpoint
    endpoint.release.set()


class LocalServer(ThreadingHTTPServer):
    """
    本机 HTTP 服务，用于真实套接字上的超时、取消和连接池测试

    端点:
        /headers: 以 JSON 返回收到的请求头
        /slow?hold=秒: 等待 release（最长 hold 秒）后返回 200
        /trickle: 发送响应头和部分响应体后设置 headers_sent，然后等待 release
    """

    daemon_threads = True
    request_queue_size = 128

    def __init__(self):
        super().__init__(("127.0.0.1", 0), LocalHandler)
        self.address = f"http://127.0.0.1:{self.server_address[1]}"
        self.release = threading.Event()
        self.headers_sent = threading.Event()
        self._count_lock = threading.Lock()
        self.in_flight = 0
        self.peak = 0

    def enter(self):
        with self._count_lock:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)

    def leave(self):
        with self._count_lock:
            self.in_flight -= 1

    def handle_error(self, request, client_address):
        # 客户端主动断开连接属于预期情况
        pass


class LocalHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        parsed = urlsplit(self.path)
        self.server.enter()
        try:
            if parsed.path == "/headers":
                self._reply(json.dumps(dict(self.headers)).encode())
            elif parsed.path == "/slow":
                hold = float(parse_qs(parsed.query).get("hold", ["2.0"])[0])
                self.server.release.wait(hold)
                self._reply(b"done")
            elif parsed.path == "/trickle":
                self.send_response(200)
                self.send_header("Content-Length", "100")
                self.end_headers()
                self.wfile.write(b"x" * 10)
                self.wfile.flush()
                self.server.headers_sent.set()
                self.server.release.wait(5)
            else:
                self.send_error(404)
        finally:
            self.server.leave()

    def _reply(self, body):
        self.send_response(200)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def local_server():
    """在后台线程运行的本机 HTTP 服务，测试结束时释放等待中的请求并关闭"""
    server = LocalServer()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.release.set()
    server.shutdown()
    server.server_close()
