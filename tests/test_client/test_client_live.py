"""
BaseClient 真实套接字测试

使用本机 HTTP 服务验证依赖真实连接的行为:
- 不读取环境变量中的代理和 netrc 凭据
- 套接字读超时与总耗时上限
- 取消时关闭进行中的流式响应
- 并发请求数与连接池排队
"""

import time

import pytest
import requests
from urllib3.exceptions import ReadTimeoutError

from httpconduit import BaseClient, CancellationToken, TransportConfig
from httpconduit.exceptions import APIClientTimeoutError


def wait_until(condition, timeout=5.0):
    """轮询直到条件成立，超时返回 False"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return False


class TestEnvironmentIgnored:
    """测试只使用显式配置"""

    @pytest.mark.integration
    def test_proxy_environment_ignored(self, local_server, monkeypatch):
        """IT-LIVE-001: 未配置代理时直连，忽略 HTTP_PROXY 环境变量"""
        # Arrange: 环境变量指向一个无法连接的代理
        for name in ("HTTP_PROXY", "http_proxy", "ALL_PROXY", "all_proxy"):
            monkeypatch.setenv(name, "http://127.0.0.1:1")
        for name in ("NO_PROXY", "no_proxy"):
            monkeypatch.delenv(name, raising=False)

        # Act
        with BaseClient(local_server.address) as client:
            response = client.get("/headers")

        # Assert
        assert response.status_code == 200

    @pytest.mark.integration
    def test_netrc_credentials_ignored(self, local_server, monkeypatch, tmp_path):
        """IT-LIVE-002: 未配置 Bearer 令牌时不发送 netrc 中的凭据"""
        netrc_file = tmp_path / "netrc"
        netrc_file.write_text("machine 127.0.0.1 login alice password s3cret\n")
        monkeypatch.setenv("NETRC", str(netrc_file))

        with BaseClient(local_server.address) as client:
            received = client.get("/headers").json()

        assert "Authorization" not in received


class TestLiveTimeout:
    """测试真实连接上的超时"""

    @pytest.mark.integration
    def test_slow_response_times_out(self, local_server):
        """IT-LIVE-003: 服务器迟迟不返回响应头时及时抛出超时错误"""
        config = TransportConfig(local_server.address, timeout=0.2)

        with BaseClient(config) as client:
            start = time.monotonic()
            with pytest.raises(APIClientTimeoutError):
                client.get("/slow?hold=3")
            elapsed = time.monotonic() - start

        assert elapsed < 2.0

    @pytest.mark.integration
    def test_stalled_body_times_out(self, local_server):
        """IT-LIVE-004: 响应体读取停滞时同样抛出超时错误"""
        config = TransportConfig(local_server.address, timeout=0.2)

        with BaseClient(config) as client:
            with pytest.raises(APIClientTimeoutError):
                client.get("/trickle")

    @pytest.mark.integration
    def test_body_read_timeout_translated(self, local_server):
        """IT-LIVE-005: requests 把读响应体超时包装为 ConnectionError，仍转换为超时错误"""
        # Arrange
        config = TransportConfig(local_server.address, timeout=0.2)

        with BaseClient(config) as client:
            prepared = client.transport.prepare("GET", f"{local_server.address}/trickle")
            response = client.transport.send(prepared)

            # Act
            with pytest.raises(requests.exceptions.ConnectionError) as exc_info:
                response.content
            response.close()
            error = client._translate_error(exc_info.value, prepared.url)

        # Assert
        assert isinstance(exc_info.value.args[0], ReadTimeoutError)
        assert isinstance(error, APIClientTimeoutError)


class TestLiveCancellation:
    """测试真实连接上的取消"""

    @pytest.mark.integration
    def test_cancel_closes_streamed_response(self, local_server, mocker):
        """IT-LIVE-006: 已收到响应头的请求被取消时关闭响应，中止传输"""
        # Arrange
        close_spy = mocker.spy(requests.Response, "close")
        config = TransportConfig(local_server.address, timeout=None)
        token = CancellationToken()

        with BaseClient(config) as client:
            future = client.get_async("/trickle", cancel_token=token)
            assert local_server.headers_sent.wait(5)
            pending = next(iter(client._pending))
            assert wait_until(lambda: pending._response is not None)

            # Act
            token.cancel()

            # Assert
            assert future.cancelled() is True
            close_spy.assert_called()
            # 工作线程随后读取失败，不影响已确定的结局
            time.sleep(0.1)
            assert future.cancelled() is True


class TestLiveConcurrency:
    """测试真实连接上的并发"""

    @pytest.mark.integration
    def test_in_flight_requests_not_capped_by_default_workers(self, local_server):
        """IT-LIVE-007: 默认配置下进行中的请求数不受默认线程池大小限制"""
        # Arrange
        count = 40
        config = TransportConfig(local_server.address, timeout=10)

        with BaseClient(config) as client:
            # Act
            futures = [client.get_async("/slow?hold=10") for _ in range(count)]
            all_arrived = wait_until(lambda: local_server.in_flight == count)
            local_server.release.set()
            statuses = [f.result(timeout=10).status_code for f in futures]

        # Assert
        assert all_arrived is True
        assert statuses == [200] * count

    @pytest.mark.integration
    def test_pool_block_queues_excess_requests(self, local_server):
        """IT-LIVE-008: 超过单主机连接上限的请求在连接池中排队，不会失败"""
        config = TransportConfig(local_server.address, max_connections_per_server=2, max_workers=6, timeout=5)

        with BaseClient(config) as client:
            futures = [client.get_async("/slow?hold=0.2") for _ in range(6)]
            statuses = [f.result(timeout=10).status_code for f in futures]

        assert statuses == [200] * 6
        assert local_server.peak <= 2
