"""
BaseClient 多线程测试

测试 BaseClient 在多线程环境下的行为:
- 同一客户端的并发请求
- 线程池排队
- 跨线程取消
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed

import pytest
import responses

from httpconduit import BaseClient, CancellationToken, TransportConfig

BASE = "https://api.example.com"


class TestConcurrentRequests:
    """测试并发请求"""

    @pytest.mark.unit
    @responses.activate
    def test_concurrent_blocking_calls(self, client):
        """测试多个线程共享同一客户端发起阻塞请求"""
        # Arrange
        for user_id in range(10):
            responses.add(responses.GET, f"{BASE}/users/{user_id}", body=f"user-{user_id}")

        # Act
        with ThreadPoolExecutor(max_workers=5) as executor:
            futures = {executor.submit(client.get, f"/users/{user_id}"): user_id for user_id in range(10)}
            results = {futures[f]: f.result().text for f in as_completed(futures)}

        # Assert
        assert results == {user_id: f"user-{user_id}" for user_id in range(10)}

    @pytest.mark.unit
    @responses.activate
    def test_many_async_requests(self, client):
        """测试大量非阻塞请求并发完成"""
        responses.add(responses.GET, f"{BASE}/items", body="ok")

        futures = [client.get_async("/items") for _ in range(50)]

        assert all(f.result(timeout=10).status_code == 200 for f in futures)
        assert len(responses.calls) == 50

    @pytest.mark.unit
    @responses.activate
    def test_requests_queue_beyond_worker_limit(self):
        """测试超过线程数的请求排队执行而不是失败"""
        responses.add(responses.GET, f"{BASE}/items", body="ok")
        config = TransportConfig(BASE, max_workers=2, max_connections_per_server=2)

        with BaseClient(config) as client:
            futures = [client.get_async("/items") for _ in range(12)]
            statuses = [f.result(timeout=10).status_code for f in futures]

        assert statuses == [200] * 12

    @pytest.mark.unit
    @responses.activate
    def test_queue_time_not_counted_against_timeout(self):
        """测试超时从工作线程开始执行时计算，在线程池中排队的时间不计入"""
        # Arrange
        def slow(request):
            time.sleep(0.3)
            return 200, {}, "ok"

        responses.add_callback(responses.GET, f"{BASE}/slow", callback=slow)
        config = TransportConfig(BASE, max_workers=2, timeout=0.8)

        # Act
        with BaseClient(config) as client:
            futures = [client.get_async("/slow") for _ in range(6)]
            statuses = [f.result(timeout=10).status_code for f in futures]

        # Assert: 三批请求共约 0.9 秒，超过单个请求的超时时间
        assert statuses == [200] * 6

    @pytest.mark.unit
    @responses.activate
    def test_cancel_from_other_thread(self, client, blocking_endpoint):
        """测试在其他线程中触发取消"""
        # Arrange
        responses.add_callback(responses.GET, f"{BASE}/slow", callback=blocking_endpoint)
        token = CancellationToken()
        futures = [client.get_async("/slow", cancel_token=token) for _ in range(4)]
        assert blocking_endpoint.started.wait(2)

        # Act
        canceller = threading.Thread(target=token.cancel)
        canceller.start()
        canceller.join(2)

        # Assert
        assert all(f.cancelled() for f in futures)

    @pytest.mark.unit
    @responses.activate
    def test_concurrent_close_and_requests(self, blocking_endpoint):
        """测试关闭客户端与进行中的请求并发"""
        responses.add_callback(responses.GET, f"{BASE}/slow", callback=blocking_endpoint)
        client = BaseClient(BASE)
        futures = [client.get_async("/slow") for _ in range(5)]

        closer = threading.Thread(target=client.close)
        closer.start()
        closer.join(2)

        assert client.closed is True
        assert all(f.cancelled() for f in futures)
