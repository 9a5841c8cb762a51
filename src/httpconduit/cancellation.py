"""
取消令牌模块

提供线程安全的取消信号，用于中止进行中的非阻塞请求
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    取消令牌

    一个令牌可以传给任意数量的请求；触发后，所有仍在进行中的关联请求都会被中止，
    已完成的请求不受影响。令牌只能从未取消变为已取消，不可重置。

    使用示例:
        >>> token = CancellationToken()
        >>> future = client.get_async("/slow", cancel_token=token)
        >>> token.cancel()
        >>> future.cancelled()
        True
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        """令牌是否已被触发"""
        return self._event.is_set()

    def cancel(self) -> None:
        """
        触发取消信号

        执行步骤:
            1. 加锁标记为已取消，重复调用直接返回
            2. 取出并清空所有已注册的回调
            3. 在锁外依次执行回调，单个回调失败不影响其他回调
        """
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception(f"Cancellation callback {callback!r} failed")

    def register(self, callback: Callable[[], None]) -> None:
        """
        注册取消回调

        参数:
            callback: 无参可调用对象。令牌已被触发时立即在当前线程执行
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def unregister(self, callback: Callable[[], None]) -> None:
        """移除已注册的回调，回调不存在时忽略"""
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

    def wait(self, timeout: float | None = None) -> bool:
        """阻塞等待令牌被触发，返回是否已取消"""
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        return f"<CancellationToken cancelled={self.cancelled}>"
