"""异步执行器模块

为非阻塞请求提供执行策略，当前支持线程池执行方式
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

logger = logging.getLogger(__name__)


class BaseAsyncExecutor:
    """
    异步执行器基类

    定义提交单个任务的统一接口，子类需实现具体的执行策略

    参数:
        max_workers: 最大工作线程数
        **kwargs: 其他传递给具体执行器的参数
    """

    def __init__(self, max_workers: int | None = None, **kwargs):
        self.max_workers = max_workers
        self.executor_kwargs = kwargs

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """
        提交一个任务

        参数:
            fn: 待执行的可调用对象
            *args, **kwargs: 传给 fn 的参数

        返回:
            代表任务执行结果的 Future
        """
        raise NotImplementedError("Subclasses must implement the 'submit' method.")

    def shutdown(self, wait: bool = True) -> None:
        """释放执行器资源"""


class ThreadPoolAsyncExecutor(BaseAsyncExecutor):
    """
    线程池异步执行器

    使用 ThreadPoolExecutor 在后台线程中执行请求，适用于 I/O 密集型任务。
    线程池在首次提交时创建；超过 max_workers 的任务在线程池队列中排队，不会失败。
    关闭后不再接受新任务。
    """

    def __init__(self, max_workers: int | None = None, **kwargs):
        kwargs.setdefault("thread_name_prefix", "httpconduit")
        super().__init__(max_workers=max_workers, **kwargs)
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()
        self._shutdown = False

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._shutdown:
                raise RuntimeError("cannot submit to a shut down executor")
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.max_workers, **self.executor_kwargs)
                logger.debug(f"Thread pool started with max_workers={self._executor._max_workers}")
            return self._executor

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        return self._get_executor().submit(fn, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        """
        关闭线程池

        参数:
            wait: 是否等待已提交的任务执行完毕
        """
        with self._lock:
            self._shutdown = True
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait, cancel_futures=not wait)
            logger.debug("Thread pool shut down")
