"""指数退避与传输层重试。

编排层只用 backoff_delay 计算 Driver 重试的等待时间；
call_with_retry 供 HTTP 客户端重试瞬时错误（网络、超时、限流、5xx）。
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple, TypeVar

from dialog_core.config.defaults import (
    HTTP_BASE_DELAY,
    HTTP_MAX_DELAY,
    HTTP_MAX_RETRIES,
    RETRYABLE_STATUS_CODES,
)
from dialog_core.domain.exceptions import ApiError, BusinessError, NetworkError, RateLimitError

T = TypeVar("T")


def backoff_delay(base_delay: float, attempt: int, max_delay: Optional[float] = None) -> float:
    """第 attempt 次重试前（从 0 开始）的等待秒数：base_delay * 2**attempt。"""

    delay = base_delay * (2 ** attempt)
    if max_delay is not None:
        delay = min(delay, max_delay)
    return delay


@dataclass
class RetryPolicy:
    """传输层重试配置。"""

    max_retries: int = HTTP_MAX_RETRIES
    base_delay: float = HTTP_BASE_DELAY
    max_delay: Optional[float] = HTTP_MAX_DELAY
    retryable_status_codes: Tuple[int, ...] = field(default=RETRYABLE_STATUS_CODES)

    @classmethod
    def from_settings(cls, cfg) -> "RetryPolicy":
        return cls(
            max_retries=cfg.http_max_retries,
            base_delay=cfg.http_base_delay,
            max_delay=cfg.http_max_delay,
        )

    def is_transient(self, exc: BaseException) -> bool:
        if isinstance(exc, (NetworkError, RateLimitError)):
            return True
        if isinstance(exc, ApiError):
            return exc.http_status in self.retryable_status_codes
        return False


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    logger: Optional[logging.Logger] = None,
) -> T:
    """执行 operation，瞬时错误按指数退避重试，最终失败时抛出最后一次的异常。"""

    log = logger or logging.getLogger("dialog_core")
    attempt = 0
    while True:
        try:
            return operation()
        except BusinessError as exc:
            if not policy.is_transient(exc) or attempt >= policy.max_retries:
                raise
            delay = backoff_delay(policy.base_delay, attempt, policy.max_delay)
            log.warning(
                "transport.retry",
                extra={"extra": {"attempt": attempt + 1, "delay": delay, "code": exc.code, "error": exc.message}},
            )
            sleep(delay)
            attempt += 1
