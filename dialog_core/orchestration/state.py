"""编排状态定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class ExchangeState(str, Enum):
    AWAITING_DRIVER = "awaiting_driver"
    RETRYING_DRIVER = "retrying_driver"
    AWAITING_MODEL = "awaiting_model"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExchangeState.COMPLETED, ExchangeState.FAILED)


@dataclass
class RetryState:
    """单轮内的 Driver 重试状态，每轮开始时重置。"""

    attempt_count: int = 0
    last_detail: str = ""
    delays: List[float] = field(default_factory=list)
