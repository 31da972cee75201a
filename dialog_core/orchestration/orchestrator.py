"""Driver 与模型之间的多轮编排核心。

一轮 = 一次 Driver 发言 + 一次模型回复。状态机：

    AWAITING_DRIVER --Produce--> AWAITING_MODEL --reply--> AWAITING_DRIVER（下一轮）
    AWAITING_DRIVER --Done--> COMPLETED
    AWAITING_DRIVER --Fail(recoverable)--> RETRYING_DRIVER --退避后重新调用 Driver--> ...
    任意 Fail(unrecoverable) / 重试耗尽 / 模型错误 --> FAILED

只有 Driver 的可恢复错误会在这一层重试；模型客户端已经在传输层重试过
瞬时错误，这里遇到模型错误直接失败。
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from dialog_core.config.defaults import (
    BASE_DELAY,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    MAX_RETRIES,
)
from dialog_core.domain.conversation import Conversation
from dialog_core.domain.exceptions import BusinessError, ExchangeError, ValidationError
from dialog_core.domain.models import Message, ModelRequest
from dialog_core.infrastructure.logging.logger import logger
from dialog_core.infrastructure.retry import backoff_delay
from dialog_core.orchestration.driver import (
    UNRECOVERABLE,
    Done,
    Driver,
    DriverOutcome,
    Fail,
    Produce,
    invoke_driver,
)
from dialog_core.orchestration.state import ExchangeState, RetryState
from dialog_core.providers.base import ModelClient


@dataclass(frozen=True)
class OrchestratorConfig:
    """一次编排运行的固定配置。

    Attributes:
        model / max_tokens / temperature: 原样透传给模型客户端。
        max_retries: 每轮 Driver 可恢复错误的最大重试次数。
        base_delay: 退避基数（秒），第 k 次重试前等待 base_delay * 2**(k-1)。
        max_delay: 可选的退避上限（秒），默认不封顶。
        keep_partial_on_failure: 失败时把已积累的对话放进 ExchangeError.extra["partial"]。
    """

    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    max_retries: int = MAX_RETRIES
    base_delay: float = BASE_DELAY
    max_delay: Optional[float] = None
    keep_partial_on_failure: bool = False

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValidationError(code="INVALID_CONFIG", message="max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValidationError(code="INVALID_CONFIG", message="base_delay must be >= 0")
        if self.max_delay is not None and self.max_delay < 0:
            raise ValidationError(code="INVALID_CONFIG", message="max_delay must be >= 0")
        if self.max_tokens < 1:
            raise ValidationError(code="INVALID_CONFIG", message="max_tokens must be >= 1")

    @classmethod
    def from_settings(cls, cfg, **overrides: Any) -> "OrchestratorConfig":
        values: Dict[str, Any] = {
            "model": cfg.default_model,
            "max_tokens": cfg.default_max_tokens,
            "temperature": cfg.default_temperature,
            "max_retries": cfg.max_retries,
            "base_delay": cfg.base_delay,
            "max_delay": cfg.max_delay,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass
class ExchangeResult:
    """一次编排的终态：成功时带完整对话，失败时带错误。"""

    conversation: Optional[Conversation] = None
    error: Optional[ExchangeError] = None
    rounds: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


class Orchestrator:
    """交替调用 Driver 与模型，维护对话并执行错误策略。

    一个实例独占自己的 Conversation 和 RetryState，同一时刻只处理一次调用；
    多个实例之间没有共享可变状态，可以并发运行。
    """

    def __init__(
        self,
        driver: Driver,
        model_client: ModelClient,
        config: Optional[OrchestratorConfig] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._driver = driver
        self._model = model_client
        self._config = config or OrchestratorConfig()
        self._sleep = sleep
        self._conversation = Conversation()
        self._state = ExchangeState.AWAITING_DRIVER
        self._retry = RetryState()
        self._round = 0
        self._error: Optional[ExchangeError] = None
        self._run_lock = threading.Lock()
        self._log_ctx: Dict[str, Any] = {}
        self.reset()

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def state(self) -> ExchangeState:
        return self._state

    @property
    def round_index(self) -> int:
        return self._round

    @property
    def retry_state(self) -> RetryState:
        return self._retry

    @property
    def messages(self):
        return self._conversation.messages

    def run(self) -> Conversation:
        """执行完整的一次对话，成功返回对话副本，失败抛出 ExchangeError。"""

        if not self._run_lock.acquire(blocking=False):
            raise ValidationError(code="EXCHANGE_IN_PROGRESS", message="Orchestrator is already running")
        try:
            self.reset()
            start_time = time.time()
            logger.info("exchange.start", extra={"extra": {
                **self._log_ctx,
                "model": self._config.model,
                "max_retries": self._config.max_retries,
                "base_delay": self._config.base_delay,
            }})
            while not self._state.is_terminal:
                self.step()
            elapsed = round(time.time() - start_time, 3)
            if self._error is not None:
                raise self._error
            logger.info("exchange.completed", extra={"extra": {
                **self._log_ctx,
                "rounds": self._round,
                "messages": len(self._conversation),
                "elapsed_seconds": elapsed,
            }})
            return self._conversation.copy()
        finally:
            self._run_lock.release()

    def try_run(self) -> ExchangeResult:
        """同 run()，但把 ExchangeError 折叠进 ExchangeResult。"""

        try:
            conversation = self.run()
        except ExchangeError as exc:
            return ExchangeResult(error=exc, rounds=self._round)
        return ExchangeResult(conversation=conversation, rounds=self._round)

    def reset(self) -> None:
        """清空对话，回到初始状态，用于复用同一个实例。"""

        self._conversation.clear()
        self._error = None
        self._round = 0
        self._log_ctx = {"exchange_id": f"ex-{uuid4().hex}"}
        self._begin_round()

    def step(self) -> ExchangeState:
        """执行一次状态迁移并返回新状态。"""

        if self._state is ExchangeState.AWAITING_DRIVER:
            self._on_driver_outcome(invoke_driver(self._driver, self._conversation.messages))
        elif self._state is ExchangeState.RETRYING_DRIVER:
            self._retry_driver()
        elif self._state is ExchangeState.AWAITING_MODEL:
            self._model_turn()
        return self._state

    # ---- 状态处理 ----

    def _begin_round(self) -> None:
        self._round += 1
        self._retry = RetryState()
        self._state = ExchangeState.AWAITING_DRIVER

    def _on_driver_outcome(self, outcome: DriverOutcome) -> None:
        if isinstance(outcome, Produce):
            self._conversation.add_message(outcome.message)
            logger.info("driver.produce", extra={"extra": {
                **self._log_ctx,
                "round": self._round,
                "role": outcome.message.role,
                "content_chars": len(outcome.message.content),
            }})
            self._state = ExchangeState.AWAITING_MODEL
        elif isinstance(outcome, Done):
            logger.info("driver.done", extra={"extra": {**self._log_ctx, "round": self._round}})
            self._state = ExchangeState.COMPLETED
        elif isinstance(outcome, Fail) and outcome.kind == UNRECOVERABLE:
            self._fail(
                ExchangeError.DRIVER_UNRECOVERABLE,
                f"driver unrecoverable error: {outcome.detail}",
                side="driver",
                detail=outcome.detail,
            )
        else:
            self._retry.last_detail = outcome.detail
            self._state = ExchangeState.RETRYING_DRIVER

    def _retry_driver(self) -> None:
        cfg = self._config
        if self._retry.attempt_count >= cfg.max_retries:
            self._fail(
                ExchangeError.DRIVER_RETRIES_EXHAUSTED,
                f"driver recoverable error after {cfg.max_retries} retries: {self._retry.last_detail}",
                side="driver",
                detail=self._retry.last_detail,
            )
            return
        delay = backoff_delay(cfg.base_delay, self._retry.attempt_count, cfg.max_delay)
        logger.warning("driver.retry", extra={"extra": {
            **self._log_ctx,
            "round": self._round,
            "attempt": self._retry.attempt_count + 1,
            "delay": delay,
            "error": self._retry.last_detail,
        }})
        self._sleep(delay)
        self._retry.attempt_count += 1
        self._retry.delays.append(delay)
        # 失败的尝试没有追加任何消息，Driver 看到的是同一份对话
        self._on_driver_outcome(invoke_driver(self._driver, self._conversation.messages))

    def _model_turn(self) -> None:
        req = ModelRequest(
            model=self._config.model,
            messages=self._conversation.messages,
            max_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
        )
        try:
            reply = Message.assistant(self._model.complete(req))
        except Exception as exc:  # noqa: BLE001 - 任何模型侧失败都折叠为 MODEL_ERROR
            detail = exc.message if isinstance(exc, BusinessError) else f"{type(exc).__name__}: {exc}"
            self._fail(
                ExchangeError.MODEL_ERROR,
                f"model error: {detail}",
                side="model",
                detail=detail,
                cause=exc,
            )
            return
        self._conversation.add_message(reply)
        logger.info("model.reply", extra={"extra": {
            **self._log_ctx,
            "round": self._round,
            "provider": getattr(self._model, "name", ""),
            "content_chars": len(reply.content),
        }})
        self._begin_round()

    def _fail(self, code: str, message: str, *, side: str, detail: str, cause: Optional[BaseException] = None) -> None:
        extra: Dict[str, Any] = {
            "side": side,
            "round_index": self._round,
            "attempts": self._retry.attempt_count,
            "detail": detail,
        }
        if self._config.keep_partial_on_failure:
            extra["partial"] = self._conversation.copy()
        error = ExchangeError(code=code, message=message, http_status=500, **extra)
        error.__cause__ = cause
        self._error = error
        # 失败时丢弃已积累的对话
        self._conversation.clear()
        self._state = ExchangeState.FAILED
        logger.error("exchange.failed", extra={"extra": {
            **self._log_ctx,
            "code": code,
            "side": side,
            "round": self._round,
            "attempts": self._retry.attempt_count,
            "error": message,
        }})
