"""Driver 协议与结果类型。

Driver 是本地决定“用户侧下一句说什么”的一方。每轮编排层调用一次
``driver.next(messages)``，返回值之一：

- Produce(message): 追加一条用户侧消息，然后交给模型。
- Done(): 对话结束，不再调用模型。
- Fail(kind, detail): kind 为 "recoverable" 时编排层按指数退避重试，
  为 "unrecoverable" 时立即失败。

为了写起来方便，也接受：直接返回 Message、返回 str（视为用户消息）、
返回 None（视为 Done），以及抛出 RecoverableError / UnrecoverableError。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, List, Literal, Optional, Protocol, Tuple, Union

from dialog_core.domain.exceptions import RecoverableError, UnrecoverableError, ValidationError
from dialog_core.domain.models import Message


FailKind = Literal["recoverable", "unrecoverable"]
RECOVERABLE: FailKind = "recoverable"
UNRECOVERABLE: FailKind = "unrecoverable"


@dataclass(frozen=True)
class Produce:
    message: Message


@dataclass(frozen=True)
class Done:
    pass


@dataclass(frozen=True)
class Fail:
    kind: FailKind
    detail: str

    def __post_init__(self) -> None:
        if self.kind not in (RECOVERABLE, UNRECOVERABLE):
            raise ValidationError(code="INVALID_DRIVER_OUTCOME", message=f"Unknown failure kind: {self.kind!r}")

    @classmethod
    def recoverable(cls, detail: str) -> "Fail":
        return cls(kind=RECOVERABLE, detail=detail)

    @classmethod
    def unrecoverable(cls, detail: str) -> "Fail":
        return cls(kind=UNRECOVERABLE, detail=detail)


DriverOutcome = Union[Produce, Done, Fail]


class Driver(Protocol):
    """用户侧对话驱动者协议。"""

    def next(self, messages: Tuple[Message, ...]) -> Union[DriverOutcome, Message, str, None]:
        ...


def normalize_outcome(value: object) -> DriverOutcome:
    """把 Driver 的各种返回形式统一成 Produce / Done / Fail。"""

    if isinstance(value, (Produce, Done, Fail)):
        return value
    if value is None:
        return Done()
    if isinstance(value, Message):
        return Produce(value)
    if isinstance(value, str):
        return Produce(Message.user(value))
    raise ValidationError(
        code="INVALID_DRIVER_OUTCOME",
        message=f"Driver returned unsupported value of type {type(value).__name__}",
    )


def invoke_driver(driver: Driver, messages: Tuple[Message, ...]) -> DriverOutcome:
    """调用一次 Driver，并把分类异常转换为 Fail。"""

    try:
        value = driver.next(messages)
    except RecoverableError as exc:
        return Fail.recoverable(exc.message)
    except UnrecoverableError as exc:
        return Fail.unrecoverable(exc.message)
    return normalize_outcome(value)


class FunctionDriver:
    """把普通函数包装成 Driver。"""

    def __init__(self, fn: Callable[[Tuple[Message, ...]], object]):
        self._fn = fn

    def next(self, messages: Tuple[Message, ...]) -> object:
        return self._fn(messages)


class ScriptedDriver:
    """按顺序每轮说一句话，说完后报告 Done。"""

    def __init__(self, script: Iterable[Union[str, Message]]):
        self._script: List[Message] = [
            item if isinstance(item, Message) else Message.user(item) for item in script
        ]
        self._position = 0

    def next(self, messages: Tuple[Message, ...]) -> Optional[DriverOutcome]:
        if self._position >= len(self._script):
            return Done()
        message = self._script[self._position]
        self._position += 1
        return Produce(message)

    def reset(self) -> None:
        self._position = 0
