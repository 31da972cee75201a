"""统一的消息与模型请求数据结构。

- Message: 一条对话消息（system/user/assistant），不可变。
- ModelRequest: 交给模型客户端的完整请求：对话只读视图 + 透传参数。

Provider 适配器只依赖这些模型，并负责在各自的 API JSON 与它们之间做转换。
"""

from dataclasses import dataclass
from typing import Any, Dict, Literal, Tuple, get_args

from dialog_core.domain.exceptions import ValidationError


# LLM 消息角色类型（与 OpenAI / DeepSeek 的 role 字段对应）
Role = Literal["system", "user", "assistant"]
ROLES = frozenset(get_args(Role))


@dataclass(frozen=True)
class Message:
    """一条对话消息。除了在对话中的位置之外没有其他身份。"""

    role: Role
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValidationError(code="INVALID_MESSAGE", message=f"Unknown role: {self.role!r}")
        if not isinstance(self.content, str):
            raise ValidationError(
                code="INVALID_MESSAGE",
                message=f"Message content must be str, got {type(self.content).__name__}",
            )

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role="assistant", content=content)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    def to_payload(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ModelRequest:
    """一次完整的模型请求。

    model / max_tokens / temperature 原样透传给传输层，编排层不做解释。
    """

    model: str
    messages: Tuple[Message, ...]
    max_tokens: int
    temperature: float
