"""对话记录。"""

from typing import Any, Dict, Iterable, Iterator, List, Tuple

from dialog_core.domain.exceptions import ValidationError
from dialog_core.domain.models import Message


class Conversation:
    """只追加的有序消息序列。

    消息一经追加不会被修改或删除；唯一的例外是 clear()，
    仅用于在两次独立的对话之间复用同一个实例。
    """

    def __init__(self, messages: Iterable[Message] = ()):
        self._messages: List[Message] = []
        for message in messages:
            self.add_message(message)

    def add_message(self, message: Message) -> None:
        if not isinstance(message, Message):
            raise ValidationError(
                code="INVALID_MESSAGE",
                message=f"Expected Message, got {type(message).__name__}",
            )
        self._messages.append(message)

    @property
    def messages(self) -> Tuple[Message, ...]:
        """只读视图，传给 Driver 和模型客户端。"""
        return tuple(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def copy(self) -> "Conversation":
        return Conversation(self._messages)

    def to_payload(self) -> List[Dict[str, Any]]:
        return [m.to_payload() for m in self._messages]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def __getitem__(self, index):
        return self._messages[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Conversation):
            return NotImplemented
        return self._messages == other._messages

    def __repr__(self) -> str:
        return f"Conversation({self._messages!r})"

    def __str__(self) -> str:
        lines = [f"{m.role}: {m.content}" for m in self._messages]
        return "Conversation:\n" + "\n".join(lines)
