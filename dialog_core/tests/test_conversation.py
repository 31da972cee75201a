import pytest

from dialog_core.domain.conversation import Conversation
from dialog_core.domain.exceptions import ValidationError
from dialog_core.domain.models import Message


def test_message_roles():
    assert Message.user("hi") == Message(role="user", content="hi")
    assert Message.assistant("yo").role == "assistant"
    assert Message.system("be nice").to_payload() == {"role": "system", "content": "be nice"}


def test_message_rejects_unknown_role():
    with pytest.raises(ValidationError) as exc:
        Message(role="tool", content="x")
    assert exc.value.code == "INVALID_MESSAGE"


def test_message_is_immutable():
    msg = Message.user("hi")
    with pytest.raises(AttributeError):
        msg.content = "changed"


def test_conversation_append_and_view():
    conv = Conversation()
    assert len(conv) == 0
    conv.add_message(Message.user("a"))
    conv.add_message(Message.assistant("r1"))
    view = conv.messages
    assert isinstance(view, tuple)
    assert [m.content for m in view] == ["a", "r1"]
    assert conv[1].role == "assistant"
    assert conv.to_payload() == [
        {"role": "user", "content": "a"},
        {"role": "assistant", "content": "r1"},
    ]


def test_conversation_view_does_not_track_later_appends():
    conv = Conversation([Message.user("a")])
    view = conv.messages
    conv.add_message(Message.assistant("b"))
    assert len(view) == 1
    assert len(conv) == 2


def test_conversation_rejects_non_message():
    conv = Conversation()
    with pytest.raises(ValidationError):
        conv.add_message({"role": "user", "content": "x"})


def test_conversation_clear_and_copy():
    conv = Conversation([Message.user("a"), Message.assistant("b")])
    snapshot = conv.copy()
    conv.clear()
    assert len(conv) == 0
    assert len(snapshot) == 2
    assert snapshot == Conversation([Message.user("a"), Message.assistant("b")])


def test_conversation_str():
    conv = Conversation([Message.user("hello"), Message.assistant("hi")])
    assert str(conv) == "Conversation:\nuser: hello\nassistant: hi"
