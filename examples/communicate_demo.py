"""Minimal demonstration of a scripted driver talking to DeepSeek.

需要设置环境变量 DEEPSEEK_API_KEY。
"""

from dialog_core import Done, ExchangeError, Fail, Message, Produce, communicate


class GreetingDriver:
    """先打招呼，收到一次回复后结束。"""

    def next(self, messages):
        if not messages:
            return Produce(Message.user("Hello, how are you?"))
        if len(messages) == 2 and messages[0].role == "user" and messages[1].role == "assistant":
            return Done()
        return Fail.unrecoverable("Invalid dialog")


if __name__ == "__main__":
    try:
        conversation = communicate(GreetingDriver())
    except ExchangeError as e:
        print("Exchange failed:", e)
    else:
        print(conversation)
