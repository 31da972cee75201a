"""编排状态机测试。"""

import threading

import pytest

from dialog_core.domain.conversation import Conversation
from dialog_core.domain.exceptions import (
    ApiError,
    ExchangeError,
    RecoverableError,
    ValidationError,
)
from dialog_core.domain.models import Message
from dialog_core.orchestration import (
    Done,
    ExchangeState,
    Fail,
    FunctionDriver,
    Orchestrator,
    OrchestratorConfig,
    Produce,
    ScriptedDriver,
)


class FakeModel:
    """按顺序返回预设回复，并记录每次请求。"""

    name = "fake"

    def __init__(self, replies=None, error=None):
        self._replies = list(replies or [])
        self._error = error
        self.requests = []

    def complete(self, req):
        self.requests.append(req)
        if self._error is not None:
            raise self._error
        if self._replies:
            return self._replies.pop(0)
        return "hi"


class SequenceDriver:
    """依次返回预设结果，并记录每次看到的对话。"""

    def __init__(self, outcomes):
        self._outcomes = list(outcomes)
        self.seen = []

    def next(self, messages):
        self.seen.append(messages)
        if not self._outcomes:
            return Done()
        return self._outcomes.pop(0)


def make(driver, model_client, sleeps, **cfg):
    return Orchestrator(driver, model_client, OrchestratorConfig(**cfg), sleep=sleeps.append)


def test_scenario_single_round():
    sleeps = []
    model = FakeModel()
    conv = make(ScriptedDriver(["hello"]), model, sleeps).run()
    assert conv == Conversation([Message.user("hello"), Message.assistant("hi")])
    assert len(model.requests) == 1
    assert sleeps == []


def test_scenario_two_rounds():
    model = FakeModel(replies=["r1", "r2"])
    conv = make(ScriptedDriver(["a", "b"]), model, []).run()
    assert [(m.role, m.content) for m in conv] == [
        ("user", "a"),
        ("assistant", "r1"),
        ("user", "b"),
        ("assistant", "r2"),
    ]


def test_conversation_grows_by_two_per_round():
    driver = SequenceDriver([Produce(Message.user(str(i))) for i in range(3)])
    conv = make(driver, FakeModel(), []).run()
    assert [len(seen) for seen in driver.seen] == [0, 2, 4, 6]
    assert len(conv) == 6


def test_done_on_first_call_completes_empty():
    model = FakeModel()
    orch = make(SequenceDriver([Done()]), model, [])
    conv = orch.run()
    assert len(conv) == 0
    assert model.requests == []
    assert orch.state is ExchangeState.COMPLETED


def test_model_receives_full_view_and_options():
    model = FakeModel()
    make(ScriptedDriver(["a", "b"]), model, [], model="m-1", max_tokens=16, temperature=0.1).run()
    last = model.requests[-1]
    assert last.model == "m-1"
    assert last.max_tokens == 16
    assert last.temperature == 0.1
    assert [m.content for m in last.messages] == ["a", "hi", "b"]


def test_retries_exhausted():
    sleeps = []
    driver = SequenceDriver([Fail.recoverable("busy")] * 10)
    model = FakeModel()
    orch = make(driver, model, sleeps, max_retries=2, base_delay=0.01)
    with pytest.raises(ExchangeError) as exc:
        orch.run()
    err = exc.value
    assert len(driver.seen) == 3
    assert sleeps == [0.01, 0.02]
    assert err.code == ExchangeError.DRIVER_RETRIES_EXHAUSTED
    assert err.side == "driver"
    assert "after 2 retries" in err.message
    assert "busy" in err.message
    assert model.requests == []
    assert orch.state is ExchangeState.FAILED


def test_retry_delays_follow_exponential_backoff():
    sleeps = []
    driver = SequenceDriver([Fail.recoverable("x")] * 10)
    with pytest.raises(ExchangeError):
        make(driver, FakeModel(), sleeps, max_retries=4, base_delay=0.5).run()
    assert len(driver.seen) == 5
    assert sleeps == [0.5, 1.0, 2.0, 4.0]


def test_retry_delay_cap():
    sleeps = []
    driver = SequenceDriver([Fail.recoverable("x")] * 10)
    with pytest.raises(ExchangeError):
        make(driver, FakeModel(), sleeps, max_retries=3, base_delay=1.0, max_delay=1.5).run()
    assert sleeps == [1.0, 1.5, 1.5]


def test_zero_retries_fails_on_first_recoverable():
    sleeps = []
    driver = SequenceDriver([Fail.recoverable("x")])
    with pytest.raises(ExchangeError) as exc:
        make(driver, FakeModel(), sleeps, max_retries=0).run()
    assert exc.value.code == ExchangeError.DRIVER_RETRIES_EXHAUSTED
    assert len(driver.seen) == 1
    assert sleeps == []


def test_retry_sees_unmodified_conversation():
    driver = SequenceDriver([
        Produce(Message.user("a")),
        Fail.recoverable("x"),
        Fail.recoverable("y"),
        Produce(Message.user("b")),
    ])
    conv = make(driver, FakeModel(), [], max_retries=3).run()
    assert driver.seen[1] == driver.seen[2] == driver.seen[3]
    assert len(driver.seen[1]) == 2
    assert [m.content for m in conv] == ["a", "hi", "b", "hi"]


def test_each_round_gets_fresh_retry_budget():
    sleeps = []
    driver = SequenceDriver([
        Fail.recoverable("1"),
        "a",
        Fail.recoverable("2"),
        Fail.recoverable("3"),
        "b",
    ])
    conv = make(driver, FakeModel(replies=["r1", "r2"]), sleeps, max_retries=2, base_delay=1.0).run()
    assert [m.content for m in conv] == ["a", "r1", "b", "r2"]
    assert sleeps == [1.0, 1.0, 2.0]


def test_unrecoverable_short_circuits():
    sleeps = []
    driver = SequenceDriver([Fail.unrecoverable("X")])
    model = FakeModel()
    with pytest.raises(ExchangeError) as exc:
        make(driver, model, sleeps).run()
    assert exc.value.code == ExchangeError.DRIVER_UNRECOVERABLE
    assert exc.value.message == "driver unrecoverable error: X"
    assert len(driver.seen) == 1
    assert sleeps == []
    assert model.requests == []


def test_unrecoverable_after_retry():
    sleeps = []
    driver = SequenceDriver([Fail.recoverable("x"), Fail.unrecoverable("fatal")])
    with pytest.raises(ExchangeError) as exc:
        make(driver, FakeModel(), sleeps, max_retries=5, base_delay=0.1).run()
    assert exc.value.code == ExchangeError.DRIVER_UNRECOVERABLE
    assert sleeps == [0.1]


def test_model_error_is_not_retried():
    sleeps = []
    model = FakeModel(error=ApiError(code="API_ERROR", message="boom", http_status=500))
    driver = SequenceDriver(["a"])
    with pytest.raises(ExchangeError) as exc:
        make(driver, model, sleeps, max_retries=5).run()
    err = exc.value
    assert len(model.requests) == 1
    assert len(driver.seen) == 1
    assert sleeps == []
    assert err.code == ExchangeError.MODEL_ERROR
    assert err.side == "model"
    assert err.message == "model error: boom"
    assert isinstance(err.__cause__, ApiError)
    assert "partial" not in err.extra


def test_partial_conversation_kept_when_requested():
    model = FakeModel(replies=["r1"])
    driver = SequenceDriver(["a", "b"])
    orch = make(driver, model, [], keep_partial_on_failure=True)
    model_calls = {"n": 0}

    def complete(req):
        model_calls["n"] += 1
        if model_calls["n"] == 2:
            raise ApiError(code="API_ERROR", message="down")
        return "r1"

    model.complete = complete
    result = orch.try_run()
    assert not result.ok
    assert result.conversation is None
    assert result.rounds == 2
    partial = result.error.extra["partial"]
    assert [m.content for m in partial] == ["a", "r1", "b"]
    assert result.error.round_index == 2
    assert len(orch.messages) == 0


def test_driver_may_raise_classified_errors():
    calls = []

    def fn(messages):
        calls.append(len(messages))
        if len(calls) == 1:
            raise RecoverableError("validation hiccup")
        if len(calls) == 2:
            return "hello"
        return None

    sleeps = []
    conv = make(FunctionDriver(fn), FakeModel(), sleeps, base_delay=0.2).run()
    assert [m.content for m in conv] == ["hello", "hi"]
    assert sleeps == [0.2]


def test_invalid_driver_outcome_propagates():
    with pytest.raises(ValidationError):
        make(FunctionDriver(lambda messages: 42), FakeModel(), []).run()


def test_try_run_success():
    result = make(ScriptedDriver(["a"]), FakeModel(), []).try_run()
    assert result.ok
    assert result.rounds == 2
    assert len(result.conversation) == 2


def test_run_is_reusable():
    driver = ScriptedDriver(["a"])
    orch = make(driver, FakeModel(), [])
    first = orch.run()
    driver.reset()
    second = orch.run()
    assert first == second
    assert len(second) == 2


def test_returned_conversation_is_a_copy():
    orch = make(ScriptedDriver(["a"]), FakeModel(), [])
    conv = orch.run()
    conv.add_message(Message.user("extra"))
    assert len(orch.messages) == 2


def test_reentrant_run_rejected():
    holder = {}

    def fn(messages):
        holder["orch"].run()

    orch = make(FunctionDriver(fn), FakeModel(), [])
    holder["orch"] = orch
    with pytest.raises(ValidationError) as exc:
        orch.run()
    assert exc.value.code == "EXCHANGE_IN_PROGRESS"


def test_step_by_step_states():
    orch = make(SequenceDriver(["a", Fail.recoverable("x"), Done()]), FakeModel(), [])
    assert orch.state is ExchangeState.AWAITING_DRIVER
    assert orch.step() is ExchangeState.AWAITING_MODEL
    assert orch.step() is ExchangeState.AWAITING_DRIVER
    assert orch.round_index == 2
    assert orch.step() is ExchangeState.RETRYING_DRIVER
    assert orch.retry_state.last_detail == "x"
    assert orch.step() is ExchangeState.COMPLETED
    assert orch.retry_state.attempt_count == 1


def test_config_validation():
    with pytest.raises(ValidationError):
        OrchestratorConfig(max_retries=-1)
    with pytest.raises(ValidationError):
        OrchestratorConfig(base_delay=-0.1)


def test_config_from_settings():
    class SettingsStub:
        default_model = "deepseek-chat"
        default_max_tokens = 2048
        default_temperature = 0.7
        max_retries = 5
        base_delay = 0.5
        max_delay = None

    cfg = OrchestratorConfig.from_settings(SettingsStub(), model="other", temperature=None)
    assert cfg.model == "other"
    assert cfg.temperature == 0.7
    assert cfg.max_retries == 5
    assert cfg.base_delay == 0.5


def test_unexpected_model_exception_becomes_model_error():
    class BrokenModel:
        name = "broken"

        def complete(self, req):
            raise RuntimeError("socket closed")

    orch = make(ScriptedDriver(["a"]), BrokenModel(), [], max_retries=5)
    with pytest.raises(ExchangeError) as exc:
        orch.run()
    err = exc.value
    assert err.code == ExchangeError.MODEL_ERROR
    assert err.side == "model"
    assert err.message == "model error: RuntimeError: socket closed"
    assert isinstance(err.__cause__, RuntimeError)
    assert orch.state is ExchangeState.FAILED
    assert len(orch.messages) == 0


def test_non_text_reply_becomes_model_error():
    model = FakeModel(replies=[None])
    orch = make(ScriptedDriver(["a"]), model, [])
    result = orch.try_run()
    assert not result.ok
    assert result.error.code == ExchangeError.MODEL_ERROR
    assert isinstance(result.error.__cause__, ValidationError)
    assert orch.state is ExchangeState.FAILED
    assert len(orch.messages) == 0


def test_concurrent_run_on_same_instance_rejected():
    entered = threading.Event()
    release = threading.Event()

    def fn(messages):
        entered.set()
        release.wait(timeout=5)
        return None

    orch = make(FunctionDriver(fn), FakeModel(), [])
    results = {}

    def first():
        results["first"] = orch.try_run()

    worker = threading.Thread(target=first)
    worker.start()
    assert entered.wait(timeout=5)
    try:
        with pytest.raises(ValidationError) as exc:
            orch.run()
        assert exc.value.code == "EXCHANGE_IN_PROGRESS"
    finally:
        release.set()
        worker.join(timeout=5)
    assert results["first"].ok
