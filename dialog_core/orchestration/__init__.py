"""Driver 与模型之间的多轮编排。"""

from dialog_core.orchestration.driver import (
    Done,
    Driver,
    DriverOutcome,
    Fail,
    FunctionDriver,
    Produce,
    ScriptedDriver,
)
from dialog_core.orchestration.orchestrator import ExchangeResult, Orchestrator, OrchestratorConfig
from dialog_core.orchestration.state import ExchangeState, RetryState

__all__ = [
    "Done",
    "Driver",
    "DriverOutcome",
    "ExchangeResult",
    "ExchangeState",
    "Fail",
    "FunctionDriver",
    "Orchestrator",
    "OrchestratorConfig",
    "Produce",
    "RetryState",
    "ScriptedDriver",
]
