"""Dialog Core 顶层包。

在本地 Driver（决定用户侧下一句说什么）与远程大模型服务之间
编排多轮对话：轮流调用、错误分类与指数退避重试、对话状态维护。
"""

from dialog_core.api.service import communicate, communicate_many
from dialog_core.domain.conversation import Conversation
from dialog_core.domain.exceptions import ExchangeError, RecoverableError, UnrecoverableError
from dialog_core.domain.models import Message
from dialog_core.orchestration import (
    Done,
    Fail,
    FunctionDriver,
    Orchestrator,
    OrchestratorConfig,
    Produce,
    ScriptedDriver,
)

__all__ = [
    "Conversation",
    "Done",
    "ExchangeError",
    "Fail",
    "FunctionDriver",
    "Message",
    "Orchestrator",
    "OrchestratorConfig",
    "Produce",
    "RecoverableError",
    "ScriptedDriver",
    "UnrecoverableError",
    "communicate",
    "communicate_many",
]
