"""模型客户端抽象接口。

编排层不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- 每个厂商实现一个 ModelClient（如 DeepSeekClient）。
- 负责：传输、鉴权、瞬时错误重试，并把响应解析为纯文本回复。
- 失败时抛出 BusinessError 子类；编排层对此不再重试。
"""

from typing import Protocol

from dialog_core.domain.models import ModelRequest


class ModelClient(Protocol):
    """模型服务客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志。
    - complete(req): 根据完整对话返回一条 assistant 回复文本。

    同一实例可能被多个对话并发调用，实现必须是线程安全的。
    """

    name: str

    def complete(self, req: ModelRequest) -> str:
        ...
