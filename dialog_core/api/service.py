"""对外 API 服务模块。

提供简化的函数接口供上层应用调用。
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional, Sequence

from dialog_core.config.settings import settings
from dialog_core.domain.conversation import Conversation
from dialog_core.infrastructure.logging.logger import logger
from dialog_core.orchestration.driver import Driver
from dialog_core.orchestration.orchestrator import ExchangeResult, Orchestrator, OrchestratorConfig
from dialog_core.providers import create_provider
from dialog_core.providers.base import ModelClient


def communicate(
    driver: Driver,
    *,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    max_tokens: Optional[int] = None,
    temperature: Optional[float] = None,
    model_client: Optional[ModelClient] = None,
) -> Conversation:
    """运行一次完整对话。

    Args:
        driver: 用户侧 Driver
        api_key: DeepSeek API 密钥（可选，默认取配置）
        model / max_tokens / temperature: 覆盖配置中的默认值
        model_client: 自定义模型客户端（可选）

    Returns:
        完整的 Conversation

    Raises:
        ExchangeError: Driver 不可恢复、重试耗尽或模型错误
    """
    client = model_client or create_provider(api_key=api_key)
    config = OrchestratorConfig.from_settings(
        settings, model=model, max_tokens=max_tokens, temperature=temperature
    )
    try:
        return Orchestrator(driver, client, config).run()
    except Exception as e:
        logger.error(f"Exchange failed: {e}", extra={"extra": {"error": str(e)}})
        raise


def communicate_many(
    drivers: Sequence[Driver],
    *,
    max_workers: Optional[int] = None,
    model_client: Optional[ModelClient] = None,
    **options: Any,
) -> List[ExchangeResult]:
    """并发运行多个相互独立的对话，共享同一个模型客户端。

    结果顺序与 drivers 一致；单个对话失败不影响其他对话。
    """
    client = model_client or create_provider(api_key=options.pop("api_key", None))
    config = OrchestratorConfig.from_settings(settings, **options)

    def _run(driver: Driver) -> ExchangeResult:
        return Orchestrator(driver, client, config).try_run()

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(_run, drivers))
