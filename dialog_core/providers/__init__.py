"""LLM Provider 集成层。

该包下的模块负责：
- 定义模型客户端抽象接口 (base)。
- 维护 Provider 配置 (registry)。
- 提供具体实现 (deepseek_client)。
"""

from typing import Optional

from dialog_core.config.settings import settings
from dialog_core.providers.base import ModelClient
from dialog_core.providers.deepseek_client import DeepSeekClient
from dialog_core.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None, *, api_key: Optional[str] = None) -> ModelClient:
    """根据名称创建 Provider 实例，默认 deepseek。未知名称抛出 KeyError。"""

    cfg = get_provider_config(name or "deepseek")
    return DeepSeekClient(settings, api_key=api_key, base_url=getattr(settings, "deepseek_base_url", None) or cfg.base_url)


__all__ = ["ModelClient", "DeepSeekClient", "create_provider"]
