"""DeepSeek Provider 适配器。

接口风格与 OpenAI 一致，使用 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>

本实现只依赖公共字段：model/messages/max_tokens/temperature，
请求参数原样透传，不做模型名校验。
"""

import time
from typing import Any, Callable, Dict, Iterable, Optional

import httpx

from dialog_core.config.settings import settings
from dialog_core.domain.exceptions import (
    ApiError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    ValidationError,
)
from dialog_core.domain.models import Message, ModelRequest
from dialog_core.infrastructure.logging.logger import logger
from dialog_core.infrastructure.retry import RetryPolicy, call_with_retry
from dialog_core.providers.registry import DEEPSEEK_CONFIG


class DeepSeekClient:
    """DeepSeek 客户端实现。

    每次请求新建 httpx.Client，实例本身不持有请求级状态，
    因此可以在多个线程/对话之间共享。
    """

    name = "deepseek"

    def __init__(
        self,
        cfg=settings,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        retry: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._settings = cfg
        self._api_key = api_key or getattr(cfg, "deepseek_api_key", None)
        self._base_url = base_url or getattr(cfg, "deepseek_base_url", None) or DEEPSEEK_CONFIG.base_url
        self._retry = retry or RetryPolicy.from_settings(cfg)
        self._sleep = sleep

    def complete(self, req: ModelRequest) -> str:
        if not self._api_key:
            raise ValidationError(code="MISSING_API_KEY", message="DEEPSEEK_API_KEY not set")
        payload = self._build_payload(req)
        return call_with_retry(
            lambda: self._post(payload),
            self._retry,
            sleep=self._sleep,
            logger=logger,
        )

    # ---- 便捷入口 ----

    def send_message(self, text: str, **options: Any) -> str:
        """发送单条用户消息并返回回复。"""

        return self.send_conversation([Message.user(text)], **options)

    def send_conversation(self, messages: Iterable[Message], **options: Any) -> str:
        """发送完整对话并返回回复；options 可覆盖 model/max_tokens/temperature。"""

        req = ModelRequest(
            model=options.get("model") or self._settings.default_model,
            messages=tuple(messages),
            max_tokens=options.get("max_tokens") or self._settings.default_max_tokens,
            temperature=options.get("temperature", self._settings.default_temperature),
        )
        return self.complete(req)

    # ---- 辅助方法 ----

    def _post(self, payload: Dict[str, Any]) -> str:
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{self._base_url}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(code="TIMEOUT", message=str(e) or "request timed out")
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="DeepSeek rate limit", http_status=429)
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(code="INVALID_RESPONSE", message=f"Response is not JSON: {e}")
        return self._parse_response(data)

    @staticmethod
    def _build_payload(req: ModelRequest) -> Dict[str, Any]:
        return {
            "model": req.model,
            "messages": [m.to_payload() for m in req.messages],
            "max_tokens": req.max_tokens,
            "temperature": req.temperature,
        }

    @staticmethod
    def _parse_response(data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ApiError(code="INVALID_RESPONSE", message=f"Unexpected response shape: {data!r}"[:500])
        if not isinstance(content, str):
            raise ApiError(code="INVALID_RESPONSE", message="Reply content is not a string")
        return content
