"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dialog_core.config.defaults import (
    BASE_DELAY,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    HTTP_BASE_DELAY,
    HTTP_MAX_DELAY,
    HTTP_MAX_RETRIES,
    MAX_RETRIES,
)


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("DIALOG_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- DeepSeek ----
    deepseek_api_key: Optional[str] = Field(default=None, description="DeepSeek API 密钥")
    deepseek_base_url: str = Field(
        default="https://api.deepseek.com/v1",
        description="DeepSeek API 基础URL",
    )

    # ---- 模型请求透传参数 ----
    default_model: str = Field(default=DEFAULT_MODEL, description="默认模型名")
    default_max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1, description="最大输出 token 数")
    default_temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0, description="生成温度")

    # ---- 编排层重试（仅针对 Driver） ----
    max_retries: int = Field(default=MAX_RETRIES, ge=0, description="Driver 可恢复错误的最大重试次数")
    base_delay: float = Field(default=BASE_DELAY, ge=0.0, description="退避基数（秒）")
    max_delay: Optional[float] = Field(default=None, ge=0.0, description="退避上限（秒），为空表示不封顶")

    # ---- HTTP 传输 ----
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    http_max_retries: int = Field(default=HTTP_MAX_RETRIES, ge=0, description="HTTP 瞬时错误重试次数")
    http_base_delay: float = Field(default=HTTP_BASE_DELAY, ge=0.0, description="HTTP 重试退避基数（秒）")
    http_max_delay: float = Field(default=HTTP_MAX_DELAY, ge=0.0, description="HTTP 重试退避上限（秒）")

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_level: str = Field(default="INFO", description="日志级别")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("deepseek_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v!r}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            _load_config_from_yaml,
            file_secret_settings,
        )


settings = Settings()
