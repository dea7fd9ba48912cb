"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。
补全后端本身不读取任何配置，只有 backend_config_from_settings
负责把这里的字段转换成 OnDeviceConfig / RemoteConfig。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chat_core.domain.exceptions import ValidationError
from chat_core.domain.models import (
    DEFAULT_REMOTE_ENDPOINT,
    BackendConfig,
    OnDeviceConfig,
    RemoteConfig,
)


BackendName = Literal["on_device", "remote"]


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CHAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if path in seen:
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
    """配置设置。"""

    # ---- 后端选择 ----
    default_backend: BackendName = Field(
        default="on_device",
        description="默认使用的补全后端：on_device 或 remote",
    )

    # 远端 chat-completion 接口
    remote_endpoint: str = Field(
        default=DEFAULT_REMOTE_ENDPOINT,
        description="chat-completion 接口完整 URL",
    )
    remote_api_key: Optional[str] = Field(default=None, description="远端接口 API 密钥")
    remote_model: str = Field(default="gpt-4o-mini", description="远端模型 ID")

    # 本地模型
    on_device_model_path: Optional[str] = Field(default=None, description="本地 GGUF 模型路径")
    on_device_n_ctx: int = Field(default=4096, ge=256, description="本地模型上下文窗口")
    on_device_max_tokens: int = Field(default=512, ge=1, description="本地模型单次生成上限")

    # ---- 会话与日志 ----
    error_prefix: str = Field(default="Error: ", description="写入会话记录的错误行前缀")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("remote_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

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
            cls._config_source,
            file_secret_settings,
        )


def backend_config_from_settings(cfg: Any, name: Optional[str] = None) -> BackendConfig:
    """根据配置构造 BackendConfig，name 为空时取 default_backend。"""

    backend_name = (name or getattr(cfg, "default_backend", "on_device")).lower()
    if backend_name == "remote":
        api_key = getattr(cfg, "remote_api_key", None)
        if not api_key:
            raise ValidationError(code="MISSING_API_KEY", message="REMOTE_API_KEY not set")
        return RemoteConfig(
            api_key=api_key,
            model=cfg.remote_model,
            endpoint=cfg.remote_endpoint,
        )
    if backend_name == "on_device":
        return OnDeviceConfig(
            model_path=getattr(cfg, "on_device_model_path", None),
            n_ctx=getattr(cfg, "on_device_n_ctx", 4096),
            max_tokens=getattr(cfg, "on_device_max_tokens", 512),
        )
    raise ValidationError(code="UNKNOWN_BACKEND", message=f"Unknown backend: {backend_name!r}")


settings = Settings()
