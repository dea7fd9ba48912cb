"""补全后端集成层。

该包下的模块负责：
- 定义后端抽象接口 (base)。
- 提供两种具体实现 (on_device_client、http_client)。
- 根据配置选择后端 (select_backend / create_backend)。
"""

import logging
from typing import Optional

from chat_core.config.settings import backend_config_from_settings, settings
from chat_core.domain.models import BackendConfig, OnDeviceConfig, RemoteConfig
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import CompletionBackend
from chat_core.providers.http_client import HttpClient
from chat_core.providers.on_device_client import OnDeviceClient


def select_backend(config: BackendConfig) -> CompletionBackend:
    """根据配置类型构造对应后端，每次调用都返回新实例。"""

    if isinstance(config, OnDeviceConfig):
        return OnDeviceClient(config)
    if isinstance(config, RemoteConfig):
        return HttpClient(config)
    raise TypeError(f"Unsupported backend config: {type(config).__name__}")


def create_backend(name: Optional[str] = None, cfg=None) -> CompletionBackend:
    """根据名称创建后端实例，默认取配置中的 default_backend。"""

    config = backend_config_from_settings(cfg or settings, name)
    backend = select_backend(config)
    logger.log(logging.INFO, "Selected completion backend", extra={"extra": {"backend": backend.name}})
    return backend
