"""Chat Core 顶层包。

该包提供聊天面板使用的 LLM 客户端抽象，
包括配置加载、后端配置模型、本地/远端两种补全后端、
后端选择工厂以及维护会话记录的 ChatSession。
"""

from chat_core.agents.chat_session import ChatSession
from chat_core.domain.models import OnDeviceConfig, RemoteConfig
from chat_core.providers import create_backend, select_backend

__all__ = ["ChatSession", "OnDeviceConfig", "RemoteConfig", "create_backend", "select_backend"]
