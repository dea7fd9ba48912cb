"""后端配置模型。

BackendConfig 是一个封闭的二选一：

- OnDeviceConfig: 使用本机加载的语言模型。
- RemoteConfig: 使用远端 chat-completion HTTP 接口（endpoint + api_key + model）。

两者均为不可变 dataclass，由调用方在会话开始时构造，之后不再修改。
"""

from dataclasses import dataclass
from typing import Optional, Union


# OpenAI chat-completions 端点，RemoteConfig 未指定 endpoint 时使用
DEFAULT_REMOTE_ENDPOINT = "https://api.openai.com/v1/chat/completions"


@dataclass(frozen=True)
class OnDeviceConfig:
    """本地模型配置。

    - model_path: 本地 GGUF 模型文件路径，未配置时后端视为不可用。
    - n_ctx: 模型上下文窗口大小。
    - max_tokens: 单次生成的最大 token 数。
    """

    model_path: Optional[str] = None
    n_ctx: int = 4096
    max_tokens: int = 512


@dataclass(frozen=True)
class RemoteConfig:
    """远端 chat-completion 接口配置。"""

    api_key: str
    model: str
    endpoint: str = DEFAULT_REMOTE_ENDPOINT


BackendConfig = Union[OnDeviceConfig, RemoteConfig]
