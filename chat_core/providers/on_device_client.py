"""本地模型后端。

使用 llama-cpp-python 在进程内加载 GGUF 模型。初始化分两阶段：

1. 构造 OnDeviceClient 时只保存配置，不触碰模型文件。
2. 第一次 complete 时检查可用性并加载模型，之后复用同一个会话。

模型不可用时抛出 BackendUnavailableError，且不会尝试调用本地会话。
"""

import asyncio
import importlib.util
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence, Tuple

from chat_core.domain.exceptions import BackendUnavailableError, ModelFailureError
from chat_core.domain.models import OnDeviceConfig


UNAVAILABLE_MESSAGES = {
    "model_not_configured": "No on-device model is configured. Set ON_DEVICE_MODEL_PATH.",
    "model_file_missing": "The on-device model file is not present on this device.",
    "runtime_not_installed": "The local model runtime is not installed. Install the 'local' extra.",
    "load_failed": "The on-device model could not be loaded.",
}


class LocalSession(Protocol):
    """已加载的本地模型会话。"""

    def respond(self, text: str) -> str:
        ...


class LlamaSession:
    """llama_cpp.Llama 的薄包装，每次 respond 发送一条 user 消息。"""

    def __init__(self, config: OnDeviceConfig):
        from llama_cpp import Llama

        self._max_tokens = config.max_tokens
        self._llm = Llama(model_path=config.model_path, n_ctx=config.n_ctx, verbose=False)

    def respond(self, text: str) -> str:
        out = self._llm.create_chat_completion(
            messages=[{"role": "user", "content": text}],
            max_tokens=self._max_tokens,
        )
        return out["choices"][0]["message"]["content"] or ""


def check_availability(config: OnDeviceConfig) -> Tuple[bool, Optional[str]]:
    """返回 (是否可用, 不可用原因)。"""

    if not config.model_path:
        return False, "model_not_configured"
    if not Path(config.model_path).expanduser().is_file():
        return False, "model_file_missing"
    if importlib.util.find_spec("llama_cpp") is None:
        return False, "runtime_not_installed"
    return True, None


class OnDeviceClient:
    """本地模型客户端实现。

    session_factory / availability 可注入，默认使用 LlamaSession 与 check_availability。
    """

    name = "on_device"

    def __init__(
        self,
        config: OnDeviceConfig,
        session_factory: Optional[Callable[[OnDeviceConfig], LocalSession]] = None,
        availability: Optional[Callable[[OnDeviceConfig], Tuple[bool, Optional[str]]]] = None,
    ):
        self._config = config
        self._session_factory = session_factory or LlamaSession
        self._availability = availability or check_availability
        self._session: Optional[LocalSession] = None
        self._init_lock = asyncio.Lock()

    @property
    def config(self) -> OnDeviceConfig:
        return self._config

    async def complete(self, prompt: str, context: Sequence[str] = ()) -> str:
        session = await self._ensure_session()
        full_prompt = "\n".join([*context, prompt])
        try:
            return await asyncio.to_thread(session.respond, full_prompt)
        except Exception as e:
            raise ModelFailureError(code="MODEL_FAILURE", message=str(e) or type(e).__name__) from e

    async def _ensure_session(self) -> LocalSession:
        async with self._init_lock:
            if self._session is None:
                available, reason = self._availability(self._config)
                if not available:
                    raise BackendUnavailableError(
                        code="BACKEND_UNAVAILABLE",
                        message=UNAVAILABLE_MESSAGES.get(reason, "The on-device model is unavailable."),
                        reason=reason,
                    )
                try:
                    self._session = await asyncio.to_thread(self._session_factory, self._config)
                except Exception as e:
                    raise BackendUnavailableError(
                        code="BACKEND_UNAVAILABLE",
                        message=f"{UNAVAILABLE_MESSAGES['load_failed']} {e}".strip(),
                        reason="load_failed",
                    ) from e
        return self._session
