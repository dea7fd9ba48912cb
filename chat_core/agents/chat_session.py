"""会话核心模块。

ChatSession 持有一份只追加的会话记录（transcript），每次 send：

1. 以发送前的 transcript 快照作为 context 调用后端。
2. 成功时追加 [用户输入, 回复]；失败时追加 [用户输入, 错误行]。

记录总是成对写入。同一个会话上的并发 send 由 asyncio.Lock 串行化。
transcript 没有长度上限，每次请求都携带完整历史。
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.exceptions import BusinessError
from chat_core.domain.models import BackendConfig
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers import select_backend
from chat_core.providers.base import CompletionBackend


class ChatSession:
    """单个后端上的对话会话。

    error_prefix 为空时取 settings.error_prefix（默认 "Error: "）。
    """

    def __init__(self, backend: CompletionBackend, error_prefix: Optional[str] = None):
        self._backend = backend
        self._error_prefix = error_prefix if error_prefix is not None else settings.error_prefix
        self._transcript: List[str] = []
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: BackendConfig, error_prefix: Optional[str] = None) -> "ChatSession":
        """按配置选择后端并创建会话。"""
        return cls(select_backend(config), error_prefix=error_prefix)

    @property
    def backend(self) -> CompletionBackend:
        return self._backend

    @property
    def transcript(self) -> Tuple[str, ...]:
        return tuple(self._transcript)

    async def send(self, text: str) -> str:
        """发送一条用户输入，返回写入 transcript 的第二条记录（回复或错误行）。

        该方法不会抛出后端异常，失败会以错误行的形式出现在 transcript 中。
        """
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "backend": getattr(self._backend, "name", type(self._backend).__name__),
        }
        async with self._lock:
            context = list(self._transcript)
            start_time = time.time()
            try:
                result = await self._backend.complete(text, context)
            except Exception as e:
                result = self._format_error(e)
                self._log(
                    logging.WARNING,
                    "Completion failed",
                    log_ctx,
                    error_type=type(e).__name__,
                    error_code=getattr(e, "code", None),
                    error=str(e),
                )
            else:
                self._log(
                    logging.INFO,
                    "Completed turn",
                    log_ctx,
                    context_lines=len(context),
                    elapsed_seconds=round(time.time() - start_time, 2),
                )
            self._transcript.extend([text, result])
        return result

    def _format_error(self, exc: Exception) -> str:
        if isinstance(exc, BusinessError):
            detail = exc.message
        else:
            detail = str(exc) or type(exc).__name__
        return f"{self._error_prefix}{detail}"

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
