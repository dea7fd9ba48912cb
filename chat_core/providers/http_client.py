"""远端 chat-completion 后端。

接口风格与 OpenAI 一致：
- URL: RemoteConfig.endpoint（完整的 chat/completions 地址）
- 认证: Authorization: Bearer <api_key>

请求只使用公共字段 model/messages/stream；每条 context 与 prompt 都作为一条
role="user" 消息按顺序发送。单次请求，不做重试。
"""

from typing import Any, Dict, List, Sequence

import httpx

from chat_core.domain.exceptions import MalformedResponseError, TransportError, ValidationError
from chat_core.domain.models import RemoteConfig


class HttpClient:
    """远端 chat-completion 客户端实现。"""

    name = "remote"

    def __init__(self, config: RemoteConfig):
        for field, code in (("endpoint", "MISSING_ENDPOINT"), ("api_key", "MISSING_API_KEY"), ("model", "MISSING_MODEL")):
            value = getattr(config, field)
            if not value or not value.strip():
                raise ValidationError(code=code, message=f"Remote backend requires a non-empty {field}")
        try:
            url = httpx.URL(config.endpoint)
        except httpx.InvalidURL as e:
            raise ValidationError(code="INVALID_ENDPOINT", message=f"Invalid endpoint URL: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ValidationError(code="INVALID_ENDPOINT", message=f"Endpoint must be an absolute http(s) URL: {config.endpoint!r}")
        self._config = config

    @property
    def config(self) -> RemoteConfig:
        return self._config

    async def complete(self, prompt: str, context: Sequence[str] = ()) -> str:
        payload = self._build_payload(prompt, context)
        try:
            async with httpx.AsyncClient(trust_env=False) as client:
                resp = await client.post(
                    self._config.endpoint,
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self._config.api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            # DNS 失败、连接被拒、超时等
            raise TransportError(code="NETWORK_ERROR", message=str(e) or type(e).__name__) from e
        # 重定向不会被跟随，任何非 2xx 都视为传输错误
        if not 200 <= resp.status_code < 300:
            raise TransportError(
                code="HTTP_ERROR",
                message=f"HTTP {resp.status_code} from completion endpoint",
                status_code=resp.status_code,
                body=resp.text,
            )
        return self._parse_response(resp)

    def _build_payload(self, prompt: str, context: Sequence[str]) -> Dict[str, Any]:
        msgs: List[Dict[str, str]] = [{"role": "user", "content": line} for line in context]
        msgs.append({"role": "user", "content": prompt})
        return {
            "model": self._config.model,
            "messages": msgs,
            "stream": False,
        }

    @staticmethod
    def _parse_response(resp: httpx.Response) -> str:
        """读取 choices[0].message.content，结构不符时抛出 MalformedResponseError。"""

        try:
            data = resp.json()
        except ValueError as e:
            raise MalformedResponseError(code="MALFORMED_RESPONSE", message="Response body is not valid JSON") from e

        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices:
            raise MalformedResponseError(code="MALFORMED_RESPONSE", message="Response has no choices")
        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise MalformedResponseError(code="MALFORMED_RESPONSE", message="Response has no choices[0].message.content")
        return content
