"""补全后端抽象接口。

上层 ChatSession 不直接依赖具体后端，而是依赖此协议：

- 每种后端实现一个 CompletionBackend（OnDeviceClient、HttpClient）。
- 负责：把 prompt 与之前的会话记录组合成一次请求，并返回文本结果。
"""

from typing import Protocol, Sequence


class CompletionBackend(Protocol):
    """补全后端协议。

    实现者需要提供：
    - name: 后端名称，用于日志。
    - complete(prompt, context): 以 context（先）和 prompt（后）为输入生成一段文本，
      失败时抛出 CompletionError。不得修改调用方传入的 context。
    """

    name: str

    async def complete(self, prompt: str, context: Sequence[str] = ()) -> str:
        ...
