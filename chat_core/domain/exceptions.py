"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在会话层或 UI 层做统一捕获与用户提示。

补全后端（on-device / remote）只允许抛出 CompletionError 及其子类：

- BackendUnavailableError: 本地模型不可用，对该后端是致命的，但不影响进程。
- ModelFailureError: 本地推理失败，调用方可自行重试。
- TransportError: 网络/HTTP 错误，调用方可自行重试。
- MalformedResponseError: 远端响应结构不符合预期。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "NETWORK_ERROR"）。
        message: 用户可读错误信息。
        extra: 其他补充字段（例如 reason、status_code 等）。
    """

    def __init__(self, code: str, message: str, **extra):
        self.code = code
        self.message = message
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class CompletionError(BusinessError):
    """补全后端错误基类。"""


class BackendUnavailableError(CompletionError):
    """本地模型不存在或无法加载。"""


class ModelFailureError(CompletionError):
    """本地模型推理过程中失败。"""


class TransportError(CompletionError):
    """网络层错误，例如连接失败、超时、非 2xx 响应等。"""


class MalformedResponseError(CompletionError):
    """远端返回的内容不是预期的 chat-completion JSON。"""
