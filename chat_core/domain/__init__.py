"""领域层模型与异常。

包含：
- models: OnDeviceConfig / RemoteConfig 后端配置。
- exceptions: 业务异常类型定义。
"""
