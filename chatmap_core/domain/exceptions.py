"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层或 UI 层做统一捕获与用户提示。

错误分类与处理策略：

- ConfigError: 端点配置缺失或不完整，在任何网络调用之前抛出，不会创建 Turn。
- NetworkError: ChatStream / ChatExtract 的传输失败，地图状态保持不变。
- ValidationError: 提取结果结构或坐标非法，记录日志，地图按 NO_MAP_UPDATE 处理。
- TurnCancelled: 用户主动取消，不展示错误，也不修改任何共享状态。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "NETWORK_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 turn_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigError(BusinessError):
    """模型端点配置缺失或非法。"""


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时、流在结束标记前中断等。"""


class ApiError(NetworkError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(ApiError):
    """Provider 限流错误。本系统不做自动重试，由用户重新提交。"""


class ValidationError(BusinessError):
    """提取结果结构不符合约定，或坐标超出合法范围。"""


class TurnCancelled(BusinessError):
    """当前 Turn 已被取消。"""

    def __init__(self, turn_id: int | None = None):
        super().__init__(code="CANCELLED", message="请求已取消", http_status=499, turn_id=turn_id)
