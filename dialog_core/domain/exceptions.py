"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在编排层或调用方做统一捕获与用户提示。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "API_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 side、round_index 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败。"""


class RequestTimeoutError(NetworkError):
    """请求超时。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误，或响应体无法解析时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误，由传输层负责重试/退避。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class RecoverableError(BusinessError):
    """Driver 侧可恢复错误：编排层会按指数退避重试本轮。"""

    def __init__(self, message: str, code: str = "DRIVER_RECOVERABLE", **extra):
        super().__init__(code=code, message=message, **extra)


class UnrecoverableError(BusinessError):
    """Driver 侧不可恢复错误：立即终止对话。"""

    def __init__(self, message: str, code: str = "DRIVER_UNRECOVERABLE", **extra):
        super().__init__(code=code, message=message, **extra)


class ExchangeError(BusinessError):
    """一次编排运行的唯一终止错误类型。

    code 区分三种情况：DRIVER_UNRECOVERABLE、DRIVER_RETRIES_EXHAUSTED、
    MODEL_ERROR；extra 中携带 side / round_index / attempts / detail。
    """

    DRIVER_UNRECOVERABLE = "DRIVER_UNRECOVERABLE"
    DRIVER_RETRIES_EXHAUSTED = "DRIVER_RETRIES_EXHAUSTED"
    MODEL_ERROR = "MODEL_ERROR"

    @property
    def side(self) -> str:
        return self.extra.get("side", "")

    @property
    def round_index(self) -> int:
        return self.extra.get("round_index", 0)

    @property
    def detail(self) -> str:
        return self.extra.get("detail", "")
