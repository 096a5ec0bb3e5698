"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 Agent 循环或 API 层做统一捕获与用户提示。

- Provider 层：NetworkError / ApiError / RateLimitError / ProviderResponseError。
- 消息转换层：MessageSequenceError（tool 结果与调用无法配对）。
- 工具层：ToolInputError / DocumentNotFoundError，会被转换成 success=False 的 ToolResult。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "MISSING_API_KEY"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、document_id 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误。Agent 循环本身不重试，直接结束本轮。"""


class ValidationError(BusinessError):
    """参数或配置校验失败（例如缺少 API Key）。"""


class ProviderResponseError(BusinessError):
    """Provider 返回的响应结构无法解析（无 choices、工具参数不是合法 JSON 等）。"""


class MessageSequenceError(ValidationError):
    """tool 消息引用了上一条 assistant 消息中不存在的调用 id。"""


class ToolInputError(BusinessError):
    """工具入参不合法（页码范围错误、缺少文档等），会回传给模型自行修正。"""


class DocumentNotFoundError(ToolInputError):
    """按 id 找不到文档。"""
