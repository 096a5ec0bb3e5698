"""OpenAI 兼容 Provider 适配器（扁平 tool message 协议）。

本模块负责：

1. 接收统一的 ChatRequest。
2. 将其转换为 chat/completions 请求格式：每条消息对应一条线上消息，
   tool 结果单独成一条 role="tool" 消息，携带 tool_call_id 与 name。
3. 调用 HTTP 接口并处理网络/API 异常。
4. 将响应 JSON 解析为统一的 ChatResult / ChatMessage 结构（含工具调用）。
"""

import httpx
import json
from typing import Any, Dict, List, Optional

from pdf_agent.config.settings import settings
from pdf_agent.domain.models import (
    ChatRequest,
    ChatResult,
    ChatMessage,
    ChatChoice,
    ChatUsage,
)
from pdf_agent.domain.exceptions import (
    ApiError,
    NetworkError,
    ProviderResponseError,
    RateLimitError,
    ValidationError,
)
from pdf_agent.providers.registry import OPENAI_CONFIG, ModelConfig
from pdf_agent.tools.definitions import ToolDef, ToolCall


class OpenAICompatClient:
    """OpenAI 兼容服务的客户端实现。

    - name: Provider 名称（供日志/调试使用）。
    - chat: 对外统一调用入口，返回 ChatResult。
    """

    name = "openai"

    def __init__(self, cfg=settings, api_key: Optional[str] = None, base_url: Optional[str] = None):
        # Settings 里包含 base_url、api_key、超时等配置；api_key/base_url 可按请求覆盖
        self._settings = cfg
        self._api_key = api_key
        self._base_url = base_url

    def chat(self, req: ChatRequest) -> ChatResult:
        """执行一次非流式对话调用。

        步骤：
        1. 读取模型配置（logical model -> provider model）。
        2. 构造 HTTP 请求 payload。
        3. 发送请求并捕获网络错误/限流/服务端错误。
        4. 使用统一的解析函数构造 ChatResult。
        """

        api_key = self._api_key or getattr(self._settings, "openai_api_key", None)
        if not api_key:
            raise ValidationError(code="MISSING_API_KEY", message="OPENAI_API_KEY not set", provider=self.name)
        model_cfg = OPENAI_CONFIG.resolve(
            req.model,
            max_tokens=getattr(self._settings, "max_tokens", 4096),
        )
        payload = self._build_payload(req, model_cfg)
        base = self._base_url or getattr(self._settings, "openai_base_url", None) or OPENAI_CONFIG.base_url
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base.rstrip('/')}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="OpenAI-compatible rate limit", http_status=429)
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderResponseError(code="MALFORMED_RESPONSE", message=f"Response is not JSON: {e}")
        return self._parse_response(data, req)

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        """将 ChatRequest 转成 chat/completions 请求 JSON。"""

        msgs = [self._message_to_payload(m) for m in req.messages]
        payload = {
            "model": model_cfg.provider_model,
            "messages": msgs,
            "temperature": req.temperature if req.temperature is not None else model_cfg.default_temperature,
            "max_tokens": req.max_tokens or model_cfg.max_tokens,
        }
        if req.tools:
            payload["tools"] = [self._serialize_tool(tool) for tool in req.tools]
            payload["tool_choice"] = req.tool_choice
        return payload

    def _parse_response(self, data: Any, req: ChatRequest) -> ChatResult:
        """将原始响应 JSON 解析为统一的 ChatResult。"""

        if not isinstance(data, dict):
            raise ProviderResponseError(code="MALFORMED_RESPONSE", message="Response body is not an object")
        raw_choices = data.get("choices") or []
        if not isinstance(raw_choices, list):
            raise ProviderResponseError(code="MALFORMED_RESPONSE", message="choices is not a list")
        if not raw_choices:
            raise ProviderResponseError(code="NO_CHOICES", message="No response from LLM")
        choices: list[ChatChoice] = []
        for i, ch in enumerate(raw_choices):
            if not isinstance(ch, dict):
                raise ProviderResponseError(code="MALFORMED_RESPONSE", message=f"Choice {i} is not an object")
            msg = ch.get("message") or {}
            if not isinstance(msg, dict):
                raise ProviderResponseError(code="MALFORMED_RESPONSE", message=f"Choice {i} message is not an object")
            cm = self._build_chat_message(msg)
            choices.append(
                ChatChoice(index=i, message=cm, finish_reason=ch.get("finish_reason") or "stop")
            )
        usage_raw = data.get("usage")
        if not isinstance(usage_raw, dict):
            usage_raw = {}
        usage = ChatUsage(
            prompt_tokens=usage_raw.get("prompt_tokens", 0),
            completion_tokens=usage_raw.get("completion_tokens", 0),
            total_tokens=usage_raw.get("total_tokens", 0),
        )
        return ChatResult(provider=self.name, model=req.model, choices=choices, usage=usage, raw=data)

    def _serialize_tool(self, tool: ToolDef) -> Dict[str, Any]:
        """把内部的 ToolDef 转成 function tool 描述。"""

        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.input_schema(),
            },
        }

    def _build_chat_message(self, payload: Dict[str, Any]) -> ChatMessage:
        """将单条厂商 message 转换为 ChatMessage。

        同时负责把 tool_calls 字段解析为统一的 ToolCall 列表。
        """

        tool_calls_raw = payload.get("tool_calls") or []
        if not isinstance(tool_calls_raw, list):
            raise ProviderResponseError(code="MALFORMED_RESPONSE", message="tool_calls is not a list")
        tool_calls: List[ToolCall] = []
        for idx, call in enumerate(tool_calls_raw):
            if not isinstance(call, dict):
                raise ProviderResponseError(code="MALFORMED_RESPONSE", message=f"Tool call {idx} is not an object")
            func = call.get("function") or {}
            if not isinstance(func, dict):
                raise ProviderResponseError(code="MALFORMED_RESPONSE", message=f"Tool call {idx} function is not an object")
            name = func.get("name") or call.get("name") or ""
            if not name:
                raise ProviderResponseError(code="MALFORMED_TOOL_CALL", message="Tool call without a function name")
            tool_calls.append(
                ToolCall(
                    id=call.get("id") or f"tool_call_{idx}",
                    name=name,
                    arguments=self._parse_arguments(func.get("arguments"), name),
                )
            )

        # 部分兼容服务仍会返回旧版 function_call 字段
        function_call = payload.get("function_call")
        if function_call:
            if not isinstance(function_call, dict):
                raise ProviderResponseError(code="MALFORMED_RESPONSE", message="function_call is not an object")
            name = function_call.get("name") or ""
            tool_calls.append(
                ToolCall(
                    id=function_call.get("id") or "function_call",
                    name=name,
                    arguments=self._parse_arguments(function_call.get("arguments"), name),
                )
            )
        return ChatMessage(
            role="assistant",
            content=self._content_text(payload.get("content")),
            tool_calls=tool_calls or None,
        )

    @staticmethod
    def _content_text(content: Any) -> str:
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts = []
            for part in content:
                if isinstance(part, dict) and part.get("type") == "text":
                    parts.append(str(part.get("text") or ""))
                elif isinstance(part, str):
                    parts.append(part)
            return "".join(parts)
        return json.dumps(content, ensure_ascii=False)

    @staticmethod
    def _parse_arguments(raw: Any, tool_name: str) -> Dict[str, Any]:
        """解析工具调用的 arguments 字段。

        服务端会把 arguments 作为 JSON 字符串返回；无法解析或不是对象时
        抛出 ProviderResponseError，而不是把原始字符串塞给工具。
        """

        if raw is None or raw == "":
            return {}
        if isinstance(raw, dict):
            return raw
        if isinstance(raw, str):
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ProviderResponseError(
                    code="MALFORMED_TOOL_ARGUMENTS",
                    message=f"Arguments for tool {tool_name!r} are not valid JSON: {e}",
                )
            if isinstance(parsed, dict):
                return parsed
        raise ProviderResponseError(
            code="MALFORMED_TOOL_ARGUMENTS",
            message=f"Arguments for tool {tool_name!r} must be a JSON object",
        )

    def _message_to_payload(self, message: ChatMessage) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": message.role}
        if message.tool_calls:
            payload["content"] = message.content or None
            payload["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": json.dumps(call.arguments, ensure_ascii=False),
                    },
                }
                for call in message.tool_calls
            ]
        else:
            payload["content"] = message.content
        if message.role == "tool":
            payload["tool_call_id"] = message.tool_call_id
            if message.tool_name:
                payload["name"] = message.tool_name
        return payload
