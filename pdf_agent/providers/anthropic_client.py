"""Anthropic Provider 适配器（content-block 协议）。

与 OpenAI 兼容协议不同，这里没有 "tool" 角色：

- assistant 发起的工具调用必须作为 tool_use block 放在同一条 assistant 消息里；
- 连续的 tool 消息要合并为一条 user 消息，每个调用一个 tool_result block，
  顺序与调用顺序一致；
- system 消息从对话中抽出，通过单独的 system 字段发送。

出站前会检查调用/结果配对：引用了未知调用 id 的结果直接拒绝
（MessageSequenceError），缺失结果的调用补一个 is_error 的 tool_result，
避免服务端报 “tool_use ids were found without tool_result blocks”。
"""

import httpx
from typing import Any, Dict, List, Optional, Tuple

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
    MessageSequenceError,
    NetworkError,
    ProviderResponseError,
    RateLimitError,
    ValidationError,
)
from pdf_agent.providers.registry import ANTHROPIC_CONFIG, ModelConfig
from pdf_agent.tools.definitions import ToolDef, ToolCall

MISSING_RESULT_TEXT = "No result was recorded for this tool call."


class AnthropicClient:
    """Anthropic Messages API 客户端。"""

    name = "anthropic"

    def __init__(self, cfg=settings, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self._settings = cfg
        self._api_key = api_key
        self._base_url = base_url

    def chat(self, req: ChatRequest) -> ChatResult:
        """执行一次非流式对话调用。缺少 API Key 时在发请求前直接失败。"""

        api_key = self._api_key or getattr(self._settings, "anthropic_api_key", None)
        if not api_key:
            raise ValidationError(code="MISSING_API_KEY", message="ANTHROPIC_API_KEY not set", provider=self.name)
        model_cfg = ANTHROPIC_CONFIG.resolve(
            req.model,
            max_tokens=getattr(self._settings, "max_tokens", 4096),
        )
        payload = self._build_payload(req, model_cfg)
        base = self._base_url or getattr(self._settings, "anthropic_base_url", None) or ANTHROPIC_CONFIG.base_url
        version = getattr(self._settings, "anthropic_version", None) or "2023-06-01"
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base.rstrip('/')}/messages",
                    json=payload,
                    headers={
                        "x-api-key": api_key,
                        "anthropic-version": version,
                        "content-type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="Anthropic rate limit", http_status=429)
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderResponseError(code="MALFORMED_RESPONSE", message=f"Response is not JSON: {e}")
        return self._parse_response(data, req)

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        system_text, messages = self._convert_messages(req.messages)
        payload: Dict[str, Any] = {
            "model": model_cfg.provider_model,
            "max_tokens": req.max_tokens or model_cfg.max_tokens,
            "messages": messages,
            "temperature": req.temperature if req.temperature is not None else model_cfg.default_temperature,
        }
        if system_text:
            payload["system"] = system_text
        if req.tools:
            payload["tools"] = [self._serialize_tool(tool) for tool in req.tools]
            payload["tool_choice"] = {"type": req.tool_choice if req.tool_choice != "required" else "any"}
        return payload

    @staticmethod
    def _serialize_tool(tool: ToolDef) -> Dict[str, Any]:
        return {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.input_schema(),
        }

    def _convert_messages(self, messages: List[ChatMessage]) -> Tuple[str, List[Dict[str, Any]]]:
        """把统一消息列表转换为 (system 文本, content-block 消息列表)。"""

        system_parts: List[str] = []
        wire: List[Dict[str, Any]] = []
        # 最近一条 assistant 消息发起、尚未收到结果的调用（按调用顺序）
        pending: List[ToolCall] = []
        # 正在累积的 tool_result（call id -> block）
        results: Dict[str, Dict[str, Any]] = {}

        def flush_results() -> None:
            if not pending:
                return
            blocks = []
            for call in pending:
                block = results.get(call.id)
                if block is None:
                    block = {
                        "type": "tool_result",
                        "tool_use_id": call.id,
                        "content": MISSING_RESULT_TEXT,
                        "is_error": True,
                    }
                blocks.append(block)
            wire.append({"role": "user", "content": blocks})
            pending.clear()
            results.clear()

        for msg in messages:
            if msg.role == "system":
                if msg.content:
                    system_parts.append(msg.content)
                continue
            if msg.role == "tool":
                call_id = msg.tool_call_id or ""
                if call_id not in {c.id for c in pending}:
                    raise MessageSequenceError(
                        code="ORPHAN_TOOL_RESULT",
                        message=f"Tool result {call_id!r} does not answer a call from the preceding assistant message",
                        tool_call_id=call_id,
                    )
                block: Dict[str, Any] = {
                    "type": "tool_result",
                    "tool_use_id": call_id,
                    "content": msg.content,
                }
                if msg.meta.get("is_error"):
                    block["is_error"] = True
                results[call_id] = block
                continue

            flush_results()
            if msg.role == "assistant" and msg.tool_calls:
                content: List[Dict[str, Any]] = []
                if msg.content:
                    content.append({"type": "text", "text": msg.content})
                for call in msg.tool_calls:
                    content.append({"type": "tool_use", "id": call.id, "name": call.name, "input": call.arguments})
                wire.append({"role": "assistant", "content": content})
                pending.extend(msg.tool_calls)
            else:
                wire.append({"role": "user" if msg.role == "user" else "assistant", "content": msg.content})
        flush_results()
        return "\n\n".join(system_parts), wire

    def _parse_response(self, data: Any, req: ChatRequest) -> ChatResult:
        """解析 content block 响应：拼接全部 text block，收集 tool_use block。"""

        if not isinstance(data, dict):
            raise ProviderResponseError(code="MALFORMED_RESPONSE", message="Response body is not an object")
        content = data.get("content")
        if not isinstance(content, list):
            raise ProviderResponseError(code="MALFORMED_RESPONSE", message="Response content is not a list of blocks")
        texts: List[str] = []
        tool_calls: List[ToolCall] = []
        for block in content:
            if not isinstance(block, dict):
                continue
            kind = block.get("type")
            if kind == "text":
                texts.append(block.get("text") or "")
            elif kind == "tool_use":
                args = block.get("input")
                if args is None:
                    args = {}
                if not isinstance(args, dict):
                    raise ProviderResponseError(
                        code="MALFORMED_TOOL_ARGUMENTS",
                        message=f"Input for tool {block.get('name')!r} must be an object",
                    )
                if not block.get("id") or not block.get("name"):
                    raise ProviderResponseError(code="MALFORMED_TOOL_CALL", message="tool_use block without id or name")
                tool_calls.append(ToolCall(id=block["id"], name=block["name"], arguments=args))
        message = ChatMessage(role="assistant", content="".join(texts), tool_calls=tool_calls or None)
        usage_raw = data.get("usage") or {}
        prompt = usage_raw.get("input_tokens", 0)
        completion = usage_raw.get("output_tokens", 0)
        usage = ChatUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=prompt + completion)
        return ChatResult(
            provider=self.name,
            model=req.model,
            choices=[ChatChoice(index=0, message=message, finish_reason=data.get("stop_reason") or "end_turn")],
            usage=usage,
            raw=data,
        )
