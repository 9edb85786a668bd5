"""OpenAI 兼容 Provider 适配器。

OpenAI、SiliconFlow 以及自定义服务均使用 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>

本实现只依赖公共字段：model/messages/temperature/stream/response_format。
"""

from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, List, Sequence

import httpx

from chatmap_core.config.settings import settings
from chatmap_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from chatmap_core.domain.models import Message
from chatmap_core.infrastructure.logging.logger import logger

if TYPE_CHECKING:
    from chatmap_core.config.endpoint import ModelEndpointConfig


class OpenAICompatibleClient:
    """OpenAI 兼容接口的异步客户端实现。"""

    name = "openai-compatible"

    def __init__(self, cfg=settings):
        self._settings = cfg

    # ---- 流式（ChatStream） ----

    async def stream_lines(
        self, messages: Sequence[Message], config: "ModelEndpointConfig"
    ) -> AsyncIterator[str]:
        payload = self._build_payload(messages, config, stream=True)
        logger.info(
            "provider.stream.open",
            extra={"extra": {"provider": config.provider, "model": config.model, "messages": len(messages)}},
        )
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                async with client.stream(
                    "POST",
                    config.chat_completions_url,
                    json=payload,
                    headers=self._headers(config),
                ) as resp:
                    if resp.status_code >= 400:
                        body = await resp.aread()
                        raise self._status_error(resp.status_code, body.decode("utf-8", errors="replace"))
                    async for line in resp.aiter_lines():
                        yield line
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=f"连接模型服务失败: {e}")

    # ---- 非流式 JSON（ChatExtract） ----

    async def chat_json(self, messages: Sequence[Message], config: "ModelEndpointConfig") -> str:
        payload = self._build_payload(messages, config, stream=False)
        payload["response_format"] = {"type": "json_object"}
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.post(
                    config.chat_completions_url,
                    json=payload,
                    headers=self._headers(config),
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=f"连接模型服务失败: {e}")
        if resp.status_code >= 400:
            raise self._status_error(resp.status_code, resp.text)
        try:
            data = resp.json()
        except ValueError:
            raise ValidationError(code="INVALID_EXTRACTION", message="模型服务返回的不是 JSON")
        return self._parse_content(data)

    # ---- 辅助方法 ----

    @staticmethod
    def _headers(config: "ModelEndpointConfig") -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _build_payload(messages: Sequence[Message], config: "ModelEndpointConfig", stream: bool) -> Dict[str, Any]:
        msgs: List[Dict[str, str]] = [m.to_payload() for m in messages]
        return {
            "model": config.model,
            "messages": msgs,
            "temperature": config.temperature,
            "stream": stream,
        }

    @staticmethod
    def _status_error(status: int, body: str) -> NetworkError:
        if status == 429:
            return RateLimitError(code="RATE_LIMIT", message="模型服务限流，请稍后再试", http_status=status)
        return ApiError(code="API_ERROR", message=f"AI API 错误: {status} - {body[:200]}", http_status=status)

    @staticmethod
    def _parse_content(data: Any) -> str:
        if not isinstance(data, dict):
            raise ValidationError(code="INVALID_EXTRACTION", message="模型响应结构无效")
        choices = data.get("choices") or []
        message = (choices[0].get("message") if choices and isinstance(choices[0], dict) else None) or {}
        content = message.get("content")
        if not content or not isinstance(content, str):
            raise ValidationError(code="EMPTY_EXTRACTION", message="AI 模型返回了空的内容")
        return content
