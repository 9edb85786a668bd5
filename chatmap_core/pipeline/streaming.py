"""流式回答生成（StreamingGenerator）。

驱动第一次模型调用（ChatStream），把 SSE 事件流解码为惰性的文本片段序列：

- `data: {...}` 中的 choices[0].delta.content 作为片段产出；
- `data: [DONE]` 为结束标记；
- 不是合法 JSON 的事件按原始文本透传，不丢弃；
- 在结束标记之前连接断开视为 NetworkError；
- 取消令牌在每次读取后检查，取消时抛出 TurnCancelled 而不是错误。

所有片段拼接起来即为交给 GeoExtractor 的最终回答文本。
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, AsyncIterator, List, Optional, Sequence, Tuple

from chatmap_core.domain.cancellation import CancellationToken
from chatmap_core.domain.exceptions import NetworkError
from chatmap_core.domain.models import Message
from chatmap_core.infrastructure.logging.logger import logger
from chatmap_core.prompts import load_system_prompt
from chatmap_core.providers.base import ModelEndpoint

if TYPE_CHECKING:
    from chatmap_core.config.endpoint import ModelEndpointConfig

DONE_MARKER = "[DONE]"
_SSE_FIELDS = ("event:", "id:", "retry:")


def decode_event(line: str) -> Tuple[bool, Optional[str]]:
    """解码一行 SSE 事件，返回 (是否结束, 文本片段)。

    片段为 None 表示该行不携带文本（空行、注释、无 content 的增量）。
    """

    data = line.strip()
    if not data or data.startswith(":") or data.startswith(_SSE_FIELDS):
        return False, None
    if data.startswith("data:"):
        data = data[5:].strip()
        if not data:
            return False, None
    if data == DONE_MARKER:
        return True, None
    if not data.startswith("{"):
        return False, data
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        return False, data
    return False, _delta_content(payload)


def _delta_content(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if error:
        detail = error.get("message") if isinstance(error, dict) else str(error)
        raise NetworkError(code="STREAM_ERROR", message=f"流式响应失败: {detail}")
    choices = payload.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    return content if isinstance(content, str) and content else None


class StreamingGenerator:
    def __init__(self, endpoint: ModelEndpoint, locale: str = "zh"):
        self._endpoint = endpoint
        self._locale = locale

    def build_messages(self, history: Sequence[Message]) -> List[Message]:
        system = Message(role="system", content=load_system_prompt("answer", self._locale))
        return [system] + [m for m in history if m.role in ("user", "assistant")]

    async def generate(
        self,
        history: Sequence[Message],
        config: "ModelEndpointConfig",
        token: CancellationToken,
    ) -> AsyncIterator[str]:
        """产出回答片段；序列有限且不可重启。

        令牌在每次读取之后检查。若需要立即打断一次阻塞中的读取，调用方应同时
        取消消费该序列的任务，底层连接会随之关闭。

        Raises:
            TurnCancelled: 令牌被取消。
            NetworkError: 非 2xx 响应，或在结束标记之前连接中断。
        """

        token.raise_if_cancelled()
        lines = self._endpoint.stream_lines(self.build_messages(history), config)
        finished = False
        fragments = 0
        try:
            async for line in lines:
                token.raise_if_cancelled()
                done, fragment = decode_event(line)
                if done:
                    finished = True
                    break
                if fragment:
                    fragments += 1
                    yield fragment
        finally:
            aclose = getattr(lines, "aclose", None)
            if aclose is not None:
                await aclose()

        token.raise_if_cancelled()
        if not finished:
            logger.warning(
                "stream.interrupted",
                extra={"extra": {"turn_id": token.turn_id, "fragments": fragments}},
            )
            raise NetworkError(code="STREAM_INTERRUPTED", message="流式响应在结束前中断，请稍后再试")
        logger.info("stream.done", extra={"extra": {"turn_id": token.turn_id, "fragments": fragments}})
