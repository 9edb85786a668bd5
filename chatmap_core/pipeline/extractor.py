"""地理信息提取（GeoExtractor）。

回答流结束后，对同一模型发起第二次、独立的结构化调用（ChatExtract），
让模型对最终回答进行分类并列出地点。分类逻辑完全由模型完成，这里只负责
组织请求、检查取消、解码与校验。

流程以 LangGraph 组织：

    prepare -> request -> decode -> END

- prepare: 组装 system prompt 与待提取文本；
- request: 发起请求前后各检查一次取消令牌；
- decode: 结构与坐标校验（见 validation 模块）。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional, Sequence, TypedDict

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from chatmap_core.domain.cancellation import CancellationToken, wait_until_cancelled
from chatmap_core.domain.models import ExtractionResult, Message
from chatmap_core.infrastructure.logging.logger import logger
from chatmap_core.pipeline.validation import decode_extraction
from chatmap_core.prompts import load_system_prompt
from chatmap_core.providers.base import ModelEndpoint

if TYPE_CHECKING:
    from chatmap_core.config.endpoint import ModelEndpointConfig


class ExtractionState(TypedDict, total=False):
    """State shared across extraction graph nodes."""

    final_text: str
    history: Sequence[Message]
    config: Any
    token: CancellationToken
    messages: List[Message]
    content: str
    result: ExtractionResult


def _last_user_question(history: Sequence[Message]) -> Optional[str]:
    for msg in reversed(history):
        if msg.role == "user" and msg.content.strip():
            return msg.content.strip()
    return None


class GeoExtractor:
    def __init__(self, endpoint: ModelEndpoint, strict: bool = False, locale: str = "zh"):
        self._endpoint = endpoint
        self._strict = strict
        self._locale = locale
        self._graph = self._build_graph()

    def build_messages(self, final_text: str, history: Sequence[Message]) -> List[Message]:
        """组装 ChatExtract 的消息序列。

        有最终回答时只提交这段回答（附带用户原始问题作为分类提示）；
        回答为空时退回为提交完整对话历史。
        """

        system = Message(role="system", content=load_system_prompt("extract", self._locale))
        if final_text.strip():
            parts = []
            question = _last_user_question(history)
            if question:
                parts.append(f"用户原始问题：{question}")
            parts.append(f"请从以下助手回答中提取地理信息：\n\"\"\"\n{final_text}\n\"\"\"")
            return [system, Message(role="user", content="\n\n".join(parts))]
        return [system] + [m for m in history if m.role in ("user", "assistant")]

    async def extract(
        self,
        final_text: str,
        history: Sequence[Message],
        config: "ModelEndpointConfig",
        token: CancellationToken,
    ) -> ExtractionResult:
        """对最终回答执行提取。

        Raises:
            TurnCancelled: 请求前或收到响应后发现已取消。
            NetworkError: ChatExtract 传输失败。
            ValidationError: 响应结构不符合约定（strict 模式下也包括非法坐标）。
        """

        token.raise_if_cancelled()
        state: ExtractionState = {
            "final_text": final_text,
            "history": tuple(history),
            "config": config,
            "token": token,
        }
        out = await self._graph.ainvoke(state)
        return out["result"]

    # ---- graph nodes ----

    async def _prepare_node(self, state: ExtractionState) -> dict:
        return {"messages": self.build_messages(state["final_text"], state["history"])}

    async def _request_node(self, state: ExtractionState) -> dict:
        token = state["token"]
        config = state["config"]
        token.raise_if_cancelled()
        logger.info(
            "extract.request",
            extra={"extra": {"turn_id": token.turn_id, "provider": config.provider, "model": config.model}},
        )
        content = await wait_until_cancelled(self._endpoint.chat_json(state["messages"], config), token)
        token.raise_if_cancelled()
        return {"content": content}

    async def _decode_node(self, state: ExtractionState) -> dict:
        token = state["token"]
        result = decode_extraction(state["content"], state["final_text"], strict=self._strict)
        if result.issues:
            logger.warning(
                "extract.validation_failed",
                extra={"extra": {"turn_id": token.turn_id, "issues": list(result.issues)}},
            )
        logger.info(
            "extract.done",
            extra={
                "extra": {
                    "turn_id": token.turn_id,
                    "task_type": result.task_type.value,
                    "locations": len(result.locations),
                }
            },
        )
        return {"result": result}

    def _build_graph(self) -> CompiledStateGraph:
        graph = StateGraph(ExtractionState)
        graph.add_node("prepare", self._prepare_node)
        graph.add_node("request", self._request_node)
        graph.add_node("decode", self._decode_node)
        graph.set_entry_point("prepare")
        graph.add_edge("prepare", "request")
        graph.add_edge("request", "decode")
        graph.add_edge("decode", END)
        return graph.compile()
