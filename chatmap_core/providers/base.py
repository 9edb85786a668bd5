"""Model Endpoint 抽象接口。

流水线不直接依赖具体的 HTTP 实现，而是依赖此协议：

- stream_lines: ChatStream，逐行返回 SSE 原始事件，由 StreamingGenerator 解码。
- chat_json: ChatExtract，返回模型生成的单个 JSON 文本。

测试中可以用任意实现了这两个方法的对象替换真实客户端。
"""

from typing import TYPE_CHECKING, AsyncIterator, Protocol, Sequence

from chatmap_core.domain.models import Message

if TYPE_CHECKING:
    from chatmap_core.config.endpoint import ModelEndpointConfig


class ModelEndpoint(Protocol):
    """LLM 端点协议。

    实现者需要提供：
    - name: 客户端名称，用于日志。
    - stream_lines(messages, config): 打开流式请求，产出原始事件行。
    - chat_json(messages, config): 执行一次非流式 JSON 模式调用，返回 content 文本。
    """

    name: str

    def stream_lines(
        self, messages: Sequence[Message], config: "ModelEndpointConfig"
    ) -> AsyncIterator[str]:
        ...

    async def chat_json(self, messages: Sequence[Message], config: "ModelEndpointConfig") -> str:
        ...
