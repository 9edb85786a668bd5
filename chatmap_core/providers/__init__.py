"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Model Endpoint 抽象接口 (base)。
- 维护 Provider 默认配置 (registry)。
- 提供 OpenAI 兼容接口的具体实现 (openai_client)。
"""

from chatmap_core.config.settings import settings
from chatmap_core.providers.base import ModelEndpoint
from chatmap_core.providers.openai_client import OpenAICompatibleClient


def create_provider() -> ModelEndpoint:
    """创建默认的 Model Endpoint 客户端。"""

    return OpenAICompatibleClient(settings)


__all__ = ["ModelEndpoint", "OpenAICompatibleClient", "create_provider"]
