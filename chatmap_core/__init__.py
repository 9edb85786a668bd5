"""ChatMap Core 顶层包。

该包实现地理问答的两阶段响应流水线：流式输出自然语言回答，
随后对完整回答做结构化地理信息提取，并把结果协调为地图渲染状态。
"""

from chatmap_core.pipeline import RequestOrchestrator, reconcile

__all__ = ["RequestOrchestrator", "reconcile"]
