"""两阶段响应流水线：流式回答 -> 地理信息提取 -> 地图状态协调。"""

from chatmap_core.pipeline.extractor import GeoExtractor
from chatmap_core.pipeline.map_state import MapStateStore
from chatmap_core.pipeline.orchestrator import RequestOrchestrator, TurnEvent, TurnHandle
from chatmap_core.pipeline.reconciler import empty_map_state, reconcile
from chatmap_core.pipeline.streaming import StreamingGenerator

__all__ = [
    "GeoExtractor",
    "MapStateStore",
    "RequestOrchestrator",
    "StreamingGenerator",
    "TurnEvent",
    "TurnHandle",
    "empty_map_state",
    "reconcile",
]
