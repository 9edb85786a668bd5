"""对外 API 服务模块。

提供简化的函数接口供 UI / 渲染层调用：

- submit_query / cancel_current_turn / clear_conversation
- subscribe_text / subscribe_map 两个可观察事件流
- 推荐问题与最近查询记录
"""

from typing import Callable, List, Optional, Tuple

from chatmap_core.config.settings import settings
from chatmap_core.domain.exceptions import BusinessError
from chatmap_core.domain.models import MapRenderState
from chatmap_core.infrastructure.logging.logger import logger
from chatmap_core.infrastructure.storage.json_store import JsonQueryStore, SavedQuery
from chatmap_core.pipeline.orchestrator import RequestOrchestrator, TurnEvent, TurnHandle
from chatmap_core.prompts import SUGGESTED_QUERIES


_orchestrator: Optional[RequestOrchestrator] = None
_query_store: Optional[JsonQueryStore] = None


def get_default_orchestrator() -> RequestOrchestrator:
    """获取默认的 RequestOrchestrator 实例（单例）。"""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = RequestOrchestrator()
    return _orchestrator


def get_query_store() -> JsonQueryStore:
    global _query_store
    if _query_store is None:
        _query_store = JsonQueryStore(root=settings.storage_root)
    return _query_store


def submit_query(text: str) -> TurnHandle:
    """提交用户问题，返回可等待的 TurnHandle。

    Raises:
        ConfigError: 模型配置不完整。
        ValidationError: 问题为空。
    """
    try:
        handle = get_default_orchestrator().submit(text)
    except BusinessError as e:
        logger.error("service.submit_failed", extra={"extra": {"code": e.code, "error": e.message}})
        raise
    if settings.record_query_history:
        # 查询记录失败不影响已经开始的 Turn
        try:
            get_query_store().record(handle.turn.query)
        except BusinessError as e:
            logger.warning(
                "service.record_failed",
                extra={"extra": {"turn_id": handle.id, "code": e.code, "error": e.message}},
            )
    return handle


def cancel_current_turn() -> None:
    get_default_orchestrator().cancel()


def clear_conversation() -> None:
    get_default_orchestrator().clear()


def subscribe_text(callback: Callable[[int, str, str], None]) -> Callable[[], None]:
    """订阅回答增量：callback(turn_id, delta, full_text)。"""

    def _listener(event: TurnEvent) -> None:
        if event.kind == "text":
            callback(event.turn_id, event.delta or "", event.text or "")

    return get_default_orchestrator().subscribe(_listener)


def subscribe_map(callback: Callable[[int, MapRenderState], None]) -> Callable[[], None]:
    """订阅地图状态更新：callback(turn_id, state)。"""

    return get_default_orchestrator().map_store.subscribe(callback)


def current_map_state() -> MapRenderState:
    return get_default_orchestrator().map_store.state


def list_suggested_queries() -> List[Tuple[str, str]]:
    return list(SUGGESTED_QUERIES)


def list_recent_queries() -> List[SavedQuery]:
    return get_query_store().list_queries()


def toggle_saved_query(query_id: str) -> SavedQuery:
    return get_query_store().toggle_saved(query_id)
