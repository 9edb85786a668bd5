"""共享地图状态。

MapStateStore 显式持有唯一的 MapRenderState，并按 Turn id 排序写入：
只有 id 大于上一次写入者的 Turn 才能覆盖状态，慢到达的旧 Turn 结果会被丢弃。
所有修改都发生在同一个事件循环线程中，因此不需要锁。
"""

from typing import Callable, List, Optional

from chatmap_core.domain.models import ExtractionResult, MapRenderState
from chatmap_core.infrastructure.logging.logger import logger
from chatmap_core.pipeline.reconciler import empty_map_state, reconcile

MapListener = Callable[[int, MapRenderState], None]


class MapStateStore:
    def __init__(self, initial: Optional[MapRenderState] = None):
        self._state = initial or empty_map_state()
        self._last_turn_id = 0
        self._listeners: List[MapListener] = []

    @property
    def state(self) -> MapRenderState:
        return self._state

    @property
    def last_turn_id(self) -> int:
        return self._last_turn_id

    def subscribe(self, listener: MapListener) -> Callable[[], None]:
        """注册状态监听器，返回取消注册函数。"""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def apply(self, turn_id: int, result: ExtractionResult) -> Optional[MapRenderState]:
        """按 Turn id 写入协调后的状态；过期写入返回 None。"""

        if turn_id <= self._last_turn_id:
            logger.warning(
                "map.stale_write_rejected",
                extra={"extra": {"turn_id": turn_id, "last_turn_id": self._last_turn_id}},
            )
            return None
        self._state = reconcile(result, self._state)
        self._last_turn_id = turn_id
        logger.info(
            "map.updated",
            extra={
                "extra": {
                    "turn_id": turn_id,
                    "task_type": self._state.task_type.value,
                    "markers": len(self._state.markers),
                    "route": len(self._state.route or ()),
                }
            },
        )
        self._notify(turn_id)
        return self._state

    def reset(self, turn_id: int) -> MapRenderState:
        """恢复默认状态，并拒绝 id 不大于 turn_id 的后续写入。"""

        self._state = empty_map_state()
        self._last_turn_id = max(self._last_turn_id, turn_id)
        logger.info("map.reset", extra={"extra": {"turn_id": turn_id}})
        self._notify(turn_id)
        return self._state

    def _notify(self, turn_id: int) -> None:
        for listener in list(self._listeners):
            try:
                listener(turn_id, self._state)
            except Exception:
                logger.exception("map.listener_failed", extra={"extra": {"turn_id": turn_id}})
