"""请求编排（RequestOrchestrator）。

负责每个 Turn 的生命周期：

    submit -> 流式回答 (StreamingGenerator) -> 提取 (GeoExtractor) -> 协调 (MapStateStore)

- 任意时刻最多一个进行中的 Turn，新的提交总是取消旧的 Turn；
- 取消通过每个 Turn 的 CancellationToken 传递，并同时取消其任务以立即打断网络读取；
- 提取失败不会撤回已经输出的回答；流式失败则整个 Turn 终止，不会进入提取；
- 地图状态只在 Turn 成功完成后写入一次，并以 Turn id 防止过期写入。
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, List, Literal, Optional, Sequence, Tuple

from chatmap_core.config.endpoint import ModelEndpointConfig, endpoint_from_settings
from chatmap_core.config.settings import settings
from chatmap_core.domain.cancellation import CancellationToken
from chatmap_core.domain.exceptions import BusinessError, TurnCancelled, ValidationError
from chatmap_core.domain.models import ExtractionResult, MapRenderState, Message, Turn, TurnState
from chatmap_core.infrastructure.logging.logger import logger
from chatmap_core.pipeline.extractor import GeoExtractor
from chatmap_core.pipeline.map_state import MapStateStore
from chatmap_core.pipeline.streaming import StreamingGenerator
from chatmap_core.providers import create_provider
from chatmap_core.providers.base import ModelEndpoint


@dataclass(frozen=True)
class TurnEvent:
    """RequestOrchestrator 产生的事件。

    kind:
        - "text": 回答增量，delta 为本次片段，text 为累计文本。
        - "map": 地图状态已更新（协调完成或会话被清空）。
        - "status": Turn 状态迁移，用于前端展示"思考中/正在提取信息"等提示。
    """

    kind: Literal["text", "map", "status"]
    turn_id: int
    delta: Optional[str] = None
    text: Optional[str] = None
    map_state: Optional[MapRenderState] = None
    state: Optional[TurnState] = None
    error: Optional[BusinessError] = None


TurnListener = Callable[[TurnEvent], None]
ConfigSource = Callable[[], ModelEndpointConfig]


@dataclass
class TurnHandle:
    turn: Turn
    token: CancellationToken
    task: Optional["asyncio.Task[None]"] = None
    retired: bool = field(default=False, repr=False)

    @property
    def id(self) -> int:
        return self.turn.id

    @property
    def done(self) -> bool:
        return self.turn.state.terminal

    async def wait(self) -> Turn:
        """等待 Turn 结束并返回它；被取消的 Turn 正常返回。"""

        if self.task is not None:
            await asyncio.wait({self.task})
            if not self.task.cancelled():
                self.task.result()
        return self.turn


class RequestOrchestrator:
    def __init__(
        self,
        endpoint: Optional[ModelEndpoint] = None,
        config_source: Optional[ConfigSource] = None,
        map_store: Optional[MapStateStore] = None,
        cfg=settings,
    ):
        self._endpoint = endpoint or create_provider()
        self._streaming = StreamingGenerator(self._endpoint)
        self._extractor = GeoExtractor(self._endpoint, strict=cfg.strict_location_validation)
        self._config_source = config_source or (lambda: endpoint_from_settings(cfg))
        self._max_history = cfg.max_history_messages
        self.map_store = map_store or MapStateStore()
        self.map_store.subscribe(self._on_map_changed)
        self._history: List[Message] = []
        self._turn_seq = 0
        self._active: Optional[TurnHandle] = None
        self._listeners: List[TurnListener] = []

    # ---- 公共接口 ----

    @property
    def history(self) -> Tuple[Message, ...]:
        return tuple(self._history)

    @property
    def active_turn(self) -> Optional[Turn]:
        if self._active is None or self._active.done:
            return None
        return self._active.turn

    def subscribe(self, listener: TurnListener) -> Callable[[], None]:
        """注册事件监听器，返回取消注册函数。"""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def submit(self, query: str, history: Optional[Sequence[Message]] = None) -> TurnHandle:
        """提交一次查询并启动新的 Turn。

        必须在运行中的事件循环里调用。传入 history 时它将替换当前会话历史。

        Raises:
            ValidationError: 查询为空。
            ConfigError: 端点配置不完整，此时不会创建 Turn。
        """

        text = (query or "").strip()
        if not text:
            raise ValidationError(code="EMPTY_QUERY", message="查询无效。请提供有效的查询字符串。")
        config = self._config_source()
        loop = asyncio.get_running_loop()

        self._turn_seq += 1
        if self._active is not None and not self._active.done:
            self._cancel_handle(self._active, reason="superseded")
        if history is not None:
            self._history = list(history)

        turn = Turn(id=self._turn_seq, query=text, history=tuple(self._history))
        handle = TurnHandle(turn=turn, token=CancellationToken(turn.id))
        handle.task = loop.create_task(self._run_turn(handle, config))
        self._active = handle
        logger.info(
            "turn.submit",
            extra={"extra": {"turn_id": turn.id, "provider": config.provider, "model": config.model}},
        )
        return handle

    def cancel(self) -> None:
        """取消当前进行中的 Turn（若有）。"""

        if self._active is not None and not self._active.done:
            self._cancel_handle(self._active, reason="user")

    def clear(self) -> None:
        """取消当前 Turn，丢弃会话历史，并把地图恢复为默认状态。"""

        self.cancel()
        self._history.clear()
        self.map_store.reset(self._turn_seq)
        logger.info("conversation.cleared", extra={"extra": {"turn_id": self._turn_seq}})

    # ---- Turn 生命周期 ----

    async def _run_turn(self, handle: TurnHandle, config: ModelEndpointConfig) -> None:
        turn, token = handle.turn, handle.token
        request_history = self._trimmed(turn.history) + (Message(role="user", content=turn.query),)
        try:
            self._advance(turn, TurnState.STREAMING)
            async for fragment in self._streaming.generate(request_history, config, token):
                token.raise_if_cancelled()
                turn.text += fragment
                self._emit(TurnEvent(kind="text", turn_id=turn.id, delta=fragment, text=turn.text))
            token.raise_if_cancelled()
            self._advance(turn, TurnState.STREAM_COMPLETE)

            self._advance(turn, TurnState.EXTRACTING)
            result = await self._extract(turn, request_history, config, token)
            token.raise_if_cancelled()
            turn.result = result
            self._advance(turn, TurnState.EXTRACTED)

            self.map_store.apply(turn.id, result)
            self._advance(turn, TurnState.RECONCILED)
        except (TurnCancelled, asyncio.CancelledError):
            if not token.cancelled:
                raise
            self._mark_cancelled(handle)
        except BusinessError as exc:
            self._fail(turn, exc)
        except Exception as exc:
            logger.exception("turn.crashed", extra={"extra": {"turn_id": turn.id}})
            self._fail(turn, BusinessError(code="INTERNAL_ERROR", message=f"未知错误: {exc}", http_status=500))
        finally:
            self._retire(handle)

    async def _extract(
        self,
        turn: Turn,
        request_history: Tuple[Message, ...],
        config: ModelEndpointConfig,
        token: CancellationToken,
    ) -> ExtractionResult:
        try:
            return await self._extractor.extract(turn.text, request_history, config, token)
        except ValidationError as exc:
            # 回答本身仍然有效，地图按 NO_MAP_UPDATE 处理
            logger.warning(
                "extract.rejected",
                extra={"extra": {"turn_id": turn.id, "code": exc.code, "error": exc.message}},
            )
            return ExtractionResult.no_map_update(turn.text, issues=(exc.message,))

    def _cancel_handle(self, handle: TurnHandle, reason: str) -> None:
        handle.token.cancel()
        handle.turn.cancelled = True
        if handle.task is not None and not handle.task.done():
            handle.task.cancel()
        logger.info("turn.cancel", extra={"extra": {"turn_id": handle.id, "reason": reason}})
        self._mark_cancelled(handle)
        self._retire(handle)

    def _mark_cancelled(self, handle: TurnHandle) -> None:
        turn = handle.turn
        turn.cancelled = True
        if not turn.state.terminal:
            self._advance(turn, TurnState.CANCELLED)

    def _fail(self, turn: Turn, exc: BusinessError) -> None:
        turn.error = exc
        turn.failed_stage = "extraction" if turn.state is TurnState.EXTRACTING else "streaming"
        logger.error(
            "turn.failed",
            extra={"extra": {"turn_id": turn.id, "stage": turn.failed_stage, "code": exc.code, "error": exc.message}},
        )
        self._advance(turn, TurnState.ERROR, error=exc)

    def _retire(self, handle: TurnHandle) -> None:
        """把结束的 Turn 写入会话历史（每个 Turn 只写一次）。"""

        if handle.retired:
            return
        handle.retired = True
        self._history.extend(handle.turn.messages())

    def _trimmed(self, history: Sequence[Message]) -> Tuple[Message, ...]:
        return tuple(history[-self._max_history:])

    # ---- 事件 ----

    def _advance(self, turn: Turn, state: TurnState, error: Optional[BusinessError] = None) -> None:
        turn.advance(state)
        self._emit(TurnEvent(kind="status", turn_id=turn.id, state=state, error=error))

    def _on_map_changed(self, turn_id: int, state: MapRenderState) -> None:
        self._emit(TurnEvent(kind="map", turn_id=turn_id, map_state=state))

    def _emit(self, event: TurnEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("turn.listener_failed", extra={"extra": {"turn_id": event.turn_id}})
