"""统一的对话、提取结果与地图状态数据模型。

本模块定义了流水线各阶段之间共享的标准数据结构：

- Message: 一条对话消息（user/assistant/system），创建后不可变。
- Location / ExtractionResult: 提取阶段的输出。
- MapRenderState: 地图渲染状态，仅由 reconciler 产生。
- Turn: 一次用户提交的完整生命周期，由 orchestrator 独占。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal, Optional, Tuple


# 对话消息角色（与 OpenAI 兼容接口的 role 字段对应）
Role = Literal["system", "user", "assistant"]

# (latitude, longitude)
Coordinate = Tuple[float, float]


class TaskType(str, Enum):
    """地图任务类型，取值即为模型返回 JSON 中的 task_type。"""

    NO_MAP_UPDATE = "NO_MAP_UPDATE"
    LOCATION_LIST = "LOCATION_LIST"
    ROUTE = "ROUTE"


class TurnState(str, Enum):
    """Turn 生命周期状态。

    IDLE -> STREAMING -> (CANCELLED | ERROR | STREAM_COMPLETE) -> EXTRACTING
    -> (CANCELLED | ERROR | EXTRACTED) -> RECONCILED
    """

    IDLE = "idle"
    STREAMING = "streaming"
    STREAM_COMPLETE = "stream_complete"
    EXTRACTING = "extracting"
    EXTRACTED = "extracted"
    RECONCILED = "reconciled"
    CANCELLED = "cancelled"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (TurnState.RECONCILED, TurnState.CANCELLED, TurnState.ERROR)


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    def to_payload(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Location:
    """地图上的一个地点。

    - id: 在同一个 ExtractionResult 内唯一。
    - latitude ∈ [-90, 90]，longitude ∈ [-180, 180]。
    """

    id: str
    title: str
    description: str
    latitude: float
    longitude: float

    @property
    def coordinate(self) -> Coordinate:
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class ExtractionResult:
    """一次提取调用的校验后结果。

    locations 为空当且仅当 task_type 为 NO_MAP_UPDATE。
    issues 记录校验过程中被丢弃或修正的条目，仅用于日志。
    """

    task_type: TaskType
    source_text: str
    locations: Tuple[Location, ...] = ()
    issues: Tuple[str, ...] = ()

    @classmethod
    def no_map_update(cls, source_text: str = "", issues: Tuple[str, ...] = ()) -> "ExtractionResult":
        return cls(task_type=TaskType.NO_MAP_UPDATE, source_text=source_text, locations=(), issues=issues)


@dataclass(frozen=True)
class MapRenderState:
    """地图渲染状态：有序标记点 + 可选路线折线 + 任务类型。"""

    markers: Tuple[Location, ...] = ()
    route: Optional[Tuple[Coordinate, ...]] = None
    task_type: TaskType = TaskType.LOCATION_LIST


@dataclass
class Turn:
    """一次用户提交及其完整响应生命周期。

    Turn 只由 RequestOrchestrator 创建与修改；结束后其消息会保留在
    会话历史中，作为后续 Turn 的上下文。
    """

    id: int
    query: str
    history: Tuple[Message, ...]
    text: str = ""
    state: TurnState = TurnState.IDLE
    cancelled: bool = False
    result: Optional[ExtractionResult] = None
    error: Optional[Exception] = None
    # 出错阶段："streaming" 时回答本身失败；"extraction" 时回答仍然有效
    failed_stage: Optional[Literal["streaming", "extraction"]] = None
    transitions: List[TurnState] = field(default_factory=list)

    def advance(self, state: TurnState) -> None:
        self.state = state
        self.transitions.append(state)

    @property
    def answer_failed(self) -> bool:
        return self.failed_stage == "streaming"

    def messages(self) -> Tuple[Message, ...]:
        """本 Turn 进入会话历史的消息。"""

        msgs = [Message(role="user", content=self.query)]
        if self.text and not self.answer_failed:
            msgs.append(Message(role="assistant", content=self.text))
        return tuple(msgs)
