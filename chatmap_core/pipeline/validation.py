"""提取结果的解码与校验。

模型只负责分类与给出坐标，这里不重新推导分类，只做：

1. 顶层结构校验（task_type / text / locations），不符合即 ValidationError；
2. 逐个地点把纬度/经度转换为数字并检查范围；
3. 缺失的 id / title / description 使用合成默认值，保证带坐标的数据不因外观字段缺失被丢弃；
4. 任务类型与地点列表的一致性（NO_MAP_UPDATE 无地点，其余至少一个地点）。
"""

import json
import math
import re
from typing import Any, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from chatmap_core.domain.exceptions import ValidationError
from chatmap_core.domain.models import ExtractionResult, Location, TaskType

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)

DEFAULT_DESCRIPTION = "没有可用的描述"


class ExtractionPayload(BaseModel):
    """ChatExtract 返回 JSON 的顶层结构。

    text 允许缺省：结果的 source_text 优先取已流式输出的最终回答，
    模型回传的 text 只在最终回答为空时使用。
    """

    model_config = ConfigDict(extra="ignore")

    task_type: TaskType
    text: Optional[str] = None
    locations: List[Any] = Field(default_factory=list)

    @field_validator("task_type", mode="before")
    @classmethod
    def upper_task_type(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("locations", mode="before")
    @classmethod
    def null_locations(cls, v: Any) -> Any:
        return [] if v is None else v


def parse_json_content(content: str) -> dict:
    """解析模型返回的 JSON 文本，兼容 ```json 代码块包裹。"""

    text = content.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(
            code="INVALID_EXTRACTION",
            message=f"解析 AI 响应失败: {e.msg}",
            preview=text[:200],
        )
    if not isinstance(data, dict):
        raise ValidationError(code="INVALID_EXTRACTION", message="AI 响应不是 JSON 对象")
    return data


def coerce_coordinate(value: Any) -> Optional[float]:
    """把坐标转换为有限浮点数；无法转换时返回 None。"""

    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _text(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _unique_id(candidate: str, seen: Set[str], position: int) -> str:
    if candidate not in seen:
        return candidate
    base = f"location-{position}"
    uid, suffix = base, 1
    while uid in seen:
        suffix += 1
        uid = f"{base}-{suffix}"
    return uid


def validate_locations(raw_locations: List[Any], strict: bool = False) -> tuple:
    """校验地点列表，返回 (地点元组, 问题描述元组)。

    strict 为 True 时任一地点坐标非法即抛出 ValidationError；
    否则丢弃该地点并记录问题，其余地点保持原有顺序。
    """

    locations: List[Location] = []
    issues: List[str] = []
    seen: Set[str] = set()
    for index, item in enumerate(raw_locations):
        position = index + 1
        if not isinstance(item, dict):
            problem = f"第 {position} 个地点不是对象"
            if strict:
                raise ValidationError(code="INVALID_LOCATION", message=problem)
            issues.append(problem)
            continue

        title = _text(item.get("title")) or f"位置 {position}"
        lat = coerce_coordinate(item.get("latitude"))
        lng = coerce_coordinate(item.get("longitude"))
        problem = None
        if lat is None or not -90.0 <= lat <= 90.0:
            problem = f"位置的纬度无效: {title} ({item.get('latitude')!r})"
        elif lng is None or not -180.0 <= lng <= 180.0:
            problem = f"位置的经度无效: {title} ({item.get('longitude')!r})"
        if problem:
            if strict:
                raise ValidationError(code="INVALID_COORDINATE", message=problem, position=position)
            issues.append(problem)
            continue

        raw_id = _text(item.get("id")) or f"location-{position}"
        loc_id = _unique_id(raw_id, seen, position)
        if loc_id != raw_id:
            issues.append(f"重复的地点 id {raw_id!r} 已替换为 {loc_id!r}")
        seen.add(loc_id)
        locations.append(
            Location(
                id=loc_id,
                title=title,
                description=_text(item.get("description")) or DEFAULT_DESCRIPTION,
                latitude=lat,
                longitude=lng,
            )
        )
    return tuple(locations), tuple(issues)


def decode_extraction(content: str, source_text: str = "", strict: bool = False) -> ExtractionResult:
    """把 ChatExtract 的 content 解码为校验后的 ExtractionResult。

    Args:
        content: 模型返回的 JSON 文本。
        source_text: 已流式输出的最终回答；为空时使用模型回传的 text。
        strict: 是否在任一坐标非法时整体拒绝。

    Raises:
        ValidationError: 顶层结构不符，或 strict 模式下存在非法地点。
    """

    data = parse_json_content(content)
    try:
        payload = ExtractionPayload.model_validate(data)
    except PydanticValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise ValidationError(code="INVALID_EXTRACTION", message=f"无效的响应结构: {fields}")

    text = source_text or payload.text or ""
    if payload.task_type is TaskType.NO_MAP_UPDATE:
        issues = ("NO_MAP_UPDATE 结果中的地点已忽略",) if payload.locations else ()
        return ExtractionResult.no_map_update(text, issues=issues)

    locations, issues = validate_locations(payload.locations, strict=strict)
    if not locations:
        return ExtractionResult.no_map_update(
            text,
            issues=issues + (f"{payload.task_type.value} 没有有效地点，按 NO_MAP_UPDATE 处理",),
        )
    return ExtractionResult(task_type=payload.task_type, source_text=text, locations=locations, issues=issues)
