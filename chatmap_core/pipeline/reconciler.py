"""地图状态协调（MapStateReconciler）。

纯函数：由提取结果计算新的地图渲染状态。结果只取决于 result，
相同输入总是得到相同输出，因此重复应用是幂等的。

- NO_MAP_UPDATE: 清空标记与路线，无论之前是什么状态；
- LOCATION_LIST: 标记即地点列表（保持顺序），没有路线；
- ROUTE: 标记即地点列表，地点数 >= 2 时按相同顺序生成折线。

视野适配（外接矩形与留白）属于渲染层，见 viewport 模块。
"""

from chatmap_core.domain.models import ExtractionResult, MapRenderState, TaskType


def empty_map_state() -> MapRenderState:
    """清空会话后的默认状态：无标记、无路线、LOCATION_LIST。"""

    return MapRenderState(markers=(), route=None, task_type=TaskType.LOCATION_LIST)


def reconcile(result: ExtractionResult, previous: MapRenderState) -> MapRenderState:
    if result.task_type is TaskType.NO_MAP_UPDATE or not result.locations:
        return MapRenderState(markers=(), route=None, task_type=TaskType.NO_MAP_UPDATE)

    markers = tuple(result.locations)
    if result.task_type is TaskType.ROUTE:
        route = tuple(loc.coordinate for loc in markers) if len(markers) >= 2 else None
        return MapRenderState(markers=markers, route=route, task_type=TaskType.ROUTE)
    return MapRenderState(markers=markers, route=None, task_type=TaskType.LOCATION_LIST)
