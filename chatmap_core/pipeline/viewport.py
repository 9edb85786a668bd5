"""地图视野计算，供渲染层在状态更新后适配视野。"""

from dataclasses import dataclass
from typing import Iterable, Optional

from chatmap_core.domain.models import Coordinate, MapRenderState


@dataclass(frozen=True)
class Bounds:
    south: float
    west: float
    north: float
    east: float

    @property
    def center(self) -> Coordinate:
        return ((self.south + self.north) / 2, (self.west + self.east) / 2)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def bounds_for(coords: Iterable[Coordinate], padding: float = 0.1, min_span: float = 0.01) -> Optional[Bounds]:
    """计算坐标集合的外接矩形，每边按跨度比例 padding 外扩。

    只有一个点（或所有点重合）时以 min_span（度）作为最小跨度。
    """

    points = list(coords)
    if not points:
        return None
    lats = [lat for lat, _ in points]
    lngs = [lng for _, lng in points]
    south, north = min(lats), max(lats)
    west, east = min(lngs), max(lngs)
    lat_pad = max(north - south, min_span) * padding if north > south else min_span / 2
    lng_pad = max(east - west, min_span) * padding if east > west else min_span / 2
    return Bounds(
        south=_clamp(south - lat_pad, -90.0, 90.0),
        west=_clamp(west - lng_pad, -180.0, 180.0),
        north=_clamp(north + lat_pad, -90.0, 90.0),
        east=_clamp(east + lng_pad, -180.0, 180.0),
    )


def fit_bounds(state: MapRenderState, padding: float = 0.1) -> Optional[Bounds]:
    """覆盖所有标记点与路线顶点的视野；空状态返回 None。"""

    coords = [m.coordinate for m in state.markers]
    coords.extend(state.route or ())
    return bounds_for(coords, padding=padding)
