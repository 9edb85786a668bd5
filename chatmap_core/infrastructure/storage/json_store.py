import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List
from uuid import uuid4

from chatmap_core.config.settings import settings
from chatmap_core.domain.exceptions import BusinessError


@dataclass
class SavedQuery:
    id: str
    query: str
    timestamp: datetime
    saved: bool = False


class JsonQueryStore:
    """最近查询记录，保存在 storage_root/queries.json。

    已收藏的查询不会被裁剪；未收藏的查询超过 max_recent 条时删除最旧的。
    """

    def __init__(self, root: str | Path | None = None, max_recent: int = 50):
        self._root = Path(root or settings.storage_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._path = self._root / "queries.json"
        self._max_recent = max_recent

    def record(self, query: str) -> SavedQuery:
        """记录一次查询；相同文本的旧记录会被移到最前并保留收藏状态。"""

        text = query.strip()
        items = self._read()
        saved = False
        for item in list(items):
            if item.query == text:
                saved = item.saved
                items.remove(item)
        entry = SavedQuery(id=f"q-{uuid4().hex}", query=text, timestamp=datetime.now(timezone.utc), saved=saved)
        items.insert(0, entry)
        self._write(self._prune(items))
        return entry

    def list_queries(self) -> List[SavedQuery]:
        """按时间倒序返回全部记录。"""
        return self._read()

    def toggle_saved(self, query_id: str) -> SavedQuery:
        items = self._read()
        for item in items:
            if item.id == query_id:
                item.saved = not item.saved
                self._write(items)
                return item
        raise BusinessError(code="QUERY_NOT_FOUND", message=query_id, http_status=404)

    def delete(self, query_id: str) -> None:
        items = self._read()
        remaining = [item for item in items if item.id != query_id]
        if len(remaining) == len(items):
            raise BusinessError(code="QUERY_NOT_FOUND", message=query_id, http_status=404)
        self._write(remaining)

    def clear(self, keep_saved: bool = True) -> None:
        self._write([item for item in self._read() if keep_saved and item.saved])

    def _prune(self, items: List[SavedQuery]) -> List[SavedQuery]:
        kept: List[SavedQuery] = []
        unsaved = 0
        for item in items:
            if not item.saved:
                unsaved += 1
                if unsaved > self._max_recent:
                    continue
            kept.append(item)
        return kept

    def _read(self) -> List[SavedQuery]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise BusinessError(code="STORE_READ_ERROR", message=str(e))
        items: List[SavedQuery] = []
        for raw in data if isinstance(data, list) else []:
            try:
                items.append(self._to_query(raw))
            except (KeyError, TypeError, ValueError):
                continue
        return items

    def _write(self, items: List[SavedQuery]) -> None:
        tmp_path = self._root / f"queries.{uuid4().hex}.json.tmp"
        payload = [
            {
                "id": item.id,
                "query": item.query,
                "timestamp": item.timestamp.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
                "saved": item.saved,
            }
            for item in items
        ]
        try:
            tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e))

    @staticmethod
    def _to_query(data: Dict[str, Any]) -> SavedQuery:
        return SavedQuery(
            id=data["id"],
            query=data["query"],
            timestamp=datetime.fromisoformat(str(data["timestamp"]).replace("Z", "+00:00")),
            saved=bool(data.get("saved", False)),
        )
