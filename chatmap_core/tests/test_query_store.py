import json

import pytest

from chatmap_core.domain.exceptions import BusinessError
from chatmap_core.infrastructure.storage.json_store import JsonQueryStore


def test_record_and_list_newest_first(tmp_path):
    store = JsonQueryStore(root=tmp_path / ".storage")
    store.record("北京有哪些著名景点？")
    store.record("  上海外滩怎么走？ ")

    queries = store.list_queries()

    assert [q.query for q in queries] == ["上海外滩怎么走？", "北京有哪些著名景点？"]
    assert (tmp_path / ".storage" / "queries.json").exists()


def test_record_same_text_moves_to_front_and_keeps_saved(tmp_path):
    store = JsonQueryStore(root=tmp_path)
    first = store.record("北京")
    store.record("上海")
    store.toggle_saved(first.id)

    again = store.record("北京")

    queries = store.list_queries()
    assert [q.query for q in queries] == ["北京", "上海"]
    assert again.saved is True


def test_prune_keeps_saved_queries(tmp_path):
    store = JsonQueryStore(root=tmp_path, max_recent=2)
    keep = store.record("收藏的问题")
    store.toggle_saved(keep.id)
    for i in range(4):
        store.record(f"问题{i}")

    texts = [q.query for q in store.list_queries()]

    assert texts == ["问题3", "问题2", "收藏的问题"]


def test_toggle_delete_and_clear(tmp_path):
    store = JsonQueryStore(root=tmp_path)
    a = store.record("a")
    b = store.record("b")
    store.toggle_saved(a.id)

    store.delete(b.id)
    assert [q.id for q in store.list_queries()] == [a.id]

    store.record("c")
    store.clear()
    assert [q.query for q in store.list_queries()] == ["a"]

    store.clear(keep_saved=False)
    assert store.list_queries() == []


def test_unknown_id(tmp_path):
    store = JsonQueryStore(root=tmp_path)
    with pytest.raises(BusinessError) as exc:
        store.toggle_saved("q-missing")
    assert exc.value.code == "QUERY_NOT_FOUND"
    assert exc.value.http_status == 404
    with pytest.raises(BusinessError):
        store.delete("q-missing")


def test_corrupt_file_is_read_error(tmp_path):
    (tmp_path / "queries.json").write_text("{broken", encoding="utf-8")
    store = JsonQueryStore(root=tmp_path)

    with pytest.raises(BusinessError) as exc:
        store.list_queries()
    assert exc.value.code == "STORE_READ_ERROR"


def test_invalid_entries_are_skipped(tmp_path):
    entries = [
        {"id": "q-1", "query": "ok", "timestamp": "2024-05-01T08:00:00Z", "saved": True},
        {"id": "q-2"},
    ]
    (tmp_path / "queries.json").write_text(json.dumps(entries), encoding="utf-8")

    queries = JsonQueryStore(root=tmp_path).list_queries()

    assert [q.id for q in queries] == ["q-1"]
    assert queries[0].saved is True
    assert queries[0].timestamp.year == 2024
