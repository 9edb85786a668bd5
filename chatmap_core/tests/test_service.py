import pytest
from conftest import BEIJING_SIGHTS, FakeEndpoint, FakeReply, SettingsStub, extraction, sse

from chatmap_core.api import service
from chatmap_core.config.endpoint import parse_endpoint_config
from chatmap_core.domain.exceptions import ValidationError
from chatmap_core.domain.models import TaskType, TurnState
from chatmap_core.infrastructure.storage.json_store import JsonQueryStore
from chatmap_core.pipeline.orchestrator import RequestOrchestrator


@pytest.fixture
def wired(monkeypatch, tmp_path):
    endpoint = FakeEndpoint(
        FakeReply(lines=sse("北京有", "故宫等景点。"), content=extraction("LOCATION_LIST", BEIJING_SIGHTS)),
    )
    config = parse_endpoint_config({"provider": "openai", "api_key": "sk-test-123456"})
    orch = RequestOrchestrator(endpoint=endpoint, config_source=lambda: config, cfg=SettingsStub())
    monkeypatch.setattr(service, "_orchestrator", orch)
    monkeypatch.setattr(service, "_query_store", JsonQueryStore(root=tmp_path))
    monkeypatch.setattr(service.settings, "record_query_history", True)
    return orch


@pytest.mark.asyncio
async def test_submit_query_streams_text_and_updates_map(wired):
    texts = []
    maps = []
    service.subscribe_text(lambda turn_id, delta, text: texts.append(text))
    service.subscribe_map(lambda turn_id, state: maps.append(state.task_type))

    await service.submit_query("北京有哪些著名景点？").wait()

    assert texts == ["北京有", "北京有故宫等景点。"]
    assert maps == [TaskType.LOCATION_LIST]
    assert len(service.current_map_state().markers) == 4
    assert [q.query for q in service.list_recent_queries()] == ["北京有哪些著名景点？"]


@pytest.mark.asyncio
async def test_broken_query_store_does_not_fail_submission(wired, tmp_path):
    (tmp_path / "queries.json").write_text("{corrupt", encoding="utf-8")

    handle = service.submit_query("北京有哪些景点")
    turn = await handle.wait()

    assert turn.state is TurnState.RECONCILED
    assert len(service.current_map_state().markers) == 4


@pytest.mark.asyncio
async def test_empty_query_is_not_recorded(wired):
    with pytest.raises(ValidationError):
        service.submit_query("")
    assert service.list_recent_queries() == []


@pytest.mark.asyncio
async def test_clear_conversation(wired):
    await service.submit_query("北京有哪些著名景点？").wait()

    service.clear_conversation()

    assert service.current_map_state().markers == ()
    assert wired.history == ()


def test_suggested_queries_and_saved_toggle(wired):
    suggestions = service.list_suggested_queries()
    assert len(suggestions) == 12
    assert all(query and category for query, category in suggestions)

    entry = service.get_query_store().record("北欧四国夏季极光观测点")
    assert service.toggle_saved_query(entry.id).saved is True
