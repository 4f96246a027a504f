"""Unit tests for the cross-plugin API registry and communication audit."""

from datetime import datetime, timezone

import pytest

from cas.core.exceptions import PluginNotFoundError, UnknownPermissionError
from cas.models.communication import HttpMethod
from cas.models.permission import ResourceType
from cas.schemas.communication import CommunicationRecordCreate, PluginApiCreate
from cas.schemas.permission import PermissionDefinitionCreate
from cas.services.plugin_communication_service import PluginCommunicationService


@pytest.fixture
async def service(communication_store, plugin_store, permission_store):
    for name in ("rag.chat.create", "rag.document.upload"):
        await permission_store.upsert_definition(
            PermissionDefinitionCreate(plugin_id="rag-retrieval", permission_name=name, resource_type=ResourceType.ACTION)
        )
    await permission_store.upsert_definition(
        PermissionDefinitionCreate(
            plugin_id="rag-retrieval",
            permission_name="rag.collection.read",
            resource_type=ResourceType.OBJECT,
        )
    )
    return PluginCommunicationService(communication_store, plugin_store, permission_store)


def _api(path: str = "/api/rag/query", method: HttpMethod = HttpMethod.POST, **fields) -> PluginApiCreate:
    return PluginApiCreate(plugin_id="rag-retrieval", api_path=path, http_method=method, **fields)


def _call(from_plugin_id: str = "notes", **fields) -> CommunicationRecordCreate:
    data = {
        "from_plugin_id": from_plugin_id,
        "user_id": "user-1",
        "api_path": "/api/rag/query",
        "http_method": "POST",
        "status_code": 200,
        "execution_time_ms": 40,
    }
    data.update(fields)
    return CommunicationRecordCreate(**data)


class TestRegistry:
    @pytest.mark.asyncio
    async def test_register_and_update_in_place(self, service):
        first = await service.register_api(_api(required_permissions=["rag.chat.create"]))
        second = await service.register_api(
            _api(description="Ask a question", required_permissions=["rag.chat.create", "rag.document.upload"])
        )

        assert second.id == first.id
        assert second.description == "Ask a question"
        assert second.required_permissions == ["rag.chat.create", "rag.document.upload"]
        assert len(await service.list_apis("rag-retrieval")) == 1

    @pytest.mark.asyncio
    async def test_list_is_ordered_by_method_then_path(self, service):
        await service.register_api(_api("/api/rag/query", HttpMethod.POST))
        await service.register_api(_api("/api/rag/documents", HttpMethod.POST))
        await service.register_api(_api("/api/rag/status", HttpMethod.GET, is_public=True))

        apis = await service.list_apis("rag-retrieval")

        assert [(a.http_method, a.api_path) for a in apis] == [
            (HttpMethod.GET, "/api/rag/status"),
            (HttpMethod.POST, "/api/rag/documents"),
            (HttpMethod.POST, "/api/rag/query"),
        ]
        assert apis[0].is_public is True

    @pytest.mark.asyncio
    async def test_unknown_plugin(self, service):
        with pytest.raises(PluginNotFoundError):
            await service.register_api(PluginApiCreate(plugin_id="ghost", api_path="/x", http_method=HttpMethod.GET))
        with pytest.raises(PluginNotFoundError):
            await service.list_apis("ghost")

    @pytest.mark.asyncio
    async def test_required_permission_must_be_a_declared_action(self, service, communication_store):
        with pytest.raises(UnknownPermissionError):
            await service.register_api(_api(required_permissions=["rag.undeclared"]))
        with pytest.raises(UnknownPermissionError):
            await service.register_api(_api(required_permissions=["rag.collection.read"]))

        assert await communication_store.list_apis("rag-retrieval") == []


class TestAudit:
    @pytest.mark.asyncio
    async def test_record_requires_both_plugins(self, service):
        with pytest.raises(PluginNotFoundError):
            await service.record_communication("rag-retrieval", _call(from_plugin_id="ghost"))
        with pytest.raises(PluginNotFoundError):
            await service.record_communication("ghost", _call())

    @pytest.mark.asyncio
    async def test_history_covers_both_directions_newest_first(self, service, communication_store):
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        await communication_store.add_record("rag-retrieval", _call(), base.replace(hour=1))
        await communication_store.add_record("notes", _call(from_plugin_id="rag-retrieval"), base.replace(hour=3))
        await communication_store.add_record("ldap-auth", _call(), base.replace(hour=2))

        history = await service.get_history("rag-retrieval")

        assert [(r.from_plugin_id, r.to_plugin_id) for r in history] == [
            ("rag-retrieval", "notes"),
            ("notes", "rag-retrieval"),
        ]
        assert [r.to_plugin_id for r in await service.get_history("notes", limit=2)] == ["notes", "ldap-auth"]

    @pytest.mark.asyncio
    async def test_history_limit_is_clamped(self, service):
        for _ in range(3):
            await service.record_communication("rag-retrieval", _call())

        assert len(await service.get_history("rag-retrieval", limit=0)) == 1
        assert len(await service.get_history("rag-retrieval", limit=10_000)) == 3

    @pytest.mark.asyncio
    async def test_recorded_fields_are_kept(self, service):
        stored = await service.record_communication(
            "rag-retrieval",
            _call(success=False, status_code=503, error_message="index offline", request_data={"q": "hi"}),
        )

        assert stored.to_plugin_id == "rag-retrieval"
        assert stored.success is False
        assert stored.error_message == "index offline"
        assert stored.request_data == {"q": "hi"}
        assert stored.timestamp.tzinfo is not None

    @pytest.mark.asyncio
    async def test_stats(self, service):
        await service.record_communication("rag-retrieval", _call(execution_time_ms=10))
        await service.record_communication("rag-retrieval", _call(execution_time_ms=30, success=False))
        await service.record_communication("ldap-auth", _call(execution_time_ms=None))

        per_plugin = await service.get_stats("rag-retrieval")
        overall = await service.get_stats()

        assert per_plugin.model_dump() == {
            "plugin_id": "rag-retrieval",
            "total_calls": 2,
            "successful_calls": 1,
            "failed_calls": 1,
            "avg_execution_time_ms": 20.0,
            "max_execution_time_ms": 30,
            "min_execution_time_ms": 10,
        }
        assert (overall.plugin_id, overall.total_calls, overall.successful_calls) == (None, 3, 2)

    @pytest.mark.asyncio
    async def test_stats_for_quiet_plugin(self, service):
        stats = await service.get_stats("notes")

        assert stats.total_calls == 0
        assert stats.avg_execution_time_ms is None
        with pytest.raises(PluginNotFoundError):
            await service.get_stats("ghost")
