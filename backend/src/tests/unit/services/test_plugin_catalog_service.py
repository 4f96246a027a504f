"""Unit tests for seeding the registry from plugin manifests."""

import pytest

from cas.models.permission import ResourceType
from cas.models.plugin import PluginStatus
from cas.plugins.loader import PluginManifest
from cas.services.plugin_catalog_service import PluginCatalogService
from cas.stores.memory import InMemoryCommunicationStore, InMemoryPermissionStore, InMemoryPluginStore


def _manifest(plugin_id: str, **fields) -> PluginManifest:
    data = {
        "id": plugin_id,
        "name": plugin_id.title(),
        "version": "1.0.0",
        "category": "system",
        "config": {"chunk_size": 512},
        "permissions": [
            {"permission_name": "configure", "resource_type": "action", "is_system_level": True},
            {"permission_name": "chat.create", "resource_type": "action"},
        ],
    }
    data.update(fields)
    return PluginManifest.model_validate(data)


@pytest.fixture
def catalog():
    plugin_store = InMemoryPluginStore()
    permission_store = InMemoryPermissionStore()
    return PluginCatalogService(plugin_store, permission_store), plugin_store, permission_store


class TestSeed:
    @pytest.mark.asyncio
    async def test_creates_disabled_plugins_and_permissions(self, catalog):
        service, plugin_store, permission_store = catalog

        result = await service.seed({"rag-retrieval": _manifest("rag-retrieval")})

        assert result.as_dict() == {"discovered": 1, "created": 1, "existing": 0, "permissions": 2, "apis": 0}
        plugin = await plugin_store.get_plugin("rag-retrieval")
        assert plugin.status == PluginStatus.DISABLED
        assert plugin.is_system is True
        assert plugin.config == {"chunk_size": 512}
        definitions = await permission_store.list_definitions("rag-retrieval", ResourceType.ACTION)
        assert {d.permission_name for d in definitions} == {"configure", "chat.create"}

    @pytest.mark.asyncio
    async def test_reseed_keeps_status_and_config(self, catalog):
        service, plugin_store, permission_store = catalog
        await service.seed({"rag-retrieval": _manifest("rag-retrieval")})
        await plugin_store.set_status("rag-retrieval", PluginStatus.ACTIVE)
        await plugin_store.update_config("rag-retrieval", {"chunk_size": 1024})

        result = await service.seed({"rag-retrieval": _manifest("rag-retrieval", config={"chunk_size": 64})})

        assert result.created == 0
        assert result.existing == 1
        plugin = await plugin_store.get_plugin("rag-retrieval")
        assert plugin.status == PluginStatus.ACTIVE
        assert plugin.config == {"chunk_size": 1024}
        assert len(await permission_store.list_definitions("rag-retrieval")) == 2

    @pytest.mark.asyncio
    async def test_new_permissions_are_added_on_reseed(self, catalog):
        service, _, permission_store = catalog
        await service.seed({"rag-retrieval": _manifest("rag-retrieval")})

        extended = _manifest(
            "rag-retrieval",
            permissions=[
                {"permission_name": "configure", "resource_type": "action", "is_system_level": True},
                {"permission_name": "document.upload", "resource_type": "action"},
            ],
        )
        await service.seed({"rag-retrieval": extended})

        names = {d.permission_name for d in await permission_store.list_definitions("rag-retrieval")}
        assert names == {"configure", "chat.create", "document.upload"}

    @pytest.mark.asyncio
    async def test_empty_catalog(self, catalog):
        service, _, _ = catalog
        result = await service.seed({})
        assert result.as_dict() == {"discovered": 0, "created": 0, "existing": 0, "permissions": 0, "apis": 0}

    @pytest.mark.asyncio
    async def test_declared_apis_are_registered(self):
        plugin_store = InMemoryPluginStore()
        communication_store = InMemoryCommunicationStore()
        service = PluginCatalogService(plugin_store, InMemoryPermissionStore(), communication_store)
        manifest = _manifest(
            "rag-retrieval",
            apis=[{"api_path": "/api/rag/query", "http_method": "POST", "required_permissions": ["chat.create"]}],
        )

        first = await service.seed({"rag-retrieval": manifest})
        await service.seed({"rag-retrieval": manifest})

        assert first.apis == 1
        [api] = await communication_store.list_apis("rag-retrieval")
        assert (api.http_method.value, api.api_path, api.required_permissions) == (
            "POST",
            "/api/rag/query",
            ["chat.create"],
        )
