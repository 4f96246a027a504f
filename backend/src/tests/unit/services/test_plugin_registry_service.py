"""Unit tests for PluginRegistryService."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from conftest import make_plugin, make_user

from cas.auth.models import UserRole
from cas.core.exceptions import ForbiddenError, PluginAlreadyExistsError, PluginNotFoundError, StoreUnavailableError
from cas.models.plugin import PluginCategory, PluginStatus
from cas.schemas.plugin import PluginInstallRequest
from cas.services.plugin_registry_service import PluginRegistryService


@pytest.fixture
def registry(plugin_store) -> PluginRegistryService:
    return PluginRegistryService(plugin_store)


class TestStatusTransitions:
    @pytest.mark.asyncio
    async def test_admin_enables_system_plugin(self, registry, admin_user):
        plugin = await registry.enable("ldap-auth", admin_user)

        assert plugin.status == PluginStatus.ACTIVE
        stored = await registry.get_plugin("ldap-auth")
        assert stored.status == PluginStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_regular_user_cannot_toggle_system_plugin(self, registry, regular_user):
        with pytest.raises(ForbiddenError):
            await registry.enable("ldap-auth", regular_user)

        stored = await registry.get_plugin("ldap-auth")
        assert stored.status == PluginStatus.DISABLED

    @pytest.mark.asyncio
    async def test_regular_user_can_toggle_application_plugin(self, registry, regular_user):
        plugin = await registry.enable("notes", regular_user)
        assert plugin.status == PluginStatus.ACTIVE

        plugin = await registry.disable("notes", regular_user)
        assert plugin.status == PluginStatus.DISABLED

    @pytest.mark.asyncio
    async def test_configured_admin_email_grants_system_capability(self, registry):
        user = make_user("ops", UserRole.REGULAR_USER, email="ops@example.com")
        user.configured_admin = True

        plugin = await registry.enable("ldap-auth", user)
        assert plugin.status == PluginStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_enable_is_idempotent(self, registry, admin_user):
        first = await registry.transition("ldap-auth", PluginStatus.ACTIVE, admin_user)
        second = await registry.transition("ldap-auth", PluginStatus.ACTIVE, admin_user)

        assert first.changed is True
        assert first.previous_status == PluginStatus.DISABLED
        assert second.changed is False
        assert second.new_status == PluginStatus.ACTIVE
        assert second.actor_id == admin_user.id

    @pytest.mark.asyncio
    async def test_disable_already_disabled_succeeds(self, registry, admin_user):
        plugin = await registry.disable("ldap-auth", admin_user)
        assert plugin.status == PluginStatus.DISABLED

    @pytest.mark.asyncio
    async def test_unknown_plugin_raises_not_found(self, registry, admin_user):
        with pytest.raises(PluginNotFoundError):
            await registry.enable("missing-plugin", admin_user)

    @pytest.mark.asyncio
    async def test_concurrent_enables_converge(self, registry, admin_user):
        results = await asyncio.gather(*[registry.enable("ldap-auth", admin_user) for _ in range(10)])

        assert all(p.status == PluginStatus.ACTIVE for p in results)
        assert (await registry.get_plugin("ldap-auth")).status == PluginStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_row_removed_between_read_and_write(self, admin_user):
        store = AsyncMock()
        store.get_plugin.return_value = make_plugin("notes")
        store.set_status.return_value = None

        with pytest.raises(PluginNotFoundError):
            await PluginRegistryService(store).enable("notes", admin_user)

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, admin_user):
        store = AsyncMock()
        store.get_plugin.side_effect = StoreUnavailableError("get_plugin", "connection refused")

        with pytest.raises(StoreUnavailableError):
            await PluginRegistryService(store).enable("notes", admin_user)


class TestListing:
    @pytest.mark.asyncio
    async def test_list_all_sorted_by_id(self, registry):
        plugins = await registry.list_plugins()
        assert [p.id for p in plugins] == ["ldap-auth", "notes", "rag-retrieval"]

    @pytest.mark.asyncio
    async def test_list_by_category(self, registry):
        plugins = await registry.list_plugins(PluginCategory.SYSTEM)
        assert {p.id for p in plugins} == {"ldap-auth", "rag-retrieval"}
        assert all(p.is_system for p in plugins)


class TestInstall:
    @pytest.mark.asyncio
    async def test_admin_installs_disabled_plugin(self, registry, admin_user):
        request = PluginInstallRequest(id="wiki", name="Wiki", version="0.3.0", config={"space": "eng"})

        plugin = await registry.install(request, admin_user)

        assert plugin.status == PluginStatus.DISABLED
        assert plugin.category == PluginCategory.APPLICATION
        assert plugin.is_system is False
        assert plugin.config == {"space": "eng"}
        assert plugin.created_at is not None

    @pytest.mark.asyncio
    async def test_system_category_marks_plugin_as_system(self, registry, admin_user):
        request = PluginInstallRequest(id="sso", name="SSO", version="1.0.0", category=PluginCategory.SYSTEM)

        plugin = await registry.install(request, admin_user)
        assert plugin.is_system is True

    @pytest.mark.asyncio
    async def test_regular_user_cannot_install(self, registry, regular_user):
        request = PluginInstallRequest(id="wiki", name="Wiki", version="0.3.0")

        with pytest.raises(ForbiddenError):
            await registry.install(request, regular_user)

    @pytest.mark.asyncio
    async def test_duplicate_id_conflicts(self, registry, admin_user):
        request = PluginInstallRequest(id="notes", name="Notes again", version="2.0.0")

        with pytest.raises(PluginAlreadyExistsError):
            await registry.install(request, admin_user)


class TestConfig:
    @pytest.mark.asyncio
    async def test_application_config_readable_by_anyone(self, regular_user, plugin_store):
        await plugin_store.update_config("notes", {"theme": "dark"})
        registry = PluginRegistryService(plugin_store)

        assert await registry.get_config("notes", regular_user) == {"theme": "dark"}

    @pytest.mark.asyncio
    async def test_system_config_requires_admin(self, registry, regular_user, admin_user):
        with pytest.raises(ForbiddenError):
            await registry.get_config("ldap-auth", regular_user)

        assert await registry.get_config("ldap-auth", admin_user) == {}

    @pytest.mark.asyncio
    async def test_update_config_replaces_object(self, registry, admin_user):
        await registry.update_config("ldap-auth", {"server_url": "ldaps://a", "use_tls": True}, admin_user)
        plugin = await registry.update_config("ldap-auth", {"server_url": "ldaps://b"}, admin_user)

        assert plugin.config == {"server_url": "ldaps://b"}

    @pytest.mark.asyncio
    async def test_update_system_config_forbidden_for_regular_user(self, registry, regular_user):
        with pytest.raises(ForbiddenError):
            await registry.update_config("ldap-auth", {"server_url": "ldaps://x"}, regular_user)

    @pytest.mark.asyncio
    async def test_update_config_unknown_plugin(self, registry, admin_user):
        with pytest.raises(PluginNotFoundError):
            await registry.update_config("missing", {}, admin_user)
