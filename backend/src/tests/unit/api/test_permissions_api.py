"""HTTP tests for the plugin permission routes and the plugin route guard."""

from unittest.mock import AsyncMock

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from structlog.testing import capture_logs

from cas.api.dependencies import get_cache, get_permission_store, get_plugin_store, require_plugin_permission
from cas.auth.models import User
from cas.auth.rbac import get_current_user
from cas.core.config import Settings
from cas.core.exceptions import StoreUnavailableError
from cas.main import create_app
from cas.models.permission import ResourceType
from cas.schemas.permission import PermissionDefinitionCreate

PREFIX = "/api/v1"


class Caller:
    def __init__(self, user):
        self.user = user

    def __call__(self):
        return self.user


def _guarded_routes(app: FastAPI) -> None:
    @app.get("/rag/upload")
    async def upload(
        user: User = Depends(require_plugin_permission("rag-retrieval", "document.upload", ResourceType.ACTION)),
    ):
        return {"user_id": user.id}

    @app.get("/rag/collections/{collection_id}")
    async def read_collection(
        collection_id: str,
        user: User = Depends(
            require_plugin_permission("rag-retrieval", "collection.read", ResourceType.OBJECT, "collection_id")
        ),
    ):
        return {"collection_id": collection_id}


@pytest.fixture
async def catalog(permission_store):
    for name, resource_type in [("document.upload", ResourceType.ACTION), ("collection.read", ResourceType.OBJECT)]:
        await permission_store.upsert_definition(
            PermissionDefinitionCreate(plugin_id="rag-retrieval", permission_name=name, resource_type=resource_type)
        )
    return permission_store


@pytest.fixture
def caller(admin_user) -> Caller:
    return Caller(admin_user)


@pytest.fixture
def client(caller, plugin_store, catalog) -> TestClient:
    app = create_app(Settings())
    _guarded_routes(app)
    app.dependency_overrides[get_current_user] = caller
    app.dependency_overrides[get_plugin_store] = lambda: plugin_store
    app.dependency_overrides[get_permission_store] = lambda: catalog
    app.dependency_overrides[get_cache] = lambda: None
    return TestClient(app)


def _change(user_id: str, permission_name: str = "document.upload", resource_type: str = "action", **extra):
    return {"user_id": user_id, "permission_name": permission_name, "resource_type": resource_type, **extra}


class TestCatalogRoutes:
    def test_list_permissions(self, client):
        response = client.get(f"{PREFIX}/plugins/rag-retrieval/permissions", params={"resource_type": "object"})

        assert response.status_code == 200
        assert [d["permission_name"] for d in response.json()["data"]] == ["collection.read"]

    def test_register_permission_requires_admin(self, client, caller, regular_user):
        body = {"permission_name": "chat.create", "resource_type": "action"}

        created = client.post(f"{PREFIX}/plugins/rag-retrieval/permissions", json=body)
        assert created.status_code == 201
        assert created.json()["data"]["resource_id"] is None

        caller.user = regular_user
        assert client.post(f"{PREFIX}/plugins/rag-retrieval/permissions", json=body).status_code == 403

    def test_unknown_resource_type_is_rejected(self, client):
        body = {"permission_name": "chat.create", "resource_type": "table"}

        response = client.post(f"{PREFIX}/plugins/rag-retrieval/permissions", json=body)

        assert response.status_code == 422


class TestGrantRoutes:
    def test_grant_check_revoke(self, client, caller, admin_user, regular_user):
        with capture_logs() as events:
            granted = client.post(f"{PREFIX}/plugins/rag-retrieval/grants", json=_change(regular_user.id))
        assert granted.status_code == 200
        assert granted.json()["data"]["is_granted"] is True
        assert granted.json()["data"]["granted_by"] == "admin-1"
        assert [e["event"] for e in events] == ["plugin_permission_granted"]
        assert events[0]["actor_id"] == "admin-1"

        caller.user = regular_user
        check = client.post(
            f"{PREFIX}/plugins/rag-retrieval/check",
            json={"permission_name": "document.upload", "resource_type": "action"},
        )
        assert check.json()["data"]["allowed"] is True
        assert check.json()["data"]["user_id"] == regular_user.id

        caller.user = admin_user
        revoked = client.post(f"{PREFIX}/plugins/rag-retrieval/revocations", json=_change(regular_user.id))
        assert revoked.json()["data"]["is_granted"] is False

        check = client.post(
            f"{PREFIX}/plugins/rag-retrieval/check",
            json={"user_id": regular_user.id, "permission_name": "document.upload", "resource_type": "action"},
        )
        assert check.json()["data"]["allowed"] is False

    def test_grant_undeclared_permission_is_422(self, client):
        response = client.post(f"{PREFIX}/plugins/rag-retrieval/grants", json=_change("u1", "nope"))

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "UNKNOWN_PERMISSION"

    def test_grant_requires_admin(self, client, caller, regular_user):
        caller.user = regular_user

        response = client.post(f"{PREFIX}/plugins/rag-retrieval/grants", json=_change(regular_user.id))

        assert response.status_code == 403

    def test_bulk_grant_and_revoke(self, client):
        granted = client.post(
            f"{PREFIX}/plugins/rag-retrieval/grants/bulk",
            json={"user_ids": ["u1", "u2", "u1"], "permission_name": "document.upload", "resource_type": "action"},
        )
        assert [g["user_id"] for g in granted.json()["data"]] == ["u1", "u2"]

        revoked = client.post(
            f"{PREFIX}/plugins/rag-retrieval/revocations/bulk",
            json={"user_ids": ["u2"], "permission_name": "document.upload", "resource_type": "action"},
        )
        assert [g["is_granted"] for g in revoked.json()["data"]] == [False]

    def test_bulk_rejects_oversized_user_id(self, client):
        response = client.post(
            f"{PREFIX}/plugins/rag-retrieval/grants/bulk",
            json={"user_ids": ["u1", "x" * 40], "permission_name": "document.upload", "resource_type": "action"},
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "REQUEST_VALIDATION_ERROR"

    def test_partial_bulk_failure_is_audited(self, admin_user, plugin_store, catalog):
        async def upsert_or_fail(**kwargs):
            if kwargs["user_id"] == "u2":
                raise StoreUnavailableError("upsert_grant", "connection reset")
            return await catalog.upsert_grant(**kwargs)

        failing = AsyncMock(wraps=catalog)
        failing.upsert_grant.side_effect = upsert_or_fail
        app = create_app(Settings())
        app.dependency_overrides[get_current_user] = lambda: admin_user
        app.dependency_overrides[get_plugin_store] = lambda: plugin_store
        app.dependency_overrides[get_permission_store] = lambda: failing
        app.dependency_overrides[get_cache] = lambda: None

        with capture_logs() as events:
            response = TestClient(app).post(
                f"{PREFIX}/plugins/rag-retrieval/grants/bulk",
                json={"user_ids": ["u1", "u2", "u3"], "permission_name": "document.upload", "resource_type": "action"},
            )

        assert response.status_code == 503
        granted = [e for e in events if e["event"] == "plugin_permission_granted"]
        assert [e["user_id"] for e in granted] == ["u1"]

    def test_list_user_grants(self, client, caller, regular_user):
        client.post(f"{PREFIX}/plugins/rag-retrieval/grants", json=_change(regular_user.id))
        client.post(
            f"{PREFIX}/plugins/rag-retrieval/revocations",
            json=_change(regular_user.id, "collection.read", "object", resource_id="secret"),
        )

        caller.user = regular_user
        response = client.get(f"{PREFIX}/users/{regular_user.id}/plugin-grants", params={"plugin_id": "rag-retrieval"})

        grants = response.json()["data"]
        assert [(g["permission_name"], g["resource_id"], g["is_granted"]) for g in grants] == [
            ("collection.read", "secret", False),
            ("document.upload", None, True),
        ]

    def test_other_users_grants_need_admin(self, client, caller, regular_user):
        caller.user = regular_user

        assert client.get(f"{PREFIX}/users/someone-else/plugin-grants").status_code == 403
        check = client.post(
            f"{PREFIX}/plugins/rag-retrieval/check",
            json={"user_id": "someone-else", "permission_name": "document.upload", "resource_type": "action"},
        )
        assert check.status_code == 403


class TestRouteGuard:
    def test_disabled_plugin_blocks_route(self, client, plugin_store):
        client.post(f"{PREFIX}/plugins/rag-retrieval/grants", json=_change("admin-1"))
        client.post(f"{PREFIX}/plugins/rag-retrieval/disable")

        response = client.get("/rag/upload")

        assert response.status_code == 403
        assert "disabled" in response.json()["error"]["message"]

    def test_missing_grant_blocks_route(self, client):
        response = client.get("/rag/upload")

        assert response.status_code == 403
        assert "document.upload" in response.json()["error"]["message"]

    def test_granted_user_passes(self, client):
        client.post(f"{PREFIX}/plugins/rag-retrieval/grants", json=_change("admin-1"))

        response = client.get("/rag/upload")

        assert response.status_code == 200
        assert response.json() == {"user_id": "admin-1"}

    def test_resource_id_comes_from_path(self, client):
        client.post(
            f"{PREFIX}/plugins/rag-retrieval/grants",
            json=_change("admin-1", "collection.read", "object", resource_id="c-1"),
        )

        assert client.get("/rag/collections/c-1").status_code == 200
        assert client.get("/rag/collections/c-2").status_code == 403

    def test_store_outage_is_503_not_403(self, admin_user, plugin_store):
        failing = AsyncMock()
        failing.find_grants.side_effect = StoreUnavailableError("find_grants", "timed out")
        app = create_app(Settings())
        _guarded_routes(app)
        app.dependency_overrides[get_current_user] = lambda: admin_user
        app.dependency_overrides[get_plugin_store] = lambda: plugin_store
        app.dependency_overrides[get_permission_store] = lambda: failing
        app.dependency_overrides[get_cache] = lambda: None

        response = TestClient(app).get("/rag/upload")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "STORE_UNAVAILABLE"

    def test_guard_passes_after_enable(self, client):
        client.post(f"{PREFIX}/plugins/rag-retrieval/disable")
        client.post(f"{PREFIX}/plugins/rag-retrieval/grants", json=_change("admin-1"))
        assert client.get("/rag/upload").status_code == 403

        client.post(f"{PREFIX}/plugins/rag-retrieval/enable")

        assert client.get("/rag/upload").status_code == 200
