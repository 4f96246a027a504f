"""Tests for plugin manifest discovery."""

import textwrap
from pathlib import Path

from cas.models.permission import ResourceType
from cas.models.plugin import PluginCategory
from cas.plugins.loader import PluginManifestLoader

REPO_PLUGINS_DIR = Path(__file__).resolve().parents[5] / "plugins"


def _write_manifest(root: Path, dir_name: str, body: str) -> None:
    plugin_dir = root / dir_name
    plugin_dir.mkdir()
    (plugin_dir / "manifest.py").write_text(textwrap.dedent(body))


def test_discovers_valid_manifest(tmp_path):
    _write_manifest(
        tmp_path,
        "wiki",
        """
        PLUGIN_MANIFEST = {
            "id": "wiki",
            "name": "Wiki",
            "version": "0.2.0",
            "permissions": [
                {"permission_name": "page.read", "resource_type": "object"},
                {"permission_name": "page.edit", "resource_type": "object", "resource_id": "home"},
            ],
        }
        """,
    )

    manifests = PluginManifestLoader(tmp_path).discover()

    assert list(manifests) == ["wiki"]
    manifest = manifests["wiki"]
    assert manifest.category == PluginCategory.APPLICATION
    assert manifest.plugin_dir == tmp_path / "wiki"
    definitions = manifest.permission_definitions()
    assert [(d.plugin_id, d.permission_name, d.resource_type, d.resource_id) for d in definitions] == [
        ("wiki", "page.read", ResourceType.OBJECT, None),
        ("wiki", "page.edit", ResourceType.OBJECT, "home"),
    ]
    assert manifest.to_install_request().to_record().status.value == "disabled"


def test_skips_broken_and_invalid_manifests(tmp_path):
    _write_manifest(tmp_path, "a_syntax", "PLUGIN_MANIFEST = {\n")
    _write_manifest(tmp_path, "b_missing", "OTHER = 1\n")
    _write_manifest(tmp_path, "c_not_dict", "PLUGIN_MANIFEST = ['x']\n")
    _write_manifest(tmp_path, "d_bad_id", 'PLUGIN_MANIFEST = {"id": "Bad Id", "name": "x", "version": "1"}\n')
    _write_manifest(
        tmp_path,
        "e_bad_type",
        """
        PLUGIN_MANIFEST = {
            "id": "e",
            "name": "E",
            "version": "1",
            "permissions": [{"permission_name": "p", "resource_type": "table"}],
        }
        """,
    )
    _write_manifest(tmp_path, "f_ok", 'PLUGIN_MANIFEST = {"id": "ok", "name": "Ok", "version": "1"}\n')
    (tmp_path / "g_no_manifest").mkdir()
    (tmp_path / "stray.py").write_text("x = 1\n")

    manifests = PluginManifestLoader(tmp_path).discover()

    assert list(manifests) == ["ok"]


def test_duplicate_id_keeps_first_directory(tmp_path):
    _write_manifest(tmp_path, "a_first", 'PLUGIN_MANIFEST = {"id": "dup", "name": "First", "version": "1"}\n')
    _write_manifest(tmp_path, "b_second", 'PLUGIN_MANIFEST = {"id": "dup", "name": "Second", "version": "2"}\n')

    manifests = PluginManifestLoader(tmp_path).discover()

    assert manifests["dup"].name == "First"


def test_missing_directory_returns_empty(tmp_path):
    assert PluginManifestLoader(tmp_path / "nope").discover() == {}


def test_shipped_manifests_are_valid():
    manifests = PluginManifestLoader(REPO_PLUGINS_DIR).discover()

    assert {"ldap-auth", "rag-retrieval", "text-block"} <= set(manifests)
    for plugin_id in ("ldap-auth", "rag-retrieval", "text-block"):
        manifest = manifests[plugin_id]
        assert manifest.category == PluginCategory.SYSTEM
        assert any(d.is_system_level for d in manifest.permission_definitions())


def test_apis_must_use_declared_action_permissions(tmp_path):
    _write_manifest(
        tmp_path,
        "a_undeclared",
        """
        PLUGIN_MANIFEST = {
            "id": "search",
            "name": "Search",
            "version": "1",
            "apis": [{"api_path": "/api/search", "http_method": "GET", "required_permissions": ["search.run"]}],
        }
        """,
    )
    _write_manifest(
        tmp_path,
        "b_declared",
        """
        PLUGIN_MANIFEST = {
            "id": "wiki",
            "name": "Wiki",
            "version": "1",
            "permissions": [{"permission_name": "page.read", "resource_type": "action"}],
            "apis": [{"api_path": "/api/pages", "http_method": "GET", "required_permissions": ["page.read"]}],
        }
        """,
    )

    manifests = PluginManifestLoader(tmp_path).discover()

    assert list(manifests) == ["wiki"]
    [api] = manifests["wiki"].api_definitions()
    assert (api.plugin_id, api.api_path, api.http_method.value) == ("wiki", "/api/pages", "GET")
    assert api.required_permissions == ["page.read"]


def test_shipped_rag_manifest_declares_apis():
    manifest = PluginManifestLoader(REPO_PLUGINS_DIR).discover()["rag-retrieval"]

    paths = {(api.http_method.value, api.api_path) for api in manifest.api_definitions()}

    assert ("POST", "/api/rag/query") in paths
