"""
Plugins loader: discovers plugin manifests under plugins/* directories.
- Each plugin folder provides a manifest.py with a PLUGIN_MANIFEST dict:
  {"id": str, "name": str, "version": str, "category": "system"|"application",
   "description": str, "permissions": [{"permission_name", "resource_type", ...}],
   "apis": [{"api_path", "http_method", "required_permissions", ...}]}
Only the manifest is imported; plugin code itself is never loaded here.
"""

from __future__ import annotations

import importlib.util
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..core.logging import get_logger
from ..models.permission import ResourceType
from ..models.plugin import PluginCategory
from ..schemas.communication import PluginApiCreate, PluginApiSpec
from ..schemas.permission import PermissionDefinitionCreate, PermissionSpec
from ..schemas.plugin import PLUGIN_ID_PATTERN, PluginInstallRequest

logger = get_logger(__name__)

MANIFEST_FILENAME = "manifest.py"
MANIFEST_ATTRIBUTE = "PLUGIN_MANIFEST"


class PluginManifest(BaseModel):
    """What a plugin declares about itself."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., pattern=PLUGIN_ID_PATTERN)
    name: str = Field(..., min_length=1, max_length=255)
    version: str = Field(..., min_length=1, max_length=50)
    category: PluginCategory = PluginCategory.APPLICATION
    description: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    permissions: list[PermissionSpec] = Field(default_factory=list)
    apis: list[PluginApiSpec] = Field(default_factory=list)
    plugin_dir: Path | None = Field(None, exclude=True)

    @model_validator(mode="after")
    def _apis_use_declared_permissions(self) -> "PluginManifest":
        declared = {
            p.permission_name for p in self.permissions if p.resource_type == ResourceType.ACTION and p.resource_id is None
        }
        for api in self.apis:
            missing = [name for name in api.required_permissions if name not in declared]
            if missing:
                raise ValueError(f"API {api.http_method.value} {api.api_path} requires undeclared permissions {missing}")
        return self

    def to_install_request(self) -> PluginInstallRequest:
        return PluginInstallRequest(
            id=self.id,
            name=self.name,
            version=self.version,
            category=self.category,
            description=self.description,
            config=dict(self.config),
        )

    def permission_definitions(self) -> list[PermissionDefinitionCreate]:
        return [
            PermissionDefinitionCreate(plugin_id=self.id, **spec.model_dump())
            for spec in self.permissions
        ]

    def api_definitions(self) -> list[PluginApiCreate]:
        return [PluginApiCreate(plugin_id=self.id, **api.model_dump()) for api in self.apis]


class PluginManifestLoader:
    def __init__(self, plugins_dir: Path | str):
        self.plugins_dir = Path(plugins_dir)
        logger.info(f"Plugin manifest loader using plugins_dir={self.plugins_dir}")

    def discover(self) -> dict[str, PluginManifest]:
        """Return valid manifests keyed by plugin id, in directory order."""
        manifests: dict[str, PluginManifest] = {}
        if not self.plugins_dir.is_dir():
            logger.warning(f"Plugins directory {self.plugins_dir} does not exist")
            return manifests

        for child in sorted(self.plugins_dir.iterdir()):
            manifest_py = child / MANIFEST_FILENAME
            if not child.is_dir() or not manifest_py.exists():
                continue
            manifest = self._load(child.name, manifest_py)
            if manifest is None:
                continue
            if manifest.id in manifests:
                logger.warning(
                    f"Duplicate plugin id '{manifest.id}' in {child.name}; "
                    f"keeping {manifests[manifest.id].plugin_dir}"
                )
                continue
            manifests[manifest.id] = manifest.model_copy(update={"plugin_dir": child})
        return manifests

    def _load(self, dir_name: str, manifest_py: Path) -> PluginManifest | None:
        try:
            module_spec = importlib.util.spec_from_file_location(f"cas_plugin_manifest_{dir_name}", manifest_py)
            module = importlib.util.module_from_spec(module_spec)
            module_spec.loader.exec_module(module)
        except Exception as e:  # noqa: BLE001
            logger.exception(f"Failed loading manifest for {dir_name}: {e}")
            return None

        raw = getattr(module, MANIFEST_ATTRIBUTE, None)
        if not isinstance(raw, dict):
            logger.warning(f"Skipping {dir_name}: {MANIFEST_ATTRIBUTE} missing or not a dict")
            return None
        try:
            return PluginManifest.model_validate(raw)
        except PydanticValidationError as e:
            logger.warning(f"Skipping {dir_name}: invalid manifest: {e.error_count()} error(s): {e.errors()}")
            return None
