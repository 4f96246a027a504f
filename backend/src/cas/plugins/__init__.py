"""Plugin manifests: discovery of the plugins shipped with the deployment."""

from .loader import PluginManifest, PluginManifestLoader

__all__ = ["PluginManifest", "PluginManifestLoader"]
