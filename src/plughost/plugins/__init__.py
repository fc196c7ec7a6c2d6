"""The plugin runtime.

* :mod:`~plughost.plugins.manifest` -- parse and check ``plugin.json`` data.
* :mod:`~plughost.plugins.executor` -- evaluate plugin source into instances.
* :mod:`~plughost.plugins.hooks` -- the priority-ordered hook dispatcher.
* :mod:`~plughost.plugins.config` -- schema-driven per-plugin settings.
* :mod:`~plughost.plugins.manager` -- registration and lifecycle.
* :mod:`~plughost.plugins.api` -- the ``plugin_api`` surface plugin code sees.
* :mod:`~plughost.plugins.results` -- typed hook results and render items.
* :mod:`~plughost.plugins.discovery` -- read plugin folders from disk.
"""

from plughost.plugins.api import PluginAPI, RecordingHostUI
from plughost.plugins.config import PluginConfigService
from plughost.plugins.discovery import DiscoveredPlugin, discover, read_plugin_dir
from plughost.plugins.executor import PluginExecutor, PluginInstance
from plughost.plugins.hooks import DEFAULT_PRIORITY, HookDispatcher, HookName
from plughost.plugins.manager import PluginManager, PluginRecord
from plughost.plugins.manifest import check_host_compatibility, load_manifest_file, parse_manifest
from plughost.plugins.results import RenderError, RenderOk, iter_render_items

__all__ = [
    "DEFAULT_PRIORITY",
    "DiscoveredPlugin",
    "HookDispatcher",
    "HookName",
    "PluginAPI",
    "PluginConfigService",
    "PluginExecutor",
    "PluginInstance",
    "PluginManager",
    "PluginRecord",
    "RecordingHostUI",
    "RenderError",
    "RenderOk",
    "check_host_compatibility",
    "discover",
    "iter_render_items",
    "load_manifest_file",
    "parse_manifest",
    "read_plugin_dir",
]
