"""Plugin discovery and composition into a dispatch table.

Composition runs once at startup, after every plugin value exists. It
produces a DispatchTable whose mappings are read-only views, so message
tasks can read it concurrently without locking. Anything that would make
the command namespace ambiguous is a fatal CompositionError.
"""

import importlib.util
import sys
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

import structlog

from .config import Config
from .exceptions import CompositionError, PluginLoadError
from .help import build_help_root, help_plugin
from .plugin_base import Command, HelpPage, InlineCommand, Plugin

logger = structlog.get_logger("tablebot.plugins")


class RegisteredCommand(NamedTuple):
    """A top-level command and the plugin that declared it."""
    plugin: str
    command: Command


@dataclass(frozen=True)
class DispatchTable:
    """Merged, read-only view of every composed plugin.

    Attributes:
        commands: Top-level command name -> RegisteredCommand.
        plugins: Plugin name -> Plugin, in composition order.
        inline_commands: All inline commands, in plugin order.
        help_root: Root help page; its children are the merged pages.
    """
    commands: Mapping[str, RegisteredCommand]
    plugins: Mapping[str, Plugin]
    inline_commands: Tuple[InlineCommand, ...]
    help_root: HelpPage

    def get(self, name: str) -> Optional[Command]:
        registered = self.commands.get(name)
        return registered.command if registered else None

    @property
    def command_names(self) -> frozenset:
        return frozenset(self.commands.keys())


def _lint_subcommands(command: Command, plugin: str, path: Tuple[str, ...] = ()) -> None:
    """Warn about sibling subcommands sharing a name (first one wins)."""
    path = path + (command.name,)
    seen = set()
    for sub in command.subcommands:
        if sub.name in seen:
            logger.warning(
                "ambiguous_subcommand",
                plugin=plugin,
                command=" ".join(path),
                subcommand=sub.name,
            )
        seen.add(sub.name)
        _lint_subcommands(sub, plugin, path)


def compose_plugins(
    plugins: Sequence[Plugin],
    *,
    include_help: bool = True,
    help_prefix: str = "",
) -> DispatchTable:
    """Merge plugins into one DispatchTable.

    Args:
        plugins: Plugins in load order.
        include_help: Add the built-in ``help`` command, serving every
            plugin's help pages.
        help_prefix: Command prefix shown in help listings.

    Raises:
        CompositionError: Two plugins share a name, or a top-level
            command name is declared twice.
    """
    by_name: Dict[str, Plugin] = {}
    commands: Dict[str, RegisteredCommand] = {}
    inline: List[InlineCommand] = []
    # page name -> (plugin name, page); a later plugin shadows in place
    pages: Dict[str, Tuple[str, HelpPage]] = {}

    def register(plugin: Plugin) -> None:
        if plugin.name in by_name:
            raise CompositionError(
                f"Plugin name '{plugin.name}' is used by more than one plugin",
                name=plugin.name,
                plugins=(plugin.name, plugin.name),
            )
        by_name[plugin.name] = plugin

        for command in plugin.commands:
            existing = commands.get(command.name)
            if existing is not None:
                raise CompositionError(
                    f"Command '{command.name}' is declared by plugin "
                    f"'{existing.plugin}' and plugin '{plugin.name}'",
                    name=command.name,
                    plugins=(existing.plugin, plugin.name),
                )
            commands[command.name] = RegisteredCommand(plugin.name, command)
            _lint_subcommands(command, plugin.name)

        inline.extend(plugin.inline_commands)

        for page in plugin.help_pages:
            previous = pages.get(page.name)
            if previous is not None:
                logger.warning(
                    "help_page_shadowed",
                    page=page.name,
                    shadowed_plugin=previous[0],
                    plugin=plugin.name,
                )
            pages[page.name] = (plugin.name, page)

    for plugin in plugins:
        register(plugin)

    help_root = build_help_root([page for _, page in pages.values()])
    if include_help:
        register(help_plugin(help_root, help_prefix))

    logger.info(
        "plugins_composed",
        plugins=list(by_name),
        commands=sorted(commands),
        inline_commands=len(inline),
        help_pages=len(pages),
    )
    return DispatchTable(
        commands=MappingProxyType(commands),
        plugins=MappingProxyType(by_name),
        inline_commands=tuple(inline),
        help_root=help_root,
    )


class PluginLoader:
    """Discovers plugin modules on disk and filters them by settings.

    Each ``<plugins_dir>/<name>/plugin.py`` must expose a module-level
    ``plugin`` value built with ``plug()``. The directory, allowlist and
    per-plugin settings come from ``config``.
    """

    def __init__(self, config: Config):
        self.config = config
        self.plugins_dir = config.plugins_dir
        self.plugins: List[Plugin] = []

    def is_enabled(self, plugin_name: str) -> bool:
        """False when settings carry ``plugins.<name>.enabled: false``."""
        return self.config.plugin_settings(plugin_name).get("enabled") is not False

    def discover_and_load(self) -> List[Plugin]:
        """Scan plugins_dir for plugin.py files and load them in name order."""
        if not self.plugins_dir.is_dir():
            logger.info("plugin_loader_no_dir", path=str(self.plugins_dir))
            return self.plugins

        allowlist = self.config.plugin_allowlist

        for plugin_dir in sorted(self.plugins_dir.iterdir()):
            if not plugin_dir.is_dir():
                continue
            plugin_file = plugin_dir / "plugin.py"
            if not plugin_file.is_file():
                continue

            plugin_name = plugin_dir.name

            if allowlist is not None and plugin_name not in allowlist:
                logger.warning(
                    "plugin_blocked_not_in_allowlist",
                    plugin=plugin_name,
                    allowlist=allowlist,
                )
                continue
            if not self.is_enabled(plugin_name):
                logger.info("plugin_skipped_disabled", plugin=plugin_name)
                continue

            try:
                self.plugins.append(self._load_plugin(plugin_name, plugin_file))
            except Exception as e:
                logger.error(
                    "plugin_load_failed",
                    plugin=plugin_name,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        logger.info("plugin_loader_complete", plugins_loaded=len(self.plugins))
        return self.plugins

    def _load_plugin(self, plugin_name: str, plugin_file: Path) -> Plugin:
        """Import one plugin.py and return its ``plugin`` value."""
        module_name = f"tablebot_plugins.{plugin_name}"
        spec = importlib.util.spec_from_file_location(module_name, plugin_file)
        if spec is None or spec.loader is None:
            raise PluginLoadError(f"cannot import {plugin_file}", plugin=plugin_name)
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception:
            sys.modules.pop(module_name, None)
            raise

        plugin = getattr(module, "plugin", None)
        if not isinstance(plugin, Plugin):
            raise PluginLoadError(
                "plugin.py must define a module-level 'plugin' built with plug()",
                plugin=plugin_name,
            )
        logger.info(
            "plugin_loaded",
            plugin=plugin.name,
            commands=[c.name for c in plugin.commands],
        )
        return plugin

    def select(self, builtin: Iterable[Plugin]) -> List[Plugin]:
        """Enabled built-in plugins followed by the discovered ones."""
        enabled = [p for p in builtin if self.is_enabled(p.name)]
        return enabled + list(self.plugins)
