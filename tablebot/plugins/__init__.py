"""Built-in plugins shipped with tablebot.

Each module exposes one ``Plugin`` value; BUILTIN_PLUGINS lists them in
load order.
"""

from .flip import flip_plugin
from .ping import ping_plugin
from .say import say_plugin

BUILTIN_PLUGINS = (ping_plugin, say_plugin, flip_plugin)

__all__ = [
    "BUILTIN_PLUGINS",
    "flip_plugin",
    "ping_plugin",
    "say_plugin",
]
