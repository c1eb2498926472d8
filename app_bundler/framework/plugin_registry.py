from __future__ import annotations

from collections.abc import Callable
from typing import Any

TEMPLATE_PLUGIN = "template-plugin"
PLUGIN_TYPES: tuple[str, ...] = (TEMPLATE_PLUGIN,)


class PluginRegistry:
    """Per-builder registry of compile-time plugins, kept in registration order."""

    def __init__(self) -> None:
        self._plugins: dict[str, list[Callable[..., Any]]] = {kind: [] for kind in PLUGIN_TYPES}

    def add(self, kind: str, plugin: Callable[..., Any]) -> None:
        if kind not in self._plugins:
            raise ValueError(f"Unknown plugin type: {kind} (available: {', '.join(PLUGIN_TYPES)})")
        if not callable(plugin):
            raise TypeError(f"{kind} plugin must be callable (type={type(plugin).__name__})")
        self._plugins[kind].append(plugin)

    def remove(self, kind: str, plugin: Callable[..., Any]) -> None:
        entries = self._plugins.get(kind, [])
        if plugin not in entries:
            raise ValueError(f"Plugin not registered for {kind}: {plugin!r}")
        entries.remove(plugin)

    def load(self, kind: str) -> tuple[Callable[..., Any], ...]:
        if kind not in self._plugins:
            raise ValueError(f"Unknown plugin type: {kind} (available: {', '.join(PLUGIN_TYPES)})")
        return tuple(self._plugins[kind])
