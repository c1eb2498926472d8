"""Strict option namespaces: every key a caller passes must be read by the parser.

Unknown keys (typos such as `outputPath` or `htm`) are reported with their full
dotted path once parsing is done, instead of being silently ignored.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Iterable

_MISSING = object()


def _join_path(parent: str, key: str) -> str:
    return f"{parent}.{key}" if parent else key


@dataclass
class ConfigNamespace:
    data: Mapping[str, Any]
    path: str
    _read: set[str] = field(default_factory=set, init=False, repr=False)
    _children: dict[str, "ConfigNamespace"] = field(default_factory=dict, init=False, repr=False)

    def _key_path(self, key: str) -> str:
        return _join_path(self.path, key.strip())

    def _take(self, key: str, *, default: Any) -> Any:
        if not isinstance(key, str) or not key.strip():
            raise TypeError("ConfigNamespace key must be a non-empty string")
        name = key.strip()
        if name in self._children:
            raise ValueError(f"{self._key_path(name)} already read as a nested namespace")
        self._read.add(name)
        if name in self.data:
            return self.data[name]
        if default is _MISSING:
            raise ValueError(f"Missing required option: {self._key_path(name)}")
        return default

    def unread_keys(self) -> tuple[str, ...]:
        return tuple(sorted(str(key) for key in self.data if key not in self._read))

    def assert_consumed(self) -> None:
        unknown = self.unread_keys()
        if unknown:
            known = ", ".join(sorted(self._read)) or "<none>"
            raise ValueError(
                f"Unknown config keys under {self.path or '<root>'}: {', '.join(unknown)} (known: {known})"
            )
        for child in self._children.values():
            child.assert_consumed()

    def namespace(self, key: str, *, default: Mapping[str, Any] | None | object = _MISSING) -> "ConfigNamespace":
        """Nested namespace for `key`; a missing or null value uses `default` (a mapping or None)."""

        name = (key or "").strip()
        if not name:
            raise TypeError("ConfigNamespace key must be a non-empty string")
        if name in self._children:
            return self._children[name]

        raw = self.data.get(name)
        if raw is None:
            if default is _MISSING:
                raise ValueError(f"Missing required option namespace: {self._key_path(name)}")
            if default is not None and not isinstance(default, Mapping):
                raise TypeError(f"default for {self._key_path(name)} must be a mapping or None")
            raw = default or {}
        elif not isinstance(raw, Mapping):
            raise TypeError(f"{self._key_path(name)} must be a mapping (type={type(raw).__name__})")

        self._read.add(name)
        child = ConfigNamespace(dict(raw), path=self._key_path(name))
        self._children[name] = child
        return child

    def get_optional_bool(self, key: str, *, default: bool | None = None) -> bool | None:
        """A boolean that may be left null, meaning the caller picks the default."""

        value = self._take(key, default=default)
        if value is not None and not isinstance(value, bool):
            raise TypeError(
                f"{self._key_path(key)} must be a boolean or null (type={type(value).__name__})"
            )
        return value

    def get_str(
        self,
        key: str,
        *,
        default: str | None | object = _MISSING,
        choices: Iterable[str] | None = None,
    ) -> str | None:
        raw = self._take(key, default=default)
        if raw is None:
            return None
        if not isinstance(raw, str):
            raise TypeError(f"{self._key_path(key)} must be a string (type={type(raw).__name__})")

        value = raw.strip()
        if not value:
            raise ValueError(f"{self._key_path(key)} cannot be empty")
        if choices is not None:
            allowed = tuple(choices)
            if value.lower() not in allowed:
                raise ValueError(
                    f"{self._key_path(key)} must be one of: {', '.join(allowed)} (got {value!r})"
                )
            value = value.lower()
        return value

    def get_list(self, key: str, *, default: list[Any] | tuple[Any, ...] | object = _MISSING) -> list[Any]:
        """A list whose items the caller validates."""

        raw = self._take(key, default=default)
        if raw is None:
            return []
        if not isinstance(raw, (list, tuple)):
            raise TypeError(f"{self._key_path(key)} must be a list (type={type(raw).__name__})")
        return list(raw)

    def get_any(self, key: str, *, default: Any = _MISSING) -> Any:
        return self._take(key, default=default)
