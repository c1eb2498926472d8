from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from app_bundler.errors import ConfigurationError
from app_bundler.foundation.config_io import load_environment_config, read_package_name
from app_bundler.framework.environment import AppEnvironment, EnvironmentName


@dataclass(frozen=True)
class Project:
    """Handle on the hosting project: its root directory, name and addon list."""

    root: Path
    name: str
    addons: tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        root = Path(self.root).resolve()
        if not root.is_dir():
            raise ConfigurationError(f"Project root is not a directory: {root}")
        object.__setattr__(self, "root", root)
        if not isinstance(self.name, str) or not self.name.strip():
            raise ConfigurationError("Project name must be a non-empty string")
        object.__setattr__(self, "name", self.name.strip())
        object.__setattr__(self, "addons", tuple(self.addons))

    @classmethod
    def load(cls, root: str | os.PathLike[str], *, addons: Sequence[Any] = ()) -> "Project":
        root_path = Path(root).resolve()
        if not root_path.is_dir():
            raise ConfigurationError(f"Project root is not a directory: {root_path}")
        try:
            name = read_package_name(root_path)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        return cls(root=root_path, name=name or root_path.name, addons=tuple(addons))

    @property
    def config_dir(self) -> Path:
        return self.root / "config"

    def resolve_path(self, relative: str) -> Path:
        path = Path(relative)
        if not path.is_absolute():
            path = self.root / path
        return path.resolve()

    def app_environment(self, environment: EnvironmentName) -> AppEnvironment:
        try:
            cfg, meta = load_environment_config(self.config_dir, environment)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        return AppEnvironment(name=environment, config=cfg, config_paths=tuple(meta["paths"]))
