from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from app_bundler.errors import ConfigurationError

EnvironmentName = Literal["development", "test", "production"]
ENVIRONMENTS: tuple[str, ...] = ("development", "test", "production")
ENVIRONMENT_VARIABLE = "APP_BUNDLER_ENV"
DEFAULT_ROOT_URL = "/"
ROOT_URL_TOKEN = "{{rootURL}}"


def resolve_environment(
    explicit: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> EnvironmentName:
    """
    Pick the active environment name once per build.

    Precedence: explicit option, then `APP_BUNDLER_ENV` from the mapping the
    caller passes (usually `os.environ`), then `development`.
    """

    source = "option"
    value: str | None = explicit
    if value is None and environ is not None:
        raw = environ.get(ENVIRONMENT_VARIABLE)
        if raw is not None and raw.strip():
            value = raw
            source = ENVIRONMENT_VARIABLE
    if value is None:
        return "development"

    if not isinstance(value, str):
        raise ConfigurationError(f"environment must be a string (type={type(value).__name__})")
    normalized = value.strip().lower()
    if normalized not in ENVIRONMENTS:
        raise ConfigurationError(
            f"Unknown environment {value!r} from {source} (expected one of: {', '.join(ENVIRONMENTS)})",
            context={"environment": value, "source": source},
        )
    return normalized  # type: ignore[return-value]


@dataclass(frozen=True)
class AppEnvironment:
    """Resolved application configuration for one build; read-only once built."""

    name: EnvironmentName
    config: Mapping[str, Any] = field(default_factory=dict)
    config_paths: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.name not in ENVIRONMENTS:
            raise ConfigurationError(f"Unknown environment: {self.name!r}")
        if not isinstance(self.config, Mapping):
            raise ConfigurationError(
                f"Application config must be a mapping (type={type(self.config).__name__})"
            )
        root_url = self.config.get("rootURL", DEFAULT_ROOT_URL)
        if not isinstance(root_url, str):
            raise ConfigurationError(
                f"rootURL must be a string (type={type(root_url).__name__})",
                context={"config_paths": list(self.config_paths)},
            )
        flags = self.runtime_flags()
        features = flags.get("FEATURES") or {}
        if not isinstance(features, Mapping):
            raise ConfigurationError("runtime.FEATURES must be a mapping of flag -> bool")
        for flag, enabled in features.items():
            if not isinstance(flag, str) or not flag.isidentifier() or not isinstance(enabled, bool):
                raise ConfigurationError(
                    f"runtime.FEATURES entries must map identifiers to booleans (got {flag!r}: {enabled!r})"
                )

    @property
    def is_production(self) -> bool:
        return self.name == "production"

    @property
    def debug(self) -> bool:
        return not self.is_production

    @property
    def root_url(self) -> str:
        return str(self.config.get("rootURL", DEFAULT_ROOT_URL))

    def runtime_flags(self) -> dict[str, Any]:
        """Runtime options from `runtime`, falling back to the legacy `EmberENV` key."""

        for key in ("runtime", "EmberENV"):
            value = self.config.get(key)
            if value is None:
                continue
            if not isinstance(value, Mapping):
                raise ConfigurationError(f"{key} must be a mapping (type={type(value).__name__})")
            return dict(value)
        return {}

    def features(self) -> dict[str, bool]:
        return dict(self.runtime_flags().get("FEATURES", {}) or {})
