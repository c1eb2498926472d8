from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

from app_bundler.errors import ConfigurationError
from app_bundler.framework.environment import ENVIRONMENTS
from treekit.config_namespace import ConfigNamespace
from treekit.file_tree import FileTree, normalize_path

TreeSource = str | FileTree


@dataclass(frozen=True)
class TransformPlugin:
    """A user-supplied source transform, normalized from any accepted plugin shape."""

    name: str
    fn: Callable[..., Any]
    options: Mapping[str, Any] | None = None

    def apply(self, code: str, module_id: str) -> str:
        if self.options is not None:
            result = self.fn(code, module_id, dict(self.options))
        else:
            result = self.fn(code, module_id)
        if result is None:
            return code
        if isinstance(result, Mapping):
            result = result.get("code")
        if not isinstance(result, str):
            raise TypeError(
                f"Plugin {self.name} returned non-string code for {module_id} "
                f"(type={type(result).__name__})"
            )
        return result


def normalize_plugin(raw: Any, *, path: str) -> TransformPlugin:
    """
    Accepts:
      - a callable `fn(code, module_id)`
      - a `[callable, options]` pair, called as `fn(code, module_id, options)`
      - an object or mapping with a callable `transform` (and optional `name`)
    """

    if isinstance(raw, (list, tuple)):
        if len(raw) == 1:
            return normalize_plugin(raw[0], path=path)
        if len(raw) != 2 or not callable(raw[0]) or not isinstance(raw[1], Mapping):
            raise TypeError(f"{path} must be [callable, options-mapping] when given as a pair")
        fn = raw[0]
        return TransformPlugin(name=getattr(fn, "__name__", "plugin"), fn=fn, options=dict(raw[1]))

    if isinstance(raw, Mapping):
        transform = raw.get("transform")
        if not callable(transform):
            raise TypeError(f"{path} mapping must have a callable 'transform'")
        name = raw.get("name") or getattr(transform, "__name__", "plugin")
        return TransformPlugin(name=str(name), fn=transform)

    transform = getattr(raw, "transform", None)
    if callable(transform):
        name = getattr(raw, "name", None) or type(raw).__name__
        return TransformPlugin(name=str(name), fn=transform)

    if callable(raw):
        return TransformPlugin(name=getattr(raw, "__name__", "plugin"), fn=raw)

    raise TypeError(f"{path} must be a callable, a [callable, options] pair or a transform plugin")


@dataclass(frozen=True)
class TreeOverrides:
    src: TreeSource | None = None
    styles: TreeSource | None = None
    node_modules: TreeSource | None = None
    public: TreeSource | None = None


@dataclass(frozen=True)
class OutputPaths:
    html: str = "index.html"
    css: str = "app.css"
    js: str = "app.js"
    tests_js: str = "index.js"


@dataclass(frozen=True)
class BuildOptions:
    environment: str | None = None
    lint: bool | None = None
    trees: TreeOverrides = field(default_factory=TreeOverrides)
    output_paths: OutputPaths = field(default_factory=OutputPaths)
    babel_plugins: tuple[TransformPlugin, ...] = ()
    rollup_plugins: tuple[TransformPlugin, ...] = ()

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> "BuildOptions":
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"Build options must be a mapping (type={type(raw).__name__})")
        try:
            return cls._parse(ConfigNamespace(dict(raw), path="options"))
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ConfigurationError):
                raise
            raise ConfigurationError(f"Invalid build options: {exc}") from exc

    @classmethod
    def _parse(cls, ns: ConfigNamespace) -> "BuildOptions":
        environment = ns.get_str("environment", default=None, choices=ENVIRONMENTS)
        lint = ns.get_optional_bool("lint")

        trees_ns = ns.namespace("trees", default=None)
        trees = TreeOverrides(
            src=_tree_source(trees_ns, "src"),
            styles=_tree_source(trees_ns, "styles"),
            node_modules=_tree_source(trees_ns, "nodeModules"),
            public=_tree_source(trees_ns, "public"),
        )

        out_ns = ns.namespace("outputPaths", default=None)
        app_ns = out_ns.namespace("app", default=None)
        tests_ns = out_ns.namespace("tests", default=None)
        output_paths = OutputPaths(
            html=_output_path(app_ns, "html", OutputPaths.html),
            css=_output_path(app_ns, "css", OutputPaths.css),
            js=_output_path(app_ns, "js", OutputPaths.js),
            tests_js=_output_path(tests_ns, "js", OutputPaths.tests_js),
        )

        babel_ns = ns.namespace("babel", default=None)
        babel_plugins = tuple(
            normalize_plugin(item, path=f"options.babel.plugins[{idx}]")
            for idx, item in enumerate(babel_ns.get_list("plugins", default=[]))
        )
        rollup_ns = ns.namespace("rollup", default=None)
        rollup_plugins = tuple(
            normalize_plugin(item, path=f"options.rollup.plugins[{idx}]")
            for idx, item in enumerate(rollup_ns.get_list("plugins", default=[]))
        )

        ns.assert_consumed()
        return cls(
            environment=environment,
            lint=lint,
            trees=trees,
            output_paths=output_paths,
            babel_plugins=babel_plugins,
            rollup_plugins=rollup_plugins,
        )


def _tree_source(ns: ConfigNamespace, key: str) -> TreeSource | None:
    value = ns.get_any(key, default=None)
    if value is None or isinstance(value, FileTree):
        return value
    if isinstance(value, str) and value.strip():
        return value.strip()
    raise TypeError(
        f"{ns.path}.{key} must be a directory path or FileTree (type={type(value).__name__})"
    )


def _output_path(ns: ConfigNamespace, key: str, default: str) -> str:
    value = ns.get_str(key, default=default)
    return normalize_path(value or default)
