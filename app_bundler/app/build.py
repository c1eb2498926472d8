"""Application builder: wires project, options, addons and stages into one build."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from app_bundler.errors import ConfigurationError
from app_bundler.framework.addons import AddonDispatcher, normalize_addons
from app_bundler.framework.assembler import assemble_output
from app_bundler.framework.bundler import Bundler, DefaultBundler
from app_bundler.framework.compilers import (
    DefaultScriptTranspiler,
    DefaultTemplateCompiler,
    ScriptTranspiler,
    TemplateCompiler,
)
from app_bundler.framework.context import BuildContext
from app_bundler.framework.environment import resolve_environment
from app_bundler.framework.module_registry import ModuleRegistry, ResolverConfiguration
from app_bundler.framework.options import BuildOptions, TreeSource
from app_bundler.framework.plugin_registry import TEMPLATE_PLUGIN, PluginRegistry
from app_bundler.framework.project import Project
from app_bundler.stages._shared import PUBLIC_SOURCE, SRC, STYLES_SOURCE, TEST_HELPER_GLOB
from app_bundler.stages.registry import assemble_stages, get_stage_registry
from treekit.engine.pipeline import StageRecorder, StageRunner
from treekit.file_tree import FileTree, TransformCache
from treekit.stage_types import Stage

DEFAULT_SRC_DIR = "src"
DEFAULT_PUBLIC_DIR = "public"
DEFAULT_STYLES_PATH = "src/ui/styles"
NODE_MODULES_GLOBS: tuple[str, ...] = ("**/*.js", "**/package.json")

logger = logging.getLogger(__name__)


class AppBuilder:
    """
    Build an application package from a project.

    Construction validates everything that can be checked without building:
    options, environment, addon records and the presence of a source root.
    Each call to `to_tree()` is an independent build over freshly read inputs;
    per-file compile caches persist on the builder so unchanged files are not
    recompiled.
    """

    def __init__(
        self,
        project: Project | None,
        options: BuildOptions | Mapping[str, Any] | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        log: logging.Logger | None = None,
        recorder: StageRecorder | None = None,
        template_compiler: TemplateCompiler | None = None,
        script_transpiler: ScriptTranspiler | None = None,
        bundler: Bundler | None = None,
    ):
        if project is None or not isinstance(project, Project):
            raise ConfigurationError(
                "AppBuilder requires a Project; you must pass through the default arguments"
            )
        self.project = project
        self.options = options if isinstance(options, BuildOptions) else BuildOptions.from_dict(options)
        self.env = resolve_environment(self.options.environment, environ)
        self.environment = project.app_environment(self.env)
        self.addons = normalize_addons(project.addons)
        self.logger = log or logger
        self.hooks = AddonDispatcher(self.addons, resolve_path=project.resolve_path, log=self.logger)
        self.registry = PluginRegistry()
        self.resolver = ResolverConfiguration.for_app(project.name)
        self.lint_enabled = bool(self.options.lint)

        self._recorder = recorder
        self._template_compiler = template_compiler
        self._script_transpiler = script_transpiler
        self._bundler = bundler
        self._caches: dict[str, TransformCache] = {}
        self._template_plugins: tuple[Any, ...] = ()
        self._node_modules: FileTree | None = None
        self.last_context: BuildContext | None = None

        trees = self.options.trees
        self._src_dir = self._require_dir(trees.src, DEFAULT_SRC_DIR, option="trees.src")
        if self._src_dir is None and not isinstance(trees.src, FileTree):
            raise ConfigurationError(
                f"Could not find a src/ directory in {project.root}",
                context={"project": str(project.root)},
            )
        self._styles_dir = self._require_dir(trees.styles, None, option="trees.styles")
        self._public_dir = self._require_dir(trees.public, None, option="trees.public")
        self._node_modules_dir = self._require_dir(trees.node_modules, None, option="trees.nodeModules")

        self.logger.debug(
            "AppBuilder for %s (env=%s, addons=%s, lint=%s)",
            project.name,
            self.env,
            [addon.name for addon in self.addons],
            self.lint_enabled,
        )

    def _require_dir(self, source: TreeSource | None, default: str | None, *, option: str) -> Path | None:
        if isinstance(source, FileTree):
            return None
        if source is None:
            if default is None:
                return None
            path = self.project.resolve_path(default)
            return path if path.is_dir() else None
        path = self.project.resolve_path(source)
        if not path.is_dir():
            raise ConfigurationError(
                f"options.{option} is not a directory: {path}",
                context={"option": option, "path": str(path)},
            )
        return path

    def src_tree(self) -> FileTree:
        """The source tree under `src/`, after addon `preprocess_tree("src")` hooks."""

        source = self.options.trees.src
        raw = source if isinstance(source, FileTree) else FileTree.from_directory(self._src_dir)
        return self.hooks.preprocess("src", raw.prefixed(SRC), stage="src")

    def _styles_tree(self, src: FileTree) -> FileTree | None:
        source = self.options.trees.styles
        if isinstance(source, FileTree):
            return source
        if self._styles_dir is not None:
            return FileTree.from_directory(self._styles_dir)
        styles = src.subtree(DEFAULT_STYLES_PATH)
        return styles if len(styles) else None

    def _public_tree(self) -> FileTree:
        source = self.options.trees.public
        if isinstance(source, FileTree):
            return source
        path = self._public_dir or self.project.resolve_path(DEFAULT_PUBLIC_DIR)
        return FileTree.from_directory(path) if path.is_dir() else FileTree.empty()

    def _node_modules_tree(self) -> FileTree | None:
        source = self.options.trees.node_modules
        if isinstance(source, FileTree):
            return source
        if self._node_modules_dir is None:
            return None
        if self._node_modules is None:
            self._node_modules = FileTree.from_directory(self._node_modules_dir).select(NODE_MODULES_GLOBS)
        return self._node_modules

    def seed_trees(self) -> dict[str, FileTree]:
        src = self.src_tree()
        trees = {SRC: src, PUBLIC_SOURCE: self._public_tree()}
        styles = self._styles_tree(src)
        if styles is not None:
            trees[STYLES_SOURCE] = styles
        return trees

    def new_context(self, trees: Mapping[str, FileTree]) -> BuildContext:
        template_plugins = self.registry.load(TEMPLATE_PLUGIN)
        if template_plugins != self._template_plugins:
            self._caches.pop("template-compile", None)
            self._template_plugins = template_plugins

        return BuildContext(
            app_name=self.project.name,
            options=self.options,
            environment=self.environment,
            hooks=self.hooks,
            logger=self.logger,
            resolver=self.resolver,
            template_compiler=self._template_compiler or DefaultTemplateCompiler(template_plugins),
            script_transpiler=self._script_transpiler
            or DefaultScriptTranspiler(
                debug=self.environment.debug,
                features=self.environment.features(),
                plugins=self.options.babel_plugins,
            ),
            bundler=self._bundler
            or DefaultBundler(plugins=self.options.rollup_plugins, node_modules=self._node_modules_tree()),
            lint_enabled=self.lint_enabled,
            test_package=self.env == "test" and len(trees[SRC].select([TEST_HELPER_GLOB])) > 0,
            caches=self._caches,
        )

    def plan(self, trees: Mapping[str, FileTree], targets: tuple[str, ...] | None = None) -> list[Stage]:
        """Stages to run for `targets` (stage names), including the stages they depend on."""

        stages = assemble_stages(trees)
        if targets is None:
            return stages

        registry = get_stage_registry()
        producers = {stage.provides: stage for stage in stages}
        wanted: set[str] = set()

        def want(stage: Stage) -> None:
            if stage.name in wanted:
                return
            wanted.add(stage.name)
            for name in stage.requires:
                producer = producers.get(name)
                if producer is not None:
                    want(producer)

        for target in targets:
            stage = registry.resolve(target)
            if stage in stages:
                want(stage)
        return [stage for stage in stages if stage.name in wanted]

    def run(self, targets: tuple[str, ...] | None = None) -> tuple[BuildContext, dict[str, FileTree]]:
        trees = self.seed_trees()
        ctx = self.new_context(trees)
        ctx.run_lint("src", trees[SRC], stage="src")
        stages = self.plan(trees, targets)
        runner = StageRunner(recorder=self._recorder, name=f"{self.project.name}:{self.env}")
        bag = runner.run(ctx, stages, trees)
        self.last_context = ctx
        return ctx, bag

    def to_tree(self) -> FileTree:
        ctx, bag = self.run()
        output = assemble_output(bag, test_package=ctx.test_package)
        self.logger.info("Build for %s produced %d file(s)", self.project.name, len(output))
        return output

    def build(self, output_dir: str | os.PathLike[str]) -> Path:
        """Build and write the output; nothing is written unless the whole build succeeds."""

        destination = self._output_destination(output_dir)
        output = self.to_tree()
        written = output.write_to(destination)
        self.logger.info("Wrote %d file(s) to %s", len(output), written)
        return written

    def _output_destination(self, output_dir: str | os.PathLike[str]) -> Path:
        """Refuse an output directory whose replacement would delete project sources."""

        destination = Path(output_dir).resolve()
        protected = [
            self.project.root,
            self._src_dir,
            self._styles_dir or self.project.resolve_path(DEFAULT_STYLES_PATH),
            self._public_dir or self.project.resolve_path(DEFAULT_PUBLIC_DIR),
            self._node_modules_dir,
        ]
        for source in protected:
            if source is not None and (destination == source or destination in source.parents):
                raise ConfigurationError(
                    f"Refusing to write build output to {destination}: it would replace {source}",
                    context={"output": str(destination), "source": str(source)},
                )
        return destination

    def _category_tree(self, stage_name: str, category: str) -> FileTree:
        _, bag = self.run((stage_name,))
        return bag.get(category) or FileTree.empty()

    def html_tree(self) -> FileTree:
        return self._category_tree("html", "html")

    def css_tree(self) -> FileTree:
        return self._category_tree("style", "css")

    def public_tree(self) -> FileTree:
        return self._category_tree("public", "public")

    def js_tree(self) -> FileTree:
        return self._category_tree("bundle", "js")

    def module_registry(self) -> ModuleRegistry:
        ctx, _ = self.run(("module-registry",))
        if ctx.module_registry is None:
            raise RuntimeError("module-registry stage did not record a registry")
        return ctx.module_registry
