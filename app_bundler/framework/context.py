from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from app_bundler.errors import OutputPathConflictError
from app_bundler.framework.addons import AddonDispatcher
from app_bundler.framework.bundler import Bundler
from app_bundler.framework.compilers import ScriptTranspiler, TemplateCompiler
from app_bundler.framework.environment import AppEnvironment
from app_bundler.framework.module_registry import ModuleRegistry, ResolverConfiguration
from app_bundler.framework.options import BuildOptions
from treekit.file_tree import FileTree, PathConflictError, TransformCache, merge_trees

LINT_OUTPUT_PREFIX = "tests/lint"


@dataclass
class BuildContext:
    """State shared by the stages of one build invocation.

    Options, environment and addons are read-only for the whole build. The
    mutable slots (`template_modules`, `module_registry`, `lint_output`,
    `stage_records`) are written by exactly one stage each.
    """

    app_name: str
    options: BuildOptions
    environment: AppEnvironment
    hooks: AddonDispatcher
    logger: logging.Logger
    resolver: ResolverConfiguration
    template_compiler: TemplateCompiler
    script_transpiler: ScriptTranspiler
    bundler: Bundler
    lint_enabled: bool = False
    test_package: bool = False
    caches: dict[str, TransformCache] = field(default_factory=dict)
    stage_records: list[dict[str, Any]] = field(default_factory=list)
    template_modules: tuple[str, ...] = ()
    module_registry: ModuleRegistry | None = None
    lint_output: FileTree = field(default_factory=FileTree.empty)

    def cache(self, name: str) -> TransformCache:
        existing = self.caches.get(name)
        if existing is None:
            existing = TransformCache(name)
            self.caches[name] = existing
        return existing

    def run_lint(self, tree_type: str, tree: FileTree, *, stage: str) -> None:
        if not self.lint_enabled:
            return
        produced = self.hooks.lint(tree_type, tree, stage=stage)
        if not produced:
            return
        self.logger.info("Lint %s produced %d file(s)", tree_type, len(produced))
        try:
            self.lint_output = merge_trees(
                [self.lint_output, produced.prefixed(LINT_OUTPUT_PREFIX)],
                labels=["lint", f"lint:{tree_type}"],
            )
        except PathConflictError as exc:
            raise OutputPathConflictError.from_conflict(exc, stage=stage) from exc
