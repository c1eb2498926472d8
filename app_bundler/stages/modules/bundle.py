from __future__ import annotations

import json
import posixpath
from collections.abc import Mapping

from app_bundler.framework.bundler import module_id
from app_bundler.framework.context import BuildContext
from app_bundler.framework.module_registry import MODULE_MAP_PATH
from app_bundler.stages._shared import (
    APP_ENTRY,
    JS,
    LINT_TEST_GLOB,
    MODULES,
    SCRIPTS,
    TEST_HELPER_MODULE,
    TESTS_INDEX,
    merge_or_fail,
)
from treekit.file_tree import FileTree
from treekit.stage_types import HookPoints, Stage

STAGE_NAME = "bundle"
TEST_MODULE_GLOB = "src/**/*-test.js"


def render_tests_index(tree: FileTree) -> str:
    """Generate the module that pulls every test (and the module map) into the test bundle."""

    targets: list[str] = []
    if MODULE_MAP_PATH in tree:
        targets.append(MODULE_MAP_PATH)
    targets.extend(sorted(tree.select([TEST_MODULE_GLOB, LINT_TEST_GLOB]).paths()))

    lines: list[str] = []
    base = posixpath.dirname(TESTS_INDEX)
    for path in targets:
        spec = posixpath.relpath(module_id(path), base)
        if not spec.startswith("."):
            spec = "./" + spec
        lines.append(f"import {json.dumps(spec)};")
    return "\n".join(lines) + "\n"


def bundle_entries(ctx: BuildContext) -> tuple[str, ...]:
    if ctx.test_package:
        return (TEST_HELPER_MODULE, TESTS_INDEX)
    return (APP_ENTRY,)


def _gather(ctx: BuildContext, trees: Mapping[str, FileTree]) -> FileTree | None:
    scripts = trees[SCRIPTS]
    if not ctx.test_package and APP_ENTRY not in scripts:
        ctx.logger.info("No %s found; skipping the script bundle", APP_ENTRY)
        return None

    merged = merge_or_fail([scripts, trees[MODULES]], ["scripts", "modules"], stage=STAGE_NAME)
    if ctx.test_package:
        index = FileTree({TESTS_INDEX: render_tests_index(merged)})
        merged = merge_or_fail([merged, index], ["scripts", "tests-index"], stage=STAGE_NAME)
    return merged


def _transform(ctx: BuildContext, tree: FileTree) -> FileTree:
    paths = ctx.options.output_paths
    output_path = paths.tests_js if ctx.test_package else paths.js
    code = ctx.bundler.bundle(tree, bundle_entries(ctx))
    return FileTree({output_path: code})


STAGE = Stage(
    name=STAGE_NAME,
    gather=_gather,
    transform=_transform,
    provides=JS,
    requires=(SCRIPTS, MODULES),
    hooks=HookPoints(after="js"),
    optional=True,
    doc="Bundle transpiled modules and the module registry into one script.",
    tags=("modules",),
)
