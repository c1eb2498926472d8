from __future__ import annotations

from collections.abc import Mapping

from app_bundler.errors import OutputPathConflictError
from app_bundler.framework.bundler import module_id
from app_bundler.framework.context import BuildContext
from app_bundler.stages._shared import SCRIPTS, SRC, TEMPLATES, TEST_MODULE_GLOBS, merge_or_fail
from treekit.file_tree import Content, FileTree, PathConflictError
from treekit.stage_types import HookPoints, Stage

STAGE_NAME = "script-compile"
SCRIPT_GLOBS: tuple[str, ...] = ("src/**/*.js", "src/**/*.ts")


def _gather(ctx: BuildContext, trees: Mapping[str, FileTree]) -> FileTree:
    exclude = () if ctx.test_package else TEST_MODULE_GLOBS
    scripts = trees[SRC].select(SCRIPT_GLOBS, exclude=exclude)
    templates = trees[TEMPLATES]
    ctx.template_modules = templates.paths()

    parts = [scripts, templates]
    labels = ["src", "templates"]
    if ctx.test_package:
        parts.append(ctx.lint_output)
        labels.append("lint")
    return merge_or_fail(parts, labels, stage=STAGE_NAME)


def _transform(ctx: BuildContext, tree: FileTree) -> FileTree:
    transpiler = ctx.script_transpiler

    def transpile_one(path: str, content: Content) -> tuple[str, Content] | None:
        out_path = transpiler.output_path(path)
        if out_path is None:
            return None
        source = content.decode("utf-8") if isinstance(content, bytes) else content
        return out_path, transpiler.transpile(source, module_id=module_id(out_path))

    try:
        return tree.map(transpile_one, cache=ctx.cache(STAGE_NAME))
    except PathConflictError as exc:
        raise OutputPathConflictError.from_conflict(exc, stage=STAGE_NAME) from exc


STAGE = Stage(
    name=STAGE_NAME,
    gather=_gather,
    transform=_transform,
    provides=SCRIPTS,
    requires=(SRC, TEMPLATES),
    hooks=HookPoints(before="js"),
    doc="Transpile scripts and compiled templates; inline environment flags and debug macros.",
    tags=("compile",),
)
