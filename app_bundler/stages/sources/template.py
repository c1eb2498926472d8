from __future__ import annotations

from collections.abc import Mapping

from app_bundler.framework.context import BuildContext
from app_bundler.stages._shared import SRC, TEMPLATES
from treekit.file_tree import Content, FileTree
from treekit.stage_types import HookPoints, Stage

STAGE_NAME = "template-compile"
TEMPLATE_GLOB = "src/**/*.hbs"


def _gather(ctx: BuildContext, trees: Mapping[str, FileTree]) -> FileTree:
    return trees[SRC].select([TEMPLATE_GLOB])


def _transform(ctx: BuildContext, tree: FileTree) -> FileTree:
    compiler = ctx.template_compiler

    def compile_one(path: str, content: Content) -> tuple[str, Content]:
        stem = path[: -len(".hbs")]
        source = content.decode("utf-8") if isinstance(content, bytes) else content
        return stem + ".js", compiler.compile(source, module_name=stem)

    compiled = tree.map(compile_one, cache=ctx.cache(STAGE_NAME))
    ctx.logger.debug("Compiled %d template(s)", len(compiled))
    ctx.run_lint("templates", compiled, stage=STAGE_NAME)
    return compiled


STAGE = Stage(
    name=STAGE_NAME,
    gather=_gather,
    transform=_transform,
    provides=TEMPLATES,
    requires=(SRC,),
    hooks=HookPoints(before="template", after="template"),
    doc="Compile `.hbs` templates into ES modules and lint the compiled output.",
    tags=("compile",),
)
