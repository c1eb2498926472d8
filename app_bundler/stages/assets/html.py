from __future__ import annotations

from collections.abc import Mapping

from app_bundler.framework.context import BuildContext
from app_bundler.framework.environment import ROOT_URL_TOKEN
from app_bundler.stages._shared import HTML, SRC
from treekit.file_tree import FileTree
from treekit.stage_types import Stage

STAGE_NAME = "html"
INDEX_HTML = "src/ui/index.html"


def _gather(ctx: BuildContext, trees: Mapping[str, FileTree]) -> FileTree | None:
    src = trees[SRC]
    if INDEX_HTML not in src:
        return None
    return src.select([INDEX_HTML])


def _transform(ctx: BuildContext, tree: FileTree) -> FileTree:
    html = tree.read_text(INDEX_HTML).replace(ROOT_URL_TOKEN, ctx.environment.root_url)
    return FileTree({ctx.options.output_paths.html: html})


STAGE = Stage(
    name=STAGE_NAME,
    gather=_gather,
    transform=_transform,
    provides=HTML,
    requires=(SRC,),
    optional=True,
    doc="Emit index.html with {{rootURL}} replaced by the configured rootURL.",
    tags=("assets",),
)
