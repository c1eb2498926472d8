from __future__ import annotations

from collections.abc import Mapping

from app_bundler.framework.context import BuildContext
from app_bundler.stages._shared import CSS, STYLES_SOURCE
from treekit.file_tree import FileTree
from treekit.stage_types import HookPoints, Stage

STAGE_NAME = "style"
APP_STYLESHEET = "app.css"


def _gather(ctx: BuildContext, trees: Mapping[str, FileTree]) -> FileTree | None:
    styles = trees.get(STYLES_SOURCE)
    if styles is None or not len(styles):
        return None
    return styles


def _transform(ctx: BuildContext, tree: FileTree) -> FileTree:
    """Pass `app.css` through, or concatenate every `.css` file in path order."""

    output_path = ctx.options.output_paths.css
    if APP_STYLESHEET in tree:
        return FileTree({output_path: tree[APP_STYLESHEET]})

    sheets = sorted(path for path in tree.paths() if path.endswith(".css"))
    if not sheets:
        ctx.logger.info("Style sources contain no .css files; no stylesheet emitted")
        return FileTree.empty()
    return FileTree({output_path: "\n".join(tree.read_text(path).rstrip("\n") for path in sheets) + "\n"})


STAGE = Stage(
    name=STAGE_NAME,
    gather=_gather,
    transform=_transform,
    provides=CSS,
    hooks=HookPoints(before="css", after="css"),
    optional=True,
    doc="Emit the application stylesheet; omitted when there are no style sources.",
    tags=("assets",),
)
