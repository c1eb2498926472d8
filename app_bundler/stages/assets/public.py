from __future__ import annotations

from collections.abc import Mapping

from app_bundler.framework.context import BuildContext
from app_bundler.stages._shared import PUBLIC, PUBLIC_SOURCE, merge_or_fail
from treekit.file_tree import FileTree
from treekit.stage_types import Stage

STAGE_NAME = "public"


def _gather(ctx: BuildContext, trees: Mapping[str, FileTree]) -> FileTree:
    return trees.get(PUBLIC_SOURCE) or FileTree.empty()


def _transform(ctx: BuildContext, tree: FileTree) -> FileTree:
    contributions = ctx.hooks.public_trees(stage=STAGE_NAME)
    trees = [tree] + [contributed for _, contributed in contributions]
    labels = ["project"] + [label for label, _ in contributions]
    return merge_or_fail(trees, labels, stage=STAGE_NAME)


STAGE = Stage(
    name=STAGE_NAME,
    gather=_gather,
    transform=_transform,
    provides=PUBLIC,
    doc="Merge the project's public/ directory with addon public trees.",
    tags=("assets",),
)
