from __future__ import annotations

from collections.abc import Mapping

from app_bundler.framework.context import BuildContext
from app_bundler.framework.module_registry import ModuleRegistryBuilder
from app_bundler.stages._shared import MODULES, SCRIPTS
from treekit.file_tree import FileTree
from treekit.stage_types import Stage

STAGE_NAME = "module-registry"


def _gather(ctx: BuildContext, trees: Mapping[str, FileTree]) -> FileTree:
    return trees[SCRIPTS]


def _transform(ctx: BuildContext, tree: FileTree) -> FileTree:
    registry = ModuleRegistryBuilder(ctx.resolver).build(tree, template_modules=ctx.template_modules)
    ctx.module_registry = registry
    ctx.logger.info("Module registry: %d entries", len(registry.entries))
    return registry.to_tree()


STAGE = Stage(
    name=STAGE_NAME,
    gather=_gather,
    transform=_transform,
    provides=MODULES,
    requires=(SCRIPTS,),
    doc="Derive the module map and resolver configuration from compiled modules.",
    tags=("modules",),
)
