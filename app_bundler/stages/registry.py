from __future__ import annotations

from collections.abc import Mapping
from functools import lru_cache

from app_bundler.stages._shared import STYLES_SOURCE
from treekit.file_tree import FileTree
from treekit.stage_registry import StageRegistry
from treekit.stage_types import Stage

STAGE_ORDER: tuple[str, ...] = (
    "template-compile",
    "script-compile",
    "module-registry",
    "bundle",
    "style",
    "html",
    "public",
)


@lru_cache(maxsize=1)
def get_stage_registry() -> StageRegistry:
    # Stage modules define `STAGE` symbols; the subpackages list them in `__all_stages__`.
    from app_bundler.stages import assets, modules, sources  # noqa: PLC0415

    by_name: dict[str, Stage] = {}
    for pkg in (sources, modules, assets):
        for stage in getattr(pkg, "__all_stages__", ()):
            by_name[stage.name] = stage

    missing = [name for name in STAGE_ORDER if name not in by_name]
    if missing:
        raise RuntimeError(f"Stage modules missing from registry: {', '.join(missing)}")
    return StageRegistry.from_stages(by_name[name] for name in STAGE_ORDER)


def assemble_stages(trees: Mapping[str, FileTree]) -> list[Stage]:
    """Ordered stages for one build; the style stage is left out when there are no style sources."""

    styles = trees.get(STYLES_SOURCE)
    has_styles = styles is not None and len(styles) > 0
    return [stage for stage in get_stage_registry() if stage.name != "style" or has_styles]
