"""Reusable build kernel (immutable file trees + ordered stage runner).

This package is intentionally independent of `app_bundler.*`. Application
conventions (tree types, hook protocols, output layout) must live in the
consuming application.
"""

from treekit.config_namespace import ConfigNamespace
from treekit.engine.pipeline import (
    DefaultStageRecorder,
    NullStageRecorder,
    StageRecorder,
    StageRunner,
    TreeHooks,
    utc_now_iso8601,
)
from treekit.file_tree import (
    Content,
    FileTree,
    PathConflictError,
    TransformCache,
    match_glob,
    merge_trees,
    normalize_path,
)
from treekit.stage_registry import StageRegistry
from treekit.stage_types import HookPoints, Stage

__all__ = [
    "ConfigNamespace",
    "Content",
    "DefaultStageRecorder",
    "FileTree",
    "HookPoints",
    "NullStageRecorder",
    "PathConflictError",
    "Stage",
    "StageRecorder",
    "StageRegistry",
    "StageRunner",
    "TransformCache",
    "TreeHooks",
    "match_glob",
    "merge_trees",
    "normalize_path",
    "utc_now_iso8601",
]
