"""Engine primitives for running ordered stage lists."""

from treekit.engine.pipeline import (
    DefaultStageRecorder,
    NullStageRecorder,
    StageContext,
    StageRecorder,
    StageRunner,
    TreeHooks,
    attach_pipeline_error,
    utc_now_iso8601,
)

__all__ = [
    "DefaultStageRecorder",
    "NullStageRecorder",
    "StageContext",
    "StageRecorder",
    "StageRunner",
    "TreeHooks",
    "attach_pipeline_error",
    "utc_now_iso8601",
]
