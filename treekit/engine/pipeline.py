"""Sequential execution engine for ordered stage lists.

This module is intentionally app-agnostic and must not import `app_bundler.*`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any, Protocol

from treekit.file_tree import FileTree
from treekit.stage_types import Stage


def utc_now_iso8601() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class TreeHooks(Protocol):
    def preprocess(self, tree_type: str, tree: FileTree, *, stage: str) -> FileTree:
        ...

    def postprocess(self, tree_type: str, tree: FileTree, *, stage: str) -> FileTree:
        ...


class StageContext(Protocol):
    logger: logging.Logger
    hooks: TreeHooks | None
    stage_records: list[dict[str, Any]]


class StageRecorder(Protocol):
    def on_stage_start(self, ctx: StageContext, stage: Stage, **metrics: Any) -> None:
        ...

    def on_stage_skip(self, ctx: StageContext, stage: Stage) -> None:
        ...

    def on_stage_end(self, ctx: StageContext, record: dict[str, Any]) -> None:
        ...

    def on_stage_error(self, ctx: StageContext, stage: Stage, exc: Exception) -> None:
        ...


class DefaultStageRecorder:
    def on_stage_start(self, ctx: StageContext, stage: Stage, **metrics: Any) -> None:
        tokens = [f"input_files={int(metrics.get('input_files', 0) or 0)}"]
        if stage.hooks.before:
            tokens.append(f"before={stage.hooks.before}")
        if stage.hooks.after:
            tokens.append(f"after={stage.hooks.after}")
        ctx.logger.info("Stage: %s (%s)", stage.name, ", ".join(tokens))

    def on_stage_skip(self, ctx: StageContext, stage: Stage) -> None:
        ctx.stage_records.append(
            {"stage": stage.name, "skipped": True, "created_at": utc_now_iso8601()}
        )
        ctx.logger.info("Skipped optional stage %s (no input)", stage.name)

    def on_stage_end(self, ctx: StageContext, record: dict[str, Any]) -> None:
        ctx.stage_records.append(record)
        ctx.logger.info(
            "Completed stage %s (output_files=%s, digest=%s)",
            record.get("stage", "<unknown>"),
            record.get("output_files", 0),
            str(record.get("digest", ""))[:12],
        )

    def on_stage_error(self, ctx: StageContext, stage: Stage, exc: Exception) -> None:
        ctx.logger.error("Stage failed: %s (%s)", stage.name, exc)


class NullStageRecorder:
    def on_stage_start(self, ctx: StageContext, stage: Stage, **metrics: Any) -> None:
        return

    def on_stage_skip(self, ctx: StageContext, stage: Stage) -> None:
        return

    def on_stage_end(self, ctx: StageContext, record: dict[str, Any]) -> None:
        return

    def on_stage_error(self, ctx: StageContext, stage: Stage, exc: Exception) -> None:
        return


def attach_pipeline_error(exc: Exception, *, stage: str, path: str) -> None:
    """Annotate `exc` with the failing stage without changing its type or message."""

    for attr, value in (("pipeline_stage", stage), ("pipeline_path", path)):
        if hasattr(exc, attr):
            continue
        try:
            setattr(exc, attr, value)
        except (AttributeError, TypeError):
            pass


class StageRunner:
    def __init__(self, *, recorder: StageRecorder | None = None, name: str = "build"):
        self._recorder = recorder or DefaultStageRecorder()
        self._name = name
        self._validate_recorder(self._recorder)

    def _validate_recorder(self, recorder: StageRecorder) -> None:
        required = ("on_stage_start", "on_stage_skip", "on_stage_end", "on_stage_error")
        for name in required:
            method = getattr(recorder, name, None)
            if method is None or not callable(method):
                raise TypeError(f"Stage recorder missing required method: {name}")

    def run(
        self,
        ctx: StageContext,
        stages: Iterable[Stage],
        trees: Mapping[str, FileTree],
    ) -> dict[str, FileTree]:
        """Run `stages` in order over a bag of named trees.

        Each stage gathers its input from the trees produced so far, runs its
        transform between the configured hooks, and publishes its output under
        `stage.provides`. Skipped optional stages publish nothing.
        """

        bag: dict[str, FileTree] = dict(trees)
        for stage in stages:
            path = f"{self._name}/{stage.name}"
            try:
                missing = [name for name in stage.requires if name not in bag]
                if missing:
                    raise ValueError(
                        f"Stage {stage.name} requires tree(s) no earlier stage provided: {', '.join(missing)}"
                    )
                tree = stage.collect(ctx, bag)
                if tree is None:
                    self._recorder.on_stage_skip(ctx, stage)
                    continue

                self._recorder.on_stage_start(ctx, stage, input_files=len(tree))

                if stage.hooks.before and ctx.hooks is not None:
                    tree = ctx.hooks.preprocess(stage.hooks.before, tree, stage=stage.name)
                out = stage.apply(ctx, tree)
                if stage.hooks.after and ctx.hooks is not None:
                    out = ctx.hooks.postprocess(stage.hooks.after, out, stage=stage.name)

                bag[stage.provides or stage.name] = out
                self._recorder.on_stage_end(
                    ctx,
                    {
                        "stage": stage.name,
                        "provides": stage.provides,
                        "input_files": len(tree),
                        "output_files": len(out),
                        "digest": out.digest(),
                        "created_at": utc_now_iso8601(),
                    },
                )
            except Exception as exc:
                try:
                    self._recorder.on_stage_error(ctx, stage, exc)
                except Exception:
                    ctx.logger.exception("Stage recorder failed during error handling for %s", path)
                attach_pipeline_error(exc, stage=stage.name, path=path)
                raise
        return bag
