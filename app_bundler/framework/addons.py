"""Addon records and ordered hook dispatch.

Addons are normalized once, when the builder is constructed, into `AddonRecord`s
with explicit optional hooks. Dispatch checks those fields; it never probes the
original addon object again.

Hook protocol (all optional):

- `preprocess_tree(tree_type, tree) -> FileTree | None`
- `postprocess_tree(tree_type, tree) -> FileTree | None`
- `lint_tree(tree_type, tree) -> FileTree | None` for tree types "templates" and "src"
- `tree_for(tree_type) -> FileTree | path | None` for tree type "public"

A hook returning `None` leaves the tree unchanged.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from app_bundler.errors import AddonHookError, ConfigurationError, OutputPathConflictError
from treekit.config_namespace import ConfigNamespace
from treekit.file_tree import FileTree, PathConflictError, merge_trees

HOOK_NAMES: tuple[str, ...] = ("preprocess_tree", "postprocess_tree", "lint_tree", "tree_for")
LINT_TREE_TYPES: tuple[str, ...] = ("templates", "src")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddonRecord:
    name: str
    preprocess_tree: Callable[[str, FileTree], Any] | None = None
    postprocess_tree: Callable[[str, FileTree], Any] | None = None
    lint_tree: Callable[[str, FileTree], Any] | None = None
    tree_for: Callable[[str], Any] | None = None

    @classmethod
    def from_value(cls, raw: Any, *, index: int) -> "AddonRecord":
        if isinstance(raw, AddonRecord):
            return raw

        namespace: ConfigNamespace | None = None
        if isinstance(raw, Mapping):
            namespace = ConfigNamespace(raw, path=f"addons[{index}]")

            def lookup(key: str) -> Any:
                return namespace.get_any(key, default=None)
        else:
            def lookup(key: str) -> Any:
                return getattr(raw, key, None)

        name = lookup("name")
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(
                f"addons[{index}] must have a non-empty string name (type={type(raw).__name__})"
            )

        hooks: dict[str, Any] = {}
        for hook in HOOK_NAMES:
            value = lookup(hook)
            if value is None:
                continue
            if not callable(value):
                raise ConfigurationError(
                    f"Addon {name.strip()!r} hook {hook} must be callable (type={type(value).__name__})"
                )
            hooks[hook] = value

        if namespace is not None:
            try:
                namespace.assert_consumed()
            except ValueError as exc:
                raise ConfigurationError(f"Addon {name.strip()!r}: {exc}") from exc
        return cls(name=name.strip(), **hooks)

    def capabilities(self) -> tuple[str, ...]:
        return tuple(hook for hook in HOOK_NAMES if getattr(self, hook) is not None)


def normalize_addons(raw_addons: Sequence[Any]) -> tuple[AddonRecord, ...]:
    records: list[AddonRecord] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_addons):
        record = AddonRecord.from_value(raw, index=index)
        if record.name in seen:
            raise ConfigurationError(f"Duplicate addon name: {record.name}")
        seen.add(record.name)
        records.append(record)
    return tuple(records)


class AddonDispatcher:
    """Invoke addon hooks in declaration order, threading each result into the next."""

    def __init__(
        self,
        addons: Sequence[AddonRecord],
        *,
        resolve_path: Callable[[str], Path] | None = None,
        log: logging.Logger | None = None,
    ):
        self._addons = tuple(addons)
        self._resolve_path = resolve_path or (lambda p: Path(p).resolve())
        self._logger = log or logger

    @property
    def addons(self) -> tuple[AddonRecord, ...]:
        return self._addons

    def preprocess(self, tree_type: str, tree: FileTree, *, stage: str) -> FileTree:
        return self._fold("preprocess_tree", tree_type, tree, stage=stage)

    def postprocess(self, tree_type: str, tree: FileTree, *, stage: str) -> FileTree:
        return self._fold("postprocess_tree", tree_type, tree, stage=stage)

    def lint(self, tree_type: str, tree: FileTree, *, stage: str) -> FileTree:
        """Run every `lint_tree` hook on the same input and merge what they return.

        The input tree is never replaced; lint output is advisory (for example
        generated `.lint-test.js` modules).
        """

        if tree_type not in LINT_TREE_TYPES:
            raise ValueError(
                f"lint_tree only runs for tree types {', '.join(LINT_TREE_TYPES)} (got {tree_type!r})"
            )

        outputs: list[FileTree] = []
        labels: list[str] = []
        for addon in self._addons:
            if addon.lint_tree is None:
                continue
            result = self._call(addon, "lint_tree", tree_type, stage, addon.lint_tree, tree_type, tree)
            if result is None:
                continue
            outputs.append(self._expect_tree(addon, "lint_tree", tree_type, stage, result))
            labels.append(f"addon:{addon.name}")

        return self._merge(outputs, labels, stage=stage)

    def public_trees(self, *, stage: str) -> list[tuple[str, FileTree]]:
        contributions: list[tuple[str, FileTree]] = []
        for addon in self._addons:
            if addon.tree_for is None:
                continue
            result = self._call(addon, "tree_for", "public", stage, addon.tree_for, "public")
            if result is None:
                continue
            if isinstance(result, (str, os.PathLike)):
                path = self._resolve_path(os.fspath(result))
                if not path.is_dir():
                    self._logger.debug(
                        "Addon %s tree_for('public') path does not exist: %s", addon.name, path
                    )
                    continue
                result = FileTree.from_directory(path)
            contributions.append(
                (f"addon:{addon.name}", self._expect_tree(addon, "tree_for", "public", stage, result))
            )
        return contributions

    def _fold(self, hook: str, tree_type: str, tree: FileTree, *, stage: str) -> FileTree:
        current = tree
        for addon in self._addons:
            fn = getattr(addon, hook)
            if fn is None:
                continue
            self._logger.debug("Addon %s %s(%r) in stage %s", addon.name, hook, tree_type, stage)
            result = self._call(addon, hook, tree_type, stage, fn, tree_type, current)
            if result is None:
                continue
            current = self._expect_tree(addon, hook, tree_type, stage, result)
        return current

    def _call(
        self,
        addon: AddonRecord,
        hook: str,
        tree_type: str,
        stage: str,
        fn: Callable[..., Any],
        *args: Any,
    ) -> Any:
        try:
            return fn(*args)
        except Exception as exc:
            raise AddonHookError(
                addon=addon.name, hook=hook, tree_type=tree_type, stage=stage, cause=exc
            ) from exc

    def _expect_tree(
        self, addon: AddonRecord, hook: str, tree_type: str, stage: str, result: Any
    ) -> FileTree:
        if isinstance(result, FileTree):
            return result
        cause = TypeError(f"hook returned {type(result).__name__}, expected FileTree or None")
        raise AddonHookError(addon=addon.name, hook=hook, tree_type=tree_type, stage=stage, cause=cause)

    def _merge(self, trees: list[FileTree], labels: list[str], *, stage: str) -> FileTree:
        try:
            return merge_trees(trees, labels=labels)
        except PathConflictError as exc:
            raise OutputPathConflictError.from_conflict(exc, stage=stage) from exc
