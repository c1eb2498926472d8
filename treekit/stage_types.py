from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from treekit.file_tree import FileTree


class StageGather(Protocol):
    def __call__(self, ctx: Any, trees: Mapping[str, FileTree]) -> FileTree | None:
        ...


class StageTransform(Protocol):
    def __call__(self, ctx: Any, tree: FileTree) -> FileTree:
        ...


@dataclass(frozen=True)
class HookPoints:
    """Tree types handed to pre/post hooks around a stage transform."""

    before: str | None = None
    after: str | None = None

    def __post_init__(self) -> None:
        for label in ("before", "after"):
            value = getattr(self, label)
            if value is None:
                continue
            if not isinstance(value, str) or not value.strip():
                raise TypeError(f"HookPoints.{label} must be a non-empty string or None")
            object.__setattr__(self, label, value.strip())


@dataclass(frozen=True)
class Stage:
    name: str
    gather: StageGather
    transform: StageTransform
    provides: str | None = None
    requires: tuple[str, ...] = ()
    hooks: HookPoints = field(default_factory=HookPoints)
    optional: bool = False
    doc: str | None = None
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise TypeError("Stage.name must be a non-empty string")
        object.__setattr__(self, "name", self.name.strip())

        if not callable(self.gather):
            raise TypeError(f"Stage {self.name} gather must be callable")
        if not callable(self.transform):
            raise TypeError(f"Stage {self.name} transform must be callable")

        provides = self.provides if self.provides is not None else self.name
        if not isinstance(provides, str) or not provides.strip():
            raise TypeError(f"Stage {self.name} provides must be a non-empty string or None")
        object.__setattr__(self, "provides", provides.strip())

        requires = tuple(str(name).strip() for name in self.requires)
        if any(not name for name in requires):
            raise TypeError(f"Stage {self.name} requires must be non-empty strings")
        object.__setattr__(self, "requires", requires)

        if not isinstance(self.hooks, HookPoints):
            raise TypeError(f"Stage {self.name} hooks must be HookPoints")
        if self.doc is not None and (not isinstance(self.doc, str) or not self.doc.strip()):
            raise TypeError("Stage.doc must be a non-empty string or None")
        if self.tags:
            object.__setattr__(
                self, "tags", tuple(str(tag).strip() for tag in self.tags if str(tag).strip())
            )

    @property
    def source(self) -> str:
        module = getattr(self.transform, "__module__", None) or "<unknown_module>"
        qualname = getattr(self.transform, "__qualname__", None) or "<callable>"
        return f"{module}.{qualname}"

    def collect(self, ctx: Any, trees: Mapping[str, FileTree]) -> FileTree | None:
        tree = self.gather(ctx, trees)
        if tree is None:
            if not self.optional:
                raise ValueError(f"Stage {self.name} has no input and is not optional")
            return None
        if not isinstance(tree, FileTree):
            raise TypeError(
                f"Stage {self.name} gather returned non-FileTree (type={type(tree).__name__})"
            )
        return tree

    def apply(self, ctx: Any, tree: FileTree) -> FileTree:
        out = self.transform(ctx, tree)
        if not isinstance(out, FileTree):
            raise TypeError(
                f"Stage {self.name} transform returned non-FileTree (type={type(out).__name__})"
            )
        return out
