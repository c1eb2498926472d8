from __future__ import annotations

from typing import Any, Dict, Mapping, Sequence

from treekit.file_tree import PathConflictError


class BuildError(Exception):
    """Base exception for application build failures."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        Exception.__init__(self, message)
        self.context = dict(context) if context is not None else {}


class ConfigurationError(BuildError, ValueError):
    """Missing source root, malformed options or project configuration."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        BuildError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class CompositionError(BuildError, ValueError):
    """Stage or addon outputs cannot be combined into one consistent result."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        BuildError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class OutputPathConflictError(CompositionError, PathConflictError):
    """Two contributors emit the same output path."""

    def __init__(self, path: str, contributors: Sequence[str], *, stage: str) -> None:
        PathConflictError.__init__(self, path, contributors)
        message = f"{stage}: {PathConflictError.__str__(self)}"
        CompositionError.__init__(
            self,
            message,
            context={"stage": stage, "path": path, "contributors": list(self.contributors)},
        )
        self.args = (message,)

    @classmethod
    def from_conflict(cls, exc: PathConflictError, *, stage: str) -> "OutputPathConflictError":
        return cls(exc.path, exc.contributors, stage=stage)


class AmbiguousModuleError(CompositionError):
    """Two source files normalize to the same module registry identifier."""

    def __init__(self, identifier: str, sources: Sequence[str]) -> None:
        self.identifier = identifier
        self.sources = tuple(sources)
        CompositionError.__init__(
            self,
            f"module-registry: ambiguous registration for {identifier} "
            f"(sources: {', '.join(self.sources)})",
            context={"stage": "module-registry", "identifier": identifier, "sources": list(self.sources)},
        )


class AddonHookError(BuildError, RuntimeError):
    """An addon hook raised; the original exception is chained as `__cause__`."""

    def __init__(self, *, addon: str, hook: str, tree_type: str, stage: str, cause: BaseException) -> None:
        self.addon = addon
        self.hook = hook
        self.tree_type = tree_type
        self.stage = stage
        message = (
            f"Addon {addon!r} hook {hook}({tree_type!r}) failed in stage {stage}: "
            f"{type(cause).__name__}: {cause}"
        )
        BuildError.__init__(
            self,
            message,
            context={"addon": addon, "hook": hook, "tree_type": tree_type, "stage": stage},
        )
        RuntimeError.__init__(self, message)
