from __future__ import annotations

import difflib
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from treekit.stage_types import Stage


@dataclass(frozen=True)
class StageRegistry:
    """Ordered, name-unique collection of stages; order is evaluation order."""

    _stages: tuple[Stage, ...]

    @classmethod
    def from_stages(cls, stages: Iterable[Stage]) -> "StageRegistry":
        entries: list[Stage] = []
        seen: set[str] = set()
        provided: set[str] = set()
        for stage in stages:
            if not isinstance(stage, Stage):
                raise TypeError(f"StageRegistry entries must be Stage (type={type(stage).__name__})")
            if stage.name in seen:
                raise ValueError(f"Duplicate stage name: {stage.name}")
            if stage.provides in provided:
                raise ValueError(f"Duplicate stage output: {stage.provides} (stage {stage.name})")
            seen.add(stage.name)
            provided.add(stage.provides)
            entries.append(stage)
        return cls(_stages=tuple(entries))

    def __iter__(self) -> Iterator[Stage]:
        return iter(self._stages)

    def __len__(self) -> int:
        return len(self._stages)

    def names(self) -> tuple[str, ...]:
        return tuple(stage.name for stage in self._stages)

    def describe(self) -> tuple[dict[str, Any], ...]:
        rows: list[dict[str, Any]] = []
        for index, stage in enumerate(self._stages):
            rows.append(
                {
                    "order": index + 1,
                    "stage": stage.name,
                    "provides": stage.provides,
                    "requires": list(stage.requires),
                    "optional": stage.optional,
                    "before": stage.hooks.before,
                    "after": stage.hooks.after,
                    "doc": stage.doc,
                    "source": stage.source,
                    "tags": list(stage.tags),
                }
            )
        return tuple(rows)

    def resolve(self, name: str) -> Stage:
        if not isinstance(name, str) or not name.strip():
            raise ValueError("stage name must be a non-empty string")
        key = name.strip()

        for stage in self._stages:
            if stage.name == key:
                return stage

        matches = [stage for stage in self._stages if stage.name.split("-", 1)[0] == key]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            raise ValueError(
                f"Ambiguous stage: {name} (matches: {', '.join(s.name for s in matches)})"
            )

        close = self.suggest(key)
        if close:
            raise ValueError(f"Unknown stage: {name} (did you mean: {', '.join(close)})")
        available = ", ".join(self.names()) or "<none>"
        raise ValueError(f"Unknown stage: {name} (available: {available})")

    def suggest(self, name: str, *, limit: int = 3) -> tuple[str, ...]:
        key = (name or "").strip()
        if not key:
            return ()
        return tuple(difflib.get_close_matches(key, list(self.names()), n=limit))

