"""Immutable in-memory file trees.

A `FileTree` is a snapshot of `relative path -> content`. Every transform returns a
new tree; nothing is mutated in place. Text files are held as `str`, everything
else as `bytes`.

This module is intentionally app-agnostic and must not import `app_bundler.*`.
"""

from __future__ import annotations

import hashlib
import os
import re
import shutil
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from functools import lru_cache
from pathlib import Path
from typing import Any, TypeAlias

Content: TypeAlias = str | bytes
FileMapper: TypeAlias = Callable[[str, Content], "tuple[str, Content] | None"]


class PathConflictError(ValueError):
    """Two inputs of a merge (or two outputs of a map) claim the same path."""

    def __init__(self, path: str, contributors: Sequence[str]):
        self.path = path
        self.contributors = tuple(contributors)
        joined = ", ".join(self.contributors) or "<unknown>"
        super().__init__(f"conflicting output paths: {path} (from {joined})")


def _claim_path(path: str, owner: str, files: dict[str, str], directories: dict[str, str]) -> None:
    """Record `owner` for `path`; a file that is also another input's directory is a conflict."""

    if path in files:
        raise PathConflictError(path, (files[path], owner))
    if path in directories:
        raise PathConflictError(path, (directories[path], owner))
    parts = path.split("/")
    for idx in range(1, len(parts)):
        parent = "/".join(parts[:idx])
        if parent in files:
            raise PathConflictError(parent, (files[parent], owner))
        directories.setdefault(parent, owner)
    files[path] = owner


def normalize_path(raw: str) -> str:
    if not isinstance(raw, str):
        raise TypeError(f"FileTree path must be a string (type={type(raw).__name__})")
    text = raw.replace("\\", "/").strip()
    if not text:
        raise ValueError("FileTree path cannot be empty")
    if text.startswith("/"):
        raise ValueError(f"FileTree path must be relative: {raw}")
    parts = [part for part in text.split("/") if part not in ("", ".")]
    if not parts:
        raise ValueError(f"FileTree path cannot be empty: {raw!r}")
    if ".." in parts:
        raise ValueError(f"FileTree path cannot contain '..': {raw}")
    return "/".join(parts)


def content_hash(content: Content) -> str:
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()


@lru_cache(maxsize=256)
def _glob_regex(pattern: str) -> re.Pattern[str]:
    out: list[str] = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
            continue
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
            continue
        if char == "*":
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        else:
            out.append(re.escape(char))
        i += 1
    return re.compile("".join(out) + r"\Z")


def match_glob(path: str, pattern: str) -> bool:
    """Match a POSIX path against a glob where `*` stops at `/` and `**` does not."""

    return _glob_regex(pattern).match(path) is not None


class TransformCache:
    """Content-hash keyed memo for per-file transforms.

    A cache belongs to one transform of one builder; it is never shared between
    builders, so re-running a build only recomputes files whose content changed.
    """

    def __init__(self, name: str):
        if not isinstance(name, str) or not name.strip():
            raise TypeError("TransformCache name must be a non-empty string")
        self.name = name.strip()
        self.hits = 0
        self.misses = 0
        self._entries: dict[tuple[str, str], tuple[str, Content] | None] = {}

    def lookup(self, path: str, content: Content) -> tuple[bool, tuple[str, Content] | None]:
        key = (path, content_hash(content))
        if key in self._entries:
            self.hits += 1
            return True, self._entries[key]
        self.misses += 1
        return False, None

    def store(self, path: str, content: Content, result: tuple[str, Content] | None) -> None:
        self._entries[(path, content_hash(content))] = result

    def __len__(self) -> int:
        return len(self._entries)


class FileTree(Mapping[str, Content]):
    __slots__ = ("_files", "_digest")

    def __init__(self, files: Mapping[str, Content] | None = None):
        normalized: dict[str, Content] = {}
        for raw_path, content in (files or {}).items():
            path = normalize_path(raw_path)
            if not isinstance(content, (str, bytes)):
                raise TypeError(
                    f"FileTree content for {path} must be str or bytes (type={type(content).__name__})"
                )
            if path in normalized:
                raise ValueError(f"Duplicate FileTree path after normalization: {path}")
            normalized[path] = content

        directories: set[str] = set()
        for path in normalized:
            parts = path.split("/")
            for idx in range(1, len(parts)):
                directories.add("/".join(parts[:idx]))
        clashes = sorted(directories.intersection(normalized))
        if clashes:
            raise ValueError(f"FileTree path is both a file and a directory: {clashes[0]}")

        self._files: dict[str, Content] = dict(sorted(normalized.items()))
        self._digest: str | None = None

    @classmethod
    def empty(cls) -> "FileTree":
        return cls({})

    @classmethod
    def from_nested(cls, nested: Mapping[str, Any]) -> "FileTree":
        flat: dict[str, Content] = {}

        def walk(node: Mapping[str, Any], prefix: str) -> None:
            for name, value in node.items():
                path = f"{prefix}/{name}" if prefix else str(name)
                if isinstance(value, Mapping):
                    walk(value, path)
                elif isinstance(value, (str, bytes)):
                    flat[path] = value
                else:
                    raise TypeError(
                        f"Nested tree entry {path} must be a mapping, str or bytes "
                        f"(type={type(value).__name__})"
                    )

        walk(nested, "")
        return cls(flat)

    @classmethod
    def from_directory(cls, root: str | os.PathLike[str]) -> "FileTree":
        root_path = Path(root)
        if not root_path.is_dir():
            raise FileNotFoundError(f"Not a directory: {root_path}")

        files: dict[str, Content] = {}
        for dirpath, dirnames, filenames in os.walk(root_path):
            dirnames.sort()
            for filename in sorted(filenames):
                full = Path(dirpath) / filename
                rel = full.relative_to(root_path).as_posix()
                data = full.read_bytes()
                try:
                    files[rel] = data.decode("utf-8")
                except UnicodeDecodeError:
                    files[rel] = data
        return cls(files)

    def __getitem__(self, path: str) -> Content:
        return self._files[normalize_path(path)]

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        try:
            return normalize_path(path) in self._files
        except ValueError:
            return False

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __repr__(self) -> str:
        return f"FileTree({len(self._files)} files, digest={self.digest()[:12]})"

    def paths(self) -> tuple[str, ...]:
        return tuple(self._files)

    def read_text(self, path: str) -> str:
        content = self[path]
        if isinstance(content, bytes):
            return content.decode("utf-8")
        return content

    def select(
        self,
        include: Iterable[str] | None = None,
        *,
        exclude: Iterable[str] | None = None,
    ) -> "FileTree":
        include_list = list(include) if include is not None else None
        exclude_list = list(exclude or ())
        selected: dict[str, Content] = {}
        for path, content in self._files.items():
            if include_list is not None and not any(match_glob(path, p) for p in include_list):
                continue
            if any(match_glob(path, p) for p in exclude_list):
                continue
            selected[path] = content
        return FileTree(selected)

    def subtree(self, prefix: str) -> "FileTree":
        root = normalize_path(prefix)
        marker = root + "/"
        return FileTree(
            {path[len(marker) :]: content for path, content in self._files.items() if path.startswith(marker)}
        )

    def prefixed(self, prefix: str) -> "FileTree":
        root = normalize_path(prefix)
        return FileTree({f"{root}/{path}": content for path, content in self._files.items()})

    def replace(self, files: Mapping[str, Content]) -> "FileTree":
        """Return a copy where `files` are added or overwritten."""

        merged = dict(self._files)
        for raw_path, content in files.items():
            merged[normalize_path(raw_path)] = content
        return FileTree(merged)

    def map(self, fn: FileMapper, *, cache: TransformCache | None = None) -> "FileTree":
        """Apply `fn(path, content)` to every file.

        `fn` returns `(new_path, new_content)` or `None` to drop the file. Two files
        mapping to the same new path raise `PathConflictError`.
        """

        out: dict[str, Content] = {}
        owners: dict[str, str] = {}
        directories: dict[str, str] = {}
        for path, content in self._files.items():
            if cache is not None:
                found, result = cache.lookup(path, content)
                if not found:
                    result = fn(path, content)
                    cache.store(path, content, result)
            else:
                result = fn(path, content)

            if result is None:
                continue
            new_path, new_content = result
            new_path = normalize_path(new_path)
            _claim_path(new_path, path, owners, directories)
            out[new_path] = new_content
        return FileTree(out)

    def to_nested(self) -> dict[str, Any]:
        nested: dict[str, Any] = {}
        for path, content in self._files.items():
            node = nested
            parts = path.split("/")
            for part in parts[:-1]:
                node = node.setdefault(part, {})
            node[parts[-1]] = content
        return nested

    def digest(self) -> str:
        if self._digest is None:
            hasher = hashlib.sha256()
            for path, content in self._files.items():
                hasher.update(path.encode("utf-8"))
                hasher.update(b"\0")
                hasher.update(content_hash(content).encode("ascii"))
                hasher.update(b"\n")
            self._digest = hasher.hexdigest()
        return self._digest

    def write_to(self, destination: str | os.PathLike[str]) -> Path:
        """Write the tree into `destination`, replacing any previous contents.

        Files are written into a sibling staging directory first; `destination` is
        only swapped in once every file has been written.
        """

        dest = Path(destination).resolve()
        if dest.exists() and not dest.is_dir():
            raise NotADirectoryError(f"Output destination is not a directory: {dest}")
        staging = dest.parent / f".{dest.name}.staging"
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True)
        try:
            for path, content in self._files.items():
                target = staging / path
                target.parent.mkdir(parents=True, exist_ok=True)
                if isinstance(content, bytes):
                    target.write_bytes(content)
                else:
                    with open(target, "w", encoding="utf-8", newline="") as handle:
                        handle.write(content)
        except Exception:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        try:
            if dest.exists():
                shutil.rmtree(dest)
            staging.rename(dest)
        except OSError:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        return dest


def merge_trees(trees: Sequence[FileTree], *, labels: Sequence[str] | None = None) -> FileTree:
    """Additively merge trees in order.

    A path shared by two inputs, or a file in one input that is a directory in
    another, raises `PathConflictError` naming both contributors.
    """

    if labels is not None and len(labels) != len(trees):
        raise ValueError(f"merge_trees labels length {len(labels)} != trees length {len(trees)}")

    merged: dict[str, Content] = {}
    owners: dict[str, str] = {}
    directories: dict[str, str] = {}
    for idx, tree in enumerate(trees):
        if not isinstance(tree, FileTree):
            raise TypeError(f"merge_trees[{idx}] must be a FileTree (type={type(tree).__name__})")
        label = labels[idx] if labels is not None else f"tree[{idx}]"
        for path, content in tree.items():
            _claim_path(path, label, owners, directories)
            merged[path] = content
    return FileTree(merged)
