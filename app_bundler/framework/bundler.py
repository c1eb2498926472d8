"""Single-file script bundler.

Modules are ES-style `.js` files in a `FileTree`. Relative imports resolve within
the tree; bare imports resolve through an optional `node_modules` tree and are
otherwise left external. Output order is a deterministic depth-first walk from
the entries, dependencies first.
"""

from __future__ import annotations

import json
import logging
import posixpath
import re
from collections.abc import Mapping, Sequence
from typing import Protocol

from app_bundler.framework.options import TransformPlugin
from treekit.file_tree import FileTree

NODE_MODULES_PREFIX = "node_modules"

_IMPORT_RE = re.compile(
    r"""(?:^|(?<=;))[ \t]*import\s+(?:(?P<clause>[\w$*{}\s,]+?)\s+from\s+)?(?P<quote>["'])(?P<spec>[^"']+)(?P=quote)[ \t]*;?""",
    re.MULTILINE,
)
_REEXPORT_RE = re.compile(
    r"""(?:^|(?<=;))[ \t]*export\s+(?:\*|\{(?P<names>[^}]*)\})\s+from\s+(?P<quote>["'])(?P<spec>[^"']+)(?P=quote)[ \t]*;?""",
    re.MULTILINE,
)
_EXPORT_DEFAULT_RE = re.compile(r"(?:^|(?<=;))([ \t]*)export\s+default\s+", re.MULTILINE)
_EXPORT_DECL_RE = re.compile(
    r"(?:^|(?<=;))([ \t]*)export\s+((?:async\s+)?(?:const|let|var|function\*?|class)\s+([\w$]+))",
    re.MULTILINE,
)
_EXPORT_LIST_RE = re.compile(r"(?:^|(?<=;))[ \t]*export\s*\{(?P<names>[^}]*)\}[ \t]*;?", re.MULTILINE)

_PRELUDE = """(function () {
  var __registry__ = {};
  var __cache__ = {};
  function __define__(id, factory) { __registry__[id] = factory; }
  function __require__(id) {
    if (Object.prototype.hasOwnProperty.call(__cache__, id)) { return __cache__[id]; }
    var factory = __registry__[id];
    if (!factory) {
      if (typeof require === "function") { return require(id); }
      throw new Error("Could not find module " + id);
    }
    var exports = __cache__[id] = {};
    factory(exports, __require__);
    return exports;
  }
"""

logger = logging.getLogger(__name__)


class Bundler(Protocol):
    def bundle(self, tree: FileTree, entries: Sequence[str]) -> str:
        ...


def module_id(path: str) -> str:
    return path[: -len(".js")] if path.endswith(".js") else path


def _split_names(raw: str) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for item in raw.split(","):
        parts = item.split()
        if not parts:
            continue
        if len(parts) == 3 and parts[1] == "as":
            pairs.append((parts[0], parts[2]))
        elif len(parts) == 1:
            pairs.append((parts[0], parts[0]))
        else:
            raise ValueError(f"Cannot parse import/export list entry: {item.strip()!r}")
    return pairs


class DefaultBundler:
    def __init__(
        self,
        *,
        plugins: Sequence[TransformPlugin] = (),
        node_modules: FileTree | None = None,
    ):
        self._plugins = tuple(plugins)
        self._node_modules = node_modules

    def bundle(self, tree: FileTree, entries: Sequence[str]) -> str:
        if not entries:
            raise ValueError("Bundle requires at least one entry module")

        modules: dict[str, str] = {}
        for path in tree.paths():
            if path.endswith(".js"):
                modules[path] = tree.read_text(path)
        if self._node_modules is not None:
            for path in self._node_modules.paths():
                if path.endswith(".js"):
                    modules[f"{NODE_MODULES_PREFIX}/{path}"] = self._node_modules.read_text(path)

        for entry in entries:
            if entry not in modules:
                raise ValueError(f"Bundle entry not found: {entry}")

        order: list[str] = []
        rendered: dict[str, str] = {}
        visiting: set[str] = set()

        def visit(path: str) -> None:
            if path in rendered or path in visiting:
                return
            visiting.add(path)
            mid = module_id(path)
            code = modules[path]
            for plugin in self._plugins:
                code = plugin.apply(code, mid)
            body, deps = self._rewrite(code, importer=path, modules=modules)
            for dep in deps:
                visit(dep)
            visiting.discard(path)
            rendered[path] = body
            order.append(path)

        for entry in entries:
            visit(entry)

        parts = [_PRELUDE]
        for path in order:
            body = rendered[path].rstrip("\n")
            parts.append(
                f"  __define__({json.dumps(module_id(path))}, function (exports, __require__) {{\n"
                f"{body}\n"
                "  });\n"
            )
        for entry in entries:
            parts.append(f"  __require__({json.dumps(module_id(entry))});\n")
        parts.append("})();\n")
        logger.debug("Bundled %d modules from %d entries", len(order), len(entries))
        return "".join(parts)

    def resolve(self, spec: str, *, importer: str, modules: Mapping[str, str]) -> str | None:
        if spec.startswith("./") or spec.startswith("../"):
            base = posixpath.normpath(posixpath.join(posixpath.dirname(importer), spec))
            if base.startswith("../"):
                raise ValueError(f"Import {spec!r} from {importer} escapes the build tree")
            candidates = [base, base + ".js", base + "/index.js"]
        else:
            if self._node_modules is None:
                return None
            candidates = self._node_module_candidates(spec)

        for candidate in candidates:
            if candidate.endswith(".js") and candidate in modules:
                return candidate
        if spec.startswith("."):
            raise ValueError(f"Could not resolve import {spec!r} from {importer}")
        return None

    def _node_module_candidates(self, spec: str) -> list[str]:
        if self._node_modules is None:
            return []
        parts = spec.split("/")
        package_len = 2 if spec.startswith("@") and len(parts) > 1 else 1
        package = "/".join(parts[:package_len])
        subpath = "/".join(parts[package_len:])
        root = f"{NODE_MODULES_PREFIX}/{package}"
        if subpath:
            return [f"{root}/{subpath}", f"{root}/{subpath}.js", f"{root}/{subpath}/index.js"]

        candidates: list[str] = []
        manifest_path = f"{package}/package.json"
        if manifest_path in self._node_modules:
            try:
                manifest = json.loads(self._node_modules.read_text(manifest_path))
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON in node_modules/{manifest_path}: {exc}") from exc
            for field_name in ("module", "main"):
                value = manifest.get(field_name) if isinstance(manifest, Mapping) else None
                if isinstance(value, str) and value.strip():
                    target = posixpath.normpath(f"{root}/{value.strip()}")
                    candidates.extend([target, target + ".js"])
        candidates.append(f"{root}/index.js")
        return candidates

    def _rewrite(self, code: str, *, importer: str, modules: Mapping[str, str]) -> tuple[str, list[str]]:
        deps: list[str] = []
        counter = 0
        trailer: list[str] = []

        def require_expr(spec: str) -> str:
            resolved = self.resolve(spec, importer=importer, modules=modules)
            if resolved is None:
                logger.debug("Leaving %s external (imported from %s)", spec, importer)
                return f"__require__({json.dumps(spec)})"
            if resolved not in deps:
                deps.append(resolved)
            return f"__require__({json.dumps(module_id(resolved))})"

        def on_import(match: re.Match[str]) -> str:
            nonlocal counter
            clause = (match.group("clause") or "").strip()
            expr = require_expr(match.group("spec"))
            if not clause:
                return f"{expr};"
            counter += 1
            temp = f"__dep{counter}__"
            lines = [f"var {temp} = {expr};"]
            named = re.search(r"\{([^}]*)\}", clause)
            rest = re.sub(r"\{[^}]*\}", "", clause)
            for token in (t.strip() for t in rest.split(",")):
                if not token:
                    continue
                if token.startswith("*"):
                    lines.append(f"var {token.split()[-1]} = {temp};")
                else:
                    lines.append(f"var {token} = {temp}.default;")
            if named:
                for imported, local in _split_names(named.group(1)):
                    lines.append(f"var {local} = {temp}.{imported};")
            return " ".join(lines)

        def on_reexport(match: re.Match[str]) -> str:
            nonlocal counter
            counter += 1
            temp = f"__dep{counter}__"
            expr = require_expr(match.group("spec"))
            names = match.group("names")
            if names is None:
                return (
                    f"var {temp} = {expr}; Object.keys({temp}).forEach(function (k) "
                    f'{{ if (k !== "default") {{ exports[k] = {temp}[k]; }} }});'
                )
            assigns = " ".join(f"exports.{exported} = {temp}.{local};" for local, exported in _split_names(names))
            return f"var {temp} = {expr}; {assigns}"

        def on_export_decl(match: re.Match[str]) -> str:
            trailer.append(f"exports.{match.group(3)} = {match.group(3)};")
            return match.group(1) + match.group(2)

        def on_export_list(match: re.Match[str]) -> str:
            for local, exported in _split_names(match.group("names")):
                trailer.append(f"exports.{exported} = {local};")
            return ""

        code = _IMPORT_RE.sub(on_import, code)
        code = _REEXPORT_RE.sub(on_reexport, code)
        code = _EXPORT_DECL_RE.sub(on_export_decl, code)
        code = _EXPORT_LIST_RE.sub(on_export_list, code)
        code = _EXPORT_DEFAULT_RE.sub(lambda m: f"{m.group(1)}exports.default = ", code)
        if trailer:
            code = code.rstrip("\n") + "\n" + "\n".join(trailer) + "\n"
        return code, deps
