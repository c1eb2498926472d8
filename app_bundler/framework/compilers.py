"""Template and script compilers used by the compile stages.

Both sit behind small protocols so a project can swap in a real compiler; the
defaults here are deterministic and dependency-free.
"""

from __future__ import annotations

import bisect
import hashlib
import json
import re
from collections.abc import Callable, Mapping, Sequence
from typing import Protocol

from app_bundler.framework.options import TransformPlugin

ENV_MODULE = "@glimmer/env"
DEBUG_MODULE = "@glimmer/debug"
DEBUG_FLAG = "DEBUG"
DEBUG_CALLS: dict[str, str] = {"assert": "console.assert", "warn": "console.warn"}

_NAMED_IMPORT_RE = re.compile(
    r"""(?:^|(?<=;))[ \t]*import\s*\{(?P<names>[^}]*)\}\s*from\s*(?P<quote>["'])(?P<module>[^"']+)(?P=quote)[ \t]*;?[ \t]*\n?""",
    re.MULTILINE,
)
_TYPE_IMPORT_RE = re.compile(r"""(?:^|(?<=;))[ \t]*import\s+type\s[^;\n]*;?[ \t]*\n?""", re.MULTILINE)


class TemplateCompiler(Protocol):
    def compile(self, source: str, *, module_name: str) -> str:
        ...


class ScriptTranspiler(Protocol):
    def output_path(self, path: str) -> str | None:
        ...

    def transpile(self, source: str, *, module_id: str) -> str:
        ...


class DefaultTemplateCompiler:
    """Compile template source into an ES module exporting a serialized block."""

    def __init__(self, plugins: Sequence[Callable[[str, str], str | None]] = ()):
        self._plugins = tuple(plugins)

    def compile(self, source: str, *, module_name: str) -> str:
        for plugin in self._plugins:
            rewritten = plugin(source, module_name)
            if rewritten is not None:
                source = rewritten
        _check_mustaches(source, module_name=module_name)

        payload = {
            "id": hashlib.sha1(f"{module_name}\0{source}".encode("utf-8")).hexdigest()[:8],
            "block": source,
            "meta": {"moduleName": module_name},
        }
        return f"export default {json.dumps(payload, ensure_ascii=False)};\n"


def _check_mustaches(source: str, *, module_name: str) -> None:
    depth = 0
    line = 1
    i = 0
    while i < len(source):
        if source.startswith("{{", i):
            if depth:
                raise ValueError(f"Template compile error in {module_name}:{line}: nested '{{{{'")
            depth = 1
            i += 2
            continue
        if source.startswith("}}", i):
            if not depth:
                raise ValueError(f"Template compile error in {module_name}:{line}: unexpected '}}}}'")
            depth = 0
            i += 2
            continue
        if source[i] == "\n":
            line += 1
        i += 1
    if depth:
        raise ValueError(f"Template compile error in {module_name}: unclosed '{{{{'")


class DefaultScriptTranspiler:
    """
    Turn `.ts`/`.js` sources into `.js` modules.

    Declaration files are dropped, `import type` lines removed, debug macros
    rewritten for the environment, then user plugins applied in order.
    """

    def __init__(
        self,
        *,
        debug: bool,
        features: Mapping[str, bool] | None = None,
        plugins: Sequence[TransformPlugin] = (),
    ):
        self._debug = debug
        self._features = dict(features or {})
        self._plugins = tuple(plugins)

    def output_path(self, path: str) -> str | None:
        if path.endswith(".d.ts"):
            return None
        if path.endswith(".ts"):
            return path[: -len(".ts")] + ".js"
        if path.endswith(".js"):
            return path
        return None

    def transpile(self, source: str, *, module_id: str) -> str:
        code = _TYPE_IMPORT_RE.sub("", source)
        code = rewrite_debug_macros(code, module_id=module_id, debug=self._debug, features=self._features)
        for plugin in self._plugins:
            code = plugin.apply(code, module_id)
        return code


def _parse_import_names(raw: str, *, module_id: str) -> list[tuple[str, str]]:
    names: list[tuple[str, str]] = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        parts = item.split()
        if len(parts) == 1:
            names.append((parts[0], parts[0]))
        elif len(parts) == 3 and parts[1] == "as":
            names.append((parts[0], parts[2]))
        else:
            raise ValueError(f"{module_id}: cannot parse import specifier {item!r}")
    return names


def _quote_end(code: str, start: int) -> int:
    quote = code[start]
    i = start + 1
    while i < len(code):
        char = code[i]
        if char == "\\":
            i += 2
            continue
        if char == quote or char == "\n":
            return i + 1
        i += 1
    return len(code)


def _template_end(code: str, start: int, spans: list[tuple[int, int]]) -> int:
    segment = start
    i = start + 1
    while i < len(code):
        char = code[i]
        if char == "\\":
            i += 2
            continue
        if char == "`":
            spans.append((segment, i + 1))
            return i + 1
        if code.startswith("${", i):
            spans.append((segment, i + 2))
            i = _scan_code(code, i + 2, spans, nested=True)
            segment = i
            continue
        i += 1
    spans.append((segment, len(code)))
    return len(code)


def _scan_code(code: str, i: int, spans: list[tuple[int, int]], *, nested: bool = False) -> int:
    depth = 0
    while i < len(code):
        char = code[i]
        if char in "\"'":
            end = _quote_end(code, i)
            spans.append((i, end))
            i = end
            continue
        if char == "`":
            i = _template_end(code, i, spans)
            continue
        if code.startswith("//", i):
            end = code.find("\n", i)
            end = len(code) if end < 0 else end
            spans.append((i, end))
            i = end
            continue
        if code.startswith("/*", i):
            end = code.find("*/", i + 2)
            end = len(code) if end < 0 else end + 2
            spans.append((i, end))
            i = end
            continue
        if nested:
            if char == "{":
                depth += 1
            elif char == "}":
                if depth == 0:
                    return i
                depth -= 1
        i += 1
    return i


def _literal_spans(code: str) -> list[tuple[int, int]]:
    """Half-open ranges covered by strings, template text and comments, in order."""

    spans: list[tuple[int, int]] = []
    _scan_code(code, 0, spans)
    return spans


def _in_literal(spans: list[tuple[int, int]], index: int) -> bool:
    pos = bisect.bisect_right(spans, (index, float("inf"))) - 1
    return pos >= 0 and spans[pos][0] <= index < spans[pos][1]


def _is_property_key(code: str, start: int, end: int) -> bool:
    before = code[:start].rstrip()
    after = code[end:].lstrip()
    return before[-1:] in ("{", ",") and after.startswith(":") and not after.startswith("::")


def _is_code_reference(code: str, spans: list[tuple[int, int]], match: re.Match[str]) -> bool:
    return not _in_literal(spans, match.start()) and not _is_property_key(code, match.start(), match.end())


def _replace_identifier(code: str, name: str, replacement: str) -> str:
    pattern = re.compile(r"(?<![\w$.])" + re.escape(name) + r"(?![\w$])")
    spans = _literal_spans(code)

    def substitute(match: re.Match[str]) -> str:
        return replacement if _is_code_reference(code, spans, match) else match.group(0)

    return pattern.sub(substitute, code)


def _call_end(code: str, open_index: int, *, module_id: str) -> int:
    depth = 0
    quote: str | None = None
    i = open_index
    while i < len(code):
        char = code[i]
        if quote:
            if char == "\\":
                i += 2
                continue
            if char == quote:
                quote = None
        elif char in "\"'`":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    raise ValueError(f"{module_id}: unbalanced parentheses in debug macro call")


def _rewrite_calls(code: str, local: str, target: str, guard: str, *, module_id: str) -> str:
    pattern = re.compile(r"(?<![\w$.])" + re.escape(local) + r"\s*\(")
    position = 0
    while True:
        match = pattern.search(code, position)
        if match is None:
            return code
        if not _is_code_reference(code, _literal_spans(code), match):
            position = match.end()
            continue
        open_index = match.end() - 1
        close_index = _call_end(code, open_index, module_id=module_id)
        args = code[open_index + 1 : close_index]
        replacement = f"({guard} && {target}({args}))"
        code = code[: match.start()] + replacement + code[close_index + 1 :]
        position = match.start() + len(replacement)


def rewrite_debug_macros(
    code: str,
    *,
    module_id: str,
    debug: bool,
    features: Mapping[str, bool] | None = None,
) -> str:
    """
    Inline environment flags and guard debug calls.

    `import { DEBUG } from "@glimmer/env"` is removed and `DEBUG` becomes a boolean
    literal (`false` in production). Feature flags are importable from the same
    module. `import { assert } from "@glimmer/debug"` is removed and each
    `assert(...)` becomes `(<DEBUG> && console.assert(...))`.
    Strings, template text, comments, member names and object keys are left as
    written; `${...}` substitutions inside template literals are rewritten.
    """

    flags: dict[str, bool] = {**dict(features or {}), DEBUG_FLAG: debug}
    debug_literal = "true" if debug else "false"
    replacements: list[tuple[str, str]] = []
    calls: list[tuple[str, str]] = []

    def handle(match: re.Match[str]) -> str:
        module = match.group("module")
        if module not in (ENV_MODULE, DEBUG_MODULE):
            return match.group(0)
        for imported, local in _parse_import_names(match.group("names"), module_id=module_id):
            if module == ENV_MODULE:
                if imported not in flags:
                    raise ValueError(f"{module_id}: unknown flag {imported!r} imported from {ENV_MODULE}")
                replacements.append((local, "true" if flags[imported] else "false"))
            else:
                if imported not in DEBUG_CALLS:
                    raise ValueError(f"{module_id}: unknown macro {imported!r} imported from {DEBUG_MODULE}")
                calls.append((local, DEBUG_CALLS[imported]))
        return ""

    code = _NAMED_IMPORT_RE.sub(handle, code)
    for local, target in calls:
        code = _rewrite_calls(code, local, target, debug_literal, module_id=module_id)
    for local, literal in replacements:
        code = _replace_identifier(code, local, literal)
    return code

