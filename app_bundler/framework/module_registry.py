"""Module registry derivation.

Walks the compiled source tree, classifies each module into a
`(type, collection, name)` triple and produces the string-keyed registry the
runtime resolver uses, e.g.

    src/ui/components/foo-bar/template.js -> template:/my-app/components/foo-bar
    src/ui/components/foo-bar/component.js -> component:/my-app/components/foo-bar
    src/ui/components/foo-bar.js (compiled from .hbs) -> template:/my-app/components/foo-bar

Two modules claiming one identifier abort the build; there is no last-writer-wins.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from app_bundler.errors import AmbiguousModuleError
from treekit.file_tree import FileTree

MODULE_MAP_PATH = "config/module-map.js"
RESOLVER_CONFIGURATION_PATH = "config/resolver-configuration.js"
SOURCE_ROOT = "src"
GROUPS: tuple[str, ...] = ("ui",)
SCRIPT_EXTENSIONS: tuple[str, ...] = (".js",)

# Closed starter set; bump the version whenever types or collections change.
RESOLVER_CONFIGURATION_VERSION = 1
DEFAULT_MODULE_CONFIGURATION: dict[str, Any] = {
    "types": {
        "application": {"definitiveCollection": "main"},
        "component": {"definitiveCollection": "components"},
        "component-test": {"unresolvable": True},
        "component-manager": {"definitiveCollection": "component-managers"},
        "helper": {"definitiveCollection": "components"},
        "helper-test": {"unresolvable": True},
        "renderer": {"definitiveCollection": "main"},
        "template": {"definitiveCollection": "components"},
        "util": {"definitiveCollection": "utils"},
    },
    "collections": {
        "main": {"types": ["application", "renderer"]},
        "components": {
            "group": "ui",
            "types": ["component", "template", "helper"],
            "defaultType": "component",
            "privateCollections": ["utils"],
        },
        "component-managers": {
            "types": ["component-manager"],
            "defaultType": "component-manager",
        },
        "styles": {"group": "ui", "unresolvable": True},
        "utils": {"unresolvable": True},
    },
}

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleEntry:
    identifier: str
    specifier: str
    source: str


@dataclass(frozen=True)
class ResolverConfiguration:
    app_name: str
    root_name: str
    types: Mapping[str, Mapping[str, Any]] = field(
        default_factory=lambda: copy.deepcopy(DEFAULT_MODULE_CONFIGURATION["types"])
    )
    collections: Mapping[str, Mapping[str, Any]] = field(
        default_factory=lambda: copy.deepcopy(DEFAULT_MODULE_CONFIGURATION["collections"])
    )
    version: int = RESOLVER_CONFIGURATION_VERSION

    @classmethod
    def for_app(cls, app_name: str, *, root_name: str | None = None) -> "ResolverConfiguration":
        if not isinstance(app_name, str) or not app_name.strip():
            raise ValueError("ResolverConfiguration app name must be a non-empty string")
        return cls(app_name=app_name.strip(), root_name=(root_name or app_name).strip())

    def to_dict(self) -> dict[str, Any]:
        return {
            "app": {"name": self.app_name, "rootName": self.root_name},
            "types": copy.deepcopy(dict(self.types)),
            "collections": copy.deepcopy(dict(self.collections)),
        }


@dataclass(frozen=True)
class ModuleRegistry:
    entries: tuple[ModuleEntry, ...]
    resolver: ResolverConfiguration

    def identifiers(self) -> tuple[str, ...]:
        return tuple(entry.identifier for entry in self.entries)

    def as_dict(self) -> dict[str, str]:
        return {entry.identifier: entry.specifier for entry in self.entries}

    def render_module_map(self) -> str:
        lines: list[str] = []
        names: dict[str, str] = {}
        used: set[str] = set()
        for entry in self.entries:
            base = "__" + re.sub(r"[^A-Za-z0-9_$]", "_", entry.specifier.lstrip("./")) + "__"
            name = base
            counter = 2
            while name in used:
                name = f"{base}{counter}"
                counter += 1
            used.add(name)
            names[entry.identifier] = name
            lines.append(f"import {name} from {json.dumps(entry.specifier)};")

        body = ",\n".join(
            f"  {json.dumps(entry.identifier)}: {names[entry.identifier]}" for entry in self.entries
        )
        lines.append("export default {" + ("\n" + body + "\n" if body else "") + "};")
        return "\n".join(lines) + "\n"

    def render_resolver_configuration(self) -> str:
        return "export default " + json.dumps(self.resolver.to_dict(), indent=2, sort_keys=True) + ";\n"

    def to_tree(self) -> FileTree:
        return FileTree(
            {
                MODULE_MAP_PATH: self.render_module_map(),
                RESOLVER_CONFIGURATION_PATH: self.render_resolver_configuration(),
            }
        )


class ModuleRegistryBuilder:
    def __init__(self, resolver: ResolverConfiguration):
        self._resolver = resolver
        self._types = resolver.types
        self._collections = resolver.collections

    def build(self, tree: FileTree, *, template_modules: Iterable[str] = ()) -> ModuleRegistry:
        """Classify every module under `src/` in `tree`.

        `template_modules` lists module paths compiled from templates; a flat
        `components/foo-bar.js` produced from `foo-bar.hbs` is a template, not a
        component.
        """

        templates = set(template_modules)
        claimed: dict[str, list[str]] = {}
        specifiers: dict[str, str] = {}
        for path in tree.paths():
            classified = self.classify(path, is_template=path in templates)
            if classified is None:
                continue
            identifier, specifier = classified
            claimed.setdefault(identifier, []).append(path)
            specifiers[identifier] = specifier

        for identifier in sorted(claimed):
            sources = claimed[identifier]
            if len(sources) > 1:
                raise AmbiguousModuleError(identifier, sorted(sources))

        entries = tuple(
            ModuleEntry(identifier=identifier, specifier=specifiers[identifier], source=claimed[identifier][0])
            for identifier in sorted(claimed)
        )
        logger.debug("Module registry: %d entries for %s", len(entries), self._resolver.root_name)
        return ModuleRegistry(entries=entries, resolver=self._resolver)

    def classify(self, path: str, *, is_template: bool = False) -> tuple[str, str] | None:
        """Return `(identifier, specifier)` for a module path, or None if unregistered."""

        if not path.startswith(SOURCE_ROOT + "/"):
            return None
        stem = None
        for ext in SCRIPT_EXTENSIONS:
            if path.endswith(ext):
                stem = path[: -len(ext)]
                break
        if stem is None:
            return None

        segments = stem.split("/")[1:]
        group: str | None = None
        if segments and segments[0] in GROUPS:
            group = segments.pop(0)
        if len(segments) < 2:
            return None

        collection_name = segments[0]
        collection = self._collections.get(collection_name)
        if collection is None or collection.get("unresolvable"):
            return None
        if collection.get("group") != group:
            logger.debug("Skipping %s: collection %s is not in group %s", path, collection_name, group)
            return None

        rest = segments[1:]
        if any(seg.startswith("-") for seg in rest):
            logger.debug("Skipping %s: private collection modules are not registered", path)
            return None

        last = rest[-1]
        if last in self._types:
            module_type = last
            name_segments = rest[:-1]
        elif last.endswith("-test"):
            return None
        else:
            module_type = "template" if is_template else collection.get("defaultType")
            name_segments = rest

        if not module_type or not name_segments:
            return None
        if self._types.get(module_type, {}).get("unresolvable"):
            return None
        if module_type not in collection.get("types", ()):
            logger.debug("Skipping %s: type %s not allowed in collection %s", path, module_type, collection_name)
            return None

        identifier = f"{module_type}:/{self._resolver.root_name}/{collection_name}/{'/'.join(name_segments)}"
        return identifier, f"../{stem}"
