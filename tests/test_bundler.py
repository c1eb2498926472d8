import json

import pytest

from app_bundler.framework.bundler import DefaultBundler, module_id
from app_bundler.framework.options import normalize_plugin
from treekit.file_tree import FileTree


def _define_order(code: str) -> list[str]:
    order = []
    for line in code.splitlines():
        line = line.strip()
        if line.startswith("__define__("):
            order.append(json.loads(line[len("__define__(") :].split(",", 1)[0]))
    return order


def test_module_id_strips_js_extension():
    assert module_id("src/index.js") == "src/index"
    assert module_id("config/module-map") == "config/module-map"


def test_bundle_orders_dependencies_first_and_requires_entry():
    tree = FileTree(
        {
            "src/index.js": 'import App from "./app";\nimport { helper } from "./utils/helper";\nApp(helper);\n',
            "src/app.js": 'import { helper } from "./utils/helper";\nexport default function App() {}\n',
            "src/utils/helper.js": "export const helper = 1;\n",
            "src/unused.js": "console.log('never bundled');\n",
        }
    )

    code = DefaultBundler().bundle(tree, ["src/index.js"])

    assert _define_order(code) == ["src/utils/helper", "src/app", "src/index"]
    assert "never bundled" not in code
    assert 'var App = __dep1__.default;' in code
    assert "exports.helper = helper;" in code
    assert "exports.default = function App() {}" in code
    assert code.endswith('  __require__("src/index");\n})();\n')


def test_bundle_is_deterministic():
    tree = FileTree({"src/index.js": 'import "./b";\nimport "./a";\n', "src/a.js": "", "src/b.js": ""})

    first = DefaultBundler().bundle(tree, ["src/index.js"])
    second = DefaultBundler().bundle(tree, ["src/index.js"])

    assert first == second
    assert _define_order(first) == ["src/b", "src/a", "src/index"]


def test_directory_imports_resolve_to_index_and_reexports_are_rewritten():
    tree = FileTree(
        {
            "src/index.js": 'export * from "./lib";\nexport { a as b } from "./lib";\n',
            "src/lib/index.js": "export const a = 1;\n",
        }
    )

    code = DefaultBundler().bundle(tree, ["src/index.js"])

    assert _define_order(code) == ["src/lib/index", "src/index"]
    assert "exports.b = __dep2__.a;" in code


def test_bare_imports_stay_external_without_node_modules():
    tree = FileTree({"src/index.js": 'import { x } from "@glimmer/component";\n'})

    code = DefaultBundler().bundle(tree, ["src/index.js"])

    assert '__require__("@glimmer/component")' in code


def test_bare_imports_resolve_through_node_modules_manifest():
    node_modules = FileTree(
        {
            "tiny-lib/package.json": json.dumps({"name": "tiny-lib", "module": "dist/es/index.js"}),
            "tiny-lib/dist/es/index.js": "export default 42;\n",
            "@scope/pkg/index.js": "export const y = 2;\n",
        }
    )
    tree = FileTree({"src/index.js": 'import lib from "tiny-lib";\nimport { y } from "@scope/pkg";\n'})

    code = DefaultBundler(node_modules=node_modules).bundle(tree, ["src/index.js"])

    assert _define_order(code) == [
        "node_modules/tiny-lib/dist/es/index",
        "node_modules/@scope/pkg/index",
        "src/index",
    ]


def test_unresolvable_relative_import_is_an_error():
    tree = FileTree({"src/index.js": 'import "./missing";\n'})

    with pytest.raises(ValueError, match=r"Could not resolve import './missing' from src/index\.js"):
        DefaultBundler().bundle(tree, ["src/index.js"])


def test_missing_entry_is_an_error():
    with pytest.raises(ValueError, match=r"Bundle entry not found: src/index\.js"):
        DefaultBundler().bundle(FileTree(), ["src/index.js"])


def test_rollup_plugins_transform_each_module_with_its_id():
    seen = []

    def banner(code, mid):
        seen.append(mid)
        return f"/* {mid} */\n{code}"

    tree = FileTree({"src/index.js": 'import "./a";\n', "src/a.js": "1;\n"})
    code = DefaultBundler(plugins=[normalize_plugin(banner, path="options.rollup.plugins[0]")]).bundle(
        tree, ["src/index.js"]
    )

    assert seen == ["src/index", "src/a"]
    assert "/* src/a */" in code
