import pytest

from app_bundler.errors import AmbiguousModuleError, CompositionError
from app_bundler.framework.module_registry import (
    DEFAULT_MODULE_CONFIGURATION,
    MODULE_MAP_PATH,
    RESOLVER_CONFIGURATION_PATH,
    ModuleRegistryBuilder,
    ResolverConfiguration,
)
from treekit.file_tree import FileTree


def _builder(name: str = "my-app") -> ModuleRegistryBuilder:
    return ModuleRegistryBuilder(ResolverConfiguration.for_app(name))


def test_classifies_components_templates_and_helpers():
    tree = FileTree(
        {
            "src/index.js": "",
            "src/main.js": "",
            "src/ui/components/foo-bar/component.js": "",
            "src/ui/components/foo-bar/template.js": "",
            "src/ui/components/user-list.js": "",
            "src/ui/components/x-flat.js": "",
            "src/ui/components/format-date/helper.js": "",
            "src/ui/components/foo-bar/component-test.js": "",
            "src/utils/test-helpers/test-helper.js": "",
            "src/ui/styles/app.css": "",
        }
    )

    registry = _builder().build(tree, template_modules=["src/ui/components/x-flat.js"])

    assert registry.as_dict() == {
        "component:/my-app/components/foo-bar": "../src/ui/components/foo-bar/component",
        "component:/my-app/components/user-list": "../src/ui/components/user-list",
        "helper:/my-app/components/format-date": "../src/ui/components/format-date/helper",
        "template:/my-app/components/foo-bar": "../src/ui/components/foo-bar/template",
        "template:/my-app/components/x-flat": "../src/ui/components/x-flat",
    }
    sources = {entry.identifier: entry.source for entry in registry.entries}
    assert sources["template:/my-app/components/x-flat"] == "src/ui/components/x-flat.js"


def test_component_manager_collection_is_outside_the_ui_group():
    tree = FileTree(
        {
            "src/component-managers/main.js": "",
            "src/ui/component-managers/wrong.js": "",
        }
    )

    assert _builder().build(tree).identifiers() == ("component-manager:/my-app/component-managers/main",)


def test_private_collections_and_unknown_types_are_not_registered():
    tree = FileTree(
        {
            "src/ui/components/foo-bar/-utils/format.js": "",
            "src/ui/components/foo-bar/renderer.js": "",
            "src/ui/styles/theme.js": "",
        }
    )

    assert _builder().build(tree).identifiers() == ()


def test_two_sources_for_one_identifier_is_a_composition_error():
    tree = FileTree(
        {
            "src/ui/components/foo-bar/template.js": "",
            "src/ui/components/foo-bar.js": "",
        }
    )
    with pytest.raises(AmbiguousModuleError, match=r"ambiguous registration for template:/my-app/components/foo-bar") as excinfo:
        _builder().build(tree, template_modules=["src/ui/components/foo-bar.js"])

    assert isinstance(excinfo.value, CompositionError)
    assert excinfo.value.sources == (
        "src/ui/components/foo-bar.js",
        "src/ui/components/foo-bar/template.js",
    )


def test_registry_tree_contains_module_map_and_resolver_configuration():
    tree = FileTree({"src/ui/components/foo-bar/component.js": ""})
    registry = _builder("glimmer-app-test").build(tree)

    out = registry.to_tree()

    assert out.paths() == (MODULE_MAP_PATH, RESOLVER_CONFIGURATION_PATH)
    module_map = out[MODULE_MAP_PATH]
    assert 'import __src_ui_components_foo_bar_component__ from "../src/ui/components/foo-bar/component";' in module_map
    assert '"component:/glimmer-app-test/components/foo-bar": __src_ui_components_foo_bar_component__' in module_map

    resolver = out[RESOLVER_CONFIGURATION_PATH]
    assert '"name": "glimmer-app-test"' in resolver
    assert '"definitiveCollection": "component-managers"' in resolver


def test_resolver_configuration_is_a_closed_copy_per_build():
    first = ResolverConfiguration.for_app("a")
    first.to_dict()["types"]["custom"] = {}

    second = ResolverConfiguration.for_app("a")
    assert "custom" not in second.to_dict()["types"]
    assert set(second.to_dict()["types"]) == set(DEFAULT_MODULE_CONFIGURATION["types"])


def test_empty_tree_renders_empty_module_map():
    registry = _builder().build(FileTree())

    assert registry.render_module_map() == "export default {};\n"
