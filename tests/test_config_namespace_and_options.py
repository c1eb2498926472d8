import pytest

from app_bundler.errors import ConfigurationError
from app_bundler.framework.options import BuildOptions, OutputPaths, normalize_plugin
from treekit.config_namespace import ConfigNamespace
from treekit.file_tree import FileTree


def test_config_namespace_optional_bool_is_strict():
    ns = ConfigNamespace({"lint": "false", "minify": None}, path="options")
    with pytest.raises(TypeError, match=r"options\.lint must be a boolean or null"):
        ns.get_optional_bool("lint")
    assert ns.get_optional_bool("minify") is None
    assert ns.get_optional_bool("sourcemaps", default=True) is True


def test_config_namespace_rejects_unknown_nested_keys():
    ns = ConfigNamespace({"outputPaths": {"app": {"html": "a.html", "htm": "typo"}}}, path="options")
    app = ns.namespace("outputPaths").namespace("app")
    app.get_str("html")

    with pytest.raises(ValueError, match=r"Unknown config keys under options\.outputPaths\.app: htm"):
        ns.assert_consumed()


def test_config_namespace_choices_are_case_insensitive_and_missing_keys_required():
    ns = ConfigNamespace({"environment": " Test "}, path="options")

    assert ns.get_str("environment", choices=("development", "test")) == "test"
    with pytest.raises(ValueError, match=r"Missing required option: options\.name"):
        ns.get_str("name")
    assert ns.unread_keys() == ()


def test_build_options_defaults():
    options = BuildOptions.from_dict({})

    assert options.environment is None
    assert options.lint is None
    assert options.output_paths == OutputPaths()
    assert options.output_paths.js == "app.js"
    assert options.output_paths.tests_js == "index.js"
    assert options.babel_plugins == ()


def test_build_options_parses_output_paths_independently():
    options = BuildOptions.from_dict({"outputPaths": {"app": {"css": "foo-bar.css"}}})

    assert options.output_paths.css == "foo-bar.css"
    assert options.output_paths.html == "index.html"
    assert options.output_paths.js == "app.js"


def test_build_options_accepts_tree_overrides_as_paths_or_trees():
    tree = FileTree({"ui/index.html": "derp"})
    options = BuildOptions.from_dict({"trees": {"src": tree, "styles": " derp/ui/styles ", "nodeModules": "nm"}})

    assert options.trees.src is tree
    assert options.trees.styles == "derp/ui/styles"
    assert options.trees.node_modules == "nm"
    assert options.trees.public is None


def test_build_options_unknown_key_is_configuration_error():
    with pytest.raises(ConfigurationError, match=r"Unknown config keys under options: minify"):
        BuildOptions.from_dict({"minify": True})


def test_build_options_bad_environment_is_configuration_error():
    with pytest.raises(ConfigurationError, match=r"options\.environment must be one of"):
        BuildOptions.from_dict({"environment": "staging"})


def test_build_options_bad_tree_type_is_configuration_error():
    with pytest.raises(ConfigurationError, match=r"options\.trees\.src must be a directory path or FileTree"):
        BuildOptions.from_dict({"trees": {"src": 42}})


def test_build_options_rejects_non_mapping():
    with pytest.raises(ConfigurationError, match=r"must be a mapping"):
        BuildOptions.from_dict(["src"])


def test_plugins_accept_callable_pair_and_transform_object():
    def reverse_strings(code, module_id):
        return code[::-1]

    def tagged(code, module_id, options):
        return f"{options['tag']}{code}"

    class Banner:
        name = "banner"

        def transform(self, code, module_id):
            return {"code": f"/* {module_id} */\n{code}"}

    options = BuildOptions.from_dict(
        {
            "babel": {"plugins": [[reverse_strings], [tagged, {"tag": "// "}]]},
            "rollup": {"plugins": [Banner()]},
        }
    )

    assert [p.name for p in options.babel_plugins] == ["reverse_strings", "tagged"]
    assert options.babel_plugins[1].apply("x", "src/index") == "// x"
    assert options.rollup_plugins[0].apply("x", "src/index") == "/* src/index */\nx"


def test_plugin_returning_none_leaves_code_unchanged():
    plugin = normalize_plugin(lambda code, module_id: None, path="options.babel.plugins[0]")
    assert plugin.apply("keep", "src/index") == "keep"


def test_plugin_bad_shape_is_configuration_error():
    with pytest.raises(ConfigurationError, match=r"options\.babel\.plugins\[0\]"):
        BuildOptions.from_dict({"babel": {"plugins": [42]}})
