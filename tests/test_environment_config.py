import json

import pytest

from app_bundler.errors import ConfigurationError
from app_bundler.foundation.config_io import find_project_root, load_environment_config
from app_bundler.framework.environment import AppEnvironment, resolve_environment
from app_bundler.framework.project import Project


def test_resolve_environment_precedence():
    environ = {"APP_BUNDLER_ENV": "production"}

    assert resolve_environment("test", environ) == "test"
    assert resolve_environment(None, environ) == "production"
    assert resolve_environment(None, {}) == "development"
    assert resolve_environment(None, None) == "development"
    assert resolve_environment(None, {"APP_BUNDLER_ENV": "  "}) == "development"


def test_resolve_environment_rejects_unknown_names_with_source():
    with pytest.raises(ConfigurationError, match=r"Unknown environment 'qa' from APP_BUNDLER_ENV"):
        resolve_environment(None, {"APP_BUNDLER_ENV": "qa"})


def test_environment_yaml_overlay_is_deep_merged(tmp_path):
    (tmp_path / "environment.yaml").write_text(
        "\n".join(
            [
                "rootURL: /",
                "runtime:",
                "  FEATURES:",
                "    NEW_RENDERER: false",
                "environments:",
                "  production:",
                "    rootURL: /app/",
                "    runtime:",
                "      FEATURES:",
                "        NEW_RENDERER: true",
                "",
            ]
        ),
        encoding="utf-8",
    )

    dev, dev_meta = load_environment_config(tmp_path, "development")
    prod, prod_meta = load_environment_config(tmp_path, "production")

    assert dev["rootURL"] == "/"
    assert dev_meta["mode"] == "base"
    assert prod["rootURL"] == "/app/"
    assert prod["runtime"]["FEATURES"] == {"NEW_RENDERER": True}
    assert prod_meta["mode"] == "base+production"
    assert "environments" not in prod


def test_missing_environment_config_is_empty(tmp_path):
    cfg, meta = load_environment_config(tmp_path / "config", "test")

    assert cfg == {}
    assert meta["mode"] == "missing"


def test_app_environment_defaults_and_flags():
    env = AppEnvironment(name="production", config={"EmberENV": {"FEATURES": {"FAST": True}}})

    assert env.root_url == "/"
    assert env.is_production
    assert env.debug is False
    assert env.features() == {"FAST": True}


def test_app_environment_validates_root_url_and_features():
    with pytest.raises(ConfigurationError, match=r"rootURL must be a string"):
        AppEnvironment(name="development", config={"rootURL": 7})
    with pytest.raises(ConfigurationError, match=r"FEATURES entries must map identifiers to booleans"):
        AppEnvironment(name="development", config={"runtime": {"FEATURES": {"FAST": "yes"}}})


def test_project_load_reads_package_name(tmp_path):
    (tmp_path / "package.json").write_text(json.dumps({"name": "glimmer-app-test"}), encoding="utf-8")

    project = Project.load(tmp_path)

    assert project.name == "glimmer-app-test"
    assert project.config_dir == tmp_path.resolve() / "config"


def test_project_load_falls_back_to_directory_name(tmp_path):
    root = tmp_path / "my-app"
    root.mkdir()

    assert Project.load(root).name == "my-app"


def test_project_load_invalid_package_json_is_configuration_error(tmp_path):
    (tmp_path / "package.json").write_text("{nope", encoding="utf-8")

    with pytest.raises(ConfigurationError, match=r"Invalid JSON"):
        Project.load(tmp_path)


def test_find_project_root_walks_up_to_package_json(tmp_path):
    (tmp_path / "package.json").write_text("{}", encoding="utf-8")
    nested = tmp_path / "src" / "ui"
    nested.mkdir(parents=True)

    assert find_project_root(nested) == str(tmp_path.resolve())
