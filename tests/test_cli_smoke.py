import json
from pathlib import Path

from app_bundler import cli


def _project(root: Path, *, index_html: str = "<html></html>") -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "package.json").write_text(json.dumps({"name": "glimmer-app-test"}), encoding="utf-8")
    ui = root / "src" / "ui"
    ui.mkdir(parents=True)
    (ui / "index.html").write_text(index_html, encoding="utf-8")
    return root


def test_cli_list_stages_smoke(capsys):
    rc = cli.main(["list-stages"])
    assert rc == 0

    out = capsys.readouterr().out
    lines = [line for line in out.splitlines() if not line.startswith("    ")]
    assert [line.split(". ", 1)[1].split(" ->")[0] for line in lines] == [
        "template-compile",
        "script-compile",
        "module-registry",
        "bundle",
        "style",
        "html",
        "public",
    ]
    assert "style -> css [optional, before=css, after=css]" in out


def test_cli_build_writes_output(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("APP_BUNDLER_ENV", raising=False)
    project = _project(tmp_path / "app")
    (project / "config").mkdir()
    (project / "config" / "environment.yaml").write_text("rootURL: /foo/\n", encoding="utf-8")
    (project / "src" / "ui" / "index.html").write_text('<base href="{{rootURL}}">', encoding="utf-8")
    output = tmp_path / "dist"

    rc = cli.main(["build", "--project", str(project), "--output", str(output)])

    assert rc == 0
    assert sorted(p.name for p in output.iterdir()) == ["index.html"]
    assert (output / "index.html").read_text(encoding="utf-8") == '<base href="/foo/">'
    assert "Built glimmer-app-test (development)" in capsys.readouterr().out


def test_cli_build_reads_options_file(tmp_path, monkeypatch):
    monkeypatch.delenv("APP_BUNDLER_ENV", raising=False)
    project = _project(tmp_path / "app")
    options_path = tmp_path / "options.yaml"
    options_path.write_text("outputPaths:\n  app:\n    html: foo.html\n", encoding="utf-8")
    output = tmp_path / "dist"

    rc = cli.main(
        ["build", "--project", str(project), "--output", str(output), "--options", str(options_path)]
    )

    assert rc == 0
    assert sorted(p.name for p in output.iterdir()) == ["foo.html"]


def test_cli_module_map_prints_registry(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("APP_BUNDLER_ENV", raising=False)
    project = _project(tmp_path / "app")
    component = project / "src" / "ui" / "components" / "foo-bar"
    component.mkdir(parents=True)
    (component / "template.hbs").write_text("<p>Hello!</p>", encoding="utf-8")

    rc = cli.main(["module-map", "--project", str(project)])

    assert rc == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["modules"] == {
        "template:/glimmer-app-test/components/foo-bar": "../src/ui/components/foo-bar/template"
    }
    assert payload["resolver"]["app"] == {"name": "glimmer-app-test", "rootName": "glimmer-app-test"}


def test_cli_reports_configuration_errors(tmp_path, capsys):
    (tmp_path / "package.json").write_text("{}", encoding="utf-8")

    rc = cli.main(["build", "--project", str(tmp_path), "--output", str(tmp_path / "dist")])

    assert rc == 1
    assert "error: Could not find a src/ directory" in capsys.readouterr().err
    assert not (tmp_path / "dist").exists()


def test_cli_refuses_to_build_over_the_project(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("APP_BUNDLER_ENV", raising=False)
    project = _project(tmp_path / "app")

    rc = cli.main(["build", "--project", str(project), "--output", str(project)])

    assert rc == 1
    assert "error: Refusing to write build output" in capsys.readouterr().err
    assert (project / "src" / "ui" / "index.html").is_file()


def test_cli_reports_failing_stage(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("APP_BUNDLER_ENV", raising=False)
    project = _project(tmp_path / "app")
    broken = project / "src" / "ui" / "components" / "broken"
    broken.mkdir(parents=True)
    (broken / "template.hbs").write_text("{{name", encoding="utf-8")

    rc = cli.main(["build", "--project", str(project), "--output", str(tmp_path / "dist")])

    assert rc == 1
    assert "error: [template-compile] Template compile error" in capsys.readouterr().err
