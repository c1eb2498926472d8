from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Sequence
from datetime import datetime, timezone

from app_bundler.errors import BuildError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="app_bundler", add_help=True)
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="Build the application package")
    build.add_argument("--project", default=None, help="Project root (default: search upward from cwd)")
    build.add_argument("--output", default="dist", help="Output directory (default: dist)")
    build.add_argument("--environment", default=None, help="development, test or production")
    build.add_argument("--options", default=None, help="YAML/JSON file with build options")
    build.add_argument(
        "--lint",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Run addon lint hooks (default: only in the test environment)",
    )
    build.add_argument("--log-dir", default=None, help="Also write a DEBUG log file here")

    sub.add_parser("list-stages", help="List pipeline stages in evaluation order")

    module_map = sub.add_parser("module-map", help="Print the derived module registry as JSON")
    module_map.add_argument("--project", default=None, help="Project root (default: search upward from cwd)")
    module_map.add_argument("--environment", default=None, help="development, test or production")

    return parser


def _load_builder(args: argparse.Namespace, *, log=None):
    from app_bundler.app.build import AppBuilder
    from app_bundler.foundation.config_io import find_project_root, load_options_file
    from app_bundler.framework.environment import resolve_environment
    from app_bundler.framework.project import Project

    root = args.project or find_project_root()
    project = Project.load(root)

    raw_options: dict = {}
    options_path = getattr(args, "options", None)
    if options_path:
        raw_options = load_options_file(options_path)
    if args.environment is not None:
        raw_options["environment"] = args.environment

    # Lint defaults to on only for test builds.
    lint = getattr(args, "lint", None)
    if lint is None and "lint" not in raw_options:
        env = resolve_environment(raw_options.get("environment"), os.environ)
        lint = env == "test"
    if lint is not None:
        raw_options["lint"] = lint

    return AppBuilder(project, raw_options, environ=os.environ, log=log)


def _build(args: argparse.Namespace) -> int:
    from app_bundler.foundation.logging_utils import setup_build_logger

    build_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    logger, _ = setup_build_logger(build_id, args.log_dir)
    builder = _load_builder(args, log=logger)
    written = builder.build(args.output)
    print(f"Built {builder.project.name} ({builder.env}) into {written}")
    return 0


def _list_stages() -> int:
    from app_bundler.stages.registry import get_stage_registry

    for row in get_stage_registry().describe():
        flags = []
        if row["optional"]:
            flags.append("optional")
        if row["before"]:
            flags.append(f"before={row['before']}")
        if row["after"]:
            flags.append(f"after={row['after']}")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        print(f"{row['order']:>2}. {row['stage']} -> {row['provides']}{suffix}")
        if row["doc"]:
            print(f"    {row['doc']}")
    return 0


def _module_map(args: argparse.Namespace) -> int:
    registry = _load_builder(args).module_registry()
    print(
        json.dumps(
            {"modules": registry.as_dict(), "resolver": registry.resolver.to_dict()},
            indent=2,
            sort_keys=True,
        )
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    try:
        if args.command == "build":
            return _build(args)
        if args.command == "list-stages":
            return _list_stages()
        if args.command == "module-map":
            return _module_map(args)
    except Exception as exc:
        if not isinstance(exc, (BuildError, FileNotFoundError)) and not hasattr(exc, "pipeline_stage"):
            raise
        stage = getattr(exc, "pipeline_stage", None)
        prefix = f"[{stage}] " if stage else ""
        print(f"error: {prefix}{exc}", file=sys.stderr)
        return 1

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
