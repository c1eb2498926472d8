from __future__ import annotations

from app_bundler.errors import OutputPathConflictError
from treekit.file_tree import FileTree, PathConflictError, merge_trees

# Trees seeded by the builder before the first stage runs.
SRC = "src"
STYLES_SOURCE = "styles-source"
PUBLIC_SOURCE = "public-source"

# Trees published by stages.
TEMPLATES = "templates"
SCRIPTS = "scripts"
MODULES = "modules"
JS = "js"
CSS = "css"
HTML = "html"
PUBLIC = "public"

APP_ENTRY = "src/index.js"
TEST_HELPER_GLOB = "src/utils/test-helpers/test-helper.*"
TEST_HELPER_MODULE = "src/utils/test-helpers/test-helper.js"
TESTS_INDEX = "tests/index.js"
TEST_MODULE_GLOBS: tuple[str, ...] = ("src/**/*-test.js", "src/**/*-test.ts")
LINT_TEST_GLOB = "**/*.lint-test.js"


def merge_or_fail(trees: list[FileTree], labels: list[str], *, stage: str) -> FileTree:
    try:
        return merge_trees(trees, labels=labels)
    except PathConflictError as exc:
        raise OutputPathConflictError.from_conflict(exc, stage=stage) from exc
