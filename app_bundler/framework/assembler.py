"""Final output assembly.

The app package is `html + js + css + public` merged at the output root; the test
package carries only the test bundle. Any path emitted by two categories aborts
the build before anything is written.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from app_bundler.errors import OutputPathConflictError
from treekit.file_tree import FileTree, PathConflictError, merge_trees

APP_CATEGORIES: tuple[str, ...] = ("html", "js", "css", "public")
TEST_CATEGORIES: tuple[str, ...] = ("js",)
STAGE_NAME = "assemble"

logger = logging.getLogger(__name__)


def assemble_output(trees: Mapping[str, FileTree], *, test_package: bool = False) -> FileTree:
    categories = TEST_CATEGORIES if test_package else APP_CATEGORIES
    parts: list[FileTree] = []
    labels: list[str] = []
    for category in categories:
        tree = trees.get(category)
        if tree is None:
            logger.debug("No %s output to assemble", category)
            continue
        parts.append(tree)
        labels.append(category)

    try:
        output = merge_trees(parts, labels=labels)
    except PathConflictError as exc:
        raise OutputPathConflictError.from_conflict(exc, stage=STAGE_NAME) from exc
    logger.debug("Assembled %d output file(s) from %s", len(output), ", ".join(labels) or "<nothing>")
    return output
