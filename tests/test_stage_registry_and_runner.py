import logging

import pytest

from treekit.engine.pipeline import NullStageRecorder, StageRunner
from treekit.file_tree import FileTree
from treekit.stage_registry import StageRegistry
from treekit.stage_types import HookPoints, Stage


class _Ctx:
    def __init__(self, hooks=None):
        self.logger = logging.getLogger("test.stage_runner")
        self.hooks = hooks
        self.stage_records: list[dict] = []


class _RecordingHooks:
    def __init__(self):
        self.calls: list[tuple[str, str, str]] = []

    def preprocess(self, tree_type, tree, *, stage):
        self.calls.append(("pre", tree_type, stage))
        return tree.replace({"pre.txt": tree_type})

    def postprocess(self, tree_type, tree, *, stage):
        self.calls.append(("post", tree_type, stage))
        return tree


def _stage(name, *, provides=None, requires=(), gather=None, transform=None, **kwargs):
    return Stage(
        name=name,
        gather=gather or (lambda ctx, trees: trees["in"]),
        transform=transform or (lambda ctx, tree: tree),
        provides=provides,
        requires=requires,
        **kwargs,
    )


def test_registry_rejects_duplicate_names_and_outputs():
    with pytest.raises(ValueError, match=r"Duplicate stage name: a"):
        StageRegistry.from_stages([_stage("a"), _stage("a", provides="other")])
    with pytest.raises(ValueError, match=r"Duplicate stage output: out"):
        StageRegistry.from_stages([_stage("a", provides="out"), _stage("b", provides="out")])


def test_registry_resolve_and_suggest():
    registry = StageRegistry.from_stages(
        [_stage("template-compile"), _stage("script-compile"), _stage("bundle")]
    )

    assert registry.names() == ("template-compile", "script-compile", "bundle")
    assert registry.resolve("template").name == "template-compile"
    with pytest.raises(ValueError, match=r"Unknown stage: nope"):
        registry.resolve("nope")
    assert "bundle" in registry.suggest("bundel")
    with pytest.raises(ValueError, match=r"did you mean: bundle"):
        registry.resolve("bundel")
    assert registry.describe()[0]["order"] == 1


def test_stage_validates_callables():
    with pytest.raises(TypeError, match=r"transform must be callable"):
        Stage(name="x", gather=lambda ctx, trees: None, transform="nope")


def test_runner_threads_named_trees_and_applies_hooks_in_order():
    hooks = _RecordingHooks()
    ctx = _Ctx(hooks)
    first = _stage(
        "first",
        provides="mid",
        requires=("in",),
        transform=lambda ctx, tree: tree.replace({"first.txt": "1"}),
        hooks=HookPoints(before="js", after="js"),
    )
    second = _stage(
        "second",
        provides="out",
        requires=("mid",),
        gather=lambda ctx, trees: trees["mid"],
    )

    bag = StageRunner(recorder=NullStageRecorder()).run(
        ctx, [first, second], {"in": FileTree({"a.js": "a"})}
    )

    assert bag["out"].paths() == ("a.js", "first.txt", "pre.txt")
    assert hooks.calls == [("pre", "js", "first"), ("post", "js", "first")]


def test_runner_skips_optional_stage_without_input():
    ctx = _Ctx()
    optional = _stage("maybe", provides="maybe", gather=lambda ctx, trees: None, optional=True)

    bag = StageRunner().run(ctx, [optional], {"in": FileTree()})

    assert "maybe" not in bag
    assert ctx.stage_records[0]["skipped"] is True


def test_runner_requires_missing_input_tree():
    ctx = _Ctx()
    needy = _stage("needy", requires=("scripts",))

    with pytest.raises(ValueError, match=r"requires tree\(s\) no earlier stage provided: scripts"):
        StageRunner(recorder=NullStageRecorder()).run(ctx, [needy], {"in": FileTree()})


def test_runner_reraises_transform_errors_unmodified_with_stage_attached():
    ctx = _Ctx()

    def boom(ctx, tree):
        raise KeyError("compiler exploded")

    with pytest.raises(KeyError, match=r"compiler exploded") as excinfo:
        StageRunner(name="app", recorder=NullStageRecorder()).run(
            ctx, [_stage("explode", transform=boom)], {"in": FileTree()}
        )

    assert excinfo.value.pipeline_stage == "explode"
    assert excinfo.value.pipeline_path == "app/explode"


def test_runner_records_stage_digest(caplog):
    ctx = _Ctx()
    caplog.set_level(logging.INFO, logger="test.stage_runner")

    StageRunner().run(ctx, [_stage("copy", provides="out")], {"in": FileTree({"a": "a"})})

    record = ctx.stage_records[0]
    assert record["stage"] == "copy"
    assert record["output_files"] == 1
    assert record["digest"] == FileTree({"a": "a"}).digest()
    assert "Completed stage copy" in caplog.text
