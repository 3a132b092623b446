"""Tests for the annotate-and-filter pipeline."""

import asyncio

import pytest

from drivetreelib.aio.core import (
    AccessControlEntry,
    AnnotateFilterPipeline,
    PathedNode,
    ShareCollector,
    is_shared_with,
    is_shared_with_anyone,
    iter_nodes,
)
from drivetreelib.aio.core.node import FOLDER_MIME_TYPE, RemoteItem
from drivetreelib.testing import make_item


def pnode(name, children=None, shared=False, folder=None, permissions=None):
    """Build a PathedNode; nodes with children are folders."""
    is_folder = bool(children) if folder is None else folder
    mime = FOLDER_MIME_TYPE if is_folder else "text/plain"
    return PathedNode(
        item=make_item(name, name, mime, shared, permissions),
        children=children or [],
    )


@pytest.fixture
def scenario_tree():
    """
    Structure:
        R
        ├── A  (folder, shared with anyone)
        │   └── C  (file)
        └── B  (file)
    """
    c = pnode("C")
    a = pnode("A", [c], shared=True)
    b = pnode("B")
    return pnode("R", [a, b])


def ancestor_names(root, target):
    """Names of target's ancestors found by searching from root."""
    stack = [(root, [])]
    while stack:
        node, names = stack.pop()
        if node is target:
            return names
        for child in node.children:
            stack.append((child, names + [node.name]))
    raise AssertionError("target not in tree")


class TestPredicate:
    """Access-control filter semantics."""

    def test_anyone_entry_matches(self):
        assert is_shared_with_anyone(pnode("x", shared=True))

    def test_other_principals_do_not_match(self):
        node = pnode("x", permissions=[
            AccessControlEntry(type="user", role="owner"),
            AccessControlEntry(type="domain", role="reader", domain="example.com"),
        ])
        assert not is_shared_with_anyone(node)

    def test_missing_acl_does_not_match(self):
        node = PathedNode(item=RemoteItem(id="x", name="x", mime_type="text/plain"))
        assert node.item.permissions is None
        assert not is_shared_with_anyone(node)

    def test_empty_acl_does_not_match(self):
        assert not is_shared_with_anyone(pnode("x", permissions=[]))

    def test_entry_without_type_does_not_match(self):
        assert not is_shared_with_anyone(pnode("x", permissions=[AccessControlEntry(type=None)]))

    def test_custom_principal_type(self):
        node = pnode("x", permissions=[AccessControlEntry(type="domain", role="reader")])
        assert is_shared_with("domain")(node)
        assert not is_shared_with("group")(node)


class TestScenario:
    """The R/A/B/C example end to end."""

    @pytest.mark.asyncio
    async def test_scenario(self, scenario_tree):
        lines = []
        pipeline = AnnotateFilterPipeline(sink=ShareCollector(emit=lines.append), max_concurrent=4)
        report = await pipeline.run(scenario_tree)

        assert lines == ["R/A"]
        assert [n.name for n in report.folders] == ["A"]
        assert report.folders[0].path == ["R"]
        assert report.folder_count == 1
        assert report.file_count == 0
        assert report.visited_folders == 1
        assert report.visited_files == 2
        assert report.discarded == 2

    @pytest.mark.asyncio
    async def test_root_is_walked_not_evaluated(self, scenario_tree):
        scenario_tree.item = make_item("R", "R", FOLDER_MIME_TYPE, shared=True)
        lines = []
        report = await AnnotateFilterPipeline(sink=ShareCollector(emit=lines.append)).run(scenario_tree)

        assert "R" not in lines
        assert report.folder_count == 1

    @pytest.mark.asyncio
    async def test_include_root(self, scenario_tree):
        scenario_tree.item = make_item("R", "R", FOLDER_MIME_TYPE, shared=True)
        lines = []
        pipeline = AnnotateFilterPipeline(sink=ShareCollector(emit=lines.append), include_root=True)
        report = await pipeline.run(scenario_tree)

        assert sorted(lines) == ["R", "R/A"]
        assert report.visited_folders == 2


class TestPaths:
    """Path annotation."""

    @pytest.mark.asyncio
    async def test_paths_match_ancestors(self):
        tree = pnode("root", [
            pnode("a", [pnode("a1"), pnode("a2", [pnode("deep")])]),
            pnode("b", [pnode("b1")]),
            pnode("empty", folder=True),
        ])
        await AnnotateFilterPipeline(sink=ShareCollector(emit=lambda line: None)).run(tree)

        assert tree.path == []
        for node in iter_nodes(tree):
            assert node.path == ancestor_names(tree, node)

    @pytest.mark.asyncio
    async def test_deep_tree(self):
        """The walk uses a queue, so depth is not limited by recursion."""
        bottom = pnode("bottom", shared=True)
        node = bottom
        for level in reversed(range(2000)):
            node = pnode(f"d{level}", [node])
        report = await AnnotateFilterPipeline(max_concurrent=8).run(node)

        assert report.file_count == 1
        assert bottom.path == [f"d{level}" for level in range(2000)]

    @pytest.mark.asyncio
    async def test_custom_separator(self, scenario_tree):
        lines = []
        sink = ShareCollector(emit=lines.append, separator=" > ")
        await AnnotateFilterPipeline(sink=sink).run(scenario_tree)
        assert lines == ["R > A"]


class TestPipelineStages:
    """Evaluation stage behavior."""

    @pytest.mark.asyncio
    async def test_async_predicate(self, scenario_tree):
        async def predicate(node):
            await asyncio.sleep(0)
            return not node.is_folder

        report = await AnnotateFilterPipeline(predicate=predicate).run(scenario_tree)
        assert sorted(n.name for n in report.files) == ["B", "C"]
        assert report.folder_count == 0

    @pytest.mark.asyncio
    async def test_evaluation_concurrency_bounded(self):
        tree = pnode("root", [pnode(f"f{i}") for i in range(50)])
        active = 0
        peak = 0

        async def predicate(node):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.001)
            active -= 1
            return True

        report = await AnnotateFilterPipeline(predicate=predicate, max_concurrent=5).run(tree)
        assert report.file_count == 50
        assert peak <= 5

    @pytest.mark.asyncio
    async def test_predicate_error_propagates(self, scenario_tree):
        def predicate(node):
            if node.name == "C":
                raise KeyError("boom")
            return False

        with pytest.raises(KeyError):
            await AnnotateFilterPipeline(predicate=predicate).run(scenario_tree)

    @pytest.mark.asyncio
    async def test_cancelled_run_leaves_no_tasks(self, scenario_tree):
        gate = asyncio.Event()

        class BlockingCollector(ShareCollector):
            async def collect(self, node):
                await gate.wait()

        async def predicate(node):
            if node.name == "A":
                return True
            await gate.wait()
            return False

        pipeline = AnnotateFilterPipeline(predicate=predicate, sink=BlockingCollector(emit=lambda line: None))
        run = asyncio.ensure_future(pipeline.run(scenario_tree))
        await asyncio.sleep(0.05)
        run.cancel()
        with pytest.raises(asyncio.CancelledError):
            await run

        assert asyncio.all_tasks() == {asyncio.current_task()}

    @pytest.mark.asyncio
    async def test_every_match_reaches_sink(self):
        tree = pnode("root", [
            pnode(f"dir{i}", [pnode(f"file{i}-{j}", shared=j % 2 == 0) for j in range(4)], shared=i % 3 == 0)
            for i in range(12)
        ])
        lines = []
        report = await AnnotateFilterPipeline(
            sink=ShareCollector(emit=lines.append), max_concurrent=3
        ).run(tree)

        assert sorted(lines) == sorted(f"root/dir{i}" for i in range(12) if i % 3 == 0)
        assert report.file_count == 24
        assert report.discarded == (12 + 48) - report.matched

    @pytest.mark.asyncio
    async def test_pipeline_rerun_resets_sink(self, scenario_tree):
        pipeline = AnnotateFilterPipeline(sink=ShareCollector(emit=lambda line: None))
        await pipeline.run(scenario_tree)
        report = await pipeline.run(scenario_tree)
        assert report.folder_count == 1

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            AnnotateFilterPipeline(max_concurrent=0)
