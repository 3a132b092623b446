"""End-to-end tests: crawl, persist, reload, analyze."""

import pytest

from drivetreelib.aio import CrawlAbortedError, analyze_file, analyze_tree, crawl_to_file, crawl_tree
from drivetreelib.aio.core import ExpansionState, iter_nodes
from drivetreelib.testing import InMemoryListingClient, folder, leaf


@pytest.fixture
def scenario_client():
    """
    Structure:
        R
        ├── A  (folder, shared with anyone)
        │   └── C  (file)
        └── B  (file)
    """
    tree = folder("r", [folder("a", [leaf("c", name="C")], name="A", shared=True), leaf("b", name="B")], name="R")
    return InMemoryListingClient(tree, page_size=1)


class TestScenario:

    @pytest.mark.asyncio
    async def test_crawl_output(self, scenario_client):
        root = await crawl_tree(scenario_client, "r", max_concurrent=2)

        assert [c.name for c in root.children] == ["A", "B"]
        assert [c.name for c in root.children[0].children] == ["C"]
        assert root.children[1].children == []
        assert all(
            n.state is ExpansionState.DISPATCHED for n in iter_nodes(root) if n.is_folder
        )

    @pytest.mark.asyncio
    async def test_crawl_persist_analyze(self, scenario_client, tmp_path):
        output = tmp_path / "output.json"
        await crawl_to_file(scenario_client, "r", output, max_concurrent=2)
        assert output.exists()

        lines = []
        report = await analyze_file(output, emit=lines.append, max_concurrent=4)

        assert lines == ["R/A"]
        assert report.folders[0].path == ["R"]
        assert report.folder_count == 1
        assert report.file_count == 0
        assert report.visited_files == 2

    @pytest.mark.asyncio
    async def test_analyze_crawled_tree_in_memory(self, scenario_client):
        root = await crawl_tree(scenario_client, "r")
        lines = []
        report = await analyze_tree(root, emit=lines.append)

        assert lines == ["R/A"]
        assert report.visited_folders == 1


@pytest.mark.asyncio
async def test_large_tree_round_trip(tmp_path):
    """A few thousand nodes through both passes."""
    tree = folder("root", [
        folder(f"d{i}", [
            folder(f"d{i}-{j}", [leaf(f"f{i}-{j}-{k}", shared=k == 0) for k in range(5)], shared=j == 0)
            for j in range(10)
        ])
        for i in range(40)
    ])
    client = InMemoryListingClient(tree, page_size=3, latency=0.0)

    await crawl_to_file(client, "root", tmp_path / "tree.json", max_concurrent=16)
    lines = []
    report = await analyze_file(tmp_path / "tree.json", emit=lines.append, max_concurrent=50)

    assert report.folder_count == 40
    assert report.file_count == 400
    assert report.visited_folders == 440
    assert report.visited_files == 2000
    assert sorted(lines) == sorted(f"root/d{i}/d{i}-0" for i in range(40))


@pytest.mark.asyncio
async def test_deep_chain_survives_both_passes(tmp_path):
    """A chain of folders nested far beyond the interpreter's recursion limit."""
    depth = 1200
    tree = folder(f"d{depth - 1}", [leaf("bottom.txt")], shared=True)
    for i in reversed(range(depth - 1)):
        tree = folder(f"d{i}", [tree])
    client = InMemoryListingClient(tree)

    await crawl_to_file(client, "d0", tmp_path / "tree.json", max_concurrent=8)
    lines = []
    report = await analyze_file(tmp_path / "tree.json", emit=lines.append)

    assert lines == ["/".join(f"d{i}" for i in range(depth))]
    assert report.visited_folders == depth - 1
    assert report.visited_files == 1


@pytest.mark.asyncio
async def test_unresolvable_root_aborts_crawl(scenario_client, tmp_path):
    with pytest.raises(CrawlAbortedError, match="Failed to resolve root missing") as excinfo:
        await crawl_to_file(scenario_client, "missing", tmp_path / "tree.json")

    assert excinfo.value.node_id == "missing"
    assert isinstance(excinfo.value.__cause__, KeyError)
    assert scenario_client.calls == []
    assert not (tmp_path / "tree.json").exists()
