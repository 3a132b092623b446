#!/usr/bin/env python3
"""
Basic example of both passes against an in-memory listing.

This example demonstrates:
- Crawling a paginated tree under a concurrency ceiling
- Persisting the tree as JSON and reloading it
- Reporting folders shared with anyone
"""

import asyncio
import sys
import tempfile
from pathlib import Path

# Add parent directory to path for development
sys.path.insert(0, str(Path(__file__).parent.parent))

from drivetreelib.aio import analyze_file, crawl_to_file
from drivetreelib.testing import InMemoryListingClient, folder, leaf


def demo_tree():
    return folder("root", [
        folder("projects", [
            folder("public-site", [leaf("index.html", shared=True)], shared=True),
            folder("internal", [leaf("budget.xlsx")]),
        ], name="Projects"),
        folder("photos", [leaf(f"img{i}.jpg") for i in range(12)], name="Photos", shared=True),
        leaf("notes.txt"),
    ], name="My Drive")


async def main():
    """Crawl the demo tree, save it, and analyze it."""
    client = InMemoryListingClient(demo_tree(), page_size=5, latency=0.01)
    output = Path(tempfile.mkdtemp()) / "output.json"

    root = await crawl_to_file(client, "root", output, max_concurrent=4)
    print(f"Crawled {root.name!r} with {len(client.calls)} requests -> {output}")
    print("-" * 50)

    report = await analyze_file(output)

    print("\nShared with anyone:")
    print(f"  Folders: {report.folder_count}")
    print(f"  Files: {report.file_count}")
    print(f"  Discarded: {report.discarded}")


if __name__ == "__main__":
    asyncio.run(main())
