"""High-level async API for drivetreelib.

This module provides simple functions for the two passes: crawling a
remote tree into memory (and onto disk) and analyzing a built tree for
items shared with a given principal type.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Optional, Union

from ..serialization import load_tree, save_tree
from .core import (
    AnnotateFilterPipeline,
    AsyncListingClient,
    BoundedCrawlEngine,
    CrawlAbortedError,
    Node,
    PathedNode,
    ShareCollector,
    ShareReport,
    is_shared_with,
)
from .core.crawler import DEFAULT_MAX_CONCURRENT as DEFAULT_CRAWL_CONCURRENCY
from .core.node import ANYONE
from .core.pipeline import DEFAULT_MAX_CONCURRENT as DEFAULT_ANALYZE_CONCURRENCY, Predicate
from .error_handling import ErrorHandlingClient
from .error_policies import ErrorPolicy

logger = logging.getLogger(__name__)


async def crawl_tree(
    client: AsyncListingClient,
    root_id: str,
    max_concurrent: int = DEFAULT_CRAWL_CONCURRENCY,
    error_policy: Optional[ErrorPolicy] = None,
    timeout_seconds: Optional[float] = None,
) -> Node:
    """Crawl the remote tree under ``root_id``.

    Args:
        client: Authorized listing client
        root_id: Identifier of the root folder
        max_concurrent: Expansion permit ceiling
        error_policy: Policy for failed calls (fail fast when None)
        timeout_seconds: Abort the crawl after this many seconds

    Returns:
        The fully expanded root node

    Raises:
        CrawlAbortedError: If the root could not be resolved or any listing
            call failed permanently
    """
    if error_policy is not None:
        client = ErrorHandlingClient(client, error_policy)

    try:
        root = Node(await client.get_item(root_id))
    except Exception as e:
        raise CrawlAbortedError(f"Failed to resolve root {root_id}: {e}", node_id=root_id) from e

    engine = BoundedCrawlEngine(client, max_concurrent=max_concurrent)
    await engine.crawl(root, timeout_seconds=timeout_seconds)
    logger.debug("Crawl stats: %s", engine.get_stats())
    return root


async def crawl_to_file(
    client: AsyncListingClient,
    root_id: str,
    output_path: Union[str, Path],
    **kwargs: Any,
) -> Node:
    """Crawl the tree under ``root_id`` and persist it as JSON.

    The file is only written once the crawl completed.
    """
    root = await crawl_tree(client, root_id, **kwargs)
    path = save_tree(root, output_path)
    logger.info("Wrote tree rooted at %s to %s", root.id, path)
    return root


async def analyze_tree(
    root: Union[Node, PathedNode],
    max_concurrent: int = DEFAULT_ANALYZE_CONCURRENCY,
    predicate: Optional[Predicate] = None,
    principal_type: str = ANYONE,
    emit: Callable[[str], Any] = print,
    separator: str = "/",
    include_root: bool = False,
) -> ShareReport:
    """Report every node under ``root`` that matches the predicate.

    Args:
        root: Built tree; crawl-stage trees are converted first
        max_concurrent: Concurrent node evaluations
        predicate: Custom match predicate (overrides ``principal_type``)
        principal_type: Match nodes shared with this principal type
        emit: Receives the path of every matching folder
        separator: Joins path segments
        include_root: Evaluate the root as well

    Returns:
        Matched folders and files plus discard/visit counts
    """
    if isinstance(root, Node):
        root = PathedNode.from_node(root)

    pipeline = AnnotateFilterPipeline(
        predicate=predicate or is_shared_with(principal_type),
        sink=ShareCollector(emit=emit, separator=separator),
        max_concurrent=max_concurrent,
        include_root=include_root,
    )
    return await pipeline.run(root)


async def analyze_file(input_path: Union[str, Path], **kwargs: Any) -> ShareReport:
    """Load a persisted tree and analyze it.

    Raises:
        FileNotFoundError: If the file does not exist
        TreeFormatError: If the document is malformed
    """
    return await analyze_tree(load_tree(input_path), **kwargs)
