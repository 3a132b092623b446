"""Bounded concurrent crawl engine.

Expands a remote tree whose shape is unknown up front. Folder nodes flow
through two stages:

1. Fetch: a pool of workers takes a node from the work queue, acquires an
   expansion permit and pulls every page of the node's children.
2. Dispatch: a single worker releases the node's permit, submits the
   node's folder children back to the fetch stage and retires the node.

Completion is an explicit outstanding-work counter: it is incremented on
every submission and decremented when a node is dispatched, so the crawl
is complete exactly when the counter drops to zero.
"""

import asyncio
import logging
from typing import List, Optional

from .client import AsyncListingClient
from .node import ExpansionState, Node

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 1500


class CrawlAbortedError(Exception):
    """The crawl could not complete; no tree is returned.

    Attributes:
        node_id: Identifier of the node being expanded when the crawl
            aborted, or None for timeouts
    """

    def __init__(self, message: str, node_id: Optional[str] = None):
        super().__init__(message)
        self.node_id = node_id


class BoundedCrawlEngine:
    """Crawl a remote tree with at most ``max_concurrent`` open expansions.

    A permit is held from the first page request of a node until its
    children have been handed back to the fetch stage, so the ceiling
    bounds concurrent branch expansions rather than raw request volume.

    Example:
        engine = BoundedCrawlEngine(client, max_concurrent=100)
        root = await engine.crawl(Node(await client.get_item(root_id)))
    """

    def __init__(self, client: AsyncListingClient, max_concurrent: int = DEFAULT_MAX_CONCURRENT):
        """Initialize the engine.

        Args:
            client: Authorized listing client
            max_concurrent: Expansion permit ceiling (also the fetch pool size)
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.client = client
        self.max_concurrent = max_concurrent
        self._running = False
        self._reset()

    def _reset(self):
        self._queue: Optional[asyncio.Queue] = None
        self._dispatch_queue: Optional[asyncio.Queue] = None
        self._permits: Optional[asyncio.Semaphore] = None
        self._completed: Optional[asyncio.Event] = None
        self._failure: Optional[tuple] = None
        self._outstanding = 0
        self._permits_held = 0

        # Statistics
        self.requests = 0
        self.nodes_expanded = 0
        self.nodes_discovered = 0
        self.peak_permits_held = 0

    @property
    def outstanding(self) -> int:
        """Nodes submitted but not yet dispatched."""
        return self._outstanding

    @property
    def permits_held(self) -> int:
        return self._permits_held

    @property
    def pending(self) -> int:
        """Nodes waiting in the work queue for a fetch worker."""
        return self._queue.qsize() if self._queue is not None else 0

    def is_quiescent(self) -> bool:
        """True when no work is pending, in flight or awaiting dispatch."""
        return self._outstanding == 0 and self._permits_held == 0 and self.pending == 0

    async def crawl(self, root: Node, timeout_seconds: Optional[float] = None) -> Node:
        """Expand ``root`` and every folder below it.

        Args:
            root: Freshly created root node (state DISCOVERED)
            timeout_seconds: Abort the crawl if it takes longer than this

        Returns:
            The same root, with every folder's children fully populated

        Raises:
            CrawlAbortedError: If any page fetch failed or the timeout expired
        """
        if self._running:
            raise RuntimeError("crawl() is already running on this engine")
        if root.state is not ExpansionState.DISCOVERED:
            raise RuntimeError(f"Root {root.id!r} was already crawled")
        self._running = True
        self._reset()
        self._queue = asyncio.Queue()
        self._dispatch_queue = asyncio.Queue()
        self._permits = asyncio.Semaphore(self.max_concurrent)
        self._completed = asyncio.Event()

        logger.info("Starting crawl at %s (%r), max_concurrent=%d",
                    root.id, root.name, self.max_concurrent)
        self._submit(root)

        workers: List[asyncio.Task] = [
            asyncio.ensure_future(self._fetch_worker())
            for _ in range(self.max_concurrent)
        ]
        workers.append(asyncio.ensure_future(self._dispatch_worker()))

        try:
            await asyncio.wait_for(self._completed.wait(), timeout_seconds)
        except asyncio.TimeoutError as e:
            raise CrawlAbortedError(
                f"Crawl timed out after {timeout_seconds}s with "
                f"{self._outstanding} nodes outstanding"
            ) from e
        finally:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            self._running = False

        if self._failure is not None:
            node, error = self._failure
            raise CrawlAbortedError(
                f"Failed to list children of {node.id} ({node.name!r}): {error}",
                node_id=node.id,
            ) from error

        logger.info(
            "Crawl complete: %d folders expanded, %d items discovered, %d requests",
            self.nodes_expanded, self.nodes_discovered, self.requests,
        )
        return root

    def _submit(self, node: Node):
        node.advance(ExpansionState.DISCOVERED)
        self._outstanding += 1
        self._queue.put_nowait(node)

    async def _fetch_worker(self):
        while True:
            node = await self._queue.get()
            await self._permits.acquire()
            self._permits_held += 1
            self.peak_permits_held = max(self.peak_permits_held, self._permits_held)
            node.advance(ExpansionState.PENDING)

            try:
                await self._expand(node)
            except Exception as e:
                self._abort(node, e)
                return

            node.advance(ExpansionState.FETCHING)
            self._dispatch_queue.put_nowait(node)

    async def _expand(self, node: Node):
        """Fetch every page of ``node``'s children, in API order."""
        token = None
        while True:
            page = await self.client.list_children(node.id, token)
            self.requests += 1
            node.children.extend(Node(item) for item in page.items)
            self.nodes_discovered += len(page.items)
            if not page.has_more:
                break
            token = page.next_page_token
        self.nodes_expanded += 1

    async def _dispatch_worker(self):
        while True:
            node = await self._dispatch_queue.get()
            self._permits.release()
            self._permits_held -= 1

            folders = [child for child in node.children if child.is_folder]
            for child in folders:
                self._submit(child)

            node.advance(ExpansionState.FETCHED)
            self._outstanding -= 1

            logger.debug(
                "Children: %d\tIn flight: %d\tPending: %d\tNode: %s",
                len(folders), self._permits_held, self.pending, node.name,
            )

            if self._outstanding == 0:
                logger.debug("Crawl quiescent after dispatching %s", node.name)
                self._completed.set()
                return

    def _abort(self, node: Node, error: Exception):
        if self._failure is None:
            logger.error("Aborting crawl: listing %s failed: %s", node.id, error)
            self._failure = (node, error)
        self._completed.set()

    def get_stats(self) -> dict:
        return {
            'max_concurrent': self.max_concurrent,
            'requests': self.requests,
            'nodes_expanded': self.nodes_expanded,
            'nodes_discovered': self.nodes_discovered,
            'peak_permits_held': self.peak_permits_held,
            'outstanding': self._outstanding,
        }
