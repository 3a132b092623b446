"""Annotate-and-filter pipeline over an already-built tree.

A breadth-first walk assigns each child its root-relative path and feeds
every node to a pool of evaluation workers. Nodes matching the predicate
are handed to a single sink consumer, the rest are counted and dropped.
The tree is fully known, so the pipeline closes as soon as the walk has
exhausted its queue.
"""

import asyncio
import inspect
import logging
from collections import deque
from typing import Awaitable, Callable, List, Optional, Union

from .collector import AsyncDataCollector, ShareCollector, ShareReport
from .node import ANYONE, PathedNode

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 1000

Predicate = Callable[[PathedNode], Union[bool, Awaitable[bool]]]

_DONE = object()


def is_shared_with(principal_type: str = ANYONE) -> Predicate:
    """Build a predicate matching nodes with a grant to ``principal_type``.

    A node without access-control data never matches; that is not an error.
    """
    def predicate(node: PathedNode) -> bool:
        permissions = node.item.permissions
        if not permissions:
            return False
        return any(p.type is not None and p.type == principal_type for p in permissions)

    predicate.__name__ = f"is_shared_with_{principal_type}"
    return predicate


is_shared_with_anyone = is_shared_with(ANYONE)


class AnnotateFilterPipeline:
    """Walk a tree, assign paths, and stream matching nodes to a sink.

    Example:
        pipeline = AnnotateFilterPipeline(max_concurrent=1000)
        report = await pipeline.run(load_tree("output.json"))
        print(report.folder_count, report.file_count)
    """

    def __init__(
        self,
        predicate: Optional[Predicate] = None,
        sink: Optional[AsyncDataCollector] = None,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        include_root: bool = False,
    ):
        """Initialize the pipeline.

        Args:
            predicate: Sync or async callable(node) -> bool; defaults to
                "shared with anyone"
            sink: Collector receiving matching nodes; defaults to a
                ShareCollector printing folder paths
            max_concurrent: Number of concurrent node evaluations
            include_root: Whether the root itself is evaluated (it is
                always walked)
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.predicate = predicate or is_shared_with_anyone
        self.sink = sink if sink is not None else ShareCollector()
        self.max_concurrent = max_concurrent
        self.include_root = include_root

    async def run(self, root: PathedNode) -> ShareReport:
        """Annotate and filter the whole tree under ``root``.

        Returns:
            The sink's report, completed with discard and visit counts
        """
        self.sink.reset()
        self.discarded = 0
        self.visited_folders = 0
        self.visited_files = 0
        self._errors: List[BaseException] = []

        eval_queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_concurrent * 2)
        sink_queue: asyncio.Queue = asyncio.Queue()

        workers = [
            asyncio.ensure_future(self._evaluate_worker(eval_queue, sink_queue))
            for _ in range(self.max_concurrent)
        ]
        sink_task = asyncio.ensure_future(self._sink_worker(sink_queue))

        try:
            await self._walk(root, eval_queue)
            await eval_queue.join()
        except BaseException:
            sink_task.cancel()
            await asyncio.gather(sink_task, return_exceptions=True)
            raise
        finally:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        sink_queue.put_nowait(_DONE)
        # Drain the sink before surfacing evaluation errors
        await sink_task
        if self._errors:
            raise self._errors[0]

        report = self.sink.get_result()
        report.discarded = self.discarded
        report.visited_folders = self.visited_folders
        report.visited_files = self.visited_files
        logger.info(
            "Analyze complete: %d folders and %d files matched, %d discarded",
            report.folder_count, report.file_count, report.discarded,
        )
        return report

    async def _walk(self, root: PathedNode, eval_queue: asyncio.Queue):
        """Breadth-first walk with an explicit queue.

        A child's path is set while its parent is processed, strictly
        before the child can reach an evaluation worker.
        """
        queue = deque([root])
        while queue:
            node = queue.popleft()
            for child in node.children:
                child.path = node.path + [node.name]
                queue.append(child)

            if node is root and not self.include_root:
                continue
            if node.is_folder:
                self.visited_folders += 1
            else:
                self.visited_files += 1
            await eval_queue.put(node)

    async def _evaluate_worker(self, eval_queue: asyncio.Queue, sink_queue: asyncio.Queue):
        while True:
            node = await eval_queue.get()
            try:
                matched = self.predicate(node)
                if inspect.isawaitable(matched):
                    matched = await matched
                if matched:
                    sink_queue.put_nowait(node)
                else:
                    self.discarded += 1
            except Exception as e:
                logger.error("Evaluating %s failed: %s", node.id, e)
                self._errors.append(e)
            finally:
                eval_queue.task_done()

    async def _sink_worker(self, sink_queue: asyncio.Queue):
        while True:
            node = await sink_queue.get()
            if node is _DONE:
                return
            await self.sink.collect(node)
