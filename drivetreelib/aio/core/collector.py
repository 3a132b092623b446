"""Async data collectors for the analyze pass.

Collectors sit at the end of the annotate-and-filter pipeline and receive
matching nodes one at a time from a single consumer task, so they can keep
plain lists and counters without locks.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, List

from .node import PathedNode


class AsyncDataCollector(ABC):
    """Abstract base class for async data collectors.

    Collectors process nodes to extract specific information.
    They can maintain state and aggregate data.
    """

    def __init__(self):
        """Initialize collector with empty state."""
        self.reset()

    @abstractmethod
    async def collect(self, node: PathedNode) -> Any:
        """Collect data from a single node.

        Args:
            node: Node that passed the pipeline's filter

        Returns:
            Collected data (type depends on collector)
        """
        pass

    @abstractmethod
    def reset(self):
        """Reset collector state.

        Called before starting a new run.
        """
        pass

    @abstractmethod
    def get_result(self) -> Any:
        """Get final collected result."""
        pass


@dataclass
class ShareReport:
    """Outcome of an analyze pass.

    ``folders`` and ``files`` hold the nodes that matched the filter;
    ``visited_*`` count every node the walk fed to the filter.
    """
    folders: List[PathedNode] = field(default_factory=list)
    files: List[PathedNode] = field(default_factory=list)
    discarded: int = 0
    visited_folders: int = 0
    visited_files: int = 0

    @property
    def folder_count(self) -> int:
        return len(self.folders)

    @property
    def file_count(self) -> int:
        return len(self.files)

    @property
    def matched(self) -> int:
        return self.folder_count + self.file_count


class ShareCollector(AsyncDataCollector):
    """Reports matching folders by path and tallies matching files.

    Each matching folder is emitted as its full path joined with
    ``separator`` (``print`` by default).
    """

    def __init__(self, emit: Callable[[str], Any] = print, separator: str = "/"):
        self.emit = emit
        self.separator = separator
        super().__init__()

    def reset(self):
        self.folders: List[PathedNode] = []
        self.files: List[PathedNode] = []

    def format_path(self, node: PathedNode) -> str:
        return self.separator.join(node.full_path)

    async def collect(self, node: PathedNode) -> None:
        if node.is_folder:
            self.emit(self.format_path(node))
            self.folders.append(node)
        else:
            self.files.append(node)

    def get_result(self) -> ShareReport:
        return ShareReport(folders=list(self.folders), files=list(self.files))
