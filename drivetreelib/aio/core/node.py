"""Tree model shared by the crawl and analyze passes.

Both passes describe the same rooted, ordered parent->children ownership
graph. The crawl pass builds ``Node`` objects while expanding the remote
tree; the analyze pass works on ``PathedNode`` objects that carry a
root-relative path. The two share the ``RemoteItem`` payload and are
converted explicitly with ``PathedNode.from_node``.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, TypeVar

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
ANYONE = "anyone"


@dataclass
class AccessControlEntry:
    """A permission grant on a remote item.

    Attributes:
        type: Principal type ("user", "group", "domain" or "anyone")
        role: Granted role ("reader", "writer", ...)
        id: Remote permission identifier, if known
        email_address: Principal e-mail for user/group grants
        domain: Principal domain for domain grants
    """
    type: Optional[str]
    role: Optional[str] = None
    id: Optional[str] = None
    email_address: Optional[str] = None
    domain: Optional[str] = None


@dataclass
class RemoteItem:
    """The part of a node that comes straight from the remote listing.

    ``permissions`` is ``None`` when the remote item carried no
    access-control data at all, which is different from an empty list.
    """
    id: str
    name: str
    mime_type: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    permissions: Optional[List[AccessControlEntry]] = None

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE


class ExpansionState(Enum):
    """Lifecycle of a node inside the crawl engine."""
    DISCOVERED = "discovered"   # Known as a child, not submitted
    PENDING = "pending"         # Queued for expansion
    FETCHING = "fetching"       # Holding a permit, pages in flight
    FETCHED = "fetched"         # All pages fetched, awaiting dispatch
    DISPATCHED = "dispatched"   # Permit released, children submitted


_TRANSITIONS = {
    ExpansionState.DISCOVERED: ExpansionState.PENDING,
    ExpansionState.PENDING: ExpansionState.FETCHING,
    ExpansionState.FETCHING: ExpansionState.FETCHED,
    ExpansionState.FETCHED: ExpansionState.DISPATCHED,
}


@dataclass
class Node:
    """A remote item plus the children discovered by the crawl engine.

    ``children`` is append-only and is populated by exactly one worker,
    the one that expands this node.
    """
    item: RemoteItem
    children: List["Node"] = field(default_factory=list)
    state: ExpansionState = field(
        default=ExpansionState.DISCOVERED, compare=False, repr=False
    )

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def name(self) -> str:
        return self.item.name

    @property
    def is_folder(self) -> bool:
        return self.item.is_folder

    def advance(self, expected: ExpansionState) -> None:
        """Move to the state that follows ``expected``.

        Args:
            expected: State the node must currently be in

        Raises:
            RuntimeError: If the node is not in ``expected``, e.g. when the
                same node is submitted for expansion twice
        """
        if self.state is not expected or expected not in _TRANSITIONS:
            raise RuntimeError(
                f"Illegal transition for node {self.item.id!r}: "
                f"state is {self.state.value}, expected {expected.value}"
            )
        self.state = _TRANSITIONS[expected]


@dataclass
class PathedNode:
    """A node of an already-built tree annotated with its root-relative path.

    ``path`` holds the names of the ancestors from the root down to the
    parent, so the root has an empty path. It is assigned once, by whoever
    walks the parent.
    """
    item: RemoteItem
    children: List["PathedNode"] = field(default_factory=list)
    path: List[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def name(self) -> str:
        return self.item.name

    @property
    def is_folder(self) -> bool:
        return self.item.is_folder

    @property
    def full_path(self) -> List[str]:
        """Path including this node's own name."""
        return self.path + [self.item.name]

    @classmethod
    def from_node(cls, root: Node) -> "PathedNode":
        """Convert a crawled tree into an unannotated analyze tree.

        Uses an explicit queue so arbitrarily deep trees convert without
        hitting the recursion limit.
        """
        pathed_root = cls(item=root.item)
        queue = deque([(root, pathed_root)])
        while queue:
            source, target = queue.popleft()
            for child in source.children:
                pathed_child = cls(item=child.item)
                target.children.append(pathed_child)
                queue.append((child, pathed_child))
        return pathed_root


TreeNode = TypeVar("TreeNode", Node, PathedNode)


def iter_nodes(root: TreeNode) -> Iterator[TreeNode]:
    """Yield every node of a tree breadth-first, root included."""
    queue = deque([root])
    while queue:
        node = queue.popleft()
        yield node
        queue.extend(node.children)


def count_nodes(root: TreeNode) -> int:
    return sum(1 for _ in iter_nodes(root))
