"""Test fixtures for drivetreelib consumers.

``InMemoryListingClient`` serves a tree described as nested dictionaries
through the paginated listing interface, with controllable page size,
latency and failures. It records every call and the number of calls in
flight, so tests can check what the crawl engine did and when.
"""

import asyncio
from collections import deque
from typing import Any, Callable, Dict, List, Optional, Union

from ..aio.core.client import AsyncListingClient, ListingPage
from ..aio.core.node import ANYONE, FOLDER_MIME_TYPE, AccessControlEntry, RemoteItem

FILE_MIME_TYPE = "application/octet-stream"

Latency = Union[float, Callable[[str, int], float]]


def folder(id: str, children: Optional[List[dict]] = None, name: Optional[str] = None,
           shared: bool = False, permissions: Optional[List[AccessControlEntry]] = None) -> dict:
    """Describe a folder for ``InMemoryListingClient``."""
    return {
        'item': make_item(id, name, FOLDER_MIME_TYPE, shared, permissions),
        'children': children or [],
    }


def leaf(id: str, name: Optional[str] = None, shared: bool = False,
         permissions: Optional[List[AccessControlEntry]] = None) -> dict:
    """Describe a file (leaf) for ``InMemoryListingClient``."""
    return {'item': make_item(id, name, FILE_MIME_TYPE, shared, permissions), 'children': []}


def make_item(id: str, name: Optional[str] = None, mime_type: str = FILE_MIME_TYPE,
              shared: bool = False,
              permissions: Optional[List[AccessControlEntry]] = None) -> RemoteItem:
    if permissions is None:
        permissions = [AccessControlEntry(type="user", role="owner", email_address="owner@example.com")]
        if shared:
            permissions.append(AccessControlEntry(type=ANYONE, role="reader"))
    return RemoteItem(id=id, name=name or id, mime_type=mime_type, permissions=permissions)


class InMemoryListingClient(AsyncListingClient):
    """Fake paginated listing client over an in-memory tree.

    Attributes:
        calls: (parent_id, page_token) for every list_children call
        in_flight: list_children calls currently awaiting their latency
        peak_in_flight: Highest value ``in_flight`` reached
    """

    def __init__(
        self,
        tree: dict,
        page_size: int = 2,
        latency: Latency = 0.0,
        failures: Optional[Dict[str, List[BaseException]]] = None,
    ):
        """
        Args:
            tree: Root description built with ``folder``/``leaf``
            page_size: Children returned per page
            latency: Seconds per call, or callable(parent_id, page_index)
            failures: parent_id -> exceptions raised by successive calls
                before the call finally succeeds
        """
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.page_size = page_size
        self.latency = latency
        self.failures = {k: deque(v) for k, v in (failures or {}).items()}
        self.items: Dict[str, RemoteItem] = {}
        self.children: Dict[str, List[RemoteItem]] = {}
        self.root_id = tree['item'].id
        self._index(tree)

        self.calls: List[tuple] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.closed = False

    def _index(self, tree: dict):
        queue = deque([tree])
        while queue:
            entry = queue.popleft()
            item = entry['item']
            self.items[item.id] = item
            self.children[item.id] = [child['item'] for child in entry['children']]
            queue.extend(entry['children'])

    def expected_children(self, parent_id: str) -> List[RemoteItem]:
        return list(self.children.get(parent_id, []))

    def calls_for(self, parent_id: str) -> List[Any]:
        return [token for pid, token in self.calls if pid == parent_id]

    async def _delay(self, parent_id: str, page_index: int):
        latency = self.latency(parent_id, page_index) if callable(self.latency) else self.latency
        await asyncio.sleep(latency)

    async def list_children(self, parent_id: str, page_token: Optional[str] = None) -> ListingPage:
        self.calls.append((parent_id, page_token))
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            offset = int(page_token) if page_token else 0
            await self._delay(parent_id, offset // self.page_size)

            pending = self.failures.get(parent_id)
            if pending:
                raise pending.popleft()
            if parent_id not in self.items:
                raise KeyError(f"Unknown parent {parent_id!r}")

            siblings = self.children[parent_id]
            end = offset + self.page_size
            next_token = str(end) if end < len(siblings) else None
            return ListingPage(items=siblings[offset:end], next_page_token=next_token)
        finally:
            self.in_flight -= 1

    async def get_item(self, item_id: str) -> RemoteItem:
        if item_id not in self.items:
            raise KeyError(f"Unknown item {item_id!r}")
        return self.items[item_id]

    async def get_stats(self) -> dict:
        return {'requests': len(self.calls), 'peak_in_flight': self.peak_in_flight}

    async def close(self):
        self.closed = True
