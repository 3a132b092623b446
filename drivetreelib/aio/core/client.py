"""Async listing client abstraction.

Defines how a paginated remote listing service is exposed to the crawl
engine. A client's responsibility ends at "fetch one page of children";
authentication happens before a client is handed to the engine.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from .node import RemoteItem


class TransientListingError(Exception):
    """A listing call failed in a way that may succeed when retried.

    Raised for rate limiting, network errors and server-side failures.
    Any other exception escaping a client is treated as permanent.
    """

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


@dataclass
class ListingPage:
    """One page of children plus the cursor for the next one.

    An empty or missing ``next_page_token`` means the listing is exhausted.
    """
    items: List[RemoteItem] = field(default_factory=list)
    next_page_token: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return bool(self.next_page_token and self.next_page_token.strip())


class AsyncListingClient(ABC):
    """Abstract base class for paginated remote listing clients.

    Implementations bridge a concrete remote API to the crawl engine.
    They must be safe to call concurrently from many workers.
    """

    @abstractmethod
    async def list_children(
        self,
        parent_id: str,
        page_token: Optional[str] = None
    ) -> ListingPage:
        """Fetch one page of the children of ``parent_id``.

        Args:
            parent_id: Identifier of the parent item
            page_token: Continuation token from the previous page, or None
                for the first page

        Returns:
            The page of children and the continuation token

        Raises:
            TransientListingError: If the call may succeed when retried
        """
        pass

    @abstractmethod
    async def get_item(self, item_id: str) -> RemoteItem:
        """Fetch a single item, used to resolve the explicit root.

        Args:
            item_id: Identifier of the item

        Returns:
            The remote item
        """
        pass

    async def get_stats(self) -> dict:
        """Get client statistics (request counts, etc.)."""
        return {}

    async def close(self):
        """Release client resources (sessions, connections)."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
