"""
Error handling client wrapper.

This module provides the ErrorHandlingClient that wraps a listing client
and delegates failures of individual calls to a pluggable policy.
"""

import asyncio
from typing import Any, Optional

from .core.client import AsyncListingClient, ListingPage
from .core.node import RemoteItem
from .error_policies import ErrorPolicy, FailFastPolicy, RetryPolicy


class ErrorHandlingClient(AsyncListingClient):
    """
    Client that wraps another client and handles call failures through policies.

    Every ``list_children``/``get_item`` call is retried in isolation for
    as long as the policy returns a delay; once the policy raises, the
    error propagates to the caller. Other attributes are proxied to the
    wrapped client.
    """

    def __init__(self, base_client: AsyncListingClient, policy: Optional[ErrorPolicy] = None):
        """
        Initialize the error handling client.

        Args:
            base_client: The client to wrap (e.g. DriveListingClient)
            policy: Error handling policy (defaults to FailFastPolicy)
        """
        self._base_client = base_client
        self._policy = policy or FailFastPolicy()

    async def _call(self, method_name: str, target: Any, *args) -> Any:
        method = getattr(self._base_client, method_name)
        attempt = 0
        while True:
            attempt += 1
            try:
                return await method(*args)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                delay = await self._policy.handle(e, method_name, target, attempt)
                if delay > 0:
                    await asyncio.sleep(delay)

    async def list_children(self, parent_id: str, page_token: Optional[str] = None) -> ListingPage:
        return await self._call('list_children', parent_id, parent_id, page_token)

    async def get_item(self, item_id: str) -> RemoteItem:
        return await self._call('get_item', item_id, item_id)

    async def get_stats(self) -> dict:
        stats = dict(await self._base_client.get_stats())
        if hasattr(self._policy, 'get_statistics'):
            stats['errors'] = self._policy.get_statistics()
        return stats

    async def close(self):
        await self._base_client.close()

    def __getattr__(self, name: str) -> Any:
        # Private names are never proxied, so a half-built instance can't recurse
        if name.startswith('_'):
            raise AttributeError(name)
        return getattr(self._base_client, name)

    def get_policy(self) -> ErrorPolicy:
        return self._policy

    def get_base_client(self) -> AsyncListingClient:
        return self._base_client

    def __repr__(self) -> str:
        return f"ErrorHandlingClient({self._base_client!r}, policy={self._policy.__class__.__name__})"


def create_resilient_client(
    base_client: AsyncListingClient,
    strict: bool = False,
    max_retries: int = 5,
) -> ErrorHandlingClient:
    """
    Convenience function to create an error-handling client.

    Args:
        base_client: The client to wrap
        strict: If True, use FailFastPolicy; otherwise retry transient errors
        max_retries: Retries per call when not strict

    Returns:
        An ErrorHandlingClient configured appropriately
    """
    if strict:
        policy = FailFastPolicy()
    else:
        policy = RetryPolicy(max_retries=max_retries)
    return ErrorHandlingClient(base_client, policy)
