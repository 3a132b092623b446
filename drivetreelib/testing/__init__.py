"""Testing utilities for drivetreelib."""

from .fixtures import InMemoryListingClient, folder, leaf, make_item

__all__ = ['InMemoryListingClient', 'folder', 'leaf', 'make_item']
