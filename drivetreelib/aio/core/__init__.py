"""Core abstractions for crawling and analyzing remote trees.

This module defines the tree model, the listing client interface, and the
two concurrency-bounded passes built on them.
"""

from .node import (
    AccessControlEntry,
    ExpansionState,
    Node,
    PathedNode,
    RemoteItem,
    count_nodes,
    iter_nodes,
)
from .client import AsyncListingClient, ListingPage, TransientListingError
from .crawler import BoundedCrawlEngine, CrawlAbortedError
from .collector import AsyncDataCollector, ShareCollector, ShareReport
from .pipeline import (
    AnnotateFilterPipeline,
    is_shared_with,
    is_shared_with_anyone,
)

__all__ = [
    # Tree model
    'AccessControlEntry',
    'ExpansionState',
    'Node',
    'PathedNode',
    'RemoteItem',
    'count_nodes',
    'iter_nodes',
    # Client
    'AsyncListingClient',
    'ListingPage',
    'TransientListingError',
    # Crawl
    'BoundedCrawlEngine',
    'CrawlAbortedError',
    # Analyze
    'AsyncDataCollector',
    'ShareCollector',
    'ShareReport',
    'AnnotateFilterPipeline',
    'is_shared_with',
    'is_shared_with_anyone',
]
