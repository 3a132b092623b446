"""Asynchronous implementation of drivetreelib.

This package contains the asyncio crawl engine, the annotate-and-filter
pipeline, error policies for remote calls and the high-level API.

The Google Drive client lives in ``drivetreelib.aio.adapters.drive`` and is
not imported here, so the core works without the ``drive`` extra.
"""

# Core abstractions
from .core import (
    AccessControlEntry,
    ExpansionState,
    Node,
    PathedNode,
    RemoteItem,
    AsyncListingClient,
    ListingPage,
    TransientListingError,
    BoundedCrawlEngine,
    CrawlAbortedError,
    AsyncDataCollector,
    ShareCollector,
    ShareReport,
    AnnotateFilterPipeline,
    is_shared_with,
    is_shared_with_anyone,
)

# Error handling
from .error_policies import ErrorPolicy, FailFastPolicy, RetryPolicy
from .error_handling import ErrorHandlingClient, create_resilient_client

# High-level API
from .api import (
    crawl_tree,
    crawl_to_file,
    analyze_tree,
    analyze_file,
)

__all__ = [
    # Tree model
    'AccessControlEntry',
    'ExpansionState',
    'Node',
    'PathedNode',
    'RemoteItem',
    # Client
    'AsyncListingClient',
    'ListingPage',
    'TransientListingError',
    # Passes
    'BoundedCrawlEngine',
    'CrawlAbortedError',
    'AsyncDataCollector',
    'ShareCollector',
    'ShareReport',
    'AnnotateFilterPipeline',
    'is_shared_with',
    'is_shared_with_anyone',
    # Error handling
    'ErrorPolicy',
    'FailFastPolicy',
    'RetryPolicy',
    'ErrorHandlingClient',
    'create_resilient_client',
    # High-level API
    'crawl_tree',
    'crawl_to_file',
    'analyze_tree',
    'analyze_file',
]
