"""drivetreelib - Crawl and audit hierarchical remote listings.

drivetreelib enumerates a remote folder tree exposed by a paginated listing
API (Google Drive by default) under a strict concurrency budget, persists it
as JSON, and re-walks the stored tree to report the items shared with a
given principal type.

Two passes:
━━━━━━━━━━━━━━━━━━━━━━━━━━
Crawl:
    from drivetreelib.aio import crawl_to_file

Analyze:
    from drivetreelib.aio import analyze_file
━━━━━━━━━━━━━━━━━━━━━━━━━━
"""

__version__ = "0.1.0"

from . import aio
from .serialization import TreeFormatError, load_tree, save_tree

__all__ = [
    "__version__",
    "aio",
    "TreeFormatError",
    "load_tree",
    "save_tree",
]
