"""Configuration system for drivetreelib.

This module defines how users specify crawl and analyze runs: concurrency
ceilings, retry behavior, filtering, and the Google Drive credentials the
command line uses to build an authorized client.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .aio.core.crawler import DEFAULT_MAX_CONCURRENT as DEFAULT_CRAWL_CONCURRENCY
from .aio.core.node import ANYONE
from .aio.core.pipeline import DEFAULT_MAX_CONCURRENT as DEFAULT_ANALYZE_CONCURRENCY

DEFAULT_TREE_PATH = Path("output.json")


@dataclass
class CrawlConfig:
    """Configuration for the crawl pass."""

    max_concurrent: int = DEFAULT_CRAWL_CONCURRENCY  # Expansion permit ceiling
    max_retries: int = 0                             # Retries per page call (0 = fail fast)
    backoff_factor: float = 2.0                      # Exponential backoff multiplier
    base_delay: float = 0.5                          # First retry delay in seconds
    timeout_seconds: Optional[float] = None          # Abort the whole crawl after this
    output_path: Path = DEFAULT_TREE_PATH

    def __post_init__(self):
        self.output_path = Path(self.output_path)
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")


@dataclass
class AnalyzeConfig:
    """Configuration for the annotate-and-filter pass."""

    max_concurrent: int = DEFAULT_ANALYZE_CONCURRENCY
    principal_type: str = ANYONE     # Principal type a node must be shared with
    separator: str = "/"             # Joins path segments in printed lines
    include_root: bool = False       # Evaluate the root itself, not just walk it
    input_path: Path = DEFAULT_TREE_PATH

    def __post_init__(self):
        self.input_path = Path(self.input_path)
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        if not self.principal_type:
            raise ValueError("principal_type must not be empty")


@dataclass
class DriveConfig:
    """Credentials and identity for the Google Drive listing client."""

    client_secret_path: Path = Path("client_secrets.json")
    user: str = "ogp"
    application_name: str = "DriverPermissionScanner"
    token_dir: Path = field(default_factory=lambda: Path.home() / ".drivetreelib" / "tokens")
    page_size: int = 1000

    def __post_init__(self):
        self.client_secret_path = Path(self.client_secret_path)
        self.token_dir = Path(self.token_dir)
        if not self.user:
            raise ValueError("user must not be empty")
        if not 1 <= self.page_size <= 1000:
            raise ValueError("page_size must be between 1 and 1000")

    @property
    def token_path(self) -> Path:
        """Cached authorized-user token for ``user``."""
        return self.token_dir / f"{self.user}.json"
