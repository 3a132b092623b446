"""
Error handling policies for remote listing calls.

A policy decides, for one failed call, whether the call should be retried
and after how long. Policies never swallow errors: a crawl that cannot
fetch a page aborts, because a partial tree must not pass for a complete
one.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

from .core.client import TransientListingError

logger = logging.getLogger(__name__)


class ErrorPolicy(ABC):
    """
    Base class for error handling policies.

    Subclasses implement different strategies for handling errors
    raised by listing client calls.
    """

    @abstractmethod
    async def handle(self, error: Exception, method_name: str, target: Any, attempt: int) -> float:
        """
        Handle an error raised by a client call.

        Args:
            error: The exception that was raised
            method_name: Name of the client method that failed (e.g. 'list_children')
            target: Identifier the call was made for (usually the parent id)
            attempt: 1-based number of the attempt that failed

        Returns:
            Seconds to wait before retrying the call.

        Raises:
            Exception: The original error (or a wrapper) to stop retrying.
        """
        pass


class FailFastPolicy(ErrorPolicy):
    """
    Policy that immediately re-raises any error, stopping the crawl.

    This is the default behavior.
    """

    async def handle(self, error: Exception, method_name: str, target: Any, attempt: int) -> float:
        """Re-raise the error immediately."""
        raise error


class RetryPolicy(ErrorPolicy):
    """
    Policy that retries transient failures with exponential backoff.

    Only ``TransientListingError`` is retried; anything else is permanent
    and re-raised at once. Retries are scoped to the single failing call,
    so sibling branches keep crawling while one node backs off.
    """

    def __init__(
        self,
        max_retries: int = 5,
        backoff_factor: float = 2.0,
        base_delay: float = 0.5,
        max_delay: float = 30.0,
    ):
        """
        Initialize retry policy.

        Args:
            max_retries: Maximum number of retries per call
            backoff_factor: Multiplier applied to the delay after each attempt
            base_delay: Delay before the first retry, in seconds
            max_delay: Upper bound for any single delay, in seconds
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.retry_counts: Dict[Any, int] = {}

    def is_transient(self, error: Exception) -> bool:
        return isinstance(error, TransientListingError)

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given failed attempt."""
        return min(self.base_delay * self.backoff_factor ** (attempt - 1), self.max_delay)

    async def handle(self, error: Exception, method_name: str, target: Any, attempt: int) -> float:
        if not self.is_transient(error):
            raise error
        if attempt > self.max_retries:
            logger.warning(
                "Giving up on %s(%s) after %d attempts: %s",
                method_name, target, attempt, error,
            )
            raise error

        self.retry_counts[target] = self.retry_counts.get(target, 0) + 1
        delay = self.delay_for(attempt)
        retry_after = getattr(error, 'retry_after', None)
        if retry_after is not None:
            delay = min(max(delay, retry_after), self.max_delay)

        logger.info(
            "Transient error in %s(%s), retry %d/%d in %.2fs: %s",
            method_name, target, attempt, self.max_retries, delay, error,
        )
        return delay

    def get_statistics(self) -> dict:
        return {
            'retried_targets': len(self.retry_counts),
            'total_retries': sum(self.retry_counts.values()),
        }
