"""
Exception types for msgraph-list-sync.

Only run-aborting conditions are raised as exceptions. Recoverable problems
during enrichment or while applying changes to a list store are reported as
data (error markers in records, failure tallies in results).
"""

from typing import Optional


class ListSyncError(Exception):
    """Base exception for all errors raised by this package."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class DirectoryServiceError(ListSyncError):
    """The directory session could not be established or a bulk fetch failed."""


class DestinationNotFoundError(ListSyncError):
    """The destination list store (site, list, container) could not be resolved."""
