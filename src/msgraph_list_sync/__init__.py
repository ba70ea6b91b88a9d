"""
Microsoft Graph list sync.

Fetch directory objects from Microsoft Graph, enrich them into flat report
records, and print them, export them to CSV, or mirror them into a list store.
"""

from .client import AsyncDirectoryClient
from .exceptions import ListSyncError, DirectoryServiceError, DestinationNotFoundError
from .fetcher import SourceFetcher
from .enricher import (
    Enricher,
    ServicePrincipalEnricher,
    IntuneAppEnricher,
    GuestUserEnricher,
)
from .reconciler import Reconciler, build_key_index, plan_reconciliation
from .pipelines import ReportPipeline, get_pipeline
from .storage import (
    ListStore,
    LocalFileListStore,
    AzureBlobListStore,
    SharePointListStore,
)
from .models import (
    EntityQuery,
    OutputRecord,
    DestinationRecord,
    ReconciliationPlan,
    ReconcileResult,
)

__version__ = "0.1.0"

__all__ = [
    "AsyncDirectoryClient",
    "ListSyncError",
    "DirectoryServiceError",
    "DestinationNotFoundError",
    "SourceFetcher",
    "Enricher",
    "ServicePrincipalEnricher",
    "IntuneAppEnricher",
    "GuestUserEnricher",
    "Reconciler",
    "build_key_index",
    "plan_reconciliation",
    "ReportPipeline",
    "get_pipeline",
    "ListStore",
    "LocalFileListStore",
    "AzureBlobListStore",
    "SharePointListStore",
    "EntityQuery",
    "OutputRecord",
    "DestinationRecord",
    "ReconciliationPlan",
    "ReconcileResult",
]
