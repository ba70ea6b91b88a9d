"""
List store implementations for report rows.

This package provides the destinations a reconciliation run can mirror its
records into: a SharePoint list, a local JSON file, or a JSON blob in Azure
Blob Storage.
"""

from .base import ListStore, JsonDocumentListStore
from .local_file import LocalFileListStore
from .azure_blob import AzureBlobListStore
from .sharepoint import SharePointListStore

__all__ = [
    "ListStore",
    "JsonDocumentListStore",
    "LocalFileListStore",
    "AzureBlobListStore",
    "SharePointListStore",
]
