"""
Data models for fetch / enrich / reconcile report pipelines.

This module contains dataclass definitions for the records flowing through a
pipeline and for the outcome of a reconciliation run.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

# Prefix written into a record field when its enrichment lookup failed
ERROR_PREFIX = "Error: "

CREATE = "create"
UPDATE = "update"
DELETE = "delete"


@dataclass
class EntityQuery:
    """Server-side scope of a source fetch."""

    resource: str
    select: Optional[List[str]] = None
    filter: Optional[str] = None
    top: Optional[int] = None
    expand: Optional[List[str]] = None


@dataclass
class OutputRecord:
    """One flattened report row derived from a single source entity."""

    key: str
    display: str = ""
    fields: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.key is None or not str(self.key).strip():
            raise ValueError("OutputRecord requires a non-empty natural key")
        self.key = str(self.key)

    @property
    def error_fields(self) -> List[str]:
        """Names of fields carrying an enrichment error marker."""
        return [
            name
            for name, value in self.fields.items()
            if isinstance(value, str) and value.startswith(ERROR_PREFIX)
        ]

    @property
    def has_errors(self) -> bool:
        return bool(self.error_fields)


@dataclass
class DestinationRecord:
    """An existing row in a list store."""

    row_id: str
    fields: Dict[str, Any] = field(default_factory=dict)

    def key(self, key_field: str) -> Optional[str]:
        value = self.fields.get(key_field)
        if value is None or str(value).strip() == "":
            return None
        return str(value)


@dataclass
class ReconciliationPlan:
    """
    Classification of every natural key into create, update or delete.

    Updates and deletes carry the store-assigned row id they apply to.
    """

    creates: List[OutputRecord] = field(default_factory=list)
    updates: List[Tuple[str, OutputRecord]] = field(default_factory=list)
    deletes: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def create_keys(self) -> Set[str]:
        return {record.key for record in self.creates}

    @property
    def update_keys(self) -> Set[str]:
        return {record.key for _, record in self.updates}

    @property
    def delete_keys(self) -> Set[str]:
        return {key for key, _ in self.deletes}

    @property
    def total(self) -> int:
        return len(self.creates) + len(self.updates) + len(self.deletes)

    def upserts(self) -> List[Tuple[Optional[str], OutputRecord]]:
        """Creates (row id None) and updates merged in display order."""
        merged: List[Tuple[Optional[str], OutputRecord]] = [
            (None, record) for record in self.creates
        ]
        merged.extend(self.updates)
        return sorted(merged, key=lambda item: (item[1].display.lower(), item[1].key))

    def classify(self, key: str) -> Optional[str]:
        """Return the action planned for a key, or None if the key is unknown."""
        if key in self.create_keys:
            return CREATE
        if key in self.update_keys:
            return UPDATE
        if key in self.delete_keys:
            return DELETE
        return None


@dataclass
class ReconcileResult:
    """Outcome of applying a reconciliation plan to a list store."""

    created: int = 0
    updated: int = 0
    deleted: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    dry_run: bool = False
    duration_seconds: float = 0.0

    @property
    def total(self) -> int:
        """Total number of successfully applied changes."""
        return self.created + self.updated + self.deleted

    @property
    def succeeded(self) -> bool:
        return self.failed == 0

    def record_failure(self, message: str) -> None:
        self.failed += 1
        self.errors.append(message)

    def print_summary(self, title: str = "Reconciliation Summary") -> None:
        """Print a formatted summary of the applied changes."""
        print(f"\n📊 {title}:")
        if self.dry_run:
            print("  Mode: dry run (no changes applied)")
        print(f"  Created: {self.created}")
        print(f"  Updated: {self.updated}")
        print(f"  Deleted: {self.deleted}")
        print(f"  Failed: {self.failed}")
        print(f"  Duration: {self.duration_seconds:.2f}s")
        for error in self.errors:
            print(f"  ❌ {error}")

    def __str__(self) -> str:
        mode = " (dry run)" if self.dry_run else ""
        return (
            f"ReconcileResult: {self.total} changes "
            f"({self.created} created, {self.updated} updated, "
            f"{self.deleted} deleted, {self.failed} failed){mode}"
        )
