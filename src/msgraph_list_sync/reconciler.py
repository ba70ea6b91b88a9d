"""
Reconciliation of freshly computed records against a list store.

The store is made to mirror the fresh record set: rows whose natural key is
still present are overwritten, new keys are created and stale keys are
deleted. Changes are applied one at a time on a best-effort basis.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .models import DestinationRecord, OutputRecord, ReconcileResult, ReconciliationPlan
from .storage.base import ListStore

logger = logging.getLogger(__name__)


def build_key_index(
    rows: Iterable[DestinationRecord],
    key_field: str,
    logger_: Optional[logging.Logger] = None,
) -> Dict[str, str]:
    """
    Index destination rows by natural key (natural key -> row id).

    Rows without a key value are left out. When a key occurs more than once
    the last row wins; the shadowed row is reported and left untouched.
    """
    log = logger_ or logger
    index: Dict[str, str] = {}
    for row in rows:
        key = row.key(key_field)
        if key is None:
            log.warning(f"Row {row.row_id} has no value for '{key_field}', ignoring it")
            continue
        if key in index:
            log.warning(
                f"Duplicate {key_field} '{key}' in destination: row {index[key]} "
                f"is shadowed by row {row.row_id}"
            )
        index[key] = row.row_id
    return index


def plan_reconciliation(
    fresh_records: Iterable[OutputRecord],
    index: Dict[str, str],
    logger_: Optional[logging.Logger] = None,
) -> ReconciliationPlan:
    """
    Classify every key of the fresh set and the destination index.

    Creates and updates are ordered by display value for a reviewable apply
    order; deletes are ordered by key.
    """
    log = logger_ or logger
    fresh: Dict[str, OutputRecord] = {}
    for record in fresh_records:
        if record.key in fresh:
            log.warning(f"Duplicate natural key '{record.key}' in fresh records, last one wins")
        fresh[record.key] = record

    ordered = sorted(fresh.values(), key=lambda r: (r.display.lower(), r.key))

    plan = ReconciliationPlan()
    for record in ordered:
        row_id = index.get(record.key)
        if row_id is None:
            plan.creates.append(record)
        else:
            plan.updates.append((row_id, record))

    for key in sorted(index):
        if key not in fresh:
            plan.deletes.append((key, index[key]))

    return plan


class Reconciler:
    """Applies reconciliation plans to one list store."""

    def __init__(self, store: ListStore, logger_: Optional[logging.Logger] = None):
        self.store = store
        self.logger = logger_ or logger

    async def plan(
        self, fresh_records: List[OutputRecord], key_field: str
    ) -> ReconciliationPlan:
        """Fetch the destination rows and compute the plan without applying it."""
        rows = await self.store.list_rows()
        index = build_key_index(rows, key_field, self.logger)
        plan = plan_reconciliation(fresh_records, index, self.logger)
        self.logger.info(
            f"Reconciliation plan: {len(plan.creates)} to create, "
            f"{len(plan.updates)} to update, {len(plan.deletes)} to delete"
        )
        return plan

    async def reconcile(
        self,
        fresh_records: List[OutputRecord],
        key_field: str,
        dry_run: bool = False,
    ) -> ReconcileResult:
        """
        Make the store mirror the fresh records.

        Args:
            fresh_records: The freshly computed records
            key_field: Store field holding the natural key
            dry_run: If True, only compute and log the plan

        Returns:
            Counts of applied changes and failures. A failing create, update
            or delete is logged and counted; the remaining changes still run.
        """
        start_time = datetime.now(timezone.utc)
        plan = await self.plan(fresh_records, key_field)
        result = ReconcileResult(dry_run=dry_run)

        if dry_run:
            for record in plan.creates:
                self.logger.info(f"[dry run] Would create '{record.display}' ({record.key})")
            for row_id, record in plan.updates:
                self.logger.info(f"[dry run] Would update '{record.display}' (row {row_id})")
            for key, row_id in plan.deletes:
                self.logger.info(f"[dry run] Would delete {key} (row {row_id})")
            result.created = len(plan.creates)
            result.updated = len(plan.updates)
            result.deleted = len(plan.deletes)
            result.duration_seconds = (datetime.now(timezone.utc) - start_time).total_seconds()
            return result

        for row_id, record in plan.upserts():
            fields = dict(record.fields)
            fields[key_field] = record.key
            if row_id is None:
                try:
                    new_row_id = await self.store.create_row(fields)
                    result.created += 1
                    self.logger.info(
                        f"Created '{record.display}' ({record.key}) as row {new_row_id}"
                    )
                except Exception as e:
                    self.logger.error(f"Failed to create '{record.display}' ({record.key}): {e}")
                    result.record_failure(f"create {record.key}: {e}")
            else:
                try:
                    await self.store.update_row(row_id, fields)
                    result.updated += 1
                    self.logger.info(f"Updated '{record.display}' (row {row_id})")
                except Exception as e:
                    self.logger.error(f"Failed to update '{record.display}' (row {row_id}): {e}")
                    result.record_failure(f"update {record.key}: {e}")

        for key, row_id in plan.deletes:
            try:
                await self.store.delete_row(row_id)
                result.deleted += 1
                self.logger.info(f"Deleted {key} (row {row_id})")
            except Exception as e:
                self.logger.error(f"Failed to delete {key} (row {row_id}): {e}")
                result.record_failure(f"delete {key}: {e}")

        result.duration_seconds = (datetime.now(timezone.utc) - start_time).total_seconds()
        self.logger.info(str(result))
        return result
