"""
Base abstract class for list store implementations.
"""

import logging
from typing import Any, Dict, List

from ..models import DestinationRecord

logger = logging.getLogger(__name__)


class ListStore:
    """Abstract base class for tabular stores that receive report rows."""

    async def list_rows(self) -> List[DestinationRecord]:
        """
        List every row currently in the store.

        Returns:
            Rows with their store-assigned id and field values
        """
        logger.debug("ListStore.list_rows() not implemented")
        raise NotImplementedError

    async def create_row(self, fields: Dict[str, Any]) -> str:
        """
        Create a row from a field name -> value mapping.

        Args:
            fields: The field values of the new row

        Returns:
            The store-assigned id of the new row
        """
        logger.debug("ListStore.create_row() not implemented")
        raise NotImplementedError

    async def update_row(self, row_id: str, fields: Dict[str, Any]) -> None:
        """
        Overwrite the fields of an existing row.

        Args:
            row_id: The store-assigned row id
            fields: The complete set of field values
        """
        logger.debug("ListStore.update_row() not implemented")
        raise NotImplementedError

    async def delete_row(self, row_id: str) -> None:
        """
        Delete a row.

        Args:
            row_id: The store-assigned row id
        """
        logger.debug("ListStore.delete_row() not implemented")
        raise NotImplementedError

    async def open(self) -> None:
        """
        Resolve the destination before any work is done.
        Default implementation does nothing.

        Raises:
            DestinationNotFoundError: if the destination does not exist
        """
        logger.debug("ListStore.open() default implementation called")

    async def close(self) -> None:
        """
        Clean up any resources used by the store implementation.
        Default implementation does nothing.
        """
        logger.debug("ListStore.close() default implementation called")
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def _next_row_id(rows: Dict[str, Any]) -> int:
    """Return one past the highest numeric row id."""
    numeric = [int(row_id) for row_id in rows if str(row_id).isdigit()]
    return max(numeric, default=0) + 1


class JsonDocumentListStore(ListStore):
    """
    A list store kept as one JSON document.

    Document layout::

        {"rows": {"<row id>": {<fields>}}, "next_id": 1, "last_updated": "..."}

    Subclasses provide :meth:`_load_document` and :meth:`_save_document`.
    The document is loaded once and written back after every change.
    """

    def __init__(self):
        self._document: Dict[str, Any] = {}
        self._loaded = False

    async def _load_document(self) -> Dict[str, Any]:
        raise NotImplementedError

    async def _save_document(self, document: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def _ensure_loaded(self) -> Dict[str, Any]:
        if not self._loaded:
            document = await self._load_document() or {}
            document.setdefault("rows", {})
            document.setdefault("next_id", _next_row_id(document["rows"]))
            self._document = document
            self._loaded = True
        return self._document

    async def _commit(self, rows: Dict[str, Any], next_id: int) -> None:
        """Save a changed copy of the document; the loaded one is replaced only on success."""
        document = dict(self._document, rows=rows, next_id=next_id)
        await self._save_document(document)
        self._document = document

    async def open(self) -> None:
        await self._ensure_loaded()

    async def list_rows(self) -> List[DestinationRecord]:
        document = await self._ensure_loaded()
        return [
            DestinationRecord(row_id=row_id, fields=dict(fields))
            for row_id, fields in document["rows"].items()
        ]

    async def create_row(self, fields: Dict[str, Any]) -> str:
        document = await self._ensure_loaded()
        next_id = max(int(document["next_id"]), _next_row_id(document["rows"]))
        row_id = str(next_id)
        rows = dict(document["rows"])
        rows[row_id] = dict(fields)
        await self._commit(rows, next_id + 1)
        return row_id

    async def update_row(self, row_id: str, fields: Dict[str, Any]) -> None:
        document = await self._ensure_loaded()
        if row_id not in document["rows"]:
            raise KeyError(f"Row {row_id} does not exist")
        rows = dict(document["rows"])
        rows[row_id] = dict(fields)
        await self._commit(rows, document["next_id"])

    async def delete_row(self, row_id: str) -> None:
        document = await self._ensure_loaded()
        if row_id not in document["rows"]:
            raise KeyError(f"Row {row_id} does not exist")
        rows = dict(document["rows"])
        del rows[row_id]
        await self._commit(rows, document["next_id"])
