"""
SharePoint list store implementation backed by Microsoft Graph.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from msgraph.generated.models.field_value_set import FieldValueSet
from msgraph.generated.models.list_item import ListItem

from .base import ListStore
from ..client import AsyncDirectoryClient, is_not_found
from ..exceptions import DestinationNotFoundError
from ..models import DestinationRecord

logger = logging.getLogger(__name__)


def normalize_site_reference(site: str) -> str:
    """
    Convert a SharePoint site URL into a Graph site reference.

    ``https://contoso.sharepoint.com/sites/TeamA`` becomes
    ``contoso.sharepoint.com:/sites/TeamA``; site ids and references already
    in that form are returned unchanged.
    """
    if not site.lower().startswith(("http://", "https://")):
        return site
    parts = urlsplit(site.rstrip("/"))
    if parts.path in ("", "/"):
        return parts.netloc
    return f"{parts.netloc}:{parts.path}"


class SharePointListStore(ListStore):
    """
    Rows of an existing SharePoint list.

    Args:
        client: Directory client whose Graph session is reused
        site: Site URL, ``hostname:/path`` reference or site id
        list_name: Display name (or id) of the list
        field_map: Optional record field name -> list column internal name
    """

    def __init__(
        self,
        client: AsyncDirectoryClient,
        site: str,
        list_name: str,
        field_map: Optional[Dict[str, str]] = None,
        logger_: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.site = site
        self.list_name = list_name
        self.field_map = dict(field_map or {})
        self._reverse_map = {column: name for name, column in self.field_map.items()}
        self._site_id: Optional[str] = None
        self._list_id: Optional[str] = None
        self.logger = logger_ or logger

    async def _resolve(self) -> Tuple[str, str]:
        """Resolve and cache the site id and list id."""
        if self._site_id and self._list_id:
            return self._site_id, self._list_id

        graph = await self.client.get_graph_client()
        site_reference = normalize_site_reference(self.site)
        try:
            site = await graph.sites.by_site_id(site_reference).get()
        except Exception as e:
            if is_not_found(e):
                raise DestinationNotFoundError(f"Site '{self.site}' not found", e) from e
            raise
        if not site or not site.id:
            raise DestinationNotFoundError(f"Site '{self.site}' not found")

        lists_builder = graph.sites.by_site_id(site.id).lists
        lists = await self.client.collect_pages(
            lists_builder, None, f"lists of {self.site}"
        )
        wanted = self.list_name.lower()
        match = next(
            (
                lst
                for lst in lists
                if wanted in (
                    (lst.display_name or "").lower(),
                    (lst.name or "").lower(),
                    (lst.id or "").lower(),
                )
            ),
            None,
        )
        if match is None:
            raise DestinationNotFoundError(
                f"List '{self.list_name}' not found on site '{self.site}'"
            )

        self._site_id, self._list_id = site.id, match.id
        self.logger.info(
            f"Resolved SharePoint list '{self.list_name}' (site: {site.id}, list: {match.id})"
        )
        return self._site_id, self._list_id

    async def open(self) -> None:
        await self._resolve()

    async def _items_builder(self) -> Any:
        site_id, list_id = await self._resolve()
        graph = await self.client.get_graph_client()
        return graph.sites.by_site_id(site_id).lists.by_list_id(list_id).items

    def _to_columns(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return {self.field_map.get(name, name): value for name, value in fields.items()}

    def _from_columns(self, columns: Dict[str, Any]) -> Dict[str, Any]:
        return {self._reverse_map.get(name, name): value for name, value in columns.items()}

    async def list_rows(self) -> List[DestinationRecord]:
        items_builder = await self._items_builder()
        request_configuration = self.client.build_request_configuration(
            items_builder, expand=["fields"]
        )
        items = await self.client.collect_pages(
            items_builder, request_configuration, f"items of {self.list_name}"
        )
        rows = []
        for item in items:
            columns = dict(getattr(item.fields, "additional_data", None) or {})
            rows.append(DestinationRecord(row_id=str(item.id), fields=self._from_columns(columns)))
        self.logger.info(f"Fetched {len(rows)} rows from '{self.list_name}'")
        return rows

    async def create_row(self, fields: Dict[str, Any]) -> str:
        items_builder = await self._items_builder()
        body = ListItem(fields=FieldValueSet(additional_data=self._to_columns(fields)))
        created = await items_builder.post(body)
        return str(created.id) if created and created.id else ""

    async def update_row(self, row_id: str, fields: Dict[str, Any]) -> None:
        items_builder = await self._items_builder()
        body = FieldValueSet(additional_data=self._to_columns(fields))
        await items_builder.by_list_item_id(row_id).fields.patch(body)

    async def delete_row(self, row_id: str) -> None:
        items_builder = await self._items_builder()
        await items_builder.by_list_item_id(row_id).delete()
