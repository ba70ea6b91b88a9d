"""Test configuration and fixtures."""

import pytest
import logging
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from kiota_abstractions.api_error import APIError

from msgraph_list_sync.client import is_not_found
from msgraph_list_sync.models import DestinationRecord
from msgraph_list_sync.storage.base import ListStore


def pytest_configure(config):
    """Configure pytest with custom settings."""
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def make_api_error(status_code: int, message: str = "request failed") -> APIError:
    error = APIError()
    error.message = message
    error.response_status_code = status_code
    return error


class FakeDirectoryClient:
    """In-memory stand-in for AsyncDirectoryClient."""

    def __init__(
        self,
        entities: Optional[Dict[str, Any]] = None,
        related: Optional[Dict[tuple, Any]] = None,
        groups: Optional[Dict[str, Any]] = None,
    ):
        self.entities = entities or {}
        self.related = related or {}
        self.groups = groups or {}
        self.calls: List[tuple] = []
        self.closed = False

    async def list_entities(self, resource, select=None, filter=None, top=None, expand=None):
        self.calls.append(("list_entities", resource, select, filter))
        value = self.entities.get(resource, [])
        if isinstance(value, Exception):
            raise value
        return list(value)

    async def get_entity(self, resource, entity_id, select=None):
        self.calls.append(("get_entity", resource, entity_id))
        value = self.groups.get(entity_id) if resource == "groups" else None
        if isinstance(value, Exception):
            raise value
        return value

    async def list_related(self, resource, entity_id, relation, select=None, missing_ok=False):
        self.calls.append(("list_related", resource, entity_id, relation))
        value = self.related.get((resource, entity_id, relation), [])
        if isinstance(value, Exception):
            if missing_ok and is_not_found(value):
                return []
            raise value
        return list(value)

    async def close(self):
        self.closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class MemoryListStore(ListStore):
    """List store kept in a dict, with optional per-row failures."""

    def __init__(self, rows: Optional[Dict[str, Dict[str, Any]]] = None):
        self.rows: Dict[str, Dict[str, Any]] = {k: dict(v) for k, v in (rows or {}).items()}
        self.next_id = len(self.rows) + 100
        self.fail_keys: set = set()
        self.fail_row_ids: set = set()
        self.operations: List[tuple] = []
        self.closed = False

    async def list_rows(self):
        return [DestinationRecord(row_id=k, fields=dict(v)) for k, v in self.rows.items()]

    async def create_row(self, fields):
        if fields.get("AppId") in self.fail_keys:
            raise RuntimeError("create rejected")
        row_id = str(self.next_id)
        self.next_id += 1
        self.rows[row_id] = dict(fields)
        self.operations.append(("create", row_id))
        return row_id

    async def update_row(self, row_id, fields):
        if row_id in self.fail_row_ids:
            raise RuntimeError("update rejected")
        self.rows[row_id] = dict(fields)
        self.operations.append(("update", row_id))

    async def delete_row(self, row_id):
        if row_id in self.fail_row_ids:
            raise RuntimeError("delete rejected")
        del self.rows[row_id]
        self.operations.append(("delete", row_id))

    async def close(self):
        self.closed = True

    def keys(self, key_field: str = "AppId") -> set:
        return {fields.get(key_field) for fields in self.rows.values()}


def service_principal(
    sp_id: str,
    app_id: str,
    name: str,
    mode: str = "saml",
    assignment_required: bool = True,
    key_credentials: Optional[list] = None,
) -> SimpleNamespace:
    return SimpleNamespace(
        id=sp_id,
        app_id=app_id,
        display_name=name,
        preferred_single_sign_on_mode=mode,
        app_role_assignment_required=assignment_required,
        account_enabled=True,
        key_credentials=key_credentials or [],
    )


@pytest.fixture
def fake_client_factory():
    """Provide the FakeDirectoryClient class."""
    return FakeDirectoryClient


@pytest.fixture
def memory_store_factory():
    """Provide the MemoryListStore class."""
    return MemoryListStore
