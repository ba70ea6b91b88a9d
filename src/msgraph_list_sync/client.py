"""
Microsoft Graph directory client using the official Microsoft Graph SDK.

This module provides an async client for property-scoped, auto-paginated
listing of directory entities, point lookups, and listing of sub-resources
(assignments, credentials, synchronization jobs) scoped to a parent entity.
"""

import logging

import asyncio
from typing import Optional, Any, Dict, List, Tuple
from azure.identity.aio import DefaultAzureCredential
from kiota_abstractions.api_error import APIError
from kiota_abstractions.base_request_configuration import RequestConfiguration
from msgraph.graph_service_client import GraphServiceClient
from .exceptions import DirectoryServiceError

logger = logging.getLogger(__name__)


def is_not_found(error: BaseException) -> bool:
    """Return True if the error is a Graph API 404 response."""
    return (
        isinstance(error, APIError)
        and getattr(error, "response_status_code", None) == 404
    )


class AsyncDirectoryClient:
    """
    Async Microsoft Graph client for directory reporting.

    All calls are awaited one at a time. Listing follows every
    ``@odata.nextLink`` so callers always receive fully materialized results.
    """

    # resource name -> (attribute path on GraphServiceClient, item accessor)
    SUPPORTED_RESOURCES: Dict[str, Tuple[str, str]] = {
        "users": ("users", "by_user_id"),
        "groups": ("groups", "by_group_id"),
        "applications": ("applications", "by_application_id"),
        "servicePrincipals": ("service_principals", "by_service_principal_id"),
        "mobileApps": ("device_app_management.mobile_apps", "by_mobile_app_id"),
    }

    def __init__(
        self,
        credential: Optional[DefaultAzureCredential] = None,
        scopes: Optional[List[str]] = None,
        logger_: Optional[logging.Logger] = None,
    ):
        """
        Initialize the directory client.

        Args:
            credential: Azure credential for authentication. When omitted a
                DefaultAzureCredential is created on first use and closed
                together with the client.
            scopes: OAuth scopes for Graph API access
        """
        self.credential = credential
        self.scopes = scopes or ["https://graph.microsoft.com/.default"]
        self._graph_client: Optional[GraphServiceClient] = None
        self._credential_created = False
        self._initialized = False
        self._closed = False
        self.logger = logger_ or logger

        credential_info = (
            type(credential).__name__ if credential else "DefaultAzureCredential"
        )
        self.logger.info(
            f"Using {credential_info} for Microsoft Graph (scopes: {', '.join(self.scopes)})"
        )

        self._set_external_log_levels()

    def _set_external_log_levels(self):
        """
        Set log levels for external libraries (azure.identity.aio, httpx) to match this module's effective logger level.
        """
        ext_level = self.logger.getEffectiveLevel()
        logging.getLogger("azure.identity.aio").setLevel(ext_level)
        logging.getLogger("httpx").setLevel(ext_level)

    async def _initialize(self) -> None:
        """Initialize the Graph client and authentication."""
        if self._initialized and not self._closed:
            return

        # Reset state if we were previously closed
        if self._closed:
            self._closed = False
            self._initialized = False

        try:
            if self.credential is None:
                self.credential = DefaultAzureCredential()
                self._credential_created = True
                self.logger.debug("Created DefaultAzureCredential")

            self._graph_client = GraphServiceClient(
                credentials=self.credential, scopes=self.scopes
            )
        except Exception as e:
            self.logger.error(f"Failed to establish Microsoft Graph session: {e}")
            raise DirectoryServiceError(
                f"Failed to establish Microsoft Graph session: {e}", e
            ) from e

        self.logger.debug("Created GraphServiceClient with Microsoft Graph SDK")
        self._initialized = True

    async def get_graph_client(self) -> GraphServiceClient:
        """Return the underlying GraphServiceClient, initializing it if needed."""
        await self._initialize()
        if not self._graph_client:
            raise DirectoryServiceError("Graph client not initialized")
        return self._graph_client

    async def _internal_close(self) -> None:
        """Internal close method - can be called multiple times safely."""
        if self._closed:
            return

        self.logger.debug("Starting _internal_close()")
        self._closed = True

        # The SDK manages its own HTTP client lifecycle
        self._graph_client = None

        # Close credential if we created it
        if self.credential and self._credential_created:
            try:
                await self.credential.close()
                self.logger.debug("Closed DefaultAzureCredential")
            except Exception as e:
                self.logger.warning(f"Error closing credential: {e}")
            self.credential = None

        self._credential_created = False
        self._initialized = False
        self.logger.debug("Completed _internal_close()")

    def _resolve_resource(self, resource: str) -> Tuple[str, str]:
        for name, target in self.SUPPORTED_RESOURCES.items():
            if name.lower() == resource.lower():
                return target
        raise ValueError(
            f"Unsupported resource type: {resource}. "
            f"Supported types: {list(self.SUPPORTED_RESOURCES.keys())}"
        )

    @staticmethod
    def _walk(root: Any, path: str) -> Any:
        """Follow a dotted attribute path (e.g. 'synchronization.jobs')."""
        target = root
        for part in path.split("."):
            target = getattr(target, part)
        return target

    def _get_collection_builder(self, resource: str) -> Any:
        """Get the collection request builder for the resource type."""
        if not self._graph_client:
            raise ValueError("Graph client not initialized")
        path, _ = self._resolve_resource(resource)
        return self._walk(self._graph_client, path)

    def _get_item_builder(self, resource: str, entity_id: str) -> Any:
        """Get the item request builder for one entity of the resource type."""
        _, accessor = self._resolve_resource(resource)
        collection = self._get_collection_builder(resource)
        return getattr(collection, accessor)(entity_id)

    def build_request_configuration(
        self,
        request_builder: Any,
        select: Optional[List[str]] = None,
        filter: Optional[str] = None,
        top: Optional[int] = None,
        expand: Optional[List[str]] = None,
    ) -> Optional[RequestConfiguration]:
        """Build a request configuration using the builder's query parameter class."""
        params: Dict[str, Any] = {}
        if select:
            params["select"] = select
        if filter:
            params["filter"] = filter
        if top:
            params["top"] = top
        if expand:
            params["expand"] = expand

        if not params:
            return None

        # Every SDK builder exposes <BuilderClass>GetQueryParameters as an inner class
        class_name = f"{type(request_builder).__name__}GetQueryParameters"
        QueryParamsClass = getattr(request_builder, class_name, None)
        if QueryParamsClass is None:
            raise ValueError(
                f"{type(request_builder).__name__} does not support query parameters"
            )

        query_params_obj = QueryParamsClass()
        for key, value in params.items():
            setattr(query_params_obj, key, value)

        return RequestConfiguration(query_parameters=query_params_obj)

    async def collect_pages(
        self,
        request_builder: Any,
        request_configuration: Optional[RequestConfiguration],
        description: str,
    ) -> List[Any]:
        """Execute a collection request and follow every next link."""
        items: List[Any] = []
        page = 0

        response = await request_builder.get(
            request_configuration=request_configuration
        )

        while response:
            page += 1
            values = list(getattr(response, "value", None) or [])
            items.extend(values)
            self.logger.debug(
                f"Page {page} of {description}: received {len(values)} objects "
                f"(cumulative: {len(items)})"
            )

            next_link = getattr(response, "odata_next_link", None)
            if not next_link:
                break

            self.logger.debug(f"Following next page URL: {next_link}")
            response = await request_builder.with_url(next_link).get()

        return items

    async def list_entities(
        self,
        resource: str,
        select: Optional[List[str]] = None,
        filter: Optional[str] = None,
        top: Optional[int] = None,
        expand: Optional[List[str]] = None,
    ) -> List[Any]:
        """
        List all entities of a resource type, following every page.

        Returns native SDK objects (User, Group, ServicePrincipal, MobileApp).

        Args:
            resource: The resource type (e.g., "servicePrincipals", "users")
            select: List of properties to request
            filter: OData filter expression evaluated server-side
            top: Maximum items per page
            expand: Navigation properties to expand

        Raises:
            DirectoryServiceError: if any page fails; no partial result is returned
        """
        await self._initialize()
        request_builder = self._get_collection_builder(resource)
        request_configuration = self.build_request_configuration(
            request_builder, select=select, filter=filter, top=top, expand=expand
        )

        self.logger.info(f"Listing {resource}")
        try:
            entities = await self.collect_pages(
                request_builder, request_configuration, resource
            )
        except Exception as e:
            self.logger.error(f"Failed to list {resource}: {e}")
            raise DirectoryServiceError(f"Failed to list {resource}: {e}", e) from e

        self.logger.info(f"Listed {len(entities)} {resource}")
        return entities

    async def get_entity(
        self,
        resource: str,
        entity_id: str,
        select: Optional[List[str]] = None,
    ) -> Optional[Any]:
        """Look up one entity by id. Returns None if it does not exist."""
        await self._initialize()
        request_builder = self._get_item_builder(resource, entity_id)
        request_configuration = self.build_request_configuration(
            request_builder, select=select
        )
        try:
            return await request_builder.get(
                request_configuration=request_configuration
            )
        except Exception as e:
            if is_not_found(e):
                self.logger.debug(f"{resource}/{entity_id} not found")
                return None
            raise

    async def list_related(
        self,
        resource: str,
        entity_id: str,
        relation: str,
        select: Optional[List[str]] = None,
        missing_ok: bool = False,
    ) -> List[Any]:
        """
        List a sub-resource collection of one entity, following every page.

        Args:
            resource: The parent resource type
            entity_id: The parent entity id
            relation: Dotted SDK attribute path below the item builder
                (e.g., "app_role_assigned_to", "synchronization.jobs")
            select: List of properties to request
            missing_ok: If True, a 404 response yields an empty list
        """
        await self._initialize()
        item_builder = self._get_item_builder(resource, entity_id)
        request_builder = self._walk(item_builder, relation)
        request_configuration = self.build_request_configuration(
            request_builder, select=select
        )
        try:
            return await self.collect_pages(
                request_builder,
                request_configuration,
                f"{resource}/{entity_id}/{relation}",
            )
        except Exception as e:
            if missing_ok and is_not_found(e):
                self.logger.debug(
                    f"{relation} not found for {resource}/{entity_id}"
                )
                return []
            raise

    async def close(self) -> None:
        """
        Close the client and clean up resources.

        This method should be called when you're done with the client to ensure
        the credential it created is closed.
        """
        await self._internal_close()

    async def __aenter__(self):
        """Async context manager entry."""
        await self._initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit - ensures cleanup."""
        await self.close()

    def __del__(self) -> None:
        """Destructor - schedule cleanup if not already closed."""
        if getattr(self, "_initialized", False) and not self._closed:
            try:
                loop = asyncio.get_running_loop()
                loop.create_task(self._internal_close())
            except RuntimeError:
                self.logger.warning(
                    "AsyncDirectoryClient destroyed without proper cleanup "
                    "(no running event loop)"
                )
