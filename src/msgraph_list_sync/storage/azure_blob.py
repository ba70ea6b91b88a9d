"""
Azure Blob Storage list store implementation.
"""

import os
import json
import logging
from typing import Any, Dict, Optional
from datetime import datetime, timezone

from .base import JsonDocumentListStore
from ..exceptions import DestinationNotFoundError
from azure.storage.blob.aio import BlobServiceClient
from azure.identity.aio import DefaultAzureCredential
from azure.core.exceptions import ResourceNotFoundError

logger = logging.getLogger(__name__)

AZURITE_CONNECTION_STRING = (
    "DefaultEndpointsProtocol=http;AccountName=devstoreaccount1;"
    "AccountKey=Eby8vdM02xNOcqFlqUwJPLlmEtlCDXJ1OUzFT50uSRZ6IFsuFq2UVErCz4I6tq/K1SZFPTOtr/KBHBeksoGMGw==;"
    "BlobEndpoint=http://127.0.0.1:10000/devstoreaccount1;"
)


def _account_from_connection_string(conn_str: str) -> str:
    if "AccountName=" in conn_str:
        return conn_str.split("AccountName=")[1].split(";")[0]
    return "unknown"


class AzureBlobListStore(JsonDocumentListStore):
    """
    Stores list rows as one JSON blob in Azure Blob Storage.

    Authentication priority:
    1. Explicit connection_string parameter (for local dev)
    2. Explicit account_url + credential parameters
    3. Managed identity with AZURE_STORAGE_ACCOUNT_NAME env var (production)
    4. Environment variables (AZURE_STORAGE_CONNECTION_STRING, AzureWebJobsStorage)
    5. Azure Functions local.settings.json (local dev fallback)
    6. Default Azurite configuration (localhost fallback)

    Args:
        blob_name: Name of the JSON blob holding the rows
        container_name: Container name (default: "lists"). The container must exist.
        account_url: Storage account URL (e.g., https://myaccount.blob.core.windows.net)
        credential: Azure credential (if None, uses DefaultAzureCredential)
        connection_string: Alternative to account_url+credential for local dev
        local_settings_path: Path to local.settings.json for Azure Functions local dev
    """

    def __init__(
        self,
        blob_name: str = "report.json",
        container_name: str = "lists",
        account_url: Optional[str] = None,
        credential: Optional[DefaultAzureCredential] = None,
        connection_string: Optional[str] = None,
        local_settings_path: str = "local.settings.json",
    ):
        super().__init__()
        self.blob_name = blob_name
        self.container_name = container_name
        self._local_settings_path = local_settings_path
        self._blob_service_client = None
        self._credential_created = False

        if connection_string:
            self._connection_string = connection_string
            self._account_url = None
            self._credential = None
        elif account_url and credential:
            self._account_url = account_url
            self._credential = credential
            self._connection_string = None
        else:
            detected = self._detect_connection_with_priority()
            self._connection_string = detected.get("connection_string")
            self._account_url = detected.get("account_url")
            self._credential = detected.get("credential")

    def _detect_connection_with_priority(self) -> dict:
        """
        Detect connection details using priority order:
        1. Managed identity with AZURE_STORAGE_ACCOUNT_NAME (production)
        2. Environment variables (AZURE_STORAGE_CONNECTION_STRING, AzureWebJobsStorage)
        3. Azure Functions local.settings.json (local dev fallback)
        4. Default Azurite configuration (localhost fallback)
        """
        account_name = os.getenv("AZURE_STORAGE_ACCOUNT_NAME")
        if account_name:
            logger.info(
                f"Azure Blob Storage: Using managed identity with account '{account_name}'"
            )
            return {
                "account_url": f"https://{account_name}.blob.core.windows.net",
                "credential": None,
                "connection_string": None,
            }

        conn_str = os.getenv("AZURE_STORAGE_CONNECTION_STRING") or os.getenv(
            "AzureWebJobsStorage"
        )
        if conn_str:
            env_var_name = (
                "AZURE_STORAGE_CONNECTION_STRING"
                if os.getenv("AZURE_STORAGE_CONNECTION_STRING")
                else "AzureWebJobsStorage"
            )
            logger.info(
                f"Azure Blob Storage: Using connection string from {env_var_name} "
                f"(account: {_account_from_connection_string(conn_str)})"
            )
            return {"connection_string": conn_str, "account_url": None, "credential": None}

        try:
            if os.path.exists(self._local_settings_path):
                with open(self._local_settings_path, "r") as f:
                    settings = json.load(f)
                conn_str = settings.get("Values", {}).get("AzureWebJobsStorage")
                if conn_str:
                    logger.info(
                        f"Azure Blob Storage: Using connection string from "
                        f"{self._local_settings_path} "
                        f"(account: {_account_from_connection_string(conn_str)})"
                    )
                    return {
                        "connection_string": conn_str,
                        "account_url": None,
                        "credential": None,
                    }
        except Exception as e:
            # local.settings.json is optional
            logger.debug(f"Could not read {self._local_settings_path}: {e}")

        logger.info(
            "Azure Blob Storage: Using Azurite emulator (localhost:10000) - local development fallback"
        )
        return {
            "connection_string": AZURITE_CONNECTION_STRING,
            "account_url": None,
            "credential": None,
        }

    async def _get_blob_service_client(self) -> BlobServiceClient:
        """Get or create blob service client."""
        if self._blob_service_client is None:
            if self._connection_string:
                self._blob_service_client = BlobServiceClient.from_connection_string(
                    self._connection_string
                )
                logger.debug("Created BlobServiceClient from connection string")
            else:
                if not self._account_url:
                    raise ValueError(
                        "No account URL or connection string available for Azure Blob Storage"
                    )

                credential = self._credential
                if credential is None:
                    credential = DefaultAzureCredential()
                    self._credential = credential
                    self._credential_created = True
                    logger.debug("Created DefaultAzureCredential for Azure Blob Storage")

                self._blob_service_client = BlobServiceClient(
                    account_url=self._account_url, credential=credential
                )
                logger.debug(f"Created BlobServiceClient for {self._account_url}")

        return self._blob_service_client

    async def _get_blob_client(self):
        blob_service_client = await self._get_blob_service_client()
        return blob_service_client.get_blob_client(
            container=self.container_name, blob=self.blob_name
        )

    async def _load_document(self) -> Dict[str, Any]:
        """Download the rows document, or start an empty one."""
        blob_service_client = await self._get_blob_service_client()
        container_client = blob_service_client.get_container_client(self.container_name)
        try:
            await container_client.get_container_properties()
        except ResourceNotFoundError as e:
            raise DestinationNotFoundError(
                f"Container '{self.container_name}' not found in Azure Blob Storage", e
            ) from e

        blob_client = await self._get_blob_client()
        try:
            download_stream = await blob_client.download_blob()
            content = await download_stream.readall()
        except ResourceNotFoundError:
            logger.info(
                f"Blob '{self.blob_name}' does not exist yet in '{self.container_name}', starting empty"
            )
            return {}

        data = json.loads(content.decode("utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Blob '{self.blob_name}' does not contain a JSON object")
        return data

    async def _save_document(self, document: Dict[str, Any]) -> None:
        """Upload the rows document, replacing the previous version."""
        document["last_updated"] = datetime.now(timezone.utc).isoformat()
        try:
            blob_client = await self._get_blob_client()
            content = json.dumps(document, indent=2, default=str).encode("utf-8")
            await blob_client.upload_blob(content, overwrite=True)
            logger.debug(f"Saved {len(document['rows'])} rows to blob '{self.blob_name}'")
        except Exception as e:
            logger.error(f"Failed to save rows to Azure Blob Storage: {e}")
            raise

    async def close(self):
        """Close the blob service client and credential."""
        if self._blob_service_client:
            await self._blob_service_client.close()
            self._blob_service_client = None

        if self._credential and self._credential_created:
            try:
                await self._credential.close()
            except Exception as e:
                logger.debug(f"Error closing credential: {e}")
            self._credential = None
            self._credential_created = False
