"""
Settings loaded from environment variables and an optional .env file.

Azure credentials themselves are read by DefaultAzureCredential
(AZURE_TENANT_ID, AZURE_CLIENT_ID, AZURE_CLIENT_SECRET, ...).
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_SCOPES = ["https://graph.microsoft.com/.default"]


@dataclass
class Settings:
    """Runtime settings; CLI flags override these values."""

    scopes: List[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))
    sharepoint_site: Optional[str] = None
    sharepoint_list: Optional[str] = None
    local_file: Optional[str] = None
    blob_container: str = "lists"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Optional[str] = ".env") -> "Settings":
        """Build settings from the environment, loading the .env file if it exists."""
        if env_file and Path(env_file).exists():
            load_dotenv(env_file)
            logger.debug(f"Loaded environment variables from {env_file}")

        scopes = os.getenv("GRAPH_SCOPES")
        return cls(
            scopes=[s.strip() for s in scopes.split(",") if s.strip()]
            if scopes
            else list(DEFAULT_SCOPES),
            sharepoint_site=os.getenv("SHAREPOINT_SITE") or None,
            sharepoint_list=os.getenv("SHAREPOINT_LIST") or None,
            local_file=os.getenv("LIST_SYNC_LOCAL_FILE") or None,
            blob_container=os.getenv("LIST_SYNC_BLOB_CONTAINER") or "lists",
            log_level=(os.getenv("LIST_SYNC_LOG_LEVEL") or "INFO").upper(),
        )
