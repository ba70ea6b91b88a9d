"""
Local file-based list store implementation.
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from datetime import datetime, timezone

from .base import JsonDocumentListStore

logger = logging.getLogger(__name__)


class LocalFileListStore(JsonDocumentListStore):
    """Stores list rows in a single local JSON file."""

    def __init__(self, path: Optional[str] = None):
        """
        Initialize local file storage.

        Args:
            path: JSON file holding the rows. If None, defaults to
                  "lists/report.json" in the current working directory.
                  Missing parent directories are created.
        """
        super().__init__()
        self.path = path or os.path.join("lists", "report.json")

        # Store the file name for logging
        self.file_name = Path(self.path).name

        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)

    async def _load_document(self) -> Dict[str, Any]:
        """Read the rows document, or start an empty one."""
        if not os.path.exists(self.path):
            logger.info(f"List file {self.path} does not exist yet, starting empty")
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except Exception as e:
            logger.error(f"Failed to read list file {self.path}: {e}")
            raise
        if not isinstance(data, dict):
            raise ValueError(f"List file {self.path} does not contain a JSON object")
        return data

    async def _save_document(self, document: Dict[str, Any]) -> None:
        """Write the rows document back to disk."""
        document["last_updated"] = datetime.now(timezone.utc).isoformat()
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, default=str)
        except Exception as e:
            logger.error(f"Failed to save list file {self.path}: {e}")
            raise
