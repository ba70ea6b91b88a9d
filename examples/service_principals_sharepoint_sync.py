"""
Service Principals to SharePoint List Example

Mirrors every single sign-on application that requires assignment into an
existing SharePoint list. The list must already contain columns named after
the report fields (or pass a field_map to SharePointListStore).

Environment:
- AZURE_TENANT_ID / AZURE_CLIENT_ID / AZURE_CLIENT_SECRET (or any other
  DefaultAzureCredential source) with Application.Read.All and
  Sites.ReadWrite.All
- SHAREPOINT_SITE, e.g. https://contoso.sharepoint.com/sites/IT
- SHAREPOINT_LIST, e.g. "SSO Applications"
"""

import asyncio
import logging
import os
from pathlib import Path
from dotenv import load_dotenv
from msgraph_list_sync import AsyncDirectoryClient, SharePointListStore, get_pipeline


async def main():
    print("=== Service Principals -> SharePoint List ===")

    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)

    logging.basicConfig(level=logging.WARNING)

    pipeline = get_pipeline("service-principals")

    async with AsyncDirectoryClient() as client:
        store = SharePointListStore(
            client,
            site=os.environ["SHAREPOINT_SITE"],
            list_name=os.environ["SHAREPOINT_LIST"],
            field_map={"DisplayName": "Title"},
        )
        result = await pipeline.sync(client, store)

    result.print_summary("SSO Applications")
    return result


if __name__ == "__main__":
    asyncio.run(main())
