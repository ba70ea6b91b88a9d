"""
Guest Users Local File Example

Builds the guest user report, exports it to CSV and mirrors it into a local
JSON list file. Run it twice: the second run only updates rows.

Perfect for:
- Guest access reviews
- Finding guests that never signed in
- Tracking external domains
"""

import asyncio
import logging
from pathlib import Path
from dotenv import load_dotenv
from msgraph_list_sync import AsyncDirectoryClient, LocalFileListStore, Reconciler, get_pipeline
from msgraph_list_sync.report import export_csv


async def main():
    print("=== Guest Users Report ===")

    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)

    logging.basicConfig(level=logging.INFO)

    pipeline = get_pipeline("guest-users")

    async with AsyncDirectoryClient() as client:
        records = await pipeline.collect(client)

    never = [r for r in records if r.fields["LastSignIn"] == "Never"]
    print(f"✓ {len(records)} guests, {len(never)} never signed in")

    export_csv(records, "reports/guest_users.csv", pipeline.columns)

    async with LocalFileListStore("lists/guest_users.json") as store:
        result = await Reconciler(store).reconcile(records, pipeline.key_field)

    print(f"✓ {result}")
    return result


if __name__ == "__main__":
    asyncio.run(main())
