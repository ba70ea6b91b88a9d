"""
Command line entry point.

Usage examples::

    msgraph-list-sync service-principals
    msgraph-list-sync guest-users --csv guests.csv
    msgraph-list-sync service-principals \\
        --sharepoint-site https://contoso.sharepoint.com/sites/IT --sharepoint-list "SSO Apps"
    msgraph-list-sync intune-apps --local-file lists/intune.json --dry-run
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .client import AsyncDirectoryClient
from .config import Settings
from .exceptions import ListSyncError
from .pipelines import PIPELINES, get_pipeline
from .reconciler import Reconciler
from .report import export_csv, print_report
from .storage import AzureBlobListStore, LocalFileListStore, SharePointListStore
from .storage.base import ListStore

logger = logging.getLogger("msgraph_list_sync")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="msgraph-list-sync",
        description="Build directory reports from Microsoft Graph and mirror them into a list store.",
    )
    parser.add_argument("report", choices=sorted(PIPELINES), help="Report to run")
    parser.add_argument("--csv", metavar="PATH", help="Export the report to a CSV file")
    parser.add_argument(
        "--print", dest="print_report", action="store_true",
        help="Print the report table (default when no other output is given)",
    )

    sink = parser.add_mutually_exclusive_group()
    sink.add_argument("--sharepoint-list", metavar="NAME", help="Mirror into this SharePoint list")
    sink.add_argument("--local-file", metavar="PATH", help="Mirror into a local JSON file")
    sink.add_argument("--blob", metavar="NAME", help="Mirror into a JSON blob in Azure Blob Storage")

    parser.add_argument("--sharepoint-site", metavar="URL", help="Site of the SharePoint list")
    parser.add_argument("--container", help="Blob container (default: from settings)")
    parser.add_argument("--dry-run", action="store_true", help="Compute the changes without applying them")
    parser.add_argument("--env-file", default=".env", help="Environment file to load (default: .env)")
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: from settings)",
    )
    return parser


def _build_store(
    args: argparse.Namespace, settings: Settings, client: AsyncDirectoryClient
) -> Optional[ListStore]:
    if args.local_file:
        return LocalFileListStore(args.local_file)
    if args.blob:
        return AzureBlobListStore(
            blob_name=args.blob, container_name=args.container or settings.blob_container
        )
    list_name = args.sharepoint_list or settings.sharepoint_list
    site = args.sharepoint_site or settings.sharepoint_site
    if list_name:
        if not site:
            raise ListSyncError("A SharePoint list requires --sharepoint-site or SHAREPOINT_SITE")
        return SharePointListStore(client, site, list_name)
    if settings.local_file:
        return LocalFileListStore(settings.local_file)
    return None


async def run(args: argparse.Namespace, settings: Settings) -> int:
    pipeline = get_pipeline(args.report)

    async with AsyncDirectoryClient(scopes=settings.scopes) as client:
        store = _build_store(args, settings, client)
        try:
            # Resolve the destination before spending time on the directory
            if store is not None:
                await store.open()

            records = await pipeline.collect(client)

            if args.csv:
                export_csv(records, args.csv, pipeline.columns)
                print(f"✓ Wrote {len(records)} rows to {args.csv}")

            if args.print_report or (not args.csv and store is None):
                print_report(records, pipeline.columns, title=pipeline.description)

            if store is not None:
                result = await Reconciler(store).reconcile(
                    records, pipeline.key_field, dry_run=args.dry_run
                )
                result.print_summary(f"{pipeline.name} sync")
        finally:
            if store is not None:
                await store.close()

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env(args.env_file)

    logging.basicConfig(
        level=getattr(logging, args.log_level or settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Silence verbose HTTP request logging
    logging.getLogger("azure.core.pipeline.policies.http_logging_policy").setLevel(
        logging.WARNING
    )

    try:
        return asyncio.run(run(args, settings))
    except ListSyncError as e:
        logger.error(e.message)
        print(f"❌ {e.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted, the destination may be partially updated")
        return 130


if __name__ == "__main__":
    sys.exit(main())
