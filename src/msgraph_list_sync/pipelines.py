"""
Report pipelines: compositions of fetcher, enricher and reconciler.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Type

from .client import AsyncDirectoryClient
from .enricher import (
    Enricher,
    GuestUserEnricher,
    IntuneAppEnricher,
    ServicePrincipalEnricher,
)
from .fetcher import Predicate, SourceFetcher, all_of, field_equals, field_in
from .models import EntityQuery, OutputRecord, ReconcileResult
from .reconciler import Reconciler
from .storage.base import ListStore

logger = logging.getLogger(__name__)

SSO_MODES = ["saml", "oidc", "password", "linked"]


@dataclass
class ReportPipeline:
    """One fetch / enrich / reconcile report."""

    name: str
    description: str
    query: EntityQuery
    enricher_class: Type[Enricher]
    predicate: Optional[Predicate] = None

    @property
    def key_field(self) -> str:
        return self.enricher_class.key_field

    @property
    def columns(self) -> List[str]:
        return list(self.enricher_class.fields)

    async def collect(
        self,
        client: AsyncDirectoryClient,
        logger_: Optional[logging.Logger] = None,
    ) -> List[OutputRecord]:
        """Fetch the source entities and enrich each of them."""
        log = logger_ or logger
        log.info(f"Running report '{self.name}'")
        fetcher = SourceFetcher(client, self.query, log)
        entities = await fetcher.fetch_source_entities(self.predicate)
        enricher = self.enricher_class(client, log)
        return await enricher.enrich_all(entities)

    async def sync(
        self,
        client: AsyncDirectoryClient,
        store: ListStore,
        dry_run: bool = False,
        logger_: Optional[logging.Logger] = None,
    ) -> ReconcileResult:
        """Collect the records and mirror them into the list store."""
        records = await self.collect(client, logger_)
        reconciler = Reconciler(store, logger_)
        return await reconciler.reconcile(records, self.key_field, dry_run=dry_run)


def service_principal_pipeline() -> ReportPipeline:
    return ReportPipeline(
        name="service-principals",
        description="Single sign-on applications that require assignment",
        query=EntityQuery(
            resource="servicePrincipals",
            select=ServicePrincipalEnricher.select,
            top=999,
        ),
        enricher_class=ServicePrincipalEnricher,
        predicate=all_of(
            field_in("preferredSingleSignOnMode", SSO_MODES),
            field_equals("appRoleAssignmentRequired", True),
        ),
    )


def intune_app_pipeline() -> ReportPipeline:
    return ReportPipeline(
        name="intune-apps",
        description="Intune managed applications and their assignments",
        query=EntityQuery(resource="mobileApps", select=IntuneAppEnricher.select),
        enricher_class=IntuneAppEnricher,
        predicate=field_equals("isAssigned", True),
    )


def guest_user_pipeline() -> ReportPipeline:
    return ReportPipeline(
        name="guest-users",
        description="Guest accounts with sign-in activity and group memberships",
        query=EntityQuery(
            resource="users",
            select=GuestUserEnricher.select,
            filter="userType eq 'Guest'",
            top=999,
        ),
        enricher_class=GuestUserEnricher,
    )


PIPELINES: Dict[str, Callable[[], ReportPipeline]] = {
    "service-principals": service_principal_pipeline,
    "intune-apps": intune_app_pipeline,
    "guest-users": guest_user_pipeline,
}


def get_pipeline(name: str) -> ReportPipeline:
    try:
        return PIPELINES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown report: {name}. Available reports: {sorted(PIPELINES)}"
        ) from None
