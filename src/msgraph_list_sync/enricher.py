"""
Per-entity enrichment of directory objects into flat report records.

Each enricher issues follow-up lookups for one entity at a time and projects
the result into an OutputRecord. A failing lookup only affects the fields it
feeds: they carry an error marker and the batch carries on.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from .client import AsyncDirectoryClient
from .fetcher import field_value
from .models import ERROR_PREFIX, OutputRecord

logger = logging.getLogger(__name__)

DISABLED = "Disabled"
NONE = "None"
NEVER = "Never"
LIST_SEPARATOR = "; "

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+'-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
SIGNING_USAGES = {"sign", "verify"}


def format_timestamp(value: Any) -> str:
    """Format a datetime (or ISO-8601 string) as UTC ISO-8601 with a Z suffix."""
    if value is None or value == "":
        return ""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        # Assume naive datetime is UTC
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def join_values(values: Iterable[Any]) -> str:
    """Flatten a multi-valued field into a sorted, de-duplicated string."""
    unique = {str(v) for v in values if v is not None and str(v) != ""}
    return LIST_SEPARATOR.join(sorted(unique, key=lambda v: (v.lower(), v)))


def enum_text(value: Any) -> str:
    """Return the string form of an SDK enum, string or None."""
    if value is None:
        return ""
    return str(getattr(value, "value", value))


def extract_email(text: Optional[str]) -> Optional[str]:
    """Return the first email address found in the text."""
    if not text:
        return None
    match = EMAIL_PATTERN.search(text)
    return match.group(0) if match else None


def guest_email(user: Any) -> Optional[str]:
    """
    Resolve the external email of a guest user.

    Falls back to decoding the ``#EXT#`` user principal name, where the
    original address is stored with its ``@`` replaced by ``_``.
    """
    mail = extract_email(field_value(user, "mail"))
    if mail:
        return mail

    upn = field_value(user, "userPrincipalName") or ""
    if "#EXT#" in upn:
        local = upn.split("#EXT#")[0]
        if "_" in local:
            head, _, tail = local.rpartition("_")
            return extract_email(f"{head}@{tail}")
    return extract_email(upn)


def email_domain(email: Optional[str]) -> str:
    if not email or "@" not in email:
        return ""
    return email.rsplit("@", 1)[1].lower()


def latest_credential(credentials: Optional[Iterable[Any]]) -> Optional[Any]:
    """
    Pick the signing credential that expires last.

    Ties on the end date are broken by key id so the choice is stable.
    """
    candidates = [
        c
        for c in credentials or []
        if enum_text(field_value(c, "usage")).lower() in SIGNING_USAGES
        and field_value(c, "endDateTime") is not None
    ]
    if not candidates:
        return None

    def sort_key(credential: Any):
        end = field_value(credential, "endDateTime")
        if isinstance(end, str):
            end = datetime.fromisoformat(end.replace("Z", "+00:00"))
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        return (end, str(field_value(credential, "keyId", "")))

    return max(candidates, key=sort_key)


class Enricher:
    """
    Base class for enrichers.

    Subclasses set ``resource``, ``key_field``, ``display_field`` and
    ``fields`` and implement :meth:`_build`.
    """

    resource: str = ""
    key_field: str = ""
    display_field: str = "DisplayName"
    fields: List[str] = []

    def __init__(
        self,
        client: AsyncDirectoryClient,
        logger_: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.logger = logger_ or logger
        self.processed = 0

    async def enrich(self, entity: Any) -> OutputRecord:
        """Build the output record for one entity."""
        self.processed += 1
        label = field_value(entity, "displayName") or field_value(entity, "id")
        self.logger.info(f"[{self.processed}] Enriching {self.resource} '{label}'")

        # Only fields _build has assigned are present in built
        built: Dict[str, Any] = {}
        missing = ""
        try:
            await self._build(entity, built)
        except Exception as e:
            self.logger.warning(f"Enrichment failed for '{label}': {e}")
            missing = f"{ERROR_PREFIX}{e}"

        values: Dict[str, Any] = {}
        for name in self.fields:
            if name in built:
                values[name] = built[name]
            elif name == self.key_field:
                values[name] = ""
            else:
                values[name] = missing

        return OutputRecord(
            key=values.get(self.key_field),
            display=str(values.get(self.display_field) or ""),
            fields=values,
        )

    async def enrich_all(self, entities: List[Any]) -> List[OutputRecord]:
        """Enrich every entity in order; entities without a natural key are skipped."""
        records = []
        for entity in entities:
            try:
                records.append(await self.enrich(entity))
            except ValueError as e:
                self.logger.warning(
                    f"Skipping {self.resource} '{field_value(entity, 'id')}': {e}"
                )
        failed = sum(1 for r in records if r.has_errors)
        self.logger.info(
            f"Enriched {len(records)} {self.resource} ({failed} with lookup errors)"
        )
        return records

    async def _lookup(
        self,
        values: Dict[str, Any],
        names: List[str],
        lookup: Callable[[], Awaitable[Dict[str, Any]]],
        label: str,
    ) -> None:
        """Run one auxiliary lookup, writing error markers for its fields on failure."""
        try:
            values.update(await lookup())
        except Exception as e:
            self.logger.warning(
                f"Lookup of {', '.join(names)} failed for '{label}': {e}"
            )
            for name in names:
                values[name] = f"{ERROR_PREFIX}{e}"

    async def _build(self, entity: Any, values: Dict[str, Any]) -> None:
        raise NotImplementedError


class ServicePrincipalEnricher(Enricher):
    """Single sign-on applications with their assignments and certificates."""

    resource = "servicePrincipals"
    key_field = "AppId"
    fields = [
        "DisplayName",
        "AppId",
        "ObjectId",
        "SSOMode",
        "AssignmentRequired",
        "AccountEnabled",
        "AssignedGroups",
        "CertificateExpiry",
        "ProvisioningStatus",
    ]
    select = [
        "id",
        "appId",
        "displayName",
        "preferredSingleSignOnMode",
        "appRoleAssignmentRequired",
        "accountEnabled",
        "keyCredentials",
    ]

    async def _build(self, entity: Any, values: Dict[str, Any]) -> None:
        entity_id = field_value(entity, "id")
        label = field_value(entity, "displayName") or entity_id

        values.update(
            {
                "DisplayName": field_value(entity, "displayName", ""),
                "AppId": field_value(entity, "appId"),
                "ObjectId": entity_id,
                "SSOMode": enum_text(field_value(entity, "preferredSingleSignOnMode")),
                "AssignmentRequired": bool(
                    field_value(entity, "appRoleAssignmentRequired", False)
                ),
                "AccountEnabled": bool(field_value(entity, "accountEnabled", False)),
            }
        )

        credential = latest_credential(field_value(entity, "keyCredentials"))
        values["CertificateExpiry"] = (
            format_timestamp(field_value(credential, "endDateTime"))
            if credential
            else NONE
        )

        async def assigned_groups() -> Dict[str, Any]:
            assignments = await self.client.list_related(
                self.resource, entity_id, "app_role_assigned_to"
            )
            groups = [
                field_value(a, "principalDisplayName")
                for a in assignments
                if enum_text(field_value(a, "principalType")).lower() == "group"
            ]
            return {"AssignedGroups": join_values(groups)}

        async def provisioning_status() -> Dict[str, Any]:
            jobs = await self.client.list_related(
                self.resource, entity_id, "synchronization.jobs", missing_ok=True
            )
            if not jobs:
                return {"ProvisioningStatus": DISABLED}
            job = sorted(jobs, key=lambda j: str(field_value(j, "id", "")))[0]
            code = enum_text(field_value(job, "status.code"))
            return {"ProvisioningStatus": code or DISABLED}

        await self._lookup(values, ["AssignedGroups"], assigned_groups, label)
        await self._lookup(values, ["ProvisioningStatus"], provisioning_status, label)


class IntuneAppEnricher(Enricher):
    """Intune managed applications with their group assignments by intent."""

    resource = "mobileApps"
    key_field = "AppId"
    fields = [
        "DisplayName",
        "AppId",
        "AppType",
        "Publisher",
        "RequiredGroups",
        "AvailableGroups",
        "UninstallGroups",
        "LastModified",
    ]
    select = ["id", "displayName", "publisher", "isAssigned", "lastModifiedDateTime"]

    INTENT_FIELDS = {
        "required": "RequiredGroups",
        "available": "AvailableGroups",
        "availablewithoutenrollment": "AvailableGroups",
        "uninstall": "UninstallGroups",
    }

    async def _target_name(self, target: Any) -> str:
        odata_type = (field_value(target, "odataType") or "").lower()
        if odata_type.endswith("alllicensedusersassignmenttarget"):
            return "All users"
        if odata_type.endswith("alldevicesassignmenttarget"):
            return "All devices"

        group_id = field_value(target, "groupId")
        if not group_id:
            return odata_type.rsplit(".", 1)[-1] or "Unknown target"
        group = await self.client.get_entity(
            "groups", group_id, select=["id", "displayName"]
        )
        name = field_value(group, "displayName") if group else f"{group_id} (not found)"
        if odata_type.endswith("exclusiongroupassignmenttarget"):
            name = f"{name} (excluded)"
        return name

    async def _build(self, entity: Any, values: Dict[str, Any]) -> None:
        entity_id = field_value(entity, "id")
        label = field_value(entity, "displayName") or entity_id
        odata_type = field_value(entity, "odataType") or ""

        values.update(
            {
                "DisplayName": field_value(entity, "displayName", ""),
                "AppId": entity_id,
                "AppType": odata_type.replace("#microsoft.graph.", ""),
                "Publisher": field_value(entity, "publisher", ""),
                "LastModified": format_timestamp(
                    field_value(entity, "lastModifiedDateTime")
                ),
            }
        )

        async def assignments() -> Dict[str, Any]:
            by_field: Dict[str, List[str]] = {
                "RequiredGroups": [],
                "AvailableGroups": [],
                "UninstallGroups": [],
            }
            items = await self.client.list_related(
                self.resource, entity_id, "assignments"
            )
            for assignment in items:
                intent = enum_text(field_value(assignment, "intent")).lower()
                target_field = self.INTENT_FIELDS.get(intent)
                if target_field is None:
                    self.logger.debug(f"Ignoring assignment intent '{intent}' on '{label}'")
                    continue
                by_field[target_field].append(
                    await self._target_name(field_value(assignment, "target"))
                )
            return {name: join_values(groups) for name, groups in by_field.items()}

        await self._lookup(
            values,
            ["RequiredGroups", "AvailableGroups", "UninstallGroups"],
            assignments,
            label,
        )


class GuestUserEnricher(Enricher):
    """Guest accounts with their sign-in activity and group memberships."""

    resource = "users"
    key_field = "UserId"
    fields = [
        "DisplayName",
        "UserId",
        "Mail",
        "ExternalDomain",
        "CreatedDateTime",
        "LastSignIn",
        "AccountEnabled",
        "Groups",
    ]
    select = [
        "id",
        "displayName",
        "mail",
        "userPrincipalName",
        "createdDateTime",
        "accountEnabled",
        "signInActivity",
    ]

    async def _build(self, entity: Any, values: Dict[str, Any]) -> None:
        entity_id = field_value(entity, "id")
        label = field_value(entity, "displayName") or entity_id
        email = guest_email(entity)
        last_sign_in = field_value(entity, "signInActivity.lastSignInDateTime")

        values.update(
            {
                "DisplayName": field_value(entity, "displayName", ""),
                "UserId": entity_id,
                "Mail": email or "",
                "ExternalDomain": email_domain(email),
                "CreatedDateTime": format_timestamp(
                    field_value(entity, "createdDateTime")
                ),
                "LastSignIn": format_timestamp(last_sign_in) if last_sign_in else NEVER,
                "AccountEnabled": bool(field_value(entity, "accountEnabled", False)),
            }
        )

        async def groups() -> Dict[str, Any]:
            memberships = await self.client.list_related(
                self.resource, entity_id, "member_of"
            )
            names = [
                field_value(m, "displayName")
                for m in memberships
                if (field_value(m, "odataType") or "#microsoft.graph.group").endswith(".group")
            ]
            return {"Groups": join_values(names)}

        await self._lookup(values, ["Groups"], groups, label)
