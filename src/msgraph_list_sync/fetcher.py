"""
Source fetching with client-side predicates.

The remote request is scoped to the selected properties (and an optional
server-side filter); the predicate is then evaluated locally on the fully
materialized result.
"""

import logging
import re
from typing import Any, Callable, Iterable, List, Optional

from .client import AsyncDirectoryClient
from .models import EntityQuery

logger = logging.getLogger(__name__)

Predicate = Callable[[Any], bool]

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def camel_to_snake(name: str) -> str:
    """Convert a Graph property name (camelCase) to the SDK attribute name."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def field_value(entity: Any, name: str, default: Any = None) -> Any:
    """
    Read a (possibly dotted) property from an SDK object or a plain mapping.

    ``field_value(user, "signInActivity.lastSignInDateTime")`` works for both
    ``user.sign_in_activity.last_sign_in_date_time`` and
    ``{"signInActivity": {"lastSignInDateTime": ...}}``.
    """
    current = entity
    for part in name.split("."):
        if current is None:
            return default
        if isinstance(current, dict):
            value = current.get(part)
            if value is None:
                value = current.get(camel_to_snake(part))
        else:
            value = getattr(current, camel_to_snake(part), None)
            if value is None:
                additional = getattr(current, "additional_data", None)
                if isinstance(additional, dict):
                    value = additional.get(part)
        current = value
    return default if current is None else current


def _normalize(value: Any) -> Any:
    # SDK enums compare by their string value
    value = getattr(value, "value", value)
    return value.lower() if isinstance(value, str) else value


def field_equals(name: str, expected: Any) -> Predicate:
    expected_normalized = _normalize(expected)
    return lambda entity: _normalize(field_value(entity, name)) == expected_normalized


def field_in(name: str, values: Iterable[Any]) -> Predicate:
    allowed = {_normalize(v) for v in values}
    return lambda entity: _normalize(field_value(entity, name)) in allowed


def all_of(*predicates: Predicate) -> Predicate:
    return lambda entity: all(p(entity) for p in predicates)


def any_of(*predicates: Predicate) -> Predicate:
    return lambda entity: any(p(entity) for p in predicates)


def match_all(entity: Any) -> bool:
    return True


class SourceFetcher:
    """Fetches source entities for one report pipeline."""

    def __init__(
        self,
        client: AsyncDirectoryClient,
        query: EntityQuery,
        logger_: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.query = query
        self.logger = logger_ or logger

    async def fetch_source_entities(
        self, predicate: Optional[Predicate] = None
    ) -> List[Any]:
        """
        Fetch every entity matching the query, then filter with the predicate.

        Any remote failure propagates; no partial result is returned.
        """
        entities = await self.client.list_entities(
            self.query.resource,
            select=self.query.select,
            filter=self.query.filter,
            top=self.query.top,
            expand=self.query.expand,
        )

        if predicate is None:
            return entities

        matching = [entity for entity in entities if predicate(entity)]
        self.logger.info(
            f"{len(matching)} of {len(entities)} {self.query.resource} match the report criteria"
        )
        return matching
