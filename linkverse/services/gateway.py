"""Remote data gateway: CRUD over the BaaS REST tables (PostgREST).

Every call is scoped to the signed-in user. Row-level security on the
backend enforces the same thing; the explicit ``user_id`` filter keeps list
queries cheap and makes a missing session fail fast with ``AuthRequired``.
"""

import time
from typing import Any, Dict, List, Optional, Union

import httpx
import pydantic

from linkverse.constants import TABLE_COLLECTIONS, TABLE_LINKS, TABLE_PROFILES
from linkverse.core.config import Settings
from linkverse.core.errors import AuthRequired, NetworkOrServiceError, NotFound
from linkverse.core.logging import get_logger, log_execution_time
from linkverse.models.entities import Collection, EntityKind, Link, UserProfile
from linkverse.services.session import AuthSession

logger = get_logger(__name__)

Record = Union[Link, Collection, UserProfile]

TABLES: Dict[EntityKind, str] = {
    EntityKind.LINKS: TABLE_LINKS,
    EntityKind.COLLECTIONS: TABLE_COLLECTIONS,
    EntityKind.PROFILE: TABLE_PROFILES,
}

SELECTS: Dict[EntityKind, str] = {
    EntityKind.LINKS: "*,collections(name,color,icon)",
    EntityKind.COLLECTIONS: "*",
    EntityKind.PROFILE: "*",
}

# Characters with meaning inside a PostgREST ``or=(...)`` expression.
_SEARCH_RESERVED = str.maketrans("", "", ",()*%\\")


class RemoteDataGateway:
    """Request/response CRUD for links, collections and the user profile."""

    def __init__(self, settings: Settings, session: AuthSession,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.session = session
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self.settings.baas_url}/rest/v1",
                timeout=self.settings.http_timeout,
                transport=self._transport,
            )
        return self._client

    async def shutdown(self):
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    async def _request(self, method: str, kind: EntityKind, params: List[tuple],
                       payload: Any = None) -> List[Dict[str, Any]]:
        table = TABLES[kind]
        headers = await self.session.auth_headers()
        if method != "GET":
            headers["Prefer"] = "return=representation"

        start_time = time.time()
        try:
            response = await self.client.request(
                method, f"/{table}", params=params, json=payload, headers=headers
            )
        except httpx.HTTPError as e:
            logger.warning("Gateway request failed", method=method, table=table, error=str(e))
            raise NetworkOrServiceError("gateway", f"{method} {table}: {e}")

        if response.status_code in (401, 403):
            raise AuthRequired("Session rejected by the data service")
        if response.status_code >= 400:
            raise NetworkOrServiceError(
                "gateway",
                f"{method} {table}: HTTP {response.status_code} {response.text[:200]}",
                response.status_code,
            )

        log_execution_time(logger, f"gateway.{method.lower()}", start_time, time.time(),
                           table=table, status=response.status_code)
        if not response.content:
            return []
        try:
            body = response.json()
        except ValueError:
            raise NetworkOrServiceError("gateway", f"{method} {table}: invalid JSON")
        if isinstance(body, dict):
            return [body]
        return body

    # =========================================================================
    # RECORD MAPPING
    # =========================================================================

    def _to_model(self, kind: EntityKind, row: Dict[str, Any]) -> Record:
        try:
            return self._validate(kind, row)
        except pydantic.ValidationError as e:
            raise NetworkOrServiceError(
                "gateway", f"malformed {TABLES[kind]} row {row.get('id')}: {e.error_count()} invalid fields"
            )

    def _validate(self, kind: EntityKind, row: Dict[str, Any]) -> Record:
        if kind == EntityKind.LINKS:
            embedded = row.get("collections")
            if isinstance(embedded, dict):
                row = {**row, "collection": embedded.get("name")}
            return Link.model_validate(row)
        if kind == EntityKind.COLLECTIONS:
            return Collection.model_validate(row)
        return self._profile_from_row(row)

    def _profile_from_row(self, row: Dict[str, Any]) -> UserProfile:
        user = self.session.require_user()
        metadata = user.user_metadata or {}
        return UserProfile(
            id=user.id,
            email=row.get("email") or user.email,
            full_name=row.get("full_name") or metadata.get("full_name") or "User",
            avatar_url=row.get("avatar_url") or metadata.get("avatar_url"),
            preferences=row.get("preferences") or {},
            role=row.get("role") or user.role or "user",
        )

    def _scope(self, kind: EntityKind) -> tuple:
        user = self.session.require_user()
        column = "id" if kind == EntityKind.PROFILE else "user_id"
        return (column, f"eq.{user.id}")

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create(self, kind: EntityKind, attrs: Dict[str, Any]) -> Record:
        """Insert a record owned by the signed-in user."""
        user = self.session.require_user()
        payload = {**attrs, "user_id": user.id}
        rows = await self._request("POST", kind, [("select", SELECTS[kind])], payload)
        if not rows:
            raise NetworkOrServiceError("gateway", f"insert into {TABLES[kind]} returned no row")
        logger.info("Record created", kind=kind.value, id=rows[0].get("id"))
        return self._to_model(kind, rows[0])

    async def list(self, kind: EntityKind, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        """List the user's records, newest first.

        Link filters: ``collection_id``, ``category``, ``is_favorite``,
        ``search`` (case-insensitive match on title, description or url).
        """
        filters = filters or {}
        params = [("select", SELECTS[kind]), self._scope(kind)]
        if kind != EntityKind.PROFILE:
            params.append(("order", "created_at.desc"))

        if kind == EntityKind.LINKS:
            if filters.get("collection_id"):
                params.append(("collection_id", f"eq.{filters['collection_id']}"))
            if filters.get("category"):
                category = filters["category"]
                params.append(("category", f"eq.{getattr(category, 'value', category)}"))
            if filters.get("is_favorite"):
                params.append(("is_favorite", "is.true"))
            search = (filters.get("search") or "").translate(_SEARCH_RESERVED).strip()
            if search:
                pattern = f"*{search}*"
                params.append((
                    "or",
                    f"(title.ilike.{pattern},description.ilike.{pattern},url.ilike.{pattern})",
                ))

        rows = await self._request("GET", kind, params)
        records = []
        for row in rows:
            try:
                records.append(self._to_model(kind, row))
            except NetworkOrServiceError as e:
                logger.warning("Skipping malformed row", table=TABLES[kind], error=str(e))
        return records

    async def get(self, kind: EntityKind, entity_id: str) -> Record:
        rows = await self._request(
            "GET", kind, [("select", SELECTS[kind]), ("id", f"eq.{entity_id}"), self._scope(kind)]
        )
        if not rows:
            raise NotFound(kind.value, entity_id)
        return self._to_model(kind, rows[0])

    async def update(self, kind: EntityKind, entity_id: str, attrs: Dict[str, Any]) -> Record:
        rows = await self._request(
            "PATCH", kind,
            [("select", SELECTS[kind]), ("id", f"eq.{entity_id}"), self._scope(kind)],
            attrs,
        )
        if not rows:
            raise NotFound(kind.value, entity_id)
        logger.info("Record updated", kind=kind.value, id=entity_id, fields=sorted(attrs))
        return self._to_model(kind, rows[0])

    async def update_where(self, kind: EntityKind, filters: Dict[str, Any],
                           attrs: Dict[str, Any]) -> List[Record]:
        """Patch every matching record. Matching nothing is not an error."""
        params = [("select", SELECTS[kind]), self._scope(kind)]
        params += [(column, f"eq.{value}") for column, value in filters.items()]
        rows = await self._request("PATCH", kind, params, attrs)
        logger.info("Records updated", kind=kind.value, count=len(rows), fields=sorted(attrs))
        return [self._to_model(kind, row) for row in rows]

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        rows = await self._request(
            "DELETE", kind, [("id", f"eq.{entity_id}"), self._scope(kind)]
        )
        if not rows:
            raise NotFound(kind.value, entity_id)
        logger.info("Record deleted", kind=kind.value, id=entity_id)

    async def current_profile(self) -> UserProfile:
        """Profile row for the signed-in user, merged with auth metadata."""
        rows = await self._request("GET", EntityKind.PROFILE,
                                   [("select", "*"), self._scope(EntityKind.PROFILE)])
        return self._to_model(EntityKind.PROFILE, rows[0] if rows else {})
