"""Shared fixtures: in-memory gateway, scripted chat model, signed-in session."""

import asyncio
import json
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
from langchain_core.messages import AIMessage

from linkverse.core.config import Settings
from linkverse.core.errors import AuthRequired, NetworkOrServiceError, NotFound
from linkverse.models.entities import AuthUser, Collection, EntityKind, Link, UserProfile
from linkverse.services.session import AuthSession

USER_ID = "user-1"


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway:
    """In-memory stand-in for RemoteDataGateway.

    ``fail_kinds`` makes reads of those kinds raise, ``fail_deletes`` makes
    deletes of those ids raise, and ``delay`` holds every read open so tests
    can interleave other calls with an in-flight refresh. With
    ``enforce_foreign_keys`` a collection still referenced by a link refuses
    deletion with a 409, and ``reject_session`` answers every read the way an
    expired token does. ``deleted`` records delete order.
    """

    def __init__(self, links=None, collections=None, profile=None):
        self.links: List[Link] = list(links or [])
        self.collections: List[Collection] = list(collections or [])
        self.profile: Optional[UserProfile] = profile or UserProfile(id=USER_ID, email="owner@example.com")
        self.calls: Counter = Counter()
        self.fail_kinds = set()
        self.fail_deletes = set()
        self.delay = 0.0
        self.enforce_foreign_keys = False
        self.reject_session = False
        self.deleted: List[tuple] = []
        self._next_id = 100

    def _rows(self, kind: EntityKind) -> List[Any]:
        return self.links if kind == EntityKind.LINKS else self.collections

    async def list(self, kind: EntityKind, filters: Optional[Dict[str, Any]] = None):
        kind = EntityKind(kind)
        self.calls[kind.value] += 1
        snapshot = list(self._rows(kind))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.reject_session:
            raise AuthRequired("Session rejected by the data service")
        if kind.value in self.fail_kinds:
            raise NetworkOrServiceError("gateway", f"{kind.value} unavailable", 503)
        return snapshot

    async def current_profile(self) -> UserProfile:
        self.calls["profile"] += 1
        snapshot = self.profile
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.reject_session:
            raise AuthRequired("Session rejected by the data service")
        if "profile" in self.fail_kinds:
            raise NetworkOrServiceError("gateway", "profile unavailable", 503)
        return snapshot

    async def get(self, kind: EntityKind, entity_id: str):
        for row in self._rows(kind):
            if row.id == entity_id:
                return row
        raise NotFound(kind.value, entity_id)

    async def create(self, kind: EntityKind, attrs: Dict[str, Any]):
        self._next_id += 1
        attrs = {**attrs, "id": str(self._next_id), "created_at": datetime.now(timezone.utc)}
        if kind == EntityKind.LINKS:
            record = Link.model_validate(attrs)
        else:
            record = Collection.model_validate(attrs)
        self._rows(kind).append(record)
        return record

    async def update(self, kind: EntityKind, entity_id: str, attrs: Dict[str, Any]):
        if kind == EntityKind.PROFILE:
            self.profile = UserProfile.model_validate({**self.profile.model_dump(), **attrs})
            return self.profile
        rows = self._rows(kind)
        for index, row in enumerate(rows):
            if row.id == entity_id:
                rows[index] = type(row).model_validate({**row.model_dump(), **attrs})
                return rows[index]
        raise NotFound(kind.value, entity_id)

    async def update_where(self, kind: EntityKind, filters: Dict[str, Any], attrs: Dict[str, Any]):
        rows = self._rows(kind)
        updated = []
        for index, row in enumerate(rows):
            if all(getattr(row, column) == value for column, value in filters.items()):
                rows[index] = type(row).model_validate({**row.model_dump(), **attrs})
                updated.append(rows[index])
        return updated

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        if entity_id in self.fail_deletes:
            raise NetworkOrServiceError("gateway", f"delete {entity_id} failed", 500)
        if self.enforce_foreign_keys and kind == EntityKind.COLLECTIONS:
            if any(link.collection_id == entity_id for link in self.links):
                raise NetworkOrServiceError("gateway", f"collection {entity_id} is still referenced", 409)
        # yield so concurrent deletes interleave
        await asyncio.sleep(0)
        rows = self._rows(kind)
        for row in list(rows):
            if row.id == entity_id:
                rows.remove(row)
                self.deleted.append((kind, entity_id))
                return
        raise NotFound(kind.value, entity_id)

    async def shutdown(self):
        pass


class FakeChatModel:
    """Replies to ``ainvoke`` with canned JSON keyed by the URL in the prompt."""

    def __init__(self, replies: Optional[Dict[str, Any]] = None, delays: Optional[Dict[str, float]] = None):
        self.replies = replies or {}
        self.delays = delays or {}
        self.calls: List[str] = []

    async def ainvoke(self, messages):
        prompt = messages[-1].content
        url = prompt.splitlines()[0].split(": ", 1)[1].strip()
        self.calls.append(url)
        if url in self.delays:
            await asyncio.sleep(self.delays[url])
        reply = self.replies.get(url, {})
        if isinstance(reply, Exception):
            raise reply
        if not isinstance(reply, str):
            reply = json.dumps(reply)
        return AIMessage(content=reply)


def make_link(link_id: str, **fields) -> Link:
    data = {
        "id": link_id,
        "url": f"https://example.com/{link_id}",
        "title": f"Link {link_id}",
        "created_at": datetime(2026, 10, 1, tzinfo=timezone.utc),
    }
    data.update(fields)
    return Link.model_validate(data)


def make_collection(collection_id: str, name: str, **fields) -> Collection:
    return Collection.model_validate({"id": collection_id, "name": name, **fields})


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        baas_url="https://baas.test",
        baas_anon_key="anon-key",
        cache_freshness_seconds=30.0,
        enrichment_enabled=True,
        enrichment_debounce_ms=0,
        openai_api_key="sk-test",
        ai_timeout=5,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway(
        links=[
            make_link("1", title="FastAPI docs", url="https://fastapi.tiangolo.com",
                      category="documentation", tags=["python", "web"], collection_id="10"),
            make_link("2", title="Pasta recipe", url="https://cooking.example.com/pasta",
                      category="other", is_favorite=True, collection_id="11"),
        ],
        collections=[
            make_collection("10", "Dev Notes"),
            make_collection("11", "Cooking"),
        ],
    )


def sign_in(session: AuthSession, user_id: str = USER_ID) -> AuthSession:
    session.access_token = "access-token"
    session.refresh_token = "refresh-token"
    session.user = AuthUser(id=user_id, email="owner@example.com")
    return session


@pytest.fixture
def session(settings) -> AuthSession:
    return sign_in(AuthSession(settings))
