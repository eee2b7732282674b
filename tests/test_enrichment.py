"""Tests for URL enrichment parsing and the debounced analyzer."""

import asyncio

import pytest

from conftest import FakeChatModel
from linkverse.core.errors import NetworkOrServiceError, ValidationError
from linkverse.models.entities import Category
from linkverse.models.enrichment import LinkDraft, LinkMetadata
from linkverse.services.enrichment import (
    MetadataEnrichmentService,
    UrlAnalyzer,
    get_default_model,
    parse_metadata_reply,
)

GITHUB = "https://github.com/org/repo"


class TestParseReply:

    def test_plain_json(self):
        assert parse_metadata_reply('{"title": "Repo"}') == {"title": "Repo"}

    def test_code_fence_and_chatter(self):
        reply = 'Sure! Here you go:\n```json\n{"title": "Repo", "tags": ["git"]}\n```'

        assert parse_metadata_reply(reply) == {"title": "Repo", "tags": ["git"]}

    @pytest.mark.parametrize("reply", ["no json here", "{not: valid}", "[1, 2]"])
    def test_garbage_is_a_service_error(self, reply):
        with pytest.raises(NetworkOrServiceError):
            parse_metadata_reply(reply)


class TestLinkMetadata:

    def test_normalization(self):
        metadata = LinkMetadata.model_validate({
            "title": "  ",
            "category": "Social Media",
            "tags": "python, web, Python, , " + "x" * 40,
            "unexpected": 1,
        })

        assert metadata.title is None
        assert metadata.category == Category.SOCIAL_MEDIA
        assert metadata.tags == ["python", "web"]

    def test_unknown_category_becomes_other(self):
        assert LinkMetadata(category="gardening").category == Category.OTHER

    def test_tags_are_capped(self):
        metadata = LinkMetadata(tags=[f"t{i}" for i in range(9)])

        assert metadata.tags == ["t0", "t1", "t2", "t3", "t4"]

    def test_merge_keeps_user_fields_when_absent(self):
        draft = LinkDraft(url=GITHUB, title="My title", notes="keep")
        merged = draft.merge(LinkMetadata(description="A repo", category="development"))

        assert merged.title == "My title"
        assert merged.description == "A repo"
        assert merged.category == Category.DEVELOPMENT
        assert merged.notes == "keep"


class TestMetadataEnrichmentService:

    @pytest.mark.asyncio
    async def test_analyze_github(self, settings):
        model = FakeChatModel({GITHUB: {
            "title": "org/repo", "category": "development", "tags": ["git", "code"],
        }})
        service = MetadataEnrichmentService(settings, chat_model=model)

        metadata = await service.analyze(GITHUB)

        assert metadata.category == Category.DEVELOPMENT
        assert metadata.domain == "github.com"
        assert metadata.tags == ["git", "code"]

    @pytest.mark.asyncio
    async def test_invalid_url_never_reaches_model(self, settings):
        model = FakeChatModel()
        service = MetadataEnrichmentService(settings, chat_model=model)

        with pytest.raises(ValidationError):
            await service.analyze("github.com/org/repo")
        assert model.calls == []

    @pytest.mark.asyncio
    async def test_provider_error_is_wrapped(self, settings):
        model = FakeChatModel({GITHUB: RuntimeError("rate limited")})
        service = MetadataEnrichmentService(settings, chat_model=model)

        with pytest.raises(NetworkOrServiceError) as exc_info:
            await service.analyze(GITHUB)
        assert exc_info.value.service == "enrichment"

    @pytest.mark.asyncio
    async def test_timeout(self, settings):
        model = FakeChatModel({GITHUB: {}}, delays={GITHUB: 0.2})
        service = MetadataEnrichmentService(settings, chat_model=model)
        service.settings = settings.model_copy(update={"ai_timeout": 0.05})

        with pytest.raises(NetworkOrServiceError, match="timed out"):
            await service.analyze(GITHUB)

    def test_missing_api_key(self, settings):
        service = MetadataEnrichmentService(settings.model_copy(update={"openai_api_key": None}))

        with pytest.raises(NetworkOrServiceError, match="No API key"):
            service.create_model()

    def test_default_models(self):
        assert get_default_model("openai") == "gpt-4o-mini"
        assert get_default_model("unknown") == "gpt-4o-mini"


class TestUrlAnalyzer:

    @pytest.mark.asyncio
    async def test_slow_first_call_is_discarded(self, settings):
        first, second = "https://slow.example.com", "https://fast.example.com"
        model = FakeChatModel(
            {first: {"title": "Slow"}, second: {"title": "Fast"}},
            delays={first: 0.1, second: 0.01},
        )
        results = []
        analyzer = UrlAnalyzer(MetadataEnrichmentService(settings, chat_model=model), 0,
                               on_result=lambda url, metadata: results.append((url, metadata.title)))

        stale = analyzer.submit(first)
        await asyncio.sleep(0.02)
        latest = analyzer.submit(second)
        await asyncio.gather(stale, latest)

        assert model.calls == [first, second]
        assert results == [(second, "Fast")]
        assert await stale is None

    @pytest.mark.asyncio
    async def test_debounce_collapses_keystrokes(self, settings):
        model = FakeChatModel()
        results = []
        analyzer = UrlAnalyzer(MetadataEnrichmentService(settings, chat_model=model), 0.05,
                               on_result=lambda url, metadata: results.append(url))

        for url in ("https://g.co", "https://gi.co", "https://git.co"):
            analyzer.submit(url)
            await asyncio.sleep(0.01)
        await analyzer.wait_latest()

        assert model.calls == ["https://git.co"]
        assert results == ["https://git.co"]

    @pytest.mark.asyncio
    async def test_cancel_drops_pending_result(self, settings):
        model = FakeChatModel(delays={GITHUB: 0.05})
        results = []
        analyzer = UrlAnalyzer(MetadataEnrichmentService(settings, chat_model=model), 0,
                               on_result=lambda url, metadata: results.append(url))

        task = analyzer.submit(GITHUB)
        await asyncio.sleep(0.01)
        analyzer.cancel()
        await task

        assert results == []

    @pytest.mark.asyncio
    async def test_error_reported_for_current_token_only(self, settings):
        model = FakeChatModel({GITHUB: RuntimeError("down")})
        errors = []
        analyzer = UrlAnalyzer(MetadataEnrichmentService(settings, chat_model=model), 0,
                               on_error=lambda url, error: errors.append(url))

        assert await analyzer.submit(GITHUB) is None
        assert errors == [GITHUB]
