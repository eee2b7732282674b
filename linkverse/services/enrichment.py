"""URL metadata enrichment through an LLM chat model.

``MetadataEnrichmentService`` asks the configured provider for a JSON object
describing a URL and normalizes whatever comes back. ``UrlAnalyzer`` sits in
front of it for interactive forms: it debounces keystrokes and only ever
delivers the result of the most recent submission.
"""

import asyncio
import json
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Type

import pydantic
from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from linkverse.constants import CATEGORY_TAGS, MAX_TAGS
from linkverse.core.config import Settings
from linkverse.core.errors import NetworkOrServiceError, ValidationError
from linkverse.core.logging import get_logger, log_api_call, log_execution_time
from linkverse.models.enrichment import LinkMetadata
from linkverse.services.urls import extract_domain, require_valid_url

logger = get_logger(__name__)


# =============================================================================
# AI PROVIDER REGISTRY
# =============================================================================

@dataclass
class ProviderConfig:
    """Configuration for an AI provider."""
    name: str
    model_class: Type
    api_key_param: str  # Parameter name for API key in model constructor
    max_tokens_param: str
    default_model: str


PROVIDER_CONFIGS: Dict[str, ProviderConfig] = {
    'openai': ProviderConfig(
        name='openai',
        model_class=ChatOpenAI,
        api_key_param='openai_api_key',
        max_tokens_param='max_tokens',
        default_model='gpt-4o-mini',
    ),
    'anthropic': ProviderConfig(
        name='anthropic',
        model_class=ChatAnthropic,
        api_key_param='anthropic_api_key',
        max_tokens_param='max_tokens',
        default_model='claude-3-5-haiku-latest',
    ),
    'gemini': ProviderConfig(
        name='gemini',
        model_class=ChatGoogleGenerativeAI,
        api_key_param='google_api_key',
        max_tokens_param='max_output_tokens',
        default_model='gemini-1.5-flash',
    ),
}


def get_default_model(provider: str) -> str:
    config = PROVIDER_CONFIGS.get(provider)
    return config.default_model if config else 'gpt-4o-mini'


SYSTEM_PROMPT = (
    "You catalogue bookmarks. Given a URL, reply with a single JSON object and "
    "nothing else. Leave out any field you cannot determine."
)

ANALYZE_PROMPT = """Describe this web page for a bookmark manager: {url}

Return JSON with these keys:
- "title": the page title
- "description": one or two sentences about the page
- "category": exactly one of {categories}
- "domain": the site's domain name
- "tags": up to {max_tags} short lowercase tags
- "favicon": absolute URL of the site's favicon, if known
"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _content_text(content: Any) -> str:
    """Flatten a chat message's content (string or content blocks) to text."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def parse_metadata_reply(text: str) -> Dict[str, Any]:
    """Pull the JSON object out of a model reply, tolerating code fences and chatter."""
    cleaned = _FENCE_RE.sub("", text.strip())
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
        raise NetworkOrServiceError("enrichment", "model reply contained no JSON object")
    try:
        data = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        raise NetworkOrServiceError("enrichment", f"model reply was not valid JSON: {e}")
    if not isinstance(data, dict):
        raise NetworkOrServiceError("enrichment", "model reply was not a JSON object")
    return data


class MetadataEnrichmentService:
    """Best-effort title/description/category/tags/favicon for a URL."""

    def __init__(self, settings: Settings, chat_model: Any = None):
        self.settings = settings
        self.provider = settings.ai_provider
        self.model_name = settings.ai_model or get_default_model(self.provider)
        self._chat_model = chat_model

    @property
    def enabled(self) -> bool:
        return self.settings.enrichment_enabled

    def create_model(self):
        """Create the LangChain chat model for the configured provider."""
        config = PROVIDER_CONFIGS.get(self.provider)
        if not config:
            raise NetworkOrServiceError("enrichment", f"Unsupported provider: {self.provider}")

        api_key = self.settings.api_key_for(self.provider)
        if not api_key:
            raise NetworkOrServiceError("enrichment", f"No API key configured for {self.provider}")

        kwargs = {
            config.api_key_param: api_key,
            'model': self.model_name,
            'temperature': self.settings.ai_temperature,
            config.max_tokens_param: self.settings.ai_max_tokens,
        }
        return config.model_class(**kwargs)

    @property
    def chat_model(self):
        if self._chat_model is None:
            self._chat_model = self.create_model()
        return self._chat_model

    async def analyze(self, url: str) -> LinkMetadata:
        """Ask the model about ``url`` and return normalized metadata.

        Raises ValidationError for a malformed URL and NetworkOrServiceError
        when the provider fails, times out, or replies with garbage.
        """
        url = require_valid_url(url)
        start_time = time.time()

        messages = [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=ANALYZE_PROMPT.format(
                url=url, categories=", ".join(CATEGORY_TAGS), max_tags=MAX_TAGS,
            )),
        ]

        try:
            response = await asyncio.wait_for(
                self.chat_model.ainvoke(messages), timeout=self.settings.ai_timeout
            )
        except NetworkOrServiceError:
            raise
        except asyncio.TimeoutError:
            log_api_call(logger, self.provider, self.model_name, "analyze_url", False, error="timeout")
            raise NetworkOrServiceError("enrichment", f"timed out after {self.settings.ai_timeout}s")
        except Exception as e:
            log_api_call(logger, self.provider, self.model_name, "analyze_url", False, error=str(e))
            raise NetworkOrServiceError("enrichment", f"{type(e).__name__}: {e}")

        data = parse_metadata_reply(_content_text(response.content))
        try:
            metadata = LinkMetadata.model_validate(data)
        except pydantic.ValidationError as e:
            raise NetworkOrServiceError("enrichment", f"unusable metadata: {e.error_count()} invalid fields")

        if not metadata.domain:
            metadata = metadata.model_copy(update={"domain": extract_domain(url) or None})

        log_execution_time(logger, "analyze_url", start_time, time.time(), url=url)
        log_api_call(logger, self.provider, self.model_name, "analyze_url", True,
                     category=metadata.category.value if metadata.category else None)
        return metadata


# =============================================================================
# DEBOUNCED, SUPERSEDING ANALYZER
# =============================================================================

ResultCallback = Callable[[str, LinkMetadata], None]
ErrorCallback = Callable[[str, Exception], None]


class UrlAnalyzer:
    """Debounces URL edits and keeps only the latest analysis.

    Each ``submit`` takes a new token. A call still waiting out the debounce
    delay is cancelled outright; a call already talking to the model runs to
    completion but its result is dropped unless its token is still current.
    """

    def __init__(self, service: MetadataEnrichmentService, debounce_seconds: float,
                 on_result: Optional[ResultCallback] = None,
                 on_error: Optional[ErrorCallback] = None):
        self.service = service
        self.debounce_seconds = debounce_seconds
        self.on_result = on_result
        self.on_error = on_error
        self._token = 0
        self._latest: Optional[asyncio.Task] = None
        self._debouncing: Optional[asyncio.Task] = None

    @property
    def token(self) -> int:
        return self._token

    def is_current(self, token: int) -> bool:
        return token == self._token

    def submit(self, url: str) -> asyncio.Task:
        """Schedule analysis of ``url``, superseding earlier submissions."""
        self._token += 1
        self._cancel_pending()
        task = asyncio.ensure_future(self._run(url, self._token))
        self._latest = task
        self._debouncing = task
        return task

    def cancel(self) -> None:
        """Supersede everything without scheduling a new call."""
        self._token += 1
        self._cancel_pending()

    def _cancel_pending(self) -> None:
        if self._debouncing is not None and not self._debouncing.done():
            self._debouncing.cancel()
        self._debouncing = None

    async def wait_latest(self) -> Optional[LinkMetadata]:
        """Await the most recent submission."""
        if self._latest is None:
            return None
        return await self._latest

    async def _run(self, url: str, token: int) -> Optional[LinkMetadata]:
        if self.debounce_seconds:
            await asyncio.sleep(self.debounce_seconds)
        if self._debouncing is asyncio.current_task():
            self._debouncing = None
        if not self.is_current(token):
            return None

        try:
            metadata = await self.service.analyze(url)
        except (NetworkOrServiceError, ValidationError) as e:
            logger.warning("URL analysis failed", url=url, error=str(e))
            if self.is_current(token) and self.on_error:
                self.on_error(url, e)
            return None

        if not self.is_current(token):
            logger.debug("Discarding superseded URL analysis", url=url,
                         token=token, latest=self._token)
            return None

        if self.on_result:
            self.on_result(url, metadata)
        return metadata
