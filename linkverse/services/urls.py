from urllib.parse import urlparse

from linkverse.core.errors import ValidationError


def is_valid_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not url or not url.strip():
        return False
    parsed = urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def require_valid_url(url: str) -> str:
    if not url or not url.strip():
        raise ValidationError("url", "is required")
    if not is_valid_url(url):
        raise ValidationError("url", f"not a valid absolute URL: {url!r}")
    return url.strip()


def extract_domain(url: str) -> str:
    """Host of the URL without a leading ``www.``; empty string if unparseable."""
    if not is_valid_url(url):
        return ""
    host = urlparse(url.strip()).hostname or ""
    if host.startswith("www."):
        host = host[4:]
    return host
