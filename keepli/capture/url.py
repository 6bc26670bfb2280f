"""
URL canonicalization and content identifiers.

Two captures of the same post must map to the same content id no matter which
share link, tracking parameters, or anchor the browser handed us. The id is the
primary key for duplicate detection locally and the natural key of the row
downstream.
"""

from __future__ import annotations

import hashlib
import re
from urllib.parse import unquote_plus, urlsplit, urlunsplit

from keepli.config import CAPTURE_TITLE_MAX
from keepli.observability.logging import get_logger

logger = get_logger(__name__)

TRACKING_PARAM_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^utm_", re.IGNORECASE),
    re.compile(r"^li_", re.IGNORECASE),
    re.compile(r"^trk$", re.IGNORECASE),
    re.compile(r"^tracking$", re.IGNORECASE),
)

DEFAULT_PORTS = {"http": "80", "https": "443"}

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619


def _is_tracking_param(name: str) -> bool:
    return any(pattern.search(name) for pattern in TRACKING_PARAM_PATTERNS)


def _normalize_netloc(scheme: str, netloc: str) -> str:
    """Lowercase the host and drop the scheme's default port; userinfo keeps its case."""
    userinfo, at, host = netloc.rpartition("@")
    host = host.lower()
    default_port = DEFAULT_PORTS.get(scheme)
    if default_port and host.endswith(f":{default_port}"):
        host = host[: -len(default_port) - 1]
    return f"{userinfo}{at}{host}"


def canonicalize(url: str) -> str:
    """
    Strip the fragment and tracking query parameters from an absolute URL.

    Scheme and host are lowercased, a default port is dropped and an empty path
    becomes "/". Remaining parameters keep their order and original encoding.
    Anything that is not an absolute URL is returned unchanged.

    Example:
        "https://example.com/p/123?utm_source=x#frag" -> "https://example.com/p/123"
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        logger.debug("Leaving unparseable URL as-is")
        return url

    if not parts.scheme or not parts.netloc:
        return url

    kept = [
        segment
        for segment in parts.query.split("&")
        if segment and not _is_tracking_param(unquote_plus(segment.split("=", 1)[0]))
    ]
    scheme = parts.scheme.lower()
    netloc = _normalize_netloc(scheme, parts.netloc)
    return urlunsplit((scheme, netloc, parts.path or "/", "&".join(kept), ""))


def fnv1a_32(text: str) -> str:
    """32-bit FNV-1a over UTF-16 code units, as unpadded lowercase hex."""
    value = FNV_OFFSET_BASIS
    encoded = text.encode("utf-16-le")
    for index in range(0, len(encoded), 2):
        value ^= encoded[index] | (encoded[index + 1] << 8)
        value = (value * FNV_PRIME) & 0xFFFFFFFF
    return format(value, "x")


def content_hash(canonical_url: str) -> str:
    """
    Lowercase hex SHA-1 of the canonical URL.

    Interpreters without SHA-1 (FIPS-restricted OpenSSL builds raise ValueError)
    get the deterministic FNV-1a fallback instead; both are plain hex strings.
    """
    try:
        return hashlib.sha1(canonical_url.encode("utf-8")).hexdigest()
    except ValueError:
        logger.warning("SHA-1 unavailable, using FNV-1a content ids")
        return fnv1a_32(canonical_url)


def compute_url_hash(url: str) -> str:
    return content_hash(canonicalize(url))


def derive_source(canonical_url: str) -> str:
    try:
        host = urlsplit(canonical_url).netloc.lower()
    except ValueError:
        return "web"
    return "linkedin" if "linkedin.com" in host else "web"


def derive_embed_url(canonical_url: str) -> str | None:
    """Embeddable form of a LinkedIn feed update URL, or None for anything else."""
    try:
        parts = urlsplit(canonical_url)
    except ValueError:
        logger.debug("Embed URL derivation failed")
        return None

    if "linkedin.com" not in parts.netloc.lower() or "/feed/update/" not in parts.path:
        return None
    embed_path = parts.path.replace("/feed/update/", "/embed/feed/update/", 1)
    return urlunsplit((parts.scheme, parts.netloc, embed_path, parts.query, parts.fragment))


def derive_title(title: str | None, post_content: str | None, canonical_url: str) -> str:
    """Trimmed explicit title, else the opening of the post, else the URL."""
    if title and title.strip():
        return title.strip()[:CAPTURE_TITLE_MAX]
    if post_content:
        return post_content[:CAPTURE_TITLE_MAX]
    return canonical_url
