"""URL normalization, tracking-parameter stripping and URL extraction."""

import re
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

BARE_DOMAIN_RE = re.compile(r"^[\w.-]+\.[a-z]{2,}(/.*)?$", re.IGNORECASE)
MARKDOWN_LINK_RE = re.compile(r"\[[^\]]*\]\((https?://[^)\s]+)\)")
BARE_URL_RE = re.compile(r"(https?://[^\s)<>\]]+)")

TRACKING_PARAMS = frozenset(
    {
        "fbclid",
        "gclid",
        "dclid",
        "msclkid",
        "yclid",
        "igshid",
        "mc_cid",
        "mc_eid",
        "mkt_tok",
        "_hsenc",
        "_hsmi",
        "ref",
        "ref_src",
        "si",
    }
)

# Punctuation that trails URLs in prose ("see https://x.com/a.")
TRAILING_PUNCTUATION = ".,;:!?'\""


def _is_tracking_param(name: str) -> bool:
    lowered = name.lower()
    return lowered.startswith("utm_") or lowered in TRACKING_PARAMS


def strip_tracking(url: str) -> str:
    """Drop tracking query parameters and the fragment from a URL."""
    parts = urlsplit(url)
    query = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if not _is_tracking_param(k)
    ]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), ""))


def normalize_url(value: Any) -> str | None:
    """
    Normalize a candidate link.

    Accepts http(s) URLs as-is, prefixes bare domains with https:// and
    rejects everything else. Tracking parameters are removed.

    Returns:
        Normalized URL, or None when the value is not a usable web link
    """
    raw = "" if value is None else str(value).strip()
    if not raw:
        return None
    lowered = raw.lower()
    if lowered.startswith("http://") or lowered.startswith("https://"):
        url = raw
    elif BARE_DOMAIN_RE.match(raw):
        url = f"https://{raw}"
    else:
        return None

    cleaned = strip_tracking(url)
    if not urlsplit(cleaned).netloc:
        return None
    return cleaned


def dedupe_key(url: str) -> str:
    """Comparison key: ignores scheme, case, www., trailing slash and tracking."""
    parts = urlsplit(strip_tracking(url))
    host = parts.netloc.lower()
    if host.startswith("www."):
        host = host[4:]
    path = parts.path.rstrip("/")
    key = f"{host}{path}"
    if parts.query:
        key = f"{key}?{parts.query}"
    return key.lower()


def extract_urls_from_text(text: str | None) -> list[str]:
    """Find markdown-link targets and bare URLs in free text, in order."""
    if not text:
        return []
    found = [m.group(1) for m in MARKDOWN_LINK_RE.finditer(text)]
    found.extend(m.group(1) for m in BARE_URL_RE.finditer(text))
    return [u.rstrip(TRAILING_PUNCTUATION) for u in found if u]
