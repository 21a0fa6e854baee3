"""Utilities to normalize app names, domains and window titles."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

# Known aliases collapse onto one canonical brand domain.
DOMAIN_ALIASES: dict[str, str] = {
    "x.com": "twitter.com",
    "mobile.twitter.com": "twitter.com",
    "m.youtube.com": "youtube.com",
    "youtu.be": "youtube.com",
    "m.facebook.com": "facebook.com",
    "web.whatsapp.com": "whatsapp.com",
    "wa.me": "whatsapp.com",
    "web.telegram.org": "telegram.org",
}

_APP_ALIASES: dict[str, str] = {
    "google chrome": "chrome",
    "chrome.exe": "chrome",
    "microsoft edge": "edge",
    "msedge.exe": "edge",
    "msedge": "edge",
    "mozilla firefox": "firefox",
    "firefox.exe": "firefox",
    "brave browser": "brave",
    "brave.exe": "brave",
    "opera.exe": "opera",
}

BROWSER_NAMES: tuple[str, ...] = (
    "chrome",
    "chromium",
    "safari",
    "edge",
    "brave",
    "arc",
    "firefox",
    "opera",
    "vivaldi",
)

_BROWSER_SUFFIXES: dict[str, tuple[str, ...]] = {
    "edge": (" - Microsoft Edge", " - Personal - Microsoft Edge"),
    "chrome": (" - Google Chrome",),
    "firefox": (" - Mozilla Firefox", " — Mozilla Firefox"),
    "brave": (" - Brave",),
    "opera": (" - Opera",),
}


def _clean_domain(domain: Optional[str]) -> Optional[str]:
    if not domain:
        return None
    cleaned = domain.strip().lower().rstrip(".")
    if cleaned.startswith("www."):
        cleaned = cleaned[4:]
    return cleaned or None


def canonical_domain(domain: Optional[str]) -> Optional[str]:
    """Lower-case, strip ``www.`` and resolve known aliases."""
    cleaned = _clean_domain(domain)
    if cleaned is None:
        return None
    return DOMAIN_ALIASES.get(cleaned, cleaned)


def domain_candidates(domain: Optional[str]) -> list[str]:
    """Raw and canonical forms of a domain, de-duplicated, for pattern matching."""
    if not domain:
        return []
    raw = domain.strip().lower()
    candidates = [raw]
    canonical = canonical_domain(raw)
    if canonical and canonical not in candidates:
        candidates.append(canonical)
    return [candidate for candidate in candidates if candidate]


def domain_from_url(url: Optional[str]) -> Optional[str]:
    """Host of ``url`` without ``www.``; aliases are left for matching to expand."""
    if not url:
        return None
    try:
        host = urlsplit(url.strip()).hostname
    except ValueError:
        return None
    return _clean_domain(host)


def canonical_app_name(app_name: Optional[str]) -> Optional[str]:
    """Key used to decide whether two app names describe the same application."""
    if not app_name:
        return None
    lowered = re.sub(r"\s{2,}", " ", app_name.strip().lower())
    if not lowered:
        return None
    return _APP_ALIASES.get(lowered, lowered)


def is_browser_app(app_name: Optional[str]) -> bool:
    canonical = canonical_app_name(app_name)
    if not canonical:
        return False
    words = re.split(r"[\s._-]+", canonical)
    if any(name in words for name in BROWSER_NAMES):
        return True
    # Joined names such as "MicrosoftEdge.exe"; short names like "arc" need a word match.
    return any(len(name) >= 4 and name in canonical for name in BROWSER_NAMES)


def context_key(domain: Optional[str], app_name: Optional[str]) -> str:
    """Grouping label for a context: canonical domain, else app name."""
    return canonical_domain(domain) or app_name or "Unknown"


def normalize_window_title(app_name: Optional[str], window_title: Optional[str]) -> Optional[str]:
    """Remove common browser suffixes to surface tab names."""
    if not window_title:
        return None
    normalized = window_title.strip()
    if not app_name:
        return normalized or None

    suffixes = _BROWSER_SUFFIXES.get(canonical_app_name(app_name) or "")
    if suffixes:
        for suffix in suffixes:
            if normalized.endswith(suffix):
                normalized = normalized[: -len(suffix)].rstrip(" -")
                break

    normalized = _strip_tab_count(normalized)
    normalized = re.sub(r"\s{2,}", " ", normalized).strip()
    return normalized or None


_EXTRA_TAB_COUNT_PATTERN = re.compile(r"\s+and\s+\d+\s+more\s+pages?", re.IGNORECASE)


def _strip_tab_count(value: str) -> str:
    cleaned = _EXTRA_TAB_COUNT_PATTERN.sub("", value)
    return cleaned.strip(" -|")
