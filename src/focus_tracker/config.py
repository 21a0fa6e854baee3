"""Configuration models and helpers for the focus tracker."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional, Protocol

from .models import CategorisationConfig

logger = logging.getLogger(__name__)

DEFAULT_IDLE_THRESHOLD_SECONDS = 15
DEFAULT_CONTINUITY_WINDOW_SECONDS = 120

# Baseline buckets used on first run and whenever the stored value is unreadable.
DEFAULT_CATEGORISATION = CategorisationConfig(
    productive=["Code", "Notes", "Documentation", "vscode", "obsidian", "notion", "linear.app"],
    neutral=["Mail", "Calendar", "Slack", "Figma"],
    frivolity=["twitter.com", "youtube.com", "reddit.com"],
)

CATEGORISATION_KEY = "categorisation"
IDLE_THRESHOLD_KEY = "idle_threshold"
FRIVOLOUS_IDLE_THRESHOLD_KEY = "frivolous_idle_threshold"
CONTINUITY_WINDOW_KEY = "continuity_window_seconds"
EXCLUDED_KEYWORDS_KEY = "excluded_keywords"


@dataclass(slots=True)
class TrackerSettings:
    """Timing constants shared by the tracker, pipeline and trophy engine."""

    gap_ceiling: timedelta = timedelta(seconds=120)
    gap_grace: timedelta = timedelta(seconds=15)
    coalesce_interval: timedelta = timedelta(seconds=1)
    foreground_freshness: timedelta = timedelta(seconds=3)
    run_merge_tolerance: timedelta = timedelta(minutes=2)
    evaluation_debounce: timedelta = timedelta(seconds=10)

    @classmethod
    def from_values(
        cls,
        gap_ceiling_seconds: float = 120.0,
        gap_grace_seconds: float = 15.0,
        debounce_seconds: float | None = None,
        foreground_freshness_seconds: float = 3.0,
    ) -> "TrackerSettings":
        debounce = debounce_seconds if debounce_seconds is not None else 10.0
        return cls(
            gap_ceiling=timedelta(seconds=gap_ceiling_seconds),
            gap_grace=timedelta(seconds=min(gap_grace_seconds, gap_ceiling_seconds)),
            foreground_freshness=timedelta(seconds=foreground_freshness_seconds),
            evaluation_debounce=timedelta(seconds=debounce),
        )


class JsonStore(Protocol):
    def get_json(self, key: str) -> Any: ...

    def set_json(self, key: str, value: Any) -> None: ...


class SettingsService:
    """Live, JSON-backed user settings.

    Getters never raise: a missing or malformed value degrades to its default so
    ingestion keeps running. Setters validate and raise ``ValueError``.
    """

    def __init__(self, store: JsonStore) -> None:
        self._store = store
        if self._read(CATEGORISATION_KEY) is None:
            self.set_categorisation(DEFAULT_CATEGORISATION)

    def _read(self, key: str) -> Any:
        try:
            return self._store.get_json(key)
        except Exception:
            logger.exception("Failed to read setting %s; using default.", key)
            return None

    def get_categorisation(self) -> CategorisationConfig:
        raw = self._read(CATEGORISATION_KEY)
        if not isinstance(raw, dict):
            return DEFAULT_CATEGORISATION
        return CategorisationConfig(
            productive=_string_list(raw.get("productive")),
            neutral=_string_list(raw.get("neutral")),
            frivolity=_string_list(raw.get("frivolity")),
        )

    def set_categorisation(self, value: CategorisationConfig) -> None:
        self._store.set_json(CATEGORISATION_KEY, value.to_dict())

    def get_idle_threshold(self) -> int:
        return _positive_int(self._read(IDLE_THRESHOLD_KEY), DEFAULT_IDLE_THRESHOLD_SECONDS)

    def set_idle_threshold(self, seconds: float) -> None:
        self._store.set_json(IDLE_THRESHOLD_KEY, _validate_seconds(seconds, minimum=1))

    def get_frivolous_idle_threshold(self) -> int:
        return _positive_int(
            self._read(FRIVOLOUS_IDLE_THRESHOLD_KEY), DEFAULT_IDLE_THRESHOLD_SECONDS
        )

    def set_frivolous_idle_threshold(self, seconds: float) -> None:
        self._store.set_json(FRIVOLOUS_IDLE_THRESHOLD_KEY, _validate_seconds(seconds, minimum=1))

    def get_continuity_window_seconds(self) -> int:
        raw = self._read(CONTINUITY_WINDOW_KEY)
        if _is_number(raw) and raw >= 0:
            return int(round(raw))
        return DEFAULT_CONTINUITY_WINDOW_SECONDS

    def set_continuity_window_seconds(self, seconds: float) -> None:
        self._store.set_json(
            CONTINUITY_WINDOW_KEY, _validate_seconds(seconds, minimum=0, maximum=3600)
        )

    def get_excluded_keywords(self) -> list[str]:
        raw = self._read(EXCLUDED_KEYWORDS_KEY)
        return [keyword.lower() for keyword in _string_list(raw)]

    def set_excluded_keywords(self, keywords: list[str]) -> None:
        cleaned = sorted({keyword.strip().lower() for keyword in keywords if keyword.strip()})
        self._store.set_json(EXCLUDED_KEYWORDS_KEY, cleaned)

    def get_json(self, key: str) -> Any:
        return self._read(key)

    def set_json(self, key: str, value: Any) -> None:
        self._store.set_json(key, value)


def is_suppressed(
    keywords: list[str], domain: Optional[str], app_name: Optional[str]
) -> bool:
    """Return True when a context matches one of the user's excluded keywords."""
    if not keywords:
        return False
    haystack = f"{domain or ''} {app_name or ''}".lower()
    return any(keyword and keyword in haystack for keyword in keywords)


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _positive_int(value: Any, default: int) -> int:
    if _is_number(value) and value > 0:
        return max(1, int(round(value)))
    return default


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _validate_seconds(value: float, *, minimum: float, maximum: float = 86400) -> int:
    if not _is_number(value) or value < minimum or value > maximum:
        raise ValueError(f"Expected seconds between {minimum} and {maximum}, got {value!r}")
    return int(round(value))
