"""Maps observations to productive / neutral / frivolity categories."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from .config import DEFAULT_CATEGORISATION, DEFAULT_IDLE_THRESHOLD_SECONDS
from .models import (
    FRIVOLITY,
    NEUTRAL,
    PRODUCTIVE,
    ActivityCategory,
    CategorisationConfig,
    ClassifiedActivity,
    Observation,
)
from .normalization import canonical_domain, domain_candidates, domain_from_url

# Keyword patterns shorter than this only match an app name exactly.
MIN_LOOSE_PATTERN_LENGTH = 4

logger = logging.getLogger(__name__)


class ActivityClassifier:
    """Resolve the category and idle state of a single observation.

    Configuration is read through the injected accessors on every call, so a
    settings change applies to the very next observation.
    """

    def __init__(
        self,
        get_categorisation: Callable[[], CategorisationConfig],
        get_idle_threshold: Callable[[], int],
        get_frivolous_idle_threshold: Callable[[], int],
    ) -> None:
        self._get_categorisation = get_categorisation
        self._get_idle_threshold = get_idle_threshold
        self._get_frivolous_idle_threshold = get_frivolous_idle_threshold

    def classify(self, observation: Observation) -> ClassifiedActivity:
        config = self._get_categorisation() or DEFAULT_CATEGORISATION
        raw_domain = observation.domain or domain_from_url(observation.url)
        candidates = domain_candidates(raw_domain)
        app_name = (observation.app_name or "").lower()

        category = resolve_category(candidates, app_name, config)
        threshold = self.idle_threshold_for(category)
        idle_seconds = max(0.0, float(observation.idle_seconds or 0))

        return ClassifiedActivity(
            timestamp=observation.timestamp,
            app_name=observation.app_name,
            source=observation.source,
            category=category,
            is_idle=round(idle_seconds) >= threshold,
            idle_threshold_seconds=threshold,
            bundle_id=observation.bundle_id,
            window_title=observation.window_title,
            url=observation.url,
            domain=canonical_domain(raw_domain),
            idle_seconds=idle_seconds,
        )

    def idle_threshold_for(self, category: ActivityCategory) -> int:
        if category == FRIVOLITY:
            value = _safe_threshold(self._get_frivolous_idle_threshold)
        else:
            value = _safe_threshold(self._get_idle_threshold)
        return max(1, value)


def resolve_category(
    domains: Sequence[str], app_name: str, config: CategorisationConfig
) -> ActivityCategory:
    if matches_any(domains, app_name, config.productive):
        return PRODUCTIVE
    if matches_any(domains, app_name, config.neutral):
        return NEUTRAL
    if matches_any(domains, app_name, config.frivolity):
        return FRIVOLITY
    return NEUTRAL


def matches_any(domains: Sequence[str], app_name: str, patterns: Sequence[str]) -> bool:
    return any(matches_pattern(domains, app_name, pattern) for pattern in patterns)


def matches_pattern(domains: Sequence[str], app_name: str, pattern: str) -> bool:
    needle = pattern.strip().lower()
    if not needle:
        return False

    if "." in needle:
        # Domain patterns match exactly or on a subdomain boundary.
        return any(domain == needle or domain.endswith("." + needle) for domain in domains)

    if len(needle) < MIN_LOOSE_PATTERN_LENGTH:
        return app_name == needle

    return any(needle in domain for domain in domains) or needle in app_name


def _safe_threshold(getter: Callable[[], Optional[int]]) -> int:
    try:
        value = getter()
    except Exception:
        logger.exception("Failed to read idle threshold; using default.")
        return DEFAULT_IDLE_THRESHOLD_SECONDS
    if value is None:
        return DEFAULT_IDLE_THRESHOLD_SECONDS
    return int(round(value))
