from datetime import datetime

import pytest

from focus_tracker.classifier import ActivityClassifier, matches_pattern
from focus_tracker.config import DEFAULT_CATEGORISATION
from focus_tracker.models import CategorisationConfig, Observation

TS = datetime(2024, 3, 13, 9, 0, 0)


def build_classifier(config=DEFAULT_CATEGORISATION, idle=15, frivolous_idle=15):
    return ActivityClassifier(lambda: config, lambda: idle, lambda: frivolous_idle)


def observe(app_name="Google Chrome", domain=None, url=None, idle_seconds=0.0):
    return Observation(
        timestamp=TS,
        app_name=app_name,
        source="url" if domain or url else "app",
        domain=domain,
        url=url,
        idle_seconds=idle_seconds,
    )


@pytest.mark.parametrize(
    "domain, expected",
    [
        ("google.com", True),
        ("mail.google.com", True),
        ("evilgoogle.com", False),
        ("google.com.evil.net", False),
    ],
)
def test_domain_pattern_matches_on_subdomain_boundary(domain, expected):
    assert matches_pattern([domain], "chrome", "google.com") is expected


def test_short_pattern_only_matches_exact_app_name():
    assert matches_pattern(["whatsapp.com"], "whatsapp", "app") is False
    assert matches_pattern([], "app", "app") is True


def test_loose_pattern_matches_app_name_substring():
    classifier = build_classifier()
    assert classifier.classify(observe(app_name="Visual Studio Code")).category == "productive"


def test_first_matching_list_wins():
    config = CategorisationConfig(
        productive=["github.com"], neutral=["github.com"], frivolity=["github.com"]
    )
    result = build_classifier(config).classify(observe(domain="github.com"))
    assert result.category == "productive"


def test_unmatched_defaults_to_neutral():
    result = build_classifier().classify(observe(app_name="Terminal"))
    assert result.category == "neutral"


def test_aliases_are_resolved_before_matching():
    result = build_classifier().classify(observe(domain="x.com"))
    assert result.category == "frivolity"
    assert result.domain == "twitter.com"


def test_domain_derived_from_url():
    result = build_classifier().classify(
        observe(url="https://www.youtube.com/watch?v=abc")
    )
    assert result.domain == "youtube.com"
    assert result.category == "frivolity"


@pytest.mark.parametrize(
    "fields",
    [{"domain": "x.com"}, {"url": "https://x.com/home"}, {"url": "https://www.x.com/"}],
)
def test_alias_host_matches_the_same_from_domain_or_url(fields):
    config = CategorisationConfig(frivolity=["x.com"])
    result = build_classifier(config).classify(observe(**fields))

    assert result.category == "frivolity"
    assert result.domain == "twitter.com"


def test_idle_uses_category_specific_threshold():
    classifier = build_classifier(idle=30, frivolous_idle=5)
    frivolous = classifier.classify(observe(domain="reddit.com", idle_seconds=6))
    neutral = classifier.classify(observe(app_name="Terminal", idle_seconds=6))
    assert frivolous.is_idle is True
    assert frivolous.idle_threshold_seconds == 5
    assert neutral.is_idle is False
    assert neutral.idle_threshold_seconds == 30


def test_idle_threshold_clamped_to_one_second():
    classifier = build_classifier(idle=0)
    result = classifier.classify(observe(app_name="Terminal", idle_seconds=1))
    assert result.idle_threshold_seconds == 1
    assert result.is_idle is True


def test_configuration_changes_apply_immediately():
    config = {"value": DEFAULT_CATEGORISATION}
    classifier = ActivityClassifier(lambda: config["value"], lambda: 15, lambda: 15)
    assert classifier.classify(observe(app_name="Terminal")).category == "neutral"
    config["value"] = CategorisationConfig(productive=["Terminal"])
    assert classifier.classify(observe(app_name="Terminal")).category == "productive"


def test_failing_threshold_accessor_falls_back_to_default():
    def broken():
        raise RuntimeError("settings unavailable")

    classifier = ActivityClassifier(lambda: DEFAULT_CATEGORISATION, broken, broken)
    assert classifier.classify(observe(app_name="Terminal")).idle_threshold_seconds == 15
