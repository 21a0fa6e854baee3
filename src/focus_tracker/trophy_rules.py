"""Trophy predicates keyed by trophy id.

Each rule is a pure function ``(Metrics, TrophyStatsState) -> TrophyProgress``
registered with :func:`rule`. Trophies without a rule report ``untracked``.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

from .metrics import DailyTotals, Metrics, median, variance
from .models import TrophyProgress, TrophyStatsState
from .timeutil import DAY, day_key, parse_day_key, start_of_day

Rule = Callable[[Metrics, TrophyStatsState], TrophyProgress]

RULES: dict[str, Rule] = {}

# Two qualifying day keys further apart than this break a streak.
STREAK_GAP = timedelta(days=1.5)

NOT_IMPLEMENTED = "Not implemented yet"


def rule(*trophy_ids: str) -> Callable[[Rule], Rule]:
    def register(func: Rule) -> Rule:
        for trophy_id in trophy_ids:
            if trophy_id in RULES:
                raise ValueError(f"Duplicate trophy rule for {trophy_id}")
            RULES[trophy_id] = func
        return func

    return register


def evaluate_rule(trophy_id: str, metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    func = RULES.get(trophy_id)
    if func is None:
        return untracked()
    return func(metrics, stats)


def progress(current: float, target: float, label: Optional[str] = None) -> TrophyProgress:
    safe_target = max(1, target)
    ratio = max(0.0, min(1.0, current / safe_target))
    state = "earned" if current >= safe_target else "locked"
    return TrophyProgress(current=current, target=safe_target, ratio=ratio, state=state, label=label)


def progress_max(value: float, maximum: float, label: Optional[str] = None) -> TrophyProgress:
    """Progress toward staying at or below ``maximum``."""
    safe_max = max(1, maximum)
    within = value <= safe_max
    ratio = 1.0 if within else max(0.0, min(1.0, safe_max / value))
    return TrophyProgress(
        current=value,
        target=safe_max,
        ratio=ratio,
        state="earned" if within else "locked",
        label=label,
    )


def untracked(label: str = "Not tracked yet") -> TrophyProgress:
    return TrophyProgress(current=0, target=1, ratio=0.0, state="untracked", label=label)


def flag(achieved: bool, label: Optional[str] = None) -> TrophyProgress:
    return progress(1 if achieved else 0, 1, label)


def count_consecutive_days(
    daily: dict[str, DailyTotals],
    target: int,
    predicate: Callable[[DailyTotals, str], bool],
) -> int:
    """Best run of consecutive qualifying days, capped at ``target``."""
    streak = 0
    best = 0
    previous: Optional[datetime] = None
    for key in sorted(daily):
        current = parse_day_key(key)
        if previous is not None and current - previous > STREAK_GAP:
            streak = 0
        if predicate(daily[key], key):
            streak += 1
            best = max(best, streak)
        else:
            streak = 0
        previous = current
    return min(best, target)


def last_weekend(now: datetime) -> tuple[str, str]:
    """Day keys of the most recent Saturday (today when it is Saturday) and the Sunday after."""
    sunday_first = (now.weekday() + 1) % 7
    offset = 0 if sunday_first == 6 else sunday_first + 1
    saturday = start_of_day(now - offset * DAY)
    return day_key(saturday), day_key(saturday + DAY)


def _run_minutes(metrics: Metrics) -> int:
    return round(metrics.max_productive_run_sec / 60)


# Attention control


@rule("first_light")
def first_light(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(metrics.productive_record_count, 1)


@rule("kept_the_thread")
def kept_the_thread(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(_run_minutes(metrics), 30)


@rule("deep_pocket")
def deep_pocket(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(_run_minutes(metrics), 60)


@rule("monk_hour")
def monk_hour(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(_run_minutes(metrics), 90)


@rule("cathedral")
def cathedral(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(round(metrics.productivity_seconds_24h / 60), 180, "Last 24h")


@rule("stonecutter")
def stonecutter(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    streak = count_consecutive_days(metrics.daily, 5, lambda day, _: day.productive >= 2 * 3600)
    return progress(streak, 5)


@rule("quiet_hands")
def quiet_hands(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    ratio = metrics.idle_ratio_24h
    if ratio is None:
        return untracked("Need recent activity to measure idle")
    target = 0.1
    current = 1 if ratio <= target else max(0.0, round((1 - ratio / target) * 10) / 10)
    return progress(current, 1, f"Idle {round(ratio * 100)}%")


@rule("low_turbulence")
def low_turbulence(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    switches = metrics.context_switches_per_hour_24h
    if switches is None:
        return untracked("Need recent activity to measure switching")
    target = 3
    current = 1 if switches <= target else max(0.0, round(target / max(1, switches) * 10) / 10)
    return progress(current, 1, f"{switches:.1f} switches/hr")


@rule("flow_engineer")
def flow_engineer(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    max_run = metrics.max_productive_run_sec
    if max_run == 0:
        return progress(0, 1, "No runs yet")
    label = (
        f"PB {round(stats.best_productive_run_sec / 60)}m"
        if stats.best_productive_run_sec > 0
        else None
    )
    return flag(max_run > stats.best_productive_run_sec, label)


@rule("second_brain", "gentle_redirect")
def replace_consumed(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(metrics.replace_consumed_total, 10)


# Recovery


@rule("bounce_back")
def bounce_back(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    if not metrics.recovery_times_minutes:
        return progress(0, 1, "No recoveries yet")
    best = min(metrics.recovery_times_minutes)
    return flag(best <= 10, f"{round(best)}m best")


@rule("elastic_mind")
def elastic_mind(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    week_ago = metrics.now - 7 * DAY
    two_weeks_ago = metrics.now - 14 * DAY
    recent = median([s.minutes for s in metrics.recovery_samples if s.ts >= week_ago])
    previous = median(
        [s.minutes for s in metrics.recovery_samples if two_weeks_ago <= s.ts < week_ago]
    )
    if recent is None or previous is None:
        return untracked("Need two weeks of recovery data")
    return flag(recent < previous, f"Median {round(recent)}m")


@rule("one_slip_no_slide")
def one_slip_no_slide(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    count = metrics.frivolity_sessions_by_day.get(metrics.today_key, 0)
    return flag(count == 1, f"{count} sessions")


@rule("damage_control")
def damage_control(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    minutes = round(metrics.frivolity_seconds_24h / 60)
    return progress_max(minutes, 15, f"{minutes}m")


@rule("phoenix")
def phoenix(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    last = metrics.last_frivolity_at
    if last is None:
        return flag(False)
    window = timedelta(hours=2)
    return flag(
        any(
            run.start >= last and run.start - last <= window and run.seconds >= 3600
            for run in metrics.productive_runs
        )
    )


@rule("cold_start")
def cold_start(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    today = metrics.daily.get(metrics.today_key)
    if today is None or today.first_activity_at is None or today.first_productive_at is None:
        return flag(False)
    minutes = (today.first_productive_at - today.first_activity_at).total_seconds() / 60
    return flag(minutes <= 15, f"{round(minutes)}m")


# Abstinence streaks


def _hours_clean(metrics: Metrics) -> int:
    return metrics.hours_since_frivolity or 0


@rule("clean_24")
def clean_24(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(_hours_clean(metrics), 24)


@rule("two_day_glass")
def two_day_glass(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(_hours_clean(metrics), 48)


@rule("three_day_gold")
def three_day_gold(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(_hours_clean(metrics), 72)


@rule("week_of_steel")
def week_of_steel(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(_hours_clean(metrics), 168)


@rule("weekend_shield")
def weekend_shield(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    saturday, sunday = last_weekend(metrics.now)
    sessions = metrics.frivolity_sessions_by_day
    return flag(sessions.get(saturday, 0) + sessions.get(sunday, 0) == 0)


@rule("temptation_tamer", "shield")
def first_decline(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(metrics.paywall_declines_total, 1)


@rule("gate_held")
def gate_held(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(metrics.paywall_declines_total, 10)


# Economy


@rule("no_spend_day")
def no_spend_day(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return flag(metrics.frivolity_spend_24h == 0)


@rule("high_yield")
def high_yield(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    streak = count_consecutive_days(
        metrics.daily, 3, lambda _, key: metrics.transactions_by_day.get(key, 0) > 0
    )
    return progress(streak, 3)


@rule("investor")
def investor(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(metrics.balance, max(1, stats.best_balance + 1))


@rule("debt_free")
def debt_free(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    has_debt = any(delta < 0 for delta in metrics.transactions_by_day.values())
    return flag(not has_debt and metrics.balance >= 0)


# Library


@rule("curator")
def curator(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(metrics.library_replace_total, 25)


@rule("librarian")
def librarian(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(metrics.library_consumed_count, 20)


@rule("taste_upgrade")
def taste_upgrade(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    if metrics.replace_consumed_prev_7 == 0:
        return progress(metrics.replace_consumed_last_7, 1)
    return progress(metrics.replace_consumed_last_7, metrics.replace_consumed_prev_7 + 1)


@rule("clean_desk")
def clean_desk(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(metrics.library_replace_ready, 10)


# Time of day


@rule("morning_anchor")
def morning_anchor(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    best = max((day.productive_before_10 for day in metrics.daily.values()), default=0.0)
    return progress(round(best / 60), 30)


@rule("noon_navigator")
def noon_navigator(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    risk_hour = metrics.overview_7.risk_hour if metrics.overview_7 else None
    if risk_hour is None:
        return untracked()
    if not any(row.total > 0 for row in metrics.time_of_day_7):
        return untracked("Need recent activity")
    hits = next((row.frivolity for row in metrics.time_of_day_7 if row.hour == risk_hour), 0)
    return flag(hits == 0)


@rule("afternoon_fortress")
def afternoon_fortress(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    total = sum(day.afternoon_total for day in metrics.daily.values())
    if total == 0:
        return flag(False)
    ratio = sum(day.productive_afternoon for day in metrics.daily.values()) / total
    return flag(ratio >= 0.6, f"{round(ratio * 100)}%")


@rule("night_watch")
def night_watch(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    clean = count_consecutive_days(metrics.daily, 7, lambda day, _: day.frivolity_after_21 == 0)
    return progress(clean, 7)


@rule("prime_time")
def prime_time(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    everything = metrics.hour_productive_all
    recent = metrics.hour_productive_24h
    if sum(everything) == 0 or sum(recent) == 0:
        return untracked("Need activity first")
    best_all = everything.index(max(everything))
    best_recent = recent.index(max(recent))
    return flag(best_all == best_recent)


# Stability


@rule("stable_orbit")
def stable_orbit(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return flag(variance(metrics.hour_productive_24h) < variance(metrics.hour_productive_all))


@rule("attractor_shift")
def attractor_shift(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    dominant = [metrics.daily[key].dominant() for key in sorted(metrics.daily)]
    if len(dominant) < 6:
        return untracked("Need a week of activity")
    recent = dominant[-3:]
    previous = dominant[-6:-3]
    return flag(
        all(state == "productive" for state in recent)
        and all(state == "neutral" for state in previous)
    )


def _switches_or(metrics: Metrics, default: float) -> float:
    value = metrics.context_switches_per_hour_24h
    return default if value is None else value


def _idle_or(metrics: Metrics, default: float) -> float:
    value = metrics.idle_ratio_24h
    return default if value is None else value


@rule("signal_clarity")
def signal_clarity(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    switches = _switches_or(metrics, 10)
    idle = _idle_or(metrics, 1)
    score = 1 - min(1, switches / 6) * 0.5 - idle * 0.5
    return flag(score >= 0.7, f"{round(score * 100)}%")


@rule("low_drift")
def low_drift(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    total_active = metrics.sum_last_days(1, "total_active")
    neutral = metrics.sum_last_days(1, "neutral")
    ratio = neutral / total_active if total_active > 0 else 1.0
    return flag(ratio < 0.25 and total_active >= 2 * 3600, f"{round(ratio * 100)}%")


@rule("anti_chaos")
def anti_chaos(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return flag(_idle_or(metrics, 1) < 0.2 and _switches_or(metrics, 10) < 3)


# Fun


@rule("compass")
def compass(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(metrics.recoveries_by_day.get(metrics.today_key, 0), 3)


@rule("hourglass")
def hourglass(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    streak = count_consecutive_days(metrics.daily, 14, lambda day, _: day.total_active > 0)
    return progress(streak, 14)


@rule("touch_grass")
def touch_grass(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    # Judged on yesterday so the trophy is never awarded while today's total still grows.
    day = metrics.daily.get(day_key(metrics.now - DAY))
    if day is None or day.total_active + day.idle == 0:
        return untracked("Need a full day of data")
    minutes = round((day.total_active + day.idle) / 60)
    return progress_max(minutes, 180, f"{minutes / 60:.1f}h")


@rule("alchemist")
def alchemist(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    days = [metrics.daily[key] for key in sorted(metrics.daily)]
    return flag(
        any(
            current.frivolity > current.productive and following.productive > current.productive
            for current, following in zip(days, days[1:])
        )
    )


@rule("archivist")
def archivist(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(metrics.library_notes_count, 20)


# Social


@rule("first_rival")
def first_rival(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(metrics.friends_count, 1)


# Secret


@rule("narrow_escape")
def narrow_escape(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return progress(metrics.paywall_quick_exits, 1)


@rule("zero_hour")
def zero_hour(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    ratio = _idle_or(metrics, 1)
    return flag(ratio < stats.best_idle_ratio, f"{round(ratio * 100)}%")


@rule("glass_cannon")
def glass_cannon(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return flag(
        metrics.max_productive_run_sec >= 3600 and _switches_or(metrics, 0) >= 8
    )


@rule(
    "soft_landing",
    "under_budget",
    "escrow_master",
    "iron_contract",
    "completionist",
    "lantern",
    "good_sport",
    "comeback_kid",
    "unbeaten",
    "patron",
    "the_standard",
    "librarians_revenge",
    "surgical_strike",
)
def not_implemented(metrics: Metrics, stats: TrophyStatsState) -> TrophyProgress:
    return untracked(NOT_IMPLEMENTED)