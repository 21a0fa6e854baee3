"""Static catalogue of every trophy the engine knows about."""

from __future__ import annotations

from .models import TrophyDefinition

TROPHY_CATEGORY_LABELS: dict[str, str] = {
    "attention": "Attention Control",
    "recovery": "Recovery & Resilience",
    "streaks": "Anti-Frivolity Streaks",
    "economy": "Economy & Discipline",
    "library": "Library & Intentionality",
    "time": "Time-of-Day",
    "stability": "Stability & Dynamics",
    "fun": "Fun Flavor",
    "social": "Social & Friends",
    "secret": "Secret",
}

TROPHY_DEFINITIONS: tuple[TrophyDefinition, ...] = (
    # Attention control
    TrophyDefinition(
        id="first_light",
        name="First Light",
        description="Log your very first productive minute.",
        emoji="🌅",
        category="attention",
        rarity="common",
    ),
    TrophyDefinition(
        id="kept_the_thread",
        name="Kept the Thread",
        description="Stay productive for 30 minutes without switching context.",
        emoji="🧵",
        category="attention",
        rarity="common",
    ),
    TrophyDefinition(
        id="deep_pocket",
        name="Deep Pocket",
        description="Hit 60 minutes in a single productive run.",
        emoji="🪙",
        category="attention",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="monk_hour",
        name="Monk Hour",
        description="Hit 90 minutes in a single productive run.",
        emoji="🧘",
        category="attention",
        rarity="rare",
    ),
    TrophyDefinition(
        id="cathedral",
        name="Cathedral",
        description="Log 3 hours of productive time in a 24h window.",
        emoji="🏛️",
        category="attention",
        rarity="rare",
    ),
    TrophyDefinition(
        id="stonecutter",
        name="Stonecutter",
        description="5 consecutive days with 2 hours of productive time.",
        emoji="⛏️",
        category="attention",
        rarity="epic",
    ),
    TrophyDefinition(
        id="quiet_hands",
        name="Quiet Hands",
        description="Keep idle time under 10% in a 24h window.",
        emoji="🤲",
        category="attention",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="low_turbulence",
        name="Low Turbulence",
        description="Keep context switches under 3/hour for a full day.",
        emoji="🛫",
        category="attention",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="flow_engineer",
        name="Flow Engineer",
        description="Set a new personal best productive run.",
        emoji="🛠️",
        category="attention",
        rarity="rare",
    ),
    TrophyDefinition(
        id="second_brain",
        name="Second Brain",
        description="Complete 10 replace items instead of frivolity.",
        emoji="🧠",
        category="attention",
        rarity="rare",
    ),

    # Recovery
    TrophyDefinition(
        id="bounce_back",
        name="Bounce Back",
        description="Return to productive within 10 minutes after frivolity.",
        emoji="🏀",
        category="recovery",
        rarity="common",
    ),
    TrophyDefinition(
        id="elastic_mind",
        name="Elastic Mind",
        description="Improve your median recovery time vs last week.",
        emoji="🪢",
        category="recovery",
        rarity="rare",
    ),
    TrophyDefinition(
        id="one_slip_no_slide",
        name="One Slip, No Slide",
        description="Only one frivolity session in a 24h window.",
        emoji="🧊",
        category="recovery",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="damage_control",
        name="Damage Control",
        description="Keep frivolity under 15 minutes in 24h.",
        emoji="🧯",
        category="recovery",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="phoenix",
        name="Phoenix",
        description="Your best productive run begins after frivolity.",
        emoji="🔥",
        category="recovery",
        rarity="rare",
    ),
    TrophyDefinition(
        id="cold_start",
        name="Cold Start",
        description="Start your day productive within 15 minutes.",
        emoji="🧊",
        category="recovery",
        rarity="common",
    ),
    TrophyDefinition(
        id="soft_landing",
        name="Soft Landing",
        description="End the day with a recovery ritual after drift.",
        emoji="🌙",
        category="recovery",
        rarity="rare",
    ),

    # Abstinence streaks
    TrophyDefinition(
        id="clean_24",
        name="Clean 24",
        description="24 hours without frivolity.",
        emoji="🧼",
        category="streaks",
        rarity="common",
    ),
    TrophyDefinition(
        id="two_day_glass",
        name="Two-Day Glass",
        description="48 hours without frivolity.",
        emoji="🪟",
        category="streaks",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="three_day_gold",
        name="Three-Day Gold",
        description="72 hours without frivolity.",
        emoji="🥇",
        category="streaks",
        rarity="rare",
    ),
    TrophyDefinition(
        id="week_of_steel",
        name="Week of Steel",
        description="7 days without frivolity.",
        emoji="🛡️",
        category="streaks",
        rarity="epic",
    ),
    TrophyDefinition(
        id="weekend_shield",
        name="Weekend Shield",
        description="No frivolity on Saturday and Sunday.",
        emoji="🗓️",
        category="streaks",
        rarity="rare",
    ),
    TrophyDefinition(
        id="temptation_tamer",
        name="Temptation Tamer",
        description="Decline frivolity when it shows up.",
        emoji="🐍",
        category="streaks",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="gate_held",
        name="The Gate Held",
        description="Reject 10 paywall prompts.",
        emoji="🚪",
        category="streaks",
        rarity="rare",
    ),

    # Economy
    TrophyDefinition(
        id="no_spend_day",
        name="No Spend Day",
        description="Go 24 hours with zero frivolity spending.",
        emoji="💸",
        category="economy",
        rarity="common",
    ),
    TrophyDefinition(
        id="under_budget",
        name="Under Budget",
        description="Stay under your daily frivolity budget for 7 days.",
        emoji="📉",
        category="economy",
        rarity="rare",
    ),
    TrophyDefinition(
        id="high_yield",
        name="High Yield",
        description="Grow your balance 3 days in a row.",
        emoji="📈",
        category="economy",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="investor",
        name="Investor",
        description="Hit a new all-time-high balance.",
        emoji="🏦",
        category="economy",
        rarity="rare",
    ),
    TrophyDefinition(
        id="escrow_master",
        name="Escrow Master",
        description="Complete 5 escrow contracts.",
        emoji="🧾",
        category="economy",
        rarity="rare",
    ),
    TrophyDefinition(
        id="iron_contract",
        name="Iron Contract",
        description="Complete a hard-stakes escrow.",
        emoji="⚙️",
        category="economy",
        rarity="epic",
    ),
    TrophyDefinition(
        id="debt_free",
        name="Debt-Free",
        description="Stay positive after clearing a penalty.",
        emoji="🧿",
        category="economy",
        rarity="uncommon",
    ),

    # Library
    TrophyDefinition(
        id="curator",
        name="Curator",
        description="Add 25 replace items to your library.",
        emoji="🗂️",
        category="library",
        rarity="common",
    ),
    TrophyDefinition(
        id="librarian",
        name="Librarian",
        description="Mark 20 library items as done.",
        emoji="📚",
        category="library",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="taste_upgrade",
        name="Taste Upgrade",
        description="Use the replace pool more this week than last.",
        emoji="🍵",
        category="library",
        rarity="rare",
    ),
    TrophyDefinition(
        id="clean_desk",
        name="Clean Desk",
        description="Keep 10+ replace items ready.",
        emoji="🧹",
        category="library",
        rarity="common",
    ),
    TrophyDefinition(
        id="gentle_redirect",
        name="Gentle Redirect",
        description="Choose replace items 10 times.",
        emoji="🧭",
        category="library",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="completionist",
        name="Completionist",
        description="Finish 10 reading items.",
        emoji="✅",
        category="library",
        rarity="rare",
    ),

    # Time of day
    TrophyDefinition(
        id="morning_anchor",
        name="Morning Anchor",
        description="30 productive minutes before 10am.",
        emoji="🌄",
        category="time",
        rarity="common",
    ),
    TrophyDefinition(
        id="noon_navigator",
        name="Noon Navigator",
        description="Avoid frivolity during your riskiest hour.",
        emoji="🧭",
        category="time",
        rarity="rare",
    ),
    TrophyDefinition(
        id="afternoon_fortress",
        name="Afternoon Fortress",
        description="2–5pm is 60% productive or more.",
        emoji="🏰",
        category="time",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="night_watch",
        name="Night Watch",
        description="No frivolity after 9pm for 7 days.",
        emoji="🕯️",
        category="time",
        rarity="rare",
    ),
    TrophyDefinition(
        id="prime_time",
        name="Prime Time",
        description="Hit your best hour-of-day productivity again.",
        emoji="⏱️",
        category="time",
        rarity="uncommon",
    ),

    # Stability
    TrophyDefinition(
        id="stable_orbit",
        name="Stable Orbit",
        description="Hourly productivity variance drops vs last week.",
        emoji="🪐",
        category="stability",
        rarity="rare",
    ),
    TrophyDefinition(
        id="attractor_shift",
        name="Attractor Shift",
        description="Dominant state shifts from neutral to productive.",
        emoji="🧲",
        category="stability",
        rarity="rare",
    ),
    TrophyDefinition(
        id="signal_clarity",
        name="Signal Clarity",
        description="Flow stability stays high for 24h.",
        emoji="📡",
        category="stability",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="low_drift",
        name="Low Drift",
        description="Neutral time under 25% with solid activity.",
        emoji="🛰️",
        category="stability",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="anti_chaos",
        name="Anti-Chaos",
        description="Low idle + low context switches in 24h.",
        emoji="🧯",
        category="stability",
        rarity="rare",
    ),

    # Fun
    TrophyDefinition(
        id="shield",
        name="The Shield",
        description="Hold the line after a paywall prompt.",
        emoji="🛡️",
        category="fun",
        rarity="common",
    ),
    TrophyDefinition(
        id="lantern",
        name="The Lantern",
        description="Peek, then walk away.",
        emoji="🏮",
        category="fun",
        rarity="rare",
    ),
    TrophyDefinition(
        id="compass",
        name="The Compass",
        description="Correct course 3 times in a day.",
        emoji="🧭",
        category="fun",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="hourglass",
        name="The Hourglass",
        description="Log activity every day for 14 days.",
        emoji="⏳",
        category="fun",
        rarity="rare",
    ),
    TrophyDefinition(
        id="touch_grass",
        name="Touch Grass",
        description="Keep total screen time under 3 hours in a day.",
        emoji="🌿",
        category="fun",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="alchemist",
        name="The Alchemist",
        description="Flip a rough day into a strong tomorrow.",
        emoji="⚗️",
        category="fun",
        rarity="rare",
    ),
    TrophyDefinition(
        id="archivist",
        name="The Archivist",
        description="Add notes or purpose to 20 saved items.",
        emoji="🗄️",
        category="fun",
        rarity="uncommon",
    ),

    # Social
    TrophyDefinition(
        id="first_rival",
        name="First Rival",
        description="Add your first friend.",
        emoji="🤝",
        category="social",
        rarity="common",
    ),
    TrophyDefinition(
        id="good_sport",
        name="Good Sport",
        description="Complete a head-to-head week challenge.",
        emoji="🏅",
        category="social",
        rarity="rare",
    ),
    TrophyDefinition(
        id="comeback_kid",
        name="Comeback Kid",
        description="Lose a day, win the next.",
        emoji="🎯",
        category="social",
        rarity="rare",
    ),
    TrophyDefinition(
        id="unbeaten",
        name="Unbeaten",
        description="Win 5 daily comparisons in a row.",
        emoji="🥊",
        category="social",
        rarity="epic",
    ),
    TrophyDefinition(
        id="patron",
        name="Patron",
        description="Send 10 focus boosts to friends.",
        emoji="🎁",
        category="social",
        rarity="uncommon",
    ),
    TrophyDefinition(
        id="the_standard",
        name="The Standard",
        description="A friend views your profile often.",
        emoji="🏁",
        category="social",
        rarity="rare",
    ),

    # Secret
    TrophyDefinition(
        id="librarians_revenge",
        name="The Librarian's Revenge",
        description="Open 3 reading items within 10 minutes of a paywall.",
        emoji="📖",
        category="secret",
        rarity="secret",
        secret=True,
    ),
    TrophyDefinition(
        id="narrow_escape",
        name="The Narrow Escape",
        description="Proceed anyway, but exit within 60 seconds.",
        emoji="🏃",
        category="secret",
        rarity="secret",
        secret=True,
    ),
    TrophyDefinition(
        id="zero_hour",
        name="Zero Hour",
        description="Set your lowest idle ratio ever.",
        emoji="🕳️",
        category="secret",
        rarity="secret",
        secret=True,
    ),
    TrophyDefinition(
        id="glass_cannon",
        name="Glass Cannon",
        description="Huge focus run with chaotic switching.",
        emoji="🧨",
        category="secret",
        rarity="secret",
        secret=True,
    ),
    TrophyDefinition(
        id="surgical_strike",
        name="Surgical Strike",
        description="One focused session completes the day’s plan.",
        emoji="🩺",
        category="secret",
        rarity="secret",
        secret=True,
    ),
)

TROPHY_IDS: frozenset[str] = frozenset(trophy.id for trophy in TROPHY_DEFINITIONS)


def get_definition(trophy_id: str) -> TrophyDefinition:
    for trophy in TROPHY_DEFINITIONS:
        if trophy.id == trophy_id:
            return trophy
    raise KeyError(trophy_id)
