"""Sustainability scoring and badge tiers.

A member's score is a pure function of two counters: toys shared and
successful exchanges. Services call `apply_increments` whenever a toy is
listed or removed and whenever an exchange completes, so the stored
score and badge never drift from the counters.
"""

from __future__ import annotations

from typing import List, NamedTuple, Optional

TOY_SHARED_POINTS = 5
EXCHANGE_POINTS = 3


class Badge(NamedTuple):
    key: str
    name: str
    min_score: int
    icon: str


BADGES: List[Badge] = [
    Badge("NEWCOMER", "Newcomer", 0, "🌱"),
    Badge("ECO_FRIEND", "Eco Friend", 10, "🌿"),
    Badge("SUSTAINABILITY_HERO", "Sustainability Hero", 25, "🌊"),
    Badge("EARTH_GUARDIAN", "Earth Guardian", 50, "🌍"),
    Badge("PLANET_PROTECTOR", "Planet Protector", 100, "⭐"),
]


def calculate_score(toys_shared: int, successful_exchanges: int) -> int:
    return max(0, toys_shared or 0) * TOY_SHARED_POINTS + max(0, successful_exchanges or 0) * EXCHANGE_POINTS


def badge_for(score: int) -> Badge:
    current = BADGES[0]
    for badge in BADGES:
        if score >= badge.min_score:
            current = badge
    return current


def calculate_badge(score: int) -> str:
    """Return the name of the highest badge tier reached by `score`."""
    return badge_for(score).name


def next_badge(score: int) -> Optional[dict]:
    """Return the next tier and the points still needed, or None at the top."""
    for badge in BADGES:
        if badge.min_score > score:
            return {"name": badge.name, "min_score": badge.min_score, "points_needed": badge.min_score - score}
    return None


def apply_increments(user, toys_shared: int = 0, successful_exchanges: int = 0):
    """Apply counter deltas to `user` and recompute derived fields in place.

    Counters never go below zero. Returns the same user object.
    """
    user.toys_shared = max(0, (user.toys_shared or 0) + toys_shared)
    user.successful_exchanges = max(0, (user.successful_exchanges or 0) + successful_exchanges)
    score = calculate_score(user.toys_shared, user.successful_exchanges)
    user.sustainability_score = score
    user.current_badge = calculate_badge(score)
    user.points = score
    return user


def badge_table() -> List[dict]:
    return [b._asdict() for b in BADGES]
