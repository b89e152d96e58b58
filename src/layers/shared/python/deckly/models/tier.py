"""Subscription tiers and their analytics retention windows."""

from dataclasses import dataclass
from enum import Enum


class Tier(str, Enum):
    """Owner subscription tier."""

    FREE = "FREE"
    PRO = "PRO"
    PRO_PLUS = "PRO_PLUS"


@dataclass(frozen=True)
class TierConfig:
    """Analytics limits for a tier."""

    days: int


TIER_CONFIG: dict[Tier, TierConfig] = {
    Tier.FREE: TierConfig(days=7),
    Tier.PRO: TierConfig(days=90),
    Tier.PRO_PLUS: TierConfig(days=365),
}


def get_tier_config(tier: Tier | str | None = None, is_pro: bool = False) -> TierConfig:
    """Resolve the tier config.

    An explicit tier wins; otherwise ``is_pro`` picks PRO over FREE.

    Raises:
        ValueError: If ``tier`` is not a known tier name.
    """
    if tier is not None:
        return TIER_CONFIG[Tier(tier)]
    return TIER_CONFIG[Tier.PRO] if is_pro else TIER_CONFIG[Tier.FREE]
