# -*- coding: utf-8 -*-
"""subscription.py

Subscription tier primitives + Access Gate
------------------------------------------
This module defines:

- SubscriptionTier: free / plus / premium
- PremiumFeature:   analytics features gated behind a paid tier
- require_premium:  the single Access Gate every report runs first

Design notes:
- Keep this file dependency-free (std lib only).
- Normalization helpers accept common casing variants.
- Unknown tiers normalize to FREE (fail-closed).
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Union

from .errors import AccessDenied
from .models import AccessContext


class SubscriptionTier(str, Enum):
    """Subscription tier."""

    FREE = "free"
    PLUS = "plus"
    PREMIUM = "premium"


class PremiumFeature(str, Enum):
    """Analytics features that require a non-free tier."""

    WEEKLY_SUMMARY = "weekly_summary"
    TRIGGER_ANALYSIS = "trigger_analysis"
    RECOMMENDATIONS = "recommendations"
    GENERATE_INSIGHT = "generate_insight"


_TIER_ALIASES: Dict[str, SubscriptionTier] = {
    # canonical
    "free": SubscriptionTier.FREE,
    "plus": SubscriptionTier.PLUS,
    "premium": SubscriptionTier.PREMIUM,
    # typical casing
    "Free": SubscriptionTier.FREE,
    "Plus": SubscriptionTier.PLUS,
    "Premium": SubscriptionTier.PREMIUM,
}


TierLike = Union[SubscriptionTier, str, None]


def normalize_subscription_tier(tier: TierLike, *, default: SubscriptionTier = SubscriptionTier.FREE) -> SubscriptionTier:
    """Normalize incoming tier.

    Accepts:
    - SubscriptionTier enum
    - strings like "free"/"Premium"/" PLUS " etc.
    - None → default
    """

    if tier is None:
        return default
    if isinstance(tier, SubscriptionTier):
        return tier
    s = str(tier).strip()
    if not s:
        return default
    if s in _TIER_ALIASES:
        return _TIER_ALIASES[s]
    return _TIER_ALIASES.get(s.lower(), default)


def is_premium(tier: TierLike) -> bool:
    """True for every tier except FREE."""

    return normalize_subscription_tier(tier) != SubscriptionTier.FREE


def require_premium(ctx: AccessContext, feature: Union[PremiumFeature, str]) -> None:
    """Raise AccessDenied unless the context's tier unlocks analytics.

    Must run before any event store query so ineligible users cause no I/O.
    """

    name = feature.value if isinstance(feature, PremiumFeature) else str(feature)
    if not is_premium(ctx.subscription_tier):
        t = normalize_subscription_tier(ctx.subscription_tier)
        raise AccessDenied(name, tier=t.value)
