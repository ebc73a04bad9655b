"""Popularity-driven pricing: sales push a price down, time pulls it back."""
from __future__ import annotations

import math
from typing import AbstractSet, Dict, Mapping

from rules_catalog import MarketTuning


def sale_value(base_price: int, popularity: float, quantity: int) -> int:
    return math.floor(base_price * popularity * quantity)


def decay_popularity(
    popularity: Mapping[str, float], item_id: str, quantity: int, tuning: MarketTuning
) -> Dict[str, float]:
    """Apply the post-sale drop.  Untracked items start from the maximum."""
    updated = dict(popularity)
    current = updated.get(item_id, tuning.max_popularity)
    updated[item_id] = max(tuning.min_popularity, current - tuning.decay_rate * quantity)
    return updated


def recover_popularity(
    popularity: Mapping[str, float], tuning: MarketTuning, sold_this_tick: AbstractSet[str] = frozenset()
) -> Dict[str, float]:
    return {
        item_id: value if item_id in sold_this_tick else min(tuning.max_popularity, value + tuning.recovery_rate)
        for item_id, value in popularity.items()
    }
