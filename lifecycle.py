"""
Prompt lifecycle: age, staleness, and list filtering.

Key principles:
- Age is whole UTC days since creation (floor)
- "old" and "stale" are strict greater-than thresholds
- Filters are conjunctive
- Results are newest first, ties broken by id
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from time_utils import days_between, parse_iso_datetime, utc_now


# =============================================================================
# Configuration (all tunable, no magic numbers)
# =============================================================================

@dataclass(frozen=True)
class LifecycleConfig:
    """Age thresholds used for cleanup filtering and stats."""
    # Prompts older than this many days are "old"
    old_after_days: int = 7

    # Prompts older than this many days are "stale"
    stale_after_days: int = 30


DEFAULT_LIFECYCLE_CONFIG = LifecycleConfig()


@dataclass
class PromptFilters:
    """List/delete filters. Unset fields do not filter."""
    category: Optional[str] = None
    executed: Optional[bool] = None
    verified: Optional[bool] = None
    stale: bool = False
    old: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "PromptFilters":
        data = data or {}
        return cls(
            category=data.get("category"),
            executed=data.get("executed"),
            verified=data.get("verified"),
            stale=bool(data.get("stale", False)),
            old=bool(data.get("old", False)),
        )

    def is_empty(self) -> bool:
        return (
            self.category is None
            and self.executed is None
            and self.verified is None
            and not self.stale
            and not self.old
        )


# =============================================================================
# Age math
# =============================================================================

def age_in_days(entry: dict, now: Optional[datetime] = None) -> int:
    """Whole days since the prompt was created."""
    return days_between(entry["timestamp"], now or utc_now())


def is_old(age: int, config: LifecycleConfig = DEFAULT_LIFECYCLE_CONFIG) -> bool:
    return age > config.old_after_days


def is_stale(age: int, config: LifecycleConfig = DEFAULT_LIFECYCLE_CONFIG) -> bool:
    return age > config.stale_after_days


# =============================================================================
# Filtering and ordering
# =============================================================================

def matches(
    entry: dict,
    age: int,
    filters: PromptFilters,
    config: LifecycleConfig = DEFAULT_LIFECYCLE_CONFIG
) -> bool:
    if filters.category is not None and entry.get("category") != filters.category:
        return False
    if filters.executed is not None and bool(entry.get("executed")) != filters.executed:
        return False
    if filters.verified is not None and bool(entry.get("verified")) != filters.verified:
        return False
    if filters.stale and not is_stale(age, config):
        return False
    if filters.old and not is_old(age, config):
        return False
    return True


def sort_newest_first(entries: list[dict]) -> list[dict]:
    """Sort by creation time descending; equal timestamps fall back to id order."""
    by_id = sorted(entries, key=lambda e: e["id"])
    return sorted(by_id, key=lambda e: parse_iso_datetime(e["timestamp"]), reverse=True)


def filter_entries(
    entries: list[dict],
    filters: Optional[PromptFilters] = None,
    config: LifecycleConfig = DEFAULT_LIFECYCLE_CONFIG,
    now: Optional[datetime] = None
) -> list[dict]:
    """
    Apply filters and attach age_in_days.

    Returns new dicts; the input entries are not modified.
    """
    filters = filters or PromptFilters()
    now = now or utc_now()

    results = []
    for entry in entries:
        age = age_in_days(entry, now)
        if matches(entry, age, filters, config):
            results.append({**entry, "age_in_days": age})

    return sort_newest_first(results)
