"""
Storage statistics for the prompt catalog.
"""

from dataclasses import dataclass, field, asdict

from lifecycle import DEFAULT_LIFECYCLE_CONFIG, LifecycleConfig, is_old, is_stale
from schemas import CATEGORIES


@dataclass
class StorageStats:
    """Summary counts over the whole catalog."""
    total_prompts: int = 0
    by_category: dict[str, int] = field(default_factory=dict)
    executed_prompts: int = 0
    pending_prompts: int = 0
    verified_prompts: int = 0
    stale_prompts: int = 0
    old_prompts: int = 0
    oldest_prompt_age: int = 0

    @property
    def standard_prompts(self) -> int:
        return self.by_category.get("standard", 0)

    @property
    def comprehensive_prompts(self) -> int:
        return self.by_category.get("comprehensive", 0)

    def to_dict(self) -> dict:
        return asdict(self)


def compute_storage_stats(
    prompts: list[dict],
    config: LifecycleConfig = DEFAULT_LIFECYCLE_CONFIG
) -> StorageStats:
    """
    Aggregate counts over listed prompts.

    Args:
        prompts: Entries as returned by list_prompts (with age_in_days)
        config: Thresholds for old/stale
    """
    stats = StorageStats(by_category={category: 0 for category in CATEGORIES})

    for prompt in prompts:
        age = prompt.get("age_in_days", 0)
        category = prompt.get("category")

        stats.total_prompts += 1
        stats.by_category[category] = stats.by_category.get(category, 0) + 1

        if prompt.get("executed"):
            stats.executed_prompts += 1
        else:
            stats.pending_prompts += 1
        if prompt.get("verified"):
            stats.verified_prompts += 1

        if is_stale(age, config):
            stats.stale_prompts += 1
        if is_old(age, config):
            stats.old_prompts += 1

        stats.oldest_prompt_age = max(stats.oldest_prompt_age, age)

    return stats
