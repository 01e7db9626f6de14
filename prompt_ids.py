"""
Prompt identifier generation.

IDs look like ``std-20260214-123456-3f9a0c1b7d2e4`` and sort lexically by
creation time (one-second resolution) within a category.
"""

import re
import uuid
from datetime import datetime
from typing import Optional

from schemas import CATEGORY_PREFIXES
from time_utils import utc_now

# Trailing hex characters of a uuid4; the leading ones include the fixed version nibble
SUFFIX_LENGTH = 13

PROMPT_ID_PATTERN = re.compile(
    r"^(?P<prefix>[a-z]+)-(?P<date>\d{8})-(?P<time>\d{6})-(?P<suffix>[0-9a-f]{%d,})$" % SUFFIX_LENGTH
)


def category_prefix(category: str) -> str:
    """Short id prefix for a category (unknown categories use their own name)."""
    return CATEGORY_PREFIXES.get(category, category)


def generate_prompt_id(category: str, now: Optional[datetime] = None) -> str:
    """Generate a unique prompt ID for a category."""
    now = now or utc_now()
    date_part = now.strftime("%Y%m%d")
    time_part = now.strftime("%H%M%S")
    random_part = uuid.uuid4().hex[-SUFFIX_LENGTH:]
    return f"{category_prefix(category)}-{date_part}-{time_part}-{random_part}"


def is_valid_prompt_id(prompt_id: str) -> bool:
    return bool(PROMPT_ID_PATTERN.match(prompt_id or ""))
