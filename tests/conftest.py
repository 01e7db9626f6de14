"""
Pytest configuration for prompt catalog tests.

Ensures the parent directory is in the path for imports.
"""

import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from prompt_store import PromptCatalog


@pytest.fixture
def catalog(tmp_path):
    """Empty catalog rooted in a temp directory."""
    return PromptCatalog(tmp_path / "prompts")


@pytest.fixture
def backdate():
    """Rewrite a prompt's stored timestamp to `days` days before now."""
    from datetime import timedelta

    from time_utils import to_iso_z, utc_now

    def _backdate(catalog, prompt_id, days):
        category = next(
            e["category"] for e in catalog.index_store.load_all() if e["id"] == prompt_id
        )
        with catalog.index_store.transaction(category) as entries:
            for entry in entries:
                if entry["id"] == prompt_id:
                    entry["timestamp"] = to_iso_z(utc_now() - timedelta(days=days))

    return _backdate
