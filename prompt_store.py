"""
Prompt catalog storage layer.
Handles saving, loading, listing, cleanup, and execution tracking of
generated prompts.

Layout:
    {base_dir}/{category}/.index.json   partition index (query layer)
    {base_dir}/{category}/{id}.md       header block + blank line + body (canonical)
"""

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from lifecycle import (
    DEFAULT_LIFECYCLE_CONFIG,
    LifecycleConfig,
    PromptFilters,
    filter_entries,
)
from prompt_ids import generate_prompt_id
from prompt_index import PartitionIndexStore, atomic_write_text
from schemas import (
    CONTENT_EXTENSION,
    header_to_entry,
    parse_header,
    render_header,
    strip_header,
    validate_category,
    validate_index_entry,
)
from stats import StorageStats, compute_storage_stats
from time_utils import to_iso_z, utc_now, utc_now_iso


class PromptNotFoundError(KeyError):
    """Raised when a mutation targets an id no partition knows about."""

    def __init__(self, prompt_id: str):
        super().__init__(prompt_id)
        self.prompt_id = prompt_id

    def __str__(self) -> str:
        return f"Prompt not found: {self.prompt_id}"


@dataclass
class LoadedPrompt:
    """A prompt's index metadata plus its body (header stripped)."""
    metadata: dict[str, Any]
    content: str


class PromptCatalog:
    """
    File-backed prompt catalog.
    Content files are canonical, partition indexes are the query layer.
    """

    def __init__(
        self,
        base_dir: str | Path,
        config: LifecycleConfig = DEFAULT_LIFECYCLE_CONFIG
    ):
        self.base_dir = Path(base_dir)
        self.config = config
        self.index_store = PartitionIndexStore(self.base_dir)

    def _content_path(self, entry: dict) -> Path:
        return self.index_store.partition_dir(entry["category"]) / entry["filename"]

    def _find_entry(self, prompt_id: str) -> Optional[dict[str, Any]]:
        for entry in self.index_store.load_all():
            if entry["id"] == prompt_id:
                return entry
        return None

    def save_prompt(
        self,
        content: str,
        category: str,
        original_prompt: str,
        linked_project: Optional[str] = None
    ) -> dict[str, Any]:
        """
        Save a generated prompt.

        Steps:
        1. Ensure partition directories exist
        2. Generate id
        3. Write content file (atomic)
        4. Append index entry under the partition lock

        If step 4 fails the content file is left behind without an index
        entry; reconcile(repair=True) re-indexes it from its header.

        Returns the stored index entry.
        """
        validate_category(category)
        self.index_store.ensure_partitions()

        now = utc_now()
        prompt_id = generate_prompt_id(category, now)
        filename = f"{prompt_id}{CONTENT_EXTENSION}"
        file_path = self.index_store.partition_dir(category) / filename

        entry = {
            "id": prompt_id,
            "filename": filename,
            "category": category,
            "timestamp": to_iso_z(now),
            "path": str(file_path),
            "original_prompt": original_prompt,
            "executed": False,
            "executed_at": None,
            "verification_required": True,
            "verified": False,
            "verified_at": None,
        }
        if linked_project:
            entry["linked_project"] = linked_project

        atomic_write_text(file_path, render_header(entry) + content)

        with self.index_store.transaction(category) as entries:
            entries[:] = [e for e in entries if e["id"] != prompt_id]
            entries.append(entry)

        return dict(entry)

    def load_prompt(self, prompt_id: str) -> Optional[LoadedPrompt]:
        """
        Load a prompt by id.
        Returns None when the id is unknown or its content file is gone.
        """
        entry = self._find_entry(prompt_id)
        if not entry:
            return None

        file_path = self._content_path(entry)
        if not file_path.exists():
            return None

        # Bytes, so body line endings survive untouched
        text = file_path.read_bytes().decode("utf-8")
        return LoadedPrompt(metadata=entry, content=strip_header(text))

    def list_prompts(self, filters: Optional[PromptFilters] = None) -> list[dict[str, Any]]:
        """List prompts matching all filters, newest first, with age_in_days attached."""
        return filter_entries(self.index_store.load_all(), filters, self.config)

    def get_latest_prompt(
        self,
        category: Optional[str] = None,
        pending_only: bool = False
    ) -> Optional[dict[str, Any]]:
        """Most recent prompt, optionally restricted to a category and/or unexecuted ones."""
        filters = PromptFilters(category=category, executed=False if pending_only else None)
        prompts = self.list_prompts(filters)
        return prompts[0] if prompts else None

    def get_stale_prompts(self) -> list[dict[str, Any]]:
        return self.list_prompts(PromptFilters(stale=True))

    def delete_prompts(self, filters: Optional[PromptFilters] = None) -> int:
        """
        Delete every prompt matching filters.

        Returns the number of content files actually removed. Index entries
        whose file was already missing are purged too but not counted.
        """
        to_delete = self.list_prompts(filters)

        purge_by_category: dict[str, set[str]] = {}
        deleted_count = 0
        missing = []

        for prompt in to_delete:
            purge_by_category.setdefault(prompt["category"], set()).add(prompt["id"])
            try:
                self._content_path(prompt).unlink()
                deleted_count += 1
            except FileNotFoundError:
                missing.append(prompt["id"])

        if missing:
            print(
                f"[WARN] Purged {len(missing)} index entries with missing files: {', '.join(missing)}",
                file=sys.stderr
            )

        for category, ids in purge_by_category.items():
            with self.index_store.transaction(category) as entries:
                entries[:] = [e for e in entries if e["id"] not in ids]

        return deleted_count

    def _stamp(self, prompt_id: str, flag: str, stamp_field: str) -> None:
        entry = self._find_entry(prompt_id)
        if not entry:
            raise PromptNotFoundError(prompt_id)

        with self.index_store.transaction(entry["category"]) as entries:
            for candidate in entries:
                if candidate["id"] == prompt_id:
                    candidate[flag] = True
                    candidate[stamp_field] = utc_now_iso()
                    break
            else:
                # Deleted between lookup and lock
                raise PromptNotFoundError(prompt_id)

    def mark_executed(self, prompt_id: str) -> None:
        """
        Mark a prompt as executed (re-stamps executed_at on repeat calls).
        Raises PromptNotFoundError for unknown ids. The content file is not touched.
        """
        self._stamp(prompt_id, "executed", "executed_at")

    def mark_verified(self, prompt_id: str) -> None:
        """Mark a prompt as verified. Same contract as mark_executed."""
        self._stamp(prompt_id, "verified", "verified_at")

    def get_storage_stats(self) -> StorageStats:
        return compute_storage_stats(self.list_prompts(), self.config)

    def reconcile(self, repair: bool = False) -> dict[str, Any]:
        """
        Compare content files against partition indexes.

        Reports:
        - orphan_files: content files with no index entry
        - missing_files: index entries whose content file is gone

        With repair=True, missing-file entries are purged and orphan files are
        re-indexed from their header block.
        """
        report = {
            "orphan_files": [],
            "missing_files": [],
            "reindexed": 0,
            "purged": 0,
            "unrecoverable": [],
        }

        for category in self.index_store.partitions():
            partition_dir = self.index_store.partition_dir(category)
            on_disk = {p.name for p in partition_dir.glob(f"*{CONTENT_EXTENSION}") if p.is_file()}
            entries = self.index_store.load(category).entries
            indexed = {e["filename"] for e in entries}

            orphans = sorted(on_disk - indexed)
            missing_ids = [e["id"] for e in entries if e["filename"] not in on_disk]
            report["orphan_files"].extend(str(partition_dir / name) for name in orphans)
            report["missing_files"].extend(missing_ids)

            if not repair or not (orphans or missing_ids):
                continue

            with self.index_store.transaction(category) as current:
                before = len(current)
                current[:] = [e for e in current if e["filename"] in on_disk]
                report["purged"] += before - len(current)

                known_ids = {e["id"] for e in current}
                for name in orphans:
                    file_path = partition_dir / name
                    fields = parse_header(file_path.read_bytes().decode("utf-8", errors="replace"))
                    entry = header_to_entry(fields, name)
                    entry["path"] = str(file_path)
                    is_valid, error = validate_index_entry(entry)
                    if is_valid and entry["category"] != category:
                        is_valid, error = False, f"header category '{entry['category']}'"
                    if not is_valid or entry["id"] in known_ids:
                        print(f"[WARN] Cannot re-index {file_path}: {error or 'duplicate id'}", file=sys.stderr)
                        report["unrecoverable"].append(str(file_path))
                        continue
                    current.append(entry)
                    known_ids.add(entry["id"])
                    report["reindexed"] += 1

        return report
