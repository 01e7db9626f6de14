"""
Partition index layer for the prompt catalog.
One JSON index per category partition; content files remain canonical.

Index files are replaced atomically (temp file + rename) so readers never
see a torn write. Read-modify-write cycles go through `transaction()`,
which holds an exclusive advisory lock on the partition for the whole cycle.
"""

import json
import os
import sys
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional

from schemas import (
    CATEGORIES,
    INDEX_FILENAME,
    INDEX_VERSION,
    LOCK_FILENAME,
    apply_backward_compat_defaults,
    validate_index_entry,
)

# Platform-specific file locking
if sys.platform == "win32":
    import msvcrt
else:
    import fcntl


@contextmanager
def file_lock(file_handle, timeout_ms: int = 5000):
    """
    Cross-platform file locking context manager.
    Acquires exclusive lock on file handle for atomic operations.
    """
    if sys.platform == "win32":
        # Windows locking via msvcrt
        import time
        start = time.time()
        file_handle.seek(0)
        while True:
            try:
                msvcrt.locking(file_handle.fileno(), msvcrt.LK_NBLCK, 1)
                break
            except OSError:
                if (time.time() - start) * 1000 > timeout_ms:
                    raise TimeoutError("Could not acquire file lock")
                time.sleep(0.01)
        try:
            yield
        finally:
            file_handle.seek(0)
            msvcrt.locking(file_handle.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        # Unix locking via fcntl
        fcntl.flock(file_handle.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(file_handle.fileno(), fcntl.LOCK_UN)


def atomic_write_text(path: Path, text: str) -> None:
    """
    Write text to path so that readers see either the old or the new file.
    The temp file lives in the target directory so the rename stays on one filesystem.
    """
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(text.encode("utf-8"))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except Exception:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


@dataclass
class IndexLoadResult:
    """
    Outcome of reading a partition index.

    status is one of:
    - "ok": file parsed (entries may legitimately be empty)
    - "missing": no index file yet
    - "recovered": file was unreadable, replaced by an empty index
    """
    category: str
    entries: list[dict[str, Any]] = field(default_factory=list)
    status: str = "ok"
    error: Optional[str] = None
    version: str = INDEX_VERSION
    skipped: int = 0

    @property
    def recovered(self) -> bool:
        return self.status == "recovered"


class PartitionIndexStore:
    """Per-category JSON indexes under a base directory."""

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)

    def partition_dir(self, category: str) -> Path:
        return self.base_dir / category

    def index_path(self, category: str) -> Path:
        return self.partition_dir(category) / INDEX_FILENAME

    def partitions(self) -> list[str]:
        """Categories that currently have a partition directory."""
        return [c for c in CATEGORIES if self.partition_dir(c).is_dir()]

    def ensure_partitions(self) -> None:
        for category in CATEGORIES:
            self.partition_dir(category).mkdir(parents=True, exist_ok=True)

    def load(self, category: str) -> IndexLoadResult:
        """
        Load a partition index.
        Missing and corrupted files both yield an empty index; the status
        tells them apart and corruption is logged.
        """
        index_path = self.index_path(category)
        if not index_path.exists():
            return IndexLoadResult(category=category, status="missing")

        raw = index_path.read_bytes()
        try:
            parsed = json.loads(raw.decode("utf-8"))
            if not isinstance(parsed, dict):
                raise ValueError("index root is not an object")
            prompts = parsed.get("prompts", [])
            if not isinstance(prompts, list):
                raise ValueError("'prompts' is not a list")
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            print(
                f"[WARN] Corrupted prompt index {index_path}, recovering as empty: {e}",
                file=sys.stderr
            )
            return IndexLoadResult(category=category, status="recovered", error=str(e))

        entries = []
        positions = {}
        skipped = 0
        for raw_entry in prompts:
            try:
                entry = apply_backward_compat_defaults(raw_entry) if isinstance(raw_entry, dict) else raw_entry
                is_valid, error = validate_index_entry(entry)
            except TypeError as e:
                entry, is_valid, error = raw_entry, False, f"malformed entry: {e}"
            if is_valid and entry["category"] != category:
                is_valid, error = False, f"belongs to '{entry['category']}'"
            if not is_valid:
                skipped += 1
                print(f"[WARN] Skipping index entry in {index_path}: {error}", file=sys.stderr)
                continue
            # Ids are unique within a partition; the later entry wins
            if entry["id"] in positions:
                entries[positions[entry["id"]]] = entry
            else:
                positions[entry["id"]] = len(entries)
                entries.append(entry)

        return IndexLoadResult(
            category=category,
            entries=entries,
            status="ok",
            version=str(parsed.get("version") or INDEX_VERSION),
            skipped=skipped,
        )

    def save(self, category: str, entries: list[dict[str, Any]]) -> None:
        """Persist a partition index (creates the partition directory if needed)."""
        partition_dir = self.partition_dir(category)
        partition_dir.mkdir(parents=True, exist_ok=True)
        content = json.dumps(
            {"version": INDEX_VERSION, "prompts": entries},
            indent=2,
            ensure_ascii=False
        )
        atomic_write_text(self.index_path(category), content)

    def load_all(self) -> list[dict[str, Any]]:
        """Merge every partition's entries. Read-only, never persisted."""
        merged = []
        for category in CATEGORIES:
            merged.extend(self.load(category).entries)
        return merged

    @contextmanager
    def transaction(self, category: str) -> Iterator[list[dict[str, Any]]]:
        """
        Locked load -> mutate -> save cycle for one partition.

        Yields the entry list; mutate it in place. The index is persisted
        only when the block exits without an exception.
        """
        partition_dir = self.partition_dir(category)
        partition_dir.mkdir(parents=True, exist_ok=True)
        with open(partition_dir / LOCK_FILENAME, "a+b") as lock_handle:
            with file_lock(lock_handle):
                entries = self.load(category).entries
                yield entries
                self.save(category, entries)
