"""
Partition index tests: load status tagging, atomic writes,
transactions, and reading indexes from older releases.
"""

import json
import os

import pytest

from prompt_index import PartitionIndexStore, atomic_write_text


def _entry(prompt_id, category="standard", timestamp="2026-01-01T00:00:00Z"):
    return {
        "id": prompt_id,
        "filename": f"{prompt_id}.md",
        "category": category,
        "timestamp": timestamp,
        "original_prompt": "orig",
        "executed": False,
        "executed_at": None,
        "verification_required": True,
        "verified": False,
        "verified_at": None,
    }


@pytest.fixture
def store(tmp_path):
    return PartitionIndexStore(tmp_path)


class TestLoadStatus:

    def test_missing_file(self, store):
        result = store.load("standard")

        assert result.status == "missing"
        assert result.entries == []
        assert not result.recovered

    def test_legitimately_empty(self, store):
        store.save("standard", [])

        result = store.load("standard")

        assert result.status == "ok"
        assert result.entries == []

    def test_corrupted_bytes(self, store, capsys):
        store.partition_dir("standard").mkdir(parents=True)
        store.index_path("standard").write_bytes(b"\xff\xfe\x00garbage")

        result = store.load("standard")

        assert result.status == "recovered"
        assert result.recovered
        assert result.error
        assert "[WARN] Corrupted prompt index" in capsys.readouterr().err

    def test_missing_is_silent(self, store, capsys):
        store.load("standard")
        assert capsys.readouterr().err == ""

    def test_invalid_entries_skipped(self, store, capsys):
        store.partition_dir("standard").mkdir(parents=True)
        good = _entry("std-20260101-000000-aaaaaaaaaaaaa")
        store.index_path("standard").write_text(json.dumps({
            "version": "2.0",
            "prompts": [good, {"id": "broken"}, "not an object"],
        }), encoding="utf-8")

        result = store.load("standard")

        assert [e["id"] for e in result.entries] == [good["id"]]
        assert result.skipped == 2
        assert "Skipping index entry" in capsys.readouterr().err

    def test_unhashable_legacy_source_skipped(self, store):
        good = _entry("std-20260101-000000-aaaaaaaaaaaaa")
        legacy = _entry("std-20260101-000000-bbbbbbbbbbbbb")
        del legacy["category"]
        legacy["source"] = ["fast"]
        store.partition_dir("standard").mkdir(parents=True)
        store.index_path("standard").write_text(json.dumps({
            "version": "2.0",
            "prompts": [good, legacy],
        }), encoding="utf-8")

        result = store.load("standard")

        assert result.status == "ok"
        assert [e["id"] for e in result.entries] == [good["id"]]
        assert result.skipped == 1

    def test_non_string_filename_skipped(self, store):
        bad = dict(_entry("std-20260101-000000-bbbbbbbbbbbbb"), filename=5)
        store.save("standard", [bad])

        result = store.load("standard")

        assert result.entries == []
        assert result.skipped == 1

    def test_unhashable_category_skipped(self, store):
        bad = dict(_entry("std-20260101-000000-bbbbbbbbbbbbb"), category=["standard"])
        store.save("standard", [bad])

        result = store.load("standard")

        assert result.entries == []
        assert result.skipped == 1

    def test_entry_from_other_partition_skipped(self, store):
        store.save("standard", [_entry("comp-20260101-000000-aaaaaaaaaaaaa", category="comprehensive")])

        result = store.load("standard")

        assert result.entries == []
        assert result.skipped == 1

    def test_duplicate_ids_collapse(self, store):
        first = _entry("std-20260101-000000-aaaaaaaaaaaaa")
        second = dict(first, executed=True)
        store.save("standard", [first, second])

        result = store.load("standard")

        assert len(result.entries) == 1
        assert result.entries[0]["executed"] is True


class TestBackwardCompat:

    def test_legacy_camel_case_fast_entry(self, store):
        store.partition_dir("standard").mkdir(parents=True)
        store.index_path("standard").write_text(json.dumps({
            "version": "1.0",
            "prompts": [{
                "id": "fast-20250117-143022-a3f2",
                "filename": "fast-20250117-143022-a3f2.md",
                "source": "fast",
                "timestamp": "2025-01-17T14:30:22.000Z",
                "createdAt": "2025-01-17T14:30:22.000Z",
                "originalPrompt": "make x",
                "executed": True,
                "executedAt": "2025-01-18T10:00:00.000Z",
                "linkedProject": "proj",
            }],
        }), encoding="utf-8")

        result = store.load("standard")

        assert result.status == "ok"
        assert result.version == "1.0"
        entry = result.entries[0]
        assert entry["category"] == "standard"
        assert entry["original_prompt"] == "make x"
        assert entry["executed_at"] == "2025-01-18T10:00:00.000Z"
        assert entry["linked_project"] == "proj"
        assert entry["verified"] is False
        assert entry["verification_required"] is True
        assert "source" not in entry
        assert "createdAt" not in entry

    def test_depth_used_key(self, store):
        legacy = _entry("comp-20260101-000000-aaaaaaaaaaaaa", category="comprehensive")
        legacy["depthUsed"] = legacy.pop("category")
        store.save("comprehensive", [legacy])

        entry = store.load("comprehensive").entries[0]

        assert entry["category"] == "comprehensive"
        assert "depthUsed" not in entry

    def test_rewritten_in_current_shape(self, store):
        store.partition_dir("standard").mkdir(parents=True)
        store.index_path("standard").write_text(json.dumps({
            "prompts": [{
                "id": "std-20250117-143022-aaaaaaaaaaaaa",
                "source": "fast",
                "timestamp": "2025-01-17T14:30:22Z",
                "originalPrompt": "make x",
                "executed": False,
            }],
        }), encoding="utf-8")

        with store.transaction("standard"):
            pass

        raw = json.loads(store.index_path("standard").read_text(encoding="utf-8"))
        assert raw["version"] == "2.0"
        assert raw["prompts"][0]["original_prompt"] == "make x"
        assert raw["prompts"][0]["filename"] == "std-20250117-143022-aaaaaaaaaaaaa.md"
        assert "originalPrompt" not in raw["prompts"][0]


class TestSave:

    def test_creates_partition_dir_and_pretty_prints(self, store):
        store.save("comprehensive", [_entry("comp-20260101-000000-aaaaaaaaaaaaa", category="comprehensive")])

        text = store.index_path("comprehensive").read_text(encoding="utf-8")
        assert text.startswith('{\n  "version": "2.0"')
        assert json.loads(text)["prompts"][0]["category"] == "comprehensive"

    def test_load_all_merges_partitions(self, store):
        store.save("standard", [_entry("std-20260101-000000-aaaaaaaaaaaaa")])
        store.save("comprehensive", [_entry("comp-20260101-000000-bbbbbbbbbbbbb", category="comprehensive")])

        ids = {e["id"] for e in store.load_all()}

        assert ids == {"std-20260101-000000-aaaaaaaaaaaaa", "comp-20260101-000000-bbbbbbbbbbbbb"}

    def test_partitions(self, store):
        assert store.partitions() == []
        store.save("comprehensive", [])
        assert store.partitions() == ["comprehensive"]


class TestAtomicWrite:

    def test_replaces_content(self, tmp_path):
        target = tmp_path / "file.json"
        target.write_text("old", encoding="utf-8")

        atomic_write_text(target, "new")

        assert target.read_text(encoding="utf-8") == "new"
        assert list(tmp_path.iterdir()) == [target]

    def test_failed_rename_keeps_old_file_and_cleans_temp(self, tmp_path, monkeypatch):
        target = tmp_path / "file.json"
        target.write_text("old", encoding="utf-8")

        def boom(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", boom)

        with pytest.raises(OSError):
            atomic_write_text(target, "new")

        assert target.read_text(encoding="utf-8") == "old"
        assert list(tmp_path.iterdir()) == [target]


class TestTransaction:

    def test_commits_on_success(self, store):
        with store.transaction("standard") as entries:
            entries.append(_entry("std-20260101-000000-aaaaaaaaaaaaa"))

        assert [e["id"] for e in store.load("standard").entries] == ["std-20260101-000000-aaaaaaaaaaaaa"]

    def test_exception_leaves_index_untouched(self, store):
        store.save("standard", [_entry("std-20260101-000000-aaaaaaaaaaaaa")])

        with pytest.raises(RuntimeError):
            with store.transaction("standard") as entries:
                entries.clear()
                raise RuntimeError("abort")

        assert len(store.load("standard").entries) == 1

    def test_lock_file_created(self, store):
        with store.transaction("standard"):
            pass

        assert (store.partition_dir("standard") / ".index.lock").exists()
