"""
Prompt catalog schemas.
Index entry shape, content-file header format, and compatibility shims
for indexes written by older releases.
"""

from pathlib import Path
from typing import Any

from time_utils import parse_iso_datetime

# Partition keys (depth levels) and their id prefixes
CATEGORIES = ("standard", "comprehensive")

CATEGORY_PREFIXES = {
    "standard": "std",
    "comprehensive": "comp",
}

# Legacy "source" values from the fast/deep era
LEGACY_SOURCE_CATEGORIES = {
    "fast": "standard",
    "deep": "comprehensive",
}

INDEX_VERSION = "2.0"
INDEX_FILENAME = ".index.json"
LOCK_FILENAME = ".index.lock"
CONTENT_EXTENSION = ".md"

HEADER_DELIMITER = "---"

# Header keys in the order they are written to content files
HEADER_FIELDS = (
    "id",
    "category",
    "timestamp",
    "executed",
    "originalPrompt",
    "linkedProject",
    "verificationRequired",
    "verified",
)

INDEX_ENTRY_SCHEMA = {
    "type": "object",
    "required": ["id", "filename", "category", "timestamp", "original_prompt", "executed"],
    "properties": {
        "id": {
            "type": "string",
            "pattern": "^[a-z]+-[0-9]{8}-[0-9]{6}-[0-9a-f]{13,}$",
            "description": "Unique identifier: {prefix}-{YYYYMMDD}-{HHMMSS}-{random13}"
        },
        "filename": {"type": "string"},
        "category": {"type": "string", "enum": list(CATEGORIES)},
        "timestamp": {
            "type": "string",
            "format": "date-time",
            "description": "Creation time, ISO 8601 UTC with Z suffix"
        },
        "path": {"type": "string"},
        "original_prompt": {"type": "string"},
        "linked_project": {"type": ["string", "null"]},
        "executed": {"type": "boolean"},
        "executed_at": {"type": ["string", "null"], "format": "date-time"},
        "verification_required": {"type": "boolean"},
        "verified": {"type": "boolean"},
        "verified_at": {"type": ["string", "null"], "format": "date-time"},
    }
}

# camelCase keys written by older releases -> current snake_case keys
_LEGACY_KEYS = {
    "originalPrompt": "original_prompt",
    "executedAt": "executed_at",
    "linkedProject": "linked_project",
    "verificationRequired": "verification_required",
    "verifiedAt": "verified_at",
    "depthUsed": "category",
}


def validate_category(category: str) -> None:
    if category not in CATEGORIES:
        raise ValueError(
            f"Unknown category '{category}' (expected one of: {', '.join(CATEGORIES)})"
        )


def validate_index_entry(entry: Any) -> tuple[bool, str]:
    """
    Validate a single index entry.
    Returns (is_valid, error_message).
    """
    if not isinstance(entry, dict):
        return False, "Entry must be an object"

    for field in INDEX_ENTRY_SCHEMA["required"]:
        if field not in entry:
            return False, f"Missing required field: {field}"

    if not isinstance(entry["id"], str) or not entry["id"]:
        return False, "ID must be a non-empty string"

    filename = entry["filename"]
    if not isinstance(filename, str) or not filename:
        return False, "Filename must be a non-empty string"
    # Content files live directly in their partition directory
    if Path(filename).name != filename or not filename.endswith(CONTENT_EXTENSION):
        return False, f"Invalid filename: {filename!r}"

    if entry["category"] not in CATEGORIES:
        return False, f"Invalid category: {entry['category']}"

    if not isinstance(entry["executed"], bool):
        return False, "Executed must be a boolean"

    try:
        parse_iso_datetime(entry["timestamp"])
    except (TypeError, ValueError, AttributeError):
        return False, f"Invalid timestamp: {entry['timestamp']!r}"

    return True, ""


def apply_backward_compat_defaults(entry: dict[str, Any]) -> dict[str, Any]:
    """
    Normalize an index entry written by any release to the current shape.

    - camelCase keys -> snake_case
    - legacy source fast/deep -> category standard/comprehensive
    - missing filename -> {id}.md
    - missing executed/verification fields -> defaults
    """
    for old_key, new_key in _LEGACY_KEYS.items():
        if old_key in entry:
            value = entry.pop(old_key)
            entry.setdefault(new_key, value)

    if "category" not in entry and isinstance(entry.get("source"), str):
        entry["category"] = LEGACY_SOURCE_CATEGORIES.get(entry["source"], entry["source"])
    entry.pop("source", None)

    # Derived fields are never persisted
    entry.pop("age_in_days", None)
    entry.pop("createdAt", None)

    if "filename" not in entry and isinstance(entry.get("id"), str):
        entry["filename"] = f"{entry['id']}{CONTENT_EXTENSION}"

    entry.setdefault("executed", False)
    entry.setdefault("executed_at", None)
    entry.setdefault("verification_required", True)
    entry.setdefault("verified", False)
    entry.setdefault("verified_at", None)
    return entry


def _fold(value: str) -> str:
    """Keep header values on a single line."""
    return " ".join(str(value).splitlines())


def render_header(entry: dict[str, Any]) -> str:
    """Render the content-file header block, including the trailing blank line."""
    values = {
        "id": entry["id"],
        "category": entry["category"],
        "timestamp": entry["timestamp"],
        "executed": "true" if entry.get("executed") else "false",
        "originalPrompt": _fold(entry.get("original_prompt", "")),
        "linkedProject": _fold(entry["linked_project"]) if entry.get("linked_project") else None,
        "verificationRequired": "true" if entry.get("verification_required", True) else "false",
        "verified": "true" if entry.get("verified") else "false",
    }
    lines = [HEADER_DELIMITER]
    for key in HEADER_FIELDS:
        if values[key] is not None:
            lines.append(f"{key}: {values[key]}")
    lines.append(HEADER_DELIMITER)
    return "\n".join(lines) + "\n\n"


def _header_bounds(text: str) -> tuple[int, int]:
    """
    Locate the header block.
    Returns (end_of_header_lines, start_of_body), or (-1, 0) when the text
    does not start with a header.
    """
    opening = HEADER_DELIMITER + "\n"
    if not text.startswith(opening):
        return -1, 0
    closing = "\n" + HEADER_DELIMITER + "\n"
    idx = text.find(closing, len(HEADER_DELIMITER))
    if idx == -1:
        return -1, 0
    body_start = idx + len(closing)
    # Exactly one blank line separates header from body
    if text.startswith("\n", body_start):
        body_start += 1
    return idx, body_start


def strip_header(text: str) -> str:
    """Return the body of a content file (the text itself when there is no header)."""
    _, body_start = _header_bounds(text)
    return text[body_start:]


def parse_header(text: str) -> dict[str, str]:
    """Parse the header block into raw string values. Empty dict if absent."""
    header_end, _ = _header_bounds(text)
    if header_end == -1:
        return {}

    fields = {}
    for line in text[len(HEADER_DELIMITER) + 1:header_end].split("\n"):
        key, sep, value = line.partition(":")
        if sep:
            fields[key.strip()] = value.strip()
    return fields


def header_to_entry(fields: dict[str, str], filename: str) -> dict[str, Any]:
    """Rebuild an index entry from a parsed header (used when re-indexing files)."""
    entry = {
        "id": fields.get("id", ""),
        "filename": filename,
        "category": fields.get("category") or fields.get("depthUsed") or "",
        "timestamp": fields.get("timestamp", ""),
        "original_prompt": fields.get("originalPrompt", ""),
        "executed": fields.get("executed") == "true",
        "executed_at": None,
        "verification_required": fields.get("verificationRequired", "true") == "true",
        "verified": fields.get("verified") == "true",
        "verified_at": None,
    }
    if fields.get("linkedProject"):
        entry["linked_project"] = fields["linkedProject"]
    return entry
