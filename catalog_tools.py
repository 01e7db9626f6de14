"""
MCP tool definitions and dispatch for the prompt catalog.

Kept separate from the server module so tools can be exercised against
any PromptCatalog without a running stdio transport.
"""

from typing import Any

from mcp.types import Tool

from lifecycle import PromptFilters
from prompt_store import PromptCatalog
from schemas import CATEGORIES

# Shared filter properties for list/clear
_FILTER_PROPERTIES = {
    "category": {
        "type": "string",
        "enum": list(CATEGORIES),
        "description": "Only prompts of this depth level"
    },
    "executed": {
        "type": "boolean",
        "description": "Only executed (true) or pending (false) prompts"
    },
    "verified": {
        "type": "boolean",
        "description": "Only verified (true) or unverified (false) prompts"
    },
    "stale": {
        "type": "boolean",
        "description": "Only stale prompts (older than the configured stale threshold)",
        "default": False
    },
    "old": {
        "type": "boolean",
        "description": "Only old prompts (older than the configured old threshold)",
        "default": False
    },
}

TOOLS = [
    Tool(
        name="prompt_save",
        description="Save an optimized prompt to the catalog. Returns the new prompt id.",
        inputSchema={
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "The optimized prompt text"
                },
                "category": {
                    "type": "string",
                    "enum": list(CATEGORIES),
                    "description": "Depth level used to generate the prompt",
                    "default": "standard"
                },
                "original_prompt": {
                    "type": "string",
                    "description": "The user's original, unmodified prompt"
                },
                "linked_project": {
                    "type": "string",
                    "description": "Optional project/output directory this prompt belongs to"
                }
            },
            "required": ["content", "original_prompt"]
        }
    ),
    Tool(
        name="prompt_show",
        description="Show a saved prompt's metadata and content by id.",
        inputSchema={
            "type": "object",
            "properties": {
                "prompt_id": {"type": "string", "description": "The prompt id"}
            },
            "required": ["prompt_id"]
        }
    ),
    Tool(
        name="prompts_list",
        description="List saved prompts, newest first. All filters combine (AND).",
        inputSchema={
            "type": "object",
            "properties": dict(_FILTER_PROPERTIES)
        }
    ),
    Tool(
        name="prompts_clear",
        description="Delete saved prompts matching filters. Clearing everything requires all=true.",
        inputSchema={
            "type": "object",
            "properties": {
                **_FILTER_PROPERTIES,
                "all": {
                    "type": "boolean",
                    "description": "Delete ALL prompts (required when no filter is given)",
                    "default": False
                }
            }
        }
    ),
    Tool(
        name="prompt_mark_executed",
        description="Mark a saved prompt as executed.",
        inputSchema={
            "type": "object",
            "properties": {
                "prompt_id": {"type": "string", "description": "The prompt id"}
            },
            "required": ["prompt_id"]
        }
    ),
    Tool(
        name="prompt_mark_verified",
        description="Mark a saved prompt as verified after its checklist passed.",
        inputSchema={
            "type": "object",
            "properties": {
                "prompt_id": {"type": "string", "description": "The prompt id"}
            },
            "required": ["prompt_id"]
        }
    ),
    Tool(
        name="prompt_latest",
        description="Load the most recent prompt, optionally of one depth level or still pending.",
        inputSchema={
            "type": "object",
            "properties": {
                "category": {
                    "type": "string",
                    "enum": list(CATEGORIES),
                    "description": "Restrict to this depth level"
                },
                "pending_only": {
                    "type": "boolean",
                    "description": "Skip prompts already executed",
                    "default": False
                }
            }
        }
    ),
    Tool(
        name="prompts_stats",
        description="Storage statistics: totals per depth level, executed/pending, old/stale.",
        inputSchema={"type": "object", "properties": {}}
    ),
    Tool(
        name="prompts_reconcile",
        description="Find content files without index entries and index entries without files. Set repair=true to fix.",
        inputSchema={
            "type": "object",
            "properties": {
                "repair": {
                    "type": "boolean",
                    "description": "Purge dead entries and re-index orphan files",
                    "default": False
                }
            }
        }
    ),
]


def _age_label(age: int) -> str:
    return "today" if age == 0 else f"{age}d ago"


def _format_prompt_line(prompt: dict) -> str:
    status = "[x]" if prompt.get("executed") else "[ ]"
    original = prompt.get("original_prompt", "")
    if len(original) > 60:
        original = original[:60] + "..."
    return f"- {status} `{prompt['id']}` ({prompt['category']}, {_age_label(prompt['age_in_days'])}) {original}"


def format_stats(catalog: PromptCatalog) -> str:
    stats = catalog.get_storage_stats()
    lines = ["## Prompt Storage", ""]
    lines.append(f"Total: {stats.total_prompts}")
    lines.append(f"Standard: {stats.standard_prompts} | Comprehensive: {stats.comprehensive_prompts}")
    lines.append(f"Executed: {stats.executed_prompts} | Pending: {stats.pending_prompts}")
    lines.append(f"Verified: {stats.verified_prompts}")
    lines.append(f"Old (>{catalog.config.old_after_days}d): {stats.old_prompts} | Stale (>{catalog.config.stale_after_days}d): {stats.stale_prompts}")
    lines.append(f"Oldest: {stats.oldest_prompt_age} days")
    return "\n".join(lines)


def _show(catalog: PromptCatalog, prompt_id: str) -> str:
    loaded = catalog.load_prompt(prompt_id)
    if loaded is None:
        return f"Prompt not found: {prompt_id}"

    meta = loaded.metadata
    text = f"## Prompt {meta['id']}\n\n"
    text += f"**Category:** {meta['category']}\n"
    text += f"**Created:** {meta['timestamp']}\n"
    text += f"**Executed:** {'yes' if meta.get('executed') else 'no'}\n"
    if meta.get("linked_project"):
        text += f"**Linked project:** {meta['linked_project']}\n"
    text += f"**Original:** {meta.get('original_prompt', '')}\n\n"
    text += loaded.content
    return text


def dispatch_tool(catalog: PromptCatalog, name: str, arguments: dict[str, Any]) -> str:
    """
    Run a catalog tool and return its text response.
    Raises for unknown prompt ids on mark_* tools; the server reports errors.
    """
    if name == "prompt_save":
        entry = catalog.save_prompt(
            content=arguments["content"],
            category=arguments.get("category", "standard"),
            original_prompt=arguments["original_prompt"],
            linked_project=arguments.get("linked_project"),
        )
        return f"Saved prompt `{entry['id']}` ({entry['category']})\nFile: {entry['path']}"

    elif name == "prompt_show":
        return _show(catalog, arguments["prompt_id"])

    elif name == "prompts_list":
        prompts = catalog.list_prompts(PromptFilters.from_dict(arguments))
        if not prompts:
            return "No saved prompts match."
        lines = [f"## Saved Prompts ({len(prompts)})", ""]
        lines.extend(_format_prompt_line(p) for p in prompts)
        return "\n".join(lines)

    elif name == "prompts_clear":
        filters = PromptFilters.from_dict(arguments)
        if filters.is_empty() and not arguments.get("all", False):
            return "Refusing to clear: no filter given. Pass all=true to delete every prompt."
        to_delete = catalog.list_prompts(filters)
        if not to_delete:
            return "No prompts match the specified criteria."
        unexecuted = sum(1 for p in to_delete if not p.get("executed"))
        deleted = catalog.delete_prompts(filters)
        text = f"Deleted {deleted} prompt(s)"
        if unexecuted:
            text += f" ({unexecuted} had not been executed)"
        return text + "\n\n" + format_stats(catalog)

    elif name == "prompt_mark_executed":
        catalog.mark_executed(arguments["prompt_id"])
        return f"Marked `{arguments['prompt_id']}` as executed"

    elif name == "prompt_mark_verified":
        catalog.mark_verified(arguments["prompt_id"])
        return f"Marked `{arguments['prompt_id']}` as verified"

    elif name == "prompt_latest":
        latest = catalog.get_latest_prompt(
            category=arguments.get("category"),
            pending_only=arguments.get("pending_only", False),
        )
        if latest is None:
            return "No saved prompts found. Generate an optimized prompt first."
        return _show(catalog, latest["id"])

    elif name == "prompts_stats":
        return format_stats(catalog)

    elif name == "prompts_reconcile":
        report = catalog.reconcile(repair=arguments.get("repair", False))
        text = "## Reconcile\n\n"
        text += f"Orphan files: {len(report['orphan_files'])}\n"
        text += f"Entries without files: {len(report['missing_files'])}\n"
        if arguments.get("repair", False):
            text += f"Re-indexed: {report['reindexed']} | Purged: {report['purged']}\n"
            if report["unrecoverable"]:
                text += f"Unrecoverable: {', '.join(report['unrecoverable'])}\n"
        return text

    return f"Unknown tool: {name}"
