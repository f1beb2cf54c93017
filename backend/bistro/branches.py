from __future__ import annotations

import re

from flask import current_app, has_app_context


# Misspellings that reached production data before the branch list was fixed
BRANCH_ALIASES = {
    "palace_india": "place_india",
    "palce_india": "place_india",
}

KNOWN_BRANCHES = ("china_town", "place_india")


def default_branch() -> str:
    if has_app_context():
        return current_app.config.get("DEFAULT_BRANCH", "china_town")
    return "china_town"


def normalize_branch(value) -> str:
    """
    Canonical branch code: trimmed, lower-case, whitespace runs to "_",
    known misspellings folded. Empty input stays empty.
    """
    s = re.sub(r"\s+", "_", str(value or "").strip().lower())
    return BRANCH_ALIASES.get(s, s)


def draft_storage_key(branch, table) -> str:
    """Client-side storage key holding the open order id for a table."""
    return f"pos_order_{normalize_branch(branch)}_{str(table).strip()}"
