"""Defensive identifier extraction from untyped RPC results.

NotebookLM responses are positional arrays whose layout drifts between
releases. Instead of hard-coding a path per response, callers ask for the
first value that looks like an opaque identifier and check for ``None``.
"""

import json
import re
from typing import Any

MAX_DEPTH = 8

ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{10,}$")
NOTEBOOK_PATH_PATTERN = re.compile(r"notebook/([A-Za-z0-9_-]{10,})", re.IGNORECASE)
SOURCE_PATH_PATTERN = re.compile(r"source/([A-Za-z0-9_-]{10,})", re.IGNORECASE)

# Checked before any other key of a dict node
PREFERRED_KEYS = ("id", "notebookId", "notebook_id", "sourceId", "source_id", "uuid", "value", "uid")


def _match_string(value: str, depth: int, max_depth: int, visited: set[int]) -> str | None:
    value = value.strip()
    if not value:
        return None

    for pattern in (NOTEBOOK_PATH_PATTERN, SOURCE_PATH_PATTERN):
        match = pattern.search(value)
        if match:
            return match.group(1)

    if ID_PATTERN.match(value):
        return value

    # Payloads sometimes embed a JSON document as a string
    if value.startswith("{") or value.startswith("["):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return None
        return _walk(parsed, depth + 1, max_depth, visited)

    return None


def _walk(node: Any, depth: int, max_depth: int, visited: set[int]) -> str | None:
    if node is None or depth >= max_depth:
        return None

    if isinstance(node, str):
        return _match_string(node, depth, max_depth, visited)

    # bool is an int subclass and never an identifier
    if isinstance(node, bool):
        return None

    if isinstance(node, (int, float)):
        value = str(node)
        return value if len(value) >= 10 else None

    if not isinstance(node, (list, tuple, dict)):
        return None

    if id(node) in visited:
        return None
    visited.add(id(node))

    if isinstance(node, dict):
        for key in PREFERRED_KEYS:
            if key in node:
                found = _walk(node[key], depth + 1, max_depth, visited)
                if found:
                    return found
        children = node.values()
    else:
        children = node

    for child in children:
        found = _walk(child, depth + 1, max_depth, visited)
        if found:
            return found
    return None


def extract_id(node: Any, max_depth: int = MAX_DEPTH) -> str | None:
    """Return the first identifier-looking value inside ``node``.

    Preference at each string leaf: an embedded ``notebook/<id>`` or
    ``source/<id>`` path, then a bare ``[A-Za-z0-9_-]{10,}`` token. Numbers
    qualify when their decimal form has at least 10 characters. Dicts are
    searched through ``PREFERRED_KEYS`` first, then all values.

    Traversal stops at ``max_depth`` and skips nodes already visited, so
    self-referential structures terminate. Never raises.
    """
    try:
        return _walk(node, 0, max_depth, set())
    except RecursionError:
        return None
