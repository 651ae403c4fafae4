"""batchexecute wire codec.

Request format (form-encoded POST body):
    f.req=[[[rpc_id, "<json params>", null, "generic"]]]&at=<csrf>&

Response format:
    )]}'
    <byte_count>
    [["wrb.fr", rpc_id, "<json payload>", ...]]
    <byte_count>
    [["er", rpc_id, code, ...]]

Everything here is pure: no I/O, no credentials state.
"""

import json
import logging
import urllib.parse
from typing import Any

from . import constants
from .errors import AuthExpired, NoResult, RateLimited, RpcError

logger = logging.getLogger("notebooklm_pipeline.api")

ANTI_XSSI_PREFIX = ")]}'"
SUCCESS_TAG = "wrb.fr"
ERROR_TAG = "er"
RATE_LIMIT_MARKER = "UserDisplayableError"


class RPCMethod:
    """Known RPC IDs."""

    CREATE_NOTEBOOK = "CCqFvf"
    GET_NOTEBOOK = "rLM1Ne"  # Also lists sources
    DELETE_NOTEBOOK = "WWINqb"
    ADD_SOURCE = "izAoDd"  # URL sources
    ADD_SOURCE_FILE = "o4cbdc"  # Registers a file placeholder before upload
    CREATE_ARTIFACT = "R7cb6c"
    LIST_ARTIFACTS = "gArtLc"
    GENERATE_MIND_MAP = "yyryJe"
    CREATE_NOTE = "CYK0Xb"
    UPDATE_NOTE = "cYAfTb"


# RPC ID to method name mapping for debug logging
RPC_NAMES = {
    RPCMethod.CREATE_NOTEBOOK: "create_notebook",
    RPCMethod.GET_NOTEBOOK: "get_notebook",
    RPCMethod.DELETE_NOTEBOOK: "delete_notebook",
    RPCMethod.ADD_SOURCE: "add_source",
    RPCMethod.ADD_SOURCE_FILE: "add_source_file",
    RPCMethod.CREATE_ARTIFACT: "create_artifact",
    RPCMethod.LIST_ARTIFACTS: "list_artifacts",
    RPCMethod.GENERATE_MIND_MAP: "generate_mind_map",
    RPCMethod.CREATE_NOTE: "create_note",
    RPCMethod.UPDATE_NOTE: "update_note",
}


# =============================================================================
# Encoding
# =============================================================================

def encode_request(method_id: str, params: Any) -> list:
    """Wrap positional params in the batchexecute envelope."""
    # Use separators to match Chrome's compact format (no spaces)
    params_json = json.dumps(params, separators=(",", ":"))
    return [[[method_id, params_json, None, "generic"]]]


def build_request_body(method_id: str, params: Any, csrf_token: str | None = None) -> str:
    """Build the form-encoded batchexecute request body."""
    f_req_json = json.dumps(encode_request(method_id, params), separators=(",", ":"))

    # URL encode (safe='' encodes all characters including /)
    body_parts = [f"f.req={urllib.parse.quote(f_req_json, safe='')}"]

    if csrf_token:
        body_parts.append(f"at={urllib.parse.quote(csrf_token, safe='')}")

    # Add trailing & to match NotebookLM's format
    return "&".join(body_parts) + "&"


def build_url(
    method_id: str,
    source_path: str = "/",
    session_id: str | None = None,
    bl: str | None = None,
) -> str:
    """Build the batchexecute URL with query params."""
    params = {
        "rpcids": method_id,
        "source-path": source_path,
        "bl": bl or constants.DEFAULT_BL,
        "hl": "en",
        "rt": "c",
    }

    if session_id:
        params["f.sid"] = session_id

    return f"{constants.BATCHEXECUTE_URL}?{urllib.parse.urlencode(params)}"


# =============================================================================
# Decoding
# =============================================================================

def strip_anti_xssi(response_text: str) -> str:
    """Remove the )]}' line that prefixes every batchexecute response."""
    if response_text.startswith(ANTI_XSSI_PREFIX):
        newline_idx = response_text.find("\n")
        if newline_idx == -1:
            return response_text[len(ANTI_XSSI_PREFIX):]
        return response_text[newline_idx + 1:]
    return response_text


def parse_chunked_response(response_text: str) -> list:
    """Parse the chunk stream into JSON values.

    A line is either a decimal byte count (the payload is the next line) or a
    JSON value on its own. Lines that fail to parse are skipped.
    """
    if not response_text or not response_text.strip():
        return []

    lines = response_text.strip().split("\n")
    chunks = []
    i = 0
    while i < len(lines):
        line = lines[i].strip()
        if not line:
            i += 1
            continue

        if line.isdigit():
            i += 1
            if i < len(lines):
                try:
                    chunks.append(json.loads(lines[i]))
                except json.JSONDecodeError:
                    logger.debug(f"Skipping malformed chunk at line {i + 1}")
            i += 1
            continue

        try:
            chunks.append(json.loads(line))
        except json.JSONDecodeError:
            logger.debug(f"Skipping non-JSON line at {i + 1}")
        i += 1

    return chunks


def _iter_frames(chunks: list):
    """Yield every frame-shaped list in the parsed chunks."""
    for chunk in chunks:
        if not isinstance(chunk, list) or not chunk:
            continue
        # A chunk is either a list of frames or a single bare frame
        items = chunk if isinstance(chunk[0], list) else [chunk]
        for item in items:
            if isinstance(item, list) and len(item) >= 3:
                yield item


def _is_auth_error_frame(item: list) -> bool:
    # Signature: ["wrb.fr", "RPC_ID", null, null, null, [16], "generic"]
    return (
        len(item) > 6
        and item[6] == "generic"
        and isinstance(item[5], list)
        and 16 in item[5]
    )


def _is_rate_limited_frame(item: list) -> bool:
    if item[2] is not None or len(item) <= 5 or item[5] is None:
        return False
    try:
        serialized = json.dumps(item[5])
    except (TypeError, ValueError):
        serialized = str(item[5])
    return RATE_LIMIT_MARKER in serialized


def extract_rpc_result(chunks: list, method_id: str) -> Any:
    """Extract the result for a specific RPC ID from the parsed chunks.

    Error frames for ``method_id`` win over success frames. Frames for other
    RPC IDs are ignored. Returns None when no frame matches.
    """
    frames = list(_iter_frames(chunks))

    for item in frames:
        if item[0] == ERROR_TAG and item[1] == method_id:
            raise RpcError(method_id, item[2])

    for item in frames:
        if item[0] != SUCCESS_TAG or item[1] != method_id:
            continue

        if _is_auth_error_frame(item):
            raise AuthExpired("RPC Error 16: Authentication expired")

        if _is_rate_limited_frame(item):
            raise RateLimited("API rate limit or quota exceeded.")

        result = item[2]
        if isinstance(result, str):
            try:
                return json.loads(result)
            except json.JSONDecodeError:
                return result
        return result

    return None


def decode_response(raw_response: str, method_id: str, allow_empty: bool = False) -> Any:
    """Decode a batchexecute response body for one RPC.

    Raises:
        RpcError: The service reported an error for ``method_id``.
        RateLimited: The call was refused by the rate limiter.
        NoResult: Nothing matched and ``allow_empty`` is not set.
    """
    chunks = parse_chunked_response(strip_anti_xssi(raw_response))
    result = extract_rpc_result(chunks, method_id)
    if result is None and not allow_empty:
        raise NoResult(method_id)
    return result


# =============================================================================
# Debug helpers
# =============================================================================

def format_debug_json(data: Any, max_length: int = 2000) -> str:
    """Format data as pretty-printed JSON for debug logging."""
    try:
        formatted = json.dumps(data, indent=2, ensure_ascii=False)
    except (TypeError, ValueError):
        formatted = str(data)
    if len(formatted) > max_length:
        return formatted[:max_length] + "\n  ... (truncated)"
    return formatted


def decode_request_body(body: str) -> dict[str, Any]:
    """Decode a URL-encoded request body back into its RPC ID and params."""
    result: dict[str, Any] = {}
    parsed = urllib.parse.parse_qs(body.rstrip("&"))

    if "f.req" in parsed:
        f_req_raw = parsed["f.req"][0]
        try:
            f_req = json.loads(f_req_raw)
        except json.JSONDecodeError:
            result["f.req"] = f_req_raw
        else:
            result["f.req"] = f_req
            try:
                rpc_call = f_req[0][0]
                result["rpc_id"] = rpc_call[0]
                result["params"] = json.loads(rpc_call[1])
            except (IndexError, TypeError, KeyError, json.JSONDecodeError):
                pass

    # Include CSRF token reference (don't log actual value)
    if "at" in parsed:
        result["at"] = "(csrf_token)"

    return result


def parse_url_params(url: str) -> dict[str, Any]:
    """Parse URL query parameters for debug display."""
    parsed = urllib.parse.urlparse(url)
    params = urllib.parse.parse_qs(parsed.query)
    # Flatten single-value lists
    return {k: v[0] if len(v) == 1 else v for k, v in params.items()}
