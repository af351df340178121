# -*- coding: utf-8 -*-
"""Response truncation.

Copyright 2026
SPDX-License-Identifier: Apache-2.0

Bounds every tool response to a fixed character budget expressed in tokens.

Examples:
    >>> from cloudflare_mcp.utils.truncate import truncate_response
    >>> truncate_response("short")
    'short'
    >>> print(truncate_response({"a": 1}))
    {
      "a": 1
    }
    >>> out = truncate_response("x" * 100_000)
    >>> out.endswith("Response was ~25,000 tokens (limit: 6,000). Use more specific queries to reduce response size.")
    True
"""

# Standard
import json
import math
from typing import Any

# Third-Party
import orjson

CHARS_PER_TOKEN = 4
MAX_TOKENS = 6000
MAX_CHARS = MAX_TOKENS * CHARS_PER_TOKEN


def serialize_response(content: Any) -> str:
    """Render a value as human-readable text.

    Strings pass through unchanged, everything else becomes two-space indented
    JSON. Values orjson cannot encode, such as integers beyond 64 bits, are
    rendered by the standard JSON encoder instead.

    Args:
        content: Value returned by an execution unit.

    Returns:
        str: Text form of ``content``.

    Examples:
        >>> serialize_response([1, "a"])
        '[\\n  1,\\n  "a"\\n]'
        >>> serialize_response(2**70)
        '1180591620717411303424'
    """
    if isinstance(content, str):
        return content
    try:
        return orjson.dumps(content, default=str, option=orjson.OPT_INDENT_2 | orjson.OPT_NON_STR_KEYS).decode("utf-8")
    except (TypeError, orjson.JSONEncodeError):
        return json.dumps(content, indent=2, ensure_ascii=False, default=str)


def truncate_response(content: Any, max_tokens: int = MAX_TOKENS, chars_per_token: int = CHARS_PER_TOKEN) -> str:
    """Serialize ``content`` and cut it to the character budget.

    The token estimate in the marker is computed from the untruncated text.

    Args:
        content: Value to render.
        max_tokens: Budget in tokens.
        chars_per_token: Average characters per token.

    Returns:
        str: The text, or its first ``max_tokens * chars_per_token`` characters followed by a marker.

    Examples:
        >>> out = truncate_response("abcdefghij", max_tokens=2, chars_per_token=4)
        >>> out.splitlines()[0]
        'abcdefgh'
        >>> "~3 tokens (limit: 2)" in out
        True
    """
    text = serialize_response(content)
    max_chars = max_tokens * chars_per_token

    if len(text) <= max_chars:
        return text

    truncated = text[:max_chars]
    estimated_tokens = math.ceil(len(text) / chars_per_token)

    return f"{truncated}\n\n--- TRUNCATED ---\nResponse was ~{estimated_tokens:,} tokens (limit: {max_tokens:,}). Use more specific queries to reduce response size."
