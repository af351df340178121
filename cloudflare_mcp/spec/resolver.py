# -*- coding: utf-8 -*-
"""Location: ./cloudflare_mcp/spec/resolver.py
Copyright 2026
SPDX-License-Identifier: Apache-2.0

Inline ``$ref`` pointers of an OpenAPI document.

Resolution is depth-first. A pointer that is already being resolved higher up
the current branch is replaced by a ``{"$circular": pointer}`` marker instead
of being expanded again, so cyclic schemas terminate and the cycle stays
visible in the output.

Examples:
    >>> from cloudflare_mcp.spec.resolver import resolve
    >>> doc = {"components": {"schemas": {"Id": {"type": "string"}}}}
    >>> resolve({"schema": {"$ref": "#/components/schemas/Id"}}, doc)
    {'schema': {'type': 'string'}}
    >>> node = {"components": {"schemas": {"Node": {"properties": {"next": {"$ref": "#/components/schemas/Node"}}}}}}
    >>> resolve({"$ref": "#/components/schemas/Node"}, node)
    {'properties': {'next': {'$circular': '#/components/schemas/Node'}}}
"""

# Standard
from typing import Any, List, Optional, Set

# First-Party
from cloudflare_mcp.errors import SpecResolutionError

REF_KEY = "$ref"
CIRCULAR_KEY = "$circular"


def is_reference(node: Any) -> bool:
    """Return True when ``node`` is a reference node.

    Args:
        node: Any schema fragment.

    Returns:
        bool: Whether the node carries a string ``$ref`` field.

    Examples:
        >>> is_reference({"$ref": "#/a"})
        True
        >>> is_reference({"$ref": 3})
        False
    """
    return isinstance(node, dict) and isinstance(node.get(REF_KEY), str)


def parse_pointer(pointer: str) -> List[str]:
    """Split a local JSON pointer into unescaped segments.

    Args:
        pointer: Pointer of the form ``#/seg1/seg2``.

    Returns:
        List[str]: Decoded segments.

    Raises:
        SpecResolutionError: If the pointer is not a local document pointer.

    Examples:
        >>> parse_pointer("#/paths/~1zones~1{zone_id}/get")
        ['paths', '/zones/{zone_id}', 'get']
        >>> parse_pointer("other.json#/a")
        Traceback (most recent call last):
        ...
        cloudflare_mcp.errors.SpecResolutionError: Unsupported reference 'other.json#/a': only local '#/' pointers are supported
    """
    if not pointer.startswith("#/"):
        raise SpecResolutionError(f"Unsupported reference {pointer!r}: only local '#/' pointers are supported")
    return [segment.replace("~1", "/").replace("~0", "~") for segment in pointer[2:].split("/")]


def lookup(root: Any, pointer: str) -> Any:
    """Walk ``root`` along ``pointer`` and return the target fragment.

    Args:
        root: Document the pointer refers into.
        pointer: Local JSON pointer.

    Returns:
        Any: Target fragment (unresolved).

    Raises:
        SpecResolutionError: If a segment does not exist.

    Examples:
        >>> lookup({"a": [{"b": 1}]}, "#/a/0/b")
        1
        >>> lookup({"a": {}}, "#/a/missing")
        Traceback (most recent call last):
        ...
        cloudflare_mcp.errors.SpecResolutionError: Unresolvable reference '#/a/missing': no 'missing' under '#/a'
    """
    target = root
    walked = "#"
    for segment in parse_pointer(pointer):
        if isinstance(target, dict) and segment in target:
            target = target[segment]
        elif isinstance(target, list) and segment.isdigit() and int(segment) < len(target):
            target = target[int(segment)]
        else:
            raise SpecResolutionError(f"Unresolvable reference {pointer!r}: no {segment!r} under {walked!r}")
        walked = f"{walked}/{segment}"
    return target


def resolve(node: Any, root: Any, active: Optional[Set[str]] = None) -> Any:
    """Return a deep copy of ``node`` with every reference inlined.

    ``active`` holds the pointers being expanded on the current branch. A
    pointer is added before its target is expanded and removed afterwards, so
    two siblings referring to the same acyclic target are both inlined.

    Args:
        node: Fragment to resolve.
        root: Document that pointers refer into.
        active: Pointers on the current ancestor chain.

    Returns:
        Any: Resolved copy of ``node``.

    Examples:
        >>> doc = {"d": {"$ref": "#/e"}, "e": {"v": 1}}
        >>> resolve({"x": {"$ref": "#/d"}, "y": {"$ref": "#/d"}}, doc)
        {'x': {'v': 1}, 'y': {'v': 1}}
    """
    if active is None:
        active = set()

    if isinstance(node, list):
        return [resolve(item, root, active) for item in node]

    if not isinstance(node, dict):
        return node

    if is_reference(node):
        pointer = node[REF_KEY]
        if pointer in active:
            return {CIRCULAR_KEY: pointer}
        target = lookup(root, pointer)
        active.add(pointer)
        try:
            return resolve(target, root, active)
        finally:
            active.discard(pointer)

    return {key: resolve(value, root, active) for key, value in node.items()}


def resolve_document(root: Any) -> Any:
    """Resolve a whole document against itself.

    Args:
        root: Parsed schema document.

    Returns:
        Any: Self-contained copy of the document.
    """
    return resolve(root, root)


def contains_reference(node: Any) -> bool:
    """Return True if any reference node remains in ``node``.

    Args:
        node: Fragment to inspect.

    Returns:
        bool: Whether a ``$ref`` node is reachable.

    Examples:
        >>> contains_reference({"a": [{"$ref": "#/b"}]})
        True
        >>> contains_reference({"a": [{"$circular": "#/b"}]})
        False
    """
    if is_reference(node):
        return True
    if isinstance(node, dict):
        return any(contains_reference(value) for value in node.values())
    if isinstance(node, list):
        return any(contains_reference(item) for item in node)
    return False
