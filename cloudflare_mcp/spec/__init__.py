# -*- coding: utf-8 -*-
"""OpenAPI reference resolution, offline build job and in-memory spec index."""

# First-Party
from cloudflare_mcp.spec.index import get_spec_index, load_spec_index, SpecIndex
from cloudflare_mcp.spec.resolver import resolve, resolve_document

__all__ = [
    "SpecIndex",
    "get_spec_index",
    "load_spec_index",
    "resolve",
    "resolve_document",
]
