# -*- coding: utf-8 -*-
"""Location: ./tests/conftest.py
Copyright 2026
SPDX-License-Identifier: Apache-2.0

Shared fixtures.
"""

# Standard
import copy
from typing import Any, Dict

# Third-Party
import orjson
import pytest

# First-Party
import cloudflare_mcp.spec.index as index_mod
from cloudflare_mcp.spec.builder import build_resolved_spec

_DOCUMENT: Dict[str, Any] = {
    "openapi": "3.0.3",
    "info": {"title": "Cloudflare API", "version": "4.0.0"},
    "paths": {
        "/zones": {
            "get": {"summary": "List Zones", "tags": ["Zone"], "parameters": [{"$ref": "#/components/parameters/per_page"}]},
            "post": {
                "summary": "Create Zone",
                "tags": ["Zone"],
                "requestBody": {"content": {"application/json": {"schema": {"$ref": "#/components/schemas/Zone"}}}},
            },
        },
        "/accounts/{account_id}/workers/scripts": {
            "get": {
                "summary": "List Workers",
                "tags": ["Worker Script"],
                "parameters": [{"$ref": "#/components/parameters/account_id"}],
                "responses": {"200": {"$ref": "#/components/responses/Scripts"}},
            },
        },
        "/accounts/{account_id}/workers/scripts/{script_name}": {
            "put": {"summary": "Upload Worker Module", "tags": ["Worker Script"]},
            "delete": {"summary": "Delete Worker", "tags": ["Worker Script"]},
        },
        "/zones/{zone_id}/dns_records": {
            "get": {"summary": "List DNS Records", "tags": ["DNS Records for a Zone"]},
        },
    },
    "components": {
        "parameters": {
            "per_page": {"name": "per_page", "in": "query", "schema": {"type": "integer"}},
            "account_id": {"name": "account_id", "in": "path", "required": True, "schema": {"type": "string"}},
        },
        "schemas": {
            "Zone": {"type": "object", "properties": {"name": {"type": "string"}, "parent": {"$ref": "#/components/schemas/Zone"}}},
            "Script": {"type": "object", "properties": {"id": {"type": "string"}}},
        },
        "responses": {
            "Scripts": {
                "description": "Scripts",
                "content": {"application/json": {"schema": {"type": "array", "items": {"$ref": "#/components/schemas/Script"}}}},
            },
        },
    },
}


@pytest.fixture
def openapi_document() -> Dict[str, Any]:
    """A small OpenAPI document with shared, nested and recursive references."""
    return copy.deepcopy(_DOCUMENT)


@pytest.fixture
def resolved_spec_json(openapi_document) -> str:
    """Resolved spec text built from :func:`openapi_document`."""
    return orjson.dumps(build_resolved_spec(openapi_document)).decode()


@pytest.fixture(autouse=True)
def reset_spec_index(monkeypatch):
    """Give every test an unloaded process-wide spec index."""
    monkeypatch.setattr(index_mod, "_spec_index", None)
    yield
