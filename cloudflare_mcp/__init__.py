# -*- coding: utf-8 -*-
"""Location: ./cloudflare_mcp/__init__.py
Copyright 2026
SPDX-License-Identifier: Apache-2.0

Cloudflare API MCP server.

Exposes two MCP tools: ``search`` queries a pre-resolved copy of the Cloudflare
OpenAPI document and ``execute`` runs caller-supplied Python against the
Cloudflare REST API inside a single-use execution unit.
"""

__author__ = "Cloudflare MCP contributors"
__version__ = "0.1.0"
__license__ = "Apache-2.0"
