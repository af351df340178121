# -*- coding: utf-8 -*-
"""Service layer for the Cloudflare API MCP server."""
