# -*- coding: utf-8 -*-
"""Execution providers.

A provider provisions single-use execution units from an
:class:`~cloudflare_mcp.sandbox.providers.base.ExecutionRecipe`.
"""

# First-Party
from cloudflare_mcp.sandbox.providers.base import ENTRYPOINT_NAME, ExecutionHandle, ExecutionProvider, ExecutionRecipe
from cloudflare_mcp.sandbox.providers.subprocess_provider import SubprocessExecutionProvider

__all__ = [
    "ENTRYPOINT_NAME",
    "ExecutionHandle",
    "ExecutionProvider",
    "ExecutionRecipe",
    "SubprocessExecutionProvider",
]
