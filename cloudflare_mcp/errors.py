# -*- coding: utf-8 -*-
"""Location: ./cloudflare_mcp/errors.py
Copyright 2026
SPDX-License-Identifier: Apache-2.0

Error taxonomy for the Cloudflare API MCP server.

Every error below the tool boundary derives from :class:`CloudflareMCPError` so
the MCP layer can turn it into a single-line ``Error: <message>`` response.

Examples:
    >>> from cloudflare_mcp.errors import AmbiguousAccount, UpstreamError, ExecutionTimeoutError
    >>> issubclass(ExecutionTimeoutError, UpstreamError)
    True
    >>> err = AmbiguousAccount([{"id": "a1", "name": "One"}, {"id": "a2", "name": "Two"}])
    >>> str(err)
    'Multiple Cloudflare accounts found. Provide account_id to select one. Found: a1 (One), a2 (Two)'
"""

# Standard
from typing import Any, Dict, List, Optional, Sequence

# Candidates listed in an AmbiguousAccount message.
MAX_ACCOUNT_CANDIDATES = 5


class CloudflareMCPError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(CloudflareMCPError):
    """Raised when required configuration is missing or invalid."""


class UpstreamError(CloudflareMCPError):
    """Raised when the upstream API answers with an unsuccessful or malformed response."""


class ExecutionTimeoutError(UpstreamError):
    """Raised when an execution unit does not answer within the configured timeout."""


class NoAccountFound(CloudflareMCPError):
    """Raised when the credential does not give access to any account."""

    def __init__(self, message: str = "No Cloudflare accounts found for this token."):
        """Create the error with the default user-facing message.

        Args:
            message: Error message.
        """
        super().__init__(message)


class AmbiguousAccount(CloudflareMCPError):
    """Raised when the credential gives access to several accounts.

    Attributes:
        candidates: Accounts returned upstream, in upstream order.
    """

    def __init__(self, candidates: Sequence[Dict[str, Any]]):
        """Build an actionable message listing the first candidates.

        Args:
            candidates: Account mappings with ``id`` and ``name`` keys.
        """
        self.candidates: List[Dict[str, Any]] = list(candidates)
        summary = ", ".join(f"{account.get('id') or 'unknown'} ({account.get('name') or ''})" for account in self.candidates[:MAX_ACCOUNT_CANDIDATES])
        super().__init__(f"Multiple Cloudflare accounts found. Provide account_id to select one. Found: {summary}")


class ScriptExecutionError(CloudflareMCPError):
    """Raised when a caller script raised inside its execution unit.

    Attributes:
        trace: Advisory traceback text captured inside the unit.
    """

    def __init__(self, message: str, trace: Optional[str] = None):
        """Create the error.

        Args:
            message: Message of the exception raised by the script.
            trace: Optional traceback captured inside the unit.
        """
        super().__init__(message)
        self.trace = trace


class ProvisioningError(CloudflareMCPError):
    """Raised when an execution unit cannot be created or invoked."""


class SpecResolutionError(CloudflareMCPError):
    """Raised when a schema reference cannot be resolved at build time."""


class SpecIndexError(CloudflareMCPError):
    """Raised when the resolved spec artifact cannot be loaded."""
