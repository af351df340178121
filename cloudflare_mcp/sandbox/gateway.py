# -*- coding: utf-8 -*-
"""Location: ./cloudflare_mcp/sandbox/gateway.py
Copyright 2026
SPDX-License-Identifier: Apache-2.0

Sandboxed execution gateway.

Every call provisions a fresh execution unit, invokes its ``evaluate`` entry
operation once and collects the outcome:

1. Provision: build the recipe and ask the provider for a unit.
2. Invoke: call ``evaluate``, bounded by the execution timeout. The API token
   is a call-time argument and never part of the recipe.
3. Collect: turn the unit's ``{"result", "error", "trace"}`` record into an
   :class:`ExecutionResult`.

``execute`` never raises; every failure becomes a failure result. Logs carry
unit ids and timings only, never tokens or script text.
"""

# Standard
import asyncio
from dataclasses import dataclass, field
import time
from typing import Any, Callable, Dict, Optional, Sequence
import uuid

# First-Party
from cloudflare_mcp.errors import ExecutionTimeoutError, ProvisioningError, ScriptExecutionError
from cloudflare_mcp.sandbox.providers.base import ExecutionProvider, ExecutionRecipe
from cloudflare_mcp.sandbox.recipes import build_api_recipe, build_search_recipe
from cloudflare_mcp.services.logging_service import LoggingService

logging_service = LoggingService()
logger = logging_service.get_logger(__name__)

DEFAULT_TIMEOUT_MS = 30000


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one sandboxed execution.

    Exactly one of ``result`` and ``error`` is meaningful; ``trace`` is
    advisory and only accompanies an error.

    Examples:
        >>> ExecutionResult.success(42).unwrap()
        42
        >>> ExecutionResult.failure("boom").ok
        False
    """

    result: Any = None
    error: Optional[str] = None
    trace: Optional[str] = None

    def __post_init__(self):
        """Reject results carrying both a value and an error.

        Raises:
            ValueError: If ``result`` and ``error`` are both set.
        """
        if self.error is not None and self.result is not None:
            raise ValueError("ExecutionResult cannot carry both a result and an error")

    @classmethod
    def success(cls, result: Any) -> "ExecutionResult":
        """Build a success result.

        Args:
            result: Value returned by the script.

        Returns:
            ExecutionResult: Success result.
        """
        return cls(result=result)

    @classmethod
    def failure(cls, error: str, trace: Optional[str] = None) -> "ExecutionResult":
        """Build a failure result.

        Args:
            error: Error message.
            trace: Optional traceback text.

        Returns:
            ExecutionResult: Failure result.
        """
        return cls(error=error or "Unknown error", trace=trace)

    @property
    def ok(self) -> bool:
        """Whether the execution succeeded.

        Returns:
            bool: True when no error is set.
        """
        return self.error is None

    def unwrap(self) -> Any:
        """Return the result or raise the error.

        Returns:
            Any: Script result.

        Raises:
            ScriptExecutionError: If the execution failed.
        """
        if self.error is not None:
            raise ScriptExecutionError(self.error, self.trace)
        return self.result


@dataclass
class ExecutionContext:
    """Request-scoped data for one API-variant execution.

    The token is excluded from ``repr`` so it never reaches logs.
    """

    account_id: str
    api_token: str = field(repr=False)


class SandboxGateway:
    """Common provision, invoke and collect steps."""

    id_prefix = "cloudflare-unit"

    def __init__(self, provider: ExecutionProvider, timeout_ms: int = DEFAULT_TIMEOUT_MS):
        """Create the gateway.

        Args:
            provider: Execution provider used to create units.
            timeout_ms: Invoke timeout in milliseconds.
        """
        self.provider = provider
        self.timeout_ms = timeout_ms

    def new_unit_id(self) -> str:
        """Return a fresh unit identity.

        Returns:
            str: ``<prefix>-<uuid4>``.
        """
        return f"{self.id_prefix}-{uuid.uuid4()}"

    async def _run(self, build: Callable[[], ExecutionRecipe], args: Sequence[Any]) -> ExecutionResult:
        """Build a recipe, provision a unit, invoke it once and collect its outcome.

        Args:
            build: Recipe factory; a script that does not parse fails here.
            args: Call-time arguments for ``evaluate``.

        Returns:
            ExecutionResult: Collected outcome; failures never raise.
        """
        unit_id = self.new_unit_id()
        started = time.perf_counter()
        try:
            handle = await self.provider.create(unit_id, build())
            try:
                record = await asyncio.wait_for(handle.invoke(*args), timeout=self.timeout_ms / 1000)
            except asyncio.TimeoutError as exc:
                raise ExecutionTimeoutError(f"Execution timed out after {self.timeout_ms}ms") from exc
            result = self._collect(unit_id, record)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            logger.warning("Execution unit %s failed after %dms: %s", unit_id, elapsed_ms, exc.__class__.__name__)
            return ExecutionResult.failure(str(exc) or exc.__class__.__name__, getattr(exc, "trace", None))

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        if result.ok:
            logger.info("Execution unit %s completed in %dms", unit_id, elapsed_ms)
        else:
            logger.info("Execution unit %s reported a script error after %dms", unit_id, elapsed_ms)
        return result

    @staticmethod
    def _collect(unit_id: str, record: Dict[str, Any]) -> ExecutionResult:
        """Convert a unit record into a result.

        Args:
            unit_id: Unit identity, for error messages.
            record: ``{"result", "error", "trace"}`` mapping.

        Returns:
            ExecutionResult: Collected outcome.

        Raises:
            ProvisioningError: If the record is not a mapping.
        """
        if not isinstance(record, dict):
            raise ProvisioningError(f"Execution unit {unit_id} returned a malformed result")
        error = record.get("error")
        if error:
            trace = record.get("trace")
            return ExecutionResult.failure(str(error), str(trace) if trace else None)
        return ExecutionResult.success(record.get("result"))


class ApiExecutionGateway(SandboxGateway):
    """Run caller scripts against the Cloudflare API."""

    id_prefix = "cloudflare-api"

    def __init__(self, provider: ExecutionProvider, api_base: str, timeout_ms: int = DEFAULT_TIMEOUT_MS):
        """Create the gateway.

        Args:
            provider: Execution provider used to create units.
            api_base: Base URL of the Cloudflare API, embedded into units.
            timeout_ms: Invoke timeout in milliseconds.
        """
        super().__init__(provider, timeout_ms)
        self.api_base = api_base

    async def execute(self, code: str, account_id: str, api_token: str) -> ExecutionResult:
        """Run ``code`` with ``cloudflare.request`` bound to ``account_id``.

        Args:
            code: Caller script body.
            account_id: Account the script runs against.
            api_token: Credential, passed to the unit at invoke time.

        Returns:
            ExecutionResult: Script outcome.
        """
        context = ExecutionContext(account_id=account_id, api_token=api_token)
        return await self._run(lambda: build_api_recipe(code, self.api_base, context.account_id), (context.api_token,))


class SpecQueryGateway(SandboxGateway):
    """Run caller scripts against the resolved OpenAPI spec."""

    id_prefix = "cloudflare-search"

    def __init__(self, provider: ExecutionProvider, spec_json: str, timeout_ms: int = DEFAULT_TIMEOUT_MS):
        """Create the gateway.

        Args:
            provider: Execution provider used to create units.
            spec_json: Resolved spec text, embedded into every unit.
            timeout_ms: Invoke timeout in milliseconds.
        """
        super().__init__(provider, timeout_ms)
        self.spec_json = spec_json

    async def execute(self, code: str) -> ExecutionResult:
        """Run ``code`` with ``spec`` bound to the resolved spec.

        Args:
            code: Caller script body.

        Returns:
            ExecutionResult: Script outcome.
        """
        return await self._run(lambda: build_search_recipe(code, self.spec_json), ())
