# -*- coding: utf-8 -*-
"""Subprocess execution provider.

Copyright 2026
SPDX-License-Identifier: Apache-2.0

Every execution unit is a fresh directory holding the recipe modules plus a
bootstrap script, run once by a separate interpreter started with ``-I -S``.

Wire protocol (one JSON object per line, every message tagged with a channel
token generated per invocation):

- host -> unit, stdin:  ``{"type": "invoke", "args": [...]}`` once, then ``fetch_response`` replies.
- unit -> host, stdout: ``fetch`` requests and exactly one ``result`` message.

Call-time arguments such as the API token only travel over stdin; they are
never written into the unit directory.
"""

# Standard
import asyncio
import base64
import contextlib
import logging
from pathlib import Path
import shutil
import sys
import tempfile
import time
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple
import uuid

# Third-Party
import httpx
import orjson

# First-Party
from cloudflare_mcp.errors import ProvisioningError
from cloudflare_mcp.sandbox.providers.base import ENTRYPOINT_NAME, ExecutionHandle, ExecutionProvider, ExecutionRecipe

logger = logging.getLogger(__name__)

BOOTSTRAP_MODULE = "__unit_bootstrap__"

_INTERPRETER_FLAGS = {
    "isolated": "-I",
    "no_site": "-S",
    "unbuffered": "-u",
}

_BOOTSTRAP_SOURCE = r'''# Auto-generated by the cloudflare-mcp execution provider. Do not edit.
import asyncio
import base64
import builtins
import io
import json
from pathlib import Path
import sys
import traceback
import uuid

SAFE_IMPORTS = {
    "base64", "collections", "datetime", "functools", "itertools", "json", "math",
    "re", "statistics", "string", "time", "typing", "urllib.parse",
}


def _safe_import(name, globals=None, locals=None, fromlist=(), level=0):
    base = name.split(".", 1)[0]
    if level or (name not in SAFE_IMPORTS and base not in SAFE_IMPORTS):
        raise ImportError(f"Import of '{name}' is not allowed in sandbox")
    return builtins.__import__(name, globals, locals, fromlist, level)


_SAFE_BUILTINS = {name: getattr(builtins, name) for name in (
    "abs", "all", "any", "bool", "bytes", "chr", "dict", "divmod", "enumerate", "filter", "float",
    "format", "frozenset", "hasattr", "int", "isinstance", "issubclass", "iter", "len", "list", "map",
    "max", "min", "next", "ord", "pow", "print", "range", "repr", "reversed", "round", "set", "slice",
    "sorted", "str", "sum", "tuple", "type", "zip",
    "ArithmeticError", "AttributeError", "Exception", "IndexError", "KeyError", "LookupError",
    "NotImplementedError", "RuntimeError", "StopAsyncIteration", "StopIteration", "TypeError",
    "ValueError", "ZeroDivisionError",
)}
_SAFE_BUILTINS["__import__"] = _safe_import
_SAFE_BUILTINS["__build_class__"] = builtins.__build_class__

_CHANNEL = ""
_PENDING = {}
_OUT = sys.stdout


def _emit(message):
    message["channel"] = _CHANNEL
    line = json.dumps(message, default=str, allow_nan=False)
    _OUT.write(line + "\n")
    _OUT.flush()


def _format_exception(exc):
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


class FetchResponse:
    def __init__(self, status, headers, text):
        self.status = status
        self.headers = headers
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status < 300

    def json(self):
        return json.loads(self.text)


async def fetch(url, method="GET", headers=None, body=None):
    request_id = uuid.uuid4().hex
    future = asyncio.get_running_loop().create_future()
    _PENDING[request_id] = future
    encoding = "text"
    if isinstance(body, (bytes, bytearray)):
        body = base64.b64encode(bytes(body)).decode("ascii")
        encoding = "base64"
    elif body is not None and not isinstance(body, str):
        body = str(body)
    _emit({
        "type": "fetch",
        "id": request_id,
        "url": str(url),
        "method": str(method).upper(),
        "headers": {str(key): str(value) for key, value in (headers or {}).items()},
        "body": body,
        "encoding": encoding,
    })
    reply = await future
    return FetchResponse(int(reply.get("status") or 0), dict(reply.get("headers") or {}), reply.get("text") or "")


async def _pump():
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            break
        try:
            message = json.loads(line)
        except ValueError:
            continue
        if not isinstance(message, dict) or message.get("channel") != _CHANNEL:
            continue
        if message.get("type") != "fetch_response":
            continue
        future = _PENDING.pop(str(message.get("id") or ""), None)
        if future is None or future.done():
            continue
        if message.get("ok"):
            future.set_result(message)
        else:
            future.set_exception(RuntimeError(str(message.get("error") or "fetch failed")))
    for future in _PENDING.values():
        if not future.done():
            future.set_exception(RuntimeError("execution host closed the channel"))


def _load_module(name):
    path = Path(__file__).resolve().parent / (name + ".py")
    namespace = {
        "__builtins__": _SAFE_BUILTINS,
        "__name__": name,
        "fetch": fetch,
        "gather": asyncio.gather,
        "sleep": asyncio.sleep,
        "format_exception": _format_exception,
    }
    exec(compile(path.read_text(encoding="utf-8"), str(path), "exec"), namespace)
    return namespace


async def _main(main_module, entrypoint):
    global _CHANNEL
    invoke = json.loads(sys.stdin.readline() or "{}")
    _CHANNEL = str(invoke.get("channel") or "")
    args = invoke.get("args") or []
    sys.stdout = io.StringIO()
    pump = asyncio.ensure_future(_pump())
    try:
        entry = _load_module(main_module).get(entrypoint)
        if not callable(entry):
            raise RuntimeError(f"Execution unit defines no '{entrypoint}' entry operation")
        outcome = await entry(*args)
        if not isinstance(outcome, dict):
            outcome = {"result": outcome, "error": None}
    except Exception as exc:
        outcome = {"result": None, "error": str(exc) or type(exc).__name__, "trace": _format_exception(exc)}
    finally:
        pump.cancel()
    try:
        _emit({"type": "result", "payload": outcome})
    except (TypeError, ValueError) as exc:
        _emit({"type": "result", "payload": {"result": None, "error": f"Result is not JSON serializable: {exc}", "trace": None}})


if __name__ == "__main__":
    asyncio.run(_main(sys.argv[1], sys.argv[2]))
'''


def _origin(url: str) -> Optional[Tuple[str, str, Optional[int]]]:
    """Return ``(scheme, host, port)`` of a URL, or None when it cannot be parsed.

    Args:
        url: Absolute URL.

    Returns:
        Optional[Tuple[str, str, Optional[int]]]: Origin triple.

    Examples:
        >>> _origin("https://api.cloudflare.com/client/v4/zones")
        ('https', 'api.cloudflare.com', None)
        >>> _origin("not a url") is None
        True
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError, ValueError):
        return None
    if not parsed.scheme or not parsed.host:
        return None
    return (parsed.scheme, parsed.host, parsed.port)


class SubprocessExecutionHandle(ExecutionHandle):
    """Single-use handle on a subprocess execution unit."""

    def __init__(self, unit_id: str, unit_dir: Path, command: List[str], provider: "SubprocessExecutionProvider"):
        """Create the handle.

        Args:
            unit_id: Unit identity.
            unit_dir: Directory holding the unit sources.
            command: Interpreter command line.
            provider: Provider performing bridged fetches.
        """
        self.unit_id = unit_id
        self.unit_dir = unit_dir
        self.command = command
        self._provider = provider
        self._used = False

    async def invoke(self, *args: Any) -> Dict[str, Any]:
        """Run the unit once and reclaim its directory.

        Args:
            *args: Call-time arguments passed to the entry operation.

        Returns:
            Dict[str, Any]: Result record from the unit.

        Raises:
            ProvisioningError: If the unit was already used, cannot start or exits without a result.
        """
        if self._used:
            raise ProvisioningError(f"Execution unit {self.unit_id} has already been invoked")
        self._used = True
        try:
            return await self._run(args)
        finally:
            shutil.rmtree(self.unit_dir, ignore_errors=True)

    async def _run(self, args: Sequence[Any]) -> Dict[str, Any]:  # pylint: disable=too-many-locals
        """Start the interpreter, serve bridged fetches and wait for the result.

        Args:
            args: Call-time arguments.

        Returns:
            Dict[str, Any]: Result record from the unit.

        Raises:
            ProvisioningError: If the unit cannot start or does not produce a well-formed result.
        """
        started = time.perf_counter()
        channel = uuid.uuid4().hex
        limit = self._provider.max_message_bytes
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.unit_dir),
                limit=limit,
            )
        except OSError as exc:
            raise ProvisioningError(f"Cannot start execution unit {self.unit_id}: {exc}") from exc
        if not proc.stdin or not proc.stdout or not proc.stderr:
            raise ProvisioningError(f"Cannot start execution unit {self.unit_id}: missing pipes")

        write_lock = asyncio.Lock()
        fetch_tasks: Set[asyncio.Task] = set()
        stderr_task = asyncio.create_task(proc.stderr.read())
        payload: Any = None

        async def _send(message: Dict[str, Any]) -> None:
            message["channel"] = channel
            async with write_lock:
                proc.stdin.write(orjson.dumps(message) + b"\n")
                await proc.stdin.drain()

        async def _handle_fetch(message: Dict[str, Any]) -> None:
            reply = await self._provider.fetch(self.unit_id, message)
            reply.update(type="fetch_response", id=message.get("id"))
            with contextlib.suppress(ConnectionError):
                await _send(reply)

        try:
            # A unit that dies on startup is reported below from its exit code.
            with contextlib.suppress(ConnectionError):
                await _send({"type": "invoke", "args": list(args)})
            while True:
                try:
                    line = await proc.stdout.readline()
                except ValueError as exc:
                    raise ProvisioningError(f"Execution unit {self.unit_id} sent a message larger than {limit} bytes") from exc
                if not line:
                    break
                try:
                    message = orjson.loads(line)
                except orjson.JSONDecodeError:
                    continue
                if not isinstance(message, dict) or message.get("channel") != channel:
                    continue
                if message.get("type") == "fetch":
                    task = asyncio.create_task(_handle_fetch(message))
                    fetch_tasks.add(task)
                    task.add_done_callback(fetch_tasks.discard)
                elif message.get("type") == "result":
                    payload = message.get("payload")
                    break

            if fetch_tasks:
                await asyncio.gather(*fetch_tasks, return_exceptions=True)
            proc.stdin.close()
            await proc.wait()
            stderr_text = (await stderr_task).decode("utf-8", errors="replace").strip()
        finally:
            for task in list(fetch_tasks):
                task.cancel()
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()
            if not stderr_task.done():
                stderr_task.cancel()

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        if payload is None:
            detail = f": {stderr_text[-500:]}" if stderr_text else ""
            raise ProvisioningError(f"Execution unit {self.unit_id} exited with code {proc.returncode} without a result{detail}")
        if not isinstance(payload, dict):
            raise ProvisioningError(f"Execution unit {self.unit_id} returned a malformed result")

        logger.debug("Execution unit %s finished in %dms (exit code %s)", self.unit_id, elapsed_ms, proc.returncode)
        return payload


class SubprocessExecutionProvider(ExecutionProvider):
    """Provision execution units as short-lived interpreter processes."""

    def __init__(
        self,
        python_executable: Optional[str] = None,
        work_dir: Optional[Path] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        allowed_origins: Optional[Sequence[str]] = None,
        http_timeout: float = 30.0,
        max_message_bytes: int = 64 * 1024 * 1024,
    ):
        """Create the provider.

        Args:
            python_executable: Interpreter for units; defaults to the current one.
            work_dir: Parent directory for unit directories; system temp dir when None.
            http_client: Client for bridged fetches. A private one is created when omitted.
            allowed_origins: Base URLs units may fetch from. None allows any origin.
            http_timeout: Timeout of a private HTTP client.
            max_message_bytes: Largest line accepted from a unit.
        """
        self._python = python_executable or sys.executable or shutil.which("python3") or shutil.which("python")
        self._work_dir = Path(work_dir) if work_dir else None
        self._client = http_client
        self._owns_client = http_client is None
        self._http_timeout = http_timeout
        self.max_message_bytes = max_message_bytes
        self._allowed: Optional[Set[Tuple[str, str, Optional[int]]]] = None
        if allowed_origins is not None:
            self._allowed = {origin for origin in (_origin(url) for url in allowed_origins) if origin}

    def _get_client(self) -> httpx.AsyncClient:
        """Return the HTTP client, creating a private one on first use.

        Returns:
            httpx.AsyncClient: Client for bridged fetches.
        """
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._http_timeout)
        return self._client

    def _interpreter_flags(self, recipe: ExecutionRecipe) -> List[str]:
        """Map recipe compatibility flags to interpreter options.

        Args:
            recipe: Build recipe.

        Returns:
            List[str]: Interpreter command-line options.

        Raises:
            ProvisioningError: On an unknown flag.
        """
        flags = []
        for flag in recipe.compatibility_flags:
            if flag not in _INTERPRETER_FLAGS:
                raise ProvisioningError(f"Unsupported compatibility flag: {flag}")
            flags.append(_INTERPRETER_FLAGS[flag])
        return flags

    async def create(self, unit_id: str, recipe: ExecutionRecipe) -> SubprocessExecutionHandle:
        """Write the unit sources into a fresh directory.

        Args:
            unit_id: Unique unit identity.
            recipe: Build recipe.

        Returns:
            SubprocessExecutionHandle: Handle on the unit.

        Raises:
            ProvisioningError: If the recipe is invalid or the unit cannot be written.
        """
        if not self._python:
            raise ProvisioningError("Python runtime is not available on this host")
        flags = self._interpreter_flags(recipe)
        if recipe.main_module not in recipe.modules:
            raise ProvisioningError(f"Recipe main module {recipe.main_module!r} has no source")
        for name in recipe.modules:
            if not name.isidentifier() or name == BOOTSTRAP_MODULE:
                raise ProvisioningError(f"Invalid module name in recipe: {name!r}")

        unit_dir: Optional[Path] = None
        try:
            unit_dir = Path(tempfile.mkdtemp(prefix=f"{unit_id}-", dir=str(self._work_dir) if self._work_dir else None))
            for name, source in recipe.modules.items():
                (unit_dir / f"{name}.py").write_text(source, encoding="utf-8")
            bootstrap = unit_dir / f"{BOOTSTRAP_MODULE}.py"
            bootstrap.write_text(_BOOTSTRAP_SOURCE, encoding="utf-8")
        except OSError as exc:
            if unit_dir is not None:
                shutil.rmtree(unit_dir, ignore_errors=True)
            raise ProvisioningError(f"Cannot provision execution unit {unit_id}: {exc}") from exc

        command = [self._python, *flags, str(bootstrap), recipe.main_module, ENTRYPOINT_NAME]
        logger.debug("Provisioned execution unit %s in %s", unit_id, unit_dir)
        return SubprocessExecutionHandle(unit_id, unit_dir, command, self)

    def origin_allowed(self, url: str) -> bool:
        """Return True if units may fetch ``url``.

        Args:
            url: Requested URL.

        Returns:
            bool: Whether the origin is allowed.
        """
        if self._allowed is None:
            return _origin(url) is not None
        return _origin(url) in self._allowed

    async def fetch(self, unit_id: str, message: Dict[str, Any]) -> Dict[str, Any]:
        """Perform a fetch requested by a unit.

        Failures are reported back to the unit instead of raised.

        Args:
            unit_id: Requesting unit, for logging.
            message: ``fetch`` message from the unit.

        Returns:
            Dict[str, Any]: ``{"ok": True, "status", "headers", "text"}`` or ``{"ok": False, "error"}``.
        """
        url = str(message.get("url") or "")
        method = str(message.get("method") or "GET").upper()
        if not self.origin_allowed(url):
            logger.warning("Execution unit %s attempted fetch outside allowed origins", unit_id)
            return {"ok": False, "error": f"fetch to {url!r} is not allowed from the execution unit"}

        headers = message.get("headers") if isinstance(message.get("headers"), dict) else {}
        body = message.get("body")
        try:
            content = None
            if body is not None:
                content = base64.b64decode(body) if message.get("encoding") == "base64" else str(body).encode("utf-8")
            response = await self._get_client().request(method, url, headers=headers, content=content)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            logger.info("Execution unit %s fetch %s failed: %s", unit_id, method, exc.__class__.__name__)
            return {"ok": False, "error": f"fetch failed: {exc}"}

        logger.debug("Execution unit %s fetch %s %s -> %d", unit_id, method, response.url.path, response.status_code)
        return {"ok": True, "status": response.status_code, "headers": dict(response.headers), "text": response.text}

    async def aclose(self) -> None:
        """Close the private HTTP client, if one was created."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
