# -*- coding: utf-8 -*-
"""Location: ./cloudflare_mcp/sandbox/recipes.py
Copyright 2026
SPDX-License-Identifier: Apache-2.0

Recipe factories for the two execution unit variants.

A caller script is the body of an ``async def`` with no parameters. It is
parsed on the host and its statements become the body of a nested coroutine
inside the unit's ``evaluate`` entry operation. Its return value or exception
is captured as a ``{"result", "error", "trace"}`` record.

Names visible to scripts:

- both variants: ``fetch``, ``gather``, ``sleep`` and the allow-listed imports;
- API variant: ``cloudflare.request(...)`` and ``account_id``;
- query variant: ``spec``, the resolved OpenAPI spec.

Examples:
    >>> recipe = build_api_recipe("return 42", "https://api.cloudflare.com/client/v4", "abc")
    >>> recipe.main_module
    'cloudflare_api'
    >>> 'account_id = "abc"' in recipe.source_text()
    True
    >>> "        return 42" in recipe.source_text()
    True
"""

# Standard
import ast
import json
from typing import List, Optional

# First-Party
from cloudflare_mcp.sandbox.providers.base import ENTRYPOINT_NAME, ExecutionRecipe

API_MODULE = "cloudflare_api"
SEARCH_MODULE = "cloudflare_search"
SCRIPT_FILENAME = "<script>"

_HEADER = "# Generated execution unit. Do not edit.\n"

_API_CLIENT_SOURCE = r'''

class CloudflareAPIError(Exception):
    pass


def _query_value(value):
    if value is True:
        return "true"
    if value is False:
        return "false"
    return str(value)


def _header(headers, name):
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return ""


class CloudflareClient:
    def __init__(self, api_token):
        self._api_token = api_token

    async def request(self, method, path, query=None, body=None, content_type=None, raw_body=False):
        url = API_BASE + path
        params = [(key, _query_value(value)) for key, value in (query or {}).items() if value is not None]
        if params:
            url = url + ("&" if "?" in url else "?") + urlencode(params)

        headers = {"Authorization": "Bearer " + self._api_token}
        if content_type:
            headers["Content-Type"] = content_type
        elif body is not None and not raw_body:
            headers["Content-Type"] = "application/json"

        payload = None
        if raw_body:
            payload = body
        elif body is not None:
            payload = json.dumps(body)

        response = await fetch(url, method=method, headers=headers, body=payload)

        if "application/json" not in _header(response.headers, "content-type"):
            if not response.ok:
                raise CloudflareAPIError("Cloudflare API error: " + str(response.status) + " " + response.text)
            return {"success": True, "result": response.text}

        data = response.json()
        if not isinstance(data, dict) or not data.get("success"):
            errors = data.get("errors") if isinstance(data, dict) else None
            messages = [str(error.get("code")) + ": " + str(error.get("message")) for error in errors or [] if isinstance(error, dict)]
            raise CloudflareAPIError("Cloudflare API error: " + (", ".join(messages) or "unsuccessful response"))
        return data

'''


def _parse_script(code: str) -> List[ast.stmt]:
    """Parse a caller script into statements.

    ``return`` and ``await`` are accepted at the top level; they only become
    errors when the statements are compiled outside a function.

    Args:
        code: Script body.

    Returns:
        List[ast.stmt]: Top-level statements, empty for a blank script.

    Raises:
        SyntaxError: If the script does not parse.

    Examples:
        >>> [type(node).__name__ for node in _parse_script("x = await fetch(url)\\nreturn x")]
        ['Assign', 'Return']
        >>> _parse_script("   ")
        []
    """
    return ast.parse(code, filename=SCRIPT_FILENAME).body


def _entrypoint_source(code: str, parameters: str = "", setup: Optional[List[str]] = None) -> str:
    """Render the ``evaluate`` entry operation wrapping ``code``.

    The script's statements become the body of ``__user_main__`` at the syntax
    tree level, so string literals keep their exact content.

    Args:
        code: Script body.
        parameters: Parameter list of the entry operation.
        setup: Statements run before the script.

    Returns:
        str: Source of the entry operation.

    Raises:
        SyntaxError: If the script does not parse.
    """
    lines = [f"async def {ENTRYPOINT_NAME}({parameters}):"]
    lines += [f"    {statement}" for statement in setup or []]
    lines += [
        "",
        "    async def __user_main__():",
        "        pass",
        "",
        "    try:",
        '        return {"result": await __user_main__(), "error": None}',
        "    except Exception as exc:",
        '        return {"result": None, "error": str(exc) or type(exc).__name__, "trace": format_exception(exc)}',
    ]
    module = ast.parse("\n".join(lines))
    user_main = next(node for node in module.body[0].body if isinstance(node, ast.AsyncFunctionDef))
    user_main.body = _parse_script(code) or [ast.Pass()]
    return ast.unparse(ast.fix_missing_locations(module)) + "\n"


def build_api_recipe(code: str, api_base: str, account_id: str) -> ExecutionRecipe:
    """Build the API-proxy unit.

    Only the API base URL and the account id are embedded; the credential is
    passed to ``evaluate`` at invoke time.

    Args:
        code: Caller script body.
        api_base: Base URL of the Cloudflare API.
        account_id: Account the script runs against.

    Returns:
        ExecutionRecipe: Recipe of the unit.

    Raises:
        SyntaxError: If the script does not parse.
    """
    source = (
        _HEADER
        + "import json\nfrom urllib.parse import urlencode\n\n"
        + f"API_BASE = {json.dumps(api_base.rstrip('/'))}\n"
        + f"account_id = {json.dumps(account_id)}\n"
        + _API_CLIENT_SOURCE
        + _entrypoint_source(code, parameters="api_token", setup=["cloudflare = CloudflareClient(api_token)"])
    )
    return ExecutionRecipe(main_module=API_MODULE, modules={API_MODULE: source})


def build_search_recipe(code: str, spec_json: str) -> ExecutionRecipe:
    """Build the spec-query unit.

    Args:
        code: Caller script body.
        spec_json: Resolved spec as JSON text.

    Returns:
        ExecutionRecipe: Recipe of the unit.

    Raises:
        SyntaxError: If the script does not parse.

    Examples:
        >>> recipe = build_search_recipe("return len(spec['paths'])", '{"paths": {}}')
        >>> "spec = json.loads(" in recipe.source_text()
        True
    """
    source = _HEADER + "import json\n\n" + f"spec = json.loads({json.dumps(spec_json)})\n\n\n" + _entrypoint_source(code)
    return ExecutionRecipe(main_module=SEARCH_MODULE, modules={SEARCH_MODULE: source})
