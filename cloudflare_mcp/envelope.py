# -*- coding: utf-8 -*-
"""Location: ./cloudflare_mcp/envelope.py
Copyright 2026
SPDX-License-Identifier: Apache-2.0

Cloudflare API response envelopes.

JSON responses from the Cloudflare API share one wrapper::

    {"success": bool, "result": ..., "errors": [{"code", "message"}], "messages": [...], "result_info": {...}}

:func:`decode_envelope` turns a decoded body into either a
:class:`SuccessEnvelope` or a :class:`FailureEnvelope`, discriminated by the
``success`` flag. Anything else is an :class:`~cloudflare_mcp.errors.UpstreamError`.

Examples:
    >>> from cloudflare_mcp.envelope import decode_envelope
    >>> env = decode_envelope({"success": False, "errors": [{"code": 10000, "message": "Authentication error"}]})
    >>> env.error_message()
    'Cloudflare API error: 10000: Authentication error'
    >>> decode_envelope({"success": True, "result": [1, 2]}).result
    [1, 2]
"""

# Standard
from typing import Any, List, Optional, Union

# Third-Party
import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

# First-Party
from cloudflare_mcp.errors import UpstreamError

ERROR_PREFIX = "Cloudflare API error: "


class ApiMessage(BaseModel):
    """Single entry of an ``errors`` or ``messages`` list."""

    model_config = ConfigDict(extra="allow")

    code: Optional[Union[int, str]] = None
    message: str = ""

    def render(self) -> str:
        """Return the ``code: message`` form used in error texts.

        Returns:
            str: Rendered entry.
        """
        return f"{self.code}: {self.message}"


class ResultInfo(BaseModel):
    """Pagination block attached to list responses."""

    model_config = ConfigDict(extra="allow")

    page: Optional[int] = None
    per_page: Optional[int] = None
    total_pages: Optional[int] = None
    count: Optional[int] = None
    total_count: Optional[int] = None


class SuccessEnvelope(BaseModel):
    """Envelope of a successful response."""

    model_config = ConfigDict(extra="allow")

    success: bool = True
    result: Any = None
    errors: List[ApiMessage] = Field(default_factory=list)
    messages: List[ApiMessage] = Field(default_factory=list)
    result_info: Optional[ResultInfo] = None


class FailureEnvelope(BaseModel):
    """Envelope of an unsuccessful response."""

    model_config = ConfigDict(extra="allow")

    success: bool = False
    errors: List[ApiMessage] = Field(default_factory=list)
    messages: List[ApiMessage] = Field(default_factory=list)

    def error_message(self) -> str:
        """Join the upstream errors into one line.

        Returns:
            str: ``Cloudflare API error: code: message, code: message``.
        """
        return ERROR_PREFIX + ", ".join(error.render() for error in self.errors)


Envelope = Union[SuccessEnvelope, FailureEnvelope]


def decode_envelope(data: Any) -> Envelope:
    """Decode an already-parsed JSON body into a tagged envelope.

    Args:
        data: Parsed JSON body.

    Returns:
        Envelope: Success or failure envelope.

    Raises:
        UpstreamError: If the body does not have the envelope shape.

    Examples:
        >>> decode_envelope([1, 2])
        Traceback (most recent call last):
        ...
        cloudflare_mcp.errors.UpstreamError: Cloudflare API error: unexpected response shape
    """
    if not isinstance(data, dict) or not isinstance(data.get("success"), bool):
        raise UpstreamError(ERROR_PREFIX + "unexpected response shape")
    model = SuccessEnvelope if data["success"] else FailureEnvelope
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise UpstreamError(f"{ERROR_PREFIX}malformed response envelope ({exc.error_count()} validation errors)") from exc


def decode_response(response: httpx.Response) -> SuccessEnvelope:
    """Decode an HTTP response and require a success envelope.

    Args:
        response: Response from the Cloudflare API.

    Returns:
        SuccessEnvelope: The decoded envelope.

    Raises:
        UpstreamError: On non-JSON content, undecodable JSON or ``success: false``.
    """
    content_type = response.headers.get("content-type", "")
    if "application/json" not in content_type:
        raise UpstreamError(f"{ERROR_PREFIX}{response.status_code} {response.text}")
    try:
        data = response.json()
    except ValueError as exc:
        raise UpstreamError(f"{ERROR_PREFIX}{response.status_code} invalid JSON body") from exc

    envelope = decode_envelope(data)
    if isinstance(envelope, FailureEnvelope):
        raise UpstreamError(envelope.error_message())
    return envelope
