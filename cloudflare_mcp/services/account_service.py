# -*- coding: utf-8 -*-
"""Account resolution.

Copyright 2026
SPDX-License-Identifier: Apache-2.0

Resolves which Cloudflare account an ``execute`` call runs against when the
caller did not name one. Every call asks the API again; account membership can
change between calls and nothing is cached.
"""

# Standard
import logging
from typing import Any, Dict, List, Optional

# Third-Party
import httpx

# First-Party
from cloudflare_mcp.envelope import decode_response
from cloudflare_mcp.errors import AmbiguousAccount, NoAccountFound, UpstreamError

logger = logging.getLogger(__name__)


class AccountResolver:
    """Resolve the single account visible to an API token."""

    def __init__(self, api_base: str, http_client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        """Create the resolver.

        Args:
            api_base: Base URL of the Cloudflare API.
            http_client: Shared client. A private one is created when omitted.
            timeout: Request timeout for a private client.
        """
        self.api_base = api_base.rstrip("/")
        self._client = http_client
        self._owns_client = http_client is None
        self._timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        """Return the HTTP client, creating a private one on first use.

        Returns:
            httpx.AsyncClient: Client used for the account listing.
        """
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def list_accounts(self, api_token: str) -> List[Dict[str, Any]]:
        """Fetch the accounts visible to ``api_token``.

        Args:
            api_token: Cloudflare API token.

        Returns:
            List[Dict[str, Any]]: Account records; empty when the result is not a list.

        Raises:
            UpstreamError: If the request fails or the response is not a success envelope.
        """
        try:
            response = await self._get_client().get(f"{self.api_base}/accounts", headers={"Authorization": f"Bearer {api_token}"})
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Cloudflare API request failed: {exc}") from exc

        envelope = decode_response(response)
        if not isinstance(envelope.result, list):
            return []
        return [account for account in envelope.result if isinstance(account, dict)]

    async def resolve(self, api_token: str) -> str:
        """Return the id of the only account visible to ``api_token``.

        Args:
            api_token: Cloudflare API token.

        Returns:
            str: Account id.

        Raises:
            UpstreamError: On an unsuccessful or malformed upstream response.
            NoAccountFound: If no account is visible.
            AmbiguousAccount: If more than one account is visible.
        """
        accounts = await self.list_accounts(api_token)

        if not accounts:
            raise NoAccountFound()

        if len(accounts) == 1:
            account_id = accounts[0].get("id")
            if not account_id:
                raise UpstreamError("Cloudflare API error: account listing returned an account without an id")
            logger.debug("Resolved single account %s", account_id)
            return str(account_id)

        logger.info("Token has access to %d accounts; account_id required", len(accounts))
        raise AmbiguousAccount(accounts)

    async def aclose(self) -> None:
        """Close the private HTTP client, if one was created."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
