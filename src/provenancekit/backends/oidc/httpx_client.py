# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""httpx implementation of the OIDC client protocol.

Protocol::

    GET {issuer}/.well-known/openid-configuration  → 200 {"jwks_uri": ...}
    GET {jwks_uri}                                 → 200 {"keys": [...]}
    GET {token_request_url}?audience={aud}         → 200 {"value": "<jwt>"}
        Authorization: Bearer <credential>
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx

from provenancekit.errors import DiscoveryError, KeySetError, ProvenanceKitError, TokenRequestError
from provenancekit.logging import get_logger
from provenancekit.net import DEFAULT_TIMEOUT, http_client

log = get_logger('provenancekit.backends.oidc')

DISCOVERY_PATH = '/.well-known/openid-configuration'


class HttpxOIDCClient:
    """Default :class:`~provenancekit.backends.oidc.OIDCClient` implementation.

    Args:
        timeout: HTTP request timeout in seconds.
        transport: Optional httpx transport (tests pass a mock).
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize with a timeout and optional transport."""
        self._timeout = timeout
        self._transport = transport

    async def _get_json(
        self,
        url: str,
        *,
        what: str,
        error: Callable[[str], ProvenanceKitError],
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        async with http_client(timeout=self._timeout, headers=headers, transport=self._transport) as client:
            try:
                response = await client.get(url, params=params)
            except httpx.HTTPError as exc:
                log.warning('oidc_fetch_failed', what=what, error=type(exc).__name__)
                raise error(f'Failed to fetch {what}: {type(exc).__name__}: {exc}') from exc

        if response.status_code != 200:
            log.warning('oidc_fetch_status', what=what, status=response.status_code)
            raise error(f'Failed to fetch {what}: HTTP {response.status_code}')
        try:
            data = response.json()
        except ValueError as exc:
            raise error(f'Failed to parse {what}: response is not JSON') from exc
        if not isinstance(data, dict):
            raise error(f'Failed to parse {what}: expected a JSON object')
        return data

    async def fetch_discovery(self, issuer_url: str) -> dict[str, Any]:
        """Fetch the issuer's OpenID configuration document."""
        url = f'{issuer_url.rstrip("/")}{DISCOVERY_PATH}'
        data = await self._get_json(url, what='OIDC discovery document', error=DiscoveryError)
        log.debug('oidc_discovery_fetched', issuer=issuer_url)
        return data

    async def fetch_key_set(self, jwks_uri: str) -> dict[str, Any]:
        """Fetch the issuer's JSON Web Key Set."""
        data = await self._get_json(jwks_uri, what='JWKS', error=KeySetError)
        log.debug('oidc_jwks_fetched', jwks_uri=jwks_uri)
        return data

    async def fetch_token(
        self,
        token_request_url: str,
        audience: str,
        credential: str,
    ) -> str:
        """Request an identity token from the token endpoint."""
        data = await self._get_json(
            token_request_url,
            what='ID token',
            error=TokenRequestError,
            params={'audience': audience},
            headers={
                'Authorization': f'Bearer {credential}',
                'Accept': 'application/json',
            },
        )
        value = data.get('value')
        if not isinstance(value, str) or not value:
            raise TokenRequestError('Token endpoint response has no "value"')
        log.debug('oidc_token_fetched', audience=audience)
        return value


__all__ = [
    'DISCOVERY_PATH',
    'HttpxOIDCClient',
]
