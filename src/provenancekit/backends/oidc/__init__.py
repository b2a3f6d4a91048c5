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

"""OIDC client protocol for provenancekit.

The :class:`OIDCClient` protocol is the only network surface of the
pipeline: the three HTTPS round-trips of the OIDC flow. Implementations:

- :class:`~provenancekit.backends.oidc.httpx_client.HttpxOIDCClient`: httpx

Each method converts transport failures, non-200 responses and
non-JSON bodies into the typed error for its stage, so callers only
ever see :class:`~provenancekit.errors.ProvenanceKitError` subclasses.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from provenancekit.backends.oidc.httpx_client import HttpxOIDCClient as HttpxOIDCClient

__all__ = [
    'HttpxOIDCClient',
    'OIDCClient',
]


@runtime_checkable
class OIDCClient(Protocol):
    """Protocol for the OIDC discovery, key set and token endpoints."""

    async def fetch_discovery(self, issuer_url: str) -> dict[str, Any]:
        """Fetch ``{issuer_url}/.well-known/openid-configuration``.

        Raises:
            DiscoveryError: On any transport, status or parse failure.
        """
        ...

    async def fetch_key_set(self, jwks_uri: str) -> dict[str, Any]:
        """Fetch the JSON Web Key Set at ``jwks_uri``.

        Raises:
            KeySetError: On any transport, status or parse failure.
        """
        ...

    async def fetch_token(
        self,
        token_request_url: str,
        audience: str,
        credential: str,
    ) -> str:
        """Request a compact-serialized identity token for ``audience``.

        Args:
            token_request_url: The token endpoint.
            audience: Audience to request.
            credential: Bearer credential for the endpoint.

        Raises:
            TokenRequestError: On any transport, status or parse failure.
        """
        ...
