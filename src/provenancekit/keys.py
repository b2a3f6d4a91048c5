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

r"""Signing key resolution for OIDC issuers.

Resolution flow::

    resolve_key(issuer, kid)
         │
         ├── cached KeySet for issuer has kid?  ──yes──→ parse JWK
         │
         ├── fetch_discovery(issuer) → jwks_uri (https only)
         ├── fetch_key_set(jwks_uri) → {"keys": [...]}
         ├── replace cached KeySet for issuer (whole set, never merged)
         └── kid present?  ──no──→ KeyNotFoundError
                           ──yes─→ parse JWK (RSA only) → public key

A cached set that lacks the requested ``kid`` is refetched once, which
covers an issuer rotating keys between two verifications in one run.

The cache belongs to one :class:`KeyResolver` instance; create one per
run. It is not locked: a run verifies tokens one at a time.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

import jwt

from provenancekit.backends.oidc import OIDCClient
from provenancekit.errors import DiscoveryError, KeyNotFoundError, KeySetError
from provenancekit.logging import get_logger

logger = get_logger(__name__)

#: JWK key types accepted for token verification.
ACCEPTED_KEY_TYPES: frozenset[str] = frozenset({'RSA'})


@dataclass(frozen=True)
class KeySet:
    """An issuer's published keys, as fetched at one point in time.

    Attributes:
        keys: Mapping of ``kid`` to the raw JWK dict.
        fetched_at: Epoch seconds when the set was fetched.
    """

    keys: Mapping[str, dict[str, Any]] = field(default_factory=dict)
    fetched_at: float = 0.0

    @classmethod
    def from_jwks(cls, jwks: dict[str, Any], *, fetched_at: float) -> KeySet:
        """Index a JWKS document by ``kid``.

        Entries that are not objects or have no string ``kid`` are
        skipped. The first entry wins when a ``kid`` repeats.

        Raises:
            KeySetError: If ``keys`` is missing or not a list.
        """
        entries = jwks.get('keys')
        if not isinstance(entries, list):
            raise KeySetError('JWKS document has no "keys" list')
        keys: dict[str, dict[str, Any]] = {}
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            kid = entry.get('kid')
            if isinstance(kid, str) and kid not in keys:
                keys[kid] = entry
        return cls(keys=keys, fetched_at=fetched_at)


def _parse_public_key(jwk: dict[str, Any], kid: str) -> Any:  # noqa: ANN401 - cryptography key type
    kty = jwk.get('kty')
    if kty not in ACCEPTED_KEY_TYPES:
        raise KeySetError(f'Key {kid!r} has unsupported key type {kty!r}')
    try:
        return jwt.PyJWK(jwk).key
    except jwt.PyJWTError as exc:
        raise KeySetError(f'Key {kid!r} could not be parsed: {exc}') from exc


class KeyResolver:
    """Resolves ``(issuer, kid)`` pairs to public verification keys.

    Args:
        client: OIDC client used for discovery and key set fetches.
        clock: Returns the current epoch time (stamped on key sets).
    """

    def __init__(
        self,
        client: OIDCClient,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize with an OIDC client and an empty cache."""
        self._client = client
        self._clock = clock
        self._key_sets: dict[str, KeySet] = {}

    def cached(self, issuer_url: str) -> KeySet | None:
        """Return the cached key set for ``issuer_url``, if any."""
        return self._key_sets.get(issuer_url.rstrip('/'))

    async def _refresh(self, issuer: str) -> KeySet:
        discovery = await self._client.fetch_discovery(issuer)
        jwks_uri = discovery.get('jwks_uri')
        if not isinstance(jwks_uri, str) or not jwks_uri:
            raise DiscoveryError(
                f'OIDC discovery document for {issuer} has no "jwks_uri"',
            )
        parts = urlsplit(jwks_uri)
        if parts.scheme != 'https' or not parts.netloc:
            raise DiscoveryError(
                f'OIDC discovery document for {issuer} has a non-https "jwks_uri": {jwks_uri!r}',
            )
        jwks = await self._client.fetch_key_set(jwks_uri)
        key_set = KeySet.from_jwks(jwks, fetched_at=self._clock())
        self._key_sets[issuer] = key_set
        logger.info(
            'jwks_refreshed',
            issuer=issuer,
            jwks_uri=jwks_uri,
            keys_count=len(key_set.keys),
        )
        return key_set

    async def resolve_key(self, issuer_url: str, kid: str) -> Any:  # noqa: ANN401 - cryptography key type
        """Return the public key ``kid`` published by ``issuer_url``.

        Args:
            issuer_url: The OIDC issuer URL.
            kid: Key identifier from the token header.

        Returns:
            A ``cryptography`` public key object.

        Raises:
            DiscoveryError: If the discovery document is unusable.
            KeySetError: If the key set is unusable or the key cannot
                be parsed.
            KeyNotFoundError: If no published key has this ``kid``.
        """
        issuer = issuer_url.rstrip('/')
        key_set = self._key_sets.get(issuer)
        if key_set is None or kid not in key_set.keys:
            if key_set is not None:
                logger.info('jwks_kid_not_cached', issuer=issuer, kid=kid)
            key_set = await self._refresh(issuer)

        jwk = key_set.keys.get(kid)
        if jwk is None:
            logger.warning('jwks_kid_not_found', issuer=issuer, kid=kid)
            raise KeyNotFoundError(kid, issuer)
        return _parse_public_key(jwk, kid)

    def clear(self) -> None:
        """Drop all cached key sets."""
        self._key_sets.clear()


__all__ = [
    'ACCEPTED_KEY_TYPES',
    'KeyResolver',
    'KeySet',
]
