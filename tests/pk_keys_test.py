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

"""Tests for provenancekit.keys: JWKS caching and key resolution."""

from __future__ import annotations

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from provenancekit.errors import DiscoveryError, KeyNotFoundError, KeySetError
from provenancekit.keys import KeyResolver, KeySet

from tests._fakes import DEFAULT_ISSUER, KID, FakeOIDCClient, jwks_for, private_key, public_jwk


class TestKeySet:
    """Tests for KeySet.from_jwks()."""

    def test_indexes_by_kid(self) -> None:
        jwks = jwks_for((private_key(), 'a'), (private_key('other'), 'b'))
        key_set = KeySet.from_jwks(jwks, fetched_at=42.0)
        assert set(key_set.keys) == {'a', 'b'}
        assert key_set.fetched_at == 42.0

    def test_skips_entries_without_kid(self) -> None:
        anonymous = public_jwk(private_key())
        del anonymous['kid']
        key_set = KeySet.from_jwks({'keys': [anonymous, 'junk', {'kid': 7}]}, fetched_at=0)
        assert key_set.keys == {}

    def test_first_duplicate_wins(self) -> None:
        first = public_jwk(private_key(), 'dup')
        second = public_jwk(private_key('other'), 'dup')
        key_set = KeySet.from_jwks({'keys': [first, second]}, fetched_at=0)
        assert key_set.keys['dup'] is first

    @pytest.mark.parametrize('jwks', [{}, {'keys': 'nope'}, {'keys': None}])
    def test_rejects_missing_keys_list(self, jwks: dict) -> None:
        with pytest.raises(KeySetError, match='keys'):
            KeySet.from_jwks(jwks, fetched_at=0)


class TestKeyResolver:
    """Tests for KeyResolver.resolve_key()."""

    @pytest.mark.asyncio
    async def test_resolves_public_key(self) -> None:
        client = FakeOIDCClient()
        resolver = KeyResolver(client, clock=lambda: 1000.0)
        key = await resolver.resolve_key(DEFAULT_ISSUER, KID)
        assert isinstance(key, rsa.RSAPublicKey)
        assert key.public_numbers() == private_key().public_key().public_numbers()
        cached = resolver.cached(DEFAULT_ISSUER)
        assert cached is not None
        assert cached.fetched_at == 1000.0

    @pytest.mark.asyncio
    async def test_fetches_via_discovery(self) -> None:
        client = FakeOIDCClient()
        await KeyResolver(client).resolve_key(DEFAULT_ISSUER + '/', KID)
        assert client.calls == [
            ('discovery', DEFAULT_ISSUER),
            ('jwks', f'{DEFAULT_ISSUER}/.well-known/jwks.json'),
        ]

    @pytest.mark.asyncio
    async def test_cached_key_set_is_reused(self) -> None:
        client = FakeOIDCClient()
        resolver = KeyResolver(client)
        await resolver.resolve_key(DEFAULT_ISSUER, KID)
        await resolver.resolve_key(DEFAULT_ISSUER, KID)
        assert client.count('discovery') == 1
        assert client.count('jwks') == 1

    @pytest.mark.asyncio
    async def test_unknown_kid_refetches_once(self) -> None:
        rotated = jwks_for((private_key('other'), 'rotated'))
        client = FakeOIDCClient(key_sets=[jwks_for((private_key(), KID)), rotated])
        resolver = KeyResolver(client)
        await resolver.resolve_key(DEFAULT_ISSUER, KID)

        key = await resolver.resolve_key(DEFAULT_ISSUER, 'rotated')
        assert key.public_numbers() == private_key('other').public_key().public_numbers()
        assert client.count('jwks') == 2
        cached = resolver.cached(DEFAULT_ISSUER)
        assert cached is not None
        # The whole set is replaced, not merged.
        assert set(cached.keys) == {'rotated'}

    @pytest.mark.asyncio
    async def test_kid_not_found(self) -> None:
        client = FakeOIDCClient()
        resolver = KeyResolver(client)
        with pytest.raises(KeyNotFoundError) as exc_info:
            await resolver.resolve_key(DEFAULT_ISSUER, 'missing')
        assert exc_info.value.kid == 'missing'
        assert DEFAULT_ISSUER in exc_info.value.message
        assert client.count('jwks') == 1

    @pytest.mark.asyncio
    async def test_discovery_without_jwks_uri(self) -> None:
        client = FakeOIDCClient(discovery={'issuer': DEFAULT_ISSUER})
        with pytest.raises(DiscoveryError, match='jwks_uri'):
            await KeyResolver(client).resolve_key(DEFAULT_ISSUER, KID)
        assert client.count('jwks') == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        'jwks_uri',
        ['http://token.actions.githubusercontent.com/.well-known/jwks', 'file:///etc/jwks.json', '/jwks'],
    )
    async def test_discovery_with_non_https_jwks_uri(self, jwks_uri: str) -> None:
        client = FakeOIDCClient(discovery={'issuer': DEFAULT_ISSUER, 'jwks_uri': jwks_uri})
        with pytest.raises(DiscoveryError, match='non-https'):
            await KeyResolver(client).resolve_key(DEFAULT_ISSUER, KID)
        assert client.count('jwks') == 0

    @pytest.mark.asyncio
    async def test_discovery_error_propagates(self) -> None:
        client = FakeOIDCClient(discovery_error=DiscoveryError('Failed to fetch OIDC discovery document: HTTP 500'))
        with pytest.raises(DiscoveryError, match='HTTP 500'):
            await KeyResolver(client).resolve_key(DEFAULT_ISSUER, KID)

    @pytest.mark.asyncio
    async def test_malformed_key_set(self) -> None:
        client = FakeOIDCClient(key_sets=[{'not_keys': []}])
        resolver = KeyResolver(client)
        with pytest.raises(KeySetError):
            await resolver.resolve_key(DEFAULT_ISSUER, KID)
        assert resolver.cached(DEFAULT_ISSUER) is None

    @pytest.mark.asyncio
    async def test_rejects_non_rsa_key(self) -> None:
        ec_jwk = {'kty': 'EC', 'kid': KID, 'crv': 'P-256', 'x': 'AA', 'y': 'AA'}
        client = FakeOIDCClient(key_sets=[{'keys': [ec_jwk]}])
        with pytest.raises(KeySetError, match='unsupported key type'):
            await KeyResolver(client).resolve_key(DEFAULT_ISSUER, KID)

    @pytest.mark.asyncio
    async def test_rejects_unparseable_rsa_key(self) -> None:
        client = FakeOIDCClient(key_sets=[{'keys': [{'kty': 'RSA', 'kid': KID}]}])
        with pytest.raises(KeySetError, match='could not be parsed'):
            await KeyResolver(client).resolve_key(DEFAULT_ISSUER, KID)

    @pytest.mark.asyncio
    async def test_clear(self) -> None:
        client = FakeOIDCClient()
        resolver = KeyResolver(client)
        await resolver.resolve_key(DEFAULT_ISSUER, KID)
        resolver.clear()
        assert resolver.cached(DEFAULT_ISSUER) is None
        await resolver.resolve_key(DEFAULT_ISSUER, KID)
        assert client.count('discovery') == 2
