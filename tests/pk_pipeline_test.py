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

"""End-to-end tests for provenancekit.pipeline."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
from provenancekit.backends.oidc import HttpxOIDCClient
from provenancekit.config import IssuerConfig, RepositoryContext, RunConfig
from provenancekit.errors import (
    E,
    ClaimValidationError,
    ConfigError,
    DiscoveryError,
    MissingClaimError,
    OutputError,
    PipelineError,
    TokenRequestError,
)
from provenancekit.pipeline import OUTPUT_PREDICATE, OUTPUT_PREDICATE_TYPE, read_config, run

from tests._fakes import (
    AUDIENCE,
    DEFAULT_ISSUER,
    KID,
    FakeOIDCClient,
    RecordingSink,
    base_claims,
    jwks_for,
    private_key,
    sign_token,
)

TOKEN_URL = 'https://pipelines.actions.githubusercontent.com/abc/idtoken?api-version=2.0'


def _config(server_url: str = 'https://github.com', issuer_url: str = DEFAULT_ISSUER) -> RunConfig:
    return RunConfig(
        issuer=IssuerConfig(issuer_url=issuer_url, token_request_url=TOKEN_URL, audience=AUDIENCE),
        repository=RepositoryContext(server_url=server_url, repository='owner/repo'),
        request_token='request-token',
    )


def _issuer_transport(issuer: str, token: str, *, discovery_status: int = 200) -> httpx.MockTransport:
    """Serve the token endpoint, discovery document and JWKS for ``issuer``."""
    jwks_uri = f'{issuer}/.well-known/jwks'

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url.startswith(TOKEN_URL.split('?')[0]):
            if request.headers.get('Authorization') != 'Bearer request-token':
                return httpx.Response(401)
            return httpx.Response(200, json={'value': token})
        if url == f'{issuer}/.well-known/openid-configuration':
            if discovery_status != 200:
                return httpx.Response(discovery_status)
            return httpx.Response(200, json={'issuer': issuer, 'jwks_uri': jwks_uri})
        if url == jwks_uri:
            return httpx.Response(200, json=jwks_for((private_key(), KID)))
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def _predicate(sink: RecordingSink) -> dict[str, Any]:
    return json.loads(sink.outputs[OUTPUT_PREDICATE])


class TestEndToEnd:
    """Full runs over a mocked HTTP transport."""

    @pytest.mark.asyncio
    async def test_github_com(self) -> None:
        token = sign_token(base_claims())
        client = HttpxOIDCClient(transport=_issuer_transport(DEFAULT_ISSUER, token))
        sink = RecordingSink()

        predicate = await run(_config(), client=client, sink=sink)

        assert sink.writes == 1
        assert sink.outputs[OUTPUT_PREDICATE_TYPE] == 'https://slsa.dev/provenance/v1'
        assert sink.outputs[OUTPUT_PREDICATE] == predicate.to_json()
        params = _predicate(sink)
        assert params['buildDefinition']['externalParameters']['workflow'] == {
            'ref': 'main',
            'repository': 'https://github.com/owner/repo',
            'path': '.github/workflows/main.yml',
        }
        assert params['runDetails']['builder']['id'] == (
            'https://github.com/owner/shared/.github/workflows/build.yml@main'
        )
        assert params['buildDefinition']['resolvedDependencies'] == [
            {
                'uri': 'git+https://github.com/owner/repo@refs/heads/main',
                'digest': {'gitCommit': 'babca52ab0c93ae16539e5923cb0d7403b9a093b'},
            },
        ]

    @pytest.mark.asyncio
    async def test_ghe_com(self) -> None:
        server_url = 'https://example-01.ghe.com'
        issuer = 'https://token.actions.example-01.ghe.com'
        token = sign_token(base_claims(issuer=issuer))
        client = HttpxOIDCClient(transport=_issuer_transport(issuer, token))
        sink = RecordingSink()

        await run(_config(server_url, issuer), client=client, sink=sink)

        params = _predicate(sink)
        assert params['buildDefinition']['resolvedDependencies'][0]['uri'] == (
            'git+https://example-01.ghe.com/owner/repo@refs/heads/main'
        )
        assert params['runDetails']['metadata']['invocationId'] == (
            'https://example-01.ghe.com/owner/repo/actions/runs/run-id/attempts/run-attempt'
        )

    @pytest.mark.asyncio
    async def test_discovery_failure_writes_nothing(self) -> None:
        token = sign_token(base_claims())
        client = HttpxOIDCClient(transport=_issuer_transport(DEFAULT_ISSUER, token, discovery_status=500))
        sink = RecordingSink()

        with pytest.raises(PipelineError) as exc_info:
            await run(_config(), client=client, sink=sink)

        err = exc_info.value
        assert err.stage == 'verify-token'
        assert isinstance(err.cause, DiscoveryError)
        assert err.code is E.OIDC_DISCOVERY_FAILED
        assert sink.writes == 0
        assert sink.outputs == {}


class TestStages:
    """Failures are reported once, tagged with their stage."""

    @pytest.mark.asyncio
    async def test_token_request_uses_config(self) -> None:
        client = FakeOIDCClient(token=sign_token(base_claims()))
        await run(_config(), client=client, sink=RecordingSink())
        assert client.token_requests == [(TOKEN_URL, AUDIENCE, 'request-token')]

    @pytest.mark.asyncio
    async def test_request_token_stage(self) -> None:
        client = FakeOIDCClient(token_error=TokenRequestError('Failed to fetch ID token: HTTP 403'))
        sink = RecordingSink()
        with pytest.raises(PipelineError) as exc_info:
            await run(_config(), client=client, sink=sink)
        assert exc_info.value.stage == 'request-token'
        assert isinstance(exc_info.value.__cause__, TokenRequestError)
        assert client.count('discovery') == 0
        assert sink.writes == 0

    @pytest.mark.asyncio
    async def test_verify_token_stage(self) -> None:
        client = FakeOIDCClient(token=sign_token(base_claims(aud='somebody')))
        sink = RecordingSink()
        with pytest.raises(PipelineError) as exc_info:
            await run(_config(), client=client, sink=sink)
        assert exc_info.value.stage == 'verify-token'
        assert isinstance(exc_info.value.cause, ClaimValidationError)
        assert sink.writes == 0

    @pytest.mark.asyncio
    async def test_build_predicate_stage(self) -> None:
        client = FakeOIDCClient(token=sign_token(base_claims(sha=None)))
        sink = RecordingSink()
        with pytest.raises(PipelineError) as exc_info:
            await run(_config(), client=client, sink=sink)
        assert exc_info.value.stage == 'build-predicate'
        assert isinstance(exc_info.value.cause, MissingClaimError)
        assert "'sha'" in str(exc_info.value)
        assert sink.writes == 0

    @pytest.mark.asyncio
    async def test_write_outputs_stage(self) -> None:
        client = FakeOIDCClient(token=sign_token(base_claims()))
        with pytest.raises(PipelineError) as exc_info:
            await run(_config(), client=client, sink=RecordingSink(fail=True))
        assert exc_info.value.stage == 'write-outputs'
        assert isinstance(exc_info.value.cause, OutputError)

    @pytest.mark.asyncio
    async def test_non_scalar_claim_fails_build(self) -> None:
        client = FakeOIDCClient(token=sign_token(base_claims(ref=['refs/heads/main'])))
        sink = RecordingSink()
        with pytest.raises(PipelineError) as exc_info:
            await run(_config(), client=client, sink=sink)
        assert exc_info.value.stage == 'build-predicate'
        assert isinstance(exc_info.value.cause, ClaimValidationError)
        assert exc_info.value.cause.claim == 'ref'
        assert sink.writes == 0


class TestReadConfig:
    """Tests for read_config(), the read-config stage."""

    def test_reads_environment(self) -> None:
        config = read_config({
            'ACTIONS_ID_TOKEN_REQUEST_URL': TOKEN_URL,
            'ACTIONS_ID_TOKEN_REQUEST_TOKEN': 'request-token',
            'GITHUB_REPOSITORY': 'owner/repo',
        })
        assert config.issuer.issuer_url == DEFAULT_ISSUER
        assert config.repository.repository == 'owner/repo'

    def test_missing_variable_names_stage(self) -> None:
        with pytest.raises(PipelineError) as exc_info:
            read_config({'GITHUB_REPOSITORY': 'owner/repo'})
        err = exc_info.value
        assert err.stage == 'read-config'
        assert isinstance(err.cause, ConfigError)
        assert err.code is E.CONFIG_MISSING_REQUIRED
        assert err.message.startswith('read-config: ACTIONS_ID_TOKEN_REQUEST_URL')
