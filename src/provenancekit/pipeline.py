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

r"""Predicate pipeline: token → verified claims → predicate → outputs.

Stages::

    read-config      RunConfig.from_env() (see :func:`read_config`)
         │
    request-token    OIDCClient.fetch_token(token_request_url, audience)
         │
    verify-token     TokenVerifier.verify(token, issuer, audience)
         │             └── KeyResolver: discovery → JWKS → key
         │
    build-predicate  build_predicate(claims, repository context)
         │
    write-outputs    OutputSink.write({'predicate': ..., 'predicate-type': ...})

Every failure surfaces once, as a :class:`~provenancekit.errors.PipelineError`
naming the stage. Nothing is written to the sink unless every earlier
stage succeeded.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager

from provenancekit.backends.oidc import OIDCClient
from provenancekit.config import RunConfig
from provenancekit.errors import PipelineError, ProvenanceKitError
from provenancekit.keys import KeyResolver
from provenancekit.logging import get_logger, run_context
from provenancekit.outputs import OutputSink
from provenancekit.provenance import ProvenancePredicate, build_predicate
from provenancekit.verifier import TokenVerifier

logger = get_logger(__name__)

OUTPUT_PREDICATE = 'predicate'
OUTPUT_PREDICATE_TYPE = 'predicate-type'


@contextmanager
def _stage(name: str) -> Iterator[None]:
    with run_context(stage=name):
        logger.debug('stage_started')
        try:
            yield
        except ProvenanceKitError as exc:
            logger.error('stage_failed', code=exc.code.value, error=exc.message)
            raise PipelineError(name, exc) from exc


def read_config(
    environ: Mapping[str, str] | None = None,
    *,
    issuer_url: str | None = None,
    audience: str | None = None,
) -> RunConfig:
    """Read the run configuration as the pipeline's first stage.

    Same arguments as :meth:`RunConfig.from_env`.

    Raises:
        PipelineError: Stage ``read-config``, if a variable is missing
            or malformed.
    """
    with _stage('read-config'):
        return RunConfig.from_env(environ, issuer_url=issuer_url, audience=audience)


async def run(
    config: RunConfig,
    *,
    client: OIDCClient,
    sink: OutputSink,
    resolver: KeyResolver | None = None,
    verifier: TokenVerifier | None = None,
) -> ProvenancePredicate:
    """Produce the provenance predicate for the current job.

    Args:
        config: Issuer configuration and repository context.
        client: OIDC client for the token, discovery and key set fetches.
        sink: Receives the ``predicate`` and ``predicate-type`` outputs.
        resolver: Key resolver; a fresh one per run by default.
        verifier: Token verifier; built around ``resolver`` by default.

    Returns:
        The predicate that was written.

    Raises:
        PipelineError: If any stage fails.
    """
    if verifier is None:
        verifier = TokenVerifier(resolver or KeyResolver(client))
    issuer = config.issuer
    with run_context(repository=config.repository.repository, issuer=issuer.issuer_url):
        return await _run_stages(config, client=client, sink=sink, verifier=verifier)


async def _run_stages(
    config: RunConfig,
    *,
    client: OIDCClient,
    sink: OutputSink,
    verifier: TokenVerifier,
) -> ProvenancePredicate:
    issuer = config.issuer

    with _stage('request-token'):
        token = await client.fetch_token(
            issuer.token_request_url,
            issuer.audience,
            config.request_token,
        )

    with _stage('verify-token'):
        claims = await verifier.verify(token, issuer.issuer_url, issuer.audience)

    with _stage('build-predicate'):
        predicate = build_predicate(claims, config.repository)
        outputs = {
            OUTPUT_PREDICATE: predicate.to_json(),
            OUTPUT_PREDICATE_TYPE: predicate.predicate_type,
        }

    with _stage('write-outputs'):
        sink.write(outputs)

    logger.info('predicate_ready', predicate_type=predicate.predicate_type)
    return predicate


__all__ = [
    'OUTPUT_PREDICATE',
    'OUTPUT_PREDICATE_TYPE',
    'read_config',
    'run',
]
