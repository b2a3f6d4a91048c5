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

r"""SLSA Provenance v1 predicates built from verified OIDC claims.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ Plain-English                                  │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Predicate           │ The part of an attestation that says how an   │
    │                     │ artifact was built. Signing and subjects are  │
    │                     │ somebody else's job.                          │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Build type          │ GitHub Actions workflow build, so the         │
    │                     │ parameters are a workflow path and ref.       │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Builder             │ The workflow that defines the build. For a    │
    │                     │ reusable workflow that is job_workflow_ref,   │
    │                     │ not the caller's workflow_ref.                │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Resolved dependency │ The source commit: git+<repo>@<ref> pinned to │
    │                     │ its SHA.                                      │
    └─────────────────────┴────────────────────────────────────────────────┘

Claim mapping::

    ┌──────────────────────────────┬───────────────────────────────────────┐
    │ Predicate field              │ Source                                │
    ├──────────────────────────────┼───────────────────────────────────────┤
    │ externalParameters.workflow  │ workflow_ref, repository, server URL  │
    │ internalParameters.github    │ event_name, repository_id,            │
    │                              │ repository_owner_id,                  │
    │                              │ runner_environment                    │
    │ resolvedDependencies[0]      │ repository, ref, sha, server URL      │
    │ runDetails.builder.id        │ job_workflow_ref (or workflow_ref)    │
    │ runDetails.metadata          │ repository, run_id, run_attempt       │
    └──────────────────────────────┴───────────────────────────────────────┘

Only claims that survived :class:`~provenancekit.verifier.TokenVerifier`
may be passed in; the server URL is the one input taken from the host.

Usage::

    from provenancekit.provenance import build_predicate

    predicate = build_predicate(claims, config.repository)
    outputs = {'predicate': predicate.to_json(), 'predicate-type': predicate.predicate_type}
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from provenancekit.config import RepositoryContext
from provenancekit.errors import ClaimValidationError, MissingClaimError
from provenancekit.logging import get_logger

logger = get_logger(__name__)

# --- Constants ---

#: SLSA Provenance v1 predicate type URI.
SLSA_PROVENANCE_PREDICATE_TYPE = 'https://slsa.dev/provenance/v1'

#: Build type for GitHub Actions workflow builds.
GITHUB_WORKFLOW_BUILD_TYPE = 'https://actions.github.io/buildtypes/workflow/v1'

#: Claims the predicate cannot be built without.
REQUIRED_CLAIMS: tuple[str, ...] = (
    'repository',
    'ref',
    'sha',
    'workflow_ref',
    'run_id',
    'run_attempt',
    'event_name',
    'repository_id',
    'repository_owner_id',
    'runner_environment',
)


@dataclass(frozen=True)
class ProvenancePredicate:
    """A SLSA Provenance v1 predicate and its type URI.

    Attributes:
        params: The predicate body (``buildDefinition`` + ``runDetails``).
        predicate_type: The predicate type URI.
    """

    params: Mapping[str, Any]
    predicate_type: str = SLSA_PROVENANCE_PREDICATE_TYPE

    def to_json(self) -> str:
        """Serialize the predicate body deterministically.

        Keys are sorted and separators are compact, so equal predicates
        always produce identical bytes.
        """
        return json.dumps(self.params, sort_keys=True, separators=(',', ':'), ensure_ascii=False)


def _scalar(name: str, value: Any) -> str:  # noqa: ANN401 - untrusted JSON value
    # bool is an int subclass.
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ClaimValidationError(
            name,
            f'Claim {name!r} must be a string or integer, got {type(value).__name__}',
        )
    return str(value)


def _claim(claims: Mapping[str, Any], name: str) -> str:
    value = claims.get(name)
    if value is None or value == '':
        raise MissingClaimError(name)
    return _scalar(name, value)


def split_workflow_ref(workflow_ref: str, repository: str) -> tuple[str, str]:
    """Split a ``workflow_ref`` claim into workflow path and git ref.

    ``owner/repo/.github/workflows/main.yml@refs/heads/main`` becomes
    ``('.github/workflows/main.yml', 'refs/heads/main')``. Everything
    after the first ``@`` is the ref, so tags containing ``@`` survive.

    Args:
        workflow_ref: The ``workflow_ref`` claim.
        repository: The ``repository`` claim (``owner/name``).

    Returns:
        ``(path, ref)`` tuple; ``ref`` is empty if there is no ``@``.
    """
    prefix = f'{repository}/'
    if workflow_ref.startswith(prefix):
        workflow_ref = workflow_ref[len(prefix):]
    path, _, ref = workflow_ref.partition('@')
    return path, ref


def build_predicate(
    claims: Mapping[str, Any],
    repo: RepositoryContext,
) -> ProvenancePredicate:
    """Map verified token claims to a SLSA Provenance v1 predicate.

    Pure and deterministic: identical inputs give byte-identical
    :meth:`ProvenancePredicate.to_json` output.

    Args:
        claims: Verified claim set.
        repo: Ambient repository context (server URL).

    Returns:
        The :class:`ProvenancePredicate`.

    Raises:
        MissingClaimError: If a claim in :data:`REQUIRED_CLAIMS` is
            absent or empty.
        ClaimValidationError: If a claim used in the predicate is not
            a string or integer.
    """
    values = {name: _claim(claims, name) for name in REQUIRED_CLAIMS}
    server_url = repo.server_url
    repository = values['repository']

    if repository != repo.repository:
        logger.warning(
            'repository_claim_mismatch',
            claim=repository,
            environment=repo.repository,
        )

    workflow_path, workflow_ref = split_workflow_ref(values['workflow_ref'], repository)

    # A reusable workflow defines the build; the caller only triggers it.
    job_workflow_ref = claims.get('job_workflow_ref')
    builder_ref = _scalar('job_workflow_ref', job_workflow_ref) if job_workflow_ref else values['workflow_ref']

    build_definition: dict[str, Any] = {
        'buildType': GITHUB_WORKFLOW_BUILD_TYPE,
        'externalParameters': {
            'workflow': {
                'ref': workflow_ref,
                'repository': f'{server_url}/{repository}',
                'path': workflow_path,
            },
        },
        'internalParameters': {
            'github': {
                'event_name': values['event_name'],
                'repository_id': values['repository_id'],
                'repository_owner_id': values['repository_owner_id'],
                'runner_environment': values['runner_environment'],
            },
        },
        'resolvedDependencies': [
            {
                'uri': f'git+{server_url}/{repository}@{values["ref"]}',
                'digest': {'gitCommit': values['sha']},
            },
        ],
    }

    run_details: dict[str, Any] = {
        'builder': {'id': f'{server_url}/{builder_ref}'},
        'metadata': {
            'invocationId': (
                f'{server_url}/{repository}/actions/runs/{values["run_id"]}/attempts/{values["run_attempt"]}'
            ),
        },
    }

    predicate = ProvenancePredicate(
        params={
            'buildDefinition': build_definition,
            'runDetails': run_details,
        },
    )
    logger.info(
        'predicate_built',
        repository=repository,
        sha=values['sha'],
        builder=run_details['builder']['id'],
    )
    return predicate


__all__ = [
    'GITHUB_WORKFLOW_BUILD_TYPE',
    'REQUIRED_CLAIMS',
    'SLSA_PROVENANCE_PREDICATE_TYPE',
    'ProvenancePredicate',
    'build_predicate',
    'split_workflow_ref',
]
