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

r"""Run configuration read from the CI environment.

The environment is read exactly once, by :meth:`RunConfig.from_env`.
The resulting frozen dataclasses are passed explicitly to the pipeline
so tests can build them directly instead of patching ``os.environ``.

Environment variables::

    ┌──────────────────────────────────┬──────────────────────────────────┐
    │ Variable                         │ Used for                         │
    ├──────────────────────────────────┼──────────────────────────────────┤
    │ ACTIONS_ID_TOKEN_REQUEST_URL     │ IssuerConfig.token_request_url   │
    │ ACTIONS_ID_TOKEN_REQUEST_TOKEN   │ RunConfig.request_token          │
    │ GITHUB_SERVER_URL                │ RepositoryContext.server_url     │
    │                                  │ (and the default issuer)         │
    │ GITHUB_REPOSITORY                │ RepositoryContext.repository     │
    └──────────────────────────────────┴──────────────────────────────────┘

Issuer derivation::

    https://github.com          → https://token.actions.githubusercontent.com
    https://<tenant>.ghe.com    → https://token.actions.<tenant>.ghe.com
    https://ghes.example.com    → https://ghes.example.com/_services/token
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from provenancekit.errors import E, ConfigError

#: Default GitHub server URL.
DEFAULT_SERVER_URL = 'https://github.com'

#: OIDC issuer for github.com.
DEFAULT_ISSUER = 'https://token.actions.githubusercontent.com'

#: Audience requested for the identity token.
DEFAULT_AUDIENCE = 'nobody'

_GHE_DOMAIN = '.ghe.com'

_HINT_ID_TOKEN = 'Add "permissions: id-token: write" to the job.'


def _require_absolute_url(name: str, value: str, *, https_only: bool) -> None:
    parts = urlsplit(value)
    if https_only and parts.scheme != 'https':
        raise ConfigError(f'{name} must be an https URL: {value!r}')
    if parts.scheme not in ('http', 'https') or not parts.netloc:
        raise ConfigError(f'{name} must be an absolute URL: {value!r}')


def issuer_for_server(server_url: str) -> str:
    """Return the OIDC issuer URL for a GitHub server URL.

    Args:
        server_url: The ``GITHUB_SERVER_URL`` value.

    Returns:
        The issuer URL, without a trailing slash.
    """
    server_url = server_url.rstrip('/')
    if server_url == DEFAULT_SERVER_URL:
        return DEFAULT_ISSUER
    host = urlsplit(server_url).hostname or ''
    if host.endswith(_GHE_DOMAIN):
        return f'https://token.actions.{host}'
    return f'{server_url}/_services/token'


@dataclass(frozen=True)
class IssuerConfig:
    """Where the identity token comes from and who it is for.

    Attributes:
        issuer_url: Expected ``iss`` claim and discovery base URL.
        token_request_url: Endpoint that mints the identity token.
        audience: Audience requested for, and required in, the token.
    """

    issuer_url: str
    token_request_url: str
    audience: str = DEFAULT_AUDIENCE

    def __post_init__(self) -> None:
        """Validate URLs and audience."""
        _require_absolute_url('issuer URL', self.issuer_url, https_only=True)
        _require_absolute_url('token request URL', self.token_request_url, https_only=False)
        if not self.audience:
            raise ConfigError('audience must not be empty')


@dataclass(frozen=True)
class RepositoryContext:
    """Ambient repository information from the host.

    Attributes:
        server_url: Base URL of the GitHub server, no trailing slash.
        repository: ``owner/name`` of the repository running the job.
    """

    server_url: str
    repository: str

    def __post_init__(self) -> None:
        """Normalize the server URL and validate the repository name."""
        object.__setattr__(self, 'server_url', self.server_url.rstrip('/'))
        _require_absolute_url('server URL', self.server_url, https_only=False)
        owner, sep, name = self.repository.partition('/')
        if not sep or not owner or not name or '/' in name:
            raise ConfigError(
                f'repository must be in "owner/name" form: {self.repository!r}',
            )


@dataclass(frozen=True)
class RunConfig:
    """Everything a pipeline run needs from its environment.

    Attributes:
        issuer: Issuer and token endpoint configuration.
        repository: Ambient repository context.
        request_token: Bearer credential for the token endpoint.
    """

    issuer: IssuerConfig
    repository: RepositoryContext
    request_token: str = field(repr=False)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        issuer_url: str | None = None,
        audience: str | None = None,
    ) -> RunConfig:
        """Build a config from GitHub Actions environment variables.

        Args:
            environ: Environment mapping; defaults to ``os.environ``.
            issuer_url: Explicit issuer, overriding the one derived
                from ``GITHUB_SERVER_URL``.
            audience: Explicit audience; defaults to ``nobody``.

        Returns:
            A validated :class:`RunConfig`.

        Raises:
            ConfigError: If a required variable is missing or a value
                is malformed.
        """
        env = os.environ if environ is None else environ

        def required(name: str) -> str:
            value = env.get(name, '')
            if not value:
                raise ConfigError(
                    f'{name} is not set',
                    hint=_HINT_ID_TOKEN if name.startswith('ACTIONS_ID_TOKEN') else '',
                    code=E.CONFIG_MISSING_REQUIRED,
                )
            return value

        token_request_url = required('ACTIONS_ID_TOKEN_REQUEST_URL')
        request_token = required('ACTIONS_ID_TOKEN_REQUEST_TOKEN')
        repository = required('GITHUB_REPOSITORY')
        server_url = env.get('GITHUB_SERVER_URL', '') or DEFAULT_SERVER_URL

        return cls(
            issuer=IssuerConfig(
                issuer_url=(issuer_url or issuer_for_server(server_url)).rstrip('/'),
                token_request_url=token_request_url,
                audience=audience or DEFAULT_AUDIENCE,
            ),
            repository=RepositoryContext(server_url=server_url, repository=repository),
            request_token=request_token,
        )


__all__ = [
    'DEFAULT_AUDIENCE',
    'DEFAULT_ISSUER',
    'DEFAULT_SERVER_URL',
    'IssuerConfig',
    'RepositoryContext',
    'RunConfig',
    'issuer_for_server',
]
