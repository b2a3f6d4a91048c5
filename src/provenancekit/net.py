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

"""HTTP client factory for provenancekit.

Every OIDC round-trip (discovery, key set, token request) goes through a
managed :class:`httpx.AsyncClient`. Requests are not retried: a failed
fetch ends the run, and the default transport timeout is the only
deadline.

Usage::

    from provenancekit.net import http_client

    async with http_client() as client:
        response = await client.get(url)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Final

import httpx

from provenancekit import __version__

DEFAULT_TIMEOUT: Final[float] = 30.0

USER_AGENT: Final[str] = f'provenancekit/{__version__}'


@asynccontextmanager
async def http_client(
    *,
    timeout: float = DEFAULT_TIMEOUT,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncGenerator[httpx.AsyncClient]:
    """Create a managed async HTTP client.

    Args:
        timeout: Request timeout in seconds.
        headers: Optional default headers.
        transport: Optional transport override (tests pass
            :class:`httpx.MockTransport`).

    Yields:
        An :class:`httpx.AsyncClient` instance.
    """
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        headers={'User-Agent': USER_AGENT, **(headers or {})},
        transport=transport,
        follow_redirects=True,
    ) as client:
        yield client


__all__ = [
    'DEFAULT_TIMEOUT',
    'USER_AGENT',
    'http_client',
]
