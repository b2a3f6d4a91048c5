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

r"""Cryptographic verification of OIDC identity tokens.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ Plain-English                                  │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Algorithm allow-list│ The header says which algorithm signed the    │
    │                     │ token. We only believe it if it is on our     │
    │                     │ RSA list; "none" and HMAC are refused.        │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ kid                 │ Header field picking which published key      │
    │                     │ verifies the signature.                       │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Verified claims     │ The payload, after signature, issuer,         │
    │                     │ audience and time checks. Nothing read from   │
    │                     │ the token is trusted before this point.       │
    └─────────────────────┴────────────────────────────────────────────────┘

Verification flow::

    verify(token, issuer, audience)
         │
         ├── parse header (unverified)        → TokenFormatError
         ├── alg on allow-list?                → SignatureError
         ├── kid present?                      → TokenFormatError
         ├── unverified iss == issuer?         → ClaimValidationError('iss')
         ├── KeyResolver.resolve_key(iss, kid) → Discovery/KeySet/KeyNotFound
         └── jwt.decode(alg, aud, iss, exp, nbf, iat)
                 ├── bad signature             → SignatureError
                 └── bad claim                 → ClaimValidationError(claim)
"""

from __future__ import annotations

from typing import Any

import jwt

from provenancekit.errors import ClaimValidationError, SignatureError, TokenFormatError
from provenancekit.keys import KeyResolver
from provenancekit.logging import get_logger

logger = get_logger(__name__)

#: Signature algorithms accepted from the token header. RSA only.
ALLOWED_ALGORITHMS: tuple[str, ...] = ('PS256', 'RS256')

#: Claims that must be present in every verified token.
REQUIRED_TOKEN_CLAIMS: tuple[str, ...] = ('iss', 'aud')


def _unverified_header(token: str) -> dict[str, Any]:
    if not isinstance(token, str) or token.count('.') != 2:
        raise TokenFormatError('Token is not a compact JWS (expected 3 dot-separated parts)')
    try:
        return jwt.get_unverified_header(token)
    except jwt.InvalidTokenError as exc:
        raise TokenFormatError(f'Token header could not be decoded: {exc}') from exc


def _unverified_issuer(token: str) -> Any:  # noqa: ANN401 - untrusted JSON value
    try:
        payload = jwt.decode(token, options={'verify_signature': False})
    except jwt.InvalidTokenError as exc:
        raise TokenFormatError(f'Token payload could not be decoded: {exc}') from exc
    return payload.get('iss')


class TokenVerifier:
    """Verifies identity tokens against their issuer's published keys.

    Args:
        resolver: Resolves ``(issuer, kid)`` to a public key.
        algorithms: Accepted signature algorithms.
        leeway: Clock skew tolerance, in seconds, for ``exp``/``nbf``/``iat``.
    """

    def __init__(
        self,
        resolver: KeyResolver,
        *,
        algorithms: tuple[str, ...] = ALLOWED_ALGORITHMS,
        leeway: float = 0,
    ) -> None:
        """Initialize with a key resolver and verification policy."""
        refused = [a for a in algorithms if a not in ALLOWED_ALGORITHMS]
        if refused:
            raise ValueError(f'Unsupported signature algorithms: {refused}')
        self._resolver = resolver
        self._algorithms = algorithms
        self._leeway = leeway

    async def verify(
        self,
        token: str,
        expected_issuer: str,
        expected_audience: str,
    ) -> dict[str, Any]:
        """Verify ``token`` and return its full claim set.

        Args:
            token: Compact-serialized signed token.
            expected_issuer: Required ``iss`` value.
            expected_audience: Required ``aud`` value (exact match).

        Returns:
            Every claim in the token, including ones not checked here.

        Raises:
            TokenFormatError: If the token is malformed.
            SignatureError: If the algorithm is refused or the signature
                does not verify.
            ClaimValidationError: If ``iss``, ``aud``, ``exp``, ``nbf``
                or ``iat`` is missing or wrong.
            DiscoveryError, KeySetError, KeyNotFoundError: From key
                resolution.
        """
        expected_issuer = expected_issuer.rstrip('/')
        header = _unverified_header(token)

        alg = header.get('alg')
        if alg not in self._algorithms:
            raise SignatureError(
                f'Refusing token signed with algorithm {alg!r} (accepted: {", ".join(self._algorithms)})',
            )
        kid = header.get('kid')
        if not isinstance(kid, str) or not kid:
            raise TokenFormatError('Token header has no "kid"')

        issuer = _unverified_issuer(token)
        if not isinstance(issuer, str) or not issuer:
            raise ClaimValidationError('iss', 'Missing "iss" claim')
        if issuer != expected_issuer:
            raise ClaimValidationError('iss', f'Unexpected "iss" claim: {issuer!r}')

        key = await self._resolver.resolve_key(issuer, kid)

        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=[alg],
                audience=expected_audience,
                issuer=expected_issuer,
                leeway=self._leeway,
                options={
                    'require': list(REQUIRED_TOKEN_CLAIMS),
                    'strict_aud': True,
                },
            )
        except jwt.InvalidSignatureError as exc:
            raise SignatureError('Token signature verification failed') from exc
        except jwt.MissingRequiredClaimError as exc:
            raise ClaimValidationError(exc.claim, f'Missing {exc.claim!r} claim') from exc
        except jwt.InvalidAudienceError as exc:
            raise ClaimValidationError('aud', f'Unexpected "aud" claim: {exc}') from exc
        except jwt.InvalidIssuerError as exc:
            raise ClaimValidationError('iss', f'Unexpected "iss" claim: {exc}') from exc
        except jwt.ExpiredSignatureError as exc:
            raise ClaimValidationError('exp', 'Token has expired') from exc
        except jwt.ImmatureSignatureError as exc:
            # PyJWT raises this for a future iat as well as a future nbf.
            claim = 'iat' if '(iat)' in str(exc) else 'nbf'
            raise ClaimValidationError(claim, f'Token is not yet valid ({claim})') from exc
        except jwt.InvalidIssuedAtError as exc:
            raise ClaimValidationError('iat', f'Invalid "iat" claim: {exc}') from exc
        except jwt.DecodeError as exc:
            raise TokenFormatError(f'Token could not be decoded: {exc}') from exc
        except jwt.InvalidTokenError as exc:
            raise TokenFormatError(f'Token is invalid: {exc}') from exc

        logger.info('jwt_verified', issuer=issuer, kid=kid, alg=alg)
        return claims


__all__ = [
    'ALLOWED_ALGORITHMS',
    'REQUIRED_TOKEN_CLAIMS',
    'TokenVerifier',
]
