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

"""Structured error system for provenancekit.

Every error has a unique ``PK-NAMED-KEY`` code, a human-readable message,
and an optional hint with a suggested fix.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ErrorCode           │ A unique named ID like "PK-TOKEN-MALFORMED"   │
    │                     │ for each error. Readable at a glance.         │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ProvenanceKitError  │ An exception you can raise. Carries the       │
    │                     │ error card so renderers can display it.       │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Typed subclasses    │ One per failure kind (DiscoveryError,         │
    │                     │ SignatureError, ...) with a fixed code.       │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ PipelineError       │ Wraps a failure with the pipeline stage that  │
    │                     │ produced it ("verify-token: ...").            │
    └─────────────────────┴────────────────────────────────────────────────┘

Code categories::

    PK-CONFIG-*       Configuration errors
    PK-OIDC-*         Discovery, key set and token request errors
    PK-TOKEN-*        Token structure, signature and claim errors
    PK-PREDICATE-*    Provenance predicate construction errors
    PK-OUTPUT-*       Output sink errors

Messages never include raw tokens, bearer credentials or key material.

Usage::

    from provenancekit.errors import ClaimValidationError

    raise ClaimValidationError('aud', "Unexpected 'aud' claim: 'other'")
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from rich.console import Console
from rich.markup import escape as rich_escape


class ErrorCode(str, Enum):
    """Enumeration of all provenancekit diagnostic codes."""

    # Configuration
    CONFIG_MISSING_REQUIRED = 'PK-CONFIG-MISSING-REQUIRED'
    CONFIG_INVALID_VALUE = 'PK-CONFIG-INVALID-VALUE'

    # OIDC network protocol
    OIDC_DISCOVERY_FAILED = 'PK-OIDC-DISCOVERY-FAILED'
    OIDC_KEYSET_FAILED = 'PK-OIDC-KEYSET-FAILED'
    OIDC_KEY_NOT_FOUND = 'PK-OIDC-KEY-NOT-FOUND'
    OIDC_TOKEN_REQUEST_FAILED = 'PK-OIDC-TOKEN-REQUEST-FAILED'

    # Token verification
    TOKEN_MALFORMED = 'PK-TOKEN-MALFORMED'
    TOKEN_SIGNATURE_INVALID = 'PK-TOKEN-SIGNATURE-INVALID'
    TOKEN_CLAIM_INVALID = 'PK-TOKEN-CLAIM-INVALID'

    # Predicate construction
    PREDICATE_MISSING_CLAIM = 'PK-PREDICATE-MISSING-CLAIM'

    # Outputs
    OUTPUT_WRITE_FAILED = 'PK-OUTPUT-WRITE-FAILED'


# Convenience alias for shorter imports.
E = ErrorCode


@dataclass(frozen=True)
class ErrorInfo:
    """Metadata for a single error code.

    Attributes:
        code: The ``PK-NAMED-KEY`` error code.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    code: ErrorCode
    message: str
    hint: str = ''


class ProvenanceKitError(Exception):
    """Base exception for all provenancekit errors.

    Args:
        code: The error code from :class:`ErrorCode`.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Initialize with an error code, message, and optional hint."""
        self.info = ErrorInfo(code=code, message=message, hint=hint)
        super().__init__(f'[{code.value}] {message}')

    @property
    def code(self) -> ErrorCode:
        """The error code."""
        return self.info.code

    @property
    def message(self) -> str:
        """The human-readable message, without the code prefix."""
        return self.info.message

    @property
    def hint(self) -> str:
        """Suggestion for fixing this error, or empty string."""
        return self.info.hint


class ConfigError(ProvenanceKitError):
    """The run configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        hint: str = '',
        *,
        code: ErrorCode = E.CONFIG_INVALID_VALUE,
    ) -> None:
        """Initialize with a message; ``code`` defaults to an invalid value."""
        super().__init__(code, message, hint)


class DiscoveryError(ProvenanceKitError):
    """The issuer's OpenID configuration could not be fetched or parsed."""

    def __init__(self, message: str, hint: str = '') -> None:
        """Initialize with a message and optional hint."""
        super().__init__(E.OIDC_DISCOVERY_FAILED, message, hint)


class KeySetError(ProvenanceKitError):
    """The issuer's key set could not be fetched or parsed."""

    def __init__(self, message: str, hint: str = '') -> None:
        """Initialize with a message and optional hint."""
        super().__init__(E.OIDC_KEYSET_FAILED, message, hint)


class KeyNotFoundError(ProvenanceKitError):
    """No key in the issuer's key set matches the token's ``kid``."""

    def __init__(self, kid: str, issuer: str) -> None:
        """Initialize with the missing key id and the issuer searched."""
        self.kid = kid
        super().__init__(
            E.OIDC_KEY_NOT_FOUND,
            f'No signing key with kid {kid!r} published by {issuer}',
        )


class TokenRequestError(ProvenanceKitError):
    """The identity token could not be obtained from the token endpoint."""

    def __init__(self, message: str, hint: str = '') -> None:
        """Initialize with a message and optional hint."""
        super().__init__(E.OIDC_TOKEN_REQUEST_FAILED, message, hint)


class TokenFormatError(ProvenanceKitError):
    """The token is not a well-formed compact JWS."""

    def __init__(self, message: str) -> None:
        """Initialize with a message."""
        super().__init__(E.TOKEN_MALFORMED, message)


class SignatureError(ProvenanceKitError):
    """The token's signature does not verify or uses a refused algorithm."""

    def __init__(self, message: str) -> None:
        """Initialize with a message."""
        super().__init__(E.TOKEN_SIGNATURE_INVALID, message)


class ClaimValidationError(ProvenanceKitError):
    """A verified token carries a claim with an unacceptable value.

    Attributes:
        claim: Name of the failing claim (``aud``, ``iss``, ``exp``...).
    """

    def __init__(self, claim: str, message: str) -> None:
        """Initialize with the failing claim name and a message."""
        self.claim = claim
        super().__init__(E.TOKEN_CLAIM_INVALID, message)


class MissingClaimError(ProvenanceKitError):
    """A claim required to build the predicate is absent.

    Attributes:
        claim: Name of the absent claim.
    """

    def __init__(self, claim: str) -> None:
        """Initialize with the missing claim name."""
        self.claim = claim
        super().__init__(E.PREDICATE_MISSING_CLAIM, f'Missing {claim!r} claim')


class OutputError(ProvenanceKitError):
    """Outputs could not be handed to the output sink."""

    def __init__(self, message: str, hint: str = '') -> None:
        """Initialize with a message and optional hint."""
        super().__init__(E.OUTPUT_WRITE_FAILED, message, hint)


class PipelineError(ProvenanceKitError):
    """A pipeline stage failed.

    Carries the code and hint of the underlying error and prefixes its
    message with the stage name. The underlying error is chained as
    ``__cause__``.

    Attributes:
        stage: Name of the failing stage (e.g. ``verify-token``).
        cause: The underlying :class:`ProvenanceKitError`.
    """

    def __init__(self, stage: str, cause: ProvenanceKitError) -> None:
        """Initialize from the failing stage and its error."""
        self.stage = stage
        self.cause = cause
        super().__init__(cause.code, f'{stage}: {cause.message}', cause.hint)


ERRORS: dict[ErrorCode, ErrorInfo] = {
    E.CONFIG_MISSING_REQUIRED: ErrorInfo(
        code=E.CONFIG_MISSING_REQUIRED,
        message='A required environment variable is not set.',
        hint='Add "permissions: id-token: write" to the job so the OIDC token request variables are exposed.',
    ),
    E.CONFIG_INVALID_VALUE: ErrorInfo(
        code=E.CONFIG_INVALID_VALUE,
        message='A configuration value is malformed.',
        hint='Issuer and token request URLs must be absolute https URLs; the repository must be "owner/name".',
    ),
    E.OIDC_DISCOVERY_FAILED: ErrorInfo(
        code=E.OIDC_DISCOVERY_FAILED,
        message="The issuer's /.well-known/openid-configuration document could not be used.",
        hint='Check that the issuer URL is correct and reachable from the runner.',
    ),
    E.OIDC_KEYSET_FAILED: ErrorInfo(
        code=E.OIDC_KEYSET_FAILED,
        message="The issuer's JSON Web Key Set could not be fetched or parsed.",
        hint='The jwks_uri advertised by the issuer must return {"keys": [...]}.',
    ),
    E.OIDC_KEY_NOT_FOUND: ErrorInfo(
        code=E.OIDC_KEY_NOT_FOUND,
        message="The token's kid header does not match any published key.",
        hint='The token was not signed by the expected issuer, or the issuer rotated keys mid-run.',
    ),
    E.OIDC_TOKEN_REQUEST_FAILED: ErrorInfo(
        code=E.OIDC_TOKEN_REQUEST_FAILED,
        message='The OIDC token endpoint did not return an identity token.',
        hint='Add "permissions: id-token: write" to the job.',
    ),
    E.TOKEN_MALFORMED: ErrorInfo(
        code=E.TOKEN_MALFORMED,
        message='The identity token is not a valid compact-serialized JWT.',
    ),
    E.TOKEN_SIGNATURE_INVALID: ErrorInfo(
        code=E.TOKEN_SIGNATURE_INVALID,
        message='The identity token signature is invalid or uses a refused algorithm.',
        hint='Only RSA signatures (PS256, RS256) are accepted.',
    ),
    E.TOKEN_CLAIM_INVALID: ErrorInfo(
        code=E.TOKEN_CLAIM_INVALID,
        message=(
            'An identity token claim is invalid: a wrong iss, aud, exp, nbf or iat, '
            'or a predicate claim that is not a string or integer.'
        ),
    ),
    E.PREDICATE_MISSING_CLAIM: ErrorInfo(
        code=E.PREDICATE_MISSING_CLAIM,
        message='The verified token lacks a claim needed to build the provenance predicate.',
    ),
    E.OUTPUT_WRITE_FAILED: ErrorInfo(
        code=E.OUTPUT_WRITE_FAILED,
        message='The predicate outputs could not be written.',
        hint='Check that $GITHUB_OUTPUT points at a writable file.',
    ),
}


def explain(code: str) -> str | None:
    """Return a detailed explanation for an error code.

    Args:
        code: The error code string, e.g. ``"PK-TOKEN-MALFORMED"``.

    Returns:
        A formatted explanation string, or ``None`` if the code is unknown.
    """
    try:
        error_code = ErrorCode(code)
    except ValueError:
        return None

    info = ERRORS.get(error_code)
    if info is None:
        return f'{code}: No detailed explanation available.'

    lines = [f'{code}: {info.message}']
    if info.hint:
        lines.append(f'  Hint: {info.hint}')
    return '\n'.join(lines)


def render_error(exc: ProvenanceKitError, *, file: TextIO | None = None) -> None:
    """Render an error in Rust-compiler style with color.

    Output format::

        error[PK-TOKEN-CLAIM-INVALID]: verify-token: Unexpected 'aud' claim
          |
          = hint: ...

    Args:
        exc: The error to render.
        file: Output stream (defaults to ``sys.stderr``).
    """
    out = file or sys.stderr

    if out.isatty():
        console = Console(file=out, highlight=False)
        msg = rich_escape(exc.message)
        console.print(
            f'[bold red]error[/bold red][bold red]\\[{exc.code.value}][/bold red][bold]: {msg}[/bold]',
        )
        if exc.hint:
            hint = rich_escape(exc.hint)
            console.print('  [dim]|[/dim]')
            console.print(f'  [dim]=[/dim] [cyan]hint[/cyan]: {hint}')
        console.print()
    else:
        print(f'error[{exc.code.value}]: {exc.message}', file=out)  # noqa: T201 - CLI output
        if exc.hint:
            print('  |', file=out)  # noqa: T201 - CLI output
            print(f'  = hint: {exc.hint}', file=out)  # noqa: T201 - CLI output
        print(file=out)  # noqa: T201 - CLI output


__all__ = [
    'ERRORS',
    'ClaimValidationError',
    'ConfigError',
    'DiscoveryError',
    'E',
    'ErrorCode',
    'ErrorInfo',
    'KeyNotFoundError',
    'KeySetError',
    'MissingClaimError',
    'OutputError',
    'PipelineError',
    'ProvenanceKitError',
    'SignatureError',
    'TokenFormatError',
    'TokenRequestError',
    'explain',
    'render_error',
]
