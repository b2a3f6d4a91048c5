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

"""CLI entry point for provenancekit.

Constructs the OIDC client and output sink and injects them into the
pipeline.

Subcommands::

    provenancekit predicate   Build the SLSA provenance predicate for this job
    provenancekit explain     Explain an error code

Usage::

    # In a GitHub Actions step with "permissions: id-token: write":
    uvx provenancekit predicate

    # Explain an error:
    uvx provenancekit explain PK-TOKEN-CLAIM-INVALID
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

from rich_argparse import RichHelpFormatter

from provenancekit import __version__
from provenancekit.backends.oidc import HttpxOIDCClient
from provenancekit.errors import ProvenanceKitError, explain, render_error
from provenancekit.logging import configure_logging, get_logger
from provenancekit.outputs import sink_from_env
from provenancekit.pipeline import read_config, run

logger = get_logger(__name__)


def _escape_workflow_data(value: str) -> str:
    return value.replace('%', '%25').replace('\r', '%0D').replace('\n', '%0A')


def _report_failure(exc: ProvenanceKitError) -> None:
    render_error(exc)
    # Mirror the failure as a workflow annotation on the job summary.
    if os.environ.get('GITHUB_ACTIONS') == 'true':
        print(f'::error::{_escape_workflow_data(str(exc))}')  # noqa: T201 - workflow command


async def _cmd_predicate(args: argparse.Namespace) -> int:
    """Handle the ``predicate`` subcommand."""
    config = read_config(issuer_url=args.issuer, audience=args.audience)
    logger.info(
        'predicate_requested',
        issuer=config.issuer.issuer_url,
        repository=config.repository.repository,
    )
    await run(
        config,
        client=HttpxOIDCClient(timeout=args.timeout),
        sink=sink_from_env(),
    )
    return 0


def _cmd_explain(args: argparse.Namespace) -> int:
    """Handle the ``explain`` subcommand."""
    text = explain(args.code)
    if text is None:
        print(f'Unknown error code: {args.code}', file=sys.stderr)  # noqa: T201 - CLI output
        return 1
    print(text)  # noqa: T201 - CLI output
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        Configured :class:`argparse.ArgumentParser`.
    """
    RichHelpFormatter.styles['argparse.groups'] = 'bold yellow'
    parser = argparse.ArgumentParser(
        prog='provenancekit',
        description='SLSA build provenance predicates from a verified CI OIDC token.',
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}',
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging.')
    parser.add_argument('--quiet', '-q', action='store_true', help='Only log warnings and errors.')
    parser.add_argument('--json-log', action='store_true', help='Log one JSON object per line.')

    subparsers = parser.add_subparsers(dest='command')

    predicate_parser = subparsers.add_parser(
        'predicate',
        help='Build the SLSA provenance predicate for this job.',
        formatter_class=RichHelpFormatter,
    )
    predicate_parser.add_argument(
        '--issuer',
        metavar='URL',
        default=None,
        help='Expected OIDC issuer. Defaults to the issuer for $GITHUB_SERVER_URL.',
    )
    predicate_parser.add_argument(
        '--audience',
        default=None,
        help='Audience to request and require in the token (default: nobody).',
    )
    predicate_parser.add_argument(
        '--timeout',
        type=float,
        default=30.0,
        help='HTTP timeout in seconds for each OIDC request.',
    )

    explain_parser = subparsers.add_parser(
        'explain',
        help='Explain an error code.',
        formatter_class=RichHelpFormatter,
    )
    explain_parser.add_argument('code', help='Error code, e.g. PK-TOKEN-MALFORMED.')

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose, quiet=args.quiet, json_log=args.json_log)

    try:
        if args.command == 'predicate':
            return asyncio.run(_cmd_predicate(args))
        if args.command == 'explain':
            return _cmd_explain(args)

        parser.print_help()
        print(  # noqa: T201 - CLI output
            f'\n{parser.prog}: error: please provide a command',
            file=sys.stderr,
        )
        return 2

    except ProvenanceKitError as exc:
        _report_failure(exc)
        return 1
    except KeyboardInterrupt:
        logger.info('interrupted')
        return 130


def _main() -> None:
    """Wrapper for pyproject.toml [project.scripts] entry point."""
    sys.exit(main())


__all__ = [
    'build_parser',
    'main',
]
