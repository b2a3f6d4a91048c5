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

r"""Structured logging for provenancekit.

Events are rendered by `structlog <https://www.structlog.org/>`_ as
colored console lines, or one JSON object per line with ``--json-log``.
Everything goes to stderr: stdout carries workflow commands and, on
local runs, the predicate outputs.

Processor chain::

    merge_contextvars      run context: repository, issuer, stage
         │
    redact_secrets         token / credential values → '[REDACTED]'
         │
    level, logger, time    add_log_level, add_logger_name, TimeStamper
         │
    renderer               ConsoleRenderer | JSONRenderer

The identity token and the bearer credential must never reach a log
line. :func:`redact_secrets` masks fields named after them, and any
string value shaped like a compact JWS, wherever it was logged from.

Usage::

    from provenancekit.logging import configure_logging, get_logger, run_context

    configure_logging(json_log=True)
    with run_context(repository='owner/repo'):
        get_logger(__name__).info('jwt_verified', kid='12345')
"""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from typing import Any

import structlog

#: Event fields whose values are always masked.
SECRET_KEYS: frozenset[str] = frozenset({
    'authorization',
    'credential',
    'id_token',
    'request_token',
    'token',
})

REDACTED = '[REDACTED]'

# header.payload.signature, header starting with '{"' in base64url.
_COMPACT_JWS = re.compile(r'eyJ[\w-]*\.[\w-]+\.[\w-]*')


def redact_secrets(
    _logger: Any,  # noqa: ANN401 - structlog processor signature
    _method: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Mask secret fields and embedded tokens in an event."""
    for key, value in event_dict.items():
        if key.lower() in SECRET_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, str) and _COMPACT_JWS.search(value):
            event_dict[key] = _COMPACT_JWS.sub(REDACTED, value)
    return event_dict


def _level(*, verbose: bool, quiet: bool) -> int:
    if quiet:
        return logging.WARNING
    return logging.DEBUG if verbose else logging.INFO


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    json_log: bool = False,
) -> None:
    """Configure structlog for provenancekit.

    Call once at startup; ``quiet`` wins over ``verbose``.

    Args:
        verbose: Enable debug-level output.
        quiet: Only log warnings and errors.
        json_log: One JSON object per line instead of console output.
    """
    logging.basicConfig(
        format='%(message)s',
        stream=sys.stderr,
        level=_level(verbose=verbose, quiet=quiet),
        force=True,
    )

    renderer: structlog.types.Processor
    if json_log:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            redact_secrets,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt='iso', utc=True),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)


@contextmanager
def run_context(**fields: str) -> Iterator[None]:
    """Attach ``fields`` to every event logged inside the block.

    Nested blocks add to the outer fields; leaving a block restores them.
    """
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def get_logger(name: str = 'provenancekit') -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named ``name``."""
    return structlog.get_logger(name)


__all__ = [
    'REDACTED',
    'SECRET_KEYS',
    'configure_logging',
    'get_logger',
    'redact_secrets',
    'run_context',
]
