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

"""Output sinks for the pipeline's named string outputs.

A sink receives every output of a run in a single :meth:`OutputSink.write`
call, after all of them have been computed, so a failed run never
leaves a partial set behind.

- :class:`GitHubOutputSink` appends to the ``$GITHUB_OUTPUT`` file.
- :class:`StdoutOutputSink` prints ``name=value`` lines (local runs).
"""

from __future__ import annotations

import os
import sys
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, TextIO, runtime_checkable

from provenancekit.errors import OutputError
from provenancekit.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class OutputSink(Protocol):
    """Protocol for receiving named string outputs."""

    def write(self, outputs: Mapping[str, str]) -> None:
        """Publish all outputs of a run at once.

        Raises:
            OutputError: If the outputs cannot be written.
        """
        ...


def format_github_outputs(outputs: Mapping[str, str], *, delimiter: str | None = None) -> str:
    """Render outputs in the ``$GITHUB_OUTPUT`` multi-line syntax.

    Each output becomes::

        name<<ghadelimiter_<uuid>
        value
        ghadelimiter_<uuid>

    Args:
        outputs: Output names and values.
        delimiter: Heredoc delimiter; a random one by default.

    Raises:
        OutputError: If the delimiter occurs in a name or value.
    """
    delimiter = delimiter or f'ghadelimiter_{uuid.uuid4()}'
    chunks: list[str] = []
    for name, value in outputs.items():
        if delimiter in name or delimiter in value:
            raise OutputError(f'Output {name!r} contains the heredoc delimiter')
        chunks.append(f'{name}<<{delimiter}{os.linesep}{value}{os.linesep}{delimiter}{os.linesep}')
    return ''.join(chunks)


class GitHubOutputSink:
    """Appends outputs to the GitHub Actions output file.

    Args:
        path: The ``$GITHUB_OUTPUT`` file.
    """

    def __init__(self, path: Path) -> None:
        """Initialize with the output file path."""
        self.path = path

    def write(self, outputs: Mapping[str, str]) -> None:
        """Append all outputs to the file in one write.

        Line endings are written as formatted, untranslated, so the
        delimiter lines match exactly on every platform.
        """
        payload = format_github_outputs(outputs)
        try:
            with self.path.open('a', encoding='utf-8', newline='') as f:
                f.write(payload)
        except OSError as exc:
            raise OutputError(f'Cannot write {self.path}: {exc.strerror or exc}') from exc
        logger.info('outputs_written', path=str(self.path), names=sorted(outputs))


class StdoutOutputSink:
    """Prints ``name=value`` lines to a stream (stdout by default)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        """Initialize with an optional stream."""
        self._stream = stream

    def write(self, outputs: Mapping[str, str]) -> None:
        """Print every output on its own line."""
        out = self._stream or sys.stdout
        out.write(''.join(f'{name}={value}\n' for name, value in outputs.items()))
        out.flush()


def sink_from_env(environ: Mapping[str, str] | None = None) -> OutputSink:
    """Pick the GitHub sink when ``GITHUB_OUTPUT`` is set, else stdout."""
    env = os.environ if environ is None else environ
    output_file = env.get('GITHUB_OUTPUT', '')
    if output_file:
        return GitHubOutputSink(Path(output_file))
    return StdoutOutputSink()


__all__ = [
    'GitHubOutputSink',
    'OutputSink',
    'StdoutOutputSink',
    'format_github_outputs',
    'sink_from_env',
]
