"""
Step output capture.

Steps publish named outputs in two ways:
- inline marker printed to the log:    ::set-output name=NAME::VALUE
- appending to the output file:        echo "NAME=VALUE" >> $GITHUB_OUTPUT

The append form is read back from the real output file exported to the
step, and is also recognised when it appears verbatim in the output text.
The same file format carries environment (GITHUB_ENV) updates; GITHUB_PATH
holds one directory per line.
"""

import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

SET_OUTPUT_PATTERN = re.compile(r'::set-output name=([^:\n]+)::([^\n]*)')
APPEND_OUTPUT_PATTERN = re.compile(
    r'''echo\s+["']([^"'=\n]+)=([^"'\n]*)["']\s*>>\s*["']?\$\{?(?:GITHUB_OUTPUT|OUTPUT_FILE)\}?["']?'''
)
HEREDOC_PATTERN = re.compile(r'^([^=<\n]+)<<(.+)$')


def parse_output_text(text: str) -> Dict[str, str]:
    """
    Scan step output text for output declarations.

    Later declarations of the same name win.
    """
    outputs: Dict[str, str] = {}
    if not text:
        return outputs

    matches = []
    for match in SET_OUTPUT_PATTERN.finditer(text):
        matches.append((match.start(), match.group(1).strip(), match.group(2).rstrip('\r')))
    for match in APPEND_OUTPUT_PATTERN.finditer(text):
        matches.append((match.start(), match.group(1).strip(), match.group(2)))

    for _, name, value in sorted(matches, key=lambda m: m[0]):
        if name:
            outputs[name] = value
    return outputs


def parse_file_commands(content: str) -> Dict[str, str]:
    """
    Parse NAME=VALUE lines and NAME<<DELIMITER heredoc blocks.

    Raises:
        ValueError: If a heredoc block is never terminated
    """
    values: Dict[str, str] = {}
    lines = content.splitlines()
    i = 0

    while i < len(lines):
        line = lines[i]
        i += 1
        if not line.strip():
            continue

        heredoc = HEREDOC_PATTERN.match(line)
        if heredoc:
            name, delimiter = heredoc.group(1).strip(), heredoc.group(2).strip()
            body: List[str] = []
            while i < len(lines) and lines[i] != delimiter:
                body.append(lines[i])
                i += 1
            if i >= len(lines):
                raise ValueError(f"Matching delimiter not found '{delimiter}' for '{name}'")
            i += 1  # skip the delimiter
            values[name] = '\n'.join(body)
        elif '=' in line:
            name, value = line.split('=', 1)
            values[name.strip()] = value
        else:
            logger.warning(f"Ignoring malformed file command line: {line[:40]}")

    return values


@dataclass
class FileCommands:
    """Result of reading a step's command files."""
    outputs: Dict[str, str] = field(default_factory=dict)
    env: Dict[str, str] = field(default_factory=dict)
    path: List[str] = field(default_factory=list)


class FileCommandFiles:
    """
    Temporary GITHUB_OUTPUT / GITHUB_ENV / GITHUB_PATH files for one step.

    Use as a context manager; files are removed on exit and a removal failure
    is only logged.
    """

    VARIABLES = {
        'GITHUB_OUTPUT': 'output',
        'GITHUB_ENV': 'env',
        'GITHUB_PATH': 'path',
        'GITHUB_STEP_SUMMARY': 'step_summary',
    }

    # Alternate names for the same file
    ALIASES = {
        'OUTPUT_FILE': 'GITHUB_OUTPUT',
    }

    def __init__(self, temp_root: Optional[Path] = None):
        self.temp_root = temp_root
        self.directory: Optional[Path] = None
        self.files: Dict[str, Path] = {}

    def __enter__(self) -> 'FileCommandFiles':
        self.directory = Path(tempfile.mkdtemp(prefix='step-files-', dir=self.temp_root))
        for variable, filename in self.VARIABLES.items():
            path = self.directory / filename
            path.touch()
            self.files[variable] = path
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def close(self) -> None:
        if self.directory is None:
            return
        try:
            shutil.rmtree(self.directory)
        except OSError as e:
            logger.warning(f"Failed to clean up step files {self.directory}: {e}")
        self.directory = None

    def export(self) -> Dict[str, str]:
        """Environment entries pointing the step at these files."""
        exported = {variable: str(path) for variable, path in self.files.items()}
        for alias, variable in self.ALIASES.items():
            if variable in exported:
                exported[alias] = exported[variable]
        return exported

    def read(self) -> FileCommands:
        """Parse whatever the step wrote."""
        commands = FileCommands()
        if not self.files:
            return commands

        commands.outputs = parse_file_commands(self._read_text('GITHUB_OUTPUT'))
        commands.env = parse_file_commands(self._read_text('GITHUB_ENV'))
        commands.path = [
            line.strip() for line in self._read_text('GITHUB_PATH').splitlines() if line.strip()
        ]
        return commands

    def _read_text(self, variable: str) -> str:
        path = self.files.get(variable)
        if path is None or not path.exists():
            return ''
        return path.read_text(encoding='utf-8', errors='replace')


def prepend_path(env: Dict[str, str], entries: List[str]) -> None:
    """Prepend directories to PATH; the last appended entry ends up first."""
    current = env.get('PATH', '')
    parts = [entry for entry in reversed(entries) if entry]
    if current:
        parts.append(current)
    env['PATH'] = os.pathsep.join(parts)
