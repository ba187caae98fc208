"""Runner configuration assembled from the environment and CLI flags."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Mapping, Optional

from .attestation.witness import RUNNER_INPUTS, WitnessOptions

DEFAULT_SERVER_URL = "https://github.com"
DEFAULT_REF = "main"
DEFAULT_MAX_DEPTH = 32


@dataclass
class RunnerConfig:
    """Settings shared by every level of one action run."""
    workspace: Path
    server_url: str = DEFAULT_SERVER_URL
    default_ref: str = DEFAULT_REF
    max_depth: int = DEFAULT_MAX_DEPTH
    default_shell: str = "bash"
    witness_path: Optional[str] = None
    witness_options: WitnessOptions = field(default_factory=WitnessOptions)
    excluded_inputs: FrozenSet[str] = RUNNER_INPUTS

    def __post_init__(self):
        self.workspace = Path(self.workspace).resolve()
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {self.max_depth}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> 'RunnerConfig':
        """
        Build configuration from GITHUB_* variables, with keyword overrides.

        GITHUB_WORKSPACE falls back to the current directory.
        """
        environ = os.environ if environ is None else environ

        values = {
            'workspace': environ.get('GITHUB_WORKSPACE') or os.getcwd(),
            'server_url': environ.get('GITHUB_SERVER_URL') or DEFAULT_SERVER_URL,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
