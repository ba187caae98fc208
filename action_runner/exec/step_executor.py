"""
Step executor module for running shell scripts and commands.

Every process goes through the attestation wrapper. stderr is merged into
stdout so the returned text matches what a step log shows.
"""

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence

from ..attestation.witness import AttestationWrapper
from ..exceptions import ShellCommandError

logger = logging.getLogger(__name__)


class StepExecutor:
    """
    Executes step scripts and action commands, returning their combined output.
    """

    SHELL_COMMANDS = {
        'bash': ['bash', '--noprofile', '--norc', '-e', '-o', 'pipefail'],
        'sh': ['sh', '-e'],
    }

    def __init__(self, wrapper: Optional[AttestationWrapper] = None, temp_root: Optional[Path] = None):
        """
        Initialize step executor.

        Args:
            wrapper: Attestation wrapper applied to every command
            temp_root: Directory for generated scripts (default: system temp dir)
        """
        self.wrapper = wrapper or AttestationWrapper()
        self.temp_root = temp_root

    def run(
        self,
        script: str,
        work_dir: Path,
        env: Mapping[str, str],
        shell: str = 'bash',
    ) -> str:
        """
        Run a script with a POSIX shell.

        Args:
            script: Script text, already substituted
            work_dir: Working directory for the script
            env: Complete environment for the process
            shell: 'bash' or 'sh'

        Returns:
            Combined stdout/stderr text

        Raises:
            ShellCommandError: If the script exits non-zero
            ValueError: For an unsupported shell
        """
        if shell not in self.SHELL_COMMANDS:
            raise ValueError(f"Unsupported shell: {shell}. Expected one of {sorted(self.SHELL_COMMANDS)}")

        fd, script_path = tempfile.mkstemp(prefix='step-', suffix='.sh', dir=self.temp_root)
        try:
            with os.fdopen(fd, 'w') as f:
                f.write(script)
            os.chmod(script_path, 0o755)
            logger.debug(f"Created temporary script at: {script_path}")

            return self.run_command(
                [*self.SHELL_COMMANDS[shell], script_path],
                cwd=work_dir,
                env=env,
                label=f"{shell} step",
            )
        finally:
            try:
                os.unlink(script_path)
            except OSError as e:
                logger.warning(f"Failed to clean up temporary script: {e}")

    def run_command(
        self,
        argv: Sequence[str],
        cwd: Path,
        env: Mapping[str, str],
        label: Optional[str] = None,
    ) -> str:
        """
        Run an argv command (no shell) and return its combined output.

        Raises:
            ShellCommandError: If the process exits non-zero or cannot start
        """
        command = self.wrapper.wrap(argv)
        label = label or os.path.basename(str(argv[0]))
        logger.info(f"Running {label} in {cwd}")

        try:
            result = subprocess.run(
                command,
                cwd=str(cwd),
                env=self._process_env(env),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            raise ShellCommandError(label, 127, str(e)) from e

        output = result.stdout.decode('utf-8', errors='replace')
        for line in output.splitlines():
            logger.debug(f"[{label}] {line}")

        if result.returncode != 0:
            raise ShellCommandError(label, result.returncode, output)

        return output

    @staticmethod
    def _process_env(env: Mapping[str, str]) -> Dict[str, str]:
        # subprocess requires plain str values
        return {str(k): str(v) for k, v in env.items() if v is not None}
