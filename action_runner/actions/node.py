"""
Runner for scripted (node) actions.

The entry file runs from the workspace with the action directory on
NODE_PATH. Outputs come back through the GITHUB_OUTPUT file.
"""

import logging
import os
from pathlib import Path
from typing import Dict

from ..exceptions import ActionNotFound, MalformedDescriptor
from ..exec.output_capture import FileCommandFiles
from ..exec.step_executor import StepExecutor
from ..results import ActionResult
from ..variables.booleans import is_yaml_boolean, validate_boolean_input
from ..variables.env_keys import INPUT_PREFIX
from .descriptor import ActionDescriptor

logger = logging.getLogger(__name__)


class ScriptedActionRunner:
    """Runs `runs.main` of a node action under the step executor."""

    def __init__(self, executor: StepExecutor, workspace: Path, node_binary: str = 'node'):
        self.executor = executor
        self.workspace = workspace
        self.node_binary = node_binary

    def run(self, descriptor: ActionDescriptor, action_dir: Path, env: Dict[str, str]) -> ActionResult:
        """
        Run the action's entry point.

        Raises:
            MalformedDescriptor: runs.main missing
            ActionNotFound: entry file missing
            ShellCommandError: node exited non-zero
        """
        entry_point = (descriptor.runs or {}).get('main')
        if not entry_point:
            raise MalformedDescriptor('Entry point (runs.main) not defined in action metadata')

        entry_file = (Path(action_dir) / str(entry_point)).resolve()
        if not entry_file.is_file():
            raise ActionNotFound(str(entry_point), [str(entry_file)])
        logger.info(f"Action entry point: {entry_point}")

        node_env = dict(env)
        node_path = node_env.get('NODE_PATH')
        node_env['NODE_PATH'] = f"{action_dir}{os.pathsep}{node_path}" if node_path else str(action_dir)
        normalize_boolean_inputs(node_env)

        with FileCommandFiles() as files:
            node_env.update(files.export())
            output = self.executor.run_command(
                [self.node_binary, str(entry_file)],
                cwd=self.workspace,
                env=node_env,
                label=f"node {entry_point}",
            )
            commands = files.read()

        env.update(commands.env)
        return ActionResult(output=output, outputs=commands.outputs)


def normalize_boolean_inputs(env: Dict[str, str]) -> None:
    """Trim boolean-looking INPUT_* values, keeping their original spelling."""
    for key, value in list(env.items()):
        if not key.startswith(INPUT_PREFIX) or not isinstance(value, str):
            continue
        if is_yaml_boolean(value):
            validated = validate_boolean_input(value)
            if validated is not None and validated != value:
                env[key] = validated
                logger.debug(f"Normalized boolean input {key}")
