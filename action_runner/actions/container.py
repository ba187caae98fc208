"""
Runner for containerized actions.

The image is built from the action's Dockerfile or pulled from a registry.
`runs.args` and `runs.env` go through the same expression substitution as
composite steps. Scoped variables are passed to `docker run` by name only,
so their values never appear on a command line.
"""

import logging
import shlex
import subprocess
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..exceptions import ActionNotFound, MalformedDescriptor, ShellCommandError
from ..exec.output_capture import FileCommandFiles
from ..exec.step_executor import StepExecutor
from ..results import ActionResult
from ..variables.substitution import ExpressionSubstitutor, SubstitutionContext
from .descriptor import ActionDescriptor

logger = logging.getLogger(__name__)

DOCKER_PREFIX = 'docker://'
CONTAINER_WORKSPACE = '/github/workspace'
CONTAINER_FILE_DIR = '/github/file_commands'


def synthetic_image_descriptor(image: str, with_: Optional[Dict[str, Any]] = None) -> ActionDescriptor:
    """Descriptor for a bare image reference (container://IMAGE) used as a step."""
    with_ = with_ or {}
    runs: Dict[str, Any] = {
        'using': 'docker',
        'image': f"{DOCKER_PREFIX}{image}",
    }
    if with_.get('args'):
        runs['args'] = shlex.split(str(with_['args']))
    if with_.get('entrypoint'):
        runs['entrypoint'] = str(with_['entrypoint'])
    return ActionDescriptor(name='Container image action', runs=runs)


class ContainerActionRunner:
    """Builds or pulls an image and runs it with the scoped environment."""

    def __init__(
        self,
        executor: StepExecutor,
        workspace: Path,
        substitutor: Optional[ExpressionSubstitutor] = None,
        docker_binary: str = 'docker',
    ):
        self.executor = executor
        self.workspace = workspace
        self.substitutor = substitutor or ExpressionSubstitutor()
        self.docker_binary = docker_binary

    def run(
        self,
        descriptor: ActionDescriptor,
        action_dir: Path,
        env: Dict[str, str],
        context: SubstitutionContext,
    ) -> ActionResult:
        """Run a containerized action and collect its file-command outputs."""
        runs = descriptor.runs or {}
        image = runs.get('image')
        if not image:
            raise MalformedDescriptor('Container action is missing runs.image')

        self._verify_installation(env)
        docker_image = self.prepare_image(str(image), action_dir, env)

        args = [
            '' if arg is None else str(self.substitutor.substitute(str(arg), context))
            for arg in (runs.get('args') or [])
        ]

        run_env = dict(env)
        for name, value in (runs.get('env') or {}).items():
            if value is None:
                continue
            run_env[name] = str(self.substitutor.substitute(str(value), context))

        with FileCommandFiles(temp_root=None) as files:
            argv = self.build_run_args(docker_image, runs.get('entrypoint'), args, run_env, files)
            output = self.executor.run_command(argv, cwd=self.workspace, env=run_env, label=f"docker run {docker_image}")
            commands = files.read()

        env.update(commands.env)
        return ActionResult(output=output, outputs=commands.outputs)

    def prepare_image(self, image: str, action_dir: Path, env: Dict[str, str]) -> str:
        """Return a runnable image name, building or pulling as needed."""
        if image.lower() == 'dockerfile' or image.endswith('Dockerfile'):
            dockerfile = (Path(action_dir) / image).resolve()
            if not dockerfile.is_file():
                raise ActionNotFound(image, [str(dockerfile)])
            tag = f"action-runner-{uuid.uuid4().hex[:12]}"
            logger.info(f"Building Docker image {tag} from {dockerfile}")
            self._docker(['build', '-t', tag, '-f', str(dockerfile), str(action_dir)], env)
            return tag

        name = image[len(DOCKER_PREFIX):] if image.startswith(DOCKER_PREFIX) else image
        try:
            logger.info(f"Pulling Docker image {name}")
            self._docker(['pull', name], env)
        except ShellCommandError as e:
            logger.warning(f"Failed to pull Docker image {name}: {e}. Will try to use it directly.")
        return name

    def build_run_args(
        self,
        image: str,
        entrypoint: Optional[str],
        args: List[str],
        env: Dict[str, str],
        files: FileCommandFiles,
    ) -> List[str]:
        """Assemble `docker run` argv; env values are inherited, not inlined."""
        argv = [self.docker_binary, 'run', '--rm']
        argv += ['-v', f"{self.workspace}:{CONTAINER_WORKSPACE}", '-w', CONTAINER_WORKSPACE]

        if files.directory is not None:
            argv += ['-v', f"{files.directory}:{CONTAINER_FILE_DIR}"]

        container_files = {
            variable: f"{CONTAINER_FILE_DIR}/{path.name}" for variable, path in files.files.items()
        }
        for alias, variable in files.ALIASES.items():
            if variable in container_files:
                container_files[alias] = container_files[variable]
        for key in sorted(env):
            if key in container_files or key in ('PATH', 'HOME', 'HOSTNAME', 'GITHUB_WORKSPACE'):
                continue
            argv += ['-e', key]
        for variable, path in sorted(container_files.items()):
            argv += ['-e', f"{variable}={path}"]
        argv += ['-e', f"GITHUB_WORKSPACE={CONTAINER_WORKSPACE}"]

        if entrypoint:
            argv += ['--entrypoint', str(entrypoint)]

        argv.append(image)
        argv.extend(args)
        return argv

    def _verify_installation(self, env: Dict[str, str]) -> None:
        try:
            subprocess.run([self.docker_binary, '--version'], capture_output=True, check=True, env=env)
        except (OSError, subprocess.CalledProcessError) as e:
            raise ShellCommandError(self.docker_binary, 127, 'Docker is not installed or not in the PATH') from e

    def _docker(self, args: List[str], env: Dict[str, str]) -> str:
        return self.executor.run_command([self.docker_binary, *args], cwd=self.workspace, env=env,
                                         label=f"docker {args[0]}")
