"""
Action execution engine.

Classifies an action and dispatches it to the runner for its kind. Composite
actions are interpreted here step by step. Delegated steps re-enter the same
dispatcher with a copy of the scoped environment. Only declared outputs flow
back to the caller, through its step-output table.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Tuple

from ..actions.container import ContainerActionRunner, synthetic_image_descriptor
from ..actions.descriptor import POSIX_SHELLS, ActionDescriptor, ActionKind, StepDescriptor, classify
from ..actions.locator import ActionLocator
from ..actions.node import ScriptedActionRunner
from ..actions.retriever import GitActionRetriever
from ..attestation.witness import AttestationWrapper
from ..config import RunnerConfig
from ..exceptions import (
    ActionRecursionError,
    InvalidCompositeAction,
    PathEscapesRepository,
    StepExecutionFailed,
    UnsupportedActionType,
)
from ..exec.output_capture import FileCommandFiles, parse_output_text, prepend_path
from ..exec.step_executor import StepExecutor
from ..loader import ActionLoader
from ..results import ActionResult, CompositeResult
from ..variables.defaults import apply_defaults, stringify_default
from ..variables.env_keys import INPUT_PREFIX, set_input, step_output_env_key
from ..variables.substitution import ExpressionSubstitutor, SubstitutionContext, step_output_key

logger = logging.getLogger(__name__)

# Active call chain: one identity per action currently executing
CallChain = Tuple[str, ...]


class ActionEngine:
    """
    Main action execution engine.
    Handles kind dispatch, composite step interpretation and delegation.
    """

    def __init__(
        self,
        config: RunnerConfig,
        executor: Optional[StepExecutor] = None,
        locator: Optional[ActionLocator] = None,
        loader: Optional[ActionLoader] = None,
        substitutor: Optional[ExpressionSubstitutor] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Runner configuration (workspace, refs, depth limit, attestation)
            executor: Shell/command executor (default: attestation-wrapped StepExecutor)
            locator: Action reference resolver
            loader: Action metadata loader
            substitutor: Expression substitutor
        """
        self.config = config
        self.workspace = config.workspace

        self.executor = executor or StepExecutor(
            AttestationWrapper(config.witness_path, config.witness_options)
        )
        self.locator = locator or ActionLocator(
            self.workspace,
            GitActionRetriever(config.server_url),
            default_ref=config.default_ref,
        )
        self.loader = loader or ActionLoader()
        self.substitutor = substitutor or ExpressionSubstitutor()

        self.scripted_runner = ScriptedActionRunner(self.executor, self.workspace)
        self.container_runner = ContainerActionRunner(self.executor, self.workspace, self.substitutor)

        self._handlers = {
            ActionKind.SCRIPTED: self._run_scripted,
            ActionKind.CONTAINERIZED: self._run_containerized,
            ActionKind.COMPOSITE: self._run_composite,
        }

    def run_action_dir(
        self,
        action_dir: Path,
        seed_env: Mapping[str, str],
        excluded: Iterable[str] = ()
    ) -> str:
        """Load action metadata from a directory and execute it."""
        descriptor = self.loader.load(Path(action_dir))
        logger.info(f"Loaded action: {descriptor.display_name} with {len(descriptor.inputs)} inputs")
        return self.execute_action(descriptor, Path(action_dir), seed_env, excluded=excluded)

    def execute_action(
        self,
        descriptor: ActionDescriptor,
        root_dir: Path,
        seed_env: Mapping[str, str],
        excluded: Iterable[str] = ()
    ) -> str:
        """
        Execute an action and return its aggregated output.

        Args:
            descriptor: Parsed action metadata
            root_dir: Directory of the action (github.action_path)
            seed_env: Caller environment; copied, never modified
            excluded: Input names whose defaults belong to the caller, not the action

        Raises:
            ActionRunnerError: Any failure, with the failing step chain attached
        """
        env = dict(seed_env)
        return self._execute(descriptor, Path(root_dir), env, chain=(), excluded=excluded).output

    def execute_composite_steps(
        self,
        descriptor: ActionDescriptor,
        action_dir: Path,
        env: Dict[str, str],
        step_outputs: Optional[Dict[str, str]] = None,
        excluded: Iterable[str] = (),
        _chain: CallChain = (),
    ) -> CompositeResult:
        """
        Run a composite action's steps in order against a scoped environment.

        Args:
            descriptor: Composite action metadata
            action_dir: Directory of the composite action
            env: Scoped environment, modified in place
            step_outputs: Step-output table to append to (default: new table)
            excluded: Input names to skip when applying defaults

        Returns:
            CompositeResult with concatenated output, the step-output table
            and the action's resolved declared outputs

        Raises:
            InvalidCompositeAction: If there are no steps
            StepExecutionFailed: If any step fails; remaining steps are not run
        """
        steps = descriptor.steps
        if not steps:
            raise InvalidCompositeAction('Invalid composite action: missing or empty steps array')

        action_dir = Path(action_dir).resolve()
        step_outputs = {} if step_outputs is None else step_outputs
        result = CompositeResult(step_outputs=step_outputs)

        applied = apply_defaults(env, descriptor.inputs, excluded)
        if applied:
            logger.info(f"Applied {len(applied)} default input values: {', '.join(applied)}")

        logger.info(f"Executing composite action with {len(steps)} steps")
        outputs = []

        for position, step in enumerate(steps, start=1):
            logger.info(f"Executing step {position}/{len(steps)}: {step.display_name}")

            try:
                if step.is_script:
                    shell = step.shell or self.config.default_shell
                    if shell not in POSIX_SHELLS:
                        logger.warning(
                            f"Skipping step {position}: shell '{shell}' is not supported, "
                            f"only {sorted(POSIX_SHELLS)}"
                        )
                        result.steps_skipped += 1
                        continue
                    step_output, produced = self._run_script_step(
                        step, shell, descriptor, action_dir, env, step_outputs
                    )
                elif step.is_delegate:
                    step_output, produced = self._run_delegate_step(
                        step, descriptor, action_dir, env, step_outputs, _chain
                    )
                else:
                    logger.warning(
                        f"Skipping unsupported step type at index {position}: "
                        f"only 'run' and 'uses' steps are supported"
                    )
                    result.steps_skipped += 1
                    continue

                if step.id:
                    # Declared and file outputs win over markers printed to the log
                    captured = parse_output_text(step_output)
                    captured.update(produced)
                    self._record_outputs(step.id, captured, env, step_outputs)
            except Exception as e:
                raise StepExecutionFailed(position, step.display_name, e) from e

            outputs.append(step_output + "\n")
            result.steps_run += 1

        result.output = ''.join(outputs)
        result.outputs = self._resolve_declared_outputs(descriptor, action_dir, env, step_outputs)
        return result

    def _execute(
        self,
        descriptor: ActionDescriptor,
        action_dir: Path,
        env: Dict[str, str],
        chain: CallChain,
        excluded: Iterable[str] = (),
    ) -> ActionResult:
        """Classify and dispatch one action; the recursion point for delegation."""
        chain = self._enter(descriptor, chain)

        kind = classify(descriptor)
        logger.info(f"Detected action type: {kind.value} ({descriptor.display_name})")

        # Composite step lists apply their own defaults before the first step
        if kind != ActionKind.COMPOSITE:
            applied = apply_defaults(env, descriptor.inputs, excluded)
            if applied:
                # Names only: defaults may carry secrets
                logger.info(f"Applied default values for inputs: {', '.join(applied)}")

        handler = self._handlers.get(kind)
        if handler is None:
            raise UnsupportedActionType(f"Unsupported action type: {descriptor.using}")
        return handler(descriptor, action_dir.resolve(), env, chain, excluded)

    def _enter(self, descriptor: ActionDescriptor, chain: CallChain) -> CallChain:
        """Extend the call chain, rejecting cycles and runaway nesting."""
        if len(chain) >= self.config.max_depth:
            raise ActionRecursionError(
                f"Maximum action nesting depth ({self.config.max_depth}) exceeded "
                f"at {descriptor.display_name}"
            )

        identity = str(descriptor.source.resolve()) if descriptor.source else None
        if identity is not None and identity in chain:
            cycle = ' -> '.join([*chain[chain.index(identity):], identity])
            raise ActionRecursionError(f"Action delegates to itself: {cycle}")

        return chain + (identity or f"<{descriptor.display_name}>",)

    def _run_composite(self, descriptor, action_dir, env, chain, excluded) -> ActionResult:
        return self.execute_composite_steps(descriptor, action_dir, env, excluded=excluded, _chain=chain)

    def _run_scripted(self, descriptor, action_dir, env, chain, excluded) -> ActionResult:
        return self.scripted_runner.run(descriptor, action_dir, env)

    def _run_containerized(self, descriptor, action_dir, env, chain, excluded) -> ActionResult:
        context = self._context(descriptor, action_dir, env, {})
        return self.container_runner.run(descriptor, action_dir, env, context)

    def _run_script_step(
        self,
        step: StepDescriptor,
        shell: str,
        descriptor: ActionDescriptor,
        action_dir: Path,
        env: Dict[str, str],
        step_outputs: Dict[str, str],
    ) -> Tuple[str, Dict[str, str]]:
        """Substitute and run a script step; apply its file commands to the scoped env."""
        context = self._context(descriptor, action_dir, env, step_outputs)
        script = self.substitutor.substitute(step.run, context)
        logger.debug(f"Script after expression substitution:\n---BEGIN SCRIPT---\n{script}\n---END SCRIPT---")

        step_env = dict(env)
        for name, value in step.env.items():
            if value is None:
                continue
            step_env[str(name)] = stringify_default(self.substitutor.substitute(value, context))

        # Tools shipped with the action are callable by name
        path_entries = step_env.get('PATH', '').split(os.pathsep)
        if str(action_dir) not in path_entries:
            prepend_path(step_env, [str(action_dir)])
        step_env['GITHUB_ACTION_PATH'] = str(action_dir)

        work_dir = self._working_directory(step, context)

        with FileCommandFiles() as files:
            step_env.update(files.export())
            output = self.executor.run(script, work_dir, step_env, shell=shell)
            commands = files.read()

        if commands.env:
            env.update(commands.env)
            logger.info(f"Step exported environment variables: {', '.join(sorted(commands.env))}")
        if commands.path:
            prepend_path(env, commands.path)
            logger.info(f"Step added {len(commands.path)} entries to PATH")

        return output, commands.outputs

    def _run_delegate_step(
        self,
        step: StepDescriptor,
        descriptor: ActionDescriptor,
        action_dir: Path,
        env: Dict[str, str],
        step_outputs: Dict[str, str],
        chain: CallChain,
    ) -> Tuple[str, Dict[str, str]]:
        """Locate and run a delegated action with its own copy of the environment."""
        logger.info(f"Executing 'uses' step: {step.uses}")
        context = self._context(descriptor, action_dir, env, step_outputs)

        # Inputs are explicit: the caller's own inputs are not inherited
        nested_env = {k: v for k, v in env.items() if not k.startswith(INPUT_PREFIX)}
        with_values = {}
        for input_name, raw_value in step.with_.items():
            value = self.substitutor.substitute(raw_value, context)
            with_values[input_name] = value
            set_input(nested_env, input_name, '' if value is None else value)
            logger.debug(f"Passing input '{input_name}' to {step.uses}")

        location = self.locator.locate(step.uses, action_dir)
        try:
            if location.is_container:
                nested = synthetic_image_descriptor(location.image, with_values)
                nested_dir = self.workspace
            else:
                nested = self.loader.load(location.path)
                nested_dir = location.path

            result = self._execute(nested, nested_dir, nested_env, chain)
        finally:
            location.cleanup()

        if result.outputs:
            logger.info(f"Nested action {step.uses} produced outputs: {', '.join(sorted(result.outputs))}")
        return result.output, result.outputs

    def _resolve_declared_outputs(
        self,
        descriptor: ActionDescriptor,
        action_dir: Path,
        env: Dict[str, str],
        step_outputs: Dict[str, str],
    ) -> Dict[str, str]:
        """Resolve each declared output expression against this level's step outputs."""
        context = self._context(descriptor, action_dir, env, step_outputs)
        resolved = {}
        for name, expression in descriptor.outputs.items():
            if expression is None:
                resolved[name] = ''
            else:
                resolved[name] = self.substitutor.substitute(expression, context)
        return resolved

    def _record_outputs(
        self,
        step_id: str,
        captured: Dict[str, str],
        env: Dict[str, str],
        step_outputs: Dict[str, str],
    ) -> None:
        for name, value in captured.items():
            step_outputs[step_output_key(step_id, name)] = value
            env[step_output_env_key(step_id, name)] = value
            logger.info(f"Captured output '{name}' from step {step_id}")

    def _working_directory(self, step: StepDescriptor, context: SubstitutionContext) -> Path:
        if not step.working_directory:
            return self.workspace

        requested = self.substitutor.substitute(str(step.working_directory), context)
        work_dir = (self.workspace / requested).resolve()
        try:
            work_dir.relative_to(self.workspace)
        except ValueError:
            raise PathEscapesRepository(str(step.working_directory), str(work_dir))
        return work_dir

    def _context(
        self,
        descriptor: ActionDescriptor,
        action_dir: Path,
        env: Dict[str, str],
        step_outputs: Dict[str, str],
    ) -> SubstitutionContext:
        return SubstitutionContext(
            env=env,
            step_outputs=step_outputs,
            action_path=str(action_dir),
            input_defaults=descriptor.input_defaults,
        )
