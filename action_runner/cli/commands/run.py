"""Run command implementation."""

import logging
import os
import sys
from argparse import Namespace
from pathlib import Path
from typing import Dict, Mapping

from action_runner.actions.container import synthetic_image_descriptor
from action_runner.actions.descriptor import classify
from action_runner.attestation.witness import WitnessOptions
from action_runner.config import RunnerConfig
from action_runner.exceptions import ActionRunnerError, MalformedDescriptor, StepExecutionFailed
from action_runner.variables.env_keys import env_key, set_input, strip_input_prefix
from action_runner.workflow.executor import ActionEngine


logger = logging.getLogger(__name__)

LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'error': logging.ERROR,
}


def configure_logging(args: Namespace) -> None:
    log_level = LOG_LEVELS[args.log_level]
    if args.debug:
        log_level = logging.DEBUG
    elif args.quiet:
        log_level = logging.ERROR

    # Step output goes to stdout; keep logs on stderr
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


def parse_inputs(args: Namespace) -> Dict[str, str]:
    """Parse --input NAME=VALUE pairs."""
    inputs = {}
    for item in args.input or []:
        if '=' not in item:
            raise ValueError(f"Invalid input format: {item}. Expected NAME=VALUE")
        name, value = item.split('=', 1)
        inputs[name.strip()] = value
    return inputs


def build_config(args: Namespace, environ: Mapping[str, str]) -> RunnerConfig:
    """Merge CLI flags over environment-derived configuration."""
    def option(name: str):
        flags = {
            'step': args.step,
            'attestations': args.attestations,
            'outfile': args.outfile,
            'enable-sigstore': args.enable_sigstore,
        }
        if flags.get(name) is not None:
            return flags[name]
        return environ.get(env_key(name))

    return RunnerConfig.from_env(
        environ,
        workspace=args.workspace,
        default_ref=args.default_ref,
        max_depth=args.max_depth,
        witness_path=args.witness_path,
        witness_options=WitnessOptions.from_inputs(option),
    )


def build_seed_env(environ: Mapping[str, str], inputs: Mapping[str, str], config: RunnerConfig) -> Dict[str, str]:
    """Process environment plus CLI inputs, with input- prefixed passthrough remapped."""
    seed_env = dict(environ)
    remapped = strip_input_prefix(seed_env, config.excluded_inputs)
    if remapped:
        logger.info(f"Remapped {len(remapped)} input-prefixed inputs")

    for name, value in inputs.items():
        set_input(seed_env, name, value)

    seed_env['GITHUB_WORKSPACE'] = str(config.workspace)
    return seed_env


def run_action(args: Namespace) -> int:
    """
    Run an action reference from the workspace.

    Returns:
        0 on success, 2 for validation/security errors, 1 for execution failures
    """
    configure_logging(args)

    try:
        environ = dict(os.environ)
        inputs = parse_inputs(args)
        config = build_config(args, environ)
        engine = ActionEngine(config)

        logger.info(f"Wrapping action: {args.action_ref}")
        location = engine.locator.locate(args.action_ref, config.workspace)
        try:
            if location.is_container:
                descriptor = synthetic_image_descriptor(location.image)
                action_dir = config.workspace
            else:
                descriptor = engine.loader.load(location.path)
                action_dir = location.path

            kind = classify(descriptor)
            logger.info(f"Resolved {descriptor.display_name} ({kind.value}) at {action_dir}")

            if args.dry_run:
                logger.info("[DRY RUN] Action validation successful")
                return 0

            seed_env = build_seed_env(environ, inputs, config)
            output = engine.execute_action(descriptor, action_dir, seed_env, excluded=config.excluded_inputs)
        finally:
            location.cleanup()

        sys.stdout.write(output)
        sys.stdout.flush()
        logger.info("Action run completed successfully")
        return 0

    except MalformedDescriptor as e:
        for error in e.errors or [e]:
            logger.error(f"Validation error: {getattr(error, 'message', error)}")
        return e.exit_code
    except StepExecutionFailed as e:
        steps = '.'.join(str(i) for i in e.step_path)
        logger.error(f"Action failed at step {steps}: {e.root_cause}")
        output = getattr(e.root_cause, 'output', '')
        if output:
            sys.stderr.write(output)
        return e.exit_code
    except ActionRunnerError as e:
        logger.error(str(e))
        return e.exit_code
    except ValueError as e:
        logger.error(f"Validation error: {e}")
        return 2
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1
