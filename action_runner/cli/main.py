"""Main CLI entry point for the action runner."""

import argparse
import sys
from typing import Optional

from .commands import run_action


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the action runner CLI."""
    parser = argparse.ArgumentParser(
        prog='action-runner',
        description='Run composite, node and container actions locally with attestation'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    run_parser = subparsers.add_parser('run', help='Run an action')
    run_parser.add_argument(
        'action_ref',
        type=str,
        help='Action reference: ./path, owner/repo[@ref] or container://image[:tag]'
    )
    run_parser.add_argument(
        '--input',
        action='append',
        metavar='NAME=VALUE',
        help='Action input (can be specified multiple times)'
    )
    run_parser.add_argument(
        '--workspace',
        type=str,
        help='Repository root (default: $GITHUB_WORKSPACE or current directory)'
    )
    run_parser.add_argument(
        '--default-ref',
        type=str,
        help='Ref used for hosted actions referenced without @ref'
    )
    run_parser.add_argument(
        '--max-depth',
        type=int,
        help='Maximum nesting depth for delegated actions'
    )
    run_parser.add_argument(
        '--witness-path',
        type=str,
        help='Path to the witness binary; commands run unwrapped when omitted'
    )
    run_parser.add_argument(
        '--step',
        type=str,
        help='Attestation step name'
    )
    run_parser.add_argument(
        '--attestations',
        type=str,
        help='Space separated attestors to record'
    )
    run_parser.add_argument(
        '--outfile',
        type=str,
        help='Attestation output file'
    )
    run_parser.add_argument(
        '--enable-sigstore',
        type=str,
        metavar='BOOL',
        help='Sign with sigstore (YAML boolean)'
    )
    run_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Resolve and validate the action without executing it'
    )
    run_parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    run_parser.add_argument(
        '--quiet',
        action='store_true',
        help='Suppress non-error output'
    )
    run_parser.add_argument(
        '--log-level',
        choices=['debug', 'info', 'warn', 'error'],
        default='info',
        help='Set log level'
    )

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == 'run':
        return run_action(parsed_args)

    parser.print_help()
    return 1


if __name__ == '__main__':
    sys.exit(main())
