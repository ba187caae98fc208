"""CLI command handlers."""

from .run import run_action

__all__ = ['run_action']
