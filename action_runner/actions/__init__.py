"""
Action metadata, reference resolution and per-kind runners.
"""

from .descriptor import ActionDescriptor, ActionKind, InputSpec, StepDescriptor, classify

__all__ = [
    "ActionDescriptor",
    "ActionKind",
    "InputSpec",
    "StepDescriptor",
    "classify",
]
