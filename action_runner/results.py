"""Results returned by action runners and the composite interpreter."""

from dataclasses import dataclass, field
from typing import Dict


@dataclass
class ActionResult:
    """Output of running one action of any kind."""
    output: str = ""
    outputs: Dict[str, str] = field(default_factory=dict)


@dataclass
class CompositeResult(ActionResult):
    """Result of a composite step list, including its private step-output table."""
    step_outputs: Dict[str, str] = field(default_factory=dict)
    steps_run: int = 0
    steps_skipped: int = 0
