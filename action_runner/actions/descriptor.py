"""
Parsed action metadata and kind classification.

Descriptors are built once from the loaded YAML and never mutated. The
`runs` section is kept raw since each kind reads different fields from it.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..exceptions import MalformedDescriptor


class ActionKind(str, Enum):
    """How an action is executed, derived from its runs section."""
    SCRIPTED = "scripted"
    CONTAINERIZED = "containerized"
    COMPOSITE = "composite"
    UNKNOWN = "unknown"


# Versioned node runtimes the platform accepts for scripted actions
SCRIPTED_RUNTIMES = frozenset({'node12', 'node16', 'node20', 'node24'})

POSIX_SHELLS = frozenset({'bash', 'sh'})


@dataclass
class InputSpec:
    """Declared action input."""
    name: str
    description: str = ""
    default: Any = None
    required: bool = False
    type: Optional[str] = None

    @classmethod
    def from_dict(cls, name: str, data: Optional[Dict[str, Any]]) -> 'InputSpec':
        data = data or {}
        return cls(
            name=name,
            description=str(data.get('description', '') or ''),
            default=data.get('default'),
            required=data.get('required') is True,
            type=data.get('type'),
        )


@dataclass
class StepDescriptor:
    """One entry of a composite action's step list."""
    index: int
    id: Optional[str] = None
    name: Optional[str] = None
    run: Optional[str] = None
    uses: Optional[str] = None
    with_: Dict[str, Any] = field(default_factory=dict)
    shell: Optional[str] = None
    env: Dict[str, Any] = field(default_factory=dict)
    working_directory: Optional[str] = None

    @classmethod
    def from_dict(cls, index: int, data: Dict[str, Any]) -> 'StepDescriptor':
        step_id = data.get('id')
        return cls(
            index=index,
            id=str(step_id) if step_id is not None else None,
            name=data.get('name'),
            run=data.get('run'),
            uses=data.get('uses'),
            with_=dict(data.get('with') or {}),
            shell=data.get('shell'),
            env=dict(data.get('env') or {}),
            working_directory=data.get('working-directory'),
        )

    @property
    def is_script(self) -> bool:
        return self.run is not None

    @property
    def is_delegate(self) -> bool:
        return self.uses is not None

    @property
    def display_name(self) -> str:
        return self.name or self.id or self.uses or 'unnamed step'


@dataclass
class ActionDescriptor:
    """Parsed action.yml."""
    name: Optional[str] = None
    description: str = ""
    inputs: Dict[str, InputSpec] = field(default_factory=dict)
    outputs: Dict[str, Optional[str]] = field(default_factory=dict)
    runs: Optional[Dict[str, Any]] = None
    steps: List[StepDescriptor] = field(default_factory=list)
    source: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Optional[Path] = None) -> 'ActionDescriptor':
        """Build a descriptor from already-validated metadata."""
        inputs = {
            name: InputSpec.from_dict(name, spec)
            for name, spec in (data.get('inputs') or {}).items()
        }

        outputs: Dict[str, Optional[str]] = {}
        for name, spec in (data.get('outputs') or {}).items():
            if isinstance(spec, dict):
                value = spec.get('value')
                outputs[name] = str(value) if value is not None else None
            else:
                outputs[name] = None

        runs = data.get('runs')
        steps = []
        if isinstance(runs, dict) and isinstance(runs.get('steps'), list):
            steps = [StepDescriptor.from_dict(i, step) for i, step in enumerate(runs['steps'])]

        return cls(
            name=data.get('name'),
            description=str(data.get('description', '') or ''),
            inputs=inputs,
            outputs=outputs,
            runs=runs,
            steps=steps,
            source=source,
        )

    @property
    def using(self) -> Optional[str]:
        if not self.runs:
            return None
        using = self.runs.get('using')
        return str(using) if using is not None else None

    @property
    def input_defaults(self) -> Dict[str, Any]:
        return {name: spec.default for name, spec in self.inputs.items() if spec.default is not None}

    @property
    def display_name(self) -> str:
        return self.name or 'Unnamed Action'


def classify(descriptor: ActionDescriptor) -> ActionKind:
    """
    Determine how an action runs.

    Raises:
        MalformedDescriptor: If the runs section is absent
    """
    runs = descriptor.runs
    if not runs:
        raise MalformedDescriptor('Invalid action metadata: missing "runs" section')

    using = descriptor.using
    if using in SCRIPTED_RUNTIMES:
        return ActionKind.SCRIPTED
    if using == 'docker' or runs.get('image'):
        return ActionKind.CONTAINERIZED
    if using == 'composite':
        return ActionKind.COMPOSITE
    return ActionKind.UNKNOWN
