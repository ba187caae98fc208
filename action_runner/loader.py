"""Action metadata loader and strict structural validation."""

from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml

from action_runner.actions.descriptor import ActionDescriptor
from action_runner.exceptions import ActionNotFound, MalformedDescriptor, ValidationError


METADATA_FILENAMES = ('action.yml', 'action.yaml')


class PreservingLoader(yaml.SafeLoader):
    """Custom YAML loader that preserves string keys like 'on' instead of converting to bool."""
    pass


# Override the implicit resolver for boolean values to prevent 'on' from being converted to True
# This removes the implicit tag resolvers that convert strings like 'on', 'off' to booleans
PreservingLoader.yaml_implicit_resolvers = dict(PreservingLoader.yaml_implicit_resolvers)
for _first in ('o', 'O'):
    if _first in PreservingLoader.yaml_implicit_resolvers:
        PreservingLoader.yaml_implicit_resolvers[_first] = [
            (tag, regexp) for tag, regexp in PreservingLoader.yaml_implicit_resolvers[_first]
            if tag != 'tag:yaml.org,2002:bool'
        ]


def find_metadata_file(action_dir: Path) -> Optional[Path]:
    """Return action.yml or action.yaml directly inside action_dir, if present."""
    for filename in METADATA_FILENAMES:
        candidate = action_dir / filename
        if candidate.is_file():
            return candidate
    return None


class ActionLoader:
    """Loads and validates action metadata."""

    def __init__(self):
        self.errors: List[ValidationError] = []

    def load(self, action_dir: Path) -> ActionDescriptor:
        """Load action.yml/action.yaml from an action directory."""
        metadata_path = find_metadata_file(Path(action_dir))
        if metadata_path is None:
            raise ActionNotFound(
                str(action_dir),
                [str(Path(action_dir) / name) for name in METADATA_FILENAMES]
            )
        return self.load_file(metadata_path)

    def load_file(self, metadata_path: Path) -> ActionDescriptor:
        """Load and validate one metadata file."""
        self.errors = []
        try:
            with open(metadata_path, 'r') as f:
                data = yaml.load(f, Loader=PreservingLoader)
        except (OSError, yaml.YAMLError) as e:
            self._add_error(f"Failed to load action metadata: {e}", str(metadata_path))
            self._raise_validation_errors()

        return self.parse(data, source=metadata_path)

    def parse(self, data: Any, source: Optional[Path] = None) -> ActionDescriptor:
        """Validate already-parsed metadata and build a descriptor."""
        self.errors = []

        if data is None or not isinstance(data, dict):
            self._add_error("Action metadata must be a YAML object/dictionary")
            self._raise_validation_errors()

        self._validate_top_level(data)

        runs = data.get('runs')
        if isinstance(runs, dict) and runs.get('using') == 'composite':
            self._validate_steps(runs.get('steps'))

        if self.errors:
            self._raise_validation_errors()

        return ActionDescriptor.from_dict(data, source=source)

    def _validate_top_level(self, data: Dict[str, Any]):
        """Validate the shape of top-level fields. The runs section itself is optional here."""
        for mapping_field in ('inputs', 'outputs'):
            if mapping_field in data and data[mapping_field] is not None:
                if not isinstance(data[mapping_field], dict):
                    self._add_error(f"'{mapping_field}' must be a dictionary")

        if isinstance(data.get('inputs'), dict):
            for name, spec in data['inputs'].items():
                if spec is not None and not isinstance(spec, dict):
                    self._add_error(f"Input '{name}' must be a dictionary")

        if 'runs' in data and data['runs'] is not None and not isinstance(data['runs'], dict):
            self._add_error("'runs' must be a dictionary")

    def _validate_steps(self, steps: Any):
        """Validate composite step definitions."""
        if steps is None:
            # Empty or missing steps are rejected when the action runs
            return
        if not isinstance(steps, list):
            self._add_error("'runs.steps' must be a list")
            return

        step_ids = set()

        for i, step in enumerate(steps):
            if not isinstance(step, dict):
                self._add_error(f"Step {i + 1} must be a dictionary")
                continue

            label = step.get('name') or step.get('id') or f"<step_{i + 1}>"

            step_id = step.get('id')
            if step_id is not None:
                if step_id in step_ids:
                    self._add_error(f"Duplicate step id '{step_id}'")
                step_ids.add(step_id)

            # run and uses are mutually exclusive
            if 'run' in step and 'uses' in step:
                self._add_error(f"Step '{label}': mutually exclusive fields ['run', 'uses']")

            if 'run' in step and not isinstance(step['run'], str):
                self._add_error(f"Step '{label}': 'run' must be a string")
            if 'uses' in step and not isinstance(step['uses'], str):
                self._add_error(f"Step '{label}': 'uses' must be a string")

            for mapping_field in ('with', 'env'):
                if mapping_field in step and step[mapping_field] is not None:
                    if not isinstance(step[mapping_field], dict):
                        self._add_error(f"Step '{label}': '{mapping_field}' must be a dictionary")

    def _add_error(self, message: str, path: str = "", exit_code: int = 2):
        """Add validation error."""
        self.errors.append(ValidationError(message, path, exit_code))

    def _raise_validation_errors(self):
        """Raise MalformedDescriptor with accumulated errors."""
        raise MalformedDescriptor(errors=self.errors)
