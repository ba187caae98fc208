"""
Default value handling for declared action inputs.

Defaults are merged into the scoped environment only for inputs the caller
did not provide. Only names are ever logged, since defaults and provided
values may both be secrets.
"""

import logging
from typing import Any, Iterable, List, Mapping, MutableMapping

from ..exceptions import RequiredInputMissing
from .env_keys import has_input, set_input

logger = logging.getLogger(__name__)


def stringify_default(value: Any) -> str:
    """Render a declared default the way the platform passes it to actions."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def apply_defaults(
    env: MutableMapping[str, str],
    inputs: Mapping[str, Any],
    excluded: Iterable[str] = ()
) -> List[str]:
    """
    Apply declared input defaults to an environment.

    Args:
        env: Scoped environment to modify in place
        inputs: Mapping of input name -> InputSpec (or raw dict with 'default'/'required')
        excluded: Input names to leave alone (the runner's own parameters)

    Returns:
        Names of the inputs whose default was applied
    """
    if not inputs:
        return []

    excluded = set(excluded)
    applied = []

    for input_name, spec in inputs.items():
        if input_name in excluded:
            continue

        default = _field(spec, 'default')
        required = _field(spec, 'required') is True

        if default is not None and not has_input(env, input_name):
            set_input(env, input_name, stringify_default(default))
            applied.append(input_name)
            logger.debug(f"Applied default for input '{input_name}' (type: {type(default).__name__})")
        elif required and not has_input(env, input_name):
            # Required-ness is advisory here; the action decides what to do
            check_required_input(env, input_name)

    return applied


def check_required_input(
    env: MutableMapping[str, str],
    input_name: str,
    error_on_missing: bool = False
) -> bool:
    """
    Check that a required input is present.

    Returns:
        True if present, False if missing (and not raising)

    Raises:
        RequiredInputMissing: If missing and error_on_missing is set
    """
    if has_input(env, input_name):
        return True

    error = RequiredInputMissing(input_name)
    if error_on_missing:
        raise error
    logger.warning(str(error))
    return False


def _field(spec: Any, name: str) -> Any:
    if isinstance(spec, Mapping):
        return spec.get(name)
    return getattr(spec, name, None)
