"""
Input name to environment key mapping.

Mirrors the hosted platform's convention: the name is uppercased and spaces
become underscores, but hyphens are kept. Composite actions with hyphenated
inputs depend on this exact rule.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, MutableMapping, Optional

logger = logging.getLogger(__name__)

INPUT_PREFIX = "INPUT_"

# Characters that cannot appear in a shell variable name
_SHELL_UNSAFE = re.compile(r'[^A-Za-z0-9_]')


def env_key(input_name: str) -> str:
    """Return the environment key backing an input, e.g. INPUT_MY-INPUT."""
    return f"{INPUT_PREFIX}{input_name.replace(' ', '_').upper()}"


def get_input(env: MutableMapping[str, str], input_name: str, trim: bool = True) -> Optional[str]:
    """Return an input's value, or None if it was never set."""
    value = env.get(env_key(input_name))
    if value is None:
        return None
    return value.strip() if trim else value


def set_input(env: MutableMapping[str, str], input_name: str, value: Any, trim: bool = True) -> None:
    """Store an input under its environment key, stringified."""
    if isinstance(value, bool):
        string_value = 'true' if value else 'false'
    elif isinstance(value, str):
        string_value = value
    else:
        string_value = str(value)
    env[env_key(input_name)] = string_value.strip() if trim else string_value


def has_input(env: MutableMapping[str, str], input_name: str) -> bool:
    """Check whether an input key exists, regardless of its value."""
    return env_key(input_name) in env


def strip_input_prefix(env: Dict[str, str], excluded: Iterable[str] = ()) -> List[str]:
    """
    Remap inputs passed through with an extra ``input-`` prefix.

    A wrapper action that forwards an input named ``input-debug`` sees it as
    ``INPUT_INPUT-DEBUG``; the wrapped action expects ``INPUT_DEBUG``. Values
    are moved unchanged so boolean spellings survive.

    Args:
        env: Environment to rewrite in place
        excluded: Input names that belong to the runner itself

    Returns:
        Names of the remapped inputs (never their values)
    """
    excluded = set(excluded)
    remapped = []

    for key in list(env.keys()):
        if not key.startswith(INPUT_PREFIX):
            continue

        raw_name = key[len(INPUT_PREFIX):].lower()
        if raw_name in excluded or not raw_name.startswith('input-'):
            continue

        stripped = raw_name[len('input-'):]
        env[env_key(stripped)] = env.pop(key)
        logger.info(f"Mapped input-prefixed parameter: {raw_name} -> {stripped}")
        remapped.append(stripped)

    return remapped


def step_output_env_key(step_id: str, output_name: str) -> str:
    """Environment key that mirrors a captured step output for later scripts."""
    key = f"STEPS_{step_id}_OUTPUTS_{output_name}".upper()
    return _SHELL_UNSAFE.sub('_', key)
