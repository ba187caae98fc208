"""
Boolean input handling per the YAML 1.2 core schema.

Inputs always travel as strings; these helpers recognise the accepted
spellings without rewriting a valid value into another spelling.
"""

from typing import Any, Optional

YAML_TRUE_VALUES = frozenset({
    'true', 'True', 'TRUE',
    'y', 'Y', 'yes', 'Yes', 'YES',
    'on', 'On', 'ON',
})

YAML_FALSE_VALUES = frozenset({
    'false', 'False', 'FALSE',
    'n', 'N', 'no', 'No', 'NO',
    'off', 'Off', 'OFF',
})

SUPPORTED_SPELLINGS = (
    "true | True | TRUE | false | False | FALSE | y | Y | yes | Yes | YES | "
    "n | N | no | No | NO | on | On | ON | off | Off | OFF"
)


def is_yaml_boolean(value: Any, trim: bool = True) -> bool:
    """Return True if value is one of the accepted boolean spellings."""
    if not isinstance(value, str):
        return False
    candidate = value.strip() if trim else value
    return candidate in YAML_TRUE_VALUES or candidate in YAML_FALSE_VALUES


def parse_yaml_boolean(value: Any, trim: bool = True) -> Optional[bool]:
    """Convert a boolean spelling to bool, or None when it is not one."""
    if not isinstance(value, str):
        return None
    candidate = value.strip() if trim else value
    if candidate in YAML_TRUE_VALUES:
        return True
    if candidate in YAML_FALSE_VALUES:
        return False
    return None


def validate_boolean_input(value: Any, required: bool = False, trim: bool = True) -> Optional[str]:
    """
    Validate a boolean input, preserving its original spelling.

    Args:
        value: Raw input value (string or bool)
        required: Raise instead of returning None for missing/invalid values
        trim: Strip surrounding whitespace before validating

    Returns:
        The (trimmed) valid spelling, or None

    Raises:
        ValueError: If required and the value is empty or not a boolean
    """
    if value is None or value == '':
        if required:
            raise ValueError("Required boolean input is empty or not provided")
        return None

    if isinstance(value, bool):
        return 'true' if value else 'false'

    if isinstance(value, str):
        candidate = value.strip() if trim else value
        if is_yaml_boolean(candidate, trim=False):
            return candidate

    if required:
        raise ValueError(
            f"Input does not meet YAML 1.2 'Core Schema' specification: {value}\n"
            f"Support boolean input list: {SUPPORTED_SPELLINGS}"
        )
    return None
