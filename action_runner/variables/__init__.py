"""
Variable handling: input keys, boolean inputs, defaults and expressions.
"""

from .env_keys import env_key, get_input, set_input, has_input, step_output_env_key
from .defaults import apply_defaults, check_required_input
from .substitution import ExpressionSubstitutor, SubstitutionContext, step_output_key

__all__ = [
    'env_key',
    'get_input',
    'set_input',
    'has_input',
    'step_output_env_key',
    'apply_defaults',
    'check_required_input',
    'ExpressionSubstitutor',
    'SubstitutionContext',
    'step_output_key',
]
