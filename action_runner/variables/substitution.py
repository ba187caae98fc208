"""
Expression substitution for action metadata.

Handles the three ${{ }} forms composite actions rely on:
- inputs:  ${{ inputs.NAME }}
- steps:   ${{ steps.ID.outputs.NAME }}
- github:  ${{ github.action_path }}

Anything else inside ${{ }} is left verbatim so unsupported context data is
never exposed.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Union

from .defaults import stringify_default
from .env_keys import env_key


@dataclass
class SubstitutionContext:
    """Values visible to expressions at one execution level."""
    env: Mapping[str, str] = field(default_factory=dict)
    step_outputs: Mapping[str, str] = field(default_factory=dict)
    action_path: str = ""
    input_defaults: Mapping[str, Any] = field(default_factory=dict)


def step_output_key(step_id: str, output_name: str) -> str:
    """Step-output table key for one captured value."""
    return f"steps.{step_id}.outputs.{output_name}"


class ExpressionSubstitutor:
    """
    Rewrites supported expressions in strings and data structures.

    The three forms are matched independently in a single scan of the input,
    so a substituted value is never scanned again and the order of the
    rewrites cannot matter.
    """

    INPUTS_PATTERN = r'\$\{\{\s*inputs\.(?P<input>[A-Za-z0-9_-]+)\s*\}\}'
    STEPS_PATTERN = (
        r'\$\{\{\s*steps\.(?P<step>[A-Za-z0-9_-]+)\.outputs\.(?P<output>[A-Za-z0-9_-]+)\s*\}\}'
    )
    ACTION_PATH_PATTERN = r'\$\{\{\s*github\.action_path\s*\}\}'

    EXPRESSION_PATTERN = re.compile(
        '|'.join([
            f'(?P<inputs>{INPUTS_PATTERN})',
            f'(?P<steps>{STEPS_PATTERN})',
            f'(?P<action_path>{ACTION_PATH_PATTERN})',
        ])
    )

    def substitute(
        self,
        value: Union[str, List, Dict, Any],
        context: SubstitutionContext
    ) -> Union[str, List, Dict, Any]:
        """
        Substitute expressions in a value (string, list, or dict).

        Args:
            value: The value to substitute expressions in
            context: Environment, step outputs and action path to resolve against

        Returns:
            Value with supported expressions substituted
        """
        if isinstance(value, str):
            return self._substitute_string(value, context)
        elif isinstance(value, list):
            return [self.substitute(item, context) for item in value]
        elif isinstance(value, dict):
            return {k: self.substitute(v, context) for k, v in value.items()}
        else:
            # Non-string/list/dict values pass through unchanged
            return value

    def _substitute_string(self, text: str, context: SubstitutionContext) -> str:
        if '${{' not in text:
            return text

        def replace(match):
            if match.group('inputs'):
                return self.resolve_input(match.group('input'), context)
            if match.group('steps'):
                key = step_output_key(match.group('step'), match.group('output'))
                return context.step_outputs.get(key, '')
            return context.action_path

        return self.EXPRESSION_PATTERN.sub(replace, text)

    def resolve_input(self, input_name: str, context: SubstitutionContext) -> str:
        """
        Resolve inputs.NAME: scoped environment, then declared default, then ''.
        """
        value = context.env.get(env_key(input_name))
        if value is not None:
            return value

        default = context.input_defaults.get(input_name)
        if default is not None:
            return stringify_default(default)

        return ''
