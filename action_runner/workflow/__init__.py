"""
Action execution: kind dispatch and composite step interpretation.
"""

from .executor import ActionEngine

__all__ = ['ActionEngine']
