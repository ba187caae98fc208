"""
Execution module for the action runner.
Handles process execution and step output capture.
"""

from .output_capture import FileCommandFiles, FileCommands, parse_output_text, parse_file_commands
from .step_executor import StepExecutor

__all__ = [
    "FileCommandFiles",
    "FileCommands",
    "parse_output_text",
    "parse_file_commands",
    "StepExecutor",
]
