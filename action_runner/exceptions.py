"""Action runner exceptions."""

from typing import List, Optional, Sequence
from dataclasses import dataclass


@dataclass
class ValidationError:
    """Single validation error."""
    message: str
    path: str = ""
    exit_code: int = 2


class ActionRunnerError(Exception):
    """Base class for all action runner failures."""

    exit_code = 1


class MalformedDescriptor(ActionRunnerError):
    """Raised when action metadata is missing its kind section or fails validation.

    The loader collects every problem it finds before raising, so the CLI can
    report them all at once.
    """

    exit_code = 2

    def __init__(self, message: str = "", errors: Optional[List[ValidationError]] = None):
        self.errors = errors or []

        if not message:
            messages = []
            for error in self.errors:
                messages.append(f"Validation error: {error.message}")
            message = "\n".join(messages)

        super().__init__(message)


class InvalidReferencePath(ActionRunnerError):
    """Raised for local references with unsafe path components."""

    exit_code = 2

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(
            f"Invalid action reference path: {reference} contains unsafe path components"
        )


class PathEscapesRepository(ActionRunnerError):
    """Raised when a local reference resolves outside the caller and workspace."""

    exit_code = 2

    def __init__(self, reference: str, resolved: str):
        self.reference = reference
        self.resolved = resolved
        super().__init__(
            f"Security error: action path would resolve outside the repository: {resolved}"
        )


class ActionNotFound(ActionRunnerError):
    """Raised when no action metadata exists at any attempted location."""

    exit_code = 2

    def __init__(self, reference: str, attempted: Sequence[str] = ()):
        self.reference = reference
        self.attempted = list(attempted)
        if self.attempted:
            tried = ", ".join(self.attempted)
            message = f"Could not find action at {reference} (tried: {tried})"
        else:
            message = f"Could not find action at {reference}"
        super().__init__(message)


class InvalidCompositeAction(ActionRunnerError):
    """Raised when a composite action has no steps to run."""

    exit_code = 2


class RequiredInputMissing(ActionRunnerError):
    """Raised when a required input is absent and the caller asked to enforce it."""

    exit_code = 2

    def __init__(self, input_name: str):
        self.input_name = input_name
        super().__init__(f"Required input '{input_name}' was not provided")


class UnsupportedActionType(ActionRunnerError):
    """Raised when a descriptor classifies as a kind the engine cannot run."""

    exit_code = 2


class ActionRecursionError(ActionRunnerError):
    """Raised when delegation re-enters an active action or nests too deeply."""

    exit_code = 2


class ActionRetrievalError(ActionRunnerError):
    """Raised when a hosted action could not be cloned at the requested ref."""


class ShellCommandError(ActionRunnerError):
    """Raised when a spawned process exits non-zero."""

    def __init__(self, command: str, exit_code: int, output: str = ""):
        self.command = command
        self.returncode = exit_code
        self.output = output
        super().__init__(f"Command '{command}' failed with exit code {exit_code}")


class StepExecutionFailed(ActionRunnerError):
    """Wraps the failure of one composite step with its 1-based index.

    Nested composite failures chain: the cause of an outer step failure may
    itself be a StepExecutionFailed from the delegated action.
    """

    def __init__(self, step_index: int, step_name: str, cause: BaseException):
        self.step_index = step_index
        self.step_name = step_name
        self.cause = cause
        super().__init__(f"Error executing step {step_index} ({step_name}): {cause}")

    @property
    def root_cause(self) -> BaseException:
        """Deepest non-step failure in the chain."""
        current: BaseException = self
        while isinstance(current, StepExecutionFailed):
            current = current.cause
        return current

    @property
    def step_path(self) -> List[int]:
        """Step indices from the outermost action down to the failing step."""
        path = []
        current: BaseException = self
        while isinstance(current, StepExecutionFailed):
            path.append(current.step_index)
            current = current.cause
        return path

    @property
    def exit_code(self) -> int:
        """Exit code of the deepest failure, so security rejections keep theirs."""
        return getattr(self.root_cause, 'exit_code', 1)
