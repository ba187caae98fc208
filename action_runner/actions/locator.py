"""
Action reference resolution.

Reference grammar:
- ./X, ../X            local, relative to the calling action (then the workspace)
- owner/repo[/path]@ref  hosted, explicit version
- owner/repo[/path]      hosted, default branch
- container://IMAGE[:TAG] or docker://IMAGE[:TAG]  container image, never on disk

Local resolution never lets a reference escape both the caller directory and
the workspace root; hosted checkouts are always owned by the caller.
"""

import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from ..exceptions import ActionNotFound, InvalidReferencePath, PathEscapesRepository
from ..loader import find_metadata_file, METADATA_FILENAMES
from .retriever import GitActionRetriever

logger = logging.getLogger(__name__)

CONTAINER_PREFIXES = ('container://', 'docker://')

HOSTED_PATTERN = re.compile(
    r'^(?P<owner>[A-Za-z0-9_.-]+)/(?P<repo>[A-Za-z0-9_.-]+)(?:/(?P<path>[^@]+?))?(?:@(?P<ref>.+))?$'
)


@dataclass
class LocationResult:
    """Where a referenced action lives and who must clean it up."""
    reference: str
    path: Optional[Path] = None
    cleanup_dir: Optional[Path] = None
    image: Optional[str] = None

    @property
    def owns_cleanup(self) -> bool:
        return self.cleanup_dir is not None

    @property
    def is_container(self) -> bool:
        return self.image is not None

    def cleanup(self) -> None:
        """Remove a retrieved checkout. Local references are never touched."""
        if self.cleanup_dir is None:
            return
        try:
            shutil.rmtree(self.cleanup_dir)
            logger.debug(f"Removed action directory {self.cleanup_dir}")
        except OSError as e:
            logger.warning(f"Failed to clean up action directory {self.cleanup_dir}: {e}")
        finally:
            self.cleanup_dir = None


def is_local_reference(reference: str) -> bool:
    return reference.startswith('./') or reference.startswith('../')


def parse_hosted_reference(reference: str, default_ref: str) -> Tuple[str, str, Optional[str], str]:
    """
    Split owner/repo[/path][@ref] into its parts.

    Returns:
        (owner, repo, path or None, ref), with ref defaulting to default_ref

    Raises:
        InvalidReferencePath: If the reference is not in hosted form
    """
    match = HOSTED_PATTERN.match(reference)
    if not match:
        raise InvalidReferencePath(reference)

    ref = match.group('ref') or default_ref
    sub_path = match.group('path')
    if sub_path and ('..' in Path(sub_path).parts or sub_path.startswith('/')):
        raise InvalidReferencePath(reference)
    return match.group('owner'), match.group('repo'), sub_path, ref


class ActionLocator:
    """Resolves action references to directories (or container images)."""

    def __init__(
        self,
        workspace: Path,
        retriever: Optional[GitActionRetriever] = None,
        default_ref: str = "main"
    ):
        """
        Initialize locator.

        Args:
            workspace: Repository root local references may resolve into
            retriever: Clones hosted actions
            default_ref: Ref used when a hosted reference has no @ref
        """
        self.workspace = Path(workspace).resolve()
        self.retriever = retriever or GitActionRetriever()
        self.default_ref = default_ref

    def locate(self, reference: str, caller_dir: Path) -> LocationResult:
        """
        Resolve a reference as seen from the calling action's directory.

        Raises:
            InvalidReferencePath: Unsafe or unparseable reference
            PathEscapesRepository: Local reference escapes caller dir and workspace
            ActionNotFound: No metadata at either local candidate
            ActionRetrievalError: Hosted checkout failed
        """
        reference = reference.strip()

        for prefix in CONTAINER_PREFIXES:
            if reference.startswith(prefix):
                image = reference[len(prefix):]
                if not image:
                    raise InvalidReferencePath(reference)
                logger.info(f"Resolved container image reference: {image}")
                return LocationResult(reference=reference, image=image)

        if is_local_reference(reference):
            return LocationResult(reference=reference, path=self._locate_local(reference, caller_dir))

        if '/' in reference:
            return self._locate_hosted(reference)

        raise InvalidReferencePath(reference)

    def _locate_local(self, reference: str, caller_dir: Path) -> Path:
        if '\\' in reference or '//' in reference:
            raise InvalidReferencePath(reference)

        caller_dir = Path(caller_dir).resolve()

        # First, try resolving relative to the calling action
        from_caller = (caller_dir / reference).resolve()
        if not (self._within(from_caller, caller_dir) or self._within(from_caller, self.workspace)):
            raise PathEscapesRepository(reference, str(from_caller))

        logger.debug(f"Checking for action relative to caller: {from_caller}")
        if find_metadata_file(from_caller) is not None:
            logger.info(f"Resolved local action {reference} (relative to caller): {from_caller}")
            return from_caller

        # Then relative to the workspace root, without the leading ./
        without_dot = reference[2:] if reference.startswith('./') else reference
        from_workspace = (self.workspace / without_dot).resolve()
        if not self._within(from_workspace, self.workspace):
            raise PathEscapesRepository(reference, str(from_workspace))

        logger.debug(f"Checking for action relative to workspace: {from_workspace}")
        if find_metadata_file(from_workspace) is not None:
            logger.info(f"Resolved local action {reference} (relative to workspace): {from_workspace}")
            return from_workspace

        raise ActionNotFound(
            reference,
            [str(from_caller / METADATA_FILENAMES[0]), str(from_workspace / METADATA_FILENAMES[0])]
        )

    def _locate_hosted(self, reference: str) -> LocationResult:
        owner, repo, sub_path, ref = parse_hosted_reference(reference, self.default_ref)
        if '@' not in reference:
            logger.info(f"Hosted action {reference} has no ref, using {ref}")

        checkout = self.retriever.retrieve(owner, repo, ref)
        result = LocationResult(reference=reference, path=checkout, cleanup_dir=checkout)

        if sub_path:
            action_dir = (checkout / sub_path).resolve()
            if not self._within(action_dir, checkout.resolve()):
                result.cleanup()
                raise PathEscapesRepository(reference, str(action_dir))
            result.path = action_dir

        if find_metadata_file(result.path) is None:
            attempted = [str(result.path / name) for name in METADATA_FILENAMES]
            result.cleanup()
            raise ActionNotFound(reference, attempted)

        logger.info(f"Retrieved hosted action {reference} to {result.path}")
        return result

    @staticmethod
    def _within(path: Path, root: Path) -> bool:
        try:
            path.relative_to(root)
            return True
        except ValueError:
            return False
