"""
Hosted action retrieval via git.

A shallow clone of the requested ref is tried first. Commit SHAs and some
refs cannot be fetched that way, so the fallback is a full clone followed by
a checkout.
"""

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

from ..exceptions import ActionRetrievalError

logger = logging.getLogger(__name__)


class GitActionRetriever:
    """Clones hosted actions into temporary directories owned by the caller."""

    def __init__(self, server_url: str = "https://github.com", temp_root: Optional[Path] = None):
        """
        Initialize retriever.

        Args:
            server_url: Base URL of the hosting service
            temp_root: Parent directory for clones (default: system temp dir)
        """
        self.server_url = server_url.rstrip('/')
        self.temp_root = temp_root

    def repository_url(self, owner: str, repo: str) -> str:
        return f"{self.server_url}/{owner}/{repo}.git"

    def retrieve(self, owner: str, repo: str, ref: str) -> Path:
        """
        Clone owner/repo at ref.

        Returns:
            Directory holding the checkout; the caller must delete it

        Raises:
            ActionRetrievalError: If both clone strategies fail
        """
        if not owner or not repo or not ref:
            raise ActionRetrievalError(
                f"Invalid action reference: {owner}/{repo}@{ref}. Format should be owner/repo@ref"
            )

        url = self.repository_url(owner, repo)
        target = Path(tempfile.mkdtemp(prefix='action-', dir=self.temp_root))
        logger.info(f"Retrieving {owner}/{repo}@{ref} into {target}")

        try:
            self._git(['clone', '--depth', '1', '--branch', ref, url, str(target)])
            logger.info(f"Shallow-cloned {owner}/{repo} at {ref}")
            return target
        except (subprocess.CalledProcessError, OSError) as e:
            detail = getattr(e, 'stderr', None) or str(e)
            logger.warning(f"Shallow clone of {owner}/{repo}@{ref} failed, falling back to full clone: "
                           f"{str(detail).strip()}")

        try:
            self._reset_directory(target)
            self._git(['clone', url, str(target)])
            self._git(['checkout', ref], cwd=target)
            logger.info(f"Cloned {owner}/{repo} and checked out {ref}")
            return target
        except (subprocess.CalledProcessError, OSError) as e:
            shutil.rmtree(target, ignore_errors=True)
            detail = getattr(e, 'stderr', None) or str(e)
            raise ActionRetrievalError(
                f"Failed to retrieve action {owner}/{repo}@{ref}: {str(detail).strip()}"
            ) from e

    def _git(self, args: List[str], cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
        return subprocess.run(
            ['git', *args],
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            check=True,
        )

    def _reset_directory(self, directory: Path) -> None:
        """Empty a directory left behind by a failed clone, keeping the directory itself."""
        for item in directory.iterdir():
            if item.is_dir() and not item.is_symlink():
                shutil.rmtree(item)
            else:
                item.unlink()
