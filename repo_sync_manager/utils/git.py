"""Disposable local git repositories used for history analysis and cross-platform pushes."""

import shutil
import tempfile
import time
from enum import Enum
from pathlib import Path
from types import TracebackType
from typing import Self

import structlog
from git import Repo

from repo_sync_manager.utils.constants import GIT_USER_EMAIL, GIT_USER_NAME
from repo_sync_manager.utils.helpers import redact_url

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class WorkspaceState(Enum):
    """Lifecycle of a GitWorkspace."""

    UNINITIALIZED = "uninitialized"
    TEMP_REPO_READY = "temp-repo-ready"
    REMOTES_ADDED = "remotes-added"
    FETCHED = "fetched"
    ANALYZED = "analyzed"
    CLEANED_UP = "cleaned-up"


class GitWorkspace:
    """A bare repository in a uniquely named temporary directory, removed on exit.

    Use as a context manager. The directory is removed on every exit path, including when
    initialization itself fails.
    """

    def __init__(self, root: Path | None = None) -> None:
        """Initialize the workspace without touching the filesystem."""
        self.root = root
        self.path: Path | None = None
        self.state = WorkspaceState.UNINITIALIZED
        self._repo: Repo | None = None

    @property
    def repo(self) -> Repo:
        """The underlying GitPython repository."""
        if self._repo is None:
            raise RuntimeError("Workspace is not initialized")
        return self._repo

    def __enter__(self) -> Self:
        """Create the temporary directory and initialize an empty repository in it."""
        self.path = Path(tempfile.mkdtemp(prefix=f".tmp-timeline-{int(time.time() * 1000)}-", dir=self.root))
        try:
            self._repo = Repo.init(self.path, bare=True)
            with self._repo.config_writer() as config:
                config.set_value("user", "name", GIT_USER_NAME)
                config.set_value("user", "email", GIT_USER_EMAIL)
            self._repo.git.update_environment(GIT_TERMINAL_PROMPT="0")
        except BaseException:
            self.cleanup()
            raise
        self.state = WorkspaceState.TEMP_REPO_READY
        logger.debug("Created temporary git workspace", path=str(self.path))
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Remove the temporary directory."""
        self.cleanup()

    def cleanup(self) -> None:
        """Remove the temporary directory if it still exists."""
        if self._repo is not None:
            self._repo.close()
        if self.path is not None:
            shutil.rmtree(self.path, ignore_errors=True)
            logger.debug("Removed temporary git workspace", path=str(self.path))
        self.state = WorkspaceState.CLEANED_UP

    def add_remotes(self, **remotes: str) -> None:
        """Add named remotes."""
        for name, url in remotes.items():
            self.repo.create_remote(name, url)
            logger.debug("Added remote", remote=name, url=redact_url(url))
        self.state = WorkspaceState.REMOTES_ADDED

    def fetch_branch(self, remote: str, branch: str) -> str:
        """Fetch one branch of a remote and return the local ref holding it."""
        local_ref = f"refs/remotes/{remote}/{branch}"
        self.repo.git.fetch("--no-tags", remote, f"+refs/heads/{branch}:{local_ref}")
        self.state = WorkspaceState.FETCHED
        return local_ref

    def merge_base(self, left: str, right: str) -> str | None:
        """Return the best common ancestor of two refs, or None when the histories are unrelated."""
        bases = self.repo.merge_base(left, right)
        if not bases:
            return None
        return bases[0].hexsha

    def rev_list(self, revision_range: str) -> list[str]:
        """List the commits of a revision range, newest first."""
        output = self.repo.git.rev_list(revision_range)
        return output.split()

    def mark_analyzed(self) -> None:
        """Record that the analysis finished."""
        self.state = WorkspaceState.ANALYZED

    def push(self, remote: str, refspec: str, force: bool = False) -> None:
        """Push a refspec to a remote."""
        args = ["--force"] if force else []
        self.repo.git.push(*args, remote, refspec)
