"""Repository coordinates from the local git checkout."""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import Callable, List, Optional

from ..schemas import RepositoryInfo

logger = logging.getLogger(__name__)

_SCP_URL = re.compile(r"^[\w.-]+@([^:/]+):(.+)$")
_SSH_URL = re.compile(r"^ssh://(?:[\w.-]+@)?([^/:]+)(?::\d+)?/(.+)$")

Runner = Callable[..., subprocess.CompletedProcess]


def normalize_git_url(url: str) -> str:
    """Normalise remote URLs to ``https://host/owner/repo``."""
    url = url.strip()
    match = _SCP_URL.match(url) or _SSH_URL.match(url)
    if match:
        url = f"https://{match.group(1)}/{match.group(2)}"
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url


def find_git_root(path: Path) -> Optional[Path]:
    """Closest directory at or above path that contains ``.git``."""
    start = path.resolve()
    if not start.is_dir():
        start = start.parent
    for directory in (start, *start.parents):
        if (directory / ".git").exists():
            return directory
    return None


class GitInfoExtractor:
    """Reads url, branch, commit and dirty flag with the git CLI."""

    def __init__(self, executable: str = "git", runner: Optional[Runner] = None, timeout: int = 10):
        self.executable = executable
        self.runner = runner or subprocess.run
        self.timeout = timeout

    def _git(self, repo_root: Path, args: List[str]) -> Optional[str]:
        try:
            proc = self.runner(
                [self.executable, *args],
                cwd=str(repo_root),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("git %s failed: %s", " ".join(args), e)
            return None
        if proc.returncode != 0:
            return None
        return proc.stdout.strip()

    def extract(self, file_path: Path) -> RepositoryInfo:
        repo_root = find_git_root(Path(file_path))
        if repo_root is None:
            return RepositoryInfo()

        remote = self._git(repo_root, ["config", "--get", "remote.origin.url"])
        branch = self._git(repo_root, ["rev-parse", "--abbrev-ref", "HEAD"])
        commit = self._git(repo_root, ["rev-parse", "HEAD"])
        status = self._git(repo_root, ["status", "--porcelain"])
        return RepositoryInfo(
            url=normalize_git_url(remote) if remote else None,
            branch=branch or None,
            commit=commit or None,
            dirty=bool(status) if status is not None else False,
        )
