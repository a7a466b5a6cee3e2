"""
Git History Service
===================
Bounded version-control introspection used by the owner resolver and the
incident engine.

Philosophy:
    - Read-only commands only (blame, log, diff --name-only).
    - Every call has a short timeout.
    - Fail soft: a missing git binary, a non-repository, a timeout or a
      non-zero exit all mean "no answer", never an exception.

GitHistory is the injected capability; tests supply canned answers instead
of running real git.
"""
import subprocess
import logging
from typing import List, Optional, Protocol

from greenlit.core.config import GIT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class GitHistory(Protocol):
    def blame_author(self, file_path: str, line: int) -> Optional[str]: ...

    def last_commit_author(self, file_path: str) -> Optional[str]: ...

    def changed_files(self) -> List[str]: ...

    def recent_commits(self, count: int = 5) -> List[str]: ...


def parse_blame_porcelain(output: str) -> Optional[str]:
    """
    Extract "Author <mail>" from `git blame --porcelain` output.

    Returns None when no author is present or the line is not committed yet.
    """
    author = None
    mail = None
    for line in output.split("\n"):
        if line.startswith("author "):
            author = line[len("author "):].strip()
        elif line.startswith("author-mail "):
            mail = line[len("author-mail "):].strip()

    if not author or author == "Not Committed Yet":
        return None
    return f"{author} {mail}" if mail else author


class SubprocessGitHistory:
    """
    GitHistory backed by the git CLI, run inside a repository checkout.
    """

    def __init__(self, repo_path: str = ".", timeout: float = GIT_TIMEOUT_SECONDS) -> None:
        self.repo_path = repo_path
        self.timeout = timeout

    def _run(self, args: List[str]) -> Optional[str]:
        """Run a git command; stdout on success, None on any failure."""
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=self.repo_path,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
            return result.stdout
        except subprocess.TimeoutExpired:
            logger.warning("git %s timed out after %.1fs", args[0], self.timeout)
            return None
        except subprocess.CalledProcessError as e:
            logger.debug("git %s failed: %s", args[0], (e.stderr or "").strip())
            return None
        except OSError as e:
            logger.debug("git unavailable: %s", e)
            return None

    def blame_author(self, file_path: str, line: int) -> Optional[str]:
        output = self._run(["blame", "-L", f"{line},{line}", "--porcelain", "--", file_path])
        if not output:
            return None
        return parse_blame_porcelain(output)

    def last_commit_author(self, file_path: str) -> Optional[str]:
        output = self._run(["log", "-1", "--format=%an <%ae>", "--", file_path])
        if not output:
            return None
        return output.strip() or None

    def changed_files(self) -> List[str]:
        output = self._run(["diff", "--name-only", "HEAD~1"])
        if output is None:
            output = self._run(["diff", "--name-only", "HEAD"])
        if not output:
            return []
        return [line for line in output.strip().split("\n") if line]

    def recent_commits(self, count: int = 5) -> List[str]:
        output = self._run(["log", "--oneline", "-n", str(count)])
        if not output:
            return []
        return [line for line in output.strip().split("\n") if line]
