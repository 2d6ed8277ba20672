import logging
import subprocess
from pathlib import Path

from .constants import APP_NAME
from .errors import GitOperationError

logger = logging.getLogger(APP_NAME)


class Git:
    """A wrapper around the Git command-line interface for one working directory.

    This class provides methods to execute the Git operations the provisioning
    workflows need using `subprocess`, abstracting away command construction
    and output handling. Unlike a repository handle it may point at a directory
    that has no git metadata yet (before `init` or `clone`).

    Attributes:
        path (Path): The directory commands run in.
    """

    def __init__(self, path: Path):
        self.path = path

    def _run(self, args: list[str], capture: bool = True) -> str:
        """Executes a Git command within the directory.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            capture (bool, optional):   Whether to capture and return stdout.
                                        Defaults to True.

        Returns:
            str:    The stripped stdout of the command if capture is True,
                    otherwise an empty string.

        Raises:
            GitOperationError: If git cannot be started or exits non-zero.
        """
        operation = args[0] if args else "git"
        logger.debug(f"git {' '.join(args)} (in {self.path})")
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=capture,
                text=True,
                check=True,
            )
            return res.stdout.strip() if capture else ""
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() or str(e)
            raise GitOperationError(
                operation,
                f"git {' '.join(args)} failed: {detail}",
                returncode=e.returncode,
            ) from e
        except OSError as e:
            raise GitOperationError(operation, f"Unable to run git: {e}") from e

    def has_dot_git(self) -> bool:
        """Whether the directory itself is a repository root."""
        return (self.path / ".git").exists()

    def remotes(self) -> dict[str, str]:
        """Maps each configured remote name to its fetch URL.

        Returns:
            dict[str, str]: Remote names to URLs; empty outside a repository.
        """
        if not self.has_dot_git():
            return {}
        output = self._run(["remote", "-v"])
        remotes: dict[str, str] = {}
        for line in output.splitlines():
            parts = line.split()
            if len(parts) >= 2 and (len(parts) < 3 or parts[2] == "(fetch)"):
                remotes[parts[0]] = parts[1]
        return remotes

    def remote_add(self, name: str, url: str) -> None:
        self._run(["remote", "add", name, url], capture=False)

    def init(self) -> None:
        self._run(["init"], capture=False)

    def add_all(self) -> None:
        """
        Stages all changes (modified, deleted, and untracked files)
        in the working directory.
        """
        self._run(["add", "."], capture=False)

    def commit(self, message: str) -> None:
        self._run(["commit", "-m", message], capture=False)

    def status_porcelain(self) -> list[str]:
        output = self._run(["status", "--porcelain"])
        return output.splitlines() if output else []

    def push(self, remote: str, refspec: str, set_upstream: bool = False) -> None:
        """Pushes a refspec to a remote.

        Args:
            remote (str): The remote name.
            refspec (str): The refspec (e.g. 'HEAD:refs/heads/master').
            set_upstream (bool, optional): Pass `-u` so the current branch tracks
                                           the pushed ref. Defaults to False.
        """
        cmd = ["push"]
        if set_upstream:
            cmd.append("-u")
        cmd.extend([remote, refspec])
        self._run(cmd, capture=False)

    def fetch_all(self) -> None:
        self._run(["fetch", "--all"], capture=False)

    def clone(self, url: str, target: str | Path, origin: str) -> None:
        """Clones `url` into `target` (relative to this directory).

        Args:
            url (str): The repository URL.
            target (str | Path): The directory to create.
            origin (str): The name given to the cloned-from remote.
        """
        self._run(["clone", "-o", origin, url, str(target)], capture=False)

    def rebase(self, onto: str) -> None:
        self._run(["rebase", onto], capture=False)

    def rev_parse(self, rev: str) -> str | None:
        """Resolves a revision to a full SHA-1 hash.

        Args:
            rev (str): The revision to parse (e.g., 'mortar/master').

        Returns:
            Optional[str]:  The full SHA-1 hash,
                            or None if the revision could not be resolved.
        """
        try:
            return self._run(["rev-parse", "--verify", "--quiet", rev])
        except GitOperationError as e:
            logger.debug(f"rev-parse failed for '{rev}': {e}")
            return None
