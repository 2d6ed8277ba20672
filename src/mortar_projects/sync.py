"""Binding a local working directory to a project's remote repository.

`GitSynchronizer` owns the project remote (conventionally ``mortar``) of the
local repository. Git itself is reached through a `GitCommands` capability so
the reconciliation rules can be exercised without a git binary.
"""

import logging
import shutil
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from .constants import (
    APP_NAME,
    BASE_REMOTE_NAME,
    DEFAULT_BRANCH,
    EMBEDDED_COMMIT_MESSAGE,
    EMBEDDED_REMOTE_FILE,
    MIRROR_DIR,
    REMOTE_NAME,
    SCAFFOLD_COMMIT_MESSAGE,
)
from .errors import CollisionError, GitOperationError
from .git_wrapper import Git

logger = logging.getLogger(APP_NAME)


class GitCommands(Protocol):
    """The git operations the synchronizer issues against one directory."""

    def has_dot_git(self) -> bool: ...

    def remotes(self) -> dict[str, str]: ...

    def remote_add(self, name: str, url: str) -> None: ...

    def init(self) -> None: ...

    def add_all(self) -> None: ...

    def commit(self, message: str) -> None: ...

    def status_porcelain(self) -> list[str]: ...

    def push(self, remote: str, refspec: str, set_upstream: bool = False) -> None: ...

    def fetch_all(self) -> None: ...

    def clone(self, url: str, target: str | Path, origin: str) -> None: ...

    def rebase(self, onto: str) -> None: ...

    def rev_parse(self, rev: str) -> str | None: ...


def read_embedded_binding(root: Path) -> str | None:
    """Returns the git URL recorded for an embedded project, if any."""
    marker = root / EMBEDDED_REMOTE_FILE
    if not marker.is_file():
        return None
    return marker.read_text().strip() or None


class GitSynchronizer:
    """Reconciles a directory's git state with a project's git URL.

    Attributes:
        root (Path): The working directory being reconciled.
        remote_name (str): The project remote name.
        base_remote_name (str): The remote a fork keeps for its source.
        default_branch (str): The remote branch pushed to.
        mirror_root (Path): Where embedded projects keep their mirror clones.
    """

    def __init__(
        self,
        root: Path,
        git_factory: Callable[[Path], GitCommands] = Git,
        remote_name: str = REMOTE_NAME,
        base_remote_name: str = BASE_REMOTE_NAME,
        default_branch: str = DEFAULT_BRANCH,
        mirror_root: Path = MIRROR_DIR,
    ):
        self.root = root
        self.git_factory = git_factory
        self.remote_name = remote_name
        self.base_remote_name = base_remote_name
        self.default_branch = default_branch
        self.mirror_root = mirror_root
        self.git = git_factory(root)

    def at(self, path: Path) -> "GitSynchronizer":
        """Returns a synchronizer with the same settings for another directory."""
        return GitSynchronizer(
            path,
            git_factory=self.git_factory,
            remote_name=self.remote_name,
            base_remote_name=self.base_remote_name,
            default_branch=self.default_branch,
            mirror_root=self.mirror_root,
        )

    @property
    def default_refspec(self) -> str:
        return f"HEAD:refs/heads/{self.default_branch}"

    def has_local_repo(self) -> bool:
        return self.git.has_dot_git()

    def remotes(self) -> dict[str, str]:
        return self.git.remotes()

    def add_remote(self, name: str, url: str) -> None:
        logger.info(f"Adding remote {name} -> {url} in {self.root}")
        self.git.remote_add(name, url)

    def push_default_branch(self, set_upstream: bool = False) -> None:
        logger.info(
            f"Pushing {self.root} to {self.remote_name}/{self.default_branch}"
        )
        self.git.push(self.remote_name, self.default_refspec, set_upstream=set_upstream)

    def clone_into(
        self, source_url: str, target_dir: str | Path, remote_name_for_source: str
    ) -> Path:
        """Clones `source_url` into `target_dir` below the root.

        Returns:
            Path: The new working directory.
        """
        logger.info(f"Cloning {source_url} into {target_dir} as {remote_name_for_source}")
        self.git.clone(source_url, target_dir, remote_name_for_source)
        return self.root / target_dir

    def check_binding(self, git_url: str) -> bool:
        """Checks the project remote against `git_url` without changing anything.

        Returns:
            bool: True if the remote already points at `git_url`, False if absent.

        Raises:
            CollisionError: If the remote exists with a different URL.
        """
        existing = self.remotes().get(self.remote_name)
        if existing is None:
            return False
        if existing != git_url:
            raise CollisionError(
                f"The {self.remote_name} remote of this repository already points "
                f"at {existing}, not {git_url}.\n"
                f"Remove it with 'git remote rm {self.remote_name}' if this "
                "directory should belong to the new project.",
                resource=self.remote_name,
            )
        return True

    def bind(self, git_url: str, push: bool = True) -> bool:
        """Points the project remote of an existing repository at `git_url`.

        Re-binding to the same URL is a no-op: nothing is added or pushed.

        Args:
            git_url (str): The project's repository URL.
            push (bool, optional): Push the current branch after adding the remote.

        Returns:
            bool: True if the remote was added, False if it was already bound.

        Raises:
            CollisionError: If the remote exists with a different URL.
        """
        if self.check_binding(git_url):
            logger.info(f"Remote {self.remote_name} already bound to {git_url}")
            return False
        self.add_remote(self.remote_name, git_url)
        if push:
            self.push_default_branch()
        return True

    def init_and_push(self, git_url: str, message: str = SCAFFOLD_COMMIT_MESSAGE) -> None:
        """Turns a freshly generated scaffold into a repository bound to `git_url`.

        Raises:
            GitOperationError: If the directory is already a repository, or any
                               git command fails.
        """
        if self.has_local_repo():
            raise GitOperationError(
                "init", f"{self.root} is already a git repository; refusing to re-initialize."
            )
        self.git.init()
        self.git.add_all()
        self.git.commit(message)
        self.bind(git_url)

    def fork(self, source_url: str, target_dir: str, git_url: str) -> Path:
        """Clones `source_url` and rebinds the copy to the new project's `git_url`.

        The source stays reachable as the base remote; the project remote is
        added, all refs are fetched, and the current branch is pushed with its
        upstream set to the project remote's default branch.

        Returns:
            Path: The new working directory.
        """
        path = self.clone_into(source_url, target_dir, self.base_remote_name)
        fork = self.at(path)
        fork.check_binding(git_url)
        fork.add_remote(self.remote_name, git_url)
        fork.git.fetch_all()
        fork.push_default_branch(set_upstream=True)
        return path

    def sync_embedded(
        self, source_url: str, project_name: str, base_remote_name: str | None = None
    ) -> bool:
        """Pushes an embedded project's files to its repository via a mirror clone.

        The root need not be a repository root (or a repository at all). A mirror
        clone of `source_url` under `mirror_root` is fetched, rebased onto the
        remote default branch when it exists, replaced with the root's contents,
        committed if anything changed, and pushed with upstream tracking.

        Args:
            source_url (str): The project's repository URL.
            project_name (str): Names the mirror directory.
            base_remote_name (str | None): Remote name inside the mirror.
                                           Defaults to the project remote name.

        Returns:
            bool: True if anything was pushed.

        Raises:
            CollisionError: If the root or the mirror is bound to another URL.
            GitOperationError: If any git command fails, or the mirror or the
                               binding file cannot be written.
        """
        remote = base_remote_name or self.remote_name
        recorded = read_embedded_binding(self.root)
        if recorded and recorded != source_url:
            raise CollisionError(
                f"This directory is already an embedded project bound to {recorded}.",
                resource=str(self.root / EMBEDDED_REMOTE_FILE),
            )

        mirror = self.mirror_root / project_name
        if not (mirror / ".git").exists():
            if mirror.exists() and any(mirror.iterdir()):
                raise CollisionError(
                    f"Mirror directory {mirror} exists but is not a git repository.",
                    resource=str(mirror),
                )
            try:
                self.mirror_root.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise GitOperationError(
                    "sync", f"Unable to create mirror directory {self.mirror_root}: {e}"
                ) from e
            self.git_factory(self.mirror_root).clone(source_url, project_name, remote)

        mirror_git = self.git_factory(mirror)
        mirror_url = mirror_git.remotes().get(remote)
        if mirror_url is None:
            mirror_git.remote_add(remote, source_url)
        elif mirror_url != source_url:
            raise CollisionError(
                f"Mirror {mirror} tracks {mirror_url}, not {source_url}.",
                resource=str(mirror),
            )

        mirror_git.fetch_all()
        tracking = f"{remote}/{self.default_branch}"
        remote_head = mirror_git.rev_parse(tracking)
        if remote_head and mirror_git.rev_parse("HEAD"):
            mirror_git.rebase(tracking)

        try:
            self._replace_mirror_contents(mirror)
        except OSError as e:
            raise GitOperationError(
                "sync", f"Unable to copy {self.root} into mirror {mirror}: {e}"
            ) from e
        if mirror_git.status_porcelain():
            mirror_git.add_all()
            mirror_git.commit(EMBEDDED_COMMIT_MESSAGE)

        try:
            (self.root / EMBEDDED_REMOTE_FILE).write_text(source_url + "\n")
        except OSError as e:
            raise GitOperationError(
                "sync", f"Unable to record the project remote in {self.root}: {e}"
            ) from e

        local_head = mirror_git.rev_parse("HEAD")
        if local_head is None or local_head == remote_head:
            logger.info(f"Embedded project {project_name} already up to date")
            return False
        mirror_git.push(remote, self.default_refspec, set_upstream=True)
        logger.info(f"Embedded project {project_name} pushed from {mirror}")
        return True

    def _replace_mirror_contents(self, mirror: Path) -> None:
        for child in mirror.iterdir():
            if child.name == ".git":
                continue
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
        shutil.copytree(
            self.root,
            mirror,
            dirs_exist_ok=True,
            symlinks=True,
            ignore=shutil.ignore_patterns(".git", EMBEDDED_REMOTE_FILE),
        )
