"""Tests for binding directories to project repositories."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from mortar_projects.constants import EMBEDDED_REMOTE_FILE
from mortar_projects.errors import CollisionError, GitOperationError
from mortar_projects.sync import GitSynchronizer, read_embedded_binding

from .fakes import NEW_GIT_URL, FakeGitWorld

SOURCE_URL = "git@github.com:someone/upstream_code"


@pytest.fixture
def work(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def sync(work: Path, world: FakeGitWorld, tmp_path: Path) -> GitSynchronizer:
    return GitSynchronizer(
        work, git_factory=world.factory, mirror_root=tmp_path / "mirrors"
    )


def test_bind_adds_remote_and_pushes(
    sync: GitSynchronizer, world: FakeGitWorld, work: Path
) -> None:
    assert sync.bind(NEW_GIT_URL) is True

    assert world.ops() == ["remotes", "remote_add", "push"]
    assert world.remotes[work] == {"mortar": NEW_GIT_URL}
    assert world.calls[-1][2] == ("mortar", "HEAD:refs/heads/master", False)


def test_bind_is_idempotent(
    sync: GitSynchronizer, world: FakeGitWorld, work: Path
) -> None:
    """Verifies re-binding to the same URL adds nothing and pushes nothing."""
    world.remotes[work] = {"mortar": NEW_GIT_URL}

    assert sync.bind(NEW_GIT_URL) is False

    assert world.ops() == ["remotes"]


def test_bind_refuses_conflicting_remote(
    sync: GitSynchronizer, world: FakeGitWorld, work: Path
) -> None:
    world.remotes[work] = {"mortar": "git@github.com:mortarcode-dev/other"}

    with pytest.raises(CollisionError) as excinfo:
        sync.bind(NEW_GIT_URL)

    assert excinfo.value.resource == "mortar"
    assert "remote_add" not in world.ops()
    assert world.remotes[work] == {"mortar": "git@github.com:mortarcode-dev/other"}


def test_bind_without_push(sync: GitSynchronizer, world: FakeGitWorld) -> None:
    assert sync.bind(NEW_GIT_URL, push=False) is True
    assert "push" not in world.ops()


def test_init_and_push_sequence(
    sync: GitSynchronizer, world: FakeGitWorld, work: Path
) -> None:
    """Verifies a fresh scaffold is initialised, committed, bound and pushed in order."""
    project = work / "some_new_project"
    project.mkdir()

    sync.at(project).init_and_push(NEW_GIT_URL)

    assert world.ops() == [
        "has_dot_git",
        "init",
        "add_all",
        "commit",
        "remotes",
        "remote_add",
        "push",
    ]
    assert all(path == project for path, _, _ in world.calls)
    commit = next(args for _, op, args in world.calls if op == "commit")
    assert commit == ("Mortar project scaffolding",)
    assert world.remotes[project] == {"mortar": NEW_GIT_URL}


def test_init_and_push_refuses_existing_repository(
    sync: GitSynchronizer, world: FakeGitWorld, work: Path
) -> None:
    (work / ".git").mkdir()

    with pytest.raises(GitOperationError):
        sync.init_and_push(NEW_GIT_URL)

    assert world.ops() == ["has_dot_git"]


def test_git_failure_propagates(sync: GitSynchronizer, world: FakeGitWorld) -> None:
    world.fail_on = "push"

    with pytest.raises(GitOperationError) as excinfo:
        sync.bind(NEW_GIT_URL)

    assert excinfo.value.operation == "push"
    assert excinfo.value.returncode == 128


def test_fork_keeps_source_as_base_remote(
    sync: GitSynchronizer, world: FakeGitWorld, work: Path
) -> None:
    path = sync.fork(SOURCE_URL, "my_fork", NEW_GIT_URL)

    assert path == work / "my_fork"
    assert world.ops() == ["clone", "remotes", "remote_add", "fetch_all", "push"]
    assert world.calls[0] == (work, "clone", (SOURCE_URL, "my_fork", "base"))
    assert world.remotes[path] == {"base": SOURCE_URL, "mortar": NEW_GIT_URL}
    assert world.calls[-1] == (
        path,
        "push",
        ("mortar", "HEAD:refs/heads/master", True),
    )


def test_clone_into_names_the_remote(
    sync: GitSynchronizer, world: FakeGitWorld, work: Path
) -> None:
    path = sync.clone_into(NEW_GIT_URL, "Project1", "mortar")

    assert path == work / "Project1"
    assert (path / ".git").is_dir()
    assert world.remotes[path] == {"mortar": NEW_GIT_URL}


class TestSyncEmbedded:
    @pytest.fixture(autouse=True)
    def project_files(self, work: Path) -> None:
        (work / "pigscripts").mkdir()
        (work / "pigscripts" / "p.pig").write_text("-- pig\n")
        (work / "README.md").write_text("readme\n")

    def test_first_sync_clones_commits_and_pushes(
        self, sync: GitSynchronizer, world: FakeGitWorld, work: Path, tmp_path: Path
    ) -> None:
        mirror = tmp_path / "mirrors" / "p"
        world.dirty[mirror] = ["?? README.md"]

        assert sync.sync_embedded(NEW_GIT_URL, "p") is True

        ops = world.ops()
        assert ops[0] == "clone"
        assert world.calls[0] == (tmp_path / "mirrors", "clone", (NEW_GIT_URL, "p", "mortar"))
        assert "rebase" not in ops
        assert ops.index("fetch_all") < ops.index("commit") < ops.index("push")
        assert world.calls[-1] == (
            mirror,
            "push",
            ("mortar", "HEAD:refs/heads/master", True),
        )
        assert (mirror / "README.md").read_text() == "readme\n"
        assert (mirror / "pigscripts" / "p.pig").is_file()
        assert not (mirror / EMBEDDED_REMOTE_FILE).exists()
        assert read_embedded_binding(work) == NEW_GIT_URL

    def test_second_sync_without_changes_pushes_nothing(
        self, sync: GitSynchronizer, world: FakeGitWorld, tmp_path: Path
    ) -> None:
        world.dirty[tmp_path / "mirrors" / "p"] = ["?? README.md"]
        sync.sync_embedded(NEW_GIT_URL, "p")
        world.calls.clear()

        assert sync.sync_embedded(NEW_GIT_URL, "p") is False

        ops = world.ops()
        assert "clone" not in ops
        assert "commit" not in ops
        assert "push" not in ops
        assert "rebase" in ops

    def test_existing_history_is_rebased_onto(
        self, sync: GitSynchronizer, world: FakeGitWorld, tmp_path: Path
    ) -> None:
        world.remote_heads[NEW_GIT_URL] = "r1"
        world.dirty[tmp_path / "mirrors" / "p"] = [" M README.md"]

        assert sync.sync_embedded(NEW_GIT_URL, "p") is True

        ops = world.ops()
        assert ops.index("rebase") < ops.index("commit")

    def test_binding_to_another_project_is_refused(
        self, sync: GitSynchronizer, world: FakeGitWorld, work: Path
    ) -> None:
        (work / EMBEDDED_REMOTE_FILE).write_text("git@github.com:mortarcode-dev/other\n")

        with pytest.raises(CollisionError):
            sync.sync_embedded(NEW_GIT_URL, "p")

        assert world.calls == []

    def test_stray_mirror_directory_is_refused(
        self, sync: GitSynchronizer, world: FakeGitWorld, tmp_path: Path
    ) -> None:
        mirror = tmp_path / "mirrors" / "p"
        mirror.mkdir(parents=True)
        (mirror / "stray.txt").write_text("x")

        with pytest.raises(CollisionError):
            sync.sync_embedded(NEW_GIT_URL, "p")

        assert world.calls == []

    def test_mirror_tracking_another_url_is_refused(
        self, sync: GitSynchronizer, world: FakeGitWorld, tmp_path: Path
    ) -> None:
        mirror = tmp_path / "mirrors" / "p"
        (mirror / ".git").mkdir(parents=True)
        world.remotes[mirror] = {"mortar": "git@github.com:mortarcode-dev/other"}

        with pytest.raises(CollisionError):
            sync.sync_embedded(NEW_GIT_URL, "p")

        assert "fetch_all" not in world.ops()

    def test_mirror_copy_failure_is_reported(
        self, sync: GitSynchronizer, world: FakeGitWorld, work: Path, mocker: MagicMock
    ) -> None:
        """Verifies filesystem failures surface as a git operation error."""
        mocker.patch(
            "mortar_projects.sync.shutil.copytree",
            side_effect=OSError("No space left on device"),
        )

        with pytest.raises(GitOperationError, match="No space left") as excinfo:
            sync.sync_embedded(NEW_GIT_URL, "p")

        assert excinfo.value.operation == "sync"
        assert "push" not in world.ops()
        assert read_embedded_binding(work) is None

    def test_binding_file_write_failure_is_reported(
        self, sync: GitSynchronizer, world: FakeGitWorld, work: Path, mocker: MagicMock
    ) -> None:
        original = Path.write_text

        def failing_write(self: Path, data: str, *args, **kwargs) -> int:
            if self.name == EMBEDDED_REMOTE_FILE:
                raise PermissionError("read-only file system")
            return original(self, data, *args, **kwargs)

        mocker.patch.object(Path, "write_text", failing_write)

        with pytest.raises(GitOperationError, match="read-only file system"):
            sync.sync_embedded(NEW_GIT_URL, "p")

        assert "push" not in world.ops()
