"""Shared fixtures wiring the fakes into the provisioning workflows."""

import io
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from mortar_projects.config import Config
from mortar_projects.orchestrator import ProvisioningOrchestrator
from mortar_projects.sync import GitSynchronizer

from .fakes import PROJECT1, PROJECT2, FakeGitWorld, FakeService, RecordingDisplay


@pytest.fixture
def world() -> FakeGitWorld:
    return FakeGitWorld()


@pytest.fixture
def service() -> FakeService:
    return FakeService(projects=[PROJECT1, PROJECT2])


@pytest.fixture
def output(mocker: MagicMock) -> io.StringIO:
    """Captures everything the orchestrator prints."""
    buffer = io.StringIO()
    mocker.patch(
        "mortar_projects.orchestrator.console",
        Console(file=buffer, width=200, color_system=None),
    )
    return buffer


@pytest.fixture
def make_orchestrator(tmp_path: Path, world: FakeGitWorld, service: FakeService):
    """Builds an orchestrator rooted at tmp_path/work with fakes for every collaborator."""

    def _make(answer: bool = True, cwd: Path | None = None) -> ProvisioningOrchestrator:
        work = tmp_path / "work"
        work.mkdir(exist_ok=True)
        root = cwd or work
        config = Config()
        config.polling.interval = 0.0
        config.embedded.mirror_dir = tmp_path / "mirrors"
        git = GitSynchronizer(
            root, git_factory=world.factory, mirror_root=config.embedded.mirror_dir
        )
        orchestrator = ProvisioningOrchestrator(
            service,
            git,
            config,
            root,
            confirm=MagicMock(return_value=answer),
            display=RecordingDisplay(),
            sleep=lambda _: None,
        )
        return orchestrator

    return _make
