"""The create, register, clone and fork workflows.

Each workflow runs its pre-flight checks (name collisions against the full
remote project list, local directory collisions, nested repositories) before
any mutating call, since none of the mutations can be rolled back. A workflow
either returns `Outcome.SUCCEEDED` or raises a `ProjectsError`; `UserAbort`
marks an aborted run.
"""

import logging
import time
from collections.abc import Callable
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import scaffold
from .api import ProjectService
from .config import Config
from .constants import (
    APP_NAME,
    EMBEDDED_REQUIRED_DIRS,
    NOT_REGISTERED_MESSAGE,
    PUBLIC_PROJECT_PROMPT,
    READY_MESSAGE,
)
from .errors import (
    CollisionError,
    NoRepositoryError,
    ProvisioningError,
    RemoteProtocolError,
    UnknownProjectError,
    UserAbort,
    ValidationError,
)
from .models import Outcome, Project, ProjectStatus, Visibility, find_project
from .models import is_valid_project_name
from .poller import PollDisplay, poll_until_terminal
from .scaffold import ScaffoldGenerator
from .sync import GitSynchronizer, read_embedded_binding

console = Console()
logger = logging.getLogger(APP_NAME)


def project_name_from_url(git_url: str) -> str:
    """Extracts the repository name from an SSH or HTTPS git URL."""
    tail = git_url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    return tail.removesuffix(".git")


class ProvisioningOrchestrator:
    """Sequences the remote service, poller, scaffold and git steps.

    Attributes:
        service (ProjectService): The remote project service.
        git (GitSynchronizer): Bound to the current directory.
        config (Config): Polling and remote naming settings.
        cwd (Path): The directory the command was run from.
        confirm (Callable[[str], bool]): Asks the user a yes/no question.
        display (PollDisplay): Receives status polling events.
        sleep (Callable[[float], None]): Used between status fetches.
    """

    def __init__(
        self,
        service: ProjectService,
        git: GitSynchronizer,
        config: Config,
        cwd: Path,
        confirm: Callable[[str], bool],
        display: PollDisplay,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.service = service
        self.git = git
        self.config = config
        self.cwd = cwd
        self.confirm = confirm
        self.display = display
        self.sleep = sleep

    # --- Shared steps ---

    def _require_valid_name(self, name: str) -> None:
        if not is_valid_project_name(name):
            raise ValidationError(
                f"Invalid project name: {name}. "
                "Use only letters, numbers and underscores."
            )

    def _name_taken(self, name: str) -> CollisionError:
        return CollisionError(
            f"Your account already contains a project named {name}.\n"
            "Please choose a different name for your new project, "
            f"or clone the existing {name} code using:\n"
            "\n"
            f"mortar clone {name}",
            resource=name,
        )

    def _require_name_available(self, name: str) -> list[Project]:
        projects = self.service.list_projects()
        if find_project(projects, name):
            raise self._name_taken(name)
        return projects

    def _lookup(self, name: str, hint: str | None = None) -> Project:
        projects = self.service.list_projects()
        project = find_project(projects, name)
        if project is None:
            raise UnknownProjectError(name, [p.name for p in projects], hint=hint)
        return project

    def _confirm_visibility(self, visibility: Visibility) -> None:
        if visibility is Visibility.PUBLIC and not self.confirm(PUBLIC_PROJECT_PROMPT):
            raise UserAbort(NOT_REGISTERED_MESSAGE)

    def _provision(self, name: str, visibility: Visibility) -> ProjectStatus:
        """Creates the remote project and waits for it to become usable.

        Raises:
            ProvisioningError: If the project ends in ERROR.
            RemoteProtocolError: If it is ACTIVE without a git URL.
        """
        console.print(f"Sending request to register project: {name}... ", end="")
        project_id = self.service.create_project(name, visibility.is_private)
        console.print("done\n")
        logger.info(f"Created remote project {name} ({project_id}), polling status")

        status = poll_until_terminal(
            lambda: self.service.get_project(project_id),
            self.config.polling.interval,
            self.display,
            timeout=self.config.polling.timeout,
            project_id=project_id,
            sleep=self.sleep,
        )
        if status.is_error:
            raise ProvisioningError(
                f"Project {name} could not be created: {status.text}.\n"
                f"The remote project record ({project_id}) was left in place; "
                f"delete it with 'mortar delete {name}' before retrying."
            )
        if not status.git_url:
            raise RemoteProtocolError(
                f"Project {name} is {status.text} but the Mortar API "
                "returned no git_url for it."
            )
        return status

    def _announce_create(self, relative: str) -> None:
        console.print(f"[bold green]{'create':>12}[/bold green]  {escape(relative)}")

    def _report_ready(self, new_dir: str | None = None) -> None:
        console.print(f"\n{READY_MESSAGE}")
        if new_dir:
            console.print(
                "NOTE: You'll need to change to the new directory to use your project:\n"
                f"    cd {new_dir}\n"
            )

    def _validate_project_structure(self) -> None:
        missing = [d for d in EMBEDDED_REQUIRED_DIRS if not (self.cwd / d).is_dir()]
        if missing:
            raise ValidationError(
                f"{self.cwd} is not a Mortar project: missing {', '.join(missing)}.\n"
                "Run this command from the directory containing your project files."
            )

    # --- Workflows ---

    def create(
        self, name: str, visibility: Visibility = Visibility.PRIVATE, embedded: bool = False
    ) -> Outcome:
        """Creates a remote project, generates its scaffold, and pushes it."""
        self._require_valid_name(name)
        variant = scaffold.EMBEDDED if embedded else scaffold.STANDARD
        generator = ScaffoldGenerator(variant, on_create=self._announce_create)

        if embedded:
            if recorded := read_embedded_binding(self.cwd):
                raise CollisionError(
                    f"Currently in embedded project bound to {recorded}.  You can "
                    "not create a new project inside of an existing mortar project.",
                    resource=recorded,
                )
        elif self.git.has_local_repo():
            raise CollisionError(
                "Currently in git repo.  You can not create a new project inside "
                "of an existing git repository.",
                resource=str(self.cwd),
            )
        generator.check_targets(self.cwd, name)
        self._require_name_available(name)
        self._confirm_visibility(visibility)

        status = self._provision(name, visibility)
        generator.generate(self.cwd, name)

        if embedded:
            self.git.sync_embedded(status.git_url, name)
            self._report_ready()
        else:
            self.git.at(self.cwd / name).init_and_push(status.git_url)
            self._report_ready(new_dir=name)
        return Outcome.SUCCEEDED

    def register(
        self, name: str, visibility: Visibility = Visibility.PRIVATE, embedded: bool = False
    ) -> Outcome:
        """Creates a remote project for code that already exists locally."""
        self._require_valid_name(name)
        bound_url: str | None

        if embedded:
            if (self.cwd / name / ".git").exists():
                raise CollisionError(
                    "mortar register must be run from within the project directory.\n"
                    f'Please "cd {name}" and rerun this command.',
                    resource=str(self.cwd / name),
                )
            self._validate_project_structure()
            bound_url = read_embedded_binding(self.cwd)
        else:
            if not self.git.has_local_repo():
                if (self.cwd / name).is_dir():
                    raise CollisionError(
                        "mortar register must be run from within the project directory.\n"
                        f'Please "cd {name}" and rerun this command.',
                        resource=str(self.cwd / name),
                    )
                raise NoRepositoryError()
            bound_url = self.git.remotes().get(self.git.remote_name)

        projects = self.service.list_projects()
        existing = find_project(projects, name)
        if existing and bound_url and existing.git_url == bound_url:
            console.print(f"Project {name} is already registered for this directory.")
            return Outcome.SUCCEEDED
        if bound_url:
            bound = next((p for p in projects if p.git_url == bound_url), None)
            current = bound.name if bound else project_name_from_url(bound_url)
            raise CollisionError(
                f"Currently in project: {current}.  You can not register a new "
                "project inside of an existing mortar project.",
                resource=bound_url,
            )
        if existing:
            raise self._name_taken(name)

        self._confirm_visibility(visibility)
        status = self._provision(name, visibility)
        if embedded:
            self.git.sync_embedded(status.git_url, name)
        else:
            self.git.bind(status.git_url)
        self._report_ready()
        return Outcome.SUCCEEDED

    def clone(self, name: str) -> Outcome:
        """Clones an existing project into `./<name>`."""
        project = self._lookup(name)
        target = self.cwd / name
        if target.exists():
            raise CollisionError(
                f"Can't clone project: {name} since directory with that name "
                "already exists.",
                resource=str(target),
            )
        if not project.git_url:
            raise RemoteProtocolError(
                f"Project {name} has no git repository yet (status: "
                f"{project.status.text}). Try again once it is ACTIVE."
            )
        self.git.clone_into(project.git_url, name, self.git.remote_name)
        console.print(f"Cloned project {name} into [cyan]{escape(str(target))}[/cyan]")
        return Outcome.SUCCEEDED

    def fork(
        self, source_url: str, name: str, visibility: Visibility = Visibility.PRIVATE
    ) -> Outcome:
        """Creates a new project seeded with the history of `source_url`."""
        if not source_url:
            raise ValidationError("Must specify GIT_URL and PROJECT.")
        self._require_valid_name(name)
        if self.git.has_local_repo():
            raise CollisionError(
                "Currently in git repo.  You can not fork a new project inside "
                "of an existing git repository.",
                resource=str(self.cwd),
            )
        if (self.cwd / name).exists():
            raise CollisionError(
                f"Can't fork into {name} since a directory with that name "
                "already exists.",
                resource=str(self.cwd / name),
            )
        self._require_name_available(name)
        self._confirm_visibility(visibility)

        status = self._provision(name, visibility)
        self.git.fork(source_url, name, status.git_url)
        self._report_ready(new_dir=name)
        return Outcome.SUCCEEDED

    def set_remote(self, name: str) -> Outcome:
        """Adds the project remote to the current repository without pushing."""
        if not self.git.has_local_repo():
            raise NoRepositoryError()
        project = self._lookup(
            name, hint="You can create this project using:\n\n mortar create"
        )
        if not project.git_url:
            raise RemoteProtocolError(
                f"Project {name} has no git repository yet (status: "
                f"{project.status.text})."
            )
        if self.git.bind(project.git_url, push=False):
            console.print(
                f"Successfully added the {self.git.remote_name} remote to the "
                f"{name} project"
            )
        else:
            console.print(f"The remote has already been set for project: {name}")
        return Outcome.SUCCEEDED

    def list_projects(self) -> Outcome:
        projects = self.service.list_projects()
        if not projects:
            console.print("You have no projects.")
            return Outcome.SUCCEEDED

        table = Table(title="projects", show_header=True, header_style="bold magenta")
        table.add_column("Project", style="cyan")
        table.add_column("Status")
        for project in sorted(projects, key=lambda p: p.name):
            table.add_row(escape(project.name), escape(project.status.text))
        console.print(table)
        return Outcome.SUCCEEDED

    def delete(self, name: str) -> Outcome:
        project = self._lookup(name)
        if not project.id:
            raise RemoteProtocolError(f"Project {name} has no project id.")
        if not self.confirm(
            f"Delete project {name}? Its remote repository will be removed."
        ):
            raise UserAbort(f"Project {name} was not deleted")
        console.print(f"Sending request to delete project: {name}... ", end="")
        self.service.delete_project(project.id)
        console.print("done\n")
        console.print("Your project has been deleted.")
        logger.info(f"Deleted remote project {name} ({project.id})")
        return Outcome.SUCCEEDED
