"""Value types shared by the provisioning workflows."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .constants import (
    PROJECT_NAME_PATTERN,
    STATUS_ACTIVE,
    STATUS_CREATING,
    STATUS_ERROR,
    STATUS_PENDING,
)


class StatusCode(str, Enum):
    """Lifecycle states of a remote project."""

    PENDING = STATUS_PENDING
    CREATING = STATUS_CREATING
    ACTIVE = STATUS_ACTIVE
    ERROR = STATUS_ERROR


TERMINAL_CODES = frozenset({StatusCode.ACTIVE.value, StatusCode.ERROR.value})


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"

    @property
    def is_private(self) -> bool:
        return self is Visibility.PRIVATE


class Outcome(str, Enum):
    """Terminal state of a workflow, mapped to the process exit status."""

    SUCCEEDED = "succeeded"
    ABORTED = "aborted"
    FAILED = "failed"

    @property
    def exit_code(self) -> int:
        return 0 if self is Outcome.SUCCEEDED else 1


@dataclass(frozen=True)
class ProjectStatus:
    """A single observation of a remote project's provisioning state.

    The remote service reports status either as a flat ``status`` field or as
    ``status_code`` plus ``status_description``; both shapes normalise to this.

    Attributes:
        code (str | None): The machine status (e.g. 'ACTIVE').
        description (str | None): Human-readable status text, if supplied.
        git_url (str | None): The project's repository URL once assigned.
    """

    code: str | None = None
    description: str | None = None
    git_url: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ProjectStatus":
        code = payload.get("status_code") or payload.get("status")
        return cls(
            code=str(code).upper() if code else None,
            description=payload.get("status_description") or None,
            git_url=payload.get("git_url") or None,
        )

    @property
    def is_terminal(self) -> bool:
        return self.code in TERMINAL_CODES

    @property
    def is_active(self) -> bool:
        return self.code == StatusCode.ACTIVE.value

    @property
    def is_error(self) -> bool:
        return self.code == StatusCode.ERROR.value

    @property
    def text(self) -> str:
        """The label shown to the user; the description wins over the code."""
        return self.description or self.code or "UNKNOWN"


@dataclass(frozen=True)
class Project:
    """A remote project record as listed by the service.

    Attributes:
        name (str): The project name, unique per account.
        id (str | None): Remote identifier; absent until creation succeeds.
        status (ProjectStatus): Last known provisioning state.
        visibility (Visibility | None): Set at creation, immutable afterwards.
    """

    name: str
    id: str | None = None
    status: ProjectStatus = ProjectStatus()
    visibility: Visibility | None = None

    @property
    def git_url(self) -> str | None:
        return self.status.git_url

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Project":
        visibility = None
        if "is_private" in payload:
            visibility = (
                Visibility.PRIVATE if payload["is_private"] else Visibility.PUBLIC
            )
        return cls(
            name=payload["name"],
            id=payload.get("project_id") or payload.get("id"),
            status=ProjectStatus.from_payload(payload),
            visibility=visibility,
        )


def is_valid_project_name(name: str) -> bool:
    """Checks that a name is legal for a new project (and safe as a directory)."""
    return bool(name) and PROJECT_NAME_PATTERN.fullmatch(name) is not None


def find_project(projects: list[Project], name: str) -> Project | None:
    """Returns the project whose name matches exactly (case-sensitive)."""
    for project in projects:
        if project.name == name:
            return project
    return None
