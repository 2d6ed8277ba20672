"""Error kinds surfaced by the provisioning workflows.

Every error carries a complete, user-facing message. The CLI prints it verbatim
and exits non-zero; nothing in the core retries or suppresses these.
"""


class ProjectsError(Exception):
    """Base class for every error the CLI reports to the user."""


class ValidationError(ProjectsError):
    """A missing or invalid argument. Raised before any remote call."""


class UnknownProjectError(ValidationError):
    """A project name that does not exist in the account."""

    def __init__(self, name: str, valid_names: list[str], hint: str | None = None):
        self.name = name
        self.valid_names = valid_names
        if hint:
            message = f"No project named: {name} exists. {hint}"
        elif valid_names:
            message = (
                f"No project named: {name} exists.  Your valid projects are:\n"
                + "\n".join(valid_names)
            )
        else:
            message = f"No project named: {name} exists.  You have no projects."
        super().__init__(message)


class CollisionError(ProjectsError):
    """A remote name or local directory/repository already exists."""

    def __init__(self, message: str, resource: str):
        self.resource = resource
        super().__init__(message)


class RemoteProtocolError(ProjectsError):
    """The remote service returned an inconsistent or unexpected payload."""


class ProvisioningError(ProjectsError):
    """The remote service reported the project as failed."""


class PollTimeoutError(ProjectsError):
    """The project never reached a terminal status within the allowed time."""


class ApiError(ProjectsError):
    """The remote service could not be reached or rejected the request."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class GitOperationError(ProjectsError):
    """A git command failed.

    Attributes:
        operation (str): The git operation that failed (e.g. 'push').
        returncode (int | None): The exit status of the git process, if one ran.
    """

    def __init__(self, operation: str, message: str, returncode: int | None = None):
        self.operation = operation
        self.returncode = returncode
        super().__init__(message)


class NoRepositoryError(GitOperationError):
    """The working directory has no git metadata where a repository is required."""

    def __init__(self) -> None:
        super().__init__(
            "open repository",
            "No git repository found in the current directory.\n"
            "To register a project that is not its own git repository, "
            "use the --embedded option.\n"
            "If you do want this project to be its own git repository, please "
            "initialize git in this directory, and then rerun the register command.\n"
            "To initialize your project in git, use:\n"
            "\n"
            "git init\n"
            "git add .\n"
            'git commit -a -m "first commit"',
        )


class ScaffoldError(ProjectsError):
    """Writing the scaffold failed part way through.

    Attributes:
        written (list[Path]): Paths created before the failure, in creation order.
    """

    def __init__(self, message: str, written: list | None = None):
        self.written = list(written or [])
        if self.written:
            message += "\nAlready written:\n" + "\n".join(
                f"  {p}" for p in self.written
            )
        super().__init__(message)


class UserAbort(ProjectsError):
    """The user declined an interactive confirmation."""
