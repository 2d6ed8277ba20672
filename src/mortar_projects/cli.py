import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from .api import HttpProjectService
from .config import CONFIG_FILE, Config, parse_time
from .constants import APP_NAME, LOG_FILE
from .errors import ProjectsError, UserAbort
from .models import Outcome, Visibility
from .orchestrator import ProvisioningOrchestrator
from .poller import RichPollDisplay
from .sync import GitSynchronizer

logger = logging.getLogger(APP_NAME)
console = Console()
err_console = Console(stderr=True)


def setup_logging(config: Config, verbose: bool = False) -> None:
    """Configures the logging subsystem.

    Args:
        config (Config): Supplies the log rotation size.
        verbose (bool): If True, also logs DEBUG records to stderr.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG)

    if verbose:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    try:
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=config.limits.max_log_size,
            backupCount=5,
        )
    except OSError as e:
        err_console.print(f"[yellow]Logging to {LOG_FILE} disabled: {e}[/yellow]")
        return
    file_handler.setFormatter(formatter)
    file_handler.setLevel(logging.INFO)
    logger.addHandler(file_handler)


def confirm(prompt: str) -> bool:
    """Asks a yes/no question on the terminal."""
    return Confirm.ask(prompt, console=console)


def report_error(error: ProjectsError) -> None:
    """Prints an error message to stderr, one ` !    ` prefixed line per line."""
    for line in str(error).splitlines() or [""]:
        err_console.print(f" !    {line}", markup=False, highlight=False)


def show_config_reference() -> None:
    """Displays a formatted table of all available configuration options."""
    table = Table(title="Mortar Configuration Schema", show_lines=True)
    table.add_column("Section", style="cyan", justify="right")
    table.add_column("Key", style="green")
    table.add_column("Type", style="dim")
    table.add_column("Default", style="yellow")
    table.add_column("Description")

    table.add_row(
        "core", "remote_name", "str", '"mortar"', "The git remote bound to the project."
    )
    table.add_row(
        "",
        "base_remote_name",
        "str",
        '"base"',
        "The remote a fork keeps for the project it was forked from.",
    )
    table.add_row(
        "", "default_branch", "str", '"master"', "The remote branch pushed to."
    )
    table.add_row(
        "api",
        "url",
        "str",
        '"https://api.mortardata.com/v2"',
        "Project API endpoint (env: MORTAR_API_URL).",
    )
    table.add_row("", "email", "str", "None", "Account email (env: MORTAR_EMAIL).")
    table.add_row("", "api_key", "str", "None", "Account API key (env: MORTAR_API_KEY).")
    table.add_row("", "timeout", "float", "30", "Per-request timeout in seconds.")
    table.add_row(
        "polling",
        "interval",
        "float | str",
        "1",
        "Seconds between status checks (e.g., 0.5, '2s').",
    )
    table.add_row(
        "",
        "timeout",
        "float | str",
        '"30m"',
        "Give up waiting for a project after this long (e.g., '10m', '1hr').",
    )
    table.add_row(
        "embedded",
        "mirror_dir",
        "path",
        '"~/.local/state/mortar/mirrors"',
        "Where embedded projects keep their mirror clones.",
    )
    table.add_row(
        "limits",
        "max_log_size",
        "int | str",
        '"5mb"',
        "Max size for the log file before rotation (e.g., '5mb', '1gb').",
    )

    console.print(table)
    console.print(f"[dim]Global config file: {CONFIG_FILE}[/dim]")


class MortarHelpFormatter(argparse.HelpFormatter):
    """Custom help formatter that groups the subcommands under headers."""

    def _format_action(self, action: argparse.Action) -> str:
        if isinstance(action, argparse._SubParsersAction):
            parts = []

            groups = {
                "Project Setup": ["create", "register", "clone", "fork"],
                "Project Management": ["list", "delete", "set-remote"],
                "General": ["config", "help"],
            }

            subactions = list(self._iter_indented_subactions(action))

            for group_name, commands in groups.items():
                group_actions = [a for a in subactions if a.dest in commands]
                if not group_actions:
                    continue

                parts.append(f"\n  {group_name}:\n")
                self._indent()
                for subaction in group_actions:
                    parts.append(self._format_action(subaction))
                self._dedent()

            return self._join_parts(parts)

        return super()._format_action(action)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mortar",
        usage=argparse.SUPPRESS,
        formatter_class=MortarHelpFormatter,
        add_help=False,
    )
    parser.add_argument(
        "-h",
        "--help",
        action="help",
        default=argparse.SUPPRESS,
        help=argparse.SUPPRESS,
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help=argparse.SUPPRESS
    )

    subparsers = parser.add_subparsers(dest="command")

    polling = argparse.ArgumentParser(add_help=False)
    polling.add_argument(
        "--polling-interval",
        "--polling_interval",
        type=parse_time,
        default=None,
        metavar="SECONDS",
        help="Seconds between project status checks (default: 1)",
    )
    visibility = argparse.ArgumentParser(add_help=False)
    visibility.add_argument(
        "--public",
        action="store_true",
        help="Make the project's repository public (asks for confirmation)",
    )

    create_parser = subparsers.add_parser(
        "create",
        parents=[polling, visibility],
        help="Create a new project and generate its files",
    )
    create_parser.add_argument("name", metavar="PROJECT")
    create_parser.add_argument(
        "--embedded",
        action="store_true",
        help="Generate the project into the current directory of another repository",
    )

    register_parser = subparsers.add_parser(
        "register",
        parents=[polling, visibility],
        help="Register existing local code as a new project",
    )
    register_parser.add_argument("name", metavar="PROJECT")
    register_parser.add_argument(
        "--embedded",
        action="store_true",
        help="The project is not its own git repository",
    )

    clone_parser = subparsers.add_parser("clone", help="Clone an existing project")
    clone_parser.add_argument("name", metavar="PROJECT")

    fork_parser = subparsers.add_parser(
        "fork",
        parents=[polling, visibility],
        help="Create a new project from an existing git repository",
    )
    fork_parser.add_argument("git_url", metavar="GIT_URL")
    fork_parser.add_argument("name", metavar="PROJECT")

    set_remote_parser = subparsers.add_parser(
        "set-remote", help="Add the project remote to the current repository"
    )
    set_remote_parser.add_argument("name", metavar="PROJECT")

    subparsers.add_parser("list", help="List your projects")

    delete_parser = subparsers.add_parser("delete", help="Delete a project")
    delete_parser.add_argument("name", metavar="PROJECT")

    subparsers.add_parser("config", help="Show all configuration options")
    subparsers.add_parser("help", help="Show this help message")

    return parser


def run_command(args: argparse.Namespace, config: Config, cwd: Path) -> Outcome:
    """Runs a project subcommand and maps its result to an `Outcome`."""
    service = HttpProjectService(config.api)
    git = GitSynchronizer(
        cwd,
        remote_name=config.core.remote_name,
        base_remote_name=config.core.base_remote_name,
        default_branch=config.core.default_branch,
        mirror_root=config.embedded.mirror_dir,
    )
    orchestrator = ProvisioningOrchestrator(
        service,
        git,
        config,
        cwd,
        confirm=confirm,
        display=RichPollDisplay(console),
    )
    visibility = (
        Visibility.PUBLIC if getattr(args, "public", False) else Visibility.PRIVATE
    )

    try:
        if args.command == "create":
            return orchestrator.create(args.name, visibility, embedded=args.embedded)
        elif args.command == "register":
            return orchestrator.register(args.name, visibility, embedded=args.embedded)
        elif args.command == "clone":
            return orchestrator.clone(args.name)
        elif args.command == "fork":
            return orchestrator.fork(args.git_url, args.name, visibility)
        elif args.command == "set-remote":
            return orchestrator.set_remote(args.name)
        elif args.command == "list":
            return orchestrator.list_projects()
        elif args.command == "delete":
            return orchestrator.delete(args.name)
        raise ValueError(f"Unknown command {args.command}")
    except UserAbort as e:
        logger.info(f"{args.command} aborted: {e}")
        report_error(e)
        return Outcome.ABORTED
    except ProjectsError as e:
        logger.error(f"{args.command} failed: {e}")
        report_error(e)
        return Outcome.FAILED
    finally:
        service.close()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the mortar CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in (None, "help"):
        parser.print_help()
        return
    if args.command == "config":
        show_config_reference()
        return

    cwd = Path.cwd()
    config = Config.load(cwd)
    if getattr(args, "polling_interval", None) is not None:
        config.polling.interval = args.polling_interval

    setup_logging(config, verbose=args.verbose)
    logger.debug(f"Running {args.command} in {cwd}")

    outcome = run_command(args, config, cwd)
    sys.exit(outcome.exit_code)


if __name__ == "__main__":
    main()
