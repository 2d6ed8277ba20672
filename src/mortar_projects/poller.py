"""Polling a remote project until its provisioning status settles."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from rich.console import Console
from rich.status import Status

from .constants import APP_NAME
from .errors import PollTimeoutError
from .models import ProjectStatus

logger = logging.getLogger(APP_NAME)


class PollDisplay(Protocol):
    """Receives semantic progress events; rendering is up to the implementation."""

    def tick(self, status: ProjectStatus, spinner_tick: int) -> None: ...

    def changed(self, old: ProjectStatus, new: ProjectStatus) -> None: ...

    def done(self, final: ProjectStatus | None) -> None: ...


@dataclass
class PollSession:
    """State of one polling run. Discarded once the run ends.

    Attributes:
        project_id (str | None): The project being polled, for logging.
        interval (float): Seconds slept between fetches.
        timeout (float | None): Seconds allowed before giving up, None for no limit.
        elapsed (float): Seconds since the first fetch.
        polls (int): Number of completed fetches.
        last_status (ProjectStatus | None): The most recent observation.
        terminal (bool): Whether a terminal status was observed.
        timed_out (bool): Whether the run ended on the timeout.
    """

    project_id: str | None
    interval: float
    timeout: float | None = None
    elapsed: float = 0.0
    polls: int = 0
    last_status: ProjectStatus | None = None
    terminal: bool = False
    timed_out: bool = False


def poll_until_terminal(
    fetch_status: Callable[[], ProjectStatus],
    interval: float,
    display: PollDisplay,
    timeout: float | None = None,
    project_id: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> ProjectStatus:
    """Fetches status until it is ACTIVE or ERROR, sleeping `interval` between fetches.

    `display.tick` runs after every fetch with the status just received,
    `display.changed` whenever the status differs from the previous observation,
    and `display.done` exactly once when the run ends (with None if it ended
    before any status arrived).
    Errors raised by `fetch_status` propagate immediately without a retry.

    Returns:
        ProjectStatus: The terminal status. ERROR is returned, not raised.

    Raises:
        PollTimeoutError: If `timeout` elapses without a terminal status.
    """
    session = PollSession(project_id=project_id, interval=interval, timeout=timeout)
    started = clock()
    finished = False

    try:
        while True:
            if session.polls:
                sleep(interval)

            status = fetch_status()
            session.polls += 1
            session.elapsed = clock() - started

            previous = session.last_status
            if previous is not None and previous != status:
                logger.info(
                    f"Project {project_id} status: {previous.text} -> {status.text}"
                )
                display.changed(previous, status)
            session.last_status = status
            display.tick(status, session.polls - 1)

            if status.is_terminal:
                session.terminal = True
                logger.info(f"Project {project_id} reached {status.code}")
                display.done(status)
                finished = True
                return status

            if timeout is not None and session.elapsed >= timeout:
                session.timed_out = True
                display.done(status)
                finished = True
                raise PollTimeoutError(
                    f"Project status was still {status.text} after "
                    f"{int(session.elapsed)} seconds. Rerun the command later to "
                    "check on it."
                )
    finally:
        if not finished:
            display.done(session.last_status)


class RichPollDisplay:
    """Renders poll events as a rich spinner line ("Status: CREATING...")."""

    def __init__(self, console: Console):
        self.console = console
        self._status: Status | None = None

    def _start(self, text: str) -> None:
        self._status = self.console.status(text, spinner="line")
        self._status.start()

    def _stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def tick(self, status: ProjectStatus, spinner_tick: int) -> None:
        text = f"Status: {status.text}..."
        if self._status is None:
            self._start(text)
        else:
            self._status.update(text)

    def changed(self, old: ProjectStatus, new: ProjectStatus) -> None:
        # Restart so no text from the previous status lingers on the line.
        self._stop()

    def done(self, final: ProjectStatus | None) -> None:
        self._stop()
        if final is not None:
            style = "red" if final.is_error else "green" if final.is_active else ""
            self.console.print(f"Status: {final.text}", style=style or None)
