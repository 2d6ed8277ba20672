"""Mortar projects: provisioning and synchronization of Mortar projects.

This package provides the command-line interface and the orchestration logic
that creates, registers, clones and forks projects, keeping the remote project
record, the local git repository and the generated project files consistent.
"""

from . import (
    api,
    cli,
    config,
    constants,
    errors,
    git_wrapper,
    models,
    orchestrator,
    poller,
    scaffold,
    sync,
)

__all__ = [
    "api",
    "cli",
    "config",
    "constants",
    "errors",
    "git_wrapper",
    "models",
    "orchestrator",
    "poller",
    "scaffold",
    "sync",
]
