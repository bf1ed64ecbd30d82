from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from .errors import CommandFailure, InvalidTransition
from .logs import log_event
from .runtime import utc_now

IDLE = "idle"
KILLING = "killing"
PULLING = "pulling"
REMOVING = "removing"
STARTING = "starting"
DONE = "done"
FAILED = "failed"

TERMINAL_STATES = frozenset({DONE, FAILED})

TRANSITIONS: dict[str, frozenset[str]] = {
    IDLE: frozenset({KILLING}),
    KILLING: frozenset({PULLING, FAILED}),
    PULLING: frozenset({REMOVING, FAILED}),
    REMOVING: frozenset({STARTING, FAILED}),
    STARTING: frozenset({DONE, FAILED}),
    DONE: frozenset(),
    FAILED: frozenset(),
}


@dataclass(frozen=True)
class Step:
    state: str
    command: str
    extra_args: tuple[str, ...]
    failure: str  # log prefix, formatted with the container name


# Order matters: kill, pull the new image, drop the old container, start fresh.
STEPS: tuple[Step, ...] = (
    Step(KILLING, "kill", (), "Failed to kill container {name}"),
    Step(PULLING, "pull", (), "Failed to pull the latest image for {name}"),
    Step(REMOVING, "rm", ("-f",), "Failed to remove container {name}"),
    Step(STARTING, "up", ("-d",), "Failed to start container {name}"),
)


class CommandRunner(Protocol):
    def run(self, command: str, *args: str) -> None: ...


@dataclass
class RestartStatus:
    container_name: str
    state: str = IDLE
    message: str = ""
    failed_step: str | None = None
    output: str = ""
    started_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, to_state: str) -> None:
        if to_state not in TRANSITIONS.get(self.state, frozenset()):
            raise InvalidTransition(f"{self.container_name}: cannot go from {self.state} to {to_state}")
        self.state = to_state
        self.updated_at = utc_now()


class Restarter:
    """Replaces one compose service container with a freshly pulled one."""

    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def restart(self, container_name: str) -> RestartStatus:
        st = RestartStatus(container_name=container_name)
        for step in STEPS:
            st.advance(step.state)
            try:
                self.runner.run(step.command, *step.extra_args, container_name)
            except CommandFailure as e:
                st.failed_step = step.command
                st.output = e.output
                st.message = f"{step.failure.format(name=container_name)}: {e}"
                st.advance(FAILED)
                log_event("ERROR", st.message)
                return st

        st.advance(DONE)
        st.message = f"Container {container_name} has been updated and restarted successfully."
        log_event("INFO", st.message)
        return st
