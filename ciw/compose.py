from __future__ import annotations

import subprocess
from dataclasses import dataclass

from .errors import CommandFailure
from .logs import log_event


@dataclass(frozen=True)
class ComposeTarget:
    compose_file: str
    docker_bin: str = "docker"


class ComposeRunner:
    """Runs `docker compose -f <file> <command> ...` and reports failures.

    stdout and stderr are captured together so a failure carries everything the
    tool printed. No timeout is applied; a hung compose call blocks the caller.
    """

    def __init__(self, target: ComposeTarget) -> None:
        self.target = target

    def argv(self, command: str, *args: str) -> list[str]:
        return [self.target.docker_bin, "compose", "-f", self.target.compose_file, command, *args]

    def run(self, command: str, *args: str) -> None:
        try:
            proc = subprocess.run(
                self.argv(command, *args),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                check=False,
            )
        except OSError as e:
            raise CommandFailure(command, str(e)) from e

        if proc.returncode != 0:
            raise CommandFailure(command, proc.stdout or "", proc.returncode)
        log_event("INFO", f"Command 'docker compose {command}' succeeded")
