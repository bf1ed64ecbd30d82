from __future__ import annotations


class CiwError(Exception):
    pass


class CommandFailure(CiwError):
    """A `docker compose` invocation exited non-zero or could not be launched.

    `returncode` is None when the process never started.
    """

    def __init__(self, command: str, output: str, returncode: int | None = None):
        self.command = command
        self.output = output
        self.returncode = returncode
        if returncode is None:
            detail = f"could not be started: {output.strip()}"
        else:
            detail = f"failed with output: {output.strip()} (exit status {returncode})"
        super().__init__(f"command 'docker compose {command}' {detail}")


class LoginError(CiwError):
    pass


class InvalidTransition(CiwError):
    pass
