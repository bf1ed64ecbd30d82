from __future__ import annotations

import argparse
import signal
from dataclasses import replace

from docker.errors import DockerException

from .compose import ComposeRunner, ComposeTarget
from .docker_ops import docker_available, docker_login, make_client
from .errors import LoginError
from .logs import configure_logging, log_event
from .restarter import Restarter
from .runtime import CooldownTracker
from .settings import STREAM_END_POLICIES, Settings, load_settings
from .watcher import EventWatcher


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ciw",
        description="Restart a compose service with the latest image whenever its container dies",
    )
    p.add_argument("--env-file", help="Load variables from this .env file (default: ./.env if present)")
    p.add_argument("--compose-file", help="Compose file path (env: COMPOSE_FILE_PATH)")
    p.add_argument("--image", help="Image reference to watch, substring match (env: IMAGE_TO_WATCH)")
    p.add_argument("--skip-login", action="store_true", default=None, help="Do not run `docker login` at startup")
    p.add_argument("--log-level", help="DEBUG, INFO, WARN, ERROR (env: CIW_LOG_LEVEL)")
    p.add_argument(
        "--on-stream-end",
        choices=STREAM_END_POLICIES,
        help=(
            "What to do when the docker event stream fails (env: CIW_ON_STREAM_END). "
            "'exit' (default) stops the daemon with exit status 1; run it under a restart "
            "policy such as `restart: on-failure`. 'resubscribe' reconnects with backoff."
        ),
    )
    return p


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides = {
        "compose_file_path": args.compose_file,
        "image_to_watch": args.image,
        "skip_login": args.skip_login,
        "log_level": args.log_level.upper() if args.log_level else None,
        "on_stream_end": args.on_stream_end,
    }
    return replace(settings, **{k: v for k, v in overrides.items() if v is not None})


def build_watcher(settings: Settings, client) -> EventWatcher:
    runner = ComposeRunner(ComposeTarget(compose_file=settings.compose_file_path, docker_bin=settings.docker_bin))
    return EventWatcher(
        client=client,
        tracked_image=settings.image_to_watch,
        tracker=CooldownTracker(),
        restarter=Restarter(runner),
        on_stream_end=settings.on_stream_end,
        backoff_s=settings.resubscribe_backoff_s,
        max_backoff_s=settings.resubscribe_max_backoff_s,
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = apply_overrides(load_settings(args.env_file), args)
    configure_logging(settings.log_level)

    try:
        client = make_client()
    except DockerException as e:
        log_event("CRITICAL", f"Failed to create Docker client: {e}")
        return 1
    if not docker_available(client):
        log_event("CRITICAL", "Docker daemon is not reachable")
        return 1

    if settings.skip_login:
        log_event("INFO", "Skipping registry login")
    else:
        try:
            docker_login(settings)
        except LoginError as e:
            log_event("CRITICAL", f"Error logging in to {settings.registry}: {e}")
            return 1
        log_event("INFO", f"Logged in to {settings.registry} as {settings.registry_username}")

    watcher = build_watcher(settings, client)

    def _terminate(signum, frame) -> None:
        log_event("INFO", f"Received signal {signum}, shutting down")
        watcher.stop()

    previous = signal.signal(signal.SIGTERM, _terminate)

    watcher.start()
    try:
        # Wake up periodically so KeyboardInterrupt is delivered to the main thread.
        while watcher.is_alive():
            watcher.join(timeout=1.0)
    except KeyboardInterrupt:
        watcher.stop()
        watcher.join(timeout=5.0)
    finally:
        if previous is not None:
            signal.signal(signal.SIGTERM, previous)
    return 1 if watcher.failed else 0
