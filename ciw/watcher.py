from __future__ import annotations

from dataclasses import dataclass
from threading import Event, Thread
from typing import Any, Protocol

import docker
from docker.errors import DockerException, StreamParseError
from requests.exceptions import RequestException

from .docker_ops import inspect_container
from .logs import log_event
from .runtime import CooldownTracker

LIFECYCLE_ACTIONS = frozenset({"die", "restart"})
# Server-side narrowing only; handle_event() still checks type and action itself.
EVENT_FILTERS = {"type": "container"}


class ContainerRestarter(Protocol):
    def restart(self, container_name: str) -> Any: ...


@dataclass(frozen=True)
class ContainerEvent:
    type: str
    action: str
    actor_id: str

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> "ContainerEvent":
        # Old daemons send `status`/`id` instead of `Action`/`Actor.ID`.
        actor = message.get("Actor") or {}
        return cls(
            type=message.get("Type") or "",
            action=message.get("Action") or message.get("status") or "",
            actor_id=actor.get("ID") or message.get("id") or "",
        )

    @property
    def is_lifecycle(self) -> bool:
        return self.type == "container" and self.action in LIFECYCLE_ACTIONS and bool(self.actor_id)


def image_matches(image: str, tracked_image: str) -> bool:
    """Substring match so registry-prefixed and digest-qualified refs still count."""
    return tracked_image in image


class EventWatcher:
    """Restarts the tracked image's container whenever docker reports it died or restarted.

    Events are handled one at a time on the watcher thread: while a restart
    sequence runs, further events wait in the daemon's stream.

    When the subscription fails or ends, `on_stream_end` decides what happens:
      - "exit": stop watching and set `failed` (the process should exit non-zero)
      - "resubscribe": open a new subscription after an exponential backoff
    """

    def __init__(
        self,
        client: docker.DockerClient,
        tracked_image: str,
        tracker: CooldownTracker,
        restarter: ContainerRestarter,
        on_stream_end: str = "exit",
        backoff_s: float = 5,
        max_backoff_s: float = 60,
    ):
        self.client = client
        self.tracked_image = tracked_image
        self.tracker = tracker
        self.restarter = restarter
        self.on_stream_end = on_stream_end
        self.backoff_s = max(0.0, float(backoff_s))
        self.max_backoff_s = max(self.backoff_s, float(max_backoff_s))
        self.failed = False
        self._stop = Event()
        self._stream: Any = None
        self._thr: Thread | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._thr = Thread(target=self.run, name="ciw-watcher", daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop.set()
        stream = self._stream
        if stream is not None:
            try:
                stream.close()
            except Exception as e:
                log_event("DEBUG", f"Closing event stream failed: {type(e).__name__}: {e}")

    def join(self, timeout: float | None = None) -> None:
        if self._thr:
            self._thr.join(timeout)

    def is_alive(self) -> bool:
        return bool(self._thr and self._thr.is_alive())

    def run(self) -> None:
        log_event("INFO", f"Watching docker events for image {self.tracked_image}")
        backoff = self.backoff_s
        while not self._stop.is_set():
            try:
                self._stream = self.client.events(decode=True, filters=EVENT_FILTERS)
                for message in self._stream:
                    backoff = self.backoff_s
                    self._dispatch(message)
                    if self._stop.is_set():
                        break
                error = "event stream closed"
            except (DockerException, StreamParseError, RequestException, OSError) as e:
                error = f"{type(e).__name__}: {e}"
            except Exception as e:
                # Anything else still goes through the stream-end policy.
                error = f"unexpected {type(e).__name__}: {e}"
            finally:
                self._stream = None

            if self._stop.is_set():
                break
            log_event("ERROR", f"Error while watching events: {error}")
            if self.on_stream_end != "resubscribe":
                self.failed = True
                break
            log_event("WARN", f"Resubscribing to docker events in {backoff:g}s")
            self._stop.wait(backoff)
            backoff = min(backoff * 2, self.max_backoff_s)
        log_event("INFO", "Event watcher stopped")

    def _dispatch(self, message: dict[str, Any]) -> None:
        try:
            self.handle_event(ContainerEvent.from_message(message))
        except Exception as e:
            log_event("ERROR", f"Event handling failed: {type(e).__name__}: {e}")

    def handle_event(self, event: ContainerEvent) -> bool:
        """Process one event. Returns True when a restart sequence was run."""
        if not event.is_lifecycle:
            return False

        try:
            info = inspect_container(self.client, event.actor_id)
        except DockerException as e:
            log_event("ERROR", f"Error inspecting container: {e}")
            return False
        if info is None:
            # Already removed; nothing to update.
            return False

        if not image_matches(info.image, self.tracked_image):
            return False

        name = info.name
        if not self.tracker.claim(name):
            log_event("INFO", f"Skipping container {name} (recently processed)")
            return False

        log_event("INFO", f"Container {name} with image {self.tracked_image} stopped. Updating to latest image...")
        self.restarter.restart(name)
        return True
