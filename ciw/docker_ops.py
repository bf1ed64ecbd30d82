from __future__ import annotations

import subprocess
from dataclasses import dataclass

import docker
from docker.errors import DockerException, NotFound

from .errors import LoginError
from .settings import Settings


@dataclass(frozen=True)
class ContainerInfo:
    id: str
    name: str
    image: str


def make_client() -> docker.DockerClient:
    """Client configured from DOCKER_HOST & co, API version negotiated with the daemon."""
    return docker.from_env()


def docker_available(client: docker.DockerClient) -> bool:
    try:
        client.ping()
        return True
    except DockerException:
        return False


def inspect_container(client: docker.DockerClient, container_id: str) -> ContainerInfo | None:
    """Resolve image reference and name for a container.

    Returns None when the container no longer exists. Any other Docker error
    propagates to the caller.
    """
    try:
        cont = client.containers.get(container_id)
    except NotFound:
        return None
    attrs = cont.attrs or {}
    image = (attrs.get("Config") or {}).get("Image") or ""
    name = (attrs.get("Name") or cont.name or "").lstrip("/")
    return ContainerInfo(id=cont.id, name=name, image=image)


def docker_login(settings: Settings) -> None:
    """Log the docker CLI into the registry so `docker compose pull` can authenticate.

    The password is handed over on stdin, never on the command line.
    """
    username = settings.registry_username
    password = settings.registry_password
    if not username or not password:
        raise LoginError("GHCR_USERNAME or GHCR_PASSWORD is not set")

    cmd = [settings.docker_bin, "login", settings.registry, "-u", username, "--password-stdin"]
    try:
        proc = subprocess.run(
            cmd,
            input=password,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            check=False,
        )
    except OSError as e:
        raise LoginError(f"docker login failed: {e}") from e
    if proc.returncode != 0:
        raise LoginError(f"docker login failed: {proc.stdout.strip()} (exit status {proc.returncode})")
