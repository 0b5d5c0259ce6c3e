from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

import docker
import requests
from docker.errors import APIError, DockerException, NotFound

from .db import log_event

PROJECT_LABEL = "com.docker.compose.project"
SERVICE_LABEL = "com.docker.compose.service"

SERVICE_NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.\-]{0,62}$")


class ProbeError(Exception):
    """The container runtime could not be queried."""


class DriverError(Exception):
    """A compose command failed."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


def validate_service_name(name: str) -> None:
    if not SERVICE_NAME_RE.match(name):
        raise ValueError(f"Invalid compose service name: {name!r}")


@dataclass(frozen=True)
class ExecResult:
    exit_code: int
    output: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ComposeRuntime:
    """Read-only view of a compose project's containers through the docker SDK."""

    def __init__(self, project: str, client_factory: Callable[[], Any] = docker.from_env):
        self.project = project
        self._client_factory = client_factory

    def _client(self) -> Any:
        try:
            return self._client_factory()
        except (DockerException, requests.RequestException) as e:
            raise ProbeError(f"Docker is not available: {e}") from e

    def _containers(self, running_only: bool = True) -> list[Any]:
        c = self._client()
        filters: dict[str, Any] = {"label": [f"{PROJECT_LABEL}={self.project}"]}
        if running_only:
            filters["status"] = "running"
        try:
            return c.containers.list(all=not running_only, filters=filters)
        # A dropped daemon socket surfaces as a requests error, not a DockerException.
        except (DockerException, requests.RequestException) as e:
            raise ProbeError(f"Listing containers failed: {e}") from e

    def list_running(self) -> set[str]:
        running: set[str] = set()
        for cont in self._containers():
            labels = getattr(cont, "labels", None)
            if not isinstance(labels, Mapping):
                raise ProbeError(f"Malformed container record: {cont!r}")
            service = labels.get(SERVICE_LABEL)
            if service:
                running.add(service)
        return running

    def container_for(self, service: str) -> Any | None:
        for cont in self._containers():
            if cont.labels.get(SERVICE_LABEL) == service:
                return cont
        return None

    def is_running(self, service: str) -> bool:
        return self.container_for(service) is not None

    def exec(self, service: str, cmd: list[str], environment: dict[str, str] | None = None) -> ExecResult:
        """Run a command inside the service's container.

        Raises ProbeError when the container is gone or the daemon fails.
        """
        cont = self.container_for(service)
        if cont is None:
            raise ProbeError(f"No running container for service '{service}'")
        try:
            res = cont.exec_run(cmd, environment=environment or {}, demux=False)
        except (DockerException, requests.RequestException) as e:
            raise ProbeError(f"exec in '{service}' failed: {e}") from e
        out = res.output or b""
        if isinstance(out, bytes):
            out = out.decode("utf-8", errors="replace")
        return ExecResult(exit_code=int(res.exit_code), output=out)


def _tail(text: str, lines: int = 20) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


class ComposeDriver:
    """Bring the compose project up or down.

    The docker SDK has no compose support, so this shells out to `docker compose`.
    Network housekeeping goes through the SDK.
    """

    def __init__(
        self,
        compose_file: str,
        project: str,
        env_file: str | None = None,
        network: str | None = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        client_factory: Callable[[], Any] = docker.from_env,
    ):
        self.compose_file = compose_file
        self.project = project
        self.env_file = env_file
        self.network = network
        self._run = runner
        self._client_factory = client_factory

    def _base(self) -> list[str]:
        cmd = ["docker", "compose", "-f", self.compose_file, "-p", self.project]
        if self.env_file:
            cmd += ["--env-file", self.env_file]
        return cmd

    def _compose(self, *args: str) -> None:
        cmd = self._base() + list(args)
        try:
            proc = self._run(cmd, capture_output=True, text=True, check=False)
        except FileNotFoundError as e:
            raise DriverError("docker CLI not found on PATH") from e
        if proc.returncode != 0:
            stderr = _tail(proc.stderr or "")
            raise DriverError(f"'{' '.join(args)}' exited with {proc.returncode}", stderr=stderr)

    def up(self, services: Iterable[str]) -> None:
        names = sorted(set(services))
        for name in names:
            validate_service_name(name)
        self.remove_stale_network()
        self._compose("up", "-d", "--build", *names)
        log_event("INFO", f"compose up: {', '.join(names)}")

    def down(self, remove_network: bool = False) -> None:
        self._compose("down")
        log_event("INFO", "compose down")
        if remove_network:
            self.remove_stale_network()

    def remove_stale_network(self) -> bool:
        """Remove the shared network if nothing is attached to it.

        Best effort: returns False when the network is absent, in use, or the
        daemon cannot be reached.
        """
        if not self.network:
            return False
        try:
            c = self._client_factory()
            net = c.networks.get(self.network)
            net.reload()
            if net.attrs.get("Containers"):
                return False
            net.remove()
        except NotFound:
            return False
        except (APIError, DockerException) as e:
            log_event("WARN", f"Could not remove network '{self.network}': {e}")
            return False
        log_event("INFO", f"Removed network '{self.network}'")
        return True
