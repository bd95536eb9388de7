"""Docker sandbox for running the in-container agent."""

import logging
import os
import re
import sys
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import docker
from docker.errors import DockerException, ImageNotFound, NotFound
from docker.utils import parse_repository_tag

from minion.core.errors import SandboxError

logger = logging.getLogger(__name__)

HOST_REPO_MOUNT = "/host-repo"
RUN_DIR_MOUNT = "/minion-run"
PROXY_VARS = ("HTTP_PROXY", "HTTPS_PROXY", "NO_PROXY")
TASK_LABEL = "minion.task"

_MEMORY = re.compile(r"^(\d+)([gmk]?)$", re.IGNORECASE)
_MEMORY_UNITS = {"": 1, "k": 1024, "m": 1024**2, "g": 1024**3}
DEFAULT_MEMORY = 4 * 1024**3


def parse_memory(memory: str) -> int:
    """Convert a size like ``4g``, ``512m`` or ``2048k`` to bytes.

    Unparseable values fall back to 4 GiB.
    """
    match = _MEMORY.match(memory.strip())
    if not match:
        logger.warning(f"Invalid memory limit {memory!r}, using 4g")
        return DEFAULT_MEMORY
    return int(match.group(1)) * _MEMORY_UNITS[match.group(2).lower()]


def collect_proxy_env() -> dict[str, str]:
    """Proxy variables of the host process, passed through verbatim."""
    return {name: os.environ[name] for name in PROXY_VARS if os.environ.get(name)}


def host_user() -> str | None:
    """``uid:gid`` of the invoking user on Linux, where bind mounts keep ownership."""
    if sys.platform.startswith("linux"):
        return f"{os.getuid()}:{os.getgid()}"
    return None


@dataclass
class SandboxConfig:
    image: str
    repo_path: str
    run_dir: str
    memory: str = "4g"
    cpus: float = 2
    network: str = "bridge"
    command: str | None = None
    task_id: str | None = None
    proxy_env: dict[str, str] = field(default_factory=collect_proxy_env)
    user: str | None = field(default_factory=host_user)


def build_container_options(config: SandboxConfig) -> dict[str, Any]:
    """Keyword arguments for ``client.containers.create`` for a sandbox.

    The repository is mounted read-only at /host-repo and the run directory
    read-write at /minion-run.
    """
    options: dict[str, Any] = {
        "image": config.image,
        "environment": [f"{k}={v}" for k, v in config.proxy_env.items()],
        "volumes": {
            config.repo_path: {"bind": HOST_REPO_MOUNT, "mode": "ro"},
            config.run_dir: {"bind": RUN_DIR_MOUNT, "mode": "rw"},
        },
        "mem_limit": parse_memory(config.memory),
        "nano_cpus": int(config.cpus * 1e9),
        "network_mode": config.network,
    }
    if config.command:
        options["command"] = config.command
    if config.user:
        options["user"] = config.user
    if config.task_id:
        options["labels"] = {TASK_LABEL: config.task_id}
    return options


class SandboxHandle:
    """A started sandbox container."""

    def __init__(self, container):
        self._container = container
        self._stopped = False
        self._lock = threading.Lock()

    @property
    def container_id(self) -> str:
        return self._container.id

    def logs(self) -> Iterator[str]:
        """Follow combined stdout/stderr until the container exits."""
        for chunk in self._container.logs(stream=True, follow=True, stdout=True, stderr=True):
            yield chunk.decode("utf-8", errors="replace")

    def wait(self, timeout: float | None = None) -> int:
        """Block until the container exits and return its exit code.

        Raises:
            SandboxError: If waiting fails or the timeout expires
        """
        try:
            result = self._container.wait(timeout=timeout)
        except (DockerException, OSError) as e:
            raise SandboxError(f"Failed waiting for container {self.container_id}: {e}") from e
        return int(result.get("StatusCode", -1))

    def stop(self) -> None:
        """Stop and remove the container. Safe to call repeatedly."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True

        try:
            self._container.stop(timeout=10)
        except DockerException as e:
            logger.debug(f"Stop of {self.container_id} ignored: {e}")
        try:
            self._container.remove(force=True)
        except DockerException as e:
            logger.debug(f"Remove of {self.container_id} ignored: {e}")
        logger.info(f"Stopped sandbox {self.container_id}")


class DockerSandbox:
    """Service for Docker sandbox operations."""

    def __init__(self, client: docker.DockerClient | None = None):
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            try:
                self._client = docker.from_env()
            except DockerException as e:
                raise SandboxError(f"Cannot connect to Docker: {e}") from e
        return self._client

    def ping(self) -> None:
        """Check that the Docker daemon answers.

        Raises:
            SandboxError: If the daemon is unreachable
        """
        try:
            self.client.ping()
        except DockerException as e:
            raise SandboxError(f"Docker daemon is not responding: {e}") from e

    def pull(self, image: str) -> None:
        """Pull image unless it is already present locally.

        Raises:
            SandboxError: If the pull fails
        """
        try:
            self.client.images.get(image)
            logger.info(f"Image {image} present locally, skipping pull")
            return
        except ImageNotFound:
            pass
        except DockerException as e:
            raise SandboxError(f"Failed to inspect image {image}: {e}") from e

        repository, tag = parse_repository_tag(image)
        logger.info(f"Pulling image {image}")
        try:
            self.client.images.pull(repository, tag=tag or "latest")
        except DockerException as e:
            raise SandboxError(f"Failed to pull image {image}: {e}") from e

    def start(self, config: SandboxConfig) -> SandboxHandle:
        """Create and start a container.

        Raises:
            SandboxError: If the container cannot be created or started
        """
        options = build_container_options(config)
        try:
            container = self.client.containers.create(**options)
        except DockerException as e:
            raise SandboxError(f"Failed to create container from {config.image}: {e}") from e

        handle = SandboxHandle(container)
        try:
            container.start()
        except DockerException as e:
            handle.stop()
            raise SandboxError(f"Failed to start container {container.id}: {e}") from e

        logger.info(f"Started sandbox {container.id} from {config.image}")
        return handle

    def stop_container(self, container_id: str) -> bool:
        """Stop and remove a container by id. Returns False if it is gone."""
        try:
            container = self.client.containers.get(container_id)
        except NotFound:
            return False
        except DockerException as e:
            raise SandboxError(f"Failed to look up container {container_id}: {e}") from e
        SandboxHandle(container).stop()
        return True
