"""MCP servers launched as Docker containers.

The container's stdin/stdout carry the MCP conversation. Starting one is a
strict sequence with no retries:

1. resolve the image (pull only when it is not present locally)
2. compute environment, binds and command
3. create the container (stdin open once, no TTY, auto-remove)
4. attach to stdin/stdout/stderr before starting so no output is lost
5. start it
6. demultiplex the attach stream and bridge it into MCP message streams

A failure at any step releases everything acquired so far.
"""

import functools
import logging
import socket
from contextlib import AbstractAsyncContextManager
from typing import Any

import anyio
import anyio.to_thread
import docker
import docker.errors
from docker.utils import parse_repository_tag

from tooldeck.config import ContainerConfig
from tooldeck.errors import OperationalError, join_errors
from tooldeck.tools.backends.base import BackendSpec, MessageStreams, RunningBackend
from tooldeck.tools.transport import FrameDemultiplexer, bridge_streams

logger = logging.getLogger(__name__)

# Seconds Docker waits after SIGTERM before killing the container
STOP_GRACE_SECONDS = 10


async def _blocking(func: Any, *args: Any, **kwargs: Any) -> Any:
    return await anyio.to_thread.run_sync(
        functools.partial(func, *args, **kwargs), abandon_on_cancel=True
    )


class ContainerSpec(BackendSpec):
    """A container image run as an MCP server."""

    def __init__(self, config: ContainerConfig, stop_timeout: float = 15.0) -> None:
        self.config = config
        self.name = config.name
        self.stop_timeout = stop_timeout

    async def start(self) -> "RunningContainer":
        running = RunningContainer(self.config, self.stop_timeout)
        try:
            await running.launch()
        except BaseException:
            with anyio.CancelScope(shield=True):
                try:
                    await running.stop()
                except Exception as cleanup:
                    logger.warning(
                        f"docker-{self.name} > cleanup after failed launch: {cleanup}"
                    )
            raise
        return running


class RunningContainer(RunningBackend):
    """A started container and every handle needed to stop it."""

    def __init__(self, config: ContainerConfig, stop_timeout: float = 15.0) -> None:
        self.config = config
        self.stop_timeout = stop_timeout
        self.container_id: str | None = None
        self._client: docker.DockerClient | None = None
        self._attachment: Any = None
        self._sock: socket.socket | None = None
        self._demux: FrameDemultiplexer | None = None

    @property
    def label(self) -> str:
        return f"docker-{self.config.name}"

    async def launch(self) -> None:
        cfg = self.config
        try:
            self._client = await _blocking(docker.from_env)
        except docker.errors.DockerException as e:
            raise OperationalError("failed to create docker client", e) from e
        api = self._client.api

        await self._resolve_image(api)

        environment = []
        for entry in cfg.env:
            key, value = entry.resolve_value()
            environment.append(f"{key}={value}")
            if cfg.verbose:
                logger.info(f"{self.label} >{{env}} {key}")

        working_directory = cfg.resolved_working_directory()
        try:
            binds = [mount.bind(working_directory) for mount in cfg.mounts]
        except OSError as e:
            raise OperationalError("failed to resolve mount source", e) from e

        command = cfg.command()
        if cfg.verbose:
            logger.info(f"{self.label} > `docker run --rm -i {cfg.image} {' '.join(command)}`")

        try:
            created = await _blocking(
                api.create_container,
                cfg.image,
                command=command or None,
                environment=environment,
                stdin_open=True,
                tty=False,
                host_config=api.create_host_config(binds=binds, auto_remove=True),
            )
        except docker.errors.DockerException as e:
            raise OperationalError("failed to create docker container", e) from e
        self.container_id = created["Id"]
        logger.debug(f"{self.label} > created container {self.container_id}")

        try:
            self._attachment = await _blocking(
                api.attach_socket,
                self.container_id,
                params={"stdin": 1, "stdout": 1, "stderr": 1, "stream": 1},
            )
        except docker.errors.DockerException as e:
            raise OperationalError("failed to attach to docker container", e) from e
        self._sock = getattr(self._attachment, "_sock", self._attachment)

        try:
            await _blocking(api.start, self.container_id)
        except docker.errors.DockerException as e:
            self._close_attachment()
            raise OperationalError("failed to start docker container", e) from e

        self._demux = FrameDemultiplexer(self._sock, self.label)
        self._demux.start()
        logger.info(f"{self.label} > container started")

    async def _resolve_image(self, api: docker.APIClient) -> None:
        image = self.config.image
        try:
            await _blocking(api.inspect_image, image)
            return
        except docker.errors.NotFound:
            pass
        except docker.errors.DockerException as e:
            raise OperationalError("failed to inspect docker image", e) from e

        logger.info(f"{self.label} > pulling image {image}")
        repository, tag = parse_repository_tag(image)

        def pull() -> None:
            # Progress output is drained and discarded
            for progress in api.pull(repository, tag=tag or "latest", stream=True, decode=True):
                if isinstance(progress, dict) and "error" in progress:
                    raise docker.errors.APIError(progress["error"])

        try:
            await _blocking(pull)
        except docker.errors.DockerException as e:
            raise OperationalError("failed to pull docker image", e) from e

    def transport(self) -> AbstractAsyncContextManager[MessageStreams]:
        if self._demux is None or self._sock is None:
            raise RuntimeError(f"{self.label} is not running")
        sock = self._sock

        async def write(data: bytes) -> None:
            await anyio.to_thread.run_sync(sock.sendall, data)

        return bridge_streams(
            self._demux.stdout,
            write,
            self._demux.stderr,
            label=self.label,
            verbose=self.config.verbose,
        )

    def close_write(self) -> None:
        """Close only the write half of the attachment, signalling EOF on stdin."""
        if self._sock is not None:
            try:
                self._sock.shutdown(socket.SHUT_WR)
            except OSError as e:
                logger.debug(f"{self.label} > closing stdin: {e}")

    def _close_attachment(self) -> None:
        sock, attachment = self._sock, self._attachment
        self._sock = None
        self._attachment = None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already disconnected by the peer
            pass
        sock.close()
        if attachment is not None and attachment is not sock:
            attachment.close()

    async def stop(self) -> None:
        """Stop and remove the container, then release every handle.

        Runs under its own deadline, shielded from the caller's cancellation,
        so a short caller timeout cannot leave the container running.

        Raises:
            ExceptionGroup: Every step that failed
        """
        problems: list[Exception] = []
        with anyio.CancelScope(shield=True):
            with anyio.move_on_after(self.stop_timeout) as deadline:
                await self._stop_container(problems)
            if deadline.cancelled_caught:
                problems.append(
                    OperationalError(
                        "failed to stop container",
                        TimeoutError(f"gave up after {self.stop_timeout}s"),
                    )
                )

            try:
                self._close_attachment()
            except OSError as e:
                problems.append(OperationalError("failed to close attachment", e))

            if self._demux is not None:
                demux, self._demux = self._demux, None
                await demux.wait_closed()

            if self._client is not None:
                client, self._client = self._client, None
                try:
                    client.close()
                except Exception as e:
                    problems.append(
                        OperationalError("failed to cleanly close docker client", e)
                    )

        if (problem := join_errors(f"{self.label}: stop", problems)) is not None:
            raise problem

    async def _stop_container(self, problems: list[Exception]) -> None:
        if self._client is None or self.container_id is None:
            return
        api = self._client.api
        container_id = self.container_id
        self.close_write()

        logger.info(f"{self.label} > shutting down container...")
        try:
            await _blocking(api.stop, container_id, timeout=STOP_GRACE_SECONDS)
        except docker.errors.NotFound:
            logger.debug(f"{self.label} > container already gone")
        except docker.errors.DockerException as e:
            problems.append(OperationalError("failed to stop container", e))

        try:
            await _blocking(api.remove_container, container_id, force=True)
        except docker.errors.NotFound:
            pass
        except docker.errors.APIError as e:
            if e.status_code == 409:
                # Auto-remove already in progress
                logger.debug(f"{self.label} > (normal) removal conflict after stop: {e}")
            else:
                problems.append(OperationalError("failed to remove container", e))
        self.container_id = None
