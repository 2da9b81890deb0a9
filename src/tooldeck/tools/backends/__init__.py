"""Backend kinds an MCP Tool can run on.

Each kind provides a BackendSpec describing how to start it and a
RunningBackend handle for the started instance.
"""

from tooldeck.config import BackendsConfig
from tooldeck.tools.backends.base import BackendSpec, MessageStreams, RunningBackend
from tooldeck.tools.backends.container import ContainerSpec, RunningContainer
from tooldeck.tools.backends.local import LocalProgramSpec, LocalRunningProgram


def specs_from_config(
    config: BackendsConfig, container_stop_timeout: float = 15.0
) -> list[BackendSpec]:
    """Build backend specs from configuration, local programs first."""
    specs: list[BackendSpec] = [
        LocalProgramSpec.from_config(program) for program in config.local_programs
    ]
    specs.extend(
        ContainerSpec(container, stop_timeout=container_stop_timeout)
        for container in config.containers
    )
    return specs


__all__ = [
    "BackendSpec",
    "ContainerSpec",
    "LocalProgramSpec",
    "LocalRunningProgram",
    "MessageStreams",
    "RunningBackend",
    "RunningContainer",
    "specs_from_config",
]
