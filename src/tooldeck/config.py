"""Configuration module for tooldeck using pydantic-settings.

Two kinds of configuration live here:

- ToolDeckSettings: process settings (Ollama host, model, timeouts, ...),
  overridable through TOOLDECK_ prefixed environment variables.
- BackendsConfig: the MCP backends to launch, loaded from a TOML file. Each
  entry is fully resolved (paths, environment policy, mounts) before it is
  handed to the tool orchestration layer.
"""

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tooldeck.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


class ToolDeckSettings(BaseSettings):
    """Main configuration settings for tooldeck.

    All settings can be overridden via environment variables with the TOOLDECK_ prefix.
    For example, TOOLDECK_OLLAMA_HOST will override the ollama_host setting.
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Ollama
    ollama_host: str = "http://localhost:11434"
    model: str = "ministral-3:3b"

    # System prompt: a file wins over an inline string
    system_prompt: str | None = None
    system_prompt_file: str | None = None

    # Backends
    backends_file: str | None = None
    strict_discovery: bool = False

    # Timeouts (seconds)
    discovery_timeout: float = 15.0
    invocation_timeout: float = 15.0
    container_stop_timeout: float = 15.0

    # Conversation
    max_turns: int = 25

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="TOOLDECK_")

    def resolve_system_prompt(self) -> str:
        """Get the system prompt content.

        Raises:
            ConfigurationError: If the configured prompt file cannot be read
        """
        if self.system_prompt_file:
            try:
                return Path(self.system_prompt_file).read_text(encoding="utf-8")
            except OSError as e:
                raise ConfigurationError(
                    f"failed to read system prompt file {self.system_prompt_file!r}: {e}"
                ) from e
        if self.system_prompt:
            return self.system_prompt
        return DEFAULT_SYSTEM_PROMPT


class EnvEntry(BaseModel):
    """An environment variable handed to a container.

    Either a literal value or a pass-through of the orchestrator's own
    environment. An entry without a value passes the variable through.
    """

    key: str
    value: str | None = None
    pass_through: bool | None = None

    @model_validator(mode="after")
    def _check_exclusive(self) -> "EnvEntry":
        self._ensure_exclusive()
        return self

    def _ensure_exclusive(self) -> None:
        if self.value and self.pass_through:
            raise ConfigurationError(
                f"env {self.key}: only value or pass_through can be set, not both"
            )

    def resolve_value(self) -> tuple[str, str]:
        """Resolve the entry into a (key, value) pair.

        Raises:
            ConfigurationError: If both a value and pass_through are set
        """
        self._ensure_exclusive()
        if self.value:
            return self.key, self.value
        return self.key, os.environ.get(self.key, "")


class Mount(BaseModel):
    """A bind mount from the host into a container."""

    source: str
    target: str
    options: str = ""

    def resolve_source(self, working_directory: Path) -> Path:
        """Resolve the host side of the mount to an absolute path."""
        source = Path(self.source)
        if source.is_absolute():
            return source
        return (working_directory / source).resolve()

    def bind(self, working_directory: Path) -> str:
        """Render the mount in Docker's `source:target[:options]` form."""
        spec = f"{self.resolve_source(working_directory)}:{self.target}"
        if self.options:
            spec += f":{self.options}"
        return spec


class ArgBlock(BaseModel):
    """A group of command arguments passed to a container."""

    strings: list[str] = Field(default_factory=list)


class LocalProgramConfig(BaseModel):
    """An MCP server launched as a local subprocess over stdio."""

    name: str
    program: str
    args: list[str] = Field(default_factory=list)
    # Added on top of the orchestrator's own environment
    env: dict[str, str] = Field(default_factory=dict)


class ContainerConfig(BaseModel):
    """An MCP server launched as a Docker container attached over stdio."""

    name: str
    image: str
    args: list[ArgBlock] = Field(default_factory=list)
    mounts: list[Mount] = Field(default_factory=list)
    env: list[EnvEntry] = Field(default_factory=list)
    verbose: bool = False
    # Relative paths are resolved against the directory holding the backends file
    working_directory: str | None = None

    def resolved_working_directory(self) -> Path:
        """Get the absolute directory relative mounts are resolved against."""
        if self.working_directory is None:
            return Path.cwd()
        return Path(self.working_directory).resolve()

    def command(self) -> list[str]:
        """Flatten the argument blocks into a single command vector."""
        return [arg for block in self.args for arg in block.strings]


class BackendsConfig(BaseModel):
    """All configured backends."""

    local_programs: list[LocalProgramConfig] = Field(default_factory=list)
    containers: list[ContainerConfig] = Field(default_factory=list)


def load_backends_file(path: str | Path) -> BackendsConfig:
    """Load backend configuration from a TOML file.

    Relative container working directories are resolved against the
    directory containing the file.

    Args:
        path: Path to the TOML file

    Returns:
        BackendsConfig: The parsed and resolved configuration

    Raises:
        ConfigurationError: If the file cannot be read or is invalid
    """
    path = Path(path)
    logger.info(f"Loading backends from {path}")
    try:
        with path.open("rb") as f:
            raw = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"failed to read backends file {path}: {e}") from e

    try:
        config = BackendsConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"invalid backends file {path}: {e}") from e

    base = path.resolve().parent
    for container in config.containers:
        working = Path(container.working_directory or ".")
        if not working.is_absolute():
            working = base / working
        container.working_directory = str(working.resolve())
        if container.verbose:
            logger.info(
                f"docker-{container.name} using working directory: {container.working_directory}"
            )
    return config
