"""
Project configuration: vaf.yml loading and deploy configuration resolution.

Every overridable field is resolved as

    command-line override > environment value in vaf.yml > built-in default

from scratch on each call, so nothing carries over between deploy attempts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, PositiveInt, ValidationError, field_validator

from .errors import EnvironmentNotFound, MissingIdentifier, ProjectFileError, UnknownEnvironment, VafError

logger = logging.getLogger(__name__)

PROJECT_FILE = "vaf.yml"

CONTAINER_RUNTIME = "docker"
DEFAULT_RUNTIME = "nodejs18.x"
DEFAULT_HANDLER = "index.handler"
DEFAULT_MEMORY_MB = 512
DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_IMAGE_TAG = "latest"
DEFAULT_USE_LAYERS = True

RUNTIME_CHOICES = [
    "nodejs20.x",
    "nodejs18.x",
    "nodejs16.x",
    "nodejs14.x",
    CONTAINER_RUNTIME,
    "python3.9",
    "python3.11",
]


class RuntimeKind(Enum):
    """Shape of the deployable artifact."""
    ZIP = "zip"
    ZIP_LAYER = "zip+layer"
    CONTAINER = "container"


class EnvironmentSpec(BaseModel):
    """One entry under ``environments:`` in vaf.yml."""
    model_config = ConfigDict(extra="ignore")

    runtime: Optional[str] = None
    memory: Optional[PositiveInt] = None
    timeout: Optional[PositiveInt] = None
    handler: Optional[str] = None
    database: Optional[str] = None
    cache: Optional[str] = None
    storage: Optional[str] = None
    build: Optional[List[str]] = None
    deploy: Optional[List[str]] = None
    dockerfile: Optional[str] = None
    image_tag: Optional[str] = None
    use_layers: Optional[bool] = None


class ProjectFile(BaseModel):
    """Contents of vaf.yml."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: Optional[str] = None
    environments: Dict[str, EnvironmentSpec] = {}

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("environments", mode="before")
    @classmethod
    def fill_empty_environments(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(name): (spec if spec is not None else {}) for name, spec in value.items()}
        return value

    @property
    def environment_names(self) -> List[str]:
        return list(self.environments.keys())


@dataclass
class DeployOverrides:
    """Per-invocation values from the command line. None means not given."""
    runtime: Optional[str] = None
    memory: Optional[int] = None
    timeout: Optional[int] = None
    handler: Optional[str] = None
    database: Optional[str] = None
    cache: Optional[str] = None
    storage: Optional[str] = None
    build_commands: Optional[List[str]] = None
    dockerfile: Optional[str] = None
    image_tag: Optional[str] = None
    use_layers: Optional[bool] = None


@dataclass
class DeploymentConfig:
    """Fully resolved configuration for one deploy attempt."""
    project_id: str
    environment_name: str
    runtime_kind: RuntimeKind
    runtime: str
    memory_mb: int
    timeout_seconds: int
    handler: Optional[str] = None
    database: Optional[str] = None
    cache: Optional[str] = None
    storage: Optional[str] = None
    build_commands: List[str] = field(default_factory=list)
    dockerfile_override: Optional[str] = None
    dockerfile_declared: Optional[str] = None
    # Set once the container builder has located the Dockerfile
    dockerfile_path: Optional[str] = None
    image_tag: str = DEFAULT_IMAGE_TAG
    use_layers: bool = DEFAULT_USE_LAYERS


@dataclass
class EnvironmentResolution:
    name: str
    id: str


def load_project_file(cwd: str | Path) -> Optional[ProjectFile]:
    """
    Load vaf.yml from a directory.

    Args:
        cwd: Project directory

    Returns:
        Parsed ProjectFile, or None if the file does not exist

    Raises:
        ProjectFileError: If the file is not valid YAML or has invalid values
    """
    path = Path(cwd) / PROJECT_FILE
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ProjectFileError(f"Failed to parse {PROJECT_FILE}: {e}")
    if not isinstance(data, dict):
        raise ProjectFileError(f"Failed to parse {PROJECT_FILE}: expected a mapping at the top level")
    try:
        return ProjectFile.model_validate(data)
    except ValidationError as e:
        raise ProjectFileError(f"Invalid {PROJECT_FILE}: {e}")


def write_project_file(cwd: str | Path, project: ProjectFile) -> Path:
    """Write vaf.yml and return its path."""
    path = Path(cwd) / PROJECT_FILE
    data = project.model_dump(exclude_none=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, indent=4, sort_keys=False, width=float("inf"))
    return path


def _pick(override: Any, declared: Any, default: Any) -> Any:
    if override is not None:
        return override
    if declared is not None:
        return declared
    return default


def _identify(
    project_file: Optional[ProjectFile],
    project_arg: Optional[str],
    env_arg: Optional[str],
) -> tuple[str, str]:
    project_id = project_arg
    env_name = env_arg
    declared = project_file.environment_names if project_file else []

    if project_file is not None and project_file.id:
        if project_arg and not env_arg:
            # With an ID in vaf.yml a lone argument names the environment
            if project_arg not in project_file.environments:
                raise UnknownEnvironment(project_arg, declared)
            env_name = project_arg
            project_id = project_file.id
        elif not project_arg:
            project_id = project_file.id

    if not project_id:
        raise MissingIdentifier("Project ID", declared)
    if not env_name:
        raise MissingIdentifier("Environment name", declared)
    if project_file is not None and env_name not in project_file.environments:
        raise UnknownEnvironment(env_name, declared)
    return str(project_id), env_name


def resolve_config(
    project_file: Optional[ProjectFile],
    project_arg: Optional[str] = None,
    env_arg: Optional[str] = None,
    overrides: Optional[DeployOverrides] = None,
) -> DeploymentConfig:
    """
    Merge vaf.yml, command-line overrides and defaults into one configuration.

    Args:
        project_file: Parsed vaf.yml, or None when the project has none
        project_arg: First positional argument (project ID, or the environment
            name when vaf.yml carries an ID)
        env_arg: Second positional argument (environment name)
        overrides: Per-invocation overrides

    Returns:
        DeploymentConfig

    Raises:
        MissingIdentifier: If project ID or environment name cannot be determined
        UnknownEnvironment: If the environment is not declared in vaf.yml
    """
    overrides = overrides or DeployOverrides()
    project_id, env_name = _identify(project_file, project_arg, env_arg)
    env = project_file.environments[env_name] if project_file is not None else EnvironmentSpec()

    runtime = _pick(overrides.runtime, env.runtime, DEFAULT_RUNTIME)
    use_layers = _pick(overrides.use_layers, env.use_layers, DEFAULT_USE_LAYERS)
    if runtime == CONTAINER_RUNTIME:
        kind = RuntimeKind.CONTAINER
    elif use_layers:
        kind = RuntimeKind.ZIP_LAYER
    else:
        kind = RuntimeKind.ZIP

    build_commands = _pick(overrides.build_commands, env.build, [])

    config = DeploymentConfig(
        project_id=project_id,
        environment_name=env_name,
        runtime_kind=kind,
        runtime=runtime,
        memory_mb=_pick(overrides.memory, env.memory, DEFAULT_MEMORY_MB),
        timeout_seconds=_pick(overrides.timeout, env.timeout, DEFAULT_TIMEOUT_SECONDS),
        handler=_pick(overrides.handler, env.handler, DEFAULT_HANDLER),
        database=_pick(overrides.database, env.database, None),
        cache=_pick(overrides.cache, env.cache, None),
        storage=_pick(overrides.storage, env.storage, None),
        build_commands=list(build_commands),
        dockerfile_override=overrides.dockerfile if kind is RuntimeKind.CONTAINER else None,
        dockerfile_declared=env.dockerfile if kind is RuntimeKind.CONTAINER else None,
        image_tag=_pick(overrides.image_tag, env.image_tag, DEFAULT_IMAGE_TAG),
        use_layers=bool(use_layers),
    )
    if config.memory_mb <= 0 or config.timeout_seconds <= 0:
        raise VafError("Memory and timeout must be greater than 0")
    logger.debug(f"Resolved config for {project_id}/{env_name}: {config}")
    return config


def resolve_environment_id(api, project_id: str, name: str) -> EnvironmentResolution:
    """
    Resolve an environment name (or ID) to the backend's environment ID.

    Args:
        api: ApiClient
        project_id: Project ID
        name: Environment name or ID

    Returns:
        EnvironmentResolution

    Raises:
        EnvironmentNotFound: If no backend environment matches by name or ID
    """
    environments = api.list_environments(project_id)
    for env in environments:
        if env.name == name or env.id == str(name):
            return EnvironmentResolution(name=env.name or name, id=env.id)
    raise EnvironmentNotFound(name, [{"name": env.name, "id": env.id} for env in environments])
