"""
Container image build and push for docker-runtime releases.
"""

from __future__ import annotations

import logging
import re
import shlex
from pathlib import Path
from typing import List, Optional

from .api import RegistryConfig
from .builder import ArtifactKind, ArtifactPackage
from .errors import DockerfileNotFound, ImageBuildFailed
from .events import EventCallback, EventTypes, null_callback
from .project import DeploymentConfig, RuntimeKind
from .shell import CommandFailed, ShellRunner

logger = logging.getLogger(__name__)

# The functions always run on x86_64, whatever the developer machine is
TARGET_PLATFORM = "linux/amd64"


def dockerfile_candidates(
    environment_name: str,
    override: Optional[str] = None,
    declared: Optional[str] = None,
) -> List[str]:
    """Candidate Dockerfile paths in priority order."""
    candidates = [override, declared, f"{environment_name}.Dockerfile", "Dockerfile"]
    return [c for c in candidates if c]


def resolve_dockerfile(
    cwd: str | Path,
    environment_name: str,
    override: Optional[str] = None,
    declared: Optional[str] = None,
) -> Path:
    """
    Locate the Dockerfile for an environment. First existing file wins.

    Order: explicit override, path declared in vaf.yml,
    ``<environment>.Dockerfile``, ``Dockerfile``.

    Raises:
        DockerfileNotFound: If none of the candidates exists
    """
    cwd = Path(cwd)
    candidates = dockerfile_candidates(environment_name, override, declared)
    for candidate in candidates:
        path = Path(candidate)
        if not path.is_absolute():
            path = cwd / path
        if path.is_file():
            return path
    raise DockerfileNotFound(candidates)


def local_image_name(config: DeploymentConfig) -> str:
    raw = f"vaf-{config.project_id}-{config.environment_name}".lower()
    return re.sub(r"[^a-z0-9._-]+", "-", raw)


class ContainerImageBuilder:
    """Builds a fixed-platform image and pushes it to the backend's registry."""

    def __init__(self, api, shell: ShellRunner, on_event: EventCallback = null_callback):
        self.api = api
        self.shell = shell
        self.on_event = on_event

    def build(self, cwd: str | Path, config: DeploymentConfig, environment_id: str) -> ArtifactPackage:
        """
        Build, tag and push the release image.

        Args:
            cwd: Build context directory
            config: Resolved deployment configuration
            environment_id: Backend environment ID

        Returns:
            ArtifactPackage of kind IMAGE whose location is the pushed image URI

        Raises:
            DockerfileNotFound: If no Dockerfile can be located
            ImageBuildFailed: If login, build, tag or push fails
        """
        if config.runtime_kind is not RuntimeKind.CONTAINER:
            raise ValueError("zip releases are built by ArtifactBuilder")

        cwd = Path(cwd)
        dockerfile = resolve_dockerfile(
            cwd,
            config.environment_name,
            override=config.dockerfile_override,
            declared=config.dockerfile_declared,
        )
        config.dockerfile_path = str(dockerfile)
        self.on_event(EventTypes.DOCKERFILE_RESOLVED, {"path": str(dockerfile)})

        registry: RegistryConfig = self.api.get_registry_config(config.project_id, environment_id)

        local_ref = f"{local_image_name(config)}:{config.image_tag}"
        remote_ref = f"{registry.repository_uri}:{config.image_tag}"

        self.on_event(EventTypes.REGISTRY_LOGIN, {"repository": registry.repository_uri})
        self._step("registry login", registry.login_command, cwd)

        build_cmd = " ".join([
            "docker", "build",
            "--platform", TARGET_PLATFORM,
            "--pull",
            "-f", shlex.quote(str(dockerfile)),
            "-t", shlex.quote(local_ref),
            ".",
        ])
        self._step("build", build_cmd, cwd)
        self.on_event(EventTypes.IMAGE_BUILT, {"image": local_ref, "platform": TARGET_PLATFORM})

        self._step("tag", f"docker tag {shlex.quote(local_ref)} {shlex.quote(remote_ref)}", cwd)
        self._step("push", f"docker push {shlex.quote(remote_ref)}", cwd)
        self.on_event(EventTypes.IMAGE_PUSHED, {"image": remote_ref})

        return ArtifactPackage(kind=ArtifactKind.IMAGE, location=remote_ref)

    def _step(self, step: str, command: str, cwd: Path) -> None:
        try:
            self.shell.run(command, cwd)
        except CommandFailed as e:
            logger.error(f"Container {step} failed: {e}")
            raise ImageBuildFailed(step, e.stderr.strip() or e.message)
