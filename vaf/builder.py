"""
Zip artifact construction for package and package+layer releases.
"""

from __future__ import annotations

import logging
import time
import zipfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional

from .errors import DependenciesMissing, PackagingFailed
from .events import EventCallback, EventTypes, null_callback
from .packaging import (
    TRANSIENT_PATTERNS,
    TRANSIENT_PREFIX,
    format_bytes,
    hash_file,
    pack,
    read_ignore_file,
    without_directory,
)
from .project import DeploymentConfig, RuntimeKind
from .shell import CommandFailed, ShellRunner

logger = logging.getLogger(__name__)

FALLBACK_BUILD_COMMAND = "npm run build"
INSTALL_COMMANDS = [
    "npm ci --omit=dev",
    "npm install --production --no-audit --no-fund",
]
DEPENDENCY_DIR = "node_modules"
LAYER_PREFIX = "nodejs/node_modules/"


class ArtifactKind(Enum):
    PACKAGE = "package"
    LAYER = "layer"
    IMAGE = "image"


@dataclass
class ArtifactPackage:
    """A built deliverable. Local archives live for a single deploy attempt."""
    kind: ArtifactKind
    location: str
    size_bytes: Optional[int] = None
    source_hash: Optional[str] = None

    @property
    def is_local(self) -> bool:
        return self.kind in (ArtifactKind.PACKAGE, ArtifactKind.LAYER)


def new_stamp() -> str:
    """Millisecond timestamp used to keep temporary file names unique per attempt."""
    return str(int(time.time() * 1000))


def package_filename(stamp: str) -> str:
    return f"{TRANSIENT_PREFIX}deploy-temp-{stamp}.zip"


def layer_filename(stamp: str) -> str:
    return f"{TRANSIENT_PREFIX}layer-temp-{stamp}.zip"


def cleanup_artifacts(artifacts: Iterable[ArtifactPackage]) -> List[str]:
    """
    Delete local archives.

    Returns:
        Paths that were removed
    """
    removed = []
    for artifact in artifacts:
        if not artifact.is_local:
            continue
        path = Path(artifact.location)
        if path.exists():
            path.unlink()
            removed.append(str(path))
    return removed


class ArtifactBuilder:
    """Runs build steps and produces zip archives for a release."""

    def __init__(self, shell: ShellRunner, on_event: EventCallback = null_callback):
        self.shell = shell
        self.on_event = on_event

    def build(
        self,
        cwd: str | Path,
        config: DeploymentConfig,
        skip_build: bool = False,
        stamp: Optional[str] = None,
    ) -> List[ArtifactPackage]:
        """
        Build the artifacts for a zip-based release.

        Args:
            cwd: Project directory
            config: Resolved deployment configuration
            skip_build: Skip build commands (dependency install still runs)
            stamp: Unique suffix for temporary archive names

        Returns:
            [package] for ZIP, [layer, package] for ZIP_LAYER

        Raises:
            DependenciesMissing: If a layer is requested without node_modules
            PackagingFailed: If an archive cannot be written
        """
        if config.runtime_kind is RuntimeKind.CONTAINER:
            raise ValueError("container releases are built by ContainerImageBuilder")

        cwd = Path(cwd)
        stamp = stamp or new_stamp()

        if skip_build:
            self.on_event(EventTypes.BUILD_SKIPPED, {})
        else:
            self.run_build_commands(cwd, config.build_commands)
        self.install_dependencies(cwd)

        ignore_patterns = read_ignore_file(cwd) + TRANSIENT_PATTERNS
        artifacts: List[ArtifactPackage] = []
        try:
            if config.runtime_kind is RuntimeKind.ZIP_LAYER:
                artifacts.append(self.build_layer(cwd, stamp))
                thin_patterns = ignore_patterns + [f"{DEPENDENCY_DIR}/**"]
                artifacts.append(self.build_package(cwd, thin_patterns, stamp))
            else:
                full_patterns = without_directory(ignore_patterns, DEPENDENCY_DIR)
                artifacts.append(self.build_package(cwd, full_patterns, stamp))
        except Exception:
            cleanup_artifacts(artifacts)
            raise
        return artifacts

    def run_build_commands(self, cwd: Path, commands: List[str]) -> None:
        """
        Run declared build commands in order.

        A failing command is reported and the next one still runs; some
        commands (migrations, for example) are expected to fail on re-runs.
        """
        if not commands:
            self.on_event(EventTypes.BUILD_START, {"commands": [FALLBACK_BUILD_COMMAND]})
            self._run_build_command(cwd, FALLBACK_BUILD_COMMAND)
            self.on_event(EventTypes.BUILD_DONE, {})
            return

        self.on_event(EventTypes.BUILD_START, {"commands": list(commands)})
        for command in commands:
            self._run_build_command(cwd, command)
        self.on_event(EventTypes.BUILD_DONE, {})

    def _run_build_command(self, cwd: Path, command: str) -> bool:
        self.on_event(EventTypes.BUILD_COMMAND, {"command": command})
        try:
            self.shell.run(command, cwd)
            return True
        except CommandFailed as e:
            logger.warning(f"Build command failed: {command}: {e}")
            self.on_event(EventTypes.BUILD_COMMAND_FAILED, {
                "command": command,
                "error": e.message,
            })
            return False

    def install_dependencies(self, cwd: Path) -> bool:
        """
        Install production-only dependencies, trying each strategy in turn.

        Returns:
            True if one strategy succeeded, False if the existing tree is used
        """
        for command in INSTALL_COMMANDS:
            try:
                self.shell.run(command, cwd)
                self.on_event(EventTypes.DEPS_INSTALLED, {"command": command})
                return True
            except CommandFailed as e:
                logger.debug(f"Dependency install failed ({command}): {e}")

        logger.warning("Failed to install production dependencies")
        self.on_event(EventTypes.DEPS_INSTALL_FAILED, {
            "message": f"Failed to install production dependencies, using existing {DEPENDENCY_DIR}",
        })
        return False

    def build_layer(self, cwd: Path, stamp: str) -> ArtifactPackage:
        """Archive node_modules under the nodejs/ layer layout."""
        deps_dir = cwd / DEPENDENCY_DIR
        if not deps_dir.is_dir():
            raise DependenciesMissing(DEPENDENCY_DIR)
        output = cwd / layer_filename(stamp)
        artifact = self._archive(deps_dir, [], output, ArtifactKind.LAYER, prefix=LAYER_PREFIX)
        self.on_event(EventTypes.LAYER_BUILT, self._describe(artifact))
        return artifact

    def build_package(self, cwd: Path, patterns: List[str], stamp: str) -> ArtifactPackage:
        output = cwd / package_filename(stamp)
        artifact = self._archive(cwd, patterns, output, ArtifactKind.PACKAGE)
        self.on_event(EventTypes.PACKAGE_BUILT, self._describe(artifact))
        return artifact

    def _archive(
        self,
        directory: Path,
        patterns: List[str],
        output: Path,
        kind: ArtifactKind,
        prefix: str = "",
    ) -> ArtifactPackage:
        try:
            pack(directory, patterns, output, prefix=prefix)
            size = output.stat().st_size
            digest = hash_file(output)
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            if output.exists():
                output.unlink()
            raise PackagingFailed(output.name, str(e))
        logger.info(f"Created {kind.value} {output.name} ({format_bytes(size)})")
        return ArtifactPackage(kind=kind, location=str(output), size_bytes=size, source_hash=digest)

    @staticmethod
    def _describe(artifact: ArtifactPackage) -> dict:
        return {
            "path": artifact.location,
            "size": artifact.size_bytes,
            "size_human": format_bytes(artifact.size_bytes),
            "hash": artifact.source_hash,
        }
