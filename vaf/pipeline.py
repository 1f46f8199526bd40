"""
One deploy attempt, start to finish.

The steps run strictly in order:

    resolve config -> resolve environment -> build -> upload -> trigger -> poll

Configuration is re-read from vaf.yml on every attempt, so watch mode picks
up edits to the project file. Local archives are removed when the attempt
ends, whatever the outcome.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from .api import LayerReference, ReleaseRecord
from .builder import ArtifactBuilder, ArtifactKind, ArtifactPackage, cleanup_artifacts, new_stamp
from .container import ContainerImageBuilder
from .events import EventCallback, EventTypes, null_callback
from .poller import PollOutcome, PollResult, StatusPoller
from .project import (
    DeployOverrides,
    DeploymentConfig,
    RuntimeKind,
    load_project_file,
    resolve_config,
    resolve_environment_id,
)
from .release import ReleaseTrigger, build_payload
from .shell import ShellRunner
from .upload import UploadCoordinator

logger = logging.getLogger(__name__)


@dataclass
class DeployResult:
    config: DeploymentConfig
    environment_id: str
    release: ReleaseRecord
    poll: Optional[PollResult] = None
    layers: List[LayerReference] = field(default_factory=list)
    deployment_key: Optional[str] = None
    image_uri: Optional[str] = None

    @property
    def outcome(self) -> PollOutcome:
        # No release ID means the backend finished synchronously
        if self.poll is None:
            return PollOutcome.SUCCESS
        return self.poll.outcome

    @property
    def ok(self) -> bool:
        return self.outcome in (PollOutcome.SUCCESS, PollOutcome.TIMEOUT)


class DeployPipeline:
    """Runs deploy attempts for one project directory."""

    def __init__(
        self,
        api,
        cwd: Union[str, Path],
        shell: Optional[ShellRunner] = None,
        on_event: EventCallback = null_callback,
        poller: Optional[StatusPoller] = None,
        uploader: Optional[UploadCoordinator] = None,
    ):
        self.api = api
        self.cwd = Path(cwd)
        self.shell = shell or ShellRunner()
        self.on_event = on_event
        self.builder = ArtifactBuilder(self.shell, on_event)
        self.image_builder = ContainerImageBuilder(api, self.shell, on_event)
        self.uploader = uploader or UploadCoordinator(api, on_event)
        self.trigger = ReleaseTrigger(api, on_event)
        self.poller = poller or StatusPoller(api, on_event)

    def run(
        self,
        project_arg: Optional[str] = None,
        env_arg: Optional[str] = None,
        overrides: Optional[DeployOverrides] = None,
        skip_build: bool = False,
    ) -> DeployResult:
        """
        Run one deploy attempt.

        Args:
            project_arg: First positional argument from the command line
            env_arg: Second positional argument from the command line
            overrides: Per-invocation overrides
            skip_build: Skip declared build commands

        Returns:
            DeployResult

        Raises:
            VafError: Any fatal step failure. Remote failure and poll timeout
                are reported through DeployResult instead.
        """
        project_file = load_project_file(self.cwd)
        config = resolve_config(project_file, project_arg, env_arg, overrides)
        self.on_event(EventTypes.CONFIG_RESOLVED, {
            "project_id": config.project_id,
            "environment": config.environment_name,
            "runtime": config.runtime,
            "kind": config.runtime_kind.value,
        })

        env = resolve_environment_id(self.api, config.project_id, config.environment_name)
        self.on_event(EventTypes.ENV_RESOLVED, {"name": env.name, "id": env.id})

        artifacts: List[ArtifactPackage] = []
        try:
            if config.runtime_kind is RuntimeKind.CONTAINER:
                image = self.image_builder.build(self.cwd, config, env.id)
                payload = build_payload(config, image_uri=image.location)
                result = DeployResult(config=config, environment_id=env.id,
                                      release=ReleaseRecord(), image_uri=image.location)
            else:
                artifacts = self.builder.build(self.cwd, config, skip_build=skip_build, stamp=new_stamp())
                layers: List[LayerReference] = []
                package = None
                for artifact in artifacts:
                    if artifact.kind is ArtifactKind.LAYER:
                        layers.append(self.uploader.upload_layer(config.project_id, env.id, artifact))
                    else:
                        package = artifact
                receipt = self.uploader.upload(config.project_id, env.id, package)
                payload = build_payload(config, deployment_key=receipt.key, layers=layers)
                result = DeployResult(config=config, environment_id=env.id, release=ReleaseRecord(),
                                      layers=layers, deployment_key=receipt.key)

            logger.debug(f"Release payload: {payload}")
            result.release = self.trigger.trigger(config.project_id, env.id, payload)
            if result.release.id is not None:
                result.poll = self.poller.poll(config.project_id, env.id, result.release.id)
        finally:
            removed = cleanup_artifacts(artifacts)
            if removed:
                self.on_event(EventTypes.CLEANUP, {"removed": removed})
        return result
