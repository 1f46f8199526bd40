"""
Release trigger: turns a resolved configuration and uploaded artifacts into
a release request.
"""

import logging
from typing import Any, Dict, List, Optional

from .api import LayerReference, ReleaseRecord
from .events import EventCallback, EventTypes, null_callback
from .project import DeploymentConfig, RuntimeKind

logger = logging.getLogger(__name__)


def _present(value: Optional[str]) -> Optional[str]:
    """Return the value if it has content after trimming, else None."""
    if value is None:
        return None
    return value if value.strip() else None


def build_payload(
    config: DeploymentConfig,
    deployment_key: Optional[str] = None,
    image_uri: Optional[str] = None,
    layers: Optional[List[LayerReference]] = None,
) -> Dict[str, Any]:
    """
    Build the release request body.

    Args:
        config: Resolved deployment configuration
        deployment_key: Storage key of the uploaded package (zip kinds)
        image_uri: Pushed image URI (container kind)
        layers: Published layers to attach

    Returns:
        Dict ready to send as JSON. Optional attachments that are unset or
        blank are left out entirely.
    """
    if config.runtime_kind is RuntimeKind.CONTAINER:
        if not image_uri:
            raise ValueError("container releases need an image URI")
        payload: Dict[str, Any] = {"imageUri": image_uri, "runtime": config.runtime}
    else:
        if not deployment_key:
            raise ValueError("zip releases need a deployment key")
        payload = {
            "deploymentKey": deployment_key,
            "runtime": config.runtime,
            "handler": config.handler,
        }

    payload["memory"] = config.memory_mb
    payload["timeout"] = config.timeout_seconds

    for name in ("database", "cache", "storage"):
        value = _present(getattr(config, name))
        if value is not None:
            payload[name] = value

    if layers:
        payload["layers"] = [layer.layer_arn for layer in layers]

    return {k: v for k, v in payload.items() if v is not None}


class ReleaseTrigger:
    """Creates release records on the backend."""

    def __init__(self, api, on_event: EventCallback = null_callback):
        self.api = api
        self.on_event = on_event

    def trigger(self, project_id: str, environment_id: str, payload: Dict[str, Any]) -> ReleaseRecord:
        """
        Request a release.

        A record without an ID means the backend completed synchronously and
        there is nothing to poll.
        """
        logger.info(f"Triggering release for {project_id}/{environment_id}")
        record = self.api.create_release(project_id, environment_id, payload)
        self.on_event(EventTypes.RELEASE_TRIGGERED, {
            "release_id": record.id,
            "status": record.status,
            "immediate": record.id is None,
        })
        return record
