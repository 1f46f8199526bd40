"""
Artifact upload to backend-issued pre-signed URLs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests

from .api import LayerReference
from .builder import ArtifactKind, ArtifactPackage, new_stamp
from .errors import UploadFailed
from .events import EventCallback, EventTypes, null_callback

logger = logging.getLogger(__name__)

ARCHIVE_CONTENT_TYPE = "application/zip"


@dataclass
class UploadReceipt:
    key: str
    bucket: Optional[str] = None
    # True when the backend returned no key and a client-side one was used
    generated_key: bool = False


class UploadCoordinator:
    """Sends package and layer archives to storage through pre-signed URLs."""

    def __init__(
        self,
        api,
        on_event: EventCallback = null_callback,
        timeout: float = 300.0,
        session: Optional[requests.Session] = None,
    ):
        self.api = api
        self.on_event = on_event
        self.timeout = timeout
        self.session = session or requests.Session()

    def upload(self, project_id: str, environment_id: str, artifact: ArtifactPackage) -> UploadReceipt:
        """
        Upload one archive.

        Args:
            project_id: Project ID
            environment_id: Backend environment ID
            artifact: Package or layer archive

        Returns:
            UploadReceipt with the storage key issued by the backend

        Raises:
            UploadFailed: If the transfer fails
        """
        if not artifact.is_local:
            raise ValueError("container images are pushed to the registry, not uploaded")

        target = self.api.get_upload_target(project_id, environment_id)
        generated = not target.key
        key = target.key or f"deployments/{new_stamp()}-package.zip"
        if generated:
            logger.warning(f"Backend returned no storage key, using {key}")

        path = Path(artifact.location)
        self.on_event(EventTypes.UPLOAD_START, {
            "kind": artifact.kind.value,
            "key": key,
            "size": artifact.size_bytes,
        })
        try:
            with open(path, "rb") as f:
                response = self.session.put(
                    target.upload_url,
                    data=f,
                    headers={"Content-Type": ARCHIVE_CONTENT_TYPE},
                    timeout=self.timeout,
                )
            response.raise_for_status()
        except (OSError, requests.exceptions.RequestException) as e:
            raise UploadFailed(path.name, str(e))

        self.on_event(EventTypes.UPLOAD_DONE, {"kind": artifact.kind.value, "key": key})
        return UploadReceipt(key=key, bucket=target.bucket, generated_key=generated)

    def publish_layer(self, project_id: str, environment_id: str, receipt: UploadReceipt) -> LayerReference:
        """Register an uploaded layer archive and return its reference."""
        layer = self.api.publish_layer(project_id, environment_id, receipt.key)
        self.on_event(EventTypes.LAYER_PUBLISHED, {
            "layer_arn": layer.layer_arn,
            "version": layer.layer_version,
        })
        return layer

    def upload_layer(self, project_id: str, environment_id: str, artifact: ArtifactPackage) -> LayerReference:
        if artifact.kind is not ArtifactKind.LAYER:
            raise ValueError(f"expected a layer artifact, got {artifact.kind.value}")
        receipt = self.upload(project_id, environment_id, artifact)
        return self.publish_layer(project_id, environment_id, receipt)
