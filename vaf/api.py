"""
HTTP client for the VAF backend and the wire models it returns.
"""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ApiError
from .settings import Settings

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error - could not reach server"
UNEXPECTED_RESPONSE_MESSAGE = "Unexpected response from server"


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _as_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class Environment(WireModel):
    id: str
    name: str = ""
    status: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return _as_str(value)


class UploadTarget(WireModel):
    upload_url: str = Field(alias="uploadUrl")
    key: Optional[str] = None
    bucket: Optional[str] = None


class LayerReference(WireModel):
    layer_arn: str = Field(alias="layerArn")
    layer_version: Optional[int] = Field(default=None, alias="layerVersion")


class RegistryConfig(WireModel):
    repository_uri: str = Field(alias="repositoryUri")
    login_command: str = Field(alias="loginCommand")
    region: Optional[str] = None
    registry_id: Optional[str] = Field(default=None, alias="registryId")

    @field_validator("registry_id", mode="before")
    @classmethod
    def coerce_registry_id(cls, value: Any) -> Any:
        return _as_str(value)


class ReleaseRecord(WireModel):
    id: Optional[str] = None
    status: str = "unknown"
    logs: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return _as_str(value)

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, value: Any) -> Any:
        return value or "unknown"


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_response(model: Type[ModelT], data: Any) -> ModelT:
    """
    Validate a decoded response body against a wire model.

    Raises:
        ApiError: If the body does not have the expected shape
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.debug(f"Invalid {model.__name__} response: {data!r}")
        raise ApiError(f"{UNEXPECTED_RESPONSE_MESSAGE}: {e.error_count()} invalid field(s) in {model.__name__}")


def deployment_path(project_id: str, environment_id: str, suffix: str) -> str:
    """Build a path under a project environment's deployment resource."""
    return f"/api/projects/{project_id}/environments/{environment_id}/deployment/{suffix}"


class ApiClient:
    """Authenticated JSON client for the backend REST API."""

    def __init__(self, settings: Settings, timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.settings = settings
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return self.settings.api_url.rstrip("/") + "/" + path.lstrip("/")

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.settings.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def request(self, method: str, path: str, body: Optional[Any] = None) -> Any:
        """
        Send a request and return the decoded JSON body.

        Args:
            method: HTTP method
            path: Path relative to the API URL
            body: JSON-serializable request body

        Returns:
            Decoded JSON, or None for an empty body

        Raises:
            ApiError: On HTTP errors or when the server cannot be reached
        """
        url = self._url(path)
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(
                method,
                url,
                json=body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout):
            raise ApiError(NETWORK_ERROR_MESSAGE)
        except requests.exceptions.RequestException as e:
            raise ApiError(str(e))

        if not response.ok:
            message = None
            code = None
            try:
                payload = response.json()
                if isinstance(payload, dict):
                    message = payload.get("message")
                    code = payload.get("code")
            except ValueError:
                pass
            raise ApiError(
                message or f"Request failed with status code {response.status_code}",
                status=response.status_code,
                code=code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def get(self, path: str) -> Any:
        return self.request("GET", path)

    def post(self, path: str, body: Optional[Any] = None) -> Any:
        return self.request("POST", path, body)

    def put(self, path: str, body: Optional[Any] = None) -> Any:
        return self.request("PUT", path, body)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    # Typed helpers used by the deploy pipeline

    def list_environments(self, project_id: str) -> List[Environment]:
        data = self.get(f"/api/projects/{project_id}/environments") or []
        if not isinstance(data, list):
            raise ApiError(f"{UNEXPECTED_RESPONSE_MESSAGE}: expected a list of environments")
        return [parse_response(Environment, item) for item in data]

    def get_upload_target(self, project_id: str, environment_id: str) -> UploadTarget:
        data = self.get(deployment_path(project_id, environment_id, "upload-url"))
        return parse_response(UploadTarget, data)

    def publish_layer(self, project_id: str, environment_id: str, layer_key: str) -> LayerReference:
        data = self.post(deployment_path(project_id, environment_id, "layer"), {"layerKey": layer_key})
        return parse_response(LayerReference, data)

    def get_registry_config(self, project_id: str, environment_id: str) -> RegistryConfig:
        data = self.get(deployment_path(project_id, environment_id, "ecr-config"))
        return parse_response(RegistryConfig, data)

    def create_release(self, project_id: str, environment_id: str, payload: Dict[str, Any]) -> ReleaseRecord:
        data = self.post(deployment_path(project_id, environment_id, "deploy"), payload)
        return parse_response(ReleaseRecord, data or {})

    def get_release(self, project_id: str, environment_id: str, release_id: Union[str, int]) -> ReleaseRecord:
        data = self.get(deployment_path(project_id, environment_id, str(release_id)))
        return parse_response(ReleaseRecord, data or {})
