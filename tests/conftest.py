"""
Shared fakes for the API client, shell executor and upload transport.
"""

import json
from pathlib import Path

import pytest
import requests

from vaf.api import Environment, LayerReference, RegistryConfig, ReleaseRecord, UploadTarget
from vaf.settings import Settings
from vaf.shell import CommandFailed


class FakeApi:
    """In-memory stand-in for ApiClient."""

    def __init__(self, environments=None):
        if environments is None:
            environments = [Environment(id="env-1", name="production")]
        self.environments = environments
        self.upload_targets = []
        self.layer = LayerReference(layerArn="arn:aws:lambda:us-east-1:123:layer:deps:3", layerVersion=3)
        self.registry = RegistryConfig(
            repositoryUri="123.dkr.ecr.us-east-1.amazonaws.com/app",
            loginCommand="docker login -u AWS -p secret 123.dkr.ecr.us-east-1.amazonaws.com",
        )
        self.release = ReleaseRecord(id="rel-1", status="pending")
        self.statuses = []
        self.payloads = []
        self.published_keys = []
        self.calls = []
        self.responses = {}
        self._uploads = 0

    # Typed helpers

    def list_environments(self, project_id):
        self.calls.append(("list_environments", project_id))
        return list(self.environments)

    def get_upload_target(self, project_id, environment_id):
        self.calls.append(("get_upload_target", project_id, environment_id))
        if self.upload_targets:
            return self.upload_targets.pop(0)
        self._uploads += 1
        return UploadTarget(
            uploadUrl=f"https://uploads.example.com/{self._uploads}?sig=abc",
            key=f"deployments/backend-{self._uploads}.zip",
        )

    def publish_layer(self, project_id, environment_id, layer_key):
        self.calls.append(("publish_layer", project_id, environment_id, layer_key))
        self.published_keys.append(layer_key)
        return self.layer

    def get_registry_config(self, project_id, environment_id):
        self.calls.append(("get_registry_config", project_id, environment_id))
        return self.registry

    def create_release(self, project_id, environment_id, payload):
        self.calls.append(("create_release", project_id, environment_id))
        self.payloads.append(payload)
        return self.release

    def get_release(self, project_id, environment_id, release_id):
        self.calls.append(("get_release", project_id, environment_id, release_id))
        item = self.statuses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    # Generic requests used by the resource commands

    def request(self, method, path, body=None):
        self.calls.append((method, path, body))
        value = self.responses.get((method, path))
        if isinstance(value, Exception):
            raise value
        return value

    def get(self, path):
        return self.request("GET", path)

    def post(self, path, body=None):
        return self.request("POST", path, body)

    def put(self, path, body=None):
        return self.request("PUT", path, body)

    def delete(self, path):
        return self.request("DELETE", path)


class FakeShell:
    """Records commands instead of running them."""

    def __init__(self, failing=None, on_run=None):
        self.failing = list(failing or [])
        self.on_run = on_run
        self.commands = []

    def run(self, command, cwd, input=None):
        self.commands.append((command, str(cwd)))
        if self.on_run:
            self.on_run(command, Path(cwd))
        for prefix in self.failing:
            if command.startswith(prefix):
                raise CommandFailed(command, 1, stderr=f"{prefix}: boom\n")
        return "", ""

    @property
    def command_lines(self):
        return [c for c, _ in self.commands]


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Client Error: Forbidden")


class FakeUploadSession:
    """Captures PUT requests sent to pre-signed URLs."""

    def __init__(self, status_code=200, error=None):
        self.status_code = status_code
        self.error = error
        self.puts = []

    def put(self, url, data=None, headers=None, timeout=None):
        body = data.read() if hasattr(data, "read") else data
        self.puts.append({"url": url, "body": body, "headers": dict(headers or {}), "timeout": timeout})
        if self.error is not None:
            raise self.error
        return FakeResponse(self.status_code)


def collect_events():
    """Return (callback, events) where events accumulates (type, data) pairs."""
    events = []

    def callback(event_type, data):
        events.append((event_type, data))

    return callback, events


def write_project(root: Path, config: dict) -> Path:
    import yaml

    path = root / "vaf.yml"
    path.write_text(yaml.safe_dump(config))
    return path


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def fake_shell():
    return FakeShell()


@pytest.fixture
def upload_session():
    return FakeUploadSession()


@pytest.fixture
def settings(tmp_path):
    return Settings(path=tmp_path / "home" / "config.json",
                    data={"api_url": "http://api.test", "token": "tok-123"})


@pytest.fixture
def node_project(tmp_path):
    """A small Node.js project with installed dependencies."""
    root = tmp_path / "app"
    root.mkdir()
    (root / "index.js").write_text("exports.handler = async () => ({ statusCode: 200 });\n")
    (root / "package.json").write_text(json.dumps({"name": "app", "version": "1.0.0"}))
    (root / "debug.log").write_text("noise\n")
    (root / ".env").write_text("SECRET=1\n")
    deps = root / "node_modules" / "left-pad"
    deps.mkdir(parents=True)
    (deps / "index.js").write_text("module.exports = () => {};\n")
    (deps / "package.json").write_text("{}")
    return root
