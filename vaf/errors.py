"""
Exceptions raised by the deploy pipeline and the API client.

Everything here is fatal for the current deploy attempt. Recoverable
conditions (a failing build command, a failed dependency install) are
reported as warning events instead and never raised.
"""

from typing import Any, Dict, List, Optional


class VafError(Exception):
    """Base exception for VAF."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotAuthenticated(VafError):
    """No token is stored."""

    def __init__(self):
        super().__init__('Not authenticated. Please run "vaf login"')


class ProjectFileError(VafError):
    """vaf.yml exists but cannot be parsed."""


class MissingIdentifier(VafError):
    """Project ID or environment name could not be determined."""

    def __init__(self, what: str, available: Optional[List[str]] = None):
        self.what = what
        self.available = list(available or [])
        hint = "Either provide it as an argument or add it to vaf.yml"
        super().__init__(
            f"{what} is required. {hint}",
            {"missing": what, "available": self.available},
        )


class UnknownEnvironment(VafError):
    """Environment name is not declared in vaf.yml."""

    def __init__(self, name: str, available: List[str]):
        self.name = name
        self.available = list(available)
        super().__init__(
            f'Environment "{name}" not found in vaf.yml',
            {"environment": name, "available": self.available},
        )


class EnvironmentNotFound(VafError):
    """The backend has no environment matching the name or ID."""

    def __init__(self, name: str, available: List[Dict[str, str]]):
        self.name = name
        self.available = list(available)
        super().__init__(
            f'Environment "{name}" not found',
            {"environment": name, "available": self.available},
        )

    @property
    def available_names(self) -> List[str]:
        return [env["name"] for env in self.available]


class DependenciesMissing(VafError):
    """The dependency directory needed for a layer does not exist."""

    def __init__(self, directory: str):
        super().__init__(
            f"{directory} not found. Run npm install first.",
            {"directory": directory},
        )


class PackagingFailed(VafError):
    """An archive could not be written."""

    def __init__(self, archive: str, reason: str):
        super().__init__(
            f"Failed to create {archive}: {reason}",
            {"archive": archive},
        )


class DockerfileNotFound(VafError):
    """No Dockerfile exists at any of the candidate locations."""

    def __init__(self, candidates: List[str]):
        self.candidates = list(candidates)
        super().__init__(
            "Dockerfile not found. Looked in: " + ", ".join(self.candidates),
            {"candidates": self.candidates},
        )


class ImageBuildFailed(VafError):
    """A registry login, docker build, tag or push step failed."""

    def __init__(self, step: str, reason: str):
        self.step = step
        super().__init__(f"Container {step} failed: {reason}", {"step": step})


class UploadFailed(VafError):
    """The artifact could not be sent to the pre-signed URL."""

    def __init__(self, artifact: str, reason: str):
        super().__init__(
            f"Failed to upload {artifact}: {reason}",
            {"artifact": artifact},
        )


class ApiError(VafError):
    """The backend returned an error or could not be reached."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        self.status = status
        self.code = code
        super().__init__(message, {"status": status, "code": code})
