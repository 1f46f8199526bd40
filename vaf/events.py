"""
Deploy event types and the callback contract used to report progress.

Pipeline components never print. They call an ``EventCallback`` with an
event type and a data dict; the CLI decides how to render it.
"""

from typing import Any, Callable, Dict

EventCallback = Callable[[str, Dict[str, Any]], None]


def null_callback(event_type: str, data: Dict[str, Any]) -> None:
    """Default callback that drops every event."""
    return None


# Predefined event types for consistency
class EventTypes:
    CONFIG_RESOLVED = "CONFIG_RESOLVED"
    ENV_RESOLVED = "ENV_RESOLVED"
    # Build
    BUILD_START = "BUILD_START"
    BUILD_COMMAND = "BUILD_COMMAND"
    BUILD_COMMAND_FAILED = "BUILD_COMMAND_FAILED"
    BUILD_DONE = "BUILD_DONE"
    BUILD_SKIPPED = "BUILD_SKIPPED"
    DEPS_INSTALLED = "DEPS_INSTALLED"
    DEPS_INSTALL_FAILED = "DEPS_INSTALL_FAILED"
    LAYER_BUILT = "LAYER_BUILT"
    PACKAGE_BUILT = "PACKAGE_BUILT"
    # Container
    DOCKERFILE_RESOLVED = "DOCKERFILE_RESOLVED"
    REGISTRY_LOGIN = "REGISTRY_LOGIN"
    IMAGE_BUILT = "IMAGE_BUILT"
    IMAGE_PUSHED = "IMAGE_PUSHED"
    # Transfer
    UPLOAD_START = "UPLOAD_START"
    UPLOAD_DONE = "UPLOAD_DONE"
    LAYER_PUBLISHED = "LAYER_PUBLISHED"
    # Release
    RELEASE_TRIGGERED = "RELEASE_TRIGGERED"
    RELEASE_STATUS = "RELEASE_STATUS"
    RELEASE_LOG = "RELEASE_LOG"
    RELEASE_SUCCESS = "RELEASE_SUCCESS"
    RELEASE_FAILED = "RELEASE_FAILED"
    RELEASE_TIMEOUT = "RELEASE_TIMEOUT"
    POLL_ERROR = "POLL_ERROR"
    CLEANUP = "CLEANUP"
    # Watch mode
    WATCH_STARTED = "WATCH_STARTED"
    WATCH_TRIGGERED = "WATCH_TRIGGERED"
    WATCH_RUN_FAILED = "WATCH_RUN_FAILED"


_WARNING_EVENTS = {
    EventTypes.BUILD_COMMAND_FAILED,
    EventTypes.DEPS_INSTALL_FAILED,
    EventTypes.RELEASE_TIMEOUT,
}

_ERROR_EVENTS = {
    EventTypes.RELEASE_FAILED,
    EventTypes.POLL_ERROR,
    EventTypes.WATCH_RUN_FAILED,
}

_SUCCESS_EVENTS = {
    EventTypes.BUILD_DONE,
    EventTypes.DEPS_INSTALLED,
    EventTypes.IMAGE_PUSHED,
    EventTypes.UPLOAD_DONE,
    EventTypes.LAYER_PUBLISHED,
    EventTypes.RELEASE_TRIGGERED,
    EventTypes.RELEASE_SUCCESS,
}

# Raw output lines, rendered without a prefix
_PLAIN_EVENTS = {EventTypes.RELEASE_LOG}


def event_level(event_type: str) -> str:
    """
    Map an event type to a display level.

    Returns:
        One of "plain", "info", "success", "warning", "error"
    """
    if event_type in _PLAIN_EVENTS:
        return "plain"
    if event_type in _ERROR_EVENTS:
        return "error"
    if event_type in _WARNING_EVENTS:
        return "warning"
    if event_type in _SUCCESS_EVENTS:
        return "success"
    return "info"
