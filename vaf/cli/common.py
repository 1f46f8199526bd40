"""Shared helpers for CLI commands: output, error handling and API access."""

import functools
import json
import sys
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import click

from ..api import ApiClient
from ..errors import EnvironmentNotFound, MissingIdentifier, NotAuthenticated, UnknownEnvironment, VafError
from ..events import EventTypes, event_level
from ..settings import Settings

RULE = "─" * 27

_LEVEL_STYLE = {
    "info": ("ℹ️ ", "blue"),
    "success": ("✅", "green"),
    "warning": ("⚠️ ", "yellow"),
    "error": ("❌", "red"),
}


def info(message: str) -> None:
    click.echo(click.style(f"{_LEVEL_STYLE['info'][0]} {message}", fg="blue"))


def success(message: str) -> None:
    click.echo(click.style(f"{_LEVEL_STYLE['success'][0]} {message}", fg="green"))


def warn(message: str) -> None:
    click.echo(click.style(f"{_LEVEL_STYLE['warning'][0]} {message}", fg="yellow"))


def error(message: str) -> None:
    click.echo(click.style(f"{_LEVEL_STYLE['error'][0]} {message}", fg="red"))


def json_output(data: Any) -> None:
    """Pretty-print a JSON document."""
    click.echo(json.dumps(data, indent=2, default=str))


def field(label: str, value: Any) -> None:
    click.echo(f"{click.style(label + ':', fg='cyan')} {value if value is not None else 'N/A'}")


def heading(title: str) -> None:
    click.echo(click.style(f"\n{title}", bold=True))
    click.echo(click.style(RULE, fg="bright_black"))


def format_date(value: Optional[str]) -> str:
    if not value:
        return "N/A"
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return str(value)
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def styled_status(status: Optional[str]) -> str:
    color = {"active": "green", "creating": "yellow", "failed": "red"}.get(status or "")
    return click.style(status, fg=color) if color else str(status)


def _event_message(event_type: str, data: Dict[str, Any]) -> Optional[str]:
    messages: Dict[str, Callable[[Dict[str, Any]], str]] = {
        EventTypes.CONFIG_RESOLVED: lambda d: (
            f"Deploying project {d['project_id']} to {d['environment']} ({d['runtime']}, {d['kind']})"
        ),
        EventTypes.ENV_RESOLVED: lambda d: f"Environment: {d['name']} ({d['id']})",
        EventTypes.BUILD_SKIPPED: lambda d: "Skipping build commands",
        EventTypes.BUILD_START: lambda d: "Running build commands...",
        EventTypes.BUILD_COMMAND: lambda d: f"Running: {d['command']}",
        EventTypes.BUILD_COMMAND_FAILED: lambda d: f"Build command failed: {d['command']}",
        EventTypes.BUILD_DONE: lambda d: "Build commands completed",
        EventTypes.DEPS_INSTALLED: lambda d: "Dependencies installed",
        EventTypes.DEPS_INSTALL_FAILED: lambda d: d["message"],
        EventTypes.LAYER_BUILT: lambda d: f"Layer package size: {d['size_human']}",
        EventTypes.PACKAGE_BUILT: lambda d: f"Package size: {d['size_human']}",
        EventTypes.DOCKERFILE_RESOLVED: lambda d: f"Using Dockerfile: {d['path']}",
        EventTypes.REGISTRY_LOGIN: lambda d: f"Logging in to {d['repository']}",
        EventTypes.IMAGE_BUILT: lambda d: f"Built {d['image']} ({d['platform']})",
        EventTypes.IMAGE_PUSHED: lambda d: f"Image pushed: {d['image']}",
        EventTypes.UPLOAD_START: lambda d: f"Uploading {d['kind']} to {d['key']}...",
        EventTypes.UPLOAD_DONE: lambda d: f"{d['kind'].capitalize()} uploaded successfully",
        EventTypes.LAYER_PUBLISHED: lambda d: f"Layer published: {d['layer_arn']} (version {d['version']})",
        EventTypes.RELEASE_TRIGGERED: lambda d: f"Deployment initiated: {d['release_id'] or 'Success'}",
        EventTypes.RELEASE_STATUS: lambda d: f"Status: {d['status']}",
        EventTypes.RELEASE_LOG: lambda d: d["line"],
        EventTypes.RELEASE_SUCCESS: lambda d: "Deployment completed successfully!" + (
            f"\n   URL: {d['url']}" if d.get("url") else ""
        ),
        EventTypes.RELEASE_FAILED: lambda d: "Deployment failed" + (f": {d['error']}" if d.get("error") else ""),
        EventTypes.RELEASE_TIMEOUT: lambda d: "Deployment is taking longer than expected...",
        EventTypes.POLL_ERROR: lambda d: f"Failed to check deployment status: {d['error']}",
        EventTypes.CLEANUP: lambda d: f"Removed {len(d['removed'])} temporary file(s)",
        EventTypes.WATCH_STARTED: lambda d: f"Watching {d['root']} for changes...",
        EventTypes.WATCH_TRIGGERED: lambda d: f"Change detected in {', '.join(d['files'][:3])}, deploying...",
        EventTypes.WATCH_RUN_FAILED: lambda d: d["error"] or "Deployment failed",
    }
    formatter = messages.get(event_type)
    if formatter is None:
        return None
    return formatter(data)


def render_event(event_type: str, data: Dict[str, Any]) -> None:
    """EventCallback that prints deploy progress."""
    message = _event_message(event_type, data)
    if message is None:
        return
    level = event_level(event_type)
    if level == "plain":
        click.echo(message)
        return
    icon, color = _LEVEL_STYLE[level]
    click.echo(click.style(f"{icon} {message}", fg=color))


def print_error_details(exc: VafError) -> None:
    if isinstance(exc, EnvironmentNotFound):
        if exc.available:
            click.echo(click.style("Available environments:", fg="bright_black"))
            for env in exc.available:
                click.echo(click.style(f"  - {env['name']} ({env['id']})", fg="cyan"))
    elif isinstance(exc, (UnknownEnvironment, MissingIdentifier)):
        if exc.available:
            click.echo(click.style("Available environments:", fg="bright_black"))
            for name in exc.available:
                click.echo(click.style(f"  - {name}", fg="cyan"))


def handle_errors(action: str):
    """Turn VafError into a red message and exit code 1."""
    def decorator(f):
        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except VafError as e:
                error(e.message or f"Failed to {action}")
                print_error_details(e)
                sys.exit(1)
        return wrapper
    return decorator


def get_settings(ctx: click.Context) -> Settings:
    obj = ctx.ensure_object(dict)
    if obj.get("settings") is None:
        obj["settings"] = Settings.load()
    return obj["settings"]


def get_api(ctx: click.Context, require_auth: bool = True) -> ApiClient:
    """
    Get the API client for this invocation.

    Raises:
        NotAuthenticated: If require_auth is set and no token is stored
    """
    settings = get_settings(ctx)
    if require_auth and not settings.token:
        raise NotAuthenticated()
    obj = ctx.ensure_object(dict)
    if obj.get("api") is None:
        obj["api"] = ApiClient(settings)
    return obj["api"]


def confirm_delete(description: str, force: bool) -> bool:
    if force:
        return True
    warn(f"This will delete {description}")
    warn("This action cannot be undone.")
    if not click.confirm("Are you sure?", default=False):
        info("Deletion cancelled")
        return False
    return True
