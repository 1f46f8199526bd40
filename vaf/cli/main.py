"""Main CLI entrypoint for VAF."""

import logging
import sys
import time
from pathlib import Path

import click

from .. import __version__
from ..errors import VafError
from ..pipeline import DeployPipeline
from ..poller import PollOutcome, StatusPoller
from ..project import (
    CONTAINER_RUNTIME,
    DEFAULT_HANDLER,
    DEFAULT_MEMORY_MB,
    DEFAULT_RUNTIME,
    DEFAULT_TIMEOUT_SECONDS,
    PROJECT_FILE,
    RUNTIME_CHOICES,
    DeployOverrides,
    EnvironmentSpec,
    ProjectFile,
    write_project_file,
)
from ..upload import UploadCoordinator
from ..watch import WatchScheduler
from .common import (
    field,
    get_api,
    get_settings,
    handle_errors,
    heading,
    info,
    json_output,
    render_event,
    success,
    warn,
)
from .resources import caches, databases, env, projects


@click.group()
@click.version_option(__version__, prog_name="vaf")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx, verbose):
    """VAF - deploy serverless functions from your terminal."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    get_settings(ctx)


main.add_command(projects)
main.add_command(env)
main.add_command(databases)
main.add_command(databases, name="db")
main.add_command(caches)


# Authentication

@main.command()
@click.option("--email", prompt="Email", help="Account email")
@click.option("--password", prompt="Password", hide_input=True, help="Account password")
@click.pass_context
@handle_errors("login")
def login(ctx, email, password):
    """Log in to the VAF backend."""
    api = get_api(ctx, require_auth=False)
    info("Logging in...")
    response = api.post("/api/login", {"email": email, "password": password}) or {}
    token = response.get("token")
    if not token:
        raise VafError("Login response did not include a token")
    get_settings(ctx).set_token(token)
    success(f"Welcome back, {email}!")


@main.command()
@click.pass_context
@handle_errors("logout")
def logout(ctx):
    """Log out and clear stored credentials."""
    get_settings(ctx).clear_token()
    success("Logged out successfully")


@main.command()
@click.pass_context
@handle_errors("fetch user info")
def whoami(ctx):
    """Display current user info."""
    data = get_api(ctx).get("/api/user-info") or {}
    user = data.get("user", data)
    name = " ".join(part for part in (user.get("firstName"), user.get("lastName")) if part)
    heading("User Information:")
    field("Email", user.get("email"))
    field("Name", name or None)
    field("ID", user.get("id"))
    click.echo()


# Configuration

@main.group(invoke_without_command=True)
@click.pass_context
def config(ctx):
    """Show or change CLI configuration."""
    if ctx.invoked_subcommand is None:
        heading("Current Configuration:")
        data = get_settings(ctx).as_dict()
        if data.get("token"):
            data["token"] = "[REDACTED]"
        json_output(data)


@config.command("get")
@click.argument("key", type=click.Choice(["api-url"]))
@click.pass_context
def config_get(ctx, key):
    """Get a configuration value."""
    click.echo(get_settings(ctx).api_url)


@config.command("set")
@click.argument("key", type=click.Choice(["api-url"]))
@click.argument("value")
@click.pass_context
@handle_errors("save configuration")
def config_set(ctx, key, value):
    """Set a configuration value."""
    get_settings(ctx).set_api_url(value)
    success(f"API URL set to: {value}")


# Project file

def _prompt_commands(label: str, first_default: str = "") -> list:
    commands = []
    while True:
        default = first_default if not commands else ""
        command = click.prompt(f"{label} command", default=default, show_default=bool(default)).strip()
        if command:
            commands.append(command)
        if not click.confirm(f"Add another {label.lower()} command?", default=False):
            return commands


def _default_env_name(index: int) -> str:
    return {0: "development", 1: "production"}.get(index, f"env{index + 1}")


@main.command()
@handle_errors("create vaf.yml")
def init():
    """Create a vaf.yml in the current directory."""
    cwd = Path.cwd()
    if (cwd / PROJECT_FILE).exists():
        if not click.confirm(f"{PROJECT_FILE} already exists. Overwrite it?", default=False):
            info("Cancelled")
            return

    project_id = click.prompt("Project ID (leave empty if unknown)", default="", show_default=False).strip()
    name = click.prompt("Project name", default=cwd.name)
    count = click.prompt("How many environments do you want to configure?",
                         type=click.IntRange(1, 10), default=2)

    environments = {}
    for i in range(count):
        click.echo(click.style(f"\nEnvironment {i + 1}", bold=True))
        env_name = click.prompt("Environment name", default=_default_env_name(i))
        spec = {
            "runtime": click.prompt("Runtime", type=click.Choice(RUNTIME_CHOICES), default=DEFAULT_RUNTIME),
            "memory": click.prompt("Memory (MB)", type=click.IntRange(min=1), default=DEFAULT_MEMORY_MB),
            "timeout": click.prompt("Timeout (seconds)", type=click.IntRange(min=1),
                                    default=DEFAULT_TIMEOUT_SECONDS),
        }
        if spec["runtime"] == CONTAINER_RUNTIME:
            dockerfile = click.prompt("Dockerfile (optional)", default="", show_default=False).strip()
            if dockerfile:
                spec["dockerfile"] = dockerfile
        else:
            spec["handler"] = click.prompt("Handler", default=DEFAULT_HANDLER)
        for resource in ("database", "cache", "storage"):
            value = click.prompt(f"{resource.capitalize()} name (optional)", default="", show_default=False).strip()
            if value:
                spec[resource] = value
        if click.confirm("Add build commands?", default=True):
            build = _prompt_commands("Build", first_default="npm install")
            if build:
                spec["build"] = build
        if click.confirm("Add deployment commands?", default=False):
            deploy_commands = _prompt_commands("Deployment")
            if deploy_commands:
                spec["deploy"] = deploy_commands
        environments[env_name] = EnvironmentSpec(**spec)

    project = ProjectFile(id=project_id or None, name=name, environments=environments)
    path = write_project_file(cwd, project)

    success(f"Created {PROJECT_FILE} successfully!")
    click.echo(click.style(f"Location: {path}", fg="bright_black"))
    click.echo(click.style("\nNext steps:", fg="green"))
    click.echo(click.style(f"  1. Review your {PROJECT_FILE} configuration", fg="cyan"))
    click.echo(click.style("  2. Update with your actual project ID if needed", fg="cyan"))
    click.echo(click.style('  3. Run "vaf deploy <env-name>" to deploy', fg="cyan"))


# Deploy

def _build_pipeline(ctx: click.Context, api, cwd: Path) -> DeployPipeline:
    obj = ctx.obj
    poller = StatusPoller(api, render_event, sleep=obj.get("sleep", time.sleep))
    uploader = UploadCoordinator(api, render_event, session=obj.get("upload_session"))
    return DeployPipeline(
        api,
        cwd,
        shell=obj.get("shell"),
        on_event=render_event,
        poller=poller,
        uploader=uploader,
    )


@main.command()
@click.argument("project", required=False)
@click.argument("environment", required=False)
@click.option("--memory", type=click.IntRange(min=1), help="Memory in MB")
@click.option("--timeout", type=click.IntRange(min=1), help="Timeout in seconds")
@click.option("--database", help="Database name")
@click.option("--cache", help="Cache name")
@click.option("--storage", help="Storage name")
@click.option("--runtime", help=f"Runtime (e.g. {DEFAULT_RUNTIME}, or {CONTAINER_RUNTIME} for container images)")
@click.option("--handler", help=f"Handler function (e.g. {DEFAULT_HANDLER})")
@click.option("--dockerfile", help="Dockerfile path for container deployments")
@click.option("--tag", "image_tag", help="Image tag for container deployments")
@click.option("--watch", is_flag=True, help="Watch for changes and redeploy")
@click.option("--no-build", "skip_build", is_flag=True, help="Skip build commands from vaf.yml")
@click.option("--use-layers/--no-layers", "use_layers", default=None,
              help="Ship node_modules as a separate layer (default: on)")
@click.pass_context
@handle_errors("deploy")
def deploy(ctx, project, environment, memory, timeout, database, cache, storage, runtime, handler,
           dockerfile, image_tag, watch, skip_build, use_layers):
    """
    Deploy the current directory to an environment.

    PROJECT and ENVIRONMENT may be omitted when vaf.yml declares them; with
    an ID in vaf.yml a single argument names the environment.
    """
    api = get_api(ctx)
    cwd = Path.cwd()
    overrides = DeployOverrides(
        runtime=runtime,
        memory=memory,
        timeout=timeout,
        handler=handler,
        database=database,
        cache=cache,
        storage=storage,
        dockerfile=dockerfile,
        image_tag=image_tag,
        use_layers=use_layers,
    )
    pipeline = _build_pipeline(ctx, api, cwd)

    def attempt():
        return pipeline.run(project, environment, overrides, skip_build=skip_build)

    if watch:
        WatchScheduler(attempt, cwd, on_event=render_event).watch()
        return

    result = attempt()
    if result.outcome is PollOutcome.TIMEOUT:
        warn("Check the deployment status again later")
    elif not result.ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
