"""Commands for backend resources: projects, environments, variables, databases and caches."""

import click

from ..envfile import parse_env_file
from .common import (
    confirm_delete,
    field,
    format_date,
    get_api,
    handle_errors,
    heading,
    info,
    json_output,
    styled_status,
    success,
    warn,
)

DEFAULT_REGION = "us-east-1"

DATABASE_ENGINES = [
    "MySQL 8.0 Fixed Size Database",
    "MySQL 5.7 Fixed Size Database",
    "MySQL 8.0 Serverless v2",
    "PostgreSQL 17 Fixed Size Database",
    "PostgreSQL 16.4 Serverless v2",
    "PostgreSQL 11.0 Serverless v1",
]

DATABASE_SPECS = [
    "db.t3.micro", "db.t3.small", "db.t3.medium", "db.t3.large", "db.t3.xlarge", "db.t3.2xlarge",
    "db.t4g.micro", "db.t4g.small",
    "db.m5.large", "db.m5.xlarge", "db.m5.2xlarge",
    "db.r5.large",
]

CACHE_TYPES = ["Redis 7.x Cluster", "Redis 6.x Cluster", "Redis 5.x Cluster"]

CACHE_SPECS = [
    "cache.t3.micro", "cache.t3.small", "cache.t3.medium", "cache.t3.large", "cache.t3.xlarge",
    "cache.t3.2xlarge",
    "cache.r5.large", "cache.r5.xlarge", "cache.r5.2xlarge",
]


# Projects

@click.group()
def projects():
    """Manage projects."""


@projects.command("list")
@click.pass_context
@handle_errors("list projects")
def projects_list(ctx):
    """List all projects."""
    items = get_api(ctx).get("/api/projects") or []
    if not items:
        info("No projects found.")
        return
    heading("Projects:")
    for project in items:
        field("ID", project.get("id"))
        field("Name", project.get("name"))
        field("Region", project.get("region"))
        field("Created", format_date(project.get("createdAt")))
        click.echo()


@projects.command("create")
@click.argument("name")
@click.option("--region", default=DEFAULT_REGION, show_default=True, help="Project region")
@click.pass_context
@handle_errors("create project")
def projects_create(ctx, name, region):
    """Create a new project."""
    project = get_api(ctx).post("/api/projects", {"name": name, "region": region})
    success(f"Project created: {project.get('name')} ({project.get('id')})")
    json_output(project)


@projects.command("show")
@click.argument("project_id")
@click.pass_context
@handle_errors("fetch project")
def projects_show(ctx, project_id):
    """Show project details."""
    project = get_api(ctx).get(f"/api/projects/{project_id}")
    heading("Project Details:")
    json_output(project)


@projects.command("delete")
@click.argument("project_id")
@click.option("--force", is_flag=True, help="Skip confirmation")
@click.pass_context
@handle_errors("delete project")
def projects_delete(ctx, project_id, force):
    """Delete a project and all its environments."""
    api = get_api(ctx)
    if not confirm_delete(f"project {project_id} and all its environments.", force):
        return
    api.delete(f"/api/projects/{project_id}")
    success(f"Project {project_id} deleted successfully")


# Environments

@click.group("env")
def env():
    """Manage environments."""


@env.command("list")
@click.argument("project_id")
@click.pass_context
@handle_errors("list environments")
def env_list(ctx, project_id):
    """List environments for a project."""
    items = get_api(ctx).get(f"/api/projects/{project_id}/environments") or []
    if not items:
        info("No environments found.")
        return
    heading(f"Environments for project {project_id}:")
    for item in items:
        field("ID", item.get("id"))
        field("Name", item.get("name"))
        field("Status", item.get("status") or "active")
        field("Created", format_date(item.get("createdAt")))
        click.echo()


@env.command("create")
@click.argument("project_id")
@click.argument("name")
@click.pass_context
@handle_errors("create environment")
def env_create(ctx, project_id, name):
    """Create a new environment."""
    environment = get_api(ctx).post(f"/api/projects/{project_id}/environments", {"name": name})
    success(f"Environment created: {environment.get('name')} ({environment.get('id')})")
    json_output(environment)


@env.command("show")
@click.argument("project_id")
@click.argument("env_id")
@click.pass_context
@handle_errors("fetch environment")
def env_show(ctx, project_id, env_id):
    """Show environment details."""
    environment = get_api(ctx).get(f"/api/projects/{project_id}/environments/{env_id}")
    heading("Environment Details:")
    json_output(environment)


@env.command("delete")
@click.argument("project_id")
@click.argument("env_id")
@click.option("--force", is_flag=True, help="Skip confirmation")
@click.pass_context
@handle_errors("delete environment")
def env_delete(ctx, project_id, env_id, force):
    """Delete an environment."""
    api = get_api(ctx)
    if not confirm_delete(f"environment {env_id}.", force):
        return
    api.delete(f"/api/projects/{project_id}/environments/{env_id}")
    success(f"Environment {env_id} deleted successfully")


# Environment variables

def _vars_path(project_id: str, env_id: str) -> str:
    return f"/api/projects/{project_id}/environments/{env_id}/env-variables"


@env.group("vars")
def env_vars():
    """Manage environment variables."""


@env_vars.command("list")
@click.argument("project_id")
@click.argument("env_id")
@click.pass_context
@handle_errors("list environment variables")
def vars_list(ctx, project_id, env_id):
    """List environment variables."""
    variables = get_api(ctx).get(_vars_path(project_id, env_id)) or {}
    if not variables:
        info("No environment variables set.")
        return
    heading("Environment Variables:")
    for key, value in variables.items():
        click.echo(f"{click.style(key, fg='cyan')} = {value}")


@env_vars.command("set")
@click.argument("project_id")
@click.argument("env_id")
@click.argument("key")
@click.argument("value")
@click.pass_context
@handle_errors("set environment variable")
def vars_set(ctx, project_id, env_id, key, value):
    """Set an environment variable."""
    get_api(ctx).post(_vars_path(project_id, env_id), {key: value})
    success(f"Environment variable {key} set successfully")


@env_vars.command("remove")
@click.argument("project_id")
@click.argument("env_id")
@click.argument("key")
@click.pass_context
@handle_errors("remove environment variable")
def vars_remove(ctx, project_id, env_id, key):
    """Remove an environment variable."""
    get_api(ctx).delete(f"{_vars_path(project_id, env_id)}/{key}")
    success(f"Environment variable {key} removed successfully")


@env_vars.command("set-file")
@click.argument("project_id")
@click.argument("env_id")
@click.argument("file", type=click.Path(dir_okay=False))
@click.pass_context
@handle_errors("set environment variables from file")
def vars_set_file(ctx, project_id, env_id, file):
    """Bulk set environment variables from a .env file."""
    api = get_api(ctx)
    variables = parse_env_file(file)
    if not variables:
        warn("No environment variables found in file")
        return
    info(f"Setting {len(variables)} environment variables...")
    api.post(_vars_path(project_id, env_id), variables)
    success("Environment variables set successfully")


# Databases

@click.group()
def databases():
    """Manage databases."""


@databases.command("list")
@click.pass_context
@handle_errors("list databases")
def databases_list(ctx):
    """List all databases."""
    items = get_api(ctx).get("/api/databases") or []
    if not items:
        info("No databases found.")
        return
    heading("Databases:")
    for db in items:
        field("ID", db.get("id"))
        field("Name", db.get("name"))
        field("Engine", db.get("engine"))
        field("Specs", db.get("serverSpecs"))
        field("Status", styled_status(db.get("status")))
        if db.get("status") == "active" and db.get("host"):
            field("Host", db.get("host"))
            field("Port", db.get("port"))
        field("Created", format_date(db.get("createdAt")))
        click.echo()


@databases.command("create")
@click.option("--network-id", prompt="Network ID", help="Network ID")
@click.option("--name", prompt="Database name", help="Database name")
@click.option("--engine", type=click.Choice(DATABASE_ENGINES), default=DATABASE_ENGINES[0],
              prompt="Database engine", help="Database engine")
@click.option("--specs", type=click.Choice(DATABASE_SPECS), default="db.t3.micro",
              prompt="Server specs", help="Server specs")
@click.option("--disk", type=click.IntRange(20, 1000), default=100, show_default=True, help="Disk size in GB")
@click.option("--retention", type=click.IntRange(1, 35), default=7, show_default=True,
              help="Backup retention in days")
@click.pass_context
@handle_errors("create database")
def databases_create(ctx, network_id, name, engine, specs, disk, retention):
    """Create a new database."""
    api = get_api(ctx)
    info("Creating database (this may take a few minutes)...")
    database = api.post("/api/databases", {
        "networkId": network_id,
        "name": name,
        "engine": engine,
        "serverSpecs": specs,
        "minimumDisk": disk,
        "retention": retention,
    })
    success(f"Database created: {database.get('name')} ({database.get('id')})")
    field("Status", styled_status(database.get("status")))
    click.echo(f'Run "vaf databases show {database.get("id")}" to check status.')


@databases.command("show")
@click.argument("database_id")
@click.pass_context
@handle_errors("fetch database")
def databases_show(ctx, database_id):
    """Show database details."""
    db = get_api(ctx).get(f"/api/databases/{database_id}")
    heading("Database Details:")
    field("ID", db.get("id"))
    field("Name", db.get("name"))
    field("Engine", db.get("engine"))
    field("Specs", db.get("serverSpecs"))
    field("Disk", f"{db.get('minimumDisk')} GB")
    field("Retention", f"{db.get('retention')} days")
    field("Status", styled_status(db.get("status")))
    if db.get("status") == "active":
        click.echo(click.style("\nConnection Details:", fg="green"))
        field("Host", db.get("host"))
        field("Port", db.get("port"))
        field("Password", db.get("password"))
    if db.get("error"):
        click.echo(f"{click.style('Error:', fg='red')} {db['error']}")
    field("Created", format_date(db.get("createdAt")))


@databases.command("delete")
@click.argument("database_id")
@click.option("--force", is_flag=True, help="Skip confirmation")
@click.pass_context
@handle_errors("delete database")
def databases_delete(ctx, database_id, force):
    """Delete a database."""
    api = get_api(ctx)
    db = api.get(f"/api/databases/{database_id}") or {}
    if not confirm_delete(f'database "{db.get("name")}" ({database_id})', force):
        return
    api.delete(f"/api/databases/{database_id}")
    success("Database deletion initiated")


# Caches

@click.group()
def caches():
    """Manage caches."""


@caches.command("list")
@click.pass_context
@handle_errors("list caches")
def caches_list(ctx):
    """List all caches."""
    items = get_api(ctx).get("/api/caches") or []
    if not items:
        info("No caches found.")
        return
    heading("Caches:")
    for cache in items:
        field("ID", cache.get("id"))
        field("Name", cache.get("name"))
        field("Type", cache.get("type"))
        field("Specs", cache.get("serverSpecs"))
        field("Status", styled_status(cache.get("status")))
        if cache.get("status") == "active" and cache.get("endpoint"):
            field("Endpoint", cache.get("endpoint"))
            field("Port", cache.get("port"))
        field("Created", format_date(cache.get("createdAt")))
        click.echo()


@caches.command("create")
@click.option("--network-id", prompt="Network ID", help="Network ID")
@click.option("--name", prompt="Cache name", help="Cache name")
@click.option("--type", "cache_type", type=click.Choice(CACHE_TYPES), default=CACHE_TYPES[0],
              prompt="Cache type", help="Cache type")
@click.option("--specs", type=click.Choice(CACHE_SPECS), default="cache.t3.micro",
              prompt="Server specs", help="Server specs")
@click.pass_context
@handle_errors("create cache")
def caches_create(ctx, network_id, name, cache_type, specs):
    """Create a new cache."""
    api = get_api(ctx)
    info("Creating cache (this may take a few minutes)...")
    cache = api.post("/api/caches", {
        "networkId": network_id,
        "name": name,
        "type": cache_type,
        "serverSpecs": specs,
    })
    success(f"Cache created: {cache.get('name')} ({cache.get('id')})")
    field("Status", styled_status(cache.get("status")))
    click.echo(f'Run "vaf caches show {cache.get("id")}" to check status.')


@caches.command("show")
@click.argument("cache_id")
@click.pass_context
@handle_errors("fetch cache")
def caches_show(ctx, cache_id):
    """Show cache details."""
    cache = get_api(ctx).get(f"/api/caches/{cache_id}")
    heading("Cache Details:")
    field("ID", cache.get("id"))
    field("Name", cache.get("name"))
    field("Type", cache.get("type"))
    field("Specs", cache.get("serverSpecs"))
    field("Status", styled_status(cache.get("status")))
    if cache.get("status") == "active":
        click.echo(click.style("\nConnection Details:", fg="green"))
        field("Endpoint", cache.get("endpoint"))
        field("Port", cache.get("port"))
    if cache.get("error"):
        click.echo(f"{click.style('Error:', fg='red')} {cache['error']}")
    field("Created", format_date(cache.get("createdAt")))


@caches.command("delete")
@click.argument("cache_id")
@click.option("--force", is_flag=True, help="Skip confirmation")
@click.pass_context
@handle_errors("delete cache")
def caches_delete(ctx, cache_id, force):
    """Delete a cache."""
    api = get_api(ctx)
    cache = api.get(f"/api/caches/{cache_id}") or {}
    if not confirm_delete(f'cache "{cache.get("name")}" ({cache_id})', force):
        return
    api.delete(f"/api/caches/{cache_id}")
    success("Cache deletion initiated")
