"""Command-line interface for commit-tracer.

Usage:
    commit-tracer employees [EMAIL]
    commit-tracer emails --output employee_emails.txt
    commit-tracer mappings list|add|remove
    commit-tracer config get|set
"""

from __future__ import annotations

import json
import os
from collections import Counter
from pathlib import Path

import click

from . import __version__
from .config import (
    DEFAULT_HIBOB_URL,
    EMAIL_MAPPINGS_KEY,
    HIBOB_TOKEN_KEY,
    HIBOB_URL_KEY,
    ConfigStore,
    ConfigStoreRegistry,
    is_placeholder_token,
)
from .integrations import (
    DirectoryCache,
    DirectoryClient,
    EmailNormalizer,
    EmployeeRecord,
    InMemoryCredentialStore,
)
from .tracer_logging import get_logger, setup_logging

logger = get_logger(__name__)

TOKEN_ENV_VAR = "HIBOB_API_TOKEN"
URL_ENV_VAR = "HIBOB_API_URL"


class CliContext:
    """State shared by all subcommands."""

    def __init__(
        self,
        config_path: str | None,
        project_path: str | None,
        token: str | None,
        debug: bool,
        registry: ConfigStoreRegistry | None = None,
    ):
        self.config_path = config_path
        self.project_path = project_path
        self.token_arg = token
        self.debug = debug
        self._registry = registry or ConfigStoreRegistry()

    @property
    def store(self) -> ConfigStore:
        return self._registry.for_project(self.project_path, self.config_path)

    def resolve_token(self) -> str:
        """Token from ``--token``, then the config file, then the environment."""
        if self.token_arg and self.token_arg.strip():
            logger.debug("Using token from command line")
            return self.token_arg.strip()

        configured = self.store.get(HIBOB_TOKEN_KEY)
        if not is_placeholder_token(configured):
            logger.debug(f"Using token from {self.store.config_path}")
            return configured.strip()

        from_env = os.environ.get(TOKEN_ENV_VAR, "")
        if from_env.strip():
            logger.debug("Using token from environment")
            return from_env.strip()

        raise click.ClickException(
            f"No HiBob token found. Pass --token, set {HIBOB_TOKEN_KEY} in "
            f"{self.store.config_path} or set {TOKEN_ENV_VAR}."
        )

    def resolve_base_url(self) -> str:
        return (
            self.store.get(HIBOB_URL_KEY)
            or os.environ.get(URL_ENV_VAR)
            or DEFAULT_HIBOB_URL
        )

    def load_directory(self) -> DirectoryCache:
        """Fetch the whole directory into a fresh cache."""
        credentials = InMemoryCredentialStore(self.resolve_token(), self.resolve_base_url())
        cache = DirectoryCache(
            credentials, normalizer=EmailNormalizer(self.store), client_factory=DirectoryClient
        )
        click.echo(f"Using HiBob API URL: {credentials.get_base_url()}")
        if not cache.refresh_now():
            error = cache.stats["last_error"] or "unknown error"
            raise click.ClickException(f"Error fetching employee data: {error}")
        return cache


pass_context = click.make_pass_decorator(CliContext)


def _print_employee(employee: EmployeeRecord) -> None:
    click.echo(f"- Name: {employee.display_name}")
    click.echo(f"- Email: {employee.email}")
    click.echo(f"- Team: {employee.team}")
    click.echo(f"- Title: {employee.title}")
    click.echo(f"- Manager: {employee.manager or 'None'}")
    if employee.site_id:
        click.echo(f"- Site: {employee.site_id}")


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Config file (default: <project>/.env.json or ~/.commitmapper/.env.json)",
)
@click.option(
    "--project",
    "project_path",
    type=click.Path(file_okay=False),
    help="Project directory holding .env.json",
)
@click.option("--token", help="HiBob API token (overrides config and environment)")
@click.option("-d", "--debug", is_flag=True, help="Verbose logging")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, config_path, project_path, token, debug):
    """Correlate commit authors with the HiBob employee directory."""
    setup_logging(verbose=debug)
    ctx.obj = CliContext(config_path, project_path, token, debug)


@cli.command()
@click.argument("email", required=False)
@click.option("--limit", default=10, show_default=True, help="Employees to print")
@pass_context
def employees(obj: CliContext, email, limit):
    """Show one employee, or a sample of the directory with statistics."""
    cache = obj.load_directory()

    if email:
        employee = cache.lookup(email)
        if employee is None:
            click.echo(f"No employee found with email {email}")
            return
        click.echo(f"Employee information for {email}:")
        _print_employee(employee)
        return

    records = sorted(cache.snapshot().values(), key=lambda r: r.email.lower())
    click.echo(f"Found {len(records)} employees")
    for index, employee in enumerate(records[:limit], start=1):
        click.echo(f"\nEmployee #{index}:")
        _print_employee(employee)

    teams = Counter(r.team for r in records if r.team)
    click.echo("\nEmployee Statistics:")
    click.echo(f"- Teams ({len(teams)}): {', '.join(sorted(teams))}")
    click.echo(f"- Titles: {len({r.title for r in records if r.title})} unique titles")
    click.echo(f"- Managers: {len({r.manager for r in records if r.manager})} managers")
    click.echo(f"- Sites: {len({r.site_id for r in records if r.site_id})} office locations")


@cli.command()
@click.option(
    "-o",
    "--output",
    default="employee_emails.txt",
    show_default=True,
    type=click.Path(dir_okay=False),
    help="File to write the sorted email list to",
)
@pass_context
def emails(obj: CliContext, output):
    """Write every employee email to a file, one per line."""
    cache = obj.load_directory()
    addresses = sorted({r.email for r in cache.snapshot().values()}, key=str.lower)

    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(f"{address}\n" for address in addresses), encoding="utf-8")

    click.echo(f"Wrote {len(addresses)} employee emails to {path}")
    click.echo(f"{len(obj.store.all_mappings())} email mappings configured")


@cli.group()
def mappings():
    """Manage personal-to-corporate email mappings."""


@mappings.command("list")
@pass_context
def list_mappings(obj: CliContext):
    table = obj.store.all_mappings()
    if not table:
        click.echo("No email mappings configured")
        return
    width = max(len(source) for source in table)
    for source in sorted(table, key=str.lower):
        click.echo(f"{source.ljust(width)} -> {table[source]}")


@mappings.command("add")
@click.argument("from_email")
@click.argument("to_email")
@pass_context
def add_mapping(obj: CliContext, from_email, to_email):
    """Map FROM_EMAIL to TO_EMAIL."""
    if not obj.store.add_mapping(from_email, to_email):
        raise click.ClickException(f"Failed to save {obj.store.config_path}")
    click.echo(f"Mapped {from_email} -> {to_email}")


@mappings.command("remove")
@click.argument("email")
@pass_context
def remove_mapping(obj: CliContext, email):
    if not obj.store.remove_mapping(email):
        raise click.ClickException(f"No mapping removed for {email}")
    click.echo(f"Removed mapping for {email}")


@cli.group("config")
def config_group():
    """Read and write values in the config file."""


@config_group.command("get")
@click.argument("key")
@pass_context
def config_get(obj: CliContext, key):
    if key == EMAIL_MAPPINGS_KEY:
        click.echo(json.dumps(obj.store.all_mappings(), indent=2, sort_keys=True))
        return
    value = obj.store.get(key)
    if value is None:
        raise click.ClickException(f"{key} is not set")
    click.echo(value)


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@pass_context
def config_set(obj: CliContext, key, value):
    """Set KEY to VALUE (emailMappings takes a JSON object)."""
    if key == EMAIL_MAPPINGS_KEY:
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"not valid JSON: {e}", param_hint="VALUE") from e
        if not isinstance(value, dict):
            raise click.BadParameter("must be a JSON object", param_hint="VALUE")
    if not obj.store.update(key, value):
        raise click.ClickException(f"Failed to save {obj.store.config_path}")
    click.echo(f"Updated {key}")


def main() -> None:
    cli(prog_name="commit-tracer")


if __name__ == "__main__":
    main()
