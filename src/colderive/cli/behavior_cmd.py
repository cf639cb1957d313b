"""Behavior CLI commands: validate a configuration, run it against a snapshot."""

from pathlib import Path

import click
import yaml

from colderive.config.loader import HostConfig, load_config
from colderive.config.settings import HostSettings
from colderive.errors import CompilationError, ConfigurationError, ProjectResolutionError
from colderive.host import BehaviorHost, register_builtin_behaviors
from colderive.repository.memory import MemoryRepository


def _load(config_path: Path, settings: HostSettings, extensions: tuple[str, ...]) -> HostConfig:
    try:
        config = load_config(config_path, settings)
    except ConfigurationError as e:
        click.echo(click.style(f"Configuration error: {e}", fg="red"), err=True)
        raise SystemExit(1)
    config.settings.extension_modules.extend(extensions)
    return config


def _load_items(items_path: Path) -> MemoryRepository:
    try:
        with open(items_path) as f:
            data = yaml.safe_load(f)
        return MemoryRepository.from_dict(data or {})
    except yaml.YAMLError as e:
        message = f"Invalid YAML in {items_path}: {e}"
    except ConfigurationError as e:
        message = str(e)
    click.echo(click.style(f"Configuration error: {message}", fg="red"), err=True)
    raise SystemExit(1)


def _build_host(config: HostConfig, repository: MemoryRepository) -> BehaviorHost:
    register_builtin_behaviors()
    try:
        return BehaviorHost.from_config(config, repository)
    except ConfigurationError as e:
        click.echo(click.style(f"Configuration error: {e}", fg="red"), err=True)
        raise SystemExit(1)


_extension_option = click.option(
    "--extension",
    "extensions",
    multiple=True,
    help="Extension module expressions may call (repeatable).",
)


@click.command()
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@_extension_option
@click.pass_obj
def validate(settings: HostSettings, config_path: Path, extensions: tuple[str, ...]):
    """Check a configuration and compile every expression in it."""
    config = _load(config_path, settings or HostSettings(), extensions)
    host = _build_host(config, MemoryRepository())

    failures = 0
    for behavior in host.behaviors:
        try:
            behavior.check()
        except CompilationError as e:
            failures += 1
            click.echo(click.style(f"  ✗ {behavior.title}", fg="red"))
            for diagnostic in e.diagnostics:
                click.echo(click.style(f"      {diagnostic}", fg="red"))
            continue
        columns = len(getattr(behavior, "columns", []))
        click.echo(f"  ✓ {behavior.title} ({columns} column(s))")

    if failures:
        click.echo(
            click.style(f"\n{failures} behavior(s) failed to compile", fg="red", bold=True)
        )
        raise SystemExit(1)

    click.echo(click.style(f"\n{len(host.behaviors)} behavior(s) valid.", fg="green", bold=True))


@click.command()
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--items",
    "items_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML snapshot of projects and items to run against.",
)
@_extension_option
@click.pass_obj
def run(
    settings: HostSettings,
    config_path: Path,
    items_path: Path,
    extensions: tuple[str, ...],
):
    """Initialize every behavior against a snapshot and print the writes made."""
    config = _load(config_path, settings or HostSettings(), extensions)

    repository = _load_items(items_path)

    host = _build_host(config, repository)
    repository.subscribe(host.dispatch)

    try:
        host.initialize()
    except (CompilationError, ProjectResolutionError) as e:
        click.echo(click.style(str(e), fg="red"), err=True)
        raise SystemExit(1)

    for write in repository.writes:
        click.echo(f"  {write.item_id}: {write.column} {write.old!r} -> {write.new!r}")
    click.echo(f"\n{len(repository.writes)} write(s).")

    if host.errors:
        click.echo(click.style(f"{len(host.errors)} evaluation error(s):", fg="yellow"))
        for behavior, error in host.errors:
            click.echo(click.style(f"  {error}", fg="yellow"))
        raise SystemExit(2)
