"""CLI entry point for hookdeploy."""

from __future__ import annotations

import sys
from pathlib import Path

import click
import yaml

from hookdeploy.config import ConfigError, Settings, load_settings
from hookdeploy.logging import setup_logging
from hookdeploy.server import BindError, serve
from hookdeploy.state_store import AppConfigNotFoundError, AppConfigStore


def _load(config_path: Path | None) -> Settings:
    try:
        return load_settings(config_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)


config_option = click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to hookdeploy.yaml (auto-detected if not specified)",
)


@click.group()
@click.version_option(package_name="hookdeploy")
def main() -> None:
    """hookdeploy - deploy pm2 applications from VCS and CI webhooks."""
    pass


@main.command(name="serve")
@config_option
@click.option("-p", "--port", type=int, default=None, help="Port to listen on (overrides config)")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def serve_command(config_path: Path | None, port: int | None, verbose: bool) -> None:
    """Listen for webhooks and deploy the configured apps."""
    settings = _load(config_path)
    if port is not None:
        settings = settings.model_copy(update={"port": port})

    setup_logging(settings.log_dir, level="DEBUG" if verbose else settings.log_level)
    click.echo(f"Listening for webhooks on port {settings.port}")
    try:
        serve(settings, log_level="debug" if verbose else "info")
    except BindError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.group()
def apps() -> None:
    """Inspect the stored application configs."""
    pass


@apps.command(name="list")
@config_option
def list_apps(config_path: Path | None) -> None:
    """List stored apps, seeding the store from the config file if it is empty."""
    settings = _load(config_path)
    store = AppConfigStore(settings.database_path)
    try:
        store.seed(settings.apps.values())
        configs = store.find()
    finally:
        store.close()

    if not configs:
        click.echo("No apps configured.")
        return
    for app in configs:
        branches = ", ".join(app.branches) or "-"
        tests = "yes" if app.has_tests else "no"
        click.echo(f"{app.name}\t{app.provider}\tbranches: {branches}\ttests: {tests}")


@apps.command(name="show")
@config_option
@click.argument("name")
def show_app(config_path: Path | None, name: str) -> None:
    """Print one stored app config with its secrets masked."""
    settings = _load(config_path)
    store = AppConfigStore(settings.database_path)
    try:
        store.seed(settings.apps.values())
        app = store.get(name)
    except AppConfigNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        store.close()
    click.echo(yaml.safe_dump(app.masked(), sort_keys=False).rstrip())


@apps.command(name="reload")
@config_option
def reload_apps(config_path: Path | None) -> None:
    """Replace the stored apps with the ones in the config file."""
    settings = _load(config_path)
    store = AppConfigStore(settings.database_path)
    try:
        known = {app.name for app in store.find()}
        for name in known - set(settings.apps):
            store.delete(name)
        for app in settings.apps.values():
            store.update({"name": app.name}, app, upsert=True)
    finally:
        store.close()
    click.echo(f"Stored {len(settings.apps)} app(s).")


if __name__ == "__main__":
    main()
