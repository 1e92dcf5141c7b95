"""Main CLI entry point for sphinxconf."""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from sphinxconf import __version__
from sphinxconf.cli.logging_config import setup_logging
from sphinxconf.cli.output import print_error, print_info, print_json, print_success
from sphinxconf.configuration import SETTINGS_FILE, Configuration
from sphinxconf.errors import (
    EXIT_ERROR,
    EXIT_INVALID_ARGS,
    EXIT_SUCCESS,
    SphinxConfError,
)
from sphinxconf.models import load_model_descriptors

MODELS_FILE = Path("config") / "sphinx_models.yml"

console = Console()


def load_configuration(
    app_root: str,
    settings_path: Optional[str] = None,
    models_path: Optional[str] = None,
    environment: Optional[str] = None
) -> Configuration:
    """Build a configuration from a settings file and a models file.

    Args:
        app_root: Application root directory
        settings_path: Settings YAML (default: <app_root>/config/sphinx.yml)
        models_path: Model descriptors YAML (default: <app_root>/config/sphinx_models.yml,
            skipped if missing)
        environment: Environment name (default: $SPHINX_ENV or 'development')
    """
    config = Configuration(
        app_root=app_root,
        app_environment=(lambda: environment) if environment else None,
    )
    config.load_file(Path(settings_path) if settings_path else Path(app_root) / SETTINGS_FILE)

    if models_path:
        config.register_models(load_model_descriptors(Path(models_path)))
    elif (Path(app_root) / MODELS_FILE).exists():
        config.register_models(load_model_descriptors(Path(app_root) / MODELS_FILE))
    return config


def configuration_options(func):
    """Options shared by every command that needs a configuration."""
    decorators = [
        click.option('--app-root', default='.', type=click.Path(file_okay=False), help='Application root directory'),
        click.option('--settings', 'settings_path', type=click.Path(exists=True, dir_okay=False), help='Settings YAML file'),
        click.option('--models', 'models_path', type=click.Path(exists=True, dir_okay=False), help='Model descriptors YAML file'),
        click.option('--env', 'environment', help='Environment name (default: $SPHINX_ENV or development)'),
        click.option('--json', 'output_json', is_flag=True, help='Output JSON format'),
        click.option('--verbose', '-v', is_flag=True, help='Verbose output'),
        click.option('--debug', is_flag=True, help='Debug output'),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


@click.group()
@click.version_option(version=__version__)
def cli():
    """sphinxconf: generate Sphinx configuration files from model descriptors"""
    pass


@cli.command('configure')
@configuration_options
@click.option('--output', type=click.Path(dir_okay=False), help='Output path (default: config_file setting)')
def configure(app_root, settings_path, models_path, environment, output_json, verbose, debug, output):
    """Write the searchd/indexer configuration file"""
    setup_logging(verbose, debug)
    config = load_configuration(app_root, settings_path, models_path, environment)

    print_info(
        f"Generating configuration for {len(config.indexed_models())} models ({config.environment()})",
        output_json,
    )
    generated = config.generate()
    path = config.build(Path(output) if output else None, generated)
    print_success(
        f"Wrote {path}",
        output_json,
        data={
            "path": str(path),
            "environment": config.environment(),
            "indices": [index.name for index in generated.indices],
        },
    )


@cli.command('crc')
@configuration_options
def crc(app_root, settings_path, models_path, environment, output_json, verbose, debug):
    """Show class name checksums"""
    setup_logging(verbose, debug)
    config = load_configuration(app_root, settings_path, models_path, environment)
    models_by_crc = config.models_by_crc()

    if output_json:
        print_json(
            "success",
            f"Found {len(models_by_crc)} classes",
            {"models": {str(code): name for code, name in models_by_crc.items()}},
        )
        return

    table = Table(title="Class CRCs")
    table.add_column("CRC", style="yellow")
    table.add_column("Class", style="cyan")
    for code, name in sorted(models_by_crc.items(), key=lambda item: item[1]):
        table.add_row(str(code), name)
    console.print(table)


@cli.command('version')
@configuration_options
def version(app_root, settings_path, models_path, environment, output_json, verbose, debug):
    """Show the configured or detected Sphinx version"""
    setup_logging(verbose, debug)
    config = load_configuration(app_root, settings_path, models_path, environment)
    detected = config.version()
    print_success(detected, output_json, data={"version": detected})


def main():
    """Main CLI entry point with structured error handling."""
    try:
        cli()
        return EXIT_SUCCESS
    except click.ClickException as e:
        e.show()
        return EXIT_INVALID_ARGS
    except KeyboardInterrupt:
        print("\n[INFO] Operation cancelled by user", file=sys.stderr)
        return EXIT_ERROR
    except SphinxConfError as e:
        print_error(str(e))
        return e.exit_code
    except FileNotFoundError as e:
        print_error(str(e))
        return EXIT_INVALID_ARGS


if __name__ == "__main__":
    sys.exit(main())
