"""Heron CLI - Main Entry Point.

Commands:
    generate - Generate controllers, services, modules, guards and middleware
    version  - Show version information
"""

import sys
from typing import Optional

import click

from .. import __version__
from . import __cli_name__
from .generators import KINDS, generate as _generate


def success(message: str) -> None:
    click.echo(click.style(message, fg="green"))


def error(message: str) -> None:
    click.echo(click.style(message, fg="red"), err=True)


def kv(key: str, value: str) -> None:
    click.echo(f"  {click.style(key + ':', fg='cyan')} {value}")


@click.group()
@click.version_option(version=__version__, prog_name=__cli_name__)
@click.option('--quiet', '-q', is_flag=True, help='Minimal output')
@click.pass_context
def cli(ctx, quiet: bool):
    """Heron - declarative async web framework."""
    ctx.ensure_object(dict)
    ctx.obj['quiet'] = quiet


@cli.command('generate')
@click.argument('kind', type=click.Choice(KINDS))
@click.argument('name')
@click.option('--output', '-o', type=click.Path(file_okay=False), default='.', help='Output directory')
@click.option('--prefix', type=str, help='Route prefix for controllers (default: /name)')
@click.option('--scope', type=click.Choice(['singleton', 'request', 'transient']), default='singleton',
              help='Lifetime for services')
@click.option('--force', is_flag=True, help='Overwrite an existing file')
@click.pass_context
def generate(ctx, kind: str, name: str, output: str, prefix: Optional[str], scope: str, force: bool):
    """
    Generate a new KIND named NAME.

    Examples:
      heron generate controller Users
      heron generate controller Products --prefix=/api/products
      heron generate service Users --scope request
      heron generate module Users --output app/users
    """
    try:
        path = _generate(kind, name, output, force=force, prefix=prefix, scope=scope)
    except (FileExistsError, ValueError, OSError) as e:
        error(f"Failed to generate {kind}: {e}")
        sys.exit(1)

    if not ctx.obj['quiet']:
        success(f"Generated {kind} '{name}'")
        kv("Location", str(path))


@cli.command('version')
def version():
    """Show version information."""
    click.echo(f"{__cli_name__} {__version__}")


def main():
    """Entry point for `heron` command."""
    cli(obj={})


if __name__ == '__main__':
    main()
