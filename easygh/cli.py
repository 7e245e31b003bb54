import logging
import pathlib
import typing

import click

from . import __doc__, __version__, api
from .config import ENV_TOKEN_KEY, load_config
from .sealing import seal_base64
from .utils import EasyGHException, default_config_path, parse_repos
from .values import Outcome, Status

log = logging.getLogger(__name__)

STYLES = {
    Status.SET: dict(fg='green'),
    Status.WOULD_CREATE: dict(fg='cyan'),
    Status.WOULD_UPDATE: dict(fg='yellow'),
    Status.FAILED: dict(fg='red'),
}


def styled(outcome: Outcome) -> str:
    return click.style(str(outcome), **STYLES[outcome.status])


class PathType(click.Path):
    def convert(self, value, param, ctx):
        return pathlib.Path(super().convert(value, param, ctx))


config_option = click.option(
    '-c', '--config', 'config_path',
    type=PathType(dir_okay=False),
    default=default_config_path,
    show_default='config.yaml',
    help="Path to the configuration file.")


@click.group(help=__doc__)
@click.option(
    '-v', '--verbose', 'verbose',
    default=False,
    is_flag=True,
    help="Log each step as it happens.")
@click.option(
    '-d', '--debug', 'debug',
    default=False,
    is_flag=True,
    help="Enable debug logging.")
def main(verbose: bool, debug: bool):
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level)


@main.command()
def version():
    """Show the application version."""
    click.echo(f"easygh {__version__}")


@main.command()
@config_option
@click.option(
    '--token',
    metavar='TOKEN',
    default=None,
    help=f"GitHub token, overriding the configuration file and ${ENV_TOKEN_KEY}.")
@click.option(
    '--owner',
    metavar='OWNER',
    default=None,
    help="GitHub owner or organization, overriding the configuration file.")
@click.option(
    '--repo', 'repos',
    metavar='REPOS',
    default=None,
    help="Comma separated repositories, overriding the configuration file.")
@click.option(
    '--dry-run',
    default=False,
    is_flag=True,
    help="Show what would be done without making changes.")
@click.option(
    '--continue-on-error',
    default=False,
    is_flag=True,
    help="Keep processing after a failure instead of stopping early.")
def sync(
        config_path: pathlib.Path,
        token: typing.Optional[str],
        owner: typing.Optional[str],
        repos: typing.Optional[str],
        dry_run: bool,
        continue_on_error: bool):
    """
    Write secrets and variables to every configured repository.

    Repositories are processed concurrently. Without --continue-on-error the
    first failure stops any work that has not started yet.
    """
    config = load_config(
        config_path, token=token, owner=owner, repos=parse_repos(repos))

    if dry_run:
        click.secho("Dry run: no changes will be made", fg='yellow')

    result = api.propagate(
        config, dry_run=dry_run, continue_on_error=continue_on_error)

    for outcome in result.successes:
        click.echo(styled(outcome))

    if result.failed:
        for error in result.errors:
            click.secho(f"Error: {error}", fg='red', err=True)
        raise EasyGHException(result.summary())

    click.echo(result.summary())


@main.command()
@config_option
def validate(config_path: pathlib.Path):
    """Check the configuration file and list what it would write."""
    config = load_config(config_path)

    click.echo(f"Owner: {config.github.owner}")
    for target in config.targets():
        click.echo(f"Repository: {target}")
    for value in config.catalog():
        scope = f" ({value.scope})" if value.scope.environment else ""
        click.echo(f"{value.scope.kind.title()} {value.kind} {value.name}"
                   f"{scope}: {value.display}")


@main.command()
@click.option(
    '-k', '--key', 'public_key',
    metavar='BASE64',
    required=True,
    help="The recipient's public key, base64 encoded.")
@click.argument('value', required=False)
def seal(public_key: str, value: typing.Optional[str]):
    """
    Encrypt a value for a public key, as GitHub expects secrets.

    Reads the value from standard input when it is not given as an argument.
    """
    if value is None:
        value = click.get_text_stream('stdin').read().rstrip('\n')
    click.echo(seal_base64(value, public_key))
