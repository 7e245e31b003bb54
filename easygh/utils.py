import pathlib
import typing

import click
import git

MASK = '****'


def find_git_directory() -> typing.Optional[pathlib.Path]:
    try:
        repo = git.Repo(search_parent_directories=True)
    except git.exc.InvalidGitRepositoryError:
        return None
    return pathlib.Path(repo.working_dir)


def default_config_path() -> pathlib.Path:
    """
    Find the configuration file used when no path is given.

    Prefers 'config.yaml' in the current directory, then the root of the
    enclosing git repository.
    """
    local = pathlib.Path.cwd() / 'config.yaml'
    if local.exists():
        return local

    repository = find_git_directory()
    if repository is not None and (repository / 'config.yaml').exists():
        return repository / 'config.yaml'

    return local


def parse_repos(value: typing.Optional[str]) -> typing.Tuple[str, ...]:
    """Split a comma separated list of repository names, dropping blanks."""
    if not value:
        return ()
    return tuple(repo.strip() for repo in value.split(',') if repo.strip())


def mask_secret(value: str) -> str:
    """
    Hide most of a secret value for display.

    Values of four characters or fewer are replaced entirely.
    """
    if len(value) <= 4:
        return MASK
    return f"{value[:2]}{MASK}{value[-2:]}"


class EasyGHException(click.ClickException):
    pass
