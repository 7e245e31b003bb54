import typing

from .config import Config, GitHubConfig
from .dispatch import Dispatcher
from .github import GitHubClient, RemoteStore
from .values import RunResult


def connect(github: GitHubConfig) -> RemoteStore:
    return GitHubClient.from_config(github)


def propagate(
        config: Config,
        dry_run: bool = False,
        continue_on_error: bool = False,
        store: typing.Optional[RemoteStore] = None) -> RunResult:
    """Write every configured secret and variable to every configured repository."""
    dispatcher = Dispatcher(
        store=store if store is not None else connect(config.github),
        dry_run=dry_run,
        continue_on_error=continue_on_error)
    return dispatcher.run(config.targets(), config.catalog())
