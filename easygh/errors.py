"""
Errors raised while loading configuration, encrypting values and talking to
the remote store.

All of them are click exceptions so the command line reports them directly.
"""

import typing

from .utils import EasyGHException
from .values import PlaintextValue, Target


class ConfigurationError(EasyGHException):
    """The configuration is missing, unreadable or invalid."""


class EncryptionError(EasyGHException):
    """A value could not be sealed for its recipient."""


class RemoteError(EasyGHException):
    """A request to the remote store failed."""

    def __init__(self, message: str, status: typing.Optional[int] = None):
        super().__init__(message)
        self.status = status


class RepositoryNotFound(RemoteError):
    def __init__(self, owner: str, repo: str):
        super().__init__(
            f"repository {owner}/{repo} not found or access denied",
            status=404)
        self.owner = owner
        self.repo = repo


class EnvironmentNotFound(RemoteError):
    def __init__(self, owner: str, repo: str, environment: str):
        super().__init__(
            f"environment '{environment}' not found in repository "
            f"{owner}/{repo}. Please create the environment first in "
            f"GitHub repository settings",
            status=404)
        self.owner = owner
        self.repo = repo
        self.environment = environment


class UnitError(EasyGHException):
    """A single value could not be written to a single target."""

    def __init__(
            self,
            target: Target,
            value: PlaintextValue,
            cause: Exception):
        self.target = target
        self.value = value
        self.cause = cause
        super().__init__(self.describe())

    @property
    def resource(self) -> str:
        return f"{self.value.scope.kind}_{self.value.kind.value}"

    @property
    def environment(self) -> typing.Optional[str]:
        return self.value.scope.environment

    @property
    def name(self) -> str:
        return self.value.name

    def describe(self) -> str:
        cause = getattr(self.cause, 'message', None) or str(self.cause)
        if self.environment is not None:
            return (f"failed to set {self.resource} '{self.name}' in "
                    f"environment '{self.environment}' for repository "
                    f"{self.target}: {cause}")
        return (f"failed to set {self.resource} '{self.name}' for "
                f"repository {self.target}: {cause}")
