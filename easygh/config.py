import logging
import os
import pathlib
import typing

import attr
import yaml

from .errors import ConfigurationError
from .values import Catalog, Target

log = logging.getLogger(__name__)

ENV_TOKEN_KEY = 'GH_TOKEN_WITH_ACTIONS_WRITE'
DEFAULT_API_URL = 'https://api.github.com'
DEFAULT_TIMEOUT = 30.0

Values = typing.Dict[str, str]
EnvironmentValues = typing.Dict[str, Values]


def _text(value: typing.Any) -> str:
    """Render a YAML scalar the way it was written."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (dict, list)):
        raise ConfigurationError(f"Expected a scalar value, got {value!r}")
    return str(value)


def _values(section: str, data: typing.Any) -> Values:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{section} must be a mapping of names to values")
    return {_text(key): _text(value) for key, value in data.items()}


def _environment_values(section: str, data: typing.Any) -> EnvironmentValues:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{section} must be a mapping of environments")
    return {_text(environment): _values(f"{section}.{environment}", values)
            for environment, values in data.items()}


@attr.s(frozen=True, kw_only=True)
class GitHubConfig:
    token: str = attr.ib(default='', repr=False)
    owner: str = attr.ib(default='')
    repos: typing.Tuple[str, ...] = attr.ib(default=(), converter=tuple)
    api_url: str = attr.ib(default=DEFAULT_API_URL)
    timeout: float = attr.ib(default=DEFAULT_TIMEOUT, converter=float)

    @classmethod
    def from_dict(cls, data: typing.Any) -> 'GitHubConfig':
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError("github must be a mapping")
        repos = data.get('repos') or ()
        if not isinstance(repos, (list, tuple)):
            raise ConfigurationError("github.repos must be a list")
        try:
            return cls(
                token=_text(data.get('token')),
                owner=_text(data.get('owner')),
                repos=[_text(repo) for repo in repos],
                api_url=_text(data.get('api_url')) or DEFAULT_API_URL,
                timeout=data.get('timeout') or DEFAULT_TIMEOUT)
        except (TypeError, ValueError) as error:
            raise ConfigurationError(f"Invalid github configuration: {error}") from error


@attr.s(frozen=True, kw_only=True)
class Config:
    github: GitHubConfig = attr.ib(factory=GitHubConfig)
    repository_secrets: Values = attr.ib(factory=dict, repr=False)
    environment_secrets: EnvironmentValues = attr.ib(factory=dict, repr=False)
    repository_variables: Values = attr.ib(factory=dict)
    environment_variables: EnvironmentValues = attr.ib(factory=dict)

    @classmethod
    def from_dict(cls, data: typing.Any) -> 'Config':
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a mapping")
        return cls(
            github=GitHubConfig.from_dict(data.get('github')),
            repository_secrets=_values(
                'repository_secrets', data.get('repository_secrets')),
            environment_secrets=_environment_values(
                'environment_secrets', data.get('environment_secrets')),
            repository_variables=_values(
                'repository_variables', data.get('repository_variables')),
            environment_variables=_environment_values(
                'environment_variables', data.get('environment_variables')))

    def with_overrides(
            self,
            token: typing.Optional[str] = None,
            owner: typing.Optional[str] = None,
            repos: typing.Sequence[str] = ()) -> 'Config':
        """Replace the GitHub settings given on the command line."""
        changes: typing.Dict[str, typing.Any] = {}
        if token:
            changes['token'] = token
        if owner:
            changes['owner'] = owner
        if repos:
            changes['repos'] = repos
        return attr.evolve(self, github=attr.evolve(self.github, **changes))

    def validate(self) -> None:
        if not self.github.owner:
            raise ConfigurationError("github.owner is required")

        if not self.github.repos:
            raise ConfigurationError(
                "at least one repository must be specified in github.repos")

        if not self.github.token:
            raise ConfigurationError(
                f"github.token is required (can be set via {ENV_TOKEN_KEY} "
                f"environment variable)")

        if not any((self.repository_secrets, self.environment_secrets,
                    self.repository_variables, self.environment_variables)):
            raise ConfigurationError(
                "at least one of repository_secrets, environment_secrets, "
                "repository_variables, or environment_variables must be specified")

        for repo in self.github.repos:
            if not repo:
                raise ConfigurationError("repository name cannot be empty")

        self._validate_values('repository secret', self.repository_secrets)
        self._validate_environments('secret', self.environment_secrets)
        self._validate_values('repository variable', self.repository_variables)
        self._validate_environments('variable', self.environment_variables)

    @staticmethod
    def _validate_values(
            kind: str,
            values: Values,
            environment: typing.Optional[str] = None) -> None:
        where = f" in environment '{environment}'" if environment else ""
        for key, value in values.items():
            if not key:
                raise ConfigurationError(f"{kind} key cannot be empty{where}")
            if not value:
                raise ConfigurationError(
                    f"{kind} value for '{key}'{where} cannot be empty")

    def _validate_environments(self, kind: str, environments: EnvironmentValues) -> None:
        for environment, values in environments.items():
            if not environment:
                raise ConfigurationError("environment name cannot be empty")
            self._validate_values(f"environment {kind}", values, environment)

    def targets(self) -> typing.Tuple[Target, ...]:
        return tuple(Target(self.github.owner, repo) for repo in self.github.repos)

    def catalog(self) -> Catalog:
        return Catalog.build(
            repository_secrets=self.repository_secrets,
            environment_secrets=self.environment_secrets,
            repository_variables=self.repository_variables,
            environment_variables=self.environment_variables)


def read_config(path: pathlib.Path) -> Config:
    """Parse a configuration file without validating it."""
    log.info(f"Reading configuration from {path}")
    try:
        text = path.read_text()
    except OSError as error:
        raise ConfigurationError(f"failed to read config file: {error}") from error

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as error:
        raise ConfigurationError(f"failed to parse YAML: {error}") from error

    config = Config.from_dict(data)
    if not config.github.token and os.environ.get(ENV_TOKEN_KEY):
        log.debug(f"Using token from ${ENV_TOKEN_KEY}")
        config = config.with_overrides(token=os.environ[ENV_TOKEN_KEY])
    return config


def load_config(
        path: pathlib.Path,
        token: typing.Optional[str] = None,
        owner: typing.Optional[str] = None,
        repos: typing.Sequence[str] = ()) -> Config:
    """
    Read a configuration file, apply command line overrides and validate it.
    """
    config = read_config(path.resolve()).with_overrides(
        token=token, owner=owner, repos=repos)
    config.validate()
    return config
