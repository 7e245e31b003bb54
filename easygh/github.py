"""
Access to the secrets and variables stored by GitHub Actions.

RemoteStore lists the operations the dispatcher needs. GitHubClient implements
them with the GitHub REST API; tests substitute an in-memory store.
"""

import base64
import logging
import typing
import urllib.parse

import attr
import requests

from . import __version__
from .config import GitHubConfig
from .errors import (
    EnvironmentNotFound, RemoteError, RepositoryNotFound)
from .sealing import decode_key
from .values import RecipientKey

log = logging.getLogger(__name__)

API_VERSION = '2022-11-28'

T = typing.TypeVar('T')


@attr.s(frozen=True)
class SecretMetadata:
    name: str = attr.ib()
    created_at: typing.Optional[str] = attr.ib(default=None)
    updated_at: typing.Optional[str] = attr.ib(default=None)


@attr.s(frozen=True)
class VariableMetadata:
    name: str = attr.ib()
    value: str = attr.ib()
    created_at: typing.Optional[str] = attr.ib(default=None)
    updated_at: typing.Optional[str] = attr.ib(default=None)


class RemoteStore:
    def get_public_key(self, owner: str, repo: str) -> RecipientKey:
        raise NotImplementedError

    def get_environment_public_key(
            self, owner: str, repo: str, environment: str) -> RecipientKey:
        raise NotImplementedError

    def create_or_update_secret(
            self, owner: str, repo: str, name: str,
            encrypted_value: bytes, key_id: str) -> None:
        raise NotImplementedError

    def create_or_update_environment_secret(
            self, owner: str, repo: str, environment: str, name: str,
            encrypted_value: bytes, key_id: str) -> None:
        raise NotImplementedError

    def get_secret(self, owner: str, repo: str, name: str) -> SecretMetadata:
        raise NotImplementedError

    def get_environment_secret(
            self, owner: str, repo: str, environment: str,
            name: str) -> SecretMetadata:
        raise NotImplementedError

    def get_variable(self, owner: str, repo: str, name: str) -> VariableMetadata:
        raise NotImplementedError

    def get_environment_variable(
            self, owner: str, repo: str, environment: str,
            name: str) -> VariableMetadata:
        raise NotImplementedError

    def update_variable(self, owner: str, repo: str, name: str, value: str) -> None:
        raise NotImplementedError

    def create_variable(self, owner: str, repo: str, name: str, value: str) -> None:
        raise NotImplementedError

    def update_environment_variable(
            self, owner: str, repo: str, environment: str,
            name: str, value: str) -> None:
        raise NotImplementedError

    def create_environment_variable(
            self, owner: str, repo: str, environment: str,
            name: str, value: str) -> None:
        raise NotImplementedError

    def get_repository_id(self, owner: str, repo: str) -> int:
        raise NotImplementedError

    def set_variable(self, owner: str, repo: str, name: str, value: str) -> None:
        """
        Create or update a repository variable.

        There is no upsert endpoint for variables, so an update is attempted
        first and a failed update falls back to creating the variable.
        """
        try:
            self.update_variable(owner, repo, name, value)
        except RemoteError as error:
            log.debug(f"Updating variable {name} in {owner}/{repo} failed "
                      f"({error.message}), creating it")
            self.create_variable(owner, repo, name, value)

    def set_environment_variable(
            self, owner: str, repo: str, environment: str,
            name: str, value: str) -> None:
        try:
            self.update_environment_variable(owner, repo, environment, name, value)
        except RemoteError as error:
            log.debug(f"Updating variable {name} in {owner}/{repo} environment "
                      f"{environment} failed ({error.message}), creating it")
            self.create_environment_variable(owner, repo, environment, name, value)


def _quote(segment: str) -> str:
    return urllib.parse.quote(segment, safe='')


@attr.s(frozen=True, kw_only=True)
class GitHubClient(RemoteStore):
    token: str = attr.ib(repr=False)
    api_url: str = attr.ib(default='https://api.github.com')
    timeout: float = attr.ib(default=30.0)
    session: requests.Session = attr.ib(factory=requests.Session, repr=False)
    repository_ids: typing.Dict[typing.Tuple[str, str], int] = attr.ib(
        factory=dict, init=False, repr=False, eq=False)

    @classmethod
    def from_config(cls, config: GitHubConfig) -> 'GitHubClient':
        return cls(token=config.token, api_url=config.api_url, timeout=config.timeout)

    @property
    def headers(self) -> typing.Dict[str, str]:
        return {
            'Accept': 'application/vnd.github+json',
            'Authorization': f'Bearer {self.token}',
            'User-Agent': f'easygh/{__version__}',
            'X-GitHub-Api-Version': API_VERSION,
        }

    def request(
            self,
            method: str,
            path: str,
            owner: str,
            repo: str,
            environment: typing.Optional[str] = None,
            json: typing.Optional[typing.Dict[str, typing.Any]] = None,
            parse: typing.Optional[typing.Callable[[typing.Any], T]] = None,
    ) -> typing.Optional[T]:
        """
        Send a request and return its JSON body, converted with `parse`.

        A 404 means the repository or environment does not exist or the
        token cannot see it. A body that is not JSON, or is missing the
        fields `parse` reads, is a RemoteError like any other failed call.
        """
        url = f"{self.api_url.rstrip('/')}{path}"
        log.debug(f"{method} {url}")
        try:
            response = self.session.request(
                method, url, headers=self.headers, json=json, timeout=self.timeout)
        except requests.RequestException as error:
            raise RemoteError(f"{method} {path} failed: {error}") from error

        if response.status_code == 404:
            if environment is not None:
                raise EnvironmentNotFound(owner, repo, environment)
            raise RepositoryNotFound(owner, repo)

        if response.status_code >= 400:
            raise RemoteError(
                f"{method} {path} failed: {response.status_code} "
                f"{self.error_message(response)}",
                status=response.status_code)

        if parse is None:
            return None

        try:
            return parse(response.json())
        except (ValueError, KeyError, TypeError) as error:
            raise RemoteError(
                f"{method} {path} returned an unexpected response: {error!r}",
                status=response.status_code) from error

    @staticmethod
    def error_message(response: requests.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text
        if isinstance(data, dict) and 'message' in data:
            return str(data['message'])
        return response.text

    def repo_path(self, owner: str, repo: str) -> str:
        return f"/repos/{_quote(owner)}/{_quote(repo)}"

    def environment_path(self, owner: str, repo: str, environment: str) -> str:
        repository_id = self.get_repository_id(owner, repo)
        return f"/repositories/{repository_id}/environments/{_quote(environment)}"

    def get_repository_id(self, owner: str, repo: str) -> int:
        """
        Look up the numeric id used by the environment endpoints.

        Ids never change for a repository, so each is fetched once per
        client. Two threads may both miss and fetch the same id.
        """
        if (owner, repo) not in self.repository_ids:
            self.repository_ids[(owner, repo)] = self.request(
                'GET', self.repo_path(owner, repo), owner, repo,
                parse=lambda data: int(data['id']))
        return self.repository_ids[(owner, repo)]

    @staticmethod
    def recipient_key(data: typing.Dict[str, typing.Any]) -> RecipientKey:
        return RecipientKey(key_id=data['key_id'], key=decode_key(data['key']))

    @staticmethod
    def secret(data: typing.Dict[str, typing.Any]) -> SecretMetadata:
        return SecretMetadata(
            name=data['name'],
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'))

    @staticmethod
    def variable(data: typing.Dict[str, typing.Any]) -> VariableMetadata:
        return VariableMetadata(
            name=data['name'],
            value=data['value'],
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'))

    def get_public_key(self, owner: str, repo: str) -> RecipientKey:
        path = f"{self.repo_path(owner, repo)}/actions/secrets/public-key"
        return self.request('GET', path, owner, repo, parse=self.recipient_key)

    def get_environment_public_key(
            self, owner: str, repo: str, environment: str) -> RecipientKey:
        path = f"{self.environment_path(owner, repo, environment)}/secrets/public-key"
        return self.request(
            'GET', path, owner, repo, environment, parse=self.recipient_key)

    @staticmethod
    def secret_payload(encrypted_value: bytes, key_id: str) -> typing.Dict[str, str]:
        return {
            'encrypted_value': base64.b64encode(encrypted_value).decode('ascii'),
            'key_id': key_id,
        }

    def create_or_update_secret(
            self, owner: str, repo: str, name: str,
            encrypted_value: bytes, key_id: str) -> None:
        path = f"{self.repo_path(owner, repo)}/actions/secrets/{_quote(name)}"
        self.request('PUT', path, owner, repo,
                     json=self.secret_payload(encrypted_value, key_id))

    def create_or_update_environment_secret(
            self, owner: str, repo: str, environment: str, name: str,
            encrypted_value: bytes, key_id: str) -> None:
        path = (f"{self.environment_path(owner, repo, environment)}"
                f"/secrets/{_quote(name)}")
        self.request('PUT', path, owner, repo, environment,
                     json=self.secret_payload(encrypted_value, key_id))

    def get_secret(self, owner: str, repo: str, name: str) -> SecretMetadata:
        path = f"{self.repo_path(owner, repo)}/actions/secrets/{_quote(name)}"
        return self.request('GET', path, owner, repo, parse=self.secret)

    def get_environment_secret(
            self, owner: str, repo: str, environment: str,
            name: str) -> SecretMetadata:
        path = (f"{self.environment_path(owner, repo, environment)}"
                f"/secrets/{_quote(name)}")
        return self.request('GET', path, owner, repo, environment, parse=self.secret)

    def get_variable(self, owner: str, repo: str, name: str) -> VariableMetadata:
        path = f"{self.repo_path(owner, repo)}/actions/variables/{_quote(name)}"
        return self.request('GET', path, owner, repo, parse=self.variable)

    def get_environment_variable(
            self, owner: str, repo: str, environment: str,
            name: str) -> VariableMetadata:
        path = (f"{self.environment_path(owner, repo, environment)}"
                f"/variables/{_quote(name)}")
        return self.request(
            'GET', path, owner, repo, environment, parse=self.variable)

    def update_variable(self, owner: str, repo: str, name: str, value: str) -> None:
        path = f"{self.repo_path(owner, repo)}/actions/variables/{_quote(name)}"
        self.request('PATCH', path, owner, repo, json={'name': name, 'value': value})

    def create_variable(self, owner: str, repo: str, name: str, value: str) -> None:
        path = f"{self.repo_path(owner, repo)}/actions/variables"
        self.request('POST', path, owner, repo, json={'name': name, 'value': value})

    def update_environment_variable(
            self, owner: str, repo: str, environment: str,
            name: str, value: str) -> None:
        path = (f"{self.environment_path(owner, repo, environment)}"
                f"/variables/{_quote(name)}")
        self.request('PATCH', path, owner, repo, environment,
                     json={'name': name, 'value': value})

    def create_environment_variable(
            self, owner: str, repo: str, environment: str,
            name: str, value: str) -> None:
        path = f"{self.environment_path(owner, repo, environment)}/variables"
        self.request('POST', path, owner, repo, environment,
                     json={'name': name, 'value': value})
