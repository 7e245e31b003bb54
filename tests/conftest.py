import pathlib
import threading
import typing

import attr
import click.testing
import nacl.public
import pytest
import yaml

import easygh.api
import easygh.cli
from easygh.errors import EnvironmentNotFound, RemoteError, RepositoryNotFound
from easygh.github import RemoteStore, SecretMetadata, VariableMetadata
from easygh.values import RecipientKey

Key = typing.Tuple[str, str, typing.Optional[str], str]


@attr.s
class FakeStore(RemoteStore):
    """
    An in-memory remote store.

    Every repository exists unless listed in `missing_repos`, and every
    environment exists unless listed in `missing_environments`. Writes listed
    in `failures` raise the given exception.
    """

    missing_repos: typing.Set[str] = attr.ib(factory=set)
    missing_environments: typing.Set[str] = attr.ib(factory=set)
    failures: typing.Dict[Key, Exception] = attr.ib(factory=dict)

    private_keys: typing.Dict[tuple, nacl.public.PrivateKey] = attr.ib(factory=dict)
    secrets: typing.Dict[Key, typing.Tuple[bytes, str]] = attr.ib(factory=dict)
    variables: typing.Dict[Key, str] = attr.ib(factory=dict)
    calls: typing.List[tuple] = attr.ib(factory=list)
    lock: threading.Lock = attr.ib(factory=threading.Lock)

    def record(self, *call) -> None:
        with self.lock:
            self.calls.append(call)

    def called(self, operation: str) -> typing.List[tuple]:
        return [call for call in self.calls if call[0] == operation]

    @property
    def writes(self) -> typing.List[tuple]:
        return [call for call in self.calls
                if call[0].startswith(('create', 'update'))]

    def check(self, owner, repo, environment=None, name=None):
        if repo in self.missing_repos:
            raise RepositoryNotFound(owner, repo)
        if environment is not None and environment in self.missing_environments:
            raise EnvironmentNotFound(owner, repo, environment)
        if name is not None and (owner, repo, environment, name) in self.failures:
            raise self.failures[(owner, repo, environment, name)]

    def private_key(self, owner, repo, environment=None) -> nacl.public.PrivateKey:
        with self.lock:
            return self.private_keys.setdefault(
                (owner, repo, environment), nacl.public.PrivateKey.generate())

    def decrypt(self, owner, repo, environment, name) -> str:
        encrypted, key_id = self.secrets[(owner, repo, environment, name)]
        box = nacl.public.SealedBox(self.private_key(owner, repo, environment))
        return box.decrypt(encrypted).decode('utf-8')

    def recipient(self, owner, repo, environment=None) -> RecipientKey:
        key_id = f"{repo}/{environment}" if environment else repo
        return RecipientKey(
            key_id=key_id,
            key=bytes(self.private_key(owner, repo, environment).public_key))

    def get_public_key(self, owner, repo):
        self.record('get_public_key', owner, repo)
        self.check(owner, repo)
        return self.recipient(owner, repo)

    def get_environment_public_key(self, owner, repo, environment):
        self.record('get_environment_public_key', owner, repo, environment)
        self.check(owner, repo, environment)
        return self.recipient(owner, repo, environment)

    def create_or_update_secret(self, owner, repo, name, encrypted_value, key_id):
        self.record('create_or_update_secret', owner, repo, name)
        self.check(owner, repo, name=name)
        with self.lock:
            self.secrets[(owner, repo, None, name)] = (encrypted_value, key_id)

    def create_or_update_environment_secret(
            self, owner, repo, environment, name, encrypted_value, key_id):
        self.record('create_or_update_environment_secret', owner, repo, environment, name)
        self.check(owner, repo, environment, name)
        with self.lock:
            self.secrets[(owner, repo, environment, name)] = (encrypted_value, key_id)

    def get_secret(self, owner, repo, name):
        self.record('get_secret', owner, repo, name)
        self.check(owner, repo)
        if (owner, repo, None, name) not in self.secrets:
            raise RemoteError("secret not found", status=404)
        return SecretMetadata(name=name)

    def get_environment_secret(self, owner, repo, environment, name):
        self.record('get_environment_secret', owner, repo, environment, name)
        self.check(owner, repo, environment)
        if (owner, repo, environment, name) not in self.secrets:
            raise RemoteError("secret not found", status=404)
        return SecretMetadata(name=name)

    def get_variable(self, owner, repo, name):
        return self.get_environment_variable(owner, repo, None, name)

    def get_environment_variable(self, owner, repo, environment, name):
        self.record('get_variable', owner, repo, environment, name)
        self.check(owner, repo, environment)
        try:
            return VariableMetadata(
                name=name, value=self.variables[(owner, repo, environment, name)])
        except KeyError:
            raise RemoteError("variable not found", status=404)

    def update_variable(self, owner, repo, name, value):
        self.update_environment_variable(owner, repo, None, name, value)

    def create_variable(self, owner, repo, name, value):
        self.create_environment_variable(owner, repo, None, name, value)

    def update_environment_variable(self, owner, repo, environment, name, value):
        self.record('update_variable', owner, repo, environment, name)
        self.check(owner, repo, environment)
        with self.lock:
            if (owner, repo, environment, name) not in self.variables:
                raise RemoteError("variable not found", status=404)
            self.variables[(owner, repo, environment, name)] = value

    def create_environment_variable(self, owner, repo, environment, name, value):
        self.record('create_variable', owner, repo, environment, name)
        self.check(owner, repo, environment, name)
        with self.lock:
            self.variables[(owner, repo, environment, name)] = value

    def get_repository_id(self, owner, repo):
        self.record('get_repository_id', owner, repo)
        self.check(owner, repo)
        return 12345


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def settings() -> typing.Dict[str, typing.Any]:
    return {
        'github': {
            'token': 'ghp_example',
            'owner': 'org',
            'repos': ['repo1', 'repo2'],
        },
        'repository_secrets': {'DB_PASS': 's3cr3t!'},
        'environment_secrets': {'production': {'DEPLOY_KEY': 'deploy-key-value'}},
        'repository_variables': {'LOG_LEVEL': 'info'},
        'environment_variables': {'production': {'REPLICAS': 3}},
    }


@pytest.fixture()
def config_file(tmp_path, settings) -> pathlib.Path:
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.safe_dump(settings))
    return path


@pytest.fixture()
def invoke(monkeypatch, store):
    monkeypatch.setattr(easygh.api, 'connect', lambda github: store)

    def invoke_func(arguments: typing.Sequence[str], input=None, exit_code=0):
        assert all(isinstance(arg, str) for arg in arguments)
        runner = click.testing.CliRunner()
        result = runner.invoke(easygh.cli.main, arguments, input=input)
        if result.exit_code != exit_code:
            message = f"Command easygh {' '.join(arguments)} exited with {result.exit_code}"
            raise Exception(message) from result.exception
        return result.output.splitlines()

    return invoke_func
