import pathlib

import git
import pytest

from easygh.utils import default_config_path, mask_secret, parse_repos
from easygh.values import Kind, PlaintextValue, Scope


@pytest.mark.parametrize('value, masked', [
    ('', '****'),
    ('a', '****'),
    ('abcd', '****'),
    ('abcde', 'ab****de'),
    ('ABCDEFGH', 'AB****GH'),
])
def test_mask_secret(value, masked):
    assert mask_secret(value) == masked


def test_variables_are_not_masked():
    value = PlaintextValue(name='LOG_LEVEL', value='debug', kind=Kind.VARIABLE)
    assert value.display == 'debug'


def test_secrets_are_masked():
    value = PlaintextValue(name='DB_PASS', value='ABCDEFGH', kind=Kind.SECRET)
    assert value.display == 'AB****GH'
    assert 'ABCDEFGH' not in repr(value)


def test_value_name_is_required():
    with pytest.raises(ValueError):
        PlaintextValue(name='', value='x', kind=Kind.SECRET)


def test_empty_value_is_accepted():
    assert PlaintextValue(name='EMPTY', value='', kind=Kind.SECRET).value == ''


def test_scope():
    assert Scope().kind == 'repository'
    assert Scope('production').kind == 'environment'
    assert str(Scope('production')) == "environment 'production'"


@pytest.mark.parametrize('value, repos', [
    (None, ()),
    ('', ()),
    ('repo1', ('repo1',)),
    ('repo1,repo2', ('repo1', 'repo2')),
    (' repo1 , ,repo2, ', ('repo1', 'repo2')),
])
def test_parse_repos(value, repos):
    assert parse_repos(value) == repos


def test_default_config_path_in_current_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / 'config.yaml').write_text('')

    assert default_config_path() == tmp_path / 'config.yaml'


def test_default_config_path_in_git_repository(tmp_path, monkeypatch):
    git.Repo.init(tmp_path)
    (tmp_path / 'config.yaml').write_text('')
    (tmp_path / 'subdirectory').mkdir()
    monkeypatch.chdir(tmp_path / 'subdirectory')

    assert default_config_path().resolve() == (tmp_path / 'config.yaml').resolve()


def test_default_config_path_fallback(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr('easygh.utils.find_git_directory', lambda: None)

    assert default_config_path() == pathlib.Path.cwd() / 'config.yaml'
