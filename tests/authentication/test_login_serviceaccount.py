import pytest

from kubegate._core.intents import piggybacking
from kubegate._core.intents.piggybacking import has_service_account, login, \
                                                login_with_service_account


@pytest.fixture()
def service_account_dir(tmpdir, mocker):
    mocker.patch.object(piggybacking, 'SERVICE_ACCOUNT_DIR', str(tmpdir))
    return tmpdir


def test_has_no_service_account(service_account_dir):
    assert has_service_account() is False
    assert login_with_service_account() is None


def test_token_only(service_account_dir):
    service_account_dir.join('token').write(' tkn \n')
    credentials = login_with_service_account()
    assert has_service_account() is True
    assert credentials.server == 'https://kubernetes.default.svc'
    assert credentials.token == 'tkn'
    assert credentials.ca_path is None
    assert credentials.default_namespace is None


def test_full_service_account(service_account_dir):
    service_account_dir.join('token').write('tkn')
    service_account_dir.join('namespace').write('ns\n')
    service_account_dir.join('ca.crt').write('...')
    credentials = login_with_service_account()
    assert credentials.token == 'tkn'
    assert credentials.default_namespace == 'ns'
    assert credentials.ca_path == str(service_account_dir.join('ca.crt'))


def test_service_account_is_preferred_by_login(service_account_dir, mocker):
    service_account_dir.join('token').write('tkn')
    kubeconfig_login = mocker.patch.object(piggybacking, 'login_with_kubeconfig')
    credentials = login()
    assert credentials.token == 'tkn'
    assert not kubeconfig_login.called
