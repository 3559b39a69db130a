import pytest

from kubeclient._cogs.clients.errors import ParameterError, VersionError
from kubeclient._cogs.structs.credentials import AuthOptions, ConnectionInfo, Credentials, \
                                                parse_hostname, parse_version

VERSIONS = ['v1beta3', 'v1']


@pytest.mark.parametrize('host, port, protocol, expected', [
    ('localhost', None, None, 'https://localhost:8443'),
    ('localhost/', None, None, 'https://localhost:8443'),
    ('localhost', 443, None, 'https://localhost:443'),
    ('localhost', None, 'http', 'http://localhost:8443'),
    ('http://localhost', None, 'https', 'http://localhost:8443'),
    ('https://localhost:6443', 8443, None, 'https://localhost:6443'),
    ('https://localhost:6443/', None, None, 'https://localhost:6443'),
    ('10.0.0.1:80', None, None, 'https://10.0.0.1:80'),
])
def test_hostnames_are_completed(host, port, protocol, expected):
    assert parse_hostname(host, port=port, protocol=protocol) == expected


@pytest.mark.parametrize('host', [None, ''])
def test_hostnames_are_required(host):
    with pytest.raises(ParameterError) as err:
        parse_hostname(host)
    assert err.value.parameter == 'host'


@pytest.mark.parametrize('version, expected', [
    ('v1', 'v1'),
    (1, 'v1'),
    ('v1beta3', 'v1beta3'),
])
def test_versions_are_validated(version, expected):
    assert parse_version(version, VERSIONS) == expected


@pytest.mark.parametrize('version', [None, ''])
def test_versions_are_required(version):
    with pytest.raises(ParameterError) as err:
        parse_version(version, VERSIONS)
    assert err.value.parameter == 'version'


@pytest.mark.parametrize('version', ['v2', 2, 'V1'])
def test_unknown_versions_are_rejected_with_the_valid_ones(version):
    with pytest.raises(VersionError) as err:
        parse_version(version, VERSIONS)
    assert err.value.versions == ['v1', 'v1beta3']


def test_connection_info_parsing():
    credentials = Credentials(username='user', password='pass')
    info = ConnectionInfo.parse(
        host='localhost',
        version=1,
        versions=VERSIONS,
        namespace='',
        token='',
        credentials=credentials,
        headers={'X-A': 'a'},
    )
    assert info.server == 'https://localhost:8443'
    assert info.version == 'v1'
    assert info.namespace is None
    assert info.token is None
    assert info.credentials is credentials
    assert info.auth_options == AuthOptions()
    assert info.headers == {'X-A': 'a'}
    assert info.insecure is False
    assert info.ca_path is None


def test_secrets_are_not_in_the_reprs():
    info = ConnectionInfo(server='https://localhost:8443', version='v1', token='secret-token',
                          credentials=Credentials(username='user', password='secret-pass'))
    assert 'secret-token' not in repr(info)
    assert 'secret-pass' not in repr(info)
    assert 'secret-pass' not in repr(Credentials(username='user', password='secret-pass'))
