import logging

import pytest

from kubeclient._cogs.clients.auth import APIContext, Authenticator, parse_token
from kubeclient._cogs.clients.errors import APIUnauthorizedError, InsecureTransportError, \
                                            ParameterError, TokenParseError
from kubeclient._cogs.structs.credentials import AuthOptions, ConnectionInfo, Credentials

TOKEN = 'token-1234567890'
LOCATION = f'https://fake-host:8443/oauth/token/implicit#access_token={TOKEN}&expires_in=86400'


@pytest.fixture()
def credentials():
    return Credentials(username='user', password='pass')


@pytest.fixture()
async def authenticator(server, credentials):
    info = ConnectionInfo(server=server, version='v1', credentials=credentials)
    context = APIContext(info)
    yield Authenticator(info, context=context)
    await context.close()


async def test_token_exchange_via_redirect(resp_mocker, aresponses, authenticator):
    callback = resp_mocker(return_value=aresponses.Response(status=302, headers={
        'Location': LOCATION,
    }))
    aresponses.add(aresponses.ANY, '/oauth/authorize', 'get', callback, match_querystring=False)

    token = await authenticator.authenticate()

    assert token == TOKEN
    assert authenticator.token == TOKEN
    assert callback.call_count == 1
    request = callback.call_args[0][0]
    assert request.query['response_type'] == 'token'
    assert request.query['client_id'] == 'openshift-challenging-client'
    assert request.headers['Authorization'].startswith('Basic ')
    assert request.headers['X-CSRF-Token']


async def test_token_is_obtained_only_once(resp_mocker, aresponses, authenticator):
    callback = resp_mocker(return_value=aresponses.Response(status=302, headers={
        'Location': LOCATION,
    }))
    aresponses.add(aresponses.ANY, '/oauth/authorize', 'get', callback, match_querystring=False)

    token1 = await authenticator.ensure_token()
    token2 = await authenticator.ensure_token()

    assert token1 == token2 == TOKEN
    assert callback.call_count == 1


async def test_invalidated_token_is_obtained_again(resp_mocker, aresponses, authenticator):
    callback1 = resp_mocker(return_value=aresponses.Response(status=302, headers={
        'Location': LOCATION,
    }))
    callback2 = resp_mocker(return_value=aresponses.Response(status=302, headers={
        'Location': LOCATION.replace('1234', '4321'),
    }))
    aresponses.add(aresponses.ANY, '/oauth/authorize', 'get', callback1, match_querystring=False)
    aresponses.add(aresponses.ANY, '/oauth/authorize', 'get', callback2, match_querystring=False)

    token1 = await authenticator.ensure_token()
    authenticator.invalidate()
    assert authenticator.token is None
    token2 = await authenticator.ensure_token()

    assert token1 == TOKEN
    assert token2 == 'token-4321567890'
    assert callback1.call_count == 1
    assert callback2.call_count == 1


async def test_invalid_credentials(resp_mocker, aresponses, authenticator, caplog):
    caplog.set_level(logging.DEBUG)
    callback = resp_mocker(return_value=aresponses.Response(status=401))
    aresponses.add(aresponses.ANY, '/oauth/authorize', 'get', callback, match_querystring=False)

    with pytest.raises(APIUnauthorizedError) as err:
        await authenticator.authenticate()

    assert err.value.message == "invalid user credentials"
    assert err.value.logged
    assert authenticator.token is None
    assert any(r.levelname == 'CRITICAL' for r in caplog.records)


async def test_missing_location_header(resp_mocker, aresponses, authenticator):
    callback = resp_mocker(return_value=aresponses.Response(status=302))
    aresponses.add(aresponses.ANY, '/oauth/authorize', 'get', callback, match_querystring=False)

    with pytest.raises(TokenParseError) as err:
        await authenticator.authenticate()

    assert err.value.header is None
    assert authenticator.token is None


async def test_insecure_servers_are_refused_before_any_request(resp_mocker, aresponses, credentials):
    callback = resp_mocker(return_value=aresponses.Response(status=302, headers={
        'Location': LOCATION,
    }))
    aresponses.add(aresponses.ANY, '/oauth/authorize', 'get', callback, match_querystring=False)

    info = ConnectionInfo(server='http://fake-host:8443', version='v1', credentials=credentials)
    context = APIContext(info)
    authenticator = Authenticator(info, context=context)
    try:
        with pytest.raises(InsecureTransportError):
            await authenticator.authenticate()
    finally:
        await context.close()

    assert callback.call_count == 0


async def test_insecure_servers_are_allowed_on_request(resp_mocker, aresponses, credentials):
    callback = resp_mocker(return_value=aresponses.Response(status=302, headers={
        'Location': LOCATION,
    }))
    aresponses.add(aresponses.ANY, '/oauth/authorize', 'get', callback, match_querystring=False)

    info = ConnectionInfo(server='http://fake-host:8443', version='v1', credentials=credentials,
                          auth_options=AuthOptions(allow_unsafe=True))
    context = APIContext(info)
    authenticator = Authenticator(info, context=context)
    try:
        token = await authenticator.authenticate()
    finally:
        await context.close()

    assert token == TOKEN
    assert callback.call_count == 1


async def test_credentials_are_forgotten_if_not_preserved(resp_mocker, aresponses, server, credentials):
    callback = resp_mocker(return_value=aresponses.Response(status=302, headers={
        'Location': LOCATION,
    }))
    aresponses.add(aresponses.ANY, '/oauth/authorize', 'get', callback, match_querystring=False)

    info = ConnectionInfo(server=server, version='v1', credentials=credentials,
                          auth_options=AuthOptions(preserve_auth=False))
    context = APIContext(info)
    authenticator = Authenticator(info, context=context)
    try:
        await authenticator.authenticate()
        assert authenticator.credentials is None
        with pytest.raises(ParameterError):
            await authenticator.authenticate()
    finally:
        await context.close()

    assert authenticator.token == TOKEN


async def test_upfront_token_is_used_without_exchange(server):
    info = ConnectionInfo(server=server, version='v1', token='upfront-token')
    context = APIContext(info)
    authenticator = Authenticator(info, context=context)
    assert await authenticator.ensure_token() == 'upfront-token'
    assert 'upfront-token' not in repr(authenticator)


async def test_no_token_without_credentials(server):
    info = ConnectionInfo(server=server, version='v1')
    context = APIContext(info)
    authenticator = Authenticator(info, context=context)
    assert await authenticator.ensure_token() is None


def test_token_parsing():
    assert parse_token(LOCATION) == TOKEN


@pytest.mark.parametrize('location, reason', [
    (None, "absent"),
    ('', "absent"),
    ('https://host/oauth/token/implicit', "no access_token"),
    ('https://host/oauth/token/implicit#expires_in=86400', "no access_token"),
    ('https://host/oauth/token/implicit#access_token=short', "too short"),
])
def test_token_parsing_failures(location, reason):
    with pytest.raises(TokenParseError) as err:
        parse_token(location)
    assert reason in err.value.reason
    assert 'short' not in str(err.value.header or '')
