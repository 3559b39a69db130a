import json
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from aresponses import ResponsesMockServer

from kubeclient._cogs.clients.auth import APIContext, Authenticator
from kubeclient._cogs.clients.dispatching import Dispatcher
from kubeclient._cogs.configs.configuration import ClientSettings
from kubeclient._cogs.structs.credentials import ConnectionInfo
from kubeclient._core.client import KubernetesClient


# The plugin's own fixture depends on the `event_loop` fixture, which is gone in pytest-asyncio.
@pytest.fixture()
async def aresponses():
    async with ResponsesMockServer() as server:
        yield server


@pytest.fixture()
def hostname():
    """ A fake hostname to be used in all aiohttp/aresponses tests. """
    return 'fake-host'


@pytest.fixture()
def server(hostname):
    return f'https://{hostname}:8443'


@pytest.fixture()
def settings():
    settings = ClientSettings()
    settings.watching.reconnect_backoff = 0
    return settings


@pytest.fixture()
def logger():
    return logging.getLogger('kubeclient.tests')


@pytest.fixture()
def info(server):
    return ConnectionInfo(server=server, version='v1', token='fake-token')


@pytest.fixture()
async def context(info):
    context = APIContext(info)
    yield context
    await context.close()


@pytest.fixture()
def authenticator(info, context):
    return Authenticator(info, context=context)


@pytest.fixture()
def dispatcher(context, authenticator, settings):
    return Dispatcher(context=context, authenticator=authenticator, settings=settings)


@pytest.fixture()
async def client(hostname, settings):
    client = KubernetesClient(hostname, 'v1', token='fake-token', namespace='default',
                              settings=settings)
    yield client
    await client.close()


@pytest.fixture()
def resp_mocker():
    """
    A factory of server-side callbacks for `aresponses` with mocking/spying.

    The request's content can be read inside of the handler only. We preserve
    the data into a conventional field, so that they could be asserted later.

    Sample usage::

        def test_me(resp_mocker, aresponses):
            callback = resp_mocker(return_value=aiohttp.web.json_response({'a': 'b'}))
            aresponses.add(aresponses.ANY, '/path', 'get', callback)
            do_something()
            assert callback.call_count == 1
            assert callback.call_args[0][0].headers['Authorization'] == 'Bearer ...'
    """
    def resp_maker(*args, **kwargs):
        actual_response = MagicMock(*args, **kwargs)

        async def resp_mock_effect(request):
            text = await request.text()
            try:
                request['data'] = json.loads(text) if text else None
            except json.JSONDecodeError:
                request['data'] = text
            return actual_response()

        return AsyncMock(side_effect=resp_mock_effect)
    return resp_maker
