import logging

import pytest

from kubeclient._cogs.structs.specs import ApiSpec, Capability, EndpointSpec
from kubeclient._core.capabilities import CapableEndpoint, NodesEndpoint, ScalableEndpoint, wrap
from kubeclient._core.endpoints import Endpoint

POD_LIST = {
    'kind': 'PodList',
    'apiVersion': 'v1',
    'items': [
        {'metadata': {'name': 'pod1', 'namespace': 'ns1'}},
        {'metadata': {'name': 'pod2', 'namespace': 'ns2'}},
    ],
}


@pytest.fixture()
def pods_get(mocker, client):
    return mocker.patch.object(client.pods, 'get', return_value=POD_LIST)


@pytest.fixture()
def pods_patch(mocker, client):
    async def patch(name, body, **options):
        return {'kind': 'Pod', 'apiVersion': 'v1',
                'metadata': {'name': name, 'namespace': options['namespace']}, **body}
    return mocker.patch.object(client.pods, 'patch', side_effect=patch)


@pytest.fixture()
def pods_delete(mocker, client):
    async def delete(name, **options):
        return {'kind': 'Status', 'status': 'Success', 'details': {'name': name}}
    return mocker.patch.object(client.pods, 'delete', side_effect=delete)


@pytest.fixture()
def nodes_patch(mocker, client):
    async def patch(name, body, **options):
        return {'kind': 'Node', 'metadata': {'name': name}, **body}
    return mocker.patch.object(client.nodes.endpoint, 'patch', side_effect=patch)


async def test_pods_of_a_node_in_all_namespaces(client, pods_get):
    result = await client.nodes.get_pods('node1')

    assert result == POD_LIST
    assert pods_get.call_args[1] == {'namespace': None, 'fields': {'spec.nodeName': 'node1'}}


async def test_pods_of_a_node_in_one_namespace(client, pods_get):
    await client.nodes.get_pods('node1', namespace='ns1', fields={'status.phase': 'Running'})

    assert pods_get.call_args[1] == {
        'namespace': 'ns1',
        'fields': {'status.phase': 'Running', 'spec.nodeName': 'node1'},
    }


async def test_patching_the_pods_of_a_node(client, pods_get, pods_patch):
    result = await client.nodes.patch_pods('node1', {'spec': {'x': 'y'}})

    assert pods_patch.call_count == 2
    assert {call[0][0] for call in pods_patch.call_args_list} == {'pod1', 'pod2'}
    assert {call[1]['namespace'] for call in pods_patch.call_args_list} == {'ns1', 'ns2'}
    assert result['kind'] == 'PodList'
    assert result['items'] == [
        {'metadata': {'name': 'pod1', 'namespace': 'ns1'}, 'spec': {'x': 'y'}},
        {'metadata': {'name': 'pod2', 'namespace': 'ns2'}, 'spec': {'x': 'y'}},
    ]


async def test_deleting_the_pods_of_a_node(client, pods_get, pods_delete):
    result = await client.nodes.delete_pods('node1')

    assert pods_delete.call_count == 2
    assert [item['details']['name'] for item in result['items']] == ['pod1', 'pod2']


async def test_no_pods_on_a_node(mocker, client, pods_patch):
    mocker.patch.object(client.pods, 'get', return_value={'kind': 'PodList', 'items': []})

    result = await client.nodes.patch_pods('node1', {'spec': {}})

    assert result['items'] == []
    assert pods_patch.call_count == 0


async def test_evacuating_a_node(client, nodes_patch, pods_get, pods_delete):
    result = await client.nodes.evacuate('node1')

    assert nodes_patch.call_args[0] == ('node1', {'spec': {'unschedulable': True}})
    assert pods_get.call_args[1]['fields'] == {'spec.nodeName': 'node1'}
    assert pods_delete.call_count == 2
    assert result['spec'] == {'unschedulable': True}


async def test_scheduling_a_node(client, nodes_patch):
    result = await client.nodes.schedule('node1')

    assert nodes_patch.call_args[0] == ('node1', {'spec': {'unschedulable': False}})
    assert result['spec'] == {'unschedulable': False}


@pytest.fixture()
def rc_calls(mocker, client):
    endpoint = client.rc.endpoint
    replicas = {'value': 2}

    async def get(name, **options):
        return {'metadata': {'name': name, 'namespace': 'ns1'}, 'spec': {'replicas': replicas['value']}}

    async def patch(name, body, **options):
        replicas['value'] = body['spec']['replicas']
        return {'metadata': {'name': name, 'namespace': options['namespace']}, 'spec': body['spec']}

    async def delete(name, **options):
        return {'kind': 'Status', 'status': 'Success'}

    return (
        replicas,
        mocker.patch.object(endpoint, 'get', side_effect=get),
        mocker.patch.object(endpoint, 'patch', side_effect=patch),
        mocker.patch.object(endpoint, 'delete', side_effect=delete),
    )


@pytest.mark.parametrize('increment, expected', [
    (1, 3),
    (3, 5),
    (-1, 1),
    (-5, 0),
    (0, 3),
    (None, 3),
])
async def test_scaling(client, rc_calls, increment, expected):
    replicas, get, patch, delete = rc_calls

    result = await client.rc.scale('rc1', increment)

    assert result['spec']['replicas'] == expected
    assert patch.call_args[0] == ('rc1', {'spec': {'replicas': expected}})
    assert patch.call_args[1] == {'namespace': 'ns1'}
    assert delete.call_count == 0


async def test_scaling_up_by_default(client, rc_calls):
    replicas, get, patch, delete = rc_calls
    result = await client.rc.scale('rc1')
    assert result['spec']['replicas'] == 3


async def test_scaling_to_zero_with_pruning(client, rc_calls):
    replicas, get, patch, delete = rc_calls

    result = await client.rc.scale('rc1', -2, prune=True)

    assert delete.call_count == 1
    assert delete.call_args[1] == {'namespace': 'ns1'}
    assert result == {'kind': 'Status', 'status': 'Success'}


async def test_scaling_above_zero_with_pruning(client, rc_calls):
    replicas, get, patch, delete = rc_calls

    result = await client.rc.scale('rc1', -1, prune=True)

    assert delete.call_count == 0
    assert result['spec']['replicas'] == 1


def test_wrappers_delegate_to_the_endpoints(client):
    wrapper = client.rc
    assert isinstance(wrapper, CapableEndpoint)
    assert wrapper.resource == 'replicationControllers'
    assert wrapper.get == wrapper.endpoint.get
    assert 'replicationControllers' in repr(wrapper)


def test_wrapping_without_capabilities(client):
    assert wrap(client.pods, pods=client.pods) is client.pods


def test_wrapping_nodes_without_pods(client, caplog):
    caplog.set_level(logging.DEBUG)
    api = ApiSpec('v1', {'nodes': EndpointSpec('Node', namespaced=False,
                                               capability=Capability.NODES)})
    endpoint = Endpoint('nodes', api=api, spec=api.endpoints['nodes'],
                        dispatcher=client.dispatcher)
    wrapped = wrap(endpoint, pods=None, logger=logging.getLogger('kubeclient.tests'))
    assert wrapped is endpoint
    assert [r.levelname for r in caplog.records] == ['WARNING']


def test_wrapping_scaling(client):
    assert isinstance(wrap(client.rc.endpoint), ScalableEndpoint)
    assert isinstance(wrap(client.nodes.endpoint, pods=client.pods), NodesEndpoint)
