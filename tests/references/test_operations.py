import pytest

from kubeclient._cogs.structs.operations import Operation, build_operation, merge_options, \
                                               resolve_namespace


def test_unsupported_methods_are_rejected():
    with pytest.raises(ValueError, match=r"Unsupported method"):
        Operation(method='HEAD', resource='pods', version='v1')


def test_operations_are_immutable():
    operation = Operation(method='GET', resource='pods', version='v1')
    with pytest.raises(AttributeError):
        operation.name = 'pod1'  # type: ignore


def test_later_options_win():
    merged = merge_options({'version': 'v1', 'timeout': 1}, {'timeout': 2}, None)
    assert merged == {'version': 'v1', 'timeout': 2}


def test_nested_options_are_merged_key_by_key():
    merged = merge_options(
        {'params': {'a': '1', 'b': '2'}, 'headers': {'X-A': 'a'}},
        {'params': {'b': '3'}, 'headers': {'X-B': 'b'}},
    )
    assert merged == {'params': {'a': '1', 'b': '3'}, 'headers': {'X-A': 'a', 'X-B': 'b'}}


def test_unknown_options_are_rejected():
    with pytest.raises(TypeError, match=r"Unsupported option: 'prune'"):
        merge_options({'version': 'v1'}, {'prune': True})


@pytest.mark.parametrize('options, default, expected', [
    ({}, None, None),
    ({}, 'default', 'default'),
    ({'namespace': 'ns1'}, 'default', 'ns1'),
    ({'namespace': None}, 'default', None),
    ({'namespace': ''}, 'default', None),
    ({'ns': False}, 'default', None),
    ({'ns': False, 'namespace': 'ns1'}, 'default', None),
    ({'ns': True, 'namespace': 'ns1'}, 'default', 'ns1'),
])
def test_namespace_resolution(options, default, expected):
    assert resolve_namespace(options, default) == expected


def test_operation_building():
    operation = build_operation(
        'PATCH', 'pods',
        name='pod1',
        body={'spec': {}},
        options={'version': 'v1', 'ns': True, 'labels': {'app': 'web'},
                 'params': {'pretty': 'true'}, 'headers': {'X-A': 'a'},
                 'timeout': 5, 'verbose': True, 'child': 'status'},
        default_namespace='default',
    )
    assert operation.method == 'PATCH'
    assert operation.resource == 'pods'
    assert operation.name == 'pod1'
    assert operation.body == {'spec': {}}
    assert operation.namespace == 'default'
    assert operation.child == 'status'
    assert operation.timeout == 5
    assert operation.verbose is True
    assert operation.headers == {'X-A': 'a'}
    assert operation.query == {'labelSelector': 'app=web', 'pretty': 'true'}


def test_operation_building_requires_a_version():
    with pytest.raises(TypeError, match=r"API version"):
        build_operation('GET', 'pods', options={})


def test_explicit_params_win_over_the_selectors():
    operation = Operation(method='GET', resource='pods', version='v1',
                          fields={'a': 'b'}, params={'fieldSelector': 'x=y'})
    assert operation.query == {'fieldSelector': 'x=y'}


def test_operation_urls():
    operation = Operation(method='GET', resource='pods', version='v1', namespace='ns1',
                          name='pod1', labels={'app': 'web'})
    assert operation.get_url() == '/api/v1/namespaces/ns1/pods/pod1?labelSelector=app%3Dweb'
    assert operation.get_url(server='https://host:8443', watch='true') == (
        'https://host:8443/api/v1/namespaces/ns1/pods/pod1?labelSelector=app%3Dweb&watch=true')


@pytest.mark.parametrize('operation, expected', [
    (Operation(method='GET', resource='pods', version='v1'), "GET pods"),
    (Operation(method='GET', resource='pods', version='v1', name='p1'), "GET pods/p1"),
    (Operation(method='GET', resource='pods', version='v1', name='p1', child='log',
               namespace='ns1'), "GET pods/p1/log in 'ns1'"),
])
def test_operation_descriptions(operation, expected):
    assert operation.describe() == expected
