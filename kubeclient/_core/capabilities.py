"""
Extra operations for some resources, composed over their regular endpoints.

The capabilities wrap the endpoints rather than extend them: all the regular
methods (get, patch, watch, etc.) and the nested endpoints are delegated
to the wrapped endpoint as is, and the extra operations use them.
"""
import asyncio
from typing import Any, Dict, List, Optional

from kubeclient._cogs.helpers import typedefs
from kubeclient._cogs.structs import specs
from kubeclient._core import endpoints


class CapableEndpoint:
    """ A transparent wrapper: everything not overridden goes to the endpoint. """

    def __init__(self, endpoint: endpoints.Endpoint) -> None:
        super().__init__()
        self.endpoint = endpoint

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__}: {self.endpoint.resource}>'

    def __getattr__(self, name: str) -> Any:
        if name == 'endpoint':  # not yet set, e.g. while unpickling.
            raise AttributeError(name)
        return getattr(self.endpoint, name)


class NodesEndpoint(CapableEndpoint):
    """
    The nodes with the operations on their pods: listing, patching, evacuation.
    """

    def __init__(self, endpoint: endpoints.Endpoint, *, pods: endpoints.Endpoint) -> None:
        super().__init__(endpoint)
        self.pods = pods

    async def get_pods(self, node: str, **options: Any) -> Any:
        """ List the pods scheduled to the node, in all namespaces unless specified. """
        options.setdefault('namespace', None)
        options['fields'] = dict(options.get('fields') or {}, **{'spec.nodeName': node})
        return await self.pods.get(**options)

    async def patch_pods(self, node: str, body: object, **options: Any) -> Any:
        """ Patch all pods of the node with the same patch; return the list of the patched pods. """
        pod_list = await self.get_pods(node, **options)
        patched = await asyncio.gather(*[
            self.pods.patch(pod['metadata']['name'], body,
                            namespace=pod['metadata'].get('namespace'))
            for pod in _items(pod_list)
        ])
        return _replace_items(pod_list, [_strip_kind(pod) for pod in patched])

    async def delete_pods(self, node: str, **options: Any) -> Any:
        """ Delete all pods of the node; return the list of the deletion results. """
        pod_list = await self.get_pods(node, **options)
        deleted = await asyncio.gather(*[
            self.pods.delete(pod['metadata']['name'],
                             namespace=pod['metadata'].get('namespace'))
            for pod in _items(pod_list)
        ])
        return _replace_items(pod_list, list(deleted))

    async def evacuate(self, node: str, **options: Any) -> Any:
        """ Mark the node as unschedulable and delete all its pods. """
        patched = await self.endpoint.patch(node, {'spec': {'unschedulable': True}}, **options)
        self.endpoint.logger.info(f"Node {node!r} is unschedulable; deleting its pods.")
        await self.delete_pods(patched.get('metadata', {}).get('name', node))
        return patched

    async def schedule(self, node: str, **options: Any) -> Any:
        """ Mark the node as schedulable again (e.g. after the evacuation). """
        return await self.endpoint.patch(node, {'spec': {'unschedulable': False}}, **options)


class ScalableEndpoint(CapableEndpoint):
    """
    The replication controllers with the scaling up & down.
    """

    async def scale(
            self,
            name: str,
            increment: Optional[int] = 1,
            *,
            prune: bool = False,
            **options: Any,
    ) -> Any:
        """
        Change the number of replicas by the increment (negative to scale down).

        The zero or absent increment means one replica up. The number
        of replicas never goes below zero. If pruning is requested and
        the controller is scaled to zero, it is deleted.
        """
        rc = await self.endpoint.get(name, **options)
        namespace = rc.get('metadata', {}).get('namespace')
        replicas = max(0, rc.get('spec', {}).get('replicas', 0) + (increment or 1))
        rc = await self.endpoint.patch(name, {'spec': {'replicas': replicas}}, namespace=namespace)
        if prune and rc.get('spec', {}).get('replicas') == 0:
            self.endpoint.logger.info(f"Pruning {name!r}: scaled to zero replicas.")
            return await self.endpoint.delete(name, namespace=namespace)
        return rc


def wrap(
        endpoint: endpoints.Endpoint,
        *,
        pods: Optional[endpoints.Endpoint] = None,
        logger: Optional[typedefs.Logger] = None,
) -> Any:
    """ Compose the endpoint with its capability, if it has any. """
    if endpoint.spec.capability == specs.Capability.NODES:
        if pods is None:
            if logger is not None:
                logger.warning(f"No pods endpoint for {endpoint!r}; the pods' operations are off.")
            return endpoint
        return NodesEndpoint(endpoint, pods=pods)
    elif endpoint.spec.capability == specs.Capability.SCALING:
        return ScalableEndpoint(endpoint)
    else:
        return endpoint


def _items(pod_list: Any) -> List[Dict[str, Any]]:
    return list(pod_list.get('items') or []) if isinstance(pod_list, dict) else []


def _replace_items(pod_list: Any, items: List[Any]) -> Any:
    return dict(pod_list, items=items) if isinstance(pod_list, dict) else pod_list


def _strip_kind(pod: Any) -> Any:
    # The items of a list have no kind & apiVersion of their own, only the list has them.
    if isinstance(pod, dict):
        return {key: val for key, val in pod.items() if key not in ('kind', 'apiVersion')}
    return pod
