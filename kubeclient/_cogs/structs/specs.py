"""
Static specifications of the API resources: which endpoints exist, how they
are scoped, and which methods they allow.

The specifications are pure data. The endpoints are bound from them
by the client (see :mod:`kubeclient._core.client`), no methods are generated.

The names of the resources are as used by the API (camel-cased);
the paths are lower-cased at the URL resolution (see :mod:`references`).
"""
import dataclasses
import enum
from typing import FrozenSet, Mapping, Optional, Tuple

# The methods of the endpoints, as exposed to the users, and their HTTP verbs.
METHODS: Mapping[str, str] = {
    'get': 'GET',
    'create': 'POST',
    'update': 'PUT',
    'patch': 'PATCH',
    'delete': 'DELETE',
    'watch': 'GET',
}


class Capability(enum.Enum):
    """ Extra operations composed over the regular endpoints of some resources. """
    NODES = 'nodes'
    SCALING = 'scaling'


@dataclasses.dataclass(frozen=True)
class NestedSpec:
    """ A sub-resource of every item, e.g. ``pods/{name}/log``. """
    resource: str
    methods: Optional[FrozenSet[str]] = None  # None means all of them.


@dataclasses.dataclass(frozen=True)
class EndpointSpec:
    kind: str
    nickname: Optional[str] = None
    namespaced: bool = True
    listable: bool = True
    methods: Optional[FrozenSet[str]] = None  # None means all of them.
    nested: Tuple[NestedSpec, ...] = ()
    capability: Optional[Capability] = None


@dataclasses.dataclass(frozen=True)
class ApiSpec:
    name: str  # as used in URLs: e.g. "v1" or "extensions/v1beta1".
    endpoints: Mapping[str, EndpointSpec]
    prefix: Optional[str] = None  # if None, derived from the name: "api" or "apis".


def _methods(*names: str) -> FrozenSet[str]:
    unknown = set(names) - set(METHODS)
    if unknown:
        raise ValueError(f"Unknown methods: {unknown!r}")
    return frozenset(names)


_CORE_ENDPOINTS: Mapping[str, EndpointSpec] = {
    'bindings': EndpointSpec('Binding', methods=_methods('create')),
    'componentStatuses': EndpointSpec(
        'ComponentStatus', namespaced=False, methods=_methods('get', 'watch')),
    'endpoints': EndpointSpec('Endpoint'),
    'events': EndpointSpec('Event'),
    'limitRanges': EndpointSpec('LimitRange'),
    'namespaces': EndpointSpec(
        'Namespace', nickname='ns', namespaced=False,
        nested=(NestedSpec('finalize', _methods('update')),)),
    'nodes': EndpointSpec('Node', namespaced=False, capability=Capability.NODES),
    'persistentVolumes': EndpointSpec('PersistentVolume', nickname='pv', namespaced=False),
    'persistentVolumeClaims': EndpointSpec('PersistentVolumeClaim', nickname='pvc'),
    'pods': EndpointSpec('Pod', nested=(
        NestedSpec('attach', _methods('get', 'create')),
        NestedSpec('binding', _methods('get')),
        NestedSpec('exec', _methods('get', 'create')),
        NestedSpec('log', _methods('get')),
        NestedSpec('portforward', _methods('get', 'create')),
        NestedSpec('proxy'),
    )),
    'podTemplates': EndpointSpec('PodTemplate'),
    'proxy/nodes': EndpointSpec('Proxy', namespaced=False),
    'proxy/pods': EndpointSpec('Proxy'),
    'proxy/services': EndpointSpec('Proxy'),
    'replicationControllers': EndpointSpec(
        'ReplicationController', nickname='rc', capability=Capability.SCALING),
    'resourceQuotas': EndpointSpec('ResourceQuota'),
    'secrets': EndpointSpec('Secret'),
    'services': EndpointSpec('Service', nickname='svc'),
    'serviceAccounts': EndpointSpec('ServiceAccount'),
}

# The legacy versions share the resources, but differ in URL building (see `references`).
KUBERNETES: Mapping[str, ApiSpec] = {
    'v1beta1': ApiSpec('v1beta1', _CORE_ENDPOINTS),
    'v1beta2': ApiSpec('v1beta2', _CORE_ENDPOINTS),
    'v1beta3': ApiSpec('v1beta3', _CORE_ENDPOINTS),
    'v1': ApiSpec('v1', _CORE_ENDPOINTS),
}

KUBERNETES_EXTENSIONS: Mapping[str, ApiSpec] = {
    'v1beta1': ApiSpec('extensions/v1beta1', {
        'daemonSets': EndpointSpec('DaemonSet'),
        'deployments': EndpointSpec('Deployment'),
        'horizontalPodAutoscalers': EndpointSpec('HorizontalPodAutoscaler'),
        'ingresses': EndpointSpec('Ingress'),
        'jobs': EndpointSpec('Job'),
    }),
}

_CLUSTER_WIDE_OPENSHIFT_KINDS = [
    ('clusterNetworks', 'ClusterNetwork'),
    ('clusterPolicies', 'ClusterPolicy'),
    ('clusterPolicyBindings', 'ClusterPolicyBinding'),
    ('clusterRoles', 'ClusterRole'),
    ('clusterRoleBindings', 'ClusterRoleBinding'),
    ('generatedDeploymentConfigs', 'GeneratedDeploymentConfig'),
    ('groups', 'Group'),
    ('hostSubnets', 'HostSubnet'),
    ('identities', 'Identity'),
    ('images', 'Image'),
    ('netNamespaces', 'NetNamespace'),
    ('oAuthAccessTokens', 'oAuthAccessToken'),
    ('oAuthAuthorizeTokens', 'oAuthAuthorizeToken'),
    ('oAuthClients', 'oAuthClient'),
    ('oAuthClientAuthorizations', 'oAuthClientAuthorization'),
    ('projects', 'Project'),
    ('projectRequests', 'ProjectRequest'),
    ('remoteAccessReviews', 'RemoteAccessReview'),
    ('users', 'User'),
    ('userIdentityMappings', 'UserIdentityMapping'),
]

_NAMESPACED_OPENSHIFT_KINDS = [
    ('deploymentConfigs', 'DeploymentConfig'),
    ('deploymentConfigRollbacks', 'DeploymentConfigRollback'),
    ('imageStreams', 'ImageStream'),
    ('imageStreamImages', 'ImageStreamImage'),
    ('imageStreamMappings', 'ImageStreamMapping'),
    ('imageStreamTags', 'ImageStreamTag'),
    ('localResourceAccessReviews', 'LocalResourceAccessReview'),
    ('localSubjectAccessReviews', 'LocalSubjectAccessReview'),
    ('policies', 'Policy'),
    ('policyBindings', 'PolicyBinding'),
    ('processedTemplates', 'ProcessedTemplate'),
    ('resourceAccessReviews', 'ResourceAccessReview'),
    ('roles', 'Role'),
    ('roleBindings', 'RoleBinding'),
    ('routes', 'Route'),
    ('subjectAccessReviews', 'SubjectAccessReview'),
    ('templates', 'Template'),
]

OPENSHIFT: Mapping[str, ApiSpec] = {
    'v1': ApiSpec('v1', prefix='oapi', endpoints={
        'builds': EndpointSpec('Build', nested=(
            NestedSpec('clone', _methods('create')),
            NestedSpec('log', _methods('get')),
        )),
        'buildConfigs': EndpointSpec('BuildConfig', nested=(
            NestedSpec('instantiate', _methods('create')),
            NestedSpec('webhooks', _methods('create')),
        )),
        **{name: EndpointSpec(kind, namespaced=False)
           for name, kind in _CLUSTER_WIDE_OPENSHIFT_KINDS},
        **{name: EndpointSpec(kind)
           for name, kind in _NAMESPACED_OPENSHIFT_KINDS},
    }),
}


def select_beta(version: str) -> Optional[str]:
    """ The latest extensions' beta version matching the core version (if any). """
    candidates = sorted(name for name in KUBERNETES_EXTENSIONS if name.startswith(f'{version}beta'))
    return candidates[-1] if candidates else None
