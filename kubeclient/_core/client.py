"""
The client: the connection, the authentication, and the endpoints together.

The endpoints are bound from the API specifications (see :mod:`specs`):
the core API of the requested version always, the extensions' API and
the OpenShift API on demand, and any custom APIs given explicitly.
The later APIs override the same-named endpoints of the earlier ones.

The endpoints are accessible as the client's attributes, by their names
as in the API (``client.replicationControllers``), by their snake-cased
names (``client.replication_controllers``), or by their nicknames
(``client.rc``); or via :meth:`KubernetesClient.endpoint`.
"""
import dataclasses
import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from kubeclient._cogs.clients import auth, dispatching, errors
from kubeclient._cogs.configs import configuration
from kubeclient._cogs.structs import specs
from kubeclient._cogs.structs.credentials import AuthOptions, ConnectionInfo, Credentials
from kubeclient._core import capabilities, endpoints

logger = logging.getLogger(__name__)

VersionFlag = Union[None, bool, int, str]


class KubernetesClient:

    def __init__(
            self,
            host: Optional[str] = None,
            version: Union[None, int, str] = None,
            *,
            port: Optional[int] = None,
            protocol: Optional[str] = None,
            namespace: Optional[str] = None,
            token: Optional[str] = None,
            username: Optional[str] = None,
            password: Optional[str] = None,
            credentials: Optional[Credentials] = None,
            auth_options: Optional[AuthOptions] = None,
            ca_path: Optional[str] = None,
            insecure: bool = False,
            headers: Optional[Mapping[str, str]] = None,
            timeout: Optional[float] = None,
            beta: VersionFlag = None,
            oshift: VersionFlag = None,
            apis: Iterable[specs.ApiSpec] = (),
            settings: Optional[configuration.ClientSettings] = None,
    ) -> None:
        super().__init__()
        try:
            self.info = _parse_info(
                host=host, version=version, port=port, protocol=protocol,
                namespace=namespace, token=token, ca_path=ca_path, insecure=insecure,
                username=username, password=password, credentials=credentials,
                auth_options=auth_options, headers=headers,
            )
            self.apis = _select_apis(self.info.version, beta=beta, oshift=oshift, apis=apis)
        except errors.ClientError as e:
            logger.critical(f"Failed to configure the client: {e}")
            raise

        settings = settings if settings is not None else configuration.ClientSettings()
        if timeout is not None:
            networking = dataclasses.replace(settings.networking, request_timeout=timeout)
            settings = dataclasses.replace(settings, networking=networking)
        self.settings = settings

        self.context = auth.APIContext(self.info)
        self.authenticator = auth.Authenticator(self.info, context=self.context)
        self.dispatcher = dispatching.Dispatcher(
            context=self.context,
            authenticator=self.authenticator,
            settings=self.settings,
        )

        self.endpoints: Dict[str, Any] = {}
        self.nicknames: Dict[str, str] = {}
        for api in self.apis:
            self._define_api(api)
        logger.info(f"Client initialized for {self.info.server} "
                    f"(namespace={self.info.namespace!r}).")

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__}: {self.info.server}>'

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_') or 'endpoints' not in self.__dict__:
            raise AttributeError(name)
        try:
            return self.endpoint(name)
        except KeyError:
            raise AttributeError(f"{self!r} has no endpoint {name!r}") from None

    def endpoint(self, name: str) -> Any:
        """ Find an endpoint by its name, snake-cased name, or nickname. """
        name = self.nicknames.get(name, name)
        if name in self.endpoints:
            return self.endpoints[name]
        camel = _camelize(name)
        if camel in self.endpoints:
            return self.endpoints[camel]
        raise KeyError(name)

    async def authenticate(self, flush: bool = False) -> Optional[str]:
        """ Get the current token, or obtain a new one (also if flushed). """
        if flush:
            self.authenticator.invalidate()
        return await self.authenticator.ensure_token()

    async def close(self) -> None:
        await self.context.close()

    async def __aenter__(self) -> "KubernetesClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _define_api(self, api: specs.ApiSpec) -> None:
        bound: List[endpoints.Endpoint] = []
        for resource, spec in api.endpoints.items():
            endpoint = endpoints.Endpoint(
                resource,
                api=api,
                spec=spec,
                dispatcher=self.dispatcher,
                default_namespace=self.info.namespace,
            )
            self.endpoints[resource] = endpoint
            if spec.nickname:
                self.nicknames[spec.nickname] = resource
            bound.append(endpoint)

        # The capabilities can depend on other endpoints, so they are composed when all are bound.
        pods = self.endpoints.get('pods')
        for endpoint in bound:
            self.endpoints[endpoint.resource] = capabilities.wrap(endpoint, pods=pods, logger=logger)
        logger.debug(f"API endpoints created: {api.name} ({len(bound)} endpoints).")


def _parse_info(
        *,
        username: Optional[str],
        password: Optional[str],
        credentials: Optional[Credentials],
        **kwargs: Any,
) -> ConnectionInfo:
    if credentials is None and username is not None:
        credentials = Credentials(username=username, password=password or '')
    return ConnectionInfo.parse(versions=specs.KUBERNETES.keys(), credentials=credentials, **kwargs)


def _select_apis(
        version: str,
        *,
        beta: VersionFlag,
        oshift: VersionFlag,
        apis: Iterable[specs.ApiSpec],
) -> List[specs.ApiSpec]:
    selected = [specs.KUBERNETES[version]]

    # The latest beta version that matches the core version by default (if beta=True).
    if beta:
        beta_version = specs.select_beta(version) if beta is True else beta
        selected.append(_lookup(beta_version, specs.KUBERNETES_EXTENSIONS))

    # The same version as of the core API by default (if oshift=True).
    if oshift:
        oshift_version = version if oshift is True else oshift
        selected.append(_lookup(oshift_version, specs.OPENSHIFT))

    selected.extend(apis)
    return selected


def _lookup(version: VersionFlag, registry: Mapping[str, specs.ApiSpec]) -> specs.ApiSpec:
    if version is None or version is False or version == '':
        raise errors.ParameterError('version')
    name = f'v{version}' if isinstance(version, int) and not isinstance(version, bool) else str(version)
    if name not in registry:
        raise errors.VersionError(name, registry.keys())
    return registry[name]


def _camelize(name: str) -> str:
    return re.sub(r'_([a-z])', lambda m: m.group(1).upper(), name)
