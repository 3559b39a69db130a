"""
The endpoints of the API resources, as bound from their specifications.

An endpoint knows its resource, its API version & prefix, its scoping,
and the methods allowed for it; everything else is done by the dispatcher.
The nested endpoints (the sub-resources of the items, e.g. ``pods/{name}/log``)
are the same endpoints with the ``child`` option preset and the methods limited.

The options are merged in layers: the endpoint's defaults, then the call's
overrides (see :func:`operations.merge_options`). The call's options are:

* ``namespace`` -- the namespace instead of the client's default one
  (``None`` or ``''`` for all namespaces);
* ``labels``, ``fields`` -- the label & field selectors (see :mod:`references`);
* ``params``, ``headers`` -- the extra query params & HTTP headers;
* ``timeout`` -- the request timeout in seconds;
* ``verbose`` -- return the full response envelope instead of the body;
* ``child`` -- a sub-resource of the item;
* ``version``, ``prefix``, ``ns`` -- rarely needed overrides of the endpoint's defaults.
"""
from typing import Any, Dict, FrozenSet, Mapping, Optional

from kubeclient._cogs.clients import dispatching, errors, watching
from kubeclient._cogs.structs import operations, specs
from kubeclient._core import loggers


class Endpoint:

    def __init__(
            self,
            resource: str,
            *,
            api: specs.ApiSpec,
            spec: specs.EndpointSpec,
            dispatcher: dispatching.Dispatcher,
            default_namespace: Optional[str] = None,
            child: Optional[str] = None,
            methods: Optional[FrozenSet[str]] = None,
    ) -> None:
        super().__init__()
        self.resource = resource
        self.api = api
        self.spec = spec
        self.dispatcher = dispatcher
        self.default_namespace = default_namespace
        self.methods = methods if methods is not None else spec.methods
        self.options: Dict[str, Any] = dict(version=api.name, ns=spec.namespaced)
        if api.prefix:
            self.options['prefix'] = api.prefix
        if child:
            self.options['child'] = child
        self.logger = loggers.EndpointLogger(resource=resource, version=api.name, child=child)

        # Nested endpoints are bound only on the top-level ones: there are no grand-children.
        self.nested: Dict[str, Endpoint] = {}
        if child is None:
            for nested in spec.nested:
                self.nested[nested.resource] = Endpoint(
                    resource,
                    api=api,
                    spec=spec,
                    dispatcher=dispatcher,
                    default_namespace=default_namespace,
                    child=nested.resource,
                    methods=nested.methods,
                )

    def __repr__(self) -> str:
        child = self.options.get('child')
        return f'<{self.__class__.__name__}: {self.resource}{"/" + child if child else ""}>'

    def __getattr__(self, name: str) -> "Endpoint":
        nested: Mapping[str, Endpoint] = self.__dict__.get('nested', {})
        if name in nested:
            return nested[name]
        raise AttributeError(f"{self!r} has no nested endpoint {name!r}")

    async def get(self, name: Optional[str] = None, **options: Any) -> Any:
        """ Get an item by name, or list them all if the name is not specified. """
        self._check_method('get')
        if name is None and not self.spec.listable:
            raise errors.ParameterError('name')
        return await self._execute('GET', name=name, options=options)

    async def create(self, body: object, **options: Any) -> Any:
        self._check_method('create')
        return await self._execute('POST', body=body, options=options)

    async def update(self, name: str, body: object, **options: Any) -> Any:
        self._check_method('update')
        return await self._execute('PUT', name=name, body=body, options=options)

    async def patch(self, name: str, body: object, **options: Any) -> Any:
        """ Patch an item with a strategic-merge patch (unless the content type is overridden). """
        self._check_method('patch')
        return await self._execute('PATCH', name=name, body=body, options=options)

    async def delete(self, name: str, **options: Any) -> Any:
        self._check_method('delete')
        return await self._execute('DELETE', name=name, options=options)

    async def watch(self, name: Optional[str] = None, **options: Any) -> watching.WatchSession:
        """
        Get the current state of the resource, and prepare a watch-session from it.

        The snapshot is in the session's ``initial``. The watch-events are
        not streamed until the session is started (see :class:`WatchSession`).
        """
        self._check_method('watch')
        if name is None and not self.spec.listable:
            raise errors.ParameterError('name')
        session = watching.WatchSession(
            dispatcher=self.dispatcher,
            operation=self.build_operation('GET', name=name, options=options),
            logger=self.logger,
        )
        await session.snapshot()
        return session

    def build_operation(
            self,
            method: str,
            *,
            name: Optional[str] = None,
            body: Optional[object] = None,
            options: Optional[Mapping[str, Any]] = None,
    ) -> operations.Operation:
        return operations.build_operation(
            method,
            self.resource,
            name=name,
            body=body,
            options=operations.merge_options(self.options, options),
            default_namespace=self.default_namespace,
        )

    async def _execute(
            self,
            method: str,
            *,
            name: Optional[str] = None,
            body: Optional[object] = None,
            options: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        operation = self.build_operation(method, name=name, body=body, options=options)
        self.logger.info(f"Requesting: {operation.describe()}")
        return await self.dispatcher.execute(operation, logger=self.logger)

    def _check_method(self, method: str) -> None:
        if self.methods is not None and method not in self.methods:
            raise errors.MethodNotAllowedError(
                f"{method!r} is not allowed for {self!r}; allowed: {sorted(self.methods)}")
