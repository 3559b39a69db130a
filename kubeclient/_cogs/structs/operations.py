"""
Logical operations on the API resources, before they become HTTP requests.

An operation is built from several layers of options: the client's defaults,
the endpoint's defaults (its version, prefix, scoping), and the per-call
overrides. The later layers win. The nested mappings (the query params,
the headers) are merged key-by-key rather than replaced.
"""
import dataclasses
from typing import Any, Dict, Mapping, Optional

from kubeclient._cogs.structs import references

VERBS = frozenset({'GET', 'POST', 'PUT', 'PATCH', 'DELETE'})

# The options accepted from the users and the endpoint definitions.
OPTIONS = frozenset({
    'version', 'prefix', 'child', 'ns', 'namespace',
    'params', 'headers', 'labels', 'fields', 'timeout', 'verbose',
})
NESTED_OPTIONS = frozenset({'params', 'headers'})


@dataclasses.dataclass(frozen=True)
class Operation:
    method: str
    resource: str
    version: str
    prefix: Optional[str] = None
    name: Optional[str] = None
    child: Optional[str] = None
    body: Optional[object] = None
    namespace: Optional[str] = None
    params: Mapping[str, Any] = dataclasses.field(default_factory=dict)
    headers: Mapping[str, str] = dataclasses.field(default_factory=dict)
    labels: Optional[references.Selector] = None
    fields: Optional[references.Selector] = None
    timeout: Optional[float] = None
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.method not in VERBS:
            raise ValueError(f"Unsupported method: {self.method!r}")

    @property
    def query(self) -> Dict[str, Any]:
        """ The query params with the rendered selectors (explicit params win). """
        query: Dict[str, Any] = {}
        if self.labels:
            query['labelSelector'] = references.render_selector(self.labels)
        if self.fields:
            query['fieldSelector'] = references.render_selector(self.fields)
        query.update(self.params)
        return query

    def get_url(self, server: Optional[str] = None, **params: Any) -> str:
        return references.resolve_url(
            self.resource,
            server=server,
            version=self.version,
            prefix=self.prefix,
            namespace=self.namespace,
            name=self.name,
            child=self.child,
            params=dict(self.query, **params),
        )

    def describe(self) -> str:
        where = f" in {self.namespace!r}" if self.namespace else ""
        what = f"{self.resource}/{self.name}" if self.name else self.resource
        return f"{self.method} {what}{'/' + self.child if self.child else ''}{where}"


def merge_options(*layers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Merge the options layers; the later ones win; the nested ones are merged.
    """
    merged: Dict[str, Any] = {}
    for layer in layers:
        for key, value in (layer or {}).items():
            if key not in OPTIONS:
                raise TypeError(f"Unsupported option: {key!r}")
            if key in NESTED_OPTIONS and value is not None:
                merged[key] = dict(merged.get(key) or {}, **value)
            else:
                merged[key] = value
    return merged


def resolve_namespace(
        options: Mapping[str, Any],
        default: Optional[str] = None,
) -> Optional[str]:
    """
    Decide on the namespace: cluster-wide endpoints never have it; an explicit
    namespace (even if empty, i.e. all namespaces) overrides the client's default.
    """
    if not options.get('ns', True):
        return None
    elif 'namespace' in options:
        return options['namespace'] or None
    else:
        return default


def build_operation(
        method: str,
        resource: str,
        *,
        name: Optional[str] = None,
        body: Optional[object] = None,
        options: Mapping[str, Any],
        default_namespace: Optional[str] = None,
) -> Operation:
    if not options.get('version'):
        raise TypeError("The API version is not specified for the operation.")
    return Operation(
        method=method,
        resource=resource,
        name=name,
        body=body,
        version=options['version'],
        prefix=options.get('prefix'),
        child=options.get('child'),
        namespace=resolve_namespace(options, default_namespace),
        params=dict(options.get('params') or {}),
        headers=dict(options.get('headers') or {}),
        labels=options.get('labels'),
        fields=options.get('fields'),
        timeout=options.get('timeout'),
        verbose=bool(options.get('verbose', False)),
    )
