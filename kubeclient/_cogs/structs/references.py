"""
URL building for the API resources.

All the quirks of the API versions are concentrated here:

* The legacy versions (``v1beta1``, ``v1beta2``) name the nodes as "minions",
  and pass the namespace in the query string.
* The newer versions use the lower-cased resource names,
  and pass the namespace as a path prefix: ``namespaces/{ns}/{resource}``.
* The proxying resources (``proxy/pods``) have their marker in front
  of the whole path, once, before the namespace.

The functions are pure: no i/o, no state; the same input gives the same URL.
"""
import re
import urllib.parse
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

LEGACY_VERSIONS = re.compile(r'^v1beta[12]$')
PROXY_MARKER = 'proxy'

# Label & field selectors, as accepted from the users: `{key: value}`, where the value
# is either a string (equality), an empty string (existence), or a list (set-inclusion).
# Keys prefixed with an underscore negate the condition.
SelectorValue = Union[str, Sequence[str]]
Selector = Mapping[str, SelectorValue]


class ResolvedPath(NamedTuple):
    path: str
    params: Mapping[str, str]


def is_legacy(version: str) -> bool:
    return bool(LEGACY_VERSIONS.match(version))


def get_prefix(version: str, prefix: Optional[str] = None) -> str:
    return prefix if prefix else 'apis' if '/' in version else 'api'


def build_path(*parts: Optional[str]) -> str:
    """
    Join the non-empty parts with slashes, never producing empty segments.

    The parts themselves can contain slashes (e.g. ``extensions/v1beta1``),
    but the leading/trailing/repeated slashes are squeezed.
    """
    segments: List[str] = []
    for part in parts:
        if part:
            segments.extend(segment for segment in str(part).split('/') if segment)
    return '/'.join(segments)


def split_proxy(resource: str) -> Tuple[bool, str]:
    """
    Split the leading proxying marker(s) off a bare resource name.

    E.g. ``proxy/pods`` gives ``(True, 'pods')``; ``pods`` gives ``(False, 'pods')``.
    Only the leading segments are the marker: ``proxyless/pods`` is not proxied.
    """
    segments = build_path(resource).split('/')
    proxied = False
    while len(segments) > 1 and segments[0] == PROXY_MARKER:
        segments = segments[1:]
        proxied = True
    return proxied, '/'.join(segments)


def resolve_path(
        resource: str,
        *,
        version: str,
        prefix: Optional[str] = None,
        namespace: Optional[str] = None,
        name: Optional[str] = None,
        child: Optional[str] = None,
) -> ResolvedPath:
    """
    Resolve a resource (with an optional item & its sub-resource) into a path.

    The path is relative to the server root (i.e. no leading slash).
    The params are those required by the version-specific URL schemas;
    they should be merged into the request's query parameters.
    """
    params: Dict[str, str] = {}
    proxied, resource = split_proxy(resource)
    if is_legacy(version):
        resource = resource.replace('nodes', 'minions')
        if namespace:
            params['namespace'] = namespace
    else:
        resource = resource.lower()
        if namespace:
            resource = build_path('namespaces', namespace, resource)

    if proxied:
        resource = build_path(PROXY_MARKER, resource)
    path = build_path(get_prefix(version, prefix), version, resource, name, child)
    return ResolvedPath(path=path, params=params)


def resolve_url(
        resource: str,
        *,
        server: Optional[str] = None,
        version: str,
        prefix: Optional[str] = None,
        namespace: Optional[str] = None,
        name: Optional[str] = None,
        child: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Resolve a resource into a full URL (or a root-relative one if no server).

    The explicitly given params override the version-specific ones.
    """
    resolved = resolve_path(resource, version=version, prefix=prefix,
                            namespace=namespace, name=name, child=child)
    query_params = dict(resolved.params, **(params or {}))
    query = urllib.parse.urlencode(
        {key: _render_param(val) for key, val in query_params.items() if val is not None},
        encoding='utf-8')
    url = '/' + resolved.path + ('?' if query else '') + query
    return url if server is None else server.rstrip('/') + url


def render_selector(selector: Selector) -> str:
    """
    Render a label/field selector as accepted by the API in the query string.

    * ``{'app': ''}`` -> ``app`` (the label exists);
    * ``{'app': 'x'}`` -> ``app=x``; ``{'_app': 'x'}`` -> ``app!=x``;
    * ``{'app': ['x', 'y']}`` -> ``app in (x,y)``;
      ``{'_app': ['x', 'y']}`` -> ``app notin (x,y)``.
    """
    clauses: List[str] = []
    for key, value in selector.items():
        negated = key.startswith('_')
        key = key[1:] if negated else key
        if value == '':
            clauses.append(key)
        elif isinstance(value, str):
            clauses.append(f"{key}!={value}" if negated else f"{key}={value}")
        else:
            values = ','.join(str(v) for v in value)
            clauses.append(f"{key} notin ({values})" if negated else f"{key} in ({values})")
    return ','.join(clauses)


def _render_param(value: Any) -> str:
    # The API expects the lower-cased booleans, e.g. `watch=true`.
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)
