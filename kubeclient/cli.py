import asyncio
import dataclasses
import functools
import json
from typing import Any, Callable, Dict, List, Optional

import click
import yaml

from kubeclient._cogs.clients import errors
from kubeclient._cogs.structs import credentials
from kubeclient._core import client, loggers


class LogFormatParamType(click.Choice):

    def __init__(self) -> None:
        super().__init__(choices=[v.name.lower() for v in loggers.LogFormat])

    def convert(self, value: Any, param: Any, ctx: Any) -> loggers.LogFormat:
        name: str = super().convert(value, param, ctx)
        return loggers.LogFormat[name.upper()]


def logging_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to configure logging in all commands the same way."""
    @click.option('-v', '--verbose', is_flag=True)
    @click.option('-d', '--debug', is_flag=True)
    @click.option('-q', '--quiet', is_flag=True)
    @click.option('--log-format', type=LogFormatParamType(), default='full')
    @click.option('--log-refkey', type=str)
    @click.option('--log-prefix/--no-log-prefix', default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(verbose: bool, quiet: bool, debug: bool,
                log_format: loggers.LogFormat = loggers.LogFormat.FULL,
                log_prefix: Optional[bool] = None,
                log_refkey: Optional[str] = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, **kwargs)

    return wrapper


def connection_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to accept the same connection options in all commands. """
    @click.option('-s', '--server', required=True, envvar='KUBECLIENT_SERVER')
    @click.option('--version', 'api_version', default='v1', envvar='KUBECLIENT_VERSION')
    @click.option('-n', '--namespace', envvar='KUBECLIENT_NAMESPACE')
    @click.option('--token', envvar='KUBECLIENT_TOKEN')
    @click.option('-u', '--username', envvar='KUBECLIENT_USERNAME')
    @click.option('-p', '--password', envvar='KUBECLIENT_PASSWORD')
    @click.option('--ca-path', type=click.Path(dir_okay=False), envvar='KUBECLIENT_CA_PATH')
    @click.option('--allow-unsafe', is_flag=True, envvar='KUBECLIENT_ALLOW_UNSAFE')
    @click.option('--insecure', is_flag=True, envvar='KUBECLIENT_INSECURE')
    @click.option('--beta', is_flag=True, envvar='KUBECLIENT_BETA')
    @click.option('--oshift', is_flag=True, envvar='KUBECLIENT_OSHIFT')
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(server: str, api_version: str, namespace: Optional[str],
                token: Optional[str], username: Optional[str], password: Optional[str],
                ca_path: Optional[str], allow_unsafe: bool, insecure: bool,
                beta: bool, oshift: bool,
                *args: Any, **kwargs: Any) -> Any:
        factory = functools.partial(
            client.KubernetesClient,
            host=server,
            version=api_version,
            namespace=namespace,
            token=token,
            username=username,
            password=password,
            ca_path=ca_path,
            insecure=insecure,
            auth_options=credentials.AuthOptions(allow_unsafe=allow_unsafe),
            beta=beta,
            oshift=oshift,
        )
        return fn(factory, *args, **kwargs)

    return wrapper


def output_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    @click.option('-o', '--output', type=click.Choice(['json', 'yaml']), default='json')
    @click.option('-l', '--label', 'labels', multiple=True,
                  help="A label selector: key, key=value, or key!=value.")
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return fn(*args, **kwargs)

    return wrapper


@click.version_option(prog_name='kubeclient')
@click.group(name='kubeclient', context_settings=dict(
    auto_envvar_prefix='KUBECLIENT',
))
def main() -> None:
    pass


@main.command()
@logging_options
@connection_options
@output_options
@click.argument('resource')
@click.argument('name', required=False)
def get(
        factory: Callable[[], client.KubernetesClient],
        resource: str,
        name: Optional[str],
        output: str,
        labels: List[str],
) -> None:
    """ Get a resource item, or list all of them. """
    async def _get() -> Any:
        async with factory() as kube:
            endpoint = _find_endpoint(kube, resource)
            return await endpoint.get(name, **_build_options(labels))

    _echo(_run(_get()), output=output)


@main.command()
@logging_options
@connection_options
@output_options
@click.option('-r', '--retries', type=int, default=None,
              help="How many times to reconnect on timeouts (infinitely by default).")
@click.option('--limit', type=int, default=None,
              help="Exit after this number of notifications.")
@click.argument('resource')
@click.argument('name', required=False)
def watch(
        factory: Callable[[], client.KubernetesClient],
        resource: str,
        name: Optional[str],
        output: str,
        labels: List[str],
        retries: Optional[int],
        limit: Optional[int],
) -> None:
    """ Print the current state of a resource and then its changes as they happen. """
    async def _watch() -> None:
        async with factory() as kube:
            endpoint = _find_endpoint(kube, resource)
            session = await endpoint.watch(name, **_build_options(labels))
            _echo(session.initial, output=output)

            notifications = session.subscribe()
            session.start(retry_count=retries)
            try:
                count = 0
                async for notification in notifications:
                    _echo({'kind': notification.kind,
                           'payload': _render_payload(notification.payload)}, output=output)
                    count += 1
                    if limit is not None and count >= limit:
                        break
            finally:
                await session.stop()

    _run(_watch())


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except errors.ClientError as e:
        raise click.ClickException(_describe(e))


def _find_endpoint(kube: client.KubernetesClient, resource: str) -> Any:
    try:
        return kube.endpoint(resource)
    except KeyError:
        raise click.BadParameter(f"Unknown resource: {resource!r}", param_hint='RESOURCE')


def _build_options(labels: List[str]) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    if labels:
        options['labels'] = _parse_labels(labels)
    return options


def _parse_labels(labels: List[str]) -> Dict[str, str]:
    selector: Dict[str, str] = {}
    for label in labels:
        if '!=' in label:
            key, value = label.split('!=', 1)
            selector[f'_{key}'] = value
        elif '=' in label:
            key, value = label.split('=', 1)
            selector[key] = value
        else:
            selector[label] = ''
    return selector


def _render_payload(payload: Any) -> Any:
    if isinstance(payload, BaseException):
        return {'error': type(payload).__name__, 'message': _describe(payload)}
    elif dataclasses.is_dataclass(payload) and not isinstance(payload, type):
        return dataclasses.asdict(payload)
    else:
        return payload


def _describe(exc: BaseException) -> str:
    # The API errors carry the server's message separately from their args.
    message = getattr(exc, 'message', None)
    return message if isinstance(message, str) and message else str(exc)


def _echo(data: Any, *, output: str) -> None:
    if output == 'yaml':
        click.echo(yaml.safe_dump(data, explicit_start=True, sort_keys=False), nl=False)
    else:
        click.echo(json.dumps(data, indent=2))
