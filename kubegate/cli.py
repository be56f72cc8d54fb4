import asyncio
import functools
import json
from typing import Any, Callable, Optional, Tuple

import aiohttp
import click

from kubegate._cogs.clients import api, auth, errors, gateways, objects, watching
from kubegate._cogs.configs import configuration
from kubegate._cogs.structs import bodies, credentials, references, routing
from kubegate._core.actions import loggers
from kubegate._core.engines import informers
from kubegate._core.intents import piggybacking


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
                log_prefix: Optional[bool] = False,
                log_refkey: Optional[str] = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, **kwargs)

    return wrapper


def gateway_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator for the target cluster & hub credentials in all commands. """
    @click.option('--cluster-name', 'cluster', type=str, required=True)
    @click.option('--kubeconfig', type=click.Path(dir_okay=False), default=None)
    @click.option('--gateway', type=str, default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(cluster: str, kubeconfig: Optional[str], gateway: Optional[str],
                *args: Any, **kwargs: Any) -> Any:
        try:
            info = piggybacking.login(kubeconfig)
        except credentials.LoginError as e:
            raise click.ClickException(str(e))
        settings = configuration.GatewaySettings()
        settings.routing.gateway = gateway
        return fn(*args, cluster=cluster, info=info, settings=settings, **kwargs)

    return wrapper


@click.version_option(prog_name='kubegate')
@click.group(name='kubegate', context_settings=dict(
    auto_envvar_prefix='KUBEGATE',
))
def main() -> None:
    pass


@main.command()
@logging_options
@gateway_options
@click.argument('name', type=str, default='default')
def namespace(
        name: str,
        cluster: str,
        info: credentials.ConnectionInfo,
        settings: configuration.GatewaySettings,
) -> None:
    """ Get a namespace from a cluster via the gateway, with both clients. """
    async def _main() -> Tuple[bodies.RawBody, bodies.RawBody]:
        async with auth.APIContext(info) as context:
            return await fetch_namespace(context, name=name, cluster=cluster, settings=settings)

    try:
        raw, obj = asyncio.run(_main())
    except (errors.RoutingError, errors.APIError) as e:
        raise click.ClickException(str(e))
    except aiohttp.ClientConnectionError as e:
        raise click.ClickException(f"Cannot connect to the API: {e}")
    click.echo(f"Raw client: {json.dumps(raw.get('metadata', {}))}")
    click.echo(f"Object client: {json.dumps(obj.get('metadata', {}))}")


@main.command()
@logging_options
@gateway_options
@click.option('-n', '--namespace', type=str, default='kube-system')
@click.option('-t', '--timeout', type=float, default=None)
def pods(
        namespace: str,
        timeout: Optional[float],
        cluster: str,
        info: credentials.ConnectionInfo,
        settings: configuration.GatewaySettings,
) -> None:
    """ List the pods of a cluster from an informer bound to that cluster. """
    async def _main() -> None:
        async with auth.APIContext(info) as context:
            await watch_pods(context, namespace=namespace, cluster=cluster,
                             settings=settings, timeout=timeout, echo=click.echo)

    try:
        asyncio.run(_main())
    except asyncio.TimeoutError as e:
        raise click.ClickException(str(e) or "The informer has not synced in time.")
    except (errors.RoutingError, errors.APIError, watching.WatchingError) as e:
        raise click.ClickException(str(e))
    except aiohttp.ClientConnectionError as e:
        raise click.ClickException(f"Cannot connect to the API: {e}")
    except RuntimeError as e:  # the informer has exited before being synced
        raise click.ClickException(str(e))


async def fetch_namespace(
        context: auth.APIContext,
        *,
        name: str,
        cluster: str,
        settings: configuration.GatewaySettings,
) -> Tuple[bodies.RawBody, bodies.RawBody]:
    """
    Get the same namespace twice: via the low-level and the object clients.

    Both go via the basic routing, which takes the cluster from the context.
    """
    logger = loggers.ClusterLogger(cluster=cluster)
    context.wrap(functools.partial(gateways.ClusterGatewayTransport, settings=settings))
    with routing.cluster(cluster):
        raw = await api.get(
            url=references.NAMESPACES.get_url(name=name),
            context=context,
            settings=settings,
            logger=logger,
        )
        obj = await objects.ObjectClient(context, settings=settings, logger=logger).get(
            references.NAMESPACES, name)
    return raw, obj


async def watch_pods(
        context: auth.APIContext,
        *,
        namespace: str,
        cluster: str,
        settings: configuration.GatewaySettings,
        timeout: Optional[float] = None,
        echo: Callable[[str], None] = print,
) -> None:
    """
    Print the pods as they are added to the cache, until the cache is synced.

    The informer knows nothing about the clusters: the enhanced transport
    routes all its listing & watching requests to the bound cluster.
    """
    gateway = gateways.EnhancedClusterGateway(cluster, settings=settings)
    context.wrap(gateway.new_transport)

    def on_add(pod: bodies.RawBody) -> None:
        meta = pod.get('metadata', {})
        status = pod.get('status', {})
        echo(f"{meta.get('namespace')} {meta.get('name')} "
             f"{status.get('podIP')} {status.get('hostIP')}")

    informer = informers.Informer(
        context=context,
        resource=references.PODS,
        namespace=namespace,
        cluster=gateway.cluster,
        settings=settings,
    )
    informer.add_event_handler(on_add=on_add)
    async with informer:
        await informer.wait_for_sync(timeout=timeout)
