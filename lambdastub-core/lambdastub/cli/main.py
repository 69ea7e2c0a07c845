"""Command line interface to run the runtime API as a standalone process."""
import json
import signal
import sys
import threading
import traceback

import click

from lambdastub import config, constants
from lambdastub.cli.exceptions import CLIError
from lambdastub.config import HostAndPort
from lambdastub.utils.net import is_port_open


class LambdaStubCliGroup(click.Group):
    """
    Top-level command group that wraps unexpected exceptions into a ``CLIError``, so users get a single line error
    message instead of a stack trace (unless ``--debug`` is set).
    """

    def invoke(self, ctx: click.Context):
        try:
            return super(LambdaStubCliGroup, self).invoke(ctx)
        except click.exceptions.Exit:
            raise
        except click.ClickException:
            if ctx and ctx.params.get("debug"):
                click.echo(traceback.format_exc())
            raise
        except Exception as e:
            if ctx and ctx.params.get("debug"):
                click.echo(traceback.format_exc())
            raise CLIError(str(e)) from e


def _listen_address(host: str, port: int) -> HostAndPort:
    return HostAndPort(
        host=host or config.RUNTIME_API_LISTEN.host,
        port=config.RUNTIME_API_LISTEN.port if port is None else port,
    )


@click.group(
    name="lambdastub",
    cls=LambdaStubCliGroup,
    help="A local test double for the AWS Lambda Runtime API",
)
@click.version_option(version=constants.VERSION, message="%(version)s")
@click.option("--debug", is_flag=True, help="Enable debug logging and stack traces on errors")
@click.pass_context
def cli(ctx: click.Context, debug: bool):
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    if debug:
        config.DEBUG = True


@cli.command(name="start", help="Start the runtime API and serve it until interrupted")
@click.option("--host", default=None, help="Address to bind to (default: 127.0.0.1)")
@click.option("--port", type=int, default=None, help="Port to bind to (default: 5387)")
@click.option(
    "--api-version",
    default=None,
    help=f"Version prefix of the runtime API paths (default: {constants.DEFAULT_RUNTIME_API_VERSION})",
)
def cmd_start(host: str, port: int, api_version: str):
    from lambdastub.logging.setup import setup_logging_from_config
    from lambdastub.runtime_api.service import RuntimeApiService

    setup_logging_from_config()

    service = RuntimeApiService(
        listen=_listen_address(host, port), api_version=api_version, publish_env=False
    )
    published = service.start()
    for key, value in published.items():
        click.echo(f"{key}={value}")

    stopped = threading.Event()

    def _terminate(sig: int, frame):
        sys.stderr.write(f"lambdastub received signal {sig}, stopping\n")
        stopped.set()

    signal.signal(signal.SIGINT, _terminate)
    signal.signal(signal.SIGTERM, _terminate)

    try:
        while not stopped.wait(1):
            pass
    finally:
        service.stop()


_click_format_option = click.option(
    "-f",
    "--format",
    "format_",
    type=click.Choice(["plain", "json"]),
    default="plain",
    help="The formatting style for the command output.",
)


@cli.command(name="config", help="Show the configuration read from the environment")
@_click_format_option
def cmd_config(format_: str):
    items = config.collect_config_items()
    if format_ == "json":
        click.echo(json.dumps({key: str(value) for key, value in items}))
        return
    for key, value in items:
        click.echo(f"{key}={value}")


@cli.command(name="status", help="Check whether a runtime API is listening")
@click.option("--host", default=None, help="Address to check (default: 127.0.0.1)")
@click.option("--port", type=int, default=None, help="Port to check (default: 5387)")
def cmd_status(host: str, port: int):
    address = _listen_address(host, port)
    if not is_port_open(address.port, host=address.host):
        raise CLIError(f"no runtime API listening on {address}")
    click.echo(f"runtime API listening on {address}")


def main():
    cli()


if __name__ == "__main__":
    main()
