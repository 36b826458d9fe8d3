"""Typer application and CLI entry point for handshake.

The ``handshake`` command inspects a clients configuration file without
running a web server:

* ``handshake clients`` -- list the configured clients.
* ``handshake check`` -- validate every client's settings.
* ``handshake url NAME`` -- show where an anonymous request would be sent.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``.

See Also:
    :mod:`handshake.config`: Configuration file resolution.
    :mod:`handshake.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import typer

from handshake import __version__
from handshake.exceptions import HandshakeError
from handshake.exit_codes import EXIT_AUTH_FAILURE, EXIT_INVALID_USAGE


app = typer.Typer(
    name="handshake",
    help="Inspect and check authentication client configurations.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"handshake {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Clients configuration file."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~handshake.output.OutputManager`,
    configures logging, and stores the configuration path in ``ctx.obj``.
    """
    from handshake.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    set_output(OutputManager(format=fmt, quiet=quiet, verbose=verbose))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


def _fail(exc: HandshakeError) -> typer.Exit:
    from handshake.output import error

    error(str(exc))
    return typer.Exit(code=exc.exit_code)


@app.command("clients")
def clients_command(ctx: typer.Context) -> None:
    """List the configured clients.

    Example::

        handshake --config handshake.json clients
    """
    from handshake.auth.manager import create_clients
    from handshake.config import load_config
    from handshake.output import info, print_table

    try:
        clients = create_clients(load_config(ctx.obj["config"]))
    except HandshakeError as exc:
        raise _fail(exc) from None

    if not len(clients):
        info("No clients configured.")
        return

    rows = [
        [
            client.name,
            client.handler.type_name or type(client.handler).__name__,
            client.mechanism.value,
            "yes" if client.direct_redirection else "no",
            client.callback_url or "",
        ]
        for client in clients
    ]
    print_table(["Name", "Type", "Mechanism", "Direct", "Callback URL"], rows, title="Clients")


@app.command("check")
def check_command(ctx: typer.Context) -> None:
    """Validate every client of the configuration.

    Exits with code 2 when any client is misconfigured.
    """
    from handshake.auth.manager import build_client
    from handshake.config import load_config
    from handshake.helpers import is_blank
    from handshake.output import error, success

    try:
        config = load_config(ctx.obj["config"])
    except HandshakeError as exc:
        raise _fail(exc) from None

    problems: list[str] = []
    for index, settings in enumerate(config.clients):
        label = settings.name or f"#{index + 1} ({settings.type})"
        try:
            client = build_client(settings)
        except HandshakeError as exc:
            problems.append(f"{label}: {exc}")
            continue
        for message in client.handler.validate_settings():
            problems.append(f"{label}: {message}")
        if not client.direct_redirection and is_blank(
            client.callback_url or config.callback_url
        ):
            problems.append(f"{label}: indirect client needs a callback URL")

    if problems:
        for message in problems:
            error(message)
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    success(f"{len(config.clients)} client(s) OK.")


@app.command("url")
def url_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Client name."),
    scheme: str = typer.Option("http", "--scheme", help="Request scheme."),
    host: str = typer.Option("localhost", "--host", help="Request host name."),
    port: int = typer.Option(80, "--port", help="Request port."),
    protected: bool = typer.Option(
        False, "--protected", help="Treat the target as protected."
    ),
    ajax: bool = typer.Option(
        False, "--ajax", help="Send the request as an XMLHttpRequest."
    ),
) -> None:
    """Show where an anonymous request would be redirected.

    Example::

        handshake url GitHub --scheme https --host app.example.com --port 443
    """
    from handshake.auth.manager import create_clients
    from handshake.config import load_config
    from handshake.context import HttpConstants, MockWebContext
    from handshake.models import HttpAction
    from handshake.output import error, print_data

    try:
        clients = create_clients(load_config(ctx.obj["config"]))
        client = clients.find_client(name)
        headers = (
            {HttpConstants.AJAX_HEADER_NAME: HttpConstants.AJAX_HEADER_VALUE} if ajax else {}
        )
        context = MockWebContext(
            headers=headers, scheme=scheme, server_name=host, server_port=port
        )
        outcome = client.resolve_redirect(context, protected, context.is_ajax())
    except HandshakeError as exc:
        raise _fail(exc) from None

    if isinstance(outcome, HttpAction):
        error(f"{outcome.status_code}: {outcome.message}")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)
    if outcome.location is not None:
        print_data(outcome.location)
    else:
        print_data(outcome.content or "")


def main() -> None:
    """CLI entry point invoked by the ``handshake`` console script.

    Unhandled :class:`~handshake.exceptions.HandshakeError` instances
    cause a clean exit with the error's ``exit_code``.
    """
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except HandshakeError as exc:
        from handshake.output import error

        error(str(exc))
        sys.exit(exc.exit_code)
