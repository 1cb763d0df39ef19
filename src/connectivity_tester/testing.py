"""Connection test sequence shared by the command line entry points."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import click

from .config import ConnectionRequest
from .connection import ExecutionContext, MongoConnection
from .diagnostics import print_troubleshooting_tips
from .exceptions import ConnectivityError, ParseError, ResolveError, SetupError
from .odbc_uri import ClientOptions, ParseContext, mask_connection_string, parse
from .output import CHECK, banner, dimmed, error_text, failure, heading, rule, success

logger = logging.getLogger(__name__)

Parser = Callable[[str], ParseContext]
Connector = Callable[..., MongoConnection]
ContextFactory = Callable[[], ExecutionContext]


def _print_configuration(request: ConnectionRequest) -> None:
    heading("Configuration:")
    click.echo(f"  Connection String: {dimmed(mask_connection_string(request.connection_string))}")
    click.echo(f"  Database: {request.database or '(from connection string)'}")
    click.echo(f"  Login Timeout: {request.login_timeout}s")
    timeout = f"{request.connection_timeout}s" if request.connection_timeout is not None else "(none)"
    click.echo(f"  Connection Timeout: {timeout}")
    click.echo(f"  Type Mode: {request.type_mode.value}")
    max_length = request.max_string_length_value
    click.echo(f"  Max String Length: {f'{max_length} chars' if max_length else 'Unlimited'}")
    click.echo()


def _print_client_options(options: ClientOptions) -> None:
    click.echo(f"    Username: {dimmed(options.username or '(none)')}")
    click.echo(f"    Password: {dimmed('***' if options.password is not None else '(none)')}")
    click.echo(f"    Auth Mechanism: {dimmed(options.auth_mechanism or '(default)')}")
    click.echo(f"    Auth Source: {dimmed(options.auth_source or '(default)')}")
    click.echo(f"    Hosts: {dimmed(', '.join(options.hosts))}")
    if options.tls:
        click.echo("    TLS: Configured")


def _step(number: int, text: str) -> None:
    click.echo()
    heading(f"Step {number}: {text}", fg="bright_cyan")


def _fail_step(message: str, exc: ConnectivityError, troubleshoot: bool) -> int:
    failure(message)
    error_text(str(exc))
    logger.debug("Step failed: %r", exc)
    if troubleshoot:
        click.echo()
        print_troubleshooting_tips(str(exc), exc.kind)
    return 1


def test_connection(
    request: ConnectionRequest,
    *,
    parser: Parser = parse,
    connector: Optional[Connector] = None,
    context_factory: ContextFactory = ExecutionContext,
) -> int:
    """Run one connection attempt and report it.

    Steps: parse the connection string, create the execution context,
    resolve client options, connect. The first failing step ends the run.
    Returns an exit code compatible with `sys.exit`.
    """
    connect = connector or MongoConnection.connect

    banner("MongoDB ODBC Connectivity Test")
    if request.verbose:
        _print_configuration(request)

    start = time.perf_counter()

    heading("Step 1: Parsing connection string...", fg="bright_cyan")
    try:
        parse_context = parser(request.connection_string)
    except ParseError as exc:
        return _fail_step("Failed to parse connection string", exc, troubleshoot=False)
    success("Connection string parsed successfully")

    _step(2, "Creating execution context...")
    try:
        context = context_factory()
    except SetupError as exc:
        return _fail_step("Failed to create execution context", exc, troubleshoot=False)
    success("Execution context created successfully")

    _step(3, "Parsing client options...")
    try:
        options = parse_context.resolve(context)
    except ResolveError as exc:
        context.close()
        return _fail_step("Failed to parse client options", exc, troubleshoot=True)
    success("Client options parsed successfully")
    if request.verbose:
        _print_client_options(options)

    _step(4, "Establishing connection...")
    try:
        conn = connect(
            options,
            request.database,
            request.connection_timeout,
            request.login_timeout,
            request.type_mode,
            context,
            request.max_string_length_value,
        )
    except ConnectivityError as exc:
        elapsed = time.perf_counter() - start
        failure("Connection failed", bold=True)
        click.echo()
        heading("Error Details:", fg="bright_red")
        error_text(str(exc), label="")
        click.echo(f"  Time taken: {elapsed:.2f}s")
        click.echo()
        print_troubleshooting_tips(str(exc), exc.kind)
        return 1

    elapsed = time.perf_counter() - start
    success("Connection established successfully!", bold=True)
    click.echo()
    heading("Connection Details:", fg="bright_green")
    click.echo(f"  Time taken: {elapsed:.2f}s")
    click.echo(f"  Cluster type: {conn.cluster_type}")
    if conn.uuid_representation is not None:
        click.echo(f"  UUID representation: {conn.uuid_representation}")
    click.echo()
    click.secho(f"{CHECK} SUCCESS: Connection test passed!", fg="green", bold=True)

    try:
        conn.shutdown()
    except Exception as exc:  # cleanup is best effort
        logger.debug("Ignoring shutdown error: %s", exc)

    rule()
    return 0
