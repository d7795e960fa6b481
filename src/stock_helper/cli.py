"""
Command line entry points.

Usage:
  stock-helper trading212          # Trading 212 MCP server on stdio
  stock-helper telegram            # Telegram MCP server on stdio
  stock-helper telegram-session    # interactive login, prints TELEGRAM_SESSION
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Callable

import click

from stock_helper.core.config import Settings, get_settings
from stock_helper.core.errors import ConfigurationError
from stock_helper.core.log import configure_logging, install_fault_handlers

logger = logging.getLogger("stock_helper.cli")


def _fatal(message: str) -> None:
    logger.critical("Fatal error: %s", message)
    sys.exit(1)


def run_server(builder_name: str) -> None:
    try:
        settings = get_settings()
    except ConfigurationError as e:
        configure_logging()
        _fatal(str(e))
        return
    configure_logging(settings.log_level)
    install_fault_handlers()

    # imported after logging is set up so third-party clients never touch stdout
    from stock_helper.mcp import server as mcp_server

    builder: Callable[[Settings], mcp_server.AdapterServer] = getattr(mcp_server, builder_name)
    try:
        adapter = builder(settings)
        if settings.metrics_port:
            from prometheus_client import start_http_server

            start_http_server(settings.metrics_port)
        asyncio.run(adapter.serve_stdio())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.debug("startup failure", exc_info=True)
        _fatal(str(e))


@click.group()
def main() -> None:
    """MCP adapters for Trading 212 and Telegram."""


@main.command("trading212")
def trading212() -> None:
    """Serve the Trading 212 account tools and resources over stdio."""
    run_server("build_trading212_server")


@main.command("telegram")
def telegram() -> None:
    """Serve the Telegram channel tools over stdio."""
    run_server("build_telegram_server")


async def _generate_session(api_id: int, api_hash: str) -> str:
    from stock_helper.adapters.telegram_client import build_client

    client = build_client(api_id, api_hash)
    await client.start(
        phone=lambda: click.prompt("Enter your phone number"),
        password=lambda: click.prompt("Enter your password", hide_input=True),
        code_callback=lambda: click.prompt("Enter the code you received"),
    )
    try:
        return client.session.save()
    finally:
        await client.disconnect()


@main.command("telegram-session")
@click.option("--api-id", type=int, envvar="TELEGRAM_API_ID", required=True, help="Telegram API id (my.telegram.org)")
@click.option("--api-hash", envvar="TELEGRAM_API_HASH", required=True, help="Telegram API hash")
def telegram_session(api_id: int, api_hash: str) -> None:
    """Log in interactively and print a session string for TELEGRAM_SESSION."""
    configure_logging()
    session = asyncio.run(_generate_session(api_id, api_hash))
    click.echo("Session string:")
    click.echo(session)


if __name__ == "__main__":
    main()
