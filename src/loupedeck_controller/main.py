"""CLI entry point for the Loupedeck controller."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer

from loupedeck_controller.config import load_settings
from loupedeck_controller.controller import DeckController

app = typer.Typer(
    name="loupedeck-controller",
    help="Loupedeck controller - drives a Loupedeck Live S touch grid, knobs and buttons.",
    add_completion=False,
)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: If True, set log level to DEBUG.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


@app.command()
def main(
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to YAML configuration file.",
            exists=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ] = None,
    layout: Annotated[
        Path | None,
        typer.Option(
            "--layout",
            "-l",
            help="Path to YAML page layout (overrides config file).",
            exists=True,
            dir_okay=False,
            resolve_path=True,
            envvar="LOUPEDECK_LAYOUT",
        ),
    ] = None,
    mock: Annotated[
        bool,
        typer.Option(
            "--mock",
            help="Use a simulated device instead of hardware.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose debug logging.",
        ),
    ] = False,
) -> None:
    """Start the Loupedeck controller daemon.

    The controller takes the device lock, connects to the Loupedeck, renders
    the configured pages and maps touches, knobs and buttons to actions.
    """
    setup_logging(verbose=verbose)
    logger = logging.getLogger(__name__)

    # Load settings
    settings = load_settings(config)

    # Override from CLI arguments
    if layout:
        settings.display.layout_file = layout
    if mock:
        settings.device.driver = "mock"

    logger.info("Starting Loupedeck controller")
    logger.info("Device driver: %s", settings.device.driver or "(not configured)")
    logger.info("Layout: %s", settings.display.layout_file or "built-in")
    if settings.mqtt.enabled:
        logger.info("MQTT Broker: %s:%d", settings.mqtt.host, settings.mqtt.port)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    exit_code = 1

    try:
        # Signal handlers are installed by the session as soon as the lock is held
        controller = DeckController(settings)
        exit_code = loop.run_until_complete(controller.run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        exit_code = 0
    finally:
        # Cancel all remaining tasks
        pending = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()

        # Wait for cancellation
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))

        loop.close()
        logger.info("Loupedeck controller stopped")

    raise typer.Exit(code=exit_code)


if __name__ == "__main__":
    app()
