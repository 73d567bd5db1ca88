"""
Entry point for the MQTT File Uploader.

Loads the configuration, prints the configuration summary and runs the
uploader until the operator presses Enter or the process receives
SIGINT/SIGTERM.
"""

import asyncio
import logging
import signal
import sys
import threading
from typing import Optional

from rich.console import Console

from .config import Settings
from .core.exceptions import BrokerConnectionError, ConfigError
from .dependencies import get_settings, get_uploader_service
from .logging_config import setup_logging
from .services.lifecycle import UploaderService


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> None:
    for signal_name in ("SIGINT", "SIGTERM"):
        try:
            loop.add_signal_handler(getattr(signal, signal_name), stop_event.set)
        except (NotImplementedError, AttributeError):
            # Signal handling is not available on Windows
            pass


def _start_keypress_listener(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> None:
    """Set ``stop_event`` when the operator presses Enter."""

    def wait_for_enter() -> None:
        line = sys.stdin.readline()
        if not line:
            # stdin closed (running as a service) - rely on signals instead
            return
        loop.call_soon_threadsafe(stop_event.set)

    if sys.stdin is None or not sys.stdin.isatty():
        return
    threading.Thread(target=wait_for_enter, name="keypress-listener", daemon=True).start()
    logging.info("Press Enter to exit")


async def run_uploader(service: UploaderService, stop_event: Optional[asyncio.Event] = None) -> None:
    stop_event = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    _install_signal_handlers(loop, stop_event)
    _start_keypress_listener(loop, stop_event)
    await service.run(stop_event)


def log_configuration(settings: Settings) -> None:
    for line in settings.summary_lines():
        logging.info(line)


def main() -> int:
    try:
        settings = get_settings()
    except ConfigError as e:
        Console(stderr=True).print(f"[bold red]Configuration error:[/] {e}")
        return 1

    setup_logging(settings)
    log_configuration(settings)

    try:
        asyncio.run(run_uploader(get_uploader_service()))
    except (BrokerConnectionError, ConfigError) as e:
        logging.error(f"Uploader could not start: {e}")
        return 1
    except KeyboardInterrupt:
        logging.info("Uploader interrupted")

    return 0


if __name__ == "__main__":
    sys.exit(main())
