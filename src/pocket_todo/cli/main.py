# src/pocket_todo/cli/main.py

"""
CLI entrypoint.

Initializes logging, starts the background event loop, builds AppState, then
runs the console REPL in the main thread.
"""

from __future__ import annotations

import logging
import sys

from ..cli.bootstrap import create_initial_state, start_app
from ..config import get_settings
from ..connectors.console_connector import ConsoleNotificationSink, run_console_loop
from ..connectors.loop_runner import BackgroundLoop, start_loop_in_background
from ..logging_setup import setup_logging
from ..notifications.local_platform import AsyncioNotificationPlatform

logger = logging.getLogger(__name__)


def _shutdown(runner: BackgroundLoop, platform: AsyncioNotificationPlatform) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        runner.run(platform.close(), timeout=5.0)
    except Exception:
        logger.debug("Notification platform close failed.", exc_info=True)

    runner.stop()
    runner.join(timeout=10.0)


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(log_dir=settings.data_dir, console_level=settings.log_level)

    logger.info("Starting %s... (log file %s)", settings.app_name, log_file)

    runner = start_loop_in_background()
    if runner is None:
        sys.exit(1)

    platform = AsyncioNotificationPlatform(
        ConsoleNotificationSink(),
        enabled=settings.notifications_enabled,
    )
    state = create_initial_state(
        platform=platform,
        settings=settings,
        warn=lambda msg: print(f"[WARN] {msg}", flush=True),
    )

    try:
        runner.run(start_app(state), timeout=30.0)
        run_console_loop(state, runner)
    except Exception:
        logger.exception("Fatal error during startup.")
        raise
    finally:
        _shutdown(runner, platform)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
