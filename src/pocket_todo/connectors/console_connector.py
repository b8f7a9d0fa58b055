# src/pocket_todo/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..notifications.models import NotificationContent
from .loop_runner import BackgroundLoop

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT_SECONDS = 30.0


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleNotificationSink:
    """NotificationSink that prints fired notifications into the console."""

    async def deliver(self, content: NotificationContent) -> None:
        try:
            _print_ts(f"[NOTIFY] {content.title}: {content.body}")
        except Exception:
            logger.debug("Console notification print failed.", exc_info=True)


def run_console_loop(state: AppState, runner: BackgroundLoop) -> None:
    """
    Blocking REPL on the main thread.

    Commands are coroutines; they run on the background loop and this thread
    waits for the reply. Reminders fire on that loop between commands.
    """
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /register, /login, /add, /list. /help for everything, /exit to quit.\n")

    def emit(text: str) -> None:
        _print_ts(text)

    while True:
        try:
            user_input = input(">>> ").strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = runner.run(
                command_registry.handle(state, user_input, emit=emit),
                timeout=COMMAND_TIMEOUT_SECONDS,
            )
        except FutureTimeoutError:
            logger.warning("Command timed out: %s", user_input.split()[0])
            reply = "The command took too long, please try again."
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is None:
            reply = "Commands start with '/'. Use /help to list them."

        print(f"[{_ts_local()}] {reply}", file=sys.stdout, flush=True)

    logger.info("Console connector finished.")
