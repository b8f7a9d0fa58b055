# src/pocket_todo/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from pathlib import Path

LOG_FILE_NAME = "pocket_todo.log"

# Console thresholds for our own chatty loggers (prefix -> minimum level).
QUIET_LOGGERS: dict[str, int] = {
    "pocket_todo.storage": logging.WARNING,
    "pocket_todo.notifications.local_platform": logging.WARNING,
}


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keeps the console readable while the REPL is waiting for input.

    pocket_todo loggers pass unless a QUIET_LOGGERS prefix raises their bar;
    everything else (third-party, 'py.warnings') needs ERROR+.
    """

    def __init__(self, quiet: Mapping[str, int] | None = None) -> None:
        super().__init__()
        # Longest prefix first so "a.b.c" wins over "a.b".
        self._quiet = sorted((quiet or {}).items(), key=lambda kv: len(kv[0]), reverse=True)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name != "pocket_todo" and not name.startswith("pocket_todo."):
            return record.levelno >= logging.ERROR

        for prefix, level in self._quiet:
            if name == prefix or name.startswith(prefix + "."):
                return record.levelno >= level
        return True


def resolve_level(level: str | int, default: int = logging.INFO) -> int:
    """'debug' / 'WARNING' / 10 -> logging level; unknown names fall back to `default`."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/pocket_todo",
    console_level: str | int = logging.INFO,
    file_level: str | int = logging.DEBUG,
    quiet: Mapping[str, int] | None = None,
) -> Path:
    """
    Install a filtered stderr handler and a full log file under `log_dir`.

    Replaces any handlers already on the root logger, so calling it twice does
    not duplicate output. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(resolve_level(console_level))
    ch.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    ch.addFilter(_ConsoleNoiseFilter(QUIET_LOGGERS if quiet is None else quiet))
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(resolve_level(file_level, default=logging.DEBUG))
    fh.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s [%(threadName)s]: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(fh)

    logging.captureWarnings(True)
    return log_file
