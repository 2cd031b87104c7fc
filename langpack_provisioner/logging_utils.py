from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_LOG_PATH

_FILE_FORMAT = logging.Formatter(
    fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S%z",
)
_CONSOLE_FORMAT = logging.Formatter(fmt="%(levelname)-7s %(message)s")

_installed: List[logging.Handler] = []


def _open_file_handler(path: str) -> logging.Handler:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    # Append-only: earlier runs stay in the same log.
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(_FILE_FORMAT)
    handler.setLevel(logging.DEBUG)
    return handler


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> Optional[str]:
    """Route all provisioning logs to one append-only file (and the console).

    The file receives DEBUG detail such as native exit codes and installer
    output; the console only gets ``level`` and above. If ``log_path`` cannot
    be opened we fall back to a file in the working directory, and if that
    fails too we carry on with console logging only. Logging never stops a run.

    Calling this again replaces the handlers installed by the previous call.

    Returns the log file path actually in use, or None.
    """

    close_logging()
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    chosen: Optional[str] = None
    for candidate in (log_path, str(Path.cwd() / Path(log_path).name)):
        try:
            _installed.append(_open_file_handler(candidate))
            chosen = candidate
            break
        except OSError as e:
            print(f"warning: cannot open log file {candidate}: {e}", file=sys.stderr)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(_CONSOLE_FORMAT)
        console.setLevel(level)
        _installed.append(console)

    for h in _installed:
        root.addHandler(h)

    logging.getLogger(__name__).debug("Logging initialized (requested=%s, actual=%s)", log_path, chosen)
    return chosen


def close_logging() -> None:
    """Flush and detach the handlers installed by configure_logging()."""
    root = logging.getLogger()
    for h in _installed:
        root.removeHandler(h)
        h.close()
    _installed.clear()
