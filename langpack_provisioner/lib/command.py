from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


class CommandError(RuntimeError):
    def __init__(self, result: CmdResult) -> None:
        detail = (result.stderr or result.stdout).strip()
        super().__init__(f"Command failed ({result.returncode}): {format_argv(result.argv)}\n{detail}")
        self.result = result


def format_argv(argv: Sequence[str]) -> str:
    # Windows quoting rules, since every native call here targets Windows.
    return subprocess.list2cmdline(list(argv))


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    timeout: float | None = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run a native command, logging the command line and its output.

    Output goes to the log file at DEBUG level; the console only sees the
    command line. ``dry_run`` logs but does not execute.
    """

    argv_list = list(argv)
    logger.info("CMD %s", format_argv(argv_list))

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

    p = subprocess.run(
        argv_list,
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        timeout=timeout,
        check=False,
    )

    if p.stdout:
        logger.debug("STDOUT %s", p.stdout.strip())
    if p.stderr:
        logger.debug("STDERR %s", p.stderr.strip())
    logger.debug("EXIT %s", p.returncode)

    result = CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout or "", stderr=p.stderr or "")
    if check and p.returncode != 0:
        raise CommandError(result)
    return result


def powershell(script: str, **kwargs) -> CmdResult:
    return run_cmd(["powershell", "-NoProfile", "-NonInteractive", "-Command", script], **kwargs)
