from __future__ import annotations

import logging
from typing import List

from .models import InstallRecord, InstallStatus, ProvisioningReport

logger = logging.getLogger(__name__)

_LEVELS = {
    InstallStatus.ALREADY_INSTALLED: logging.INFO,
    InstallStatus.INSTALLED: logging.INFO,
    InstallStatus.INSTALLED_UNVERIFIED: logging.WARNING,
    InstallStatus.FAILED: logging.ERROR,
    InstallStatus.SKIPPED: logging.WARNING,
}


def progress_line(index: int, total: int, record: InstallRecord) -> str:
    return f"[{index}/{total}] {record.name}: {record.status.value}"


def log_record(record: InstallRecord, *, index: int = 0, total: int = 0) -> None:
    """Append one outcome line (with full detail) to the log sink."""
    prefix = progress_line(index, total, record) if total else f"{record.name}: {record.status.value}"
    logger.log(_LEVELS[record.status], "%s (%s) %s", prefix, record.kind.value, record.detail)


def render_summary(report: ProvisioningReport) -> str:
    lines: List[str] = [
        "Provisioning summary: "
        f"{report.attempted} attempted, {report.succeeded} succeeded, "
        f"{report.unverified} unverified, {report.failed} failed, {report.skipped} skipped"
    ]
    for r in report.records:
        if r.status.succeeded:
            continue
        lines.append(f"  {r.status.value:<19} {r.name}: {r.detail}")
    return "\n".join(lines)


def log_summary(report: ProvisioningReport) -> None:
    level = logging.INFO if report.failed == 0 and report.unverified == 0 and report.skipped == 0 else logging.WARNING
    for line in render_summary(report).splitlines():
        logger.log(level, "%s", line)


def exit_code_for(report: ProvisioningReport) -> int:
    """0 once the batch has run to the end, whatever the per-artifact outcomes.

    Artifact failures are reported, not escalated. Fatal manifest and config
    errors are mapped to a non-zero status by the CLI before a report exists;
    a report that never finished yields 1.
    """
    return 0 if report.finished else 1
