from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


class ArtifactKind(str, enum.Enum):
    CAB_PACKAGE = "CabPackage"
    APP_PACKAGE = "AppPackage"
    SILENT_INSTALLER = "SilentInstaller"


class InstallStatus(str, enum.Enum):
    ALREADY_INSTALLED = "AlreadyInstalled"
    INSTALLED = "Installed"
    INSTALLED_UNVERIFIED = "InstalledUnverified"
    FAILED = "Failed"
    SKIPPED = "Skipped"

    @property
    def succeeded(self) -> bool:
        return self in (InstallStatus.ALREADY_INSTALLED, InstallStatus.INSTALLED)


@dataclass(frozen=True)
class ArtifactDescriptor:
    name: str
    kind: ArtifactKind

    @property
    def display_name(self) -> str:
        """Name without its final extension, used for install-state lookups."""
        stem, dot, _ext = self.name.rpartition(".")
        return stem if dot else self.name


@dataclass(frozen=True)
class Manifest:
    source: str
    artifacts: Tuple[ArtifactDescriptor, ...]

    def __iter__(self):
        return iter(self.artifacts)

    def __len__(self) -> int:
        return len(self.artifacts)


@dataclass
class LocalArtifact:
    descriptor: ArtifactDescriptor
    path: Path
    present: bool = False

    def mark_present(self) -> None:
        self.present = True


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(frozen=True)
class InstallRecord:
    name: str
    kind: ArtifactKind
    status: InstallStatus
    detail: str = ""
    timestamp: str = field(default_factory=utc_timestamp)

    @classmethod
    def for_artifact(
        cls, descriptor: ArtifactDescriptor, status: InstallStatus, detail: str = ""
    ) -> "InstallRecord":
        return cls(name=descriptor.name, kind=descriptor.kind, status=status, detail=detail)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "status": self.status.value,
            "detail": self.detail,
            "timestamp": self.timestamp,
        }


class ProvisioningReport:
    """Ordered install records for one pipeline run.

    Records are appended while the run is in progress. ``finish()`` freezes
    the report; it is read-only from then on.
    """

    def __init__(self, records: Optional[List[InstallRecord]] = None) -> None:
        self._records: List[InstallRecord] = list(records or [])
        self._finished = False

    @property
    def records(self) -> Tuple[InstallRecord, ...]:
        return tuple(self._records)

    @property
    def finished(self) -> bool:
        return self._finished

    def append(self, record: InstallRecord) -> None:
        if self._finished:
            raise RuntimeError("ProvisioningReport is finished; records are immutable")
        self._records.append(record)

    def finish(self) -> "ProvisioningReport":
        self._finished = True
        return self

    def _count(self, *statuses: InstallStatus) -> int:
        return sum(1 for r in self._records if r.status in statuses)

    @property
    def attempted(self) -> int:
        return len(self._records)

    @property
    def succeeded(self) -> int:
        return self._count(InstallStatus.INSTALLED, InstallStatus.ALREADY_INSTALLED)

    @property
    def unverified(self) -> int:
        return self._count(InstallStatus.INSTALLED_UNVERIFIED)

    @property
    def failed(self) -> int:
        return self._count(InstallStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(InstallStatus.SKIPPED)

    def counts(self) -> Dict[str, int]:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "unverified": self.unverified,
            "failed": self.failed,
            "skipped": self.skipped,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "finished": self._finished,
            "counts": self.counts(),
            "records": [r.to_dict() for r in self._records],
        }
