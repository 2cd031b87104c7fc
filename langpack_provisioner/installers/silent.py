from __future__ import annotations

from typing import Sequence

from ..lib.native import DEFAULT_SILENT_ARGS, NativeInstaller
from ..models import ArtifactKind, InstallRecord, InstallStatus, LocalArtifact


class SilentInstaller:
    """Runs a vendor installer unattended; only the exit code is authoritative."""

    kind = ArtifactKind.SILENT_INSTALLER

    def __init__(self, native: NativeInstaller, *, args: Sequence[str] = DEFAULT_SILENT_ARGS) -> None:
        self.native = native
        self.args = tuple(args)

    def install(self, local: LocalArtifact) -> InstallRecord:
        rc = self.native.run_installer(local.path, self.args)
        if rc == 0:
            return InstallRecord.for_artifact(local.descriptor, InstallStatus.INSTALLED, "exit 0")
        return InstallRecord.for_artifact(local.descriptor, InstallStatus.FAILED, f"installer exited with {rc}")
