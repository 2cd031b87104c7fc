from __future__ import annotations

from pathlib import Path

from ..lib.native import INSTALLED_STATE, NOT_APPLICABLE_EXIT_CODES, NativeInstaller
from ..models import ArtifactKind, InstallRecord, InstallStatus, LocalArtifact
from ..verifier import InstallationVerifier


class CabPackageInstaller:
    kind = ArtifactKind.CAB_PACKAGE

    def __init__(self, native: NativeInstaller, verifier: InstallationVerifier, *, log_dir: Path) -> None:
        self.native = native
        self.verifier = verifier
        self.log_dir = log_dir

    def install(self, local: LocalArtifact) -> InstallRecord:
        d = local.descriptor

        state = self.native.package_state(d.display_name)
        if state == INSTALLED_STATE:
            return InstallRecord.for_artifact(d, InstallStatus.ALREADY_INSTALLED, f"package state: {state}")

        log_path = self.log_dir / f"{d.display_name}.dism.log"
        rc = self.native.add_package(local.path, log_path)

        if rc in NOT_APPLICABLE_EXIT_CODES:
            return InstallRecord.for_artifact(
                d,
                InstallStatus.FAILED,
                f"package is not applicable to this OS image (0x{rc & 0xFFFFFFFF:08X}); "
                "check that it matches the running build and architecture",
            )
        if rc != 0:
            return InstallRecord.for_artifact(
                d, InstallStatus.FAILED, f"offline package install exited with {rc} (log: {log_path})"
            )

        if self.verifier.verify(d):
            return InstallRecord.for_artifact(d, InstallStatus.INSTALLED, "exit 0, verified")
        return InstallRecord.for_artifact(
            d,
            InstallStatus.INSTALLED_UNVERIFIED,
            f"installer exited 0 but {d.display_name} is not registered as {INSTALLED_STATE}",
        )
