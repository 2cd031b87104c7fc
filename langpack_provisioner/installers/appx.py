from __future__ import annotations

from ..errors import InstallFailed
from ..lib.native import NativeInstaller
from ..models import ArtifactKind, InstallRecord, InstallStatus, LocalArtifact


class AppPackageInstaller:
    kind = ArtifactKind.APP_PACKAGE

    def __init__(self, native: NativeInstaller, *, family: str) -> None:
        self.native = native
        self.family = family

    def install(self, local: LocalArtifact) -> InstallRecord:
        d = local.descriptor

        if self.native.app_package_installed(self.family, d.display_name):
            return InstallRecord.for_artifact(d, InstallStatus.ALREADY_INSTALLED, f"found in {self.family}*")

        try:
            self.native.add_app_package(local.path)
        except InstallFailed as e:
            return InstallRecord.for_artifact(d, InstallStatus.FAILED, str(e.cause))

        return InstallRecord.for_artifact(d, InstallStatus.INSTALLED, "app package added")
