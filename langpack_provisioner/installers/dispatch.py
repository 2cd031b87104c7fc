from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Protocol, Sequence

from ..lib.native import DEFAULT_SILENT_ARGS, NativeInstaller
from ..models import ArtifactKind, InstallRecord, InstallStatus, LocalArtifact
from ..verifier import InstallationVerifier
from .appx import AppPackageInstaller
from .cab import CabPackageInstaller
from .silent import SilentInstaller

logger = logging.getLogger(__name__)


class KindInstaller(Protocol):
    """Installs one kind of artifact."""

    kind: ArtifactKind

    def install(self, local: LocalArtifact) -> InstallRecord:
        ...


class InstallerDispatch:
    """Routes each artifact to the handler for its kind.

    Every failure is turned into an InstallRecord here; nothing raised by a
    handler escapes to the pipeline.
    """

    def __init__(
        self,
        native: NativeInstaller,
        *,
        verifier: InstallationVerifier | None = None,
        app_family: str,
        log_dir: Path,
        silent_args: Sequence[str] = DEFAULT_SILENT_ARGS,
        dry_run: bool = False,
    ) -> None:
        self.dry_run = dry_run
        verifier = verifier or InstallationVerifier(native)
        handlers: Sequence[KindInstaller] = (
            CabPackageInstaller(native, verifier, log_dir=log_dir),
            AppPackageInstaller(native, family=app_family),
            SilentInstaller(native, args=silent_args),
        )
        self._handlers: Dict[ArtifactKind, KindInstaller] = {h.kind: h for h in handlers}
        missing = set(ArtifactKind) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No installer registered for: {sorted(k.value for k in missing)}")

    def install(self, local: LocalArtifact) -> InstallRecord:
        d = local.descriptor
        if not local.present:
            return InstallRecord.for_artifact(d, InstallStatus.SKIPPED, f"artifact file missing: {local.path}")
        if self.dry_run:
            return InstallRecord.for_artifact(d, InstallStatus.SKIPPED, f"dry run: would install {local.path}")

        logger.info("Installing %s (%s)", d.name, d.kind.value)
        try:
            return self._handlers[d.kind].install(local)
        except Exception as e:
            logger.exception("Installer for %s raised", d.name)
            return InstallRecord.for_artifact(d, InstallStatus.FAILED, f"{type(e).__name__}: {e}")
