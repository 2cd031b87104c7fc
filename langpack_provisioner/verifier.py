from __future__ import annotations

import logging

from .errors import VerificationMismatch
from .lib.native import INSTALLED_STATE, NativeInstaller
from .models import ArtifactDescriptor

logger = logging.getLogger(__name__)


class InstallationVerifier:
    """Re-checks the OS package inventory after an installer reported success."""

    def __init__(self, native: NativeInstaller) -> None:
        self.native = native

    def check(self, descriptor: ArtifactDescriptor) -> None:
        state = self.native.package_state(descriptor.display_name)
        if state != INSTALLED_STATE:
            raise VerificationMismatch(descriptor.name, state)
        logger.debug("Verified %s is %s", descriptor.display_name, INSTALLED_STATE)

    def verify(self, descriptor: ArtifactDescriptor) -> bool:
        try:
            self.check(descriptor)
        except VerificationMismatch as e:
            logger.warning("%s", e)
            return False
        return True
