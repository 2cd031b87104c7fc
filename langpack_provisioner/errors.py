from __future__ import annotations


class ProvisioningError(RuntimeError):
    """Base class for provisioning failures."""


class ConfigError(ValueError):
    pass


class ManifestError(ProvisioningError):
    """Fatal: nothing can be provisioned without a manifest."""


class ManifestUnavailable(ManifestError):
    def __init__(self, source: str, cause: BaseException | str) -> None:
        super().__init__(f"Manifest unavailable: {source} ({cause})")
        self.source = source
        self.cause = cause


class ManifestEmpty(ManifestError):
    def __init__(self, source: str) -> None:
        super().__init__(f"Manifest has no recognized artifact entries: {source}")
        self.source = source


class FetchFailed(ProvisioningError):
    """Per-artifact: download did not complete. The batch continues."""

    def __init__(self, name: str, cause: BaseException | str) -> None:
        super().__init__(f"Fetch failed for {name}: {cause}")
        self.name = name
        self.cause = cause


class InstallFailed(ProvisioningError):
    def __init__(self, name: str, cause: BaseException | str) -> None:
        super().__init__(f"Install failed for {name}: {cause}")
        self.name = name
        self.cause = cause


class VerificationMismatch(ProvisioningError):
    """Installer reported success but the package inventory disagrees."""

    def __init__(self, name: str, observed: str | None) -> None:
        state = observed if observed is not None else "not registered"
        super().__init__(f"Installer reported success for {name} but package state is: {state}")
        self.name = name
        self.observed = observed
