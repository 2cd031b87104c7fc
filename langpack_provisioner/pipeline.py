from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, Optional

from .config import ProvisionConfig
from .errors import FetchFailed
from .installers import InstallerDispatch
from .lib.fetch import ArtifactFetcher
from .lib.manifests import load_manifest
from .lib.native import NativeInstaller, WindowsNativeInstaller
from .models import (
    ArtifactDescriptor,
    ArtifactKind,
    InstallRecord,
    InstallStatus,
    LocalArtifact,
    Manifest,
    ProvisioningReport,
)
from .report import log_record
from .state_store import (
    begin_run,
    completed_artifacts,
    ensure_defaults,
    finish_run,
    load_state_or_empty,
    record_outcome,
    save_state,
)

logger = logging.getLogger(__name__)

# Kinds without an inventory query; their idempotence comes from the run state.
_STATE_TRACKED_KINDS = frozenset({ArtifactKind.SILENT_INSTALLER})


class ProvisioningPipeline:
    """Fetch, install and verify every artifact of a manifest.

    Downloads happen first (optionally on a small thread pool), then installs
    run one at a time in manifest order. Each artifact is isolated: its
    failure becomes a record in the report and the batch moves on. The run
    state is saved after every artifact so an interrupted run can be resumed.
    """

    def __init__(
        self,
        config: ProvisionConfig,
        *,
        native: Optional[NativeInstaller] = None,
        fetcher: Optional[ArtifactFetcher] = None,
        dispatch: Optional[InstallerDispatch] = None,
        state: Optional[Dict[str, Any]] = None,
        force: bool = False,
    ) -> None:
        self.config = config
        self.force = force
        self.dry_run = config.dry_run
        native = native or WindowsNativeInstaller(timeout=config.command_timeout_s, dry_run=self.dry_run)
        self.fetcher = fetcher or ArtifactFetcher(
            config.base_url,
            config.store_dir,
            timeout=config.timeout_s,
            dry_run=self.dry_run,
        )
        self.dispatch = dispatch or InstallerDispatch(
            native,
            app_family=config.app_package_family,
            log_dir=config.install_log_dir,
            silent_args=config.silent_args,
            dry_run=self.dry_run,
        )
        self.state = ensure_defaults(state if state is not None else load_state_or_empty(config.state_path))

    def _persist(self) -> None:
        if self.dry_run:
            return
        try:
            save_state(self.config.state_path, self.state)
        except OSError as e:
            logger.warning("Could not save run state to %s: %s", self.config.state_path, e)

    def _previously_completed(self, descriptor: ArtifactDescriptor, done: set) -> bool:
        return (not self.force) and descriptor.kind in _STATE_TRACKED_KINDS and descriptor.name in done

    def run(self, manifest: Manifest) -> ProvisioningReport:
        report = ProvisioningReport()
        total = len(manifest)
        done = completed_artifacts(self.state)
        begin_run(self.state, manifest=manifest.source, artifact_count=total)
        self._persist()

        to_fetch = [d for d in manifest if not self._previously_completed(d, done)]
        logger.info("Fetching %d of %d artifacts from %s", len(to_fetch), total, self.fetcher.base_url)
        fetched = iter(self.fetcher.fetch_all(to_fetch, workers=self.config.fetch_workers))

        for index, descriptor in enumerate(manifest, start=1):
            if self._previously_completed(descriptor, done):
                record = InstallRecord.for_artifact(
                    descriptor, InstallStatus.ALREADY_INSTALLED, "recorded as installed by a previous run"
                )
            else:
                record = self._install_one(descriptor, next(fetched))

            report.append(record)
            log_record(record, index=index, total=total)
            record_outcome(self.state, record)
            self._persist()

        report.finish()
        finish_run(self.state, report)
        self._persist()
        return report

    def _install_one(self, descriptor: ArtifactDescriptor, fetched: LocalArtifact | FetchFailed) -> InstallRecord:
        if isinstance(fetched, FetchFailed):
            local = LocalArtifact(descriptor=descriptor, path=self.fetcher.local_path(descriptor), present=False)
            record = self.dispatch.install(local)
            if record.status is InstallStatus.SKIPPED:
                record = dataclasses.replace(record, detail=f"{record.detail}; {fetched}")
            return record
        return self.dispatch.install(fetched)


def provision(
    config: ProvisionConfig,
    *,
    native: Optional[NativeInstaller] = None,
    force: bool = False,
) -> ProvisioningReport:
    """Load the configured manifest and run the pipeline over it.

    Manifest errors propagate; they are the only fatal failures.
    """

    manifest = load_manifest(config.manifest, extensions=config.extensions, timeout=config.timeout_s)
    pipeline = ProvisioningPipeline(config, native=native, force=force)
    return pipeline.run(manifest)
