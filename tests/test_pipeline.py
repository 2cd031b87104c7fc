from __future__ import annotations

import json
from pathlib import Path

import pytest

from langpack_provisioner.errors import ManifestEmpty
from langpack_provisioner.lib.fetch import ArtifactFetcher
from langpack_provisioner.lib.manifests import parse_manifest
from langpack_provisioner.lib import command
from langpack_provisioner.lib.native import NOT_APPLICABLE_EXIT_CODE, WindowsNativeInstaller
from langpack_provisioner.models import InstallStatus
from langpack_provisioner.pipeline import ProvisioningPipeline, provision


def _pipeline(config, native, opener, **kwargs) -> ProvisioningPipeline:
    fetcher = ArtifactFetcher(config.base_url, config.store_dir, opener=opener)
    return ProvisioningPipeline(config, native=native, fetcher=fetcher, **kwargs)


def _statuses(report) -> list[tuple[str, InstallStatus]]:
    return [(r.name, r.status) for r in report.records]


def test_fresh_run(config, native, opener) -> None:
    opener.files.update({"A.cab": b"a", "B.exe": b"b"})
    manifest = parse_manifest("\n".join(["A.cab", "# comment", "B.exe", ""]))

    report = _pipeline(config, native, opener).run(manifest)

    assert _statuses(report) == [("A.cab", InstallStatus.INSTALLED), ("B.exe", InstallStatus.INSTALLED)]
    assert report.finished
    assert report.counts() == {"attempted": 2, "succeeded": 2, "unverified": 0, "failed": 0, "skipped": 0}


def test_resume_after_crash(config, native, opener, store: Path) -> None:
    (store / "A.cab").write_bytes(b"downloaded before the crash")
    native.package_states["A"] = "Installed"
    manifest = parse_manifest("A.cab\n")

    report = _pipeline(config, native, opener).run(manifest)

    assert _statuses(report) == [("A.cab", InstallStatus.ALREADY_INSTALLED)]
    assert opener.calls == []
    assert native.installs() == []


def test_failure_isolation(config, native, opener) -> None:
    opener.files.update({"A.cab": b"a", "C.cab": b"c"})
    manifest = parse_manifest("A.cab\nB.cab\nC.cab\n")

    report = _pipeline(config, native, opener).run(manifest)

    assert _statuses(report) == [
        ("A.cab", InstallStatus.INSTALLED),
        ("B.cab", InstallStatus.SKIPPED),
        ("C.cab", InstallStatus.INSTALLED),
    ]
    assert [u.rsplit("/", 1)[-1] for u in opener.calls] == ["A.cab", "B.cab", "C.cab"]
    assert native.installs() == ["A.cab", "C.cab"]
    assert "Fetch failed" in report.records[1].detail


def test_entry_with_sub_path_does_not_stop_batch(config, native, opener, store: Path) -> None:
    opener.files.update({"A.cab": b"a", "B.cab": b"b", "C.cab": b"c"})
    manifest = parse_manifest("A.cab\nsub/B.cab\nC.cab\n")

    report = _pipeline(config, native, opener).run(manifest)

    assert _statuses(report) == [
        ("A.cab", InstallStatus.INSTALLED),
        ("sub/B.cab", InstallStatus.SKIPPED),
        ("C.cab", InstallStatus.INSTALLED),
    ]
    assert "not a plain file name" in report.records[1].detail
    assert not (store / "sub").exists()
    assert native.installs() == ["A.cab", "C.cab"]


def test_parallel_fetch_installs_in_manifest_order(config, native, opener) -> None:
    config = config.with_overrides(fetch_workers=4)
    names = [f"P{i}.cab" for i in range(6)]
    opener.files.update({n: n.encode() for n in names})

    report = _pipeline(config, native, opener).run(parse_manifest("\n".join(names)))

    assert [r.name for r in report.records] == names
    assert native.installs() == names


def test_not_applicable_package_does_not_stop_batch(config, native, opener) -> None:
    opener.files.update({"X.cab": b"x", "Y.cab": b"y"})
    native.add_package_rc["X.cab"] = NOT_APPLICABLE_EXIT_CODE

    report = _pipeline(config, native, opener).run(parse_manifest("X.cab\nY.cab\n"))

    assert _statuses(report) == [("X.cab", InstallStatus.FAILED), ("Y.cab", InstallStatus.INSTALLED)]
    assert "not applicable" in report.records[0].detail


def test_second_run_converges_without_work(config, native, opener) -> None:
    opener.files.update({"A.cab": b"a", "L.appx": b"l", "S.exe": b"s"})
    manifest = parse_manifest("A.cab\nL.appx\nS.exe\n")

    _pipeline(config, native, opener).run(manifest)
    installs_after_first = list(native.installs())
    calls_after_first = list(opener.calls)

    second = _pipeline(config, native, opener).run(manifest)

    assert all(r.status is InstallStatus.ALREADY_INSTALLED for r in second.records)
    assert native.installs() == installs_after_first
    assert opener.calls == calls_after_first


def test_force_reruns_silent_installers(config, native, opener) -> None:
    opener.files["S.exe"] = b"s"
    manifest = parse_manifest("S.exe\n")

    _pipeline(config, native, opener).run(manifest)
    report = _pipeline(config, native, opener, force=True).run(manifest)

    assert _statuses(report) == [("S.exe", InstallStatus.INSTALLED)]
    assert native.installs() == ["S.exe", "S.exe"]


def test_failed_silent_installer_is_retried_next_run(config, native, opener) -> None:
    opener.files["S.exe"] = b"s"
    native.installer_rc["S.exe"] = 1603
    manifest = parse_manifest("S.exe\n")

    _pipeline(config, native, opener).run(manifest)
    native.installer_rc["S.exe"] = 0
    report = _pipeline(config, native, opener).run(manifest)

    assert _statuses(report) == [("S.exe", InstallStatus.INSTALLED)]


def test_state_file_holds_report(config, native, opener) -> None:
    opener.files["A.cab"] = b"a"

    _pipeline(config, native, opener).run(parse_manifest("A.cab\n", source="test-manifest"))

    state = json.loads(Path(config.state_path).read_text(encoding="utf-8"))
    assert state["artifacts"]["A.cab"]["status"] == "Installed"
    assert state["last_run"]["manifest"] == "test-manifest"
    assert state["last_run"]["report"]["counts"]["succeeded"] == 1
    assert state["last_run"]["finished"] is not None


def test_report_is_frozen_after_run(config, native, opener) -> None:
    opener.files["A.cab"] = b"a"
    report = _pipeline(config, native, opener).run(parse_manifest("A.cab\n"))

    with pytest.raises(RuntimeError):
        report.append(report.records[0])


def test_provision_loads_manifest(config, native, tmp_path: Path) -> None:
    manifest_path = tmp_path / "manifest.txt"
    manifest_path.write_text("# nothing to install\n", encoding="utf-8")
    config = config.with_overrides(manifest=str(manifest_path))

    with pytest.raises(ManifestEmpty):
        provision(config, native=native)


def test_dry_run_claims_no_outcomes(config, opener, store: Path, monkeypatch) -> None:
    def no_process(argv, **kwargs):
        raise AssertionError(f"dry run launched {argv}")

    monkeypatch.setattr(command.subprocess, "run", no_process)
    (store / "A.cab").write_bytes(b"a")
    (store / "S.exe").write_bytes(b"s")
    config = config.with_overrides(dry_run=True)
    native = WindowsNativeInstaller(dry_run=True)

    report = _pipeline(config, native, opener).run(parse_manifest("A.cab\nS.exe\n"))

    assert _statuses(report) == [
        ("A.cab", InstallStatus.SKIPPED),
        ("S.exe", InstallStatus.SKIPPED),
    ]
    assert report.records[0].detail.startswith("dry run: would install")
    assert report.succeeded == 0
    assert not Path(config.state_path).exists()


def test_corrupt_state_file_starts_fresh(config, native, opener) -> None:
    Path(config.state_path).write_text("{truncated", encoding="utf-8")
    opener.files["S.exe"] = b"s"

    report = _pipeline(config, native, opener).run(parse_manifest("S.exe\n"))

    assert _statuses(report) == [("S.exe", InstallStatus.INSTALLED)]
    state = json.loads(Path(config.state_path).read_text(encoding="utf-8"))
    assert state["artifacts"]["S.exe"]["status"] == "Installed"
