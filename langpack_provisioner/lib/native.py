from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from ..errors import InstallFailed
from .command import CommandError, powershell, run_cmd

logger = logging.getLogger(__name__)

# CBS_E_NOT_APPLICABLE: the package does not apply to this image (wrong build,
# architecture or edition). DISM surfaces the HRESULT as its exit code, which
# shows up unsigned from subprocess and signed when relayed through PowerShell.
NOT_APPLICABLE_EXIT_CODE = 0x800F081E
NOT_APPLICABLE_EXIT_CODES = frozenset({NOT_APPLICABLE_EXIT_CODE, NOT_APPLICABLE_EXIT_CODE - 2**32})

INSTALLED_STATE = "Installed"
DEFAULT_SILENT_ARGS = ("/quiet", "/norestart")


class NativeInstaller(Protocol):
    """OS package-management capability used by the installer handlers."""

    def package_state(self, display_name: str) -> Optional[str]:
        ...

    def add_package(self, path: Path, log_path: Path) -> int:
        ...

    def app_package_installed(self, family: str, display_name: str) -> bool:
        ...

    def add_app_package(self, path: Path) -> None:
        ...

    def run_installer(self, path: Path, args: Sequence[str]) -> int:
        ...


def _ps_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def pick_state(states: Sequence[str]) -> Optional[str]:
    """Collapse the states of every matching package into one.

    Several servicing packages can match one display name (e.g. a language
    pack and its superseded predecessor); any "Installed" one wins.
    """
    cleaned = [s.strip() for s in states if s.strip()]
    if not cleaned:
        return None
    for s in cleaned:
        if s.lower() == INSTALLED_STATE.lower():
            return INSTALLED_STATE
    return cleaned[0]


def app_name_matches(display_name: str, installed_names: Sequence[str]) -> bool:
    """Match an app-package file stem against installed package names.

    Release file names embed the package name plus version/architecture
    decorations, so either string containing the other counts as a match.
    """
    wanted = display_name.lower()
    for name in installed_names:
        have = name.strip().lower()
        if have and (have in wanted or wanted in have):
            return True
    return False


class WindowsNativeInstaller:
    """Thin adapters over DISM, the Appx PowerShell module and direct launches."""

    def __init__(self, *, timeout: float | None = None, dry_run: bool = False) -> None:
        self.timeout = timeout
        self.dry_run = dry_run

    def package_state(self, display_name: str) -> Optional[str]:
        script = (
            "Get-WindowsPackage -Online | "
            f"Where-Object {{ $_.PackageName -like {_ps_quote('*' + display_name + '*')} }} | "
            "ForEach-Object { $_.PackageState.ToString() }"
        )
        r = powershell(script, check=False, timeout=self.timeout, dry_run=self.dry_run)
        if not r.succeeded:
            logger.warning("Package state query for %s failed (%s)", display_name, r.returncode)
            return None
        return pick_state(r.stdout.splitlines())

    def add_package(self, path: Path, log_path: Path) -> int:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        argv = [
            "dism",
            "/Online",
            "/Add-Package",
            f"/PackagePath:{path}",
            "/NoRestart",
            f"/LogPath:{log_path}",
        ]
        return run_cmd(argv, check=False, timeout=self.timeout, dry_run=self.dry_run).returncode

    def installed_app_packages(self, family: str) -> List[str]:
        script = (
            f"Get-AppxPackage -AllUsers -Name {_ps_quote(family + '*')} | "
            "ForEach-Object { $_.PackageFullName }"
        )
        r = powershell(script, check=False, timeout=self.timeout, dry_run=self.dry_run)
        if not r.succeeded:
            logger.warning("App package query for %s failed (%s)", family, r.returncode)
            return []
        return [line.strip() for line in r.stdout.splitlines() if line.strip()]

    def app_package_installed(self, family: str, display_name: str) -> bool:
        return app_name_matches(display_name, self.installed_app_packages(family))

    def add_app_package(self, path: Path) -> None:
        script = f"Add-AppxPackage -Path {_ps_quote(str(path))} -ErrorAction Stop"
        try:
            powershell(script, check=True, timeout=self.timeout, dry_run=self.dry_run)
        except (CommandError, OSError, subprocess.TimeoutExpired) as e:
            raise InstallFailed(path.name, e) from e

    def run_installer(self, path: Path, args: Sequence[str]) -> int:
        if path.suffix.lower() == ".msi":
            argv = ["msiexec", "/i", str(path), *args]
        else:
            argv = [str(path), *args]
        return run_cmd(argv, check=False, timeout=self.timeout, dry_run=self.dry_run).returncode
